"""Pydantic BaseSettings — reward amounts are raw token units, never float."""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration loaded from env / .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # ── Application ─────────────────────────────────────────────
    APP_ENV: Literal["dev", "paper", "prod"] = "dev"
    APP_NAME: str = "bonus-rewarder"
    LOG_LEVEL: str = "INFO"

    # ── Reward parameters (raw integer units) ───────────────────
    REWARD_MULTIPLIER_BPS: int = Field(default=0, ge=0)
    DEPOSIT_BONUS: int = Field(default=0, ge=0)
    MINIMUM_DEPOSIT: int = 1
    DEPOSIT_CADENCE_SECONDS: int = 86_400

    # ── Identities ──────────────────────────────────────────────
    REWARD_TOKEN_ADDRESS: str = ""
    LEDGER_ADDRESS: str = ""
    # Defaults to LEDGER_ADDRESS when left empty
    AUTHORIZED_CALLER_ADDRESS: str = ""

    # ── Chain access ────────────────────────────────────────────
    RPC_URL: str = "http://localhost:8545"
    CHAIN_ID: int = 250
    SENDER_ADDRESS: str = ""
    PRIVATE_KEY: str = ""  # never commit real values
    GAS_LIMIT_TRANSFER: int = 100_000
    TX_CONFIRMATION_TIMEOUT_SECONDS: float = 120.0

    # ── Storage ─────────────────────────────────────────────────
    DEPOSIT_STORE_DSN: str = "sqlite:///data/deposit_times.db"


settings = Settings()
