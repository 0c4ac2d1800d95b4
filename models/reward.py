"""Reward models — previews and executed payouts."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field, computed_field, model_validator


class PayoutKind(str, Enum):
    """Which reward stream produced a payout."""

    PROPORTIONAL = "PROPORTIONAL"
    DEPOSIT_BONUS = "DEPOSIT_BONUS"


class PendingRewards(BaseModel):
    """Read-only preview of what a position would receive.

    List-shaped so several reward tokens can be reported side by side;
    a single rewarder always reports exactly one.
    """

    model_config = {"frozen": True}

    reward_tokens: list[str] = Field(..., description="Reward token addresses")
    amounts: list[int] = Field(..., description="Raw amount per token")

    @model_validator(mode="after")
    def _check_shape(self) -> PendingRewards:
        if len(self.reward_tokens) != len(self.amounts):
            raise ValueError("reward_tokens and amounts must have the same length")
        if any(a < 0 for a in self.amounts):
            raise ValueError("amounts must be non-negative")
        return self

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total(self) -> int:
        return sum(self.amounts)

    def amount_for(self, token: str) -> int:
        """Return the previewed amount for *token* (0 if not reported)."""
        for t, a in zip(self.reward_tokens, self.amounts):
            if t == token:
                return a
        return 0


class RewardPayout(BaseModel):
    """A transfer the rewarder has committed."""

    kind: PayoutKind
    position_id: int = Field(..., ge=0)
    recipient: str = Field(..., min_length=1)
    amount: int = Field(..., ge=0)
    timestamp: int = Field(..., ge=0, description="Clock time of the call, unix seconds")
    recorded_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
