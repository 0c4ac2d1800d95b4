"""BonusRewarderConfig — immutable rewarder parameters, validated once."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from rewarder.errors import InvalidConfigurationError

if TYPE_CHECKING:
    from config.settings import Settings

UINT256_MAX = 2**256 - 1
BPS_DIVISOR = 10_000
MIN_CADENCE_SECONDS = 86_400


def _check_uint(name: str, value: object) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise InvalidConfigurationError(f"{name} must be an integer, got {value!r}")
    if value < 0 or value > UINT256_MAX:
        raise InvalidConfigurationError(f"{name} out of uint256 range: {value}")
    return value


@dataclass(frozen=True)
class BonusRewarderConfig:
    """Static parameters of a ``BonusRewarder``.

    Attributes
    ----------
    reward_multiplier_bps:
        Scaling applied to base rewards, in parts per 10 000.  Zero
        disables the proportional stream.
    deposit_bonus:
        Raw token amount paid when a bonus window qualifies.
    minimum_deposit:
        Smallest deposit that opens (or re-anchors) a bonus window.
    cadence_seconds:
        Quiet period required between deposits, at least one day.
    reward_token:
        Address of the token used for every payout.
    authorized_caller:
        Address of the ledger allowed to send notifications.
    """

    reward_multiplier_bps: int
    deposit_bonus: int
    minimum_deposit: int
    cadence_seconds: int
    reward_token: str
    authorized_caller: str

    def __post_init__(self) -> None:
        _check_uint("reward_multiplier_bps", self.reward_multiplier_bps)
        _check_uint("deposit_bonus", self.deposit_bonus)
        _check_uint("minimum_deposit", self.minimum_deposit)
        _check_uint("cadence_seconds", self.cadence_seconds)

        if self.minimum_deposit == 0:
            raise InvalidConfigurationError("minimum_deposit must be nonzero")
        if self.cadence_seconds < MIN_CADENCE_SECONDS:
            raise InvalidConfigurationError(
                f"cadence_seconds must be at least {MIN_CADENCE_SECONDS}, "
                f"got {self.cadence_seconds}"
            )
        if not self.reward_token:
            raise InvalidConfigurationError("reward_token is required")
        if not self.authorized_caller:
            raise InvalidConfigurationError("authorized_caller is required")

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> BonusRewarderConfig:
        """Build a config from environment-backed settings."""
        if settings is None:
            from config.settings import settings as default_settings

            settings = default_settings

        return cls(
            reward_multiplier_bps=settings.REWARD_MULTIPLIER_BPS,
            deposit_bonus=settings.DEPOSIT_BONUS,
            minimum_deposit=settings.MINIMUM_DEPOSIT,
            cadence_seconds=settings.DEPOSIT_CADENCE_SECONDS,
            reward_token=settings.REWARD_TOKEN_ADDRESS,
            authorized_caller=settings.AUTHORIZED_CALLER_ADDRESS or settings.LEDGER_ADDRESS,
        )
