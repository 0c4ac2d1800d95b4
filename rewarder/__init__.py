"""Bonus rewarder — proportional and time-gated deposit rewards for staked positions."""

from .bonus_rewarder import BonusRewarder
from .config import BonusRewarderConfig
from .deposit_store import DepositTimeStore, InMemoryDepositTimeStore, SQLiteDepositTimeStore
from .errors import (
    ArithmeticOverflowError,
    InvalidConfigurationError,
    NothingToClaimError,
    RewarderError,
    TransferFailedError,
    UnauthorizedError,
)
from .interfaces import Clock, ManualClock, PositionLedger, RewardToken, SystemClock

__all__ = [
    "ArithmeticOverflowError",
    "BonusRewarder",
    "BonusRewarderConfig",
    "Clock",
    "DepositTimeStore",
    "InMemoryDepositTimeStore",
    "InvalidConfigurationError",
    "ManualClock",
    "NothingToClaimError",
    "PositionLedger",
    "RewardToken",
    "RewarderError",
    "SQLiteDepositTimeStore",
    "SystemClock",
    "TransferFailedError",
    "UnauthorizedError",
]
