"""Bonus rewarder — models package."""

from .reward import PayoutKind, PendingRewards, RewardPayout

__all__ = [
    "PayoutKind",
    "PendingRewards",
    "RewardPayout",
]
