"""Collaborator interfaces consumed by the rewarder."""

from __future__ import annotations

import time
from abc import ABC, abstractmethod


class RewardToken(ABC):
    """The token every payout is made in.

    Implementations:
    - ``PaperRewardToken`` — in-memory balances
    - ``Web3RewardToken`` — ERC-20 ``transfer`` on an EVM chain
    """

    @property
    @abstractmethod
    def address(self) -> str:
        """Identity of the token."""

    @abstractmethod
    async def transfer(self, recipient: str, amount: int) -> None:
        """Move *amount* raw units from the rewarder to *recipient*.

        Must either complete fully or raise ``TransferFailedError``;
        partial transfers are not allowed.
        """


class PositionLedger(ABC):
    """The staking ledger that owns positions."""

    @property
    @abstractmethod
    def address(self) -> str:
        """Identity of the ledger."""

    @abstractmethod
    async def is_approved_or_owner(self, caller: str, position_id: int) -> bool:
        """Return True if *caller* owns or may act for *position_id*."""


class Clock(ABC):
    """Source of the current time in whole unix seconds."""

    @abstractmethod
    def now(self) -> int:
        """Return the current timestamp; never decreases."""


class SystemClock(Clock):
    def now(self) -> int:
        return int(time.time())


class ManualClock(Clock):
    """Settable clock for simulations and tests."""

    def __init__(self, start: int = 0) -> None:
        self._now = start

    def now(self) -> int:
        return self._now

    def set(self, timestamp: int) -> None:
        if timestamp < self._now:
            raise ValueError(f"clock cannot move backwards: {timestamp} < {self._now}")
        self._now = timestamp

    def advance(self, seconds: int) -> int:
        if seconds < 0:
            raise ValueError("seconds must be non-negative")
        self._now += seconds
        return self._now
