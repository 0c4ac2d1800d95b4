"""PaperRewardToken — in-memory reward token with integer balances."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Awaitable, Callable

import structlog

from rewarder.errors import TransferFailedError
from rewarder.interfaces import RewardToken

logger = structlog.get_logger("paper.paper_token")

TransferHook = Callable[[str, int], Awaitable[None]]


@dataclass(frozen=True)
class TransferRecord:
    """One completed transfer out of the rewarder's balance."""

    recipient: str
    amount: int
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class PaperRewardToken(RewardToken):
    """Simulated token holding the rewarder's payout balance.

    Parameters
    ----------
    address:
        Identity reported as the token address.
    initial_balance:
        Raw units available to the rewarder.
    on_transfer:
        Optional async hook ``(recipient, amount)`` run after the balance
        moves, standing in for a recipient callback.  An exception raised
        by the hook fails the transfer's caller.
    """

    def __init__(
        self,
        address: str = "0xPaperRewardToken",
        initial_balance: int = 0,
        on_transfer: TransferHook | None = None,
    ) -> None:
        if initial_balance < 0:
            raise ValueError("initial_balance must be non-negative")
        self._address = address
        self._rewarder_balance = initial_balance
        self._balances: dict[str, int] = {}
        self._transfers: list[TransferRecord] = []
        self.on_transfer = on_transfer

    @property
    def address(self) -> str:
        return self._address

    @property
    def rewarder_balance(self) -> int:
        """Balance still available for payouts."""
        return self._rewarder_balance

    @property
    def transfers(self) -> list[TransferRecord]:
        return list(self._transfers)

    def balance_of(self, holder: str) -> int:
        return self._balances.get(holder, 0)

    def fund(self, amount: int) -> None:
        """Top up the rewarder's payout balance."""
        if amount < 0:
            raise ValueError("amount must be non-negative")
        self._rewarder_balance += amount

    async def transfer(self, recipient: str, amount: int) -> None:
        if amount < 0:
            raise TransferFailedError(f"negative transfer amount: {amount}")
        if amount > self._rewarder_balance:
            logger.warning(
                "paper_token.insufficient_balance",
                recipient=recipient,
                amount=amount,
                available=self._rewarder_balance,
            )
            raise TransferFailedError(
                f"Insufficient balance: need {amount}, have {self._rewarder_balance}"
            )

        self._rewarder_balance -= amount
        self._balances[recipient] = self._balances.get(recipient, 0) + amount
        self._transfers.append(TransferRecord(recipient=recipient, amount=amount))

        logger.debug("paper_token.transfer", recipient=recipient, amount=amount)

        if self.on_transfer is not None:
            try:
                await self.on_transfer(recipient, amount)
            except BaseException:
                self._rewarder_balance += amount
                self._balances[recipient] -= amount
                self._transfers.pop()
                raise
