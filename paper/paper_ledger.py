"""PaperPositionLedger — simulated staking ledger that drives a rewarder.

Owns positions, tracks approvals, and notifies the attached
``BonusRewarder`` as its authorized caller::

    ledger = PaperPositionLedger(address="0xLedger")
    rewarder = BonusRewarder(config, token, ledger, clock=clock)
    ledger.attach(rewarder)

    pid = ledger.mint("0xalice")
    await ledger.deposit(pid, 5_000)
    await ledger.harvest(pid, base_reward=120)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import structlog

from rewarder.interfaces import PositionLedger

if TYPE_CHECKING:
    from rewarder.bonus_rewarder import BonusRewarder

logger = structlog.get_logger("paper.paper_ledger")


class PositionNotFoundError(KeyError):
    """Raised when a position id was never minted."""


class InsufficientStakeError(ValueError):
    """Raised when a withdrawal exceeds the staked amount."""


@dataclass
class PaperPosition:
    position_id: int
    owner: str
    staked: int = 0
    approved: str | None = None
    history: list[tuple[str, int]] = field(default_factory=list)


class PaperPositionLedger(PositionLedger):
    """In-memory ledger with owner, per-position and operator approvals."""

    def __init__(self, address: str = "0xPaperLedger") -> None:
        self._address = address
        self._positions: dict[int, PaperPosition] = {}
        self._operators: dict[str, set[str]] = {}
        self._next_id = 1
        self._rewarder: BonusRewarder | None = None

    @property
    def address(self) -> str:
        return self._address

    def attach(self, rewarder: BonusRewarder) -> None:
        self._rewarder = rewarder

    # ── Ownership ────────────────────────────────────────────────

    def mint(self, owner: str) -> int:
        position_id = self._next_id
        self._next_id += 1
        self._positions[position_id] = PaperPosition(position_id=position_id, owner=owner)
        logger.info("paper_ledger.minted", position_id=position_id, owner=owner)
        return position_id

    def position(self, position_id: int) -> PaperPosition:
        try:
            return self._positions[position_id]
        except KeyError:
            raise PositionNotFoundError(position_id) from None

    def owner_of(self, position_id: int) -> str:
        return self.position(position_id).owner

    def approve(self, owner: str, spender: str | None, position_id: int) -> None:
        pos = self.position(position_id)
        if pos.owner != owner:
            raise PermissionError(f"{owner} does not own position {position_id}")
        pos.approved = spender

    def set_approval_for_all(self, owner: str, operator: str, approved: bool) -> None:
        operators = self._operators.setdefault(owner, set())
        if approved:
            operators.add(operator)
        else:
            operators.discard(operator)

    async def is_approved_or_owner(self, caller: str, position_id: int) -> bool:
        pos = self._positions.get(position_id)
        if pos is None:
            return False
        return (
            caller == pos.owner
            or caller == pos.approved
            or caller in self._operators.get(pos.owner, set())
        )

    # ── Staking actions ──────────────────────────────────────────

    async def deposit(self, position_id: int, amount: int, recipient: str | None = None) -> bool:
        """Add stake and notify the rewarder; returns whether a bonus was paid."""
        pos = self.position(position_id)
        pos.staked += amount
        pos.history.append(("deposit", amount))
        try:
            return await self._require_rewarder().on_deposit(
                position_id, amount, recipient or pos.owner, caller=self._address
            )
        except BaseException:
            pos.staked -= amount
            pos.history.pop()
            raise

    async def withdraw(self, position_id: int, amount: int, recipient: str | None = None) -> bool:
        pos = self.position(position_id)
        if amount > pos.staked:
            raise InsufficientStakeError(
                f"withdraw {amount} exceeds stake {pos.staked} on position {position_id}"
            )
        pos.staked -= amount
        pos.history.append(("withdraw", amount))
        try:
            return await self._require_rewarder().on_withdraw(
                position_id, amount, recipient or pos.owner, caller=self._address
            )
        except BaseException:
            pos.staked += amount
            pos.history.pop()
            raise

    async def harvest(self, position_id: int, base_reward: int, recipient: str | None = None) -> int:
        """Realize *base_reward* for the position; returns the rewarder payout."""
        pos = self.position(position_id)
        return await self._require_rewarder().on_reward(
            position_id, base_reward, recipient or pos.owner, caller=self._address
        )

    def _require_rewarder(self) -> BonusRewarder:
        if self._rewarder is None:
            raise RuntimeError("no rewarder attached to ledger")
        return self._rewarder
