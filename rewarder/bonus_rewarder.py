"""BonusRewarder — proportional rewards plus a time-gated deposit bonus.

The staking ledger notifies the rewarder on harvest, deposit and
withdrawal.  Two streams are paid out in a single reward token:

- ``on_reward``: ``base_reward * multiplier_bps // 10000`` on every harvest
- deposit bonus: a fixed amount once a position has gone ``cadence``
  seconds without a qualifying deposit, paid on the next deposit,
  withdrawal or explicit ``claim_deposit_bonus``

Each mutating call is one critical section.  Per-position state is
written before the transfer that depends on it, and restored if anything
in the call fails, so a call either commits entirely or not at all.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager, contextmanager
from typing import Any, AsyncIterator, Iterator

import structlog

from core.event_bus import EventBus
from models.reward import PayoutKind, PendingRewards, RewardPayout
from rewarder.config import BPS_DIVISOR, UINT256_MAX, BonusRewarderConfig
from rewarder.deposit_store import SENTINEL, DepositTimeStore, InMemoryDepositTimeStore
from rewarder.errors import (
    ArithmeticOverflowError,
    InvalidConfigurationError,
    NothingToClaimError,
    UnauthorizedError,
)
from rewarder.interfaces import Clock, PositionLedger, RewardToken, SystemClock

logger = structlog.get_logger("rewarder.bonus_rewarder")

EVENT_TOPIC = "rewarder"


def _check_uint(name: str, value: int) -> int:
    if value < 0 or value > UINT256_MAX:
        raise ArithmeticOverflowError(f"{name} outside uint256 range: {value}")
    return value


class BonusRewarder:
    """Reward hooks for a position-based staking ledger.

    Parameters
    ----------
    config:
        Validated static parameters.
    reward_token:
        Token used for every payout; its address must match
        ``config.reward_token``.
    ledger:
        Ledger queried for ownership/approval on explicit claims.
    store:
        Per-position deposit timestamps.  Defaults to an in-memory store.
    clock:
        Time source.  Defaults to wall-clock seconds.
    event_bus:
        Optional bus; committed payouts are published on ``"rewarder"``.

    Usage::

        rewarder = BonusRewarder(config, token, ledger)
        await rewarder.on_deposit(7, 5_000, "0xalice", caller=ledger.address)
        rewarder.pending_rewards(7, base_reward=100)
    """

    def __init__(
        self,
        config: BonusRewarderConfig,
        reward_token: RewardToken,
        ledger: PositionLedger,
        store: DepositTimeStore | None = None,
        clock: Clock | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        if reward_token.address != config.reward_token:
            raise InvalidConfigurationError(
                f"reward token {reward_token.address!r} does not match "
                f"configured {config.reward_token!r}"
            )

        self._config = config
        self._token = reward_token
        self._ledger = ledger
        self._store = store if store is not None else InMemoryDepositTimeStore()
        self._clock = clock or SystemClock()
        self._event_bus = event_bus

        self._lock = asyncio.Lock()
        self._owner: asyncio.Task[Any] | None = None
        self._pending_events: list[dict[str, Any]] = []

    # ── Properties ───────────────────────────────────────────────

    @property
    def config(self) -> BonusRewarderConfig:
        return self._config

    @property
    def reward_token(self) -> str:
        return self._config.reward_token

    def last_deposit_time(self, position_id: int) -> int:
        """Anchor of the open bonus window, or 0 if none is open."""
        return self._store.get(position_id)

    def open_windows(self) -> dict[int, int]:
        return self._store.open_windows()

    # ── Ledger notifications ─────────────────────────────────────

    async def on_reward(
        self,
        position_id: int,
        base_reward: int,
        recipient: str,
        *,
        caller: str,
    ) -> int:
        """Pay the proportional share of a realized base reward.

        Returns the amount transferred.  With a zero multiplier nothing
        is transferred at all, not even a zero amount.
        """
        self._require_authorized(caller)

        async with self._critical_section():
            if self._config.reward_multiplier_bps == 0:
                return 0

            pending = self._proportional(base_reward)
            await self._pay(PayoutKind.PROPORTIONAL, position_id, recipient, pending)
            return pending

    async def on_deposit(
        self,
        position_id: int,
        amount: int,
        recipient: str,
        *,
        caller: str,
    ) -> bool:
        """Re-anchor the bonus window after a qualifying deposit.

        Deposits below ``minimum_deposit`` leave state untouched.  Returns
        True if the previous window qualified and the bonus was paid.
        """
        self._require_authorized(caller)

        async with self._critical_section():
            if amount < self._config.minimum_deposit:
                logger.debug(
                    "bonus_rewarder.deposit_below_minimum",
                    position_id=position_id,
                    amount=amount,
                    minimum=self._config.minimum_deposit,
                )
                return False

            now = self._clock.now()
            with self._restore_on_error(position_id) as previous:
                self._store.set(position_id, now)
                self._queue_event("deposit_recorded", position_id=position_id, timestamp=now)
                return await self._claim_bonus(position_id, recipient, now, previous)

    async def on_withdraw(
        self,
        position_id: int,
        amount: int,
        recipient: str,
        *,
        caller: str,
    ) -> bool:
        """Close the bonus window on any withdrawal, paying it if it qualifies.

        *amount* is accepted for interface compatibility and not used.
        """
        self._require_authorized(caller)

        async with self._critical_section():
            now = self._clock.now()
            with self._restore_on_error(position_id) as previous:
                self._close_window(position_id, previous)
                return await self._claim_bonus(position_id, recipient, now, previous)

    # ── User entry points ────────────────────────────────────────

    async def claim_deposit_bonus(
        self,
        position_id: int,
        recipient: str,
        *,
        caller: str,
    ) -> int:
        """Claim an accrued bonus without touching the position.

        *caller* must own or be approved for *position_id* on the ledger.
        Returns the bonus paid.

        Raises
        ------
        UnauthorizedError
            The ledger does not recognise *caller* for the position.
        NothingToClaimError
            No window is open, or the cadence has not elapsed yet.
        """
        if not await self._ledger.is_approved_or_owner(caller, position_id):
            logger.warning(
                "bonus_rewarder.claim_unauthorized",
                position_id=position_id,
                caller=caller,
            )
            raise UnauthorizedError(
                f"{caller} is not owner or approved for position {position_id}",
                caller=caller,
            )

        async with self._critical_section():
            now = self._clock.now()
            with self._restore_on_error(position_id) as previous:
                self._close_window(position_id, previous)
                if not await self._claim_bonus(position_id, recipient, now, previous):
                    raise NothingToClaimError(position_id)
                return self._config.deposit_bonus

    def pending_rewards(self, position_id: int, base_reward: int) -> PendingRewards:
        """Preview what a harvest plus bonus claim would pay right now.

        Never mutates state and never transfers.
        """
        amount = self._proportional(base_reward)

        previous = self._store.get(position_id)
        if self._bonus_due(self._clock.now(), previous):
            amount = _check_uint("pending reward", amount + self._config.deposit_bonus)

        return PendingRewards(reward_tokens=[self._config.reward_token], amounts=[amount])

    # ── Bonus rule ───────────────────────────────────────────────

    def _bonus_due(self, now: int, previous: int) -> bool:
        if previous == SENTINEL:
            return False
        if now < previous:
            raise ArithmeticOverflowError(
                f"clock at {now} is earlier than deposit time {previous}"
            )
        return now - previous >= self._config.cadence_seconds

    async def _claim_bonus(
        self,
        position_id: int,
        recipient: str,
        now: int,
        previous: int,
    ) -> bool:
        if not self._bonus_due(now, previous):
            return False

        logger.info(
            "bonus_rewarder.bonus_due",
            position_id=position_id,
            deposited_at=previous,
            elapsed=now - previous,
        )
        await self._pay(PayoutKind.DEPOSIT_BONUS, position_id, recipient, self._config.deposit_bonus)
        return True

    # ── Internals ────────────────────────────────────────────────

    def _require_authorized(self, caller: str) -> None:
        if caller != self._config.authorized_caller:
            logger.warning("bonus_rewarder.unauthorized", caller=caller)
            raise UnauthorizedError(f"{caller} is not the authorized caller", caller=caller)

    def _proportional(self, base_reward: int) -> int:
        _check_uint("base_reward", base_reward)
        product = _check_uint("base_reward * multiplier", base_reward * self._config.reward_multiplier_bps)
        return product // BPS_DIVISOR

    def _close_window(self, position_id: int, previous: int) -> None:
        self._store.clear(position_id)
        if previous != SENTINEL:
            self._queue_event("window_closed", position_id=position_id, deposited_at=previous)

    async def _pay(self, kind: PayoutKind, position_id: int, recipient: str, amount: int) -> None:
        payout = RewardPayout(
            kind=kind,
            position_id=position_id,
            recipient=recipient,
            amount=amount,
            timestamp=self._clock.now(),
        )
        await self._token.transfer(recipient, amount)

        logger.info(
            "bonus_rewarder.paid",
            kind=kind.value,
            position_id=position_id,
            recipient=recipient,
            amount=amount,
        )
        action = "reward_paid" if kind == PayoutKind.PROPORTIONAL else "bonus_paid"
        self._queue_event(action, **payout.model_dump(mode="json"))

    def _queue_event(self, action: str, **payload: Any) -> None:
        self._pending_events.append({"action": action, **payload})

    @contextmanager
    def _restore_on_error(self, position_id: int) -> Iterator[int]:
        """Yield the current timestamp and put it back if the block raises."""
        previous = self._store.get(position_id)
        try:
            yield previous
        except BaseException:
            self._store.set(position_id, previous)
            logger.debug(
                "bonus_rewarder.rolled_back",
                position_id=position_id,
                restored=previous,
            )
            raise

    @asynccontextmanager
    async def _critical_section(self) -> AsyncIterator[None]:
        """Serialise calls; a nested call from the owning task reuses the held section.

        Ownership is tied to the task, not the context, so tasks spawned
        while the section is held still queue for the lock.
        """
        if self._owner is not None and asyncio.current_task() is self._owner:
            mark = len(self._pending_events)
            try:
                yield
            except BaseException:
                del self._pending_events[mark:]
                raise
            return

        async with self._lock:
            self._owner = asyncio.current_task()
            try:
                yield
            except BaseException:
                self._pending_events.clear()
                raise
            finally:
                self._owner = None

            events, self._pending_events = self._pending_events, []
            if self._event_bus is not None:
                for payload in events:
                    await self._event_bus.publish(EVENT_TOPIC, payload)
