"""Tests for rewarder.bonus_rewarder — hooks, bonus rule, preview, atomicity."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from core.event_bus import EventBus
from paper.paper_ledger import PaperPositionLedger
from paper.paper_token import PaperRewardToken
from rewarder.bonus_rewarder import EVENT_TOPIC, BonusRewarder
from rewarder.config import UINT256_MAX, BonusRewarderConfig
from rewarder.deposit_store import InMemoryDepositTimeStore
from rewarder.errors import (
    ArithmeticOverflowError,
    InvalidConfigurationError,
    NothingToClaimError,
    TransferFailedError,
    UnauthorizedError,
)
from rewarder.interfaces import ManualClock

LEDGER = "0xLedger"
TOKEN = "0xReward"
ALICE = "0xalice"
BOB = "0xbob"
DAY = 86_400
BONUS = 250
MINIMUM = 1_000
START = 1_000


def _config(**overrides) -> BonusRewarderConfig:
    defaults = dict(
        reward_multiplier_bps=5_000,
        deposit_bonus=BONUS,
        minimum_deposit=MINIMUM,
        cadence_seconds=DAY,
        reward_token=TOKEN,
        authorized_caller=LEDGER,
    )
    defaults.update(overrides)
    return BonusRewarderConfig(**defaults)


# ── Fixtures ─────────────────────────────────────────────────────────


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(start=START)


@pytest.fixture
def token() -> PaperRewardToken:
    return PaperRewardToken(address=TOKEN, initial_balance=1_000_000)


@pytest.fixture
def ledger() -> PaperPositionLedger:
    return PaperPositionLedger(address=LEDGER)


@pytest.fixture
def store() -> InMemoryDepositTimeStore:
    return InMemoryDepositTimeStore()


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def rewarder(
    token: PaperRewardToken,
    ledger: PaperPositionLedger,
    store: InMemoryDepositTimeStore,
    clock: ManualClock,
    event_bus: EventBus,
) -> BonusRewarder:
    r = BonusRewarder(
        config=_config(),
        reward_token=token,
        ledger=ledger,
        store=store,
        clock=clock,
        event_bus=event_bus,
    )
    ledger.attach(r)
    return r


@pytest.fixture
def pid(ledger: PaperPositionLedger) -> int:
    return ledger.mint(ALICE)


def _make_rewarder(token: PaperRewardToken, ledger: PaperPositionLedger, clock: ManualClock, **overrides) -> BonusRewarder:
    return BonusRewarder(config=_config(**overrides), reward_token=token, ledger=ledger, clock=clock)


# ── Tests: Construction ──────────────────────────────────────────────


class TestConstruction:
    def test_rejects_mismatched_reward_token(self, ledger: PaperPositionLedger) -> None:
        other = PaperRewardToken(address="0xOther")
        with pytest.raises(InvalidConfigurationError, match="does not match"):
            BonusRewarder(config=_config(), reward_token=other, ledger=ledger)

    def test_defaults_to_empty_in_memory_store(self, token: PaperRewardToken, ledger: PaperPositionLedger) -> None:
        r = BonusRewarder(config=_config(), reward_token=token, ledger=ledger)
        assert r.open_windows() == {}
        assert r.last_deposit_time(1) == 0

    def test_exposes_config(self, rewarder: BonusRewarder) -> None:
        assert rewarder.config.deposit_bonus == BONUS
        assert rewarder.reward_token == TOKEN


# ── Tests: on_reward ─────────────────────────────────────────────────


class TestOnReward:
    @pytest.mark.asyncio
    async def test_half_multiplier_pays_half(self, rewarder: BonusRewarder, token: PaperRewardToken, pid: int) -> None:
        paid = await rewarder.on_reward(pid, 100, ALICE, caller=LEDGER)
        assert paid == 50
        assert token.balance_of(ALICE) == 50

    @pytest.mark.asyncio
    async def test_rounds_down(self, rewarder: BonusRewarder, token: PaperRewardToken, pid: int) -> None:
        paid = await rewarder.on_reward(pid, 101, ALICE, caller=LEDGER)
        assert paid == 50

    @pytest.mark.asyncio
    async def test_zero_multiplier_never_transfers(
        self, token: PaperRewardToken, ledger: PaperPositionLedger, clock: ManualClock, pid: int
    ) -> None:
        r = _make_rewarder(token, ledger, clock, reward_multiplier_bps=0)
        token.transfer = AsyncMock()  # type: ignore[method-assign]

        paid = await r.on_reward(pid, 1_000_000, ALICE, caller=LEDGER)

        assert paid == 0
        token.transfer.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_zero_pending_still_transfers(
        self, token: PaperRewardToken, ledger: PaperPositionLedger, clock: ManualClock, pid: int
    ) -> None:
        r = _make_rewarder(token, ledger, clock, reward_multiplier_bps=1)
        paid = await r.on_reward(pid, 1, ALICE, caller=LEDGER)
        assert paid == 0
        assert len(token.transfers) == 1
        assert token.transfers[0].amount == 0

    @pytest.mark.asyncio
    async def test_unauthorized_caller_rejected(self, rewarder: BonusRewarder, token: PaperRewardToken, pid: int) -> None:
        with pytest.raises(UnauthorizedError) as exc_info:
            await rewarder.on_reward(pid, 100, ALICE, caller=ALICE)
        assert exc_info.value.caller == ALICE
        assert token.transfers == []

    @pytest.mark.asyncio
    async def test_does_not_touch_deposit_state(self, rewarder: BonusRewarder, store: InMemoryDepositTimeStore, pid: int) -> None:
        store.set(pid, 500)
        await rewarder.on_reward(pid, 100, ALICE, caller=LEDGER)
        assert store.get(pid) == 500

    @pytest.mark.asyncio
    async def test_overflow_is_a_hard_failure(self, rewarder: BonusRewarder, token: PaperRewardToken, pid: int) -> None:
        with pytest.raises(ArithmeticOverflowError):
            await rewarder.on_reward(pid, UINT256_MAX, ALICE, caller=LEDGER)
        assert token.transfers == []

    @pytest.mark.asyncio
    async def test_negative_base_reward_rejected(self, rewarder: BonusRewarder, pid: int) -> None:
        with pytest.raises(ArithmeticOverflowError):
            await rewarder.on_reward(pid, -1, ALICE, caller=LEDGER)


# ── Tests: on_deposit ────────────────────────────────────────────────


class TestOnDeposit:
    @pytest.mark.asyncio
    async def test_first_deposit_records_time_without_bonus(
        self, rewarder: BonusRewarder, token: PaperRewardToken, pid: int
    ) -> None:
        paid = await rewarder.on_deposit(pid, MINIMUM, ALICE, caller=LEDGER)
        assert paid is False
        assert rewarder.last_deposit_time(pid) == START
        assert token.transfers == []

    @pytest.mark.asyncio
    async def test_second_deposit_after_cadence_pays_bonus(
        self, rewarder: BonusRewarder, token: PaperRewardToken, clock: ManualClock, pid: int
    ) -> None:
        await rewarder.on_deposit(pid, MINIMUM, ALICE, caller=LEDGER)
        clock.set(START + DAY)

        paid = await rewarder.on_deposit(pid, 2_000, ALICE, caller=LEDGER)

        assert paid is True
        assert token.balance_of(ALICE) == BONUS
        assert rewarder.last_deposit_time(pid) == START + DAY

    @pytest.mark.asyncio
    async def test_second_deposit_one_second_early_pays_nothing(
        self, rewarder: BonusRewarder, token: PaperRewardToken, clock: ManualClock, pid: int
    ) -> None:
        await rewarder.on_deposit(pid, MINIMUM, ALICE, caller=LEDGER)
        clock.set(START + DAY - 1)

        paid = await rewarder.on_deposit(pid, 2_000, ALICE, caller=LEDGER)

        assert paid is False
        assert token.balance_of(ALICE) == 0
        # window re-anchored even though nothing was paid
        assert rewarder.last_deposit_time(pid) == START + DAY - 1

    @pytest.mark.asyncio
    async def test_qualifying_deposit_always_overwrites(
        self, rewarder: BonusRewarder, store: InMemoryDepositTimeStore, clock: ManualClock, pid: int
    ) -> None:
        for offset in (0, 10, 5 * DAY, 5 * DAY + 3):
            clock.set(START + offset)
            await rewarder.on_deposit(pid, MINIMUM, ALICE, caller=LEDGER)
            assert store.get(pid) == START + offset

    @pytest.mark.asyncio
    async def test_below_minimum_is_a_no_op(
        self, rewarder: BonusRewarder, token: PaperRewardToken, store: InMemoryDepositTimeStore, clock: ManualClock, pid: int
    ) -> None:
        await rewarder.on_deposit(pid, MINIMUM, ALICE, caller=LEDGER)
        clock.advance(2 * DAY)

        paid = await rewarder.on_deposit(pid, MINIMUM - 1, ALICE, caller=LEDGER)

        assert paid is False
        assert store.get(pid) == START
        assert token.transfers == []

    @pytest.mark.asyncio
    async def test_below_minimum_never_opens_a_window(self, rewarder: BonusRewarder, pid: int) -> None:
        await rewarder.on_deposit(pid, 0, ALICE, caller=LEDGER)
        assert rewarder.last_deposit_time(pid) == 0

    @pytest.mark.asyncio
    async def test_unauthorized_leaves_state_unchanged(
        self, rewarder: BonusRewarder, store: InMemoryDepositTimeStore, clock: ManualClock, pid: int
    ) -> None:
        store.set(pid, 500)
        clock.advance(DAY)
        with pytest.raises(UnauthorizedError):
            await rewarder.on_deposit(pid, MINIMUM, ALICE, caller=BOB)
        assert store.get(pid) == 500

    @pytest.mark.asyncio
    async def test_bonus_goes_to_recipient(
        self, rewarder: BonusRewarder, token: PaperRewardToken, clock: ManualClock, pid: int
    ) -> None:
        await rewarder.on_deposit(pid, MINIMUM, ALICE, caller=LEDGER)
        clock.advance(DAY)
        await rewarder.on_deposit(pid, MINIMUM, BOB, caller=LEDGER)
        assert token.balance_of(BOB) == BONUS
        assert token.balance_of(ALICE) == 0


# ── Tests: on_withdraw ───────────────────────────────────────────────


class TestOnWithdraw:
    @pytest.mark.asyncio
    async def test_clears_window_and_pays_when_due(
        self, rewarder: BonusRewarder, token: PaperRewardToken, clock: ManualClock, pid: int
    ) -> None:
        await rewarder.on_deposit(pid, MINIMUM, ALICE, caller=LEDGER)
        clock.advance(DAY)

        paid = await rewarder.on_withdraw(pid, 10, ALICE, caller=LEDGER)

        assert paid is True
        assert token.balance_of(ALICE) == BONUS
        assert rewarder.last_deposit_time(pid) == 0

    @pytest.mark.asyncio
    async def test_clears_window_even_when_not_due(
        self, rewarder: BonusRewarder, token: PaperRewardToken, clock: ManualClock, pid: int
    ) -> None:
        await rewarder.on_deposit(pid, MINIMUM, ALICE, caller=LEDGER)
        clock.advance(DAY - 1)

        paid = await rewarder.on_withdraw(pid, MINIMUM, ALICE, caller=LEDGER)

        assert paid is False
        assert token.transfers == []
        assert rewarder.last_deposit_time(pid) == 0

    @pytest.mark.asyncio
    async def test_zero_amount_still_closes_window(self, rewarder: BonusRewarder, clock: ManualClock, pid: int) -> None:
        await rewarder.on_deposit(pid, MINIMUM, ALICE, caller=LEDGER)
        clock.advance(DAY)
        assert await rewarder.on_withdraw(pid, 0, ALICE, caller=LEDGER) is True

    @pytest.mark.asyncio
    async def test_repeat_withdraw_silently_pays_nothing(
        self, rewarder: BonusRewarder, token: PaperRewardToken, clock: ManualClock, pid: int
    ) -> None:
        await rewarder.on_deposit(pid, MINIMUM, ALICE, caller=LEDGER)
        clock.advance(DAY)
        await rewarder.on_withdraw(pid, 1, ALICE, caller=LEDGER)

        assert await rewarder.on_withdraw(pid, 1, ALICE, caller=LEDGER) is False
        assert len(token.transfers) == 1

    @pytest.mark.asyncio
    async def test_never_deposited_pays_nothing(self, rewarder: BonusRewarder, clock: ManualClock, pid: int) -> None:
        clock.advance(365 * DAY)
        assert await rewarder.on_withdraw(pid, 1, ALICE, caller=LEDGER) is False

    @pytest.mark.asyncio
    async def test_unauthorized_rejected(self, rewarder: BonusRewarder, store: InMemoryDepositTimeStore, pid: int) -> None:
        store.set(pid, 500)
        with pytest.raises(UnauthorizedError):
            await rewarder.on_withdraw(pid, 1, ALICE, caller=ALICE)
        assert store.get(pid) == 500


# ── Tests: claim_deposit_bonus ───────────────────────────────────────


class TestClaimDepositBonus:
    @pytest.mark.asyncio
    async def test_owner_claims_after_cadence(
        self, rewarder: BonusRewarder, token: PaperRewardToken, clock: ManualClock, pid: int
    ) -> None:
        await rewarder.on_deposit(pid, MINIMUM, ALICE, caller=LEDGER)
        clock.advance(DAY)

        paid = await rewarder.claim_deposit_bonus(pid, ALICE, caller=ALICE)

        assert paid == BONUS
        assert token.balance_of(ALICE) == BONUS
        assert rewarder.last_deposit_time(pid) == 0

    @pytest.mark.asyncio
    async def test_second_claim_finds_nothing(self, rewarder: BonusRewarder, clock: ManualClock, pid: int) -> None:
        await rewarder.on_deposit(pid, MINIMUM, ALICE, caller=LEDGER)
        clock.advance(DAY)
        await rewarder.claim_deposit_bonus(pid, ALICE, caller=ALICE)

        with pytest.raises(NothingToClaimError) as exc_info:
            await rewarder.claim_deposit_bonus(pid, ALICE, caller=ALICE)
        assert exc_info.value.position_id == pid

    @pytest.mark.asyncio
    async def test_early_claim_fails_and_keeps_window(
        self, rewarder: BonusRewarder, token: PaperRewardToken, clock: ManualClock, pid: int
    ) -> None:
        await rewarder.on_deposit(pid, MINIMUM, ALICE, caller=LEDGER)
        clock.advance(DAY - 1)

        with pytest.raises(NothingToClaimError):
            await rewarder.claim_deposit_bonus(pid, ALICE, caller=ALICE)

        assert rewarder.last_deposit_time(pid) == START
        assert token.transfers == []

        clock.advance(1)
        assert await rewarder.claim_deposit_bonus(pid, ALICE, caller=ALICE) == BONUS

    @pytest.mark.asyncio
    async def test_claim_without_window_fails(self, rewarder: BonusRewarder, pid: int) -> None:
        with pytest.raises(NothingToClaimError):
            await rewarder.claim_deposit_bonus(pid, ALICE, caller=ALICE)

    @pytest.mark.asyncio
    async def test_non_owner_rejected_before_rule(
        self, token: PaperRewardToken, clock: ManualClock, pid: int
    ) -> None:
        store = InMemoryDepositTimeStore({pid: START})
        store.get = MagicMock(return_value=START)  # type: ignore[method-assign]
        ledger = AsyncMock()
        ledger.is_approved_or_owner.return_value = False
        r = BonusRewarder(config=_config(), reward_token=token, ledger=ledger, store=store, clock=clock)
        clock.advance(DAY)

        with pytest.raises(UnauthorizedError):
            await r.claim_deposit_bonus(pid, BOB, caller=BOB)

        ledger.is_approved_or_owner.assert_awaited_once_with(BOB, pid)
        store.get.assert_not_called()
        assert token.transfers == []

    @pytest.mark.asyncio
    async def test_approved_delegate_can_claim(
        self, rewarder: BonusRewarder, ledger: PaperPositionLedger, token: PaperRewardToken, clock: ManualClock, pid: int
    ) -> None:
        ledger.approve(ALICE, BOB, pid)
        await rewarder.on_deposit(pid, MINIMUM, ALICE, caller=LEDGER)
        clock.advance(DAY)

        await rewarder.claim_deposit_bonus(pid, BOB, caller=BOB)

        assert token.balance_of(BOB) == BONUS

    @pytest.mark.asyncio
    async def test_operator_can_claim(
        self, rewarder: BonusRewarder, ledger: PaperPositionLedger, clock: ManualClock, pid: int
    ) -> None:
        ledger.set_approval_for_all(ALICE, BOB, True)
        await rewarder.on_deposit(pid, MINIMUM, ALICE, caller=LEDGER)
        clock.advance(DAY)
        assert await rewarder.claim_deposit_bonus(pid, ALICE, caller=BOB) == BONUS

    @pytest.mark.asyncio
    async def test_ledger_itself_is_not_implicitly_allowed(self, rewarder: BonusRewarder, pid: int) -> None:
        with pytest.raises(UnauthorizedError):
            await rewarder.claim_deposit_bonus(pid, ALICE, caller=LEDGER)


# ── Tests: pending_rewards ───────────────────────────────────────────


class TestPendingRewards:
    def test_proportional_only(self, rewarder: BonusRewarder, pid: int) -> None:
        preview = rewarder.pending_rewards(pid, 100)
        assert preview.reward_tokens == [TOKEN]
        assert preview.amounts == [50]

    @pytest.mark.asyncio
    async def test_includes_bonus_once_due(self, rewarder: BonusRewarder, clock: ManualClock, pid: int) -> None:
        await rewarder.on_deposit(pid, MINIMUM, ALICE, caller=LEDGER)

        clock.advance(DAY - 1)
        assert rewarder.pending_rewards(pid, 100).total == 50

        clock.advance(1)
        assert rewarder.pending_rewards(pid, 100).total == 50 + BONUS

    @pytest.mark.asyncio
    async def test_idempotent_and_side_effect_free(
        self, rewarder: BonusRewarder, token: PaperRewardToken, event_bus: EventBus, clock: ManualClock, pid: int
    ) -> None:
        await rewarder.on_deposit(pid, MINIMUM, ALICE, caller=LEDGER)
        clock.advance(2 * DAY)
        published = event_bus.stats["published"]

        previews = [rewarder.pending_rewards(pid, 7) for _ in range(5)]

        assert all(p == previews[0] for p in previews)
        assert rewarder.last_deposit_time(pid) == START
        assert token.transfers == []
        assert event_bus.stats["published"] == published

    def test_zero_multiplier_previews_bonus_only(
        self, token: PaperRewardToken, ledger: PaperPositionLedger, clock: ManualClock
    ) -> None:
        store = InMemoryDepositTimeStore({9: START})
        r = BonusRewarder(
            config=_config(reward_multiplier_bps=0), reward_token=token, ledger=ledger, store=store, clock=clock
        )
        clock.advance(DAY)
        assert r.pending_rewards(9, 10_000).amounts == [BONUS]


# ── Tests: Atomicity and reentrancy ─────────────────────────────────


class TestAtomicity:
    @pytest.mark.asyncio
    async def test_failed_bonus_transfer_restores_deposit_time(
        self, token: PaperRewardToken, ledger: PaperPositionLedger, clock: ManualClock, pid: int
    ) -> None:
        poor = PaperRewardToken(address=TOKEN, initial_balance=BONUS - 1)
        store = InMemoryDepositTimeStore({pid: START})
        r = BonusRewarder(config=_config(), reward_token=poor, ledger=ledger, store=store, clock=clock)
        clock.advance(DAY)

        with pytest.raises(TransferFailedError):
            await r.on_deposit(pid, MINIMUM, ALICE, caller=LEDGER)

        assert store.get(pid) == START
        assert poor.rewarder_balance == BONUS - 1

    @pytest.mark.asyncio
    async def test_failed_withdraw_transfer_keeps_window_open(
        self, ledger: PaperPositionLedger, clock: ManualClock, pid: int
    ) -> None:
        poor = PaperRewardToken(address=TOKEN, initial_balance=0)
        store = InMemoryDepositTimeStore({pid: START})
        r = BonusRewarder(config=_config(), reward_token=poor, ledger=ledger, store=store, clock=clock)
        clock.advance(DAY)

        with pytest.raises(TransferFailedError):
            await r.on_withdraw(pid, 1, ALICE, caller=LEDGER)

        assert store.get(pid) == START

    @pytest.mark.asyncio
    async def test_clock_behind_deposit_time_is_a_hard_failure(
        self, rewarder: BonusRewarder, store: InMemoryDepositTimeStore, pid: int
    ) -> None:
        store.set(pid, START + 10)
        with pytest.raises(ArithmeticOverflowError):
            await rewarder.on_withdraw(pid, 1, ALICE, caller=LEDGER)
        assert store.get(pid) == START + 10

    @pytest.mark.asyncio
    async def test_reentrant_claim_during_payout_finds_nothing(
        self, rewarder: BonusRewarder, token: PaperRewardToken, clock: ManualClock, pid: int
    ) -> None:
        reentry_errors: list[Exception] = []

        async def reenter(recipient: str, amount: int) -> None:
            try:
                await rewarder.claim_deposit_bonus(pid, recipient, caller=ALICE)
            except NothingToClaimError as exc:
                reentry_errors.append(exc)

        await rewarder.on_deposit(pid, MINIMUM, ALICE, caller=LEDGER)
        clock.advance(DAY)
        token.on_transfer = reenter

        paid = await asyncio.wait_for(rewarder.on_withdraw(pid, 1, ALICE, caller=LEDGER), timeout=1.0)

        assert paid is True
        assert len(reentry_errors) == 1
        assert token.balance_of(ALICE) == BONUS
        assert rewarder.last_deposit_time(pid) == 0

    @pytest.mark.asyncio
    async def test_reentrant_failure_aborts_outer_call(
        self, rewarder: BonusRewarder, token: PaperRewardToken, clock: ManualClock, event_bus: EventBus, pid: int
    ) -> None:
        async def reenter(recipient: str, amount: int) -> None:
            await rewarder.claim_deposit_bonus(pid, recipient, caller=ALICE)

        await rewarder.on_deposit(pid, MINIMUM, ALICE, caller=LEDGER)
        published = event_bus.stats["published"]
        clock.advance(DAY)
        token.on_transfer = reenter

        with pytest.raises(NothingToClaimError):
            await rewarder.claim_deposit_bonus(pid, ALICE, caller=ALICE)

        assert rewarder.last_deposit_time(pid) == START
        assert event_bus.stats["published"] == published
        assert token.balance_of(ALICE) == 0

    @pytest.mark.asyncio
    async def test_concurrent_claims_pay_once(
        self, rewarder: BonusRewarder, token: PaperRewardToken, clock: ManualClock, pid: int
    ) -> None:
        await rewarder.on_deposit(pid, MINIMUM, ALICE, caller=LEDGER)
        clock.advance(DAY)

        results = await asyncio.gather(
            *(rewarder.claim_deposit_bonus(pid, ALICE, caller=ALICE) for _ in range(5)),
            return_exceptions=True,
        )

        assert results.count(BONUS) == 1
        assert sum(isinstance(r, NothingToClaimError) for r in results) == 4
        assert token.balance_of(ALICE) == BONUS

    @pytest.mark.asyncio
    async def test_task_spawned_during_payout_waits_for_lock(
        self,
        rewarder: BonusRewarder,
        ledger: PaperPositionLedger,
        token: PaperRewardToken,
        store: InMemoryDepositTimeStore,
        clock: ManualClock,
        pid: int,
    ) -> None:
        second = ledger.mint(BOB)
        store.set(second, START)
        clock.advance(DAY)
        go = asyncio.Event()
        children: list[asyncio.Task] = []

        async def late_deposit() -> None:
            await go.wait()
            await rewarder.on_deposit(second, MINIMUM, BOB, caller=LEDGER)

        async def spawn(recipient: str, amount: int) -> None:
            children.append(asyncio.create_task(late_deposit()))

        token.on_transfer = spawn
        await rewarder.on_reward(pid, 100, ALICE, caller=LEDGER)

        async def fail_after_yield(recipient: str, amount: int) -> None:
            token.on_transfer = None
            go.set()
            for _ in range(5):
                await asyncio.sleep(0)
            assert not children[0].done()
            raise RuntimeError("payout aborted")

        token.on_transfer = fail_after_yield
        with pytest.raises(RuntimeError):
            await rewarder.on_withdraw(second, 1, BOB, caller=LEDGER)

        await asyncio.wait_for(children[0], timeout=1.0)

        assert store.get(second) == clock.now()
        assert token.balance_of(BOB) == BONUS


# ── Tests: Events ────────────────────────────────────────────────────


class TestEvents:
    @pytest.mark.asyncio
    async def test_deposit_with_bonus_publishes_in_order(
        self, rewarder: BonusRewarder, event_bus: EventBus, clock: ManualClock, pid: int
    ) -> None:
        await rewarder.on_deposit(pid, MINIMUM, ALICE, caller=LEDGER)
        clock.advance(DAY)
        await rewarder.on_deposit(pid, MINIMUM, ALICE, caller=LEDGER)

        actions = [e.payload["action"] for e in event_bus.recent(EVENT_TOPIC)]
        assert actions == ["deposit_recorded", "deposit_recorded", "bonus_paid"]

        bonus = event_bus.recent(EVENT_TOPIC)[-1].payload
        assert bonus["kind"] == "DEPOSIT_BONUS"
        assert bonus["amount"] == BONUS
        assert bonus["position_id"] == pid

    @pytest.mark.asyncio
    async def test_withdraw_publishes_window_closed(
        self, rewarder: BonusRewarder, event_bus: EventBus, pid: int
    ) -> None:
        await rewarder.on_deposit(pid, MINIMUM, ALICE, caller=LEDGER)
        await rewarder.on_withdraw(pid, 1, ALICE, caller=LEDGER)

        last = event_bus.recent(EVENT_TOPIC)[-1].payload
        assert last == {"action": "window_closed", "position_id": pid, "deposited_at": START}

    @pytest.mark.asyncio
    async def test_failed_call_publishes_nothing(self, rewarder: BonusRewarder, event_bus: EventBus, pid: int) -> None:
        with pytest.raises(NothingToClaimError):
            await rewarder.claim_deposit_bonus(pid, ALICE, caller=ALICE)
        assert event_bus.recent(EVENT_TOPIC) == []

    @pytest.mark.asyncio
    async def test_reward_paid_event(self, rewarder: BonusRewarder, event_bus: EventBus, pid: int) -> None:
        await rewarder.on_reward(pid, 100, ALICE, caller=LEDGER)
        payload = event_bus.recent(EVENT_TOPIC)[-1].payload
        assert payload["action"] == "reward_paid"
        assert payload["kind"] == "PROPORTIONAL"
        assert payload["amount"] == 50
