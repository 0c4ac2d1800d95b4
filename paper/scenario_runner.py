"""Scenario runner — replay a YAML script of ledger events against paper collaborators.

Usage:
    python -m paper.scenario_runner --config paper/scenarios/loyalty-001.yaml
    python -m paper.scenario_runner --config my.yaml --json

Scenario layout::

    scenario_id: loyalty-001
    start_time: 1000
    initial_balance: 1000000
    config:
      reward_multiplier_bps: 5000
      deposit_bonus: 250
      minimum_deposit: 1000
      cadence_seconds: 86400
    positions:
      - owner: "0xalice"
    steps:
      - {action: deposit, position: 1, amount: 1000}
      - {advance: 86400, action: deposit, position: 1, amount: 2000}
      - {action: claim, position: 1, caller: "0xalice", expect_error: NothingToClaimError}

Each step may set the clock with ``at`` (absolute) or ``advance``
(relative) before its action runs.  Failing steps are recorded, not
raised, so a scenario can assert on expected errors.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

import structlog
import yaml

from core.event_bus import EventBus
from core.logger import setup_logging
from paper.paper_ledger import PaperPositionLedger
from paper.paper_token import PaperRewardToken
from rewarder.bonus_rewarder import EVENT_TOPIC, BonusRewarder
from rewarder.config import BonusRewarderConfig
from rewarder.deposit_store import InMemoryDepositTimeStore
from rewarder.errors import RewarderError
from rewarder.interfaces import ManualClock

logger = structlog.get_logger("paper.scenario_runner")

DEFAULT_TOKEN_ADDRESS = "0xPaperRewardToken"
DEFAULT_LEDGER_ADDRESS = "0xPaperLedger"

ACTIONS = ("deposit", "withdraw", "harvest", "claim", "preview", "advance")


# ── Scenario Config ─────────────────────────────────────────────────


@dataclass
class ScenarioConfig:
    """Parsed scenario from a YAML file."""

    scenario_id: str = "scenario"
    start_time: int = 1
    initial_balance: int = 0
    rewarder: dict[str, Any] = field(default_factory=dict)
    owners: list[str] = field(default_factory=list)
    steps: list[dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ScenarioConfig":
        steps = list(data.get("steps") or [])
        for i, step in enumerate(steps):
            action = step.get("action", "advance")
            if action not in ACTIONS:
                raise ValueError(f"step {i}: unknown action {action!r}")
        return cls(
            scenario_id=str(data.get("scenario_id", "scenario")),
            start_time=int(data.get("start_time", 1)),
            initial_balance=int(data.get("initial_balance", 0)),
            rewarder=dict(data.get("config") or {}),
            owners=[str(p["owner"]) for p in data.get("positions") or []],
            steps=steps,
        )

    @classmethod
    def from_yaml(cls, path: Path) -> "ScenarioConfig":
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        return cls.from_dict(data)


# ── Results ─────────────────────────────────────────────────────────


@dataclass
class StepResult:
    index: int
    action: str
    timestamp: int
    position: int | None
    ok: bool
    result: Any = None
    error: str | None = None
    expected_error: str | None = None

    @property
    def as_expected(self) -> bool:
        if self.expected_error is None:
            return self.ok
        return self.error == self.expected_error


@dataclass
class ScenarioReport:
    scenario_id: str
    steps: list[StepResult]
    balances: dict[str, int]
    rewarder_balance: int
    open_windows: dict[int, int]
    events: list[dict[str, Any]]

    @property
    def passed(self) -> bool:
        return all(s.as_expected for s in self.steps)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["passed"] = self.passed
        return data


# ── Runner ──────────────────────────────────────────────────────────


class ScenarioRunner:
    """Wires paper collaborators around a ``BonusRewarder`` and replays steps."""

    def __init__(self, scenario: ScenarioConfig) -> None:
        self._scenario = scenario
        self.clock = ManualClock(start=scenario.start_time)
        self.token = PaperRewardToken(
            address=DEFAULT_TOKEN_ADDRESS,
            initial_balance=scenario.initial_balance,
        )
        self.ledger = PaperPositionLedger(address=DEFAULT_LEDGER_ADDRESS)
        self.event_bus = EventBus()

        params = {
            "reward_token": DEFAULT_TOKEN_ADDRESS,
            "authorized_caller": DEFAULT_LEDGER_ADDRESS,
            **scenario.rewarder,
        }
        self.rewarder = BonusRewarder(
            config=BonusRewarderConfig(**params),
            reward_token=self.token,
            ledger=self.ledger,
            store=InMemoryDepositTimeStore(),
            clock=self.clock,
            event_bus=self.event_bus,
        )
        self.ledger.attach(self.rewarder)

        for owner in scenario.owners:
            self.ledger.mint(owner)

    async def run(self) -> ScenarioReport:
        results = [await self._run_step(i, step) for i, step in enumerate(self._scenario.steps)]

        owners = set(self._scenario.owners)
        recipients = {t.recipient for t in self.token.transfers}
        report = ScenarioReport(
            scenario_id=self._scenario.scenario_id,
            steps=results,
            balances={h: self.token.balance_of(h) for h in sorted(owners | recipients)},
            rewarder_balance=self.token.rewarder_balance,
            open_windows=self.rewarder.open_windows(),
            events=[e.payload for e in self.event_bus.recent(EVENT_TOPIC)],
        )
        logger.info(
            "scenario_runner.finished",
            scenario_id=report.scenario_id,
            steps=len(results),
            passed=report.passed,
        )
        return report

    async def _run_step(self, index: int, step: dict[str, Any]) -> StepResult:
        action = step.get("action", "advance")
        position = step.get("position")
        result = StepResult(
            index=index,
            action=action,
            timestamp=self.clock.now(),
            position=position,
            ok=True,
            expected_error=step.get("expect_error"),
        )

        try:
            if "at" in step:
                self.clock.set(int(step["at"]))
            if "advance" in step:
                self.clock.advance(int(step["advance"]))
            result.timestamp = self.clock.now()
            result.result = await self._dispatch(action, step)
        except (RewarderError, ValueError, KeyError, PermissionError) as exc:
            result.ok = False
            result.error = type(exc).__name__
            logger.info(
                "scenario_runner.step_failed",
                index=index,
                action=action,
                error=result.error,
                detail=str(exc),
            )
        return result

    async def _dispatch(self, action: str, step: dict[str, Any]) -> Any:
        position = step.get("position")
        recipient = step.get("recipient")

        if action == "deposit":
            return await self.ledger.deposit(position, int(step["amount"]), recipient)
        if action == "withdraw":
            return await self.ledger.withdraw(position, int(step["amount"]), recipient)
        if action == "harvest":
            return await self.ledger.harvest(position, int(step["base_reward"]), recipient)
        if action == "claim":
            caller = step.get("caller") or self.ledger.owner_of(position)
            return await self.rewarder.claim_deposit_bonus(
                position, recipient or caller, caller=caller
            )
        if action == "preview":
            preview = self.rewarder.pending_rewards(position, int(step.get("base_reward", 0)))
            return preview.total
        return None


async def run_scenario(path: Path) -> ScenarioReport:
    return await ScenarioRunner(ScenarioConfig.from_yaml(path)).run()


def _print_report(report: ScenarioReport) -> None:
    print(f"\n{'='*60}")
    print(f"  Scenario: {report.scenario_id}")
    print(f"{'='*60}")
    for s in report.steps:
        mark = "ok " if s.as_expected else "FAIL"
        detail = s.error if s.error else s.result
        print(f"  [{mark}] #{s.index:<3} t={s.timestamp:<10} {s.action:<9} pos={s.position}  -> {detail}")
    print(f"\n  Rewarder balance: {report.rewarder_balance}")
    for holder, bal in report.balances.items():
        print(f"  {holder}: {bal}")
    print(f"  Open windows: {report.open_windows}")
    print(f"{'='*60}\n")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Replay a bonus rewarder scenario")
    parser.add_argument("--config", type=Path, required=True,
                        help="Path to scenario YAML (e.g. paper/scenarios/loyalty-001.yaml)")
    parser.add_argument("--json", action="store_true", help="Print the report as JSON")
    args = parser.parse_args(argv)
    setup_logging()

    report = asyncio.run(run_scenario(args.config))
    if args.json:
        print(json.dumps(report.to_dict(), indent=2, default=str))
    else:
        _print_report(report)
    return 0 if report.passed else 1


if __name__ == "__main__":
    sys.exit(main())
