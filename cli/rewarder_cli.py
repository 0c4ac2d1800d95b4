"""Rewarder CLI — operator access to bonus windows and pending rewards.

Reads configuration from the environment (see ``config.settings``) and
the persistent deposit-time store.

Usage:
    python -m cli.rewarder_cli config
    python -m cli.rewarder_cli windows
    python -m cli.rewarder_cli preview --position 7 --base 1200
    python -m cli.rewarder_cli claim --position 7 --caller 0xabc...
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from dataclasses import asdict
from typing import Any

from eth_account import Account
from web3 import AsyncWeb3
from web3.providers import AsyncHTTPProvider

from config.settings import Settings, settings
from core.logger import get_logger
from rewarder.bonus_rewarder import BonusRewarder
from rewarder.config import BonusRewarderConfig
from rewarder.deposit_store import SQLiteDepositTimeStore
from rewarder.errors import RewarderError
from web3_infra.erc20_token import Web3RewardToken, Web3TokenConfig
from web3_infra.position_ledger import Web3PositionLedger

logger = get_logger("cli.rewarder_cli")

READ_ONLY_SENDER = "0x" + "0" * 40


def _checksum(address: str) -> str:
    if address and AsyncWeb3.is_address(address):
        return AsyncWeb3.to_checksum_address(address)
    return address


def _sender_address(cfg: Settings) -> str:
    """Signing account; the zero address leaves the CLI read-only."""
    if cfg.SENDER_ADDRESS:
        return cfg.SENDER_ADDRESS
    if cfg.PRIVATE_KEY:
        return Account.from_key(cfg.PRIVATE_KEY).address
    return READ_ONLY_SENDER


def build_rewarder(cfg: Settings = settings) -> tuple[BonusRewarder, SQLiteDepositTimeStore]:
    """Wire a rewarder with web3 collaborators and the SQLite store."""
    config = BonusRewarderConfig(
        reward_multiplier_bps=cfg.REWARD_MULTIPLIER_BPS,
        deposit_bonus=cfg.DEPOSIT_BONUS,
        minimum_deposit=cfg.MINIMUM_DEPOSIT,
        cadence_seconds=cfg.DEPOSIT_CADENCE_SECONDS,
        reward_token=_checksum(cfg.REWARD_TOKEN_ADDRESS),
        authorized_caller=_checksum(cfg.AUTHORIZED_CALLER_ADDRESS or cfg.LEDGER_ADDRESS),
    )

    w3 = AsyncWeb3(AsyncHTTPProvider(cfg.RPC_URL))
    token = Web3RewardToken(
        w3=w3,
        token_address=config.reward_token,
        sender_address=_sender_address(cfg),
        private_key=cfg.PRIVATE_KEY,
        config=Web3TokenConfig.from_settings(cfg),
    )
    ledger = Web3PositionLedger(w3=w3, ledger_address=cfg.LEDGER_ADDRESS)
    store = SQLiteDepositTimeStore(cfg.DEPOSIT_STORE_DSN)

    return BonusRewarder(config=config, reward_token=token, ledger=ledger, store=store), store


def cmd_config(rewarder: BonusRewarder, args: argparse.Namespace) -> int:
    print(f"\n{'='*60}")
    print("  Bonus Rewarder Configuration")
    print(f"{'='*60}")
    for key, value in asdict(rewarder.config).items():
        print(f"  {key:<24} {value}")
    print(f"{'='*60}\n")
    return 0


def cmd_windows(rewarder: BonusRewarder, args: argparse.Namespace) -> int:
    windows = rewarder.open_windows()
    cadence = rewarder.config.cadence_seconds
    now = int(args.now) if args.now is not None else None

    print(f"\n  Open bonus windows: {len(windows)}")
    for position_id, deposited_at in sorted(windows.items()):
        line = f"    position {position_id:<8} deposited_at={deposited_at}"
        if now is not None:
            elapsed = now - deposited_at
            status = "CLAIMABLE" if elapsed >= cadence else f"{cadence - elapsed}s left"
            line += f"  {status}"
        print(line)
    print()
    return 0


def cmd_preview(rewarder: BonusRewarder, args: argparse.Namespace) -> int:
    preview = rewarder.pending_rewards(args.position, args.base)
    for token, amount in zip(preview.reward_tokens, preview.amounts):
        print(f"  position {args.position}: {amount} of {token}")
    return 0


async def _claim(rewarder: BonusRewarder, args: argparse.Namespace) -> int:
    """Claim to the caller's own address.

    ``--caller`` is whatever the operator types, so the CLI never pays a
    bonus anywhere but back to that address.
    """
    caller = _checksum(args.caller)
    recipient = _checksum(args.recipient) if args.recipient else caller
    if recipient != caller:
        logger.warning("rewarder_cli.claim_recipient_mismatch", caller=caller, recipient=recipient)
        print(f"ERROR: recipient {recipient} must equal caller {caller}")
        return 1
    try:
        paid = await rewarder.claim_deposit_bonus(args.position, recipient, caller=caller)
    except RewarderError as exc:
        logger.error("rewarder_cli.claim_failed", position_id=args.position, error=str(exc))
        print(f"ERROR: {exc}")
        return 1
    print(f"  Claimed {paid} for position {args.position} -> {recipient}")
    return 0


def cmd_claim(rewarder: BonusRewarder, args: argparse.Namespace) -> int:
    return asyncio.run(_claim(rewarder, args))


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Bonus rewarder operator CLI")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("config", help="Show the validated configuration")

    p_windows = sub.add_parser("windows", help="List open bonus windows")
    p_windows.add_argument("--now", type=int, default=None,
                           help="Evaluate eligibility at this unix timestamp")

    p_preview = sub.add_parser("preview", help="Preview pending rewards for a position")
    p_preview.add_argument("--position", type=int, required=True)
    p_preview.add_argument("--base", type=int, default=0, help="Base reward amount (raw units)")

    p_claim = sub.add_parser("claim", help="Claim an accrued deposit bonus")
    p_claim.add_argument("--position", type=int, required=True)
    p_claim.add_argument("--caller", required=True, help="Owner or approved address")
    p_claim.add_argument("--recipient", default=None, help="Defaults to, and must equal, --caller")

    return parser


COMMANDS: dict[str, Any] = {
    "config": cmd_config,
    "windows": cmd_windows,
    "preview": cmd_preview,
    "claim": cmd_claim,
}


def main(argv: list[str] | None = None) -> int:
    args = _parser().parse_args(argv)
    try:
        rewarder, store = build_rewarder()
    except (RewarderError, ValueError) as exc:
        print(f"ERROR: {exc}")
        return 2

    try:
        return COMMANDS[args.command](rewarder, args)
    finally:
        store.close()


if __name__ == "__main__":
    sys.exit(main())
