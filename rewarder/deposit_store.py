"""Deposit-time stores — the per-position ``last_deposit_time`` mapping.

A value of ``0`` (or no entry at all) is the sentinel for "no open bonus
window".  Stores never interpret timestamps; the rewarder owns the rules.

Usage::

    store = SQLiteDepositTimeStore("sqlite:///data/deposit_times.db")
    store.set(7, 1_700_000_000)
    store.get(7)   # 1700000000
    store.clear(7)
    store.get(7)   # 0
"""

from __future__ import annotations

import sqlite3
from abc import ABC, abstractmethod
from pathlib import Path

import structlog

logger = structlog.get_logger("rewarder.deposit_store")

__all__ = ["DepositTimeStore", "InMemoryDepositTimeStore", "SQLiteDepositTimeStore"]

SENTINEL = 0


class DepositTimeStore(ABC):
    """Mapping of position id to the timestamp of its last qualifying deposit."""

    @abstractmethod
    def get(self, position_id: int) -> int:
        """Return the stored timestamp, or ``0`` when none is recorded."""

    @abstractmethod
    def set(self, position_id: int, timestamp: int) -> None:
        """Anchor a bonus window for *position_id* at *timestamp*."""

    @abstractmethod
    def clear(self, position_id: int) -> None:
        """Reset *position_id* to the sentinel."""

    @abstractmethod
    def open_windows(self) -> dict[int, int]:
        """Return every position with a non-zero timestamp."""


class InMemoryDepositTimeStore(DepositTimeStore):
    """Dict-backed store; state lives as long as the process."""

    def __init__(self, initial: dict[int, int] | None = None) -> None:
        self._times: dict[int, int] = {}
        for position_id, timestamp in (initial or {}).items():
            self.set(position_id, timestamp)

    def get(self, position_id: int) -> int:
        return self._times.get(position_id, SENTINEL)

    def set(self, position_id: int, timestamp: int) -> None:
        if timestamp == SENTINEL:
            self._times.pop(position_id, None)
        else:
            self._times[position_id] = timestamp

    def clear(self, position_id: int) -> None:
        self._times.pop(position_id, None)

    def open_windows(self) -> dict[int, int]:
        return dict(self._times)


class SQLiteDepositTimeStore(DepositTimeStore):
    """Persistent store on SQLite.

    Parameters
    ----------
    dsn:
        ``sqlite:///path/to/file.db``.  ``sqlite:///:memory:`` keeps the
        table in memory.

    Ids and timestamps are stored as TEXT so the full uint256 range
    survives the round trip.
    """

    def __init__(self, dsn: str = "sqlite:///data/deposit_times.db") -> None:
        if not dsn.startswith("sqlite:///"):
            raise ValueError(f"Unsupported DSN for SQLiteDepositTimeStore: {dsn}")

        self._dsn = dsn
        db_path = dsn.replace("sqlite:///", "")
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

        self._conn: sqlite3.Connection | None = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA synchronous=NORMAL")
        self._conn.execute(
            "CREATE TABLE IF NOT EXISTS deposit_times ("
            "position_id TEXT PRIMARY KEY, "
            "last_deposit_time TEXT NOT NULL)"
        )
        self._conn.commit()

        logger.info("deposit_store.opened", dsn=dsn)

    @property
    def _db(self) -> sqlite3.Connection:
        if self._conn is None:
            raise RuntimeError("SQLiteDepositTimeStore is closed")
        return self._conn

    def get(self, position_id: int) -> int:
        row = self._db.execute(
            "SELECT last_deposit_time FROM deposit_times WHERE position_id = ?",
            (str(position_id),),
        ).fetchone()
        return int(row[0]) if row else SENTINEL

    def set(self, position_id: int, timestamp: int) -> None:
        if timestamp == SENTINEL:
            self.clear(position_id)
            return
        with self._db:
            self._db.execute(
                "INSERT INTO deposit_times (position_id, last_deposit_time) VALUES (?, ?) "
                "ON CONFLICT(position_id) DO UPDATE SET last_deposit_time = excluded.last_deposit_time",
                (str(position_id), str(timestamp)),
            )

    def clear(self, position_id: int) -> None:
        with self._db:
            self._db.execute(
                "DELETE FROM deposit_times WHERE position_id = ?",
                (str(position_id),),
            )

    def open_windows(self) -> dict[int, int]:
        rows = self._db.execute(
            "SELECT position_id, last_deposit_time FROM deposit_times"
        ).fetchall()
        return {int(pid): int(ts) for pid, ts in rows}

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            logger.info("deposit_store.closed", dsn=self._dsn)
