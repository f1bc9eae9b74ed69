"""State storage for the registry and decision engine.

Persisted surface: component owners, the sanctions commitment, the threshold
policy, the decision counter and the full decision ledger. Two backends:

- memory://            in-process, for tests and embedding
- sqlite:///path.db    durable, survives restarts

Recording a decision inserts the record and bumps the counter in one
transaction; a second insert for the same transfer id is rejected by the
primary key and leaves both untouched.

Components hold no copies of stored state. Each administrative or recording
operation reads and writes inside `transaction()`, so several processes on
one SQLite file observe a single order of changes.
"""
from __future__ import annotations

import json
import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from .exceptions import ConfigurationError, DuplicateRecord
from .hashing import to_hex
from .models import Commitment, DecisionRecord, DecisionTier, ThresholdPolicy

logger = logging.getLogger(__name__)

_COMMITMENT_KEY = "commitment"
_POLICY_KEY = "policy"
_OWNER_KEY_PREFIX = "owner:"


class StateStore(ABC):
    """Storage interface shared by SanctionsRegistry and ComplianceDecisionEngine."""

    @abstractmethod
    def _get_meta(self, key: str) -> Optional[str]:
        """Read a metadata value."""

    @abstractmethod
    def _set_meta(self, key: str, value: str) -> None:
        """Write a metadata value."""

    @abstractmethod
    def transaction(self) -> Iterator[None]:
        """
        Context manager holding the write lock for a read-check-write sequence.

        Reads made inside see the latest committed state; writes commit
        together on exit or not at all. Nested use joins the outer block.
        """

    @abstractmethod
    def get_record(self, transfer_id: bytes) -> Optional[DecisionRecord]:
        """Look up a decision by transfer id."""

    @abstractmethod
    def append_record(self, record: DecisionRecord) -> int:
        """
        Insert a decision and increment the counter atomically.

        Returns:
            The decision count after the insert

        Raises:
            DuplicateRecord: If a decision already exists for the transfer id
        """

    @abstractmethod
    def total_decisions(self) -> int:
        """Number of decisions ever recorded."""

    @abstractmethod
    def list_records(
        self,
        sender: Optional[str] = None,
        recipient: Optional[str] = None,
        tier: Optional[DecisionTier] = None,
        limit: int = 50,
    ) -> List[DecisionRecord]:
        """Recent decisions, newest first."""

    def close(self) -> None:
        """Release backend resources."""

    def load_owner(self, scope: str) -> Optional[str]:
        return self._get_meta(_OWNER_KEY_PREFIX + scope)

    def save_owner(self, scope: str, owner: str) -> None:
        self._set_meta(_OWNER_KEY_PREFIX + scope, owner)

    def load_commitment(self) -> Optional[Commitment]:
        raw = self._get_meta(_COMMITMENT_KEY)
        return Commitment.from_dict(json.loads(raw)) if raw else None

    def save_commitment(self, commitment: Commitment) -> None:
        self._set_meta(_COMMITMENT_KEY, json.dumps(commitment.to_dict(), sort_keys=True))

    def load_policy(self) -> Optional[ThresholdPolicy]:
        raw = self._get_meta(_POLICY_KEY)
        if not raw:
            return None
        data = json.loads(raw)
        return ThresholdPolicy(data["flag_threshold"], data["block_threshold"])

    def save_policy(self, policy: ThresholdPolicy) -> None:
        self._set_meta(_POLICY_KEY, json.dumps(policy.to_dict(), sort_keys=True))


class InMemoryStateStore(StateStore):
    """In-process store. State is lost when the process exits."""

    def __init__(self) -> None:
        self._meta: Dict[str, str] = {}
        self._records: Dict[bytes, DecisionRecord] = {}
        self._order: List[bytes] = []
        self._counter = 0
        self._lock = threading.RLock()
        self._depth = 0

    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self._lock:
            # append_record checks before it mutates, so only meta needs restoring
            if self._depth == 0:
                saved_meta = dict(self._meta)
            self._depth += 1
            try:
                yield
            except BaseException:
                if self._depth == 1:
                    self._meta = saved_meta
                raise
            finally:
                self._depth -= 1

    def _get_meta(self, key: str) -> Optional[str]:
        return self._meta.get(key)

    def _set_meta(self, key: str, value: str) -> None:
        with self._lock:
            self._meta[key] = value

    def get_record(self, transfer_id: bytes) -> Optional[DecisionRecord]:
        return self._records.get(transfer_id)

    def append_record(self, record: DecisionRecord) -> int:
        with self._lock:
            if record.transfer_id in self._records:
                raise DuplicateRecord(to_hex(record.transfer_id))
            self._records[record.transfer_id] = record
            self._order.append(record.transfer_id)
            self._counter += 1
            return self._counter

    def total_decisions(self) -> int:
        return self._counter

    def list_records(
        self,
        sender: Optional[str] = None,
        recipient: Optional[str] = None,
        tier: Optional[DecisionTier] = None,
        limit: int = 50,
    ) -> List[DecisionRecord]:
        results: List[DecisionRecord] = []
        for transfer_id in reversed(self._order):
            record = self._records[transfer_id]
            if sender is not None and record.sender != sender:
                continue
            if recipient is not None and record.recipient != recipient:
                continue
            if tier is not None and record.decision != tier:
                continue
            results.append(record)
            if len(results) >= limit:
                break
        return results


class SQLiteStateStore(StateStore):
    """Durable store on SQLite."""

    def __init__(self, path: str | Path) -> None:
        path = Path(path)
        if str(path) != ":memory:":
            path.parent.mkdir(parents=True, exist_ok=True)
        self._path = path
        # Autocommit mode; multi-statement writes open their own transaction
        self._conn = sqlite3.connect(str(path), check_same_thread=False, isolation_level=None)
        self._lock = threading.RLock()
        self._in_transaction = False
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS bridgewatch_meta (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL
            )
            """
        )
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS decisions (
                transfer_id TEXT PRIMARY KEY,
                sender TEXT NOT NULL,
                recipient TEXT NOT NULL,
                risk_score INTEGER NOT NULL,
                sanctioned INTEGER NOT NULL,
                decision TEXT NOT NULL,
                timestamp INTEGER NOT NULL
            )
            """
        )
        self._conn.execute("CREATE INDEX IF NOT EXISTS idx_decisions_sender ON decisions(sender)")
        self._conn.execute("CREATE INDEX IF NOT EXISTS idx_decisions_recipient ON decisions(recipient)")

    @property
    def path(self) -> Path:
        return self._path

    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self._lock:
            if self._in_transaction:
                yield
                return
            # Take the write lock up front so reads inside see what we will overwrite
            self._conn.execute("BEGIN IMMEDIATE")
            self._in_transaction = True
            try:
                yield
            except BaseException:
                self._conn.execute("ROLLBACK")
                raise
            else:
                self._conn.execute("COMMIT")
            finally:
                self._in_transaction = False

    def _get_meta(self, key: str) -> Optional[str]:
        with self._lock:
            row = self._conn.execute(
                "SELECT value FROM bridgewatch_meta WHERE key = ?", (key,)
            ).fetchone()
        return row[0] if row else None

    def _set_meta(self, key: str, value: str) -> None:
        with self._lock:
            self._conn.execute(
                "INSERT OR REPLACE INTO bridgewatch_meta (key, value) VALUES (?, ?)",
                (key, value),
            )

    def get_record(self, transfer_id: bytes) -> Optional[DecisionRecord]:
        with self._lock:
            row = self._conn.execute(
                "SELECT transfer_id, sender, recipient, risk_score, sanctioned, decision, timestamp"
                " FROM decisions WHERE transfer_id = ?",
                (to_hex(transfer_id),),
            ).fetchone()
        return self._row_to_record(row) if row else None

    def append_record(self, record: DecisionRecord) -> int:
        with self.transaction():
            try:
                self._conn.execute(
                    """
                    INSERT INTO decisions (
                        transfer_id, sender, recipient, risk_score, sanctioned, decision, timestamp
                    ) VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        to_hex(record.transfer_id),
                        record.sender,
                        record.recipient,
                        record.risk_score,
                        int(record.sanctioned),
                        record.decision.value,
                        record.timestamp,
                    ),
                )
            except sqlite3.IntegrityError as e:
                raise DuplicateRecord(to_hex(record.transfer_id)) from e
            total = self._read_counter() + 1
            self._conn.execute(
                "INSERT OR REPLACE INTO bridgewatch_meta (key, value) VALUES ('total_decisions', ?)",
                (str(total),),
            )
        return total

    def _read_counter(self) -> int:
        row = self._conn.execute(
            "SELECT value FROM bridgewatch_meta WHERE key = 'total_decisions'"
        ).fetchone()
        return int(row[0]) if row else 0

    def total_decisions(self) -> int:
        with self._lock:
            return self._read_counter()

    def list_records(
        self,
        sender: Optional[str] = None,
        recipient: Optional[str] = None,
        tier: Optional[DecisionTier] = None,
        limit: int = 50,
    ) -> List[DecisionRecord]:
        clauses: List[str] = []
        params: List[Any] = []
        if sender is not None:
            clauses.append("sender = ?")
            params.append(sender)
        if recipient is not None:
            clauses.append("recipient = ?")
            params.append(recipient)
        if tier is not None:
            clauses.append("decision = ?")
            params.append(tier.value)
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        params.append(limit)
        with self._lock:
            rows = self._conn.execute(
                "SELECT transfer_id, sender, recipient, risk_score, sanctioned, decision, timestamp"
                f" FROM decisions{where} ORDER BY rowid DESC LIMIT ?",
                params,
            ).fetchall()
        return [self._row_to_record(row) for row in rows]

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    @staticmethod
    def _row_to_record(row: Any) -> DecisionRecord:
        return DecisionRecord.from_dict(
            {
                "transfer_id": row[0],
                "sender": row[1],
                "recipient": row[2],
                "risk_score": row[3],
                "sanctioned": row[4],
                "decision": row[5],
                "timestamp": row[6],
            }
        )


def create_state_store(dsn: str) -> StateStore:
    """
    Build a store from a DSN.

    Raises:
        ConfigurationError: For unsupported DSN schemes
    """
    if not dsn or dsn == "memory://":
        return InMemoryStateStore()
    if dsn.startswith("sqlite:///"):
        path = dsn.removeprefix("sqlite:///")
        logger.debug("Opening SQLite state store at %s", path)
        return SQLiteStateStore(path)
    raise ConfigurationError(
        f"Unsupported state DSN: {dsn!r} (expected memory:// or sqlite:///path)",
        details={"dsn": dsn},
    )


__all__ = [
    "StateStore",
    "InMemoryStateStore",
    "SQLiteStateStore",
    "create_state_store",
]
