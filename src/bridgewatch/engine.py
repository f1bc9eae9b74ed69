"""
Compliance decision engine.

Classifies a transfer into APPROVED / FLAGGED / BLOCKED from a sanction
verdict and an externally computed risk score, then records the decision
exactly once per transfer identifier.

Per transfer id the only transition is absent -> recorded. Records are never
updated or deleted; a correction is a new record under a new id.

Classification precedence:
1. sanctioned            -> BLOCKED (overrides any score)
2. score >= block        -> BLOCKED
3. score >= flag         -> FLAGGED
4. otherwise             -> APPROVED
"""
from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, List, Optional, Sequence

from .access import Ownership
from .events import EventLog, EventType
from .exceptions import ConfigurationError, DuplicateRecord, MalformedInput, NotFound
from .hashing import to_address, to_bytes32, to_hex
from .models import DecisionRecord, DecisionTier, ThresholdPolicy, validate_thresholds
from .registry import SanctionsRegistry
from .store import InMemoryStateStore, StateStore

logger = logging.getLogger(__name__)

# Risk scores travel as uint8 on the wire
MAX_RISK_SCORE = 255


def _now() -> int:
    return int(time.time())


def classify(
    sanctioned: bool,
    risk_score: int,
    flag_threshold: int,
    block_threshold: int,
) -> DecisionTier:
    """Pure classification of (sanction verdict, score) under a threshold pair."""
    return ThresholdPolicy(flag_threshold, block_threshold).classify(risk_score, sanctioned)


class ComplianceDecisionEngine:
    """
    Threshold policy, decision ledger and decision counter.

    Usage:
        engine = ComplianceDecisionEngine(admin=ADMIN, registry=registry)
        engine.update_thresholds(ADMIN, 40, 80)

        tier = engine.record_decision(tx_hash, sender, recipient, 50, False)
        record = engine.get_record(tx_hash)
    """

    SCOPE = "compliance_decision_engine"

    def __init__(
        self,
        admin: Optional[Any],
        store: Optional[StateStore] = None,
        registry: Optional[SanctionsRegistry] = None,
        events: Optional[EventLog] = None,
        clock: Optional[Callable[[], int]] = None,
        default_policy: Optional[ThresholdPolicy] = None,
    ) -> None:
        """
        Initialize the engine.

        Args:
            admin: Address allowed to change thresholds (first start only;
                a persisted owner takes precedence). None opens the engine
                without administrative access unless the store names an owner
            store: State store; in-memory when omitted
            registry: Sanctions registry used by screen_transfer
            events: Event log; shares the registry's log when omitted
            clock: Returns the current Unix time in seconds
            default_policy: Policy used until one is stored (40/80 if omitted)
        """
        self._store = store or InMemoryStateStore()
        self._registry = registry
        if events is None:
            events = registry.events if registry is not None else EventLog()
        self._events = events
        self._clock = clock or _now
        self._lock = threading.RLock()
        self._ownership = Ownership(self.SCOPE, self._store, admin, self._events)
        self._default_policy = default_policy or ThresholdPolicy()

    @property
    def events(self) -> EventLog:
        return self._events

    @property
    def owner(self) -> Optional[str]:
        return self._ownership.owner

    @property
    def registry(self) -> Optional[SanctionsRegistry]:
        return self._registry

    @property
    def policy(self) -> ThresholdPolicy:
        """Stored policy, or the default until an administrator sets one."""
        return self._store.load_policy() or self._default_policy

    @property
    def flag_threshold(self) -> int:
        return self.policy.flag_threshold

    @property
    def block_threshold(self) -> int:
        return self.policy.block_threshold

    # ------------------------------------------------------------------
    # Administrative channel
    # ------------------------------------------------------------------

    def update_thresholds(self, caller: Any, flag: int, block: int) -> ThresholdPolicy:
        """
        Replace the threshold policy.

        Raises:
            Unauthorized: If caller is not the administrator
            InvalidThreshold: If not 0 <= flag < block <= 100; the current
                policy stays in force
        """
        with self._lock:
            with self._store.transaction():
                self._ownership.require_owner(caller, "update_thresholds")
                validate_thresholds(flag, block)
                policy = ThresholdPolicy(flag, block)
                self._store.save_policy(policy)

            logger.info("Thresholds updated: flag=%d block=%d", flag, block)
            self._events.emit(EventType.POLICY_UPDATED, policy.to_dict())
        return policy

    def transfer_ownership(self, caller: Any, new_owner: Any) -> str:
        with self._lock:
            return self._ownership.transfer_ownership(caller, new_owner)

    # ------------------------------------------------------------------
    # Recording channel
    # ------------------------------------------------------------------

    def record_decision(
        self,
        transfer_id: Any,
        sender: Any,
        recipient: Any,
        risk_score: int,
        sanctioned: bool,
    ) -> DecisionTier:
        """
        Classify a transfer and persist the decision.

        Args:
            transfer_id: 32-byte transfer identifier
            sender: Sender address
            recipient: Recipient address
            risk_score: Externally computed score, recorded as submitted
            sanctioned: Sanction verdict for the transfer's parties

        Returns:
            The decision tier

        Raises:
            MalformedInput: If any argument has the wrong shape
            DuplicateRecord: If a decision already exists for transfer_id
        """
        tid = to_bytes32(transfer_id, field="transfer_id")
        sender = to_address(sender, field="sender")
        recipient = to_address(recipient, field="recipient")
        self._validate_score(risk_score)
        if not isinstance(sanctioned, bool):
            raise MalformedInput("sanctioned", sanctioned, "expected a boolean")

        with self._lock:
            try:
                with self._store.transaction():
                    tier = self.policy.classify(risk_score, sanctioned)
                    record = DecisionRecord(
                        transfer_id=tid,
                        sender=sender,
                        recipient=recipient,
                        risk_score=risk_score,
                        sanctioned=sanctioned,
                        decision=tier,
                        timestamp=self._clock(),
                    )
                    total = self._store.append_record(record)
            except DuplicateRecord:
                logger.warning("Duplicate decision rejected for transfer %s", to_hex(tid))
                raise

            logger.info(
                "Decision %s for transfer %s (score=%d sanctioned=%s, total=%d)",
                tier.value,
                to_hex(tid),
                risk_score,
                sanctioned,
                total,
            )
            self._events.emit(
                EventType.DECISION_RECORDED,
                {
                    "transfer_id": to_hex(tid),
                    "sender": sender,
                    "recipient": recipient,
                    "risk_score": risk_score,
                    "sanctioned": sanctioned,
                    "decision": tier.value,
                    "timestamp": record.timestamp,
                },
            )
        return tier

    def screen_transfer(
        self,
        transfer_id: Any,
        sender: Any,
        recipient: Any,
        risk_score: int,
        sender_proof: Optional[Sequence[Any]] = None,
        recipient_proof: Optional[Sequence[Any]] = None,
    ) -> DecisionTier:
        """
        Screen both parties against the registry, then record the decision.

        A party is checked only when a proof is supplied for it (an empty
        list is a valid proof for a single-identity commitment).

        Raises:
            ConfigurationError: If the engine has no registry
        """
        if self._registry is None:
            raise ConfigurationError("screen_transfer requires a SanctionsRegistry")

        sanctioned = False
        if sender_proof is not None:
            sanctioned = self._registry.verify_membership(sender, sender_proof)
        if not sanctioned and recipient_proof is not None:
            sanctioned = self._registry.verify_membership(recipient, recipient_proof)
        return self.record_decision(transfer_id, sender, recipient, risk_score, sanctioned)

    @staticmethod
    def _validate_score(risk_score: Any) -> None:
        if isinstance(risk_score, bool) or not isinstance(risk_score, int):
            raise MalformedInput("risk_score", risk_score, "expected an integer")
        if not 0 <= risk_score <= MAX_RISK_SCORE:
            raise MalformedInput("risk_score", risk_score, f"expected 0..{MAX_RISK_SCORE}")

    # ------------------------------------------------------------------
    # Query channel
    # ------------------------------------------------------------------

    def get_record(self, transfer_id: Any) -> DecisionRecord:
        """
        Raises:
            NotFound: If no decision exists for transfer_id
        """
        tid = to_bytes32(transfer_id, field="transfer_id")
        record = self._store.get_record(tid)
        if record is None:
            raise NotFound("Decision record", to_hex(tid))
        return record

    def has_record(self, transfer_id: Any) -> bool:
        return self._store.get_record(to_bytes32(transfer_id, field="transfer_id")) is not None

    def total_decisions(self) -> int:
        return self._store.total_decisions()

    def list_records(
        self,
        sender: Optional[Any] = None,
        recipient: Optional[Any] = None,
        tier: Optional[DecisionTier] = None,
        limit: int = 50,
    ) -> List[DecisionRecord]:
        """Recent decisions, newest first, optionally filtered."""
        if sender is not None:
            sender = to_address(sender, field="sender")
        if recipient is not None:
            recipient = to_address(recipient, field="recipient")
        return self._store.list_records(sender=sender, recipient=recipient, tier=tier, limit=limit)


__all__ = [
    "MAX_RISK_SCORE",
    "classify",
    "ComplianceDecisionEngine",
]
