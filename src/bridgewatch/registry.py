"""
Sanctions registry.

Holds a single Merkle root committing to the sanctioned-identity set and
answers membership queries by verifying inclusion proofs against it. The
registry never sees the list itself; the curator builds the tree off-line
(see ``bridgewatch.merkle``) and publishes only the root.

Usage:
    registry = SanctionsRegistry(admin=ADMIN)
    registry.update_commitment(ADMIN, tree.root)

    registry.verify_membership(address, tree.get_proof(address))  # True
    registry.check_and_report(address, proof)  # also emits audit events
"""
from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Optional, Sequence

from .access import Ownership
from .events import EventLog, EventType
from .hashing import leaf_hash, to_address, to_bytes32, to_hex
from .merkle import verify_proof
from .models import Commitment
from .store import InMemoryStateStore, StateStore

logger = logging.getLogger(__name__)


def _now() -> int:
    return int(time.time())


class SanctionsRegistry:
    """Commitment holder and membership verifier for the sanctioned set."""

    SCOPE = "sanctions_registry"

    def __init__(
        self,
        admin: Optional[Any],
        store: Optional[StateStore] = None,
        events: Optional[EventLog] = None,
        clock: Optional[Callable[[], int]] = None,
    ) -> None:
        """
        Initialize the registry.

        Args:
            admin: Address allowed to update the commitment (first start only;
                a persisted owner takes precedence). None opens the registry
                read-only unless the store already names an owner
            store: State store; in-memory when omitted
            events: Event log for audit observations
            clock: Returns the current Unix time in seconds
        """
        self._store = store or InMemoryStateStore()
        self._events = events or EventLog()
        self._clock = clock or _now
        self._lock = threading.RLock()
        self._ownership = Ownership(self.SCOPE, self._store, admin, self._events)

    @property
    def events(self) -> EventLog:
        return self._events

    @property
    def owner(self) -> Optional[str]:
        return self._ownership.owner

    @property
    def commitment(self) -> Commitment:
        """Commitment currently in the store."""
        return self._store.load_commitment() or Commitment()

    @property
    def root(self) -> bytes:
        return self.commitment.root

    @property
    def last_updated(self) -> int:
        return self.commitment.last_updated

    def update_commitment(self, caller: Any, new_root: Any) -> Commitment:
        """
        Replace the sanctioned-set root.

        The new root is taken as-is; its internal structure cannot be checked
        without the list.

        Raises:
            Unauthorized: If caller is not the administrator
            MalformedInput: If new_root is not 32 bytes wide
        """
        with self._lock:
            with self._store.transaction():
                self._ownership.require_owner(caller, "update_commitment")
                root = to_bytes32(new_root, field="new_root")
                # Never move backwards, even if the wall clock does
                timestamp = max(self._clock(), self.last_updated)
                commitment = Commitment(root=root, last_updated=timestamp)
                self._store.save_commitment(commitment)

            logger.info("Sanctions root updated to %s at %d", to_hex(root), timestamp)
            self._events.emit(
                EventType.COMMITMENT_UPDATED,
                {"root": to_hex(root), "timestamp": timestamp},
            )
        return commitment

    @staticmethod
    def compute_leaf(identity: Any) -> bytes:
        """Leaf hash for an identity: keccak256 of its 20 address bytes."""
        return leaf_hash(identity)

    def verify_membership(self, identity: Any, proof: Sequence[Any] = ()) -> bool:
        """
        Check whether identity is provably in the committed set.

        A non-matching proof is a normal False result, not an error.

        Raises:
            MalformedInput: If identity or a proof element is malformed
        """
        leaf = self.compute_leaf(identity)
        return verify_proof(leaf, proof, self.root)

    def check_and_report(self, identity: Any, proof: Sequence[Any] = ()) -> bool:
        """Verify membership and emit the result as an audit observation."""
        address = to_address(identity)
        with self._lock:
            root = self.root
            verdict = verify_proof(leaf_hash(address), proof, root)

            self._events.emit(
                EventType.MEMBERSHIP_CHECKED,
                {"identity": address, "verdict": verdict},
            )
            if verdict:
                logger.warning("Sanctioned identity matched: %s", address)
                self._events.emit(
                    EventType.SANCTIONED_MATCH_DETECTED,
                    {"identity": address, "root": to_hex(root)},
                )
        return verdict

    def transfer_ownership(self, caller: Any, new_owner: Any) -> str:
        with self._lock:
            return self._ownership.transfer_ownership(caller, new_owner)


__all__ = ["SanctionsRegistry"]
