"""
BridgeWatch - two-layer compliance screening for cross-chain transfers.

Layer 1 checks parties against a Merkle-committed sanctions set; layer 2
classifies the transfer from an externally computed risk score. Every
decision lands in an append-only ledger.

Example usage:

    from bridgewatch import SanctionsMerkleTree, SanctionsRegistry, ComplianceDecisionEngine

    tree = SanctionsMerkleTree()
    tree.build(sanctioned_addresses)

    registry = SanctionsRegistry(admin=ADMIN)
    registry.update_commitment(ADMIN, tree.root)

    engine = ComplianceDecisionEngine(admin=ADMIN, registry=registry)
    sanctioned = registry.check_and_report(sender, tree.get_proof(sender))
    tier = engine.record_decision(tx_hash, sender, recipient, risk_score, sanctioned)
"""
from .exceptions import (
    BridgeWatchError,
    ConfigurationError,
    DuplicateRecord,
    InvalidThreshold,
    MalformedInput,
    NotFound,
    Unauthorized,
)
from .hashing import ZERO_HASH, leaf_hash, to_hex
from .models import (
    Commitment,
    DecisionRecord,
    DecisionTier,
    ThresholdPolicy,
)
from .events import Event, EventLog, EventType
from .merkle import SanctionsMerkleTree, compute_root, verify_proof
from .store import InMemoryStateStore, SQLiteStateStore, StateStore, create_state_store
from .registry import SanctionsRegistry
from .engine import ComplianceDecisionEngine, classify
from .config import BridgeWatchSettings, load_settings
from .stack import ComplianceStack, create_compliance_stack

__version__ = "0.1.0"

__all__ = [
    # Exceptions
    "BridgeWatchError",
    "ConfigurationError",
    "DuplicateRecord",
    "InvalidThreshold",
    "MalformedInput",
    "NotFound",
    "Unauthorized",
    # Hashing
    "ZERO_HASH",
    "leaf_hash",
    "to_hex",
    # Models
    "Commitment",
    "DecisionRecord",
    "DecisionTier",
    "ThresholdPolicy",
    # Events
    "Event",
    "EventLog",
    "EventType",
    # Commitment tooling
    "SanctionsMerkleTree",
    "compute_root",
    "verify_proof",
    # Storage
    "StateStore",
    "InMemoryStateStore",
    "SQLiteStateStore",
    "create_state_store",
    # Components
    "SanctionsRegistry",
    "ComplianceDecisionEngine",
    "classify",
    # Configuration
    "BridgeWatchSettings",
    "load_settings",
    "ComplianceStack",
    "create_compliance_stack",
]
