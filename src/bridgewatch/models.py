"""
Core data models for sanctions commitments and compliance decisions.

Models:
- Commitment: current sanctioned-set root and when it last changed
- ThresholdPolicy: score cutoffs separating decision tiers
- DecisionTier: classification outcome
- DecisionRecord: immutable audit entry for one classified transfer
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict

from .exceptions import InvalidThreshold
from .hashing import ZERO_HASH, to_bytes32, to_hex

MAX_SCORE = 100
DEFAULT_FLAG_THRESHOLD = 40
DEFAULT_BLOCK_THRESHOLD = 80


class DecisionTier(str, Enum):
    """Action tier assigned to a transfer."""
    APPROVED = "approved"  # Proceeds normally
    FLAGGED = "flagged"  # Held for manual compliance review
    BLOCKED = "blocked"  # Rejected


@dataclass(frozen=True)
class Commitment:
    """Sanctioned-set commitment held by the registry."""
    root: bytes = ZERO_HASH
    last_updated: int = 0  # Unix seconds

    @property
    def is_empty(self) -> bool:
        """True while no set has been committed."""
        return self.root == ZERO_HASH

    def to_dict(self) -> Dict[str, Any]:
        return {
            "root": to_hex(self.root),
            "last_updated": self.last_updated,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Commitment":
        return cls(
            root=to_bytes32(data["root"], field="root"),
            last_updated=int(data["last_updated"]),
        )


@dataclass(frozen=True)
class ThresholdPolicy:
    """
    Score cutoffs for the FLAGGED and BLOCKED tiers.

    Both thresholds are inclusive lower bounds: a score equal to a threshold
    lands in that threshold's tier. Instances can only be built valid.
    """
    flag_threshold: int = DEFAULT_FLAG_THRESHOLD
    block_threshold: int = DEFAULT_BLOCK_THRESHOLD

    def __post_init__(self) -> None:
        validate_thresholds(self.flag_threshold, self.block_threshold)

    def classify(self, risk_score: int, sanctioned: bool) -> DecisionTier:
        """
        Classify a transfer.

        A sanction match always blocks, whatever the score.
        """
        if sanctioned:
            return DecisionTier.BLOCKED
        if risk_score >= self.block_threshold:
            return DecisionTier.BLOCKED
        if risk_score >= self.flag_threshold:
            return DecisionTier.FLAGGED
        return DecisionTier.APPROVED

    def to_dict(self) -> Dict[str, int]:
        return {
            "flag_threshold": self.flag_threshold,
            "block_threshold": self.block_threshold,
        }


def validate_thresholds(flag: Any, block: Any) -> None:
    """
    Enforce 0 <= flag < block <= 100.

    Raises:
        InvalidThreshold: If the pair is not a valid policy
    """
    for value in (flag, block):
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidThreshold(flag, block, "Thresholds must be integers")
    if flag < 0:
        raise InvalidThreshold(flag, block, "Flag threshold min 0")
    if flag >= block:
        raise InvalidThreshold(flag, block, "Flag must be less than block")
    if block > MAX_SCORE:
        raise InvalidThreshold(flag, block, f"Block threshold max {MAX_SCORE}")


@dataclass(frozen=True)
class DecisionRecord:
    """
    Immutable decision for one transfer.

    Created once by the decision engine and never modified; corrections are
    new records under a new transfer identifier.
    """
    transfer_id: bytes
    sender: str
    recipient: str
    risk_score: int
    sanctioned: bool
    decision: DecisionTier
    timestamp: int  # Unix seconds

    @property
    def recorded_at(self) -> datetime:
        return datetime.fromtimestamp(self.timestamp, tz=timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "transfer_id": to_hex(self.transfer_id),
            "sender": self.sender,
            "recipient": self.recipient,
            "risk_score": self.risk_score,
            "sanctioned": self.sanctioned,
            "decision": self.decision.value,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DecisionRecord":
        return cls(
            transfer_id=to_bytes32(data["transfer_id"], field="transfer_id"),
            sender=data["sender"],
            recipient=data["recipient"],
            risk_score=int(data["risk_score"]),
            sanctioned=bool(data["sanctioned"]),
            decision=DecisionTier(data["decision"]),
            timestamp=int(data["timestamp"]),
        )


__all__ = [
    "MAX_SCORE",
    "DEFAULT_FLAG_THRESHOLD",
    "DEFAULT_BLOCK_THRESHOLD",
    "DecisionTier",
    "Commitment",
    "ThresholdPolicy",
    "validate_thresholds",
    "DecisionRecord",
]
