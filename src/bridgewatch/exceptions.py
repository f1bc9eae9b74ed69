"""Exception hierarchy for BridgeWatch.

All BridgeWatch errors inherit from BridgeWatchError so callers can catch the
whole family at a boundary and render a structured response:

    try:
        engine.record_decision(...)
    except BridgeWatchError as e:
        return e.to_dict()

Every exception carries:
- error_code: Machine-readable error code (e.g., "DUPLICATE_RECORD")
- message: Human-readable error message
- details: Optional additional context dictionary
"""
from __future__ import annotations

from typing import Any, Optional


class BridgeWatchError(Exception):
    """Base exception for all BridgeWatch errors."""

    error_code: str = "BRIDGEWATCH_ERROR"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a serializable error payload."""
        result = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


class Unauthorized(BridgeWatchError):
    """Caller lacks the administrative capability for a restricted operation."""

    error_code = "UNAUTHORIZED"

    def __init__(self, caller: Any, operation: str) -> None:
        super().__init__(
            f"Caller {caller!r} is not authorized to call {operation}",
            details={"caller": str(caller), "operation": operation},
        )


class InvalidThreshold(BridgeWatchError):
    """Threshold pair violates flag < block <= 100."""

    error_code = "INVALID_THRESHOLD"

    def __init__(self, flag: Any, block: Any, reason: str) -> None:
        super().__init__(
            reason,
            details={"flag_threshold": flag, "block_threshold": block},
        )


class DuplicateRecord(BridgeWatchError):
    """A decision already exists for the transfer identifier."""

    error_code = "DUPLICATE_RECORD"

    def __init__(self, transfer_id: str) -> None:
        super().__init__(
            f"Decision already recorded for transfer {transfer_id}",
            details={"transfer_id": transfer_id},
        )


class NotFound(BridgeWatchError):
    """Requested resource does not exist."""

    error_code = "NOT_FOUND"

    def __init__(self, resource_type: str, resource_id: str) -> None:
        super().__init__(
            f"{resource_type} '{resource_id}' not found",
            details={"resource_type": resource_type, "resource_id": resource_id},
        )


class MalformedInput(BridgeWatchError):
    """Input has an unexpected width, type, or encoding."""

    error_code = "MALFORMED_INPUT"

    def __init__(self, field: str, value: Any, reason: str) -> None:
        super().__init__(
            f"Malformed {field}: {reason}",
            details={"field": field, "value": repr(value), "reason": reason},
        )


class ConfigurationError(BridgeWatchError):
    """Component is wired or configured incorrectly."""

    error_code = "CONFIGURATION_ERROR"


__all__ = [
    "BridgeWatchError",
    "Unauthorized",
    "InvalidThreshold",
    "DuplicateRecord",
    "NotFound",
    "MalformedInput",
    "ConfigurationError",
]
