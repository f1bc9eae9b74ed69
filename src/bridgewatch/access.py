"""Single-owner access control for administrative operations."""
from __future__ import annotations

import logging
from typing import Any, Optional

from .events import EventLog, EventType
from .exceptions import MalformedInput, Unauthorized
from .hashing import ZERO_ADDRESS, to_address
from .store import StateStore

logger = logging.getLogger(__name__)


class Ownership:
    """
    Tracks the administrative principal of one component.

    The owner lives in the store under ``scope`` and is read on every check,
    so a transfer made through another process takes effect immediately. The
    constructor argument only seeds the store on first start; with no seed
    and nothing stored, every administrative call is rejected.
    """

    def __init__(
        self,
        scope: str,
        store: StateStore,
        initial_owner: Optional[Any] = None,
        events: Optional[EventLog] = None,
    ) -> None:
        self._scope = scope
        self._store = store
        self._events = events
        if initial_owner is None:
            return
        seed = self._validate_owner(initial_owner)
        with store.transaction():
            if store.load_owner(scope) is None:
                store.save_owner(scope, seed)

    @staticmethod
    def _validate_owner(value: Any) -> str:
        owner = to_address(value, field="owner")
        if owner == to_address(ZERO_ADDRESS):
            raise MalformedInput("owner", value, "owner cannot be the zero address")
        return owner

    @property
    def owner(self) -> Optional[str]:
        return self._store.load_owner(self._scope)

    def is_owner(self, caller: Any) -> bool:
        owner = self.owner
        if owner is None:
            return False
        try:
            return to_address(caller, field="caller") == owner
        except MalformedInput:
            return False

    def require_owner(self, caller: Any, operation: str) -> None:
        """
        Raises:
            Unauthorized: If caller is not the current owner
        """
        if not self.is_owner(caller):
            logger.warning("Rejected %s.%s from non-owner %s", self._scope, operation, caller)
            raise Unauthorized(caller, operation)

    def transfer_ownership(self, caller: Any, new_owner: Any) -> str:
        """Hand the administrative role to another address."""
        with self._store.transaction():
            self.require_owner(caller, "transfer_ownership")
            new_owner = self._validate_owner(new_owner)
            previous = self.owner
            self._store.save_owner(self._scope, new_owner)

        logger.info("%s ownership transferred from %s to %s", self._scope, previous, new_owner)
        if self._events is not None:
            self._events.emit(
                EventType.OWNERSHIP_TRANSFERRED,
                {"scope": self._scope, "previous_owner": previous, "new_owner": new_owner},
            )
        return new_owner


__all__ = ["Ownership"]
