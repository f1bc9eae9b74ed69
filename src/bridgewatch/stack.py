"""Wiring of store, registry and engine from settings."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from .config import BridgeWatchSettings, load_settings
from .engine import ComplianceDecisionEngine
from .events import EventLog
from .exceptions import ConfigurationError
from .models import ThresholdPolicy
from .registry import SanctionsRegistry
from .store import StateStore, create_state_store

logger = logging.getLogger(__name__)


@dataclass
class ComplianceStack:
    """A registry and an engine sharing one store and one event log."""
    store: StateStore
    events: EventLog
    registry: SanctionsRegistry
    engine: ComplianceDecisionEngine

    def close(self) -> None:
        self.store.close()


def create_compliance_stack(
    settings: Optional[BridgeWatchSettings] = None,
    clock: Optional[Callable[[], int]] = None,
    read_only: bool = False,
) -> ComplianceStack:
    """
    Build the two-layer screening stack.

    Args:
        settings: Settings to wire from; loaded from the environment if omitted
        clock: Returns the current Unix time in seconds
        read_only: Allow a missing administrator, for query-only callers

    Raises:
        ConfigurationError: If no administrator is configured and read_only
            is not set
    """
    settings = settings or load_settings()
    if settings.admin_address is None and not read_only:
        raise ConfigurationError(
            "BRIDGEWATCH_ADMIN_ADDRESS must be set to initialize the registry and engine"
        )

    store = create_state_store(settings.state_dsn)
    events = EventLog(history_limit=settings.event_history_limit)
    registry = SanctionsRegistry(
        admin=settings.admin_address,
        store=store,
        events=events,
        clock=clock,
    )
    engine = ComplianceDecisionEngine(
        admin=settings.admin_address,
        store=store,
        registry=registry,
        events=events,
        clock=clock,
        default_policy=ThresholdPolicy(
            settings.default_flag_threshold,
            settings.default_block_threshold,
        ),
    )
    logger.debug("Compliance stack ready (state=%s)", settings.state_dsn)
    return ComplianceStack(store=store, events=events, registry=registry, engine=engine)


__all__ = [
    "ComplianceStack",
    "create_compliance_stack",
]
