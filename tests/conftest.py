"""
Pytest configuration for bridgewatch tests.
"""
from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest
from web3 import Web3

# Add package source to path
package_src = Path(__file__).parent.parent / "src"
if str(package_src) not in sys.path:
    sys.path.insert(0, str(package_src))

# Keep tests independent of any local .env
os.environ.setdefault("BRIDGEWATCH_ENVIRONMENT", "dev")

from bridgewatch.engine import ComplianceDecisionEngine  # noqa: E402
from bridgewatch.events import EventLog  # noqa: E402
from bridgewatch.registry import SanctionsRegistry  # noqa: E402
from bridgewatch.store import InMemoryStateStore  # noqa: E402


class FakeClock:
    """Controllable Unix-seconds clock."""

    def __init__(self, now: int = 1_700_000_000):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


@pytest.fixture
def admin():
    """Administrative principal."""
    return "0x1000000000000000000000000000000000000001"


@pytest.fixture
def user():
    """Non-administrative caller."""
    return "0x2000000000000000000000000000000000000002"


@pytest.fixture
def sender():
    return "0x1111111111111111111111111111111111111111"


@pytest.fixture
def recipient():
    return "0x2222222222222222222222222222222222222222"


@pytest.fixture
def sanctioned_address():
    """Address known to appear on the OFAC SDN list (Lazarus Group)."""
    return "0x098b716b8aaf21512996dc57eb0615e2383e2f96"


@pytest.fixture
def clean_address():
    return "0x1234567890123456789012345678901234567890"


@pytest.fixture
def tx_id():
    """Factory for 32-byte transfer identifiers."""
    def _make(label: str) -> bytes:
        return bytes(Web3.keccak(text=label))
    return _make


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemoryStateStore()


@pytest.fixture
def events():
    return EventLog()


@pytest.fixture
def registry(admin, store, events, clock):
    return SanctionsRegistry(admin=admin, store=store, events=events, clock=clock)


@pytest.fixture
def engine(admin, store, registry, events, clock):
    return ComplianceDecisionEngine(
        admin=admin,
        store=store,
        registry=registry,
        events=events,
        clock=clock,
    )
