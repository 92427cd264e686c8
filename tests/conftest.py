"""
Pytest configuration and shared fixtures for TOTPGuard tests.

This module provides common test fixtures for:
- Controllable clocks
- Attempt guards and identity registries
- API test clients
"""
import pytest
from pathlib import Path

# Add project root to Python path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from totpguard.auth.guard import AttemptGuard
from totpguard.auth.manager import TOTPManager
from totpguard.auth.totp import generate_totp
from totpguard.config import TOTPSettings


# Well-known example secret used by authenticator app documentation
EXAMPLE_SECRET = "JBSWY3DPEHPK3PXP"

# Fixed wall-clock time for deterministic TOTP codes
WALL_TIME = 1_700_000_000


def codes_in_window(secret: str, timestamp: int, window: int = 1, time_step: int = 30) -> set:
    """All codes accepted around a timestamp."""
    return {
        generate_totp(secret, timestamp + offset * time_step, time_step)
        for offset in range(-window, window + 1)
    }


def wrong_code(secret: str, timestamp: int, window: int = 1) -> str:
    """A 6-digit code guaranteed to be rejected around a timestamp."""
    valid = codes_in_window(secret, timestamp, window)
    return next(c for c in ("000000", "111111", "222222", "333333") if c not in valid)


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ============================================
# Core Fixtures
# ============================================

@pytest.fixture
def secret():
    return EXAMPLE_SECRET


@pytest.fixture
def clock():
    """Controllable monotonic clock starting at t=1000."""
    return FakeClock()


@pytest.fixture
def guard(clock):
    """Attempt guard on a fake monotonic clock and a fixed wall clock."""
    return AttemptGuard(monotonic=clock, wall_clock=lambda: WALL_TIME)


@pytest.fixture
def settings():
    return TOTPSettings(max_identities=5)


@pytest.fixture
def manager(settings, guard):
    """Registry using the deterministic guard."""
    return TOTPManager(settings=settings, guard=guard)


# ============================================
# API Fixtures
# ============================================

@pytest.fixture
def api_manager():
    """Registry on real clocks for API tests."""
    return TOTPManager(settings=TOTPSettings(max_identities=3))


@pytest.fixture
def client_with_manager(api_manager):
    """Create test client with the registry dependency overridden."""
    from fastapi.testclient import TestClient
    from totpguard.api.main import app
    from totpguard.api.deps import get_manager

    app.dependency_overrides[get_manager] = lambda: api_manager

    client = TestClient(app)
    yield client, api_manager

    # Clean up overrides
    app.dependency_overrides.clear()
