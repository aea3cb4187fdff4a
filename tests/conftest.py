"""
Shared pytest fixtures for the specforge test suite.

Provides a default engine, the packaged vocabulary, and the requirement
texts the pipeline tests keep coming back to.
"""

import pytest

from specforge.config import EngineConfig
from specforge.engine import SpecEngine
from specforge.logging_config import clear_context
from specforge.vocabulary import get_default_vocabulary


# ============================================================================
# Requirement texts
# ============================================================================

LOGIN_TEXT = "Users must log in with email and password; on success redirect to /dashboard"
ENDPOINT_TEXT = "GET /users/{id} returns the user or 404 if absent"
VAGUE_TEXT = "The system should be fast."
LATENCY_ANSWER = "under 200 ms for the 95th percentile"
DISCOUNT_TEXT = (
    "If the order total exceeds 100, apply a 10% discount. "
    "Otherwise, apply a 0% discount."
)
OVERLAP_TEXT = (
    "If the total exceeds 100, apply a 10% discount. "
    "If the user is a member and the total exceeds 100, apply a 20% discount."
)
DANGLING_CONDITION_TEXT = "Customers must pay by card. If the card expires"
NO_ACTOR_TEXT = "Export the report as CSV."
STATUS_ALTERNATIVES_TEXT = (
    "Returns 400 if the payload is invalid, 404 if the customer is missing, "
    "500 on database error"
)
SHIPPING_TEXT = (
    "Charge 0 for shipping if the user is a member, "
    "charge 5 for shipping if the user is a guest"
)


@pytest.fixture
def vocabulary():
    """Packaged signal vocabulary."""
    return get_default_vocabulary()


@pytest.fixture
def engine(monkeypatch):
    """Engine with default configuration, isolated from SPECFORGE_* variables."""
    for name in ("SPECFORGE_MAX_INPUT_CHARS", "SPECFORGE_PRECEDENCE", "SPECFORGE_VOCABULARY"):
        monkeypatch.delenv(name, raising=False)
    return SpecEngine(EngineConfig())


@pytest.fixture(autouse=True)
def reset_log_context():
    """Each test starts and ends with an empty log context."""
    clear_context()
    yield
    clear_context()
