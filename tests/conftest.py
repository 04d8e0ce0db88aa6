"""
Shared fixtures.

No real storage in unit tests: the in-memory blob store stands in for
every backend except where a test exercises the JSON file store itself.
"""

from datetime import date, timedelta

import pytest

from finledger.audit import AuditLogger, create_correlation_id
from finledger.models import (
    DEFAULT_COUNTRIES,
    Account,
    LedgerState,
)
from finledger.models.registry import DEFAULT_CATEGORIES
from finledger.orchestrator import LedgerSession
from finledger.services.storage import InMemoryBlobStorage, LedgerRepository


DAY_1 = date(2024, 3, 1)
TODAY = date(2024, 3, 15)


def day(n: int) -> date:
    """Day n of March 2024 (day(1) == 2024-03-01)."""
    return DAY_1 + timedelta(days=n - 1)


@pytest.fixture
def spain():
    return DEFAULT_COUNTRIES[0].model_copy()


@pytest.fixture
def base_state():
    """Two card accounts, the default categories, no entries."""
    return LedgerState(
        accounts=[
            Account(name="BBVA", color="#004481"),
            Account(name="Santander", color="#f44336"),
        ],
        categories=[c.model_copy() for c in DEFAULT_CATEGORIES],
    )


@pytest.fixture
def memory_storage():
    return InMemoryBlobStorage()


@pytest.fixture
def repository(memory_storage):
    return LedgerRepository(memory_storage)


@pytest.fixture
def audit_logger():
    return AuditLogger(correlation_id=create_correlation_id())


@pytest.fixture
def session(spain, base_state, repository, audit_logger):
    """A session over an empty ledger with a fixed 'today'."""
    return LedgerSession(
        spain,
        state=base_state,
        repository=repository,
        audit_logger=audit_logger,
        today=lambda: TODAY,
    )
