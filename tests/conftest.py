"""
conftest.py - Shared pytest fixtures for CapitalLedger tests

Provides common fixtures used across unit, functional and conformance tests:
- Fresh ledgers (empty, with one LP, with cash calls)
- Transfer sink
"""

import pytest
from datetime import timedelta
from decimal import Decimal

from capital_ledger import RecordingSink

from tests.builders import T0, END, ADMIN, make_ledger, two_tranche_schedule


# =============================================================================
# BASIC FIXTURES
# =============================================================================

@pytest.fixture
def t0():
    return T0


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def empty_ledger(sink):
    """Fresh ledger with only the default admin."""
    return make_ledger(sink=sink)


# =============================================================================
# LP FIXTURES
# =============================================================================

@pytest.fixture
def lp_ledger(empty_ledger):
    """Ledger with lp_a committed 10 units over two 50% tranches."""
    empty_ledger.register_commitment(
        ADMIN, "lp_a", Decimal("10"), two_tranche_schedule(), END
    )
    return empty_ledger


@pytest.fixture
def call_ledger(lp_ledger):
    """lp_ledger plus two cash calls for lp_a due at T0+5d and T0+6d."""
    lp_ledger.create_call(ADMIN, "lp_a", Decimal("2"), T0 + timedelta(days=5))
    lp_ledger.create_call(ADMIN, "lp_a", Decimal("3"), T0 + timedelta(days=6))
    return lp_ledger
