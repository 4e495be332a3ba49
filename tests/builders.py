"""
builders.py - Test Helpers for constructing ledgers

Shared constants and factory functions used by fixtures and by tests that
need several independent ledgers (property-based tests).
"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, List

from capital_ledger import (
    CapitalLedger,
    StaticPriceOracle,
    TrancheSpec,
)


T0 = datetime(2025, 1, 1)
END = T0 + timedelta(days=365)
ADMIN = "gp"

# $2000 per native unit, 8 implied decimals
RATE_2000 = 2000_00000000


def make_ledger(**kwargs) -> CapitalLedger:
    """Quiet ledger at T0 with the standard oracle; kwargs override defaults."""
    options = dict(
        name="test",
        default_admin=ADMIN,
        oracle=StaticPriceOracle(RATE_2000),
        initial_time=T0,
        verbose=False,
    )
    options.update(kwargs)
    return CapitalLedger(**options)


def two_tranche_schedule() -> List[TrancheSpec]:
    """50% at T0+10d, 50% at T0+20d."""
    return [
        TrancheSpec(Decimal("50"), period=timedelta(days=10)),
        TrancheSpec(Decimal("50"), period=timedelta(days=20)),
    ]


def ledger_state(ledger: CapitalLedger) -> Dict[str, Any]:
    """Everything an operation could change, for before/after comparison."""
    return {
        "commitments": dict(ledger.commitments),
        "calls": dict(ledger.calls),
        "custody": ledger.custodied_balance,
        "unattributed": ledger.unattributed_received,
        "minimum": ledger.minimum_commitment_usd,
        "paused": ledger.paused,
        "admins": ledger.access.admin_set,
        "events": len(ledger.events()),
    }
