"""
fake_view.py - Test Helper for LedgerView

Provides a minimal LedgerView implementation for testing compute functions
without requiring a full CapitalLedger instance.
"""

from __future__ import annotations
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, Optional, Sequence, Tuple

from capital_ledger import CashCall, Commitment, DEFAULT_MINIMUM_COMMITMENT_USD


class FakeView:
    """
    Minimal LedgerView implementation for testing compute functions.

    Example:
        view = FakeView(
            commitments={'lp_a': commitment},
            calls={'lp_a': [call_0, call_1]},
            time=datetime(2025, 1, 1),
        )

        view.get_calls('lp_a')
        # Returns: (call_0, call_1)
    """

    def __init__(
        self,
        commitments: Optional[Dict[str, Commitment]] = None,
        calls: Optional[Dict[str, Sequence[CashCall]]] = None,
        time: Optional[datetime] = None,
        admins: Iterable[str] = ("gp",),
        minimum_usd: Decimal = DEFAULT_MINIMUM_COMMITMENT_USD,
        custody: Decimal = Decimal("0"),
    ):
        self._commitments = commitments or {}
        self._calls = {lp: tuple(c) for lp, c in (calls or {}).items()}
        self._time = time or datetime(2025, 1, 1)
        self._admins = set(admins)
        self._minimum_usd = minimum_usd
        self._custody = custody

    @property
    def current_time(self) -> datetime:
        return self._time

    @property
    def minimum_commitment_usd(self) -> Decimal:
        return self._minimum_usd

    @property
    def custodied_balance(self) -> Decimal:
        return self._custody

    def get_commitment(self, lp: str) -> Optional[Commitment]:
        return self._commitments.get(lp)

    def get_calls(self, lp: str) -> Tuple[CashCall, ...]:
        return self._calls.get(lp, ())

    def is_admin(self, identity: str) -> bool:
        return identity in self._admins
