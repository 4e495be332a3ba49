"""
Deadline Ordering Conformance Tests

INVARIANT: Deadlines are strictly increasing per LP and commitment epoch.

    ∀ LP L, ∀ i < j:
        L.tranches[i].deadline < L.tranches[j].deadline
        L.calls[i].deadline    < L.calls[j].deadline   (same epoch)

    ∀ call C of L: C.deadline <= L.end_time

So calls fall due in the order they were created.
"""

from hypothesis import given, settings
from hypothesis import strategies as st
from datetime import timedelta
from decimal import Decimal

from capital_ledger import DeadlineOutOfRange, LedgerError

from tests.builders import T0, END, ADMIN, make_ledger
from tests.conformance.operations import operations, run, seeded_ledger


class TestDeadlineOrderingProperties:

    @given(st.lists(st.integers(min_value=-5, max_value=400), min_size=1, max_size=25))
    @settings(max_examples=80, deadline=None)
    def test_call_accepted_iff_after_previous(self, offsets):
        """
        PROPERTY: A call is accepted exactly when its deadline is in the
        future, within the end time, and after the last accepted deadline.
        """
        ledger = make_ledger()
        ledger.register_commitment(ADMIN, "lp_a", Decimal("10"), [], END)
        last = None
        for offset in offsets:
            deadline = T0 + timedelta(days=offset)
            expected = deadline > T0 and deadline <= END and (last is None or deadline > last)
            try:
                ledger.create_call(ADMIN, "lp_a", Decimal("1"), deadline)
                accepted = True
            except DeadlineOutOfRange:
                accepted = False
            assert accepted == expected, (offset, last)
            if accepted:
                last = deadline

    @given(operations)
    @settings(max_examples=60, deadline=None)
    def test_due_order_matches_creation_order(self, ops):
        """
        PROPERTY: For each LP, due calls appear in call-id order.
        """
        ledger = seeded_ledger()
        for op in ops:
            run(ledger, op)
        due = ledger.due_calls(as_of=END)
        for lp in ("lp_a", "lp_b"):
            ids = [c.call_id for c in due if c.lp == lp]
            assert ids == sorted(ids)
        deadlines = [c.deadline for c in due]
        assert deadlines == sorted(deadlines)
