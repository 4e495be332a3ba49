"""
Determinism Conformance Tests

INVARIANT: Given identical inputs, the ledger produces identical outputs.

    ∀ inputs I:
        ledger1.process(I) = ledger2.process(I)

This guarantees:
- Replay produces identical state and event stream
- clone() followed by the same inputs matches the original
"""

from hypothesis import given, settings

from tests.builders import ledger_state
from tests.conformance.operations import operations, run, seeded_ledger


def event_stream(ledger):
    return [(e.sequence, e.event_type, e.timestamp, e.operation, e.params) for e in ledger.events()]


class TestDeterminismProperties:

    @given(operations)
    @settings(max_examples=40, deadline=None)
    def test_identical_sequences_produce_identical_state(self, ops):
        """
        PROPERTY: Two ledgers processing the same operations reach the same state.
        """
        ledger1 = seeded_ledger()
        ledger2 = seeded_ledger()
        outcomes1 = [run(ledger1, op) for op in ops]
        outcomes2 = [run(ledger2, op) for op in ops]
        assert outcomes1 == outcomes2
        assert ledger_state(ledger1) == ledger_state(ledger2)
        assert event_stream(ledger1) == event_stream(ledger2)

    @given(operations, operations)
    @settings(max_examples=40, deadline=None)
    def test_clone_then_replay_matches(self, prefix, suffix):
        """
        PROPERTY: A clone fed the same suffix ends where the original ends.
        """
        original = seeded_ledger()
        for op in prefix:
            run(original, op)
        cloned = original.clone()
        for op in suffix:
            run(original, op)
            run(cloned, op)
        assert ledger_state(original) == ledger_state(cloned)
        assert event_stream(original) == event_stream(cloned)
