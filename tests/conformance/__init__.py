"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the CapitalLedger.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. atomicity.py - All-or-nothing operation semantics
2. obligation_bounds.py - Paid amounts never exceed what is owed
3. deadline_ordering.py - Tranche and call deadlines strictly increase
4. determinism.py - Reproducible behavior

These tests use hypothesis for property-based testing over random
operation sequences (see operations.py).
"""
