#!/usr/bin/env python3
"""
demo.py - Interactive Tutorial: Learn the Capital Ledger Step by Step

This is a pedagogical demonstration of how a fund tracks its limited
partners. Each step builds on the previous one. Press Enter to advance.

WHAT YOU'LL LEARN:
  1-3:  Foundation     - The empty ledger, admins, registering an LP
  4-6:  Paying In      - Tranche payments, rejections, cash calls
  7-8:  Enforcement    - Missed deadlines, penalties, revocation
  9-10: Operations     - Disbursements, pause, audit

Run:
    python demo.py           # Interactive mode (press Enter for each step)
    python demo.py --quick   # Run all steps without pausing
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import List
import sys

from capital_ledger import (
    CapitalLedger, StaticPriceOracle, RecordingSink,
    TrancheSpec, ObligationKind, EventType,
    LedgerError,
)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Configuration for the tutorial. Modify these to experiment."""
    start_time: datetime = datetime(2025, 1, 1, 9, 0, 0)
    fund_life: timedelta = timedelta(days=365)

    # $2,000 per native unit, 8 implied decimals
    oracle_rate: int = 2000_00000000
    minimum_usd: Decimal = Decimal("1000")

    commitment: Decimal = Decimal("10")
    tranche_percentages: List[Decimal] = field(
        default_factory=lambda: [Decimal("50"), Decimal("50")])
    tranche_days: List[int] = field(default_factory=lambda: [10, 20])


CONFIG = DemoConfig()

QUICK_MODE = "--quick" in sys.argv


def wait_for_enter():
    """Pause for user input unless in quick mode."""
    if not QUICK_MODE:
        input("\n[Press Enter to continue...]")


def step_header(number: int, title: str, objective: str):
    """Print a step header with learning objective."""
    print(f"\n{'='*70}")
    print(f"STEP {number}: {title}")
    print(f"{'='*70}")
    print(f"\nObjective: {objective}\n")


def section_header(text: str):
    """Print a section header within a step."""
    print(f"\n--- {text} ---\n")


def day(n: int) -> datetime:
    return CONFIG.start_time + timedelta(days=n)


def try_operation(description: str, operation):
    """Run an operation that may be rejected and show the outcome."""
    print(f">>> {description}")
    try:
        return operation()
    except LedgerError as exc:
        print(f"    -> rejected with {exc.reason.value}")
        return None


# ============================================================================
# PHASE 1: FOUNDATION (Steps 1-3)
# ============================================================================

def step_01_empty_ledger():
    """Create the ledger and look at its initial state."""
    step_header(1, "The Empty Ledger",
        "A ledger starts with one default admin, an oracle and a clock.")

    print("""
    The capital ledger answers one question for a fund: who promised how
    much, what have they paid, and what do they still owe?

    1. ADMINS      - the general partner's operators
    2. LPs         - limited partners with a commitment
    3. TIME        - a logical clock that only moves forward
    """)

    wait_for_enter()

    print(">>> ledger = CapitalLedger('fund_i', default_admin='gp', oracle=..., initial_time=...)")
    ledger = CapitalLedger(
        name="fund_i",
        default_admin="gp",
        oracle=StaticPriceOracle(CONFIG.oracle_rate),
        initial_time=CONFIG.start_time,
        minimum_commitment_usd=CONFIG.minimum_usd,
        sink=RecordingSink(),
        verbose=True,
    )

    section_header("Initial State")
    print(f"Ledger name:       {ledger.name}")
    print(f"Current time:      {ledger.current_time}")
    print(f"Admins:            {sorted(ledger.access.admins)}")
    print(f"Minimum (USD):     {ledger.minimum_commitment_usd}")
    print(f"Custodied balance: {ledger.custodied_balance}")
    return ledger


def step_02_admins(ledger: CapitalLedger):
    """Add an operations admin."""
    step_header(2, "Administrators",
        "Only the default admin manages the admin set.")

    print(">>> ledger.add_admin('gp', 'ops')")
    ledger.add_admin("gp", "ops")
    try_operation("ledger.add_admin('ops', 'intern')",
                  lambda: ledger.add_admin("ops", "intern"))

    section_header("Key Insight")
    print("""
    'ops' can now run the fund day to day, but only 'gp' (the default
    admin) can change who the admins are.
    """)
    return ledger


def step_03_register_lp(ledger: CapitalLedger):
    """Register an LP with a two-tranche schedule."""
    step_header(3, "Registering an LP",
        "A commitment is split into percentage tranches with deadlines.")

    schedule = [
        TrancheSpec(pct, period=timedelta(days=d))
        for pct, d in zip(CONFIG.tranche_percentages, CONFIG.tranche_days)
    ]
    print(">>> ledger.register_commitment('ops', 'lp_a', 10, schedule, end_time)")
    ledger.register_commitment("ops", "lp_a", CONFIG.commitment, schedule,
                               CONFIG.start_time + CONFIG.fund_life)

    section_header("Tranches")
    for tranche in ledger.get_tranches("lp_a"):
        print(f"  {tranche}")

    section_header("Minimum Check")
    try_operation("ledger.register_commitment('ops', 'lp_small', 0.1, [], end_time)",
                  lambda: ledger.register_commitment(
                      "ops", "lp_small", Decimal("0.1"), [],
                      CONFIG.start_time + CONFIG.fund_life))
    print("    0.1 units at $2,000 is $200, below the $1,000 minimum.")
    return ledger


# ============================================================================
# PHASE 2: PAYING IN (Steps 4-6)
# ============================================================================

def step_04_tranche_payment(ledger: CapitalLedger):
    """Pay the first tranche."""
    step_header(4, "Paying a Tranche",
        "Payments credit the tranche and the LP's running total.")

    print(">>> ledger.apply_payment('lp_a', 'lp_a', 0, 5)")
    record = ledger.apply_payment("lp_a", "lp_a", 0, Decimal("5"))
    print(f"\nTotal paid:  {record.total_paid}")
    print(f"Outstanding: {ledger.outstanding('lp_a')}")
    print(f"Custody:     {ledger.custodied_balance}")
    return ledger


def step_05_rejections(ledger: CapitalLedger):
    """Show that rejected payments change nothing."""
    step_header(5, "Rejected Payments",
        "A rejected operation leaves no trace: no state change, no event.")

    events_before = len(ledger.events())
    try_operation("ledger.apply_payment('lp_a', 'lp_a', 0, 1)   # tranche already paid",
                  lambda: ledger.apply_payment("lp_a", "lp_a", 0, Decimal("1")))
    try_operation("ledger.apply_payment('lp_z', 'lp_z', 0, 1)   # not an LP",
                  lambda: ledger.apply_payment("lp_z", "lp_z", 0, Decimal("1")))
    print(f"\nEvents before: {events_before}, after: {len(ledger.events())}")
    return ledger


def step_06_cash_calls(ledger: CapitalLedger):
    """Issue cash calls and execute one when due."""
    step_header(6, "Cash Calls",
        "Calls are issued in deadline order and executed once due.")

    print(">>> ledger.create_call('ops', 'lp_a', 1, day 5)")
    ledger.create_call("ops", "lp_a", Decimal("1"), day(5))
    try_operation("ledger.create_call('ops', 'lp_a', 1, day 3)   # earlier than the last call",
                  lambda: ledger.create_call("ops", "lp_a", Decimal("1"), day(3)))

    print(">>> ledger.apply_payment('lp_a', 'lp_a', 0, 1, CASH_CALL)")
    ledger.apply_payment("lp_a", "lp_a", 0, Decimal("1"), ObligationKind.CASH_CALL)

    print(">>> ledger.advance_time(day 5); ledger.execute_call('ops', 'lp_a', 0)")
    ledger.advance_time(day(5))
    print(f"Due calls: {ledger.due_calls()}")
    ledger.execute_call("ops", "lp_a", 0)
    print(f"Due calls after execution: {ledger.due_calls()}")
    return ledger


# ============================================================================
# PHASE 3: ENFORCEMENT (Steps 7-8)
# ============================================================================

def step_07_missed_deadline(ledger: CapitalLedger):
    """Miss the second tranche and apply a penalty."""
    step_header(7, "Missed Deadlines",
        "Tranche deadlines are cutoffs; admins respond with penalties.")

    ledger.advance_time(day(21))
    try_operation("ledger.apply_payment('lp_a', 'lp_a', 1, 4)   # after the deadline",
                  lambda: ledger.apply_payment("lp_a", "lp_a", 1, Decimal("4")))

    print(">>> ledger.apply_penalty('ops', 'lp_a', None, 1, revoke_access=False)")
    record = ledger.apply_penalty("ops", "lp_a", None, Decimal("1"), False)
    print(f"\nPenalties:   {record.penalties}")
    print(f"Outstanding: {record.remaining_commitment}")
    return ledger


def step_08_revocation(ledger: CapitalLedger):
    """Revoke the LP."""
    step_header(8, "Revocation",
        "Revocation zeroes the LP's standing; paid-in value stays in the fund.")

    print(">>> ledger.apply_penalty('ops', 'lp_a', None, 0, revoke_access=True)")
    ledger.apply_penalty("ops", "lp_a", None, Decimal("0"), True)
    print(f"\nIs LP:   {ledger.is_lp('lp_a')}")
    print(f"Custody: {ledger.custodied_balance}")
    return ledger


# ============================================================================
# PHASE 4: OPERATIONS (Steps 9-10)
# ============================================================================

def step_09_disbursement(ledger: CapitalLedger):
    """Disburse custodied value, then pause."""
    step_header(9, "Disbursement and Pause",
        "Withdrawals go through the transfer sink; pause halts everything.")

    print(">>> ledger.withdraw('ops', 'portfolio_co', 4)")
    ledger.withdraw("ops", "portfolio_co", Decimal("4"))
    print(f"Sink transfers: {ledger.sink.transfers}")

    print(">>> ledger.pause('ops')")
    ledger.pause("ops")
    try_operation("ledger.deposit('donor', 1)",
                  lambda: ledger.deposit("donor", Decimal("1")))
    print(">>> ledger.unpause('ops')")
    ledger.unpause("ops")
    return ledger


def step_10_audit(ledger: CapitalLedger):
    """Verify invariants and read the event stream."""
    step_header(10, "Audit",
        "Every committed change is an event; invariants can be checked at any time.")

    result = ledger.verify_invariants()
    print(f"Invariants valid: {result['valid']}")

    section_header("Event Counts")
    counts = {}
    for event in ledger.events():
        counts[event.event_type] = counts.get(event.event_type, 0) + 1
    for event_type in EventType:
        if event_type in counts:
            print(f"  {event_type.value:<28} {counts[event_type]}")
    return ledger


def main():
    """Run the complete tutorial."""
    print("=" * 70)
    print("       CAPITAL LEDGER - INTERACTIVE TUTORIAL")
    print("=" * 70)

    if QUICK_MODE:
        print("Running in QUICK mode (no pauses)")
    else:
        print("Running in INTERACTIVE mode (press Enter to advance)")

    wait_for_enter()

    ledger = step_01_empty_ledger()
    for step in (step_02_admins, step_03_register_lp, step_04_tranche_payment,
                 step_05_rejections, step_06_cash_calls, step_07_missed_deadline,
                 step_08_revocation, step_09_disbursement, step_10_audit):
        wait_for_enter()
        ledger = step(ledger)

    print("""
    SUMMARY

      - Commitments are split into tranches with payment cutoffs
      - Cash calls fall due in the order they were issued
      - Rejected operations change nothing
      - Penalties raise what is owed; revocation removes standing

    Run tests: pytest tests/
    """)


if __name__ == "__main__":
    main()
