"""
ledger.py - Stateful capital-commitment ledger

The CapitalLedger class is the central state manager. It is the only module
that mutates state, ensuring controlled and auditable changes.

Key responsibilities:
    - Implements LedgerView protocol for safe read-only access by compute functions
    - Owns the store: commitments by LP, cash calls by (LP, call id), custody,
      settings, and the event log
    - Runs every mutating operation as one indivisible unit: pause check,
      authorization, validation, commit, event publication
    - Rejects re-entry from inside an operation (transfer sink or event
      subscriber calling back in) and serializes writers across threads
    - Rolls back completely if anything fails after validation
"""

from __future__ import annotations
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple
import threading

from .core import (
    # Types
    Commitment, CashCall, Tranche, TrancheSpec, ObligationKind, EventType,
    PendingUpdate, build_update,
    # Constants
    DEFAULT_MINIMUM_COMMITMENT_USD, ZERO,
    # Exceptions
    LedgerError, DeadlineOutOfRange, InvalidParty, Paused, ReentrantCall,
    # Helpers
    is_zero_identity, to_amount, pending_event, require_comparable_time,
)
from .access_control import AccessControl
from .clock import Clock, LogicalClock
from .custody import RecordingSink, TransferSink, compute_deposit, compute_withdrawal
from .events import EventLog, LedgerEvent, Subscriber
from .payments import compute_payment
from .penalties import compute_penalty
from .price_oracle import PriceOracle
from .registry import compute_minimum_update, compute_registration, is_lp
from .scheduler import (
    compute_create_call, compute_execute_call, compute_reverse_execution,
    due_calls, get_call, is_call_due,
)


# Settings a PendingUpdate may overwrite, mapped to their attributes.
_SETTINGS = {
    'minimum_commitment_usd': '_minimum_commitment_usd',
    'paused': '_paused',
}


class CapitalLedger:
    """
    Capital-commitment and cash-call ledger for one fund.

    Implements the LedgerView protocol, so it can be passed to the pure
    compute_* functions, which only read from it.

    Design Principles:
        - Validate, then commit: compute functions never mutate; a rejected
          operation leaves no trace.
        - Always logs: every committed operation publishes its events.
        - Single writer: one operation at a time; re-entry raises ReentrantCall.

    Example:
        ledger = CapitalLedger("fund_i", default_admin="gp",
                               oracle=StaticPriceOracle(2000_00000000),
                               initial_time=datetime(2025, 1, 1))
        ledger.register_commitment("gp", "lp_a", Decimal("10"),
                                   [TrancheSpec(Decimal("50"), timedelta(days=10)),
                                    TrancheSpec(Decimal("50"), timedelta(days=20))],
                                   end_time=datetime(2026, 1, 1))
        ledger.apply_payment("lp_a", "lp_a", 0, Decimal("5"))
    """

    def __init__(
        self,
        name: str,
        default_admin: str,
        oracle: PriceOracle,
        initial_time: Optional[datetime] = None,
        clock: Optional[Clock] = None,
        minimum_commitment_usd: Decimal = DEFAULT_MINIMUM_COMMITMENT_USD,
        sink: Optional[TransferSink] = None,
        admins: Optional[Sequence[str]] = None,
        verbose: bool = True,
    ):
        """
        Create a ledger.

        Args:
            name: Ledger identifier
            default_admin: Initial default admin
            oracle: Native-to-USD rate source
            initial_time: Start time of the default LogicalClock (default: 1970-01-01)
            clock: Time source; overrides initial_time
            minimum_commitment_usd: USD value a commitment must reach
            sink: Value-transfer collaborator for withdrawals (default: RecordingSink)
            admins: Additional initial admins
            verbose: Print one line per applied or rejected operation
        """
        self.name = name
        self.access = AccessControl(default_admin, admins)
        self.oracle = oracle
        self._clock: Clock = clock if clock is not None else LogicalClock(initial_time)
        self.sink: TransferSink = sink if sink is not None else RecordingSink()
        self.verbose = verbose

        self.commitments: Dict[str, Commitment] = {}
        self.calls: Dict[str, Tuple[CashCall, ...]] = {}
        self._custodied_balance: Decimal = ZERO
        self._unattributed_received: Decimal = ZERO
        self._minimum_commitment_usd: Decimal = to_amount(minimum_commitment_usd)
        self._paused: bool = False
        self.event_log = EventLog()

        self._lock = threading.Lock()
        self._owner: Optional[int] = None
        self._active_operation: Optional[str] = None

    # ========================================================================
    # LedgerView PROTOCOL IMPLEMENTATION (read-only methods)
    # ========================================================================

    @property
    def current_time(self) -> datetime:
        """Current clock reading."""
        return self._clock.now()

    @property
    def minimum_commitment_usd(self) -> Decimal:
        return self._minimum_commitment_usd

    @property
    def custodied_balance(self) -> Decimal:
        """Value held by the ledger (payments + deposits - withdrawals)."""
        return self._custodied_balance

    def get_commitment(self, lp: str) -> Optional[Commitment]:
        """Commitment record for lp (including revoked tombstones), or None."""
        return self.commitments.get(lp)

    def get_calls(self, lp: str) -> Tuple[CashCall, ...]:
        """All cash calls for lp in creation order."""
        return self.calls.get(lp, ())

    def is_admin(self, identity: str) -> bool:
        return self.access.is_admin(identity)

    # ========================================================================
    # QUERIES
    # ========================================================================

    @property
    def paused(self) -> bool:
        return self._paused

    @property
    def unattributed_received(self) -> Decimal:
        """Cumulative value received through deposit()."""
        return self._unattributed_received

    @property
    def clock(self) -> Clock:
        return self._clock

    def is_lp(self, identity: str) -> bool:
        return is_lp(self, identity)

    def list_lps(self) -> List[str]:
        """Identities with a live commitment, sorted."""
        return sorted(lp for lp, record in self.commitments.items() if record.is_active)

    def get_call(self, lp: str, call_id: int) -> CashCall:
        return get_call(self, lp, call_id)

    def get_tranches(self, lp: str) -> Tuple[Tranche, ...]:
        record = self.commitments.get(lp)
        return record.tranches if record is not None else ()

    def outstanding(self, lp: str) -> Decimal:
        """Remaining obligation of lp, clamped at zero (zero for non-LPs)."""
        record = self.commitments.get(lp)
        return record.remaining_commitment if record is not None else ZERO

    def is_call_due(self, lp: str, call_id: int) -> bool:
        """True iff the call is due now; calls of a revoked commitment never are."""
        return is_call_due(self, lp, call_id, self._clock.now())

    def due_calls(self, as_of: Optional[datetime] = None) -> List[CashCall]:
        """Due calls across all live LPs, in deadline order."""
        now = self._clock.now()
        if as_of is None:
            as_of = now
        require_comparable_time(as_of, now, DeadlineOutOfRange, "as_of")
        return due_calls(self, self.list_lps(), as_of)

    def events(self, event_type: Optional[EventType] = None) -> List[LedgerEvent]:
        return self.event_log.events(event_type)

    def subscribe(self, callback: Subscriber) -> None:
        """Register an observer called synchronously for each new event."""
        self.event_log.subscribe(callback)

    # ========================================================================
    # TIME MANAGEMENT
    # ========================================================================

    def advance_time(self, new_time: datetime) -> None:
        """
        Advance the logical clock.

        Raises:
            ValueError: If new_time is before the current time
            LedgerError: If the ledger runs on a clock that cannot be advanced
        """
        if not isinstance(self._clock, LogicalClock):
            raise LedgerError(f"clock {self._clock!r} cannot be advanced manually")
        self._clock.advance_time(new_time)

    # ========================================================================
    # ADMIN ROLES (allowed while paused)
    # ========================================================================

    def add_admin(self, caller: str, identity: str) -> None:
        self._run(
            "add_admin",
            lambda now: build_update("add_admin", events=[self.access.add_admin(caller, identity)]),
            pausable=False,
        )

    def remove_admin(self, caller: str, identity: str) -> None:
        self._run(
            "remove_admin",
            lambda now: build_update("remove_admin", events=[self.access.remove_admin(caller, identity)]),
            pausable=False,
        )

    def transfer_default_admin(self, caller: str, identity: str) -> None:
        self._run(
            "transfer_default_admin",
            lambda now: build_update(
                "transfer_default_admin",
                events=[self.access.transfer_default_admin(caller, identity)],
            ),
            pausable=False,
        )

    # ========================================================================
    # PAUSE
    # ========================================================================

    def pause(self, caller: str) -> None:
        """Halt every mutating operation except admin-role changes and unpause."""
        def compute(now):
            self.access.require_admin(caller)
            return build_update(
                "pause",
                events=[pending_event(EventType.PAUSED, by=caller)],
                settings={'paused': True},
            )
        self._run("pause", compute)

    def unpause(self, caller: str) -> None:
        """Resume normal operation. A no-op when not paused."""
        def compute(now):
            self.access.require_admin(caller)
            if not self._paused:
                return build_update("unpause")
            return build_update(
                "unpause",
                events=[pending_event(EventType.UNPAUSED, by=caller)],
                settings={'paused': False},
            )
        self._run("unpause", compute, pausable=False)

    # ========================================================================
    # COMMITMENTS
    # ========================================================================

    def register_commitment(
        self,
        caller: str,
        lp: str,
        amount: Decimal,
        schedule: Sequence[TrancheSpec],
        end_time: datetime,
    ) -> Commitment:
        """
        Register lp with a commitment and tranche schedule.

        The oracle is read once; its rate must be positive.

        Raises:
            Unauthorized, InvalidParty, AlreadyRegistered, InvalidAmount,
            InvalidPriceData, BelowMinimum, InvalidSchedule, Paused
        """
        def compute(now):
            self.access.require_admin(caller)
            return compute_registration(self, lp, amount, schedule, end_time, self.oracle, now)
        return self._run("register_commitment", compute)

    def set_minimum_commitment(self, caller: str, usd_amount: Decimal) -> None:
        def compute(now):
            self.access.require_admin(caller)
            return compute_minimum_update(self, usd_amount)
        self._run("set_minimum_commitment", compute)

    # ========================================================================
    # CASH CALLS
    # ========================================================================

    def create_call(self, caller: str, lp: str, amount: Decimal, deadline: datetime) -> int:
        """Append a cash call for lp and return its id."""
        def compute(now):
            self.access.require_admin(caller)
            return compute_create_call(self, lp, amount, deadline, now)
        return self._run("create_call", compute)

    def execute_call(self, caller: str, lp: str, call_id: int) -> None:
        def compute(now):
            self.access.require_admin(caller)
            return compute_execute_call(self, lp, call_id, now)
        self._run("execute_call", compute)

    def reverse_execution(self, caller: str, lp: str, call_id: int) -> None:
        def compute(now):
            self.access.require_admin(caller)
            return compute_reverse_execution(self, lp, call_id)
        self._run("reverse_execution", compute)

    # ========================================================================
    # PAYMENTS
    # ========================================================================

    def apply_payment(
        self,
        payer: str,
        lp: str,
        index: int,
        amount: Decimal,
        kind: ObligationKind = ObligationKind.TRANCHE,
    ) -> Commitment:
        """
        Record a payment from payer against one of lp's tranches or calls.

        Returns:
            The LP's updated commitment record.
        """
        def compute(now):
            if is_zero_identity(payer):
                raise InvalidParty("payer cannot be the zero identity")
            return compute_payment(self, payer, lp, index, amount, now, kind)
        return self._run("apply_payment", compute)

    # ========================================================================
    # PENALTIES
    # ========================================================================

    def apply_penalty(
        self,
        caller: str,
        lp: str,
        tranche_index: Optional[int],
        penalty_amount: Decimal,
        revoke_access: bool = False,
    ) -> Commitment:
        def compute(now):
            self.access.require_admin(caller)
            return compute_penalty(self, lp, tranche_index, penalty_amount, revoke_access, caller)
        return self._run("apply_penalty", compute)

    # ========================================================================
    # CUSTODY
    # ========================================================================

    def deposit(self, sender: str, amount: Decimal) -> None:
        """Accept value not attributed to any LP."""
        self._run("deposit", lambda now: compute_deposit(self, sender, amount))

    def withdraw(self, caller: str, recipient: str, amount: Decimal) -> Decimal:
        """
        Disburse custodied value through the transfer sink.

        The balance is debited before the sink is called; if the sink raises,
        the withdrawal is rolled back.
        """
        def compute(now):
            self.access.require_admin(caller)
            return compute_withdrawal(self, recipient, amount, caller)
        return self._run(
            "withdraw",
            compute,
            interaction=lambda update: self.sink.transfer(recipient, update.result),
        )

    # ========================================================================
    # EXECUTION (Mutating)
    # ========================================================================

    def _run(
        self,
        operation: str,
        compute: Callable[[datetime], PendingUpdate],
        pausable: bool = True,
        interaction: Optional[Callable[[PendingUpdate], None]] = None,
    ) -> Any:
        """
        Run one mutating operation as an indivisible unit.

        Steps:
        1. Reject re-entry from the thread already inside an operation
        2. Acquire the writer lock
        3. Check the pause flag (unless the operation is exempt)
        4. Read the clock once
        5. compute(now) validates and returns a PendingUpdate
        6. Apply the update, publish its events, run the interaction
        7. On any failure in 5-6, restore the snapshot taken before 5
        """
        me = threading.get_ident()
        if self._owner == me:
            exc = ReentrantCall(
                f"{operation} called while {self._active_operation} is in progress"
            )
            self._report_rejected(operation, exc)
            raise exc

        with self._lock:
            self._owner = me
            self._active_operation = operation
            try:
                if pausable and self._paused:
                    raise Paused(f"{operation} rejected: ledger is paused")
                now = self._clock.now()
                snapshot = self._snapshot()
                try:
                    update = compute(now)
                    self._apply(update)
                    for pending in update.events:
                        self.event_log.publish(pending, now, update.operation)
                    if interaction is not None:
                        interaction(update)
                except BaseException:
                    self._restore(snapshot)
                    raise
            except LedgerError as exc:
                self._report_rejected(operation, exc)
                raise
            finally:
                self._owner = None
                self._active_operation = None

        self._report_applied(update)
        return update.result

    def _apply(self, update: PendingUpdate) -> None:
        """Write a validated update into the store."""
        for record in update.commitments:
            self.commitments[record.lp] = record
        for call in update.calls:
            existing = self.calls.get(call.lp, ())
            if call.call_id == len(existing):
                existing = existing + (call,)
            else:
                existing = existing[:call.call_id] + (call,) + existing[call.call_id + 1:]
            self.calls[call.lp] = existing
        self._custodied_balance += update.custody_delta
        self._unattributed_received += update.unattributed_delta
        for key, value in update.settings:
            setattr(self, _SETTINGS[key], value)

    def _snapshot(self) -> Tuple[Any, ...]:
        # Records are frozen and call lists are tuples, so shallow copies suffice.
        return (
            dict(self.commitments),
            dict(self.calls),
            self._custodied_balance,
            self._unattributed_received,
            self._minimum_commitment_usd,
            self._paused,
            self.access.admin_set,
            len(self.event_log),
        )

    def _restore(self, snapshot: Tuple[Any, ...]) -> None:
        (self.commitments, self.calls, self._custodied_balance,
         self._unattributed_received, self._minimum_commitment_usd,
         self._paused, admin_set, event_count) = snapshot
        self.access._restore(admin_set)
        self.event_log.truncate(event_count)

    def _report_applied(self, update: PendingUpdate) -> None:
        if not self.verbose:
            return
        published = self.event_log.events()[-len(update.events):] if update.events else []
        detail = ", ".join(repr(e) for e in published) or "no change"
        print(f"✓ {update.operation}: {detail}")

    def _report_rejected(self, operation: str, exc: LedgerError) -> None:
        if self.verbose:
            print(f"✗ REJECTED {operation}: {exc.reason.value}: {exc}")

    # ========================================================================
    # VERIFICATION
    # ========================================================================

    def verify_invariants(self) -> Dict[str, Any]:
        """
        Check every ledger invariant against the current state.

        Checks:
        - admins non-empty, default admin is an admin
        - total_paid within [0, commitment + penalties]
        - tranche paid amounts within [0, amount]
        - live tranche amounts sum to the commitment
        - tranche and call deadlines strictly increasing
        - call paid amounts within [0, amount]
        - revoked records hold zero amounts
        - custody non-negative

        Returns:
            Dict with keys:
            - 'valid': bool - True if no discrepancy was found
            - 'discrepancies': List[Dict] - one entry per violation
              (check, subject, detail)

        Example:
            result = ledger.verify_invariants()
            assert result['valid'], result['discrepancies']
        """
        discrepancies: List[Dict[str, Any]] = []

        def flag(check: str, subject: str, detail: str) -> None:
            discrepancies.append({'check': check, 'subject': subject, 'detail': detail})

        admin_set = self.access.admin_set
        if not admin_set.admins:
            flag('admins_non_empty', 'access', 'admin set is empty')
        if admin_set.default_admin not in admin_set.admins:
            flag('default_admin_member', 'access', f'{admin_set.default_admin} is not an admin')

        for lp in sorted(self.commitments):
            record = self.commitments[lp]
            if record.total_paid < ZERO:
                flag('total_paid_non_negative', lp, f'total_paid={record.total_paid}')
            if record.total_paid > record.obligation:
                flag('total_paid_within_obligation', lp,
                     f'total_paid={record.total_paid} > obligation={record.obligation}')
            if record.revoked and (record.commitment_amount != ZERO
                                   or record.total_paid != ZERO or record.penalties != ZERO):
                flag('revoked_zeroed', lp, f'{record!r}')

            previous = None
            for tranche in record.tranches:
                if not ZERO <= tranche.paid_amount <= tranche.amount:
                    flag('tranche_paid_within_amount', f'{lp}#{tranche.index}', repr(tranche))
                if previous is not None and tranche.deadline <= previous:
                    flag('tranche_deadlines_increasing', f'{lp}#{tranche.index}',
                         f'{tranche.deadline} <= {previous}')
                previous = tranche.deadline
            if record.is_active and record.tranches:
                total = sum((t.amount for t in record.tranches), ZERO)
                if total != record.commitment_amount:
                    flag('tranches_sum_to_commitment', lp,
                         f'{total} != {record.commitment_amount}')

        for lp in sorted(self.calls):
            previous = None
            epoch = None
            for call in self.calls[lp]:
                if call.epoch != epoch:
                    # ordering restarts with each commitment epoch
                    previous, epoch = None, call.epoch
                if not ZERO <= call.paid_amount <= call.amount:
                    flag('call_paid_within_amount', f'{lp}#{call.call_id}', repr(call))
                if previous is not None and call.deadline <= previous:
                    flag('call_deadlines_increasing', f'{lp}#{call.call_id}',
                         f'{call.deadline} <= {previous}')
                previous = call.deadline

        if self._custodied_balance < ZERO:
            flag('custody_non_negative', 'custody', f'balance={self._custodied_balance}')

        return {
            'valid': len(discrepancies) == 0,
            'discrepancies': discrepancies,
        }

    # ========================================================================
    # CLONING
    # ========================================================================

    def clone(self) -> CapitalLedger:
        """
        Create an independent copy of this ledger.

        State (commitments, calls, custody, settings, admins, events) is copied.
        The oracle and sink are shared: they are external collaborators.
        A LogicalClock is copied; any other clock is shared. Subscribers are
        not carried over.
        """
        cloned = CapitalLedger.__new__(CapitalLedger)
        cloned.name = self.name
        cloned.access = AccessControl(self.access.default_admin, self.access.admins)
        cloned.oracle = self.oracle
        if isinstance(self._clock, LogicalClock):
            cloned._clock = LogicalClock(self._clock.now())
        else:
            cloned._clock = self._clock
        cloned.sink = self.sink
        cloned.verbose = self.verbose

        cloned.commitments = dict(self.commitments)
        cloned.calls = dict(self.calls)
        cloned._custodied_balance = self._custodied_balance
        cloned._unattributed_received = self._unattributed_received
        cloned._minimum_commitment_usd = self._minimum_commitment_usd
        cloned._paused = self._paused
        cloned.event_log = self.event_log.copy()

        cloned._lock = threading.Lock()
        cloned._owner = None
        cloned._active_operation = None
        return cloned

    def __repr__(self) -> str:
        return (f"CapitalLedger({self.name}: {len(self.list_lps())} LPs, "
                f"custody={self._custodied_balance}, paused={self._paused})")
