"""
Core types and pure functions for the capital-commitment ledger.

This module provides the foundational data structures and protocols:
1. Protocols: LedgerView for read-only ledger access
2. Immutable records: TrancheSpec, Tranche, Commitment, CashCall
3. Intent objects: PendingEvent, PendingUpdate, build_update
4. Exceptions: LedgerError and one subclass per rejection reason
5. Helpers: identity and amount validation

All functions in this module are pure and operate on read-only views.
No function can mutate ledger state directly.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_DOWN, ROUND_HALF_EVEN, getcontext
from enum import Enum
from typing import (
    Any, Dict, List, Optional, Protocol, Tuple, Type, runtime_checkable
)


# ============================================================================
# DECIMAL CONTEXT CONFIGURATION
# ============================================================================
#
# Amounts are Decimal throughout. Precision 50 comfortably holds 18-decimal
# internal amounts multiplied by 18-decimal rates.
#
_LEDGER_DECIMAL_CONTEXT = getcontext()
_LEDGER_DECIMAL_CONTEXT.prec = 50
_LEDGER_DECIMAL_CONTEXT.rounding = ROUND_HALF_EVEN


# ============================================================================
# CONSTANTS
# ============================================================================

# The empty identity. Never a valid LP, admin or recipient.
ZERO_IDENTITY = ""

# Oracle rates arrive with 8 decimal places; the ledger works in 18.
ORACLE_DECIMALS = 8
INTERNAL_DECIMALS = 18
WAD = 10 ** INTERNAL_DECIMALS

# Quantizer for derived amounts (tranche splits).
AMOUNT_QUANTUM = Decimal(1).scaleb(-INTERNAL_DECIMALS)

# Minimum commitment value in USD unless an admin changes it.
DEFAULT_MINIMUM_COMMITMENT_USD = Decimal("1000")

# Tranche percentages must sum to exactly this.
FULL_PERCENTAGE = Decimal("100")

ZERO = Decimal("0")


# ============================================================================
# ENUMS
# ============================================================================

class Reason(Enum):
    """Discrete rejection reason carried by every LedgerError."""
    UNAUTHORIZED = "Unauthorized"
    INVALID_PARTY = "InvalidParty"
    UNKNOWN_LP = "UnknownLP"
    ALREADY_REGISTERED = "AlreadyRegistered"
    INVALID_SCHEDULE = "InvalidSchedule"
    BELOW_MINIMUM = "BelowMinimum"
    INVALID_AMOUNT = "InvalidAmount"
    DEADLINE_OUT_OF_RANGE = "DeadlineOutOfRange"
    UNKNOWN_CALL = "UnknownCall"
    ALREADY_EXECUTED = "AlreadyExecuted"
    NOT_EXECUTED = "NotExecuted"
    EXPIRED = "Expired"
    OVERPAYMENT = "Overpayment"
    INSUFFICIENT_FUNDS = "InsufficientFunds"
    INVALID_RECIPIENT = "InvalidRecipient"
    INVALID_PRICE_DATA = "InvalidPriceData"
    PAUSED = "Paused"
    REENTRANT_CALL = "ReentrantCall"


class ObligationKind(Enum):
    """What a payment is applied against."""
    TRANCHE = "tranche"
    CASH_CALL = "cash_call"


class EventType(Enum):
    """Notification types published on the event stream."""
    COMMITMENT_SET = "CommitmentSet"
    PAYMENT_MADE = "PaymentMade"
    CASH_CALL_CREATED = "CashCallCreated"
    CASH_CALL_EXECUTED = "CashCallExecuted"
    CASH_CALL_EXECUTION_REVERTED = "CashCallExecutionReverted"
    PENALTY_APPLIED = "PenaltyApplied"
    TRANCHES_FORFEITED = "TranchesForfeited"
    ACCESS_REVOKED = "AccessRevoked"
    WITHDRAWAL = "Withdrawal"
    DEPOSIT = "Deposit"
    ADMIN_ADDED = "AdminAdded"
    ADMIN_REMOVED = "AdminRemoved"
    DEFAULT_ADMIN_CHANGED = "DefaultAdminChanged"
    MINIMUM_COMMITMENT_UPDATED = "MinimumCommitmentUpdated"
    PAUSED = "Paused"
    UNPAUSED = "Unpaused"


# ============================================================================
# EXCEPTIONS
# ============================================================================

class LedgerError(Exception):
    """Base exception for all ledger rejections."""
    reason: Reason = None

    def __init__(self, message: str = ""):
        super().__init__(message or (self.reason.value if self.reason else ""))


class Unauthorized(LedgerError):
    """Raised when the caller lacks the role an operation requires."""
    reason = Reason.UNAUTHORIZED


class InvalidParty(LedgerError):
    """Raised on a zero identity or an identity in the wrong membership state."""
    reason = Reason.INVALID_PARTY


class AlreadyRegistered(InvalidParty):
    """Raised when registering an identity that is already an LP."""
    reason = Reason.ALREADY_REGISTERED


class UnknownLP(LedgerError):
    """Raised when the target identity has no live commitment."""
    reason = Reason.UNKNOWN_LP


class InvalidSchedule(LedgerError):
    """Raised when a tranche schedule or end time is malformed."""
    reason = Reason.INVALID_SCHEDULE


class BelowMinimum(LedgerError):
    """Raised when a commitment is worth less than the USD minimum."""
    reason = Reason.BELOW_MINIMUM


class InvalidAmount(LedgerError):
    """Raised when an amount is zero, negative, or not a finite number."""
    reason = Reason.INVALID_AMOUNT


class DeadlineOutOfRange(LedgerError):
    """Raised when a call deadline breaks ordering or timing rules."""
    reason = Reason.DEADLINE_OUT_OF_RANGE


class UnknownCall(LedgerError):
    """Raised when a call or tranche index does not exist."""
    reason = Reason.UNKNOWN_CALL


class AlreadyExecuted(LedgerError):
    """Raised when executing or paying a call that is already executed."""
    reason = Reason.ALREADY_EXECUTED


class NotExecuted(LedgerError):
    """Raised when reversing a call that was never executed."""
    reason = Reason.NOT_EXECUTED


class Expired(LedgerError):
    """Raised when paying a tranche after its deadline."""
    reason = Reason.EXPIRED


class Overpayment(LedgerError):
    """Raised when a payment would exceed what is owed."""
    reason = Reason.OVERPAYMENT


class InsufficientFunds(LedgerError):
    """Raised when custody holds less than a requested disbursement."""
    reason = Reason.INSUFFICIENT_FUNDS


class InvalidRecipient(LedgerError):
    """Raised when a disbursement targets the zero identity."""
    reason = Reason.INVALID_RECIPIENT


class InvalidPriceData(LedgerError):
    """Raised when the oracle returns no rate or a non-positive rate."""
    reason = Reason.INVALID_PRICE_DATA


class Paused(LedgerError):
    """Raised by mutating operations while the ledger is paused."""
    reason = Reason.PAUSED


class ReentrantCall(LedgerError):
    """Raised when a mutating operation is entered from inside another."""
    reason = Reason.REENTRANT_CALL


# ============================================================================
# VALIDATION HELPERS
# ============================================================================

def is_zero_identity(identity: Optional[str]) -> bool:
    """True for None, the empty string, or whitespace."""
    return identity is None or not str(identity).strip()


def to_amount(value: Any, allow_zero: bool = False) -> Decimal:
    """
    Coerce an int or Decimal to a validated Decimal amount.

    Floats are refused: their binary representation cannot round-trip
    ledger amounts exactly.

    Raises:
        InvalidAmount: If the value is not an int/Decimal, is not finite,
                       is negative, or is zero when allow_zero is False.
    """
    if isinstance(value, bool) or not isinstance(value, (int, Decimal)):
        raise InvalidAmount(f"amount must be int or Decimal, got {type(value).__name__}")
    amount = Decimal(value)
    if amount.is_nan() or amount.is_infinite():
        raise InvalidAmount(f"amount must be finite, got {amount}")
    if amount < ZERO or (amount == ZERO and not allow_zero):
        raise InvalidAmount(f"amount must be positive, got {amount}")
    return amount


def quantize_amount(value: Decimal) -> Decimal:
    """Truncate a derived amount to the internal 18-decimal precision."""
    return value.quantize(AMOUNT_QUANTUM, rounding=ROUND_DOWN)


def is_aware(moment: datetime) -> bool:
    return moment.tzinfo is not None and moment.utcoffset() is not None


def require_comparable_time(
    moment: datetime,
    now: datetime,
    error: Type[LedgerError],
    label: str,
) -> None:
    """
    Check that moment can be compared with the clock reading.

    A ledger runs either on naive datetimes (LogicalClock with a naive
    start) or on timezone-aware ones (SystemClock, UTC). Mixing the two
    is refused with the given error rather than a TypeError.
    """
    if not isinstance(moment, datetime):
        raise error(f"{label} must be a datetime, got {type(moment).__name__}")
    if is_aware(moment) != is_aware(now):
        kind = "timezone-aware" if is_aware(now) else "naive"
        raise error(f"{label} {moment} must be {kind} like the ledger clock ({now})")


# ============================================================================
# RECORDS
# ============================================================================

@dataclass(frozen=True, slots=True)
class TrancheSpec:
    """
    Schedule descriptor for one tranche, before materialization.

    Attributes:
        percentage: Share of the commitment due in this tranche (0 < p <= 100).
        period: Deadline offset from the registration time.
        deadline: Absolute deadline. Exactly one of period/deadline is set.
    """
    percentage: Decimal
    period: Optional[timedelta] = None
    deadline: Optional[datetime] = None

    def __post_init__(self):
        if not isinstance(self.percentage, (int, Decimal)) or isinstance(self.percentage, bool):
            raise ValueError(f"TrancheSpec percentage must be Decimal, got {type(self.percentage)}")
        if (self.period is None) == (self.deadline is None):
            raise ValueError("TrancheSpec needs exactly one of period or deadline")

    def resolve_deadline(self, registered_at: datetime) -> datetime:
        if self.deadline is not None:
            return self.deadline
        return registered_at + self.period


@dataclass(frozen=True, slots=True)
class Tranche:
    """
    A materialized tranche: a percentage slice of a commitment with a
    payment cutoff. Payments after `deadline` are refused.
    """
    index: int
    percentage: Decimal
    amount: Decimal
    deadline: datetime
    paid_amount: Decimal = ZERO

    @property
    def outstanding(self) -> Decimal:
        return self.amount - self.paid_amount

    def __repr__(self) -> str:
        return (f"Tranche(#{self.index} {self.percentage}% "
                f"{self.paid_amount}/{self.amount} by {self.deadline.isoformat()})")


@dataclass(frozen=True, slots=True)
class Commitment:
    """
    One LP's commitment record.

    Attributes:
        lp: LP identity.
        commitment_amount: Promised total in native units (zero = not an LP).
        total_paid: Cumulative credited payments.
        penalties: Cumulative obligation added by penalties.
        end_time: No call may be scheduled after this time.
        tranches: Materialized schedule, deadlines strictly increasing.
        registered_at: Registration time of the current epoch.
        epoch: Registration generation, incremented on each registration.
        revoked: True once access has been revoked (tombstone).
    """
    lp: str
    commitment_amount: Decimal
    total_paid: Decimal
    penalties: Decimal
    end_time: datetime
    tranches: Tuple[Tranche, ...]
    registered_at: datetime
    epoch: int = 1
    revoked: bool = False

    @property
    def is_active(self) -> bool:
        return self.commitment_amount > ZERO

    @property
    def obligation(self) -> Decimal:
        """Commitment plus penalties: the ceiling on total_paid."""
        return self.commitment_amount + self.penalties

    @property
    def remaining_commitment(self) -> Decimal:
        """Outstanding obligation, clamped at zero."""
        return max(ZERO, self.obligation - self.total_paid)

    def __repr__(self) -> str:
        status = "revoked" if self.revoked else f"epoch={self.epoch}"
        return (f"Commitment({self.lp}: paid {self.total_paid}/{self.commitment_amount}"
                f" +pen {self.penalties}, {len(self.tranches)} tranches, {status})")


@dataclass(frozen=True, slots=True)
class CashCall:
    """
    An admin-issued request for an LP to pay `amount`.

    The deadline is the due date: payments are accepted until the call is
    executed, and execution is allowed only at or after the deadline.
    """
    lp: str
    call_id: int
    amount: Decimal
    deadline: datetime
    created_at: datetime
    epoch: int
    paid_amount: Decimal = ZERO
    executed: bool = False

    @property
    def outstanding(self) -> Decimal:
        return self.amount - self.paid_amount

    def is_due(self, as_of: datetime) -> bool:
        return not self.executed and as_of >= self.deadline

    def __repr__(self) -> str:
        state = "executed" if self.executed else "open"
        return (f"CashCall({self.lp}#{self.call_id} {self.paid_amount}/{self.amount}"
                f" due {self.deadline.isoformat()}, {state})")


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class LedgerView(Protocol):
    """
    Read-only interface to ledger state.

    Compute functions accept a LedgerView to declare their read-only intent.
    CapitalLedger implements this protocol; tests use FakeView.
    """

    @property
    def current_time(self) -> datetime:
        """Return the current clock reading."""
        ...

    @property
    def minimum_commitment_usd(self) -> Decimal:
        """Return the USD value a new commitment must reach."""
        ...

    @property
    def custodied_balance(self) -> Decimal:
        """Return the value held by the ledger."""
        ...

    def get_commitment(self, lp: str) -> Optional[Commitment]:
        """Return the commitment record (live or tombstone), or None."""
        ...

    def get_calls(self, lp: str) -> Tuple[CashCall, ...]:
        """Return every cash call for an LP in creation order."""
        ...

    def is_admin(self, identity: str) -> bool:
        """Return whether identity is an admin."""
        ...


# ============================================================================
# PENDING UPDATES
# ============================================================================

@dataclass(frozen=True, slots=True)
class PendingEvent:
    """An event to publish once its update commits (timestamp added then)."""
    event_type: EventType
    params: Tuple[Tuple[str, Any], ...] = ()

    @property
    def params_dict(self) -> Dict[str, Any]:
        return dict(self.params)


def pending_event(event_type: EventType, **params: Any) -> PendingEvent:
    """Build a PendingEvent with params frozen in key order."""
    return PendingEvent(event_type, tuple(sorted(params.items())))


@dataclass(frozen=True, slots=True)
class PendingUpdate:
    """
    A validated state change, before commit - represents INTENT.

    Produced by compute functions and applied by CapitalLedger in one step.

    Attributes:
        operation: Name of the operation that produced this update.
        commitments: Commitment records to store (replacing by lp).
        calls: Cash call records to store (replacing by (lp, call_id)).
        events: Events to publish after commit, in order.
        custody_delta: Change to the custodied balance.
        unattributed_delta: Change to value received outside apply_payment.
        settings: Ledger settings to overwrite, as (name, value) pairs.
        result: Value returned to the caller (e.g. a new call id).
    """
    operation: str
    commitments: Tuple[Commitment, ...] = ()
    calls: Tuple[CashCall, ...] = ()
    events: Tuple[PendingEvent, ...] = ()
    custody_delta: Decimal = ZERO
    unattributed_delta: Decimal = ZERO
    settings: Tuple[Tuple[str, Any], ...] = ()
    result: Any = None

    def is_empty(self) -> bool:
        return (not self.commitments and not self.calls and not self.settings
                and self.custody_delta == ZERO and self.unattributed_delta == ZERO)

    def __repr__(self) -> str:
        return (f"PendingUpdate({self.operation}: {len(self.commitments)} commitments, "
                f"{len(self.calls)} calls, {len(self.events)} events)")


def build_update(
    operation: str,
    commitments: Optional[List[Commitment]] = None,
    calls: Optional[List[CashCall]] = None,
    events: Optional[List[PendingEvent]] = None,
    custody_delta: Decimal = ZERO,
    unattributed_delta: Decimal = ZERO,
    settings: Optional[Dict[str, Any]] = None,
    result: Any = None,
) -> PendingUpdate:
    """
    Build a PendingUpdate from lists.

    This is the standard way compute functions return their changes.

    Example:
        def compute_bump(view, lp):
            old = view.get_commitment(lp)
            new = replace(old, penalties=old.penalties + 1)
            return build_update("bump", commitments=[new])
    """
    return PendingUpdate(
        operation=operation,
        commitments=tuple(commitments or ()),
        calls=tuple(calls or ()),
        events=tuple(events or ()),
        custody_delta=custody_delta,
        unattributed_delta=unattributed_delta,
        settings=tuple(sorted((settings or {}).items())),
        result=result,
    )


def require_live_commitment(view: LedgerView, lp: str) -> Commitment:
    """
    Return the LP's live commitment.

    Raises:
        UnknownLP: If lp has never registered or has been revoked.
    """
    record = view.get_commitment(lp)
    if record is None or not record.is_active:
        raise UnknownLP(f"{lp!r} is not a registered LP")
    return record


def replace_tranche(tranches: Tuple[Tranche, ...], tranche: Tranche) -> Tuple[Tranche, ...]:
    """Return a copy of tranches with the entry at tranche.index swapped."""
    return tuple(tranche if t.index == tranche.index else t for t in tranches)


