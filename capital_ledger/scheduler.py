"""
scheduler.py - Cash call scheduling

Cash calls are kept per LP in an append-only list; call ids are dense and
increasing per LP. Within one commitment epoch deadlines are strictly increasing
in creation order, so calls fall due in the order they were issued and a
later-due call can never mask an earlier one.

Deadline semantics for cash calls: the deadline is the due date. A call is
payable until it is executed, and may only be executed at or after its
deadline. Execution closes the payment window; reversal reopens it.

All functions take LedgerView (read-only) and return immutable results.
"""

from __future__ import annotations
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Tuple

from .core import (
    LedgerView, PendingUpdate, CashCall,
    EventType, pending_event, build_update, require_live_commitment,
    AlreadyExecuted, DeadlineOutOfRange, NotExecuted, UnknownCall,
    to_amount, require_comparable_time,
)


def get_call(view: LedgerView, lp: str, call_id: int) -> CashCall:
    """
    Look up a call by id.

    Raises:
        UnknownCall: If the LP has no call with that id.
    """
    calls = view.get_calls(lp)
    if isinstance(call_id, bool) or not isinstance(call_id, int) or not 0 <= call_id < len(calls):
        raise UnknownCall(f"{lp!r} has no cash call {call_id!r}")
    return calls[call_id]


def is_open_call(view: LedgerView, call: CashCall) -> bool:
    """True iff the call belongs to its LP's live commitment."""
    record = view.get_commitment(call.lp)
    return record is not None and record.is_active and call.epoch == record.epoch


def get_open_call(view: LedgerView, lp: str, call_id: int) -> CashCall:
    """
    Look up a call of the LP's live commitment.

    Raises:
        UnknownCall: If the call does not exist, or was issued under a
                     commitment that has since been revoked.
    """
    call = get_call(view, lp, call_id)
    if not is_open_call(view, call):
        raise UnknownCall(f"cash call {lp}#{call_id} belongs to a revoked commitment")
    return call


def last_call_deadline(view: LedgerView, lp: str, epoch: int) -> Optional[datetime]:
    """Deadline of the LP's latest call in the given epoch, if any."""
    for call in reversed(view.get_calls(lp)):
        if call.epoch == epoch:
            return call.deadline
    return None


def compute_create_call(
    view: LedgerView,
    lp: str,
    amount: Decimal,
    deadline: datetime,
    now: datetime,
) -> PendingUpdate:
    """
    Validate and append a new cash call.

    Returns:
        PendingUpdate storing the call; result is the new call id.

    Raises:
        UnknownLP: lp is not registered
        InvalidAmount: amount is not positive
        DeadlineOutOfRange: deadline not in the future, after the LP's end
                            time, or not after the previous call's deadline
    """
    record = require_live_commitment(view, lp)
    amount = to_amount(amount)

    require_comparable_time(deadline, now, DeadlineOutOfRange, "deadline")
    if deadline <= now:
        raise DeadlineOutOfRange(f"deadline {deadline} is not in the future")
    if deadline > record.end_time:
        raise DeadlineOutOfRange(f"deadline {deadline} is after end time {record.end_time}")
    previous = last_call_deadline(view, lp, record.epoch)
    if previous is not None and deadline <= previous:
        raise DeadlineOutOfRange(
            f"deadline {deadline} must be after previous call deadline {previous}"
        )

    call_id = len(view.get_calls(lp))
    call = CashCall(
        lp=lp,
        call_id=call_id,
        amount=amount,
        deadline=deadline,
        created_at=now,
        epoch=record.epoch,
    )
    event = pending_event(
        EventType.CASH_CALL_CREATED,
        lp=lp,
        call_id=call_id,
        amount=amount,
        deadline=deadline,
    )
    return build_update("create_call", calls=[call], events=[event], result=call_id)


def compute_execute_call(
    view: LedgerView,
    lp: str,
    call_id: int,
    now: datetime,
) -> PendingUpdate:
    """
    Mark a due call executed.

    Raises:
        UnknownCall: call does not exist or its commitment was revoked
        AlreadyExecuted: call is already executed
        DeadlineOutOfRange: call is not yet due
    """
    call = get_open_call(view, lp, call_id)
    if call.executed:
        raise AlreadyExecuted(f"cash call {lp}#{call_id} is already executed")
    if now < call.deadline:
        raise DeadlineOutOfRange(f"cash call {lp}#{call_id} is not due until {call.deadline}")

    event = pending_event(
        EventType.CASH_CALL_EXECUTED,
        lp=lp,
        call_id=call_id,
        amount=call.amount,
        paid_amount=call.paid_amount,
    )
    return build_update("execute_call", calls=[replace(call, executed=True)], events=[event])


def compute_reverse_execution(
    view: LedgerView,
    lp: str,
    call_id: int,
) -> PendingUpdate:
    """
    Clear a call's executed flag, reopening it for payment.

    Raises:
        UnknownCall: call does not exist or its commitment was revoked
        NotExecuted: call was not executed
    """
    call = get_open_call(view, lp, call_id)
    if not call.executed:
        raise NotExecuted(f"cash call {lp}#{call_id} is not executed")

    event = pending_event(EventType.CASH_CALL_EXECUTION_REVERTED, lp=lp, call_id=call_id)
    return build_update("reverse_execution", calls=[replace(call, executed=False)], events=[event])


def is_call_due(view: LedgerView, lp: str, call_id: int, as_of: datetime) -> bool:
    """
    True iff the call is open, not executed, and its deadline has been reached.

    Calls of a revoked commitment are never due.

    Raises:
        UnknownCall: If the LP has no call with that id.
    """
    call = get_call(view, lp, call_id)
    return is_open_call(view, call) and call.is_due(as_of)


def due_calls(view: LedgerView, lps: List[str], as_of: datetime) -> List[CashCall]:
    """
    All due calls for the given LPs, ordered by deadline then LP.

    Calls from a closed (revoked) epoch are skipped.
    """
    due: List[Tuple[datetime, str, int, CashCall]] = []
    for lp in lps:
        for call in view.get_calls(lp):
            if is_open_call(view, call) and call.is_due(as_of):
                due.append((call.deadline, lp, call.call_id, call))
    due.sort(key=lambda item: item[:3])
    return [item[3] for item in due]
