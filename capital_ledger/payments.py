"""
payments.py - Payment application

compute_payment() is the only path that credits an LP with paid-in value.
It checks, in order:

    1. lp is a live LP                         -> UnknownLP
    2. the tranche / call exists               -> UnknownCall
    3. amount is positive                      -> InvalidAmount
    4. a call is not executed                  -> AlreadyExecuted
    5. a tranche deadline has not passed       -> Expired
    6. paid_amount + amount <= required amount -> Overpayment
    7. total_paid + amount <= commitment + penalties -> Overpayment

Tranche deadlines are payment cutoffs: a payment at exactly the deadline is
accepted, one after it is refused.
"""

from __future__ import annotations
from dataclasses import replace
from datetime import datetime
from decimal import Decimal

from .core import (
    LedgerView, PendingUpdate, Commitment, ObligationKind,
    EventType, pending_event, build_update, require_live_commitment, replace_tranche,
    AlreadyExecuted, Expired, Overpayment, UnknownCall,
    to_amount,
)
from .scheduler import get_open_call


def _check_ceiling(record: Commitment, amount: Decimal) -> None:
    if record.total_paid + amount > record.obligation:
        raise Overpayment(
            f"payment of {amount} would bring {record.lp} to {record.total_paid + amount}, "
            f"above its obligation of {record.obligation}"
        )


def compute_payment(
    view: LedgerView,
    payer: str,
    lp: str,
    index: int,
    amount: Decimal,
    now: datetime,
    kind: ObligationKind = ObligationKind.TRANCHE,
) -> PendingUpdate:
    """
    Validate a payment and build its ledger update.

    Args:
        view: Read-only ledger access
        payer: Identity sending the value (may differ from lp)
        lp: LP credited with the payment
        index: Tranche index or cash call id
        amount: Value paid
        now: Clock reading for this operation
        kind: Whether index refers to a tranche or a cash call

    Returns:
        PendingUpdate crediting the obligation and the LP, adding the amount
        to custody and emitting PaymentMade.
    """
    record = require_live_commitment(view, lp)

    if kind == ObligationKind.TRANCHE:
        if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < len(record.tranches):
            raise UnknownCall(f"{lp!r} has no tranche {index!r}")
        tranche = record.tranches[index]
        amount = to_amount(amount)
        if now > tranche.deadline:
            raise Expired(f"tranche {lp}#{index} closed at {tranche.deadline}")
        if tranche.paid_amount + amount > tranche.amount:
            raise Overpayment(
                f"tranche {lp}#{index} owes {tranche.outstanding}, payment was {amount}"
            )
        _check_ceiling(record, amount)

        paid = replace(tranche, paid_amount=tranche.paid_amount + amount)
        new_record = replace(
            record,
            tranches=replace_tranche(record.tranches, paid),
            total_paid=record.total_paid + amount,
        )
        calls = []
        required = paid.amount
        obligation_paid = paid.paid_amount

    elif kind == ObligationKind.CASH_CALL:
        call = get_open_call(view, lp, index)
        amount = to_amount(amount)
        if call.executed:
            raise AlreadyExecuted(f"cash call {lp}#{index} is executed; payment window closed")
        if call.paid_amount + amount > call.amount:
            raise Overpayment(
                f"cash call {lp}#{index} owes {call.outstanding}, payment was {amount}"
            )
        _check_ceiling(record, amount)

        paid = replace(call, paid_amount=call.paid_amount + amount)
        new_record = replace(record, total_paid=record.total_paid + amount)
        calls = [paid]
        required = paid.amount
        obligation_paid = paid.paid_amount

    else:
        raise ValueError(f"unknown obligation kind {kind!r}")

    event = pending_event(
        EventType.PAYMENT_MADE,
        payer=payer,
        lp=lp,
        kind=kind.value,
        index=index,
        amount=amount,
        obligation_paid=obligation_paid,
        obligation_required=required,
        total_paid=new_record.total_paid,
        remaining_commitment=new_record.remaining_commitment,
    )
    return build_update(
        "apply_payment",
        commitments=[new_record],
        calls=calls,
        events=[event],
        custody_delta=amount,
        result=new_record,
    )
