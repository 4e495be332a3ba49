"""
penalties.py - Penalties, forfeiture and revocation

A penalty applies up to three effects, in this order:

    Forfeiture  - when a tranche index is given, every tranche strictly before
                  it loses its payment credit: paid_amount drops to zero and
                  the same total is deducted from total_paid.
    Penalty     - penalty_amount is added to the LP's obligation, raising
                  remaining_commitment by that much. Zero is allowed and
                  still recorded.
    Revocation  - commitment, total_paid and penalties drop to zero; the record
                  stays as a tombstone and the identity may register again.

Custodied value is untouched: forfeited payments stay in the fund.
"""

from __future__ import annotations
from dataclasses import replace
from decimal import Decimal
from typing import List, Optional

from .core import (
    LedgerView, PendingUpdate, PendingEvent,
    EventType, pending_event, build_update, require_live_commitment,
    UnknownCall, ZERO,
    to_amount,
)


def compute_penalty(
    view: LedgerView,
    lp: str,
    tranche_index: Optional[int],
    penalty_amount: Decimal,
    revoke_access: bool,
    imposed_by: str = "",
) -> PendingUpdate:
    """
    Build the update for a penalty against lp.

    Args:
        view: Read-only ledger access
        lp: Penalized LP
        tranche_index: Missed tranche; earlier tranches are forfeited (None = no forfeiture)
        penalty_amount: Obligation added to the LP (>= 0)
        revoke_access: Also strip the LP of its standing
        imposed_by: Admin applying the penalty (recorded in events)

    Raises:
        UnknownLP: lp is not registered
        UnknownCall: tranche_index is out of range
        InvalidAmount: penalty_amount is negative
    """
    record = require_live_commitment(view, lp)
    penalty_amount = to_amount(penalty_amount, allow_zero=True)
    events: List[PendingEvent] = []

    if tranche_index is not None:
        if (isinstance(tranche_index, bool) or not isinstance(tranche_index, int)
                or not 0 <= tranche_index < len(record.tranches)):
            raise UnknownCall(f"{lp!r} has no tranche {tranche_index!r}")
        forfeited = sum(
            (t.paid_amount for t in record.tranches[:tranche_index]), ZERO
        )
        tranches = tuple(
            replace(t, paid_amount=ZERO) if t.index < tranche_index else t
            for t in record.tranches
        )
        record = replace(
            record,
            tranches=tranches,
            total_paid=record.total_paid - forfeited,
        )
        events.append(pending_event(
            EventType.TRANCHES_FORFEITED,
            lp=lp,
            before_tranche=tranche_index,
            forfeited_amount=forfeited,
            by=imposed_by,
        ))

    record = replace(record, penalties=record.penalties + penalty_amount)
    events.append(pending_event(
        EventType.PENALTY_APPLIED,
        lp=lp,
        amount=penalty_amount,
        total_penalties=record.penalties,
        remaining_commitment=record.remaining_commitment,
        by=imposed_by,
    ))

    if revoke_access:
        events.append(pending_event(
            EventType.ACCESS_REVOKED,
            lp=lp,
            commitment_amount=record.commitment_amount,
            total_paid=record.total_paid,
            epoch=record.epoch,
            by=imposed_by,
        ))
        record = replace(
            record,
            commitment_amount=ZERO,
            total_paid=ZERO,
            penalties=ZERO,
            revoked=True,
        )

    return build_update("apply_penalty", commitments=[record], events=events, result=record)
