"""
registry.py - Commitment registration and tranche schedules

This module provides commitment registration as pure functions:
1. is_lp() - membership predicate
2. materialize_schedule() - turn TrancheSpecs into Tranches
3. fixed_amount_schedule() - migrate fixed-amount schedules to percentages
4. compute_registration() - validate and build a new Commitment
5. compute_minimum_update() - change the USD minimum

Schedules are percentage-of-commitment. Each tranche's amount is derived
from the commitment; the final tranche absorbs truncation so tranche
amounts always sum to exactly the commitment.

All functions take LedgerView (read-only) and return immutable results.
"""

from __future__ import annotations
from datetime import datetime, timedelta
from decimal import Decimal
from typing import List, Optional, Sequence, Tuple

from .core import (
    LedgerView, PendingUpdate, Commitment, Tranche, TrancheSpec,
    EventType, pending_event, build_update,
    FULL_PERCENTAGE, ZERO,
    AlreadyRegistered, BelowMinimum, InvalidParty, InvalidSchedule,
    is_zero_identity, to_amount, quantize_amount, require_comparable_time,
)
from .price_oracle import PriceOracle, read_rate, usd_value


def is_lp(view: LedgerView, identity: str) -> bool:
    """True iff identity holds a commitment greater than zero."""
    record = view.get_commitment(identity)
    return record is not None and record.is_active


def materialize_schedule(
    commitment_amount: Decimal,
    schedule: Sequence[TrancheSpec],
    registered_at: datetime,
    end_time: datetime,
) -> Tuple[Tranche, ...]:
    """
    Build tranches from schedule descriptors.

    An empty schedule yields no tranches (the LP is funded by cash calls only).

    Raises:
        InvalidSchedule: If percentages are not all positive, do not sum to
                         exactly 100, or deadlines are not strictly increasing,
                         strictly in the future, and no later than end_time.
    """
    if not schedule:
        return ()

    total = sum((Decimal(spec.percentage) for spec in schedule), ZERO)
    if total != FULL_PERCENTAGE:
        raise InvalidSchedule(f"tranche percentages sum to {total}, expected {FULL_PERCENTAGE}")

    tranches: List[Tranche] = []
    allocated = ZERO
    previous_deadline: Optional[datetime] = None
    last = len(schedule) - 1

    for index, spec in enumerate(schedule):
        percentage = Decimal(spec.percentage)
        if percentage <= ZERO:
            raise InvalidSchedule(f"tranche {index} percentage must be positive, got {percentage}")

        deadline = spec.resolve_deadline(registered_at)
        require_comparable_time(deadline, registered_at, InvalidSchedule, f"tranche {index} deadline")
        if deadline <= registered_at:
            raise InvalidSchedule(f"tranche {index} deadline {deadline} is not in the future")
        if deadline > end_time:
            raise InvalidSchedule(f"tranche {index} deadline {deadline} is after end time {end_time}")
        if previous_deadline is not None and deadline <= previous_deadline:
            raise InvalidSchedule(
                f"tranche {index} deadline {deadline} does not follow {previous_deadline}"
            )
        previous_deadline = deadline

        if index == last:
            amount = commitment_amount - allocated
        else:
            amount = quantize_amount(commitment_amount * percentage / FULL_PERCENTAGE)
        allocated += amount

        tranches.append(Tranche(
            index=index,
            percentage=percentage,
            amount=amount,
            deadline=deadline,
        ))

    return tuple(tranches)


def fixed_amount_schedule(
    commitment_amount: Decimal,
    installments: Sequence[Tuple[Decimal, timedelta]],
) -> List[TrancheSpec]:
    """
    Convert (amount, period) installments into percentage TrancheSpecs.

    Example:
        fixed_amount_schedule(Decimal("10"), [(Decimal("4"), timedelta(days=30)),
                                              (Decimal("6"), timedelta(days=60))])
        # -> [TrancheSpec(40, 30d), TrancheSpec(60, 60d)]

    Raises:
        InvalidSchedule: If the installments do not add up to the commitment.
    """
    commitment_amount = to_amount(commitment_amount)
    total = sum((Decimal(amount) for amount, _ in installments), ZERO)
    if total != commitment_amount:
        raise InvalidSchedule(f"installments sum to {total}, commitment is {commitment_amount}")

    specs = []
    allocated = ZERO
    for i, (amount, period) in enumerate(installments):
        if i == len(installments) - 1:
            percentage = FULL_PERCENTAGE - allocated
        else:
            percentage = Decimal(amount) * FULL_PERCENTAGE / commitment_amount
        allocated += percentage
        specs.append(TrancheSpec(percentage=percentage, period=period))
    return specs


def compute_registration(
    view: LedgerView,
    lp: str,
    amount: Decimal,
    schedule: Sequence[TrancheSpec],
    end_time: datetime,
    oracle: PriceOracle,
    now: datetime,
) -> PendingUpdate:
    """
    Validate and build a new commitment for lp.

    Checks run in the order of the Raises list below; the oracle is read
    once, after the identity and amount checks.

    Args:
        view: Read-only ledger access
        lp: Identity to register
        amount: Committed amount in native units
        schedule: Tranche descriptors (may be empty)
        end_time: Latest time any call may be scheduled for
        oracle: Native-to-USD price feed
        now: Clock reading for this operation

    Returns:
        PendingUpdate storing the commitment and emitting CommitmentSet.

    Raises:
        InvalidParty: lp is the zero identity
        AlreadyRegistered: lp already holds a live commitment
        InvalidAmount: amount is not positive
        InvalidPriceData: the oracle has no positive rate
        BelowMinimum: amount is worth less than the USD minimum
        InvalidSchedule: end_time or schedule is invalid
    """
    if is_zero_identity(lp):
        raise InvalidParty("cannot register the zero identity")
    previous = view.get_commitment(lp)
    if previous is not None and previous.is_active:
        raise AlreadyRegistered(f"{lp!r} is already registered")

    amount = to_amount(amount)
    value = usd_value(amount, read_rate(oracle))
    minimum = view.minimum_commitment_usd
    if value < minimum:
        raise BelowMinimum(f"commitment worth ${value} is below minimum ${minimum}")

    require_comparable_time(end_time, now, InvalidSchedule, "end time")
    if end_time <= now:
        raise InvalidSchedule(f"end time {end_time} is not in the future")

    tranches = materialize_schedule(amount, schedule, now, end_time)

    epoch = previous.epoch + 1 if previous is not None else 1
    record = Commitment(
        lp=lp,
        commitment_amount=amount,
        total_paid=ZERO,
        penalties=ZERO,
        end_time=end_time,
        tranches=tranches,
        registered_at=now,
        epoch=epoch,
    )
    event = pending_event(
        EventType.COMMITMENT_SET,
        lp=lp,
        amount=amount,
        usd_value=value,
        tranches=len(tranches),
        end_time=end_time,
        epoch=epoch,
    )
    return build_update("register_commitment", commitments=[record], events=[event], result=record)


def compute_minimum_update(view: LedgerView, usd_amount: Decimal) -> PendingUpdate:
    """
    Change the USD minimum for future registrations.

    Raises:
        InvalidAmount: usd_amount is zero or negative
    """
    usd_amount = to_amount(usd_amount)
    event = pending_event(
        EventType.MINIMUM_COMMITMENT_UPDATED,
        previous=view.minimum_commitment_usd,
        minimum=usd_amount,
    )
    return build_update(
        "set_minimum_commitment",
        events=[event],
        settings={"minimum_commitment_usd": usd_amount},
    )
