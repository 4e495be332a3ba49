"""
custody.py - Custodied value: deposits and disbursements

The ledger tracks one custodied balance. Value enters through apply_payment
(attributed to an LP) or deposit (unattributed), and leaves only through
withdraw, which hands the value to an external TransferSink.

Classes:
- TransferSink: Protocol for the value-transfer collaborator
- RecordingSink: In-memory sink that records every transfer

Functions:
- compute_deposit: Unattributed inbound value
- compute_withdrawal: Validate a disbursement
"""

from __future__ import annotations
from decimal import Decimal
from typing import List, Protocol, Tuple, runtime_checkable

from .core import (
    LedgerView, PendingUpdate,
    EventType, pending_event, build_update,
    InsufficientFunds, InvalidParty, InvalidRecipient,
    is_zero_identity, to_amount,
)


@runtime_checkable
class TransferSink(Protocol):
    """
    Value-transfer collaborator.

    transfer() is untrusted code: it may raise (aborting the withdrawal) or
    try to call back into the ledger (rejected with ReentrantCall).
    """

    def transfer(self, recipient: str, amount: Decimal) -> None:
        ...


class RecordingSink:
    """Sink that accepts every transfer and keeps a list of them."""

    def __init__(self):
        self.transfers: List[Tuple[str, Decimal]] = []

    def transfer(self, recipient: str, amount: Decimal) -> None:
        self.transfers.append((recipient, amount))

    def total_to(self, recipient: str) -> Decimal:
        return sum((a for r, a in self.transfers if r == recipient), Decimal("0"))

    def __repr__(self):
        return f"RecordingSink({len(self.transfers)} transfers)"


def compute_deposit(view: LedgerView, sender: str, amount: Decimal) -> PendingUpdate:
    """
    Accept value not tied to any commitment.

    Raises:
        InvalidParty: sender is the zero identity
        InvalidAmount: amount is not positive
    """
    if is_zero_identity(sender):
        raise InvalidParty("deposit sender cannot be the zero identity")
    amount = to_amount(amount)
    event = pending_event(EventType.DEPOSIT, sender=sender, amount=amount)
    return build_update(
        "deposit",
        events=[event],
        custody_delta=amount,
        unattributed_delta=amount,
    )


def compute_withdrawal(
    view: LedgerView,
    recipient: str,
    amount: Decimal,
    requested_by: str = "",
) -> PendingUpdate:
    """
    Validate a disbursement from custody.

    Raises:
        InvalidRecipient: recipient is the zero identity
        InvalidAmount: amount is not positive
        InsufficientFunds: custody holds less than amount
    """
    if is_zero_identity(recipient):
        raise InvalidRecipient("cannot disburse to the zero identity")
    amount = to_amount(amount)
    balance = view.custodied_balance
    if balance < amount:
        raise InsufficientFunds(f"custody holds {balance}, requested {amount}")
    event = pending_event(
        EventType.WITHDRAWAL,
        recipient=recipient,
        amount=amount,
        by=requested_by,
    )
    return build_update("withdraw", events=[event], custody_delta=-amount, result=amount)
