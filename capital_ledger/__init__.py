"""
capital_ledger - Capital Commitment and Cash Call Ledger

Tracks limited-partner commitments to a fund, their tranche schedules,
administrator-issued cash calls, payments, penalties and disbursements.

Usage:
    from datetime import datetime, timedelta
    from decimal import Decimal
    from capital_ledger import CapitalLedger, StaticPriceOracle, TrancheSpec

    t0 = datetime(2025, 1, 1)
    ledger = CapitalLedger("fund_i", default_admin="gp",
                           oracle=StaticPriceOracle(2000_00000000),
                           initial_time=t0)

    # Register an LP with two 50% tranches
    ledger.register_commitment("gp", "lp_a", Decimal("10"), [
        TrancheSpec(Decimal("50"), period=timedelta(days=10)),
        TrancheSpec(Decimal("50"), period=timedelta(days=20)),
    ], end_time=t0 + timedelta(days=365))

    # Pay the first tranche, then call extra capital
    ledger.apply_payment("lp_a", "lp_a", 0, Decimal("5"))
    call_id = ledger.create_call("gp", "lp_a", Decimal("1"), t0 + timedelta(days=30))
"""

# Core types
from .core import (
    LedgerView,
    TrancheSpec,
    Tranche,
    Commitment,
    CashCall,
    PendingEvent,
    PendingUpdate,
    Reason,
    ObligationKind,
    EventType,
    build_update,
    pending_event,
    is_zero_identity,
    to_amount,
    ZERO_IDENTITY,
    ORACLE_DECIMALS,
    INTERNAL_DECIMALS,
    WAD,
    DEFAULT_MINIMUM_COMMITMENT_USD,
    # Exceptions
    LedgerError,
    Unauthorized,
    InvalidParty,
    AlreadyRegistered,
    UnknownLP,
    InvalidSchedule,
    BelowMinimum,
    InvalidAmount,
    DeadlineOutOfRange,
    UnknownCall,
    AlreadyExecuted,
    NotExecuted,
    Expired,
    Overpayment,
    InsufficientFunds,
    InvalidRecipient,
    InvalidPriceData,
    Paused,
    ReentrantCall,
)

# Ledger
from .ledger import CapitalLedger

# Components
from .access_control import AccessControl, AdminSet
from .clock import Clock, LogicalClock, SystemClock
from .custody import TransferSink, RecordingSink, compute_deposit, compute_withdrawal
from .events import EventLog, LedgerEvent
from .payments import compute_payment
from .penalties import compute_penalty
from .price_oracle import (
    PriceOracle,
    StaticPriceOracle,
    TimeSeriesPriceOracle,
    read_rate,
    to_wad,
    usd_value,
)
from .registry import (
    compute_registration,
    compute_minimum_update,
    fixed_amount_schedule,
    materialize_schedule,
    is_lp,
)
from .scheduler import (
    compute_create_call,
    compute_execute_call,
    compute_reverse_execution,
    due_calls,
    get_call,
    is_call_due,
)


__all__ = [
    # Core
    'LedgerView', 'TrancheSpec', 'Tranche', 'Commitment', 'CashCall',
    'PendingEvent', 'PendingUpdate', 'Reason', 'ObligationKind', 'EventType',
    'build_update', 'pending_event', 'is_zero_identity', 'to_amount',
    'ZERO_IDENTITY', 'ORACLE_DECIMALS', 'INTERNAL_DECIMALS', 'WAD',
    'DEFAULT_MINIMUM_COMMITMENT_USD',
    # Exceptions
    'LedgerError', 'Unauthorized', 'InvalidParty', 'AlreadyRegistered',
    'UnknownLP', 'InvalidSchedule', 'BelowMinimum', 'InvalidAmount',
    'DeadlineOutOfRange', 'UnknownCall', 'AlreadyExecuted', 'NotExecuted',
    'Expired', 'Overpayment', 'InsufficientFunds', 'InvalidRecipient',
    'InvalidPriceData', 'Paused', 'ReentrantCall',
    # Ledger
    'CapitalLedger',
    # Access control
    'AccessControl', 'AdminSet',
    # Clock
    'Clock', 'LogicalClock', 'SystemClock',
    # Custody
    'TransferSink', 'RecordingSink', 'compute_deposit', 'compute_withdrawal',
    # Events
    'EventLog', 'LedgerEvent',
    # Payments and penalties
    'compute_payment', 'compute_penalty',
    # Price oracle
    'PriceOracle', 'StaticPriceOracle', 'TimeSeriesPriceOracle',
    'read_rate', 'to_wad', 'usd_value',
    # Registry
    'compute_registration', 'compute_minimum_update', 'fixed_amount_schedule',
    'materialize_schedule', 'is_lp',
    # Scheduler
    'compute_create_call', 'compute_execute_call', 'compute_reverse_execution',
    'due_calls', 'get_call', 'is_call_due',
]

__version__ = '1.0.0'
