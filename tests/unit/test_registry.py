"""
Tests for registry.py - Commitment registration and tranche schedules

Tests:
- materialize_schedule (percentages, deadlines, remainder handling)
- fixed_amount_schedule (fixed installments to percentages)
- compute_registration (validation order, epochs, USD minimum)
- compute_minimum_update
- CapitalLedger.register_commitment integration (oracle, events)
"""

import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from capital_ledger import (
    TrancheSpec, Commitment, EventType,
    StaticPriceOracle, TimeSeriesPriceOracle, SystemClock,
    materialize_schedule, fixed_amount_schedule,
    compute_registration, compute_minimum_update,
    AlreadyRegistered, BelowMinimum, InvalidAmount, InvalidParty,
    InvalidPriceData, InvalidSchedule,
)

from tests.builders import T0, END, ADMIN, RATE_2000, make_ledger, two_tranche_schedule
from tests.fake_view import FakeView


ORACLE = StaticPriceOracle(RATE_2000)


# ============================================================================
# materialize_schedule Tests
# ============================================================================

class TestMaterializeSchedule:
    """Tests for schedule materialization."""

    def test_two_equal_tranches(self):
        tranches = materialize_schedule(Decimal("10"), two_tranche_schedule(), T0, END)
        assert len(tranches) == 2
        assert tranches[0].amount == Decimal("5")
        assert tranches[1].amount == Decimal("5")
        assert tranches[0].deadline == T0 + timedelta(days=10)
        assert tranches[1].deadline == T0 + timedelta(days=20)
        assert all(t.paid_amount == 0 for t in tranches)

    def test_last_tranche_absorbs_remainder(self):
        schedule = [
            TrancheSpec(Decimal("33.33"), period=timedelta(days=1)),
            TrancheSpec(Decimal("33.33"), period=timedelta(days=2)),
            TrancheSpec(Decimal("33.34"), period=timedelta(days=3)),
        ]
        tranches = materialize_schedule(Decimal("1"), schedule, T0, END)
        assert [t.amount for t in tranches] == [
            Decimal("0.3333"), Decimal("0.3333"), Decimal("0.3334"),
        ]
        assert sum(t.amount for t in tranches) == Decimal("1")

    def test_absolute_deadlines(self):
        schedule = [
            TrancheSpec(Decimal("40"), deadline=T0 + timedelta(days=30)),
            TrancheSpec(Decimal("60"), deadline=T0 + timedelta(days=90)),
        ]
        tranches = materialize_schedule(Decimal("10"), schedule, T0, END)
        assert tranches[1].deadline == T0 + timedelta(days=90)
        assert tranches[0].amount == Decimal("4")

    def test_empty_schedule(self):
        assert materialize_schedule(Decimal("10"), [], T0, END) == ()

    def test_percentages_must_sum_to_100(self):
        schedule = [
            TrancheSpec(Decimal("50"), period=timedelta(days=10)),
            TrancheSpec(Decimal("40"), period=timedelta(days=20)),
        ]
        with pytest.raises(InvalidSchedule):
            materialize_schedule(Decimal("10"), schedule, T0, END)

    def test_zero_percentage_rejected(self):
        schedule = [
            TrancheSpec(Decimal("0"), period=timedelta(days=10)),
            TrancheSpec(Decimal("100"), period=timedelta(days=20)),
        ]
        with pytest.raises(InvalidSchedule):
            materialize_schedule(Decimal("10"), schedule, T0, END)

    def test_deadlines_must_increase(self):
        schedule = [
            TrancheSpec(Decimal("50"), period=timedelta(days=10)),
            TrancheSpec(Decimal("50"), period=timedelta(days=10)),
        ]
        with pytest.raises(InvalidSchedule):
            materialize_schedule(Decimal("10"), schedule, T0, END)

    def test_deadline_in_past_rejected(self):
        schedule = [TrancheSpec(Decimal("100"), deadline=T0 - timedelta(days=1))]
        with pytest.raises(InvalidSchedule):
            materialize_schedule(Decimal("10"), schedule, T0, END)

    def test_deadline_after_end_time_rejected(self):
        schedule = [TrancheSpec(Decimal("100"), period=timedelta(days=400))]
        with pytest.raises(InvalidSchedule):
            materialize_schedule(Decimal("10"), schedule, T0, END)

    def test_spec_needs_exactly_one_timing(self):
        with pytest.raises(ValueError):
            TrancheSpec(Decimal("100"))
        with pytest.raises(ValueError):
            TrancheSpec(Decimal("100"), period=timedelta(days=1), deadline=END)


# ============================================================================
# fixed_amount_schedule Tests
# ============================================================================

class TestFixedAmountSchedule:
    """Tests for migrating fixed-amount installments."""

    def test_converts_to_percentages(self):
        specs = fixed_amount_schedule(Decimal("10"), [
            (Decimal("4"), timedelta(days=30)),
            (Decimal("6"), timedelta(days=60)),
        ])
        assert [s.percentage for s in specs] == [Decimal("40"), Decimal("60")]
        assert specs[1].period == timedelta(days=60)

    def test_round_trips_through_materialize(self):
        specs = fixed_amount_schedule(Decimal("9"), [
            (Decimal("3"), timedelta(days=30)),
            (Decimal("3"), timedelta(days=60)),
            (Decimal("3"), timedelta(days=90)),
        ])
        tranches = materialize_schedule(Decimal("9"), specs, T0, END)
        assert sum(t.amount for t in tranches) == Decimal("9")
        assert tranches[-1].amount == Decimal("9") - tranches[0].amount - tranches[1].amount

    def test_installments_must_cover_commitment(self):
        with pytest.raises(InvalidSchedule):
            fixed_amount_schedule(Decimal("10"), [(Decimal("4"), timedelta(days=30))])


# ============================================================================
# compute_registration Tests
# ============================================================================

class TestComputeRegistration:
    """Tests for the pure registration function."""

    def test_builds_commitment(self):
        view = FakeView(time=T0)
        update = compute_registration(view, "lp_a", Decimal("10"), two_tranche_schedule(),
                                      END, ORACLE, T0)
        record = update.result
        assert isinstance(record, Commitment)
        assert record.commitment_amount == Decimal("10")
        assert record.total_paid == 0
        assert record.penalties == 0
        assert record.epoch == 1
        assert update.commitments == (record,)
        assert update.events[0].event_type == EventType.COMMITMENT_SET
        assert update.events[0].params_dict["usd_value"] == Decimal("20000")

    def test_zero_identity_rejected(self):
        with pytest.raises(InvalidParty):
            compute_registration(FakeView(), "", Decimal("10"), [], END, ORACLE, T0)

    def test_already_registered(self, lp_ledger):
        with pytest.raises(AlreadyRegistered) as exc_info:
            compute_registration(lp_ledger, "lp_a", Decimal("10"), [], END, ORACLE, T0)
        assert isinstance(exc_info.value, InvalidParty)

    def test_zero_amount_rejected(self):
        with pytest.raises(InvalidAmount):
            compute_registration(FakeView(), "lp_a", Decimal("0"), [], END, ORACLE, T0)

    def test_float_amount_rejected(self):
        with pytest.raises(InvalidAmount):
            compute_registration(FakeView(), "lp_a", 10.0, [], END, ORACLE, T0)

    def test_below_minimum(self):
        # 0.4 units at $2000 = $800 < $1000
        with pytest.raises(BelowMinimum):
            compute_registration(FakeView(), "lp_a", Decimal("0.4"), [], END, ORACLE, T0)

    def test_exactly_minimum_accepted(self):
        update = compute_registration(FakeView(), "lp_a", Decimal("0.5"), [], END, ORACLE, T0)
        assert update.result.commitment_amount == Decimal("0.5")

    def test_end_time_must_be_future(self):
        with pytest.raises(InvalidSchedule):
            compute_registration(FakeView(), "lp_a", Decimal("10"), [], T0, ORACLE, T0)

    def test_reregistration_after_revocation_bumps_epoch(self):
        tombstone = Commitment(
            lp="lp_a", commitment_amount=Decimal("0"), total_paid=Decimal("0"),
            penalties=Decimal("0"), end_time=END, tranches=(), registered_at=T0,
            epoch=1, revoked=True,
        )
        view = FakeView(commitments={"lp_a": tombstone})
        update = compute_registration(view, "lp_a", Decimal("10"), [], END, ORACLE, T0)
        assert update.result.epoch == 2
        assert update.result.revoked is False


class TestComputeMinimumUpdate:
    """Tests for changing the USD minimum."""

    def test_sets_minimum(self):
        update = compute_minimum_update(FakeView(), Decimal("5000"))
        assert dict(update.settings) == {"minimum_commitment_usd": Decimal("5000")}
        assert update.events[0].params_dict["previous"] == Decimal("1000")

    def test_zero_minimum_rejected(self):
        with pytest.raises(InvalidAmount):
            compute_minimum_update(FakeView(), Decimal("0"))


# ============================================================================
# CapitalLedger Registration Tests
# ============================================================================

class TestLedgerRegistration:
    """register_commitment through the ledger."""

    def test_register_and_query(self, lp_ledger):
        assert lp_ledger.is_lp("lp_a")
        assert lp_ledger.list_lps() == ["lp_a"]
        assert len(lp_ledger.get_tranches("lp_a")) == 2
        assert lp_ledger.outstanding("lp_a") == Decimal("10")

    def test_register_twice_rejected(self, lp_ledger):
        with pytest.raises(AlreadyRegistered):
            lp_ledger.register_commitment(ADMIN, "lp_a", Decimal("10"), [], END)

    def test_minimum_change_applies(self, empty_ledger):
        empty_ledger.set_minimum_commitment(ADMIN, Decimal("50000"))
        assert empty_ledger.minimum_commitment_usd == Decimal("50000")
        with pytest.raises(BelowMinimum):
            empty_ledger.register_commitment(ADMIN, "lp_a", Decimal("10"), [], END)

    def test_non_positive_rate_rejected(self):
        ledger = make_ledger(oracle=StaticPriceOracle(0))
        with pytest.raises(InvalidPriceData):
            ledger.register_commitment(ADMIN, "lp_a", Decimal("10"), [], END)
        assert not ledger.is_lp("lp_a")

    def test_missing_rate_rejected(self):
        ledger = make_ledger()
        ledger.oracle = TimeSeriesPriceOracle(ledger.clock.now)
        with pytest.raises(InvalidPriceData):
            ledger.register_commitment(ADMIN, "lp_a", Decimal("10"), [], END)

    def test_party_checked_before_oracle(self, lp_ledger):
        lp_ledger.oracle = StaticPriceOracle(0)
        with pytest.raises(InvalidParty) as exc_info:
            lp_ledger.register_commitment(ADMIN, "", Decimal("10"), [], END)
        assert not isinstance(exc_info.value, InvalidPriceData)
        with pytest.raises(AlreadyRegistered):
            lp_ledger.register_commitment(ADMIN, "lp_a", Decimal("10"), [], END)
        with pytest.raises(InvalidAmount):
            lp_ledger.register_commitment(ADMIN, "lp_b", Decimal("0"), [], END)
        with pytest.raises(InvalidPriceData):
            lp_ledger.register_commitment(ADMIN, "lp_b", Decimal("10"), [], END)

    def test_naive_end_time_on_system_clock_rejected(self):
        ledger = make_ledger(clock=SystemClock())
        with pytest.raises(InvalidSchedule, match="timezone-aware"):
            ledger.register_commitment(ADMIN, "lp_a", Decimal("10"), [], datetime(2100, 1, 1))
        assert not ledger.is_lp("lp_a")

    def test_aware_times_on_system_clock_accepted(self):
        ledger = make_ledger(clock=SystemClock())
        end = datetime(2100, 1, 1, tzinfo=timezone.utc)
        schedule = [TrancheSpec(Decimal("100"), deadline=datetime(2099, 1, 1, tzinfo=timezone.utc))]
        record = ledger.register_commitment(ADMIN, "lp_a", Decimal("10"), schedule, end)
        assert record.end_time == end

    def test_aware_times_on_naive_clock_rejected(self, empty_ledger):
        aware_end = END.replace(tzinfo=timezone.utc)
        with pytest.raises(InvalidSchedule, match="naive"):
            empty_ledger.register_commitment(ADMIN, "lp_a", Decimal("10"), [], aware_end)
        schedule = [TrancheSpec(Decimal("100"), deadline=aware_end - timedelta(days=1))]
        with pytest.raises(InvalidSchedule):
            empty_ledger.register_commitment(ADMIN, "lp_a", Decimal("10"), schedule, END)

    def test_rate_change_affects_minimum_check(self):
        oracle = StaticPriceOracle(RATE_2000)
        ledger = make_ledger(oracle=oracle)
        oracle.update_rate(100_00000000)  # $100 -> 5 units = $500
        with pytest.raises(BelowMinimum):
            ledger.register_commitment(ADMIN, "lp_a", Decimal("5"), [], END)

    def test_commitment_set_event(self, lp_ledger):
        event = lp_ledger.events(EventType.COMMITMENT_SET)[0]
        assert event.get("lp") == "lp_a"
        assert event.get("amount") == Decimal("10")
        assert event.timestamp == T0
        assert event.operation == "register_commitment"

    def test_non_lp_queries(self, empty_ledger):
        assert not empty_ledger.is_lp("nobody")
        assert empty_ledger.get_commitment("nobody") is None
        assert empty_ledger.get_tranches("nobody") == ()
        assert empty_ledger.outstanding("nobody") == Decimal("0")
