"""Tests for domain models."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from yardplan.domain import (
    AxleBalance,
    AxleStatus,
    ConstraintKind,
    Load,
    Severity,
    TrailerSpec,
    format_cursor,
    parse_cursor,
)


class TestConstraintKind:
    """Tests for constraint normalisation."""

    @pytest.mark.parametrize("raw,expected", [
        ("NO_MIX", ConstraintKind.NO_MIX),
        ("no-mix", ConstraintKind.NO_MIX),
        (" hazmat ", ConstraintKind.HAZMAT),
        ("Temp Controlled", ConstraintKind.TEMP_CONTROLLED),
        ("FRAGILE", ConstraintKind.UNKNOWN),
        ("", ConstraintKind.UNKNOWN),
    ])
    def test_parse(self, raw, expected):
        assert ConstraintKind.parse(raw) == expected

    def test_flags(self):
        assert ConstraintKind.NO_MIX.isolates
        assert ConstraintKind.DIRECT_NO_TOUCH.isolates
        assert not ConstraintKind.NO_SPLIT.isolates
        assert ConstraintKind.HAZMAT.needs_segregation
        assert ConstraintKind.TEMP_CONTROLLED.needs_segregation
        assert not ConstraintKind.STACK_LIMITED.needs_segregation


class TestLoadModel:
    """Tests for the load model."""

    def test_load_creation(self):
        load = Load(id=" L1 ", pallets=10, weight_lbs=12000)

        assert load.id == "L1"
        assert load.constraints == []
        assert load.status == "PLANNED"
        assert load.display_id == "L1"
        assert load.pallet_weight_lbs == 1200.0
        assert not load.is_assigned

    def test_constraints_from_delimited_string(self):
        load = Load(id="L1", pallets=1, weight_lbs=1, constraints="NO_SPLIT|no_mix; hazmat,NO_SPLIT")

        assert load.constraints == [ConstraintKind.NO_SPLIT, ConstraintKind.NO_MIX, ConstraintKind.HAZMAT]
        assert load.has(ConstraintKind.NO_MIX)
        assert load.isolates()
        assert load.needs_segregation()

    def test_unknown_constraint_does_not_reject(self):
        load = Load(id="L1", pallets=1, weight_lbs=1, constraints=["BANANAS"])
        assert load.constraints == [ConstraintKind.UNKNOWN]

    @pytest.mark.parametrize("field,value", [
        ("pallets", 0),
        ("weight_lbs", 0),
        ("weight_lbs", -5),
        ("id", "   "),
    ])
    def test_invalid_values_rejected(self, field, value):
        data = {"id": "L1", "pallets": 2, "weight_lbs": 100, field: value}
        with pytest.raises(ValidationError):
            Load(**data)


class TestTrailerSpecModel:
    """Tests for trailer spec validation."""

    def _spec(self, **overrides) -> dict:
        data = {
            "interior_length_m": 16.0,
            "interior_width_m": 2.46,
            "interior_height_m": 2.67,
            "lane_count": 2,
            "slot_count": 20,
            "legal_weight_lbs": 44000,
            "drive_axle_x": 1.0,
            "trailer_axle_x": 15.0,
        }
        data.update(overrides)
        return data

    def test_valid_spec(self):
        spec = TrailerSpec(**self._spec())
        assert spec.target_forward_fraction == 0.5
        assert spec.segregated_lanes == []

    @pytest.mark.parametrize("overrides", [
        {"slot_count": 1},
        {"trailer_axle_x": 0.5},
        {"segregated_lanes": [2]},
        {"segregated_lanes": [1, 1]},
        {"lane_count": 0},
        {"legal_weight_lbs": 0},
    ])
    def test_inconsistent_spec_rejected(self, overrides):
        with pytest.raises(ValidationError):
            TrailerSpec(**self._spec(**overrides))

    def test_spec_is_frozen(self):
        spec = TrailerSpec(**self._spec())
        with pytest.raises(ValidationError):
            spec.lane_count = 3


class TestPlanModels:
    """Tests for plan-related models."""

    def test_severity_order(self):
        ranks = [s.rank for s in (Severity.LOW, Severity.WARNING, Severity.HIGH, Severity.CRITICAL)]
        assert ranks == sorted(ranks)
        assert len(set(ranks)) == 4

    def test_axle_deviation(self):
        balance = AxleBalance(
            status=AxleStatus.WARN,
            forward_weight_lbs=600,
            rear_weight_lbs=400,
            forward_fraction=0.6,
            target_forward_fraction=0.5,
        )
        assert balance.deviation == pytest.approx(0.1)
        assert "deviation" in balance.model_dump()


class TestEventCursor:
    """Tests for cursor formatting."""

    def test_cursor_round_trip_keeps_microseconds(self):
        moment = datetime(2026, 2, 23, 8, 0, 0, 123456, tzinfo=timezone.utc)
        cursor = format_cursor(moment)

        assert cursor == "2026-02-23T08:00:00.123456Z"
        assert parse_cursor(cursor) == moment

    def test_naive_cursor_is_utc(self):
        assert parse_cursor("2026-02-23T08:00:00").tzinfo is not None

    def test_invalid_cursor(self):
        with pytest.raises(ValueError):
            parse_cursor("yesterday")
