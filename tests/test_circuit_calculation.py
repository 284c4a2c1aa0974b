"""Tests for branch circuit calculation."""

import pytest

from circuit_calculation import (
    CIRCUIT_DEFAULTS,
    build_circuit_spec,
    calc_demand_load_va,
    calc_design_current,
    calculate_circuit,
    calculate_circuits,
    dominant_load_type,
    next_circuit_name,
    select_breaker,
    select_conductor,
    validate_circuit_spec,
)
from standards_tables import list_load_types, max_demand_factor


def make_spec(**overrides):
    spec = {
        "circuit_name": "LP-1",
        "voltage": 230.0,
        "phases": 1,
        "power_factor": 0.9,
        "connected_load_w": 2000.0,
        "load_type": "General",
        "circuit_length": 20.0,
    }
    spec.update(overrides)
    return spec


class TestExamples:
    def test_general_single_phase(self):
        result = calculate_circuit(make_spec())
        assert result["demand_load_va"] == 2222.22
        assert result["design_current_a"] == 9.66
        assert result["breaker_at"] == 16
        assert result["wire_size_sqmm"] == 1.5
        assert result["voltage_drop_percent"] == pytest.approx(1.84, abs=0.01)
        assert result["under_protected"] is False
        assert result["conductor_at_limit"] is False
        assert result["voltage_drop_ok"] is True

    def test_receptacle_tiers(self):
        assert calc_demand_load_va(15000, "Receptacles (General)", 1.0) == pytest.approx(12500)

    def test_lighting_three_tiers(self):
        # 3000 @ 100% + 117000 @ 35% + 10000 @ 25%
        assert calc_demand_load_va(130000, "Lighting (Residential)", 1.0) == pytest.approx(46450)

    def test_three_phase_motor(self):
        result = calculate_circuit(make_spec(
            circuit_name="M-1", voltage=400, phases=3, power_factor=0.85,
            connected_load_w=7500, load_type="Motor", circuit_length=30,
        ))
        assert result["demand_load_va"] == pytest.approx(11029.41, abs=0.01)
        assert result["design_current_a"] == pytest.approx(15.92, abs=0.01)
        assert result["breaker_at"] == 20
        assert result["wire_size_sqmm"] == 2.5


class TestDegenerateInputs:
    def test_zero_power_factor(self):
        result = calculate_circuit(make_spec(power_factor=0))
        assert result["demand_load_va"] == 0
        assert result["design_current_a"] == 0
        assert result["voltage_drop_percent"] == 0

    def test_zero_voltage(self):
        result = calculate_circuit(make_spec(voltage=0))
        assert result["design_current_a"] == 0
        assert result["voltage_drop_percent"] == 0
        assert result["breaker_at"] == 10

    def test_zero_length(self):
        assert calculate_circuit(make_spec(circuit_length=0))["voltage_drop_percent"] == 0

    def test_design_current_zero_voltage(self):
        assert calc_design_current(1000, 0, 3) == 0.0


class TestTableLimits:
    def test_oversized_load_flags_advisories(self):
        result = calculate_circuit(make_spec(
            circuit_name="M-9", voltage=400, phases=3, power_factor=0.85,
            connected_load_w=150000, load_type="Motor",
        ))
        assert result["breaker_at"] == 225
        assert result["under_protected"] is True
        assert result["wire_size_sqmm"] == 35
        assert result["conductor_at_limit"] is True

    def test_select_breaker_margin(self):
        # 12.0 × 1.25 = 15.0, 12.9 × 1.25 = 16.125
        assert select_breaker(12.0) == (16, False)
        assert select_breaker(12.9) == (20, False)

    def test_select_conductor_fallback(self):
        row, at_limit = select_conductor(500)
        assert row["size_sqmm"] == 35
        assert at_limit is True

    def test_long_run_flags_voltage_drop(self):
        result = calculate_circuit(make_spec(circuit_length=100))
        assert result["voltage_drop_percent"] > 3.0
        assert result["voltage_drop_ok"] is False


class TestProperties:
    def test_idempotent_and_input_untouched(self):
        spec = make_spec()
        original = dict(spec)
        assert calculate_circuit(spec) == calculate_circuit(spec)
        assert spec == original

    def test_current_monotonic_in_load(self):
        for load_type in list_load_types():
            currents = [
                calculate_circuit(make_spec(connected_load_w=w, load_type=load_type))["design_current_a"]
                for w in range(0, 200001, 5000)
            ]
            assert currents == sorted(currents)

    @pytest.mark.parametrize("load", [0, 500, 3000, 9999, 10001, 50000, 125000, 1e6])
    def test_demand_bounded_by_max_factor(self, load):
        for load_type in list_load_types():
            demand = calc_demand_load_va(load, load_type, 1.0)
            assert demand <= load * max_demand_factor(load_type) + 1e-6

    def test_calculate_circuits_preserves_order(self):
        results = calculate_circuits([make_spec(circuit_name="B"), make_spec(circuit_name="A")])
        assert [r["circuit_name"] for r in results] == ["B", "A"]


class TestCircuitRecords:
    def test_build_spec_applies_defaults(self):
        spec = build_circuit_spec({"circuit_name": "LP-1"})
        for key, default in CIRCUIT_DEFAULTS.items():
            assert spec[key] == default

    def test_build_spec_coerces_and_keeps_extras(self):
        spec = build_circuit_spec({
            "circuit_name": "LP-2",
            "voltage": "400",
            "phases": "3",
            "schedule_slot": 7,
        })
        assert spec["voltage"] == 400.0
        assert spec["phases"] == 3
        assert spec["schedule_slot"] == 7

    def test_validate_accepts_good_spec(self):
        assert validate_circuit_spec(build_circuit_spec(make_spec())) == []

    def test_validate_reports_each_problem(self):
        issues = validate_circuit_spec(build_circuit_spec(make_spec(
            circuit_name="", phases=2, power_factor=1.5,
            connected_load_w=-1, circuit_length=-3,
        )))
        assert len(issues) == 5

    def test_validate_rejects_zero_power_factor(self):
        issues = validate_circuit_spec(build_circuit_spec(make_spec(power_factor=0)))
        assert any("power factor" in issue for issue in issues)


class TestDominantLoadType:
    def test_most_frequent(self):
        assert dominant_load_type(["Motor", "General", "Motor"]) == "Motor"

    def test_tie_goes_to_first_seen(self):
        assert dominant_load_type(["General", "Motor"]) == "General"
        assert dominant_load_type(["Motor", "General"]) == "Motor"

    def test_empty(self):
        assert dominant_load_type([]) == "General"


class TestNextCircuitName:
    def test_continues_from_highest(self):
        assert next_circuit_name(["LP-1", "LP-7", "lp-3"]) == "LP-8"

    def test_first_name(self):
        assert next_circuit_name([]) == "LP-1"

    def test_ignores_other_prefixes(self):
        assert next_circuit_name(["LP-2", "SP-9", "LP-x", "LP-10A"]) == "LP-3"

    def test_custom_prefix(self):
        assert next_circuit_name(["SP-9"], prefix="SP") == "SP-10"
