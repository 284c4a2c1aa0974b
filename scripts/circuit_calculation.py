#!/usr/bin/env python3
"""
Circuit Calculation Module
Branch circuit sizing from connected load.

Implements, per circuit:
- Demand load from tiered demand factors (per load category)
- Design current (single- or three-phase)
- Breaker selection with 125% continuous-load margin
- Conductor selection (ampacity ≥ breaker rating)
- Voltage drop along the run

Key rules:
- Values are rounded to 2 decimals only when the result dict is built
- Zero voltage / power factor / length give zero for the dependent value,
  never an exception
- When a table runs out, the largest entry is used and the result is
  flagged (under_protected / conductor_at_limit)

Author: Load Schedule Tools
Standards: IEC 60364-5-52, NEC 220.42 / 220.44 (demand factors)
"""

import math
import re
from collections import Counter
from typing import Optional

from standards_tables import (
    DEFAULT_LOAD_TYPE,
    get_ampacity_table,
    get_breaker_ratings,
    get_demand_factor_tiers,
)
from voltage_drop import BRANCH_VD_LIMIT_PCT, calc_voltage_drop_pct_raw


# Continuous load margin for breaker sizing (125%)
CONTINUOUS_LOAD_FACTOR = 1.25

# Defaults applied to stored circuit records missing a field
CIRCUIT_DEFAULTS = {
    "voltage": 230.0,
    "phases": 1,
    "power_factor": 0.9,
    "circuit_length": 20.0,
    "load_type": DEFAULT_LOAD_TYPE,
    "connected_load_w": 0.0,
}


# ============================================================================
# Demand Load
# ============================================================================

def calc_demand_load_va(
    connected_load_w: float,
    load_type: Optional[str],
    power_factor: float
) -> float:
    """
    Calculate demand load (VA) by walking the category's tier list.

    "upto" tiers take the slice between the previous threshold and their
    own; an "over" tier takes whatever remains. The summed real demand is
    divided by power factor to give apparent power.

    Args:
        connected_load_w: Connected load in watts
        load_type: Demand factor category
        power_factor: Load power factor

    Returns:
        Unrounded demand load in VA (0.0 when power factor is zero)
    """
    if not power_factor:
        return 0.0

    demand_load = 0.0
    remaining = connected_load_w
    consumed = 0.0

    for tier in get_demand_factor_tiers(load_type):
        if "upto" in tier:
            in_tier = min(remaining, tier["upto"] - consumed)
            demand_load += in_tier * tier["factor"]
            remaining -= in_tier
            consumed = tier["upto"]
        elif "over" in tier:
            demand_load += remaining * tier["factor"]
            remaining = 0
        if remaining <= 0:
            break

    return demand_load / power_factor


# ============================================================================
# Current, Breaker, Conductor
# ============================================================================

def calc_design_current(demand_load_va: float, voltage: float, phases: int = 1) -> float:
    """
    Calculate design current.

    I = S / V for single-phase, I = S / (√3 × V) for three-phase.
    Returns 0.0 when voltage is zero.
    """
    if not voltage:
        return 0.0
    if phases == 1:
        return demand_load_va / voltage
    return demand_load_va / (voltage * math.sqrt(3))


def select_breaker(design_current_a: float) -> tuple[int, bool]:
    """
    Select the smallest standard breaker ≥ 125% of design current.

    Returns:
        Tuple of (rating_a, under_protected). under_protected is True when
        no standard rating qualifies and the largest one was used.
    """
    required = design_current_a * CONTINUOUS_LOAD_FACTOR
    ratings = get_breaker_ratings()
    for rating in ratings:
        if rating >= required:
            return rating, False
    return ratings[-1], True


def select_conductor(breaker_at: float) -> tuple[dict, bool]:
    """
    Select the smallest conductor whose ampacity covers the breaker rating.

    Returns:
        Tuple of (ampacity row dict, at_limit). at_limit is True when the
        largest conductor was used without qualifying.
    """
    table = get_ampacity_table()
    for row in table:
        if row["ampacity"] >= breaker_at:
            return row, False
    return table[-1], True


# ============================================================================
# Full Calculation
# ============================================================================

def calculate_circuit(spec: dict) -> dict:
    """
    Calculate a branch circuit from its specification.

    Args:
        spec: dict with circuit_name, voltage, phases, power_factor,
              connected_load_w, load_type, circuit_length

    Returns:
        Copy of spec extended with:
        - demand_load_va, design_current_a, breaker_at, wire_size_sqmm,
          voltage_drop_percent
        - under_protected, conductor_at_limit, voltage_drop_ok (advisories)
    """
    voltage = float(spec.get("voltage") or 0)
    phases = int(spec.get("phases") or 1)
    power_factor = float(spec.get("power_factor") or 0)
    connected_load_w = float(spec.get("connected_load_w") or 0)
    circuit_length = float(spec.get("circuit_length") or 0)

    demand_load_va = calc_demand_load_va(connected_load_w, spec.get("load_type"), power_factor)
    design_current = calc_design_current(demand_load_va, voltage, phases)
    breaker_at, under_protected = select_breaker(design_current)
    wire, conductor_at_limit = select_conductor(breaker_at)
    vd_pct = calc_voltage_drop_pct_raw(
        design_current, circuit_length, wire["size_sqmm"], voltage, phases, power_factor
    )

    result = dict(spec)
    result.update({
        "demand_load_va": round(demand_load_va, 2),
        "design_current_a": round(design_current, 2),
        "breaker_at": breaker_at,
        "wire_size_sqmm": wire["size_sqmm"],
        "voltage_drop_percent": round(vd_pct, 2),
        "under_protected": under_protected,
        "conductor_at_limit": conductor_at_limit,
        "voltage_drop_ok": vd_pct <= BRANCH_VD_LIMIT_PCT,
    })
    return result


def calculate_circuits(specs: list[dict]) -> list[dict]:
    """Calculate every circuit in a list."""
    return [calculate_circuit(spec) for spec in specs]


# ============================================================================
# Circuit Records
# ============================================================================

def build_circuit_spec(attrs: dict) -> dict:
    """
    Build a circuit spec from stored attributes, filling in defaults.

    Extra keys (schedule_slot, schedule_text_color, ...) are carried through.
    """
    spec = dict(attrs)
    for key, default in CIRCUIT_DEFAULTS.items():
        if spec.get(key) is None:
            spec[key] = default

    spec["circuit_name"] = str(spec.get("circuit_name") or "")
    spec["voltage"] = float(spec["voltage"])
    spec["phases"] = int(spec["phases"])
    spec["power_factor"] = float(spec["power_factor"])
    spec["circuit_length"] = float(spec["circuit_length"])
    spec["connected_load_w"] = float(spec["connected_load_w"])
    spec["load_type"] = str(spec["load_type"])
    return spec


def validate_circuit_spec(spec: dict) -> list[str]:
    """
    Check a circuit spec for values the calculation should not be run on.

    Returns:
        List of issue messages (empty when the spec is acceptable)
    """
    issues = []
    name = spec.get("circuit_name") or "<unnamed>"

    if not spec.get("circuit_name"):
        issues.append("Circuit name is empty")
    if spec.get("phases") not in (1, 3):
        issues.append(f"{name}: phases must be 1 or 3, got {spec.get('phases')}")
    if spec.get("voltage", 0) < 0:
        issues.append(f"{name}: voltage {spec['voltage']}V is negative")
    pf = spec.get("power_factor", 0)
    if not 0 < pf <= 1:
        issues.append(f"{name}: power factor {pf} outside (0, 1]")
    if spec.get("connected_load_w", 0) < 0:
        issues.append(f"{name}: connected load {spec['connected_load_w']}W is negative")
    if spec.get("circuit_length", 0) < 0:
        issues.append(f"{name}: circuit length {spec['circuit_length']}m is negative")

    return issues


def dominant_load_type(load_types: list[str]) -> str:
    """
    Most frequent load category among a circuit's loads.

    Ties go to the category seen first; an empty list gives the default.
    """
    if not load_types:
        return DEFAULT_LOAD_TYPE
    counts = Counter(load_types)
    return max(counts, key=lambda t: (counts[t], -load_types.index(t)))


def next_circuit_name(existing_names: list[str], prefix: str = "LP") -> str:
    """
    Next auto-numbered circuit name, e.g. LP-4 after LP-1..LP-3.

    Numbering continues from the highest existing number, not the first gap.
    """
    pattern = re.compile(rf"\A{re.escape(prefix)}-(\d+)\Z", re.IGNORECASE)
    numbers = [
        int(match.group(1))
        for match in (pattern.match(str(n)) for n in existing_names)
        if match
    ]
    return f"{prefix}-{max(numbers) + 1 if numbers else 1}"


if __name__ == "__main__":
    print("Testing circuit_calculation module...")
    print("=" * 60)

    print("\n1. General load, single-phase")
    result = calculate_circuit({
        "circuit_name": "LP-1",
        "voltage": 230,
        "phases": 1,
        "power_factor": 0.9,
        "connected_load_w": 2000,
        "load_type": "General",
        "circuit_length": 20,
    })
    print(f"   2000W @ 230V, pf 0.9, 20m")
    print(f"   Demand: {result['demand_load_va']} VA")
    print(f"   Current: {result['design_current_a']} A")
    print(f"   Breaker: {result['breaker_at']} AT")
    print(f"   Wire: {result['wire_size_sqmm']} mm²")
    print(f"   Voltage drop: {result['voltage_drop_percent']}%")

    print("\n2. Receptacles, tiered demand")
    va = calc_demand_load_va(15000, "Receptacles (General)", 1.0)
    print(f"   15000W -> {va} VA (10000 @ 100% + 5000 @ 50%)")

    print("\n3. Oversized three-phase motor")
    result = calculate_circuit({
        "circuit_name": "M-1",
        "voltage": 400,
        "phases": 3,
        "power_factor": 0.85,
        "connected_load_w": 150000,
        "load_type": "Motor",
        "circuit_length": 30,
    })
    print(f"   Breaker: {result['breaker_at']} AT (under-protected: {result['under_protected']})")
    print(f"   Wire: {result['wire_size_sqmm']} mm² (at limit: {result['conductor_at_limit']})")

    print("\n4. Circuit naming")
    print(f"   After LP-1, LP-7, lp-3: {next_circuit_name(['LP-1', 'LP-7', 'lp-3'])}")

    print("\n" + "=" * 60)
    print("All tests completed!")
