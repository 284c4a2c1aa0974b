#!/usr/bin/env python3
"""
Voltage Drop Calculation Module
Calculate voltage drop for branch circuits from conductor impedance tables.

Implements:
- Line voltage drop from tabulated R and X (Ω/km)
- Single-phase (out and return) and three-phase runs
- Branch circuit compliance check (target ≤3%)

Author: Load Schedule Tools
Standards: IEC 60364-5-52 Annex G, NEC 210.19 Informational Note
"""

import math

from standards_tables import get_wire_properties


# Recommended maximum voltage drop for a branch circuit (%)
BRANCH_VD_LIMIT_PCT = 3.0


def calc_voltage_drop_volts(
    current_a: float,
    length_m: float,
    wire_size_sqmm: float,
    voltage: float,
    phases: int = 1,
    power_factor: float = 0.9
) -> float:
    """
    Unrounded line voltage drop in volts.

    Formula:
    Vd = k × L × I × (R × cos(φ) + X × sin(φ))
    k = 2 for single-phase (out and return), √3 for three-phase

    Returns 0.0 when voltage is zero, the run has no length, or the
    conductor size has no impedance data.
    """
    if not voltage or length_m <= 0:
        return 0.0

    props = get_wire_properties(wire_size_sqmm)
    if props is None:
        return 0.0

    # Ω/km -> Ω/m
    r_per_m = props["r_ohm_km"] / 1000.0
    x_per_m = props["x_ohm_km"] / 1000.0

    cos_phi = power_factor
    sin_phi = math.sqrt(max(0.0, 1 - cos_phi ** 2))

    multiplier = 2 if phases == 1 else math.sqrt(3)
    return multiplier * length_m * current_a * (r_per_m * cos_phi + x_per_m * sin_phi)


def calc_voltage_drop_pct_raw(
    current_a: float,
    length_m: float,
    wire_size_sqmm: float,
    voltage: float,
    phases: int = 1,
    power_factor: float = 0.9
) -> float:
    """Unrounded voltage drop as a percentage of system voltage."""
    if not voltage:
        return 0.0
    vd_volts = calc_voltage_drop_volts(
        current_a, length_m, wire_size_sqmm, voltage, phases, power_factor
    )
    return (vd_volts / voltage) * 100


def calc_voltage_drop_pct(
    current_a: float,
    length_m: float,
    wire_size_sqmm: float,
    voltage: float,
    phases: int = 1,
    power_factor: float = 0.9
) -> dict:
    """
    Calculate voltage drop percentage for a branch circuit run.

    Args:
        current_a: Design current in Amps
        length_m: One-way circuit length in meters
        wire_size_sqmm: Conductor cross-section in mm²
        voltage: System voltage (line-to-line for 3-phase)
        phases: Number of phases (1 or 3)
        power_factor: Load power factor

    Returns:
        dict with voltage drop results
    """
    vd_volts = calc_voltage_drop_volts(
        current_a, length_m, wire_size_sqmm, voltage, phases, power_factor
    )
    vd_pct = (vd_volts / voltage) * 100 if voltage else 0.0
    props = get_wire_properties(wire_size_sqmm) or {}

    return {
        "voltage_drop_v": round(vd_volts, 2),
        "voltage_drop_pct": round(vd_pct, 2),
        "voltage_at_load_v": round(voltage - vd_volts, 1),
        "current_a": current_a,
        "length_m": length_m,
        "wire_size_sqmm": wire_size_sqmm,
        "voltage_v": voltage,
        "phases": phases,
        "power_factor": power_factor,
        "resistance_ohm_per_km": props.get("r_ohm_km"),
        "reactance_ohm_per_km": props.get("x_ohm_km"),
        "compliant_branch": vd_pct <= BRANCH_VD_LIMIT_PCT,
        "notes": f"Voltage drop {vd_pct:.1f}% " +
                ("OK for branch circuit" if vd_pct <= BRANCH_VD_LIMIT_PCT
                 else "EXCEEDS 3% branch circuit recommendation")
    }


if __name__ == "__main__":
    print("Testing voltage_drop module...")
    print("=" * 60)

    print("\n1. Single-phase lighting circuit")
    result = calc_voltage_drop_pct(
        current_a=9.66,
        length_m=20,
        wire_size_sqmm=2.5,
        voltage=230,
        phases=1,
        power_factor=0.9
    )
    print(f"   9.66A, 20m, 2.5mm² @ 230V")
    print(f"   Voltage drop: {result['voltage_drop_v']}V ({result['voltage_drop_pct']}%)")
    print(f"   Compliant (≤3%): {result['compliant_branch']}")

    print("\n2. Three-phase motor circuit")
    result = calc_voltage_drop_pct(
        current_a=30,
        length_m=45,
        wire_size_sqmm=10,
        voltage=400,
        phases=3,
        power_factor=0.85
    )
    print(f"   30A, 45m, 10mm² @ 400V")
    print(f"   Voltage drop: {result['voltage_drop_v']}V ({result['voltage_drop_pct']}%)")
    print(f"   {result['notes']}")

    print("\n" + "=" * 60)
    print("All tests completed!")
