#!/usr/bin/env python3
"""
Generate Panel Schedule
Main generator script for creating a panel load schedule from circuit records.

Workflow:
1. Load circuit records from the YAML circuit store
   (unnamed circuits get the next LP-N name; totals come from listed loads)
2. Validate and calculate every circuit (demand, current, breaker, wire, VD)
3. Assign persistent schedule colors
4. Allocate panel slots (saved slots first, then alternating placement)
5. Apply requested slot swaps and optional phase balancing
6. Output schedule YAML (and optionally save slots back to the store)

Usage:
    python generate_panel_schedule.py \
        --circuits electrical/circuits.yaml \
        --output electrical/panel-schedule.yaml \
        --max-slots 30 \
        --swap 1 2 \
        --balance \
        --save-slots
"""

import argparse
import random
import sys
from pathlib import Path
from typing import Optional

import yaml

# Import local modules
from circuit_calculation import (
    build_circuit_spec,
    calculate_circuits,
    dominant_load_type,
    next_circuit_name,
    validate_circuit_spec,
)
from load_schedule import (
    build_schedule_rows,
    ensure_text_colors,
    load_circuit_records,
    merge_results_into_records,
    save_circuit_records,
    summarize_schedule,
)
from panel_allocation import (
    BALANCE_MAX_ITERATIONS,
    BALANCE_TOLERANCE_VA,
    DEFAULT_MAX_SLOTS,
    allocate_slots,
    balance_phases,
    calc_phase_imbalance,
    calc_phase_totals,
    check_layout,
    swap_slots,
)


def complete_records(records: list[dict]) -> list[dict]:
    """
    Fill in circuit attributes a record can derive on its own.

    A record may list the loads gathered into the circuit under "loads"
    (each with watts and load_type). A missing connected_load_w is their
    total and a missing load_type their most frequent category. Records
    without a circuit_name get the next LP-N name.
    """
    names = [r["circuit_name"] for r in records if r.get("circuit_name")]
    completed = []
    for record in records:
        record = dict(record)
        loads = record.get("loads") or []
        if loads:
            if record.get("connected_load_w") is None:
                record["connected_load_w"] = sum(float(load.get("watts") or 0) for load in loads)
            if not record.get("load_type"):
                record["load_type"] = dominant_load_type(
                    [load["load_type"] for load in loads if load.get("load_type")]
                )
        if not record.get("circuit_name"):
            record["circuit_name"] = next_circuit_name(names)
            names.append(record["circuit_name"])
        completed.append(record)
    return completed


def collect_advisories(results: list[dict], layout: dict) -> list[str]:
    """
    Collect advisory messages for the schedule.

    None of these stop the run; they flag circuits that need a second look.
    """
    warnings = []
    for result in results:
        name = result.get("circuit_name")
        if result.get("under_protected"):
            warnings.append(
                f"{name}: design current {result['design_current_a']}A exceeds the largest "
                f"breaker ({result['breaker_at']}AT) - circuit is under-protected"
            )
        if result.get("conductor_at_limit"):
            warnings.append(
                f"{name}: no conductor covers {result['breaker_at']}AT, "
                f"largest size {result['wire_size_sqmm']} mm² used"
            )
        if not result.get("voltage_drop_ok", True):
            warnings.append(
                f"{name}: voltage drop {result['voltage_drop_percent']}% exceeds 3% "
                f"branch circuit recommendation"
            )

    for name in layout.get("unplaced", []):
        warnings.append(f"{name}: could not be placed in a {layout['max_slots']}-slot panel")

    return warnings


def generate_panel_schedule(
    records: list[dict],
    max_slots: int = DEFAULT_MAX_SLOTS,
    swaps: Optional[list] = None,
    balance: bool = False,
    use_saved_slots: bool = True,
    tolerance_va: float = BALANCE_TOLERANCE_VA,
    rng: Optional[random.Random] = None
) -> dict:
    """
    Generate a panel schedule from circuit records.

    Args:
        records: Circuit attribute dicts from the store
        max_slots: Panel size
        swaps: List of (slot_a, slot_b) pairs applied after allocation
        balance: Run phase balancing after the swaps
        use_saved_slots: Honor schedule_slot values in the records
        tolerance_va: Phase balance tolerance
        rng: Random source for new schedule colors

    Returns:
        dict with circuits, layout, schedule rows, summary and warnings

    Raises:
        ValueError: If any record fails validation
    """
    specs = [build_circuit_spec(record) for record in complete_records(records)]

    issues = []
    for spec in specs:
        issues.extend(validate_circuit_spec(spec))
    names = [spec["circuit_name"] for spec in specs]
    duplicates = sorted({n for n in names if n and names.count(n) > 1})
    for name in duplicates:
        issues.append(f"Duplicate circuit name: {name}")
    if issues:
        raise ValueError("; ".join(issues))

    if not use_saved_slots:
        for spec in specs:
            spec.pop("schedule_slot", None)

    results = calculate_circuits(specs)
    colors_generated = ensure_text_colors(results, rng)

    layout = allocate_slots(results, max_slots=max_slots)
    for slot_a, slot_b in swaps or []:
        layout = swap_slots(layout, int(slot_a), int(slot_b))
    if balance:
        layout = balance_phases(layout, tolerance_va=tolerance_va,
                                max_iterations=BALANCE_MAX_ITERATIONS)

    layout_issues = check_layout(layout)
    if layout_issues:
        # Allocator operations keep slots exclusive
        raise RuntimeError("; ".join(layout_issues))

    summary = summarize_schedule(layout)
    summary["phase_imbalance"] = calc_phase_imbalance(calc_phase_totals(layout))
    summary["colors_generated"] = colors_generated

    return {
        "panel_summary": summary,
        "schedule": build_schedule_rows(layout),
        "layout": layout,
        "circuits": results,
        "warnings": collect_advisories(results, layout),
    }


def main():
    parser = argparse.ArgumentParser(
        description="Generate a panel load schedule from circuit records"
    )
    parser.add_argument(
        "--circuits", "-c",
        type=Path,
        required=True,
        help="Path to circuit store YAML"
    )
    parser.add_argument(
        "--output", "-o",
        type=Path,
        required=True,
        help="Output path for panel schedule YAML"
    )
    parser.add_argument(
        "--max-slots", "-n",
        type=int,
        default=DEFAULT_MAX_SLOTS,
        help=f"Panel size in slots (default: {DEFAULT_MAX_SLOTS})"
    )
    parser.add_argument(
        "--swap",
        type=int,
        nargs=2,
        action="append",
        metavar=("SLOT_A", "SLOT_B"),
        help="Swap two slots after allocation (repeatable)"
    )
    parser.add_argument(
        "--balance", "-b",
        action="store_true",
        help="Balance phase loads after allocation"
    )
    parser.add_argument(
        "--tolerance",
        type=float,
        default=BALANCE_TOLERANCE_VA,
        help=f"Phase balance tolerance in VA (default: {BALANCE_TOLERANCE_VA})"
    )
    parser.add_argument(
        "--ignore-saved-slots",
        action="store_true",
        help="Re-allocate from scratch, ignoring schedule_slot in the store"
    )
    parser.add_argument(
        "--save-slots",
        action="store_true",
        help="Write results, colors and slots back to the circuit store"
    )
    parser.add_argument(
        "--seed",
        type=int,
        help="Random seed for new schedule colors"
    )

    args = parser.parse_args()

    # Validate inputs
    if not args.circuits.exists():
        print(f"Error: Circuit store not found: {args.circuits}")
        sys.exit(1)
    if args.max_slots <= 0 or args.max_slots % 2:
        print(f"Error: Panel size must be a positive even number, got {args.max_slots}")
        sys.exit(1)

    print(f"Generating panel schedule from {args.circuits}...")
    print(f"  Panel size: {args.max_slots} slots")
    print(f"  Balance: {'yes' if args.balance else 'no'}")

    rng = random.Random(args.seed) if args.seed is not None else None

    try:
        records = load_circuit_records(args.circuits)
        schedule = generate_panel_schedule(
            records,
            max_slots=args.max_slots,
            swaps=args.swap,
            balance=args.balance,
            use_saved_slots=not args.ignore_saved_slots,
            tolerance_va=args.tolerance,
            rng=rng
        )
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)

    # Create output directory if needed
    args.output.parent.mkdir(parents=True, exist_ok=True)

    with open(args.output, "w") as f:
        yaml.dump(schedule, f, default_flow_style=False, sort_keys=False, allow_unicode=True)

    if args.save_slots:
        save_circuit_records(
            args.circuits,
            merge_results_into_records(schedule["circuits"], schedule["layout"])
        )
        print(f"  Saved slots to {args.circuits}")

    # Print summary
    summary = schedule["panel_summary"]
    totals = summary["phase_totals_va"]
    print(f"\nGenerated panel schedule: {args.output}")
    print(f"  Circuits placed: {summary['circuits_placed']}")
    print(f"  Slots used: {summary['slots_used']}/{summary['max_slots']}")
    print(f"  Phase VA: A={totals['A']} B={totals['B']} C={totals['C']}")
    print(f"  Imbalance: {summary['phase_imbalance']['gap_va']} VA "
          f"({summary['phase_imbalance']['imbalance_pct']}%)")
    if "balance" in schedule["layout"]:
        print(f"  Balance swaps: {len(schedule['layout']['balance']['swaps'])}")

    for warning in schedule["warnings"]:
        print(f"Warning: {warning}")


if __name__ == "__main__":
    main()
