#!/usr/bin/env python3
"""
Panel Allocation Module
Slot assignment for branch circuits in a distribution panel.

Panel model:
- Slots 1..N (N even, default 30); odd slots on the left column,
  even slots on the right
- Every two consecutive same-column slots share a phase, in A→B→C order:
  slots 1,2 → A; 3,4 → B; 5,6 → C; 7,8 → A; ...
- A three-phase circuit occupies three same-column slots spaced +2,
  one arm per phase

Operations (all return a new layout dict, input is left untouched):
- allocate_slots: initial placement honoring saved slot hints
- swap_slots: manual rearrangement of single slots or whole spans
- balance_phases: greedy single-phase swaps to even out phase VA

Layout dict:
    {
        "max_slots": 30,
        "entries": [ {circuit fields..., slots, display_va, arms,
                      va_a, va_b, va_c, side, display_name} ],
        "unplaced": [circuit_name, ...]
    }

Author: Load Schedule Tools
"""

import copy
import math
from typing import Optional


DEFAULT_MAX_SLOTS = 30

PHASES = ("A", "B", "C")

# Phase balancing
BALANCE_TOLERANCE_VA = 100
BALANCE_MAX_ITERATIONS = 10


# ============================================================================
# Slot Arithmetic
# ============================================================================

def slot_side(slot: int) -> str:
    """Column of a slot: "L" for odd, "R" for even."""
    return "L" if slot % 2 == 1 else "R"


def other_side(side: str) -> str:
    return "R" if side == "L" else "L"


def slot_phase_index(slot: int) -> int:
    """Phase index (0=A, 1=B, 2=C) of a slot."""
    return ((slot - 1) // 2) % 3


def slot_phase(slot: int) -> str:
    return PHASES[slot_phase_index(slot)]


def is_phase_a_boundary(slot: int) -> bool:
    """True for slots that start a phase group (1, 2, 7, 8, 13, 14, ...)."""
    return slot_phase_index(slot) == 0


def span_slots(start: int, phases: int) -> list[int]:
    """Slots occupied by a circuit whose lowest slot is start."""
    if phases == 3:
        return [start, start + 2, start + 4]
    return [start]


def side_slots(side: str, max_slots: int) -> range:
    """All slot numbers of one column, ascending."""
    return range(1 if side == "L" else 2, max_slots + 1, 2)


def slot_label(slots: list[int]) -> str:
    """Slot/phase label, e.g. "3B" or "1A-3B-5C"."""
    return "-".join(f"{s}{slot_phase(s)}" for s in slots)


# ============================================================================
# Entries
# ============================================================================

def round_half_up(value: float) -> int:
    """Round to a whole VA with halves going up (1000.5 -> 1001)."""
    return int(math.floor(value + 0.5))


def display_va(circuit: dict) -> int:
    """VA shown in the schedule: demand load if calculated, else connected load."""
    demand = float(circuit.get("demand_load_va") or 0)
    if demand > 0:
        return round_half_up(demand)
    return round_half_up(float(circuit.get("connected_load_w") or 0))


def _is_three_phase(circuit: dict) -> bool:
    return int(circuit.get("phases") or 1) == 3


def _refresh_entry(entry: dict) -> dict:
    """Recompute phase arms, VA columns and display name from the entry's slots."""
    slots = sorted(entry["slots"])
    va = entry["display_va"]

    if _is_three_phase(entry):
        share = round_half_up(va / 3.0)
        arms = [{"slot": s, "phase": slot_phase(s), "va": share} for s in slots]
    else:
        arms = [{"slot": slots[0], "phase": slot_phase(slots[0]), "va": va}]

    entry["slots"] = slots
    entry["arms"] = arms
    entry["va_a"] = entry["va_b"] = entry["va_c"] = ""
    for arm in arms:
        entry[f"va_{arm['phase'].lower()}"] = arm["va"]
    entry["side"] = slot_side(slots[0])
    entry["display_name"] = f"{entry.get('circuit_name', '')} ({slot_label(slots)})"
    return entry


def _make_entry(circuit: dict, slots: list[int]) -> dict:
    entry = dict(circuit)
    entry["slots"] = list(slots)
    entry["display_va"] = display_va(circuit)
    return _refresh_entry(entry)


def _sort_entries(layout: dict) -> None:
    layout["entries"].sort(key=lambda e: e["slots"][0])


def _occupied_slots(layout: dict, exclude: Optional[dict] = None) -> set[int]:
    occupied = set()
    for entry in layout["entries"]:
        if entry is not exclude:
            occupied.update(entry["slots"])
    return occupied


def find_span(layout: dict, slot: int) -> Optional[dict]:
    """Entry occupying a slot, or None if the slot is free."""
    for entry in layout["entries"]:
        if slot in entry["slots"]:
            return entry
    return None


# ============================================================================
# Initial Placement
# ============================================================================

def _slot_hint(circuit: dict, saved_slots: dict) -> Optional[int]:
    name = circuit.get("circuit_name")
    hint = saved_slots.get(name, circuit.get("schedule_slot"))
    try:
        return int(hint) if hint not in (None, "") else None
    except (TypeError, ValueError):
        return None


def _find_free_start(
    side: str,
    phases: int,
    occupied: set[int],
    max_slots: int
) -> Optional[int]:
    """Lowest slot on a side where a circuit's whole span is free."""
    for slot in side_slots(side, max_slots):
        if phases == 3:
            if not is_phase_a_boundary(slot):
                continue
            span = span_slots(slot, 3)
            if span[-1] > max_slots:
                break
        else:
            span = [slot]
        if not occupied.intersection(span):
            return slot
    return None


def allocate_slots(
    circuits: list[dict],
    saved_slots: Optional[dict] = None,
    max_slots: int = DEFAULT_MAX_SLOTS
) -> dict:
    """
    Assign panel slots to calculated circuits.

    Placement order:
    1. Circuits with a saved first-slot hint (saved_slots[name], else the
       circuit's own schedule_slot) are placed at the hint. A hint that is
       out of range or collides with an earlier hint is ignored.
    2. Remaining circuits, sorted by name, alternate left/right. A
       single-phase circuit takes the lowest free slot on the favored side;
       a three-phase circuit takes the lowest phase-A slot on the favored
       side with its +2/+4 slots free. The other side is tried when the
       favored one has no room.
    3. Circuits that fit nowhere are listed in layout["unplaced"].

    Args:
        circuits: Calculated circuit dicts (circuit_name, phases,
                  demand_load_va, connected_load_w, ...)
        saved_slots: Optional {circuit_name: first_slot} from a saved layout
        max_slots: Panel size (even)

    Returns:
        Layout dict
    """
    saved_slots = saved_slots or {}
    ordered = sorted(circuits, key=lambda c: str(c.get("circuit_name", "")))

    occupied = set()
    entries = []
    pending = []
    unplaced = []

    # Hinted circuits claim their slots before any auto placement
    for circuit in ordered:
        hint = _slot_hint(circuit, saved_slots)
        if hint is None:
            pending.append(circuit)
            continue
        slots = span_slots(hint, 3 if _is_three_phase(circuit) else 1)
        if slots[0] < 1 or slots[-1] > max_slots or occupied.intersection(slots):
            pending.append(circuit)
            continue
        occupied.update(slots)
        entries.append(_make_entry(circuit, slots))

    favored = "L"
    for circuit in pending:
        phases = 3 if _is_three_phase(circuit) else 1
        start = None
        for side in (favored, other_side(favored)):
            start = _find_free_start(side, phases, occupied, max_slots)
            if start is not None:
                break

        if start is None:
            unplaced.append(circuit.get("circuit_name"))
            continue

        slots = span_slots(start, phases)
        occupied.update(slots)
        entries.append(_make_entry(circuit, slots))
        favored = other_side(favored)

    layout = {
        "max_slots": max_slots,
        "entries": entries,
        "unplaced": unplaced,
    }
    _sort_entries(layout)
    return layout


def extract_slot_hints(layout: dict) -> dict:
    """First slot of every placed circuit, for saving as schedule_slot."""
    return {entry["circuit_name"]: entry["slots"][0] for entry in layout["entries"]}


# ============================================================================
# Swap
# ============================================================================

def swap_slots(layout: dict, slot_a: int, slot_b: int) -> dict:
    """
    Swap the contents of two panel slots.

    - One side empty: the occupied span moves so its lowest slot lands on
      the empty slot (three-phase keeps +2 spacing). Rejected if the span
      would run past the last slot or onto another circuit.
    - Both occupied with equal span sizes: slot numbers are exchanged
      position by position.
    - Mismatched span sizes, both empty, or out-of-range slots: no change.

    Returns:
        New layout dict
    """
    result = copy.deepcopy(layout)
    max_slots = result["max_slots"]

    if slot_a == slot_b:
        return result
    if not (1 <= slot_a <= max_slots and 1 <= slot_b <= max_slots):
        return result

    entry_a = find_span(result, slot_a)
    entry_b = find_span(result, slot_b)

    if entry_a is None and entry_b is None:
        return result

    if entry_a is None or entry_b is None:
        moving, target = (entry_b, slot_a) if entry_a is None else (entry_a, slot_b)
        new_slots = span_slots(target, 3 if len(moving["slots"]) == 3 else 1)
        if new_slots[-1] > max_slots:
            return result
        if _occupied_slots(result, exclude=moving).intersection(new_slots):
            return result
        moving["slots"] = new_slots
        _refresh_entry(moving)
    else:
        if entry_a is entry_b:
            return result
        if len(entry_a["slots"]) != len(entry_b["slots"]):
            return result
        slots_a = list(entry_a["slots"])
        entry_a["slots"] = list(entry_b["slots"])
        entry_b["slots"] = slots_a
        _refresh_entry(entry_a)
        _refresh_entry(entry_b)

    _sort_entries(result)
    return result


# ============================================================================
# Phase Balancing
# ============================================================================

def calc_phase_totals(layout: dict) -> dict:
    """Sum of phase-arm VA per phase."""
    totals = {phase: 0 for phase in PHASES}
    for entry in layout["entries"]:
        for arm in entry["arms"]:
            totals[arm["phase"]] += arm["va"]
    return totals


def calc_phase_imbalance(totals: dict) -> dict:
    """
    Phase imbalance from per-phase totals.

    Returns:
        dict with gap_va (max - min), imbalance_pct (gap / mean × 100),
        heaviest and lightest phase
    """
    values = [totals[p] for p in PHASES]
    heaviest = max(PHASES, key=lambda p: totals[p])
    lightest = min(PHASES, key=lambda p: totals[p])
    gap = totals[heaviest] - totals[lightest]
    avg = sum(values) / len(values)

    return {
        "gap_va": gap,
        "imbalance_pct": round(gap / avg * 100, 1) if avg else 0.0,
        "heaviest_phase": heaviest,
        "lightest_phase": lightest,
    }


def _gap(totals: dict) -> float:
    return max(totals.values()) - min(totals.values())


def balance_phases(
    layout: dict,
    tolerance_va: float = BALANCE_TOLERANCE_VA,
    max_iterations: int = BALANCE_MAX_ITERATIONS
) -> dict:
    """
    Reduce phase imbalance by swapping single-phase circuits.

    Each iteration swaps the heaviest single-phase circuit on the heaviest
    phase with the lightest single-phase circuit on the lightest phase.
    Stops when the gap is below tolerance, a phase has no single-phase
    circuit, the swap would not shrink the gap, or after max_iterations.
    Three-phase spans never move.

    Returns:
        New layout dict with a "balance" record (iterations, swaps,
        phase totals before/after, stop reason)
    """
    result = copy.deepcopy(layout)
    before = calc_phase_totals(result)
    swaps = []
    stop_reason = "max_iterations"

    for _ in range(max_iterations):
        totals = calc_phase_totals(result)
        imbalance = calc_phase_imbalance(totals)
        if imbalance["gap_va"] < tolerance_va:
            stop_reason = "balanced"
            break

        singles = [e for e in result["entries"] if not _is_three_phase(e)]
        on_heavy = [e for e in singles if e["arms"][0]["phase"] == imbalance["heaviest_phase"]]
        on_light = [e for e in singles if e["arms"][0]["phase"] == imbalance["lightest_phase"]]
        if not on_heavy or not on_light:
            stop_reason = "no_eligible_circuit"
            break

        heavy = max(on_heavy, key=lambda e: e["display_va"])
        light = min(on_light, key=lambda e: e["display_va"])

        moved = heavy["display_va"] - light["display_va"]
        trial = dict(totals)
        trial[imbalance["heaviest_phase"]] -= moved
        trial[imbalance["lightest_phase"]] += moved
        if _gap(trial) >= imbalance["gap_va"]:
            stop_reason = "no_improvement"
            break

        slot_heavy, slot_light = heavy["slots"][0], light["slots"][0]
        heavy["slots"] = [slot_light]
        light["slots"] = [slot_heavy]
        _refresh_entry(heavy)
        _refresh_entry(light)
        swaps.append([slot_heavy, slot_light])
    else:
        if _gap(calc_phase_totals(result)) < tolerance_va:
            stop_reason = "balanced"

    _sort_entries(result)
    after = calc_phase_totals(result)
    result["balance"] = {
        "iterations": len(swaps),
        "swaps": swaps,
        "phase_totals_before": before,
        "phase_totals_after": after,
        "gap_before_va": _gap(before),
        "gap_after_va": _gap(after),
        "stop_reason": stop_reason,
    }
    return result


# ============================================================================
# Layout Checks
# ============================================================================

def check_layout(layout: dict) -> list[str]:
    """
    Check slot invariants of a layout.

    Returns:
        List of issue messages (empty when the layout is consistent)
    """
    issues = []
    max_slots = layout["max_slots"]
    seen = {}

    for entry in layout["entries"]:
        name = entry.get("circuit_name")
        slots = entry["slots"]

        for slot in slots:
            if not 1 <= slot <= max_slots:
                issues.append(f"{name}: slot {slot} outside 1..{max_slots}")
            if slot in seen:
                issues.append(f"{name}: slot {slot} already used by {seen[slot]}")
            seen[slot] = name

        if _is_three_phase(entry):
            if len(slots) != 3 or slots != span_slots(slots[0], 3):
                issues.append(f"{name}: three-phase slots {slots} not spaced +2")
            elif {slot_phase(s) for s in slots} != set(PHASES):
                issues.append(f"{name}: three-phase slots {slots} do not cover A, B, C")
        elif len(slots) != 1:
            issues.append(f"{name}: single-phase circuit holds {len(slots)} slots")

    return issues


if __name__ == "__main__":
    sample_circuits = [
        {"circuit_name": "LP-1", "phases": 1, "demand_load_va": 2222.22, "connected_load_w": 2000},
        {"circuit_name": "LP-2", "phases": 1, "demand_load_va": 1800, "connected_load_w": 1620},
        {"circuit_name": "LP-3", "phases": 1, "demand_load_va": 450, "connected_load_w": 405},
        {"circuit_name": "LP-4", "phases": 1, "demand_load_va": 3600, "connected_load_w": 3240},
        {"circuit_name": "M-1", "phases": 3, "demand_load_va": 9000, "connected_load_w": 7650},
    ]

    print("Testing panel_allocation module...")
    print("=" * 60)

    layout = allocate_slots(sample_circuits)
    print("\nInitial placement:")
    for entry in layout["entries"]:
        print(f"   {entry['display_name']:<20} {entry['display_va']:>6} VA")
    print(f"   Phase totals: {calc_phase_totals(layout)}")

    layout = swap_slots(layout, 1, 2)
    print("\nAfter swapping slots 1 and 2:")
    for entry in layout["entries"]:
        print(f"   {entry['display_name']}")

    layout = balance_phases(layout)
    print("\nAfter balancing:")
    print(f"   Swaps: {layout['balance']['swaps']}")
    print(f"   Phase totals: {layout['balance']['phase_totals_after']}")
    print(f"   Stop reason: {layout['balance']['stop_reason']}")
    print(f"   Layout issues: {check_layout(layout) or 'none'}")
