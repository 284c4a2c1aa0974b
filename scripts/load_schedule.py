#!/usr/bin/env python3
"""
Load Schedule Module
Panel load schedule rows and circuit record storage.

Provides:
- Circuit record round trip (YAML store; stored attributes are kept)
- Persistent schedule text colors
- Schedule rows: wire size, wire type, conduit estimate, breaker, phase VA
- CSV export of schedule rows

Author: Load Schedule Tools
"""

import colorsys
import csv
import math
import random
from pathlib import Path
from typing import Optional

import yaml

from panel_allocation import calc_phase_totals, extract_slot_hints


# Default wire type for IEC 01 schedules
WIRE_TYPE = "THW"

# Calculation flags reported in the schedule but never written to the store
ADVISORY_FIELDS = (
    "under_protected",
    "conductor_at_limit",
    "voltage_drop_ok",
)

# Schedule columns, in export order
SCHEDULE_FIELDS = [
    "circuit_no",
    "slot",
    "name",
    "display_name",
    "wire_size",
    "wire_type",
    "conduit",
    "breaker_pole",
    "breaker_at",
    "va_a",
    "va_b",
    "va_c",
    "voltage",
    "power_factor",
    "connected_load_w",
    "demand_load_va",
    "design_current_a",
    "voltage_drop_pct",
    "load_type",
    "text_color",
]


# ============================================================================
# Circuit Store
# ============================================================================

def load_circuit_records(path: Path) -> list[dict]:
    """
    Load circuit attribute records from a YAML store.

    The file holds a top-level "circuits" list; a bare list is accepted too.

    Raises:
        FileNotFoundError: If the store does not exist
        ValueError: If the file holds anything other than a circuit list
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Circuit store not found: {path}")
    with open(path) as f:
        data = yaml.safe_load(f) or {}

    if isinstance(data, dict):
        data = data.get("circuits") or []
    if not isinstance(data, list) or not all(isinstance(r, dict) for r in data):
        raise ValueError(f"Circuit store must hold a 'circuits' list: {path}")
    return list(data)


def save_circuit_records(path: Path, records: list[dict]) -> None:
    """Write circuit attribute records to a YAML store."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        yaml.dump({"circuits": records}, f, default_flow_style=False,
                  sort_keys=False, allow_unicode=True)


def merge_results_into_records(results: list[dict], layout: Optional[dict] = None) -> list[dict]:
    """
    Build store records from calculated circuits.

    Every attribute the circuit came in with is kept; the calculated fields
    are laid over it and the advisory flags are left out. Slot hints from
    the layout are saved as schedule_slot so the next allocation keeps the
    same arrangement; unplaced circuits keep no slot.
    """
    hints = extract_slot_hints(layout) if layout else {}
    records = []
    for result in results:
        record = {key: value for key, value in result.items() if key not in ADVISORY_FIELDS}
        if layout is not None:
            record["schedule_slot"] = hints.get(result.get("circuit_name"))
        records.append(record)
    return records


# ============================================================================
# Text Color
# ============================================================================

def generate_text_color(rng: Optional[random.Random] = None) -> str:
    """
    Random dark hex color for schedule text on a white background.

    Hue 0-360°, saturation 30-100%, lightness 20-45%.
    """
    rng = rng or random.Random()
    h = rng.randrange(360) / 360.0
    s = rng.randint(30, 100) / 100.0
    l = rng.randint(20, 45) / 100.0

    r, g, b = colorsys.hls_to_rgb(h, l, s)
    return "#{:02X}{:02X}{:02X}".format(round(r * 255), round(g * 255), round(b * 255))


def ensure_text_colors(circuits: list[dict], rng: Optional[random.Random] = None) -> int:
    """
    Give every circuit without a schedule_text_color a new one.

    Returns:
        Number of colors generated
    """
    generated = 0
    for circuit in circuits:
        if not circuit.get("schedule_text_color"):
            circuit["schedule_text_color"] = generate_text_color(rng)
            generated += 1
    return generated


# ============================================================================
# Schedule Formatting
# ============================================================================

def format_wire_size(wire_sqmm: Optional[float], phases: int) -> str:
    """Conductor callout, e.g. "L+N : 2-1/Cx2.5" with ground on a second line."""
    if not wire_sqmm:
        return "-"
    if phases == 1:
        return f"L+N : 2-1/Cx{wire_sqmm}\nG : 1-1/Cx{wire_sqmm}"
    return f"3-1/Cx{wire_sqmm}\nG : 1-1/Cx{wire_sqmm}"


def estimate_conduit(wire_sqmm: Optional[float], phases: int) -> str:
    """Rough PVC conduit size for a conductor size."""
    if not wire_sqmm:
        return "-"
    sqmm = float(wire_sqmm)
    if phases == 1:
        if sqmm <= 4.0:
            return '1/2" PVC'
        elif sqmm <= 10.0:
            return '3/4" PVC'
        return '1" PVC'
    if sqmm <= 4.0:
        return '3/4" PVC'
    elif sqmm <= 10.0:
        return '1" PVC'
    return '1-1/4" PVC'


def sanitize_value(value):
    """Replace infinite / NaN floats with "N/A"."""
    if isinstance(value, float) and (math.isinf(value) or math.isnan(value)):
        return "N/A"
    return value


def build_schedule_rows(layout: dict) -> list[dict]:
    """
    Build load schedule rows from a panel layout.

    Rows are ordered by first slot; circuit_no counts rows from 1.
    """
    rows = []
    for circuit_no, entry in enumerate(layout["entries"], 1):
        phases = int(entry.get("phases") or 1)
        wire_sqmm = entry.get("wire_size_sqmm")

        row = {
            "circuit_no": circuit_no,
            "slot": entry["slots"][0],
            "name": entry.get("circuit_name", ""),
            "display_name": entry.get("display_name", ""),
            "wire_size": format_wire_size(wire_sqmm, phases),
            "wire_type": WIRE_TYPE,
            "conduit": estimate_conduit(wire_sqmm, phases),
            "breaker_pole": phases,
            "breaker_at": entry.get("breaker_at", "-"),
            "va_a": entry.get("va_a", ""),
            "va_b": entry.get("va_b", ""),
            "va_c": entry.get("va_c", ""),
            "voltage": entry.get("voltage"),
            "power_factor": entry.get("power_factor"),
            "connected_load_w": entry.get("connected_load_w"),
            "demand_load_va": entry.get("demand_load_va"),
            "design_current_a": entry.get("design_current_a"),
            "voltage_drop_pct": entry.get("voltage_drop_percent"),
            "load_type": entry.get("load_type"),
            "text_color": entry.get("schedule_text_color"),
        }
        rows.append({key: sanitize_value(value) for key, value in row.items()})
    return rows


def summarize_schedule(layout: dict) -> dict:
    """Panel totals for the schedule footer."""
    totals = calc_phase_totals(layout)
    return {
        "max_slots": layout["max_slots"],
        "circuits_placed": len(layout["entries"]),
        "slots_used": sum(len(e["slots"]) for e in layout["entries"]),
        "unplaced": list(layout.get("unplaced", [])),
        "phase_totals_va": totals,
        "total_va": sum(totals.values()),
    }


def write_schedule_csv(rows: list[dict], path: Path) -> Path:
    """Write schedule rows to CSV (multi-line wire sizes are kept quoted)."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=SCHEDULE_FIELDS, extrasaction="ignore")
        writer.writeheader()
        for row in rows:
            writer.writerow(row)
    return path


if __name__ == "__main__":
    from circuit_calculation import calculate_circuits
    from panel_allocation import allocate_slots

    print("Testing load_schedule module...")
    print("=" * 60)

    circuits = calculate_circuits([
        {"circuit_name": "LP-1", "voltage": 230, "phases": 1, "power_factor": 0.9,
         "connected_load_w": 2000, "load_type": "General", "circuit_length": 20},
        {"circuit_name": "LP-2", "voltage": 230, "phases": 1, "power_factor": 1.0,
         "connected_load_w": 15000, "load_type": "Receptacles (General)", "circuit_length": 15},
        {"circuit_name": "M-1", "voltage": 400, "phases": 3, "power_factor": 0.85,
         "connected_load_w": 7500, "load_type": "Motor", "circuit_length": 30},
    ])
    ensure_text_colors(circuits, random.Random(7))
    layout = allocate_slots(circuits)

    for row in build_schedule_rows(layout):
        wire = row["wire_size"].replace("\n", " / ")
        print(f"   {row['display_name']:<18} {row['breaker_at']:>4} AT  {wire:<34} "
              f"{row['conduit']:<10} A={row['va_a']} B={row['va_b']} C={row['va_c']}")

    summary = summarize_schedule(layout)
    print(f"\n   Phase totals: {summary['phase_totals_va']}")
    print(f"   Total: {summary['total_va']} VA")
