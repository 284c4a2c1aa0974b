#!/usr/bin/env python3
"""
Schedule to Excel Converter
Converts panel schedule YAML to a formatted Excel workbook (and CSV).

Outputs:
- Load Schedule sheet (one row per placed circuit, VA totals row)
- Phase Summary sheet (per-phase VA, imbalance)
- Warnings sheet (advisories and unplaced circuits)

Usage:
    python schedule_to_xlsx.py \
        --input electrical/panel-schedule.yaml \
        --output electrical/panel-schedule.xlsx \
        --csv electrical/panel-schedule.csv

Author: Load Schedule Tools
"""

import argparse
import sys
from pathlib import Path

import yaml
from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, NamedStyle, PatternFill, Side
from openpyxl.utils import get_column_letter

from load_schedule import write_schedule_csv


# =============================================================================
# COLUMN DEFINITIONS
# =============================================================================

SCHEDULE_COLUMNS = [
    ("circuit_no", "No.", 6),
    ("slot", "Slot", 6),
    ("display_name", "Circuit", 22),
    ("wire_size", "Wire Size", 24),
    ("wire_type", "Type", 7),
    ("conduit", "Conduit", 12),
    ("breaker_pole", "Pole", 6),
    ("breaker_at", "AT", 7),
    ("va_a", "VA (A)", 10),
    ("va_b", "VA (B)", 10),
    ("va_c", "VA (C)", 10),
    ("design_current_a", "Current (A)", 11),
    ("voltage_drop_pct", "VD (%)", 8),
    ("load_type", "Load Type", 20),
]

PHASE_SUMMARY_COLUMNS = [
    ("phase", "Phase", 8),
    ("total_va", "Total VA", 12),
    ("share_pct", "Share (%)", 10),
]


# =============================================================================
# STYLES
# =============================================================================

BLUE = "4472C4"
GREEN = "E2EFDA"
PINK = "FFCCCC"

# name -> (font kwargs, horizontal alignment, fill color, number format)
STYLE_DEFS = {
    "header": ({"bold": True, "color": "FFFFFF", "size": 10}, "center", BLUE, None),
    "data": ({"size": 9}, None, None, None),
    "number": ({"size": 9}, "right", None, "#,##0.00"),
    "integer": ({"size": 9}, "right", None, "#,##0"),
    "subtotal": ({"bold": True, "size": 9}, None, GREEN, "#,##0"),
    "warning": ({"size": 9, "color": "C00000"}, None, PINK, None),
}


def create_styles(wb: Workbook) -> dict:
    """Register the schedule's named styles on a workbook."""
    styles = {}
    for name, (font, horizontal, fill, number_format) in STYLE_DEFS.items():
        style = NamedStyle(name=name)
        style.font = Font(**font)
        # Wire sizes span two lines, so text cells wrap
        style.alignment = Alignment(horizontal=horizontal, vertical="center",
                                    wrap_text=horizontal != "right")
        if fill:
            style.fill = PatternFill(start_color=fill, end_color=fill, fill_type="solid")
        if number_format:
            style.number_format = number_format
        if name == "header":
            style.border = Border(bottom=Side(style="thin", color="000000"))
        wb.add_named_style(style)
        styles[name] = style
    return styles


# =============================================================================
# SHEET WRITERS
# =============================================================================

def _cell_style(value) -> str:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return "data"
    return "integer" if isinstance(value, int) else "number"


def _cell_value(value):
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if value is None:
        return ""
    if isinstance(value, (int, float)):
        return value
    return str(value)


def write_table(ws, rows: list[dict], columns: list, title: str,
                total_keys: tuple = ()) -> int:
    """
    Write a header row and one row per dict, by (key, header, width) columns.

    Columns named in total_keys get an =SUM() footer. Returns the last
    row written.
    """
    ws.title = title[:31]

    for col, (_, header, width) in enumerate(columns, 1):
        ws.cell(row=1, column=col, value=header).style = "header"
        ws.column_dimensions[get_column_letter(col)].width = width

    for row, item in enumerate(rows, 2):
        for col, (key, _, _) in enumerate(columns, 1):
            value = item.get(key)
            cell = ws.cell(row=row, column=col, value=_cell_value(value))
            cell.style = _cell_style(value)
            if key == "display_name" and item.get("text_color"):
                cell.font = Font(size=9, bold=True, color=str(item["text_color"]).lstrip("#"))

    last_row = len(rows) + 1
    if rows and total_keys:
        last_row += 1
        ws.cell(row=last_row, column=1, value="TOTAL").style = "subtotal"
        for col, (key, _, _) in enumerate(columns, 1):
            if key in total_keys:
                letter = get_column_letter(col)
                ws.cell(row=last_row, column=col,
                        value=f"=SUM({letter}2:{letter}{last_row - 1})").style = "subtotal"

    if rows:
        ws.auto_filter.ref = f"A1:{get_column_letter(len(columns))}{len(rows) + 1}"
    ws.freeze_panes = "A2"
    return last_row


def write_schedule_sheet(ws, rows: list[dict]):
    write_table(ws, rows, SCHEDULE_COLUMNS, "Load Schedule",
                total_keys=("va_a", "va_b", "va_c"))


def write_phase_summary_sheet(ws, summary: dict):
    """Per-phase VA with share of the panel total, then imbalance figures."""
    totals = summary.get("phase_totals_va", {})
    grand_total = sum(totals.values())
    rows = [
        {
            "phase": phase,
            "total_va": totals.get(phase, 0),
            "share_pct": round(totals.get(phase, 0) / grand_total * 100, 1) if grand_total else 0.0,
        }
        for phase in ("A", "B", "C")
    ]
    last_row = write_table(ws, rows, PHASE_SUMMARY_COLUMNS, "Phase Summary",
                           total_keys=("total_va",))

    imbalance = summary.get("phase_imbalance", {})
    footer = [
        ("Imbalance (VA)", imbalance.get("gap_va", 0)),
        ("Imbalance (%)", imbalance.get("imbalance_pct", 0.0)),
        ("Slots used", f"{summary.get('slots_used', 0)}/{summary.get('max_slots', 0)}"),
    ]
    for row, (label, value) in enumerate(footer, last_row + 2):
        ws.cell(row=row, column=1, value=label).style = "data"
        ws.cell(row=row, column=2, value=value).style = _cell_style(value)


def write_warnings_sheet(ws, warnings: list[str]):
    ws.title = "Warnings"
    ws.column_dimensions["A"].width = 100
    ws.cell(row=1, column=1, value="Advisories").style = "header"

    if not warnings:
        ws.cell(row=2, column=1, value="No advisories").style = "data"
    for row, warning in enumerate(warnings, 2):
        ws.cell(row=row, column=1, value=warning).style = "warning"


# =============================================================================
# MAIN CONVERTER
# =============================================================================

def _load_schedule_yaml(path: Path) -> dict:
    with open(path) as f:
        return yaml.safe_load(f) or {}


def convert_schedule_to_xlsx(input_path: Path, output_path: Path) -> dict:
    """
    Convert panel schedule YAML to Excel workbook.

    Args:
        input_path: Path to panel schedule YAML
        output_path: Path for output Excel file

    Returns:
        dict with exported counts
    """
    data = _load_schedule_yaml(input_path)
    rows = data.get("schedule", [])
    summary = data.get("panel_summary", {})
    warnings = data.get("warnings", [])

    wb = Workbook()
    create_styles(wb)

    write_schedule_sheet(wb.active, rows)
    if summary:
        write_phase_summary_sheet(wb.create_sheet(), summary)
    write_warnings_sheet(wb.create_sheet(), warnings)

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    wb.save(output_path)

    return {
        "circuits": len(rows),
        "warnings": len(warnings),
    }


def convert_schedule_to_csv(input_path: Path, output_path: Path) -> int:
    """Write the schedule rows of a panel schedule YAML to CSV."""
    rows = _load_schedule_yaml(input_path).get("schedule", [])
    write_schedule_csv(rows, output_path)
    return len(rows)


def main():
    parser = argparse.ArgumentParser(
        description="Convert panel schedule YAML to Excel"
    )
    parser.add_argument(
        "--input", "-i",
        type=Path,
        required=True,
        help="Input panel schedule YAML"
    )
    parser.add_argument(
        "--output", "-o",
        type=Path,
        required=True,
        help="Output Excel file"
    )
    parser.add_argument(
        "--csv",
        type=Path,
        help="Also write schedule rows to this CSV file"
    )

    args = parser.parse_args()

    if not args.input.exists():
        print(f"Error: Input file not found: {args.input}")
        sys.exit(1)

    print(f"Converting {args.input} to {args.output}...")

    counts = convert_schedule_to_xlsx(args.input, args.output)

    print(f"Done! Exported:")
    print(f"  - {counts['circuits']} circuits")
    print(f"  - {counts['warnings']} warnings")

    if args.csv:
        count = convert_schedule_to_csv(args.input, args.csv)
        print(f"  - {count} rows to {args.csv}")


if __name__ == "__main__":
    main()
