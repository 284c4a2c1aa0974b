#!/usr/bin/env python3
"""
Standards Tables Module
Reference data for branch circuit sizing.

Provides read access to:
- Standard breaker ratings (AT)
- Conductor ampacity (IEC 01 wiring, copper)
- Conductor resistance / reactance per km
- Demand factor tiers per load category

Tables live in catalogs/circuit_standards.yaml and are loaded once.

Author: Load Schedule Tools
Standards: IEC 60364-5-52, EIT 2001-56 (IEC 01 cable tables)
"""

from pathlib import Path
from typing import Optional

import yaml


CATALOGS_DIR = Path(__file__).parent.parent / "catalogs"

DEFAULT_LOAD_TYPE = "General"


def _load_catalog(name: str) -> dict:
    """Load a YAML catalog file."""
    path = CATALOGS_DIR / f"{name}.yaml"
    if not path.exists():
        raise FileNotFoundError(f"Catalog not found: {path}")
    with open(path) as f:
        return yaml.safe_load(f)


# Cache for catalog
_CIRCUIT_STANDARDS: Optional[dict] = None


def get_circuit_standards() -> dict:
    """Get cached circuit standards catalog."""
    global _CIRCUIT_STANDARDS
    if _CIRCUIT_STANDARDS is None:
        _CIRCUIT_STANDARDS = _load_catalog("circuit_standards")
    return _CIRCUIT_STANDARDS


def get_breaker_ratings() -> list[int]:
    """Standard breaker trip ratings in amps, ascending."""
    return list(get_circuit_standards()["breaker_ratings_at"])


def get_ampacity_table() -> list[dict]:
    """Conductor sizes with ampacity, ascending by size_sqmm."""
    return [dict(row) for row in get_circuit_standards()["ampacity_iec01"]]


def get_wire_properties(size_sqmm: float) -> Optional[dict]:
    """
    Look up resistance and reactance for a conductor size.

    Args:
        size_sqmm: Conductor cross-section in mm²

    Returns:
        dict with size_sqmm, r_ohm_km, x_ohm_km, or None if the size
        has no impedance data
    """
    for row in get_circuit_standards()["wire_properties_iec01"]:
        if float(row["size_sqmm"]) == float(size_sqmm):
            return dict(row)
    return None


def list_load_types() -> list[str]:
    """Load categories that have their own demand factor tiers."""
    return list(get_circuit_standards()["demand_factors"]["categories"].keys())


def get_demand_factor_tiers(load_type: Optional[str]) -> list[dict]:
    """
    Get demand factor tiers for a load category.

    Each tier is either {"upto": threshold_va, "factor": f} or
    {"over": threshold_va, "factor": f}. Unknown categories fall back
    to the default category (single 100% tier).

    Args:
        load_type: Load category name, e.g. "Receptacles (General)"

    Returns:
        Ordered list of tier dicts
    """
    demand = get_circuit_standards()["demand_factors"]
    categories = demand["categories"]
    default = demand.get("default_category", DEFAULT_LOAD_TYPE)

    tiers = categories.get(load_type) if load_type else None
    if tiers is None:
        tiers = categories[default]
    return [dict(tier) for tier in tiers]


def max_demand_factor(load_type: Optional[str]) -> float:
    """Largest factor in a category's tier list."""
    return max(tier["factor"] for tier in get_demand_factor_tiers(load_type))


if __name__ == "__main__":
    print("Testing standards_tables module...")
    print("=" * 60)

    print(f"\nBreaker ratings: {get_breaker_ratings()}")

    print("\nAmpacity (IEC 01):")
    for row in get_ampacity_table():
        props = get_wire_properties(row["size_sqmm"])
        print(f"   {row['size_sqmm']:>5} mm²  {row['ampacity']:>4} A  "
              f"R={props['r_ohm_km']} X={props['x_ohm_km']} Ω/km")

    print("\nDemand factor tiers:")
    for load_type in list_load_types():
        print(f"   {load_type}: {get_demand_factor_tiers(load_type)}")
    print(f"   Unknown -> {get_demand_factor_tiers('Unknown')}")
