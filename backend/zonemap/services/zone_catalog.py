"""
Fixed zone catalog: the 19 zone codes a vendor can price, their regions,
and the locked display order everything else sorts by.
"""
import re
from typing import Dict, Iterable, List, Tuple

ZONE_ORDER: List[str] = [
    "N1", "N2", "N3", "N4",
    "C1", "C2",
    "E1", "E2",
    "W1", "W2",
    "S1", "S2", "S3", "S4",
    "NE1", "NE2",
    "X1", "X2", "X3",
]

REGION_ORDER: List[str] = ["North", "Central", "East", "West", "South", "Northeast", "Special"]

REGION_GROUPS: Dict[str, List[str]] = {
    "North":     ["N1", "N2", "N3", "N4"],
    "Central":   ["C1", "C2"],
    "East":      ["E1", "E2"],
    "West":      ["W1", "W2"],
    "South":     ["S1", "S2", "S3", "S4"],
    "Northeast": ["NE1", "NE2"],
    "Special":   ["X1", "X2", "X3"],
}

# Island / territory codes: selectable in any order, not bound to a region's states
SPECIAL_REGION = "Special"
SPECIAL_ZONES: List[str] = REGION_GROUPS[SPECIAL_REGION]
SPECIAL_ZONE_INFO: Dict[str, str] = {
    "X1": "Andaman & Nicobar Islands",
    "X2": "Lakshadweep",
    "X3": "Leh Ladakh",
}

# Non-geographic codes that may show up in uploads and blueprints
NON_GEOGRAPHIC_CODES = {"ROI", "A"}

ZONE_TYPE_INFO: Dict[str, Dict[str, str]] = {
    "N1":  {"type": "limited", "description": "Metro cities (Delhi NCR, Jaipur)"},
    "N2":  {"type": "full",    "description": "Tier 2 North"},
    "N3":  {"type": "full",    "description": "Extended North"},
    "N4":  {"type": "full",    "description": "Remote North"},
    "C1":  {"type": "limited", "description": "Metro (Indore, Bhopal)"},
    "C2":  {"type": "full",    "description": "All MP & Chhattisgarh"},
    "E1":  {"type": "limited", "description": "Metro (Kolkata, Patna)"},
    "E2":  {"type": "full",    "description": "All East"},
    "W1":  {"type": "limited", "description": "Metro (Mumbai, Pune)"},
    "W2":  {"type": "full",    "description": "All West"},
    "S1":  {"type": "limited", "description": "Metro (Bangalore, Chennai)"},
    "S2":  {"type": "full",    "description": "Tier 2 South"},
    "S3":  {"type": "full",    "description": "Kerala & TN"},
    "S4":  {"type": "full",    "description": "Remote Kerala"},
    "NE1": {"type": "limited", "description": "Metro (Guwahati)"},
    "NE2": {"type": "full",    "description": "All NE states"},
    "X1":  {"type": "special", "description": "Andaman Nicobar"},
    "X2":  {"type": "special", "description": "Lakshadweep"},
    "X3":  {"type": "special", "description": "Leh Ladakh"},
}

MAX_ZONES = len(ZONE_ORDER)

_ORDER_INDEX = {code: i for i, code in enumerate(ZONE_ORDER)}


def is_catalog_zone(code: str) -> bool:
    return code in _ORDER_INDEX


def is_special_zone(code: str) -> bool:
    return code in SPECIAL_ZONES


def code_to_region(code: str) -> str:
    """Region for a zone code: 'NE2' → 'Northeast', 'X1' → 'Special', 'W1' → 'West'."""
    c = (code or "").strip().upper()
    if c.startswith("NE"):
        return "Northeast"
    if c.startswith("X"):
        return "Special"
    first = c[:1]
    if first == "N":
        return "North"
    if first == "S":
        return "South"
    if first == "E":
        return "East"
    if first == "W":
        return "West"
    if first == "C":
        return "Central"
    return "North"


def subzone_number(code: str) -> int:
    m = re.search(r"(\d+)$", code or "")
    return int(m.group(1)) if m else 0


def order_index(code: str) -> int:
    return _ORDER_INDEX.get(code, len(ZONE_ORDER))


def sort_zones(codes: Iterable[str]) -> List[str]:
    """Sort by the locked catalog order; unknown codes go last, alphabetically."""
    return sorted(codes, key=lambda c: (order_index(c), c))


def zone_sort_key(code: str) -> Tuple[str, int]:
    """Direction prefix, then numeric suffix. Used for ingestion summaries."""
    prefix = re.sub(r"\d", "", code)
    digits = re.sub(r"\D", "", code)
    return prefix, int(digits) if digits else 0


def region_of_catalog(code: str) -> str:
    for region, codes in REGION_GROUPS.items():
        if code in codes:
            return region
    return code_to_region(code)


def catalog() -> List[Dict[str, object]]:
    """Catalog as plain dicts for the API."""
    out = []
    for region in REGION_ORDER:
        for position, code in enumerate(REGION_GROUPS[region]):
            info = ZONE_TYPE_INFO.get(code, {})
            out.append({
                "zoneCode": code,
                "region": region,
                "position": position,
                "type": info.get("type", "full"),
                "description": info.get("description", ""),
                "anyOrder": region == SPECIAL_REGION,
            })
    return out
