"""
State / city name normalization and the CityKey composite identity.

Pincode tables and blueprints spell the same place differently
("ORISSA" vs "Odisha", "GURGAON" vs "Gurugram"); everything that compares
names goes through here.
"""
from typing import Tuple

CITY_KEY_SEP = "||"

STATE_ALIASES: dict[str, str] = {
    "TAMILNADU":              "Tamil Nadu",
    "TAMIL NADU":             "Tamil Nadu",
    "CHATTISGARH":            "Chhattisgarh",
    "CHHATTISGARH":           "Chhattisgarh",
    "PUDDUCHERRY":            "Puducherry",
    "PUDUCHERRY":             "Puducherry",
    "PONDICHERRY":            "Puducherry",
    "JAMMU & KASHMIR":        "Jammu and Kashmir",
    "JAMMU AND KASHMIR":      "Jammu and Kashmir",
    "DAMAN & DIU":            "Daman and Diu",
    "DAMAN AND DIU":          "Daman and Diu",
    "DADRA & NAGAR HAVELI":   "Dadra and Nagar Haveli",
    "DADRA AND NAGAR HAVELI": "Dadra and Nagar Haveli",
    "DADRA NAGAR HAVELI":     "Dadra and Nagar Haveli",
    "ANDAMAN & NICOBAR":      "Andaman and Nicobar",
    "ANDAMAN AND NICOBAR":    "Andaman and Nicobar",
    "ANDAMAN NICOBAR":        "Andaman and Nicobar",
    "LAKSHADWEEP":            "Lakshadweep",
    "LAKSHADEEP":             "Lakshadweep",
    "NCT OF DELHI":           "Delhi",
    "NEW DELHI":              "Delhi",
    "DELHI":                  "Delhi",
    "ORISSA":                 "Odisha",
    "ODISHA":                 "Odisha",
}

CITY_ALIASES: dict[str, str] = {
    "BENGALURU":    "BANGALORE",
    "BANGALORE":    "BANGALORE",
    "BOMBAY":       "MUMBAI",
    "MUMBAI":       "MUMBAI",
    "CALCUTTA":     "KOLKATA",
    "KOLKATA":      "KOLKATA",
    "MADRAS":       "CHENNAI",
    "CHENNAI":      "CHENNAI",
    "GURUGRAM":     "GURUGRAM",
    "GURGAON":      "GURUGRAM",
    "BHUBANESWAR":  "BHUBANESHWAR",
    "BHUBANESHWAR": "BHUBANESHWAR",
}

PLACEHOLDER_NAMES = {"", "NAN", "NONE", "NULL", "N/A", "NA", "-"}


def _collapse(name: str) -> str:
    return " ".join((name or "").split())


def title_case(name: str) -> str:
    return " ".join(w[:1].upper() + w[1:].lower() for w in _collapse(name).split(" ") if w)


def normalize_state_name(name: str) -> str:
    """Canonical state spelling: alias table first, otherwise title case."""
    if not name:
        return ""
    upper = _collapse(name).upper()
    if upper in STATE_ALIASES:
        return STATE_ALIASES[upper]
    return title_case(name)


def normalize_city_name(name: str) -> str:
    """Canonical city spelling (upper case), with historical names folded in."""
    if not name:
        return ""
    upper = _collapse(name).upper()
    return CITY_ALIASES.get(upper, upper)


def state_key(name: str) -> str:
    """Upper-case comparison key for a state; alias variants collapse to one key."""
    return normalize_state_name(name).upper()


def is_placeholder(value) -> bool:
    if value is None:
        return True
    return _collapse(str(value)).upper() in PLACEHOLDER_NAMES


def city_key(city: str, state: str) -> str:
    return f"{city}{CITY_KEY_SEP}{state}"


def parse_city_key(key: str) -> Tuple[str, str]:
    """Split a CityKey on its last separator → (city, state)."""
    i = key.rfind(CITY_KEY_SEP)
    if i < 0:
        return key, ""
    return key[:i], key[i + len(CITY_KEY_SEP):]


def canonical_city_key(city: str, state: str) -> str:
    """Upper-cased, whitespace-collapsed CityKey as stored in zone configs."""
    return city_key(_collapse(city).upper(), _collapse(state).upper())
