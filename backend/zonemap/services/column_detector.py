"""
Column detection for uploaded zone-mapping sheets.

Every scorer returns (role, confidence, reason), the same way each
check is scored: a fixed confidence per rule plus a readable reason.
Header keywords win outright; otherwise a column is judged on its values.
"""
import math
import re
from typing import Any, Dict, List, Optional, Sequence, Tuple

from zonemap.models.schemas import ColumnCandidate, ColumnMap

HEADER_PATTERNS: Dict[str, List[str]] = {
    "pincode": ["pincode", "pin", "postal", "zip"],
    "zone":    ["zone", "zonecode", "region", "area"],
    "state":   ["state", "province"],
    "city":    ["city", "district", "town"],
    "oda":     ["oda", "isoda", "remote"],
}

HEADER_KEYWORDS = [
    "pincode", "pin", "postal", "zip", "zone", "region", "area", "state",
    "city", "oda", "district", "location", "code", "name", "id",
]

INDIAN_STATES = [
    "andhra pradesh", "arunachal pradesh", "assam", "bihar", "chhattisgarh", "goa", "gujarat",
    "haryana", "himachal pradesh", "jharkhand", "karnataka", "kerala", "madhya pradesh",
    "maharashtra", "manipur", "meghalaya", "mizoram", "nagaland", "odisha", "punjab",
    "rajasthan", "sikkim", "tamil nadu", "telangana", "tripura", "uttar pradesh",
    "uttarakhand", "west bengal", "delhi", "jammu", "kashmir", "ladakh", "chandigarh",
    "puducherry", "andaman", "nicobar", "lakshadweep", "daman", "diu", "dadra",
]

BOOLEAN_VALUES = {"true", "false", "yes", "no", "1", "0", "y", "n"}
TRUTHY_VALUES = {"true", "yes", "1", "y"}

ZONE_RE = re.compile(r"(NE\d?|N\d?|S\d?|E\d?|W\d?|C\d?|ROI|A|X\d?)", re.IGNORECASE)
_ALPHA_RE = re.compile(r"^[A-Za-z\s]+$")

DEFAULT_THRESHOLD = 0.4
DEFAULT_SAMPLE_SIZE = 100


def _blank(value: Any) -> bool:
    return value is None or str(value).strip() == ""


# ─── Cell normalizers ──────────────────────────────────────────────────

def normalize_pincode(value: Any) -> Optional[str]:
    """
    Excel-safe pincode: 110001 / "110001.0" / "1.10001e+5" → "110001".
    A longer digit run starting 1-8 is cut to its first six digits.
    """
    if _blank(value):
        return None
    s = str(value).strip()

    if "e" in s.lower() or "." in s:
        try:
            num = float(s)
        except ValueError:
            num = None
        if num is not None and math.isfinite(num):
            s = str(int(round(num)))

    digits = re.sub(r"[^0-9]", "", s)
    if len(digits) == 6:
        return digits
    if len(digits) > 6 and digits[0] in "12345678":
        return digits[:6]
    return None


def normalize_zone(value: Any) -> Optional[str]:
    if _blank(value):
        return None
    m = ZONE_RE.search(str(value).strip().upper())
    return m.group(0).upper() if m else None


def is_boolean(value: Any) -> bool:
    return not _blank(value) and str(value).strip().lower() in BOOLEAN_VALUES


def is_truthy(value: Any) -> bool:
    return not _blank(value) and str(value).strip().lower() in TRUTHY_VALUES


def looks_like_state(value: Any) -> bool:
    lower = str(value).strip().lower()
    if not lower:
        return False
    return any(lower == s or s in lower or lower in s for s in INDIAN_STATES)


def looks_like_header(values: Sequence[Any]) -> bool:
    """More than 40% of cells read like column names."""
    cells = [str(v) if v is not None else "" for v in values]
    if not cells:
        return False
    hits = 0
    for v in cells:
        lower = v.lower().strip()
        if any(k in lower for k in HEADER_KEYWORDS) or len(v) > 15 or _ALPHA_RE.match(v):
            hits += 1
    return hits / len(cells) > 0.4


# ─── Scoring ───────────────────────────────────────────────────────────

def detect_column_type(header: str, samples: Sequence[Any]) -> Tuple[str, float, str]:
    h = (header or "").lower().strip()
    if h:
        for role, patterns in HEADER_PATTERNS.items():
            if any(p in h for p in patterns):
                return role, 0.95, "Header matches"

    valid = [v for v in samples if not _blank(v)]
    if not valid:
        return "unknown", 0.0, "No valid samples"
    n = len(valid)

    share = sum(1 for v in valid if normalize_pincode(v) is not None) / n
    if share > 0.7:
        return "pincode", 0.9, f"{round(share * 100)}% are 6-digit pincodes"
    if share > 0.4:
        return "pincode", 0.6, f"{round(share * 100)}% look like pincodes"

    share = sum(1 for v in valid if normalize_zone(v) is not None) / n
    if share > 0.7:
        return "zone", 0.9, f"{round(share * 100)}% match zone pattern"
    if share > 0.4:
        return "zone", 0.6, f"{round(share * 100)}% look like zones"

    share = sum(1 for v in valid if is_boolean(v)) / n
    if share > 0.7:
        return "oda", 0.85, f"{round(share * 100)}% are boolean"

    share = sum(1 for v in valid if looks_like_state(v)) / n
    if share > 0.3:
        return "state", 0.7, "Matches state names"

    return "unknown", 0.0, "Could not determine"


def rank_column_candidates(
    headers: Sequence[str],
    rows: Sequence[Sequence[Any]],
    sample_size: int = DEFAULT_SAMPLE_SIZE,
    threshold: float = DEFAULT_THRESHOLD,
) -> List[ColumnCandidate]:
    sample = rows[:sample_size]
    width = max(len(headers), len(rows[0]) if rows else 0)
    out: List[ColumnCandidate] = []
    for col in range(width):
        header = headers[col] if col < len(headers) else ""
        values = [r[col] if col < len(r) else None for r in sample]
        role, confidence, reason = detect_column_type(header, values)
        if confidence > threshold:
            out.append(ColumnCandidate(index=col, header=header, role=role, confidence=confidence, reason=reason))
    return out


def auto_detect_columns(
    headers: Sequence[str],
    rows: Sequence[Sequence[Any]],
    sample_size: int = DEFAULT_SAMPLE_SIZE,
    threshold: float = DEFAULT_THRESHOLD,
) -> ColumnMap:
    """Highest confidence per role; ties go to the leftmost column."""
    candidates = rank_column_candidates(headers, rows, sample_size, threshold)
    best: Dict[str, ColumnCandidate] = {}
    for c in candidates:
        current = best.get(c.role)
        if current is None or c.confidence > current.confidence:
            best[c.role] = c

    result = ColumnMap(
        confidence={"pincode": 0.0, "zone": 0.0, "oda": 0.0},
        analysis=[
            f"Col {c.index} ({c.header or 'unnamed'}): {c.role} ({round(c.confidence * 100)}%) - {c.reason}"
            for c in candidates
        ],
        candidates=candidates,
    )
    for role, attr in (("pincode", "pincode_col"), ("zone", "zone_col"), ("oda", "oda_col"),
                       ("state", "state_col"), ("city", "city_col")):
        match = best.get(role)
        if match is None:
            continue
        setattr(result, attr, match.index)
        if role in result.confidence:
            result.confidence[role] = match.confidence
    return result
