"""
Zone-mapping upload parser.

Bytes + filename in, IngestionResult out:
  1. size cap and format sniff (extension, then PK / OLE2 magic)
  2. text → delimiter-sniffed rows, workbook → first sheet via pandas
  3. header detection and column roles (column_detector)
  4. per-row normalization; row problems are collected (capped),
     structural problems abort with a single IngestionError
  5. per-zone summaries

Parsing the same bytes twice yields the same result.
"""
import asyncio
import csv
import io
import logging
from collections import OrderedDict
from typing import Any, Dict, List, Optional, Sequence

from zonemap.core.config import settings
from zonemap.core.errors import IngestionError
from zonemap.models.schemas import (
    IngestionResult, ParsedPincodeEntry, ParseError, ParseWarning, VendorZoneConfig,
    ZoneConfig, ZoneSummary,
)
from zonemap.services.column_detector import (
    auto_detect_columns, is_truthy, looks_like_header, normalize_pincode, normalize_zone,
)
from zonemap.services.name_normalizer import canonical_city_key, parse_city_key
from zonemap.services.zone_catalog import code_to_region, zone_sort_key

logger = logging.getLogger(__name__)

WORKBOOK_EXTENSIONS = (".xlsx", ".xls", ".xlsm")
TEXT_EXTENSIONS = (".csv", ".txt", ".tsv")
DELIMITERS = [",", "\t", ";", "|"]

ZIP_MAGIC = b"PK"
OLE2_MAGIC = b"\xd0\xcf\x11\xe0"

ZONE_MAPPING_TEMPLATE = (
    "pincode,zone,isOda\n"
    "110001,N1,false\n"
    "110002,N1,false\n"
    "400001,W1,false\n"
    "400002,W1,true\n"
    "560001,S1,false\n"
    "700001,E1,false\n"
    "226001,N2,false\n"
    "302001,N3,false"
)

PINCODE_HELP = (
    "Could not detect PINCODE column. Expected 6-digit numbers (110001, 400001, 560001). "
    "Ensure pincodes are 6 digits, remove spaces or hyphens, and check the sheet did not "
    "convert them to dates or formulas."
)
ZONE_HELP = (
    "Could not detect ZONE column. Expected codes like N1, S2, W1, NE1, E1, C1 "
    "([Direction][Number]; valid directions N, S, E, W, NE, C, ROI). "
    'Remove extra text, e.g. "North 1" → "N1".'
)


# ─── Format handling ───────────────────────────────────────────────────

def is_workbook(filename: str, data: bytes) -> bool:
    name = (filename or "").lower()
    if name.endswith(WORKBOOK_EXTENSIONS):
        return True
    if name.endswith(TEXT_EXTENSIONS):
        return False
    return data[:2] == ZIP_MAGIC or data[:4] == OLE2_MAGIC


def decode_text(data: bytes) -> str:
    return data.decode("utf-8-sig", errors="replace")


def sniff_delimiter(line: str) -> str:
    """Delimiter that splits the first line into the most cells; earliest wins ties."""
    best, best_cells = DELIMITERS[0], 0
    for delim in DELIMITERS:
        cells = len(line.split(delim))
        if cells > best_cells:
            best, best_cells = delim, cells
    return best


def _strip_cell(cell: str) -> str:
    cell = cell.strip()
    if cell[:1] in ("'", '"'):
        cell = cell[1:]
    if cell[-1:] in ("'", '"'):
        cell = cell[:-1]
    return cell


def parse_text_rows(text: str) -> List[List[str]]:
    first = next((line for line in text.splitlines() if line.strip()), None)
    if first is None:
        raise IngestionError("File is empty")
    delimiter = sniff_delimiter(first)
    logger.info(f"Zone file delimiter: {delimiter!r}")
    reader = csv.reader(io.StringIO(text), delimiter=delimiter)
    try:
        return [[_strip_cell(c) for c in row] for row in reader if any(c.strip() for c in row)]
    except csv.Error as e:
        raise IngestionError(f"Failed to parse delimited text: {e}") from e


def read_workbook_rows(data: bytes, filename: str = "") -> List[List[str]]:
    """First sheet, every cell as a string, empty cells as ''. Blocking."""
    import pandas as pd

    if not data:
        raise IngestionError("Excel file is empty (0 bytes)")

    engine = "xlrd" if filename.lower().endswith(".xls") or data[:4] == OLE2_MAGIC else "openpyxl"
    try:
        df = pd.read_excel(io.BytesIO(data), sheet_name=0, header=None, dtype=str, engine=engine)
    except Exception as e:
        raise IngestionError(f"Failed to parse Excel: {e}. File may be corrupted.") from e

    if df.empty:
        raise IngestionError("Excel sheet is empty")
    df = df.fillna("")
    rows = [[str(v) for v in row] for row in df.values.tolist()]
    logger.info(f"Excel parsed: {len(rows)} rows, {df.shape[1]} cols")
    return rows


# ─── Row parsing ───────────────────────────────────────────────────────

def _is_empty_row(row: Sequence[Any]) -> bool:
    return not row or all(c is None or str(c).strip() == "" for c in row)


def _cell(row: Sequence[Any], col: int) -> Optional[str]:
    if col < 0 or col >= len(row):
        return None
    value = row[col]
    return None if value is None else str(value)


def _column_label(headers: List[str], col: int) -> str:
    return f'"{headers[col]}" (Col {col + 1})'


def parse_rows(
    rows: List[List[Any]],
    index=None,
    max_errors: Optional[int] = None,
    sample_size: Optional[int] = None,
    threshold: Optional[float] = None,
) -> IngestionResult:
    """
    Turn raw rows into entries. `index` (a ReferenceIndex) fills in missing
    state/city by pincode when given.
    """
    max_errors = settings.MAX_ROW_ERRORS if max_errors is None else max_errors
    sample_size = settings.COLUMN_SAMPLE_SIZE if sample_size is None else sample_size
    threshold = settings.DETECTION_THRESHOLD if threshold is None else threshold

    if not rows:
        raise IngestionError("File contains no data")

    numbered = [(i + 1, row) for i, row in enumerate(rows) if not _is_empty_row(row)]
    if not numbered:
        raise IngestionError("File contains only empty rows")
    skipped = len(rows) - len(numbered)

    errors: List[ParseError] = []
    warnings: List[ParseWarning] = [ParseWarning(
        type="INFO", message=f"Processing {len(numbered)} non-empty rows from {len(rows)} total",
    )]

    first = [str(v) if v is not None else "" for v in numbered[0][1]]
    has_header = looks_like_header(first)
    if has_header:
        headers = [h if h else f"Column{i + 1}" for i, h in enumerate(first)]
        data_rows = numbered[1:]
    else:
        headers = [f"Column{i + 1}" for i in range(len(first))]
        data_rows = numbered
    if not data_rows:
        raise IngestionError("No data rows found (only header?)")

    if has_header:
        shown = ", ".join(headers[:5]) + ("..." if len(headers) > 5 else "")
        warnings.append(ParseWarning(type="ASSUMED_HEADER", message=f"First row detected as header: {shown}"))
    else:
        warnings.append(ParseWarning(type="INFO", message="No header, using Column1, Column2..."))

    columns = auto_detect_columns(headers, [r for _, r in data_rows], sample_size, threshold)
    for line in columns.analysis:
        logger.debug(f"Column detection: {line}")

    missing = []
    if columns.pincode_col < 0:
        missing.append(PINCODE_HELP)
    if columns.zone_col < 0:
        missing.append(ZONE_HELP)
    if missing:
        raise IngestionError(
            "Required columns not found. " + " ".join(missing),
            context={
                "rows": len(rows),
                "nonEmptyRows": len(numbered),
                "hasHeader": has_header,
                "columns": len(headers),
                "names": headers,
                "analysis": columns.analysis,
                "troubleshooting": "Download the template for reference.",
            },
        )

    warnings.append(ParseWarning(
        type="INFO",
        message=f"✓ Pincode: {_column_label(headers, columns.pincode_col)}, "
                f"{round(columns.confidence['pincode'] * 100)}%",
    ))
    warnings.append(ParseWarning(
        type="INFO",
        message=f"✓ Zone: {_column_label(headers, columns.zone_col)}, "
                f"{round(columns.confidence['zone'] * 100)}%",
    ))
    for label, col in (("ODA", columns.oda_col), ("State", columns.state_col), ("City", columns.city_col)):
        if col >= 0:
            warnings.append(ParseWarning(type="INFO", message=f"✓ {label}: {_column_label(headers, col)}"))

    entries: List[ParsedPincodeEntry] = []
    seen = set()
    error_total = 0

    def add_error(**kwargs):
        nonlocal error_total
        error_total += 1
        if len(errors) < max_errors:
            errors.append(ParseError(**kwargs))

    for line_no, row in data_rows:

        raw_pincode = _cell(row, columns.pincode_col)
        pincode = normalize_pincode(raw_pincode)
        if pincode is None:
            add_error(
                row=line_no, type="INVALID_PINCODE", message=f'Invalid pincode: "{raw_pincode or ""}"',
                value=raw_pincode or "",
                suggestion="Must be 6-digit number. Check for dates, formulas, or formatting.",
            )
            continue

        raw_zone = _cell(row, columns.zone_col)
        zone = normalize_zone(raw_zone)
        if zone is None:
            add_error(
                row=line_no, type="INVALID_ZONE", message=f'Invalid zone: "{raw_zone or ""}"',
                value=raw_zone or "",
                suggestion="Format: N1, S2, W1, NE1. Valid: N, S, E, W, NE, C, ROI.",
            )
            continue

        if pincode in seen:
            warnings.append(ParseWarning(type="DATA_QUALITY", message=f"Duplicate pincode {pincode} at row {line_no}"))
            continue
        seen.add(pincode)

        state = (_cell(row, columns.state_col) or "").strip() or None
        city = (_cell(row, columns.city_col) or "").strip() or None
        if index is not None and (state is None or city is None):
            record = index.record_of(pincode)
            if record is not None:
                state = state or record.state
                city = city or record.city

        entries.append(ParsedPincodeEntry(
            pincode=pincode,
            zone=zone,
            is_oda=is_truthy(_cell(row, columns.oda_col)),
            state=state,
            city=city,
            source_row=line_no,
        ))

    if skipped:
        warnings.append(ParseWarning(type="INFO", message=f"Skipped {skipped} empty rows"))

    if not entries:
        lines = [f"Row {e.row}: {e.message}" for e in errors[:10]]
        more = f" ...and {error_total - 10} more" if error_total > 10 else ""
        raise IngestionError(
            f"No valid entries after parsing {len(data_rows)} rows. "
            f"Errors (first 10): {'; '.join(lines)}{more}. Fix errors and retry.",
            context={"errors": [e.model_dump(by_alias=True) for e in errors[:10]], "errorCount": error_total},
        )

    missing_location = sum(1 for e in entries if not e.state or not e.city)
    if missing_location:
        warnings.append(ParseWarning(
            type="MISSING_LOCATION", message=f"{missing_location} pincodes missing state/city", count=missing_location,
        ))
    oda = sum(1 for e in entries if e.is_oda)
    if oda:
        warnings.append(ParseWarning(type="INFO", message=f"{oda} ODA pincodes"))

    logger.info(f"Parsed {len(entries)} entries ({error_total} errors, {len(warnings)} warnings)")
    return IngestionResult(
        entries=entries,
        errors=errors,
        warnings=warnings,
        summaries=summarize(entries),
        columns=columns,
        has_header=has_header,
        total_rows=len(rows),
    )


def summarize(entries: List[ParsedPincodeEntry]) -> List[ZoneSummary]:
    """Per-zone counts; cities/states only from entries that know both."""
    groups: Dict[str, Dict[str, Any]] = OrderedDict()
    for e in entries:
        g = groups.setdefault(e.zone, {"pincodes": set(), "cities": OrderedDict(), "states": OrderedDict()})
        g["pincodes"].add(e.pincode)
        if e.city and e.state:
            g["cities"][canonical_city_key(e.city, e.state)] = None
            g["states"][e.state.strip().upper()] = None

    summaries = [
        ZoneSummary(
            zone_code=code,
            region=code_to_region(code),
            pincode_count=len(g["pincodes"]),
            city_count=len(g["cities"]),
            state_count=len(g["states"]),
            cities=list(g["cities"]),
            states=list(g["states"]),
        )
        for code, g in groups.items()
    ]
    return sorted(summaries, key=lambda s: zone_sort_key(s.zone_code))


def to_vendor_config(result: IngestionResult, blank_value: Optional[float] = None) -> VendorZoneConfig:
    """
    Complete zone configs + a blank matrix over the zones with cities + ODA pincodes.
    A city listed under several zones stays with the first zone in summary order.
    """
    owner: Dict[str, str] = {}
    zones: List[ZoneConfig] = []
    conflicts = 0
    for s in result.summaries:
        cities = []
        for key in s.cities:
            if key in owner:
                conflicts += 1
                continue
            owner[key] = s.zone_code
            cities.append(key)
        zones.append(ZoneConfig(
            zone_code=s.zone_code,
            zone_name=s.zone_code,
            region=s.region,
            selected_states=sorted({parse_city_key(k)[1] for k in cities}),
            selected_cities=cities,
            is_complete=True,
        ))
    if conflicts:
        logger.warning(f"{conflicts} cities appear under more than one zone; kept with the first zone")

    # empty zones stay in the config but get no matrix row
    codes = [z.zone_code for z in zones if z.selected_cities]
    matrix = {f: {t: blank_value for t in codes} for f in codes}
    oda = [e.pincode for e in result.entries if e.is_oda]
    logger.info(f"Applying {len(zones)} zones with {len(oda)} ODA pincodes")
    return VendorZoneConfig(zones=zones, price_matrix=matrix, oda_pincodes=oda)


async def parse_zone_file(data: bytes, filename: str, index=None) -> IngestionResult:
    if len(data) > settings.max_upload_bytes:
        raise IngestionError(f"File too large (max {settings.MAX_UPLOAD_MB}MB)", context={"size": len(data)})
    logger.info(f"Processing zone file: {filename} ({len(data)} bytes)")

    if is_workbook(filename, data):
        rows = await asyncio.to_thread(read_workbook_rows, data, filename)
    else:
        text = decode_text(data)
        if not text.strip():
            raise IngestionError("File is empty")
        rows = parse_text_rows(text)
    return parse_rows(rows, index=index)
