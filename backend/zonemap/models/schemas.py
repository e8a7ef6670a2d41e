import math
from datetime import datetime
from typing import Optional, Any, List, Dict, Literal

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


ZoneType = Literal["limited", "full", "special"]
ParseErrorType = Literal["INVALID_PINCODE", "INVALID_ZONE", "MISSING_DATA", "DUPLICATE", "FORMAT_ERROR"]
ParseWarningType = Literal["MISSING_LOCATION", "ASSUMED_HEADER", "DATA_QUALITY", "INFO"]
ColumnRole = Literal["pincode", "zone", "state", "city", "oda", "unknown"]

# from-zone -> to-zone -> price (None = not priced yet)
PriceMatrixDict = Dict[str, Dict[str, Optional[float]]]


class CamelModel(BaseModel):
    """Snake-case attributes in Python, camelCase keys on the wire."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True


# ─── Reference data ────────────────────────────────────────────────────

class PincodeRecord(CamelModel):
    pincode: str = Field(pattern=r"^\d{6}$")
    zone: Optional[str] = None
    state: str
    city: str

    class Config:
        frozen = True


class BlueprintRawEntry(CamelModel):
    state: str
    cities: List[str] = []


class ZoneBlueprintEntry(CamelModel):
    region: Optional[str] = None
    type: Optional[str] = None
    raw_entries: List[BlueprintRawEntry] = []


class StateIndexEntry(CamelModel):
    zones: List[str] = []
    capital_zones: List[str] = []


class ZoneBlueprint(CamelModel):
    meta: Optional[Dict[str, Any]] = None
    regions: Dict[str, List[str]] = {}
    zones: Dict[str, ZoneBlueprintEntry] = {}
    state_index: Dict[str, StateIndexEntry] = {}


class ZoneInfo(CamelModel):
    code: str
    region: str
    type: ZoneType
    remarks: Optional[str] = None
    states: List[str] = []
    limited_cities: Dict[str, List[str]] = {}


class LegacyStateInfo(CamelModel):
    name: str
    zones: List[str] = []
    primary_zone: str


class SpecialCityCase(CamelModel):
    state: str
    city: str
    zones: List[str]
    note: str = ""


class LegacyZoneData(CamelModel):
    meta: Optional[Dict[str, Any]] = None
    regions: Dict[str, List[str]] = {}
    zones: Dict[str, ZoneInfo] = {}
    states: Dict[str, LegacyStateInfo] = {}
    zone_hierarchy: Dict[str, List[str]] = {}
    special_cases: Dict[str, SpecialCityCase] = {}


class CityStateAssignment(CamelModel):
    city: str
    state: str
    zone: str
    reason: Literal["limited_city", "full_state", "primary_zone", "special_case"]
    note: str = ""
    alternatives: List[str] = []


class SelectionValidation(CamelModel):
    is_valid: bool
    warnings: List[str] = []
    errors: List[str] = []


# ─── Zone configuration (shared output contract) ───────────────────────

class ZoneConfig(CamelModel):
    zone_code: str
    zone_name: str = ""
    region: str
    selected_states: List[str] = []
    selected_cities: List[str] = []   # CityKey "CITY||STATE"
    is_complete: bool = False

    @model_validator(mode="after")
    def _default_name(self):
        if not self.zone_name:
            self.zone_name = self.zone_code
        return self

    @property
    def has_cities(self) -> bool:
        return len(self.selected_cities) > 0


class VendorZoneConfig(CamelModel):
    zones: List[ZoneConfig] = []
    price_matrix: PriceMatrixDict = {}
    oda_pincodes: Optional[List[str]] = None


class AutoFillReport(CamelModel):
    filled: List[str] = []
    empty: List[str] = []

    @property
    def filled_count(self) -> int:
        return len(self.filled)

    @property
    def empty_count(self) -> int:
        return len(self.empty)

    @property
    def message(self) -> str:
        return (
            f"Auto-fill complete: {self.filled_count} zones filled, {self.empty_count} zones empty. "
            f"Empty zones will be excluded from pricing."
        )


class RegionStats(CamelModel):
    region: str
    total_cities: int
    assigned_cities: int
    available_cities: int


# ─── Ingestion ──────────────────────────────────────────────────────────

class ParsedPincodeEntry(CamelModel):
    pincode: str
    zone: str
    is_oda: bool = False
    state: Optional[str] = None
    city: Optional[str] = None
    source_row: int


class ParseError(CamelModel):
    row: int
    type: ParseErrorType
    message: str
    value: Optional[str] = None
    suggestion: Optional[str] = None


class ParseWarning(CamelModel):
    type: ParseWarningType
    message: str
    count: Optional[int] = None


class ColumnCandidate(CamelModel):
    index: int
    header: str
    role: ColumnRole
    confidence: float
    reason: str


class ColumnMap(CamelModel):
    pincode_col: int = -1
    zone_col: int = -1
    state_col: int = -1
    city_col: int = -1
    oda_col: int = -1
    confidence: Dict[str, float] = {"pincode": 0.0, "zone": 0.0, "oda": 0.0}
    analysis: List[str] = []
    candidates: List[ColumnCandidate] = []


class ZoneSummary(CamelModel):
    zone_code: str
    region: str
    pincode_count: int
    city_count: int
    state_count: int
    cities: List[str] = []
    states: List[str] = []


class IngestionResult(CamelModel):
    entries: List[ParsedPincodeEntry] = []
    errors: List[ParseError] = []
    warnings: List[ParseWarning] = []
    summaries: List[ZoneSummary] = []
    columns: Optional[ColumnMap] = None
    has_header: bool = False
    total_rows: int = 0


class UploadResponse(CamelModel):
    file_name: str
    result: IngestionResult
    config: VendorZoneConfig


# ─── API payloads ──────────────────────────────────────────────────────

class ZoneListPayload(CamelModel):
    zones: List[str]


class CityKeyPayload(CamelModel):
    city_key: str


class CityKeysPayload(CamelModel):
    city_keys: List[str]


class PricePayload(CamelModel):
    value: Optional[float] = None

    @field_validator("value")
    @classmethod
    def _finite_non_negative(cls, v):
        if v is not None and not math.isfinite(v):
            raise ValueError("Price must be a finite number")
        if v is not None and v < 0:
            raise ValueError("Price cannot be negative")
        return v


class BulkPastePayload(CamelModel):
    text: str


class SessionCreate(CamelModel):
    vendor_id: Optional[str] = None
    initial: Optional[VendorZoneConfig] = None


class SessionState(CamelModel):
    session_id: str
    vendor_id: Optional[str] = None
    selected_zones: List[str] = []
    zones: List[ZoneConfig] = []
    active_zones: List[str] = []
    price_matrix: PriceMatrixDict = {}
    is_finalized: bool = False


class SavedZoneConfigOut(CamelModel):
    id: int
    vendor_id: str
    source: str
    zones: List[ZoneConfig] = []
    price_matrix: PriceMatrixDict = {}
    oda_pincodes: Optional[List[str]] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
