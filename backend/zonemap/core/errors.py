"""Domain exceptions raised by the zone services.

All of them derive from ValueError so callers that only care about
"bad input" can keep catching ValueError.
"""
from typing import Any, Dict, List, Optional


class ZoneMapError(ValueError):
    """Base class for every zone-configuration failure."""


class ReferenceDataNotLoadedError(ZoneMapError):
    pass


class UnknownZoneError(ZoneMapError):
    def __init__(self, zone_code: str):
        self.zone_code = zone_code
        super().__init__(f"Unknown zone code: {zone_code}")


class ZoneSequenceError(ZoneMapError):
    """Out-of-order select, or a deselect that would leave a gap."""

    def __init__(self, zone_code: str, message: str):
        self.zone_code = zone_code
        super().__init__(message)


class CityAlreadyClaimedError(ZoneMapError):
    def __init__(self, city_key: str, owner: str, requested_by: str):
        self.city_key = city_key
        self.owner = owner
        self.requested_by = requested_by
        super().__init__(f"{city_key} is already assigned to zone {owner}; cannot add it to {requested_by}.")


class CityNotAvailableError(ZoneMapError):
    def __init__(self, city_key: str, zone_code: str):
        self.city_key = city_key
        self.zone_code = zone_code
        super().__init__(f"{city_key} is not an eligible city for zone {zone_code}.")


class EmptyZonesError(ZoneMapError):
    """Finalize found selected zones without cities and the operator has not confirmed."""

    def __init__(self, zone_codes: List[str]):
        self.zone_codes = list(zone_codes)
        super().__init__(
            f"{len(self.zone_codes)} zone(s) have no cities and will be excluded from pricing: "
            f"{', '.join(self.zone_codes)}"
        )


class InactiveZoneError(ZoneMapError):
    def __init__(self, from_zone: str, to_zone: str):
        self.from_zone = from_zone
        self.to_zone = to_zone
        super().__init__(f"Price update blocked: {from_zone} -> {to_zone} references a zone with no cities.")


class MatrixShapeError(ZoneMapError):
    pass


class IngestionError(ZoneMapError):
    """Structural upload failure: the whole file is rejected, no partial output."""

    def __init__(self, message: str, code: str = "FORMAT_ERROR", context: Optional[Dict[str, Any]] = None):
        self.code = code
        self.context = context or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": str(self), "context": self.context}


class InvalidPriceError(ZoneMapError):
    def __init__(self, from_zone: str, to_zone: str, value):
        self.from_zone = from_zone
        self.to_zone = to_zone
        self.value = value
        super().__init__(f"Invalid price {value!r} for {from_zone} -> {to_zone}")
