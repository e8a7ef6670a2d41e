"""
Blueprint Resolver. Answers "which zone does city X in state Y belong to".

Two reference formats exist in the wild:
  * zones_blueprint.json: regions / zones{rawEntries} / stateIndex{zones, capitalZones}
  * zones_data.json (legacy): zones{type, states, limitedCities} / states{primaryZone}

load_zone_schema() picks the format once; BlueprintResolver only ever talks
to the ZoneSchema interface, so nothing downstream branches on format.

Zone types:
  limited  → only the named capital cities of a state (N1, W1, S1, ...)
  full     → every city of the listed states (N2, W2, ...)
  special  → non-geographic codes (islands / UTs, ROI)
"""
import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Any, Dict, List, Optional, Tuple

from zonemap.models.schemas import (
    BlueprintRawEntry, CityStateAssignment, LegacyZoneData, SelectionValidation,
    ZoneBlueprint, ZoneConfig, ZoneInfo,
)
from zonemap.services.name_normalizer import (
    normalize_city_name, normalize_state_name, parse_city_key, state_key,
)
from zonemap.services.zone_catalog import (
    NON_GEOGRAPHIC_CODES, SPECIAL_ZONE_INFO, SPECIAL_ZONES, code_to_region, sort_zones,
)

logger = logging.getLogger(__name__)

# Blueprint rows that are annotations, not states
LIMITED_MARKER = "Limited Cities"
SKIP_MARKERS = {"Within City", "34 States"}

# Border cities that legitimately belong to two zones. First zone is the default answer.
SPECIAL_CITY_CASES: Dict[Tuple[str, str], Dict[str, Any]] = {
    ("SILIGURI", "WEST BENGAL"): {
        "zones": ["NE1", "E1"],
        "note": "Special case: Siliguri can be in NE1 or E1",
    },
}


def _is_special_code(code: str) -> bool:
    return code in SPECIAL_ZONES or code in NON_GEOGRAPHIC_CODES


class ZoneSchema(ABC):
    """Read-only view over one reference format."""

    kind: str = ""

    @abstractmethod
    def regions(self) -> Dict[str, List[str]]: ...

    @abstractmethod
    def zone_codes(self) -> List[str]: ...

    @abstractmethod
    def zone_info(self, code: str) -> Optional[ZoneInfo]: ...

    @abstractmethod
    def raw_entries(self, code: str) -> List[BlueprintRawEntry]: ...

    @abstractmethod
    def state_zones(self, state: str) -> Tuple[List[str], List[str]]:
        """(all zones, capital/limited zones) for a state; empty lists if unknown."""

    @abstractmethod
    def primary_zone(self, state: str) -> Optional[str]: ...

    def special_cases(self) -> Dict[Tuple[str, str], Dict[str, Any]]:
        return {}


class BlueprintSchema(ZoneSchema):
    kind = "blueprint"

    def __init__(self, blueprint: ZoneBlueprint):
        self.blueprint = blueprint
        self._state_lookup = {state_key(s): s for s in blueprint.state_index}
        self._capital_of: Dict[str, List[str]] = defaultdict(list)
        for state, entry in blueprint.state_index.items():
            for code in entry.capital_zones:
                self._capital_of[code].append(state)
        self._infos = {code: self._build_info(code) for code in blueprint.zones}

    def _build_info(self, code: str) -> ZoneInfo:
        entry = self.blueprint.zones[code]
        states: List[str] = []
        limited_cities: Dict[str, List[str]] = {}
        is_limited = bool(self._capital_of.get(code))

        for raw in entry.raw_entries:
            if raw.state == LIMITED_MARKER:
                is_limited = True
                continue
            if raw.state in SKIP_MARKERS:
                continue
            state = normalize_state_name(raw.state)
            if state not in states:
                states.append(state)
            if raw.cities:
                limited_cities[state] = list(raw.cities)

        if is_limited:
            zone_type = "limited"
        elif _is_special_code(code):
            zone_type = "special"
        else:
            zone_type = "full"

        return ZoneInfo(
            code=code,
            region=entry.region or code_to_region(code),
            type=zone_type,
            remarks="Limited Cities" if is_limited else None,
            states=states,
            limited_cities=limited_cities,
        )

    def regions(self) -> Dict[str, List[str]]:
        return self.blueprint.regions

    def zone_codes(self) -> List[str]:
        return list(self.blueprint.zones)

    def zone_info(self, code: str) -> Optional[ZoneInfo]:
        return self._infos.get(code)

    def raw_entries(self, code: str) -> List[BlueprintRawEntry]:
        entry = self.blueprint.zones.get(code)
        if entry is None:
            return []
        return [r for r in entry.raw_entries if r.state != LIMITED_MARKER and r.state not in SKIP_MARKERS]

    def _state_entry(self, state: str):
        key = state.strip().upper()
        if key not in self.blueprint.state_index:
            key = self._state_lookup.get(state_key(state), "")
        return self.blueprint.state_index.get(key)

    def state_zones(self, state: str) -> Tuple[List[str], List[str]]:
        entry = self._state_entry(state)
        if entry is None:
            return [], []
        return list(entry.zones), list(entry.capital_zones)

    def primary_zone(self, state: str) -> Optional[str]:
        zones, _ = self.state_zones(state)
        return zones[0] if zones else None


class LegacySchema(ZoneSchema):
    kind = "legacy"

    def __init__(self, data: LegacyZoneData):
        self.data = data
        self._state_lookup = {state_key(s): s for s in data.states}

    def regions(self) -> Dict[str, List[str]]:
        return self.data.regions

    def zone_codes(self) -> List[str]:
        return list(self.data.zones)

    def zone_info(self, code: str) -> Optional[ZoneInfo]:
        return self.data.zones.get(code)

    def raw_entries(self, code: str) -> List[BlueprintRawEntry]:
        info = self.data.zones.get(code)
        if info is None:
            return []
        return [BlueprintRawEntry(state=s, cities=info.limited_cities.get(s, [])) for s in info.states]

    def _state_info(self, state: str):
        name = self._state_lookup.get(state_key(state))
        return self.data.states.get(name) if name else None

    def state_zones(self, state: str) -> Tuple[List[str], List[str]]:
        info = self._state_info(state)
        if info is None:
            return [], []
        capital = []
        for code in info.zones:
            zone = self.zone_info(code)
            if zone is not None and zone.type == "limited":
                capital.append(code)
        return list(info.zones), capital

    def primary_zone(self, state: str) -> Optional[str]:
        info = self._state_info(state)
        return info.primary_zone if info else None

    def special_cases(self) -> Dict[Tuple[str, str], Dict[str, Any]]:
        return {
            (normalize_city_name(c.city), state_key(c.state)): {"zones": c.zones, "note": c.note}
            for c in self.data.special_cases.values()
        }


def load_zone_schema(data: Dict[str, Any]) -> ZoneSchema:
    """Pick the reference format once, at load time."""
    if not isinstance(data, dict):
        raise ValueError("Zone reference must be a JSON object")
    if "stateIndex" in data or "state_index" in data:
        schema: ZoneSchema = BlueprintSchema(ZoneBlueprint.model_validate(data))
    elif "states" in data:
        schema = LegacySchema(LegacyZoneData.model_validate(data))
    else:
        raise ValueError("Unrecognized zone reference format: expected 'stateIndex' (blueprint) or 'states' (legacy)")
    logger.info(f"Zone reference loaded as {schema.kind} format ({len(schema.zone_codes())} zones)")
    return schema


class BlueprintResolver:
    def __init__(self, schema: ZoneSchema):
        self.schema = schema
        self._special_cases = dict(SPECIAL_CITY_CASES)
        self._special_cases.update(schema.special_cases())

    @property
    def kind(self) -> str:
        return self.schema.kind

    def regions(self) -> Dict[str, List[str]]:
        return self.schema.regions()

    def zone_info(self, code: str) -> Optional[ZoneInfo]:
        return self.schema.zone_info(code)

    def zone_type(self, code: str) -> Optional[str]:
        info = self.zone_info(code)
        if info is not None:
            return info.type
        if code in SPECIAL_ZONES:
            return "special"
        return None

    def zones_for_region(self, region: str) -> List[ZoneInfo]:
        infos = [self.zone_info(c) for c in self.regions().get(region, [])]
        return [i for i in infos if i is not None]

    def states_for_zone(self, code: str) -> List[str]:
        info = self.zone_info(code)
        return list(info.states) if info else []

    def is_limited_zone(self, code: str) -> bool:
        return self.zone_type(code) == "limited"

    def limited_cities_for_zone(self, code: str) -> Dict[str, List[str]]:
        info = self.zone_info(code)
        return dict(info.limited_cities) if info else {}

    def raw_entries(self, code: str) -> List[BlueprintRawEntry]:
        return self.schema.raw_entries(code)

    def special_state_for_zone(self, code: str) -> Optional[str]:
        """Designated state for an island / territory code."""
        for entry in self.schema.raw_entries(code):
            return entry.state
        return SPECIAL_ZONE_INFO.get(code)

    def zones_for_state(self, state: str) -> Dict[str, List[str]]:
        zones, capital = self.schema.state_zones(state)
        return {"zones": zones, "capitalZones": capital}

    def _limited_match(self, code: str, city: str, state: str) -> bool:
        info = self.zone_info(code)
        if info is None:
            return False
        wanted_state = state_key(state)
        wanted_city = normalize_city_name(city)
        for zone_state, cities in info.limited_cities.items():
            if state_key(zone_state) != wanted_state:
                continue
            if wanted_city in {normalize_city_name(c) for c in cities}:
                return True
        return False

    def is_city_valid_for_zone(self, city: str, state: str, code: str) -> bool:
        info = self.zone_info(code)
        if info is None:
            return False
        if info.type == "full":
            return state_key(state) in {state_key(s) for s in info.states}
        if info.type == "limited":
            return self._limited_match(code, city, state)
        return False

    def zone_for_city_state(self, city: str, state: str) -> Optional[CityStateAssignment]:
        """
        Resolution order:
          1. hard-coded border-city special cases
          2. a capital (limited) zone of the state that names this city
          3. the state's first non-capital zone
          4. the state's primary zone
        """
        norm_city = normalize_city_name(city)
        norm_state = normalize_state_name(state)

        special = self._special_cases.get((norm_city, state_key(state)))
        if special:
            return CityStateAssignment(
                city=norm_city, state=norm_state, zone=special["zones"][0],
                reason="special_case", note=special.get("note", ""), alternatives=list(special["zones"]),
            )

        zones, capital_zones = self.schema.state_zones(state)
        if not zones:
            return None

        for code in capital_zones:
            if self._limited_match(code, city, state):
                return CityStateAssignment(
                    city=norm_city, state=norm_state, zone=code, reason="limited_city",
                    note=f"Limited zone match: {city} is a capital city in {code}",
                )

        fallback = next((z for z in zones if z not in capital_zones), None)
        if fallback:
            return CityStateAssignment(
                city=norm_city, state=norm_state, zone=fallback, reason="full_state",
                note=f"Full zone: {state} → {fallback}",
            )

        primary = self.schema.primary_zone(state) or zones[0]
        return CityStateAssignment(
            city=norm_city, state=norm_state, zone=primary, reason="primary_zone",
            note=f"Primary zone for {state}",
        )

    def validate_selection(self, zone_codes: List[str]) -> SelectionValidation:
        """Warn about states split across a limited and a full zone in this selection."""
        assignments: Dict[str, List[str]] = {}
        for code in zone_codes:
            for state in self.states_for_zone(code):
                assignments.setdefault(state, []).append(code)

        warnings: List[str] = []
        for state, codes in assignments.items():
            if len(codes) < 2:
                continue
            limited = [z for z in codes if self.is_limited_zone(z)]
            full = [z for z in codes if not self.is_limited_zone(z)]
            if limited and full:
                warnings.append(
                    f"{state} is in both limited ({', '.join(limited)}) and full ({', '.join(full)}) zones. "
                    f"Limited zone cities will be prioritized."
                )
        return SelectionValidation(is_valid=True, warnings=warnings, errors=[])

    def build_zone_configs(self, zone_codes: List[str], index) -> List[ZoneConfig]:
        """
        Non-interactive preset: limited zones get their literal cities, full zones
        every city of their states. A city already taken by an earlier zone is skipped.
        """
        claimed = set()
        configs: List[ZoneConfig] = []
        for code in sort_zones(zone_codes):
            info = self.zone_info(code)
            if info is None:
                continue
            keys: List[str] = []
            if info.type == "limited":
                for state, cities in info.limited_cities.items():
                    wanted = {normalize_city_name(c) for c in cities}
                    for key in index.cities_in_state(state):
                        city, _ = parse_city_key(key)
                        if normalize_city_name(city) in wanted:
                            keys.append(key)
            else:
                for state in info.states:
                    keys.extend(index.cities_in_state(state))

            keys = [k for k in dict.fromkeys(keys) if k not in claimed]
            claimed.update(keys)
            configs.append(ZoneConfig(
                zone_code=code,
                zone_name=code,
                region=info.region,
                selected_states=sorted({parse_city_key(k)[1] for k in keys}),
                selected_cities=keys,
                is_complete=bool(keys),
            ))
        return configs

    def recommended_zones(self, regions: List[str]) -> List[str]:
        out: List[str] = []
        all_regions = self.regions()
        for region in regions:
            out.extend(all_regions.get(region, []))
        return out
