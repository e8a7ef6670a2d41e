"""
City assignment for the selected zones.

Each selected zone owns a list of CityKeys ("CITY||STATE"). A CityKey may
belong to at most one zone; `_owner` maps every claimed key to its zone and
is updated in the same step as the zone's city list, so it never has to be
rebuilt by scanning all zones.
"""
import logging
from typing import Dict, Iterable, List, Optional, Set

from zonemap.core.errors import CityAlreadyClaimedError, CityNotAvailableError, UnknownZoneError
from zonemap.models.schemas import AutoFillReport, RegionStats, ZoneConfig
from zonemap.services.name_normalizer import (
    canonical_city_key, normalize_city_name, parse_city_key, state_key,
)
from zonemap.services.zone_catalog import (
    REGION_ORDER, is_catalog_zone, is_special_zone, region_of_catalog, sort_zones, subzone_number,
)

logger = logging.getLogger(__name__)


class _ZoneState:
    __slots__ = ("cities", "complete")

    def __init__(self, cities: Optional[List[str]] = None, complete: bool = False):
        self.cities: List[str] = list(cities or [])
        self.complete = complete


def _states_of(keys: Iterable[str]) -> List[str]:
    return sorted({parse_city_key(k)[1] for k in keys})


def _normalize_key(key: str) -> str:
    city, state = parse_city_key(key)
    return canonical_city_key(city, state)


class CityAssignmentEngine:
    def __init__(self, index, resolver):
        self.index = index
        self.resolver = resolver
        self._zones: Dict[str, _ZoneState] = {}
        self._owner: Dict[str, str] = {}

    # ─── Zones ─────────────────────────────────────────────────────────

    def zone_codes(self) -> List[str]:
        return sort_zones(self._zones)

    def has_zone(self, code: str) -> bool:
        return code in self._zones

    def add_zone(self, code: str) -> None:
        if not is_catalog_zone(code):
            raise UnknownZoneError(code)
        self._zones.setdefault(code, _ZoneState())

    def remove_zone(self, code: str) -> None:
        zone = self._zones.pop(code, None)
        if zone is None:
            return
        for key in zone.cities:
            self._owner.pop(key, None)

    def clear(self) -> None:
        self._zones.clear()
        self._owner.clear()

    def _zone(self, code: str) -> _ZoneState:
        zone = self._zones.get(code)
        if zone is None:
            raise UnknownZoneError(code)
        return zone

    def config(self, code: str) -> ZoneConfig:
        zone = self._zone(code)
        return ZoneConfig(
            zone_code=code,
            zone_name=code,
            region=region_of_catalog(code),
            selected_states=_states_of(zone.cities),
            selected_cities=list(zone.cities),
            is_complete=zone.complete,
        )

    def configs(self) -> List[ZoneConfig]:
        return [self.config(c) for c in self.zone_codes()]

    def load_configs(self, configs: Iterable[ZoneConfig]) -> None:
        """Replace everything with saved configs. Rejects a CityKey listed under two zones."""
        zones: Dict[str, _ZoneState] = {}
        owner: Dict[str, str] = {}
        for cfg in configs:
            if not is_catalog_zone(cfg.zone_code):
                raise UnknownZoneError(cfg.zone_code)
            cities = []
            for key in cfg.selected_cities:
                key = _normalize_key(key)
                if key in owner and owner[key] != cfg.zone_code:
                    raise CityAlreadyClaimedError(key, owner[key], cfg.zone_code)
                if key not in owner:
                    owner[key] = cfg.zone_code
                    cities.append(key)
            zones[cfg.zone_code] = _ZoneState(cities, cfg.is_complete)
        self._zones, self._owner = zones, owner

    # ─── Claims ────────────────────────────────────────────────────────

    def owner_of(self, key: str) -> Optional[str]:
        return self._owner.get(_normalize_key(key))

    def used_city_keys(self, exclude: Optional[str] = None) -> Set[str]:
        return {k for k, z in self._owner.items() if z != exclude}

    def _claim(self, code: str, key: str) -> None:
        self._zones[code].cities.append(key)
        self._owner[key] = code

    def _release(self, code: str, keys: Set[str]) -> None:
        zone = self._zones[code]
        zone.cities = [k for k in zone.cities if k not in keys]
        for key in keys:
            if self._owner.get(key) == code:
                del self._owner[key]

    def assert_unique(self) -> None:
        """Recheck the one-zone-per-city rule from scratch."""
        seen: Dict[str, str] = {}
        for code in self.zone_codes():
            for key in self._zones[code].cities:
                if key in seen:
                    raise CityAlreadyClaimedError(key, seen[key], code)
                seen[key] = code
        if seen != self._owner:
            raise AssertionError("claim index out of sync with zone configs")

    # ─── Eligibility ───────────────────────────────────────────────────

    def special_state(self, code: str) -> Optional[str]:
        return self.resolver.special_state_for_zone(code)

    def eligible_city_keys(self, code: str, state: str) -> List[str]:
        """Every city of `state` this zone may hold, claimed or not."""
        self._zone(code)
        if is_special_zone(code):
            designated = self.special_state(code)
            if not designated or state_key(designated) != state_key(state):
                return []
            return self.index.cities_in_state(designated)
        return self.index.city_keys_of(state, region_of_catalog(code))

    def available_city_keys(self, code: str, state: str) -> List[str]:
        return [k for k in self.eligible_city_keys(code, state) if k not in self._owner]

    def available_states(self, code: str) -> List[str]:
        self._zone(code)
        if is_special_zone(code):
            designated = self.special_state(code)
            resolved = self.index.resolve_state(designated) if designated else None
            return [resolved] if resolved and self.available_city_keys(code, resolved) else []
        region = region_of_catalog(code)
        return [s for s in self.index.states_of(region) if self.available_city_keys(code, s)]

    def _check_eligible(self, code: str, key: str) -> None:
        owner = self._owner.get(key)
        if owner is not None and owner != code:
            raise CityAlreadyClaimedError(key, owner, code)
        _, state = parse_city_key(key)
        if key not in set(self.eligible_city_keys(code, state)):
            raise CityNotAvailableError(key, code)

    # ─── Editing ───────────────────────────────────────────────────────

    def toggle_city(self, code: str, key: str) -> bool:
        """Returns True if the city ends up assigned to the zone."""
        zone = self._zone(code)
        key = _normalize_key(key)
        if key in zone.cities:
            self._release(code, {key})
            return False
        self._check_eligible(code, key)
        self._claim(code, key)
        return True

    def assign_cities(self, code: str, keys: Iterable[str]) -> List[str]:
        """All-or-nothing: one ineligible or foreign key rejects the whole batch."""
        zone = self._zone(code)
        wanted = [k for k in dict.fromkeys(_normalize_key(k) for k in keys) if k not in zone.cities]
        for key in wanted:
            self._check_eligible(code, key)
        for key in wanted:
            self._claim(code, key)
        return wanted

    def select_all_in_state(self, code: str, state: str) -> List[str]:
        added = self.available_city_keys(code, state)
        for key in added:
            self._claim(code, key)
        return added

    def clear_state(self, code: str, state: str) -> List[str]:
        zone = self._zone(code)
        wanted = state_key(state)
        removed = [k for k in zone.cities if state_key(parse_city_key(k)[1]) == wanted]
        self._release(code, set(removed))
        return removed

    def select_all_states(self, code: str) -> List[str]:
        added: List[str] = []
        for state in self.available_states(code):
            added.extend(self.select_all_in_state(code, state))
        return added

    def clear_zone(self, code: str) -> List[str]:
        removed = list(self._zone(code).cities)
        self._release(code, set(removed))
        return removed

    def complete_zone(self, code: str) -> Optional[str]:
        """Mark `code` complete; return the next incomplete zone after it, if any."""
        self._zone(code).complete = True
        codes = self.zone_codes()
        for later in codes[codes.index(code) + 1:]:
            if not self._zones[later].complete:
                return later
        return None

    def mark_all_complete(self) -> None:
        for zone in self._zones.values():
            zone.complete = True

    # ─── Queries ───────────────────────────────────────────────────────

    def active_zones(self) -> List[str]:
        return [c for c in self.zone_codes() if self._zones[c].cities]

    def empty_zones(self) -> List[str]:
        return [c for c in self.zone_codes() if not self._zones[c].cities]

    def region_stats(self, region: str) -> RegionStats:
        total = self.index.total_cities_in_region(region)
        assigned = {k for k, z in self._owner.items() if region_of_catalog(z) == region}
        return RegionStats(
            region=region,
            total_cities=total,
            assigned_cities=len(assigned),
            available_cities=max(total - len(assigned), 0),
        )

    # ─── Auto-fill ─────────────────────────────────────────────────────

    def _blueprint_keys(self, code: str, region: str) -> List[str]:
        info = self.resolver.zone_info(code)
        if info is None:
            return []
        keys: List[str] = []
        for entry in self.resolver.raw_entries(code):
            state_keys = self.index.city_keys_of(entry.state, region)
            if not state_keys:
                continue
            if info.type == "limited" and entry.cities:
                wanted = {normalize_city_name(c) for c in entry.cities}
                keys.extend(k for k in state_keys if normalize_city_name(parse_city_key(k)[0]) in wanted)
            else:
                keys.extend(state_keys)
        return keys

    def auto_fill(self) -> AutoFillReport:
        """
        Fill every empty zone from the blueprint, region by region in display
        order and by sub-zone number inside a region. Zones that already have
        cities are left alone and their cities stay claimed.
        """
        claimed: Set[str] = set(self._owner)
        filled: Dict[str, List[str]] = {}

        by_region: Dict[str, List[str]] = {}
        for code in self._zones:
            by_region.setdefault(region_of_catalog(code), []).append(code)

        for region in REGION_ORDER:
            for code in sorted(by_region.get(region, []), key=subzone_number):
                zone = self._zones[code]
                if zone.cities:
                    zone.complete = True
                    continue

                if is_special_zone(code):
                    designated = self.special_state(code)
                    candidates = self.index.cities_in_state(designated) if designated else []
                else:
                    candidates = self._blueprint_keys(code, region)

                picked = [k for k in dict.fromkeys(candidates) if k not in claimed]
                claimed.update(picked)
                filled[code] = picked
                if not picked and self.resolver.zone_type(code) == "full":
                    logger.warning(f"Auto-fill left full zone {code} empty; its states are already claimed")

        for code, keys in filled.items():
            for key in keys:
                self._claim(code, key)
            self._zones[code].complete = bool(keys)

        report = AutoFillReport(filled=self.active_zones(), empty=self.empty_zones())
        logger.info(report.message)
        return report
