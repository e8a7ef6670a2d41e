"""
Reference Index: read-only lookups over the pincode reference table.

Built once, in a single pass, from rows shaped like
{"pincode": "110001", "zone": "N1", "state": "DELHI", "city": "CENTRAL"}.
The zone on a row is advisory: it only decides which region the state/city
pair is listed under. Refreshing means building a new index.
"""
import logging
import re
from collections import defaultdict
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from zonemap.models.schemas import PincodeRecord
from zonemap.services.name_normalizer import (
    canonical_city_key, is_placeholder, normalize_city_name, state_key,
)
from zonemap.services.zone_catalog import REGION_ORDER, code_to_region

logger = logging.getLogger(__name__)

PINCODE_RE = re.compile(r"^\d{6}$")


def _clean(value: Any) -> str:
    return " ".join(str(value).split()).upper()


class ReferenceIndex:
    def __init__(self, rows: Iterable[Dict[str, Any]]):
        self._records: Dict[str, PincodeRecord] = {}
        self._by_region: Dict[str, Dict[str, Set[str]]] = {r: {} for r in REGION_ORDER}
        self._by_state: Dict[str, Set[str]] = defaultdict(set)
        self._pincodes_by_city: Dict[Tuple[str, str], List[str]] = defaultdict(list)
        # normalized state key -> spellings actually present in the table
        self._state_spellings: Dict[str, Set[str]] = defaultdict(set)
        self.total_rows = 0
        self.dropped_rows = 0
        self._build(rows)

    def _build(self, rows: Iterable[Dict[str, Any]]) -> None:
        for row in rows:
            self.total_rows += 1
            pincode = str(row.get("pincode", "")).strip()
            state, city = row.get("state"), row.get("city")
            if not PINCODE_RE.match(pincode) or is_placeholder(state) or is_placeholder(city):
                self.dropped_rows += 1
                continue

            state, city = _clean(state), _clean(city)
            zone = row.get("zone")
            zone = str(zone).strip().upper() if zone and not is_placeholder(zone) else None
            self._records[pincode] = PincodeRecord(pincode=pincode, zone=zone, state=state, city=city)

            self._by_state[state].add(city)
            self._state_spellings[state_key(state)].add(state)
            self._pincodes_by_city[(city, state)].append(pincode)
            if zone:
                region = code_to_region(zone)
                self._by_region.setdefault(region, {}).setdefault(state, set()).add(city)

        for pins in self._pincodes_by_city.values():
            pins.sort()

        logger.info(
            f"Reference index built: {len(self._records)} pincodes, {len(self._by_state)} states "
            f"({self.dropped_rows} of {self.total_rows} rows dropped)"
        )

    def __len__(self) -> int:
        return len(self._records)

    # ─── Lookups ────────────────────────────────────────────────────────

    def record_of(self, pincode: str) -> Optional[PincodeRecord]:
        return self._records.get(str(pincode).strip())

    def regions(self) -> List[str]:
        return [r for r in self._by_region if self._by_region[r]]

    def all_states(self) -> List[str]:
        return sorted(self._by_state)

    def states_of(self, region: str) -> List[str]:
        return sorted(self._by_region.get(region, {}))

    def resolve_state(self, state: str, region: Optional[str] = None) -> Optional[str]:
        """
        Spelling of `state` as stored in the table: exact upper-case match first,
        then alias-normalized match. Restricted to `region` when given.
        """
        pool = self._by_region.get(region, {}) if region else self._by_state
        upper = _clean(state)
        if upper in pool:
            return upper
        for candidate in sorted(self._state_spellings.get(state_key(state), ())):
            if candidate in pool:
                return candidate
        return None

    def cities_of(self, state: str, region: str) -> List[str]:
        resolved = self.resolve_state(state, region)
        if resolved is None:
            return []
        return sorted(self._by_region[region][resolved])

    def city_keys_of(self, state: str, region: str) -> List[str]:
        resolved = self.resolve_state(state, region)
        if resolved is None:
            return []
        return [canonical_city_key(c, resolved) for c in sorted(self._by_region[region][resolved])]

    def cities_in_state(self, state: str) -> List[str]:
        """CityKeys for every city of `state`, regardless of region."""
        resolved = self.resolve_state(state)
        if resolved is None:
            return []
        return [canonical_city_key(c, resolved) for c in sorted(self._by_state[resolved])]

    def pincodes_for_city(self, city: str, state: str) -> List[str]:
        resolved = self.resolve_state(state)
        if resolved is None:
            return []
        upper = _clean(city)
        if (upper, resolved) in self._pincodes_by_city:
            return list(self._pincodes_by_city[(upper, resolved)])
        wanted = normalize_city_name(city)
        out: List[str] = []
        for c in self._by_state[resolved]:
            if normalize_city_name(c) == wanted:
                out.extend(self._pincodes_by_city[(c, resolved)])
        return sorted(out)

    def total_cities_in_region(self, region: str) -> int:
        return sum(len(cities) for cities in self._by_region.get(region, {}).values())
