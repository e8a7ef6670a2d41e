"""
Sequential zone selection.

Within a region, zones are picked front to back (N1 before N2 before N3)
and released back to front, so the selected set per region is always a
prefix of the region's catalog order. Special zones (X1-X3) are exempt.
"""
import logging
from typing import Iterable, List, Set

from zonemap.core.errors import UnknownZoneError, ZoneSequenceError
from zonemap.services.zone_catalog import (
    REGION_GROUPS, ZONE_ORDER, is_catalog_zone, is_special_zone, region_of_catalog, sort_zones,
)

logger = logging.getLogger(__name__)


def _check_code(code: str) -> str:
    if not is_catalog_zone(code):
        raise UnknownZoneError(code)
    return code


def _check_region(region: str) -> List[str]:
    if region not in REGION_GROUPS:
        raise UnknownZoneError(region)
    return REGION_GROUPS[region]


class ZoneSelection:
    def __init__(self, selected: Iterable[str] = ()):
        # restoring a saved selection: codes are taken as given
        self._selected: Set[str] = {_check_code(c) for c in selected}

    def __contains__(self, code: str) -> bool:
        return code in self._selected

    def __len__(self) -> int:
        return len(self._selected)

    def selected(self) -> List[str]:
        return sort_zones(self._selected)

    def selected_in_region(self, region: str) -> List[str]:
        return [c for c in _check_region(region) if c in self._selected]

    def _highest_index(self, region_zones: List[str]) -> int:
        picked = [region_zones.index(c) for c in region_zones if c in self._selected]
        return max(picked) if picked else -1

    def can_select(self, code: str) -> bool:
        _check_code(code)
        if code in self._selected:
            return False
        if is_special_zone(code):
            return True
        region_zones = REGION_GROUPS[region_of_catalog(code)]
        return region_zones.index(code) == self._highest_index(region_zones) + 1

    def can_deselect(self, code: str) -> bool:
        _check_code(code)
        if code not in self._selected:
            return False
        if is_special_zone(code):
            return True
        region_zones = REGION_GROUPS[region_of_catalog(code)]
        return region_zones.index(code) == self._highest_index(region_zones)

    def select(self, code: str) -> None:
        if not self.can_select(code):
            if code in self._selected:
                raise ZoneSequenceError(code, f"Zone {code} is already selected.")
            raise ZoneSequenceError(
                code,
                "Select zones in order within each region. "
                "(Special zones X1/X2/X3 can be selected in any order)",
            )
        self._selected.add(code)
        logger.debug(f"Zone selected: {code}")

    def deselect(self, code: str) -> None:
        if not self.can_deselect(code):
            if code not in self._selected:
                raise ZoneSequenceError(code, f"Zone {code} is not selected.")
            raise ZoneSequenceError(code, "Can only deselect from end of sequence.")
        self._selected.discard(code)
        logger.debug(f"Zone deselected: {code}")

    def toggle(self, code: str) -> bool:
        """Returns True if the zone ends up selected."""
        if code in self._selected:
            self.deselect(code)
            return False
        self.select(code)
        return True

    def select_region(self, region: str) -> List[str]:
        """Select the whole region. Returns the newly added codes."""
        added = [c for c in _check_region(region) if c not in self._selected]
        self._selected.update(added)
        return added

    def deselect_region(self, region: str) -> List[str]:
        removed = self.selected_in_region(region)
        self._selected.difference_update(removed)
        return removed

    def select_all(self) -> List[str]:
        added = [c for c in ZONE_ORDER if c not in self._selected]
        self._selected.update(ZONE_ORDER)
        return added

    def deselect_all(self) -> List[str]:
        removed = self.selected()
        self._selected.clear()
        return removed

    def is_prefix_consistent(self) -> bool:
        for region, zones in REGION_GROUPS.items():
            if is_special_zone(zones[0]):
                continue
            picked = [c in self._selected for c in zones]
            # once a zone is unselected, every later one must be too
            if any(picked[i + 1] and not picked[i] for i in range(len(picked) - 1)):
                return False
        return True
