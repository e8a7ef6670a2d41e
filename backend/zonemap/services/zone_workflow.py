"""
One vendor's zone-configuration session: selection → city assignment →
finalize → price matrix. Every call either fully applies or raises with
nothing changed.
"""
import logging
from typing import Iterable, List, Optional

from zonemap.core.errors import EmptyZonesError
from zonemap.models.schemas import AutoFillReport, PriceMatrixDict, VendorZoneConfig
from zonemap.services.city_assignment import CityAssignmentEngine
from zonemap.services.price_matrix import PriceMatrix
from zonemap.services.zone_selection import ZoneSelection

logger = logging.getLogger(__name__)

DEFAULT_PRICE = 0.0


class ZoneWorkflow:
    def __init__(self, index, resolver, vendor_id: Optional[str] = None):
        self.vendor_id = vendor_id
        self.selection = ZoneSelection()
        self.engine = CityAssignmentEngine(index, resolver)
        self.matrix = PriceMatrix(blank=DEFAULT_PRICE)
        self.is_finalized = False
        self.oda_pincodes: Optional[List[str]] = None

    @classmethod
    def from_vendor_config(cls, index, resolver, config: VendorZoneConfig,
                           vendor_id: Optional[str] = None) -> "ZoneWorkflow":
        wf = cls(index, resolver, vendor_id)
        wf.engine.load_configs(config.zones)
        wf.oda_pincodes = config.oda_pincodes
        wf.selection = ZoneSelection(wf.engine.zone_codes())
        wf.matrix = PriceMatrix.from_dict(config.price_matrix, wf.engine.active_zones(), blank=DEFAULT_PRICE)
        wf.engine.assert_unique()
        logger.info(f"Session restored for vendor {vendor_id}: {len(wf.engine.zone_codes())} zones")
        return wf

    def _changed(self) -> None:
        self.is_finalized = False
        self.matrix.sync(self.engine.active_zones())

    # ─── Selection ─────────────────────────────────────────────────────

    def select_zone(self, code: str) -> None:
        self.selection.select(code)
        self.engine.add_zone(code)
        self._changed()

    def deselect_zone(self, code: str) -> None:
        self.selection.deselect(code)
        self.engine.remove_zone(code)
        self._changed()

    def toggle_zone(self, code: str) -> bool:
        if code in self.selection:
            self.deselect_zone(code)
            return False
        self.select_zone(code)
        return True

    def _add(self, codes: Iterable[str]) -> None:
        for code in codes:
            self.engine.add_zone(code)
        self._changed()

    def _remove(self, codes: Iterable[str]) -> None:
        for code in codes:
            self.engine.remove_zone(code)
        self._changed()

    def select_region(self, region: str) -> List[str]:
        added = self.selection.select_region(region)
        self._add(added)
        return added

    def deselect_region(self, region: str) -> List[str]:
        removed = self.selection.deselect_region(region)
        self._remove(removed)
        return removed

    def select_all(self) -> List[str]:
        added = self.selection.select_all()
        self._add(added)
        return added

    def deselect_all(self) -> List[str]:
        removed = self.selection.deselect_all()
        self.engine.clear()
        self._changed()
        return removed

    # ─── Cities ────────────────────────────────────────────────────────

    def toggle_city(self, code: str, key: str) -> bool:
        result = self.engine.toggle_city(code, key)
        self._changed()
        return result

    def assign_cities(self, code: str, keys: Iterable[str]) -> List[str]:
        added = self.engine.assign_cities(code, keys)
        self._changed()
        return added

    def select_all_in_state(self, code: str, state: str) -> List[str]:
        added = self.engine.select_all_in_state(code, state)
        self._changed()
        return added

    def clear_state(self, code: str, state: str) -> List[str]:
        removed = self.engine.clear_state(code, state)
        self._changed()
        return removed

    def select_all_states(self, code: str) -> List[str]:
        added = self.engine.select_all_states(code)
        self._changed()
        return added

    def clear_zone(self, code: str) -> List[str]:
        removed = self.engine.clear_zone(code)
        self._changed()
        return removed

    def complete_zone(self, code: str) -> Optional[str]:
        return self.engine.complete_zone(code)

    def auto_fill(self) -> AutoFillReport:
        report = self.engine.auto_fill()
        self._changed()
        return report

    # ─── Pricing ───────────────────────────────────────────────────────

    def finalize(self, confirm_empty: bool = False) -> VendorZoneConfig:
        """
        Empty zones stay in the zone list but get no matrix row/column.
        Without `confirm_empty`, any empty zone aborts with EmptyZonesError.
        """
        empty = self.engine.empty_zones()
        if empty and not confirm_empty:
            raise EmptyZonesError(empty)

        self.engine.mark_all_complete()
        self.matrix.sync(self.engine.active_zones())
        self.is_finalized = True
        logger.info(
            f"Finalized vendor {self.vendor_id}: {len(self.matrix)} priced zones"
            + (f", {len(empty)} empty zones excluded" if empty else "")
        )
        return self.to_vendor_config()

    def set_price(self, from_zone: str, to_zone: str, value: Optional[float]) -> None:
        self.matrix.set_price(from_zone, to_zone, value)

    def bulk_paste(self, text: str) -> int:
        return self.matrix.bulk_paste(text)

    def price_matrix(self) -> PriceMatrixDict:
        return self.matrix.to_dict()

    def to_vendor_config(self) -> VendorZoneConfig:
        return VendorZoneConfig(
            zones=self.engine.configs(),
            price_matrix=self.matrix.to_dict(),
            oda_pincodes=self.oda_pincodes,
        )
