"""Origin × destination price table over the active zones."""
import logging
import math
import re
from typing import Dict, Iterable, List, Optional

from zonemap.core.errors import InactiveZoneError, InvalidPriceError, MatrixShapeError
from zonemap.models.schemas import PriceMatrixDict
from zonemap.services.zone_catalog import sort_zones

logger = logging.getLogger(__name__)

_PASTE_SPLIT = re.compile(r"[\t,]")


def _paste_value(cell: str) -> float:
    try:
        value = float(cell.strip())
    except ValueError:
        return 0.0
    return value if math.isfinite(value) else 0.0


def parse_paste(text: str) -> List[List[float]]:
    """Rows of a spreadsheet paste (tab or comma separated); non-numbers read as 0."""
    return [[_paste_value(c) for c in _PASTE_SPLIT.split(line)] for line in text.strip().split("\n")]


class PriceMatrix:
    """
    Keyed by exactly the active zones on both axes. Cells that survive a
    resize keep their price; new cells start at `blank`.
    """

    def __init__(self, zones: Iterable[str] = (), blank: Optional[float] = None):
        self.blank = blank
        self._zones: List[str] = []
        self._cells: Dict[str, Dict[str, Optional[float]]] = {}
        self.sync(zones)

    @property
    def zones(self) -> List[str]:
        return list(self._zones)

    def __len__(self) -> int:
        return len(self._zones)

    def sync(self, active_codes: Iterable[str]) -> None:
        zones = sort_zones(dict.fromkeys(active_codes))
        old = self._cells
        self._cells = {
            f: {t: old.get(f, {}).get(t, self.blank) for t in zones}
            for f in zones
        }
        if zones != self._zones:
            logger.debug(f"Price matrix resized: {self._zones} → {zones}")
        self._zones = zones

    def _check_active(self, from_zone: str, to_zone: str) -> None:
        if from_zone not in self._cells or to_zone not in self._cells:
            logger.warning(f"Blocked price update: {from_zone} -> {to_zone} (zone has no cities)")
            raise InactiveZoneError(from_zone, to_zone)

    def set_price(self, from_zone: str, to_zone: str, value: Optional[float]) -> None:
        self._check_active(from_zone, to_zone)
        if value is not None:
            value = float(value)
            if not math.isfinite(value) or value < 0:
                raise InvalidPriceError(from_zone, to_zone, value)
        self._cells[from_zone][to_zone] = value

    def get_price(self, from_zone: str, to_zone: str) -> Optional[float]:
        return self._cells.get(from_zone, {}).get(to_zone)

    def bulk_paste(self, text: str) -> int:
        """Apply an N×N paste in active-zone order. Returns the number of cells written."""
        rows = parse_paste(text)
        n = len(self._zones)
        if len(rows) != n:
            raise MatrixShapeError(f"Expected {n} rows, got {len(rows)}")
        for i, row in enumerate(rows):
            if len(row) != n:
                raise MatrixShapeError(f"Row {i + 1} has {len(row)} columns, expected {n}")

        for f, row in zip(self._zones, rows):
            for t, value in zip(self._zones, row):
                self._cells[f][t] = value
        logger.info(f"Bulk paste: {n}x{n} prices updated")
        return n * n

    def to_dict(self) -> PriceMatrixDict:
        return {f: dict(row) for f, row in self._cells.items()}

    @classmethod
    def from_dict(cls, data: PriceMatrixDict, zones: Iterable[str], blank: Optional[float] = None) -> "PriceMatrix":
        """Load saved prices, keeping only cells between `zones`."""
        matrix = cls(zones, blank=blank)
        for f, row in (data or {}).items():
            if f not in matrix._cells:
                continue
            for t, value in (row or {}).items():
                if t in matrix._cells[f]:
                    matrix._cells[f][t] = None if value is None else float(value)
        return matrix
