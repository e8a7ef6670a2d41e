"""
Reference data loading.

Both reference files are read once at startup in a worker thread. Until that
finishes, get() raises ReferenceDataNotLoadedError; a failed load is kept
and reported rather than replaced with empty indices.
"""
import asyncio
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from zonemap.core.errors import ReferenceDataNotLoadedError
from zonemap.services.blueprint_resolver import BlueprintResolver, load_zone_schema
from zonemap.services.reference_index import ReferenceIndex

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReferenceData:
    index: ReferenceIndex
    resolver: BlueprintResolver


def _read_json(path: str) -> Any:
    with open(Path(path), "r", encoding="utf-8") as f:
        return json.load(f)


def build_reference_data(pincode_rows, zone_reference: Dict[str, Any]) -> ReferenceData:
    if not isinstance(pincode_rows, list):
        raise ValueError("Pincode reference must be a JSON array of {pincode, zone, state, city}")
    index = ReferenceIndex(pincode_rows)
    resolver = BlueprintResolver(load_zone_schema(zone_reference))
    return ReferenceData(index=index, resolver=resolver)


def load_reference_files(pincodes_path: str, blueprint_path: str) -> ReferenceData:
    """Blocking load of both reference files."""
    return build_reference_data(_read_json(pincodes_path), _read_json(blueprint_path))


class ReferenceStore:
    def __init__(self):
        self._data: Optional[ReferenceData] = None
        self._error: Optional[str] = None
        self._loading = False

    @property
    def is_loaded(self) -> bool:
        return self._data is not None

    @property
    def error(self) -> Optional[str]:
        return self._error

    async def load(self, pincodes_path: str, blueprint_path: str) -> None:
        self._loading = True
        try:
            data = await asyncio.to_thread(load_reference_files, pincodes_path, blueprint_path)
        except (OSError, ValueError) as e:
            self._error = f"{type(e).__name__}: {e}"
            logger.error(f"Reference data failed to load: {self._error}")
        else:
            self._data = data
            self._error = None
            logger.info(
                f"Reference data ready: {len(data.index)} pincodes, "
                f"{data.resolver.kind} zone reference"
            )
        finally:
            self._loading = False

    def set(self, data: ReferenceData) -> None:
        self._data = data
        self._error = None

    def get(self) -> ReferenceData:
        if self._data is None:
            if self._error:
                raise ReferenceDataNotLoadedError(f"Reference data failed to load ({self._error})")
            raise ReferenceDataNotLoadedError("Reference data is still loading")
        return self._data

    def status(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"loaded": self.is_loaded, "loading": self._loading, "error": self._error}
        if self._data is not None:
            out.update({
                "pincodes": len(self._data.index),
                "droppedRows": self._data.index.dropped_rows,
                "states": len(self._data.index.all_states()),
                "zoneReference": self._data.resolver.kind,
            })
        return out


reference_store = ReferenceStore()
