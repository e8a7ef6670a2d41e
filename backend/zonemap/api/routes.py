import io
import math
from datetime import datetime
from typing import List, Optional
from fastapi import APIRouter, UploadFile, File, Depends, HTTPException, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from zonemap.core.config import settings
from zonemap.core.database import get_db
from zonemap.core.errors import CityAlreadyClaimedError, IngestionError, InvalidPriceError, MatrixShapeError
from zonemap.models.db_models import VendorZoneConfigRecord
from zonemap.models.schemas import (
    BulkPastePayload, CityKeyPayload, CityKeysPayload, PricePayload, SavedZoneConfigOut,
    SessionCreate, SessionState, UploadResponse, VendorZoneConfig, ZoneListPayload,
)
from zonemap.services.csv_generator import generate_matrix_csv, generate_template_csv, generate_zone_cities_csv
from zonemap.services.name_normalizer import canonical_city_key, parse_city_key
from zonemap.services.reference_store import reference_store
from zonemap.services.session_registry import SessionNotFoundError, session_registry
from zonemap.services.zone_catalog import catalog, sort_zones
from zonemap.services.zone_file_parser import parse_zone_file, to_vendor_config
from zonemap.services.zone_workflow import ZoneWorkflow

router = APIRouter(prefix="/api/v1")


def _csv_download(content: str, filename: str) -> StreamingResponse:
    return StreamingResponse(
        io.StringIO(content),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def _session(session_id: str) -> ZoneWorkflow:
    try:
        return session_registry.get(session_id)
    except SessionNotFoundError:
        raise HTTPException(status_code=404, detail=f"Session {session_id} not found")


def _state(session_id: str, wf: ZoneWorkflow) -> SessionState:
    return SessionState(
        session_id=session_id,
        vendor_id=wf.vendor_id,
        selected_zones=wf.selection.selected(),
        zones=wf.engine.configs(),
        active_zones=wf.engine.active_zones(),
        price_matrix=wf.price_matrix(),
        is_finalized=wf.is_finalized,
    )


def _normalized(config: VendorZoneConfig) -> VendorZoneConfig:
    """
    Canonical city keys, one zone per city, and a price matrix over exactly
    the zones that have cities. Anything else is rejected, never repaired.
    """
    owner = {}
    zones = []
    for z in config.zones:
        keys = list(dict.fromkeys(canonical_city_key(*parse_city_key(k)) for k in z.selected_cities))
        for key in keys:
            if key in owner and owner[key] != z.zone_code:
                raise CityAlreadyClaimedError(key, owner[key], z.zone_code)
            owner[key] = z.zone_code
        zones.append(z.model_copy(update={"selected_cities": keys}))

    active = sort_zones({z.zone_code for z in zones if z.selected_cities})
    matrix = config.price_matrix or {}
    if set(matrix) != set(active) or any(set(row or {}) != set(active) for row in matrix.values()):
        raise MatrixShapeError(
            f"Price matrix must cover exactly the zones with cities: {', '.join(active) or 'none'}"
        )
    for f, row in matrix.items():
        for t, value in row.items():
            if value is not None and not math.isfinite(value):
                raise InvalidPriceError(f, t, value)
    return config.model_copy(update={"zones": zones})


# ─── Reference / catalog ───────────────────────────────────────────────

@router.get("/reference/status")
async def reference_status():
    return reference_store.status()


@router.get("/zones/catalog")
async def zone_catalog():
    return catalog()


@router.get("/zones/resolve")
async def resolve_city(city: str = Query(...), state: str = Query(...)):
    resolver = reference_store.get().resolver
    answer = resolver.zone_for_city_state(city, state)
    if answer is None:
        raise HTTPException(status_code=404, detail=f"No zone found for {city}, {state}")
    return answer


@router.get("/zones/recommended")
async def recommended_zones(regions: List[str] = Query(...)):
    return {"zones": reference_store.get().resolver.recommended_zones(regions)}


@router.post("/zones/validate")
async def validate_zones(payload: ZoneListPayload):
    return reference_store.get().resolver.validate_selection(payload.zones)


@router.get("/zones/state/{state}")
async def zones_for_state(state: str):
    return reference_store.get().resolver.zones_for_state(state)


@router.get("/zones/{code}")
async def zone_info(code: str):
    info = reference_store.get().resolver.zone_info(code.upper())
    if not info:
        raise HTTPException(status_code=404, detail=f"Zone {code} not found")
    return info


# ─── Upload ────────────────────────────────────────────────────────────

@router.post("/zone-mapping/upload")
async def upload_zone_mapping(
    file: UploadFile = File(...),
    blank_value: Optional[float] = Query(None),
):
    ref = reference_store.get()
    if file.size is not None and file.size > settings.max_upload_bytes:
        raise IngestionError(f"File too large (max {settings.MAX_UPLOAD_MB}MB)", context={"size": file.size})
    # one byte past the cap is enough for parse_zone_file to reject it
    data = await file.read(settings.max_upload_bytes + 1)
    result = await parse_zone_file(data, file.filename or "", index=ref.index)
    return UploadResponse(
        file_name=file.filename or "",
        result=result,
        config=to_vendor_config(result, blank_value=blank_value),
    )


@router.get("/zone-mapping/template")
async def download_template():
    return _csv_download(generate_template_csv(), "zone_mapping_template.csv")


# ─── Sessions ──────────────────────────────────────────────────────────

@router.post("/sessions")
async def create_session(payload: SessionCreate):
    session_id = session_registry.create(reference_store.get(), payload.vendor_id, payload.initial)
    return _state(session_id, session_registry.get(session_id))


@router.get("/sessions/{session_id}")
async def get_session(session_id: str):
    return _state(session_id, _session(session_id))


@router.delete("/sessions/{session_id}")
async def delete_session(session_id: str):
    _session(session_id)
    session_registry.delete(session_id)
    return {"deleted": session_id}


@router.post("/sessions/{session_id}/zones/select-all")
async def select_all_zones(session_id: str):
    wf = _session(session_id)
    wf.select_all()
    return _state(session_id, wf)


@router.post("/sessions/{session_id}/zones/deselect-all")
async def deselect_all_zones(session_id: str):
    wf = _session(session_id)
    wf.deselect_all()
    return _state(session_id, wf)


@router.post("/sessions/{session_id}/zones/{code}/select")
async def select_zone(session_id: str, code: str):
    wf = _session(session_id)
    wf.select_zone(code.upper())
    return _state(session_id, wf)


@router.post("/sessions/{session_id}/zones/{code}/deselect")
async def deselect_zone(session_id: str, code: str):
    wf = _session(session_id)
    wf.deselect_zone(code.upper())
    return _state(session_id, wf)


@router.post("/sessions/{session_id}/regions/{region}/select")
async def select_region(session_id: str, region: str):
    wf = _session(session_id)
    wf.select_region(region)
    return _state(session_id, wf)


@router.post("/sessions/{session_id}/regions/{region}/deselect")
async def deselect_region(session_id: str, region: str):
    wf = _session(session_id)
    wf.deselect_region(region)
    return _state(session_id, wf)


@router.get("/sessions/{session_id}/regions/{region}/stats")
async def region_stats(session_id: str, region: str):
    return _session(session_id).engine.region_stats(region)


@router.post("/sessions/{session_id}/autofill")
async def auto_fill(session_id: str):
    wf = _session(session_id)
    report = wf.auto_fill()
    return {
        "filledCount": report.filled_count,
        "emptyCount": report.empty_count,
        "filled": report.filled,
        "empty": report.empty,
        "message": report.message,
        "session": _state(session_id, wf),
    }


@router.get("/sessions/{session_id}/zones/{code}/available")
async def available_cities(session_id: str, code: str, state: Optional[str] = Query(None)):
    wf = _session(session_id)
    code = code.upper()
    out = {"zoneCode": code, "states": wf.engine.available_states(code)}
    if state:
        out["state"] = state
        out["cityKeys"] = wf.engine.available_city_keys(code, state)
    return out


@router.post("/sessions/{session_id}/zones/{code}/cities/toggle")
async def toggle_city(session_id: str, code: str, payload: CityKeyPayload):
    wf = _session(session_id)
    selected = wf.toggle_city(code.upper(), payload.city_key)
    return {"cityKey": payload.city_key, "selected": selected, "session": _state(session_id, wf)}


@router.post("/sessions/{session_id}/zones/{code}/cities/assign")
async def assign_cities(session_id: str, code: str, payload: CityKeysPayload):
    wf = _session(session_id)
    added = wf.assign_cities(code.upper(), payload.city_keys)
    return {"added": added, "session": _state(session_id, wf)}


@router.post("/sessions/{session_id}/zones/{code}/states/{state}/select-all")
async def select_all_in_state(session_id: str, code: str, state: str):
    wf = _session(session_id)
    added = wf.select_all_in_state(code.upper(), state)
    return {"added": added, "session": _state(session_id, wf)}


@router.post("/sessions/{session_id}/zones/{code}/states/{state}/clear")
async def clear_state(session_id: str, code: str, state: str):
    wf = _session(session_id)
    removed = wf.clear_state(code.upper(), state)
    return {"removed": removed, "session": _state(session_id, wf)}


@router.post("/sessions/{session_id}/zones/{code}/select-all-states")
async def select_all_states(session_id: str, code: str):
    wf = _session(session_id)
    added = wf.select_all_states(code.upper())
    return {"added": added, "session": _state(session_id, wf)}


@router.post("/sessions/{session_id}/zones/{code}/clear")
async def clear_zone(session_id: str, code: str):
    wf = _session(session_id)
    removed = wf.clear_zone(code.upper())
    return {"removed": removed, "session": _state(session_id, wf)}


@router.post("/sessions/{session_id}/zones/{code}/complete")
async def complete_zone(session_id: str, code: str):
    wf = _session(session_id)
    next_zone = wf.complete_zone(code.upper())
    return {"nextZone": next_zone, "session": _state(session_id, wf)}


@router.post("/sessions/{session_id}/finalize")
async def finalize(session_id: str, confirm_empty: bool = Query(False)):
    return _session(session_id).finalize(confirm_empty=confirm_empty)


@router.put("/sessions/{session_id}/matrix/{from_zone}/{to_zone}")
async def set_price(session_id: str, from_zone: str, to_zone: str, payload: PricePayload):
    wf = _session(session_id)
    wf.set_price(from_zone.upper(), to_zone.upper(), payload.value)
    return {"from": from_zone.upper(), "to": to_zone.upper(), "value": payload.value}


@router.post("/sessions/{session_id}/matrix/paste")
async def paste_matrix(session_id: str, payload: BulkPastePayload):
    wf = _session(session_id)
    cells = wf.bulk_paste(payload.text)
    return {"updated": cells, "priceMatrix": wf.price_matrix()}


@router.get("/sessions/{session_id}/download/{dl_type}")
async def download_session_csv(session_id: str, dl_type: str):
    wf = _session(session_id)
    if dl_type == "matrix":
        return _csv_download(generate_matrix_csv(wf.price_matrix()), f"price_matrix_{session_id}.csv")
    if dl_type == "zones":
        return _csv_download(generate_zone_cities_csv(wf.engine.configs()), f"zones_{session_id}.csv")
    raise HTTPException(400, "Invalid type")


@router.post("/sessions/{session_id}/save")
async def save_session(session_id: str, db: AsyncSession = Depends(get_db)):
    wf = _session(session_id)
    if not wf.vendor_id:
        raise HTTPException(status_code=400, detail="Session has no vendor_id to save under.")
    if not wf.is_finalized:
        raise HTTPException(status_code=409, detail="Finalize the configuration before saving.")
    return await _upsert(db, wf.vendor_id, wf.to_vendor_config(), "wizard")


# ─── Saved vendor configs ──────────────────────────────────────────────

async def _upsert(db: AsyncSession, vendor_id: str, config: VendorZoneConfig, source: str) -> SavedZoneConfigOut:
    config = _normalized(config)
    result = await db.execute(select(VendorZoneConfigRecord).where(VendorZoneConfigRecord.vendor_id == vendor_id))
    record = result.scalar_one_or_none()
    payload = config.model_dump(by_alias=True)
    if record is None:
        record = VendorZoneConfigRecord(vendor_id=vendor_id)
        db.add(record)
    else:
        record.updated_at = datetime.utcnow()
    record.source = source
    record.zones = payload["zones"]
    record.price_matrix = payload["priceMatrix"]
    record.oda_pincodes = payload["odaPincodes"]
    await db.commit()
    await db.refresh(record)
    return SavedZoneConfigOut.model_validate(record)


@router.post("/vendors/{vendor_id}/zone-config")
async def save_vendor_config(
    vendor_id: str,
    config: VendorZoneConfig,
    source: str = Query("wizard", pattern="^(upload|wizard)$"),
    db: AsyncSession = Depends(get_db),
):
    return await _upsert(db, vendor_id, config, source)


@router.get("/vendors/{vendor_id}/zone-config")
async def get_vendor_config(vendor_id: str, db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(VendorZoneConfigRecord).where(VendorZoneConfigRecord.vendor_id == vendor_id))
    record = result.scalar_one_or_none()
    if not record:
        raise HTTPException(404, f"No zone configuration saved for vendor {vendor_id}")
    return SavedZoneConfigOut.model_validate(record)


@router.delete("/vendors/{vendor_id}/zone-config")
async def delete_vendor_config(vendor_id: str, db: AsyncSession = Depends(get_db)):
    result = await db.execute(select(VendorZoneConfigRecord).where(VendorZoneConfigRecord.vendor_id == vendor_id))
    record = result.scalar_one_or_none()
    if not record:
        raise HTTPException(404)
    await db.delete(record)
    await db.commit()
    return {"deleted": vendor_id}
