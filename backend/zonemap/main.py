import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from zonemap.core.config import settings
from zonemap.core.database import engine, Base
from zonemap.core.errors import (
    CityAlreadyClaimedError, EmptyZonesError, InactiveZoneError, IngestionError, InvalidPriceError,
    ReferenceDataNotLoadedError, UnknownZoneError, ZoneMapError, ZoneSequenceError,
)
from zonemap.core.logger_config import setup_logging
from zonemap.models import db_models  # ensure models are imported
from zonemap.api.routes import router
from zonemap.services.reference_store import reference_store

logger = logging.getLogger(__name__)

ERROR_STATUS = [
    (ReferenceDataNotLoadedError, 503),
    (UnknownZoneError, 404),
    (IngestionError, 422),
    (InvalidPriceError, 422),
    (ZoneSequenceError, 409),
    (CityAlreadyClaimedError, 409),
    (EmptyZonesError, 409),
    (InactiveZoneError, 409),
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(settings.LOG_LEVEL, settings.LOG_DIR)
    # Create all tables on startup
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await reference_store.load(settings.PINCODES_PATH, settings.BLUEPRINT_PATH)
    yield


app = FastAPI(title="ZoneMap API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)


@app.exception_handler(ZoneMapError)
async def zone_error_handler(request: Request, exc: ZoneMapError):
    status = next((code for cls, code in ERROR_STATUS if isinstance(exc, cls)), 400)
    if isinstance(exc, IngestionError):
        detail = exc.to_dict()
    elif isinstance(exc, EmptyZonesError):
        detail = {"message": str(exc), "emptyZones": exc.zone_codes}
    else:
        detail = str(exc)
    logger.info(f"{request.method} {request.url.path} -> {status}: {exc}")
    return JSONResponse(status_code=status, content={"detail": detail})


@app.get("/health")
async def health():
    return {"status": "ok", "reference": reference_store.is_loaded}
