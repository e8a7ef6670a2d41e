# backend/tests/conftest.py
import json
import os
import tempfile
from pathlib import Path
from typing import AsyncGenerator

import httpx
import pytest
import pytest_asyncio

DATA_DIR = Path(__file__).parent / "data"
_TMP_DIR = tempfile.mkdtemp(prefix="zonemap-tests-")

# Settings are read at import time, so the environment goes first
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TMP_DIR}/zonemap_test.db"
os.environ["PINCODES_PATH"] = str(DATA_DIR / "pincodes.json")
os.environ["BLUEPRINT_PATH"] = str(DATA_DIR / "zones_blueprint.json")
os.environ["LOG_LEVEL"] = "DEBUG"

from zonemap.core.database import engine  # noqa: E402
from zonemap.main import app, lifespan  # noqa: E402
from zonemap.services.reference_store import ReferenceData, build_reference_data  # noqa: E402
from zonemap.services.session_registry import session_registry  # noqa: E402
from zonemap.services.zone_workflow import ZoneWorkflow  # noqa: E402


def load_json(name: str):
    with open(DATA_DIR / name, "r", encoding="utf-8") as f:
        return json.load(f)


@pytest.fixture(scope="session")
def reference() -> ReferenceData:
    return build_reference_data(load_json("pincodes.json"), load_json("zones_blueprint.json"))


@pytest.fixture
def index(reference):
    return reference.index


@pytest.fixture
def resolver(reference):
    return reference.resolver


@pytest.fixture
def workflow(reference) -> ZoneWorkflow:
    return ZoneWorkflow(reference.index, reference.resolver, vendor_id="vendor-test")


@pytest_asyncio.fixture
async def client() -> AsyncGenerator[httpx.AsyncClient, None]:
    """
    App client with the real lifespan (tables + reference files).
    The engine is disposed per test so no pooled connection outlives its loop.
    """
    async with lifespan(app):
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
            yield c
    session_registry.clear()
    await engine.dispose()
