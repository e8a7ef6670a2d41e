from pathlib import Path

import pytest

from zonemap.core.errors import ReferenceDataNotLoadedError
from zonemap.services.name_normalizer import (
    canonical_city_key, is_placeholder, normalize_city_name, normalize_state_name,
    parse_city_key, state_key,
)
from zonemap.services.reference_store import ReferenceStore, build_reference_data

DATA_DIR = Path(__file__).parent / "data"


# ─── Name normalization ────────────────────────────────────────────────

def test_state_aliases_collapse():
    assert normalize_state_name("ORISSA") == "Odisha"
    assert normalize_state_name("nct of delhi") == "Delhi"
    assert normalize_state_name("  tamilnadu ") == "Tamil Nadu"
    assert normalize_state_name("west   bengal") == "West Bengal"
    assert state_key("Jammu & Kashmir") == state_key("JAMMU AND KASHMIR")


def test_city_aliases_and_placeholders():
    assert normalize_city_name("Bengaluru") == "BANGALORE"
    assert normalize_city_name("gurgaon") == "GURUGRAM"
    assert normalize_city_name("Kota") == "KOTA"
    assert is_placeholder("nan")
    assert is_placeholder(None)
    assert is_placeholder("  ")
    assert not is_placeholder("PUNE")


def test_city_key_splits_on_last_separator():
    key = canonical_city_key(" new  delhi ", "delhi")
    assert key == "NEW DELHI||DELHI"
    assert parse_city_key(key) == ("NEW DELHI", "DELHI")
    assert parse_city_key("A||B||C") == ("A||B", "C")
    assert parse_city_key("NOSEP") == ("NOSEP", "")


# ─── Reference index ───────────────────────────────────────────────────

def test_index_drops_invalid_rows(index):
    assert index.total_rows == 21
    assert index.dropped_rows == 3
    assert len(index) == 18
    assert index.record_of("12345") is None


def test_index_region_and_state_lookups(index):
    assert index.states_of("North") == ["DELHI", "HARYANA", "RAJASTHAN", "UTTAR PRADESH"]
    assert index.city_keys_of("Delhi", "North") == ["DELHI||DELHI", "NEW DELHI||DELHI"]
    assert index.city_keys_of("Delhi", "West") == []
    assert index.resolve_state("NCT of Delhi") == "DELHI"
    assert index.cities_in_state("West Bengal") == ["KOLKATA||WEST BENGAL", "SILIGURI||WEST BENGAL"]


def test_index_pincodes_for_city_uses_aliases(index):
    assert index.pincodes_for_city("New Delhi", "Delhi") == ["110001", "110002"]
    assert index.pincodes_for_city("Bengaluru", "Karnataka") == ["560001"]
    assert index.pincodes_for_city("Nowhere", "Karnataka") == []


def test_index_region_totals(index):
    assert index.total_cities_in_region("North") == 8
    assert index.regions() == ["North", "East", "West", "South", "Special"]


# ─── Reference store ───────────────────────────────────────────────────

def test_build_reference_data_rejects_non_list():
    with pytest.raises(ValueError):
        build_reference_data({"pincode": "110001"}, {"stateIndex": {}})


def test_build_reference_data_rejects_unknown_format():
    with pytest.raises(ValueError):
        build_reference_data([], {"something": "else"})


def test_store_not_loaded_raises():
    store = ReferenceStore()
    with pytest.raises(ReferenceDataNotLoadedError, match="still loading"):
        store.get()
    assert store.status() == {"loaded": False, "loading": False, "error": None}


async def test_store_keeps_load_failure():
    store = ReferenceStore()
    await store.load(str(DATA_DIR / "missing.json"), str(DATA_DIR / "zones_blueprint.json"))
    assert not store.is_loaded
    assert store.error.startswith("FileNotFoundError")
    with pytest.raises(ReferenceDataNotLoadedError, match="failed to load"):
        store.get()


async def test_store_loads_both_files():
    store = ReferenceStore()
    await store.load(str(DATA_DIR / "pincodes.json"), str(DATA_DIR / "zones_blueprint.json"))
    status = store.status()
    assert status["loaded"] is True
    assert status["pincodes"] == 18
    assert status["droppedRows"] == 3
    assert status["zoneReference"] == "blueprint"
    assert store.get().resolver.kind == "blueprint"


def test_index_cities_of_is_region_scoped(index):
    assert index.cities_of("Rajasthan", "North") == ["JAIPUR", "KOTA"]
    assert index.cities_of("West Bengal", "North") == []
