import json
from pathlib import Path

import pytest

from zonemap.services.blueprint_resolver import BlueprintResolver, load_zone_schema

LEGACY_SCHEMA = Path(__file__).parent / "data" / "zones_data_legacy.json"


@pytest.fixture
def legacy_resolver():
    with open(LEGACY_SCHEMA, "r", encoding="utf-8") as f:
        return BlueprintResolver(load_zone_schema(json.load(f)))


def test_zone_types_from_blueprint(resolver):
    assert resolver.kind == "blueprint"
    assert resolver.zone_type("N1") == "limited"
    assert resolver.zone_type("N2") == "full"
    assert resolver.zone_type("N3") == "full"
    # capital zone with no marker row is still limited
    assert resolver.zone_type("S1") == "limited"
    assert resolver.zone_type("X1") == "special"
    assert resolver.zone_type("ZZ") is None


def test_zone_info_skips_marker_rows(resolver):
    info = resolver.zone_info("N1")
    assert info.states == ["Delhi", "Rajasthan"]
    assert info.limited_cities == {"Delhi": ["New Delhi", "Delhi"], "Rajasthan": ["Jaipur"]}
    assert info.remarks == "Limited Cities"
    assert resolver.states_for_zone("N3") == ["Rajasthan", "Uttar Pradesh"]
    assert [e.state for e in resolver.raw_entries("N3")] == ["Rajasthan", "Uttar Pradesh"]


def test_zones_for_state(resolver):
    assert resolver.zones_for_state("Delhi") == {"zones": ["N1", "N2"], "capitalZones": ["N1"]}
    assert resolver.zones_for_state("nct of delhi") == {"zones": ["N1", "N2"], "capitalZones": ["N1"]}
    assert resolver.zones_for_state("Goa") == {"zones": [], "capitalZones": []}


def test_siliguri_special_case(resolver):
    answer = resolver.zone_for_city_state("Siliguri", "West Bengal")
    assert answer.zone == "NE1"
    assert answer.reason == "special_case"
    assert answer.alternatives == ["NE1", "E1"]


@pytest.mark.parametrize(
    "city,state,zone,reason",
    [
        ("Jaipur", "Rajasthan", "N1", "limited_city"),
        ("Kota", "Rajasthan", "N3", "full_state"),
        ("New Delhi", "NCT of Delhi", "N1", "limited_city"),
        ("Bengaluru", "Karnataka", "S1", "limited_city"),
        ("Mysore", "Karnataka", "S1", "primary_zone"),
        ("Ambala", "Haryana", "N2", "full_state"),
    ],
)
def test_zone_for_city_state(resolver, city, state, zone, reason):
    answer = resolver.zone_for_city_state(city, state)
    assert answer.zone == zone
    assert answer.reason == reason


def test_unknown_state_resolves_to_none(resolver):
    assert resolver.zone_for_city_state("Panaji", "Goa") is None


def test_is_city_valid_for_zone(resolver):
    assert resolver.is_city_valid_for_zone("Jaipur", "Rajasthan", "N1")
    assert not resolver.is_city_valid_for_zone("Kota", "Rajasthan", "N1")
    assert resolver.is_city_valid_for_zone("Gurugram", "Haryana", "N2")
    assert not resolver.is_city_valid_for_zone("Gurugram", "Haryana", "N3")


def test_validate_selection_warns_on_split_state(resolver):
    result = resolver.validate_selection(["N1", "N2"])
    assert result.is_valid
    assert len(result.warnings) == 1
    assert result.warnings[0].startswith("Delhi is in both limited (N1) and full (N2)")

    assert resolver.validate_selection(["N2", "W2"]).warnings == []


def test_special_state_for_zone(resolver):
    assert resolver.special_state_for_zone("X1") == "Andaman and Nicobar Islands"
    # not in the blueprint: falls back to the catalog's designated territory
    assert resolver.special_state_for_zone("X2") == "Lakshadweep"


def test_build_zone_configs_first_claim_wins(resolver, index):
    configs = {c.zone_code: c for c in resolver.build_zone_configs(["N2", "N1"], index)}
    assert configs["N1"].selected_cities == ["DELHI||DELHI", "NEW DELHI||DELHI", "JAIPUR||RAJASTHAN"]
    assert configs["N2"].selected_cities == ["AMBALA||HARYANA", "FARIDABAD||HARYANA", "GURUGRAM||HARYANA"]
    assert configs["N2"].selected_states == ["HARYANA"]


def test_recommended_zones(resolver):
    assert resolver.recommended_zones(["North", "Special"]) == ["N1", "N2", "N3", "X1"]
    assert resolver.recommended_zones(["Nowhere"]) == []


# ─── Legacy zones_data.json ────────────────────────────────────────────

def test_legacy_schema_resolution(legacy_resolver):
    assert legacy_resolver.kind == "legacy"
    answer = legacy_resolver.zone_for_city_state("New Delhi", "Delhi")
    assert (answer.zone, answer.reason) == ("N1", "limited_city")
    answer = legacy_resolver.zone_for_city_state("Shahdara", "Delhi")
    assert (answer.zone, answer.reason) == ("N2", "full_state")


def test_legacy_special_cases_are_merged(legacy_resolver):
    answer = legacy_resolver.zone_for_city_state("Gurugram", "Haryana")
    assert answer.reason == "special_case"
    assert answer.alternatives == ["N2", "N1"]
    # built-in border cases still apply
    assert legacy_resolver.zone_for_city_state("Siliguri", "West Bengal").zone == "NE1"


def test_legacy_raw_entries_are_synthesized(legacy_resolver):
    entries = legacy_resolver.raw_entries("N1")
    assert [(e.state, e.cities) for e in entries] == [("Delhi", ["New Delhi"])]


def test_region_and_limited_city_lookups(resolver):
    assert [z.code for z in resolver.zones_for_region("West")] == ["W1", "W2"]
    assert resolver.limited_cities_for_zone("W1") == {"Maharashtra": ["Mumbai", "Pune"]}
    assert resolver.limited_cities_for_zone("W2") == {}
    assert resolver.is_limited_zone("E1")
