import pytest

from zonemap.core.errors import CityAlreadyClaimedError, CityNotAvailableError, UnknownZoneError
from zonemap.models.schemas import ZoneConfig
from zonemap.services.city_assignment import CityAssignmentEngine

DELHI = ["DELHI||DELHI", "NEW DELHI||DELHI"]
HARYANA = ["AMBALA||HARYANA", "FARIDABAD||HARYANA", "GURUGRAM||HARYANA"]


@pytest.fixture
def engine(index, resolver):
    e = CityAssignmentEngine(index, resolver)
    e.add_zone("N1")
    e.add_zone("N2")
    return e


def test_add_zone_rejects_unknown_code(engine):
    with pytest.raises(UnknownZoneError):
        engine.add_zone("ROI")
    with pytest.raises(UnknownZoneError):
        engine.config("W1")


def test_toggle_city_claims_and_releases(engine):
    assert engine.toggle_city("N1", "new delhi||delhi") is True
    assert engine.owner_of("NEW DELHI||DELHI") == "N1"
    with pytest.raises(CityAlreadyClaimedError):
        engine.toggle_city("N2", "NEW DELHI||DELHI")
    assert engine.config("N2").selected_cities == []

    assert engine.toggle_city("N1", "NEW DELHI||DELHI") is False
    assert engine.owner_of("NEW DELHI||DELHI") is None
    assert engine.toggle_city("N2", "NEW DELHI||DELHI") is True


def test_city_outside_region_is_not_available(engine):
    with pytest.raises(CityNotAvailableError):
        engine.toggle_city("N1", "MUMBAI||MAHARASHTRA")


def test_assign_cities_is_all_or_nothing(engine):
    engine.toggle_city("N1", "AMBALA||HARYANA")
    with pytest.raises(CityAlreadyClaimedError):
        engine.assign_cities("N2", ["FARIDABAD||HARYANA", "AMBALA||HARYANA"])
    with pytest.raises(CityNotAvailableError):
        engine.assign_cities("N2", ["FARIDABAD||HARYANA", "PUNE||MAHARASHTRA"])
    assert engine.config("N2").selected_cities == []

    assert engine.assign_cities("N2", ["FARIDABAD||HARYANA", "faridabad||haryana"]) == ["FARIDABAD||HARYANA"]


def test_available_cities_exclude_other_zones(engine):
    engine.select_all_in_state("N1", "Delhi")
    assert engine.config("N1").selected_cities == DELHI
    assert engine.available_city_keys("N2", "Delhi") == []
    assert engine.available_states("N2") == ["HARYANA", "RAJASTHAN", "UTTAR PRADESH"]
    assert engine.used_city_keys(exclude="N1") == set()


def test_state_bulk_operations(engine):
    added = engine.select_all_states("N2")
    assert len(added) == 8
    removed = engine.clear_state("N2", "haryana")
    assert removed == HARYANA
    assert engine.config("N2").selected_states == ["DELHI", "RAJASTHAN", "UTTAR PRADESH"]
    assert len(engine.clear_zone("N2")) == 5
    assert engine.empty_zones() == ["N1", "N2"]


def test_remove_zone_releases_cities(engine):
    engine.assign_cities("N2", HARYANA)
    engine.remove_zone("N2")
    assert not engine.has_zone("N2")
    assert all(engine.owner_of(k) is None for k in HARYANA)


def test_complete_zone_returns_next_incomplete(engine):
    engine.add_zone("W1")
    assert engine.complete_zone("N1") == "N2"
    engine.complete_zone("W1")
    assert engine.complete_zone("N2") is None


def test_region_stats(engine):
    engine.assign_cities("N1", DELHI)
    stats = engine.region_stats("North")
    assert (stats.total_cities, stats.assigned_cities, stats.available_cities) == (8, 2, 6)


# ─── Auto-fill ─────────────────────────────────────────────────────────

def test_auto_fill_limited_then_full(engine):
    report = engine.auto_fill()
    assert report.filled == ["N1", "N2"]
    assert report.empty == []
    assert engine.config("N1").selected_cities == DELHI + ["JAIPUR||RAJASTHAN"]
    assert engine.config("N2").selected_cities == HARYANA
    assert engine.config("N1").is_complete
    engine.assert_unique()


def test_auto_fill_full_zone_takes_leftovers(engine):
    engine.add_zone("N3")
    engine.auto_fill()
    assert engine.config("N3").selected_cities == ["KOTA||RAJASTHAN", "LUCKNOW||UTTAR PRADESH"]
    engine.assert_unique()


def test_auto_fill_keeps_manual_zones_and_their_claims(engine):
    engine.assign_cities("N1", DELHI + HARYANA)
    report = engine.auto_fill()
    assert engine.config("N1").selected_cities == DELHI + HARYANA
    assert report.empty == ["N2"]
    assert "1 zones empty" in report.message
    engine.assert_unique()


def test_auto_fill_special_zone_uses_designated_state(index, resolver):
    engine = CityAssignmentEngine(index, resolver)
    engine.add_zone("X1")
    engine.add_zone("X2")
    report = engine.auto_fill()
    assert engine.config("X1").selected_cities == ["PORT BLAIR||ANDAMAN AND NICOBAR ISLANDS"]
    assert report.empty == ["X2"]
    assert engine.available_states("X1") == []
    assert engine.eligible_city_keys("X1", "Andaman and Nicobar Islands") == [
        "PORT BLAIR||ANDAMAN AND NICOBAR ISLANDS"
    ]


def test_load_configs_rejects_shared_city(index, resolver):
    engine = CityAssignmentEngine(index, resolver)
    configs = [
        ZoneConfig(zone_code="N1", region="North", selected_cities=["NEW DELHI||DELHI"]),
        ZoneConfig(zone_code="N2", region="North", selected_cities=["new delhi||delhi"]),
    ]
    with pytest.raises(CityAlreadyClaimedError):
        engine.load_configs(configs)
    assert engine.zone_codes() == []
