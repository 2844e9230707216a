import json
import pytest
from datetime import datetime
from unittest.mock import patch

from cimis_irrigation.core.enums import ZoneActuationState
from cimis_irrigation.core.irrigation_store import IrrigationStore
from cimis_irrigation.exceptions import PersistenceError


CYCLE_TIME = datetime(2026, 10, 17, 6, 30, 0)


def write_records(path, records):
    with open(path, "w") as f:
        json.dump({"Data": records}, f)


def read_records(path):
    with open(path, "r") as f:
        return json.load(f)["Data"]


def record(name, relay=1, controller=1, date="2026-10-01 07:00:00", gallons=10.0, **extra):
    return {"name": name, "PF": 0.8, "LA": 96, "Relay": relay, "Controller": controller,
            "Date": date, "Gallons": gallons, **extra}


@pytest.fixture
def records_file(tmp_path):
    path = tmp_path / "irrigation_zones.json"
    write_records(path, [
        record("Tomatoes", relay=4, note="south fence"),
        record("Herb bed", relay=2),
        record("Front shrubs", relay=0, controller=0),
    ])
    return path


def test_load_zones_in_persisted_order(records_file):
    zones = IrrigationStore(str(records_file)).load_zones()

    assert [z.name for z in zones] == ["Tomatoes", "Herb bed", "Front shrubs"]
    tomatoes = zones[0]
    assert tomatoes.plant_factor == 0.8
    assert tomatoes.landscape_area == 96
    assert tomatoes.relay_id == 4
    assert tomatoes.last_irrigation_date == datetime(2026, 10, 1, 7, 0, 0)
    assert tomatoes.last_irrigation_volume == 10.0
    assert not zones[2].hardware_online


def test_load_accepts_capitalized_name_and_numeric_strings(tmp_path):
    path = tmp_path / "zones.json"
    write_records(path, [{"Name": "Roses", "PF": "0.5", "LA": "20", "Relay": "3", "Controller": "1",
                          "Date": "2026-10-01 07:00:00", "Gallons": "4.5"}])

    zone = IrrigationStore(str(path)).load_zones()[0]

    assert zone.name == "Roses"
    assert zone.plant_factor == 0.5
    assert zone.relay_id == 3
    assert zone.last_irrigation_volume == 4.5


@pytest.mark.parametrize("bad_date", ["2026-10-01", "yesterday", None])
def test_invalid_date_fails_the_load(tmp_path, bad_date):
    path = tmp_path / "zones.json"
    write_records(path, [record("Tomatoes", date=bad_date)])

    with pytest.raises(PersistenceError):
        IrrigationStore(str(path)).load_zones()


def test_missing_date_fails_the_load(tmp_path):
    path = tmp_path / "zones.json"
    broken = record("Tomatoes")
    del broken["Date"]
    write_records(path, [broken])

    with pytest.raises(PersistenceError):
        IrrigationStore(str(path)).load_zones()


def test_all_invalid_records_are_reported_together(tmp_path):
    path = tmp_path / "zones.json"
    write_records(path, [record("a", date="bad"), record("b"), record("c", gallons=-1)])

    with pytest.raises(PersistenceError) as exc_info:
        IrrigationStore(str(path)).load_zones()

    assert "2 invalid record(s)" in str(exc_info.value)


def test_duplicate_names_fail_the_load(tmp_path):
    path = tmp_path / "zones.json"
    write_records(path, [record("a"), record("a")])

    with pytest.raises(PersistenceError):
        IrrigationStore(str(path)).load_zones()


def test_missing_or_corrupted_file(tmp_path):
    with pytest.raises(PersistenceError):
        IrrigationStore(str(tmp_path / "missing.json")).load_zones()

    corrupted = tmp_path / "corrupted.json"
    corrupted.write_text("{not json")
    with pytest.raises(PersistenceError):
        IrrigationStore(str(corrupted)).load_zones()

    no_data = tmp_path / "no_data.json"
    no_data.write_text(json.dumps({"Data": {}}))
    with pytest.raises(PersistenceError):
        IrrigationStore(str(no_data)).load_zones()


def test_record_irrigation_updates_only_dispensed_zones(records_file):
    store = IrrigationStore(str(records_file))
    tomatoes, herbs, shrubs = store.load_zones()
    tomatoes.actuation_state = ZoneActuationState.CONFIRMED
    tomatoes.computed_demand = 12.34567
    herbs.actuation_state = ZoneActuationState.TIMED_OUT
    herbs.computed_demand = 3.0
    shrubs.computed_demand = 50.0

    updated = store.record_irrigation([tomatoes, herbs, shrubs], CYCLE_TIME)

    assert updated == 2
    saved = read_records(records_file)
    assert saved[0]["Date"] == "2026-10-17 06:30:00"
    assert saved[0]["Gallons"] == 12.346
    assert saved[1]["Date"] == "2026-10-17 06:30:00"
    assert saved[1]["Gallons"] == 3.0
    assert saved[2]["Date"] == "2026-10-01 07:00:00"
    assert saved[2]["Gallons"] == 10.0


def test_record_irrigation_preserves_unknown_keys(records_file):
    store = IrrigationStore(str(records_file))
    tomatoes = store.load_zones()[0]
    tomatoes.actuation_state = ZoneActuationState.CONFIRMED
    tomatoes.computed_demand = 1.0

    store.record_irrigation([tomatoes], CYCLE_TIME)

    saved = read_records(records_file)
    assert saved[0]["note"] == "south fence"
    assert saved[0]["Relay"] == 4
    assert not (records_file.parent / "irrigation_zones.json.tmp").exists()


def test_saved_records_load_back(records_file):
    store = IrrigationStore(str(records_file))
    tomatoes = store.load_zones()[0]
    tomatoes.actuation_state = ZoneActuationState.CONFIRMED
    tomatoes.computed_demand = 7.5
    store.record_irrigation([tomatoes], CYCLE_TIME)

    reloaded = IrrigationStore(str(records_file)).load_zones()[0]

    assert reloaded.last_irrigation_date == CYCLE_TIME
    assert reloaded.last_irrigation_volume == 7.5


def test_record_irrigation_requires_loaded_records(records_file):
    with pytest.raises(PersistenceError):
        IrrigationStore(str(records_file)).record_irrigation([], CYCLE_TIME)


def test_record_irrigation_rejects_unknown_zone(records_file, tmp_path):
    other_path = tmp_path / "other.json"
    write_records(other_path, [record("Roses")])
    roses = IrrigationStore(str(other_path)).load_zones()[0]
    roses.actuation_state = ZoneActuationState.CONFIRMED

    store = IrrigationStore(str(records_file))
    store.load_zones()
    with pytest.raises(PersistenceError):
        store.record_irrigation([roses], CYCLE_TIME)


def test_write_failure_raises_persistence_error(records_file):
    store = IrrigationStore(str(records_file))
    tomatoes = store.load_zones()[0]
    tomatoes.actuation_state = ZoneActuationState.CONFIRMED
    tomatoes.computed_demand = 1.0
    original = records_file.read_text()

    with patch("cimis_irrigation.core.irrigation_store.os.replace", side_effect=OSError("disk full")):
        with pytest.raises(PersistenceError):
            store.record_irrigation([tomatoes], CYCLE_TIME)

    assert records_file.read_text() == original
