import io
import json
import os
import threading
import pytest
from datetime import date
from unittest.mock import patch

from rich.console import Console

from cimis_irrigation.config.global_config import GlobalConfig
from cimis_irrigation.core.enums import CycleOutcome, ZoneActuationState
from cimis_irrigation.core.irrigation_cycle import IrrigationCycle
from cimis_irrigation.exceptions import ChannelConnectError, ParseError
from cimis_irrigation.network.messages import Acknowledgment
from cimis_irrigation.weather.weather_cache import WeatherCache
from cimis_irrigation.weather.weather_snapshot import AnalysisWindow


TODAY = date(2026, 10, 17)


# ---------------------- Fakes ----------------------

class FakeChannel:
    """Accepts every command and acknowledges it almost immediately."""

    def __init__(self, on_acknowledgment, fail_connect=False, silent_relays=(), reject_relays=()):
        self.on_acknowledgment = on_acknowledgment
        self.fail_connect = fail_connect
        self.silent_relays = set(silent_relays)
        self.reject_relays = set(reject_relays)
        self.connected = False
        self.published = []
        self.disconnected = False

    def connect(self):
        if self.fail_connect:
            raise ChannelConnectError("broker down")
        self.connected = True

    def is_connected(self):
        return self.connected

    def publish_command(self, request):
        self.published.append(request)
        if request.relay_id in self.reject_relays:
            return False
        if request.relay_id not in self.silent_relays:
            ack = Acknowledgment(controller_id=request.controller_id, relay_id=request.relay_id,
                                 request_id=request.request_id)
            threading.Timer(0.001, self.on_acknowledgment, args=[ack]).start()
        return True

    def disconnect(self):
        self.connected = False
        self.disconnected = True


class ChannelFactory:
    def __init__(self, **kwargs):
        self.kwargs = kwargs
        self.channels = []

    def __call__(self, on_acknowledgment):
        channel = FakeChannel(on_acknowledgment, **self.kwargs)
        self.channels.append(channel)
        return channel


# ---------------------- Helpers ----------------------

def weather_document(eto_per_day="0.25", precipitation_per_day="0.00", days=7, bad=False):
    records = [
        {"Date": f"2026-10-{9 + i:02d}",
         "DayAsceEto": {"Value": eto_per_day if not bad else 0.25},
         "DayPrecip": {"Value": precipitation_per_day}}
        for i in range(days)
    ]
    return {"Data": {"Providers": [{"Records": records}]}}


@pytest.fixture
def zones_file(tmp_path):
    path = tmp_path / "irrigation_zones.json"
    with open(path, "w") as f:
        json.dump({"Data": [
            {"name": "Tomatoes", "PF": 1.0, "LA": 96, "Relay": 4, "Controller": 1,
             "Date": "2026-09-01 07:00:00", "Gallons": 0.0},
            {"name": "Herb bed", "PF": 0.5, "LA": 24, "Relay": 2, "Controller": 1,
             "Date": "2026-09-01 07:00:00", "Gallons": 0.0},
            {"name": "Front shrubs", "PF": 0.3, "LA": 120, "Relay": 0, "Controller": 0,
             "Date": "2026-09-01 07:00:00", "Gallons": 0.0},
        ]}, f)
    return path


@pytest.fixture
def config(tmp_path, zones_file):
    return GlobalConfig.from_dict({
        "cimis": {"station_id": "2", "app_key": "key", "cache_dir": str(tmp_path / "cache")},
        "actuation": {"flow_rate_gallons_per_second": 10000.0, "grace_ms": 50},
        "storage": {"zones_file": str(zones_file)},
    })


def seed_cache(config, document):
    cache = WeatherCache(config.cimis.cache_dir)
    window = AnalysisWindow.ending_yesterday(TODAY, config.cimis.lookback_days)
    path = cache.path_for(window.start_date, window.end_date)
    os.makedirs(config.cimis.cache_dir, exist_ok=True)
    with open(path, "w") as f:
        json.dump(document, f)


def make_cycle(config, factory):
    return IrrigationCycle(config, channel_factory=factory, console=Console(file=io.StringIO()))


def read_records(path):
    with open(path) as f:
        return json.load(f)["Data"]


# ---------------------- Tests ----------------------

def test_full_cycle_actuates_and_persists(config, zones_file):
    seed_cache(config, weather_document())
    factory = ChannelFactory()

    report = make_cycle(config, factory).run(today=TODAY)

    assert report.outcome == CycleOutcome.COMPLETED
    assert report.snapshot.eto_inches == pytest.approx(1.75)
    channel = factory.channels[0]
    assert [r.zone_name for r in channel.published] == ["Tomatoes", "Herb bed"]
    assert channel.disconnected
    assert [r.state for r in report.actuation] == [ZoneActuationState.CONFIRMED] * 2
    assert report.records_updated == 2

    saved = read_records(zones_file)
    assert saved[0]["Gallons"] == pytest.approx(104.664, abs=0.001)
    assert saved[0]["Date"] == report.cycle_time.strftime("%Y-%m-%d %H:%M:%S")
    assert saved[2]["Date"] == "2026-09-01 07:00:00"


def test_timed_out_zone_is_still_recorded(config, zones_file):
    seed_cache(config, weather_document())
    factory = ChannelFactory(silent_relays=[2])

    report = make_cycle(config, factory).run(today=TODAY)

    assert [r.state for r in report.actuation] == [ZoneActuationState.CONFIRMED, ZoneActuationState.TIMED_OUT]
    assert report.records_updated == 2
    assert read_records(zones_file)[1]["Gallons"] > 0


def test_dry_run_does_not_connect_or_write(config, zones_file):
    seed_cache(config, weather_document())
    factory = ChannelFactory()
    original = zones_file.read_text()

    report = make_cycle(config, factory).run(today=TODAY, dry_run=True)

    assert report.outcome == CycleOutcome.DRY_RUN
    assert [d.zone_name for d in report.demand] == ["Tomatoes", "Herb bed", "Front shrubs"]
    assert factory.channels == []
    assert zones_file.read_text() == original


def test_rain_means_nothing_to_do(config, zones_file):
    seed_cache(config, weather_document(eto_per_day="0.01", precipitation_per_day="2.00"))
    factory = ChannelFactory()
    original = zones_file.read_text()

    report = make_cycle(config, factory).run(today=TODAY)

    assert report.outcome == CycleOutcome.NOTHING_TO_DO
    assert all(d.demand == 0.0 for d in report.demand)
    assert factory.channels == []
    assert zones_file.read_text() == original


def test_broker_unavailable_aborts_without_writing(config, zones_file):
    seed_cache(config, weather_document())
    factory = ChannelFactory(fail_connect=True)
    original = zones_file.read_text()

    with pytest.raises(ChannelConnectError):
        make_cycle(config, factory).run(today=TODAY)

    assert factory.channels[0].published == []
    assert zones_file.read_text() == original


def test_malformed_weather_aborts_before_actuation(config, zones_file):
    seed_cache(config, weather_document(bad=True))
    factory = ChannelFactory()
    original = zones_file.read_text()

    with pytest.raises(ParseError) as exc_info:
        make_cycle(config, factory).run(today=TODAY)

    assert exc_info.value.error_count == 7
    assert factory.channels == []
    assert zones_file.read_text() == original


def test_request_ids_are_seeded_from_cycle_time(config):
    seed_cache(config, weather_document())
    factory = ChannelFactory()

    report = make_cycle(config, factory).run(today=TODAY)

    ids = [r.request_id for r in factory.channels[0].published]
    assert ids[1] == ids[0] + 1
    assert ids[0] == int(report.cycle_time.timestamp()) % 1_000_000


def test_rejected_publish_is_not_counted_or_recorded(config, zones_file):
    seed_cache(config, weather_document())
    factory = ChannelFactory(reject_relays=[4])

    report = make_cycle(config, factory).run(today=TODAY)

    assert [r.state for r in report.actuation] == [ZoneActuationState.PENDING, ZoneActuationState.CONFIRMED]
    assert report.zones_dispensed == 1
    assert report.records_updated == 1
    assert read_records(zones_file)[0]["Date"] == "2026-09-01 07:00:00"


def test_malformed_fresh_document_is_refetched_on_next_run(config, zones_file):
    documents = iter([weather_document(bad=True), weather_document()])
    calls = []

    def fake_fetch(station_id, app_key, start_date, end_date, url, timeout):
        calls.append((start_date, end_date))
        return next(documents)

    with patch("cimis_irrigation.core.irrigation_cycle.fetch_weather", side_effect=fake_fetch):
        with pytest.raises(ParseError):
            make_cycle(config, ChannelFactory()).run(today=TODAY, dry_run=True)

        report = make_cycle(config, ChannelFactory()).run(today=TODAY, dry_run=True)

    assert len(calls) == 2
    assert report.snapshot.eto_inches == pytest.approx(1.75)
    window = AnalysisWindow.ending_yesterday(TODAY, config.cimis.lookback_days)
    assert os.path.exists(WeatherCache(config.cimis.cache_dir).path_for(window.start_date, window.end_date))
