# cimis_irrigation/core/irrigation_cycle.py

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Optional

from rich.console import Console

from cimis_irrigation.config.global_config import GlobalConfig
from cimis_irrigation.core.acknowledgments import AcknowledgmentQueue
from cimis_irrigation.core.actuation_sequencer import ActuationResult, ActuationSequencer
from cimis_irrigation.core.demand_model import DemandResult
from cimis_irrigation.core.enums import CycleOutcome, DISPENSED_STATES
from cimis_irrigation.core.irrigation_store import IrrigationStore
from cimis_irrigation.core.zone import Zone
from cimis_irrigation.core.zone_registry import ZoneRegistry
from cimis_irrigation.interface.demand_report import print_demand_report
from cimis_irrigation.network.messages import Acknowledgment
from cimis_irrigation.network.mqtt_channel import MQTTChannel
from cimis_irrigation.utils.logger import get_logger
from cimis_irrigation.weather.cimis_api import fetch_weather
from cimis_irrigation.weather.cimis_parser import parse_weather_document
from cimis_irrigation.weather.weather_cache import WeatherCache
from cimis_irrigation.weather.weather_snapshot import AnalysisWindow, WeatherSnapshot
import cimis_irrigation.utils.time_utils as time_utils


# Request ids are seeded from the cycle time, unique across runs
REQUEST_ID_MODULUS = 1_000_000

ChannelFactory = Callable[[Callable[[Acknowledgment], object]], MQTTChannel]


@dataclass
class CycleReport:
    outcome: CycleOutcome
    cycle_time: datetime
    snapshot: WeatherSnapshot
    demand: list[DemandResult] = field(default_factory=list)
    actuation: list[ActuationResult] = field(default_factory=list)
    records_updated: int = 0

    @property
    def zones_dispensed(self) -> int:
        """Zones whose command reached the transport, confirmed or not."""
        return sum(1 for r in self.actuation if r.state in DISPENSED_STATES)


class IrrigationCycle:
    """
    One full run: weather -> demand -> sequential actuation -> persistence.

    Any fatal error propagates out of run(); the messaging connection is released
    and nothing is written to the zone records in that case.
    """

    def __init__(self,
                 config: GlobalConfig,
                 store: Optional[IrrigationStore] = None,
                 weather_cache: Optional[WeatherCache] = None,
                 channel_factory: Optional[ChannelFactory] = None,
                 console: Optional[Console] = None):
        self.config = config
        self.store = store or IrrigationStore(config.storage.zones_file)
        self.weather_cache = weather_cache or WeatherCache(config.cimis.cache_dir)
        self.channel_factory = channel_factory or (lambda on_ack: MQTTChannel(config.mqtt, on_ack))
        self.console = console or Console()
        self.logger = get_logger(self.__class__.__name__)

    # ==================================================================================================================
    # Public API
    # ==================================================================================================================

    def run(self, today: Optional[date] = None, dry_run: bool = False) -> CycleReport:
        cycle_time = time_utils.now()
        today = today or cycle_time.date()
        # Same time of day, one day back: the end of the weather window
        analysis_end = datetime.combine(today, cycle_time.time()) - timedelta(days=1)

        snapshot = self.load_weather(AnalysisWindow.ending_yesterday(today, self.config.cimis.lookback_days))

        registry = ZoneRegistry.from_store(self.store)
        demand = registry.apply_demand(snapshot, analysis_end, self.config.demand)
        print_demand_report(self.console, snapshot, registry.zones)

        report = CycleReport(outcome=CycleOutcome.COMPLETED, cycle_time=cycle_time, snapshot=snapshot, demand=demand)

        if dry_run:
            self.logger.info("Dry run: skipping actuation and persistence.")
            report.outcome = CycleOutcome.DRY_RUN
            return report

        eligible = registry.eligible_zones()
        if not eligible:
            self.logger.info("No zone needs irrigation this cycle.")
            report.outcome = CycleOutcome.NOTHING_TO_DO
            return report

        report.actuation = self._actuate(eligible, first_request_id=int(cycle_time.timestamp()) % REQUEST_ID_MODULUS)
        print_demand_report(self.console, snapshot, registry.zones)

        report.records_updated = self.store.record_irrigation(registry.actuated_zones(), cycle_time)
        return report

    def load_weather(self, window: AnalysisWindow) -> WeatherSnapshot:
        """
        :raises FetchError: if the document is not cached and cannot be fetched.
        :raises ParseError: if the document is malformed. A malformed fresh document is not cached.
        """
        cimis = self.config.cimis
        parsed: list[WeatherSnapshot] = []

        def fetch(start_date: date, end_date: date) -> dict:
            return fetch_weather(cimis.station_id, cimis.app_key, start_date, end_date,
                                 url=cimis.api_url, timeout=cimis.request_timeout)

        def validate(document: dict) -> None:
            parsed.append(parse_weather_document(document, window.start_date, window.end_date))

        document = self.weather_cache.load_or_fetch(window.start_date, window.end_date, fetch, validate=validate)
        if parsed:
            return parsed[0]
        return parse_weather_document(document, window.start_date, window.end_date)

    # ==================================================================================================================
    # Private methods
    # ==================================================================================================================

    def _actuate(self, zones: list[Zone], first_request_id: int) -> list[ActuationResult]:
        acknowledgments = AcknowledgmentQueue(maxsize=self.config.mqtt.ack_queue_size)
        channel = self.channel_factory(acknowledgments.put)
        channel.connect()
        try:
            sequencer = ActuationSequencer(channel, acknowledgments, self.config.actuation, first_request_id)
            return sequencer.run(zones)
        finally:
            channel.disconnect()
