from datetime import datetime
from typing import Iterable

from cimis_irrigation.config.global_config import DemandSettings
from cimis_irrigation.core.demand_model import (
    DemandResult,
    compute_effective_precipitation,
    compute_zone_demand,
)
from cimis_irrigation.core.irrigation_store import IrrigationStore
from cimis_irrigation.core.zone import Zone
from cimis_irrigation.exceptions import PersistenceError
from cimis_irrigation.utils.logger import get_logger
from cimis_irrigation.weather.weather_snapshot import WeatherSnapshot


class ZoneRegistry:
    """
    Ordered set of zones for one cycle. Order is the persisted order, so log output
    and actuation order are stable across cycles.
    """

    def __init__(self, zones: Iterable[Zone]):
        self.logger = get_logger("ZoneRegistry")
        self._zones: list[Zone] = list(zones)
        self._index: dict[str, int] = {}
        for i, zone in enumerate(self._zones):
            if zone.name in self._index:
                raise ValueError(f"Duplicate zone name '{zone.name}'.")
            self._index[zone.name] = i

        self._demand_applied: bool = False
        self.logger.info(f"ZoneRegistry initialized with {len(self._zones)} zones.")

    @classmethod
    def from_store(cls, store: IrrigationStore) -> "ZoneRegistry":
        """:raises PersistenceError: if the records cannot be loaded."""
        try:
            return cls(store.load_zones())
        except ValueError as e:
            raise PersistenceError(str(e)) from e

    def __len__(self) -> int:
        return len(self._zones)

    def __iter__(self):
        return iter(self._zones)

    @property
    def zones(self) -> tuple[Zone, ...]:
        return tuple(self._zones)

    @property
    def demand_applied(self) -> bool:
        return self._demand_applied

    def get(self, name: str) -> Zone:
        """:raises KeyError: if no zone has the given name."""
        return self._zones[self._index[name]]

    # =========================================================================
    # Demand
    # =========================================================================

    def apply_demand(self, snapshot: WeatherSnapshot, analysis_end: datetime,
                     settings: DemandSettings) -> list[DemandResult]:
        """
        Runs the demand model over every zone with the same snapshot.
        If any zone fails, no zone keeps a partial result.
        """
        self._demand_applied = False
        effective_precipitation = compute_effective_precipitation(snapshot, settings)

        results = [
            compute_zone_demand(zone, snapshot, analysis_end, settings, effective_precipitation)
            for zone in self._zones
        ]

        for zone, result in zip(self._zones, results):
            zone.reset_cycle_state()
            zone.days_since_last_irrigation = max(0, min(result.days_since, settings.recent_irrigation_days + 1))
            zone.effective_irrigation = result.effective_irrigation
            zone.computed_demand = result.demand

        self._demand_applied = True
        needing = sum(1 for zone in self._zones if zone.computed_demand > 0)
        self.logger.info(f"Demand computed for {len(self._zones)} zones, {needing} need irrigation.")
        return results

    # =========================================================================
    # Views
    # =========================================================================

    def eligible_zones(self) -> list[Zone]:
        """
        Zones with positive demand and online hardware, in registry order.

        :raises RuntimeError: if demand has not been applied for this cycle.
        """
        if not self._demand_applied:
            raise RuntimeError("Demand must be applied to all zones before selecting zones for actuation.")

        eligible = []
        for zone in self._zones:
            if zone.computed_demand > 0 and not zone.hardware_online:
                self.logger.warning(
                    f"Zone {zone.name} needs {zone.computed_demand:.3f} gal but its hardware is offline "
                    f"(relay {zone.relay_id}, controller {zone.controller_id}). Skipping."
                )
                continue
            if zone.is_eligible:
                eligible.append(zone)
        return eligible

    def actuated_zones(self) -> list[Zone]:
        """Zones for which a command was published in this cycle, confirmed or not."""
        return [zone for zone in self._zones if zone.water_dispensed]
