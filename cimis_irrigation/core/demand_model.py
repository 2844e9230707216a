# cimis_irrigation/core/demand_model.py

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from cimis_irrigation.config.global_config import DemandSettings
from cimis_irrigation.core.zone import Zone
from cimis_irrigation.utils.logger import get_logger
from cimis_irrigation.weather.weather_snapshot import WeatherSnapshot
import cimis_irrigation.utils.time_utils as time_utils


logger = get_logger("DemandModel")


@dataclass
class DemandResult:
    """
    Result of the demand model for one zone. Contains full context of the computation.

    This includes:
    - gross_demand:             ETo * PF * LA * area_to_gallons
    - effective_precipitation:  precipitation credit, shared by all zones of a cycle
    - days_since:               whole days since the last recorded irrigation
    - effective_irrigation:     credit for recent supplemental irrigation
    - demand:                   final volume in gallons, never negative
    """
    zone_name: str
    gross_demand: float
    effective_precipitation: float
    days_since: int
    effective_irrigation: float
    demand: float

    @property
    def should_skip(self) -> bool:
        return self.demand == 0.0


# =====================================================================
# Public API
# =====================================================================

def compute_effective_precipitation(snapshot: WeatherSnapshot, settings: DemandSettings) -> float:
    """
    Precipitation credit in gallons. Computed once per cycle and shared across zones.
    """
    return snapshot.precipitation_inches * settings.runoff_factor * settings.area_to_gallons


def compute_zone_demand(
    zone: Zone,
    snapshot: WeatherSnapshot,
    analysis_end: datetime,
    settings: DemandSettings,
    effective_precipitation: float | None = None,
) -> DemandResult:
    """
    Compute the irrigation demand of a single zone in gallons.

    This function:
    - computes gross demand from summed ETo, plant factor and landscape area,
    - credits precipitation (discounted by runoff),
    - credits the last irrigation only if it happened within recent_irrigation_days,
    - clamps zero or negative results to exactly 0.0.

    :raises ValueError: if the zone has no last irrigation date.
    """
    if zone.last_irrigation_date is None:
        raise ValueError(f"Zone '{zone.name}' has no last irrigation date.")

    if effective_precipitation is None:
        effective_precipitation = compute_effective_precipitation(snapshot, settings)

    gross_demand = _gross_demand(snapshot.eto_inches, zone, settings)
    days_since = time_utils.whole_days_between(zone.last_irrigation_date, analysis_end)
    effective_irrigation = _effective_irrigation(zone.last_irrigation_volume, days_since, settings)

    demand = gross_demand - effective_precipitation - effective_irrigation
    if demand <= 0.0:
        demand = 0.0

    logger.debug(
        "Zone %s - gross: %.3f gal, precipitation credit: %.3f gal, "
        "irrigation credit: %.3f gal (%d days ago), demand: %.3f gal",
        zone.name,
        gross_demand,
        effective_precipitation,
        effective_irrigation,
        days_since,
        demand,
    )

    return DemandResult(
        zone_name=zone.name,
        gross_demand=gross_demand,
        effective_precipitation=effective_precipitation,
        days_since=days_since,
        effective_irrigation=effective_irrigation,
        demand=demand,
    )


# =====================================================================
# Helpers
# =====================================================================

def _gross_demand(eto_inches: float, zone: Zone, settings: DemandSettings) -> float:
    return eto_inches * zone.plant_factor * zone.landscape_area * settings.area_to_gallons


def _effective_irrigation(last_volume: float, days_since: int, settings: DemandSettings) -> float:
    """
    Irrigation older than the recent window contributes nothing, regardless of its volume.
    """
    if days_since > settings.recent_irrigation_days:
        return 0.0
    return last_volume * settings.irrigation_efficiency
