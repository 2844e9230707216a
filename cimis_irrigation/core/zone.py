from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from cimis_irrigation.core.enums import ZoneActuationState, DISPENSED_STATES


@dataclass
class Zone:
    """One physically distinct irrigation area. Static parameters plus per-cycle mutable state."""
    name: str
    plant_factor: float                     # PF, dimensionless
    landscape_area: float                   # LA, square feet
    last_irrigation_date: datetime
    last_irrigation_volume: float           # gallons applied in the most recent recorded event
    relay_id: int = 0                       # 0 or less: relay not installed / offline
    controller_id: int = 0                  # 0 or less: controller not installed / offline

    # Per-cycle state
    days_since_last_irrigation: Optional[int] = None
    effective_irrigation: float = 0.0
    computed_demand: float = 0.0            # gallons, 0.0 means "skip this cycle"
    actuation_state: ZoneActuationState = ZoneActuationState.PENDING
    last_confirmed_at: Optional[datetime] = None

    @property
    def hardware_online(self) -> bool:
        return self.relay_id > 0 and self.controller_id > 0

    @property
    def is_eligible(self) -> bool:
        """Positive demand and installed hardware."""
        return self.computed_demand > 0 and self.hardware_online

    @property
    def water_dispensed(self) -> bool:
        """Whether a command was published for this zone in the current cycle."""
        return self.actuation_state in DISPENSED_STATES

    def reset_cycle_state(self) -> None:
        self.days_since_last_irrigation = None
        self.effective_irrigation = 0.0
        self.computed_demand = 0.0
        self.actuation_state = ZoneActuationState.PENDING
        self.last_confirmed_at = None
