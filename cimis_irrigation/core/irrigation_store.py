import json
import os
from datetime import datetime
from typing import Any, Iterable

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from cimis_irrigation.core.zone import Zone
from cimis_irrigation.exceptions import PersistenceError
from cimis_irrigation.utils.logger import get_logger
import cimis_irrigation.utils.time_utils as time_utils


class ZoneRecord(BaseModel):
    """Persisted record of one zone. Numeric fields may be stored as numbers or numeric strings."""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    name: str = Field(validation_alias=AliasChoices("name", "Name"))
    PF: float = Field(gt=0)
    LA: float = Field(gt=0)
    Relay: int | None = 0
    Controller: int | None = 0
    Date: datetime
    Gallons: float = Field(default=0.0, ge=0)

    @field_validator("Date", mode="before")
    @classmethod
    def _parse_record_date(cls, value: Any) -> datetime:
        if isinstance(value, datetime):
            return value
        if not isinstance(value, str):
            raise ValueError("Date must be a 'YYYY-MM-DD HH:MM:SS' string")
        return time_utils.from_record_str(value)

    def to_zone(self) -> Zone:
        return Zone(
            name=self.name,
            plant_factor=self.PF,
            landscape_area=self.LA,
            last_irrigation_date=self.Date,
            last_irrigation_volume=self.Gallons,
            relay_id=self.Relay or 0,
            controller_id=self.Controller or 0,
        )


class IrrigationStore:
    """
    Reads and writes the zone records file ({"Data": [record, ...]}).
    The only component that serializes zone state. Writes replace the whole file.
    """

    def __init__(self, path: str):
        self.path = path
        self.logger = get_logger("IrrigationStore")
        self._document: dict | None = None
        self._record_index: dict[str, int] = {}

    # =========================================================================
    # Loading
    # =========================================================================

    def load_zones(self) -> list[Zone]:
        """
        Loads all zone records in persisted order.

        :raises PersistenceError: if the file cannot be read, is not valid JSON, or any record is invalid
            (a missing or unparsable Date included). All invalid records are reported together.
        """
        try:
            with open(self.path, "r") as f:
                document = json.load(f)
        except FileNotFoundError as e:
            raise PersistenceError(f"Irrigation file {self.path} not found.") from e
        except json.JSONDecodeError as e:
            raise PersistenceError(f"Irrigation file {self.path} is corrupted: {e}") from e
        except OSError as e:
            raise PersistenceError(f"Could not open irrigation file {self.path}: {e}") from e

        if not isinstance(document, dict) or not isinstance(document.get("Data"), list):
            raise PersistenceError(f"Irrigation file {self.path}: 'Data' is not an array.")

        zones: list[Zone] = []
        errors: list[str] = []
        record_index: dict[str, int] = {}
        for i, raw in enumerate(document["Data"]):
            try:
                record = ZoneRecord.model_validate(raw)
            except ValidationError as e:
                for err in e.errors():
                    location = ".".join(str(part) for part in err["loc"])
                    errors.append(f"record {i} ({location}): {err['msg']}")
                continue
            if record.name in record_index:
                errors.append(f"record {i}: duplicate zone name '{record.name}'")
                continue
            record_index[record.name] = i
            zones.append(record.to_zone())

        if errors:
            for error in errors:
                self.logger.error(f"Invalid irrigation record: {error}")
            raise PersistenceError(f"{len(errors)} invalid record(s) in {self.path}: {'; '.join(errors)}")

        self._document = document
        self._record_index = record_index
        self.logger.info(f"Loaded {len(zones)} zones from {self.path}.")
        return zones

    # =========================================================================
    # Saving
    # =========================================================================

    def record_irrigation(self, zones: Iterable[Zone], cycle_time: datetime) -> int:
        """
        Stores Date and Gallons for every zone that had water dispensed this cycle,
        then replaces the file. Other records and unknown keys are left untouched.

        :return: number of updated records.
        :raises PersistenceError: if nothing was loaded yet, a zone is unknown, or the write fails.
        """
        if self._document is None:
            raise PersistenceError("Zone records must be loaded before they can be updated.")

        records = self._document["Data"]
        updated = 0
        for zone in zones:
            if not zone.water_dispensed:
                continue
            if zone.name not in self._record_index:
                raise PersistenceError(f"Zone '{zone.name}' has no record in {self.path}.")
            record = records[self._record_index[zone.name]]
            record["Date"] = time_utils.to_record_str(cycle_time)
            record["Gallons"] = round(zone.computed_demand, 3)
            updated += 1

        self._write(self._document)
        self.logger.info(f"Updated {updated} irrigation records in {self.path}.")
        return updated

    def _write(self, document: dict) -> None:
        tmp_path = f"{self.path}.tmp"
        try:
            with open(tmp_path, "w") as f:
                json.dump(document, f, indent=4)
            os.replace(tmp_path, self.path)
        except OSError as e:
            self.logger.error(f"Cannot save irrigation records to {self.path}: {e}")
            raise PersistenceError(f"Cannot save irrigation records to {self.path}: {e}") from e
