from enum import Enum


class SequencerState(Enum):
    IDLE = "idle"                           # Not started yet
    RUNNING = "running"                     # Actuating eligible zones one by one
    DONE = "done"                           # Every eligible zone was processed


# Run-time actuation state of a single zone within one cycle
class ZoneActuationState(Enum):
    PENDING = "pending"                     # No command sent (zero demand, offline hardware or not reached yet)
    COMMAND_SENT = "command_sent"           # Command published, valve is open
    CONFIRMED = "confirmed"                 # Matching acknowledgment received
    TIMED_OUT = "timed_out"                 # Deadline passed without a matching acknowledgment


# States in which water was physically commanded for the zone
DISPENSED_STATES = (
    ZoneActuationState.COMMAND_SENT,
    ZoneActuationState.CONFIRMED,
    ZoneActuationState.TIMED_OUT,
)


class CycleOutcome(Enum):
    """High-level result of one irrigation cycle."""
    COMPLETED = "completed"                 # Zones were actuated and records saved
    NOTHING_TO_DO = "nothing_to_do"         # No zone was eligible for actuation
    DRY_RUN = "dry_run"                     # Demand computed only, no actuation or persistence
