# cimis_irrigation/exceptions.py


class IrrigationError(Exception):
    """Base class for all errors raised by the irrigation cycle."""
    pass


class ConfigError(IrrigationError):
    """Missing or invalid configuration (credentials, station id, settings). No cycle runs."""
    pass


class FetchError(IrrigationError):
    """Weather data could not be retrieved from the provider."""
    pass


class ParseError(IrrigationError):
    """
    The weather document is malformed or carries values of the wrong type.
    Attributes:
        error_count (int): Number of problems found in the whole document.
        problems (list[str]): Human-readable description of each problem.
    """
    def __init__(self, message: str, error_count: int = 1, problems: list[str] | None = None):
        super().__init__(message)
        self.error_count = error_count
        self.problems = problems or []


class PersistenceError(IrrigationError):
    """Zone records cannot be loaded or saved."""
    pass


class ActuationTimeout(IrrigationError):
    """
    No matching acknowledgment arrived before the zone's deadline. Non-fatal.
    Attributes:
        zone_name (str): Zone whose command went unconfirmed.
        waited_ms (int): How long the sequencer waited, in milliseconds.
    """
    def __init__(self, message: str, zone_name: str, waited_ms: int):
        super().__init__(message)
        self.zone_name = zone_name
        self.waited_ms = waited_ms


class ChannelConnectError(IrrigationError):
    """The messaging broker cannot be reached. No actuation is attempted."""
    pass
