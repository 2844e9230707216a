from dataclasses import dataclass, field
from enum import Enum


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


@dataclass
class CimisSettings:
    """
    A class to hold the configuration for the CIMIS weather API and its local file cache.
    """
    station_id: str
    app_key: str
    api_url: str = "https://et.water.ca.gov/api/data"
    lookback_days: int = 7
    cache_dir: str = "weather_cache"
    request_timeout: float = 30.0


@dataclass
class MqttSettings:
    host: str = "localhost"
    port: int = 1883
    keepalive: int = 60
    client_id: str = "irrig_calculator"
    username: str | None = None
    password: str | None = None
    connect_timeout: float = 10.0
    ack_topic: str = "/relay_done"
    command_topics: dict[int, str] = field(default_factory=lambda: {1: "/back_yard"})
    command_topic_template: str = "/controller_{controller_id}"
    include_request_id: bool = True
    ack_queue_size: int = 32

    def command_topic_for(self, controller_id: int) -> str:
        """Returns the command topic of a controller, falling back to the template."""
        if controller_id in self.command_topics:
            return self.command_topics[controller_id]
        return self.command_topic_template.format(controller_id=controller_id)


@dataclass
class DemandSettings:
    """Parameters of the demand model, shared by every zone."""
    runoff_factor: float = 0.5
    irrigation_efficiency: float = 0.7
    recent_irrigation_days: int = 7
    area_to_gallons: float = 0.623          # gallons per inch of water over one square foot


@dataclass
class ActuationSettings:
    flow_rate_gallons_per_second: float = 1.0
    grace_ms: int = 1000

    @property
    def ms_per_gallon(self) -> float:
        return 1000.0 / self.flow_rate_gallons_per_second

    def duration_ms(self, gallons: float) -> int:
        """Valve open time needed to dispense the given volume."""
        return int(gallons * self.ms_per_gallon)


@dataclass
class StorageSettings:
    zones_file: str = "config/irrigation_zones.json"


@dataclass
class LoggingSettings:
    enabled: bool = True
    log_level: LogLevel = LogLevel.INFO


@dataclass
class GlobalConfig:
    """
    A class to hold global configuration settings for the irrigation cycle.
    """
    cimis: CimisSettings
    mqtt: MqttSettings
    demand: DemandSettings
    actuation: ActuationSettings
    storage: StorageSettings
    logging: LoggingSettings

    @staticmethod
    def from_dict(data: dict) -> 'GlobalConfig':
        """
        Creates a GlobalConfig instance from a dictionary. Missing optional keys take their defaults.
        """
        cimis = data["cimis"]
        mqtt = data.get("mqtt", {})
        demand = data.get("demand", {})
        actuation = data.get("actuation", {})
        storage = data.get("storage", {})
        logging_data = data.get("logging", {})

        mqtt_defaults = MqttSettings()
        command_topics = mqtt.get("command_topics")
        return GlobalConfig(
            cimis=CimisSettings(
                station_id=str(cimis["station_id"]) if cimis.get("station_id") is not None else "",
                app_key=cimis.get("app_key") or "",
                api_url=cimis.get("api_url", CimisSettings.api_url),
                lookback_days=int(cimis.get("lookback_days", CimisSettings.lookback_days)),
                cache_dir=cimis.get("cache_dir", CimisSettings.cache_dir),
                request_timeout=float(cimis.get("request_timeout", CimisSettings.request_timeout))
            ),
            mqtt=MqttSettings(
                host=mqtt.get("host", mqtt_defaults.host),
                port=int(mqtt.get("port", mqtt_defaults.port)),
                keepalive=int(mqtt.get("keepalive", mqtt_defaults.keepalive)),
                client_id=mqtt.get("client_id", mqtt_defaults.client_id),
                username=mqtt.get("username"),
                password=mqtt.get("password"),
                connect_timeout=float(mqtt.get("connect_timeout", mqtt_defaults.connect_timeout)),
                ack_topic=mqtt.get("ack_topic", mqtt_defaults.ack_topic),
                # JSON object keys are strings, controller ids are ints
                command_topics=(
                    {int(k): v for k, v in command_topics.items()}
                    if command_topics is not None else mqtt_defaults.command_topics
                ),
                command_topic_template=mqtt.get("command_topic_template", mqtt_defaults.command_topic_template),
                include_request_id=bool(mqtt.get("include_request_id", mqtt_defaults.include_request_id)),
                ack_queue_size=int(mqtt.get("ack_queue_size", mqtt_defaults.ack_queue_size))
            ),
            demand=DemandSettings(
                runoff_factor=float(demand.get("runoff_factor", DemandSettings.runoff_factor)),
                irrigation_efficiency=float(demand.get("irrigation_efficiency", DemandSettings.irrigation_efficiency)),
                recent_irrigation_days=int(demand.get("recent_irrigation_days", DemandSettings.recent_irrigation_days)),
                area_to_gallons=float(demand.get("area_to_gallons", DemandSettings.area_to_gallons))
            ),
            actuation=ActuationSettings(
                flow_rate_gallons_per_second=float(
                    actuation.get("flow_rate_gallons_per_second", ActuationSettings.flow_rate_gallons_per_second)
                ),
                grace_ms=int(actuation.get("grace_ms", ActuationSettings.grace_ms))
            ),
            storage=StorageSettings(
                zones_file=storage.get("zones_file", StorageSettings.zones_file)
            ),
            logging=LoggingSettings(
                enabled=logging_data.get("enabled", True),
                log_level=LogLevel(logging_data.get("log_level", LogLevel.INFO.value))
            )
        )
