import json

from cimis_irrigation.config.global_config import GlobalConfig
from cimis_irrigation.config.secrets import get_secret, DEFAULT_SECRETS_PATH
from cimis_irrigation.exceptions import ConfigError
from cimis_irrigation.utils.logger import get_logger

# Initialize logger
logger = get_logger("config_loader")


def load_global_config(filepath: str, secrets_path: str = DEFAULT_SECRETS_PATH) -> GlobalConfig:
    """
    Loads the global configuration and merges in secrets (CIMIS app key, MQTT credentials).

    :raises ConfigError: if the file is missing or invalid, or the station id / app key are missing.
    """
    try:
        with open(filepath, "r") as f:
            data = json.load(f)
    except FileNotFoundError as e:
        raise ConfigError(f"Configuration file {filepath} not found.") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"Configuration file {filepath} is not valid JSON: {e}") from e

    valid, errors = _is_valid_global_config(data)
    if not valid:
        raise ConfigError(f"Invalid configuration in {filepath}: {', '.join(errors)}")

    cimis = data["cimis"]
    if not cimis.get("app_key"):
        cimis["app_key"] = get_secret("CIMIS_APP_KEY", secrets_path)
    mqtt = data.setdefault("mqtt", {})
    if mqtt.get("username") is None:
        mqtt["username"] = get_secret("MQTT_USERNAME", secrets_path, required=False)
    if mqtt.get("password") is None:
        mqtt["password"] = get_secret("MQTT_PASSWORD", secrets_path, required=False)

    try:
        config = GlobalConfig.from_dict(data)
    except (KeyError, TypeError, ValueError) as e:
        raise ConfigError(f"Invalid configuration value in {filepath}: {e}") from e

    _check_settings(config)
    logger.debug(f"Configuration loaded from {filepath} (station {config.cimis.station_id}).")
    return config


def _is_valid_global_config(data: dict) -> tuple[bool, list[str]]:
    errors = []
    if not isinstance(data, dict):
        return False, ["configuration must be a JSON object"]
    cimis = data.get("cimis")
    if not isinstance(cimis, dict):
        errors.append("missing 'cimis' section")
    elif not cimis.get("station_id"):
        errors.append("missing 'cimis.station_id'")
    for section in ("mqtt", "demand", "actuation", "storage", "logging"):
        if section in data and not isinstance(data[section], dict):
            errors.append(f"'{section}' must be an object")
    return not errors, errors


def _check_settings(config: GlobalConfig) -> None:
    if config.actuation.flow_rate_gallons_per_second <= 0:
        raise ConfigError("'actuation.flow_rate_gallons_per_second' must be positive.")
    if config.actuation.grace_ms < 0:
        raise ConfigError("'actuation.grace_ms' must not be negative.")
    if config.cimis.lookback_days < 1:
        raise ConfigError("'cimis.lookback_days' must be at least 1.")
    if config.mqtt.ack_queue_size < 1:
        raise ConfigError("'mqtt.ack_queue_size' must be at least 1.")
    if not 0 <= config.demand.runoff_factor <= 1:
        raise ConfigError("'demand.runoff_factor' must be between 0 and 1.")
    if not 0 <= config.demand.irrigation_efficiency <= 1:
        raise ConfigError("'demand.irrigation_efficiency' must be between 0 and 1.")
    try:
        config.mqtt.command_topic_template.format(controller_id=0)
    except (KeyError, IndexError, AttributeError, ValueError) as e:
        raise ConfigError(
            f"'mqtt.command_topic_template' must only use the {{controller_id}} placeholder: {e!r}"
        ) from e
