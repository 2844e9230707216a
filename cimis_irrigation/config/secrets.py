import os
import json

from cimis_irrigation.exceptions import ConfigError


DEFAULT_SECRETS_PATH = "config/config_secrets.json"


def get_secret(key: str, path: str = DEFAULT_SECRETS_PATH, required: bool = True) -> str | None:
    # First try to get the secret from environment variables
    if key in os.environ:
        return os.environ[key]

    # Fallback to config_secrets.json, used for development and testing
    try:
        with open(path, "r") as f:
            secrets = json.load(f)
    except FileNotFoundError:
        secrets = {}
    except json.JSONDecodeError as e:
        raise ConfigError(f"Secrets file {path} is not valid JSON: {e}") from e

    value = secrets.get(key)
    if value is None and required:
        raise ConfigError(f"Secret '{key}' not found in environment variables or {path}.")
    return value
