import argparse
from typing import Optional

from cimis_irrigation.__version__ import __version__ as version
from cimis_irrigation.config.config_loader import load_global_config
from cimis_irrigation.config.secrets import DEFAULT_SECRETS_PATH
from cimis_irrigation.core.irrigation_cycle import IrrigationCycle
from cimis_irrigation.exceptions import (
    ChannelConnectError,
    ConfigError,
    FetchError,
    ParseError,
    PersistenceError,
)
from cimis_irrigation.utils.logger import get_logger, set_log_level


# === Exit statuses ===
EXIT_OK = 0
EXIT_UNEXPECTED = 1
EXIT_CONFIG = 2
EXIT_FETCH = 3
EXIT_PARSE = 4
EXIT_PERSISTENCE = 5
EXIT_CHANNEL = 6

DEFAULT_CONFIG_PATH = "config/config_global.json"

logger = get_logger("cimis_irrigation.main")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cimis-irrigation",
        description="Compute zone water demand from CIMIS ETo and run the relays in sequence."
    )
    parser.add_argument("--config", default=DEFAULT_CONFIG_PATH, help="path to the global configuration JSON")
    parser.add_argument("--secrets", default=DEFAULT_SECRETS_PATH, help="path to the secrets JSON")
    parser.add_argument("--dry-run", action="store_true", help="compute and report demand only")
    parser.add_argument("--version", action="version", version=f"%(prog)s {version}")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Runs one irrigation cycle and returns the process exit status."""
    args = build_parser().parse_args(argv)
    logger.info(f"Starting irrigation cycle, version {version}")

    try:
        config = load_global_config(args.config, secrets_path=args.secrets)
        set_log_level(config.logging.log_level.value, config.logging.enabled)
        report = IrrigationCycle(config).run(dry_run=args.dry_run)
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        return EXIT_CONFIG
    except FetchError as e:
        logger.error(f"Weather fetch failed: {e}")
        return EXIT_FETCH
    except ParseError as e:
        logger.error(f"Weather document rejected ({e.error_count} errors): {e}")
        return EXIT_PARSE
    except PersistenceError as e:
        logger.error(f"Zone records error: {e}")
        return EXIT_PERSISTENCE
    except ChannelConnectError as e:
        logger.error(f"Messaging broker unavailable, no zone was actuated: {e}")
        return EXIT_CHANNEL
    except Exception as e:
        logger.exception(f"Unexpected error during irrigation cycle: {e}")
        return EXIT_UNEXPECTED

    logger.info(
        f"Irrigation cycle {report.outcome.value}: {report.zones_dispensed} zones actuated, "
        f"{report.records_updated} records updated."
    )
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
