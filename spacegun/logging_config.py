"""
Logging configuration for the server and the command line.

Spacegun records are tagged with the runtime layer, uvicorn health probes
are dropped from the access log, and chatty gateway libraries are held
at WARNING.
"""

import logging
import logging.config
from typing import Any, Dict

HEALTH_PATH = "/health"

# Libraries logging every request made by the cluster gateway
GATEWAY_LOGGERS = ("kubernetes", "urllib3")


class HealthCheckFilter(logging.Filter):
    """Drop uvicorn access records for GET /health."""

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name != "uvicorn.access":
            return True
        # uvicorn passes (client, method, path, http_version, status)
        args = record.args
        if isinstance(args, tuple) and len(args) >= 3:
            method, path = args[1], str(args[2]).split("?", 1)[0]
            return not (method == "GET" and path == HEALTH_PATH)
        return True


class LayerFilter(logging.Filter):
    """Attach the runtime layer to every record passing through a handler."""

    def __init__(self, layer: str = "standalone"):
        super().__init__()
        self.layer = layer

    def filter(self, record: logging.LogRecord) -> bool:
        record.layer = self.layer
        return True


def get_logging_config(level: str = "INFO", layer: str = "standalone") -> Dict[str, Any]:
    """
    Build the dictConfig used when serving.

    Args:
        level: Level of the spacegun loggers
        layer: Runtime layer shown in every spacegun record

    Returns:
        Configuration for logging.config.dictConfig and uvicorn's log_config
    """
    level = level.upper()
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "health_check": {"()": HealthCheckFilter},
            "layer": {"()": LayerFilter, "layer": layer},
        },
        "formatters": {
            "spacegun": {"format": "%(asctime)s - %(name)s - %(levelname)s - [%(layer)s] %(message)s"},
            "default": {"format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"},
            "access": {"format": "%(message)s"},
        },
        "handlers": {
            "spacegun": {
                "class": "logging.StreamHandler",
                "formatter": "spacegun",
                "filters": ["layer"],
                "stream": "ext://sys.stdout",
            },
            "default": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "stream": "ext://sys.stdout",
            },
            "access": {
                "class": "logging.StreamHandler",
                "formatter": "access",
                "filters": ["health_check"],
                "stream": "ext://sys.stdout",
            },
        },
        "loggers": {
            "spacegun": {"handlers": ["spacegun"], "level": level, "propagate": False},
            "uvicorn": {"handlers": ["default"], "level": "INFO", "propagate": False},
            "uvicorn.error": {"handlers": ["default"], "level": "INFO", "propagate": False},
            "uvicorn.access": {"handlers": ["access"], "level": "INFO", "propagate": False},
            **{name: {"level": "WARNING"} for name in GATEWAY_LOGGERS},
        },
        "root": {"level": "WARNING", "handlers": ["default"]},
    }


def get_cli_logging_config(level: str = "INFO", layer: str = "standalone") -> Dict[str, Any]:
    """CLI variant: short records on stderr so command output stays parseable."""
    config = get_logging_config(level, layer)
    config["formatters"]["spacegun"]["format"] = "%(levelname)s [%(layer)s] %(name)s: %(message)s"
    for handler in ("spacegun", "default"):
        config["handlers"][handler]["stream"] = "ext://sys.stderr"
    return config


def configure_logging(level: str = "INFO", layer: str = "standalone", cli: bool = False) -> None:
    factory = get_cli_logging_config if cli else get_logging_config
    logging.config.dictConfig(factory(level, layer))
