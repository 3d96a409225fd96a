"""Configuration provider following Black Box Design principles."""
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Protocol

import yaml
from croniter import croniter
from pydantic import ValidationError

from spacegun.errors import ConfigError
from spacegun.modules.api import Layer, PipelineDescription, PipelineSource, SourceType

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config.yml"


@dataclass
class ServerConfig:
    """Where the server listens and how clients reach it."""
    host: str = "localhost"
    port: int = 3000
    timeout: float = 60.0
    api_key: Optional[str] = None
    api_keys: List[str] = field(default_factory=list)

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}"

    @property
    def requires_api_key(self) -> bool:
        return bool(self.api_keys)


@dataclass
class SpacegunConfig:
    """Process configuration."""
    docker: Optional[str]
    kube: Optional[str]
    server: ServerConfig
    namespaces: Optional[List[str]] = None
    pipelines: str = "pipelines"
    slack: Optional[str] = None


class ConfigProvider(Protocol):
    """Protocol for configuration providers."""

    def get_layer(self) -> Layer:
        """Get the runtime topology of this process."""
        ...

    def get_config(self) -> SpacegunConfig:
        """Get the process configuration."""
        ...

    def get_pipelines(self) -> List[PipelineDescription]:
        """Get all pipeline descriptions."""
        ...


def parse_layer(value: Optional[str]) -> Layer:
    """Parse a layer name, defaulting to standalone."""
    if not value:
        return Layer.STANDALONE
    try:
        return Layer(value.strip().lower())
    except ValueError:
        allowed = ", ".join(layer.value for layer in Layer)
        raise ConfigError(f"Unknown layer '{value}', expected one of: {allowed}")


def parse_config(data: Mapping[str, Any], layer: Layer = Layer.STANDALONE) -> SpacegunConfig:
    """
    Build the process configuration from a parsed YAML document.

    Args:
        data: Parsed configuration mapping
        layer: Layer the configuration is loaded for

    Returns:
        SpacegunConfig

    Raises:
        ConfigError: If required keys are missing or have the wrong shape
    """
    if not isinstance(data, Mapping):
        raise ConfigError("Configuration must be a mapping")

    # Gateways only live outside the client layer
    if layer != Layer.CLIENT:
        missing = [key for key in ("docker", "kube") if not data.get(key)]
        if missing:
            raise ConfigError(f"Missing required configuration keys: {', '.join(missing)}")

    server_data = data.get("server") or {}
    if not isinstance(server_data, Mapping):
        raise ConfigError("'server' must be a mapping with host and port")
    try:
        server = ServerConfig(
            host=str(server_data.get("host", "localhost")),
            port=int(server_data.get("port", 3000)),
            timeout=float(server_data.get("timeout", 60.0)),
            api_key=server_data.get("api_key"),
            api_keys=[str(key) for key in server_data.get("api_keys") or []],
        )
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid server configuration: {e}")

    namespaces = data.get("namespaces")
    if namespaces is not None and not isinstance(namespaces, list):
        raise ConfigError("'namespaces' must be a list of namespace names")

    kube = data.get("kube")
    return SpacegunConfig(
        docker=data.get("docker"),
        kube=os.path.expanduser(kube) if kube else None,
        server=server,
        namespaces=[str(n) for n in namespaces] if namespaces is not None else None,
        pipelines=str(data.get("pipelines", "pipelines")),
        slack=data.get("slack"),
    )


def parse_pipeline(name: str, data: Mapping[str, Any]) -> PipelineDescription:
    """
    Build a pipeline description from its file contents.

    File format: {cluster, namespace?, cron?, from: {type, expression}}
    """
    if not isinstance(data, Mapping):
        raise ConfigError(f"Pipeline {name} must be a mapping")
    source = data.get("from")
    if not isinstance(source, Mapping):
        raise ConfigError(f"Pipeline {name} is missing its 'from' section")
    try:
        pipeline = PipelineDescription(
            name=name,
            cluster=data.get("cluster"),
            namespace=data.get("namespace"),
            cron=data.get("cron"),
            source=PipelineSource(type=source.get("type"), expression=source.get("expression")),
        )
    except ValidationError as e:
        raise ConfigError(f"Pipeline {name} is invalid: {e}")

    if pipeline.cron and not croniter.is_valid(pipeline.cron):
        raise ConfigError(f"Pipeline {name} has an invalid cron expression '{pipeline.cron}'")
    if pipeline.source.type == SourceType.IMAGE:
        try:
            re.compile(pipeline.source.expression)
        except re.error as e:
            raise ConfigError(f"Pipeline {name} has an invalid tag expression: {e}")
    return pipeline


def _read_yaml(path: Path) -> Any:
    try:
        with open(path) as f:
            return yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"Could not read {path}: {e}")
    except yaml.YAMLError as e:
        raise ConfigError(f"Could not parse {path}: {e}")


def load_pipelines(directory: Path) -> List[PipelineDescription]:
    """Load every <name>.yml / <name>.yaml file of a directory, sorted by name."""
    if not directory.is_dir():
        logger.warning(f"Pipeline directory {directory} does not exist, no pipelines loaded")
        return []
    files = sorted(list(directory.glob("*.yml")) + list(directory.glob("*.yaml")))
    return [parse_pipeline(path.stem, _read_yaml(path) or {}) for path in files]


class YamlConfigProvider:
    """YAML file based configuration provider with environment overrides."""

    def __init__(
        self,
        path: Optional[str] = None,
        layer: Optional[str] = None,
        environ: Optional[Dict[str, str]] = None,
    ):
        """
        Initialize provider.

        Args:
            path: Configuration file, falls back to SPACEGUN_CONFIG, then config.yml
            layer: Layer name, falls back to LAYER, then standalone
            environ: Environment mapping (defaults to os.environ)
        """
        env = os.environ if environ is None else environ
        self.path = Path(path or env.get("SPACEGUN_CONFIG") or DEFAULT_CONFIG_PATH)
        self._layer = parse_layer(layer or env.get("LAYER"))
        self._config: Optional[SpacegunConfig] = None
        self._pipelines: Optional[List[PipelineDescription]] = None

    def get_layer(self) -> Layer:
        return self._layer

    def get_config(self) -> SpacegunConfig:
        """Load the configuration once and keep it for the process lifetime."""
        if self._config is None:
            if not self.path.exists():
                raise ConfigError(f"Configuration file {self.path} does not exist")
            self._config = parse_config(_read_yaml(self.path) or {}, self._layer)
            logger.info(f"Loaded configuration from {self.path} for {self._layer.value} layer")
        return self._config

    def get_pipelines(self) -> List[PipelineDescription]:
        """Load pipeline descriptions relative to the configuration file."""
        if self._pipelines is None:
            directory = Path(self.get_config().pipelines)
            if not directory.is_absolute():
                directory = self.path.parent / directory
            self._pipelines = load_pipelines(directory)
            logger.info(f"Loaded {len(self._pipelines)} pipeline(s) from {directory}")
        return self._pipelines
