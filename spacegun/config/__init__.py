"""
Config - Black Box Interface

Purpose: Process configuration, runtime layer and pipeline descriptions
Interface: ConfigProvider.get_layer(), get_config(), get_pipelines()
Hidden: YAML parsing, environment lookups, file discovery

Loaded once at startup and passed explicitly to the modules that need it.
"""

from .provider import (
    ConfigProvider,
    ServerConfig,
    SpacegunConfig,
    YamlConfigProvider,
    load_pipelines,
    parse_config,
    parse_layer,
    parse_pipeline,
)

__all__ = [
    "ConfigProvider",
    "ServerConfig",
    "SpacegunConfig",
    "YamlConfigProvider",
    "load_pipelines",
    "parse_config",
    "parse_layer",
    "parse_pipeline",
]
