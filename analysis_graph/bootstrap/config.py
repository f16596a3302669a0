"""
bootstrap/config.py - Configuration for the analysis graph.

Loads from a JSON file, environment variables and defaults, in that order
of precedence.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
from pathlib import Path
import os
import json
import logging

logger = logging.getLogger(__name__)


@dataclass
class MapsApiConfig:
    """Where reload requests go and how they authenticate."""

    url: Optional[str] = None
    api_key: Optional[str] = None
    auth_token: Optional[str] = None

    @classmethod
    def from_env(cls) -> "MapsApiConfig":
        return cls(
            url=os.getenv("ANALYSIS_GRAPH_MAPS_API_URL"),
            api_key=os.getenv("ANALYSIS_GRAPH_API_KEY"),
            auth_token=os.getenv("ANALYSIS_GRAPH_AUTH_TOKEN"),
        )


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    log_file: Optional[str] = None
    json_logs: bool = False

    @classmethod
    def from_env(cls) -> "LoggingConfig":
        return cls(
            level=os.getenv("ANALYSIS_GRAPH_LOG_LEVEL", "INFO"),
            format=os.getenv("ANALYSIS_GRAPH_LOG_FORMAT", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"),
            log_file=os.getenv("ANALYSIS_GRAPH_LOG_FILE"),
            json_logs=os.getenv("ANALYSIS_GRAPH_JSON_LOGS", "false").lower() == "true",
        )


@dataclass
class GraphConfig:
    """Root configuration."""

    environment: str = "development"
    debug: bool = False
    event_history: int = 100

    maps_api: MapsApiConfig = field(default_factory=MapsApiConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_env(cls) -> "GraphConfig":
        """Create configuration from environment variables."""
        return cls(
            environment=os.getenv("ANALYSIS_GRAPH_ENVIRONMENT", "development"),
            debug=os.getenv("ANALYSIS_GRAPH_DEBUG", "false").lower() == "true",
            event_history=int(os.getenv("ANALYSIS_GRAPH_EVENT_HISTORY", "100")),
            maps_api=MapsApiConfig.from_env(),
            logging=LoggingConfig.from_env(),
        )

    @classmethod
    def from_file(cls, filepath: str) -> "GraphConfig":
        """Load configuration from JSON file."""
        path = Path(filepath)
        if not path.exists():
            logger.warning(f"Config file not found: {filepath}, using defaults")
            return cls.from_env()

        with open(path) as f:
            data = json.load(f)

        return cls._from_dict(data)

    @classmethod
    def _from_dict(cls, data: Dict[str, Any]) -> "GraphConfig":
        config = cls.from_env()

        for key in ("environment", "debug", "event_history"):
            if key in data:
                setattr(config, key, data[key])

        if "maps_api" in data:
            for key, value in data["maps_api"].items():
                if hasattr(config.maps_api, key):
                    setattr(config.maps_api, key, value)

        if "logging" in data:
            for key, value in data["logging"].items():
                if hasattr(config.logging, key):
                    setattr(config.logging, key, value)

        return config

    def to_dict(self) -> Dict[str, Any]:
        """Serialize config; credentials are left out."""
        return {
            "environment": self.environment,
            "debug": self.debug,
            "event_history": self.event_history,
            "maps_api": {
                "url": self.maps_api.url,
            },
            "logging": {
                "level": self.logging.level,
                "log_file": self.logging.log_file,
                "json_logs": self.logging.json_logs,
            },
        }


_config: Optional[GraphConfig] = None


def load_config(filepath: str = None) -> GraphConfig:
    """
    Load configuration from file or environment.

    Args:
        filepath: Optional path to JSON config file

    Returns:
        GraphConfig instance
    """
    global _config

    if filepath:
        _config = GraphConfig.from_file(filepath)
    else:
        default_paths = [
            "./analysis_graph.json",
            os.path.expanduser("~/.analysis_graph/config.json"),
        ]

        for path in default_paths:
            if Path(path).exists():
                _config = GraphConfig.from_file(path)
                break
        else:
            _config = GraphConfig.from_env()

    return _config


def get_config() -> GraphConfig:
    """Get the loaded configuration, loading it on first use."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config() -> None:
    global _config
    _config = None
