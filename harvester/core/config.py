"""
Configuration module for Thread Harvester.

This module provides centralized configuration with JSON file and
environment variable support and sensible defaults for every component.
"""

import copy
import json
import re
from typing import Dict, Any, Optional, List, Union

from harvester.api.exceptions import ConfigurationError
from harvester.api.records import ISSUES, QA, Source

DEFAULT_CONFIG = {
    # Sources, collected in this order
    "sources": {
        "issues": [
            "https://github.com/prometheus/prometheus",
            "https://github.com/SeleniumHQ/selenium",
            "https://github.com/openai/openai-python",
            "https://github.com/docker/docs",
            "https://github.com/milvus-io/milvus",
            "https://github.com/golang/go",
        ],
        "qa": [
            {"url": "https://stackoverflow.com/search?q=Prometheus", "label": "Prometheus"},
            {"url": "https://stackoverflow.com/search?q=selenium-webdriver", "label": "selenium-webdriver"},
            {"url": "https://stackoverflow.com/search?q=OpenAi", "label": "OpenAi"},
            {"url": "https://stackoverflow.com/search?q=docker", "label": "docker"},
            {"url": "https://stackoverflow.com/search?q=milvus", "label": "milvus"},
            {"url": "https://stackoverflow.com/search?q=golang", "label": "golang"},
        ],
    },
    
    # Collection matrix settings
    "collection": {
        "windows": ["48h", "7d", "45d"],
        "inter_source_interval": 60,  # Seconds between consecutive sources
    },
    
    # GitHub API settings
    "github_api": {
        "rest_base_url": "https://api.github.com",
        "per_page": 30,
        "timeout": 30,
    },
    
    # Q&A scraping settings
    "qa": {
        "site_root": None,  # Defaults to the search URL's scheme and host
        "timeout": 30,
        "answer_timeout": 15,
        "answer_workers": 1,
    },
    
    # Database settings
    "database": {
        "sslmode": "disable",
        "connect_timeout": 10,
    },
    
    # Metrics endpoint settings
    "metrics": {
        "port": 8080,
        "addr": "0.0.0.0",
    },
    
    # Logging settings
    "logging": {
        "level": "INFO",
        "enable_debug_file": False,
        "to_files": True,
    },
}

SSL_MODES = ("require", "disable")

# Environment variable -> config path; values are validated with the rest
ENV_OVERRIDES = {
    "LOOKBACK_WINDOWS": "collection.windows",
    "INTER_SOURCE_INTERVAL": "collection.inter_source_interval",
    "METRICS_PORT": "metrics.port",
    "DB_SSLMODE": "database.sslmode",
    "LOG_LEVEL": "logging.level",
}

_DURATION_UNITS = {"s": 1, "m": 60, "h": 3600, "d": 86400}
_DURATION_RE = re.compile(r"^\s*(-?\d+(?:\.\d+)?)\s*([smhd]?)\s*$")


def parse_duration(value: Union[str, int, float]) -> float:
    """Parse a lookback window into seconds.
    
    Args:
        value: Seconds as a number, or a string such as ``"48h"``, ``"7d"``,
            ``"90m"`` or ``"3600"``
            
    Returns:
        Duration in seconds
        
    Raises:
        ConfigurationError: When the value cannot be parsed
    """
    if isinstance(value, bool):
        raise ConfigurationError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        return float(value)
    
    match = _DURATION_RE.match(str(value))
    if not match:
        raise ConfigurationError(f"Invalid duration: {value!r}")
    
    amount, unit = match.groups()
    return float(amount) * _DURATION_UNITS[unit or "s"]


def format_duration(seconds: float) -> str:
    """Render seconds in the largest whole unit, e.g. ``604800 -> "7d"``.
    
    Windows shorter than three days render in hours, so 172800 is "48h".
    """
    if seconds > 0 and float(seconds).is_integer():
        whole = int(seconds)
        if whole % 86400 == 0 and whole // 86400 >= 3:
            return f"{whole // 86400}d"
        if whole % 3600 == 0:
            return f"{whole // 3600}h"
        if whole % 60 == 0:
            return f"{whole // 60}m"
    return f"{seconds:g}s"


def merge_config(target: Dict, overrides: Dict) -> None:
    """Merge ``overrides`` into ``target`` in place, section by section."""
    for key, value in overrides.items():
        if isinstance(target.get(key), dict) and isinstance(value, dict):
            merge_config(target[key], value)
        else:
            target[key] = value


class Config:
    """Configuration manager for Thread Harvester."""
    
    def __init__(self, config_file: Optional[str] = None, environment=None, logger=None):
        """Initialize configuration from file and environment variables.
        
        Args:
            config_file: Optional path to a JSON configuration file
            environment: Environment instance for accessing environment variables
            logger: Logger instance
            
        Raises:
            ConfigurationError: When the configuration file or a value is invalid
        """
        self._config = copy.deepcopy(DEFAULT_CONFIG)
        self.environment = environment
        self.logger = logger
        
        if not config_file and environment is not None:
            config_file = environment.get("CONFIG_FILE")
        
        if config_file:
            self._load_from_file(config_file)
        
        self._load_from_env()
        self._validate()
        
        if self.logger:
            self.logger.debug("Configuration initialized")
    
    def _load_from_file(self, config_file: str):
        """Load configuration from JSON file.
        
        Args:
            config_file: Path to configuration file
        """
        try:
            with open(config_file, 'r') as f:
                file_config = json.load(f)
        except (OSError, ValueError) as e:
            raise ConfigurationError(f"Error loading configuration from {config_file}: {e}") from e
        
        if not isinstance(file_config, dict):
            raise ConfigurationError(f"Configuration file {config_file} must contain a JSON object")
        
        merge_config(self._config, file_config)
        
        if self.logger:
            self.logger.info(f"Loaded configuration from {config_file}")
    
    def _load_from_env(self):
        """Apply the environment variables in ``ENV_OVERRIDES``."""
        if not self.environment:
            return
        
        applied = []
        for env_var, key_path in ENV_OVERRIDES.items():
            value = self.environment.get(env_var)
            if not value:
                continue
            if env_var == "LOOKBACK_WINDOWS":
                value = [w.strip() for w in value.split(",") if w.strip()]
            self.set(key_path, value)
            applied.append(env_var)
        
        if applied and self.logger:
            self.logger.debug(f"Configuration overridden from environment: {', '.join(applied)}")
    
    def _validate(self):
        """Normalize numeric settings and reject invalid values."""
        for path in ("metrics.port", "github_api.per_page", "qa.answer_workers"):
            try:
                self.set(path, int(self.get(path)))
            except (TypeError, ValueError) as e:
                raise ConfigurationError(f"{path} must be an integer, got {self.get(path)!r}") from e
        
        for path in ("collection.inter_source_interval", "github_api.timeout",
                     "qa.timeout", "qa.answer_timeout"):
            self.set(path, parse_duration(self.get(path)))
        
        if not 0 < self.get("metrics.port") < 65536:
            raise ConfigurationError(f"metrics.port out of range: {self.get('metrics.port')}")
        
        if self.get("qa.answer_workers") < 1:
            raise ConfigurationError("qa.answer_workers must be at least 1")
        
        sslmode = str(self.get("database.sslmode")).lower()
        if sslmode not in SSL_MODES:
            raise ConfigurationError(f"database.sslmode must be one of {SSL_MODES}, got {sslmode!r}")
        self.set("database.sslmode", sslmode)
        
        # Fail fast on unparseable windows and sources
        self.get_windows()
        self.get_sources()
    
    def get(self, key_path: str, default: Any = None) -> Any:
        """Get configuration value using dot notation path.
        
        Args:
            key_path: Dot notation path to configuration value (e.g., "metrics.port")
            default: Default value to return if path not found
            
        Returns:
            Configuration value or default
        """
        value = self._config
        for part in key_path.split('.'):
            if isinstance(value, dict) and part in value:
                value = value[part]
            else:
                return default
        return value
    
    def set(self, key_path: str, value: Any):
        """Set configuration value using dot notation path.
        
        Args:
            key_path: Dot notation path to configuration value (e.g., "metrics.port")
            value: Value to set
        """
        parts = key_path.split('.')
        config = self._config
        for part in parts[:-1]:
            if not isinstance(config.get(part), dict):
                config[part] = {}
            config = config[part]
        config[parts[-1]] = value
    
    def get_windows(self) -> List[float]:
        """Lookback windows in seconds, in collection order."""
        windows = self.get("collection.windows") or []
        if not isinstance(windows, list):
            raise ConfigurationError("collection.windows must be a list")
        return [parse_duration(w) for w in windows]
    
    def get_sources(self) -> List[Source]:
        """Sources in collection order: every issue source, then every Q&A source.
        
        Entries may be a bare URL string or an object with ``url`` and an
        optional ``label``.
        """
        sources = []
        for kind in (ISSUES, QA):
            entries = self.get(f"sources.{kind}") or []
            if not isinstance(entries, list):
                raise ConfigurationError(f"sources.{kind} must be a list")
            for entry in entries:
                if isinstance(entry, str):
                    sources.append(Source(kind, entry))
                elif isinstance(entry, dict) and entry.get("url"):
                    sources.append(Source(kind, entry["url"], entry.get("label") or ""))
                else:
                    raise ConfigurationError(f"Invalid {kind} source entry: {entry!r}")
        return sources
    
    def has_issue_sources(self) -> bool:
        return any(source.kind == ISSUES for source in self.get_sources())
