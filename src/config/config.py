"""Ingest service configuration from YAML file.

Loads from config/config.yaml with all settings in one place:
- Hub connection settings (endpoint, API key, readiness and reconnect timing)
- Sink settings (base URL of the batch collection endpoint)
- Batching policy (size threshold, idle timeout)
- Observability (health port, metrics port, stats interval)

Environment variables ARE supported using ${VAR_NAME} and
${VAR_NAME:-default} syntax in YAML files.
"""

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from core.errors.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_HUB_ENDPOINT = "hub-grpc-api.neynar.com:443"
DEFAULT_SINK_BASE_URL = "https://your-worker.workers.dev"

# Default config file: config/config.yaml in src/ directory
DEFAULT_CONFIG_FILE = Path(__file__).parent / "config.yaml"


def load_yaml(path: Path) -> Dict[str, Any]:
    """Load YAML file and return dict."""
    if not path.exists():
        return {}
    with open(path, "r") as f:
        try:
            return yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {path}", cause=e) from e


def _expand_env_vars(data: Any) -> Any:
    """Recursively expand ${VAR_NAME} and ${VAR_NAME:-default} environment variables in config data."""
    if isinstance(data, dict):
        return {key: _expand_env_vars(value) for key, value in data.items()}
    elif isinstance(data, list):
        return [_expand_env_vars(item) for item in data]
    elif isinstance(data, str):
        # Support both ${VAR} and ${VAR:-default} syntax
        pattern = r"\$\{([^}:]+)(?::-(([^}]*))?)?\}"

        def replacer(match):
            var_name = match.group(1)
            default_value = match.group(2) if match.group(2) is not None else match.group(0)
            return os.getenv(var_name, default_value)

        return re.sub(pattern, replacer, data)
    else:
        return data


def _deep_merge(base: Dict[str, Any], overlay: Dict[str, Any]) -> Dict[str, Any]:
    """Deep merge overlay into base dict."""
    result = base.copy()
    for key, value in overlay.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


@dataclass(frozen=True)
class IngestConfig:
    """Cast ingest configuration.

    Configuration structure:
        hub:
          endpoint: host:port of the hub gRPC API
          api_key: sent as x-api-key on every call
          ready_timeout_seconds: channel readiness deadline
          reconnect_delay_seconds: fixed wait between reconnect attempts
        sink:
          base_url: batch endpoint is {base_url}/api/batch-casts
        batching:
          max_batch_size: flush as soon as this many casts are pending
          max_idle_ms: flush after this long without a new cast
        observability:
          health_port: 0 disables the health server
          metrics_port: 0 disables the Prometheus endpoint
          stats_interval_seconds: periodic stats log interval
    """

    hub_api_key: str = ""
    hub_endpoint: str = DEFAULT_HUB_ENDPOINT
    ready_timeout_seconds: float = 10.0
    reconnect_delay_seconds: float = 10.0

    sink_base_url: str = DEFAULT_SINK_BASE_URL

    max_batch_size: int = 20
    max_idle_ms: int = 5000

    health_port: int = 8080
    metrics_port: int = 8000
    stats_interval_seconds: float = 60.0

    def validate(self) -> None:
        """Validate configuration for correctness and constraints.

        Raises:
            ConfigurationError: On the first invalid setting found
        """
        if not self.hub_api_key:
            raise ConfigurationError(
                "Hub API key is required (set NEYNAR_API_KEY or hub.api_key)"
            )
        if not self.hub_endpoint:
            raise ConfigurationError("hub.endpoint must not be empty")
        if not self.sink_base_url:
            raise ConfigurationError(
                "Sink base URL is required (set WORKER_URL or sink.base_url)"
            )

        self._validate_min("max_batch_size", 0, inclusive=False)
        self._validate_min("max_idle_ms", 0, inclusive=False)
        self._validate_min("ready_timeout_seconds", 0, inclusive=False)
        self._validate_min("reconnect_delay_seconds", 0, inclusive=True)
        self._validate_min("stats_interval_seconds", 0, inclusive=False)
        self._validate_range("health_port", 0, 65535)
        self._validate_range("metrics_port", 0, 65535)

    def _validate_min(self, key: str, min_value: float, inclusive: bool) -> None:
        """Validate that a setting's value meets a minimum threshold."""
        value = getattr(self, key)
        if inclusive and value < min_value:
            raise ConfigurationError(f"{key} must be >= {min_value}, got {value}")
        elif not inclusive and value <= min_value:
            raise ConfigurationError(f"{key} must be > {min_value}, got {value}")

    def _validate_range(self, key: str, min_value: int, max_value: int) -> None:
        """Validate that a setting's value is within a range (inclusive)."""
        value = getattr(self, key)
        if not (min_value <= value <= max_value):
            raise ConfigurationError(
                f"{key} must be between {min_value} and {max_value}, got {value}"
            )

    def sanitized(self) -> Dict[str, Any]:
        """Settings safe to log: the API key is masked."""
        return {
            "hub_endpoint": self.hub_endpoint,
            "hub_api_key": "***" if self.hub_api_key else "",
            "ready_timeout_seconds": self.ready_timeout_seconds,
            "reconnect_delay_seconds": self.reconnect_delay_seconds,
            "sink_base_url": self.sink_base_url,
            "max_batch_size": self.max_batch_size,
            "max_idle_ms": self.max_idle_ms,
            "health_port": self.health_port,
            "metrics_port": self.metrics_port,
            "stats_interval_seconds": self.stats_interval_seconds,
        }


def _coerce(section: Dict[str, Any], key: str, kind: type, default: Any, context: str) -> Any:
    value = section.get(key)
    if value is None or value == "":
        return default
    try:
        return kind(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(
            f"{context}.{key} must be {kind.__name__}, got {value!r}", cause=e
        ) from e


def load_config(
    config_path: Optional[Path] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> IngestConfig:
    """Load ingest configuration from config.yaml.

    Priority (highest to lowest):
    1. overrides (e.g. from command line flags)
    2. HUB_ENDPOINT / NEYNAR_API_KEY / WORKER_URL environment variables
    3. YAML file values, after ${VAR} expansion
    4. Dataclass defaults

    Raises:
        ConfigurationError: If the file is missing, malformed, or the
            resulting configuration fails validation
    """
    if config_path is None:
        config_path = DEFAULT_CONFIG_FILE

    if not config_path.exists():
        raise ConfigurationError(f"Configuration file not found: {config_path}")

    logger.info(f"Loading configuration from file: {config_path}")
    yaml_data = _expand_env_vars(load_yaml(config_path))

    if overrides:
        logger.debug(f"Applying overrides: {list(overrides.keys())}")
        yaml_data = _deep_merge(yaml_data, overrides)

    hub = yaml_data.get("hub") or {}
    sink = yaml_data.get("sink") or {}
    batching = yaml_data.get("batching") or {}
    observability = yaml_data.get("observability") or {}

    config = IngestConfig(
        hub_endpoint=(
            (overrides or {}).get("hub", {}).get("endpoint")
            or os.getenv("HUB_ENDPOINT")
            or hub.get("endpoint")
            or DEFAULT_HUB_ENDPOINT
        ),
        hub_api_key=(
            (overrides or {}).get("hub", {}).get("api_key")
            or os.getenv("NEYNAR_API_KEY")
            or hub.get("api_key")
            or ""
        ),
        ready_timeout_seconds=_coerce(hub, "ready_timeout_seconds", float, 10.0, "hub"),
        reconnect_delay_seconds=_coerce(hub, "reconnect_delay_seconds", float, 10.0, "hub"),
        sink_base_url=(
            (overrides or {}).get("sink", {}).get("base_url")
            or os.getenv("WORKER_URL")
            or sink.get("base_url")
            or DEFAULT_SINK_BASE_URL
        ),
        max_batch_size=_coerce(batching, "max_batch_size", int, 20, "batching"),
        max_idle_ms=_coerce(batching, "max_idle_ms", int, 5000, "batching"),
        health_port=_coerce(observability, "health_port", int, 8080, "observability"),
        metrics_port=_coerce(observability, "metrics_port", int, 8000, "observability"),
        stats_interval_seconds=_coerce(
            observability, "stats_interval_seconds", float, 60.0, "observability"
        ),
    )

    logger.debug("Configuration loaded successfully:")
    logger.debug(f"  - Hub endpoint: {config.hub_endpoint}")
    logger.debug(f"  - Sink base URL: {config.sink_base_url}")
    logger.debug(f"  - API key configured: {bool(config.hub_api_key)}")

    config.validate()
    return config
