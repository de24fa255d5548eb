"""Configuration loading for the cast ingest service.

Usage:
    >>> from config import load_config
    >>> config = load_config()
    >>> config.max_batch_size
    20

Settings are merged in the following priority (highest to lowest):

1. Explicit overrides passed to load_config()
2. Environment variables (HUB_ENDPOINT, NEYNAR_API_KEY, WORKER_URL)
3. config/config.yaml, with ${VAR} expansion
4. Dataclass defaults
"""

from config.config import IngestConfig, load_config

__all__ = ["IngestConfig", "load_config"]
