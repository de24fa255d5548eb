"""Shared JSON serialization utilities for structured log output."""

from dataclasses import asdict, is_dataclass
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Any


def json_serializer(obj: Any) -> Any:
    """
    Type-safe fallback for json.dumps(default=...).

    - datetime/date -> ISO 8601 string
    - Enum -> value
    - dataclass -> dict
    - Path -> string
    - Everything else -> string
    """
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    if is_dataclass(obj) and not isinstance(obj, type):
        return asdict(obj)
    if isinstance(obj, Path):
        return str(obj)
    return str(obj)


__all__ = ["json_serializer"]
