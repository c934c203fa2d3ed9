"""StoreConfig — connection and behaviour settings for the item store."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping

ENV_PREFIX = "CANOPY_"

FOLDER_NAME_SCOPES = ("owner", "parent")

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"Invalid boolean for {name}: {raw!r}")


def _parse_int(name: str, raw: str) -> int:
    try:
        return int(raw.strip())
    except ValueError:
        raise ValueError(f"Invalid integer for {name}: {raw!r}") from None


@dataclass
class StoreConfig:
    """Configuration for an ``ItemStore``."""

    database_url: str = "sqlite+aiosqlite:///canopy.db"
    """SQLAlchemy async URL, e.g. ``postgresql+asyncpg://...``."""

    echo: bool = False
    """Log every SQL statement through the ``sqlalchemy.engine`` logger."""

    folder_name_scope: str = "owner"
    """Uniqueness scope for folder names.

    ``"owner"``: a new folder may not share a name with any item of the same
    owner, wherever it lives.  ``"parent"``: only siblings are checked.
    """

    max_name_length: int = 255
    """Longest accepted item name."""

    sqlite_busy_timeout_ms: int = 5000
    """How long SQLite connections wait on a locked database."""

    def __post_init__(self) -> None:
        if self.folder_name_scope not in FOLDER_NAME_SCOPES:
            raise ValueError(
                f"Invalid folder_name_scope: {self.folder_name_scope!r}. "
                f"Must be one of {', '.join(FOLDER_NAME_SCOPES)}."
            )
        if self.max_name_length <= 0:
            raise ValueError("max_name_length must be positive")
        if self.sqlite_busy_timeout_ms < 0:
            raise ValueError("sqlite_busy_timeout_ms must not be negative")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> StoreConfig:
        """Build a config from ``CANOPY_*`` environment variables."""
        env = os.environ if environ is None else environ
        kwargs: dict[str, object] = {}

        if (url := env.get(f"{ENV_PREFIX}DATABASE_URL")) is not None:
            kwargs["database_url"] = url
        if (echo := env.get(f"{ENV_PREFIX}ECHO")) is not None:
            kwargs["echo"] = _parse_bool(f"{ENV_PREFIX}ECHO", echo)
        if (scope := env.get(f"{ENV_PREFIX}FOLDER_NAME_SCOPE")) is not None:
            kwargs["folder_name_scope"] = scope.strip().lower()
        if (length := env.get(f"{ENV_PREFIX}MAX_NAME_LENGTH")) is not None:
            kwargs["max_name_length"] = _parse_int(f"{ENV_PREFIX}MAX_NAME_LENGTH", length)
        if (timeout := env.get(f"{ENV_PREFIX}SQLITE_BUSY_TIMEOUT_MS")) is not None:
            kwargs["sqlite_busy_timeout_ms"] = _parse_int(
                f"{ENV_PREFIX}SQLITE_BUSY_TIMEOUT_MS", timeout
            )

        return cls(**kwargs)  # type: ignore[arg-type]
