"""Environment variable loaders for configuration.

Values are stripped and blank values count as unset, so an empty line in ``.env``
never overrides a default.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

from .errors import InvalidConfigurationError, MissingConfigurationError

if TYPE_CHECKING:
    from collections.abc import Sequence

_TRUE = frozenset({"1", "true", "yes", "on"})
_FALSE = frozenset({"0", "false", "no", "off"})


def optional_env_var(name: str) -> str | None:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value.strip()


def require_env_vars(names: Sequence[str]) -> dict[str, str]:
    """Return the given variables, or raise naming every one that is missing."""

    found = {name: optional_env_var(name) for name in names}
    missing = sorted(name for name, value in found.items() if value is None)
    if missing:
        raise MissingConfigurationError(f"Missing configuration for: {', '.join(missing)}")
    return {name: value for name, value in found.items() if value is not None}


def int_env_var(name: str, default: int, *, minimum: int = 1) -> int:
    raw = optional_env_var(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise InvalidConfigurationError(name, f"must be an integer, got {raw!r}") from exc
    if value < minimum:
        raise InvalidConfigurationError(name, f"must be >= {minimum}, got {value}")
    return value


def bool_env_var(name: str, *, default: bool = False) -> bool:
    raw = optional_env_var(name)
    if raw is None:
        return default
    if raw.lower() in _TRUE:
        return True
    if raw.lower() in _FALSE:
        return False
    raise InvalidConfigurationError(name, f"must be a boolean, got {raw!r}")
