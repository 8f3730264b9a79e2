"""Environment variable loaders for configuration."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

from .errors import ConfigurationError, MissingConfigurationError

if TYPE_CHECKING:
    from collections.abc import Iterable


def _present(name: str) -> str | None:
    raw = os.getenv(name)
    return raw if raw is not None and raw.strip() else None


def require_env_vars(names: Iterable[str]) -> dict[str, str]:
    """Read every named variable, reporting all blank or unset ones in a single error."""

    found = {name: _present(name) for name in names}
    missing = [name for name, value in found.items() if value is None]
    if missing:
        raise MissingConfigurationError(missing)
    return {name: value for name, value in found.items() if value is not None}


def require_env_var(name: str) -> str:
    return require_env_vars((name,))[name]


def optional_int_env_var(name: str, default: int, *, minimum: int = 0) -> int:
    """Integer variable with a floor; ``default`` when unset or blank."""

    raw = _present(name)
    if raw is None:
        return default
    try:
        parsed = int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from exc
    if parsed < minimum:
        raise ConfigurationError(f"{name} must be >= {minimum}, got {parsed}")
    return parsed
