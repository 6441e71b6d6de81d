"""
Environment helpers shared by config dataclasses.

``read_env_defaults`` maps a config's ``_ENV_MAP`` onto constructor
kwargs, coercing each raw env string to the type of the field's
default value.
"""

from __future__ import annotations

import os
from dataclasses import MISSING, Field
from logging import getLogger
from typing import Any, Dict, Mapping, Optional

logger = getLogger(__name__)

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off", ""}


def coerce_env_value(raw: str, default: Any) -> Any:
    """Convert an env string to the type of ``default``.

    Raises:
        ValueError: If the string can't be parsed as that type.
    """
    value = raw.strip()
    # bool is a subclass of int, so it must be checked first
    if isinstance(default, bool):
        lowered = value.lower()
        if lowered in _TRUTHY:
            return True
        if lowered in _FALSY:
            return False
        raise ValueError(f"not a boolean: {raw!r}")
    if isinstance(default, int):
        return int(value)
    if isinstance(default, float):
        return float(value)
    return value


def read_env_defaults(
    env_map: Mapping[str, str],
    fields: Mapping[str, Field],
    environ: Optional[Mapping[str, str]] = None,
) -> Dict[str, Any]:
    """Collect constructor kwargs from environment variables.

    Only variables that are actually set are returned, so the
    dataclass defaults apply to everything else. Unparseable values
    are logged and skipped.
    """
    env = os.environ if environ is None else environ
    defaults: Dict[str, Any] = {}

    for field_name, env_name in env_map.items():
        raw = env.get(env_name)
        if raw is None:
            continue

        field = fields.get(field_name)
        default = field.default if field is not None else MISSING
        if default is MISSING:
            defaults[field_name] = raw
            continue

        try:
            defaults[field_name] = coerce_env_value(raw, default)
        except ValueError as e:
            logger.warning(
                f"Ignoring {env_name}={raw!r} for '{field_name}': {e}"
            )

    return defaults
