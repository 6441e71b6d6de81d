"""
Coordinator configuration.

Every config class is a plain dataclass with an ``_ENV_MAP`` of
field → environment variable, resolved by ``get_default_instance()``.
"""

from coordinator.config.canvas_config import CanvasConfig, get_canvas_config
from coordinator.config.env_utils import coerce_env_value, read_env_defaults

__all__ = [
    "CanvasConfig",
    "get_canvas_config",
    "coerce_env_value",
    "read_env_defaults",
]
