"""
Canvas Configuration.

Controls the canvas footprint used for placement, the drag-to-connect
snap radius, the keyboard platform modifier and the execution
recursion limit.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional

from coordinator.config.env_utils import read_env_defaults

PLATFORM_MODIFIERS = ("ctrl", "meta")


@dataclass
class CanvasConfig:
    """Canvas geometry, placement and interaction settings."""

    canvas_width: float = 1200.0
    canvas_height: float = 800.0
    node_width: float = 160.0
    node_height: float = 96.0
    placement_margin: float = 20.0
    grid_step: float = 200.0
    grid_attempts: int = 20
    max_placement_attempts: int = 100
    snap_distance: float = 30.0
    platform_modifier: str = "ctrl"
    execution_recursion_limit: int = 25

    _ENV_MAP = {
        "canvas_width": "CANVAS_WIDTH",
        "canvas_height": "CANVAS_HEIGHT",
        "node_width": "CANVAS_NODE_WIDTH",
        "node_height": "CANVAS_NODE_HEIGHT",
        "placement_margin": "CANVAS_PLACEMENT_MARGIN",
        "grid_step": "CANVAS_GRID_STEP",
        "grid_attempts": "CANVAS_GRID_ATTEMPTS",
        "max_placement_attempts": "CANVAS_MAX_PLACEMENT_ATTEMPTS",
        "snap_distance": "CANVAS_SNAP_DISTANCE",
        "platform_modifier": "CANVAS_PLATFORM_MODIFIER",
        "execution_recursion_limit": "COORDINATOR_RECURSION_LIMIT",
    }

    def __post_init__(self) -> None:
        if self.node_width <= 0 or self.node_height <= 0:
            raise ValueError("node footprint must be positive")
        if self.platform_modifier not in PLATFORM_MODIFIERS:
            raise ValueError(
                f"platform_modifier must be one of {PLATFORM_MODIFIERS}, "
                f"got {self.platform_modifier!r}"
            )

    @classmethod
    def get_default_instance(
        cls, environ: Optional[Mapping[str, str]] = None,
    ) -> "CanvasConfig":
        defaults = read_env_defaults(
            cls._ENV_MAP, cls.__dataclass_fields__, environ
        )
        return cls(**defaults)

    @classmethod
    def get_config_name(cls) -> str:
        return "canvas"

    @classmethod
    def get_display_name(cls) -> str:
        return "Workflow Canvas"

    @classmethod
    def get_description(cls) -> str:
        return "Canvas size, node footprint, placement search and snap radius."


# ── Singleton ──

_config_instance: Optional[CanvasConfig] = None


def get_canvas_config() -> CanvasConfig:
    """Return the global CanvasConfig, read from the environment once."""
    global _config_instance
    if _config_instance is None:
        _config_instance = CanvasConfig.get_default_instance()
    return _config_instance
