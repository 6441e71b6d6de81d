"""
Keyboard shortcuts for the canvas.

``resolve_shortcut`` maps a key event plus a snapshot of the canvas
state to the action to take. It doesn't touch anything; the
controller applies the result.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

ESCAPE = "Escape"
SPACE = " "


class Shortcut(str, Enum):
    NEW_WORKFLOW = "new_workflow"
    CANCEL_CONNECTION = "cancel_connection"
    CLOSE_CONFIG_PANEL = "close_config_panel"
    CLOSE_INTERACTION_PANEL = "close_interaction_panel"
    EXECUTE_WORKFLOW = "execute_workflow"
    STOP_WORKFLOW = "stop_workflow"


@dataclass(frozen=True)
class KeyEvent:
    """A key press as delivered by the browser."""
    key: str
    ctrl: bool = False
    meta: bool = False
    alt: bool = False
    shift: bool = False
    in_text_field: bool = False

    @property
    def has_reserved_modifier(self) -> bool:
        return self.ctrl or self.meta or self.alt

    def is_space(self) -> bool:
        return self.key in (SPACE, "Space", "Spacebar")


@dataclass(frozen=True)
class ShortcutContext:
    """The parts of canvas state that shortcuts depend on."""
    has_selected_workflow: bool
    is_dragging: bool = False
    config_panel_open: bool = False
    interaction_panel_open: bool = False
    node_count: int = 0
    is_active: bool = False


def _is_platform_chord(event: KeyEvent, platform_modifier: str) -> bool:
    held = event.meta if platform_modifier == "meta" else event.ctrl
    return held and not event.alt and event.key.lower() == "n"


def resolve_shortcut(
    event: KeyEvent,
    context: ShortcutContext,
    platform_modifier: str = "ctrl",
) -> Optional[Shortcut]:
    """Decide which shortcut, if any, a key event triggers.

    The platform chord (ctrl/cmd + n) always creates a workflow. Plain
    keys only act with a workflow selected, no reserved modifier held
    and focus outside text inputs, so browser shortcuts and typing are
    left alone.
    """
    if _is_platform_chord(event, platform_modifier):
        return Shortcut.NEW_WORKFLOW

    if not context.has_selected_workflow:
        return None
    if event.has_reserved_modifier or event.in_text_field:
        return None

    if event.key == ESCAPE:
        if context.is_dragging:
            return Shortcut.CANCEL_CONNECTION
        if context.config_panel_open:
            return Shortcut.CLOSE_CONFIG_PANEL
        if context.interaction_panel_open:
            return Shortcut.CLOSE_INTERACTION_PANEL
        return None

    if event.is_space():
        if context.node_count < 1:
            return None
        return Shortcut.STOP_WORKFLOW if context.is_active else Shortcut.EXECUTE_WORKFLOW

    if event.key.lower() == "n" and not event.shift:
        return Shortcut.NEW_WORKFLOW

    return None
