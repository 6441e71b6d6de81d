"""
Node Palette: static descriptors for the node types a user can drop.

The palette is configuration, not state. The canvas only reads it to
resolve a dropped type into a label/icon/color.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Union

from coordinator.workflow.workflow_model import NodeType


@dataclass(frozen=True)
class NodeTypeDescriptor:
    """How a node type is presented in the palette and on the canvas."""
    type: NodeType
    label: str
    icon: str
    color_token: str

    def to_dict(self) -> Dict[str, str]:
        """Serialize for the frontend."""
        return {
            "type": self.type.value,
            "label": self.label,
            "icon": self.icon,
            "colorToken": self.color_token,
        }


class NodePalette:
    """Registry of node-type descriptors, in display order."""

    def __init__(self, descriptors: Iterable[NodeTypeDescriptor] = ()) -> None:
        self._descriptors: Dict[NodeType, NodeTypeDescriptor] = {}
        for descriptor in descriptors:
            self.register(descriptor)

    def register(self, descriptor: NodeTypeDescriptor) -> None:
        self._descriptors[descriptor.type] = descriptor

    def get(self, node_type: Union[NodeType, str]) -> Optional[NodeTypeDescriptor]:
        """Resolve a node type (enum or raw string). Unknown types return None."""
        try:
            key = NodeType(node_type)
        except ValueError:
            return None
        return self._descriptors.get(key)

    def list_all(self) -> List[NodeTypeDescriptor]:
        return list(self._descriptors.values())

    def __contains__(self, node_type: object) -> bool:
        return isinstance(node_type, (str, NodeType)) and self.get(node_type) is not None


def default_palette() -> NodePalette:
    """The four built-in node types."""
    return NodePalette([
        NodeTypeDescriptor(NodeType.TRIGGER,   "Trigger",   "⚡", "trigger"),
        NodeTypeDescriptor(NodeType.AGENT,     "AI Agent",  "🤖", "agent"),
        NodeTypeDescriptor(NodeType.CONDITION, "Condition", "🔀", "condition"),
        NodeTypeDescriptor(NodeType.ACTION,    "Action",    "⚙️", "action"),
    ])
