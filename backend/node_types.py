"""Node type discriminants and the paint/effect families."""

from typing import Any, Literal

NodeType = Literal[
    "FRAME",
    "GROUP",
    "SECTION",
    "RECTANGLE",
    "ELLIPSE",
    "LINE",
    "POLYGON",
    "STAR",
    "VECTOR",
    "TEXT",
    "COMPONENT",
    "COMPONENT_SET",
    "INSTANCE",
    "BOOLEAN_OPERATION",
]

NODE_TYPES = frozenset(NodeType.__args__)

GRADIENT_TYPES = frozenset({"GRADIENT_LINEAR", "GRADIENT_RADIAL", "GRADIENT_ANGULAR", "GRADIENT_DIAMOND"})
SHADOW_TYPES = frozenset({"DROP_SHADOW", "INNER_SHADOW"})
BLUR_TYPES = frozenset({"LAYER_BLUR", "BACKGROUND_BLUR"})


def normalize(node_type: Any) -> NodeType:
    """Canonicalize a discriminant; missing or unknown types become FRAME."""
    upper = str(node_type or "FRAME").strip().upper()
    return upper if upper in NODE_TYPES else "FRAME"
