"""Conversion between wire effects and canvas effect objects."""

import logging
from typing import Any, Dict, List, Optional

from canvas import RGBA, BlurEffect, ShadowEffect
from design_node import Effect
from node_types import BLUR_TYPES, SHADOW_TYPES

logger = logging.getLogger(__name__)

DEFAULT_SHADOW_COLOR = RGBA(0.0, 0.0, 0.0, 0.25)
DEFAULT_SHADOW_OFFSET = (0.0, 4.0)
DEFAULT_RADIUS = 10.0


def _round(value: float, precision: int = 6) -> float:
    return round(value, precision)


def to_effect(effect: Effect) -> Optional[Any]:
    """Build a canvas effect, filling the documented defaults; unknown types give None."""
    visible = effect.visible is not False
    radius = effect.radius if effect.radius is not None else DEFAULT_RADIUS

    if effect.type in SHADOW_TYPES:
        color = DEFAULT_SHADOW_COLOR
        if effect.color is not None:
            a = effect.color.a if effect.color.a is not None else 1.0
            color = RGBA(effect.color.r, effect.color.g, effect.color.b, a)
        offset = DEFAULT_SHADOW_OFFSET
        if effect.offset is not None:
            offset = (effect.offset.x, effect.offset.y)
        return ShadowEffect(
            type=effect.type,
            color=color,
            offset=offset,
            radius=radius,
            spread=effect.spread or 0.0,
            visible=visible,
            blend_mode=effect.blendMode or "NORMAL",
            # Only drop shadows can show behind a translucent node
            show_shadow_behind_node=bool(effect.showShadowBehindNode) if effect.type == "DROP_SHADOW" else False,
        )

    if effect.type in BLUR_TYPES:
        return BlurEffect(type=effect.type, radius=radius, visible=visible)

    logger.warning(f"⚠️ Skipping unsupported effect type: {effect.type}")
    return None


def to_effects(effects: List[Effect]) -> List[Any]:
    return [e for e in (to_effect(effect) for effect in effects if effect and effect.type) if e is not None]


def from_effect(effect: Any) -> Dict[str, Any]:
    """Serialize a canvas effect, omitting visible, spread, blend mode and behind-node defaults."""
    data: Dict[str, Any] = {"type": effect.type}
    if not effect.visible:
        data["visible"] = False
    data["radius"] = effect.radius

    if isinstance(effect, ShadowEffect):
        color = effect.color
        data["color"] = {"r": _round(color.r), "g": _round(color.g), "b": _round(color.b), "a": _round(color.a)}
        data["offset"] = {"x": effect.offset[0], "y": effect.offset[1]}
        if effect.spread:
            data["spread"] = effect.spread
        if effect.blend_mode != "NORMAL":
            data["blendMode"] = effect.blend_mode
        if effect.type == "DROP_SHADOW" and effect.show_shadow_behind_node:
            data["showShadowBehindNode"] = True
    return data


def from_effects(effects: Any) -> List[Dict[str, Any]]:
    return [from_effect(effect) for effect in effects or ()]
