"""
Node Helpers - property groups applied to freshly created canvas objects

Every helper takes the live node and the DesignNode explicitly, checks the
node's capability before touching it, and never raises: a failure inside one
property group is logged and that group is skipped.
"""

import functools
import inspect
import logging
from typing import Any, Dict, List, Optional, Tuple

from canvas import (
    RGBA,
    Capability,
    Constraints,
    ExportConstraint,
    ExportSetting,
    Guide,
    LayoutGrid,
)
from design_node import DesignNode, Fill
import effect_mapper
import fill_mapper

logger = logging.getLogger(__name__)

VALID_COUNTER_AXIS_ALIGN_ITEMS = ("MIN", "MAX", "CENTER")


def describe(node: Any) -> str:
    return f"{getattr(node, 'type', 'node')} '{getattr(node, 'name', '?')}'"


def property_group(label: str):
    """Guard a helper so a failure skips only its own property group."""

    def decorate(func):
        if inspect.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(node, *args, **kwargs):
                try:
                    return await func(node, *args, **kwargs)
                except Exception as e:
                    logger.warning(f"⚠️ Skipping {label} on {describe(node)}: {e}")
                    return None
            return async_wrapper

        @functools.wraps(func)
        def wrapper(node, *args, **kwargs):
            try:
                return func(node, *args, **kwargs)
            except Exception as e:
                logger.warning(f"⚠️ Skipping {label} on {describe(node)}: {e}")
                return None
        return wrapper

    return decorate


def ensure_min_dimensions(width: Optional[float], height: Optional[float], default: float = 100) -> Tuple[float, float]:
    return max(1.0, width or default), max(1.0, height or default)


# ============================================
# ============ FILLS & STROKES ===============
# ============================================

@property_group("fills")
def apply_fills(node: Any, fills: Optional[List[Fill]]) -> None:
    if not node.supports(Capability.FILLS):
        return
    # Missing or empty fills clear the host defaults
    node.fills = fill_mapper.to_paints(fills) if fills else []


@property_group("fills")
async def apply_fills_async(node: Any, fills: Optional[List[Fill]], mapper) -> None:
    if not node.supports(Capability.FILLS):
        return
    if not fills:
        node.fills = []
        return
    try:
        node.fills = await mapper.to_paints_async(fills)
    except Exception as e:
        logger.warning(f"⚠️ Error applying fills to {describe(node)}, retrying without images: {e}")
        apply_fills(node, fills)


@property_group("stroke properties")
def apply_stroke_properties(node: Any, data: DesignNode) -> None:
    if not node.supports(Capability.STROKES):
        return
    if data.strokeWeight is not None and data.strokeWeight >= 0:
        node.stroke_weight = data.strokeWeight
    if data.strokeAlign:
        node.stroke_align = data.strokeAlign
    if data.strokeCap:
        node.stroke_cap = data.strokeCap
    if data.strokeJoin:
        node.stroke_join = data.strokeJoin
    if data.dashPattern:
        node.dash_pattern = data.dashPattern
    if data.strokeMiterLimit is not None:
        node.stroke_miter_limit = data.strokeMiterLimit


@property_group("strokes")
def apply_strokes(node: Any, data: DesignNode) -> None:
    if not node.supports(Capability.STROKES):
        return
    paints = fill_mapper.to_paints(data.strokes) if data.strokes else []
    node.strokes = paints
    if paints:
        apply_stroke_properties(node, data)


@property_group("strokes")
async def apply_strokes_async(node: Any, data: DesignNode, mapper) -> None:
    if not node.supports(Capability.STROKES):
        return
    if not data.strokes:
        node.strokes = []
        return
    try:
        paints = await mapper.to_paints_async(data.strokes)
    except Exception as e:
        logger.warning(f"⚠️ Error applying strokes to {describe(node)}, retrying without images: {e}")
        apply_strokes(node, data)
        return
    node.strokes = paints
    if paints:
        apply_stroke_properties(node, data)


# ============================================
# ============ GEOMETRY & LOOK ===============
# ============================================

@property_group("corner radius")
def apply_corner_radius(node: Any, data: DesignNode) -> None:
    if not node.supports(Capability.CORNERS):
        return
    corners = (data.topLeftRadius, data.topRightRadius, data.bottomLeftRadius, data.bottomRightRadius)
    if any(value is not None for value in corners):
        node.top_left_radius = data.topLeftRadius or 0
        node.top_right_radius = data.topRightRadius or 0
        node.bottom_left_radius = data.bottomLeftRadius or 0
        node.bottom_right_radius = data.bottomRightRadius or 0
    elif data.cornerRadius is not None:
        node.corner_radius = data.cornerRadius

    if data.cornerSmoothing is not None:
        node.corner_smoothing = data.cornerSmoothing


@property_group("position")
def apply_position(node: Any, data: DesignNode) -> None:
    if data.x is not None:
        node.x = data.x
    if data.y is not None:
        node.y = data.y


@property_group("blending")
def apply_blending(node: Any, data: DesignNode) -> None:
    if not node.supports(Capability.BLEND):
        return
    if data.opacity is not None:
        node.opacity = max(0.0, min(1.0, data.opacity))
    if data.blendMode:
        node.blend_mode = data.blendMode


@property_group("visibility")
def apply_visibility(node: Any, data: DesignNode) -> None:
    if data.visible is not None:
        node.visible = data.visible
    if data.locked is not None:
        node.locked = data.locked


@property_group("transform")
def apply_transform(node: Any, data: DesignNode) -> None:
    if not node.supports(Capability.TRANSFORM):
        return
    if data.rotation:
        node.rotation = data.rotation
    if data.relativeTransform:
        node.relative_transform = [row[:3] for row in data.relativeTransform[:2]]


@property_group("effects")
def apply_effects(node: Any, data: DesignNode) -> None:
    if not node.supports(Capability.EFFECTS) or not data.effects:
        return
    effects = effect_mapper.to_effects(data.effects)
    if effects:
        node.effects = effects


@property_group("constraints")
def apply_constraints(node: Any, data: DesignNode) -> None:
    if data.constraints is None or not node.supports(Capability.CONSTRAINTS):
        return
    node.constraints = Constraints(data.constraints.horizontal, data.constraints.vertical)


@property_group("layout child properties")
def apply_layout_child(node: Any, data: DesignNode) -> None:
    if not node.supports(Capability.LAYOUT_CHILD):
        return
    requested = {
        "layout_grow": data.layoutGrow,
        "layout_align": data.layoutAlign,
        "layout_positioning": data.layoutPositioning,
    }
    requested = {name: value for name, value in requested.items() if value is not None}
    if not requested:
        return

    if not node.parent_has_auto_layout():
        logger.warning(f"⚠️ Cannot set {', '.join(sorted(requested))} on '{data.label}': parent does not use auto-layout")
        return
    for name, value in requested.items():
        setattr(node, name, value)


@property_group("mask")
def apply_mask(node: Any, data: DesignNode) -> None:
    if data.isMask and node.supports(Capability.MASK):
        node.is_mask = True


@property_group("export settings")
def apply_export_settings(node: Any, data: DesignNode) -> None:
    if not data.exportSettings or not node.supports(Capability.EXPORTS):
        return
    settings = []
    for setting in data.exportSettings:
        constraint = setting.constraint
        settings.append(ExportSetting(
            format=setting.format,
            suffix=setting.suffix or "",
            contents_only=bool(setting.contentsOnly),
            constraint=ExportConstraint(constraint.type, constraint.value) if constraint else ExportConstraint("SCALE", 1),
        ))
    node.export_settings = settings


def apply_common_properties(node: Any, data: DesignNode) -> None:
    """Blending, visibility, transform, effects, constraints, layout-child, mask and export settings."""
    apply_blending(node, data)
    apply_visibility(node, data)
    apply_transform(node, data)
    apply_effects(node, data)
    apply_constraints(node, data)
    apply_layout_child(node, data)
    apply_mask(node, data)
    apply_export_settings(node, data)


# ============================================
# ================= LAYOUT ===================
# ============================================

_AUTO_LAYOUT_FIELDS: Dict[str, str] = {
    "itemSpacing": "item_spacing",
    "paddingTop": "padding_top",
    "paddingRight": "padding_right",
    "paddingBottom": "padding_bottom",
    "paddingLeft": "padding_left",
    "primaryAxisAlignItems": "primary_axis_align_items",
    "primaryAxisSizingMode": "primary_axis_sizing_mode",
    "counterAxisSizingMode": "counter_axis_sizing_mode",
    "layoutWrap": "layout_wrap",
    "counterAxisSpacing": "counter_axis_spacing",
}


@property_group("auto-layout")
def apply_auto_layout(node: Any, data: DesignNode) -> None:
    if not data.layoutMode or data.layoutMode == "NONE" or not node.supports(Capability.AUTO_LAYOUT):
        return

    node.layout_mode = data.layoutMode
    for wire_name, attribute in _AUTO_LAYOUT_FIELDS.items():
        value = getattr(data, wire_name)
        if value is not None:
            setattr(node, attribute, value)

    counter = data.counterAxisAlignItems
    if counter in VALID_COUNTER_AXIS_ALIGN_ITEMS:
        node.counter_axis_align_items = counter
    elif counter:
        logger.warning(f"⚠️ Ignoring counterAxisAlignItems={counter} on '{data.label}'")

    if data.itemReverseZIndex:
        node.item_reverse_z_index = True


@property_group("layout grids")
def apply_layout_grids(node: Any, data: DesignNode) -> None:
    if not data.layoutGrids or not node.supports(Capability.GRIDS):
        return
    grids = []
    for grid in data.layoutGrids:
        color = None
        if grid.color is not None:
            color = RGBA(grid.color.r, grid.color.g, grid.color.b, grid.color.a if grid.color.a is not None else 1.0)
        grids.append(LayoutGrid(
            pattern=grid.pattern,
            section_size=grid.sectionSize,
            visible=grid.visible if grid.visible is not None else True,
            color=color,
            alignment=grid.alignment,
            gutter_size=grid.gutterSize,
            offset=grid.offset,
            count=grid.count,
        ))
    node.layout_grids = grids


@property_group("guides")
def apply_guides(node: Any, data: DesignNode) -> None:
    if not data.guides or not node.supports(Capability.GRIDS):
        return
    node.guides = [Guide(guide.axis, guide.offset) for guide in data.guides]


def apply_grids_and_guides(node: Any, data: DesignNode) -> None:
    apply_layout_grids(node, data)
    apply_guides(node, data)
