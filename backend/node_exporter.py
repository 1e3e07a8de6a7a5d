"""
Node Exporter - serialize live canvas objects back into DesignNode dicts

The walk is depth-first and strictly sequential: a node's own properties
first, then its children in array order. Every extractor emits only values
that differ from the documented defaults, so an exported tree can be fed
straight back into an import.
"""

import logging
import math
from typing import Any, Dict, List, Optional, Tuple

from canvas import MIXED, Capability
import effect_mapper
from image_cache import ImageCache
from node_helpers import describe

logger = logging.getLogger(__name__)

TRANSFORM_TOLERANCE = 1e-4
FULL_ARC = (0.0, 2 * math.pi, 0.0)


def _round(value: float, precision: int = 6) -> float:
    return round(value, precision)


def _layer_index(node: Any) -> int:
    """Position among siblings, for subtree roots exported on their own."""
    parent = node.parent
    if parent is None:
        return 0
    return list(parent.children).index(node)


def _color(color: Any) -> Dict[str, float]:
    return {"r": _round(color.r), "g": _round(color.g), "b": _round(color.b), "a": _round(color.a)}


def _is_pure_rotation(transform: Any, rotation: float) -> bool:
    """True when the linear part of `transform` is exactly a rotation by `rotation` degrees."""
    theta = math.radians(rotation)
    expected = (math.cos(theta), math.sin(theta), -math.sin(theta), math.cos(theta))
    (a, b, _), (c, d, _) = transform
    return all(abs(got - want) < TRANSFORM_TOLERANCE for got, want in zip((a, b, c, d), expected))


class NodeExporter:
    """
    Walks live objects and produces serialized DesignNode dicts.

    Args:
        fill_mapper: Converts paints, including embedding image bytes
        image_cache: Memoizes bitmap bytes per hash for one export call
    """

    def __init__(self, fill_mapper, image_cache: ImageCache):
        self.fill_mapper = fill_mapper
        self.image_cache = image_cache
        self._type_extractors = {
            "TEXT": self._text_properties,
            "ELLIPSE": self._ellipse_properties,
            "POLYGON": self._polygon_properties,
            "STAR": self._polygon_properties,
            "VECTOR": self._vector_properties,
            "BOOLEAN_OPERATION": self._boolean_properties,
            "COMPONENT": self._component_properties,
            "INSTANCE": self._instance_properties,
        }

    async def export_nodes(self, nodes: List[Any]) -> List[Dict[str, Any]]:
        """Export a forest; bitmap bytes are read at most once per hash within this call."""
        self.image_cache.begin_export()
        exported = []
        for node in nodes:
            data = await self.export_node(node)
            if data is not None:
                exported.append(data)
        logger.info(f"📤 Exported {len(exported)} of {len(nodes)} node(s), {self.image_cache.export_size} image(s) embedded")
        return exported

    async def export_node(self, node: Any, layer_index: Optional[int] = None) -> Optional[Dict[str, Any]]:
        """Export one subtree; a failure drops just that subtree."""
        try:
            return await self._export(node, layer_index)
        except Exception as e:
            logger.error(f"❌ Failed to export {describe(node)}: {e}")
            return None

    async def _export(self, node: Any, layer_index: Optional[int] = None) -> Dict[str, Any]:
        data = self._base_properties(node, layer_index)
        await self._paint_properties(node, data)
        self._corner_properties(node, data)
        self._look_properties(node, data)
        self._layout_properties(node, data)

        extractor = self._type_extractors.get(node.type)
        if extractor is not None:
            await extractor(node, data)

        # Instance children come from the main component
        if node.supports(Capability.CHILDREN) and node.type != "INSTANCE":
            children = []
            for index, child in enumerate(node.children):
                child_data = await self.export_node(child, index)
                if child_data is not None:
                    children.append(child_data)
            if children:
                data["children"] = children
        return data

    # ============================================
    # ================ BASE ======================
    # ============================================

    def _base_properties(self, node: Any, layer_index: Optional[int] = None) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "name": node.name,
            "type": node.type,
            "x": node.x,
            "y": node.y,
            "_layerIndex": _layer_index(node) if layer_index is None else layer_index,
            "width": node.width,
            "height": node.height,
        }
        if not node.visible:
            data["visible"] = False
        if node.locked:
            data["locked"] = True

        if node.supports(Capability.TRANSFORM):
            rotation = node.rotation
            if abs(rotation) > 1e-9:
                data["rotation"] = _round(rotation)
            transform = node.relative_transform
            if not _is_pure_rotation(transform, rotation):
                data["relativeTransform"] = [list(row) for row in transform]
        return data

    # ============================================
    # ============ PAINT & STROKES ===============
    # ============================================

    async def _paint_properties(self, node: Any, data: Dict[str, Any]) -> None:
        if node.supports(Capability.FILLS):
            fills = node.fills
            if fills is not MIXED and fills:
                data["fills"] = await self.fill_mapper.from_paints(fills)

        if not node.supports(Capability.STROKES) or not node.strokes:
            return
        data["strokes"] = await self.fill_mapper.from_paints(node.strokes)
        if node.stroke_weight != 1:
            data["strokeWeight"] = node.stroke_weight
        if node.stroke_align != node.default_stroke_align:
            data["strokeAlign"] = node.stroke_align
        if node.stroke_cap != "NONE":
            data["strokeCap"] = node.stroke_cap
        if node.stroke_join != "MITER":
            data["strokeJoin"] = node.stroke_join
        if node.dash_pattern:
            data["dashPattern"] = list(node.dash_pattern)
        if node.stroke_miter_limit != 4:
            data["strokeMiterLimit"] = node.stroke_miter_limit

    def _corner_properties(self, node: Any, data: Dict[str, Any]) -> None:
        if not node.supports(Capability.CORNERS):
            return
        corners = (node.top_left_radius, node.top_right_radius, node.bottom_left_radius, node.bottom_right_radius)
        if len(set(corners)) == 1:
            if corners[0]:
                data["cornerRadius"] = corners[0]
        else:
            data["topLeftRadius"], data["topRightRadius"], data["bottomLeftRadius"], data["bottomRightRadius"] = corners
        if node.corner_smoothing:
            data["cornerSmoothing"] = node.corner_smoothing

    def _look_properties(self, node: Any, data: Dict[str, Any]) -> None:
        if node.supports(Capability.BLEND):
            if node.opacity != 1:
                data["opacity"] = node.opacity
            if node.blend_mode not in ("NORMAL", "PASS_THROUGH"):
                data["blendMode"] = node.blend_mode
        if node.supports(Capability.MASK) and node.is_mask:
            data["isMask"] = True
        if node.supports(Capability.EFFECTS) and node.effects:
            data["effects"] = effect_mapper.from_effects(node.effects)

    # ============================================
    # ================= LAYOUT ===================
    # ============================================

    def _layout_properties(self, node: Any, data: Dict[str, Any]) -> None:
        if node.supports(Capability.CONSTRAINTS):
            constraints = node.constraints
            if (constraints.horizontal, constraints.vertical) != ("MIN", "MIN"):
                data["constraints"] = {"horizontal": constraints.horizontal, "vertical": constraints.vertical}

        if node.supports(Capability.LAYOUT_CHILD):
            if node.layout_align != "INHERIT":
                data["layoutAlign"] = node.layout_align
            if node.layout_grow != 0:
                data["layoutGrow"] = node.layout_grow
            if node.layout_positioning != "AUTO":
                data["layoutPositioning"] = node.layout_positioning

        if node.supports(Capability.EXPORTS) and node.export_settings:
            data["exportSettings"] = [self._export_setting(setting) for setting in node.export_settings]

        if node.supports(Capability.AUTO_LAYOUT) and node.layout_mode != "NONE":
            self._auto_layout(node, data)

        if node.supports(Capability.CLIPS) and not node.clips_content:
            data["clipsContent"] = False

        if node.supports(Capability.GRIDS):
            if node.layout_grids:
                data["layoutGrids"] = [self._layout_grid(grid) for grid in node.layout_grids]
            if node.guides:
                data["guides"] = [{"axis": guide.axis, "offset": guide.offset} for guide in node.guides]

    @staticmethod
    def _export_setting(setting: Any) -> Dict[str, Any]:
        result: Dict[str, Any] = {"format": setting.format}
        if setting.suffix:
            result["suffix"] = setting.suffix
        if setting.contents_only:
            result["contentsOnly"] = True
        constraint = setting.constraint
        if constraint is not None and (constraint.type, constraint.value) != ("SCALE", 1):
            result["constraint"] = {"type": constraint.type, "value": constraint.value}
        return result

    @staticmethod
    def _auto_layout(node: Any, data: Dict[str, Any]) -> None:
        data["layoutMode"] = node.layout_mode
        defaults: Tuple[Tuple[str, str, Any], ...] = (
            ("primaryAxisSizingMode", "primary_axis_sizing_mode", "AUTO"),
            ("counterAxisSizingMode", "counter_axis_sizing_mode", "AUTO"),
            ("primaryAxisAlignItems", "primary_axis_align_items", "MIN"),
            ("counterAxisAlignItems", "counter_axis_align_items", "MIN"),
            ("paddingTop", "padding_top", 0),
            ("paddingRight", "padding_right", 0),
            ("paddingBottom", "padding_bottom", 0),
            ("paddingLeft", "padding_left", 0),
            ("itemSpacing", "item_spacing", 0),
            ("layoutWrap", "layout_wrap", "NO_WRAP"),
            ("counterAxisSpacing", "counter_axis_spacing", 0),
        )
        for wire_name, attribute, default in defaults:
            value = getattr(node, attribute)
            if value != default:
                data[wire_name] = value
        if node.item_reverse_z_index:
            data["itemReverseZIndex"] = True

    @staticmethod
    def _layout_grid(grid: Any) -> Dict[str, Any]:
        result: Dict[str, Any] = {"pattern": grid.pattern}
        if grid.section_size is not None:
            result["sectionSize"] = grid.section_size
        if not grid.visible:
            result["visible"] = False
        if grid.color is not None:
            result["color"] = _color(grid.color)
        for wire_name, value in (
            ("alignment", grid.alignment),
            ("gutterSize", grid.gutter_size),
            ("offset", grid.offset),
            ("count", grid.count),
        ):
            if value is not None:
                result[wire_name] = value
        return result

    # ============================================
    # ================== TEXT ====================
    # ============================================

    async def _text_properties(self, node: Any, data: Dict[str, Any]) -> None:
        data["characters"] = node.characters

        font_name = node.font_name
        if font_name is not MIXED:
            data["fontName"] = {"family": font_name.family, "style": font_name.style}
        font_size = node.font_size
        if font_size is not MIXED:
            data["fontSize"] = font_size

        if node.text_align_horizontal != "LEFT":
            data["textAlignHorizontal"] = node.text_align_horizontal
        if node.text_align_vertical != "TOP":
            data["textAlignVertical"] = node.text_align_vertical

        line_height = node.line_height
        if line_height is not MIXED and line_height.unit != "AUTO":
            data["lineHeight"] = {"unit": line_height.unit, "value": line_height.value}
        letter_spacing = node.letter_spacing
        if letter_spacing is not MIXED and letter_spacing.value != 0:
            data["letterSpacing"] = {"unit": letter_spacing.unit, "value": letter_spacing.value}

        text_case = node.text_case
        if text_case is not MIXED and text_case != "ORIGINAL":
            data["textCase"] = text_case
        decoration = node.text_decoration
        if decoration is not MIXED and decoration != "NONE":
            data["textDecoration"] = decoration

        data["textAutoResize"] = node.text_auto_resize
        if node.paragraph_indent:
            data["paragraphIndent"] = node.paragraph_indent
        if node.paragraph_spacing:
            data["paragraphSpacing"] = node.paragraph_spacing

        hyperlink = node.hyperlink
        if hyperlink is not MIXED and hyperlink is not None:
            data["hyperlink"] = {"type": hyperlink.type, "value": hyperlink.value}
        if node.text_truncation != "DISABLED":
            data["textTruncation"] = node.text_truncation
        if node.max_lines is not None:
            data["maxLines"] = node.max_lines

        segments = await self._text_segments(node)
        if len(segments) > 1:
            data["textSegments"] = segments

    @staticmethod
    def _run_key(style: Any) -> Tuple[Any, ...]:
        return (
            style.font_name,
            style.font_size,
            style.text_case,
            style.text_decoration,
            style.line_height,
            style.letter_spacing,
            style.fills,
        )

    async def _text_segments(self, node: Any) -> List[Dict[str, Any]]:
        """Merge adjacent characters with equal resolved styles into maximal runs."""
        length = len(node.characters)
        runs: List[Tuple[int, int, Any]] = []
        start = 0
        for index in range(1, length + 1):
            if index == length or self._run_key(node.style_at(index)) != self._run_key(node.style_at(start)):
                runs.append((start, index, node.style_at(start)))
                start = index

        if len(runs) < 2:
            return []
        logger.debug(f"🔤 '{node.name}' has {len(runs)} text run(s)")
        return [await self._text_segment(s, e, style) for s, e, style in runs]

    async def _text_segment(self, start: int, end: int, style: Any) -> Dict[str, Any]:
        segment: Dict[str, Any] = {
            "start": start,
            "end": end,
            "fontName": {"family": style.font_name.family, "style": style.font_name.style},
            "fontSize": style.font_size,
            "fills": await self.fill_mapper.from_paints(style.fills),
        }
        if style.text_case != "ORIGINAL":
            segment["textCase"] = style.text_case
        if style.text_decoration != "NONE":
            segment["textDecoration"] = style.text_decoration
        if style.line_height.unit != "AUTO":
            segment["lineHeight"] = {"unit": style.line_height.unit, "value": style.line_height.value}
        if style.letter_spacing.value != 0:
            segment["letterSpacing"] = {"unit": style.letter_spacing.unit, "value": style.letter_spacing.value}
        if style.hyperlink is not None:
            segment["hyperlink"] = {"type": style.hyperlink.type, "value": style.hyperlink.value}
        return segment

    # ============================================
    # ============ SHAPES & VECTORS ==============
    # ============================================

    async def _ellipse_properties(self, node: Any, data: Dict[str, Any]) -> None:
        arc = node.arc_data
        values = (arc.starting_angle, arc.ending_angle, arc.inner_radius)
        if any(abs(got - full) > 1e-9 for got, full in zip(values, FULL_ARC)):
            data["arcData"] = {
                "startingAngle": arc.starting_angle,
                "endingAngle": arc.ending_angle,
                "innerRadius": arc.inner_radius,
            }

    async def _polygon_properties(self, node: Any, data: Dict[str, Any]) -> None:
        data["pointCount"] = node.point_count
        if node.type == "STAR":
            data["innerRadius"] = node.inner_radius

    async def _vector_properties(self, node: Any, data: Dict[str, Any]) -> None:
        if node.vector_paths:
            data["vectorPaths"] = [
                {"windingRule": "NONZERO" if path.winding_rule == "NONE" else path.winding_rule, "data": path.data}
                for path in node.vector_paths
            ]
        network = node.vector_network
        if network and network.get("vertices"):
            data["vectorNetwork"] = network

    async def _boolean_properties(self, node: Any, data: Dict[str, Any]) -> None:
        data["booleanOperation"] = node.boolean_operation

    # ============================================
    # ========= COMPONENTS & INSTANCES ===========
    # ============================================

    async def _component_properties(self, node: Any, data: Dict[str, Any]) -> None:
        data["componentKey"] = node.key
        if node.description:
            data["componentDescription"] = node.description
        definitions = node.component_property_definitions
        if definitions:
            data["componentPropertyDefinitions"] = definitions

    async def _instance_properties(self, node: Any, data: Dict[str, Any]) -> None:
        component = await node.get_main_component()
        if component is not None:
            data["mainComponentId"] = component.key
            data["_mainComponentNodeId"] = component.id
        else:
            logger.warning(f"⚠️ Main component of instance '{node.name}' is unavailable")

        properties = node.component_properties
        if properties:
            data["componentProperties"] = {
                key: {"type": prop["type"], "value": prop["value"]} for key, prop in properties.items()
            }
        if node.overrides:
            data["overrides"] = [
                {"id": override["id"], "overriddenFields": list(override["overriddenFields"])}
                for override in node.overrides
            ]
