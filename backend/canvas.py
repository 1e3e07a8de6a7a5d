"""
Canvas - in-memory host scene graph

This module provides the live object graph the translation engine writes to
and reads from. It mirrors the surface of a vector-design host application:

- Per-type object factories that place new objects on the current page
- Mutable setters that validate values and refuse unsupported properties
- A grouping primitive and four boolean-operation primitives that only
  accept already-placed objects
- Asynchronous font loading, bitmap creation and lookup by id or library key

Each object class declares the capabilities it supports; callers query them
with `node.supports(Capability.X)` before touching a property group. Setting
a property the object does not support raises CanvasError.

No text reflow and no auto-layout solving are performed.
"""

import hashlib
import io
import itertools
import logging
import math
import re
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from PIL import Image as PILImage, UnidentifiedImageError

logger = logging.getLogger(__name__)


class CanvasError(Exception):
    """Raised by the host when an operation or value is not allowed."""


class _Mixed:
    def __repr__(self) -> str:
        return "MIXED"


# Returned by text getters when the queried characters disagree
MIXED = _Mixed()


class Capability(Enum):
    FILLS = "fills"
    STROKES = "strokes"
    CORNERS = "corners"
    EFFECTS = "effects"
    BLEND = "blend"
    MASK = "mask"
    CONSTRAINTS = "constraints"
    LAYOUT_CHILD = "layout_child"
    AUTO_LAYOUT = "auto_layout"
    GRIDS = "grids"
    CLIPS = "clips"
    CHILDREN = "children"
    EXPORTS = "exports"
    TRANSFORM = "transform"


Transform = Tuple[Tuple[float, float, float], Tuple[float, float, float]]
IDENTITY: Transform = ((1.0, 0.0, 0.0), (0.0, 1.0, 0.0))


# ============================================
# =============== VALUE TYPES ================
# ============================================

@dataclass(frozen=True)
class RGB:
    r: float
    g: float
    b: float


@dataclass(frozen=True)
class RGBA:
    r: float
    g: float
    b: float
    a: float = 1.0


@dataclass(frozen=True)
class SolidPaint:
    color: RGB
    visible: bool = True
    opacity: float = 1.0
    blend_mode: str = "NORMAL"
    type: str = field(default="SOLID", init=False)


@dataclass(frozen=True)
class ColorStop:
    position: float
    color: RGBA


@dataclass(frozen=True)
class GradientPaint:
    type: str
    gradient_stops: Tuple[ColorStop, ...]
    gradient_transform: Optional[Transform] = None
    visible: bool = True
    opacity: float = 1.0
    blend_mode: str = "NORMAL"


@dataclass(frozen=True)
class ImagePaint:
    image_hash: str
    scale_mode: str = "FILL"
    image_transform: Optional[Transform] = None
    scaling_factor: Optional[float] = None
    rotation: float = 0.0
    filters: Optional[Dict[str, float]] = None
    visible: bool = True
    opacity: float = 1.0
    blend_mode: str = "NORMAL"
    type: str = field(default="IMAGE", init=False)


@dataclass(frozen=True)
class ShadowEffect:
    type: str
    color: RGBA
    offset: Tuple[float, float]
    radius: float
    spread: float = 0.0
    visible: bool = True
    blend_mode: str = "NORMAL"
    show_shadow_behind_node: bool = False


@dataclass(frozen=True)
class BlurEffect:
    type: str
    radius: float
    visible: bool = True


@dataclass(frozen=True)
class Constraints:
    horizontal: str = "MIN"
    vertical: str = "MIN"


@dataclass(frozen=True)
class LayoutGrid:
    pattern: str
    section_size: Optional[float] = None
    visible: bool = True
    color: Optional[RGBA] = None
    alignment: Optional[str] = None
    gutter_size: Optional[float] = None
    offset: Optional[float] = None
    count: Optional[int] = None


@dataclass(frozen=True)
class Guide:
    axis: str
    offset: float


@dataclass(frozen=True)
class ExportConstraint:
    type: str
    value: float


@dataclass(frozen=True)
class ExportSetting:
    format: str
    suffix: str = ""
    contents_only: bool = False
    constraint: Optional[ExportConstraint] = None


@dataclass(frozen=True)
class ArcData:
    starting_angle: float = 0.0
    ending_angle: float = 2 * math.pi
    inner_radius: float = 0.0


@dataclass(frozen=True)
class VectorPath:
    winding_rule: str
    data: str


@dataclass(frozen=True)
class FontName:
    family: str
    style: str


@dataclass(frozen=True)
class LineHeight:
    unit: str
    value: Optional[float] = None


@dataclass(frozen=True)
class LetterSpacing:
    unit: str
    value: float


@dataclass(frozen=True)
class Hyperlink:
    type: str
    value: str


BLACK = RGB(0.0, 0.0, 0.0)
WHITE = RGB(1.0, 1.0, 1.0)
DEFAULT_FONT = FontName("Inter", "Regular")


@dataclass(frozen=True)
class TextStyle:
    """Resolved style of one character."""

    font_name: FontName = DEFAULT_FONT
    font_size: float = 12.0
    text_case: str = "ORIGINAL"
    text_decoration: str = "NONE"
    line_height: LineHeight = LineHeight("AUTO")
    letter_spacing: LetterSpacing = LetterSpacing("PERCENT", 0.0)
    fills: Tuple[Any, ...] = (SolidPaint(BLACK),)
    hyperlink: Optional[Hyperlink] = None


DEFAULT_AVAILABLE_FONTS = (
    ("Inter", "Regular"),
    ("Inter", "Medium"),
    ("Inter", "Semi Bold"),
    ("Inter", "Bold"),
    ("Arial", "Regular"),
    ("Arial", "Bold"),
    ("Roboto", "Regular"),
    ("Roboto", "Bold"),
)

SUPPORTED_IMAGE_FORMATS = frozenset({"PNG", "JPEG", "GIF", "WEBP"})


# ============================================
# ============ PROPERTY RULES ================
# ============================================

BLEND_MODES = frozenset({
    "PASS_THROUGH", "NORMAL", "DARKEN", "MULTIPLY", "LINEAR_BURN", "COLOR_BURN",
    "LIGHTEN", "SCREEN", "LINEAR_DODGE", "COLOR_DODGE", "OVERLAY", "SOFT_LIGHT",
    "HARD_LIGHT", "DIFFERENCE", "EXCLUSION", "HUE", "SATURATION", "COLOR", "LUMINOSITY",
})
CONSTRAINT_TYPES = frozenset({"MIN", "CENTER", "MAX", "STRETCH", "SCALE"})

_CHOICES: Dict[str, frozenset] = {
    "blend_mode": BLEND_MODES,
    "stroke_align": frozenset({"INSIDE", "OUTSIDE", "CENTER"}),
    "stroke_cap": frozenset({"NONE", "ROUND", "SQUARE", "ARROW_LINES", "ARROW_EQUILATERAL",
                             "DIAMOND_FILLED", "TRIANGLE_FILLED", "CIRCLE_FILLED"}),
    "stroke_join": frozenset({"MITER", "BEVEL", "ROUND"}),
    "layout_mode": frozenset({"NONE", "HORIZONTAL", "VERTICAL"}),
    "primary_axis_sizing_mode": frozenset({"FIXED", "AUTO"}),
    "counter_axis_sizing_mode": frozenset({"FIXED", "AUTO"}),
    "primary_axis_align_items": frozenset({"MIN", "CENTER", "MAX", "SPACE_BETWEEN"}),
    "counter_axis_align_items": frozenset({"MIN", "CENTER", "MAX", "BASELINE"}),
    "layout_wrap": frozenset({"NO_WRAP", "WRAP"}),
    "layout_align": frozenset({"MIN", "CENTER", "MAX", "STRETCH", "INHERIT"}),
    "layout_positioning": frozenset({"AUTO", "ABSOLUTE"}),
    "text_align_horizontal": frozenset({"LEFT", "CENTER", "RIGHT", "JUSTIFIED"}),
    "text_align_vertical": frozenset({"TOP", "CENTER", "BOTTOM"}),
    "text_auto_resize": frozenset({"NONE", "WIDTH_AND_HEIGHT", "HEIGHT", "TRUNCATE"}),
    "text_case": frozenset({"ORIGINAL", "UPPER", "LOWER", "TITLE", "SMALL_CAPS", "SMALL_CAPS_FORCED"}),
    "text_decoration": frozenset({"NONE", "UNDERLINE", "STRIKETHROUGH"}),
    "text_truncation": frozenset({"DISABLED", "ENDING"}),
}

_RANGES: Dict[str, Tuple[float, float]] = {
    "opacity": (0.0, 1.0),
    "stroke_weight": (0.0, math.inf),
    "stroke_miter_limit": (0.0, math.inf),
    "corner_radius": (0.0, math.inf),
    "top_left_radius": (0.0, math.inf),
    "top_right_radius": (0.0, math.inf),
    "bottom_left_radius": (0.0, math.inf),
    "bottom_right_radius": (0.0, math.inf),
    "corner_smoothing": (0.0, 1.0),
    "padding_top": (0.0, math.inf),
    "padding_right": (0.0, math.inf),
    "padding_bottom": (0.0, math.inf),
    "padding_left": (0.0, math.inf),
    "item_spacing": (-math.inf, math.inf),
    "counter_axis_spacing": (0.0, math.inf),
    "layout_grow": (0.0, 1.0),
    "rotation": (-math.inf, math.inf),
    "font_size": (1.0, math.inf),
    "paragraph_indent": (0.0, math.inf),
    "paragraph_spacing": (0.0, math.inf),
    "point_count": (3, math.inf),
    "inner_radius": (0.0, 1.0),
}

_GATED_ATTRIBUTES: Dict[str, Capability] = {}
for _capability, _names in (
    (Capability.FILLS, ("fills",)),
    (Capability.STROKES, ("strokes", "stroke_weight", "stroke_align", "stroke_cap", "stroke_join",
                          "dash_pattern", "stroke_miter_limit")),
    (Capability.CORNERS, ("corner_radius", "top_left_radius", "top_right_radius", "bottom_left_radius",
                          "bottom_right_radius", "corner_smoothing")),
    (Capability.EFFECTS, ("effects",)),
    (Capability.BLEND, ("opacity", "blend_mode")),
    (Capability.MASK, ("is_mask",)),
    (Capability.CONSTRAINTS, ("constraints",)),
    (Capability.LAYOUT_CHILD, ("layout_align", "layout_grow", "layout_positioning")),
    (Capability.AUTO_LAYOUT, ("layout_mode", "primary_axis_sizing_mode", "counter_axis_sizing_mode",
                              "primary_axis_align_items", "counter_axis_align_items", "padding_top",
                              "padding_right", "padding_bottom", "padding_left", "item_spacing",
                              "layout_wrap", "counter_axis_spacing", "item_reverse_z_index")),
    (Capability.GRIDS, ("layout_grids", "guides")),
    (Capability.CLIPS, ("clips_content",)),
    (Capability.EXPORTS, ("export_settings",)),
    (Capability.TRANSFORM, ("rotation", "relative_transform")),
):
    for _name in _names:
        _GATED_ATTRIBUTES[_name] = _capability

_LAYOUT_CHILD_DEFAULTS = {"layout_align": "INHERIT", "layout_grow": 0.0, "layout_positioning": "AUTO"}

_PATH_DATA = re.compile(r"^\s*[Mm][MmLlHhVvCcSsQqTtAaZz0-9eE.,\s+-]*$")


def _check_number(name: str, value: Any, low: float = -math.inf, high: float = math.inf) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise CanvasError(f"Expected a finite number for {name}, got {value!r}")
    if value < low or value > high:
        raise CanvasError(f"{name} must be within [{low}, {high}], got {value}")
    return value


def _check_transform(name: str, value: Any) -> Transform:
    try:
        rows = tuple(tuple(float(_check_number(name, v)) for v in row) for row in value)
    except TypeError:
        raise CanvasError(f"Expected a 2x3 matrix for {name}")
    if len(rows) != 2 or any(len(row) != 3 for row in rows):
        raise CanvasError(f"Expected a 2x3 matrix for {name}")
    return rows


def _check_color(name: str, color: Any) -> None:
    for channel in ("r", "g", "b", "a"):
        if hasattr(color, channel):
            _check_number(f"{name}.{channel}", getattr(color, channel), 0.0, 1.0)


class _PaintRules:
    """Validation of paint lists; image paints must reference a known image."""

    def __init__(self, canvas: "Canvas"):
        self.canvas = canvas

    def __call__(self, name: str, paints: Iterable[Any]) -> Tuple[Any, ...]:
        result = []
        for paint in paints:
            if isinstance(paint, SolidPaint):
                _check_color(name, paint.color)
            elif isinstance(paint, GradientPaint):
                if paint.type not in ("GRADIENT_LINEAR", "GRADIENT_RADIAL", "GRADIENT_ANGULAR", "GRADIENT_DIAMOND"):
                    raise CanvasError(f"Unknown gradient type {paint.type!r}")
                for stop in paint.gradient_stops:
                    _check_number(f"{name}.position", stop.position, 0.0, 1.0)
                    _check_color(name, stop.color)
                if paint.gradient_transform is not None:
                    _check_transform(f"{name}.gradient_transform", paint.gradient_transform)
            elif isinstance(paint, ImagePaint):
                if self.canvas.get_image_by_hash(paint.image_hash) is None:
                    raise CanvasError(f"Image with hash {paint.image_hash!r} does not exist")
                if paint.scale_mode not in ("FILL", "FIT", "CROP", "TILE"):
                    raise CanvasError(f"Unknown scale mode {paint.scale_mode!r}")
            else:
                raise CanvasError(f"Unsupported paint object {paint!r}")
            _check_number(f"{name}.opacity", paint.opacity, 0.0, 1.0)
            if paint.blend_mode not in BLEND_MODES:
                raise CanvasError(f"Unknown blend mode {paint.blend_mode!r}")
            result.append(paint)
        return tuple(result)


def _effects(name: str, effects: Iterable[Any]) -> Tuple[Any, ...]:
    result = []
    for effect in effects:
        if isinstance(effect, ShadowEffect) and effect.type in ("DROP_SHADOW", "INNER_SHADOW"):
            _check_color(name, effect.color)
            if effect.blend_mode not in BLEND_MODES:
                raise CanvasError(f"Unknown blend mode {effect.blend_mode!r}")
        elif not (isinstance(effect, BlurEffect) and effect.type in ("LAYER_BLUR", "BACKGROUND_BLUR")):
            raise CanvasError(f"Unsupported effect {effect!r}")
        _check_number(f"{name}.radius", effect.radius, 0.0)
        result.append(effect)
    return tuple(result)


def _layout_grids(name: str, grids: Iterable[Any]) -> Tuple[LayoutGrid, ...]:
    result = []
    for grid in grids:
        if not isinstance(grid, LayoutGrid) or grid.pattern not in ("COLUMNS", "ROWS", "GRID"):
            raise CanvasError(f"Unsupported layout grid {grid!r}")
        if grid.pattern == "GRID":
            _check_number(f"{name}.section_size", grid.section_size, 1.0)
        elif grid.alignment is not None and grid.alignment not in ("MIN", "MAX", "CENTER", "STRETCH"):
            raise CanvasError(f"Unknown grid alignment {grid.alignment!r}")
        if grid.color is not None:
            _check_color(name, grid.color)
        result.append(grid)
    return tuple(result)


def _guides(name: str, guides: Iterable[Any]) -> Tuple[Guide, ...]:
    result = []
    for guide in guides:
        if not isinstance(guide, Guide) or guide.axis not in ("X", "Y"):
            raise CanvasError(f"Unsupported guide {guide!r}")
        _check_number(f"{name}.offset", guide.offset)
        result.append(guide)
    return tuple(result)


def _export_settings(name: str, settings: Iterable[Any]) -> Tuple[ExportSetting, ...]:
    result = []
    for setting in settings:
        if not isinstance(setting, ExportSetting) or setting.format not in ("PNG", "JPG", "SVG", "PDF"):
            raise CanvasError(f"Unsupported export setting {setting!r}")
        if setting.constraint is not None and setting.constraint.type not in ("SCALE", "WIDTH", "HEIGHT"):
            raise CanvasError(f"Unknown export constraint {setting.constraint.type!r}")
        result.append(setting)
    return tuple(result)


def _dash_pattern(name: str, pattern: Iterable[Any]) -> Tuple[float, ...]:
    return tuple(_check_number(name, v, 0.0) for v in pattern)


def _constraints(name: str, value: Any) -> Constraints:
    if not isinstance(value, Constraints) or value.horizontal not in CONSTRAINT_TYPES or value.vertical not in CONSTRAINT_TYPES:
        raise CanvasError(f"Unsupported constraints {value!r}")
    return value


def _vector_paths(name: str, paths: Iterable[Any]) -> Tuple[VectorPath, ...]:
    result = []
    for path in paths:
        if not isinstance(path, VectorPath) or path.winding_rule not in ("NONZERO", "EVENODD", "NONE"):
            raise CanvasError(f"Unsupported vector path {path!r}")
        if not _PATH_DATA.match(path.data or ""):
            raise CanvasError(f"Invalid path data {path.data!r}")
        result.append(path)
    return tuple(result)


def _arc_data(name: str, value: Any) -> ArcData:
    if not isinstance(value, ArcData):
        raise CanvasError(f"Unsupported arc data {value!r}")
    _check_number(f"{name}.starting_angle", value.starting_angle)
    _check_number(f"{name}.ending_angle", value.ending_angle)
    _check_number(f"{name}.inner_radius", value.inner_radius, 0.0, 1.0)
    return value


_COERCE = {
    "dash_pattern": _dash_pattern,
    "effects": _effects,
    "layout_grids": _layout_grids,
    "guides": _guides,
    "export_settings": _export_settings,
    "constraints": _constraints,
    "vector_paths": _vector_paths,
    "arc_data": _arc_data,
    "relative_transform": _check_transform,
}


# ============================================
# ================ SCENE NODES ===============
# ============================================

class _ChildList:
    """Ordered child storage shared by pages and container nodes."""

    def _init_children(self) -> None:
        object.__setattr__(self, "_children", [])

    @property
    def children(self) -> Tuple["SceneNode", ...]:
        return tuple(self._children)

    def append_child(self, node: "SceneNode") -> None:
        self.insert_child(len(self._children), node)

    def insert_child(self, index: int, node: "SceneNode") -> None:
        if node is self or (isinstance(self, SceneNode) and self.is_descendant_of(node)):
            raise CanvasError("Cannot insert a node into its own subtree")
        if node.removed:
            raise CanvasError(f"Node {node.id} has been removed")
        if node.parent is self:
            current = self._children.index(node)
            if current < index:
                index -= 1
        node._detach()
        index = max(0, min(index, len(self._children)))
        self._children.insert(index, node)
        object.__setattr__(node, "parent", self)
        self._children_changed()

    def _children_changed(self) -> None:
        pass


class SceneNode:
    """Base class of every live canvas object."""

    type = "NODE"
    capabilities: frozenset = frozenset()
    default_fills: Tuple[Any, ...] = ()
    default_strokes: Tuple[Any, ...] = ()
    default_stroke_align = "INSIDE"
    default_size = (100.0, 100.0)

    def __init__(self, canvas: "Canvas", name: str | None = None):
        init = object.__setattr__
        init(self, "canvas", canvas)
        init(self, "id", canvas._allocate_id())
        init(self, "name", name or self.type.replace("_", " ").title())
        init(self, "parent", None)
        init(self, "removed", False)
        init(self, "visible", True)
        init(self, "locked", False)
        init(self, "_transform", IDENTITY)
        init(self, "_width", float(self.default_size[0]))
        init(self, "_height", float(self.default_size[1]))
        self._init_capabilities()
        canvas._register(self)

    def _init_capabilities(self) -> None:
        init = object.__setattr__
        caps = self.capabilities
        if Capability.FILLS in caps:
            init(self, "fills", tuple(self.default_fills))
        if Capability.STROKES in caps:
            init(self, "strokes", tuple(self.default_strokes))
            init(self, "stroke_weight", 1.0)
            init(self, "stroke_align", self.default_stroke_align)
            init(self, "stroke_cap", "NONE")
            init(self, "stroke_join", "MITER")
            init(self, "dash_pattern", ())
            init(self, "stroke_miter_limit", 4.0)
        if Capability.CORNERS in caps:
            for corner in ("top_left_radius", "top_right_radius", "bottom_left_radius", "bottom_right_radius"):
                init(self, corner, 0.0)
            init(self, "corner_smoothing", 0.0)
        if Capability.EFFECTS in caps:
            init(self, "effects", ())
        if Capability.BLEND in caps:
            init(self, "opacity", 1.0)
            init(self, "blend_mode", "PASS_THROUGH")
        if Capability.MASK in caps:
            init(self, "is_mask", False)
        if Capability.CONSTRAINTS in caps:
            init(self, "constraints", Constraints())
        if Capability.LAYOUT_CHILD in caps:
            for name, value in _LAYOUT_CHILD_DEFAULTS.items():
                init(self, name, value)
        if Capability.AUTO_LAYOUT in caps:
            init(self, "layout_mode", "NONE")
            init(self, "primary_axis_sizing_mode", "AUTO")
            init(self, "counter_axis_sizing_mode", "AUTO")
            init(self, "primary_axis_align_items", "MIN")
            init(self, "counter_axis_align_items", "MIN")
            for name in ("padding_top", "padding_right", "padding_bottom", "padding_left",
                         "item_spacing", "counter_axis_spacing"):
                init(self, name, 0.0)
            init(self, "layout_wrap", "NO_WRAP")
            init(self, "item_reverse_z_index", False)
        if Capability.GRIDS in caps:
            init(self, "layout_grids", ())
            init(self, "guides", ())
        if Capability.CLIPS in caps:
            init(self, "clips_content", True)
        if Capability.EXPORTS in caps:
            init(self, "export_settings", ())
        if Capability.CHILDREN in caps:
            self._init_children()

    def __setattr__(self, name: str, value: Any) -> None:
        capability = _GATED_ATTRIBUTES.get(name)
        if capability is not None and capability not in self.capabilities:
            raise CanvasError(f"{self.type} does not support '{name}'")
        if self.removed:
            raise CanvasError(f"Node {self.id} has been removed")
        choices = _CHOICES.get(name)
        if choices is not None and value not in choices:
            raise CanvasError(f"Invalid value for {name}: {value!r}")
        bounds = _RANGES.get(name)
        if bounds is not None:
            _check_number(name, value, *bounds)
        if name in ("fills", "strokes"):
            value = _PaintRules(self.canvas)(name, value)
        elif name in _COERCE:
            value = _COERCE[name](name, value)
        if name in _LAYOUT_CHILD_DEFAULTS and value != _LAYOUT_CHILD_DEFAULTS[name]:
            if not self.parent_has_auto_layout():
                raise CanvasError(f"Cannot set {name} on {self.name!r}: parent does not use auto-layout")
        object.__setattr__(self, name, value)

    def supports(self, capability: Capability) -> bool:
        return capability in self.capabilities

    def __repr__(self) -> str:
        return f"<{self.type} {self.id} {self.name!r}>"

    # Geometry
    @property
    def x(self) -> float:
        return self._transform[0][2]

    @x.setter
    def x(self, value: float) -> None:
        _check_number("x", value)
        (a, b, _), row = self._transform
        object.__setattr__(self, "_transform", ((a, b, float(value)), row))

    @property
    def y(self) -> float:
        return self._transform[1][2]

    @y.setter
    def y(self, value: float) -> None:
        _check_number("y", value)
        row, (c, d, _) = self._transform
        object.__setattr__(self, "_transform", (row, (c, d, float(value))))

    @property
    def width(self) -> float:
        return self._width

    @property
    def height(self) -> float:
        return self._height

    @property
    def rotation(self) -> float:
        (a, _, _), (c, _, _) = self._transform
        degrees = math.degrees(math.atan2(-c, a))
        return 0.0 if abs(degrees) < 1e-9 else degrees

    @rotation.setter
    def rotation(self, value: float) -> None:
        theta = math.radians(value)
        cos, sin = math.cos(theta), math.sin(theta)
        object.__setattr__(self, "_transform", ((cos, sin, self.x), (-sin, cos, self.y)))

    @property
    def relative_transform(self) -> Transform:
        return self._transform

    @relative_transform.setter
    def relative_transform(self, value: Transform) -> None:
        object.__setattr__(self, "_transform", value)

    def resize(self, width: float, height: float) -> None:
        _check_number("width", width, 0.01)
        _check_number("height", height, 0.01)
        object.__setattr__(self, "_width", float(width))
        object.__setattr__(self, "_height", float(height))

    def resize_without_constraints(self, width: float, height: float) -> None:
        SceneNode.resize(self, width, height)

    # Corners
    @property
    def corner_radius(self) -> Any:
        values = {self.top_left_radius, self.top_right_radius, self.bottom_left_radius, self.bottom_right_radius}
        return values.pop() if len(values) == 1 else MIXED

    @corner_radius.setter
    def corner_radius(self, value: float) -> None:
        for corner in ("top_left_radius", "top_right_radius", "bottom_left_radius", "bottom_right_radius"):
            object.__setattr__(self, corner, float(value))

    # Tree
    def parent_has_auto_layout(self) -> bool:
        parent = self.parent
        return isinstance(parent, SceneNode) and parent.supports(Capability.AUTO_LAYOUT) and parent.layout_mode != "NONE"

    def is_descendant_of(self, node: Any) -> bool:
        current = self.parent
        while current is not None:
            if current is node:
                return True
            current = getattr(current, "parent", None)
        return False

    def _detach(self) -> None:
        parent = self.parent
        if parent is not None:
            parent._children.remove(self)
            object.__setattr__(self, "parent", None)
            parent._children_changed()

    def remove(self) -> None:
        if self.removed:
            return
        self._detach()
        for node in self._subtree():
            object.__setattr__(node, "removed", True)
            self.canvas._forget(node)

    def _subtree(self) -> List["SceneNode"]:
        nodes = [self]
        for child in getattr(self, "_children", ()):
            nodes.extend(child._subtree())
        return nodes

    def clone(self) -> "SceneNode":
        """Copy this node and its subtree; the copy is not placed anywhere."""
        copy = object.__new__(type(self))
        copy.__dict__.update(self.__dict__)
        object.__setattr__(copy, "id", self.canvas._allocate_id())
        object.__setattr__(copy, "parent", None)
        copy._after_clone(self)
        self.canvas._register(copy)
        return copy

    def _after_clone(self, source: "SceneNode") -> None:
        if "_children" in source.__dict__:
            self._init_children()
            for child in source._children:
                twin = child.clone()
                self._children.append(twin)
                object.__setattr__(twin, "parent", self)


_SHAPE_CAPABILITIES = frozenset({
    Capability.FILLS, Capability.STROKES, Capability.EFFECTS, Capability.BLEND, Capability.MASK,
    Capability.CONSTRAINTS, Capability.LAYOUT_CHILD, Capability.EXPORTS, Capability.TRANSFORM,
})
_FRAME_CAPABILITIES = _SHAPE_CAPABILITIES | {
    Capability.CORNERS, Capability.AUTO_LAYOUT, Capability.GRIDS, Capability.CLIPS, Capability.CHILDREN,
}

_GREY = (SolidPaint(RGB(0.85, 0.85, 0.85)),)


class FrameNode(_ChildList, SceneNode):
    type = "FRAME"
    capabilities = _FRAME_CAPABILITIES
    default_fills = (SolidPaint(WHITE),)


class ComponentNode(FrameNode):
    type = "COMPONENT"

    def __init__(self, canvas: "Canvas", name: str | None = None):
        super().__init__(canvas, name)
        object.__setattr__(self, "key", canvas._allocate_key(self.id))
        object.__setattr__(self, "description", "")
        object.__setattr__(self, "_property_definitions", {})

    @property
    def component_property_definitions(self) -> Dict[str, Dict[str, Any]]:
        return {key: dict(value) for key, value in self._property_definitions.items()}

    def add_component_property(self, name: str, property_type: str, default_value: Any,
                               options: Optional[Dict[str, Any]] = None) -> str:
        if property_type == "VARIANT":
            raise CanvasError("Variant properties can only be added to component sets")
        if property_type not in ("BOOLEAN", "TEXT", "INSTANCE_SWAP"):
            raise CanvasError(f"Unknown component property type {property_type!r}")
        _check_property_value(name, property_type, default_value)
        if name in self._property_definitions:
            raise CanvasError(f"Component property {name!r} already exists")
        definition: Dict[str, Any] = {"type": property_type, "defaultValue": default_value}
        if options and options.get("preferredValues") is not None:
            definition["preferredValues"] = list(options["preferredValues"])
        self._property_definitions[name] = definition
        return name

    def create_instance(self) -> "InstanceNode":
        instance = InstanceNode(self.canvas, self)
        self.canvas.current_page.append_child(instance)
        return instance

    def _after_clone(self, source: SceneNode) -> None:
        super()._after_clone(source)
        object.__setattr__(self, "key", self.canvas._allocate_key(self.id))
        object.__setattr__(self, "_property_definitions", source.component_property_definitions)


def _check_property_value(name: str, property_type: str, value: Any) -> None:
    if property_type == "BOOLEAN" and not isinstance(value, bool):
        raise CanvasError(f"Property {name!r} expects a boolean, got {value!r}")
    if property_type in ("TEXT", "VARIANT", "INSTANCE_SWAP") and not isinstance(value, str):
        raise CanvasError(f"Property {name!r} expects a string, got {value!r}")


# Attributes an instance inherits from its main component at creation
_INHERITED_ATTRIBUTES = (
    "fills", "strokes", "stroke_weight", "stroke_align", "stroke_cap", "stroke_join", "dash_pattern",
    "stroke_miter_limit", "top_left_radius", "top_right_radius", "bottom_left_radius",
    "bottom_right_radius", "corner_smoothing", "effects", "opacity", "blend_mode", "layout_mode",
    "primary_axis_sizing_mode", "counter_axis_sizing_mode", "primary_axis_align_items",
    "counter_axis_align_items", "padding_top", "padding_right", "padding_bottom", "padding_left",
    "item_spacing", "layout_wrap", "counter_axis_spacing", "item_reverse_z_index", "layout_grids",
    "clips_content", "_width", "_height",
)


class InstanceNode(FrameNode):
    type = "INSTANCE"

    def __init__(self, canvas: "Canvas", main_component: ComponentNode):
        super().__init__(canvas, main_component.name)
        for name in _INHERITED_ATTRIBUTES:
            object.__setattr__(self, name, getattr(main_component, name))
        object.__setattr__(self, "main_component", main_component)
        object.__setattr__(self, "overrides", [])
        properties = {
            key: {"type": definition["type"], "value": definition["defaultValue"]}
            for key, definition in main_component.component_property_definitions.items()
        }
        object.__setattr__(self, "_component_properties", properties)
        for child in main_component.children:
            self.append_child(child.clone())

    @property
    def component_properties(self) -> Dict[str, Dict[str, Any]]:
        return {key: dict(value) for key, value in self._component_properties.items()}

    async def get_main_component(self) -> Optional[ComponentNode]:
        component = self.main_component
        return None if component.removed and component.key not in self.canvas._library else component

    def set_properties(self, properties: Dict[str, Any]) -> None:
        for key, value in properties.items():
            current = self._component_properties.get(key)
            if current is None:
                raise CanvasError(f"Component property {key!r} does not exist on this instance")
            _check_property_value(key, current["type"], value)
        for key, value in properties.items():
            self._component_properties[key]["value"] = value

    def _after_clone(self, source: SceneNode) -> None:
        super()._after_clone(source)
        object.__setattr__(self, "overrides", list(source.overrides))
        object.__setattr__(self, "_component_properties", source.component_properties)


class ComponentSetNode(FrameNode):
    type = "COMPONENT_SET"
    default_fills = ()


class SectionNode(_ChildList, SceneNode):
    type = "SECTION"
    capabilities = frozenset({Capability.FILLS, Capability.CHILDREN})
    default_fills = (SolidPaint(WHITE),)

    def resize(self, width: float, height: float) -> None:
        raise CanvasError("Sections can only be resized with resize_without_constraints")


class _DerivedBounds(_ChildList, SceneNode):
    """Containers whose bounds are the union of their children."""

    default_size = (0.0, 0.0)

    def _bounds(self) -> Tuple[float, float, float, float]:
        children = self._children
        if not children:
            return 0.0, 0.0, 0.0, 0.0
        left = min(child.x for child in children)
        top = min(child.y for child in children)
        right = max(child.x + child.width for child in children)
        bottom = max(child.y + child.height for child in children)
        return left, top, right, bottom

    @property
    def x(self) -> float:
        return self._bounds()[0]

    @x.setter
    def x(self, value: float) -> None:
        delta = _check_number("x", value) - self.x
        for child in self._children:
            child.x = child.x + delta

    @property
    def y(self) -> float:
        return self._bounds()[1]

    @y.setter
    def y(self, value: float) -> None:
        delta = _check_number("y", value) - self.y
        for child in self._children:
            child.y = child.y + delta

    @property
    def width(self) -> float:
        left, _, right, _ = self._bounds()
        return right - left

    @property
    def height(self) -> float:
        _, top, _, bottom = self._bounds()
        return bottom - top

    @property
    def relative_transform(self) -> Transform:
        return ((1.0, 0.0, self.x), (0.0, 1.0, self.y))

    def resize(self, width: float, height: float) -> None:
        raise CanvasError(f"{self.type} bounds follow its children and cannot be resized")

    def _children_changed(self) -> None:
        # Emptied groups disappear from the document
        if not self._children and self.parent is not None:
            self.remove()


class GroupNode(_DerivedBounds):
    type = "GROUP"
    capabilities = frozenset({
        Capability.EFFECTS, Capability.BLEND, Capability.MASK, Capability.LAYOUT_CHILD,
        Capability.EXPORTS, Capability.CHILDREN,
    })


class BooleanOperationNode(_DerivedBounds):
    type = "BOOLEAN_OPERATION"
    capabilities = frozenset({
        Capability.FILLS, Capability.STROKES, Capability.EFFECTS, Capability.BLEND, Capability.MASK,
        Capability.LAYOUT_CHILD, Capability.EXPORTS, Capability.CHILDREN,
    })
    default_fills = _GREY

    def __init__(self, canvas: "Canvas", operation: str):
        super().__init__(canvas, operation.title())
        object.__setattr__(self, "boolean_operation", operation)


class RectangleNode(SceneNode):
    type = "RECTANGLE"
    capabilities = _SHAPE_CAPABILITIES | {Capability.CORNERS}
    default_fills = _GREY


class EllipseNode(SceneNode):
    type = "ELLIPSE"
    capabilities = _SHAPE_CAPABILITIES
    default_fills = _GREY

    def __init__(self, canvas: "Canvas", name: str | None = None):
        super().__init__(canvas, name)
        object.__setattr__(self, "arc_data", ArcData())


class PolygonNode(SceneNode):
    type = "POLYGON"
    capabilities = _SHAPE_CAPABILITIES
    default_fills = _GREY

    def __init__(self, canvas: "Canvas", name: str | None = None):
        super().__init__(canvas, name)
        object.__setattr__(self, "point_count", 3)


class StarNode(PolygonNode):
    type = "STAR"

    def __init__(self, canvas: "Canvas", name: str | None = None):
        super().__init__(canvas, name)
        object.__setattr__(self, "point_count", 5)
        object.__setattr__(self, "inner_radius", 0.382)


class LineNode(SceneNode):
    type = "LINE"
    capabilities = _SHAPE_CAPABILITIES
    default_strokes = (SolidPaint(BLACK),)
    default_stroke_align = "CENTER"
    default_size = (100.0, 0.0)

    def resize(self, width: float, height: float) -> None:
        if height != 0:
            raise CanvasError("Lines must have a height of 0")
        _check_number("width", width, 0.01)
        object.__setattr__(self, "_width", float(width))


class VectorNode(SceneNode):
    type = "VECTOR"
    capabilities = _SHAPE_CAPABILITIES
    default_stroke_align = "CENTER"

    def __init__(self, canvas: "Canvas", name: str | None = None):
        super().__init__(canvas, name)
        object.__setattr__(self, "vector_paths", ())
        object.__setattr__(self, "_vector_network", None)

    @property
    def vector_network(self) -> Optional[Dict[str, Any]]:
        return _deep_copy(self._vector_network)

    async def set_vector_network(self, network: Dict[str, Any]) -> None:
        vertices = network.get("vertices") or []
        for segment in network.get("segments") or []:
            for end in ("start", "end"):
                if not 0 <= segment.get(end, -1) < len(vertices):
                    raise CanvasError(f"Segment references missing vertex {segment.get(end)!r}")
        object.__setattr__(self, "_vector_network", _deep_copy(network))


def _deep_copy(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _deep_copy(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_deep_copy(v) for v in value]
    return value


# TextStyle field backing each node-level text property
_TEXT_STYLE_FIELDS = {
    "font_name": "font_name",
    "font_size": "font_size",
    "text_case": "text_case",
    "text_decoration": "text_decoration",
    "line_height": "line_height",
    "letter_spacing": "letter_spacing",
    "fills": "fills",
    "hyperlink": "hyperlink",
}


class TextNode(SceneNode):
    """
    Text object with per-character styles.

    Node-level getters return MIXED when characters disagree. Changing the
    characters or any font requires the fonts involved to be loaded first.
    """

    type = "TEXT"
    capabilities = _SHAPE_CAPABILITIES
    default_fills = TextStyle().fills
    default_size = (0.0, 0.0)

    def __init__(self, canvas: "Canvas", name: str | None = None):
        super().__init__(canvas, name)
        init = object.__setattr__
        init(self, "text_align_horizontal", "LEFT")
        init(self, "text_align_vertical", "TOP")
        init(self, "text_auto_resize", "WIDTH_AND_HEIGHT")
        init(self, "paragraph_indent", 0.0)
        init(self, "paragraph_spacing", 0.0)
        init(self, "text_truncation", "DISABLED")
        init(self, "max_lines", None)

    def _init_capabilities(self) -> None:
        # Fills are stored in the character styles, which must exist first
        init = object.__setattr__
        init(self, "_characters", "")
        init(self, "_styles", [])
        init(self, "_base_style", TextStyle())
        super()._init_capabilities()

    def _after_clone(self, source: SceneNode) -> None:
        object.__setattr__(self, "_styles", list(source._styles))

    def _require_loaded(self, fonts: Iterable[FontName]) -> None:
        for font in set(fonts):
            if not self.canvas.is_font_loaded(font):
                raise CanvasError(f"Font {font.family} {font.style} has not been loaded")

    @property
    def characters(self) -> str:
        return self._characters

    @characters.setter
    def characters(self, value: str) -> None:
        if not isinstance(value, str):
            raise CanvasError(f"Expected a string for characters, got {value!r}")
        fonts = [style.font_name for style in self._styles] or [self._base_style.font_name]
        self._require_loaded(fonts)
        style = self._styles[0] if self._styles else self._base_style
        object.__setattr__(self, "_characters", value)
        object.__setattr__(self, "_styles", [style] * len(value))

    # Style access
    def _uniform(self, styles: List[TextStyle], attribute: str) -> Any:
        values = [getattr(style, attribute) for style in styles]
        if not values:
            return getattr(self._base_style, attribute)
        first = values[0]
        return first if all(value == first for value in values[1:]) else MIXED

    def _check_range(self, start: int, end: int) -> None:
        if not (isinstance(start, int) and isinstance(end, int) and 0 <= start < end <= len(self._characters)):
            raise CanvasError(f"Invalid character range [{start}, {end}) for length {len(self._characters)}")

    def _get_range(self, attribute: str, start: int, end: int) -> Any:
        self._check_range(start, end)
        return self._uniform(self._styles[start:end], attribute)

    def _set_range(self, attribute: str, start: int, end: int, value: Any) -> None:
        self._check_range(start, end)
        value = self._validate_style(attribute, value)
        styles = self._styles
        for index in range(start, end):
            styles[index] = replace(styles[index], **{attribute: value})

    def _set_all(self, attribute: str, value: Any) -> None:
        value = self._validate_style(attribute, value)
        object.__setattr__(self, "_base_style", replace(self._base_style, **{attribute: value}))
        object.__setattr__(self, "_styles", [replace(s, **{attribute: value}) for s in self._styles])

    def _validate_style(self, attribute: str, value: Any) -> Any:
        if attribute == "font_name":
            if not isinstance(value, FontName):
                raise CanvasError(f"Expected a FontName, got {value!r}")
            self._require_loaded([value])
        elif attribute == "font_size":
            _check_number("font_size", value, 1.0)
        elif attribute in ("text_case", "text_decoration"):
            if value not in _CHOICES[attribute]:
                raise CanvasError(f"Invalid value for {attribute}: {value!r}")
        elif attribute == "line_height":
            if not isinstance(value, LineHeight) or value.unit not in ("AUTO", "PIXELS", "PERCENT"):
                raise CanvasError(f"Invalid line height {value!r}")
            if value.unit != "AUTO":
                _check_number("line_height", value.value, 0.0)
        elif attribute == "letter_spacing":
            if not isinstance(value, LetterSpacing) or value.unit not in ("PIXELS", "PERCENT"):
                raise CanvasError(f"Invalid letter spacing {value!r}")
            _check_number("letter_spacing", value.value)
        elif attribute == "fills":
            value = _PaintRules(self.canvas)("fills", value)
        elif attribute == "hyperlink":
            if value is not None and (not isinstance(value, Hyperlink) or value.type not in ("URL", "NODE")):
                raise CanvasError(f"Invalid hyperlink {value!r}")
        return value

    def style_at(self, index: int) -> TextStyle:
        self._check_range(index, index + 1)
        return self._styles[index]

    def get_range_font_name(self, start: int, end: int) -> Any:
        return self._get_range("font_name", start, end)

    def set_range_font_name(self, start: int, end: int, value: FontName) -> None:
        self._set_range("font_name", start, end, value)

    def get_range_font_size(self, start: int, end: int) -> Any:
        return self._get_range("font_size", start, end)

    def set_range_font_size(self, start: int, end: int, value: float) -> None:
        self._set_range("font_size", start, end, value)

    def get_range_text_case(self, start: int, end: int) -> Any:
        return self._get_range("text_case", start, end)

    def set_range_text_case(self, start: int, end: int, value: str) -> None:
        self._set_range("text_case", start, end, value)

    def get_range_text_decoration(self, start: int, end: int) -> Any:
        return self._get_range("text_decoration", start, end)

    def set_range_text_decoration(self, start: int, end: int, value: str) -> None:
        self._set_range("text_decoration", start, end, value)

    def get_range_line_height(self, start: int, end: int) -> Any:
        return self._get_range("line_height", start, end)

    def set_range_line_height(self, start: int, end: int, value: LineHeight) -> None:
        self._set_range("line_height", start, end, value)

    def get_range_letter_spacing(self, start: int, end: int) -> Any:
        return self._get_range("letter_spacing", start, end)

    def set_range_letter_spacing(self, start: int, end: int, value: LetterSpacing) -> None:
        self._set_range("letter_spacing", start, end, value)

    def get_range_fills(self, start: int, end: int) -> Any:
        return self._get_range("fills", start, end)

    def set_range_fills(self, start: int, end: int, value: Iterable[Any]) -> None:
        self._set_range("fills", start, end, tuple(value))

    def get_range_hyperlink(self, start: int, end: int) -> Any:
        return self._get_range("hyperlink", start, end)

    def set_range_hyperlink(self, start: int, end: int, value: Optional[Hyperlink]) -> None:
        self._set_range("hyperlink", start, end, value)


def _text_style_property(attribute: str) -> property:
    def getter(self: TextNode) -> Any:
        return self._uniform(self._styles, attribute)

    def setter(self: TextNode, value: Any) -> None:
        self._set_all(attribute, value)

    return property(getter, setter)


for _attribute in _TEXT_STYLE_FIELDS:
    setattr(TextNode, _attribute, _text_style_property(_attribute))


class PageNode(_ChildList):
    """A page of the document; top-level objects live here."""

    type = "PAGE"

    def __init__(self, canvas: "Canvas", name: str):
        self.canvas = canvas
        self.name = name
        self.parent = None
        self.removed = False
        self._selection: List[SceneNode] = []
        self._init_children()

    @property
    def selection(self) -> Tuple[SceneNode, ...]:
        return tuple(node for node in self._selection if not node.removed)

    @selection.setter
    def selection(self, nodes: Iterable[SceneNode]) -> None:
        self._selection = [node for node in nodes if not node.removed]

    def _children_changed(self) -> None:
        self._selection = [node for node in self._selection if not node.removed]


class Image:
    """Bitmap registered with the canvas, addressed by content hash."""

    def __init__(self, image_hash: str, data: bytes, width: int, height: int, image_format: str):
        self.hash = image_hash
        self.width = width
        self.height = height
        self.format = image_format
        self._data = data

    async def get_bytes(self) -> bytes:
        return self._data


# ============================================
# ================== CANVAS ==================
# ============================================

class Canvas:
    """
    In-memory document with a current page, selection and host primitives.

    Args:
        fonts: (family, style) pairs available for loading
    """

    def __init__(self, fonts: Iterable[Tuple[str, str]] | None = None):
        self._ids = itertools.count(1)
        self._nodes: Dict[str, SceneNode] = {}
        self._created: List[SceneNode] = []
        self._images: Dict[str, Image] = {}
        self._library: Dict[str, ComponentNode] = {}
        self._available_fonts = {FontName(family, style) for family, style in (fonts or DEFAULT_AVAILABLE_FONTS)}
        self._loaded_fonts: set = set()
        self.pages = [PageNode(self, "Page 1")]
        self.current_page = self.pages[0]

    # Bookkeeping
    def _allocate_id(self) -> str:
        return f"1:{next(self._ids)}"

    def _allocate_key(self, node_id: str) -> str:
        return hashlib.sha1(f"component:{node_id}:{id(self)}".encode()).hexdigest()

    def _register(self, node: SceneNode) -> None:
        self._nodes[node.id] = node
        self._created.append(node)

    def _forget(self, node: SceneNode) -> None:
        self._nodes.pop(node.id, None)

    def checkpoint(self) -> int:
        """Mark the creation log; see discard_since."""
        return len(self._created)

    def clear_creation_log(self) -> None:
        """Forget logged creations; earlier checkpoints become invalid."""
        self._created.clear()

    def discard_since(self, checkpoint: int, keep: Iterable[SceneNode] = ()) -> int:
        """
        Remove every object created after `checkpoint` that still exists.

        Nodes in `keep`, and anything inside them, survive unless an
        ancestor of theirs is itself discarded.
        """
        kept = list(keep)
        removed = 0
        for node in reversed(self._created[checkpoint:]):
            if node.removed:
                continue
            if any(node is k or node.is_descendant_of(k) for k in kept):
                continue
            node.remove()
            removed += 1
        return removed

    # Factories
    def _place(self, node: SceneNode) -> Any:
        self.current_page.append_child(node)
        return node

    def create_frame(self) -> FrameNode:
        return self._place(FrameNode(self))

    def create_component(self) -> ComponentNode:
        return self._place(ComponentNode(self))

    def create_section(self) -> SectionNode:
        return self._place(SectionNode(self))

    def create_rectangle(self) -> RectangleNode:
        return self._place(RectangleNode(self))

    def create_ellipse(self) -> EllipseNode:
        return self._place(EllipseNode(self))

    def create_polygon(self) -> PolygonNode:
        return self._place(PolygonNode(self))

    def create_star(self) -> StarNode:
        return self._place(StarNode(self))

    def create_line(self) -> LineNode:
        return self._place(LineNode(self))

    def create_vector(self) -> VectorNode:
        return self._place(VectorNode(self))

    def create_text(self) -> TextNode:
        return self._place(TextNode(self))

    # Structural primitives
    def _adopt(self, container: _DerivedBounds, nodes: List[SceneNode], parent: Any, index: int | None) -> Any:
        nodes = list(nodes)
        if not nodes:
            raise CanvasError(f"{container.type} requires at least one node")
        for node in nodes:
            if node.removed or node.parent is None:
                raise CanvasError(f"Node {node.id} must be placed before it can be grouped")
        parent.insert_child(len(parent.children) if index is None else index, container)
        for node in nodes:
            container.append_child(node)
        return container

    def group(self, nodes: List[SceneNode], parent: Any, index: int | None = None) -> GroupNode:
        return self._adopt(GroupNode(self), nodes, parent, index)

    def _boolean(self, operation: str, nodes: List[SceneNode], parent: Any, index: int | None) -> BooleanOperationNode:
        return self._adopt(BooleanOperationNode(self, operation), nodes, parent, index)

    def union(self, nodes: List[SceneNode], parent: Any, index: int | None = None) -> BooleanOperationNode:
        return self._boolean("UNION", nodes, parent, index)

    def subtract(self, nodes: List[SceneNode], parent: Any, index: int | None = None) -> BooleanOperationNode:
        return self._boolean("SUBTRACT", nodes, parent, index)

    def intersect(self, nodes: List[SceneNode], parent: Any, index: int | None = None) -> BooleanOperationNode:
        return self._boolean("INTERSECT", nodes, parent, index)

    def exclude(self, nodes: List[SceneNode], parent: Any, index: int | None = None) -> BooleanOperationNode:
        return self._boolean("EXCLUDE", nodes, parent, index)

    def combine_as_variants(self, components: List[ComponentNode], parent: Any, index: int | None = None) -> ComponentSetNode:
        components = list(components)
        if not components or not all(isinstance(c, ComponentNode) and c.type == "COMPONENT" for c in components):
            raise CanvasError("Only components can be combined as variants")
        for component in components:
            if component.removed or component.parent is None:
                raise CanvasError(f"Component {component.id} must be placed before it can be combined")
        component_set = ComponentSetNode(self)
        parent.insert_child(len(parent.children) if index is None else index, component_set)
        for component in components:
            component_set.append_child(component)
        return component_set

    # Fonts
    async def load_font(self, font: FontName) -> None:
        if font not in self._available_fonts:
            raise CanvasError(f"Font {font.family} {font.style} is not available")
        self._loaded_fonts.add(font)

    def is_font_loaded(self, font: FontName) -> bool:
        return font in self._loaded_fonts

    # Images
    async def create_image(self, data: bytes) -> Image:
        """Register bitmap bytes (PNG, JPEG, GIF or WEBP) and return the image."""
        try:
            with PILImage.open(io.BytesIO(data)) as bitmap:
                image_format = bitmap.format
                width, height = bitmap.size
                bitmap.verify()
        except (UnidentifiedImageError, OSError, SyntaxError) as e:
            raise CanvasError(f"Image data is not a readable bitmap: {e}")
        if image_format not in SUPPORTED_IMAGE_FORMATS:
            raise CanvasError(f"Unsupported image format {image_format}")

        image_hash = hashlib.sha1(data).hexdigest()
        if image_hash not in self._images:
            self._images[image_hash] = Image(image_hash, bytes(data), width, height, image_format)
            logger.debug(f"🖼️ Registered {image_format} image {image_hash} ({width}x{height})")
        return self._images[image_hash]

    def get_image_by_hash(self, image_hash: str) -> Optional[Image]:
        return self._images.get(image_hash)

    # Lookup
    async def get_node_by_id(self, node_id: str) -> Optional[SceneNode]:
        return self._nodes.get(node_id)

    def publish_component(self, component: ComponentNode) -> str:
        """Make a component importable by key, as a team library would."""
        self._library[component.key] = component
        return component.key

    async def import_component_by_key(self, key: str) -> ComponentNode:
        component = self._library.get(key)
        if component is None:
            raise CanvasError(f"No published component with key {key!r}")
        return component
