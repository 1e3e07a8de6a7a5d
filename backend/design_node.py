"""
Design Node - boundary schema for serialized design trees

A DesignNode is the JSON-shaped description of one canvas object and its
subtree. Field names are the wire names, so a validated tree dumps back to
the exact payload shape the command layer exchanges.

Validation is lenient below the node level: a malformed paint,
effect, grid or child is dropped with a warning instead of rejecting the
whole tree.
"""

import json
import logging
import math
from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from errors import TranslationError, INVALID_PAYLOAD

logger = logging.getLogger(__name__)

Transform = List[List[float]]


# ============================================
# ============ INTERNAL HELPERS ==============
# ============================================

def _lenient_entries(model: Type[BaseModel], value: Any, label: str) -> Optional[List[Any]]:
    """Validate list entries one at a time, dropping the ones that fail."""
    if value is None:
        return None
    if not isinstance(value, (list, tuple)):
        logger.warning(f"⚠️ Ignoring {label}: expected a list, got {type(value).__name__}")
        return None

    entries = []
    for index, entry in enumerate(value):
        if isinstance(entry, model):
            entries.append(entry)
            continue
        if not isinstance(entry, dict):
            logger.warning(f"⚠️ Dropping {label}[{index}]: not an object")
            continue
        try:
            entries.append(model.model_validate(entry))
        except ValidationError as e:
            logger.warning(f"⚠️ Dropping {label}[{index}]: {e.error_count()} validation error(s)")
    return entries


def _lenient_object(model: Type[BaseModel], value: Any, label: str) -> Any:
    if value is None or isinstance(value, model):
        return value
    if not isinstance(value, dict):
        logger.warning(f"⚠️ Ignoring {label}: not an object")
        return None
    try:
        return model.model_validate(value)
    except ValidationError as e:
        logger.warning(f"⚠️ Ignoring {label}: {e.error_count()} validation error(s)")
        return None


def _lenient_mapping(model: Type[BaseModel], value: Any, label: str, wrap_key: str | None = None) -> Optional[Dict[str, Any]]:
    if value is None:
        return None
    if not isinstance(value, dict):
        logger.warning(f"⚠️ Ignoring {label}: not an object")
        return None

    result = {}
    for key, entry in value.items():
        if wrap_key and not isinstance(entry, (dict, model)):
            entry = {wrap_key: entry}
        validated = _lenient_object(model, entry, f"{label}[{key!r}]")
        if validated is not None:
            result[str(key)] = validated
    return result


class _WireModel(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)


# ============================================
# ============ PAINT & EFFECTS ===============
# ============================================

class WireColor(_WireModel):
    r: float = 0.0
    g: float = 0.0
    b: float = 0.0
    a: Optional[float] = None


class Vector2(_WireModel):
    x: float = 0.0
    y: float = 0.0


class GradientStop(_WireModel):
    position: float = 0.0
    color: WireColor = Field(default_factory=WireColor)


class Fill(_WireModel):
    """Paint description, shared by fills and strokes."""

    type: str
    visible: Optional[bool] = None
    opacity: Optional[float] = None
    blendMode: Optional[str] = None

    # Solid
    color: Optional[WireColor] = None

    # Gradients
    gradientStops: Optional[List[GradientStop]] = None
    gradientTransform: Optional[Transform] = None

    # Image
    scaleMode: Optional[str] = None
    imageHash: Optional[str] = None
    imageData: Optional[str] = None
    imageUrl: Optional[str] = None
    imageTransform: Optional[Transform] = None
    scalingFactor: Optional[float] = None
    rotation: Optional[float] = None
    filters: Optional[Dict[str, float]] = None

    @field_validator("gradientStops", mode="before")
    @classmethod
    def _lenient_stops(cls, value: Any) -> Any:
        return _lenient_entries(GradientStop, value, "gradientStops")


class Effect(_WireModel):
    type: str
    visible: Optional[bool] = None
    radius: Optional[float] = None
    color: Optional[WireColor] = None
    offset: Optional[Vector2] = None
    spread: Optional[float] = None
    blendMode: Optional[str] = None
    showShadowBehindNode: Optional[bool] = None


# ============================================
# ============== TYPOGRAPHY ==================
# ============================================

class FontName(_WireModel):
    family: str
    style: str = "Regular"


class LineHeight(_WireModel):
    unit: str = "AUTO"
    value: Optional[float] = None


class LetterSpacing(_WireModel):
    unit: str = "PIXELS"
    value: Optional[float] = None


class Hyperlink(_WireModel):
    type: str = "URL"
    value: str = ""


class TextSegment(_WireModel):
    """Half-open character range [start, end) with style overrides."""

    start: int
    end: int
    fontName: Optional[FontName] = None
    fontSize: Optional[float] = None
    textCase: Optional[str] = None
    textDecoration: Optional[str] = None
    lineHeight: Optional[LineHeight] = None
    letterSpacing: Optional[LetterSpacing] = None
    fills: Optional[List[Fill]] = None
    hyperlink: Optional[Hyperlink] = None

    @field_validator("fills", mode="before")
    @classmethod
    def _lenient_fills(cls, value: Any) -> Any:
        return _lenient_entries(Fill, value, "textSegments.fills")


# ============================================
# ============ GEOMETRY & LAYOUT =============
# ============================================

class ArcData(_WireModel):
    startingAngle: float = 0.0
    endingAngle: float = 2 * math.pi
    innerRadius: float = 0.0


class VectorPath(_WireModel):
    windingRule: str = "NONZERO"
    data: str


class VectorVertex(_WireModel):
    x: float = 0.0
    y: float = 0.0
    strokeCap: Optional[str] = None
    strokeJoin: Optional[str] = None
    cornerRadius: Optional[float] = None
    handleMirroring: Optional[str] = None


class VectorSegment(_WireModel):
    start: int
    end: int
    tangentStart: Optional[Vector2] = None
    tangentEnd: Optional[Vector2] = None


class VectorRegion(_WireModel):
    windingRule: str = "NONZERO"
    loops: List[List[int]] = Field(default_factory=list)


class VectorNetwork(_WireModel):
    vertices: List[VectorVertex] = Field(default_factory=list)
    segments: List[VectorSegment] = Field(default_factory=list)
    regions: Optional[List[VectorRegion]] = None


class Constraints(_WireModel):
    horizontal: str = "MIN"
    vertical: str = "MIN"


class LayoutGrid(_WireModel):
    pattern: str
    sectionSize: Optional[float] = None
    visible: Optional[bool] = None
    color: Optional[WireColor] = None
    alignment: Optional[str] = None
    gutterSize: Optional[float] = None
    offset: Optional[float] = None
    count: Optional[int] = None


class Guide(_WireModel):
    axis: str
    offset: float = 0.0


class ExportConstraint(_WireModel):
    type: str = "SCALE"
    value: float = 1.0


class ExportSetting(_WireModel):
    format: str
    suffix: Optional[str] = None
    contentsOnly: Optional[bool] = None
    constraint: Optional[ExportConstraint] = None


# ============================================
# =============== COMPONENTS =================
# ============================================

class ComponentPropertyDefinition(_WireModel):
    type: str
    defaultValue: Any = None
    variantOptions: Optional[List[str]] = None
    preferredValues: Optional[List[Any]] = None


class ComponentPropertyValue(_WireModel):
    type: Optional[str] = None
    value: Any = None


class OverrideInfo(_WireModel):
    id: str
    overriddenFields: List[str] = Field(default_factory=list)


# ============================================
# =============== DESIGN NODE ================
# ============================================

# Single nested objects validated on their own, keyed by DesignNode field
_NESTED_MODELS: Dict[str, Type[BaseModel]] = {
    "vectorNetwork": VectorNetwork,
    "arcData": ArcData,
    "constraints": Constraints,
    "fontName": FontName,
    "lineHeight": LineHeight,
    "letterSpacing": LetterSpacing,
    "hyperlink": Hyperlink,
}

class DesignNode(_WireModel):
    """Serialized description of one canvas object and its subtree."""

    # Identity
    name: Optional[str] = None
    type: Optional[str] = None

    # Position and dimensions
    x: Optional[float] = None
    y: Optional[float] = None
    width: Optional[float] = None
    height: Optional[float] = None
    rotation: Optional[float] = None
    relativeTransform: Optional[Transform] = None
    layerIndex: Optional[int] = Field(default=None, alias="_layerIndex")

    # Fills and strokes
    fills: Optional[List[Fill]] = None
    strokes: Optional[List[Fill]] = None
    strokeWeight: Optional[float] = None
    strokeAlign: Optional[str] = None
    strokeCap: Optional[str] = None
    strokeJoin: Optional[str] = None
    dashPattern: Optional[List[float]] = None
    strokeMiterLimit: Optional[float] = None

    # Corner radius
    cornerRadius: Optional[float] = None
    topLeftRadius: Optional[float] = None
    topRightRadius: Optional[float] = None
    bottomLeftRadius: Optional[float] = None
    bottomRightRadius: Optional[float] = None
    cornerSmoothing: Optional[float] = None

    # Visual properties
    opacity: Optional[float] = None
    blendMode: Optional[str] = None
    effects: Optional[List[Effect]] = None
    visible: Optional[bool] = None
    locked: Optional[bool] = None
    isMask: Optional[bool] = None

    constraints: Optional[Constraints] = None

    # Auto-layout
    layoutMode: Optional[str] = None
    primaryAxisSizingMode: Optional[str] = None
    counterAxisSizingMode: Optional[str] = None
    primaryAxisAlignItems: Optional[str] = None
    counterAxisAlignItems: Optional[str] = None
    paddingTop: Optional[float] = None
    paddingRight: Optional[float] = None
    paddingBottom: Optional[float] = None
    paddingLeft: Optional[float] = None
    itemSpacing: Optional[float] = None
    layoutWrap: Optional[str] = None
    counterAxisSpacing: Optional[float] = None
    itemReverseZIndex: Optional[bool] = None

    # Layout child properties
    layoutAlign: Optional[str] = None
    layoutGrow: Optional[float] = None
    layoutPositioning: Optional[str] = None

    clipsContent: Optional[bool] = None

    # Text
    characters: Optional[str] = None
    fontName: Optional[FontName] = None
    fontSize: Optional[float] = None
    textAlignHorizontal: Optional[str] = None
    textAlignVertical: Optional[str] = None
    lineHeight: Optional[LineHeight] = None
    letterSpacing: Optional[LetterSpacing] = None
    textCase: Optional[str] = None
    textDecoration: Optional[str] = None
    textAutoResize: Optional[str] = None
    paragraphIndent: Optional[float] = None
    paragraphSpacing: Optional[float] = None
    hyperlink: Optional[Hyperlink] = None
    textTruncation: Optional[str] = None
    maxLines: Optional[int] = None
    textSegments: Optional[List[TextSegment]] = None

    # Shapes
    arcData: Optional[ArcData] = None
    pointCount: Optional[int] = None
    innerRadius: Optional[float] = None

    # Vectors
    vectorPaths: Optional[List[VectorPath]] = None
    vectorNetwork: Optional[VectorNetwork] = None

    booleanOperation: Optional[str] = None

    exportSettings: Optional[List[ExportSetting]] = None
    guides: Optional[List[Guide]] = None
    layoutGrids: Optional[List[LayoutGrid]] = None

    # Components and instances
    componentKey: Optional[str] = None
    componentDescription: Optional[str] = None
    componentPropertyDefinitions: Optional[Dict[str, ComponentPropertyDefinition]] = None
    mainComponentId: Optional[str] = None
    mainComponentNodeId: Optional[str] = Field(default=None, alias="_mainComponentNodeId")
    componentProperties: Optional[Dict[str, ComponentPropertyValue]] = None
    overrides: Optional[List[OverrideInfo]] = None

    children: Optional[List["DesignNode"]] = None

    @field_validator("fills", "strokes", mode="before")
    @classmethod
    def _lenient_paints(cls, value: Any, info) -> Any:
        return _lenient_entries(Fill, value, info.field_name)

    @field_validator("effects", mode="before")
    @classmethod
    def _lenient_effects(cls, value: Any) -> Any:
        return _lenient_entries(Effect, value, "effects")

    @field_validator("layoutGrids", mode="before")
    @classmethod
    def _lenient_grids(cls, value: Any) -> Any:
        return _lenient_entries(LayoutGrid, value, "layoutGrids")

    @field_validator("guides", mode="before")
    @classmethod
    def _lenient_guides(cls, value: Any) -> Any:
        return _lenient_entries(Guide, value, "guides")

    @field_validator("exportSettings", mode="before")
    @classmethod
    def _lenient_export_settings(cls, value: Any) -> Any:
        return _lenient_entries(ExportSetting, value, "exportSettings")

    @field_validator("vectorPaths", mode="before")
    @classmethod
    def _lenient_vector_paths(cls, value: Any) -> Any:
        return _lenient_entries(VectorPath, value, "vectorPaths")

    @field_validator("textSegments", mode="before")
    @classmethod
    def _lenient_segments(cls, value: Any) -> Any:
        return _lenient_entries(TextSegment, value, "textSegments")

    @field_validator("overrides", mode="before")
    @classmethod
    def _lenient_overrides(cls, value: Any) -> Any:
        return _lenient_entries(OverrideInfo, value, "overrides")

    @field_validator(*_NESTED_MODELS, mode="before")
    @classmethod
    def _lenient_nested(cls, value: Any, info) -> Any:
        return _lenient_object(_NESTED_MODELS[info.field_name], value, info.field_name)

    @field_validator("componentPropertyDefinitions", mode="before")
    @classmethod
    def _lenient_definitions(cls, value: Any) -> Any:
        return _lenient_mapping(ComponentPropertyDefinition, value, "componentPropertyDefinitions")

    @field_validator("componentProperties", mode="before")
    @classmethod
    def _lenient_properties(cls, value: Any) -> Any:
        return _lenient_mapping(ComponentPropertyValue, value, "componentProperties", wrap_key="value")

    @field_validator("children", mode="before")
    @classmethod
    def _lenient_children(cls, value: Any) -> Any:
        return _lenient_entries(DesignNode, value, "children")

    @property
    def label(self) -> str:
        return self.name or (self.type or "node")

    def to_payload(self) -> Dict[str, Any]:
        """Dump back to the wire shape, without unset fields."""
        return self.model_dump(by_alias=True, exclude_none=True)


# ============================================
# ================ PARSING ===================
# ============================================

_WRAPPER_KEYS = ("data", "design", "result")


def _unwrap(data: Any) -> Any:
    if isinstance(data, dict):
        for key in _WRAPPER_KEYS:
            if key in data:
                return data[key]
    return data


def parse_design_payload(raw: Any) -> List[DesignNode]:
    """
    Parse a raw import payload into a list of DesignNode trees.

    Accepts a JSON string/bytes, a single node object, or a list of nodes,
    optionally wrapped once in {"data": ...}, {"design": ...} or {"result": ...}.

    Raises:
        TranslationError: with code `invalid_payload` when the input is not JSON
            or has no object shape at the top level.
    """
    data = raw
    if isinstance(data, (bytes, bytearray)):
        try:
            data = data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise TranslationError.of(INVALID_PAYLOAD, f"Payload is not valid UTF-8: {e}")
    if isinstance(data, str):
        try:
            data = json.loads(data)
        except json.JSONDecodeError as e:
            raise TranslationError.of(INVALID_PAYLOAD, f"Payload is not valid JSON: {e.msg}", line=e.lineno, column=e.colno)

    data = _unwrap(data)
    if isinstance(data, DesignNode):
        return [data]
    if isinstance(data, dict):
        data = [data]
    if not isinstance(data, list):
        raise TranslationError.of(INVALID_PAYLOAD, f"Expected a design node or a list of nodes, got {type(data).__name__}")

    return _lenient_entries(DesignNode, data, "nodes") or []


def sort_by_layer_index(nodes: List[DesignNode]) -> List[DesignNode]:
    """Stable sort by `_layerIndex`; nodes without one sort as 0."""
    return sorted(nodes, key=lambda n: n.layerIndex if n.layerIndex is not None else 0)


def count_nodes(nodes: List[Any]) -> int:
    """Count every node of a forest, given as DesignNodes or payload dicts."""
    total = 0
    for node in nodes or []:
        total += 1
        children = node.get("children") if isinstance(node, dict) else node.children
        if children:
            total += count_nodes(children)
    return total
