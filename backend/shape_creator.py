"""Creators for primitive shapes and vectors."""

import logging
from typing import Any

from canvas import ArcData, SolidPaint, RGB, VectorPath
from design_node import DesignNode
from frame_creator import create_frame
from node_helpers import (
    apply_corner_radius,
    apply_fills_async,
    apply_strokes_async,
    ensure_min_dimensions,
    property_group,
)

logger = logging.getLogger(__name__)

VECTOR_DEFAULT_SIZE = 24


async def _apply_paint(node: Any, data: DesignNode, session) -> None:
    await apply_fills_async(node, data.fills, session.fills)
    await apply_strokes_async(node, data, session.fills)


async def create_rectangle(data: DesignNode, session, parent: Any = None) -> Any:
    # Shapes cannot hold children, so a rectangle with children becomes a frame
    if data.children:
        logger.info(f"🔁 Rectangle '{data.label}' has children, creating it as a frame")
        return await create_frame(data, session, parent, default_name="Rectangle")

    rect = session.canvas.create_rectangle()
    rect.name = data.name or "Rectangle"
    rect.resize(*ensure_min_dimensions(data.width, data.height))
    await _apply_paint(rect, data, session)
    apply_corner_radius(rect, data)
    return rect


@property_group("arc data")
def apply_arc_data(node: Any, data: DesignNode) -> None:
    if data.arcData is not None:
        arc = data.arcData
        node.arc_data = ArcData(arc.startingAngle, arc.endingAngle, arc.innerRadius)


async def create_ellipse(data: DesignNode, session, parent: Any = None) -> Any:
    ellipse = session.canvas.create_ellipse()
    ellipse.name = data.name or "Ellipse"
    ellipse.resize(*ensure_min_dimensions(data.width, data.height))
    await _apply_paint(ellipse, data, session)
    apply_arc_data(ellipse, data)
    return ellipse


@property_group("point count")
def apply_point_count(node: Any, data: DesignNode) -> None:
    if data.pointCount is not None and data.pointCount >= 3:
        node.point_count = data.pointCount


@property_group("inner radius")
def apply_inner_radius(node: Any, data: DesignNode) -> None:
    if data.innerRadius is not None:
        node.inner_radius = data.innerRadius


async def create_polygon(data: DesignNode, session, parent: Any = None) -> Any:
    polygon = session.canvas.create_polygon()
    polygon.name = data.name or "Polygon"
    polygon.resize(*ensure_min_dimensions(data.width, data.height))
    apply_point_count(polygon, data)
    await _apply_paint(polygon, data, session)
    return polygon


async def create_star(data: DesignNode, session, parent: Any = None) -> Any:
    star = session.canvas.create_star()
    star.name = data.name or "Star"
    star.resize(*ensure_min_dimensions(data.width, data.height))
    apply_point_count(star, data)
    apply_inner_radius(star, data)
    await _apply_paint(star, data, session)
    return star


@property_group("line stroke")
def apply_default_line_stroke(node: Any, data: DesignNode) -> None:
    node.strokes = [SolidPaint(RGB(0.0, 0.0, 0.0))]
    node.stroke_weight = 1 if data.strokeWeight is None else data.strokeWeight


@property_group("line stroke details")
def _apply_line_details(node: Any, data: DesignNode) -> None:
    if data.strokeCap:
        node.stroke_cap = data.strokeCap
    if data.dashPattern:
        node.dash_pattern = data.dashPattern


async def create_line(data: DesignNode, session, parent: Any = None) -> Any:
    """Lines take their length from width and are drawn with strokes."""
    line = session.canvas.create_line()
    line.name = data.name or "Line"
    line.resize(max(1.0, data.width or 100), 0)

    if data.strokes:
        await apply_strokes_async(line, data, session.fills)
    elif data.fills:
        weight = 1 if data.strokeWeight is None else data.strokeWeight
        as_strokes = data.model_copy(update={"strokes": data.fills, "strokeWeight": weight})
        await apply_strokes_async(line, as_strokes, session.fills)
    else:
        apply_default_line_stroke(line, data)

    _apply_line_details(line, data)
    return line


@property_group("vector paths")
def apply_vector_paths(node: Any, data: DesignNode) -> None:
    node.vector_paths = [VectorPath(path.windingRule, path.data) for path in data.vectorPaths]


@property_group("vector network")
async def apply_vector_network(node: Any, data: DesignNode) -> None:
    await node.set_vector_network(data.vectorNetwork.model_dump(exclude_none=True))


async def create_vector_placeholder(data: DesignNode, session) -> Any:
    placeholder = session.canvas.create_rectangle()
    placeholder.name = f"{data.name or 'Vector'} (Vector placeholder)"
    placeholder.resize(*ensure_min_dimensions(data.width, data.height, VECTOR_DEFAULT_SIZE))
    await _apply_paint(placeholder, data, session)
    return placeholder


async def create_vector(data: DesignNode, session, parent: Any = None) -> Any:
    """Paths win over a vertex network; with neither, a placeholder rectangle is created."""
    has_network = data.vectorNetwork is not None and bool(data.vectorNetwork.vertices)
    if not data.vectorPaths and not has_network:
        logger.warning(f"⚠️ Vector '{data.label}' has no path data, creating a placeholder")
        return await create_vector_placeholder(data, session)

    vector = session.canvas.create_vector()
    vector.name = data.name or "Vector"
    if data.vectorPaths:
        apply_vector_paths(vector, data)
    else:
        await apply_vector_network(vector, data)

    vector.resize(*ensure_min_dimensions(data.width, data.height, VECTOR_DEFAULT_SIZE))
    await _apply_paint(vector, data, session)
    return vector
