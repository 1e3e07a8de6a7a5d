"""Creators for containers: frames, groups and sections."""

import logging
from typing import Any, Optional

from design_node import DesignNode, sort_by_layer_index
from node_helpers import (
    apply_auto_layout,
    apply_corner_radius,
    apply_fills_async,
    apply_grids_and_guides,
    apply_strokes_async,
    ensure_min_dimensions,
    property_group,
)

logger = logging.getLogger(__name__)


@property_group("clipsContent")
def apply_clips_content(node: Any, clips: Optional[bool]) -> None:
    if clips is not None:
        node.clips_content = clips


async def apply_frame_properties(node: Any, data: DesignNode, session) -> None:
    """Size, paint, corners, clipping, auto-layout and grids, in that order."""
    width, height = ensure_min_dimensions(data.width, data.height)
    node.resize(width, height)

    await apply_fills_async(node, data.fills, session.fills)
    await apply_strokes_async(node, data, session.fills)
    apply_corner_radius(node, data)
    apply_clips_content(node, data.clipsContent)
    apply_auto_layout(node, data)
    apply_grids_and_guides(node, data)


async def create_frame(data: DesignNode, session, parent: Any = None, default_name: str = "Frame") -> Any:
    frame = session.canvas.create_frame()
    frame.name = data.name or default_name

    await apply_frame_properties(frame, data, session)
    await session.create_children(frame, data)
    return frame


def create_empty_frame(data: DesignNode, session, default_name: str) -> Any:
    """Transparent, non-clipping frame used where a container could not be built."""
    frame = session.canvas.create_frame()
    frame.name = data.name or default_name
    frame.fills = []
    frame.clips_content = False
    frame.resize(*ensure_min_dimensions(data.width, data.height))
    return frame


async def create_group(data: DesignNode, session, parent: Any = None) -> Any:
    """
    Build a real group.

    The grouping primitive only accepts placed objects, so children are
    created directly under the target parent first and grouped afterwards.
    Children that fail to materialize are already cleaned up by the dispatcher.
    """
    if not data.children:
        logger.info(f"📦 Group '{data.label}' has no children, creating an empty frame instead")
        return create_empty_frame(data, session, "Group")

    target = parent if parent is not None else session.canvas.current_page
    members = []
    for child in sort_by_layer_index(data.children):
        node = await session.create_child(child, target)
        if node is not None:
            members.append(node)

    members = [node for node in session.resolve_all(members) if node.parent is target]
    if not members:
        logger.warning(f"⚠️ No children of group '{data.label}' could be created, creating an empty frame instead")
        return create_empty_frame(data, session, "Group")

    group = session.canvas.group(members, target)
    group.name = data.name or "Group"
    logger.debug(f"📦 Grouped {len(members)} node(s) into '{group.name}'")
    return group


async def create_section(data: DesignNode, session, parent: Any = None) -> Any:
    section = session.canvas.create_section()
    section.name = data.name or "Section"

    if data.width and data.height:
        section.resize_without_constraints(data.width, data.height)

    await apply_fills_async(section, data.fills, session.fills)
    await session.create_children(section, data)
    return section
