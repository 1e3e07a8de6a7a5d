"""
Component Creator - components, component sets, instances and boolean operations

Instance binding order:
1. the session registry, by `mainComponentId`
2. a component declared later in the same import: a placeholder is queued
   and replaced when that component registers
3. a live component found by `_mainComponentNodeId`
4. a library component imported by `mainComponentId`
5. a frame carrying the instance's own children
"""

import logging
from typing import Any, Optional

from canvas import CanvasError
from component_registry import PendingInstance
from design_node import DesignNode, sort_by_layer_index
from frame_creator import apply_frame_properties, create_empty_frame, create_frame
from node_helpers import apply_auto_layout, apply_fills_async, apply_strokes_async, describe, property_group

logger = logging.getLogger(__name__)


# ============================================
# =============== COMPONENTS =================
# ============================================

def apply_property_definitions(component: Any, data: DesignNode) -> None:
    """Add each component property on its own; a rejected key does not stop the others."""
    for name, definition in (data.componentPropertyDefinitions or {}).items():
        options = {"preferredValues": definition.preferredValues} if definition.preferredValues else None
        try:
            component.add_component_property(name, definition.type, definition.defaultValue, options)
        except Exception as e:
            logger.warning(f"⚠️ Error adding component property '{name}' to '{component.name}': {e}")


async def create_component(data: DesignNode, session, parent: Any = None) -> Any:
    component = session.canvas.create_component()
    component.name = data.name or "Component"

    await apply_frame_properties(component, data, session)
    if data.componentDescription:
        component.description = data.componentDescription
    apply_property_definitions(component, data)

    await session.create_children(component, data)

    key = data.componentKey or component.key
    for entry in session.registry.register(key, component):
        await replay_instance(entry, component, session)
    return component


async def create_component_set(data: DesignNode, session, parent: Any = None) -> Any:
    """
    Variants are built inside a staging frame and then combined.

    When no component materializes the staging frame itself is kept as the
    frame-equivalent fallback.
    """
    canvas = session.canvas
    staging = canvas.create_frame()
    staging.name = data.name or "Component Set"
    # Variants read their layout-child fields against this parent
    apply_auto_layout(staging, data)
    await session.create_children(staging, data)

    ordered = list(staging.children)
    variants = [node for node in ordered if node.type == "COMPONENT"]
    if not variants:
        logger.warning(f"⚠️ Component set '{data.label}' has no components, keeping it as a frame")
        await apply_frame_properties(staging, data, session)
        return staging

    component_set = canvas.combine_as_variants(variants, canvas.current_page)
    component_set.name = data.name or "Component Set"
    for node in ordered:
        component_set.append_child(node)
    staging.remove()

    await apply_frame_properties(component_set, data, session)
    return component_set


# ============================================
# ================ INSTANCES =================
# ============================================

async def find_component(data: DesignNode, session) -> Optional[Any]:
    """Registry, then live node id, then library key."""
    key = data.mainComponentId
    if key:
        component = session.registry.get(key)
        if component is not None:
            return component

    if data.mainComponentNodeId:
        node = await session.canvas.get_node_by_id(data.mainComponentNodeId)
        if node is not None and node.type == "COMPONENT":
            return node

    if key:
        try:
            return await session.canvas.import_component_by_key(key)
        except CanvasError as e:
            logger.warning(f"⚠️ Could not import component {key} from library: {e}")
    return None


@property_group("instance size")
def _apply_instance_size(node: Any, data: DesignNode) -> None:
    if data.width and data.height:
        node.resize(data.width, data.height)


def apply_component_properties(instance: Any, data: DesignNode) -> None:
    for key, prop in (data.componentProperties or {}).items():
        try:
            instance.set_properties({key: prop.value})
        except Exception as e:
            logger.warning(f"⚠️ Error setting component property '{key}' on '{instance.name}': {e}")


def bind_instance(component: Any, data: DesignNode) -> Any:
    instance = component.create_instance()
    instance.name = data.name or "Instance"
    _apply_instance_size(instance, data)
    apply_component_properties(instance, data)
    if data.overrides:
        instance.overrides = [
            {"id": override.id, "overriddenFields": list(override.overriddenFields)} for override in data.overrides
        ]
    return instance


async def create_instance_fallback(data: DesignNode, session) -> Any:
    logger.warning(
        f"⚠️ Component {data.mainComponentId} not found in registry, document, or libraries. "
        f"Creating '{data.label}' as frame."
    )
    return await create_frame(data, session, default_name="Instance (Frame fallback)")


async def create_instance(data: DesignNode, session, parent: Any = None) -> Any:
    key = data.mainComponentId
    component = session.registry.get(key) if key else None

    if component is None and session.is_pending(key):
        placeholder = create_empty_frame(data, session, "Instance")
        placeholder.name = f"{data.name or 'Instance'} (pending component)"
        session.registry.defer(key, data, placeholder)
        logger.info(f"⏳ Instance '{data.label}' waiting for component {key}")
        return placeholder

    if component is None:
        component = await find_component(data, session)
    if component is None:
        return await create_instance_fallback(data, session)
    return bind_instance(component, data)


async def _swap_placeholder(entry: PendingInstance, node: Any, session) -> None:
    placeholder = entry.placeholder
    parent = placeholder.parent
    index = list(parent.children).index(placeholder)
    session.repository.place(node, entry.data, parent, index)
    placeholder.remove()
    session.replace(placeholder, node)


async def replay_instance(entry: PendingInstance, component: Any, session) -> None:
    """Bind a queued instance now that its component exists."""
    if entry.placeholder.removed or entry.placeholder.parent is None:
        logger.debug(f"Dropping deferred instance '{entry.data.label}': its placeholder is gone")
        return
    instance = None
    try:
        instance = bind_instance(component, entry.data)
        await _swap_placeholder(entry, instance, session)
        logger.info(f"✅ Deferred instance '{instance.name}' bound to '{component.name}'")
    except Exception as e:
        logger.error(f"❌ Failed to replay instance '{entry.data.label}': {e}")
        if instance is not None and not instance.removed:
            instance.remove()


async def resolve_remaining(session) -> None:
    """Resolve instances whose component never registered through the rest of the chain."""
    for entry in session.registry.drain_pending():
        if entry.placeholder.removed or entry.placeholder.parent is None:
            continue
        node = None
        try:
            component = await find_component(entry.data, session)
            if component is not None:
                node = bind_instance(component, entry.data)
            else:
                node = await create_instance_fallback(entry.data, session)
            await _swap_placeholder(entry, node, session)
        except Exception as e:
            logger.error(f"❌ Failed to resolve instance '{entry.data.label}': {e}")
            if node is not None and not node.removed:
                node.remove()


# ============================================
# ============ BOOLEAN OPERATIONS ============
# ============================================

async def create_boolean_operation(data: DesignNode, session, parent: Any = None) -> Any:
    """Operands are created on the page first; fewer than two falls back to a frame."""
    if len(data.children or []) < 2:
        logger.warning(f"⚠️ Boolean operation '{data.label}' needs at least 2 children, creating a frame")
        return await create_frame(data, session, parent, default_name="Boolean")

    canvas = session.canvas
    page = canvas.current_page
    operands = []
    for child in sort_by_layer_index(data.children):
        node = await session.create_child(child, page)
        if node is not None:
            operands.append(node)
    operands = session.resolve_all(operands)

    if len(operands) < 2:
        for node in operands:
            node.remove()
        logger.warning(f"⚠️ Only {len(operands)} operand(s) of '{data.label}' materialized, creating a frame")
        return await create_frame(data, session, parent, default_name="Boolean")

    primitives = {
        "UNION": canvas.union,
        "INTERSECT": canvas.intersect,
        "SUBTRACT": canvas.subtract,
        "EXCLUDE": canvas.exclude,
    }
    operation = (data.booleanOperation or "UNION").upper()
    primitive = primitives.get(operation)
    if primitive is None:
        logger.warning(f"⚠️ Unknown boolean operation {operation} on '{data.label}', using UNION")
        primitive = canvas.union

    result = primitive(operands, page)
    result.name = data.name or "Boolean"
    await apply_fills_async(result, data.fills, session.fills)
    await apply_strokes_async(result, data, session.fills)
    logger.debug(f"🔗 {describe(result)} combines {len(operands)} operand(s)")
    return result
