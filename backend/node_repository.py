"""
Node Repository - dispatch between DesignNode trees and live canvas objects

The repository owns everything that has to outlive a single node: the
component registry, the image caches, the font loader and the exporter.
Import dispatches each DesignNode to its creator by normalized type and
places the result; a creator that raises is contained here, its partial
objects are discarded and its siblings carry on.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx

import component_creator
import frame_creator
import node_types
import shape_creator
import text_creator
from component_registry import ComponentRegistry
from config import EngineConfig
from design_node import DesignNode, sort_by_layer_index
from fill_mapper import FillMapper
from image_cache import ImageCache, ImageFetcher
from import_session import ImportSession
from node_exporter import NodeExporter
from node_helpers import apply_common_properties, apply_position, describe

logger = logging.getLogger(__name__)


class NodeRepository:
    """
    Translation engine bound to one canvas.

    Args:
        canvas: Host the objects are created on and exported from
        config: Engine configuration; read from the environment when omitted
        http_client: Optional shared client for remote image fetches
    """

    def __init__(self, canvas, config: Optional[EngineConfig] = None,
                 http_client: Optional[httpx.AsyncClient] = None):
        self.canvas = canvas
        self.config = config or EngineConfig.from_env()
        self.registry = ComponentRegistry()
        self.image_cache = ImageCache()
        self.fetcher = ImageFetcher(self.config, http_client)
        self.fill_mapper = FillMapper(canvas, self.image_cache, self.fetcher)
        self.fonts = text_creator.FontLoader(canvas, self.config)
        self.exporter = NodeExporter(self.fill_mapper, self.image_cache)

        self._creators: Dict[str, Any] = {
            "FRAME": frame_creator.create_frame,
            "GROUP": frame_creator.create_group,
            "SECTION": frame_creator.create_section,
            "RECTANGLE": shape_creator.create_rectangle,
            "ELLIPSE": shape_creator.create_ellipse,
            "POLYGON": shape_creator.create_polygon,
            "STAR": shape_creator.create_star,
            "LINE": shape_creator.create_line,
            "VECTOR": shape_creator.create_vector,
            "TEXT": text_creator.create_text,
            "COMPONENT": component_creator.create_component,
            "COMPONENT_SET": component_creator.create_component_set,
            "INSTANCE": component_creator.create_instance,
            "BOOLEAN_OPERATION": component_creator.create_boolean_operation,
        }

    # ============================================
    # ================= IMPORT ===================
    # ============================================

    async def create_nodes(self, nodes: List[DesignNode]) -> List[Any]:
        """
        Create a forest of DesignNodes on the current page.

        The registry starts empty for every call. Returns the top-level
        objects that were created, in layer order, with deferred-instance
        placeholders already replaced by their final objects.
        """
        self.registry.clear()
        session = ImportSession(self, nodes)

        created = []
        try:
            for data in sort_by_layer_index(nodes):
                node = await self.create_node(data, None, session)
                if node is not None:
                    created.append(node)

            if self.registry.pending_count():
                logger.info(f"🔁 Resolving {self.registry.pending_count()} deferred instance(s)")
            await component_creator.resolve_remaining(session)
        finally:
            # Cleanup checkpoints only span a single import
            self.canvas.clear_creation_log()

        created = session.resolve_all(created)
        logger.info(
            f"✅ Import finished: {len(created)} top-level node(s), "
            f"{len(self.registry)} component(s), {session.failures} failed node(s)"
        )
        return created

    async def create_node(self, data: DesignNode, parent: Any, session: ImportSession) -> Optional[Any]:
        """Create one node and its subtree under `parent` (the current page when None)."""
        node_type = node_types.normalize(data.type)
        if data.type and str(data.type).strip().upper() != node_type:
            logger.warning(f"⚠️ Unknown node type {data.type!r} for '{data.label}', creating a frame")

        creator = self._creators[node_type]
        checkpoint = self.canvas.checkpoint()
        try:
            node = await creator(data, session, parent)
            if node is None:
                logger.warning(f"⚠️ Creator for {node_type} '{data.label}' produced nothing")
                self.canvas.discard_since(checkpoint, keep=session.replayed)
                return None
            self.place(node, data, parent)
            logger.debug(f"🧩 Created {describe(node)}")
            return node
        except Exception as e:
            logger.error(f"❌ Failed to create {node_type} '{data.label}': {e}")
            discarded = self.canvas.discard_since(checkpoint, keep=session.replayed)
            if discarded:
                logger.debug(f"Discarded {discarded} partial object(s) of '{data.label}'")
            session.failures += 1
            return None

    def place(self, node: Any, data: DesignNode, parent: Any, index: Optional[int] = None) -> Any:
        """Attach `node` under `parent`, then apply position and the common property groups."""
        target = parent if parent is not None else self.canvas.current_page
        if index is None:
            target.append_child(node)
        else:
            target.insert_child(index, node)
        apply_position(node, data)
        apply_common_properties(node, data)
        return node

    # ============================================
    # ================= EXPORT ===================
    # ============================================

    async def export_nodes(self, nodes: List[Any]) -> List[Dict[str, Any]]:
        return await self.exporter.export_nodes(list(nodes))

    async def find_node(self, node_id: str) -> Optional[Any]:
        return await self.canvas.get_node_by_id(node_id)
