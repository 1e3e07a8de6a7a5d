"""
Use Cases - import and export operations exposed to the command surface

Each operation returns a structured result and never raises: call-level
failures are carried as an error code and message.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from design_node import count_nodes, parse_design_payload
from errors import (
    EMPTY_DESIGN,
    EMPTY_SELECTION,
    NODE_NOT_FOUND,
    NOTHING_CREATED,
    NOTHING_EXPORTED,
    UNKNOWN_ERROR,
    TranslationError,
)

logger = logging.getLogger(__name__)


@dataclass
class ImportResult:
    success: bool
    nodes_created: int = 0
    total_nodes: int = 0
    nodes: List[Any] = field(default_factory=list)
    error: Optional[str] = None
    error_code: Optional[str] = None

    def to_message(self) -> Dict[str, Any]:
        message: Dict[str, Any] = {
            "success": self.success,
            "nodesCreated": self.nodes_created,
            "totalNodes": self.total_nodes,
            "nodeIds": [node.id for node in self.nodes],
        }
        if self.error is not None:
            message["error"] = self.error
            message["errorCode"] = self.error_code
        return message


@dataclass
class ExportResult:
    success: bool
    nodes: List[Dict[str, Any]] = field(default_factory=list)
    node_count: int = 0
    error: Optional[str] = None
    error_code: Optional[str] = None

    def to_message(self) -> Dict[str, Any]:
        message: Dict[str, Any] = {
            "success": self.success,
            "nodes": self.nodes,
            "nodeCount": self.node_count,
        }
        if self.error is not None:
            message["error"] = self.error
            message["errorCode"] = self.error_code
        return message


def _failure(result_type, error: Exception, operation: str):
    if isinstance(error, TranslationError):
        logger.warning(f"⚠️ {operation} failed: {error.code}: {error.message}")
        return result_type(success=False, error=error.message, error_code=error.code)
    logger.error(f"❌ Unexpected error during {operation}: {error}")
    return result_type(success=False, error=str(error), error_code=UNKNOWN_ERROR)


# ============================================
# ================= IMPORT ===================
# ============================================

async def import_design(repository, payload: Any) -> ImportResult:
    """Create the DesignNode forest in `payload` and select what was created."""
    try:
        nodes = parse_design_payload(payload)
        if not nodes:
            raise TranslationError.of(EMPTY_DESIGN, "Design contains no nodes", operation="import")

        total = count_nodes(nodes)
        logger.info(f"📥 Importing {len(nodes)} top-level node(s), {total} in total")
        created = await repository.create_nodes(nodes)
        if not created:
            raise TranslationError.of(NOTHING_CREATED, "No nodes could be created", operation="import", totalNodes=total)

        repository.canvas.current_page.selection = created
        return ImportResult(success=True, nodes_created=len(created), total_nodes=total, nodes=created)
    except Exception as e:
        return _failure(ImportResult, e, "import")


# ============================================
# ================= EXPORT ===================
# ============================================

async def _export(repository, nodes: List[Any]) -> ExportResult:
    exported = await repository.export_nodes(nodes)
    if not exported:
        raise TranslationError.of(NOTHING_EXPORTED, "No nodes could be exported", operation="export")
    return ExportResult(success=True, nodes=exported, node_count=count_nodes(exported))


async def export_selection(repository) -> ExportResult:
    try:
        selection = list(repository.canvas.current_page.selection)
        if not selection:
            raise TranslationError.of(EMPTY_SELECTION, "Nothing is selected", operation="export")
        return await _export(repository, selection)
    except Exception as e:
        return _failure(ExportResult, e, "export selection")


async def export_all(repository) -> ExportResult:
    """Export every top-level object of the current page."""
    try:
        return await _export(repository, list(repository.canvas.current_page.children))
    except Exception as e:
        return _failure(ExportResult, e, "export all")


async def export_node(repository, node_id: str) -> ExportResult:
    try:
        node = await repository.find_node(node_id) if node_id else None
        if node is None:
            raise TranslationError.of(NODE_NOT_FOUND, f"Node {node_id} not found", operation="export", nodeId=node_id)
        return await _export(repository, [node])
    except Exception as e:
        return _failure(ExportResult, e, "export node")
