"""Per-import state threaded through the creators."""

import logging
from typing import Any, Dict, Iterable, List, Optional, Set

from design_node import DesignNode, sort_by_layer_index

logger = logging.getLogger(__name__)


def declared_component_keys(nodes: Iterable[DesignNode]) -> Set[str]:
    """Keys of every COMPONENT in a forest that names one explicitly."""
    keys: Set[str] = set()
    stack = list(nodes or [])
    while stack:
        node = stack.pop()
        if (node.type or "").upper() == "COMPONENT" and node.componentKey:
            keys.add(node.componentKey)
        stack.extend(node.children or [])
    return keys


class ImportSession:
    """
    Context for one import call.

    Shares the repository's canvas, registry, font loader and fill mapper
    (never copies), and records placeholder replacements so results and
    selection point at the final objects.
    """

    def __init__(self, repository, nodes: List[DesignNode]):
        self.repository = repository
        self.canvas = repository.canvas
        self.registry = repository.registry
        self.fills = repository.fill_mapper
        self.fonts = repository.fonts
        self.declared_keys = declared_component_keys(nodes)
        self.replayed: List[Any] = []
        self.failures = 0
        self._replacements: Dict[str, Any] = {}

    async def create_child(self, data: DesignNode, parent: Any) -> Optional[Any]:
        return await self.repository.create_node(data, parent, self)

    async def create_children(self, parent: Any, data: DesignNode) -> List[Any]:
        """Create `data.children` under `parent` in layer-index order."""
        created = []
        for child in sort_by_layer_index(data.children or []):
            node = await self.create_child(child, parent)
            if node is not None:
                created.append(node)
        return created

    def is_pending(self, key: Optional[str]) -> bool:
        """True when `key` belongs to a component of this import that has not registered yet."""
        return bool(key) and key in self.declared_keys and not self.registry.has(key)

    def replace(self, placeholder: Any, node: Any) -> None:
        self._replacements[placeholder.id] = node
        self.replayed.append(node)

    def resolve(self, node: Any) -> Any:
        while node.id in self._replacements:
            node = self._replacements[node.id]
        return node

    def resolve_all(self, nodes: Iterable[Any]) -> List[Any]:
        resolved = [self.resolve(node) for node in nodes]
        return [node for node in resolved if not node.removed]
