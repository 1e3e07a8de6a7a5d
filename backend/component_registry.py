"""
Component Registry - per-import bookkeeping for components and deferred instances

Components register under their key once their subtree is built. Instances
that reference a key declared elsewhere in the same import, but not yet
registered, are queued here and handed back when that key registers.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from design_node import DesignNode

logger = logging.getLogger(__name__)


@dataclass
class PendingInstance:
    """An instance waiting for its component; `placeholder` holds its place in the tree."""

    key: str
    data: DesignNode
    placeholder: Any


class ComponentRegistry:
    def __init__(self):
        self._components: Dict[str, Any] = {}
        self._pending: Dict[str, List[PendingInstance]] = {}

    def register(self, key: str, component: Any) -> List[PendingInstance]:
        """Register `component` and return the instances that were waiting for it."""
        self._components[key] = component
        pending = self._pending.pop(key, [])
        if pending:
            logger.info(f"🧩 Component '{component.name}' registered, {len(pending)} deferred instance(s) ready")
        return pending

    def get(self, key: str) -> Optional[Any]:
        component = self._components.get(key)
        if component is not None and component.removed:
            return None
        return component

    def has(self, key: str) -> bool:
        return self.get(key) is not None

    def defer(self, key: str, data: DesignNode, placeholder: Any) -> PendingInstance:
        entry = PendingInstance(key, data, placeholder)
        self._pending.setdefault(key, []).append(entry)
        return entry

    def pending_count(self) -> int:
        return sum(len(entries) for entries in self._pending.values())

    def drain_pending(self) -> List[PendingInstance]:
        """Take every instance still waiting, key by key."""
        entries = [entry for key in list(self._pending) for entry in self._pending.pop(key)]
        return entries

    def clear(self) -> None:
        self._components.clear()
        self._pending.clear()

    def __len__(self) -> int:
        return len(self._components)
