"""
Graph editing surface.

The executor never touches graph state directly; handlers go through a
``GraphStore``. ``InMemoryGraphStore`` is the default implementation and
serializes its writes with an ``asyncio.Lock`` so concurrent sessions sharing
one store cannot interleave a read-modify-write.
"""

from __future__ import annotations

import asyncio
import copy
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

from planforge.config.defaults import DEFAULT_EDGE_TYPE
from planforge.tools.base import ToolResult

logger = logging.getLogger(__name__)

# Root nodes are laid out on a 4-column grid
ROOT_GRID_COLUMNS = 4
ROOT_ORIGIN = (100, 100)
ROOT_SPACING = (400, 300)


@dataclass
class GraphNode:
    id: str
    type: str
    label: str
    position: Dict[str, float]
    parent_id: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)

    def summary(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "label": self.label,
            "position": dict(self.position),
            "parentId": self.parent_id,
        }


@dataclass
class GraphEdge:
    id: str
    source_id: str
    target_id: str
    edge_type: str = DEFAULT_EDGE_TYPE

    def summary(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "sourceId": self.source_id,
            "targetId": self.target_id,
            "edgeType": self.edge_type,
        }


class GraphStore(Protocol):
    async def create_node(
        self,
        node_type: str,
        label: str,
        parent_id: Optional[str] = None,
        position: Optional[Dict[str, float]] = None,
        config: Optional[Dict[str, Any]] = None,
    ) -> ToolResult:
        ...

    async def connect_nodes(self, source_id: str, target_id: str, edge_type: str = DEFAULT_EDGE_TYPE) -> ToolResult:
        ...

    async def update_property(self, node_id: str, property_path: str, value: Any) -> ToolResult:
        ...

    async def delete_node(self, node_id: str) -> ToolResult:
        ...

    async def get_state(self) -> ToolResult:
        ...

    async def clear(self) -> ToolResult:
        ...


def set_nested(target: Dict[str, Any], path: List[str], value: Any) -> None:
    """Assign ``value`` at ``path``, creating intermediate dicts."""
    current = target
    for key in path[:-1]:
        if not isinstance(current.get(key), dict):
            current[key] = {}
        current = current[key]
    current[path[-1]] = value


class InMemoryGraphStore:
    """Process-local graph of nodes and typed edges."""

    def __init__(self):
        self.nodes: Dict[str, GraphNode] = {}
        self.edges: Dict[str, GraphEdge] = {}
        self._lock = asyncio.Lock()

    def _next_position(self, parent_id: Optional[str]) -> Dict[str, float]:
        if parent_id:
            count = sum(1 for n in self.nodes.values() if n.parent_id == parent_id)
            return {"x": 50, "y": 80 + count * 120}
        count = sum(1 for n in self.nodes.values() if not n.parent_id)
        col, row = count % ROOT_GRID_COLUMNS, count // ROOT_GRID_COLUMNS
        return {
            "x": ROOT_ORIGIN[0] + col * ROOT_SPACING[0],
            "y": ROOT_ORIGIN[1] + row * ROOT_SPACING[1],
        }

    async def create_node(
        self,
        node_type: str,
        label: str,
        parent_id: Optional[str] = None,
        position: Optional[Dict[str, float]] = None,
        config: Optional[Dict[str, Any]] = None,
    ) -> ToolResult:
        async with self._lock:
            if parent_id and parent_id not in self.nodes:
                return ToolResult.fail(f"Parent node not found: {parent_id}")
            node = GraphNode(
                id=str(uuid.uuid4()),
                type=node_type,
                label=label,
                position=dict(position) if position else self._next_position(parent_id),
                parent_id=parent_id,
                data=copy.deepcopy(config or {}),
            )
            self.nodes[node.id] = node
        logger.debug(f"Created node {node.id} ({node_type} '{label}')")
        return ToolResult.ok({"nodeId": node.id, "position": dict(node.position)})

    async def connect_nodes(self, source_id: str, target_id: str, edge_type: str = DEFAULT_EDGE_TYPE) -> ToolResult:
        async with self._lock:
            if source_id not in self.nodes:
                return ToolResult.fail(f"Source node not found: {source_id}")
            if target_id not in self.nodes:
                return ToolResult.fail(f"Target node not found: {target_id}")
            for edge in self.edges.values():
                if edge.source_id == source_id and edge.target_id == target_id:
                    return ToolResult.fail(f"Edge already exists between {source_id} and {target_id}")
            edge = GraphEdge(
                id=str(uuid.uuid4()),
                source_id=source_id,
                target_id=target_id,
                edge_type=edge_type or DEFAULT_EDGE_TYPE,
            )
            self.edges[edge.id] = edge
        return ToolResult.ok({"edgeId": edge.id})

    async def update_property(self, node_id: str, property_path: str, value: Any) -> ToolResult:
        """Set ``label``, ``position[.x|.y]`` or a dotted path inside node data."""
        async with self._lock:
            node = self.nodes.get(node_id)
            if node is None:
                return ToolResult.fail(f"Node not found: {node_id}")
            parts = property_path.split(".")
            try:
                if parts[0] == "label":
                    node.label = str(value)
                elif parts[0] == "position":
                    if len(parts) > 1 and parts[1] in ("x", "y"):
                        node.position[parts[1]] = float(value)
                    else:
                        node.position = dict(value)
                else:
                    set_nested(node.data, parts, value)
            except (TypeError, ValueError) as e:
                return ToolResult.fail(f"Invalid value for {property_path}: {e}")
        return ToolResult.ok()

    async def delete_node(self, node_id: str) -> ToolResult:
        """Delete a node, its edges, and its descendants."""
        async with self._lock:
            if node_id not in self.nodes:
                return ToolResult.fail(f"Node not found: {node_id}")
            pending = [node_id]
            removed = []
            while pending:
                current = pending.pop()
                if self.nodes.pop(current, None) is None:
                    continue
                removed.append(current)
                pending.extend(n.id for n in self.nodes.values() if n.parent_id == current)
            gone = set(removed)
            for edge_id in [e.id for e in self.edges.values() if e.source_id in gone or e.target_id in gone]:
                del self.edges[edge_id]
        return ToolResult.ok({"deletedNodeIds": removed})

    async def get_state(self) -> ToolResult:
        async with self._lock:
            return ToolResult.ok({
                "nodes": [n.summary() for n in self.nodes.values()],
                "edges": [e.summary() for e in self.edges.values()],
            })

    async def clear(self) -> ToolResult:
        async with self._lock:
            self.nodes.clear()
            self.edges.clear()
        return ToolResult.ok()
