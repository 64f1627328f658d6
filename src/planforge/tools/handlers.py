"""Default action handlers wiring each ActionType to a tool surface."""

from __future__ import annotations

import logging

from planforge.execution.actions import (
    ActionType,
    ConnectNodesAction,
    CreateFileAction,
    CreateNodeAction,
    DeleteNodeAction,
    RegisterCapabilityAction,
    UpdateNodeAction,
)
from planforge.execution.registry import ActionHandlerRegistry
from planforge.tools.base import ToolResult
from planforge.tools.graph_store import GraphStore
from planforge.tools.sandbox import SandboxFileSystem

logger = logging.getLogger(__name__)


class ToolHandlers:
    """Translates resolved actions into graph and sandbox calls.

    Result data carries only the fields the executor binds:
    ``nodeId``, ``edgeId`` and ``filePath``.
    """

    def __init__(self, graph: GraphStore, sandbox: SandboxFileSystem):
        self.graph = graph
        self.sandbox = sandbox

    async def create_node(self, action: CreateNodeAction) -> ToolResult:
        result = await self.graph.create_node(
            node_type=action.node_type,
            label=action.label,
            parent_id=action.parent_id,
            position=action.position,
            config=action.config,
        )
        if not result.success:
            return result
        return ToolResult.ok({"nodeId": result.data["nodeId"]})

    async def connect_nodes(self, action: ConnectNodesAction) -> ToolResult:
        result = await self.graph.connect_nodes(action.source_id, action.target_id, action.edge_type)
        if not result.success:
            return result
        return ToolResult.ok({"edgeId": result.data["edgeId"]})

    async def update_node(self, action: UpdateNodeAction) -> ToolResult:
        label = action.changes.get("label")
        if label:
            result = await self.graph.update_property(action.node_id, "label", label)
            if not result.success:
                return result
        for key, value in (action.changes.get("config") or {}).items():
            result = await self.graph.update_property(action.node_id, key, value)
            if not result.success:
                return result
        return ToolResult.ok()

    async def delete_node(self, action: DeleteNodeAction) -> ToolResult:
        result = await self.graph.delete_node(action.node_id)
        return ToolResult(success=result.success, error=result.error)

    async def create_file(self, action: CreateFileAction) -> ToolResult:
        result = await self.sandbox.create_file(action.path, action.content)
        if not result.success:
            return result
        return ToolResult.ok({"filePath": action.path})

    async def register_capability(self, action: RegisterCapabilityAction) -> ToolResult:
        path = action.file_path
        result = await self.sandbox.create_file(path, action.content)
        if not result.success:
            return result
        logger.info(f"Registered {action.capability_type} '{action.name}' at {path}")
        return ToolResult.ok({"filePath": path})


def build_default_handlers(graph: GraphStore, sandbox: SandboxFileSystem) -> ActionHandlerRegistry:
    handlers = ToolHandlers(graph, sandbox)
    return ActionHandlerRegistry({
        ActionType.CREATE_NODE: handlers.create_node,
        ActionType.CONNECT_NODES: handlers.connect_nodes,
        ActionType.UPDATE_NODE: handlers.update_node,
        ActionType.DELETE_NODE: handlers.delete_node,
        ActionType.CREATE_FILE: handlers.create_file,
        ActionType.REGISTER_CAPABILITY: handlers.register_capability,
    })
