"""Tool surfaces the executor acts on: graph store and sandboxed filesystem."""

from planforge.tools.base import ToolResult
from planforge.tools.graph_store import GraphStore, InMemoryGraphStore
from planforge.tools.sandbox import SandboxFileSystem, SandboxPathError

__all__ = [
    "ToolResult",
    "GraphStore",
    "InMemoryGraphStore",
    "SandboxFileSystem",
    "SandboxPathError",
]
