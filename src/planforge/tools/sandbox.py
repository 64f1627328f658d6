"""Sandboxed filesystem surface.

Every path is relative to the sandbox root. Null bytes and anything that
resolves outside the root are refused.
"""

from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import Union

import aiofiles

from planforge.tools.base import ToolResult

logger = logging.getLogger(__name__)


class SandboxPathError(ValueError):
    """Raised when a path escapes the sandbox or is malformed."""
    pass


class SandboxFileSystem:
    def __init__(self, root: Union[str, Path]):
        self.root = Path(root).resolve()
        self._lock = asyncio.Lock()

    def resolve_path(self, relative_path: str) -> Path:
        """Absolute path for ``relative_path``, guaranteed inside the root.

        Raises:
            SandboxPathError: Null byte in the path or path outside the root
        """
        if "\0" in relative_path:
            raise SandboxPathError("Access denied: invalid path")
        candidate = (self.root / relative_path).resolve()
        if candidate != self.root and self.root not in candidate.parents:
            raise SandboxPathError("Access denied: path outside sandbox")
        return candidate

    async def create_file(self, path: str, content: str) -> ToolResult:
        try:
            target = self.resolve_path(path)
        except SandboxPathError as e:
            return ToolResult.fail(str(e))
        try:
            async with self._lock:
                target.parent.mkdir(parents=True, exist_ok=True)
                async with aiofiles.open(target, "w", encoding="utf-8") as f:
                    await f.write(content)
        except OSError as e:
            logger.warning(f"Sandbox write failed for {path}: {e}")
            return ToolResult.fail(str(e))
        return ToolResult.ok({"absolutePath": str(target), "filePath": path})

    async def read_file(self, path: str) -> ToolResult:
        try:
            target = self.resolve_path(path)
        except SandboxPathError as e:
            return ToolResult.fail(str(e))
        try:
            async with aiofiles.open(target, "r", encoding="utf-8") as f:
                content = await f.read()
        except FileNotFoundError:
            return ToolResult.fail(f"File not found: {path}")
        except OSError as e:
            return ToolResult.fail(str(e))
        return ToolResult.ok({"content": content})

    async def list_directory(self, path: str = ".") -> ToolResult:
        relative = path or "."
        try:
            target = self.resolve_path(relative)
        except SandboxPathError as e:
            return ToolResult.fail(str(e))
        if not target.exists():
            if target == self.root:
                target.mkdir(parents=True, exist_ok=True)
            else:
                return ToolResult.fail(f"Directory not found: {path}")
        entries = []
        for entry in sorted(os.scandir(target), key=lambda e: e.name):
            item = {"name": entry.name, "type": "directory" if entry.is_dir() else "file"}
            if entry.is_file():
                item["size"] = entry.stat().st_size
            entries.append(item)
        return ToolResult.ok({"entries": entries, "path": relative})
