"""Constraint injection into owner configuration files.

Each owner has one Markdown configuration file per system. Remediation keeps a
single ``## QA Remediation Constraints`` section in it, closed by an HTML
comment. The section is replaced in place when present and appended otherwise.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Union

import aiofiles

from planforge.config.defaults import (
    REMEDIATION_CONFIG_FILENAME,
    REMEDIATION_SECTION_END,
    REMEDIATION_SECTION_MARKER,
)

logger = logging.getLogger(__name__)


def apply_constraint(
    existing: str,
    constraint: str,
    marker: str = REMEDIATION_SECTION_MARKER,
    end_marker: str = REMEDIATION_SECTION_END,
) -> str:
    """Return ``existing`` with the remediation section set to ``constraint``.

    The section runs from ``marker`` to ``end_marker``, so headings inside the
    constraint stay part of it. A section written without the end marker ends
    at the next ``## `` heading. Applying the same constraint twice yields the
    same text.
    """
    section = f"{marker}\n\n{constraint.strip()}\n{end_marker}"
    if marker not in existing:
        return f"{existing}\n\n{section}\n"

    start = existing.index(marker)
    end = existing.find(end_marker, start + len(marker))
    if end != -1:
        after = existing[end + len(end_marker):]
    else:
        next_section = existing.find("\n## ", start + len(marker))
        after = "\n" + existing[next_section:] if next_section != -1 else "\n"
    return f"{existing[:start]}{section}{after}"


@dataclass
class PatchResult:
    path: Path
    before: str
    after: str

    @property
    def changed(self) -> bool:
        return self.before != self.after


class OwnerConfigStore:
    """Reads and writes ``<root>/<system>/<owner>/AGENT.md``."""

    def __init__(self, root: Union[str, Path], filename: str = REMEDIATION_CONFIG_FILENAME):
        self.root = Path(root)
        self.filename = filename
        self._lock = asyncio.Lock()

    def path_for(self, system_slug: str, owner: str) -> Path:
        return self.root / system_slug / owner / self.filename

    async def read(self, system_slug: str, owner: str) -> str:
        path = self.path_for(system_slug, owner)
        try:
            async with aiofiles.open(path, "r", encoding="utf-8") as f:
                return await f.read()
        except FileNotFoundError:
            return ""

    async def patch(self, system_slug: str, owner: str, constraint: str) -> PatchResult:
        """Inject ``constraint`` and persist; returns before/after text."""
        path = self.path_for(system_slug, owner)
        async with self._lock:
            before = await self.read(system_slug, owner)
            after = apply_constraint(before, constraint)
            path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(path, "w", encoding="utf-8") as f:
                await f.write(after)
        logger.debug(f"Patched {path} ({len(before)} -> {len(after)} chars)")
        return PatchResult(path=path, before=before, after=after)
