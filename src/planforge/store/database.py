"""
Database - shared aiosqlite connection and schema.

One connection per Database instance, guarded by an asyncio.Lock for writes.
Tables:
- deployments: systems that can be re-executed
- execution_logs: runs with status and quality scores
- operator_actions: append-only remediation audit trail
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional, Union

import aiosqlite

logger = logging.getLogger(__name__)

SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS deployments (
        id TEXT PRIMARY KEY,
        system_slug TEXT NOT NULL,
        status TEXT NOT NULL DEFAULT 'active',
        config TEXT,  -- JSON
        created_at TEXT DEFAULT CURRENT_TIMESTAMP,
        updated_at TEXT DEFAULT CURRENT_TIMESTAMP
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_deployments_slug ON deployments(system_slug)",
    """
    CREATE TABLE IF NOT EXISTS execution_logs (
        id TEXT PRIMARY KEY,
        deployment_id TEXT NOT NULL REFERENCES deployments(id),
        triggered_by TEXT,
        status TEXT NOT NULL,
        qa_scores TEXT,  -- JSON
        phases_total INTEGER DEFAULT 0,
        output_url TEXT,
        started_at TEXT DEFAULT CURRENT_TIMESTAMP,
        completed_at TEXT
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_execution_logs_deployment ON execution_logs(deployment_id)",
    """
    CREATE TABLE IF NOT EXISTS operator_actions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        deployment_id TEXT NOT NULL,
        operator_type TEXT NOT NULL,
        action_type TEXT NOT NULL,
        description TEXT NOT NULL,
        before_state TEXT,  -- JSON
        after_state TEXT,  -- JSON
        auto_applied INTEGER NOT NULL,
        approved INTEGER,
        created_at TEXT DEFAULT CURRENT_TIMESTAMP
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_operator_actions_deployment ON operator_actions(deployment_id)",
]


class Database:
    """Async SQLite access shared by the stores."""

    def __init__(self, db_path: Union[str, Path]):
        self.db_path = Path(db_path) if str(db_path) != ":memory:" else None
        self._target = str(db_path)
        self.lock = asyncio.Lock()
        self._connection: Optional[aiosqlite.Connection] = None

    async def connection(self) -> aiosqlite.Connection:
        """Get or create the shared connection."""
        if self._connection is None:
            self._connection = await aiosqlite.connect(self._target)
            self._connection.row_factory = aiosqlite.Row
        return self._connection

    async def initialize(self) -> None:
        """Create schema if not exists."""
        if self.db_path is not None:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        async with self.lock:
            conn = await self.connection()
            for statement in SCHEMA:
                await conn.execute(statement)
            await conn.commit()
        logger.info(f"Initialized database at {self._target}")

    async def close(self) -> None:
        """Close the database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None

    async def __aenter__(self) -> "Database":
        await self.initialize()
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()
