"""ExecutionLogStore - runs, deployments and partial re-execution triggers."""

from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from planforge.errors import RemediationError
from planforge.remediation.models import ExecutionLog
from planforge.store.database import Database

logger = logging.getLogger(__name__)

STATUS_RUNNING = "running"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"
DEPLOYMENT_ARCHIVED = "archived"


class ExecutionLogStore:
    def __init__(self, db: Database):
        self.db = db

    async def create_deployment(self, system_slug: str, deployment_id: Optional[str] = None) -> str:
        deployment_id = deployment_id or str(uuid.uuid4())
        async with self.db.lock:
            conn = await self.db.connection()
            await conn.execute(
                "INSERT INTO deployments (id, system_slug, status, config) VALUES (?, ?, 'active', '{}')",
                (deployment_id, system_slug),
            )
            await conn.commit()
        return deployment_id

    async def archive_deployment(self, deployment_id: str) -> None:
        async with self.db.lock:
            conn = await self.db.connection()
            await conn.execute(
                "UPDATE deployments SET status = ?, updated_at = ? WHERE id = ?",
                (DEPLOYMENT_ARCHIVED, datetime.now(timezone.utc).isoformat(), deployment_id),
            )
            await conn.commit()

    async def get_deployment_config(self, deployment_id: str) -> Dict[str, Any]:
        conn = await self.db.connection()
        cursor = await conn.execute("SELECT config FROM deployments WHERE id = ?", (deployment_id,))
        row = await cursor.fetchone()
        if row is None or not row["config"]:
            return {}
        return json.loads(row["config"])

    async def create(
        self,
        deployment_id: str,
        triggered_by: str = "manual",
        status: str = STATUS_RUNNING,
        qa_scores: Optional[Dict[str, float]] = None,
        phases_total: int = 0,
    ) -> str:
        execution_id = str(uuid.uuid4())
        async with self.db.lock:
            conn = await self.db.connection()
            await conn.execute(
                """
                INSERT INTO execution_logs (id, deployment_id, triggered_by, status, qa_scores, phases_total)
                VALUES (?, ?, ?, ?, ?, ?)
            """,
                (
                    execution_id,
                    deployment_id,
                    triggered_by,
                    status,
                    json.dumps(qa_scores) if qa_scores is not None else None,
                    phases_total,
                ),
            )
            await conn.commit()
        return execution_id

    async def get(self, execution_id: str) -> Optional[ExecutionLog]:
        conn = await self.db.connection()
        cursor = await conn.execute(
            """
            SELECT el.*, d.system_slug FROM execution_logs el
            JOIN deployments d ON d.id = el.deployment_id
            WHERE el.id = ?
        """,
            (execution_id,),
        )
        row = await cursor.fetchone()
        return self._row_to_log(row) if row else None

    async def trigger_partial(self, system_slug: str, owners: List[str]) -> str:
        """Start a re-run scoped to ``owners`` on the active deployment.

        Raises:
            RemediationError: No non-archived deployment for ``system_slug``
        """
        async with self.db.lock:
            conn = await self.db.connection()
            cursor = await conn.execute(
                "SELECT id, config FROM deployments WHERE system_slug = ? AND status != ? ORDER BY created_at DESC",
                (system_slug, DEPLOYMENT_ARCHIVED),
            )
            row = await cursor.fetchone()
            if row is None:
                raise RemediationError(f"No active deployment found for {system_slug}", step="trigger")

            execution_id = str(uuid.uuid4())
            await conn.execute(
                "INSERT INTO execution_logs (id, deployment_id, triggered_by, status) VALUES (?, ?, ?, ?)",
                (execution_id, row["id"], "qa-remediation", STATUS_RUNNING),
            )
            config = json.loads(row["config"]) if row["config"] else {}
            config["partialReRun"] = {"agentSlugs": list(owners), "executionId": execution_id}
            await conn.execute(
                "UPDATE deployments SET config = ?, updated_at = ? WHERE id = ?",
                (json.dumps(config), datetime.now(timezone.utc).isoformat(), row["id"]),
            )
            await conn.commit()

        logger.info(
            "partial_reexecution_triggered",
            extra={"event": "partial_reexecution_triggered", "system": system_slug, "owners": owners},
        )
        return execution_id

    async def mark_completed(self, execution_id: str, qa_scores: Dict[str, float]) -> None:
        await self._finish(execution_id, STATUS_COMPLETED, qa_scores)

    async def mark_failed(self, execution_id: str) -> None:
        await self._finish(execution_id, STATUS_FAILED, None)

    async def _finish(self, execution_id: str, status: str, qa_scores: Optional[Dict[str, float]]) -> None:
        async with self.db.lock:
            conn = await self.db.connection()
            await conn.execute(
                """
                UPDATE execution_logs SET status = ?, qa_scores = COALESCE(?, qa_scores), completed_at = ?
                WHERE id = ?
            """,
                (
                    status,
                    json.dumps(qa_scores) if qa_scores is not None else None,
                    datetime.now(timezone.utc).isoformat(),
                    execution_id,
                ),
            )
            await conn.commit()

    def _row_to_log(self, row) -> ExecutionLog:
        return ExecutionLog(
            id=row["id"],
            deployment_id=row["deployment_id"],
            system_slug=row["system_slug"],
            qa_scores=json.loads(row["qa_scores"]) if row["qa_scores"] else {},
            phases_total=row["phases_total"] or 0,
            output_url=row["output_url"],
            status=row["status"],
        )
