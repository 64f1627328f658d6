"""OperatorActionLog - append-only audit trail of remediation actions."""

from __future__ import annotations

import json
import logging
from typing import List, Optional

from planforge.remediation.models import OperatorAction
from planforge.store.database import Database

logger = logging.getLogger(__name__)


class OperatorActionLog:
    """Insert and list only; rows are never updated or deleted."""

    def __init__(self, db: Database):
        self.db = db

    async def record(self, action: OperatorAction) -> int:
        """Persist ``action`` and return its row id."""
        async with self.db.lock:
            conn = await self.db.connection()
            cursor = await conn.execute(
                """
                INSERT INTO operator_actions (
                    deployment_id, operator_type, action_type, description,
                    before_state, after_state, auto_applied, approved
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
                (
                    action.deployment_id,
                    action.operator_type,
                    action.action_type,
                    action.description,
                    json.dumps(action.before_state, default=str),
                    json.dumps(action.after_state, default=str),
                    1 if action.auto_applied else 0,
                    None if action.approved is None else int(action.approved),
                ),
            )
            await conn.commit()
            action.id = cursor.lastrowid
        logger.info(
            "operator_action_recorded",
            extra={
                "event": "operator_action_recorded",
                "deployment_id": action.deployment_id,
                "action_type": action.action_type,
                "auto_applied": action.auto_applied,
            },
        )
        return action.id

    async def list(
        self,
        deployment_id: Optional[str] = None,
        action_type: Optional[str] = None,
    ) -> List[OperatorAction]:
        """Actions in insertion order, optionally filtered."""
        clauses, params = [], []
        if deployment_id is not None:
            clauses.append("deployment_id = ?")
            params.append(deployment_id)
        if action_type is not None:
            clauses.append("action_type = ?")
            params.append(action_type)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        conn = await self.db.connection()
        cursor = await conn.execute(
            f"SELECT * FROM operator_actions {where} ORDER BY id", tuple(params)
        )
        rows = await cursor.fetchall()
        return [self._row_to_action(r) for r in rows]

    def _row_to_action(self, row) -> OperatorAction:
        return OperatorAction(
            id=row["id"],
            deployment_id=row["deployment_id"],
            operator_type=row["operator_type"],
            action_type=row["action_type"],
            description=row["description"],
            before_state=json.loads(row["before_state"]) if row["before_state"] else {},
            after_state=json.loads(row["after_state"]) if row["after_state"] else {},
            auto_applied=bool(row["auto_applied"]),
            created_at=row["created_at"],
        )
