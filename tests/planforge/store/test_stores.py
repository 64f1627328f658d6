"""Tests for the SQLite-backed stores."""

import pytest

from planforge.errors import RemediationError
from planforge.remediation.models import OperatorAction
from planforge.store.database import Database
from planforge.store.execution_logs import ExecutionLogStore
from planforge.store.operator_actions import OperatorActionLog


@pytest.fixture
async def db(tmp_path):
    database = Database(tmp_path / ".planforge" / "planforge.db")
    await database.initialize()
    yield database
    await database.close()


@pytest.mark.asyncio
async def test_initialize_creates_database_file(tmp_path):
    path = tmp_path / "nested" / "planforge.db"
    async with Database(path):
        pass
    assert path.exists()


@pytest.mark.asyncio
async def test_in_memory_database():
    async with Database(":memory:") as database:
        log = OperatorActionLog(database)
        await log.record(OperatorAction(deployment_id="d", action_type="patch", description="x"))
        assert len(await log.list()) == 1


@pytest.mark.asyncio
async def test_record_and_list_actions(db):
    log = OperatorActionLog(db)
    patch = OperatorAction(
        deployment_id="dep-1",
        action_type="patch",
        description="Patched copywriter",
        before_state={"score": 70},
        after_state={"constraint": "Shorter."},
    )
    escalate = OperatorAction(deployment_id="dep-1", action_type="escalate", description="Help", auto_applied=False)
    other = OperatorAction(deployment_id="dep-2", action_type="patch", description="Other")

    for action in (patch, escalate, other):
        await log.record(action)

    assert patch.id is not None
    listed = await log.list(deployment_id="dep-1")
    assert [a.action_type for a in listed] == ["patch", "escalate"]
    assert listed[0].before_state == {"score": 70}
    assert listed[0].after_state == {"constraint": "Shorter."}
    assert listed[1].auto_applied is False
    assert listed[1].approved is None
    assert [a.deployment_id for a in await log.list(action_type="patch")] == ["dep-1", "dep-2"]


@pytest.mark.asyncio
async def test_approved_column(db):
    log = OperatorActionLog(db)
    await log.record(OperatorAction(deployment_id="d", action_type="patch", description="auto"))
    await log.record(OperatorAction(deployment_id="d", action_type="escalate", description="manual", auto_applied=False))

    conn = await db.connection()
    cursor = await conn.execute("SELECT approved FROM operator_actions ORDER BY id")
    assert [row["approved"] for row in await cursor.fetchall()] == [1, None]


@pytest.mark.asyncio
async def test_execution_log_lifecycle(db):
    store = ExecutionLogStore(db)
    deployment_id = await store.create_deployment("acme", deployment_id="dep-1")
    execution_id = await store.create(deployment_id, phases_total=4)

    running = await store.get(execution_id)
    assert running.status == "running"
    assert running.system_slug == "acme"
    assert running.qa_scores == {}
    assert running.phases_total == 4

    await store.mark_completed(execution_id, {"SEO": 91})
    done = await store.get(execution_id)
    assert done.status == "completed"
    assert done.qa_scores == {"SEO": 91}

    await store.mark_failed(execution_id)
    failed = await store.get(execution_id)
    assert failed.status == "failed"
    assert failed.qa_scores == {"SEO": 91}


@pytest.mark.asyncio
async def test_get_unknown_execution(db):
    assert await ExecutionLogStore(db).get("nope") is None


@pytest.mark.asyncio
async def test_trigger_partial_records_rerun(db):
    store = ExecutionLogStore(db)
    await store.create_deployment("acme", deployment_id="dep-1")

    execution_id = await store.trigger_partial("acme", ["copywriter", "strategist"])

    rerun = await store.get(execution_id)
    assert rerun.status == "running"
    assert rerun.deployment_id == "dep-1"
    config = await store.get_deployment_config("dep-1")
    assert config["partialReRun"] == {"agentSlugs": ["copywriter", "strategist"], "executionId": execution_id}


@pytest.mark.asyncio
async def test_trigger_partial_without_active_deployment(db):
    store = ExecutionLogStore(db)
    await store.create_deployment("acme", deployment_id="dep-1")
    await store.archive_deployment("dep-1")

    with pytest.raises(RemediationError, match="No active deployment found for acme") as exc_info:
        await store.trigger_partial("acme", ["copywriter"])
    assert exc_info.value.step == "trigger"
