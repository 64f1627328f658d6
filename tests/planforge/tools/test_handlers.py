"""Tests for the default action handlers."""

import pytest

from planforge.execution.actions import (
    ConnectNodesAction,
    CreateFileAction,
    CreateNodeAction,
    DeleteNodeAction,
    RegisterCapabilityAction,
    UpdateNodeAction,
)
from planforge.execution.executor import PlanExecutor
from planforge.execution.plan import ExecutionStatus
from planforge.tools.graph_store import InMemoryGraphStore
from planforge.tools.handlers import build_default_handlers
from planforge.tools.sandbox import SandboxFileSystem


@pytest.fixture
def graph():
    return InMemoryGraphStore()


@pytest.fixture
def registry(graph, tmp_path):
    return build_default_handlers(graph, SandboxFileSystem(tmp_path))


def test_registry_is_complete(registry):
    assert registry.missing() == []


@pytest.mark.asyncio
async def test_create_node_returns_only_node_id(registry):
    result = await registry.dispatch(CreateNodeAction(node_type="agent", label="A"))
    assert list(result.data) == ["nodeId"]


@pytest.mark.asyncio
async def test_connect_update_delete(registry, graph):
    a = (await registry.dispatch(CreateNodeAction(node_type="agent", label="A"))).data["nodeId"]
    b = (await registry.dispatch(CreateNodeAction(node_type="agent", label="B"))).data["nodeId"]

    edge = await registry.dispatch(ConnectNodesAction(source_id=a, target_id=b))
    update = await registry.dispatch(UpdateNodeAction(node_id=a, changes={"label": "Lead", "config": {"model": "opus"}}))
    delete = await registry.dispatch(DeleteNodeAction(node_id=b))

    assert list(edge.data) == ["edgeId"]
    assert update.success
    assert graph.nodes[a].label == "Lead"
    assert graph.nodes[a].data == {"model": "opus"}
    assert delete.success and delete.data is None
    assert graph.edges == {}


@pytest.mark.asyncio
async def test_update_missing_node_fails(registry):
    result = await registry.dispatch(UpdateNodeAction(node_id="ghost", changes={"label": "x"}))
    assert result.error == "Node not found: ghost"


@pytest.mark.asyncio
async def test_create_file_and_capability(registry, tmp_path):
    file_result = await registry.dispatch(CreateFileAction(path="docs/readme.md", content="hi"))
    hook_result = await registry.dispatch(
        RegisterCapabilityAction(name="on-save", capability_type="hook", content='{"run": "lint"}')
    )

    assert file_result.data == {"filePath": "docs/readme.md"}
    assert hook_result.data == {"filePath": ".claude/hooks/on-save.json"}
    assert (tmp_path / ".claude" / "hooks" / "on-save.json").read_text() == '{"run": "lint"}'


@pytest.mark.asyncio
async def test_plan_end_to_end_against_real_tools(registry, graph, plan_factory, wire):
    plan = plan_factory([
        wire.step("s1", 1, wire.node("Team", node_type="department"), output={"nodeIdVariable": "team"}),
        wire.step("s2", 2, wire.node("Lead", parentId="${team}"), depends_on=["s1"],
                  output={"nodeIdVariable": "lead"}),
        wire.step("s3", 3, {"type": "CREATE_FILE", "path": "agents/${lead}.md", "content": "# Lead"},
                  depends_on=["s2"], output={"filePathVariable": "doc"}),
    ])

    state = await PlanExecutor(registry).execute(plan)

    assert state.status == ExecutionStatus.COMPLETED
    lead = graph.nodes[state.variables["lead"]]
    assert lead.parent_id == state.variables["team"]
    assert state.variables["doc"] == f"agents/{lead.id}.md"
