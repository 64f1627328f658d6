"""Tests for the action handler registry."""

import pytest
from unittest.mock import AsyncMock

from planforge.execution.actions import ActionType, DeleteNodeAction
from planforge.execution.registry import ActionHandlerRegistry, IncompleteRegistryError
from planforge.tools.base import ToolResult


def test_missing_lists_unregistered_types():
    registry = ActionHandlerRegistry({ActionType.CREATE_NODE: AsyncMock()})
    assert ActionType.CREATE_NODE not in registry.missing()
    assert len(registry.missing()) == len(ActionType) - 1


def test_require_complete_raises_with_missing():
    registry = ActionHandlerRegistry()
    with pytest.raises(IncompleteRegistryError) as exc_info:
        registry.require_complete()
    assert set(exc_info.value.missing) == set(ActionType)


@pytest.mark.asyncio
async def test_dispatch_routes_by_action_type(mock_registry):
    mock_registry.mocks[ActionType.DELETE_NODE].return_value = ToolResult.ok({"deletedNodeIds": ["n"]})

    result = await mock_registry.dispatch(DeleteNodeAction(node_id="n"))

    assert result.data == {"deletedNodeIds": ["n"]}
    mock_registry.mocks[ActionType.DELETE_NODE].assert_awaited_once()


@pytest.mark.asyncio
async def test_dispatch_without_handler_fails_softly():
    result = await ActionHandlerRegistry().dispatch(DeleteNodeAction(node_id="n"))
    assert not result.success
    assert result.error == "Unknown action type: DELETE_NODE"
