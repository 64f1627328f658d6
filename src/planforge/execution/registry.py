"""Action handler registry - one async handler per ActionType."""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Dict, List, Optional

from planforge.execution.actions import Action, ActionType
from planforge.tools.base import ToolResult

logger = logging.getLogger(__name__)

ActionHandler = Callable[[Action], Awaitable[ToolResult]]


class IncompleteRegistryError(ValueError):
    """Raised when a registry lacks a handler for some ActionType."""

    def __init__(self, missing: List[ActionType]):
        names = ", ".join(t.value for t in missing)
        super().__init__(f"No handler registered for action type(s): {names}")
        self.missing = missing


class ActionHandlerRegistry:
    """Maps every ActionType to exactly one handler.

    ``require_complete()`` enforces totality; PlanExecutor calls it on
    construction so a missing handler fails before any step runs.
    """

    def __init__(self, handlers: Optional[Dict[ActionType, ActionHandler]] = None):
        self._handlers: Dict[ActionType, ActionHandler] = {}
        for action_type, handler in (handlers or {}).items():
            self.register(action_type, handler)

    def register(self, action_type: ActionType, handler: ActionHandler) -> None:
        if action_type in self._handlers:
            logger.debug(f"Replacing handler for {action_type.value}")
        self._handlers[action_type] = handler

    def get(self, action_type: ActionType) -> Optional[ActionHandler]:
        return self._handlers.get(action_type)

    def missing(self) -> List[ActionType]:
        return [t for t in ActionType if t not in self._handlers]

    def require_complete(self) -> None:
        missing = self.missing()
        if missing:
            raise IncompleteRegistryError(missing)

    async def dispatch(self, action: Action) -> ToolResult:
        handler = self._handlers.get(action.type)
        if handler is None:
            return ToolResult.fail(f"Unknown action type: {action.type.value}")
        return await handler(action)
