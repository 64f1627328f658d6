"""Intent Router - one per session.

Classifies each message and dispatches it: BUILD/EDIT go through the plan
generator and executor, QUERY summarizes the graph, EXPORT/CONFIGURE answer
with guidance. Failures are reported as messages and the session always ends
back in ``idle``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from planforge.errors import RouterError
from planforge.execution.events import ExecutionObserver, NullObserver
from planforge.execution.executor import PlanExecutor
from planforge.execution.plan import ExecutionState, ExecutionStatus, Plan, PlanContext
from planforge.execution.registry import ActionHandlerRegistry
from planforge.planning.generator import PlanGenerator
from planforge.routing.intent import IntentClassifier, IntentResult, IntentType
from planforge.tools.graph_store import GraphStore

logger = logging.getLogger(__name__)

ROUTER_ROLE = "supervisor"

HELP_TEXT = (
    "I'm not sure what you'd like me to do. Try asking me to:\n"
    '- Build an agent workflow (e.g., "Create a supervisor with two workers")\n'
    '- Modify existing nodes (e.g., "Change the model for Agent 1")\n'
    '- Export your workflow (e.g., "Export as JSON")\n'
    '- Ask questions (e.g., "What agents are in the graph?")'
)

CAPABILITIES_TEXT = (
    "I can help you with:\n"
    "- Building new agent workflows\n"
    "- Modifying existing components\n"
    "- Exporting your workflow\n"
    "- Answering questions about the graph\n\n"
    'Try: "What\'s in the graph?" or "Create a new agent called Researcher"'
)

CONFIGURE_TEXT = (
    "Configuration changes are made per node. Select a node and edit its config:\n"
    "- Model settings\n"
    "- Permissions\n"
    "- Tools and skills"
)


class SessionState(Enum):
    IDLE = "idle"
    ROUTING = "routing"
    PLANNING = "planning"
    EXECUTING = "executing"
    COMPLETED = "completed"
    ERROR = "error"


@dataclass
class RouterOutcome:
    """What one message led to."""
    intent: IntentResult
    final_state: SessionState
    reply: str
    plan: Optional[Plan] = None
    execution: Optional[ExecutionState] = None


def summarize_graph(nodes: List[Dict], edges: List[Dict]) -> str:
    if not nodes:
        return 'The graph is currently empty. Try asking me to create something like "Create a supervisor agent with two workers".'
    labels = {n["id"]: n.get("label") or n["id"] for n in nodes}
    lines = ["**Graph Summary**", "", f"**Nodes ({len(nodes)}):**"]
    for node in nodes:
        nested = " [nested]" if node.get("parentId") else ""
        lines.append(f"- {node.get('label')} ({node.get('type')}){nested}")
    lines.extend(["", f"**Connections ({len(edges)}):**"])
    for edge in edges:
        source = labels.get(edge["sourceId"], edge["sourceId"])
        target = labels.get(edge["targetId"], edge["targetId"])
        kind = f" ({edge['edgeType']})" if edge.get("edgeType") else ""
        lines.append(f"- {source} -> {target}{kind}")
    return "\n".join(lines)


class IntentRouter:
    """Routes messages for one session and owns its active executor."""

    def __init__(
        self,
        classifier: IntentClassifier,
        generator: PlanGenerator,
        graph: GraphStore,
        registry: ActionHandlerRegistry,
        observer: Optional[ExecutionObserver] = None,
        executor_factory: Optional[Callable[[], PlanExecutor]] = None,
    ):
        self.classifier = classifier
        self.generator = generator
        self.graph = graph
        self.registry = registry
        self.observer = observer or NullObserver()
        self._executor_factory = executor_factory or (lambda: PlanExecutor(self.registry, self.observer))
        self.executor: Optional[PlanExecutor] = None
        self.state = SessionState.IDLE
        # Intent and plan of a paused build, for continue_execution
        self._paused: Optional[Tuple[IntentResult, Plan]] = None

    # =========================================================================
    # Notifications
    # =========================================================================

    def _set_state(self, state: SessionState) -> None:
        previous, self.state = self.state, state
        logger.debug(f"Session state {previous.value} -> {state.value}")
        try:
            self.observer.on_state_change(state.value)
        except Exception as e:
            logger.warning(f"Observer on_state_change failed: {e}")

    def _say(self, content: str) -> None:
        try:
            self.observer.on_message(ROUTER_ROLE, content)
        except Exception as e:
            logger.warning(f"Observer on_message failed: {e}")

    # =========================================================================
    # Control
    # =========================================================================

    def pause(self) -> None:
        if self.executor is not None:
            self.executor.pause()

    def resume(self) -> None:
        if self.executor is not None:
            self.executor.resume()

    async def continue_execution(self) -> Optional[RouterOutcome]:
        """Run the rest of a paused build. None when no build is paused."""
        if self.executor is None or self._paused is None:
            return None
        intent, plan = self._paused
        execution = await self.executor.continue_execution()
        return self._conclude(intent, plan, execution)

    # =========================================================================
    # Routing
    # =========================================================================

    async def handle_message(self, message: str) -> RouterOutcome:
        self._set_state(SessionState.ROUTING)
        self._say("Analyzing your request...")

        intent = await self.classifier.classify(message)
        self._say(f"Detected intent: {intent.intent_type.value} ({round(intent.confidence * 100)}% confidence)")
        logger.info(
            "intent_detected",
            extra={
                "event": "intent_detected",
                "intent": intent.intent_type.value,
                "confidence": intent.confidence,
                "source": intent.source,
            },
        )

        try:
            if intent.intent_type in (IntentType.BUILD, IntentType.EDIT):
                return await self._handle_build(message, intent)
            if intent.intent_type == IntentType.QUERY:
                reply = await self._handle_query(message)
            elif intent.intent_type == IntentType.EXPORT:
                reply = await self._handle_export()
            elif intent.intent_type == IntentType.CONFIGURE:
                reply = CONFIGURE_TEXT
            else:
                reply = HELP_TEXT
        except Exception as e:
            error = e if isinstance(e, RouterError) else RouterError(str(e), step="route", cause=e)
            logger.exception(f"Routing failed at {error.step}")
            reply = f"Error processing request: {error}"
            self._say(reply)
            self._set_state(SessionState.ERROR)
            self._set_state(SessionState.IDLE)
            return RouterOutcome(intent=intent, final_state=SessionState.ERROR, reply=reply)

        self._say(reply)
        self._set_state(SessionState.IDLE)
        return RouterOutcome(intent=intent, final_state=SessionState.IDLE, reply=reply)

    async def _graph_snapshot(self) -> PlanContext:
        result = await self.graph.get_state()
        if not result.success or not result.data:
            return PlanContext()
        return PlanContext(
            existing_nodes=[
                {"id": n["id"], "type": n["type"], "label": n["label"]}
                for n in result.data["nodes"]
            ],
            existing_edges=[
                {"id": e["id"], "source": e["sourceId"], "target": e["targetId"]}
                for e in result.data["edges"]
            ],
        )

    async def _handle_build(self, message: str, intent: IntentResult) -> RouterOutcome:
        self._set_state(SessionState.PLANNING)
        try:
            context = await self._graph_snapshot()
            context.user_intent = message
            plan = await self.generator.generate_plan(message, context)
        except Exception as e:
            logger.exception("Plan generation failed")
            reply = f"Error processing request: {e}"
            self._say(reply)
            self._set_state(SessionState.ERROR)
            self._set_state(SessionState.IDLE)
            return RouterOutcome(intent=intent, final_state=SessionState.ERROR, reply=reply)

        if plan is None:
            reply = "Failed to generate execution plan. Please try rephrasing your request."
            self._say(reply)
            self._set_state(SessionState.IDLE)
            return RouterOutcome(intent=intent, final_state=SessionState.IDLE, reply=reply)

        self._set_state(SessionState.EXECUTING)
        self.executor = self._executor_factory()
        execution = await self.executor.execute(plan)
        return self._conclude(intent, plan, execution)

    def _conclude(self, intent: IntentResult, plan: Plan, execution: ExecutionState) -> RouterOutcome:
        self._paused = None
        if execution.status == ExecutionStatus.COMPLETED:
            final = SessionState.COMPLETED
            reply = "Your workflow has been created successfully!"
        elif execution.status == ExecutionStatus.PAUSED:
            final = SessionState.EXECUTING
            reply = "Execution paused. Resume when ready."
            self._paused = (intent, plan)
        else:
            final = SessionState.ERROR
            reply = "Execution encountered errors. Check the steps above for details."

        self._say(reply)
        if final != SessionState.EXECUTING:
            self._set_state(final)
            self._set_state(SessionState.IDLE)
        return RouterOutcome(intent=intent, final_state=final, reply=reply, plan=plan, execution=execution)

    async def _handle_query(self, message: str) -> str:
        lower = message.lower()
        if not any(word in lower for word in ("graph", "canvas", "what")):
            return CAPABILITIES_TEXT
        result = await self.graph.get_state()
        if not result.success or not result.data:
            raise RouterError("Unable to read graph state.", step="query")
        return summarize_graph(result.data["nodes"], result.data["edges"])

    async def _handle_export(self) -> str:
        result = await self.graph.get_state()
        if not result.success or not result.data:
            raise RouterError("Unable to read graph state for export.", step="export")
        nodes, edges = result.data["nodes"], result.data["edges"]
        if not nodes:
            return "Nothing to export - the graph is empty."
        return (
            f"Ready to export workflow with {len(nodes)} nodes and {len(edges)} connections.\n\n"
            'Run "planforge plan --json" to write the plan, or ask me to '
            '"generate configuration files" to create them in the sandbox.'
        )
