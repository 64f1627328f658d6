"""Plan Generator - natural-language request to validated Plan.

Sends the request and a snapshot of the graph to the architect role through the
failover client, parses the JSON reply and annotates it with validation
results. Generation failures are reported to the observer and return None so
the surrounding session can recover.
"""

from __future__ import annotations

import json
import logging
from typing import Optional

from planforge.config.defaults import ROLE_ARCHITECT
from planforge.errors import PlanforgeError
from planforge.execution.events import ExecutionObserver, NullObserver
from planforge.execution.parser import parse_plan
from planforge.execution.plan import Plan, PlanContext
from planforge.execution.validation import annotate_plan
from planforge.llm.failover import FailoverClient

logger = logging.getLogger(__name__)

ARCHITECT_SYSTEM_PROMPT = """You design execution plans for an agent-workflow graph editor.

Input: the operator's request and the current graph (nodes and edges).
Output: a single JSON object describing an ExecutionPlan. No prose.

Plan shape:
{
  "id": string,
  "version": "1.0",
  "metadata": {"name": string, "description": string,
               "complexity": "simple" | "moderate" | "complex",
               "estimatedSteps": number},
  "steps": [Step, ...]
}

Step shape:
{
  "id": string,
  "order": number (1-based, ascending),
  "name": string,
  "description": string (optional),
  "action": Action,
  "dependsOn": [step id, ...],
  "output": {"nodeIdVariable"?: string, "edgeIdVariable"?: string,
             "filePathVariable"?: string} (optional)
}

Actions (discriminated by "type"):
- CREATE_NODE: nodeType, label, parentId?, position? {x, y}, config?
- CONNECT_NODES: sourceId, targetId,
  edgeType? "data" | "control" | "event" | "delegation" | "failover"
- UPDATE_NODE: nodeId, changes {label?, config?}
- DELETE_NODE: nodeId
- CREATE_FILE: path (relative to the sandbox), content
- REGISTER_CAPABILITY: name, capabilityType "skill" | "hook" | "command",
  content, triggers?

Variables:
- A step that creates something may store its id in an output variable.
- Later steps reference it as ${variable_name} inside any string field.
- A step that references a variable MUST list the producing step in
  dependsOn, and the producing step MUST have a lower order.

Rules:
- Connect every capability node (skill, hook, command) to the agent that uses it.
- Connect edges to agents, not to container nodes.
- Always set edgeType on CONNECT_NODES.
- Give every agent node a config with role, model, description and systemPrompt.

Output ONLY the JSON object."""


def build_user_message(user_intent: str, context: PlanContext) -> str:
    """Request plus graph snapshot, as sent to the architect."""
    nodes = context.existing_nodes
    edges = context.existing_edges
    nodes_text = json.dumps(nodes, indent=2) if nodes else "None - graph is empty"
    edges_text = json.dumps(edges, indent=2) if edges else "None - no connections"
    return (
        f"## User Request\n{user_intent}\n\n"
        f"## Current Graph State\n\n"
        f"### Existing Nodes ({len(nodes)})\n{nodes_text}\n\n"
        f"### Existing Edges ({len(edges)})\n{edges_text}\n\n"
        "## Instructions\n"
        "Generate an ExecutionPlan for this request, building on the existing "
        "graph where relevant. Output ONLY valid JSON."
    )


class PlanGenerator:
    """Architect role: produces candidate plans."""

    def __init__(
        self,
        client: FailoverClient,
        observer: Optional[ExecutionObserver] = None,
    ):
        self.client = client
        self.observer = observer or NullObserver()

    def _message(self, content: str) -> None:
        try:
            self.observer.on_message(ROLE_ARCHITECT, content)
        except Exception as e:
            logger.warning(f"Observer on_message failed: {e}")

    async def generate_plan(self, user_intent: str, context: PlanContext) -> Optional[Plan]:
        """
        Generate and validate a plan.

        Returns:
            The annotated plan (possibly with validation errors), or None when
            generation or parsing failed.
        """
        self._message(f'Analyzing request: "{user_intent}"')
        context = PlanContext(
            user_intent=user_intent,
            existing_nodes=list(context.existing_nodes),
            existing_edges=list(context.existing_edges),
        )
        messages = [{"role": "user", "content": build_user_message(user_intent, context)}]

        try:
            completion = await self.client.generate(ROLE_ARCHITECT, ARCHITECT_SYSTEM_PROMPT, messages)
            text = completion.first_text()
            plan = parse_plan(text, user_intent=user_intent, context=context)
        except PlanforgeError as e:
            logger.warning(
                "plan_generation_failed",
                extra={"event": "plan_generation_failed", "error": str(e)},
            )
            self._message(f"Failed to generate plan: {e}")
            return None

        report = annotate_plan(plan)
        if not report.is_valid:
            self._message(f"Plan has validation warnings: {', '.join(report.errors)}")
        self._message(f'Generated plan "{plan.metadata.name}" with {len(plan.steps)} steps.')
        logger.info(
            "plan_generated",
            extra={
                "event": "plan_generated",
                "plan_id": plan.id,
                "steps": len(plan.steps),
                "valid": plan.validated,
                "tier": completion.tier,
            },
        )
        return plan
