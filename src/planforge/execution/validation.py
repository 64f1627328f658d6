"""Static plan validation.

Checks run in order:
1. Every step has a non-empty id, a well-formed action and well-formed fields
2. Every dependency id resolves to a step in the plan
3. Every ${name} placeholder is some step's declared output variable
4. A producer of that variable is in the consumer's dependsOn and has a
   strictly smaller order

Validation never raises. Plans are LLM-authored and a partially correct plan is
still worth showing the operator, so callers get a report and decide.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List

from planforge.execution.plan import Plan, PlanStep
from planforge.execution.variables import find_variable_references

logger = logging.getLogger(__name__)


@dataclass
class ValidationReport:
    """Errors block a clean run; warnings are informational."""

    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def to_dict(self) -> dict:
        return {
            "valid": self.is_valid,
            "error_count": len(self.errors),
            "warning_count": len(self.warnings),
            "errors": self.errors,
            "warnings": self.warnings,
        }


def _label(step: PlanStep) -> str:
    return f"Step {step.order} ({step.id or 'no id'})"


def build_report(plan: Plan) -> ValidationReport:
    report = ValidationReport()
    report.errors.extend(plan.metadata.defects)
    steps_by_id: Dict[str, PlanStep] = {s.id: s for s in plan.steps if s.id}

    # Duplicate ids make dependency lookups ambiguous
    for step_id, count in Counter(s.id for s in plan.steps if s.id).items():
        if count > 1:
            report.errors.append(f"Duplicate step id '{step_id}' ({count} steps)")

    producers: Dict[str, List[PlanStep]] = {}
    for step in plan.steps:
        if step.output is None:
            continue
        for name in step.output.variable_names():
            producers.setdefault(name, []).append(step)
    for name, owners in producers.items():
        if len(owners) > 1:
            report.errors.append(
                f"Variable '{name}' is declared by multiple steps: "
                + ", ".join(o.id for o in owners)
            )

    for step in plan.steps:
        label = _label(step)

        # 1. Identity and payload
        if not step.id:
            report.errors.append(f"Step {step.order} is missing an id")
        if step.action_error:
            report.errors.append(f"{label}: {step.action_error}")
        elif step.action is None:
            report.errors.append(f"{label} is missing an action")
        for defect in step.defects:
            report.errors.append(f"{label}: {defect}")

        # 2. Dependencies resolve
        for dep in step.depends_on:
            if dep not in steps_by_id:
                report.errors.append(f"{label} depends on unknown step '{dep}'")
            elif dep == step.id:
                report.errors.append(f"{label} depends on itself")

        if step.action is None:
            continue

        # 3 + 4. Placeholders
        for name in find_variable_references(step.action):
            owners = producers.get(name)
            if not owners:
                report.errors.append(f"{label} references undefined variable '${{{name}}}'")
                continue
            satisfied = any(
                owner.id in step.depends_on and owner.order < step.order
                for owner in owners
            )
            if satisfied:
                continue
            owner = owners[0]
            if owner.id not in step.depends_on:
                report.errors.append(
                    f"{label} uses '${{{name}}}' from step '{owner.id}' "
                    f"but does not depend on it"
                )
            else:
                report.errors.append(
                    f"{label} uses '${{{name}}}' from step '{owner.id}' "
                    f"which is not ordered before it (order {owner.order} >= {step.order})"
                )

    if plan.metadata.estimated_steps and plan.metadata.estimated_steps != len(plan.steps):
        report.warnings.append(
            f"metadata.estimatedSteps is {plan.metadata.estimated_steps} "
            f"but the plan has {len(plan.steps)} steps"
        )

    return report


def validate_plan(plan: Plan) -> List[str]:
    """Human-readable validation errors; empty means the plan is valid."""
    return build_report(plan).errors


def annotate_plan(plan: Plan) -> ValidationReport:
    """Validate and attach the result to ``plan``. Never raises."""
    report = build_report(plan)
    plan.validated = report.is_valid
    plan.validation_errors = list(report.errors)
    if not report.is_valid:
        logger.warning(
            "plan_validation_failed",
            extra={"event": "plan_validation_failed", "plan_id": plan.id, "errors": report.errors},
        )
    return report
