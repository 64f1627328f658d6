"""
Output formatting with Rich console.
"""

from __future__ import annotations

from typing import Dict, List

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.theme import Theme

from planforge.execution.events import StepEvent
from planforge.execution.plan import ExecutionState, Plan, PlanStep
from planforge.remediation.models import OperatorAction

custom_theme = Theme({
    "info": "cyan",
    "warning": "yellow",
    "error": "red",
    "success": "green",
})


def _action_label(step: PlanStep) -> str:
    if step.action is not None:
        return step.action.type.value
    if isinstance(step.raw_action, dict) and step.raw_action.get("type"):
        return escape(f"{step.raw_action['type']} (invalid)")
    return "-"


class ConsoleOutput:
    """Console output with Rich formatting."""

    def __init__(self, console: Console = None):
        self.console = console or Console(theme=custom_theme)

    def print(self, text: str = "", **kwargs):
        self.console.print(text, **kwargs)

    def print_error(self, text: str):
        self.console.print(f"[red]Error:[/red] {escape(text)}")

    def print_success(self, text: str):
        self.console.print(f"[green]Success:[/green] {escape(text)}")

    def print_warning(self, text: str):
        self.console.print(f"[yellow]Warning:[/yellow] {escape(text)}")

    def print_dim(self, text: str):
        self.console.print(f"[dim]{escape(text)}[/dim]")

    def print_plan(self, plan: Plan):
        """Steps as a table, followed by validation errors if any."""
        table = Table(title=escape(f"{plan.metadata.name} ({plan.metadata.complexity})"))
        table.add_column("#", justify="right")
        table.add_column("Step")
        table.add_column("Action")
        table.add_column("Depends on")
        table.add_column("Outputs")
        for step in plan.ordered_steps():
            table.add_row(
                str(step.order),
                escape(step.name or step.id),
                _action_label(step),
                ", ".join(step.depends_on) or "-",
                ", ".join(step.output.variable_names()) if step.output else "-",
            )
        self.console.print(table)
        if plan.validation_errors:
            for error in plan.validation_errors:
                self.print_warning(error)
        else:
            self.print_success("Plan is valid")

    def print_execution(self, state: ExecutionState):
        style = {"completed": "green", "failed": "red"}.get(state.status.value, "yellow")
        self.console.print(f"Status: [{style}]{state.status.value}[/{style}]")
        for result in state.step_results:
            mark = "[green]ok[/green]" if result.success else f"[red]failed[/red] {escape(result.error or '')}"
            self.console.print(f"  {result.step_id}: {mark} (attempts: {result.attempts})")
        for step_id in state.skipped_step_ids:
            self.print_dim(f"  {step_id}: skipped")
        if state.variables:
            self.print_dim("Variables: " + ", ".join(f"{k}={v}" for k, v in state.variables.items()))

    def print_pool_status(self, status: Dict[str, dict]):
        table = Table(title="Credential tiers")
        table.add_column("Role")
        table.add_column("Primary")
        table.add_column("Backup")
        table.add_column("Preferred model")
        table.add_column("Emergency model")
        table.add_column("Tiers")
        for role, info in status.items():
            table.add_row(
                role,
                "yes" if info["primary"] else "no",
                "yes" if info["backup"] else "no",
                info["models"]["preferred"],
                info["models"]["emergency"],
                " -> ".join(info["tiers"]) or "[red]none[/red]",
            )
        self.console.print(table)

    def print_actions(self, actions: List[OperatorAction]):
        for action in actions:
            flag = "auto" if action.auto_applied else "[yellow]needs review[/yellow]"
            self.console.print(f"[bold]{action.action_type}[/bold] ({flag}): {escape(action.description)}")
            recommendation = action.after_state.get("recommendation")
            if recommendation:
                self.print_dim(f"  {recommendation['actionType']}: {recommendation['description']}")


class ConsoleObserver:
    """Streams executor and session notifications to the console."""

    def __init__(self, output: ConsoleOutput):
        self.output = output

    def on_message(self, role: str, content: str) -> None:
        self.output.print(f"[bold cyan]{role}[/bold cyan] {escape(content)}")

    def on_step_start(self, event: StepEvent) -> None:
        self.output.print_dim(f"[{event.step_order}/{event.total_steps}] {event.step_name}...")

    def on_step_complete(self, event: StepEvent) -> None:
        if not event.success:
            self.output.print_error(f"{event.step_name}: {event.error}")

    def on_step_skipped(self, plan_id: str, step_id: str, reason: str) -> None:
        self.output.print_warning(f"Skipped {step_id}: {reason}")

    def on_plan_complete(self, plan_id: str, success: bool) -> None:
        pass

    def on_state_change(self, state: str) -> None:
        self.output.print_dim(f"state: {state}")
