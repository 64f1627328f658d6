#!/usr/bin/env python
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


def _repo_root() -> Path:
    return Path.cwd().resolve()


async def _plan(request: str, as_json: bool, output) -> int:
    from planforge.cli.output import ConsoleObserver
    from planforge.execution.plan import PlanContext
    from planforge.llm.failover import FailoverClient
    from planforge.planning.generator import PlanGenerator

    observer = None if as_json else ConsoleObserver(output)
    generator = PlanGenerator(FailoverClient(), observer=observer)
    plan = await generator.generate_plan(request, PlanContext(user_intent=request))
    if plan is None:
        output.print_error("No plan generated")
        return 1
    if as_json:
        print(json.dumps(plan.to_dict(), indent=2))
    else:
        output.print_plan(plan)
    return 0 if plan.validated else 2


async def _run(request: str, output) -> int:
    from planforge.cli.output import ConsoleObserver
    from planforge.config.settings import get_settings
    from planforge.llm.failover import FailoverClient
    from planforge.planning.generator import PlanGenerator
    from planforge.routing.intent import IntentClassifier
    from planforge.routing.session import IntentRouter, SessionState
    from planforge.tools.graph_store import InMemoryGraphStore
    from planforge.tools.handlers import build_default_handlers
    from planforge.tools.sandbox import SandboxFileSystem

    settings = get_settings()
    observer = ConsoleObserver(output)
    client = FailoverClient()
    graph = InMemoryGraphStore()
    router = IntentRouter(
        classifier=IntentClassifier(client),
        generator=PlanGenerator(client, observer=observer),
        graph=graph,
        registry=build_default_handlers(graph, SandboxFileSystem(settings.sandbox_root)),
        observer=observer,
    )
    outcome = await router.handle_message(request)
    if outcome.execution is not None:
        output.print_execution(outcome.execution)
    return 1 if outcome.final_state == SessionState.ERROR else 0


def _validate(path: Path, output) -> int:
    from planforge.errors import PlanParseError
    from planforge.execution.parser import parse_plan
    from planforge.execution.validation import annotate_plan

    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        output.print_error(f"Cannot read {path}: {e}")
        return 1
    try:
        plan = parse_plan(text)
    except PlanParseError as e:
        output.print_error(str(e))
        return 1
    annotate_plan(plan)
    output.print_plan(plan)
    return 0 if plan.validated else 2


async def _remediate(execution_id: str, output) -> int:
    from planforge.config.settings import get_settings
    from planforge.llm.failover import FailoverClient
    from planforge.llm.pools import build_pools
    from planforge.remediation.controller import RemediationController
    from planforge.remediation.patching import OwnerConfigStore
    from planforge.store.database import Database
    from planforge.store.execution_logs import ExecutionLogStore
    from planforge.store.operator_actions import OperatorActionLog

    settings = get_settings()
    pools = build_pools()
    async with Database(settings.db_path) as db:
        executions = ExecutionLogStore(db)
        log = await executions.get(execution_id)
        if log is None:
            output.print_error(f"Execution not found: {execution_id}")
            return 1
        controller = RemediationController(
            client=FailoverClient(pools=pools),
            config_store=OwnerConfigStore(settings.config_root),
            action_log=OperatorActionLog(db),
            executions=executions,
            has_backup_keys=any(pool.backup_key for pool in pools.values()),
        )
        actions = await controller.run(log)
    output.print_actions(actions)
    return 1 if any(a.action_type == "escalate" for a in actions) else 0


def _pools(output) -> int:
    from planforge.llm.pools import build_pools, get_pool_status

    output.print_pool_status(get_pool_status(build_pools()))
    return 0


def main(argv: Optional[list] = None) -> int:
    # Keep planforge at INFO for progress; quiet the HTTP stack
    logging.basicConfig(format="%(levelname)s %(name)s: %(message)s")
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("planforge").setLevel(logging.INFO)

    parser = argparse.ArgumentParser(
        prog="planforge",
        description="planforge - plan and execute agent-graph changes from natural language",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")

    plan_p = subparsers.add_parser("plan", help="Generate and validate a plan")
    plan_p.add_argument("request", help="What to build")
    plan_p.add_argument("--json", action="store_true", help="Output plan JSON")

    run_p = subparsers.add_parser("run", help="Route a request and execute it")
    run_p.add_argument("request", help="Operator message")

    validate_p = subparsers.add_parser("validate", help="Validate a plan JSON file")
    validate_p.add_argument("file", type=Path, help="Plan JSON (fenced or raw)")

    remediate_p = subparsers.add_parser("remediate", help="Run quality remediation for an execution")
    remediate_p.add_argument("execution_id", help="Execution log id")

    subparsers.add_parser("pools", help="Show credential tiers per role")

    args = parser.parse_args(argv)
    load_dotenv(_repo_root() / ".env")
    if args.verbose:
        logging.getLogger("planforge").setLevel(logging.DEBUG)

    if args.command is None:
        parser.print_help()
        return 0

    from planforge.cli.output import ConsoleOutput

    output = ConsoleOutput()
    try:
        if args.command == "plan":
            return asyncio.run(_plan(args.request, args.json, output))
        elif args.command == "run":
            return asyncio.run(_run(args.request, output))
        elif args.command == "validate":
            return _validate(args.file, output)
        elif args.command == "remediate":
            return asyncio.run(_remediate(args.execution_id, output))
        elif args.command == "pools":
            return _pools(output)
    except Exception as e:
        output.print_error(str(e))
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
