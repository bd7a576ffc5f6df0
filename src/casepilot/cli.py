#!/usr/bin/env python3
"""
CasePilot CLI

Command-line interface for validating packs, running rule evaluations
offline and serving the API.

Usage:
    casepilot validate-pack --kind rules --pack rules.yaml
    casepilot validate-pack                      # bundled defaults
    casepilot evaluate --input scenario.json --out results.json
    casepilot serve --port 8000

Exit Codes:
    0   OK              - Command succeeded
    10  INPUT_INVALID   - Invalid input file
    11  PACK_ERROR      - Pack validation/loading failed
    20  INTERNAL_ERROR  - Unexpected internal error

Scenario file (evaluate):
    {
      "users": [{"id": "u1", "name": "Ana", "role": "attorney"}],
      "cases": [{"id": "c1", "title": "...", "case_type": "contract_dispute",
                 "client_id": "cl1"}],
      "tasks": [{"id": "t1", "case_id": "c1", "title": "Draft motion"}],
      "context": {"task_id": "t1", "trigger_event": {"type": "task_created"},
                  "timestamp": "2026-03-02T09:00:00+00:00", "metadata": {}}
    }
"""
from __future__ import annotations

import argparse
import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from . import __version__
from .config import Settings, get_settings
from .exceptions import CasePilotError, PackLoadError, PackValidationError
from .log import configure_logging
from .models import (
    Case,
    RuleEvaluationContext,
    Task,
    TriggerEvent,
    TriggerEventType,
    User,
)
from .packs import (
    PackLoader,
    load_default_rule_pack,
    load_default_workflow_pack,
)
from .services import build_services


# ============================================================================
# EXIT CODES
# ============================================================================

class ExitCode:
    """Deterministic exit codes for pipeline integration."""
    OK = 0                # Command succeeded
    INPUT_INVALID = 10    # Invalid input files
    PACK_ERROR = 11       # Pack validation/loading failed
    INTERNAL_ERROR = 20   # Unexpected error


# ============================================================================
# OUTPUT HELPERS
# ============================================================================

class Colors:
    """ANSI color codes for terminal output."""
    CYAN = '\033[96m'
    GREEN = '\033[92m'
    YELLOW = '\033[93m'
    RED = '\033[91m'
    BOLD = '\033[1m'
    END = '\033[0m'

    @classmethod
    def disable(cls):
        cls.CYAN = ''
        cls.GREEN = ''
        cls.YELLOW = ''
        cls.RED = ''
        cls.BOLD = ''
        cls.END = ''


def print_header(text: str):
    print(f"\n{Colors.BOLD}{Colors.CYAN}{'='*60}{Colors.END}")
    print(f"{Colors.BOLD}{Colors.CYAN}{text}{Colors.END}")
    print(f"{Colors.BOLD}{Colors.CYAN}{'='*60}{Colors.END}")


def print_success(text: str):
    print(f"{Colors.GREEN}[OK] {text}{Colors.END}")


def print_error(text: str):
    print(f"{Colors.RED}[ERROR] {text}{Colors.END}", file=sys.stderr)


def print_warning(text: str):
    print(f"{Colors.YELLOW}[WARN] {text}{Colors.END}")


def print_kv(key: str, value: str, indent: int = 0):
    spaces = "  " * indent
    print(f"{spaces}{Colors.BOLD}{key}:{Colors.END} {value}")


def print_pack_errors(error: CasePilotError):
    errors = error.details.get("errors", [])
    print_error(f"{error.message}")
    for item in errors:
        print(f"  {Colors.RED}[X]{Colors.END} {item}")


# ============================================================================
# SCENARIO PARSING
# ============================================================================

DATETIME_FIELDS = ("due_date", "created_at", "updated_at", "phase_started_at", "timestamp")


def parse_datetime(value: Any) -> Optional[datetime]:
    """ISO 8601 string to an aware datetime (naive values are taken as UTC)."""
    if value is None or isinstance(value, datetime):
        return value
    parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _with_datetimes(data: dict[str, Any]) -> dict[str, Any]:
    result = dict(data)
    for name in DATETIME_FIELDS:
        if name in result:
            result[name] = parse_datetime(result[name])
    return result


def parse_context(data: dict[str, Any]) -> RuleEvaluationContext:
    """Build a RuleEvaluationContext from its JSON form."""
    event = data.get("trigger_event")
    trigger = None
    if event:
        trigger = TriggerEvent(
            type=TriggerEventType(event["type"]),
            details=dict(event.get("details", {})),
        )
    context = RuleEvaluationContext(
        case_id=data.get("case_id"),
        task_id=data.get("task_id"),
        user_id=data.get("user_id"),
        trigger_event=trigger,
        metadata=dict(data.get("metadata", {})),
    )
    if data.get("timestamp"):
        context.timestamp = parse_datetime(data["timestamp"])
    return context


def load_scenario(path: Path) -> dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict) or "context" not in data:
        raise ValueError("scenario must be an object with a 'context' key")
    return data


# ============================================================================
# COMMANDS
# ============================================================================

def cmd_validate_pack(args) -> int:
    """Validate a rule or workflow pack (bundled defaults when no path)."""
    print_header("CasePilot - Validate Pack")
    loader = PackLoader()
    kinds = [args.kind] if args.kind else ["rules", "workflow"]

    try:
        for kind in kinds:
            if kind == "rules":
                pack = loader.load_rule_pack(args.pack) if args.pack else load_default_rule_pack()
                print_success(f"Rule pack {pack.pack_id} is valid")
                print_kv("Rules", str(len(pack.rules)), indent=1)
                print_kv("Escalation Paths", str(len(pack.escalation_paths)), indent=1)
                print_kv("Pack Hash", pack.pack_hash[:32] + "...", indent=1)
            else:
                workflow = loader.load_workflow_pack(args.pack) if args.pack else load_default_workflow_pack()
                print_success(f"Workflow pack {workflow.pack_id} is valid")
                print_kv("Phases", str(len(workflow.phases)), indent=1)
                print_kv("Exceptions", str(len(workflow.exceptions)), indent=1)
                print_kv("Approvals", str(len(workflow.approvals)), indent=1)
                print_kv("Pack Hash", workflow.pack_hash[:32] + "...", indent=1)
        return ExitCode.OK

    except PackValidationError as e:
        print_pack_errors(e)
        return ExitCode.PACK_ERROR

    except PackLoadError as e:
        print_error(f"Loading failed: {e.message}")
        return ExitCode.PACK_ERROR


def cmd_evaluate(args) -> int:
    """Evaluate the rule pack against a scenario file and print the results."""
    try:
        scenario = load_scenario(Path(args.input))
        users = [User(**u) for u in scenario.get("users", [])]
        cases = [Case(**_with_datetimes(c)) for c in scenario.get("cases", [])]
        tasks = [Task(**_with_datetimes(t)) for t in scenario.get("tasks", [])]
        context = parse_context(scenario["context"])
    except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
        print_error(f"Invalid scenario: {e}")
        return ExitCode.INPUT_INVALID

    settings = get_settings()
    try:
        services = build_services(
            Settings(
                rule_pack=args.rules or settings.rule_pack,
                workflow_pack=args.workflow or settings.workflow_pack,
                history_limit=settings.history_limit,
                deadline_buffer_hours=settings.deadline_buffer_hours,
                roll_to_business_day=settings.roll_to_business_day,
            )
        )
    except (PackValidationError, PackLoadError) as e:
        print_pack_errors(e)
        return ExitCode.PACK_ERROR

    for user in users:
        services.users.add(user)
    for case in cases:
        services.cases.save(case)
    for task in tasks:
        services.tasks.save(task)

    try:
        if args.rule:
            results = [services.rule_engine.test_rule(args.rule, context)]
        else:
            results = services.rule_engine.evaluate(context)
    except CasePilotError as e:
        print_error(str(e))
        return ExitCode.INPUT_INVALID

    output = {
        "engine_version": __version__,
        "rule_pack_id": services.rule_pack.pack_id,
        "rule_pack_hash": services.rule_pack.pack_hash,
        "results": [r.to_dict() for r in results],
        "tasks": [t.to_dict() for t in tasks],
        "cases": [c.to_dict() for c in cases],
        "notifications": [n.to_dict() for n in services.notifications.sent],
    }
    text = json.dumps(output, indent=2, sort_keys=True, default=str)
    if args.out:
        Path(args.out).write_text(text + "\n", encoding="utf-8")
        print_success(f"Wrote {len(results)} result(s) to {args.out}")
    else:
        print(text)
    return ExitCode.OK


def cmd_serve(args) -> int:
    """Run the API with uvicorn."""
    import uvicorn

    uvicorn.run("api.main:app", host=args.host, port=args.port, reload=args.reload)
    return ExitCode.OK


# ============================================================================
# MAIN
# ============================================================================

def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    if not sys.stdout.isatty():
        Colors.disable()

    parser = argparse.ArgumentParser(
        prog="casepilot",
        description="CasePilot CLI - case lifecycle and business rule engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Exit Codes:
  0   OK              Command succeeded
  10  INPUT_INVALID   Invalid input files
  11  PACK_ERROR      Pack validation failed
  20  INTERNAL_ERROR  Unexpected error

Examples:
  casepilot validate-pack
  casepilot validate-pack --kind workflow --pack workflow.yaml
  casepilot evaluate --input scenario.json --rules rules.yaml
  casepilot evaluate --input scenario.json --rule overdue_task_escalation
  casepilot serve --port 8000
        """
    )
    parser.add_argument("--version", action="version", version=f"casepilot {__version__}")
    parser.add_argument("--log-level", default=None, help="Override CP_LOG_LEVEL")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # validate-pack
    val_parser = subparsers.add_parser("validate-pack", help="Validate a rule or workflow pack")
    val_parser.add_argument("--pack", "-p", help="Pack YAML/JSON file (bundled default if omitted)")
    val_parser.add_argument("--kind", "-k", choices=["rules", "workflow"],
                            help="Pack kind (both bundled packs if omitted)")
    val_parser.set_defaults(func=cmd_validate_pack)

    # evaluate
    eval_parser = subparsers.add_parser("evaluate", help="Evaluate rules against a scenario")
    eval_parser.add_argument("--input", "-i", required=True, help="Scenario JSON file")
    eval_parser.add_argument("--rules", "-r", help="Rule pack file")
    eval_parser.add_argument("--workflow", "-w", help="Workflow pack file")
    eval_parser.add_argument("--rule", help="Dry-run a single rule by ID")
    eval_parser.add_argument("--out", "-o", help="Write results JSON here instead of stdout")
    eval_parser.set_defaults(func=cmd_evaluate)

    # serve
    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8000)
    serve_parser.add_argument("--reload", action="store_true")
    serve_parser.set_defaults(func=cmd_serve)

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    settings = get_settings()
    configure_logging(args.log_level or settings.log_level, json_output=settings.log_json)

    try:
        return args.func(args)
    except Exception as e:
        print_error(f"Unexpected error: {e}")
        return ExitCode.INTERNAL_ERROR


if __name__ == "__main__":
    sys.exit(main())
