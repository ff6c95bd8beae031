"""Command-line interface for the shift safety scheduling optimizer."""

import argparse
import sys
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import replace
from datetime import date
from pathlib import Path
from typing import Dict, List, Optional

from rich.console import Console

from agents.coordinator import CoordinatorAgent
from communication.message_bus import MessageBus
from config import config
from models.errors import InvalidRequest
from models.request import ScheduleRequest, SearchStrategyType
from models.run import RunState, ScheduleRunResult
from models.shift import ShiftType

EXIT_CODES = {
    RunState.COMPLETED: 0,
    RunState.INFEASIBLE: 2,
    RunState.TIMED_OUT: 3,
}

console = Console()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Generate a fair, fatigue-aware shift schedule."
    )
    parser.add_argument(
        "employees_csv",
        type=Path,
        help="Employee directory CSV (id, name, level, team_id, preferences, constraints).",
    )
    parser.add_argument(
        "--request",
        type=Path,
        default=None,
        help="JSON Generate request. Without it, --start/--end and a coverage source are required.",
    )
    parser.add_argument(
        "--coverage",
        type=Path,
        default=None,
        help="Coverage CSV (date, shift_type, required_count, ...). Replaces the request's coverage.",
    )
    parser.add_argument("--name", default="Generated schedule", help="Schedule name.")
    parser.add_argument("--start", type=date.fromisoformat, help="First date (YYYY-MM-DD).")
    parser.add_argument("--end", type=date.fromisoformat, help="Last date (YYYY-MM-DD).")
    parser.add_argument(
        "--weekday",
        metavar="D,E,N",
        default=None,
        help="Template headcount per day/evening/night shift on weekdays, e.g. 3,3,2.",
    )
    parser.add_argument(
        "--weekend",
        metavar="D,E,N",
        default=None,
        help="Template headcount on weekends (default: same as --weekday).",
    )
    parser.add_argument(
        "--team",
        action="append",
        default=[],
        metavar="TEAM_ID",
        help="Restrict the roster to a team. Repeatable.",
    )
    parser.add_argument(
        "--strategy",
        choices=[s.value for s in SearchStrategyType],
        default=None,
        help="Search strategy.",
    )
    parser.add_argument("--iterations", type=int, default=None, help="Max outer iterations per restart.")
    parser.add_argument("--restarts", type=int, default=None, help="Independent random restarts.")
    parser.add_argument("--workers", type=int, default=None, help="Worker processes for restarts.")
    parser.add_argument("--timeout", type=float, default=None, help="Wall-clock budget in seconds.")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for reproducible runs.")
    parser.add_argument("--fairness-target", type=float, default=None, help="Target Gini (0.1-0.5).")
    parser.add_argument(
        "--export",
        action="store_true",
        help="Write the Excel roster.",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help=f"Export directory or .xlsx path (default: {config.output_dir}).",
    )
    parser.add_argument("--quiet", action="store_true", help="Suppress the agent console trace.")
    parser.add_argument("--no-log-file", action="store_true", help="Do not write a log file.")
    parser.add_argument(
        "--message-summary",
        action="store_true",
        help="Print the message bus summary table at the end.",
    )
    return parser


def _parse_counts(raw: str) -> Dict[ShiftType, int]:
    parts = [p.strip() for p in raw.split(",")]
    if len(parts) != 3:
        raise InvalidRequest(f"expected D,E,N headcounts, got '{raw}'", field="coverage")
    try:
        return {shift_type: int(p) for shift_type, p in zip(ShiftType, parts)}
    except ValueError:
        raise InvalidRequest(f"headcounts must be integers: '{raw}'", field="coverage") from None


def _apply_overrides(request: ScheduleRequest, args: argparse.Namespace) -> ScheduleRequest:
    """Command-line flags override the request's optimization settings."""
    overrides = {
        "strategy": SearchStrategyType.from_string(args.strategy) if args.strategy else None,
        "max_iterations": args.iterations,
        "restarts": args.restarts,
        "workers": args.workers,
        "timeout_seconds": args.timeout,
        "random_seed": args.seed,
        "fairness_target": args.fairness_target,
    }
    overrides = {k: v for k, v in overrides.items() if v is not None}
    if overrides:
        request.optimization_settings = replace(request.optimization_settings, **overrides)
    if args.team:
        request.team_ids = list(args.team)
    return request


def build_request(coordinator: CoordinatorAgent, args: argparse.Namespace) -> ScheduleRequest:
    loader = coordinator.data_loader
    if args.request:
        request = loader.load_request(args.request)
    else:
        if not (args.start and args.end):
            raise InvalidRequest("--start and --end are required without --request", field="date_range")
        request = ScheduleRequest(schedule_name=args.name, start_date=args.start, end_date=args.end)

    if args.coverage:
        request.coverage_requirements = loader.load_coverage(args.coverage)
    elif args.weekday:
        request.coverage_requirements = loader.template_coverage(
            request.start_date,
            request.end_date,
            _parse_counts(args.weekday),
            _parse_counts(args.weekend) if args.weekend else None,
        )
    return _apply_overrides(request, args)


def wait_for_result(future: Future, coordinator: CoordinatorAgent) -> ScheduleRunResult:
    """
    Block on the run, turning Ctrl+C into a cooperative cancel.

    Once the run has finished its outcome is returned or raised as is, so a
    run that itself died from an interrupt does not loop forever.
    """
    while True:
        try:
            return future.result()
        except KeyboardInterrupt:
            if future.done():
                raise
            console.print("[yellow]Cancelling - returning the best schedule found so far...[/yellow]")
            coordinator.cancel()


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.output is None:
        output_dir = config.output_dir
    elif args.output.suffix:
        output_dir = str(args.output.parent)
    else:
        output_dir = str(args.output)

    message_bus = MessageBus(verbose=not args.quiet)
    coordinator = CoordinatorAgent(
        message_bus,
        output_dir=output_dir,
        log_to_file=False if args.no_log_file else None,
        workers=args.workers,
    )

    try:
        employees = coordinator.data_loader.load_employees(args.employees_csv)
        request = build_request(coordinator, args)
    except InvalidRequest as e:
        console.print(f"[red]Invalid input: {e}[/red]")
        return 1

    # The run executes on a worker thread so Ctrl+C can cancel it cooperatively
    with ThreadPoolExecutor(max_workers=1) as executor:
        future = executor.submit(coordinator.execute, request, employees, args.output, args.export)
        try:
            result = wait_for_result(future, coordinator)
        except InvalidRequest as e:
            console.print(f"[red]Invalid request: {e}[/red]")
            return 1

    if args.quiet:
        console.print(
            f"{result.state.value}: {len(result.assignments)} assignments, "
            f"cost {result.run_metadata.final_cost:.2f}"
        )
        for line in result.explanations:
            console.print(f"  {line}")
    if args.message_summary:
        message_bus.print_summary()

    return EXIT_CODES.get(result.state, 1)


if __name__ == "__main__":
    sys.exit(main())
