"""
Timing helpers and the strategy benchmark of the shift optimizer.

``profile_function`` records wall time per call of the decorated
function (the coordinator's workflow and the engine's search are
decorated). ``Benchmark`` repeats callables and summarises the timings.
Run this module directly to compare the four search strategies on a
synthetic two-week roster:

    python benchmark.py
"""
import time
import statistics
import functools
from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, List, Optional
from dataclasses import dataclass, field
from rich.console import Console
from rich.table import Table

from models.request import SearchStrategyType

console = Console()


def _spread(times: List[float]) -> Dict[str, float]:
    if not times:
        return {"mean": 0, "median": 0, "std_dev": 0, "min": 0, "max": 0}
    return {
        "mean": statistics.mean(times),
        "median": statistics.median(times),
        "std_dev": statistics.stdev(times) if len(times) > 1 else 0,
        "min": min(times),
        "max": max(times),
    }


# =============================================================================
# PROFILING
# =============================================================================

@dataclass
class ProfileResult:
    function_name: str
    execution_time: float
    timestamp: datetime = field(default_factory=datetime.now)
    success: bool = True
    error: Optional[str] = None


# qualname -> one record per call
_profile_data: Dict[str, List[ProfileResult]] = {}


def profile_function(func: Callable) -> Callable:
    """Record the duration and outcome of every call to ``func``.

    Exceptions are recorded as failures and re-raised unchanged.
    """
    key = func.__qualname__

    @functools.wraps(func)
    def wrapper(*args, **kwargs) -> Any:
        record = ProfileResult(function_name=key, execution_time=0.0)
        started = time.perf_counter()
        try:
            return func(*args, **kwargs)
        except Exception as e:
            record.success = False
            record.error = str(e)
            raise
        finally:
            record.execution_time = time.perf_counter() - started
            _profile_data.setdefault(key, []).append(record)

    return wrapper


def get_profile_summary() -> Dict[str, Dict[str, Any]]:
    summary = {}
    for name, records in _profile_data.items():
        times = [r.execution_time for r in records]
        succeeded = sum(1 for r in records if r.success)
        stats = _spread(times)
        summary[name] = {
            "call_count": len(records),
            "success_count": succeeded,
            "failure_count": len(records) - succeeded,
            "total_time": sum(times),
            "avg_time": stats["mean"],
            "min_time": stats["min"],
            "max_time": stats["max"],
            "std_dev": stats["std_dev"],
        }
    return summary


def clear_profile_data() -> None:
    _profile_data.clear()


def print_profile_report() -> None:
    summary = get_profile_summary()
    if not summary:
        console.print("[dim]No profiling data collected.[/dim]")
        return

    table = Table(title="⏱️ Profiled Calls")
    for column in ("Function", "Calls", "Failed", "Total (s)", "Avg (s)", "Range (s)"):
        table.add_column(column, justify="left" if column == "Function" else "right")
    for name, stats in sorted(summary.items(), key=lambda item: item[1]["total_time"], reverse=True):
        table.add_row(
            name,
            str(stats["call_count"]),
            str(stats["failure_count"]),
            f"{stats['total_time']:.3f}",
            f"{stats['avg_time']:.3f}",
            f"{stats['min_time']:.3f}-{stats['max_time']:.3f}",
        )
    console.print(table)


# =============================================================================
# BENCHMARK RUNNER
# =============================================================================

@dataclass
class BenchmarkCase:
    name: str
    func: Callable
    iterations: int = 5
    args: tuple = ()
    kwargs: dict = field(default_factory=dict)


@dataclass
class BenchmarkResult:
    """Timings of the successful iterations of one case."""
    name: str
    iterations: int
    times: List[float]
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def mean(self) -> float:
        return _spread(self.times)["mean"]

    @property
    def median(self) -> float:
        return _spread(self.times)["median"]

    @property
    def std_dev(self) -> float:
        return _spread(self.times)["std_dev"]

    @property
    def min_time(self) -> float:
        return _spread(self.times)["min"]

    @property
    def max_time(self) -> float:
        return _spread(self.times)["max"]

    @property
    def rating(self) -> str:
        for limit, label in ((3, "✅ EXCELLENT"), (10, "✅ GOOD"), (30, "⚠️ ACCEPTABLE")):
            if self.mean < limit:
                return label
        return "❌ NEEDS IMPROVEMENT"

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "iterations": self.iterations,
            **_spread(self.times),
            "timestamp": self.timestamp.isoformat(),
        }


class Benchmark:
    """
    Repeats registered callables and keeps their timings.

    A failing iteration is reported and left out of the timings:

        Benchmark().add("seed", seeder.seed, iterations=10).run()
    """

    def __init__(self):
        self.cases: List[BenchmarkCase] = []
        self.results: List[BenchmarkResult] = []

    def add(self, name: str, func: Callable, iterations: int = 5,
            args: tuple = (), kwargs: Optional[dict] = None) -> "Benchmark":
        self.cases.append(BenchmarkCase(name, func, iterations, args, kwargs or {}))
        return self

    def _time(self, case: BenchmarkCase) -> List[float]:
        times = []
        for i in range(1, case.iterations + 1):
            started = time.perf_counter()
            try:
                case.func(*case.args, **case.kwargs)
            except Exception as e:
                console.print(f"  [red]Iteration {i} failed: {e}[/red]")
                continue
            times.append(time.perf_counter() - started)
            console.print(f"  [dim]Iteration {i}: {times[-1]:.3f}s[/dim]")
        return times

    def run(self) -> List[BenchmarkResult]:
        self.results = []
        for case in self.cases:
            console.print(f"Running benchmark: [bold]{case.name}[/bold]")
            self.results.append(BenchmarkResult(case.name, case.iterations, self._time(case)))
        return self.results

    def print_report(self) -> None:
        if not self.results:
            console.print("[yellow]No benchmark results. Run benchmarks first.[/yellow]")
            return

        table = Table(title="🏃 Benchmark Report")
        for column in ("Case", "OK/Runs", "Mean (s)", "Median (s)", "Range (s)", "Std Dev", "Status"):
            table.add_column(column)
        for result in self.results:
            table.add_row(
                result.name,
                f"{len(result.times)}/{result.iterations}",
                f"{result.mean:.3f}",
                f"{result.median:.3f}",
                f"{result.min_time:.3f}-{result.max_time:.3f}",
                f"{result.std_dev:.3f}",
                result.rating,
            )
        console.print(table)

    def get_results_dict(self) -> List[dict]:
        return [r.to_dict() for r in self.results]


# =============================================================================
# STRATEGY COMPARISON
# =============================================================================

def synthetic_roster(size: int = 14, teams: int = 2) -> list:
    """Employees spread over ``teams`` teams with rotating levels and preferences."""
    from models.employee import Employee
    from models.shift import ShiftType

    return [
        Employee(
            id=f"E{i + 1:03d}",
            name=f"Employee {i + 1}",
            level=1 + i % 3,
            team_id=f"T{i % teams + 1}",
            shift_preferences={
                ShiftType.DAY: 1 + (i * 3) % 10,
                ShiftType.EVENING: 1 + (i * 7) % 10,
                ShiftType.NIGHT: 1 + (i * 5) % 10,
            },
        )
        for i in range(size)
    ]


def synthetic_request(strategy: str, days: int = 14, max_iterations: int = 200):
    """Weekdays need 3/3/2 day/evening/night heads, weekends 2/2/2. Seed is fixed at 42."""
    from models.request import CoverageRequirement, OptimizationSettings, ScheduleRequest
    from models.shift import ShiftType

    start = date(2025, 3, 3)
    weekday = (3, 3, 2)
    weekend = (2, 2, 2)
    coverage = []
    for offset in range(days):
        day = start + timedelta(days=offset)
        counts = weekend if day.weekday() >= 5 else weekday
        for shift_type, count in zip((ShiftType.DAY, ShiftType.EVENING, ShiftType.NIGHT), counts):
            coverage.append(CoverageRequirement(day, shift_type, count))

    return ScheduleRequest(
        schedule_name=f"Benchmark {strategy}",
        start_date=start,
        end_date=start + timedelta(days=days - 1),
        coverage_requirements=coverage,
        optimization_settings=OptimizationSettings(
            strategy=SearchStrategyType.from_string(strategy),
            max_iterations=max_iterations,
            random_seed=42,
        ),
    )


def run_system_benchmark() -> List[dict]:
    """Time every strategy end to end through the coordinator and compare final costs."""
    from communication.message_bus import MessageBus
    from agents.coordinator import CoordinatorAgent

    console.rule("SHIFT SAFETY SCHEDULING OPTIMIZER - BENCHMARK SUITE")
    console.print(f"Started at: {datetime.now().isoformat()}\n")

    # Quiet bus so agent chatter does not end up in the timings
    coordinator = CoordinatorAgent(MessageBus(verbose=False), log_to_file=False, workers=1)
    employees = synthetic_roster()
    costs: Dict[str, List[float]] = {}

    def solve(strategy: str):
        result = coordinator.execute(synthetic_request(strategy), employees)
        costs.setdefault(strategy, []).append(result.run_metadata.final_cost)
        return result

    bench = Benchmark()
    for strategy in SearchStrategyType:
        bench.add(f"{strategy.value} ({len(employees)} employees, 2 weeks)", solve,
                  iterations=3, args=(strategy.value,))
    bench.run()
    bench.print_report()

    table = Table(title="Final cost by strategy")
    table.add_column("Strategy", style="cyan")
    table.add_column("Mean cost", justify="right")
    table.add_column("Best cost", justify="right")
    for strategy, values in costs.items():
        table.add_row(strategy, f"{statistics.mean(values):.2f}", f"{min(values):.2f}")
    console.print(table)

    print_profile_report()
    return bench.get_results_dict()


if __name__ == "__main__":
    run_system_benchmark()
