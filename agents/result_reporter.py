"""
Result Reporter Agent - Packages a finished run for external collaborators.
"""
from collections import OrderedDict
from typing import Dict, List, Optional

from .base_agent import BaseAgent
from communication.message_bus import MessageBus
from models.constraints import ConstraintType, ValidatorReport, Violation
from models.reports import FairnessReport, PatternSafetyReport
from models.run import RunMetadata, RunState, ScheduleRun, ScheduleRunResult
from optimizer.cost import CostBreakdown

CONSTRAINT_LABELS = {
    ConstraintType.MIN_STAFF: "Understaffed slots",
    ConstraintType.REST_PERIOD: "Insufficient rest between shifts",
    ConstraintType.CONSECUTIVE_NIGHTS: "Too many consecutive nights",
    ConstraintType.HOURS_MAX: "Weekly hours above the legal maximum",
    ConstraintType.CONSECUTIVE_DAYS: "Personal consecutive-day limits exceeded",
    ConstraintType.ELIGIBILITY: "Ineligible assignments",
    ConstraintType.DANGEROUS_PATTERN: "Critical dangerous patterns",
}

MAX_ITEMS_PER_GROUP = 8


class ResultReporterAgent(BaseAgent):
    """
    Agent responsible for the ScheduleRunResult.

    Responsibilities:
    - Bundle assignments, reports and run metadata
    - Explain every non-completed outcome, grouped by constraint
    """

    def __init__(self, message_bus: MessageBus):
        super().__init__("ResultReporter", message_bus)

    def execute(self, run: ScheduleRun, model,
                validator_report: ValidatorReport,
                fairness_report: FairnessReport,
                pattern_safety_report: PatternSafetyReport,
                cost_breakdown: CostBreakdown,
                seed: Optional[int] = None,
                workers: int = 1,
                **kwargs) -> ScheduleRunResult:
        """
        Build the result of a finished run.

        Args:
            run: Run in a terminal state
            model: The run's ConstraintModel
            validator_report: Final validation
            fairness_report: Final fairness evaluation
            pattern_safety_report: Final pattern safety analysis
            cost_breakdown: Weighted cost components of the final set

        Returns:
            ScheduleRunResult
        """
        settings = model.settings
        metadata = RunMetadata(
            run_id=run.run_id,
            schedule_name=model.schedule_name,
            strategy=settings.strategy.value if settings.enabled else "construction",
            state=run.state,
            iterations=run.iterations,
            elapsed_seconds=run.elapsed_seconds,
            final_cost=cost_breakdown.total,
            cost_breakdown={k: float(v) for k, v in cost_breakdown.to_dict().items()},
            restarts=settings.restarts if settings.enabled else 1,
            workers=workers,
            random_seed=seed,
            stop_reason=run.stop_reason,
        )

        explanations = self.explain(run, validator_report, fairness_report, pattern_safety_report)
        result = ScheduleRunResult(
            assignment_set=run.best,
            fairness_report=fairness_report,
            pattern_safety_report=pattern_safety_report,
            validator_report=validator_report,
            run_metadata=metadata,
            explanations=explanations,
        )
        self.log(f"Result packaged: {len(result.assignments)} assignments, state {run.state.value}", "success")
        return result

    # ==================== Explanations ====================

    def explain(self, run: ScheduleRun, validator_report: ValidatorReport,
                fairness_report: FairnessReport,
                pattern_safety_report: PatternSafetyReport) -> List[str]:
        if run.state == RunState.COMPLETED:
            return [
                f"Schedule completed with no hard violations: {len(run.best)} assignments, "
                f"Gini {fairness_report.gini:.3f} ({fairness_report.grade}), "
                f"fleet safety {pattern_safety_report.fleet_score:.1f}/100."
            ]

        lines = []
        if run.state == RunState.TIMED_OUT:
            lines.append(
                f"Search stopped early ({run.stop_reason}) after {run.iterations} iterations; "
                f"returning the best schedule found so far."
            )
        if validator_report.is_feasible:
            lines.append("The returned schedule has no hard violations.")
        else:
            lines.append(
                f"No feasible schedule was found: {len(validator_report.violations)} hard "
                f"violations remain in the least-cost candidate."
            )
            for constraint_type, violations in self._grouped(validator_report).items():
                lines.append(self._group_line(constraint_type, violations))
            lines.extend(self._suggestions(validator_report))

        if not fairness_report.meets_target:
            lines.append(
                f"Workload Gini {fairness_report.gini:.3f} is above the target "
                f"{fairness_report.target:.2f}."
            )
        return lines

    @staticmethod
    def _grouped(report: ValidatorReport) -> Dict[ConstraintType, List[Violation]]:
        grouped: "OrderedDict[ConstraintType, List[Violation]]" = OrderedDict()
        for constraint_type in CONSTRAINT_LABELS:
            matching = [v for v in report.violations if v.constraint_type == constraint_type]
            if matching:
                grouped[constraint_type] = matching
        return grouped

    @staticmethod
    def _group_line(constraint_type: ConstraintType, violations: List[Violation]) -> str:
        if constraint_type == ConstraintType.MIN_STAFF:
            items = [f"{v.slot} ({int(v.magnitude)} missing)" for v in violations]
        else:
            items = [
                f"{v.employee_id} on {v.affected_date}" if v.employee_id else str(v.affected_date)
                for v in violations
            ]
        shown = ", ".join(items[:MAX_ITEMS_PER_GROUP])
        if len(items) > MAX_ITEMS_PER_GROUP:
            shown += f" and {len(items) - MAX_ITEMS_PER_GROUP} more"
        return f"{CONSTRAINT_LABELS[constraint_type]}: {shown}"

    @staticmethod
    def _suggestions(report: ValidatorReport) -> List[str]:
        lines = []
        for slot, _ in report.understaffed_slots():
            lines.append(f"Suggestion: increase roster or lower required_count for {slot}")
        seen = set()
        for violation in report.violations:
            if violation.constraint_type == ConstraintType.MIN_STAFF:
                continue
            for suggestion in violation.suggestions:
                if suggestion not in seen:
                    seen.add(suggestion)
                    lines.append(f"Suggestion: {suggestion}")
        return lines
