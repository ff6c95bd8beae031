"""
Fairness Evaluator Agent - Measures workload equality.
"""
from typing import Optional

from .base_agent import BaseAgent
from communication.message_bus import MessageBus
from communication.message import MessageType
from models.reports import FairnessReport
from models.schedule import AssignmentSet
from optimizer.fairness import FairnessEvaluator


class FairnessEvaluatorAgent(BaseAgent):
    """Agent responsible for the fairness report."""

    def __init__(self, message_bus: MessageBus):
        super().__init__("FairnessEvaluator", message_bus)

    def execute(self, model, assignment_set: AssignmentSet,
                correlation_id: Optional[str] = None, **kwargs) -> FairnessReport:
        report = FairnessEvaluator(model).evaluate(assignment_set)

        level = "success" if report.meets_target else "warning"
        self.log(
            f"Gini {report.gini:.3f} (target {report.target:.2f}) | "
            f"score {report.fairness_score:.1f} ({report.grade}) | "
            f"hours {report.hours_min:g}-{report.hours_max:g}",
            level,
        )

        self.send(
            MessageType.FAIRNESS_REPORT,
            {
                "gini": round(report.gini, 4),
                "target": report.target,
                "fairness_score": round(report.fairness_score, 2),
                "grade": report.grade,
            },
            receiver="Coordinator",
            correlation_id=correlation_id,
        )
        return report
