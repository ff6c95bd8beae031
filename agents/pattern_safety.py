"""
Pattern Safety Agent - Scores schedules for dangerous shift sequences.
"""
from typing import Optional

from .base_agent import BaseAgent
from communication.message_bus import MessageBus
from communication.message import MessageType
from models.reports import PatternSafetyReport
from models.schedule import AssignmentSet
from optimizer.patterns import PatternSafetyAnalyzer


class PatternSafetyAgent(BaseAgent):
    """
    Agent responsible for the pattern safety report.

    Responsibilities:
    - Scan every employee's sequence for dangerous patterns
    - Compute per-employee, per-team and fleet safety scores
    - Flag employees with critical detections
    """

    def __init__(self, message_bus: MessageBus):
        super().__init__("PatternSafety", message_bus)

    def execute(self, model, assignment_set: AssignmentSet,
                correlation_id: Optional[str] = None, **kwargs) -> PatternSafetyReport:
        """
        Analyze an assignment set.

        Returns:
            PatternSafetyReport
        """
        report = PatternSafetyAnalyzer(model).analyze(assignment_set)

        critical = report.critical_employees()
        level = "warning" if critical else "success"
        self.log(
            f"Fleet safety score {report.fleet_score:.1f}/100 "
            f"({len(report.detections)} detections, {len(critical)} employees at critical risk)",
            level,
        )
        for detection in report.critical_detections()[:5]:
            self.log(f"   🔴 {detection.description}", "warning")

        self.send(
            MessageType.SAFETY_REPORT,
            {
                "fleet_score": round(report.fleet_score, 2),
                "by_severity": {s.value: n for s, n in report.counts_by_severity.items()},
                "critical_employees": critical,
            },
            receiver="Coordinator",
            correlation_id=correlation_id,
        )
        return report
