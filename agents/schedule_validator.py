"""
Schedule Validator Agent - Checks hard constraints on a schedule.
"""
from typing import Optional

from .base_agent import BaseAgent
from communication.message import MessageType
from communication.message_bus import MessageBus
from models.constraints import ValidatorReport
from models.schedule import AssignmentSet
from optimizer.validation import ScheduleValidator


class ScheduleValidatorAgent(BaseAgent):
    """
    Agent responsible for validating schedules.

    Responsibilities:
    - Check coverage, rest, night runs, weekly hours, eligibility and
      critical patterns
    - Report violations on the message bus
    """

    def __init__(self, message_bus: MessageBus):
        super().__init__("ScheduleValidator", message_bus)
        self.last_report: Optional[ValidatorReport] = None

    def execute(self, model, assignment_set: AssignmentSet,
                correlation_id: Optional[str] = None, **kwargs) -> ValidatorReport:
        """
        Validate an assignment set.

        Raises:
            InternalInconsistency: If the assignment set references unknown
                employees or slots
        """
        self.log("Validating schedule against hard constraints...")
        report = ScheduleValidator(model).validate(assignment_set)
        self.last_report = report

        if report.is_feasible:
            self.log(f"✅ No hard violations ({len(report.warnings)} soft warnings)", "success")
        else:
            self.log(f"❌ {len(report.violations)} hard violations", "warning")
            for violation in report.violations[:10]:
                self.log(f"   {violation}", "warning")
            if len(report.violations) > 10:
                self.log(f"   ... and {len(report.violations) - 10} more", "warning")

            self.send(
                MessageType.VIOLATION,
                {t.value: len(v) for t, v in report.violations_by_type().items()},
                receiver="Coordinator",
                correlation_id=correlation_id,
            )
        return report
