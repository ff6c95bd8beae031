"""
Model Builder Agent - Turns a schedule request into a constraint model.
"""
from typing import Any, Optional, Sequence

from .base_agent import BaseAgent
from communication.message import Message, MessageType
from communication.message_bus import MessageBus
from config import OptimizerConfig, SchedulingConfig
from models.employee import Employee
from models.request import ScheduleRequest
from optimizer.model import ConstraintModel, ConstraintModelBuilder


class ModelBuilderAgent(BaseAgent):
    """
    Agent responsible for building the constraint model of a run.

    Responsibilities:
    - Validate the request (InvalidRequest surfaces unchanged)
    - Snapshot the employee directory
    - Derive hard constraints, soft weights and pattern rules
    """

    def __init__(self, message_bus: MessageBus,
                 scheduling: Optional[SchedulingConfig] = None,
                 tuning: Optional[OptimizerConfig] = None):
        super().__init__("ModelBuilder", message_bus)
        self.builder = ConstraintModelBuilder(scheduling, tuning)
        self.last_model: Optional[ConstraintModel] = None

    def execute(self, request: ScheduleRequest, employees: Sequence[Employee],
                correlation_id: Optional[str] = None, **kwargs) -> ConstraintModel:
        """
        Build the constraint model.

        Args:
            request: The schedule request
            employees: Employee directory snapshot
            correlation_id: Run id used on bus messages

        Returns:
            ConstraintModel

        Raises:
            InvalidRequest: If the request cannot be modeled
        """
        self.log(f"Building constraint model for '{request.schedule_name}'...")
        model = self.builder.build(request, employees)
        self.last_model = model

        summary = model.summary()
        self.log(
            f"Model: {summary['employees']} employees, {summary['dates']} days, "
            f"{summary['slots']} slots, {summary['required_heads']} required heads"
        )
        for constraint in model.hard_constraints:
            self.log(f"   {constraint}", "debug")

        self.send(MessageType.MODEL, summary, receiver="Coordinator", correlation_id=correlation_id)
        return model

    def _on_request(self, message: Message) -> None:
        content = message.content
        if isinstance(content, dict) and content.get("type") == "get_model_summary":
            self.respond(message, self.last_model.summary() if self.last_model else None)
