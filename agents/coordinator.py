"""
Coordinator Agent - Orchestrates the Generate workflow.

This module implements the central coordinator with:
- Agent lifecycle management
- Phase-by-phase orchestration of one optimization run
- Performance profiling
- Completion notification over the message bus
"""
import time
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

from .base_agent import BaseAgent
from .data_loader import DataLoaderAgent
from .fairness_evaluator import FairnessEvaluatorAgent
from .model_builder import ModelBuilderAgent
from .optimization_engine import OptimizationEngineAgent
from .pattern_safety import PatternSafetyAgent
from .result_reporter import ResultReporterAgent
from .roster_exporter import RosterExporterAgent
from .schedule_validator import ScheduleValidatorAgent

from communication.message import Message, MessageType
from communication.message_bus import MessageBus
from config import config
from models.employee import Employee
from models.errors import SchedulingError
from models.request import ScheduleRequest
from models.run import RunState, ScheduleRunResult
from benchmark import profile_function

NOTIFICATION_SERVICE = "NotificationService"


class CoordinatorAgent(BaseAgent):
    """
    Master coordinator that implements the Generate operation.

    Responsibilities:
    - Initialize and manage all agents
    - Run Builder → Engine → Validator/Analyzers → Reporter
    - Optionally export the result to Excel
    - Notify subscribers when the run reaches a terminal state
    """

    def __init__(self, message_bus: MessageBus,
                 output_dir: Optional[str] = None,
                 log_to_file: Optional[bool] = None,
                 workers: Optional[int] = None,
                 data_dir: Optional[str] = None):
        super().__init__("Coordinator", message_bus)

        self.output_dir = output_dir or config.output_dir
        self.log_to_file = config.log_to_file if log_to_file is None else log_to_file

        self.data_loader = DataLoaderAgent(message_bus, data_dir)
        self.model_builder = ModelBuilderAgent(message_bus, config.scheduling, config.optimizer)
        self.optimization_engine = OptimizationEngineAgent(message_bus, workers)
        self.schedule_validator = ScheduleValidatorAgent(message_bus)
        self.pattern_safety = PatternSafetyAgent(message_bus)
        self.fairness_evaluator = FairnessEvaluatorAgent(message_bus)
        self.result_reporter = ResultReporterAgent(message_bus)
        self.roster_exporter = RosterExporterAgent(message_bus)

        self.current_result: Optional[ScheduleRunResult] = None
        self.output_file: Optional[str] = None
        self.workflow_log: List[Dict] = []
        self.start_time: Optional[float] = None

    def _setup_handlers(self) -> None:
        super()._setup_handlers()
        for msg_type in (MessageType.MODEL, MessageType.VIOLATION,
                         MessageType.SAFETY_REPORT, MessageType.FAIRNESS_REPORT):
            self._message_handlers[msg_type] = self._record

    @property
    def agents(self) -> List[BaseAgent]:
        return [
            self.data_loader,
            self.model_builder,
            self.optimization_engine,
            self.schedule_validator,
            self.pattern_safety,
            self.fairness_evaluator,
            self.result_reporter,
            self.roster_exporter,
        ]

    @profile_function
    def execute(self,
                request: ScheduleRequest,
                employees: Sequence[Employee],
                output_path: Optional[Union[str, Path]] = None,
                export: bool = False,
                **kwargs) -> ScheduleRunResult:
        """
        Generate a schedule.

        Profiled for performance measurement.

        Args:
            request: The schedule request
            employees: Employee directory snapshot
            output_path: Export directory or .xlsx path (defaults to the output dir)
            export: Write the Excel roster

        Returns:
            ScheduleRunResult in a terminal state

        Raises:
            InvalidRequest: If the request cannot be modeled (no run is produced)
        """
        self.start_time = time.time()
        self.output_file = None

        log_file = BaseAgent.setup_file_logging(self.output_dir) if self.log_to_file else None

        self.log("=" * 60)
        self.log("🚀 STARTING SHIFT SAFETY SCHEDULING OPTIMIZER")
        self.log("=" * 60)
        self.log(f"Schedule: {request.schedule_name} | Period: {request.start_date} to {request.end_date}")
        if log_file:
            self.log(f"📝 Log file: {log_file}")
        self.log("=" * 60)

        self._startup_all_agents()

        try:
            # ========== PHASE 1: CONSTRAINT MODEL ==========
            self._log_phase("PHASE 1: CONSTRAINT MODEL")
            run = self.optimization_engine.start_run(request)
            model = self.model_builder.execute(request, employees, correlation_id=run.run_id)
            self._log_phase_complete(
                f"{len(model.employees)} employees, {len(model.slots)} slots, "
                f"{len(model.hard_constraints)} hard constraints"
            )

            # ========== PHASE 2: SEARCH ==========
            self._log_phase("PHASE 2: OPTIMIZATION SEARCH")
            outcome = self.optimization_engine.execute(run, model)
            self._log_phase_complete(
                f"Best cost {outcome.cost:.2f} after {outcome.iterations} iterations ({outcome.stop_reason})"
            )

            # ========== PHASE 3: VALIDATION & ANALYSIS ==========
            self._log_phase("PHASE 3: VALIDATION & ANALYSIS")
            validator_report = self.schedule_validator.execute(model, run.best, correlation_id=run.run_id)
            safety_report = self.pattern_safety.execute(model, run.best, correlation_id=run.run_id)
            fairness_report = self.fairness_evaluator.execute(model, run.best, correlation_id=run.run_id)
            self._log_phase_complete(
                f"{len(validator_report.violations)} hard violations, "
                f"Gini {fairness_report.gini:.3f}, safety {safety_report.fleet_score:.1f}/100"
            )

            # ========== PHASE 4: FINALIZE & REPORT ==========
            self._log_phase("PHASE 4: FINALIZE & REPORT")
            self.optimization_engine.finalize(run, validator_report)
            breakdown = self.optimization_engine.cost_breakdown(model, run)
            result = self.result_reporter.execute(
                run, model, validator_report, fairness_report, safety_report, breakdown,
                seed=self.optimization_engine.get_data("seed"),
                workers=self.optimization_engine.get_data("workers", 1),
            )
            self.current_result = result
            self._log_phase_complete(f"Run {run.run_id} finished as {run.state.value}")

            # ========== PHASE 5: EXPORT ==========
            if export:
                self._log_phase("PHASE 5: EXPORTING ROSTER")
                # Export is optional: a failed write is logged and the result still returned
                self.output_file = self.roster_exporter.safe_execute(
                    result=result, model=model, output_path=output_path or self.output_dir
                )
                if self.output_file:
                    self._log_phase_complete(f"Exported to {self.output_file}")
                else:
                    self.log("⚠️ Roster export failed, see the log for details", "warning")

            self._print_final_report(result)
            self._notify(result)
            return result

        except SchedulingError as e:
            self.log(f"❌ {type(e).__name__}: {e}", "error")
            raise

        except Exception as e:
            self.log(f"❌ Error during scheduling: {e}", "error")
            self._handle_error(e, "generate workflow")
            raise

        finally:
            self._shutdown_all_agents()
            self.log("All agents shut down", "debug")

            if BaseAgent._file_logger:
                elapsed = time.time() - self.start_time if self.start_time else 0
                BaseAgent._file_logger.info("=" * 70)
                BaseAgent._file_logger.info(f"SESSION ENDED - Total time: {elapsed:.2f}s")
                BaseAgent._file_logger.info("=" * 70)

    def cancel(self) -> None:
        """Request cooperative cancellation of the running search."""
        self.optimization_engine.cancel()

    def _on_cancel(self, message: Message) -> None:
        self.cancel()

    def _notify(self, result: ScheduleRunResult) -> None:
        """Tell the notification service (or every agent) that the run finished."""
        content = {
            "status": result.state.value,
            "run_id": result.run_metadata.run_id,
            "schedule_name": result.run_metadata.schedule_name,
            "final_cost": result.run_metadata.final_cost,
            "assignments": len(result.assignments),
            "explanations": list(result.explanations),
            "output_file": self.output_file,
        }
        if self.message_bus.is_registered(NOTIFICATION_SERVICE):
            self.send(MessageType.COMPLETE, content, receiver=NOTIFICATION_SERVICE,
                      correlation_id=result.run_metadata.run_id)
        else:
            self.broadcast(content, MessageType.COMPLETE, correlation_id=result.run_metadata.run_id)

    def _startup_all_agents(self) -> None:
        """Start up all agents with explicit lifecycle protocol."""
        for agent in self.agents:
            agent.startup()

    def _shutdown_all_agents(self) -> None:
        """Shut down all agents with explicit lifecycle protocol."""
        for agent in reversed(self.agents):
            try:
                agent.shutdown()
            except Exception as e:
                self.log(f"Warning: Error shutting down {agent.name}: {e}", "warning")

    def _log_phase(self, phase_name: str) -> None:
        """Log the start of a workflow phase."""
        self.log(f"\n{'─' * 50}")
        self.log(f"📍 {phase_name}")
        self.log(f"{'─' * 50}")
        self.workflow_log.append({
            "phase": phase_name,
            "timestamp": datetime.now().isoformat(),
            "type": "start"
        })

    def _log_phase_complete(self, message: str) -> None:
        """Log the completion of a workflow phase."""
        self.log(f"✓ {message}", "success")
        self.workflow_log.append({
            "message": message,
            "timestamp": datetime.now().isoformat(),
            "type": "complete"
        })

    def _print_final_report(self, result: ScheduleRunResult) -> None:
        """Print the final results report."""
        meta = result.run_metadata
        fairness = result.fairness_report
        safety = result.pattern_safety_report
        summary = result.assignment_set.summary()

        self.log("\n" + "=" * 60)
        self.log("📊 SCHEDULING COMPLETE - FINAL REPORT")
        self.log("=" * 60)

        self.log(f"\n📅 Schedule Summary:")
        self.log(f"   • Run: {meta.run_id} → {meta.state.value.upper()}")
        self.log(f"   • Total Assignments: {summary['total_assignments']}")
        self.log(f"   • Employees Scheduled: {summary['unique_employees']}")
        self.log(f"   • Total Hours: {summary['total_hours']:.1f}")

        self.log(f"\n✅ Validation:")
        self.log(f"   • Hard Violations: {len(result.validator_report.violations)}")
        self.log(f"   • Soft Warnings: {len(result.validator_report.warnings)}")

        self.log(f"\n⚖️ Fairness & Safety:")
        self.log(f"   • Gini: {fairness.gini:.3f} (target {fairness.target:.2f}, {fairness.grade})")
        self.log(f"   • Fleet Safety Score: {safety.fleet_score:.1f}/100")
        critical = safety.critical_employees()
        if critical:
            self.log(f"   • Critical Patterns: {', '.join(critical)}", "warning")

        self.log(f"\n⏱️ Search:")
        self.log(f"   • Strategy: {meta.strategy} ({meta.restarts} restart(s), {meta.workers} worker(s))")
        self.log(f"   • Iterations: {meta.iterations} ({meta.stop_reason})")
        self.log(f"   • Final Cost: {meta.final_cost:.2f}")
        self.log(f"   • Time: {meta.elapsed_seconds:.2f} seconds")

        level = "info" if result.state == RunState.COMPLETED else "warning"
        for line in result.explanations:
            self.log(f"   {line}", level)

        if self.output_file:
            self.log(f"\n📁 Output: {self.output_file}")
        if BaseAgent._log_file_path:
            self.log(f"📝 Log File: {BaseAgent._log_file_path}")
        self.log("=" * 60)

    def _on_request(self, message: Message) -> None:
        """Handle requests to the coordinator."""
        content = message.content

        if isinstance(content, dict):
            request_type = content.get("type")

            if request_type == "get_status":
                self.respond(message, {
                    "result": self.current_result.run_metadata.to_dict() if self.current_result else None,
                })

            elif request_type == "get_workflow_log":
                self.respond(message, {"log": self.workflow_log})

    def _on_status(self, message: Message) -> None:
        """Track run state transitions broadcast by the engine."""
        self.workflow_log.append({
            "from": message.sender,
            "type": "status",
            "state": message.content.get("state") if isinstance(message.content, dict) else None,
            "timestamp": datetime.now().isoformat()
        })

    def _on_data(self, message: Message) -> None:
        self._record(message)

    def _record(self, message: Message) -> None:
        """Keep a trace of reports and data events from other agents."""
        self.workflow_log.append({
            "from": message.sender,
            "type": message.msg_type.value,
            "content_summary": message.preview(100),
            "timestamp": datetime.now().isoformat()
        })
