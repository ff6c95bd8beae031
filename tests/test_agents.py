"""Tests for the agent lifecycle, error handling, file logging and configuration."""
import pytest

from agents.base_agent import AgentState, BaseAgent, ISchedulingAgent
from agents.schedule_validator import ScheduleValidatorAgent
from config import AppConfig
from models.errors import InternalInconsistency, InvalidRequest


class FlakyAgent(BaseAgent):
    """Raises whatever it is told to."""

    def __init__(self, bus):
        super().__init__("Flaky", bus)

    def execute(self, error=None, **kwargs):
        if error is not None:
            raise error
        return "done"


def test_agents_satisfy_the_interface(bus):
    assert isinstance(FlakyAgent(bus), ISchedulingAgent)
    assert isinstance(ScheduleValidatorAgent(bus), ISchedulingAgent)


def test_lifecycle(bus):
    agent = FlakyAgent(bus)
    assert bus.is_registered("Flaky")
    assert agent.get_agent_state() == AgentState.IDLE

    agent.shutdown()
    assert not bus.is_registered("Flaky")
    assert not agent.health_check()

    agent.startup()
    assert bus.is_registered("Flaky")
    assert agent.health_check()


def test_safe_execute_success(bus):
    agent = FlakyAgent(bus)
    assert agent.safe_execute() == "done"
    assert agent.get_agent_state() == AgentState.COMPLETED


@pytest.mark.parametrize("error", [
    InvalidRequest("bad input", field="x"),
    InternalInconsistency("broken invariant"),
])
def test_scheduling_errors_always_propagate(bus, error):
    agent = FlakyAgent(bus)
    with pytest.raises(type(error)):
        agent.safe_execute(error=error)
    assert agent.get_agent_state() == AgentState.ERROR


def test_generic_errors_degrade_gracefully(bus):
    agent = FlakyAgent(bus)
    assert agent.safe_execute(error=KeyError("a")) is None
    assert agent.safe_execute(error=KeyError("b")) is None
    with pytest.raises(KeyError):
        agent.safe_execute(error=KeyError("c"))
    assert not agent.health_check()
    assert agent.get_metrics()["error_count"] == 3


def test_invalid_request_fields():
    error = InvalidRequest("fairness_target 0.9 not in [0.1, 0.5]", field="fairness_target")
    assert isinstance(error, ValueError)
    assert error.field == "fairness_target"
    assert "0.9" in str(error)


def test_file_logging_is_shared_and_closable(bus, tmp_path):
    log_file = BaseAgent.setup_file_logging(str(tmp_path))
    assert BaseAgent.setup_file_logging(str(tmp_path / "other")) == log_file

    FlakyAgent(bus).log("hello from the agent", "warning")
    BaseAgent.close_file_logging()

    text = open(log_file, encoding="utf-8").read()
    assert "SHIFT SAFETY SCHEDULING OPTIMIZER - LOG FILE" in text
    assert "[Flaky] hello from the agent" in text
    assert BaseAgent._file_logger is None


# =============================================================================
# CONFIGURATION
# =============================================================================

def test_config_defaults(monkeypatch):
    for name in ("SHIFT_OPTIMIZER_OUTPUT_DIR", "SHIFT_OPTIMIZER_VERBOSE",
                 "SHIFT_OPTIMIZER_LOG_TO_FILE", "SHIFT_OPTIMIZER_WORKERS"):
        monkeypatch.delenv(name, raising=False)
    loaded = AppConfig.load()

    assert loaded.output_dir == "output"
    assert loaded.verbose and loaded.log_to_file
    assert loaded.workers is None
    assert loaded.scheduling.max_consecutive_nights == 3
    assert loaded.optimizer.initial_temperature == 20.0


def test_config_from_environment(monkeypatch):
    monkeypatch.setenv("SHIFT_OPTIMIZER_OUTPUT_DIR", "/tmp/rosters")
    monkeypatch.setenv("SHIFT_OPTIMIZER_VERBOSE", "no")
    monkeypatch.setenv("SHIFT_OPTIMIZER_WORKERS", "4")
    loaded = AppConfig.load()

    assert loaded.output_dir == "/tmp/rosters"
    assert not loaded.verbose
    assert loaded.workers == 4


def test_bad_worker_count_is_ignored(monkeypatch):
    monkeypatch.setenv("SHIFT_OPTIMIZER_WORKERS", "many")
    assert AppConfig.load().workers is None
