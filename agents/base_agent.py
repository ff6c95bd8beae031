"""
Agent plumbing shared by every stage of the optimizer pipeline.

An agent wraps one piece of the optimizer core (model builder, search
engine, validator, reporters, exporter) behind a uniform lifecycle so the
coordinator can start, run, health-check and stop them the same way.

Errors follow two rules:
    * ``SchedulingError`` subclasses are the caller's problem and always
      propagate out of ``safe_execute``.
    * Anything else is counted; the agent keeps going until it has failed
      ``max_errors`` times, then re-raises.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Optional, Protocol, runtime_checkable
from rich.console import Console
from pathlib import Path
import logging
import traceback

from communication.message import Message, MessageType
from communication.message_bus import MessageBus
from models.errors import SchedulingError

LOGGER_NAME = "ShiftOptimizer"

_CONSOLE_STYLE = {
    "info": "blue",
    "success": "green",
    "warning": "yellow",
    "error": "red",
    "debug": "dim",
}

_LOG_LEVEL = {
    "info": logging.INFO,
    "success": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "debug": logging.DEBUG,
}

# Message kinds every agent can receive; each maps to ``_on_<value>``
_DISPATCHED = (
    MessageType.REQUEST,
    MessageType.DATA,
    MessageType.CANCEL,
    MessageType.STATUS,
)


@runtime_checkable
class ISchedulingAgent(Protocol):
    """What the coordinator relies on when it drives a pipeline stage."""

    @property
    def name(self) -> str: ...

    @property
    def is_active(self) -> bool: ...

    def execute(self, **kwargs) -> Any: ...

    def health_check(self) -> bool: ...

    def startup(self) -> None: ...

    def shutdown(self) -> None: ...

    def get_metrics(self) -> Dict[str, Any]: ...


class AgentState(Enum):
    INITIALIZING = "initializing"
    IDLE = "idle"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"
    SHUTDOWN = "shutdown"


class BaseAgent(ABC):
    """
    A named bus participant with a lifecycle.

    Subclasses implement ``execute`` and override whichever ``_on_*``
    message hooks they care about. Console output follows the bus
    verbosity; the optional run log file receives everything.
    """

    # One log file per process, shared by all agents and the core modules
    _file_logger: Optional[logging.Logger] = None
    _log_file_path: Optional[str] = None

    @classmethod
    def setup_file_logging(cls, log_dir: str = "output") -> str:
        """Attach a file handler to the ``ShiftOptimizer`` logger and return its path.

        Calling it again while a file is open returns the open file.
        """
        if cls._file_logger is not None:
            return cls._log_file_path

        directory = Path(log_dir)
        directory.mkdir(parents=True, exist_ok=True)
        started = datetime.now()
        log_file = str(directory / f"optimizer_log_{started:%Y%m%d_%H%M%S}.txt")

        handler = logging.FileHandler(log_file, mode="w", encoding="utf-8")
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))

        file_logger = logging.getLogger(LOGGER_NAME)
        file_logger.setLevel(logging.DEBUG)
        file_logger.addHandler(handler)
        cls._file_logger = file_logger
        cls._log_file_path = log_file

        rule = "=" * 70
        for line in (rule, "SHIFT SAFETY SCHEDULING OPTIMIZER - LOG FILE",
                     f"Session started: {started.isoformat()}", rule):
            file_logger.info(line)
        return log_file

    @classmethod
    def close_file_logging(cls) -> None:
        file_logger = cls._file_logger
        if file_logger is None:
            return
        for handler in [h for h in file_logger.handlers if isinstance(h, logging.FileHandler)]:
            handler.close()
            file_logger.removeHandler(handler)
        cls._file_logger = None
        cls._log_file_path = None

    def __init__(self, name: str, message_bus: MessageBus, max_errors: int = 3):
        self.name = name
        self.message_bus = message_bus
        self.state: Dict[str, Any] = {}
        self.agent_state = AgentState.INITIALIZING
        self.is_active = True
        self.console = Console()
        self._message_handlers: Dict[MessageType, Callable[[Message], None]] = {}
        self._error_count = 0
        self._max_errors = max_errors

        self.message_bus.register(self.name, self._handle_message)
        self._setup_handlers()
        self._transition_state(AgentState.IDLE)
        self.log("Agent initialized and ready", "debug")

    # ------------------------------------------------------------------
    # Incoming messages
    # ------------------------------------------------------------------

    def _setup_handlers(self) -> None:
        """Fill the dispatch table. Subclasses may add entries after calling super()."""
        self._message_handlers = {
            msg_type: getattr(self, f"_on_{msg_type.value}") for msg_type in _DISPATCHED
        }

    def _handle_message(self, message: Message) -> None:
        handler = self._message_handlers.get(message.msg_type, self._on_unknown_message)
        handler(message)

    def _on_request(self, message: Message) -> None:
        pass

    def _on_data(self, message: Message) -> None:
        pass

    def _on_cancel(self, message: Message) -> None:
        pass

    def _on_status(self, message: Message) -> None:
        pass

    def _on_unknown_message(self, message: Message) -> None:
        self.log(f"Ignoring {message.msg_type.value} message from {message.sender}", level="debug")

    # ------------------------------------------------------------------
    # Outgoing messages
    # ------------------------------------------------------------------

    def _post(self, message: Message) -> Message:
        if BaseAgent._file_logger:
            BaseAgent._file_logger.info(
                "[MessageBus] %s → %s (%s) correlation=%s | %s",
                message.sender,
                message.receiver or "ALL",
                message.msg_type.value,
                message.correlation_id,
                message.preview(120),
            )
        self.message_bus.send(message)
        return message

    def send(self,
             msg_type: MessageType,
             content: Any,
             receiver: Optional[str] = None,
             correlation_id: Optional[str] = None,
             metadata: Optional[dict] = None) -> Message:
        """Send ``content`` to ``receiver``, or to everyone when it is None.

        Pass the run id as ``correlation_id`` so the message shows up in
        that run's conversation.
        """
        message = Message(msg_type, self.name, receiver, content, metadata=metadata or {})
        if correlation_id:
            message.correlation_id = correlation_id
        return self._post(message)

    def respond(self, original: Message, content: Any,
                msg_type: MessageType = MessageType.RESPONSE) -> Message:
        reply = Message.create_response(original, content, msg_type)
        reply.sender = self.name
        return self._post(reply)

    def broadcast(self, content: Any, msg_type: MessageType = MessageType.BROADCAST,
                  correlation_id: Optional[str] = None) -> Message:
        return self.send(msg_type, content, receiver=None, correlation_id=correlation_id)

    # ------------------------------------------------------------------
    # Scratch state
    # ------------------------------------------------------------------

    def set_data(self, key: str, value: Any) -> None:
        self.state[key] = value

    def get_data(self, key: str, default: Any = None) -> Any:
        return self.state.get(key, default)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @abstractmethod
    def execute(self, **kwargs) -> Any:
        """Run this stage of the pipeline."""

    def startup(self) -> None:
        """(Re)join the bus and reset the error budget."""
        if not self.message_bus.is_registered(self.name):
            self.message_bus.register(self.name, self._handle_message)
        self.is_active = True
        self._error_count = 0
        self._transition_state(AgentState.IDLE)
        self.log("🟢 Agent started", "debug")
        self._file_note("STARTUP - Agent ready")

    def shutdown(self) -> None:
        """Leave the bus. The agent no longer receives broadcasts afterwards."""
        self.is_active = False
        self._transition_state(AgentState.SHUTDOWN)
        self.message_bus.unregister(self.name)
        self.log(f"🔴 Agent shutdown (errors: {self._error_count})", "debug")
        self._file_note(
            f"SHUTDOWN - Final state: {self.agent_state.value}, Errors: {self._error_count}"
        )

    def health_check(self) -> bool:
        if not self.is_active or self._error_count >= self._max_errors:
            return False
        return self.agent_state not in (AgentState.ERROR, AgentState.SHUTDOWN)

    def get_metrics(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "state": self.agent_state.value,
            "is_active": self.is_active,
            "error_count": self._error_count,
            "max_errors": self._max_errors,
            "is_healthy": self.health_check(),
        }

    # ------------------------------------------------------------------
    # Logging
    # ------------------------------------------------------------------

    def log(self, message: str, level: str = "info") -> None:
        """Print to the console (when the bus is verbose) and write to the run log.

        ``level`` is one of info, success, warning, error or debug.
        """
        if self.message_bus.verbose:
            style = _CONSOLE_STYLE.get(level, "white")
            self.console.print(f"[{style}][{self.name}] {message}[/{style}]")
        if BaseAgent._file_logger:
            BaseAgent._file_logger.log(_LOG_LEVEL.get(level, logging.INFO), f"[{self.name}] {message}")

    def _file_note(self, text: str) -> None:
        if BaseAgent._file_logger:
            BaseAgent._file_logger.info(f"[{self.name}] {text}")

    def _transition_state(self, new_state: AgentState) -> None:
        previous, self.agent_state = self.agent_state, new_state
        if BaseAgent._file_logger:
            BaseAgent._file_logger.debug(f"[{self.name}] State: {previous.value} → {new_state.value}")

    def get_agent_state(self) -> AgentState:
        return self.agent_state

    # ------------------------------------------------------------------
    # Error handling
    # ------------------------------------------------------------------

    def _handle_error(self, error: Exception, context: str = "") -> bool:
        """Count ``error`` against the budget. Returns False once the budget is spent."""
        self._error_count += 1
        self._transition_state(AgentState.ERROR)
        self.log(f"Error in {context}: {type(error).__name__}: {error}", "error")
        if BaseAgent._file_logger:
            BaseAgent._file_logger.error(f"[{self.name}] Traceback:\n{traceback.format_exc()}")

        if self._error_count >= self._max_errors:
            self.log(f"Max errors ({self._max_errors}) reached - agent degraded", "warning")
            return False
        self.log(f"Error {self._error_count}/{self._max_errors} - continuing in degraded mode", "warning")
        self._transition_state(AgentState.IDLE)
        return True

    def safe_execute(self, **kwargs) -> Any:
        """``execute`` with the error rules of this module applied.

        Returns None when a non-scheduling error was tolerated.
        """
        self._transition_state(AgentState.PROCESSING)
        try:
            result = self.execute(**kwargs)
        except SchedulingError as e:
            self._transition_state(AgentState.ERROR)
            self.log(f"{type(e).__name__}: {e}", "error")
            raise
        except Exception as e:
            if not self._handle_error(e, "execute()"):
                raise
            return None
        self._transition_state(AgentState.COMPLETED)
        return result

    def __str__(self) -> str:
        return f"{self.name} ({self.__class__.__name__}, {'active' if self.is_active else 'inactive'})"

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(name='{self.name}', active={self.is_active})>"
