"""
In-process message bus shared by the optimizer agents.

Every message is appended to the run log before delivery. Status
transitions, reports and completion notices all travel
through the same bus, so the log doubles as an audit trail of a run.
"""
from collections import Counter
import logging
from typing import Callable, Dict, Iterable, List, Optional, Tuple
from rich.console import Console
from rich.table import Table

from .message import Message, MessageType

logger = logging.getLogger("ShiftOptimizer.bus")

Handler = Callable[[Message], None]

# Console colour per message kind; anything missing prints white
_STYLE = {
    MessageType.REQUEST: "cyan",
    MessageType.RESPONSE: "green",
    MessageType.COMPLETE: "green",
    MessageType.STATUS: "yellow",
    MessageType.CANCEL: "yellow",
    MessageType.SAFETY_REPORT: "magenta",
    MessageType.FAIRNESS_REPORT: "magenta",
    MessageType.VIOLATION: "red",
}

# Bulky payloads whose content is not echoed to the console
_QUIET_PAYLOADS = (MessageType.DATA,)


class MessageBus:
    """
    Routes messages by receiver name.

    A message with ``receiver=None`` is broadcast to every subscriber
    except its sender. Anything outside the optimizer (a notification
    service, a UI listener) subscribes the same way an agent does.
    """

    def __init__(self, verbose: bool = True):
        self.subscribers: Dict[str, Handler] = {}
        self.message_history: List[Message] = []
        self.verbose = verbose
        self.console = Console()

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def register(self, agent_name: str, handler: Handler) -> None:
        """Subscribe ``handler`` under ``agent_name``, replacing any previous one."""
        self.subscribers[agent_name] = handler
        logger.debug(f"Subscriber registered: {agent_name}")
        if self.verbose:
            self.console.print(f"[dim]📡 {agent_name} joined the bus[/dim]")

    def unregister(self, agent_name: str) -> None:
        self.subscribers.pop(agent_name, None)

    def is_registered(self, agent_name: str) -> bool:
        return agent_name in self.subscribers

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    def recipients_of(self, message: Message) -> List[Tuple[str, Handler]]:
        """Subscribers that ``message`` would be delivered to right now."""
        if message.receiver is not None:
            handler = self.subscribers.get(message.receiver)
            return [(message.receiver, handler)] if handler else []
        return [
            (name, handler) for name, handler in self.subscribers.items()
            if name != message.sender
        ]

    def send(self, message: Message) -> None:
        """Log ``message`` and hand it to its recipients synchronously."""
        self.message_history.append(message)
        logger.debug(
            f"{message.sender} → {message.receiver or 'ALL'} "
            f"({message.msg_type.value}) correlation={message.correlation_id}"
        )
        if self.verbose:
            self._echo(message)

        # Handlers may (un)register while we deliver, so snapshot first
        recipients = self.recipients_of(message)
        if not recipients and message.receiver is not None:
            logger.warning(f"Message for unknown receiver '{message.receiver}' dropped")
            if self.verbose:
                self.console.print(f"[red]⚠️ No subscriber named '{message.receiver}'[/red]")
            return
        for _, handler in recipients:
            handler(message)

    def _echo(self, message: Message) -> None:
        color = _STYLE.get(message.msg_type, "white")
        stamp = message.timestamp.strftime("%H:%M:%S.%f")[:-3]
        self.console.print(
            f"[dim]{stamp}[/dim] [bold]{message.sender}[/bold] → "
            f"[bold]{message.receiver or 'ALL'}[/bold] "
            f"[{color}]({message.msg_type.value})[/{color}]"
        )
        if message.msg_type in _QUIET_PAYLOADS:
            return
        preview = message.preview(150)
        if preview:
            self.console.print(f"  [dim]└─ {preview}[/dim]")

    # ------------------------------------------------------------------
    # Run log
    # ------------------------------------------------------------------

    def get_history(self,
                    sender: Optional[str] = None,
                    receiver: Optional[str] = None,
                    msg_type: Optional[MessageType] = None) -> List[Message]:
        """Logged messages matching every filter that is given."""
        return [
            m for m in self.message_history
            if (sender is None or m.sender == sender)
            and (receiver is None or m.receiver == receiver)
            and (msg_type is None or m.msg_type == msg_type)
        ]

    def get_conversation(self, correlation_id: str) -> List[Message]:
        """Everything logged under one run id."""
        return self.get_filtered(lambda m: m.correlation_id == correlation_id)

    def get_filtered(self, predicate: Callable[[Message], bool]) -> List[Message]:
        return [m for m in self.message_history if predicate(m)]

    def traffic(self) -> Dict[str, Tuple[int, int]]:
        """(sent, received) per participant, broadcasts counted per current subscriber."""
        sent: Counter = Counter()
        received: Counter = Counter()
        for message in self.message_history:
            sent[message.sender] += 1
            received.update(self._addressees(message))
        names = sorted(set(self.subscribers) | set(sent) | set(received))
        return {name: (sent[name], received[name]) for name in names}

    def _addressees(self, message: Message) -> Iterable[str]:
        if message.receiver:
            return [message.receiver]
        return [name for name in self.subscribers if name != message.sender]

    def print_summary(self) -> None:
        table = Table(title="📊 Run Message Traffic")
        table.add_column("Participant", style="cyan")
        table.add_column("Sent", justify="right")
        table.add_column("Received", justify="right")
        for name, (sent, received) in self.traffic().items():
            table.add_row(name, str(sent), str(received))
        self.console.print(table)

    def export_log(self) -> List[dict]:
        return [message.to_dict() for message in self.message_history]

    def clear_history(self) -> None:
        self.message_history = []
