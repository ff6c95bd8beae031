"""
Envelope for everything the optimizer agents say to each other.

The correlation id of a message is the run id whenever the message
belongs to a run, which is what ``MessageBus.get_conversation`` keys on.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional
import uuid

_JSON_SCALARS = (dict, list, str, int, float, bool, type(None))


class MessageType(Enum):
    # Generic request / reply
    REQUEST = "request"
    RESPONSE = "response"
    BROADCAST = "broadcast"

    # Payload hand-offs between pipeline stages
    DATA = "data"                 # roster and coverage loaded
    MODEL = "model"               # constraint model built

    # Scoring
    VIOLATION = "violation"       # one hard violation
    SAFETY_REPORT = "safety_report"
    FAIRNESS_REPORT = "fairness_report"

    # Run lifecycle
    STATUS = "status"             # {"run_id", "state"} on every transition
    CANCEL = "cancel"
    COMPLETE = "complete"         # terminal state reached


def _short_id() -> str:
    return uuid.uuid4().hex[:8]


@dataclass
class Message:
    """
    One bus message.

    ``receiver=None`` means broadcast. ``content`` is usually a plain
    dict; anything else is stringified by ``to_dict``.
    """
    msg_type: MessageType
    sender: str
    receiver: Optional[str]
    content: Any
    correlation_id: str = field(default_factory=_short_id)
    timestamp: datetime = field(default_factory=datetime.now)
    metadata: dict = field(default_factory=dict)

    @property
    def is_broadcast(self) -> bool:
        return self.receiver is None

    def preview(self, limit: int = 100) -> str:
        text = str(self.content)
        if len(text) > limit:
            return text[:limit] + "..."
        return text

    def __str__(self) -> str:
        target = "ALL" if self.is_broadcast else self.receiver
        return (
            f"[{self.timestamp:%H:%M:%S}] {self.sender} → {target} "
            f"({self.msg_type.value}): {self.preview()}"
        )

    def to_dict(self) -> dict:
        content = self.content if isinstance(self.content, _JSON_SCALARS) else str(self.content)
        return {
            "msg_type": self.msg_type.value,
            "sender": self.sender,
            "receiver": self.receiver,
            "content": content,
            "correlation_id": self.correlation_id,
            "timestamp": self.timestamp.isoformat(),
            "metadata": self.metadata,
        }

    @classmethod
    def create_response(cls, original: "Message", content: Any,
                        msg_type: MessageType = MessageType.RESPONSE) -> "Message":
        """Reply to ``original``, keeping its correlation id."""
        return cls(
            msg_type=msg_type,
            sender=original.receiver,
            receiver=original.sender,
            content=content,
            correlation_id=original.correlation_id,
            metadata={"in_response_to": original.msg_type.value},
        )
