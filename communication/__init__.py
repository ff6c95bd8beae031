"""Message envelope and bus used by the optimizer agents and external subscribers."""
from .message import Message, MessageType
from .message_bus import MessageBus

__all__ = ["MessageBus", "Message", "MessageType"]
