"""Client module for Terminal Chat."""

from client.session import Session
from client.commands import CommandProcessor, CommandResult
from client.receiver import ReceiverLoop
from client.lifecycle import LifecycleController
from client.app import ChatClient

__all__ = [
    "Session",
    "CommandProcessor",
    "CommandResult",
    "ReceiverLoop",
    "LifecycleController",
    "ChatClient",
]
