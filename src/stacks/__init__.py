"""Stack lifecycle orchestration."""

from stacks.stack import Stack
from stacks.tail import CancelSignal, EventTailer, TailSession
from stacks.change import ChangeSetOrchestrator
from stacks.terminate import TerminationOrchestrator

__all__ = [
    'Stack',
    'CancelSignal',
    'EventTailer',
    'TailSession',
    'ChangeSetOrchestrator',
    'TerminationOrchestrator',
]
