"""
Recording events and the listener registry that delivers them.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Tuple, Type

from ..logger import get_null_logger
from .models import ProgressSample, RecordingOutcome


class RecordingState(Enum):
    IDLE = "idle"
    STARTING = "starting"
    RECORDING = "recording"
    PAUSED = "paused"
    STOPPING = "stopping"


@dataclass(frozen=True)
class StateChanged:
    previous: RecordingState
    current: RecordingState


@dataclass(frozen=True)
class RecordingStarted:
    """The native helper confirmed capture began."""
    output_path: Optional[Path]


@dataclass(frozen=True)
class RecordingStopped:
    """The native helper confirmed capture ended."""
    output_path: Optional[Path]


@dataclass(frozen=True)
class ProgressUpdated:
    progress: ProgressSample


@dataclass(frozen=True)
class RecordingError:
    error: Exception


@dataclass(frozen=True)
class RecordingFinished:
    outcome: RecordingOutcome


Listener = Callable[[object], None]


class EventEmitter:
    """
    Synchronous fan-out of events to registered listeners.

    Listeners run on the caller's thread in registration order. A listener
    that raises is logged and skipped; the remaining listeners still run.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self._listeners: List[Tuple[Listener, Optional[Type]]] = []
        self._logger = logger or get_null_logger()

    def add_listener(self, listener: Listener, event_type: Optional[Type] = None) -> None:
        """
        Register a callback.

        Args:
            listener: Called with each event
            event_type: Only deliver events of this class (all events if None)
        """
        self._listeners.append((listener, event_type))

    def remove_listener(self, listener: Listener) -> None:
        self._listeners = [(l, t) for l, t in self._listeners if l is not listener]

    def emit(self, event: object) -> None:
        for listener, event_type in list(self._listeners):
            if event_type is not None and not isinstance(event, event_type):
                continue
            try:
                listener(event)
            except Exception:
                self._logger.exception("Listener %r failed on %s", listener, type(event).__name__)
