"""
Tests for the listener registry.
"""

import logging

from debrief.audio.events import (
    EventEmitter,
    ProgressUpdated,
    RecordingState,
    StateChanged,
)
from debrief.audio.models import ProgressSample


def test_delivers_in_registration_order():
    emitter = EventEmitter()
    calls = []
    emitter.add_listener(lambda e: calls.append(('first', e)))
    emitter.add_listener(lambda e: calls.append(('second', e)))

    event = StateChanged(RecordingState.IDLE, RecordingState.STARTING)
    emitter.emit(event)

    assert calls == [('first', event), ('second', event)]


def test_event_type_filter():
    emitter = EventEmitter()
    progress = []
    emitter.add_listener(progress.append, ProgressUpdated)

    emitter.emit(StateChanged(RecordingState.IDLE, RecordingState.STARTING))
    emitter.emit(ProgressUpdated(ProgressSample(3, 1024)))

    assert len(progress) == 1
    assert progress[0].progress.elapsed_seconds == 3


def test_failing_listener_is_isolated(caplog):
    emitter = EventEmitter(logging.getLogger('events-test'))
    received = []

    def broken(event):
        raise RuntimeError("listener bug")

    emitter.add_listener(broken)
    emitter.add_listener(received.append)

    with caplog.at_level(logging.ERROR, logger='events-test'):
        emitter.emit(StateChanged(RecordingState.IDLE, RecordingState.STARTING))

    assert len(received) == 1
    assert 'listener bug' in caplog.text


def test_remove_listener():
    emitter = EventEmitter()
    received = []
    listener = received.append
    emitter.add_listener(listener)
    emitter.remove_listener(listener)

    emitter.emit(StateChanged(RecordingState.IDLE, RecordingState.STARTING))

    assert received == []
