"""
Pytest fixtures for Debrief tests.
"""

import asyncio
import stat
import sys
import tempfile
from pathlib import Path

import pytest

from debrief.audio.models import AudioDevice, DeviceKind, DeviceSelection, SelectionMode


def pytest_configure(config):
    config.addinivalue_line(
        "markers", "posix: test spawns real subprocesses and POSIX signals"
    )


def pytest_collection_modifyitems(config, items):
    if sys.platform != 'win32':
        return
    skip_posix = pytest.mark.skip(reason="Needs POSIX signals and executable scripts")
    for item in items:
        if "posix" in item.keywords:
            item.add_marker(skip_posix)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def mic():
    return AudioDevice(index='0', name='MacBook Pro Microphone', device_id='mic-0')


@pytest.fixture
def system_device():
    return AudioDevice(index='1', name='BlackHole 2ch', kind=DeviceKind.SYSTEM_AUDIO, device_id='sys-0', is_black_hole=True)


@pytest.fixture
def mic_selection(mic):
    return DeviceSelection(mic, None, SelectionMode.MIC_ONLY)


@pytest.fixture
def both_selection(mic, system_device):
    return DeviceSelection(mic, system_device, SelectionMode.BOTH)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 100.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


class FakeRecorderProcess:
    """
    Stands in for RecorderProcess.

    Lines are pushed with feed_stdout()/feed_stderr(); both streams end when
    the process exits. Signal calls are recorded in `calls`.
    """

    def __init__(self, exit_on_interrupt=True, on_interrupt=None):
        self.calls = []
        self.returncode = None
        self.exit_on_interrupt = exit_on_interrupt
        self.on_interrupt = on_interrupt
        self._stdout = asyncio.Queue()
        self._stderr = asyncio.Queue()
        self._exited = asyncio.Event()

    def feed_stdout(self, line):
        self._stdout.put_nowait(line)

    def feed_stderr(self, line):
        self._stderr.put_nowait(line)

    def exit(self, code=0):
        if self.returncode is not None:
            return
        self.returncode = code
        self._stdout.put_nowait(None)
        self._stderr.put_nowait(None)
        self._exited.set()

    async def _lines(self, queue):
        while True:
            line = await queue.get()
            if line is None:
                return
            yield line

    def stdout_lines(self):
        return self._lines(self._stdout)

    def stderr_lines(self):
        return self._lines(self._stderr)

    def is_running(self):
        return self.returncode is None

    async def interrupt(self):
        self.calls.append('interrupt')
        if self.on_interrupt:
            self.on_interrupt()
        if self.exit_on_interrupt:
            self.exit(0)

    def suspend(self):
        self.calls.append('suspend')

    def resume(self):
        self.calls.append('resume')

    def kill(self):
        self.calls.append('kill')
        self.exit(-9)

    async def wait(self):
        await self._exited.wait()
        return self.returncode


class FakeSpawner:
    """Replacement for RecorderProcess.spawn that hands out FakeRecorderProcess objects."""

    def __init__(self):
        self.commands = []
        self.processes = []
        self.error = None
        self.delay = 0.0
        self.process_options = {}

    async def __call__(self, args, strategy=None, logger=None):
        self.commands.append(list(args))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        process = FakeRecorderProcess(**self.process_options)
        self.processes.append(process)
        return process

    @property
    def process(self):
        return self.processes[-1]


@pytest.fixture
def spawner():
    return FakeSpawner()


class EventRecorder:
    """Listener that keeps every event it receives."""

    def __init__(self):
        self.events = []

    def __call__(self, event):
        self.events.append(event)

    def of_type(self, event_type):
        return [e for e in self.events if isinstance(e, event_type)]


@pytest.fixture
def events():
    return EventRecorder()


async def wait_until(predicate, timeout=2.0):
    """Poll predicate on the event loop until it holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("Condition not met in time")
        await asyncio.sleep(0.01)


def write_script(path: Path, body: str) -> Path:
    """Write an executable Python script that runs under the current interpreter."""
    path.write_text(f"#!{sys.executable}\n{body}")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path
