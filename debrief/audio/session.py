"""
Recording session controller.

Owns the recorder lifecycle for one recording at a time:

    IDLE -> STARTING -> RECORDING <-> PAUSED
                           |            |
                           +-> STOPPING <+ -> IDLE

All state lives on the event loop thread. Failures that happen after a
call has returned (the recorder dying, a failed merge) are delivered to
listeners as RecordingError events rather than raised.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Awaitable, Callable, List, Optional

from ..errors import (
    InvalidStateError,
    NoSourceSelectedError,
    PauseNotSupportedError,
    StartFailure,
    UnexpectedExit,
)
from ..logger import get_null_logger
from .base_recorder import RecorderBackend
from .constants import STOP_TIMEOUT_SECONDS
from .events import (
    EventEmitter,
    ProgressUpdated,
    RecordingError,
    RecordingFinished,
    RecordingStarted,
    RecordingState,
    RecordingStopped,
    StateChanged,
)
from .merge import merge_audio_files
from .models import DeviceSelection, ProgressSample, RecordingOutcome, TempPaths
from .platforms import PlatformStrategy, get_platform_strategy
from .process import RecorderProcess

# Readers normally hit EOF right after exit; a leaked pipe must not hang stop()
READER_DRAIN_TIMEOUT_SECONDS = 1.0

SpawnFunction = Callable[..., Awaitable[RecorderProcess]]


@dataclass
class RecordingSession:
    output_path: Path
    selection: DeviceSelection
    temp_paths: TempPaths
    process: RecorderProcess
    started_at: float
    paused_total: float = 0.0
    pause_started_at: Optional[float] = None
    exit_expected: bool = False
    exited_unexpectedly: bool = False
    crash_reported: bool = False
    last_stderr: str = ''
    readers: List[asyncio.Task] = field(default_factory=list)
    monitor: Optional[asyncio.Task] = None


class RecordingController:
    """
    Drives one recorder backend through start, pause, resume and stop.

    Example:
        controller = RecordingController(FFmpegBackend())
        controller.add_listener(print)
        await controller.start(Path("meeting.m4a"), selection)
        ...
        outcome = await controller.stop()
    """

    def __init__(
        self,
        backend: RecorderBackend,
        strategy: Optional[PlatformStrategy] = None,
        stop_timeout: float = STOP_TIMEOUT_SECONDS,
        ffmpeg_path: str = 'ffmpeg',
        clock: Callable[[], float] = time.monotonic,
        spawn: Optional[SpawnFunction] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the controller.

        Args:
            backend: Recorder backend (native helper or FFmpeg)
            strategy: Platform strategy used to signal the recorder
            stop_timeout: Seconds to wait for a graceful exit before SIGKILL
            ffmpeg_path: ffmpeg executable used for the post-stop merge
            clock: Monotonic clock in seconds
            spawn: Process factory (defaults to RecorderProcess.spawn)
            logger: Logger (silent if None)
        """
        self.backend = backend
        self.strategy = strategy or get_platform_strategy()
        self.stop_timeout = stop_timeout
        self.ffmpeg_path = ffmpeg_path
        self.logger = logger or get_null_logger()

        self._clock = clock
        self._spawn = spawn or RecorderProcess.spawn
        self._emitter = EventEmitter(self.logger)

        self._state = RecordingState.IDLE
        self._starting = False
        self._session: Optional[RecordingSession] = None
        self.last_progress: Optional[ProgressSample] = None

    # Listeners

    def add_listener(self, listener, event_type=None) -> None:
        self._emitter.add_listener(listener, event_type)

    def remove_listener(self, listener) -> None:
        self._emitter.remove_listener(listener)

    # State

    @property
    def state(self) -> RecordingState:
        return self._state

    @property
    def output_path(self) -> Optional[Path]:
        return self._session.output_path if self._session else None

    def is_recording(self) -> bool:
        return self._state in (RecordingState.RECORDING, RecordingState.PAUSED)

    def elapsed(self) -> float:
        """
        Recorded time in seconds, excluding paused time.

        Frozen while paused, 0 when idle, never negative.
        """
        session = self._session
        if session is None or self._state in (RecordingState.IDLE, RecordingState.STARTING):
            return 0.0

        if self._state is RecordingState.PAUSED and session.pause_started_at is not None:
            value = session.pause_started_at - session.started_at - session.paused_total
        else:
            value = self._clock() - session.started_at - session.paused_total
        return max(0.0, value)

    def _set_state(self, state: RecordingState) -> None:
        previous = self._state
        if previous is state:
            return
        self._state = state
        self.logger.debug("State: %s -> %s", previous.value, state.value)
        self._emitter.emit(StateChanged(previous, state))

    # Lifecycle

    async def start(self, output_path: Path, selection: DeviceSelection) -> Path:
        """
        Spawn the recorder.

        Returns once the process is running; the helper's own "started"
        confirmation arrives later as a RecordingStarted event.

        Args:
            output_path: Where the recording is written
            selection: Sources to capture

        Returns:
            The output path

        Raises:
            InvalidStateError: If a recording is active or being started
            NoSourceSelectedError: If the selection has no source
            StartFailure: If the recorder could not be spawned
        """
        if self._state is not RecordingState.IDLE or self._starting:
            raise InvalidStateError(f"Cannot start recording in state: {self._state.value}")

        # Claimed before the first await so a concurrent start() is rejected
        self._starting = True
        self._set_state(RecordingState.STARTING)

        output_path = Path(output_path)
        try:
            if not selection.is_valid:
                raise NoSourceSelectedError("No audio source selected: choose a microphone or system audio device")

            try:
                output_path.parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise StartFailure(f"Cannot create output directory {output_path.parent}: {e}") from e

            try:
                args = self.backend.build_command(output_path, selection)
            except (ValueError, NotImplementedError) as e:
                raise StartFailure(str(e)) from e
            temp_paths = self.backend.temp_paths(output_path, selection)
            self.logger.info("Starting %s recorder: %s", self.backend.name, output_path)

            process = await self._spawn(args, strategy=self.strategy, logger=self.logger)
        except StartFailure as e:
            self.logger.error("Failed to start recorder: %s", e)
            self._starting = False
            self._set_state(RecordingState.IDLE)
            self._emitter.emit(RecordingError(e))
            raise
        except asyncio.CancelledError:
            self._starting = False
            self._set_state(RecordingState.IDLE)
            raise

        session = RecordingSession(
            output_path=output_path,
            selection=selection,
            temp_paths=temp_paths,
            process=process,
            started_at=self._clock(),
        )
        self._session = session
        self.last_progress = None

        session.readers = [
            asyncio.create_task(self._read_stdout(session)),
            asyncio.create_task(self._read_stderr(session)),
        ]
        session.monitor = asyncio.create_task(self._monitor_exit(session))

        self._starting = False
        self._set_state(RecordingState.RECORDING)
        return output_path

    async def stop(self) -> RecordingOutcome:
        """
        Stop gracefully, escalating to SIGKILL after stop_timeout.

        Dual-source recordings whose per-source files are still on disk
        are merged before returning. The controller is back in IDLE when
        this returns or raises; cancelling it kills the recorder.

        Returns:
            RecordingOutcome describing the files left on disk

        Raises:
            InvalidStateError: If not recording or paused
        """
        if self._state not in (RecordingState.RECORDING, RecordingState.PAUSED):
            raise InvalidStateError(f"Cannot stop recording in state: {self._state.value}")

        session = self._session
        # An exit the monitor has not handled yet is still a crash
        if not session.process.is_running():
            session.exited_unexpectedly = True
        session.exit_expected = True

        # A stopped process cannot handle the interrupt; continue it first
        if self._state is RecordingState.PAUSED:
            self._resume_process(session)

        self._set_state(RecordingState.STOPPING)
        self.logger.info("Stopping recording...")

        forced_kill = False
        merged = False
        separate_files = ()
        try:
            await session.process.interrupt()

            try:
                await asyncio.wait_for(session.process.wait(), timeout=self.stop_timeout)
                self.logger.info("Recorder stopped gracefully")
            except asyncio.TimeoutError:
                self.logger.warning("Recorder did not exit within %.1fs, killing...", self.stop_timeout)
                forced_kill = True
                session.process.kill()
                await session.process.wait()

            duration = self.elapsed()
            await self._drain_readers(session)

            if session.exited_unexpectedly:
                self._report_crash(session, session.process.returncode)
            elif self._session is session and self._temp_files_present(session.temp_paths):
                # The merge always runs to completion, even if stop() is cancelled
                result = await asyncio.shield(merge_audio_files(
                    session.temp_paths.mic,
                    session.temp_paths.system,
                    session.output_path,
                    ffmpeg_path=self.ffmpeg_path,
                    logger=self.logger,
                ))
                merged = result.merged
                separate_files = result.separate_files
                if result.error is not None:
                    self._emitter.emit(RecordingError(result.error))
        except asyncio.CancelledError:
            self.logger.warning("Stop cancelled, killing recorder")
            session.process.kill()
            raise
        finally:
            if self._session is session:
                self._finish_session()

        outcome = RecordingOutcome(
            output_path=session.output_path,
            output_exists=session.output_path.exists(),
            duration=duration,
            forced_kill=forced_kill,
            merged=merged,
            separate_files=separate_files,
        )
        self.logger.info("Recording finished: %s", outcome.output_path)
        self._emitter.emit(RecordingFinished(outcome))
        return outcome

    def pause(self) -> None:
        """
        Suspend the recorder (SIGSTOP).

        The written timeline has a gap rather than a clean cut while paused.

        Raises:
            InvalidStateError: If not recording
            PauseNotSupportedError: If the backend or platform cannot suspend
        """
        if self._state is not RecordingState.RECORDING:
            raise InvalidStateError(f"Cannot pause in state: {self._state.value}")
        if not self.backend.supports_pause:
            raise PauseNotSupportedError(f"Pause is not supported by the {self.backend.name} recorder on {self.strategy.name}")

        session = self._session
        try:
            session.process.suspend()
        except NotImplementedError as e:
            raise PauseNotSupportedError(str(e)) from e

        session.pause_started_at = self._clock()
        self._set_state(RecordingState.PAUSED)

    def resume(self) -> None:
        """
        Continue a paused recorder (SIGCONT).

        Raises:
            InvalidStateError: If not paused
        """
        if self._state is not RecordingState.PAUSED:
            raise InvalidStateError(f"Cannot resume in state: {self._state.value}")

        self._resume_process(self._session)
        self._set_state(RecordingState.RECORDING)

    def kill(self) -> None:
        """Force-kill the recorder without merging. No-op when idle."""
        session = self._session
        if session is None:
            return

        self.logger.warning("Force killing recorder")
        session.exit_expected = True
        session.process.kill()
        self._finish_session()

    # Internals

    def _resume_process(self, session: RecordingSession) -> None:
        session.process.resume()
        if session.pause_started_at is not None:
            session.paused_total += self._clock() - session.pause_started_at
            session.pause_started_at = None

    def _finish_session(self) -> None:
        self._session = None
        self._set_state(RecordingState.IDLE)

    @staticmethod
    def _temp_files_present(temp_paths: TempPaths) -> bool:
        return temp_paths.is_dual and temp_paths.mic.exists() and temp_paths.system.exists()

    async def _drain_readers(self, session: RecordingSession) -> None:
        pending = [t for t in session.readers if not t.done()]
        if not pending:
            return
        _, still_running = await asyncio.wait(pending, timeout=READER_DRAIN_TIMEOUT_SECONDS)
        for task in still_running:
            task.cancel()

    def _dispatch(self, session: RecordingSession, event: object) -> None:
        if isinstance(event, (RecordingStarted, RecordingStopped)) and event.output_path is None:
            event = replace(event, output_path=session.output_path)
        elif isinstance(event, ProgressUpdated):
            self.last_progress = event.progress
        elif isinstance(event, RecordingError):
            self.logger.error("Recorder reported error: %s", event.error)
        self._emitter.emit(event)

    async def _read_stdout(self, session: RecordingSession) -> None:
        try:
            async for line in session.process.stdout_lines():
                event = self.backend.parse_stdout_line(line)
                if event is not None:
                    self._dispatch(session, event)
        except Exception as e:
            self.logger.error("stdout reader error: %s", e, exc_info=True)

    async def _read_stderr(self, session: RecordingSession) -> None:
        try:
            async for line in session.process.stderr_lines():
                session.last_stderr = line
                event = self.backend.parse_stderr_line(line)
                if event is not None:
                    self._dispatch(session, event)
        except Exception as e:
            self.logger.error("stderr reader error: %s", e, exc_info=True)

    async def _monitor_exit(self, session: RecordingSession) -> None:
        returncode = await session.process.wait()

        if session.exit_expected or self._session is not session:
            return
        # Marked before draining so a stop() arriving meanwhile skips the merge
        session.exited_unexpectedly = True

        # Let the readers pick up the recorder's last words
        await self._drain_readers(session)
        self._report_crash(session, returncode)

    def _report_crash(self, session: RecordingSession, returncode: Optional[int]) -> None:
        if session.crash_reported:
            return
        session.crash_reported = True

        self.logger.error("Recorder exited unexpectedly with code: %s", returncode)
        if self._session is session:
            self._finish_session()
        self._emitter.emit(RecordingError(UnexpectedExit(returncode, session.last_stderr)))
