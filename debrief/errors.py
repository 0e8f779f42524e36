"""
Exception types raised by the recorder core.

Lifecycle misuse and spawn failures are raised to the caller. Failures that
happen after the initiating call has returned (the recorder dying mid-way,
a failed merge) are delivered as RecordingError events instead.
"""

from typing import Optional


class DebriefError(Exception):
    """Base class for all recorder errors."""


class DeviceEnumerationError(DebriefError):
    """The platform device-listing tool is missing or failed."""


class InvalidStateError(DebriefError):
    """A lifecycle method was called from a state that does not allow it."""


class PauseNotSupportedError(InvalidStateError):
    """Pause/resume was requested on a backend or platform without suspend."""


class StartFailure(DebriefError):
    """The recorder subprocess could not be started."""


class NoSourceSelectedError(StartFailure):
    """Neither a microphone nor a system audio source is selected."""


class UnexpectedExit(DebriefError):
    """The recorder subprocess exited while a recording was in progress."""

    def __init__(self, returncode: Optional[int], detail: str = ""):
        self.returncode = returncode
        message = f"Recorder exited unexpectedly (exit code {returncode})"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class MergeFailure(DebriefError):
    """The external mixing tool was missing or exited non-zero."""


class RecorderReportedError(DebriefError):
    """The native helper reported {"success": false, "error": ...}."""


class ConfigError(DebriefError):
    """A configuration value is invalid."""
