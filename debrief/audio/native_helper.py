"""
Native recorder helper integration for macOS.

This module interfaces with the native `recorder` binary, which captures
microphone and system audio with ScreenCaptureKit and writes the file
itself.

The helper:
- Accepts `list-devices`, `check-permissions`, `version` and
  `record <output> --mic|--system|--both`
- Prints one JSON status object per line on stdout
- Prints free-form diagnostics on stderr
- Finalizes the file on SIGINT
"""

import asyncio
import json
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from ..errors import DeviceEnumerationError, RecorderReportedError
from ..logger import get_null_logger
from .base_recorder import RecorderBackend
from .constants import (
    PERMISSION_CHECK_TIMEOUT_SECONDS,
    QUERY_TIMEOUT_SECONDS,
    RECORDER_BINARY_NAME,
    RECORDER_STARTED_MESSAGE,
    RECORDER_STOPPED_MESSAGE,
    TEMP_MIC_SUFFIX,
    TEMP_SYSTEM_SUFFIX,
)
from .events import RecordingError, RecordingStarted, RecordingStopped
from .models import AudioDevice, DeviceSelection, SelectionMode, TempPaths
from .parsers import parse_native_devices, parse_recorder_message
from .process import run_command

PACKAGE_DIR = Path(__file__).resolve().parent.parent
PROJECT_ROOT = PACKAGE_DIR.parent


def get_recorder_candidates(argv0: Optional[str] = None, cwd: Optional[Path] = None) -> List[Path]:
    """
    List the places the recorder binary may live, in search order.

    Searches:
    1. Installed next to the package (debrief/bin/recorder)
    2. Relative to the entry point script (its dir, ../dist, ../native)
    3. Development tree (native/, dist/)
    4. Working directory (./native, ./dist)
    """
    argv0 = argv0 if argv0 is not None else (sys.argv[0] if sys.argv else '')
    cwd = cwd or Path.cwd()

    possible_paths = [PACKAGE_DIR / "bin" / RECORDER_BINARY_NAME]

    if argv0:
        entry_dir = Path(argv0).resolve().parent
        possible_paths.extend([
            entry_dir / RECORDER_BINARY_NAME,
            entry_dir.parent / "dist" / RECORDER_BINARY_NAME,
            entry_dir.parent / "native" / RECORDER_BINARY_NAME,
        ])

    possible_paths.extend([
        PROJECT_ROOT / "native" / RECORDER_BINARY_NAME,
        PROJECT_ROOT / "dist" / RECORDER_BINARY_NAME,
        cwd / "native" / RECORDER_BINARY_NAME,
        cwd / "dist" / RECORDER_BINARY_NAME,
    ])

    return possible_paths


def find_recorder_binary(
    candidates: Optional[List[Path]] = None,
    logger: Optional[logging.Logger] = None
) -> Path:
    """
    Find the recorder binary.

    Returns:
        The first existing candidate. If none exists, the first candidate
        is returned anyway so the eventual spawn error names a real path.
    """
    logger = logger or get_null_logger()
    candidates = candidates if candidates is not None else get_recorder_candidates()

    for path in candidates:
        if path.exists() and path.is_file():
            logger.debug("Found recorder at: %s", path)
            return path

    logger.warning(
        "Could not find recorder binary. Searched: %s",
        ', '.join(str(p) for p in candidates)
    )
    return candidates[0]


async def get_native_recorder_version(helper_path: Optional[Path] = None) -> Optional[str]:
    """Run `recorder version`; None if the helper is missing or fails."""
    path = helper_path or find_recorder_binary()
    try:
        result = await run_command([str(path), "version"], timeout=QUERY_TIMEOUT_SECONDS)
    except (OSError, asyncio.TimeoutError):
        return None

    if result.returncode != 0:
        return None
    return result.stdout.strip() or None


async def is_native_recorder_available(helper_path: Optional[Path] = None) -> bool:
    """Check if the helper runs (`version` exits 0)."""
    path = helper_path or find_recorder_binary()
    try:
        result = await run_command([str(path), "version"], timeout=QUERY_TIMEOUT_SECONDS)
    except (OSError, asyncio.TimeoutError):
        return False
    return result.returncode == 0


@dataclass(frozen=True)
class PermissionStatus:
    screen_recording: bool
    error_message: Optional[str] = None


async def check_screen_recording_permission(
    helper_path: Optional[Path] = None,
    timeout: float = PERMISSION_CHECK_TIMEOUT_SECONDS,
    logger: Optional[logging.Logger] = None
) -> PermissionStatus:
    """
    Ask the helper whether Screen Recording permission is granted.

    The first call may trigger the macOS permission prompt. A helper that
    stays silent past the timeout counts as a failed check.
    """
    logger = logger or get_null_logger()
    path = helper_path or find_recorder_binary(logger=logger)
    logger.debug("Checking screen recording permission using: %s", path)

    try:
        result = await run_command([str(path), "check-permissions"], timeout=timeout)
    except asyncio.TimeoutError:
        return PermissionStatus(False, f"Permission check timed out after {timeout:g}s")
    except OSError as e:
        return PermissionStatus(False, f"Could not run recorder at {path}: {e}")

    logger.debug("Permission check stdout: %s", result.stdout.strip())

    try:
        message = parse_recorder_message(result.stdout.strip())
    except ValueError:
        return PermissionStatus(False, "Failed to parse permission check result")

    return PermissionStatus(message.success, message.error)


async def list_native_devices(
    helper_path: Optional[Path] = None,
    logger: Optional[logging.Logger] = None
) -> List[AudioDevice]:
    """
    List audio devices through `recorder list-devices`.

    Raises:
        DeviceEnumerationError: If the helper is missing, fails or prints
            something other than a device array
    """
    logger = logger or get_null_logger()
    path = helper_path or find_recorder_binary(logger=logger)

    try:
        result = await run_command([str(path), "list-devices"], timeout=QUERY_TIMEOUT_SECONDS)
    except FileNotFoundError as e:
        raise DeviceEnumerationError(f"Recorder binary not found: {path}") from e
    except asyncio.TimeoutError as e:
        raise DeviceEnumerationError("Recorder timed out listing devices") from e
    except OSError as e:
        raise DeviceEnumerationError(f"Could not run recorder at {path}: {e}") from e

    if result.returncode != 0:
        raise DeviceEnumerationError(
            f"Failed to list devices (exit code {result.returncode}): {result.stderr.strip()}"
        )

    try:
        return parse_native_devices(result.stdout)
    except ValueError as e:
        raise DeviceEnumerationError(f"Failed to parse device list: {e}") from e


class NativeHelperBackend(RecorderBackend):
    """Drives the native helper's `record` subcommand."""

    name = 'native'

    def __init__(
        self,
        helper_path: Optional[Path] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the backend.

        Args:
            helper_path: Optional path to the recorder binary
            logger: Logger for protocol diagnostics
        """
        self.logger = logger or get_null_logger()
        self.helper_path = Path(helper_path) if helper_path else find_recorder_binary(logger=self.logger)

    def build_command(self, output_path: Path, selection: DeviceSelection) -> List[str]:
        if selection.mode is SelectionMode.BOTH:
            flag = "--both"
        elif selection.mode is SelectionMode.SYSTEM_ONLY:
            flag = "--system"
        else:
            flag = "--mic"
        return [str(self.helper_path), "record", str(output_path), flag]

    def temp_paths(self, output_path: Path, selection: DeviceSelection) -> TempPaths:
        if selection.mode is not SelectionMode.BOTH:
            return TempPaths()
        output_path = Path(output_path)
        return TempPaths(
            mic=output_path.with_name(f"{output_path.stem}{TEMP_MIC_SUFFIX}{output_path.suffix}"),
            system=output_path.with_name(f"{output_path.stem}{TEMP_SYSTEM_SUFFIX}{output_path.suffix}"),
        )

    def parse_stdout_line(self, line: str) -> Optional[object]:
        self.logger.debug("Recorder stdout: %s", line)
        try:
            msg = parse_recorder_message(line)
        except ValueError as e:
            self.logger.debug("Failed to parse recorder output: %s", e)
            return None

        output = Path(msg.output) if msg.output else None
        if msg.success and msg.message == RECORDER_STARTED_MESSAGE:
            return RecordingStarted(output)
        if msg.success and msg.message == RECORDER_STOPPED_MESSAGE:
            return RecordingStopped(output)
        if not msg.success and msg.error:
            return RecordingError(RecorderReportedError(msg.error))
        return None

    def parse_stderr_line(self, line: str) -> Optional[object]:
        self.logger.debug("Recorder stderr: %s", line)
        return None


def main():
    """Print the helper location and device list (for debugging discovery)."""
    path = find_recorder_binary()
    print(f"Recorder: {path}")
    try:
        devices = asyncio.run(list_native_devices(path))
    except DeviceEnumerationError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)
    print(json.dumps([d.to_dict() for d in devices], indent=2))


if __name__ == "__main__":
    main()
