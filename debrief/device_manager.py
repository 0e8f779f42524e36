"""
Audio Device Manager - Enumerates audio input devices and picks the ones to record.

Sources:
- Native helper: `recorder list-devices` (macOS, ScreenCaptureKit system audio)
- FFmpeg: avfoundation (macOS) or dshow (Windows) device listing
- PulseAudio: `pactl list sources short` (Linux)
"""

import asyncio
import json
import logging
import sys
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from .audio.constants import MICROPHONE_NAME_HINTS, QUERY_TIMEOUT_SECONDS
from .audio.models import AudioDevice, DeviceKind, DeviceSelection, SelectionMode
from .audio.native_helper import list_native_devices
from .audio.platforms import PlatformStrategy, get_platform_strategy, identify_system_audio
from .audio.process import run_command
from .errors import DeviceEnumerationError
from .logger import get_null_logger

__all__ = [
    'AudioDevice',
    'DeviceKind',
    'DeviceSelection',
    'SelectionMode',
    'DeviceCatalog',
    'NativeDeviceCatalog',
    'FFmpegDeviceCatalog',
    'DeviceManager',
    'identify_system_audio',
    'find_microphone_device',
    'find_system_audio_device',
    'select_devices',
    'with_microphone',
    'with_mode',
    'selection_preferences',
]


class DeviceCatalog(ABC):
    """Source of the devices a recorder backend can capture."""

    @abstractmethod
    async def list_devices(self) -> List[AudioDevice]:
        """
        Enumerate audio inputs in the tool's order.

        Raises:
            DeviceEnumerationError: If the listing tool is missing or fails
        """
        pass


class NativeDeviceCatalog(DeviceCatalog):
    """Devices as reported by the native helper."""

    def __init__(self, helper_path: Optional[Path] = None, logger: Optional[logging.Logger] = None):
        self.helper_path = helper_path
        self.logger = logger or get_null_logger()

    async def list_devices(self) -> List[AudioDevice]:
        return await list_native_devices(self.helper_path, logger=self.logger)


class FFmpegDeviceCatalog(DeviceCatalog):
    """Devices scraped from FFmpeg's (or PulseAudio's) listing output."""

    def __init__(
        self,
        strategy: Optional[PlatformStrategy] = None,
        ffmpeg_path: str = 'ffmpeg',
        logger: Optional[logging.Logger] = None
    ):
        self.strategy = strategy or get_platform_strategy()
        self.ffmpeg_path = ffmpeg_path
        self.logger = logger or get_null_logger()

    async def list_devices(self) -> List[AudioDevice]:
        try:
            cmd = self.strategy.device_list_command(self.ffmpeg_path)
        except NotImplementedError as e:
            raise DeviceEnumerationError(str(e)) from e

        try:
            result = await run_command(cmd, timeout=QUERY_TIMEOUT_SECONDS)
        except FileNotFoundError as e:
            raise DeviceEnumerationError(f"{cmd[0]} not found in PATH") from e
        except asyncio.TimeoutError as e:
            raise DeviceEnumerationError(f"{cmd[0]} timed out listing devices") from e
        except OSError as e:
            raise DeviceEnumerationError(f"Could not run {cmd[0]}: {e}") from e

        if self.strategy.check_list_exit_code and result.returncode != 0:
            raise DeviceEnumerationError(
                f"{cmd[0]} failed to list devices (exit code {result.returncode}): {result.stderr.strip()}"
            )

        output = result.stdout if self.strategy.list_output_stream == 'stdout' else result.stderr
        devices = [self.strategy.classify(d) for d in self.strategy.parse_devices(output)]
        self.logger.debug("Found %d audio devices", len(devices))
        return devices


class DeviceManager:
    """Manages audio device enumeration for the active recorder backend."""

    def __init__(self, catalog: Optional[DeviceCatalog] = None, logger: Optional[logging.Logger] = None):
        self.logger = logger or get_null_logger()
        self.catalog = catalog or FFmpegDeviceCatalog(logger=self.logger)

    @classmethod
    def for_backend(
        cls,
        backend_name: str,
        helper_path: Optional[Path] = None,
        strategy: Optional[PlatformStrategy] = None,
        ffmpeg_path: str = 'ffmpeg',
        logger: Optional[logging.Logger] = None
    ) -> 'DeviceManager':
        """Build a manager whose catalog matches a recorder backend name."""
        if backend_name == 'native':
            return cls(NativeDeviceCatalog(helper_path, logger=logger), logger=logger)
        return cls(FFmpegDeviceCatalog(strategy, ffmpeg_path, logger=logger), logger=logger)

    async def list_devices(self) -> List[AudioDevice]:
        """
        Enumerate devices, degrading any listing failure to an empty list.

        Returns:
            list: Devices in the tool's order (empty on failure)
        """
        try:
            return await self.catalog.list_devices()
        except DeviceEnumerationError as e:
            self.logger.warning("Could not list audio devices: %s", e)
            return []

    async def list_all_devices(self) -> Dict[str, List[Dict[str, Any]]]:
        """
        Enumerate devices and categorize them.

        Returns:
            Dictionary with 'microphones' and 'system_audio' device lists
        """
        devices = await self.list_devices()
        return {
            "microphones": [d.to_dict() for d in devices if not d.is_system_audio],
            "system_audio": [d.to_dict() for d in devices if d.is_system_audio],
        }


def find_microphone_device(devices: List[AudioDevice]) -> Optional[AudioDevice]:
    """
    Pick a default microphone.

    Prefers the first non-system device whose name mentions a microphone,
    then the first non-system device.
    """
    microphones = [d for d in devices if not d.is_system_audio]
    for device in microphones:
        lowered = device.name.lower()
        if any(hint in lowered for hint in MICROPHONE_NAME_HINTS):
            return device
    return microphones[0] if microphones else None


def find_system_audio_device(devices: List[AudioDevice]) -> Optional[AudioDevice]:
    for device in devices:
        if device.is_system_audio:
            return device
    return None


def _find_saved_microphone(devices: List[AudioDevice], mic_id: Optional[str], mic_name: Optional[str]) -> Optional[AudioDevice]:
    microphones = [d for d in devices if not d.is_system_audio]
    if mic_id:
        for device in microphones:
            if device.device_id == mic_id:
                return device
    if mic_name:
        for device in microphones:
            if device.name == mic_name:
                return device
    return None


def select_devices(devices: List[AudioDevice], preferences: Optional[Mapping[str, Any]] = None) -> DeviceSelection:
    """
    Choose what to record from the enumerated devices and saved preferences.

    Args:
        devices: Enumerated devices
        preferences: Mapping with optional 'selected_mic_id',
            'selected_mic_name' and 'recording_mode' ('mic', 'system', 'both')

    Returns:
        DeviceSelection (SelectionMode.NONE when nothing is recordable)
    """
    preferences = preferences or {}
    microphone = (
        _find_saved_microphone(devices, preferences.get('selected_mic_id'), preferences.get('selected_mic_name'))
        or find_microphone_device(devices)
    )
    system_audio = find_system_audio_device(devices)
    mode = preferences.get('recording_mode') or SelectionMode.MIC_ONLY.value

    if mode == SelectionMode.BOTH.value and microphone and system_audio:
        return DeviceSelection(microphone, system_audio, SelectionMode.BOTH)
    if mode == SelectionMode.SYSTEM_ONLY.value and system_audio:
        return DeviceSelection(None, system_audio, SelectionMode.SYSTEM_ONLY)
    if microphone:
        return DeviceSelection(microphone, system_audio, SelectionMode.MIC_ONLY)
    if system_audio:
        return DeviceSelection(None, system_audio, SelectionMode.SYSTEM_ONLY)
    return DeviceSelection()


def with_microphone(selection: DeviceSelection, device: AudioDevice) -> DeviceSelection:
    """
    Switch the recorded microphone.

    A system-only selection becomes microphone-only; both stays both.

    Raises:
        ValueError: If the device is a system audio device
    """
    if device.is_system_audio:
        raise ValueError(f"{device.name} is a system audio device, not a microphone")
    mode = SelectionMode.BOTH if selection.mode is SelectionMode.BOTH else SelectionMode.MIC_ONLY
    return DeviceSelection(device, selection.system_audio, mode)


def with_mode(
    selection: DeviceSelection,
    mode: SelectionMode,
    devices: Optional[List[AudioDevice]] = None
) -> DeviceSelection:
    """
    Switch the recording mode, filling a missing device from devices.

    Raises:
        ValueError: If the mode needs a device that is not available
    """
    devices = devices or []
    microphone = selection.microphone or find_microphone_device(devices)
    system_audio = selection.system_audio or find_system_audio_device(devices)

    # The microphone is kept in system-only mode so switching back restores it
    return DeviceSelection(microphone, system_audio, mode)


def selection_preferences(selection: DeviceSelection) -> Dict[str, Any]:
    """Preferences that reproduce selection on the next select_devices()."""
    microphone = selection.microphone
    mode = selection.mode if selection.is_valid else SelectionMode.MIC_ONLY
    return {
        'selected_mic_id': microphone.device_id if microphone else None,
        'selected_mic_name': microphone.name if microphone else None,
        'recording_mode': mode.value,
    }


def main():
    """
    Command-line interface for testing device enumeration.
    Outputs JSON to stdout.
    """
    manager = DeviceManager(logger=logging.getLogger('debrief'))
    devices = asyncio.run(manager.list_all_devices())
    print(json.dumps(devices, indent=2))
    if not devices["microphones"] and not devices["system_audio"]:
        print("No audio devices found", file=sys.stderr)


if __name__ == "__main__":
    main()
