"""
Per-OS recorder behavior.

One strategy object is chosen at startup and answers every platform
question the recorder asks: how to list devices, how to name an FFmpeg
input, which names mean "system audio", and how to signal the recorder.
"""

import signal
from dataclasses import replace
from typing import Callable, List, Optional

from ..platform_utils import get_platform
from .constants import (
    LINUX_MONITOR_SUFFIX,
    MACOS_SYSTEM_AUDIO_KEYWORDS,
    WINDOWS_SYSTEM_AUDIO_KEYWORDS,
)
from .models import AudioDevice, DeviceKind
from .parsers import parse_avfoundation_devices, parse_dshow_devices, parse_pactl_sources


def identify_system_audio(name: str, platform: str) -> dict:
    """
    Classify a device name as system audio using the platform keywords.

    Args:
        name: Device name as printed by the listing tool
        platform: 'macos', 'windows' or 'linux'

    Returns:
        dict with is_system_audio, is_black_hole, is_stereo_mix, is_monitor
    """
    lowered = name.lower()
    flags = {
        'is_system_audio': False,
        'is_black_hole': False,
        'is_stereo_mix': False,
        'is_monitor': False,
    }

    if platform == 'macos':
        flags['is_system_audio'] = any(k in lowered for k in MACOS_SYSTEM_AUDIO_KEYWORDS)
        flags['is_black_hole'] = 'blackhole' in lowered
    elif platform == 'windows':
        flags['is_system_audio'] = any(k in lowered for k in WINDOWS_SYSTEM_AUDIO_KEYWORDS)
        flags['is_stereo_mix'] = flags['is_system_audio']
    elif platform == 'linux':
        flags['is_system_audio'] = LINUX_MONITOR_SUFFIX in lowered
        flags['is_monitor'] = flags['is_system_audio']

    return flags


class PlatformStrategy:
    """Base strategy; subclasses fill in the OS-specific pieces."""

    name = 'unknown'
    ffmpeg_input_format: Optional[str] = None
    # FFmpeg's -list_devices always fails to open the dummy input
    check_list_exit_code = False
    list_output_stream = 'stderr'
    supports_pause = False

    def device_list_command(self, ffmpeg_path: str = 'ffmpeg') -> List[str]:
        raise NotImplementedError(f"Device listing is not supported on {self.name}")

    def parse_devices(self, output: str) -> List[AudioDevice]:
        raise NotImplementedError(f"Device listing is not supported on {self.name}")

    def input_spec(self, device: AudioDevice) -> str:
        raise NotImplementedError(f"FFmpeg capture is not supported on {self.name}")

    def input_args(self, device: AudioDevice) -> List[str]:
        return ['-f', self.ffmpeg_input_format, '-i', self.input_spec(device)]

    def classify(self, device: AudioDevice) -> AudioDevice:
        """Return the device tagged with this platform's system-audio flags."""
        if device.kind is DeviceKind.SYSTEM_AUDIO:
            return device

        flags = identify_system_audio(device.name, self.name)
        return replace(
            device,
            kind=DeviceKind.SYSTEM_AUDIO if flags['is_system_audio'] else DeviceKind.MICROPHONE,
            is_black_hole=flags['is_black_hole'],
            is_stereo_mix=flags['is_stereo_mix'],
            is_monitor=flags['is_monitor'],
        )

    async def interrupt(self, process) -> None:
        """Ask the recorder to finish writing and exit."""
        process.send_signal(signal.SIGINT)

    def suspend(self, process) -> None:
        process.send_signal(signal.SIGSTOP)

    def resume(self, process) -> None:
        process.send_signal(signal.SIGCONT)


class MacOSPlatform(PlatformStrategy):
    name = 'macos'
    ffmpeg_input_format = 'avfoundation'
    supports_pause = True

    def device_list_command(self, ffmpeg_path: str = 'ffmpeg') -> List[str]:
        return [ffmpeg_path, '-f', 'avfoundation', '-list_devices', 'true', '-i', '']

    def parse_devices(self, output: str) -> List[AudioDevice]:
        return parse_avfoundation_devices(output)

    def input_spec(self, device: AudioDevice) -> str:
        # ":N" selects audio device N with no video input
        return f":{device.index}"


class WindowsPlatform(PlatformStrategy):
    name = 'windows'
    ffmpeg_input_format = 'dshow'

    def device_list_command(self, ffmpeg_path: str = 'ffmpeg') -> List[str]:
        return [ffmpeg_path, '-list_devices', 'true', '-f', 'dshow', '-i', 'dummy']

    def parse_devices(self, output: str) -> List[AudioDevice]:
        return parse_dshow_devices(output)

    def input_spec(self, device: AudioDevice) -> str:
        return f"audio={device.name}"

    async def interrupt(self, process) -> None:
        # No SIGINT for console-less children; FFmpeg quits cleanly on "q"
        stdin = process.stdin
        if stdin is None:
            process.terminate()
            return
        try:
            stdin.write(b'q')
            await stdin.drain()
        except (BrokenPipeError, ConnectionResetError):
            process.terminate()

    def suspend(self, process) -> None:
        raise NotImplementedError("Suspending a process is not supported on Windows")

    def resume(self, process) -> None:
        raise NotImplementedError("Resuming a process is not supported on Windows")


class LinuxPlatform(PlatformStrategy):
    name = 'linux'
    ffmpeg_input_format = 'pulse'
    check_list_exit_code = True
    list_output_stream = 'stdout'
    supports_pause = True

    def device_list_command(self, ffmpeg_path: str = 'ffmpeg') -> List[str]:
        return ['pactl', 'list', 'sources', 'short']

    def parse_devices(self, output: str) -> List[AudioDevice]:
        return parse_pactl_sources(output)

    def input_spec(self, device: AudioDevice) -> str:
        return device.name


_STRATEGIES = {
    'macos': MacOSPlatform,
    'windows': WindowsPlatform,
    'linux': LinuxPlatform,
}


def get_platform_strategy(system: Optional[str] = None) -> PlatformStrategy:
    """
    Pick the strategy for the running OS.

    Args:
        system: Override for platform.system() ('Darwin', 'Windows', 'Linux')

    Returns:
        PlatformStrategy instance (a bare base strategy on unknown systems)
    """
    factory: Callable[[], PlatformStrategy] = _STRATEGIES.get(get_platform(system), PlatformStrategy)
    return factory()
