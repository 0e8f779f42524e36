"""
Text and JSON parsers for recorder tool output.

Everything that scrapes third-party diagnostic text lives here so that a new
FFmpeg or PulseAudio output format only touches this module. Parsers never
raise on unrecognized text; they return nothing for it.
"""

import json
import re
from typing import List, Optional

from .models import AudioDevice, DeviceKind, ProgressSample, RecorderMessage
from .constants import SYSTEM_AUDIO_DEVICE_TYPE

AVFOUNDATION_AUDIO_HEADER = 'AVFoundation audio devices:'
AVFOUNDATION_VIDEO_HEADER = 'AVFoundation video devices:'
DSHOW_AUDIO_HEADER = 'DirectShow audio devices'
DSHOW_VIDEO_HEADER = 'DirectShow video devices'

_BRACKET_INDEX_RE = re.compile(r'\[(\d+)\]\s+(.+)$')
_QUOTED_NAME_RE = re.compile(r'"([^"]+)"')
_SIZE_RE = re.compile(r'size=\s*(\d+)')
_TIME_RE = re.compile(r'time=(\d+):(\d+):(\d+)')


def parse_avfoundation_devices(output: str) -> List[AudioDevice]:
    """
    Parse `ffmpeg -f avfoundation -list_devices true -i ""` output.

    Lines look like:
        [AVFoundation indev @ 0x7f8] [0] MacBook Pro Microphone

    Args:
        output: FFmpeg's stderr text

    Returns:
        Audio devices in emission order (empty if the section is missing)
    """
    devices = []
    in_audio_section = False

    for line in output.splitlines():
        if AVFOUNDATION_AUDIO_HEADER in line:
            in_audio_section = True
            continue
        if AVFOUNDATION_VIDEO_HEADER in line:
            in_audio_section = False
            continue

        if in_audio_section:
            match = _BRACKET_INDEX_RE.search(line)
            if match:
                devices.append(AudioDevice(index=match.group(1), name=match.group(2).strip()))

    return devices


def parse_dshow_devices(output: str) -> List[AudioDevice]:
    """
    Parse `ffmpeg -list_devices true -f dshow -i dummy` output.

    DirectShow does not print indices, so they are assigned in the order
    the names appear. "Alternative name" lines repeat a device and are skipped.
    """
    devices = []
    in_audio_section = False
    index = 0

    for line in output.splitlines():
        if DSHOW_AUDIO_HEADER in line:
            in_audio_section = True
            continue
        if DSHOW_VIDEO_HEADER in line:
            in_audio_section = False
            continue

        if in_audio_section and 'Alternative name' not in line:
            match = _QUOTED_NAME_RE.search(line)
            if match:
                devices.append(AudioDevice(index=str(index), name=match.group(1)))
                index += 1

    return devices


def parse_pactl_sources(output: str) -> List[AudioDevice]:
    """Parse `pactl list sources short` (index, name, module, spec, state)."""
    devices = []

    for line in output.splitlines():
        parts = line.split()
        if len(parts) < 2 or not parts[0].isdigit():
            continue
        devices.append(AudioDevice(index=parts[0], name=parts[1]))

    return devices


def parse_native_devices(output: str) -> List[AudioDevice]:
    """
    Parse the native helper's `list-devices` JSON array.

    Entries typed "system" are the helper's own system-audio sentinel and are
    tagged directly, without the name heuristic.

    Raises:
        ValueError: If the output is not a JSON array of objects
    """
    data = json.loads(output)
    if not isinstance(data, list):
        raise ValueError("Device list is not a JSON array")

    devices = []
    for entry in data:
        if not isinstance(entry, dict) or 'name' not in entry:
            raise ValueError(f"Malformed device entry: {entry!r}")
        kind = DeviceKind.SYSTEM_AUDIO if entry.get('type') == SYSTEM_AUDIO_DEVICE_TYPE else DeviceKind.MICROPHONE
        devices.append(AudioDevice(
            index=str(entry.get('index', len(devices))),
            name=str(entry['name']),
            kind=kind,
            device_id=entry.get('id'),
        ))

    return devices


def parse_recorder_message(line: str) -> RecorderMessage:
    """
    Parse one JSON status line from the native helper.

    Raises:
        ValueError: If the line is not a JSON object with a boolean "success"
    """
    payload = json.loads(line)
    if not isinstance(payload, dict) or not isinstance(payload.get('success'), bool):
        raise ValueError(f"Not a recorder message: {line!r}")

    data = payload.get('data')
    return RecorderMessage(
        success=payload['success'],
        message=payload.get('message'),
        error=payload.get('error'),
        data=data if isinstance(data, dict) else {},
    )


def parse_progress(text: str) -> Optional[ProgressSample]:
    """
    Extract progress from an FFmpeg status line.

    Example: size=    1234kB time=00:01:23.45 bitrate= 123.4kbits/s

    Returns:
        ProgressSample if a size or time token is present, else None.
        A missing token contributes 0.
    """
    size_match = _SIZE_RE.search(text)
    time_match = _TIME_RE.search(text)

    if not size_match and not time_match:
        return None

    elapsed = 0
    if time_match:
        hours, minutes, seconds = (int(g) for g in time_match.groups())
        elapsed = hours * 3600 + minutes * 60 + seconds

    size = int(size_match.group(1)) * 1024 if size_match else 0
    return ProgressSample(elapsed_seconds=elapsed, size_bytes=size)
