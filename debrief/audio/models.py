"""
Value types shared by the device catalog, the recorder backends and the
session controller.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Tuple


class DeviceKind(Enum):
    MICROPHONE = "microphone"
    SYSTEM_AUDIO = "system"


@dataclass(frozen=True)
class AudioDevice:
    """One enumerable audio input, as reported by the platform tool."""

    index: str
    name: str
    kind: DeviceKind = DeviceKind.MICROPHONE
    device_id: Optional[str] = None
    is_black_hole: bool = False
    is_stereo_mix: bool = False
    is_monitor: bool = False

    @property
    def is_system_audio(self) -> bool:
        return self.kind is DeviceKind.SYSTEM_AUDIO

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "name": self.name,
            "kind": self.kind.value,
            "id": self.device_id,
            "is_system_audio": self.is_system_audio,
        }


class SelectionMode(Enum):
    MIC_ONLY = "mic"
    SYSTEM_ONLY = "system"
    BOTH = "both"
    NONE = "none"


@dataclass(frozen=True)
class DeviceSelection:
    """The sources a recording will capture."""

    microphone: Optional[AudioDevice] = None
    system_audio: Optional[AudioDevice] = None
    mode: SelectionMode = SelectionMode.NONE

    def __post_init__(self):
        if self.mode is SelectionMode.BOTH and not (self.microphone and self.system_audio):
            raise ValueError("Recording both sources requires a microphone and a system audio device")
        if self.mode is SelectionMode.MIC_ONLY and self.microphone is None:
            raise ValueError("Microphone mode requires a microphone")
        if self.mode is SelectionMode.SYSTEM_ONLY and self.system_audio is None:
            raise ValueError("System audio mode requires a system audio device")

    @property
    def is_valid(self) -> bool:
        return self.mode is not SelectionMode.NONE

    @property
    def records_microphone(self) -> bool:
        return self.mode in (SelectionMode.MIC_ONLY, SelectionMode.BOTH)

    @property
    def records_system_audio(self) -> bool:
        return self.mode in (SelectionMode.SYSTEM_ONLY, SelectionMode.BOTH)

    @property
    def active_devices(self) -> Tuple[AudioDevice, ...]:
        devices = []
        if self.records_microphone:
            devices.append(self.microphone)
        if self.records_system_audio:
            devices.append(self.system_audio)
        return tuple(devices)


@dataclass(frozen=True)
class RecorderMessage:
    """One JSON line printed by the native helper on stdout."""

    success: bool
    message: Optional[str] = None
    error: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)

    @property
    def output(self) -> Optional[str]:
        return self.data.get("output")


@dataclass(frozen=True)
class ProgressSample:
    """Elapsed time and written bytes scraped from FFmpeg's status line."""

    elapsed_seconds: int
    size_bytes: int


@dataclass(frozen=True)
class TempPaths:
    mic: Optional[Path] = None
    system: Optional[Path] = None

    @property
    def is_dual(self) -> bool:
        return self.mic is not None and self.system is not None


@dataclass(frozen=True)
class RecordingOutcome:
    """What a finished recording left on disk."""

    output_path: Path
    output_exists: bool
    duration: float
    forced_kill: bool = False
    merged: bool = False
    separate_files: Tuple[Path, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "audioPath": str(self.output_path),
            "exists": self.output_exists,
            "duration": round(self.duration, 3),
            "forcedKill": self.forced_kill,
            "merged": self.merged,
            "separateFiles": [str(p) for p in self.separate_files],
        }
