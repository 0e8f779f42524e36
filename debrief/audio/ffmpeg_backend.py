"""
FFmpeg recorder backend.

Captures one or two platform input devices with a single FFmpeg process,
optionally mixing them live, and reports progress from FFmpeg's status line.
"""

import asyncio
import logging
from pathlib import Path
from typing import List, Optional

from ..logger import get_null_logger
from .base_recorder import RecorderBackend
from .constants import (
    CODEC_TABLE,
    DEFAULT_BITRATE,
    DEFAULT_OUTPUT_FORMAT,
    LIVE_MIX_FILTER,
    OUTPUT_CHANNELS,
    OUTPUT_SAMPLE_RATE,
    QUERY_TIMEOUT_SECONDS,
)
from .events import ProgressUpdated
from .models import DeviceSelection
from .parsers import parse_progress
from .platforms import PlatformStrategy, get_platform_strategy
from .process import run_command


def codec_args(output_format: str, bitrate: str = DEFAULT_BITRATE) -> List[str]:
    """
    Encoder arguments for an output container.

    Args:
        output_format: 'm4a', 'mp3', 'wav' or 'mkv'
        bitrate: Target bitrate for lossy codecs (e.g., '192k')

    Returns:
        list: FFmpeg output options (empty for mkv, which uses FFmpeg defaults)
    """
    if output_format not in CODEC_TABLE:
        raise ValueError(
            f"Unsupported output format: {output_format}. "
            f"Supported: {', '.join(CODEC_TABLE)}"
        )

    codec, uses_bitrate = CODEC_TABLE[output_format]
    if codec is None:
        return []

    args = ['-c:a', codec]
    if uses_bitrate:
        args.extend(['-b:a', bitrate or DEFAULT_BITRATE])
    args.extend(['-ar', str(OUTPUT_SAMPLE_RATE), '-ac', str(OUTPUT_CHANNELS)])
    return args


async def is_ffmpeg_available(ffmpeg_path: str = 'ffmpeg') -> bool:
    """Check if `ffmpeg -version` runs."""
    try:
        result = await run_command([ffmpeg_path, '-version'], timeout=QUERY_TIMEOUT_SECONDS)
    except (OSError, asyncio.TimeoutError):
        return False
    return result.returncode == 0


class FFmpegBackend(RecorderBackend):
    """Records the selected devices with FFmpeg."""

    name = 'ffmpeg'

    def __init__(
        self,
        strategy: Optional[PlatformStrategy] = None,
        output_format: str = DEFAULT_OUTPUT_FORMAT,
        mix_audio: bool = True,
        bitrate: str = DEFAULT_BITRATE,
        ffmpeg_path: str = 'ffmpeg',
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the backend.

        Args:
            strategy: Platform strategy (detected if None)
            output_format: Container/codec target, one of CODEC_TABLE
            mix_audio: Mix two sources into one track instead of keeping two
            bitrate: Bitrate for m4a/mp3
            ffmpeg_path: FFmpeg executable
            logger: Logger for FFmpeg diagnostics
        """
        if output_format not in CODEC_TABLE:
            raise ValueError(f"Unsupported output format: {output_format}")

        self.strategy = strategy or get_platform_strategy()
        self.output_format = output_format
        self.mix_audio = mix_audio
        self.bitrate = bitrate
        self.ffmpeg_path = ffmpeg_path
        self.logger = logger or get_null_logger()

    @property
    def supports_pause(self) -> bool:
        return self.strategy.supports_pause

    def build_command(self, output_path: Path, selection: DeviceSelection) -> List[str]:
        devices = selection.active_devices
        if not devices:
            raise ValueError("No audio source selected")

        args = [self.ffmpeg_path, '-y']
        for device in devices:
            args.extend(self.strategy.input_args(device))

        if len(devices) == 2:
            if self.mix_audio:
                args.extend(['-filter_complex', LIVE_MIX_FILTER, '-map', '[a]'])
            else:
                # Keep as separate tracks
                args.extend(['-map', '0:a', '-map', '1:a'])

        args.extend(codec_args(self.output_format, self.bitrate))
        args.append(str(output_path))
        return args

    def parse_stdout_line(self, line: str) -> Optional[object]:
        self.logger.debug("FFmpeg stdout: %s", line)
        return None

    def parse_stderr_line(self, line: str) -> Optional[object]:
        progress = parse_progress(line)
        if progress is not None:
            return ProgressUpdated(progress)
        self.logger.debug("FFmpeg: %s", line)
        return None
