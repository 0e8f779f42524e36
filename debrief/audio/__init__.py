"""
Audio recording with platform-specific recorder backends.
"""

import logging
from pathlib import Path
from typing import Optional

from .base_recorder import RecorderBackend
from .constants import DEFAULT_BITRATE, DEFAULT_OUTPUT_FORMAT
from .ffmpeg_backend import FFmpegBackend
from .native_helper import NativeHelperBackend, find_recorder_binary
from .platforms import PlatformStrategy, get_platform_strategy
from .session import RecordingController

BACKENDS = ('auto', 'native', 'ffmpeg')


def get_recorder_backend(
    backend: str = 'auto',
    helper_path: Optional[Path] = None,
    output_format: str = DEFAULT_OUTPUT_FORMAT,
    mix_audio: bool = True,
    bitrate: str = DEFAULT_BITRATE,
    strategy: Optional[PlatformStrategy] = None,
    ffmpeg_path: str = 'ffmpeg',
    logger: Optional[logging.Logger] = None
) -> RecorderBackend:
    """
    Factory function to get the recorder backend.

    'auto' picks the native helper on macOS when its binary is present and
    FFmpeg everywhere else.

    Returns:
        RecorderBackend: Native helper or FFmpeg backend
    """
    if backend not in BACKENDS:
        raise ValueError(f"Unknown recorder backend: {backend}. Supported: {', '.join(BACKENDS)}")

    strategy = strategy or get_platform_strategy()

    if backend == 'auto':
        if strategy.name == 'macos':
            path = Path(helper_path) if helper_path else find_recorder_binary(logger=logger)
            if path.is_file():
                return NativeHelperBackend(path, logger=logger)
        backend = 'ffmpeg'

    if backend == 'native':
        return NativeHelperBackend(helper_path, logger=logger)

    return FFmpegBackend(
        strategy=strategy,
        output_format=output_format,
        mix_audio=mix_audio,
        bitrate=bitrate,
        ffmpeg_path=ffmpeg_path,
        logger=logger,
    )


__all__ = ['get_recorder_backend', 'RecorderBackend', 'RecordingController', 'BACKENDS']
