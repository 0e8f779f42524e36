"""
Dual-track merge using ffmpeg.

Mixes the separate microphone and system recordings into one file, with a
fallback to keeping both tracks side by side.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

from ..errors import MergeFailure
from ..logger import get_null_logger
from .constants import MERGE_BITRATE, MERGE_CODEC, MERGE_FILTER, SEPARATE_MIC_SUFFIX, SEPARATE_SYSTEM_SUFFIX
from .process import run_command


@dataclass(frozen=True)
class MergeResult:
    output_path: Path
    merged: bool
    separate_files: Tuple[Path, ...] = ()
    error: Optional[MergeFailure] = None


def build_merge_command(mic_path: Path, system_path: Path, output_path: Path, ffmpeg_path: str = 'ffmpeg'):
    return [
        ffmpeg_path,
        '-y',  # Overwrite output
        '-i', str(mic_path),
        '-i', str(system_path),
        '-filter_complex', MERGE_FILTER,
        '-map', '[a]',
        '-c:a', MERGE_CODEC,
        '-b:a', MERGE_BITRATE,
        str(output_path),
    ]


def separate_file_paths(output_path: Path) -> Tuple[Path, Path]:
    """Fallback names beside the requested output: <stem>_mic<ext>, <stem>_system<ext>."""
    output_path = Path(output_path)
    return (
        output_path.with_name(f"{output_path.stem}{SEPARATE_MIC_SUFFIX}{output_path.suffix}"),
        output_path.with_name(f"{output_path.stem}{SEPARATE_SYSTEM_SUFFIX}{output_path.suffix}"),
    )


async def merge_audio_files(
    mic_path: Path,
    system_path: Path,
    output_path: Path,
    ffmpeg_path: str = 'ffmpeg',
    logger: Optional[logging.Logger] = None
) -> MergeResult:
    """
    Mix two recordings into output_path.

    On success both inputs are deleted. If ffmpeg is missing or fails, the
    inputs are renamed to the separate-file names instead and the requested
    output is not created.

    Args:
        mic_path: Microphone recording
        system_path: System audio recording
        output_path: Mixed output path
        ffmpeg_path: ffmpeg executable

    Returns:
        MergeResult describing which files now exist
    """
    logger = logger or get_null_logger()
    mic_path, system_path, output_path = Path(mic_path), Path(system_path), Path(output_path)
    cmd = build_merge_command(mic_path, system_path, output_path, ffmpeg_path)

    logger.info("Merging %s and %s into %s", mic_path.name, system_path.name, output_path.name)

    try:
        result = await run_command(cmd)
    except FileNotFoundError:
        logger.warning("ffmpeg not found in PATH, keeping separate files")
        error = MergeFailure(f"ffmpeg not found: {ffmpeg_path}")
    except OSError as e:
        logger.warning("Could not run ffmpeg: %s", e)
        error = MergeFailure(f"Could not run ffmpeg: {e}")
    else:
        if result.returncode == 0:
            for path in (mic_path, system_path):
                try:
                    path.unlink(missing_ok=True)
                except OSError as e:
                    logger.warning("Could not remove %s: %s", path.name, e)
            return MergeResult(output_path=output_path, merged=True)

        logger.warning("ffmpeg merge failed (exit code %d): %s", result.returncode, result.stderr.strip())
        error = MergeFailure(f"ffmpeg merge failed with exit code {result.returncode}")

    separate_files, problems = _keep_separate(mic_path, system_path, output_path, logger)
    if problems:
        error = MergeFailure(f"{error}; {'; '.join(problems)}")

    return MergeResult(
        output_path=output_path,
        merged=False,
        separate_files=separate_files,
        error=error,
    )


def _keep_separate(
    mic_path: Path,
    system_path: Path,
    output_path: Path,
    logger: logging.Logger
) -> Tuple[Tuple[Path, ...], List[str]]:
    """
    Rename the inputs to their separate-file names.

    An input that cannot be renamed stays where it is and is still reported
    as kept; the reason is returned alongside.

    Returns:
        Tuple of (paths now holding the audio, problem descriptions)
    """
    kept = []
    problems = []
    for source, target in zip((mic_path, system_path), separate_file_paths(output_path)):
        if not source.exists():
            continue
        try:
            source.replace(target)
        except OSError as e:
            logger.warning("Could not rename %s to %s: %s", source.name, target.name, e)
            problems.append(f"kept {source} (rename to {target.name} failed: {e})")
            kept.append(source)
            continue
        logger.info("Kept %s as %s", source.name, target.name)
        kept.append(target)

    # A failed ffmpeg run may leave a partial file behind
    try:
        output_path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning("Could not remove partial output %s: %s", output_path, e)
        problems.append(f"partial output left at {output_path}: {e}")

    return tuple(kept), problems
