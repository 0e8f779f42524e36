"""
Recordings directory helpers.

Names new recordings, lists existing ones (newest first) together with
their transcript and summary files, and formats durations and sizes for
display.
"""

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from .audio.constants import DEFAULT_OUTPUT_FORMAT

TIMESTAMP_FORMAT = '%Y-%m-%dT%H-%M-%S'
TRANSCRIPT_SUFFIX = '.txt'
SUMMARY_SUFFIX = '_summary.txt'


@dataclass(frozen=True)
class RecordingInfo:
    path: Path
    name: str
    modified: datetime
    size_bytes: int
    transcript_path: Optional[Path] = None
    summary_path: Optional[Path] = None

    @property
    def has_transcript(self) -> bool:
        return self.transcript_path is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": str(self.path),
            "name": self.name,
            "date": self.modified.isoformat(),
            "size": format_file_size(self.size_bytes),
            "sizeBytes": self.size_bytes,
            "transcriptPath": str(self.transcript_path) if self.transcript_path else None,
            "summaryPath": str(self.summary_path) if self.summary_path else None,
        }


def ensure_recordings_dir(directory: Path) -> Path:
    directory = Path(directory).expanduser()
    directory.mkdir(parents=True, exist_ok=True)
    return directory


def generate_output_path(
    directory: Path,
    file_name_format: str = 'recording_{timestamp}',
    extension: str = DEFAULT_OUTPUT_FORMAT,
    now: Optional[datetime] = None
) -> Path:
    """
    Build the path for a new recording.

    Args:
        directory: Recordings directory
        file_name_format: Name template; '{timestamp}' becomes YYYY-MM-DDTHH-MM-SS
        extension: File extension without the dot
        now: Timestamp to use (default: current local time)

    Returns:
        Path inside directory
    """
    now = now or datetime.now()
    name = file_name_format.replace('{timestamp}', now.strftime(TIMESTAMP_FORMAT))
    return Path(directory).expanduser() / f"{name}.{extension.lstrip('.')}"


def scan_recordings(directory: Path, extension: str = DEFAULT_OUTPUT_FORMAT) -> List[RecordingInfo]:
    """
    List recordings in a directory, newest first.

    A missing directory yields an empty list.
    """
    directory = Path(directory).expanduser()
    if not directory.is_dir():
        return []

    recordings = []
    for path in directory.glob(f"*.{extension.lstrip('.')}"):
        if not path.is_file():
            continue
        stat = path.stat()
        transcript_path = path.with_suffix(TRANSCRIPT_SUFFIX)
        summary_path = path.with_name(f"{path.stem}{SUMMARY_SUFFIX}")
        recordings.append(RecordingInfo(
            path=path,
            name=path.name,
            modified=datetime.fromtimestamp(stat.st_mtime),
            size_bytes=stat.st_size,
            transcript_path=transcript_path if transcript_path.exists() else None,
            summary_path=summary_path if summary_path.exists() else None,
        ))

    # Sort by date, newest first
    recordings.sort(key=lambda r: r.modified, reverse=True)
    return recordings


def format_duration(seconds: float) -> str:
    """Format seconds as MM:SS, or HH:MM:SS from one hour up."""
    total_seconds = max(0, int(seconds))
    hours = total_seconds // 3600
    minutes = (total_seconds % 3600) // 60
    secs = total_seconds % 60

    if hours > 0:
        return f"{hours:02d}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"


def format_file_size(size_bytes: int) -> str:
    if size_bytes < 1024:
        return f"{size_bytes} B"
    if size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    if size_bytes < 1024 * 1024 * 1024:
        return f"{size_bytes / (1024 * 1024):.1f} MB"
    return f"{size_bytes / (1024 * 1024 * 1024):.2f} GB"
