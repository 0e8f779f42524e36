"""
Abstract base class for recorder backends.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional

from .models import DeviceSelection, TempPaths


class RecorderBackend(ABC):
    """
    Describes one external recorder: how to invoke it and how to read it.

    A backend is stateless with respect to a running process; the session
    controller owns the process and feeds lines back through the
    parse_* hooks.
    """

    name = 'base'

    @property
    def supports_pause(self) -> bool:
        """True if the recorder tolerates being suspended with SIGSTOP."""
        return False

    @abstractmethod
    def build_command(self, output_path: Path, selection: DeviceSelection) -> List[str]:
        """
        Build the recorder's argv.

        Args:
            output_path: Final recording path
            selection: Sources to capture (never SelectionMode.NONE)

        Returns:
            list: Command and arguments
        """
        pass

    @abstractmethod
    def parse_stdout_line(self, line: str) -> Optional[object]:
        """
        Interpret one stdout line.

        Returns:
            An event to emit, or None if the line carries nothing
        """
        pass

    @abstractmethod
    def parse_stderr_line(self, line: str) -> Optional[object]:
        """
        Interpret one stderr line.

        Returns:
            An event to emit, or None if the line carries nothing
        """
        pass

    def temp_paths(self, output_path: Path, selection: DeviceSelection) -> TempPaths:
        """Per-source files the recorder writes before they are merged."""
        return TempPaths()
