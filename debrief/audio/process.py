"""
Async wrapper around a recorder subprocess.

Owns spawning, line reading over stdout/stderr, and lifecycle signals. It
knows nothing about what the lines mean; backends parse them.
"""

import asyncio
import logging
import re
import sys
from dataclasses import dataclass
from typing import AsyncIterator, List, Optional, Sequence

from ..errors import StartFailure
from ..logger import get_null_logger
from .constants import READ_CHUNK_BYTES
from .platforms import PlatformStrategy, get_platform_strategy

_LINE_SPLIT_RE = re.compile(rb'[\r\n]')


async def iter_lines(stream: Optional[asyncio.StreamReader], logger: Optional[logging.Logger] = None) -> AsyncIterator[str]:
    """
    Yield decoded, stripped, non-empty lines from a stream.

    Splits on both '\\n' and '\\r' since FFmpeg rewrites its status line with
    carriage returns. Ends at EOF; a read error is treated as the stream
    closing.
    """
    logger = logger or get_null_logger()
    if stream is None:
        return

    buffer = b''
    while True:
        try:
            chunk = await stream.read(READ_CHUNK_BYTES)
        except (OSError, ValueError) as e:
            logger.debug("Stream closed: %s", e)
            break
        if not chunk:
            break

        parts = _LINE_SPLIT_RE.split(buffer + chunk)
        buffer = parts.pop()
        for part in parts:
            text = part.decode('utf-8', errors='replace').strip()
            if text:
                yield text

    text = buffer.decode('utf-8', errors='replace').strip()
    if text:
        yield text


class RecorderProcess:
    """A running recorder subprocess."""

    def __init__(
        self,
        process: asyncio.subprocess.Process,
        args: Sequence[str],
        strategy: Optional[PlatformStrategy] = None,
        logger: Optional[logging.Logger] = None
    ):
        self.process = process
        self.args = list(args)
        self.strategy = strategy or get_platform_strategy()
        self.logger = logger or get_null_logger()

    @classmethod
    async def spawn(
        cls,
        args: Sequence[str],
        strategy: Optional[PlatformStrategy] = None,
        logger: Optional[logging.Logger] = None
    ) -> 'RecorderProcess':
        """
        Start the recorder with all three standard streams piped.

        Raises:
            StartFailure: If the binary is missing or not executable
        """
        logger = logger or get_null_logger()
        logger.debug("Command: %s", ' '.join(str(a) for a in args))

        try:
            process = await asyncio.create_subprocess_exec(
                *[str(a) for a in args],
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                # Keep terminal Ctrl+C away from the recorder; stop() interrupts it
                start_new_session=sys.platform != 'win32',
            )
        except FileNotFoundError as e:
            raise StartFailure(f"Recorder binary not found: {args[0]}") from e
        except PermissionError as e:
            raise StartFailure(f"Recorder binary is not executable: {args[0]}") from e
        except OSError as e:
            raise StartFailure(f"Failed to start {args[0]}: {e}") from e

        logger.info("Recorder started with PID: %d", process.pid)
        return cls(process, args, strategy=strategy, logger=logger)

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def returncode(self) -> Optional[int]:
        return self.process.returncode

    def is_running(self) -> bool:
        return self.process.returncode is None

    def stdout_lines(self) -> AsyncIterator[str]:
        return iter_lines(self.process.stdout, self.logger)

    def stderr_lines(self) -> AsyncIterator[str]:
        return iter_lines(self.process.stderr, self.logger)

    async def interrupt(self) -> None:
        """Send the platform's graceful stop request."""
        if not self.is_running():
            return
        try:
            await self.strategy.interrupt(self.process)
        except ProcessLookupError:
            self.logger.debug("Process %d already exited before interrupt", self.pid)

    def suspend(self) -> None:
        self.strategy.suspend(self.process)

    def resume(self) -> None:
        self.strategy.resume(self.process)

    def kill(self) -> None:
        if not self.is_running():
            return
        try:
            self.process.kill()
        except ProcessLookupError:
            self.logger.debug("Process %d already exited before kill", self.pid)

    async def wait(self) -> int:
        return await self.process.wait()


@dataclass
class CommandResult:
    returncode: int
    stdout: str
    stderr: str


async def run_command(args: List[str], timeout: Optional[float] = None) -> CommandResult:
    """
    Run a command to completion and capture its output.

    Args:
        args: Command and arguments
        timeout: Seconds to wait (None waits indefinitely)

    Raises:
        FileNotFoundError: If the executable does not exist
        asyncio.TimeoutError: If it does not finish in time (it is killed)
    """
    process = await asyncio.create_subprocess_exec(
        *args,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        process.kill()
        await process.wait()
        raise

    return CommandResult(
        returncode=process.returncode,
        stdout=stdout.decode('utf-8', errors='replace'),
        stderr=stderr.decode('utf-8', errors='replace'),
    )
