"""Bulk copy of a disc's contents to a destination folder."""

import asyncio
import codecs
import contextlib
import logging
import platform
import re
from collections.abc import Callable
from pathlib import Path
from typing import Protocol

from discdup.config import DiscdupConfig
from discdup.error_handling import DiscdupError, ErrorCategory, ExternalToolError

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str], None]

READ_CHUNK = 4096
MAX_LINE = 64 * 1024
# robocopy and rsync redraw progress in place with a bare carriage return
LINE_BREAK = re.compile(r"\r\n|\r|\n")

# Completion codes follow robocopy: 0-7 copied (with extras or mismatches),
# 8 some files could not be copied, 16 nothing was copied.
CODE_OK = 0
CODE_PARTIAL = 8
CODE_SEVERE = 16


class BulkCopier(Protocol):
    """Recursively copies a source root into a destination folder."""

    binary: str
    install_hint: str

    async def copy(
        self,
        source_root: str,
        destination: Path,
        progress_callback: ProgressCallback | None = None,
    ) -> int: ...


class _StreamingCopier:
    """Runs a copy tool and streams its output to a progress callback."""

    binary = ""
    install_hint = ""

    def __init__(self, retries: int = 3, retry_wait: int = 5, log_file: Path | None = None):
        self.retries = retries
        self.retry_wait = retry_wait
        self.log_file = log_file

    def build_command(self, source_root: str, destination: Path) -> list[str]:
        raise NotImplementedError

    def completion_code(self, returncode: int) -> int:
        return returncode

    async def copy(
        self,
        source_root: str,
        destination: Path,
        progress_callback: ProgressCallback | None = None,
    ) -> int:
        """Copy everything under ``source_root`` and return the completion code."""
        # Copy tools report a missing source as a partial copy
        if not Path(source_root).is_dir():
            msg = f"Copy source {source_root} is not a directory"
            raise DiscdupError(
                msg,
                ErrorCategory.DRIVE,
                solution="Check the disc is mounted and readable",
            )

        cmd = self.build_command(source_root, destination)
        logger.info(f"Copying {source_root} -> {destination}")
        logger.debug("Running: %s", " ".join(cmd))

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
            )
        except FileNotFoundError as e:
            raise ExternalToolError(
                self.binary,
                message=f"{self.binary} not found",
                solution=self.install_hint,
                original_error=e,
            ) from e

        try:
            await self._stream_output(process, progress_callback)
        except BaseException:
            # The child must not outlive a failed copy
            if process.returncode is None:
                with contextlib.suppress(ProcessLookupError):
                    process.kill()
            await process.wait()
            raise

        returncode = await process.wait()
        code = self.completion_code(returncode)
        logger.info(f"{self.binary} exited with {returncode} (completion code {code})")
        return code

    async def _stream_output(
        self,
        process: asyncio.subprocess.Process,
        progress_callback: ProgressCallback | None,
    ) -> None:
        """Forward output lines, splitting on ``\\r`` as well as ``\\n``."""
        assert process.stdout is not None
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        pending = ""
        while True:
            chunk = await process.stdout.read(READ_CHUNK)
            if not chunk:
                break
            *lines, pending = LINE_BREAK.split(pending + decoder.decode(chunk))
            if len(pending) > MAX_LINE:
                lines.append(pending)
                pending = ""
            for line in lines:
                self._emit(line, progress_callback)
        self._emit(pending + decoder.decode(b"", final=True), progress_callback)

    def _emit(self, line: str, progress_callback: ProgressCallback | None) -> None:
        line = line.strip()
        if not line:
            return
        logger.debug("%s: %s", self.binary, line[:200])
        if progress_callback:
            progress_callback(line)


class RobocopyCopier(_StreamingCopier):
    """Windows robocopy. Its exit codes already are completion codes."""

    binary = "robocopy"
    install_hint = "robocopy ships with Windows; make sure System32 is on PATH"

    def build_command(self, source_root: str, destination: Path) -> list[str]:
        cmd = [
            self.binary,
            source_root,
            str(destination),
            "/E",
            f"/R:{self.retries}",
            f"/W:{self.retry_wait}",
            "/TEE",
        ]
        if self.log_file is not None:
            cmd.append(f"/LOG+:{self.log_file}")
        return cmd


class RsyncCopier(_StreamingCopier):
    """rsync, with exit codes mapped onto robocopy completion codes."""

    binary = "rsync"
    install_hint = "Install rsync with your package manager"

    # Partial transfer due to error, vanished source files
    PARTIAL_CODES = (23, 24)

    def build_command(self, source_root: str, destination: Path) -> list[str]:
        # Trailing slash copies the contents rather than the directory itself
        source = source_root.rstrip("/") + "/"
        cmd = [
            self.binary,
            "-r",
            "-t",
            "--partial",
            "--info=progress2,name1",
            source,
            str(destination),
        ]
        if self.log_file is not None:
            cmd.insert(-2, f"--log-file={self.log_file}")
        return cmd

    def completion_code(self, returncode: int) -> int:
        if returncode == 0:
            return CODE_OK
        if returncode in self.PARTIAL_CODES:
            return CODE_PARTIAL
        return CODE_SEVERE


def create_copier(config: DiscdupConfig) -> BulkCopier:
    """Pick the bulk copier for this platform."""
    kwargs = {
        "retries": config.copy_retries,
        "retry_wait": config.copy_retry_wait,
        "log_file": config.log_file,
    }
    if platform.system() == "Windows":
        return RobocopyCopier(**kwargs)
    return RsyncCopier(**kwargs)
