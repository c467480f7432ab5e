from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from ampy_commander.constants import AMPY_EXECUTABLE
from ampy_commander.services.ampy_session import AmpySession, LineCallback


@dataclass(frozen=True)
class AmpyOutput:
    """Captured standard output and standard error of one ampy run."""

    output: str = ""
    error: str = ""


class ResetMode(str, Enum):
    """Reboot flavours understood by ``ampy reset``."""

    BOOTLOADER = "bootloader"  # reboot into the bootloader
    HARD = "hard"  # hard reboot, including running init.py
    REPL = "repl"  # soft reboot, entering the REPL
    SAFE = "safe"  # safe mode: user code not run, filesystem writeable over USB


RESET_FLAGS: dict[ResetMode, str] = {
    ResetMode.BOOTLOADER: "--bootloader",
    ResetMode.HARD: "--hard",
    ResetMode.REPL: "--repl",
    ResetMode.SAFE: "--safe",
}

Flags = Iterable[tuple[str, bool]]


class Ampy:
    """
    Asynchronous front end for the ``ampy`` board file manager.

    Every method launches one ``ampy -p COM<port> ...`` child process and
    runs it in one of three shapes:
      - capture:   wait for exit and return both output streams (AmpyOutput)
      - no-output: wait for exit only; output is discarded
      - streaming: return a live AmpySession delivering output line by line

    The child's exit status and error text are never interpreted here.
    """

    def __init__(self, com_port: int, executable: str = AMPY_EXECUTABLE) -> None:
        self._com_port = com_port
        self._executable = executable

    @property
    def com_port(self) -> int:
        return self._com_port

    @property
    def executable(self) -> str:
        return self._executable

    @property
    def device(self) -> str:
        return f"COM{self._com_port}"

    def __repr__(self) -> str:
        return f"Ampy(com_port={self._com_port!r}, executable={self._executable!r})"

    def build_args(self, *args: str, flags: Flags = ()) -> list[str]:
        """Argument vector: base ``-p COM<port>``, then ``args``, then enabled flags in order."""
        argv = [self._executable, "-p", self.device, *args]
        argv.extend(token for token, enabled in flags if enabled)
        return argv

    # ---------- execution shapes ----------

    async def _run(self, argv: list[str]) -> AmpyOutput:
        logging.debug("ampy capture: %s", argv)
        proc = await asyncio.create_subprocess_exec(
            *argv,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        out, err = await proc.communicate()
        return AmpyOutput(
            output=(out or b"").decode("utf-8", errors="replace"),
            error=(err or b"").decode("utf-8", errors="replace"),
        )

    async def _run_no_output(self, argv: list[str]) -> None:
        logging.debug("ampy no-output: %s", argv)
        # Output goes to the null device so a chatty child cannot block on a full pipe
        proc = await asyncio.create_subprocess_exec(
            *argv,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.DEVNULL,
        )
        rc = await proc.wait()
        logging.debug("ampy %s exited with code %s", argv[3], rc)

    async def _run_streaming(
        self,
        argv: list[str],
        on_stdout: LineCallback | None = None,
        on_stderr: LineCallback | None = None,
    ) -> AmpySession:
        logging.debug("ampy streaming: %s", argv)
        proc = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        logging.info("Started ampy session on %s (PID: %s)", self.device, proc.pid)
        return AmpySession(proc, on_stdout=on_stdout, on_stderr=on_stderr)

    # ---------- files ----------

    async def get_file_content(self, remote_file: str) -> AmpyOutput:
        """
        Retrieve a file from the board.

        Args:
            remote_file: Path to the file on the board

        Returns:
            AmpyOutput whose ``output`` is the file content
        """
        return await self._run(self.build_args("get", remote_file))

    async def download_file(self, remote_file: str, local_file: str) -> None:
        """Copy ``remote_file`` from the board to ``local_file`` on the host."""
        await self._run_no_output(self.build_args("get", remote_file, local_file))

    async def upload(self, local: str, remote: str | None = None) -> None:
        """
        Put a file or folder and its contents on the board.

        Examples:
            await ampy.upload("main.py")                          # -> /main.py
            await ampy.upload("./foo/board_boot.py", "boot.py")   # -> /boot.py
            await ampy.upload("adafruit_library", "/lib/adafruit_library")

        Args:
            local: Local file or folder path
            remote: Remote file or folder path; defaults to the local name at the root
        """
        args = ["put", local]
        if remote:
            args.append(remote)
        await self._run_no_output(self.build_args(*args))

    async def remove_file(self, remote_file: str) -> None:
        await self._run_no_output(self.build_args("rm", remote_file))

    # ---------- directories ----------

    async def create_directory(
        self, directory: str, exists_okay: bool = False, make_parents: bool = False
    ) -> None:
        """
        Create a directory on the board.

        Args:
            directory: Directory path
            exists_okay: Ignore if the directory already exists
            make_parents: Create any missing parents
        """
        await self._run_no_output(
            self.build_args(
                "mkdir",
                directory,
                flags=[("--exists-okay", exists_okay), ("--make-parents", make_parents)],
            )
        )

    async def list_directory(
        self, directory: str = "/", long_format: bool = False, recursive: bool = False
    ) -> AmpyOutput:
        """
        List contents of a directory on the board.

        Args:
            directory: Path to the directory
            long_format: Include file sizes (directories always report 0)
            recursive: Recursively list all files and (empty) directories

        Returns:
            AmpyOutput with one entry per line in ``output``
        """
        return await self._run(
            self.build_args(
                "ls", directory, flags=[("-l", long_format), ("-r", recursive)]
            )
        )

    async def remove_directory(self, remote_folder: str, missing_okay: bool = False) -> None:
        """Forcefully remove a folder and all its children from the board."""
        await self._run_no_output(
            self.build_args("rmdir", remote_folder, flags=[("--missing-okay", missing_okay)])
        )

    # ---------- board control ----------

    async def reset(self, mode: ResetMode | str = ResetMode.REPL) -> None:
        """
        Soft reset/reboot the board.

        Raises:
            ValueError: If ``mode`` is not a ResetMode (checked before launching anything)
        """
        try:
            flag = RESET_FLAGS[ResetMode(mode)]
        except (ValueError, KeyError):
            raise ValueError(f"Unsupported reset mode: {mode!r}") from None
        await self._run_no_output(self.build_args("reset", flag))

    async def run(self, local_file: str) -> AmpyOutput:
        """Upload and run a script, wait for it to finish and return its output."""
        return await self._run(self.build_args("run", local_file))

    async def run_no_wait(self, local_file: str) -> None:
        """Upload and run a script without waiting for it to finish on the board."""
        await self._run_no_output(self.build_args("run", "-n", local_file))

    async def run_with_stream_output(
        self,
        local_file: str,
        on_stdout: LineCallback | None = None,
        on_stderr: LineCallback | None = None,
    ) -> AmpySession:
        """
        Upload and run a script, streaming its output as it is produced.

        Args:
            local_file: Path to the local script
            on_stdout: Optional callback subscribed before any line is read
            on_stderr: Optional callback subscribed before any line is read

        Returns:
            AmpySession the caller must eventually ``wait()`` on or ``stop()``
        """
        return await self._run_streaming(
            self.build_args("run", "-s", local_file), on_stdout, on_stderr
        )
