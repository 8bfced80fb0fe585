"""
Subprocess collaborators.

CommandRunner runs a command to completion and captures its output.
DetachedLauncher starts a long-running service and hands it off to the OS:
it returns a LaunchReceipt and keeps no reference to the process.
"""

import asyncio
import logging
import platform
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from automate_installer.exceptions import CommandFailed, CommandTimeout

logger = logging.getLogger(__name__)


def resolve_executable(name: str) -> str:
    """Resolve a bare command name on PATH (handles npm.cmd and friends on Windows)."""
    return shutil.which(name) or name


@dataclass
class CommandResult:
    """Outcome of a finished command."""

    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandRunner:
    """Runs external commands on the event loop."""

    def __init__(self, timeout: float = 300.0):
        self.timeout = timeout

    async def run(
        self,
        cmd: Sequence[str],
        cwd: Optional[Path] = None,
        timeout: Optional[float] = None,
        env: Optional[Dict[str, str]] = None,
    ) -> CommandResult:
        """Run *cmd* and wait for it to exit.

        Raises FileNotFoundError if the executable does not exist and
        CommandTimeout if it runs longer than *timeout* (the process is
        killed first).
        """
        argv: List[str] = [resolve_executable(cmd[0]), *cmd[1:]]
        logger.debug("Running %s (cwd=%s)", " ".join(cmd), cwd or ".")
        process = await asyncio.create_subprocess_exec(
            *argv,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            stdin=asyncio.subprocess.DEVNULL,
            cwd=str(cwd) if cwd else None,
            env=env,
        )
        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(), timeout=timeout or self.timeout
            )
        except asyncio.TimeoutError as e:
            process.kill()
            await process.wait()
            logger.warning("Command timed out: %s", " ".join(cmd))
            raise CommandTimeout(cmd, timeout or self.timeout) from e

        return CommandResult(
            returncode=process.returncode if process.returncode is not None else -1,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
        )

    async def check(self, cmd: Sequence[str], **kwargs) -> CommandResult:
        """Run *cmd* and raise CommandFailed on a non-zero exit."""
        result = await self.run(cmd, **kwargs)
        if not result.ok:
            raise CommandFailed(cmd, result.returncode, result.stderr)
        return result


@dataclass(frozen=True)
class LaunchReceipt:
    """Record of a detached launch. Not a handle: the process is not tracked."""

    name: str
    pid: int
    log_path: Path


class DetachedLauncher:
    """Starts long-running services in their own session, output to a log file."""

    def launch(
        self,
        name: str,
        command: Sequence[str],
        cwd: Path,
        log_dir: Path,
        env: Optional[Dict[str, str]] = None,
    ) -> LaunchReceipt:
        log_dir.mkdir(parents=True, exist_ok=True)
        log_path = log_dir / f"{name}.log"
        argv = [resolve_executable(command[0]), *command[1:]]

        kwargs: Dict[str, object] = {}
        if platform.system() == "Windows":
            kwargs["creationflags"] = (
                subprocess.CREATE_NEW_PROCESS_GROUP  # type: ignore[attr-defined]
                | subprocess.DETACHED_PROCESS  # type: ignore[attr-defined]
            )
        else:
            kwargs["start_new_session"] = True

        # The child keeps its own copy of the log descriptor
        with open(log_path, "ab") as log_file:
            process = subprocess.Popen(
                argv,
                cwd=str(cwd),
                env=env,
                stdin=subprocess.DEVNULL,
                stdout=log_file,
                stderr=subprocess.STDOUT,
                **kwargs,  # type: ignore[arg-type]
            )

        logger.info("Started %s (pid %s), logging to %s", name, process.pid, log_path)
        return LaunchReceipt(name=name, pid=process.pid, log_path=log_path)
