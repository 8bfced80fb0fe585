"""
Host capability probe.

Produces the checklist shown before installation: platform, memory, disk,
then each required external tool. Failures are data: every check is
caught locally and encoded as ``passed=False`` so the caller always gets
the complete list.
"""

import logging
import platform
import re
import shutil
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

import psutil

from automate_installer.config import Settings, settings as default_settings
from automate_installer.models import CapabilityCheck
from automate_installer.process import CommandRunner

logger = logging.getLogger(__name__)

GIB = 1024 ** 3
MACOS_MIN_VERSION = (10, 13)
TOOL_CHECK_TIMEOUT = 10  # seconds per version command

_VERSION_RE = re.compile(r"\d+(?:\.\d+)+")


def parse_version(output: str) -> Optional[str]:
    """Pull the first dotted version number out of a --version banner."""
    match = _VERSION_RE.search(output or "")
    return match.group(0) if match else None


def format_gib(size_bytes: float) -> str:
    """Size in GiB with one decimal, truncated so a shortfall never rounds up to the minimum."""
    return f"{int(size_bytes * 10 // GIB) / 10:.1f}GB"


def _nearest_existing(path: Path) -> Path:
    for candidate in (path, *path.parents):
        if candidate.exists():
            return candidate
    return Path.home()


class CapabilityProber:
    """Inspects the host and reports a pass/fail checklist."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        runner: Optional[CommandRunner] = None,
        install_path: Optional[Path] = None,
    ):
        self.settings = settings or default_settings
        self.runner = runner or CommandRunner(timeout=TOOL_CHECK_TIMEOUT)
        self.install_path = install_path or self.settings.install_path
        self.platform_name = platform.system()

    def tool_commands(self) -> List[Tuple[str, List[str]]]:
        """Required external tools and the command that proves each one exists."""
        python = "python" if self.platform_name == "Windows" else "python3"
        return [
            ("Git", ["git", "--version"]),
            ("Node.js", ["node", "--version"]),
            ("Docker", ["docker", "--version"]),
            ("Python", [python, "--version"]),
        ]

    async def probe(self) -> List[CapabilityCheck]:
        """Run every check in order and return the fresh checklist."""
        checks = [
            self._guarded("Operating System", self.check_os),
            self._guarded("RAM", self.check_ram),
            self._guarded("Disk Space", self.check_disk),
        ]

        docker_installed = False
        for name, cmd in self.tool_commands():
            check = await self.check_tool(name, cmd)
            if name == "Docker":
                docker_installed = check.passed
            checks.append(check)

        # Docker Desktop only exists on macOS and Windows
        if self.platform_name in ("Darwin", "Windows"):
            checks.append(await self.check_docker_desktop(docker_installed))

        failed = [c.name for c in checks if c.required and not c.passed]
        if failed:
            logger.info("Capability probe: %d checks, missing: %s", len(checks), ", ".join(failed))
        else:
            logger.info("Capability probe: all %d checks passed", len(checks))
        return checks

    def _guarded(self, name: str, check: Callable[[], CapabilityCheck]) -> CapabilityCheck:
        try:
            result = check()
        except Exception as e:
            logger.debug("%s check raised: %s", name, e)
            result = CapabilityCheck(name=name, passed=False, required=True, message="Could not check")
        logger.debug("%s: passed=%s (%s)", result.name, result.passed, result.message)
        return result

    # ------------------------------------------------------------------
    # Host metrics
    # ------------------------------------------------------------------

    def check_os(self) -> CapabilityCheck:
        system = self.platform_name
        if system == "Darwin":
            version = platform.mac_ver()[0]
            parts = tuple(int(p) for p in version.split(".")[:2] if p.isdigit())
            passed = parts >= MACOS_MIN_VERSION
            message = f"macOS {version}"
            if not passed:
                message += f" (need {MACOS_MIN_VERSION[0]}.{MACOS_MIN_VERSION[1]}+)"
        elif system in ("Linux", "Windows"):
            passed = True
            message = f"{system} {platform.release()}"
        else:
            passed = False
            message = f"{system or 'Unknown platform'} is not supported"
        return CapabilityCheck(name="Operating System", passed=passed, required=True, message=message)

    def check_ram(self) -> CapabilityCheck:
        total = psutil.virtual_memory().total
        minimum = self.settings.min_ram_gb
        passed = total >= minimum * GIB
        message = format_gib(total)
        if not passed:
            message += f" (minimum {minimum}GB required)"
        return CapabilityCheck(name="RAM", passed=passed, required=True, message=message)

    def check_disk(self) -> CapabilityCheck:
        free = shutil.disk_usage(_nearest_existing(self.install_path)).free
        minimum = self.settings.min_free_disk_gb
        passed = free >= minimum * GIB
        message = f"{format_gib(free)} available"
        if not passed:
            message += f" (minimum {minimum}GB required)"
        return CapabilityCheck(name="Disk Space", passed=passed, required=True, message=message)

    # ------------------------------------------------------------------
    # External tools
    # ------------------------------------------------------------------

    async def check_tool(self, name: str, cmd: Sequence[str]) -> CapabilityCheck:
        try:
            result = await self.runner.run(cmd, timeout=TOOL_CHECK_TIMEOUT)
        except Exception as e:
            logger.debug("%s not available: %s", name, e)
            return CapabilityCheck(name=name, passed=False, required=True, message="Not installed")

        if not result.ok:
            return CapabilityCheck(name=name, passed=False, required=True, message="Not installed")

        # Older Pythons print the banner to stderr
        version = parse_version(result.stdout) or parse_version(result.stderr)
        return CapabilityCheck(name=name, passed=True, required=True, message=version or "Installed")

    async def check_docker_desktop(self, docker_installed: bool) -> CapabilityCheck:
        if not docker_installed:
            return CapabilityCheck(name="Docker Desktop", passed=False, required=True, message="Not installed")
        try:
            result = await self.runner.run(["docker", "info"], timeout=TOOL_CHECK_TIMEOUT)
            running = result.ok
        except Exception:
            running = False
        if running:
            return CapabilityCheck(name="Docker Desktop", passed=True, required=True, message="Running")
        return CapabilityCheck(
            name="Docker Desktop",
            passed=False,
            required=True,
            message="Installed but not running - please open Docker Desktop",
        )
