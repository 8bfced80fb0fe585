"""Shared fixtures for installer tests.

Provides a scripted fake CommandRunner, isolated Settings pointing at a
temporary directory, and platform mock fixtures. No test starts a real
package manager, clone, or service.
"""

import sys
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple, Union
from unittest.mock import patch

import pytest

# Ensure project root is importable
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from automate_installer.config import Settings
from automate_installer.exceptions import CommandFailed
from automate_installer.models import InstallConfig
from automate_installer.process import CommandResult

GIB = 1024 ** 3

Response = Union[CommandResult, BaseException]


def make_result(returncode: int = 0, stdout: str = "", stderr: str = "") -> CommandResult:
    return CommandResult(returncode=returncode, stdout=stdout, stderr=stderr)


class FakeRunner:
    """CommandRunner stand-in that records calls and replays scripted results.

    ``responses`` maps a command prefix tuple to a CommandResult or an
    exception to raise; the first matching prefix wins.
    """

    def __init__(
        self,
        responses: Optional[Dict[Tuple[str, ...], Response]] = None,
        default: Optional[CommandResult] = None,
    ):
        self.responses = responses or {}
        self.default = default or make_result(0)
        self.calls: List[Tuple[List[str], dict]] = []

    async def run(self, cmd: Sequence[str], **kwargs) -> CommandResult:
        cmd = list(cmd)
        self.calls.append((cmd, kwargs))
        for prefix, response in self.responses.items():
            if tuple(cmd[:len(prefix)]) == prefix:
                if isinstance(response, BaseException):
                    raise response
                return response
        return self.default

    async def check(self, cmd: Sequence[str], **kwargs) -> CommandResult:
        result = await self.run(cmd, **kwargs)
        if not result.ok:
            raise CommandFailed(cmd, result.returncode, result.stderr)
        return result

    @property
    def commands(self) -> List[List[str]]:
        return [cmd for cmd, _ in self.calls]


@pytest.fixture
def fake_runner():
    return FakeRunner()


@pytest.fixture
def settings(tmp_path):
    """Settings isolated to tmp_path with fast readiness polling."""
    return Settings(
        install_path=tmp_path / "AutoMate",
        bundled_repos_dir=tmp_path / "bundled-repos",
        readiness_timeout=0.5,
        readiness_interval=0.05,
        probe_timeout=0.05,
        database_settle_seconds=0,
        command_timeout=5,
        python_executable="python3",
        owner_name="tester",
    )


@pytest.fixture
def install_config(settings):
    return InstallConfig(
        install_path=settings.install_path,
        anthropic_key="sk-ant-test",
        openai_key="SKIP",
    )


# ---------------------------------------------------------------------------
# Platform mock fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_macos():
    with patch("automate_installer.prober.platform.system", return_value="Darwin"), \
         patch("automate_installer.prober.platform.mac_ver", return_value=("14.2", ("", "", ""), "arm64")):
        yield


@pytest.fixture
def plenty_of_ram():
    with patch("automate_installer.prober.psutil.virtual_memory") as mock_vm:
        mock_vm.return_value.total = 16 * GIB
        yield mock_vm
