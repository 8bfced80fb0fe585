"""
Installation orchestrator.

The installation is a fixed list of (name, action) pairs executed by a
single generic runner. Steps run strictly one at a time; a progress event
is published before each step and once more at 100% after the last one.
The first failing step aborts the run with a StepFailure naming it.
Nothing is rolled back.

Long-running services are launched detached and confirmed reachable
through the ReadinessPoller; after that the orchestrator forgets them.
"""

import asyncio
import logging
import os
from functools import partial
from typing import List, Optional, Sequence

from automate_installer.config import Settings, settings as default_settings
from automate_installer.envfile import write_env_file
from automate_installer.exceptions import StepFailure
from automate_installer.models import InstallConfig, InstallStep, ProgressEvent
from automate_installer.process import CommandRunner, DetachedLauncher
from automate_installer.progress import ProgressChannel, ProgressListener
from automate_installer.readiness import ReadinessPoller
from automate_installer.repositories import RepositoryAcquirer, RepositorySpec, default_repositories

logger = logging.getLogger(__name__)

COMPLETE_MESSAGE = "Installation complete!"
LOG_DIRNAME = "logs"


def progress_percent(index: int, total: int) -> int:
    """Percent for the step about to run (1-based *index*)."""
    return min(100, round(index / total * 100))


async def run_steps(steps: Sequence[InstallStep], channel: ProgressChannel) -> List[str]:
    """Execute *steps* in order. Returns the completed step names.

    Raises StepFailure for the first step whose action raises.
    """
    total = len(steps)
    completed: List[str] = []

    for index, step in enumerate(steps, start=1):
        channel.publish(ProgressEvent(
            percent=progress_percent(index, total),
            step_index=index,
            message=step.name,
            completed_step_names=tuple(completed),
        ))
        logger.info("[%d/%d] %s", index, total, step.name)
        try:
            await step.action()
        except Exception as e:
            logger.error("%s failed: %s", step.name, e)
            raise StepFailure(step.name, e) from e
        completed.append(step.name)

    channel.publish(ProgressEvent(
        percent=100,
        step_index=max(total, 1),
        message=COMPLETE_MESSAGE,
        completed_step_names=tuple(completed),
    ))
    return completed


class InstallOrchestrator:
    """Owns the AutoMate installation sequence."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        runner: Optional[CommandRunner] = None,
        poller: Optional[ReadinessPoller] = None,
        launcher: Optional[DetachedLauncher] = None,
        acquirer: Optional[RepositoryAcquirer] = None,
        channel: Optional[ProgressChannel] = None,
    ):
        self.settings = settings or default_settings
        self.runner = runner or CommandRunner(timeout=self.settings.command_timeout)
        self.poller = poller or ReadinessPoller(
            interval=self.settings.readiness_interval,
            probe_timeout=self.settings.probe_timeout,
        )
        self.launcher = launcher or DetachedLauncher()
        self.acquirer = acquirer or RepositoryAcquirer(self.runner, self.settings.bundled_repos_dir)
        self.channel = channel or ProgressChannel()
        self.repositories = default_repositories(self.settings)

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def run(self, config: InstallConfig, on_progress: Optional[ProgressListener] = None) -> List[str]:
        """Run the full installation for *config*. Raises StepFailure."""
        if on_progress is not None:
            self.channel.subscribe(on_progress)
        try:
            logger.info("Installing AutoMate into %s", config.install_path)
            completed = await run_steps(self.build_steps(config), self.channel)
            logger.info("Installation finished: %d steps", len(completed))
            return completed
        finally:
            if on_progress is not None:
                self.channel.unsubscribe(on_progress)

    def build_steps(self, config: InstallConfig) -> List[InstallStep]:
        repo = {r.name: r for r in self.repositories}
        steps = [InstallStep(f"Creating {config.install_path} directory", partial(self.create_directory, config))]
        steps.extend(
            InstallStep(f"Cloning {r.label}", partial(self.acquire_repository, r, config))
            for r in self.repositories
        )
        steps.extend([
            InstallStep("Generating .env configuration", partial(self.generate_env_file, config)),
            InstallStep(
                "Installing AutoChat dependencies (npm)",
                partial(self.install_npm_dependencies, repo["autochat"], config),
            ),
            InstallStep(
                "Installing AutoHub dependencies (npm)",
                partial(self.install_npm_dependencies, repo["autohub"], config),
            ),
            InstallStep("Installing AutoMem dependencies (pip)", partial(self.install_python_dependencies, config)),
            InstallStep("Starting Docker containers (FalkorDB, Qdrant)", partial(self.start_containers, config)),
            InstallStep("Initializing databases", partial(self.initialize_databases, config)),
            InstallStep("Starting AutoHub server", partial(self.start_autohub, config)),
            InstallStep("Starting AutoChat UI", partial(self.start_autochat, config)),
        ])
        return steps

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------

    @property
    def falkordb_endpoint(self) -> str:
        # FalkorDB speaks the Redis protocol, not HTTP
        return f"tcp://localhost:{self.settings.falkordb_port}"

    @property
    def qdrant_endpoint(self) -> str:
        return f"http://localhost:{self.settings.qdrant_port}"

    @property
    def autohub_endpoint(self) -> str:
        return f"http://localhost:{self.settings.autohub_port}"

    @property
    def autochat_endpoint(self) -> str:
        return f"http://localhost:{self.settings.autochat_port}"

    # ------------------------------------------------------------------
    # Step actions
    # ------------------------------------------------------------------

    async def create_directory(self, config: InstallConfig) -> None:
        config.install_path.mkdir(parents=True, exist_ok=True)

    async def acquire_repository(self, repo: RepositorySpec, config: InstallConfig) -> None:
        await self.acquirer.acquire(repo, config.install_path)

    async def generate_env_file(self, config: InstallConfig) -> None:
        path = write_env_file(config, self.settings)
        logger.info("Wrote %s", path)

    async def install_npm_dependencies(self, repo: RepositorySpec, config: InstallConfig) -> None:
        await self.runner.check(
            ["npm", "install"],
            cwd=config.install_path / repo.name,
            timeout=self.settings.command_timeout,
        )

    async def install_python_dependencies(self, config: InstallConfig) -> None:
        await self.runner.check(
            [self.settings.python_executable, "-m", "pip", "install", "-r", "requirements.txt"],
            cwd=config.install_path / "automem",
            timeout=self.settings.command_timeout,
        )

    async def start_containers(self, config: InstallConfig) -> None:
        compose = await self._compose_command()
        await self.runner.check(
            [*compose, "up", "-d"],
            cwd=config.install_path / "automem",
            timeout=self.settings.command_timeout,
        )
        await self.poller.wait_for_ready(self.falkordb_endpoint, self.settings.readiness_timeout)
        await self.poller.wait_for_ready(self.qdrant_endpoint, self.settings.readiness_timeout)

    async def initialize_databases(self, config: InstallConfig) -> None:
        # Containers accept connections before their stores finish loading
        await asyncio.sleep(self.settings.database_settle_seconds)
        await self.poller.wait_for_ready(self.falkordb_endpoint, self.settings.readiness_timeout)
        await self.poller.wait_for_ready(self.qdrant_endpoint, self.settings.readiness_timeout)

    async def start_autohub(self, config: InstallConfig) -> None:
        await self._start_service(
            "autohub", ["npm", "start"], config, self.settings.autohub_port, self.autohub_endpoint
        )

    async def start_autochat(self, config: InstallConfig) -> None:
        await self._start_service(
            "autochat", ["npm", "run", "dev"], config, self.settings.autochat_port, self.autochat_endpoint
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _start_service(
        self,
        name: str,
        command: List[str],
        config: InstallConfig,
        port: int,
        endpoint: str,
    ) -> None:
        """Launch detached, then wait for the handshake. The process is not tracked afterwards."""
        env = os.environ.copy()
        env["PORT"] = str(port)
        receipt = self.launcher.launch(
            name,
            command,
            cwd=config.install_path / name,
            log_dir=config.install_path / LOG_DIRNAME,
            env=env,
        )
        await self.poller.wait_for_ready(endpoint, self.settings.readiness_timeout)
        logger.info("%s is up (pid %s); handing off to the OS, logs at %s", name, receipt.pid, receipt.log_path)

    async def _compose_command(self) -> List[str]:
        """Prefer the `docker compose` plugin, fall back to standalone docker-compose."""
        try:
            result = await self.runner.run(["docker", "compose", "version"], timeout=30)
            if result.ok:
                return ["docker", "compose"]
        except (OSError, asyncio.TimeoutError):
            pass
        return ["docker-compose"]
