"""Installs missing required tools through the platform package manager."""

import logging
from typing import List, Optional

from automate_installer.config import Settings, settings as default_settings
from automate_installer.exceptions import CommandTimeout, DependencyInstallFailure
from automate_installer.package_managers import PackageManager, detect_package_manager
from automate_installer.process import CommandRunner
from automate_installer.prober import CapabilityProber

logger = logging.getLogger(__name__)


class DependencyInstaller:
    """Re-probes the host and batch-installs whatever required tool is missing.

    This is the only component allowed to change the host outside the
    install directory. A failed batch is never retried.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        runner: Optional[CommandRunner] = None,
        prober: Optional[CapabilityProber] = None,
        package_manager: Optional[PackageManager] = None,
    ):
        self.settings = settings or default_settings
        self.runner = runner or CommandRunner(timeout=self.settings.command_timeout)
        self.prober = prober or CapabilityProber(self.settings, self.runner)
        self._package_manager = package_manager

    @property
    def package_manager(self) -> Optional[PackageManager]:
        if self._package_manager is None:
            self._package_manager = detect_package_manager(self.runner, self.settings.command_timeout)
        return self._package_manager

    async def install(self) -> List[str]:
        """Install missing required tools. Returns the package ids installed."""
        checks = await self.prober.probe()
        missing = [c for c in checks if c.required and not c.passed]
        if not missing:
            logger.info("All required tools are present, nothing to install")
            return []

        manager = self.package_manager
        if manager is None:
            raise DependencyInstallFailure(
                "No supported package manager found for this platform; "
                f"install manually: {', '.join(c.name for c in missing)}"
            )

        packages: List[str] = []
        for check in missing:
            mapped = manager.packages_for(check.name)
            if not mapped:
                logger.warning("%s cannot be fixed by %s: %s", check.name, manager.name, check.message)
                continue
            for package in mapped:
                if package not in packages:
                    packages.append(package)

        if not packages:
            return []

        if not manager.is_available():
            try:
                await manager.bootstrap()
            except CommandTimeout as e:
                raise DependencyInstallFailure(f"{manager.name} installation: {e}") from e

        logger.info("Installing via %s: %s", manager.name, ", ".join(packages))
        await manager.batch_install(packages)
        logger.info("Installed %d packages", len(packages))
        return packages
