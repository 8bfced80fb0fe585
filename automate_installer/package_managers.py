"""
Platform package managers.

Each platform gets one PackageManager subclass behind the same
"bootstrap + batch install" contract; ``detect_package_manager`` picks the
right one at startup so the installer never branches on the platform.
"""

import logging
import os
import platform
import shutil
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from automate_installer.exceptions import CommandTimeout, DependencyInstallFailure
from automate_installer.process import CommandRunner

logger = logging.getLogger(__name__)

# Root detection: when running as root (e.g. in containers), sudo is
# unnecessary and may not even be installed.
IS_ROOT = (os.getuid() == 0) if hasattr(os, "getuid") else False

HOMEBREW_INSTALL_URL = "https://raw.githubusercontent.com/Homebrew/install/HEAD/install.sh"
CHOCOLATEY_INSTALL_URL = "https://community.chocolatey.org/install.ps1"

DEBIAN_IDS = {"ubuntu", "debian", "pop", "linuxmint", "elementary", "zorin"}
FEDORA_IDS = {"fedora", "rhel", "centos", "rocky", "alma"}
ARCH_IDS = {"arch", "manjaro", "endeavouros"}


def _sudo() -> List[str]:
    """Return ['sudo'] prefix, or [] if already running as root."""
    return [] if IS_ROOT else ["sudo"]


class PackageManager:
    """Common contract: map check names to packages, bootstrap, batch install."""

    name = ""
    executable = ""
    # Capability check name -> package identifiers
    packages: Dict[str, Tuple[str, ...]] = {}

    def __init__(self, runner: CommandRunner, timeout: float = 900.0):
        self.runner = runner
        self.timeout = timeout

    def packages_for(self, check_name: str) -> Tuple[str, ...]:
        return self.packages.get(check_name, ())

    def is_available(self) -> bool:
        return shutil.which(self.executable) is not None

    async def bootstrap(self) -> None:
        """Install the package manager itself."""
        raise DependencyInstallFailure(
            f"{self.name} is not available and cannot be installed automatically"
        )

    def install_commands(self, packages: Sequence[str]) -> List[List[str]]:
        raise NotImplementedError

    async def batch_install(self, packages: Sequence[str]) -> None:
        """Install all *packages* together. Raises DependencyInstallFailure."""
        for cmd in self.install_commands(packages):
            logger.info("Running %s", " ".join(cmd))
            try:
                result = await self.runner.run(cmd, timeout=self.timeout)
            except CommandTimeout as e:
                raise DependencyInstallFailure(f"{self.name}: {e}", packages=packages) from e
            if not result.ok:
                detail = result.stderr.strip().splitlines()[-1] if result.stderr.strip() else ""
                raise DependencyInstallFailure(
                    f"{self.name} could not install {', '.join(packages)} "
                    f"(exit code {result.returncode}){': ' + detail if detail else ''}",
                    packages=packages,
                )
        await self.after_install(packages)

    async def after_install(self, packages: Sequence[str]) -> None:
        pass


# ----------------------------------------------------------------------
# Homebrew (macOS)
# ----------------------------------------------------------------------

class Homebrew(PackageManager):
    name = "Homebrew"
    executable = "brew"
    # "cask:" entries need `brew install --cask`
    packages = {
        "Git": ("git",),
        "Node.js": ("node",),
        "Python": ("python@3.11",),
        "Docker": ("cask:docker",),
        "Docker Desktop": ("cask:docker",),
    }

    async def bootstrap(self) -> None:
        logger.info("Homebrew not found, installing it")
        result = await self.runner.run(
            ["/bin/bash", "-c", f'NONINTERACTIVE=1 /bin/bash -c "$(curl -fsSL {HOMEBREW_INSTALL_URL})"'],
            timeout=self.timeout,
        )
        if not result.ok:
            raise DependencyInstallFailure(f"Homebrew installation failed (exit code {result.returncode})")

        # Apple Silicon installs outside the default PATH
        brew_bin = Path("/opt/homebrew/bin")
        if brew_bin.is_dir():
            os.environ["PATH"] = f"{brew_bin}{os.pathsep}{os.environ.get('PATH', '')}"

    def install_commands(self, packages: Sequence[str]) -> List[List[str]]:
        # --cask applies to every name on the command line, so formulae
        # and casks go in separate invocations
        formulae = [p for p in packages if not p.startswith("cask:")]
        casks = [p[len("cask:"):] for p in packages if p.startswith("cask:")]
        commands = []
        if formulae:
            commands.append(["brew", "install", *formulae])
        if casks:
            commands.append(["brew", "install", "--cask", *casks])
        return commands

    async def after_install(self, packages: Sequence[str]) -> None:
        if "cask:docker" in packages:
            result = await self.runner.run(["open", "-a", "Docker"], timeout=30)
            if not result.ok:
                logger.warning("Docker Desktop was installed but could not be opened")


# ----------------------------------------------------------------------
# Chocolatey (Windows)
# ----------------------------------------------------------------------

class Chocolatey(PackageManager):
    name = "Chocolatey"
    executable = "choco"
    packages = {
        "Git": ("git",),
        "Node.js": ("nodejs-lts",),
        "Python": ("python311",),
        "Docker": ("docker-desktop",),
        "Docker Desktop": ("docker-desktop",),
    }

    async def bootstrap(self) -> None:
        logger.info("Chocolatey not found, installing it")
        result = await self.runner.run(
            ["powershell", "-NoProfile", "-ExecutionPolicy", "Bypass", "-Command",
             "[System.Net.ServicePointManager]::SecurityProtocol = "
             "[System.Net.ServicePointManager]::SecurityProtocol -bor 3072; "
             f"iex ((New-Object System.Net.WebClient).DownloadString('{CHOCOLATEY_INSTALL_URL}'))"],
            timeout=self.timeout,
        )
        if not result.ok:
            raise DependencyInstallFailure(f"Chocolatey installation failed (exit code {result.returncode})")
        await self._refresh_path()

    async def _refresh_path(self) -> None:
        """Reload PATH from the registry so freshly installed tools resolve."""
        result = await self.runner.run(
            ["powershell", "-NoProfile", "-Command",
             '[System.Environment]::GetEnvironmentVariable("Path","Machine") + ";" + '
             '[System.Environment]::GetEnvironmentVariable("Path","User")'],
            timeout=10,
        )
        if result.ok and result.stdout.strip():
            os.environ["PATH"] = result.stdout.strip()

    def install_commands(self, packages: Sequence[str]) -> List[List[str]]:
        return [["choco", "install", "-y", "--no-progress", *packages]]

    async def after_install(self, packages: Sequence[str]) -> None:
        await self._refresh_path()


# ----------------------------------------------------------------------
# Linux
# ----------------------------------------------------------------------

class Apt(PackageManager):
    name = "apt"
    executable = "apt-get"
    packages = {
        "Git": ("git",),
        "Node.js": ("nodejs", "npm"),
        "Python": ("python3", "python3-pip", "python3-venv"),
        "Docker": ("docker.io", "docker-compose"),
    }

    def install_commands(self, packages: Sequence[str]) -> List[List[str]]:
        return [
            [*_sudo(), "apt-get", "update", "-qq"],
            [*_sudo(), "apt-get", "install", "-y", "-qq", *packages],
        ]


class Dnf(PackageManager):
    name = "dnf"
    executable = "dnf"
    packages = {
        "Git": ("git",),
        "Node.js": ("nodejs", "npm"),
        "Python": ("python3", "python3-pip"),
        "Docker": ("moby-engine", "docker-compose"),
    }

    def install_commands(self, packages: Sequence[str]) -> List[List[str]]:
        return [[*_sudo(), "dnf", "install", "-y", "-q", *packages]]


class Pacman(PackageManager):
    name = "pacman"
    executable = "pacman"
    packages = {
        "Git": ("git",),
        "Node.js": ("nodejs", "npm"),
        "Python": ("python", "python-pip"),
        "Docker": ("docker", "docker-compose"),
    }

    def install_commands(self, packages: Sequence[str]) -> List[List[str]]:
        return [[*_sudo(), "pacman", "-Sy", "--noconfirm", "--needed", *packages]]


# ----------------------------------------------------------------------
# Detection
# ----------------------------------------------------------------------

def detect_linux_distro(os_release: Path = Path("/etc/os-release")) -> Optional[str]:
    """Parse /etc/os-release into a distro family: debian, fedora or arch."""
    if not os_release.exists():
        return None

    info: Dict[str, str] = {}
    with open(os_release) as f:
        for line in f:
            line = line.strip()
            if "=" in line:
                key, value = line.split("=", 1)
                info[key] = value.strip('"')

    distro_id = info.get("ID", "").lower()
    id_like = info.get("ID_LIKE", "").lower()

    if distro_id in DEBIAN_IDS:
        return "debian"
    if distro_id in FEDORA_IDS:
        return "fedora"
    if distro_id in ARCH_IDS:
        return "arch"
    if any(d in id_like for d in ("debian", "ubuntu")):
        return "debian"
    if any(d in id_like for d in ("fedora", "rhel")):
        return "fedora"
    if "arch" in id_like:
        return "arch"
    return None


_LINUX_MANAGERS = {
    "debian": Apt,
    "fedora": Dnf,
    "arch": Pacman,
}


def detect_package_manager(
    runner: CommandRunner,
    timeout: float = 900.0,
    platform_name: Optional[str] = None,
) -> Optional[PackageManager]:
    """Select the package manager for this host, or None if unsupported."""
    system = platform_name or platform.system()
    if system == "Darwin":
        return Homebrew(runner, timeout)
    if system == "Windows":
        return Chocolatey(runner, timeout)
    if system == "Linux":
        manager_cls = _LINUX_MANAGERS.get(detect_linux_distro() or "")
        return manager_cls(runner, timeout) if manager_cls else None
    return None
