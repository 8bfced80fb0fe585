"""Repository acquisition: bundled copy first, git clone as the fallback."""

import asyncio
import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from automate_installer.config import Settings, settings as default_settings
from automate_installer.process import CommandRunner

logger = logging.getLogger(__name__)

CLONE_TIMEOUT = 600  # seconds


@dataclass(frozen=True)
class RepositorySpec:
    name: str  # directory name under the install path
    label: str
    url: str


def default_repositories(settings: Optional[Settings] = None) -> List[RepositorySpec]:
    settings = settings or default_settings
    return [
        RepositorySpec("autochat", "AutoChat", settings.autochat_repo_url),
        RepositorySpec("autohub", "AutoHub", settings.autohub_repo_url),
        RepositorySpec("automem", "AutoMem", settings.automem_repo_url),
    ]


def copy_tree(source: Path, dest: Path) -> None:
    """Copy *source* over *dest*, keeping symlinks as links.

    node_modules/.bin entries are relative links; copying their targets breaks
    relative requires. Links left by an earlier copy are replaced.
    """
    if dest.is_dir():
        for root, dirs, files in os.walk(source):
            for entry in (*dirs, *files):
                src_entry = Path(root, entry)
                dest_entry = dest / src_entry.relative_to(source)
                if src_entry.is_symlink() and dest_entry.is_symlink():
                    dest_entry.unlink()
    shutil.copytree(source, dest, symlinks=True, dirs_exist_ok=True)


class RepositoryAcquirer:
    """Puts a repository into the install directory."""

    def __init__(self, runner: CommandRunner, bundled_dir: Path):
        self.runner = runner
        self.bundled_dir = bundled_dir

    def bundled_path(self, repo: RepositorySpec) -> Path:
        return self.bundled_dir / repo.name

    async def acquire(self, repo: RepositorySpec, install_path: Path) -> Path:
        """Copy the bundled tree if present, reuse an existing checkout, otherwise clone.

        Returns the checkout path.
        """
        dest = install_path / repo.name
        source = self.bundled_path(repo)

        if source.is_dir():
            logger.info("Using bundled %s from %s", repo.label, source)
            await asyncio.to_thread(copy_tree, source, dest)
        elif (dest / ".git").exists():
            logger.info("%s already cloned at %s, reusing it", repo.label, dest)
        else:
            logger.info("Cloning %s from %s", repo.label, repo.url)
            await self.runner.check(["git", "clone", repo.url, str(dest)], timeout=CLONE_TIMEOUT)
        return dest
