"""Installer configuration."""

import getpass
import sys
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings

PROJECT_ROOT = Path(__file__).resolve().parent.parent


def _default_owner() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return "owner"


class Settings(BaseSettings):
    """Installer settings loaded from AUTOMATE_* environment variables."""

    # Where the stack is installed
    install_path: Path = Path.home() / "AutoMate"

    # Pre-bundled repository copies, preferred over a network clone
    bundled_repos_dir: Path = PROJECT_ROOT / "bundled-repos"

    # Repositories
    autochat_repo_url: str = "https://github.com/stevew00dy/autochat.git"
    autohub_repo_url: str = "https://github.com/verygoodplugins/autohub.git"
    automem_repo_url: str = "https://github.com/verygoodplugins/automem.git"

    # Service ports (written to .env and used for readiness checks)
    autochat_port: int = 3000
    autohub_port: int = 3001
    automem_port: int = 8001
    falkordb_port: int = 6379
    qdrant_port: int = 6333

    # Readiness polling
    readiness_timeout: float = 30.0  # seconds per service
    readiness_interval: float = 1.0  # fixed sleep between probes
    probe_timeout: float = 1.0  # seconds per probe request
    database_settle_seconds: float = 5.0

    # External commands
    command_timeout: float = 900.0  # npm/pip/package-manager installs can be slow
    python_executable: str = sys.executable

    # Host requirements
    min_ram_gb: int = 8
    min_free_disk_gb: int = 5

    # .env contents
    owner_name: str = Field(default_factory=_default_owner)

    # Logging
    log_level: str = "warning"  # progress is printed; logs are for diagnostics

    class Config:
        env_prefix = "AUTOMATE_"
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
