"""
Shared .env generation.

The file always has the same shape: one KEY=value line per setting, a
blank line between groups, and a commented placeholder for any optional
secret that was skipped. AUTOMEM_API_KEY is freshly generated on every
render.
"""

import uuid
from pathlib import Path
from typing import List, Optional

from automate_installer.config import Settings, settings as default_settings
from automate_installer.models import InstallConfig

ENV_FILENAME = ".env"

ANTHROPIC_PLACEHOLDER = "# ANTHROPIC_API_KEY=your-key-here  # Add your key from https://console.anthropic.com"
OPENAI_PLACEHOLDER = "# OPENAI_API_KEY="


def atomic_write(target: Path, content: str):
    """Write content to a file atomically via a temp file + rename."""
    tmp_path = target.with_suffix(target.suffix + ".tmp")
    tmp_path.write_text(content)
    tmp_path.replace(target)


def render_env_file(config: InstallConfig, settings: Optional[Settings] = None) -> str:
    settings = settings or default_settings

    groups: List[List[str]] = [
        [
            "# AutoMate Environment Configuration",
            "# Generated by AutoMate Installer",
        ],
        [
            "# Anthropic API",
            f"ANTHROPIC_API_KEY={config.anthropic_key}" if config.anthropic_enabled else ANTHROPIC_PLACEHOLDER,
        ],
        [
            "# OpenAI API (Optional)",
            f"OPENAI_API_KEY={config.openai_key}" if config.openai_enabled else OPENAI_PLACEHOLDER,
        ],
        [
            "# AutoMem Configuration",
            f"AUTOMEM_API_KEY={uuid.uuid4()}",
            f"AUTOMEM_ENDPOINT=http://localhost:{settings.automem_port}",
        ],
        [
            "# Service Ports",
            f"AUTOHUB_PORT={settings.autohub_port}",
            f"AUTOCHAT_PORT={settings.autochat_port}",
            f"AUTOMEM_PORT={settings.automem_port}",
            f"FALKORDB_PORT={settings.falkordb_port}",
            f"QDRANT_PORT={settings.qdrant_port}",
        ],
        [
            "# Owner Configuration",
            f"OWNER_NAME={settings.owner_name}",
        ],
    ]
    return "\n\n".join("\n".join(group) for group in groups) + "\n"


def write_env_file(config: InstallConfig, settings: Optional[Settings] = None) -> Path:
    """Render the .env file into the install directory and return its path."""
    env_path = config.install_path / ENV_FILENAME
    atomic_write(env_path, render_env_file(config, settings))
    return env_path
