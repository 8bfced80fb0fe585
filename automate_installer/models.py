"""
Data models shared by the prober, installer and orchestrator.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Sentinel the presentation layer sends for a key the user chose to skip
SKIP = "SKIP"


def _is_set(key: Optional[str]) -> bool:
    return bool(key) and key != SKIP


class CapabilityCheck(BaseModel):
    """One line of the host capability checklist."""
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Check identifier, e.g. 'RAM' or 'Git'")
    passed: bool = Field(..., description="Whether the requirement is met")
    required: bool = Field(default=True, description="Whether a failure blocks installation")
    message: str = Field(default="", description="Human-readable detail")


class InstallConfig(BaseModel):
    """Caller-supplied configuration for one installation run."""
    model_config = ConfigDict(frozen=True)

    install_path: Path = Field(..., description="Absolute directory the stack is installed into")
    anthropic_key: Optional[str] = Field(None, description="Anthropic API key, None or 'SKIP' to skip")
    openai_key: Optional[str] = Field(None, description="OpenAI API key, None or 'SKIP' to skip")

    @field_validator("install_path")
    @classmethod
    def _require_absolute(cls, value: Path) -> Path:
        value = value.expanduser()
        if not value.is_absolute():
            raise ValueError(f"install_path must be absolute, got {value}")
        return value

    @property
    def anthropic_enabled(self) -> bool:
        return _is_set(self.anthropic_key)

    @property
    def openai_enabled(self) -> bool:
        return _is_set(self.openai_key)


class ProgressEvent(BaseModel):
    """Progress notification emitted by the orchestrator."""
    model_config = ConfigDict(frozen=True)

    percent: int = Field(..., ge=0, le=100)
    step_index: int = Field(..., ge=1, description="1-based position of the step")
    message: str = Field(..., description="Name of the step about to run")
    completed_step_names: Tuple[str, ...] = Field(default_factory=tuple)


@dataclass(frozen=True)
class InstallStep:
    """A named, zero-argument installation action."""

    name: str
    action: Callable[[], Awaitable[None]]
