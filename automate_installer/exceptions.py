"""Installer exceptions."""

from typing import Optional, Sequence


class InstallerError(Exception):
    """Base exception for installer operations."""

    pass


class CommandFailed(InstallerError):
    """Raised when an external command exits with a non-zero status."""

    def __init__(self, command: Sequence[str], returncode: int, stderr: str = ""):
        self.command = list(command)
        self.returncode = returncode
        self.stderr = stderr
        detail = stderr.strip().splitlines()[-1] if stderr.strip() else f"exit code {returncode}"
        super().__init__(f"`{' '.join(self.command)}` failed: {detail}")


class CommandTimeout(InstallerError, TimeoutError):
    """Raised when an external command ran past its timeout and was killed."""

    def __init__(self, command: Sequence[str], timeout_seconds: float):
        self.command = list(command)
        self.timeout_seconds = timeout_seconds
        super().__init__(f"`{' '.join(self.command)}` timed out after {timeout_seconds:g}s")


class DependencyInstallFailure(InstallerError):
    """Raised when the package manager could not install missing dependencies."""

    def __init__(self, message: str, packages: Optional[Sequence[str]] = None):
        super().__init__(message)
        self.packages = list(packages or [])


class ReadinessTimeout(InstallerError, TimeoutError):
    """Raised when a service did not become reachable in time."""

    def __init__(self, endpoint: str, timeout_seconds: float):
        super().__init__(f"Service at {endpoint} did not become ready within {timeout_seconds:g}s")
        self.endpoint = endpoint
        self.timeout_seconds = timeout_seconds


class StepFailure(InstallerError):
    """Raised when an installation step fails; the run is aborted."""

    def __init__(self, step_name: str, cause: BaseException):
        super().__init__(f"{step_name} failed: {str(cause) or type(cause).__name__}")
        self.step_name = step_name
        self.cause = cause
