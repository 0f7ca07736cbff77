from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class RepodError(Exception):
    """Base exception for errors in the repod package."""


@dataclass(frozen=True)
class ScanRootError(RepodError):
    """Raised when the scan root does not exist or is not a directory."""

    root: Path
    message: str = "The scan root does not exist or is not a readable directory."

    def __str__(self) -> str:
        return f"{self.message} ({self.root})"


@dataclass(frozen=True)
class GitCommandError(RepodError):
    """Raised when a git command fails."""

    command: str
    returncode: int
    stdout: str
    stderr: str

    def __str__(self) -> str:
        detail = self.stderr.strip() or self.stdout.strip()
        return f"`{self.command}` exited with {self.returncode}: {detail}"


@dataclass(frozen=True)
class CloneAuthError(RepodError):
    """Raised when a clone fails for lack of valid credentials."""

    url: str
    hint: str

    def __str__(self) -> str:
        return f"Authentication failed for {self.url}.\n{self.hint}"


@dataclass(frozen=True)
class SshKeyNotFoundError(RepodError):
    """Raised when the SSH key used for a `git@` clone is missing."""

    key: Path

    def __str__(self) -> str:
        return (
            f"SSH key not found at {self.key}.\n"
            "Please ensure your SSH key exists or specify a different path with --ssh-key"
        )


@dataclass(frozen=True)
class InvalidInputError(RepodError):
    """Raised when the CLI input is neither a URL, a CSV file, nor a directory."""

    value: str
    message: str = "Input must be a local directory, a CSV file or a git URL (https:// or git@)."

    def __str__(self) -> str:
        return f"{self.message} Got: {self.value}"


@dataclass(frozen=True)
class EngineConfigError(RepodError):
    """Raised when an engine configuration override cannot be loaded."""

    path: Path
    reason: str

    def __str__(self) -> str:
        return f"Invalid engine configuration {self.path}: {self.reason}"


@dataclass(frozen=True)
class OutputError(RepodError):
    """Raised when the rendered document cannot be delivered to its sink."""

    target: str
    reason: str

    def __str__(self) -> str:
        return f"Failed to write output to {self.target}: {self.reason}"
