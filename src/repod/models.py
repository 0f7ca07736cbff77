from __future__ import annotations

import threading
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath

from pydantic import BaseModel, ConfigDict, Field, computed_field

from repod.config import Heuristic, Verdict


class ScanEntry(BaseModel):
    """One filesystem object discovered by the walker.

    Attributes:
        path: Absolute path on disk.
        rel: Path relative to the scan root, POSIX separators.
        is_dir: Whether the entry is a directory (otherwise a file).
    """

    model_config = ConfigDict(frozen=True)

    path: Path = Field(..., description="Absolute path")
    rel: str = Field(..., description="Path relative to the scan root")
    is_dir: bool = Field(default=False, description="Directory flag")

    @computed_field
    @property
    def name(self) -> str:
        """Final path component."""
        return PurePosixPath(self.rel).name

    @computed_field
    @property
    def parent_rel(self) -> str:
        """Relative path of the containing directory ("" for the scan root)."""
        parent = str(PurePosixPath(self.rel).parent)
        return "" if parent == "." else parent


class ClassificationResult(BaseModel):
    """Text/binary verdict for one file and the rule that produced it."""

    model_config = ConfigDict(frozen=True)

    verdict: Verdict
    heuristic: Heuristic

    @property
    def is_text(self) -> bool:
        return self.verdict is Verdict.TEXT


class FileRecord(BaseModel):
    """An accepted file: its relative path, decoded content and tokens.

    Attributes:
        rel: File path relative to the scan root.
        content: Leniently decoded file content.
        tokens: Token sequence produced by the tokenizer (opaque strings).
    """

    model_config = ConfigDict(frozen=True)

    rel: str = Field(..., description="File path relative to the scan root")
    content: str = Field(..., description="Decoded file content")
    tokens: tuple[str, ...] = Field(default=(), description="Token strings, used for counting")

    @computed_field
    @property
    def name(self) -> str:
        """File name derived from the relative path."""
        return PurePosixPath(self.rel).name

    @property
    def token_count(self) -> int:
        return len(self.tokens)


@dataclass
class ProcessingStats:
    """Process-wide counters shared by every repository being processed.

    Updates go through `record_*` methods which take the single lock; values
    are read once all work is finished.
    """

    repo_count: int = 0
    total_files: int = 0
    total_tokens: int = 0
    binaries_skipped: int = 0
    unreadable_skipped: int = 0
    clone_time: float = 0.0
    processing_time: float = 0.0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def record_clone(self, seconds: float) -> None:
        with self._lock:
            self.clone_time += seconds

    def record_scan(
        self,
        *,
        files: int,
        tokens: int,
        binaries: int,
        unreadable: int,
        seconds: float,
    ) -> None:
        with self._lock:
            self.repo_count += 1
            self.total_files += files
            self.total_tokens += tokens
            self.binaries_skipped += binaries
            self.unreadable_skipped += unreadable
            self.processing_time += seconds

    @property
    def total_time(self) -> float:
        return self.clone_time + self.processing_time

    @property
    def average_tokens_per_file(self) -> float:
        return self.total_tokens / self.total_files if self.total_files else 0.0

    @property
    def files_per_second(self) -> float:
        return self.total_files / self.processing_time if self.processing_time else 0.0
