from __future__ import annotations

import mmap
import threading
from typing import TYPE_CHECKING, Protocol

import tiktoken

from repod.logging import logger
from repod.models import FileRecord

if TYPE_CHECKING:
    from pathlib import Path

DEFAULT_ENCODING = "o200k_base"
LARGE_FILE_THRESHOLD = 1024 * 1024


class Tokenizer(Protocol):
    """Anything able to split text into opaque token strings."""

    def encode(self, text: str) -> list[str]: ...


class TiktokenTokenizer:
    """tiktoken-backed tokenizer; the encoding is loaded on first use."""

    def __init__(self, encoding: str = DEFAULT_ENCODING) -> None:
        self.encoding_name = encoding
        self._encoding: tiktoken.Encoding | None = None
        self._lock = threading.Lock()

    @property
    def encoding(self) -> tiktoken.Encoding:
        with self._lock:
            if self._encoding is None:
                self._encoding = tiktoken.get_encoding(self.encoding_name)
            return self._encoding

    def encode(self, text: str) -> list[str]:
        return [str(t) for t in self.encoding.encode(text, allowed_special="all")]


def read_file_content(path: Path, large_file_threshold: int = LARGE_FILE_THRESHOLD) -> str:
    """Read and leniently decode a file as UTF-8.

    Files above `large_file_threshold` are memory-mapped instead of read
    through a buffer; both paths decode identically, replacing invalid byte
    sequences.

    Args:
        path (Path): the file to read
        large_file_threshold (int, optional): size in bytes above which the file is mapped

    Raises:
        OSError: if the file cannot be opened or mapped

    Returns:
        str: the decoded content
    """
    with path.open("rb") as f:
        size = path.stat().st_size
        if size > large_file_threshold:
            logger.info("Processing large file", path=str(path), megabytes=round(size / 1024 / 1024, 2))
            with mmap.mmap(f.fileno(), 0, access=mmap.ACCESS_READ) as mm:
                return str(mm, "utf-8", "replace")
        return f.read().decode("utf-8", errors="replace")


def extract_file(
    path: Path,
    rel: str,
    tokenizer: Tokenizer,
    large_file_threshold: int = LARGE_FILE_THRESHOLD,
) -> FileRecord:
    """Read, decode and tokenize one accepted file.

    Raises:
        OSError: if the file cannot be read
    """
    content = read_file_content(path, large_file_threshold)
    return FileRecord(rel=rel, content=content, tokens=tuple(tokenizer.encode(content)))
