from __future__ import annotations

import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

import pyperclip

from repod.aggregator import write_document
from repod.exceptions import OutputError
from repod.logging import logger

if TYPE_CHECKING:
    from collections.abc import Sequence

    from repod.models import FileRecord


def _read_umask() -> int:
    mask = os.umask(0)
    os.umask(mask)
    return mask


# Read once at import: os.umask can only be queried by setting it.
UMASK = _read_umask()


def output_file_mode() -> int:
    """Mode a plain `open(..., "w")` would give a new file."""
    return 0o666 & ~UMASK


def timestamp() -> str:
    return datetime.now().astimezone().strftime("%Y%m%d_%H%M%S")


def output_file_name(directory: Path, repo_name: str) -> Path:
    """`<directory>/<repo_name>_<YYYYmmdd_HHMMSS>.txt`."""
    return directory / f"{repo_name}_{timestamp()}.txt"


def write_document_file(
    target: Path,
    *,
    tree_text: str,
    readme: FileRecord | None,
    records: Sequence[FileRecord],
    chunk_size: int,
) -> Path:
    """Stream the document into `target`.

    The document goes to a temporary sibling first and is renamed into place
    once complete, so a failure never leaves a truncated file at `target`.

    Raises:
        OutputError: if the file cannot be written
    """
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{target.name}.", suffix=".part", dir=target.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as out:
            write_document(out, tree_text=tree_text, readme=readme, records=records, chunk_size=chunk_size)
        Path(tmp_name).chmod(output_file_mode())
        Path(tmp_name).replace(target)
    except OSError as e:
        Path(tmp_name).unlink(missing_ok=True)
        raise OutputError(target=str(target), reason=str(e)) from e
    logger.info("Wrote output", path=str(target))
    return target


def copy_to_clipboard(content: str) -> None:
    """Place the document on the system clipboard.

    Raises:
        OutputError: if no clipboard mechanism is available
    """
    try:
        pyperclip.copy(content)
    except pyperclip.PyperclipException as e:
        raise OutputError(target="clipboard", reason=str(e)) from e
    logger.info("Copied output to clipboard", chars=len(content))
