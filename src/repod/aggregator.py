from __future__ import annotations

import io
from itertools import batched
from typing import TYPE_CHECKING, TextIO

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from repod.models import FileRecord, ScanEntry

CHUNK_SIZE = 100


def find_readme(candidates: Mapping[str, ScanEntry], readme_names: Sequence[str]) -> ScanEntry | None:
    """Pick the root README among the candidate files.

    Args:
        candidates (Mapping[str, ScanEntry]): candidate files keyed by relative path
            (already filtered by the walker and the include patterns)
        readme_names (Sequence[str]): README names in priority order

    Returns:
        ScanEntry | None: the first candidate named like a README, if any
    """
    for name in readme_names:
        entry = candidates.get(name)
        if entry is not None and not entry.is_dir:
            return entry
    return None


def write_file_blocks(records: Iterable[FileRecord], out: TextIO) -> None:
    """Write one block per file: info header, content, blank line."""
    for rec in records:
        out.write("<file_info>\n")
        out.write(f"path: {rec.rel}\n")
        out.write(f"name: {rec.name}\n")
        out.write("</file_info>\n")
        out.write(f"{rec.content}\n\n")


def write_document(
    out: TextIO,
    *,
    tree_text: str,
    readme: FileRecord | None,
    records: Sequence[FileRecord],
    chunk_size: int = CHUNK_SIZE,
) -> None:
    """Write the whole document: tree block, README, then the remaining files.

    Files are written `chunk_size` at a time; chunking bounds buffer growth
    and has no effect on the content.

    Args:
        out (TextIO): destination stream
        tree_text (str): the rendered directory tree
        readme (FileRecord | None): the README record, always written first
        records (Sequence[FileRecord]): the other files, in output order
        chunk_size (int, optional): files per write. Defaults to 100.
    """
    out.write("<directory_structure>\n")
    out.write(f"{tree_text}\n")
    out.write("</directory_structure>\n\n")

    if readme is not None:
        write_file_blocks([readme], out)

    for chunk in batched(records, chunk_size):
        buf = io.StringIO()
        write_file_blocks(chunk, buf)
        out.write(buf.getvalue())


def build_document(
    *,
    tree_text: str,
    readme: FileRecord | None,
    records: Sequence[FileRecord],
    chunk_size: int = CHUNK_SIZE,
) -> str:
    """Render the document to a string."""
    out = io.StringIO()
    write_document(out, tree_text=tree_text, readme=readme, records=records, chunk_size=chunk_size)
    return out.getvalue()
