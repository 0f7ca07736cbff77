from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import filetype

from repod.config import EngineConfig, Heuristic, Verdict
from repod.logging import logger
from repod.models import ClassificationResult

if TYPE_CHECKING:
    from collections.abc import Iterable

    from repod.config import Ecosystem

SIGNATURE_BYTES = 8192
TEXT_MIMES = ("application/json", "application/xml")
BINARY_MIME_PREFIXES = (
    "image/",
    "audio/",
    "video/",
    "application/octet-stream",
    "application/x-executable",
)
_TEXT_BYTES = frozenset({9, 10, 13, *range(32, 127)})


def read_head(path: Path, nbytes: int) -> bytes:
    """Read at most `nbytes` from the start of a file."""
    with path.open("rb") as f:
        return f.read(nbytes)


def non_text_ratio(sample: bytes) -> float:
    """Fraction of bytes that are neither printable ASCII nor tab/LF/CR."""
    if not sample:
        return 0.0
    non_text = sum(1 for b in sample if b not in _TEXT_BYTES)
    return non_text / len(sample)


def looks_like_text(sample: bytes, threshold: float = 0.30) -> bool:
    """Byte-ratio heuristic: text when the non-text fraction is at most `threshold`.

    An empty sample is text.
    """
    return non_text_ratio(sample) <= threshold


def sniff_mime(sample: bytes) -> str | None:
    """MIME type recognised from the file signature, if any."""
    kind = filetype.guess(sample)
    return kind.mime if kind is not None else None


def mime_verdict(mime: str | None) -> Verdict | None:
    """Map a sniffed MIME type to a verdict, or None when the family is not decisive."""
    if mime is None:
        return None
    if mime.startswith("text/") or mime in TEXT_MIMES:
        return Verdict.TEXT
    if mime.startswith(BINARY_MIME_PREFIXES):
        return Verdict.BINARY
    return None


def extension_of(name: str) -> str:
    return Path(name).suffix.lstrip(".").lower()


class ContentClassifier:
    """Decide whether a candidate file is text or binary.

    The first rule that applies wins:

    1. the path contains a built-in excluded substring -> binary;
    2. the file name contains "readme" -> text;
    3. an ecosystem filter is active -> text only for its extensions/names;
    4. the extension is on the text allow-list -> text;
    5. the file signature names a textual or binary family;
    6. the byte ratio of the first `classify_sample_bytes` bytes.

    Any error while inspecting the file yields binary.
    """

    def __init__(self, config: EngineConfig | None = None, ecosystems: Iterable[Ecosystem] = ()) -> None:
        self.config = config or EngineConfig()
        self.ecosystems = tuple(ecosystems)
        self.allowed = self.config.extensions_for(self.ecosystems) if self.ecosystems else None

    def classify(self, path: Path, rel: str | None = None) -> ClassificationResult:
        """Classify `path`; `rel` is the path used for the substring check (defaults to `path`)."""
        try:
            return self._classify(path, rel if rel is not None else path.as_posix())
        except Exception as e:  # noqa: BLE001
            logger.debug("Classification failed", path=str(path), error=str(e))
            return ClassificationResult(verdict=Verdict.BINARY, heuristic=Heuristic.ERROR)

    def _classify(self, path: Path, rel: str) -> ClassificationResult:
        if any(sub in rel for sub in self.config.excluded_substrings):
            return ClassificationResult(verdict=Verdict.BINARY, heuristic=Heuristic.EXCLUDED)

        name = path.name
        if "readme" in name.lower():
            return ClassificationResult(verdict=Verdict.TEXT, heuristic=Heuristic.README)

        ext = extension_of(name)
        if self.allowed is not None:
            ok = (ext and ext in self.allowed) or name.lower() in self.allowed
            return ClassificationResult(
                verdict=Verdict.TEXT if ok else Verdict.BINARY,
                heuristic=Heuristic.ECOSYSTEM,
            )

        if ext in self.config.text_extensions:
            return ClassificationResult(verdict=Verdict.TEXT, heuristic=Heuristic.EXTENSION)

        head = read_head(path, max(SIGNATURE_BYTES, self.config.classify_sample_bytes))
        by_mime = mime_verdict(sniff_mime(head))
        if by_mime is not None:
            return ClassificationResult(verdict=by_mime, heuristic=Heuristic.SIGNATURE)

        sample = head[: self.config.classify_sample_bytes]
        verdict = Verdict.TEXT if looks_like_text(sample, self.config.text_ratio_threshold) else Verdict.BINARY
        return ClassificationResult(verdict=verdict, heuristic=Heuristic.BYTE_RATIO)


def is_binary_blob(path: Path, sample_bytes: int = 512) -> bool:
    """Independent binary gate used before extraction.

    A recognised signature that is not `text/*` is binary; otherwise a null
    byte in the first `sample_bytes` bytes is. An unreadable file counts as
    binary.

    Args:
        path (Path): the file to inspect
        sample_bytes (int, optional): prefix scanned for null bytes. Defaults to 512.

    Returns:
        bool: True if the file must not be extracted
    """
    try:
        head = read_head(path, max(SIGNATURE_BYTES, sample_bytes))
    except OSError as e:
        logger.warning("Skipping unreadable entry", path=str(path), error=str(e))
        return True
    mime = sniff_mime(head)
    if mime is not None:
        return not mime.startswith("text/")
    return b"\x00" in head[:sample_bytes]
