from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from repod.classifier import ContentClassifier, is_binary_blob, looks_like_text, mime_verdict, non_text_ratio
from repod.config import Ecosystem, Heuristic, Verdict

if TYPE_CHECKING:
    from pathlib import Path

PNG_HEADER = b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR"


def _write(path: Path, data: bytes) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return path


@pytest.mark.unit
def test_non_text_ratio_and_threshold_boundaries() -> None:
    assert non_text_ratio(b"") == 0.0
    assert looks_like_text(b"")
    assert looks_like_text(b"a" * 750 + b"\x01" * 250)
    assert looks_like_text(b"a" * 700 + b"\x01" * 300)
    assert not looks_like_text(b"a" * 600 + b"\x01" * 400)
    assert looks_like_text(b"line one\n\tline two\r\n")


@pytest.mark.unit
def test_mime_verdict_families() -> None:
    assert mime_verdict("text/plain") is Verdict.TEXT
    assert mime_verdict("application/json") is Verdict.TEXT
    assert mime_verdict("image/png") is Verdict.BINARY
    assert mime_verdict("application/octet-stream") is Verdict.BINARY
    assert mime_verdict("application/zip") is None
    assert mime_verdict(None) is None


@pytest.mark.unit
def test_excluded_substring_wins_over_extension(tmp_path: Path) -> None:
    f = _write(tmp_path / "node_modules" / "x.js", b"module.exports = 1;\n")

    result = ContentClassifier().classify(f, "node_modules/x.js")

    assert result.verdict is Verdict.BINARY
    assert result.heuristic is Heuristic.EXCLUDED


@pytest.mark.unit
def test_readme_name_is_text_regardless_of_bytes(tmp_path: Path) -> None:
    f = _write(tmp_path / "README.weird", b"\x00\x01\x02\x03" * 100)

    result = ContentClassifier().classify(f, "README.weird")

    assert result.is_text
    assert result.heuristic is Heuristic.README


@pytest.mark.unit
def test_text_extension_allow_list(tmp_path: Path) -> None:
    f = _write(tmp_path / "notes.TXT", b"hello\n")

    result = ContentClassifier().classify(f, "notes.TXT")

    assert result.is_text
    assert result.heuristic is Heuristic.EXTENSION


@pytest.mark.unit
def test_ecosystem_filter_restricts_to_its_extensions_and_names(tmp_path: Path) -> None:
    classifier = ContentClassifier(ecosystems=[Ecosystem.PYTHON])
    py = _write(tmp_path / "app.py", b"print(1)\n")
    js = _write(tmp_path / "app.js", b"console.log(1)\n")
    pyproject = _write(tmp_path / "pyproject.toml", b"[project]\n")

    assert classifier.classify(py, "app.py").verdict is Verdict.TEXT
    assert classifier.classify(js, "app.js").verdict is Verdict.BINARY
    assert classifier.classify(js, "app.js").heuristic is Heuristic.ECOSYSTEM
    assert classifier.classify(pyproject, "pyproject.toml").verdict is Verdict.TEXT


@pytest.mark.unit
def test_signature_decides_for_unknown_extension(tmp_path: Path) -> None:
    f = _write(tmp_path / "picture.dat", PNG_HEADER + b"\x00" * 64)

    result = ContentClassifier().classify(f, "picture.dat")

    assert result.verdict is Verdict.BINARY
    assert result.heuristic is Heuristic.SIGNATURE


@pytest.mark.unit
@pytest.mark.parametrize(
    ("payload", "expected"),
    [
        (b"a" * 750 + b"\x01" * 250, Verdict.TEXT),
        (b"a" * 600 + b"\x01" * 400, Verdict.BINARY),
        (b"", Verdict.TEXT),
    ],
)
def test_byte_ratio_fallback(tmp_path: Path, payload: bytes, expected: Verdict) -> None:
    f = _write(tmp_path / "blob.unknownext", payload)

    result = ContentClassifier().classify(f, "blob.unknownext")

    assert result.verdict is expected
    assert result.heuristic is Heuristic.BYTE_RATIO


@pytest.mark.unit
def test_unreadable_file_is_binary(tmp_path: Path) -> None:
    result = ContentClassifier().classify(tmp_path / "missing.unknownext", "missing.unknownext")

    assert result.verdict is Verdict.BINARY
    assert result.heuristic is Heuristic.ERROR


@pytest.mark.unit
def test_blob_gate(tmp_path: Path) -> None:
    text = _write(tmp_path / "a.txt", b"plain text\n")
    early_null = _write(tmp_path / "b.txt", b"abc\x00def")
    late_null = _write(tmp_path / "c.txt", b"a" * 600 + b"\x00")
    png = _write(tmp_path / "d.txt", PNG_HEADER)

    assert not is_binary_blob(text)
    assert is_binary_blob(early_null)
    assert not is_binary_blob(late_null)
    assert is_binary_blob(png)
    assert is_binary_blob(tmp_path / "missing.txt")
