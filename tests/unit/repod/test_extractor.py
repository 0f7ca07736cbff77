from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from repod import extractor
from repod.extractor import TiktokenTokenizer, extract_file, read_file_content

if TYPE_CHECKING:
    from pathlib import Path

    from pytest_mock import MockerFixture


@pytest.mark.unit
def test_read_small_file(tmp_path: Path) -> None:
    f = tmp_path / "a.txt"
    f.write_text("héllo\nwörld\n", encoding="utf-8")

    assert read_file_content(f) == "héllo\nwörld\n"


@pytest.mark.unit
def test_large_file_is_mapped_and_decoded_identically(tmp_path: Path) -> None:
    f = tmp_path / "big.txt"
    f.write_bytes("line ✓\n".encode() * 50)

    assert read_file_content(f, large_file_threshold=16) == read_file_content(f)


@pytest.mark.unit
@pytest.mark.parametrize("threshold", [0, 1024])
def test_invalid_utf8_is_replaced(tmp_path: Path, threshold: int) -> None:
    f = tmp_path / "latin.txt"
    f.write_bytes(b"caf\xe9 ok")

    assert read_file_content(f, large_file_threshold=threshold) == "caf\ufffd ok"


@pytest.mark.unit
def test_empty_file_reads_as_empty_string(tmp_path: Path) -> None:
    f = tmp_path / "empty.txt"
    f.write_bytes(b"")

    assert read_file_content(f, large_file_threshold=0) == ""


@pytest.mark.unit
def test_extract_file_builds_record(tmp_path: Path, tokenizer) -> None:
    f = tmp_path / "pkg" / "mod.py"
    f.parent.mkdir()
    f.write_text("def run():\n    return 1\n", encoding="utf-8")

    record = extract_file(f, "pkg/mod.py", tokenizer)

    assert record.rel == "pkg/mod.py"
    assert record.name == "mod.py"
    assert record.content == "def run():\n    return 1\n"
    assert record.token_count == 4


@pytest.mark.unit
def test_extract_file_propagates_os_errors(tmp_path: Path, tokenizer) -> None:
    with pytest.raises(OSError):
        extract_file(tmp_path / "missing.py", "missing.py", tokenizer)


@pytest.mark.unit
def test_tiktoken_encoding_loaded_once(mocker: MockerFixture) -> None:
    encoding = mocker.Mock()
    encoding.encode.return_value = [101, 202]
    get_encoding = mocker.patch.object(extractor.tiktoken, "get_encoding", return_value=encoding)

    tok = TiktokenTokenizer()

    assert get_encoding.call_count == 0
    assert tok.encode("hello") == ["101", "202"]
    assert tok.encode("again") == ["101", "202"]
    get_encoding.assert_called_once_with("o200k_base")
    encoding.encode.assert_called_with("again", allowed_special="all")


@pytest.mark.unit
def test_mapped_read_decodes_multibyte_and_invalid_sequences(tmp_path: Path) -> None:
    data = "naïve ✓ 日本\n".encode() * 20 + b"\xff tail"
    f = tmp_path / "mixed.txt"
    f.write_bytes(data)

    assert read_file_content(f, large_file_threshold=0) == data.decode("utf-8", errors="replace")
