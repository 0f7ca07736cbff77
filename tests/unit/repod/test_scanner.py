from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from repod import scanner
from repod.classifier import ContentClassifier
from repod.config import Ecosystem, EngineConfig
from repod.exceptions import ScanRootError
from repod.models import ProcessingStats, ScanEntry
from repod.patterns import PatternSet
from repod.scanner import Outcome, process_candidate, scan_repository

if TYPE_CHECKING:
    from pathlib import Path

    from pytest_mock import MockerFixture

PNG = b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR" + b"\x00" * 32


@pytest.fixture
def repo(tmp_path: Path, make_tree) -> Path:
    return make_tree(
        tmp_path / "proj",
        {
            "README.md": "# Title",
            "src/app.py": "print('hi')",
            "src/util.py": "x = 1",
            "docs/README.md": "nested readme",
            "assets/logo.png": PNG,
            "blob.dat": b"\x00" * 128,
            ".git/config": "[core]\n",
        },
    )


def _scan(root: Path, tokenizer, **kwargs) -> scanner.ScanResult:
    kwargs.setdefault("patterns", PatternSet())
    return scan_repository(root, tokenizer=tokenizer, fresh_clone=True, progress=False, **kwargs)


def _tree_files(result: scanner.ScanResult) -> set[str]:
    return {rel for rel, is_file in result.tree.iter_paths() if is_file}


@pytest.mark.unit
def test_scan_extracts_readme_first_and_skips_binaries(repo: Path, tokenizer) -> None:
    result = _scan(repo, tokenizer)

    assert result.readme is not None
    assert result.readme.rel == "README.md"
    assert [r.rel for r in result.records] == ["docs/README.md", "src/app.py", "src/util.py"]
    assert result.binaries_skipped == 2
    assert result.unreadable_skipped == 0
    assert result.processed_files == 4
    assert result.total_tokens == 2 + 2 + 1 + 3
    assert result.tree_text.startswith("proj\n")


@pytest.mark.unit
def test_every_extracted_file_appears_in_tree(repo: Path, tokenizer) -> None:
    result = _scan(repo, tokenizer)

    extracted = {r.rel for r in result.records} | {result.readme.rel}
    assert extracted <= _tree_files(result)
    assert "assets/logo.png" in _tree_files(result)


@pytest.mark.unit
def test_include_patterns_can_drop_the_readme(repo: Path, tokenizer) -> None:
    result = _scan(repo, tokenizer, patterns=PatternSet.compile(include=["*.py"]))

    assert result.readme is None
    assert [r.rel for r in result.records] == ["src/app.py", "src/util.py"]
    assert _tree_files(result) == {"src/app.py", "src/util.py"}


@pytest.mark.unit
def test_include_patterns_keep_matching_readme(repo: Path, tokenizer) -> None:
    result = _scan(repo, tokenizer, patterns=PatternSet.compile(include=["*.md"]))

    assert result.readme is not None
    assert [r.rel for r in result.records] == ["docs/README.md"]


@pytest.mark.unit
def test_ecosystem_filter_still_emits_readme(repo: Path, tokenizer) -> None:
    result = _scan(repo, tokenizer, ecosystems=[Ecosystem.JAVA])

    assert result.readme is not None
    assert [r.rel for r in result.records] == ["docs/README.md"]
    assert result.binaries_skipped == 4


@pytest.mark.unit
def test_scan_updates_shared_stats(repo: Path, tokenizer) -> None:
    stats = ProcessingStats()

    _scan(repo, tokenizer, stats=stats, workers=2)
    _scan(repo, tokenizer, stats=stats, workers=1)

    assert stats.repo_count == 2
    assert stats.total_files == 8
    assert stats.binaries_skipped == 4
    assert stats.total_tokens == 16
    assert stats.processing_time > 0


@pytest.mark.unit
def test_scan_rejects_missing_root(tmp_path: Path, tokenizer) -> None:
    with pytest.raises(ScanRootError):
        _scan(tmp_path / "missing", tokenizer)


@pytest.mark.unit
def test_process_candidate_counts_unreadable(tmp_path: Path, tokenizer, mocker: MockerFixture) -> None:
    f = tmp_path / "a.py"
    f.write_text("x = 1\n", encoding="utf-8")
    mocker.patch.object(scanner, "extract_file", side_effect=PermissionError("denied"))
    config = EngineConfig()

    result = process_candidate(
        ScanEntry(path=f, rel="a.py"),
        classifier=ContentClassifier(config),
        tokenizer=tokenizer,
        config=config,
    )

    assert result.outcome is Outcome.UNREADABLE
    assert result.record is None


@pytest.mark.unit
def test_process_candidate_rejects_text_extension_with_null_bytes(tmp_path: Path, tokenizer) -> None:
    f = tmp_path / "fake.txt"
    f.write_bytes(b"abc\x00\x00def")
    config = EngineConfig()

    result = process_candidate(
        ScanEntry(path=f, rel="fake.txt"),
        classifier=ContentClassifier(config),
        tokenizer=tokenizer,
        config=config,
    )

    assert result.outcome is Outcome.BINARY


@pytest.mark.unit
def test_rescanning_unchanged_tree_is_identical(repo: Path, tokenizer) -> None:
    first = _scan(repo, tokenizer, workers=4)
    second = _scan(repo, tokenizer, workers=4)

    assert first.tree_text == second.tree_text
    assert first.records == second.records
