from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest

from repod.config import Heuristic, Verdict
from repod.models import ClassificationResult, FileRecord, ProcessingStats, ScanEntry


@pytest.mark.unit
def test_scan_entry_derived_fields() -> None:
    nested = ScanEntry(path=Path("/r/src/pkg/mod.py"), rel="src/pkg/mod.py")
    top = ScanEntry(path=Path("/r/setup.py"), rel="setup.py")

    assert nested.name == "mod.py"
    assert nested.parent_rel == "src/pkg"
    assert not top.parent_rel


@pytest.mark.unit
def test_file_record_name_and_token_count() -> None:
    rec = FileRecord(rel="a/b.txt", content="one two", tokens=("1", "2"))

    assert rec.name == "b.txt"
    assert rec.token_count == 2


@pytest.mark.unit
def test_classification_result_is_text() -> None:
    assert ClassificationResult(verdict=Verdict.TEXT, heuristic=Heuristic.EXTENSION).is_text
    assert not ClassificationResult(verdict=Verdict.BINARY, heuristic=Heuristic.ERROR).is_text


@pytest.mark.unit
def test_stats_derived_values_guard_zero() -> None:
    stats = ProcessingStats()

    assert stats.average_tokens_per_file == 0.0
    assert stats.files_per_second == 0.0
    assert stats.total_time == 0.0


@pytest.mark.unit
def test_stats_concurrent_updates_are_not_lost() -> None:
    stats = ProcessingStats()

    def work(_: int) -> None:
        stats.record_scan(files=2, tokens=10, binaries=1, unreadable=0, seconds=0.5)
        stats.record_clone(0.25)

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(work, range(100)))

    assert stats.repo_count == 100
    assert stats.total_files == 200
    assert stats.total_tokens == 1000
    assert stats.binaries_skipped == 100
    assert stats.average_tokens_per_file == 5.0
    assert stats.files_per_second == pytest.approx(4.0)
    assert stats.total_time == pytest.approx(75.0)
