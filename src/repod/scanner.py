from __future__ import annotations

import os
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import StrEnum, auto
from typing import TYPE_CHECKING

from tqdm import tqdm

from repod.aggregator import find_readme
from repod.classifier import ContentClassifier, is_binary_blob
from repod.config import EngineConfig
from repod.exceptions import ScanRootError
from repod.extractor import extract_file
from repod.logging import logger
from repod.tree import tree_from_entries
from repod.walker import IgnoreAwareWalker

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

    from repod.config import Ecosystem
    from repod.extractor import Tokenizer
    from repod.models import FileRecord, ProcessingStats, ScanEntry
    from repod.patterns import PatternSet
    from repod.tree import TreeNode


class Outcome(StrEnum):
    """What happened to one candidate file."""

    EXTRACTED = auto()
    BINARY = auto()
    UNREADABLE = auto()


@dataclass(frozen=True)
class CandidateResult:
    outcome: Outcome
    record: FileRecord | None = None


@dataclass(frozen=True)
class ScanResult:
    """Everything a scan produces for the output layer."""

    tree: TreeNode
    readme: FileRecord | None
    records: tuple[FileRecord, ...]
    total_files: int
    binaries_skipped: int
    unreadable_skipped: int
    elapsed: float

    @property
    def tree_text(self) -> str:
        return self.tree.render()

    @property
    def total_tokens(self) -> int:
        readme_tokens = self.readme.token_count if self.readme is not None else 0
        return readme_tokens + sum(r.token_count for r in self.records)

    @property
    def processed_files(self) -> int:
        return len(self.records) + (1 if self.readme is not None else 0)


def process_candidate(
    entry: ScanEntry,
    *,
    classifier: ContentClassifier,
    tokenizer: Tokenizer,
    config: EngineConfig,
) -> CandidateResult:
    """Classify, gate and extract one file; never raises for I/O problems."""
    if not classifier.classify(entry.path, entry.rel).is_text:
        return CandidateResult(Outcome.BINARY)
    if is_binary_blob(entry.path, config.blob_sample_bytes):
        return CandidateResult(Outcome.BINARY)
    try:
        record = extract_file(entry.path, entry.rel, tokenizer, config.large_file_threshold)
    except OSError as e:
        logger.warning("Skipping unreadable entry", path=str(entry.path), error=str(e))
        return CandidateResult(Outcome.UNREADABLE)
    return CandidateResult(Outcome.EXTRACTED, record)


def ensure_scan_root(root: Path) -> None:
    """Fail fast when the root cannot be walked at all.

    Raises:
        ScanRootError: if `root` is missing, not a directory, or unreadable
    """
    if not root.is_dir() or not os.access(root, os.R_OK | os.X_OK):
        raise ScanRootError(root=root)


def scan_repository(
    root: Path,
    *,
    patterns: PatternSet,
    tokenizer: Tokenizer,
    config: EngineConfig | None = None,
    ecosystems: Iterable[Ecosystem] = (),
    fresh_clone: bool = False,
    workers: int | None = None,
    stats: ProcessingStats | None = None,
    progress: bool = True,
) -> ScanResult:
    """Run one full pass of the engine over `root`.

    The walker runs twice: once to count files for the progress bar, once to
    collect entries. The collected entries feed both the tree and the file
    pipeline, so no file is extracted that the tree left out. Records are
    sorted by relative path.

    Args:
        root (Path): the scan root
        patterns (PatternSet): exclude and include patterns
        tokenizer (Tokenizer): tokenizer used to count tokens
        config (EngineConfig | None, optional): engine tables; built-in defaults when None
        ecosystems (Iterable[Ecosystem], optional): restrict text files to these ecosystems
        fresh_clone (bool, optional): ignore host-level ignore configuration. Defaults to False.
        workers (int | None, optional): worker threads; executor default when None
        stats (ProcessingStats | None, optional): shared counters to update
        progress (bool, optional): show a progress bar on stderr. Defaults to True.

    Raises:
        ScanRootError: if `root` cannot be scanned

    Returns:
        ScanResult: the tree, README record, sorted records and tallies
    """
    config = config or EngineConfig()
    ensure_scan_root(root)
    start = time.perf_counter()
    logger.info("Scanning repository structure", root=str(root), fresh_clone=fresh_clone)

    walker = IgnoreAwareWalker(root, patterns=patterns, config=config, fresh_clone=fresh_clone)
    total = walker.count_files()
    entries = list(walker.walk())
    logger.info("Found files", root=str(root), files=total)

    tree = tree_from_entries(root.name or str(root), entries, patterns=patterns)
    candidates = {e.rel: e for e in entries if not e.is_dir and patterns.is_included(e.rel, e.name)}

    unreadable = 0
    readme: FileRecord | None = None
    readme_entry = find_readme(candidates, config.readme_names)
    if readme_entry is not None:
        del candidates[readme_entry.rel]
        try:
            readme = extract_file(readme_entry.path, readme_entry.rel, tokenizer, config.large_file_threshold)
        except OSError as e:
            logger.warning("Skipping unreadable entry", path=str(readme_entry.path), error=str(e))
            unreadable += 1

    classifier = ContentClassifier(config, ecosystems)

    def work(entry: ScanEntry) -> CandidateResult:
        return process_candidate(entry, classifier=classifier, tokenizer=tokenizer, config=config)

    records: list[FileRecord] = []
    binaries = 0
    with (
        ThreadPoolExecutor(max_workers=workers, thread_name_prefix="repod-scan") as pool,
        tqdm(total=len(candidates), unit="file", desc="Processing", disable=not progress, leave=False) as bar,
    ):
        for result in pool.map(work, candidates.values()):
            bar.update(1)
            if result.outcome is Outcome.EXTRACTED and result.record is not None:
                records.append(result.record)
            elif result.outcome is Outcome.BINARY:
                binaries += 1
            else:
                unreadable += 1

    records.sort(key=lambda r: r.rel)
    result = ScanResult(
        tree=tree,
        readme=readme,
        records=tuple(records),
        total_files=total,
        binaries_skipped=binaries,
        unreadable_skipped=unreadable,
        elapsed=time.perf_counter() - start,
    )
    if stats is not None:
        stats.record_scan(
            files=result.processed_files,
            tokens=result.total_tokens,
            binaries=binaries,
            unreadable=unreadable,
            seconds=result.elapsed,
        )
    logger.info(
        "Processed files",
        root=str(root),
        files=result.processed_files,
        tokens=result.total_tokens,
        binaries_skipped=binaries,
    )
    return result
