"""
repod: flatten a repository into a single text document for an LLM.

Overview
--------
The tool scans a source tree and writes one document made of:

- a directory map (box-drawing tree) of the files that survived filtering,
- the root README, first,
- every other text file, each preceded by a small `<file_info>` header.

The tree honours nested `.gitignore`/`.ignore` files, skips hidden entries and
a built-in list of dependency/build/VCS paths, and can be narrowed with
`--exclude`, `--only` and `--only-dir` globs or restricted to language
ecosystems with `--repo-types`. Token counts use tiktoken's `o200k_base`.

Input can be the current directory (default), a local directory, a git URL
(`https://` or `git@`) that is cloned first, or a CSV file listing URLs.

Usage
-----
Run `python -m repod.cli --help` for full options. Common examples:
    - Current directory into ./output:
        repod

    - A private repository, Python files only, to the clipboard:
        repod https://github.com/org/repo --repo-types py --copy

    - Markdown docs only, logging to a file:
        repod --only "*.md" --log-file repod.log
"""

from __future__ import annotations

import argparse
import shutil
import subprocess  # noqa: S404
import sys
import tempfile
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import ValidationError

from repod import __version__
from repod.aggregator import build_document
from repod.clone import clone_repository, cursor_cache_dir, extract_repo_name, is_remote_url, read_urls_from_csv
from repod.config import load_engine_config, parse_ecosystem
from repod.exceptions import InvalidInputError, RepodError
from repod.extractor import TiktokenTokenizer
from repod.logging import logger, setup_logging
from repod.models import ProcessingStats
from repod.patterns import PatternSet
from repod.scanner import scan_repository
from repod.settings import Settings, load_environment
from repod.sinks import copy_to_clipboard, output_file_name, write_document_file

if TYPE_CHECKING:
    from collections.abc import Sequence

    from repod.config import Ecosystem, EngineConfig
    from repod.extractor import Tokenizer


@dataclass(frozen=True)
class Target:
    """One repository to process: a remote URL to clone, or a local directory."""

    source: str
    local: Path | None = None

    @property
    def is_remote(self) -> bool:
        return self.local is None


def _ecosystem_arg(value: str) -> Ecosystem:
    try:
        return parse_ecosystem(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def _ecosystem_list(value: str) -> list[Ecosystem]:
    return [_ecosystem_arg(v) for v in value.split(",") if v.strip()]


def _positive_int(value: str) -> int:
    try:
        n = int(value)
    except ValueError as e:
        msg = f"invalid int value: {value!r}"
        raise argparse.ArgumentTypeError(msg) from e
    if n < 1:
        msg = f"must be at least 1, got {n}"
        raise argparse.ArgumentTypeError(msg)
    return n


def parse_args(argv: Sequence[str] | None = None) -> Settings:
    """Parse command line arguments into `Settings`."""
    p = argparse.ArgumentParser(
        prog="repod",
        description="Flatten a repository into one text document for LLM consumption.",
    )
    p.add_argument(
        "input",
        nargs="?",
        default="",
        help="Git repository URL, path to a CSV file of URLs, or a local directory (default: current directory).",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("-o", "--output-dir", type=Path, default=Path("output"), help="Output directory path.")
    p.add_argument(
        "-t",
        "--repo-types",
        type=_ecosystem_list,
        action="extend",
        default=[],
        help="Restrict files to ecosystems (rs, py, js, ts, go, java); comma separated or repeatable.",
    )
    p.add_argument("-p", "--github-token", type=str, default=None, help="GitHub token for private repositories.")
    p.add_argument("--ssh-key", type=Path, default=None, help="SSH key path (defaults to ~/.ssh/id_rsa).")
    p.add_argument("--open-cursor", action="store_true", help="Open in Cursor after cloning.")
    p.add_argument("--at", type=Path, default=None, help="Specific path to clone the repository to.")
    p.add_argument(
        "--copy",
        dest="to_clipboard",
        action="store_true",
        help="Copy output to clipboard instead of saving to file.",
    )
    p.add_argument("--exclude", action="append", default=[], help="Exclude glob (repeatable).")
    p.add_argument("--only", action="append", default=[], help="Only include files matching this glob (repeatable).")
    p.add_argument(
        "--only-dir",
        action="append",
        default=[],
        help="Only include files under this directory (repeatable).",
    )
    p.add_argument("--config", dest="config_file", type=Path, default=None, help="YAML engine configuration.")
    p.add_argument("--workers", type=_positive_int, default=None, help="Worker threads for file processing.")
    p.add_argument("--no-progress", action="store_true", help="Disable progress bars.")
    p.add_argument("--log-file", type=str, default="", help="Log file path.")
    args = p.parse_args(argv)
    try:
        return Settings(**vars(args))
    except ValidationError as e:
        p.error(str(e))


def resolve_targets(settings: Settings) -> list[Target]:
    """Turn the CLI input into the list of repositories to process.

    Raises:
        InvalidInputError: if the input is not a URL, an existing CSV file or a directory
    """
    value = settings.input.strip()
    if not value:
        return [Target(source=".", local=Path.cwd())]
    if is_remote_url(value):
        return [Target(source=value)]
    if value.lower().endswith(".csv"):
        return [Target(source=url) for url in read_urls_from_csv(Path(value))]
    path = Path(value).expanduser()
    if path.is_dir():
        return [Target(source=value, local=path)]
    raise InvalidInputError(value=value)


def build_tokenizer() -> Tokenizer:
    return TiktokenTokenizer()


def clone_destination(target: Target, settings: Settings, *, many: bool) -> Path | None:
    """Where a remote target is cloned; None means a temporary directory."""
    if settings.at is not None:
        return settings.at / extract_repo_name(target.source) if many else settings.at
    if settings.open_cursor:
        return cursor_cache_dir(target.source)
    return None


def launch_cursor(repo_dir: Path) -> None:
    try:
        subprocess.Popen(["cursor", str(repo_dir)])  # noqa: S603, S607
    except OSError as e:
        print(f"Failed to open Cursor: {e}")


def process_repository(
    target: Target,
    settings: Settings,
    *,
    config: EngineConfig,
    patterns: PatternSet,
    tokenizer: Tokenizer,
    stats: ProcessingStats,
    many: bool = False,
) -> Path | None:
    """Clone (if remote), scan and deliver one repository.

    Returns:
        Path | None: the written document, or None when copied to the clipboard
    """
    temp_dir: Path | None = None
    try:
        if target.local is not None:
            repo_dir = target.local.resolve()
            repo_name = repo_dir.name or "repo"
        else:
            dest = clone_destination(target, settings, many=many)
            if dest is None:
                temp_dir = Path(tempfile.mkdtemp(prefix="repod-"))
                dest = temp_dir / extract_repo_name(target.source)
            clone_start = time.perf_counter()
            repo_dir = clone_repository(
                target.source,
                dest,
                github_token=settings.github_token,
                ssh_key=settings.ssh_key,
            ).resolve()
            stats.record_clone(time.perf_counter() - clone_start)
            repo_name = extract_repo_name(target.source)

        result = scan_repository(
            repo_dir,
            patterns=patterns,
            tokenizer=tokenizer,
            config=config,
            ecosystems=settings.repo_types,
            fresh_clone=target.is_remote,
            workers=settings.workers,
            stats=stats,
            progress=not settings.no_progress,
        )
        written: Path | None = None
        if settings.to_clipboard:
            content = build_document(
                tree_text=result.tree_text,
                readme=result.readme,
                records=result.records,
                chunk_size=config.chunk_size,
            )
            copy_to_clipboard(content)
            print("Content copied to clipboard")
        else:
            out_dir = repo_dir if settings.open_cursor else settings.output_dir
            written = write_document_file(
                output_file_name(out_dir, repo_name),
                tree_text=result.tree_text,
                readme=result.readme,
                records=result.records,
                chunk_size=config.chunk_size,
            )
            print(f"Wrote {written} files={result.processed_files}")
        if settings.open_cursor:
            launch_cursor(repo_dir)
        return written
    finally:
        if temp_dir is not None:
            shutil.rmtree(temp_dir, ignore_errors=True)


def format_stats(stats: ProcessingStats) -> str:
    """Human-readable processing statistics."""
    lines = [
        "",
        "Processing Statistics:",
        f"Total repositories processed: {stats.repo_count}",
        f"Total files processed: {stats.total_files}",
        f"Total tokens: {stats.total_tokens}",
        f"Binary files skipped: {stats.binaries_skipped}",
        f"Unreadable files skipped: {stats.unreadable_skipped}",
        f"Repository clone time: {stats.clone_time:.2f} seconds",
        f"Content processing time: {stats.processing_time:.2f} seconds",
        f"Total time: {stats.total_time:.2f} seconds",
        f"Average tokens per file: {stats.average_tokens_per_file:.2f}",
        f"Processing speed: {stats.files_per_second:.2f} files/second",
    ]
    return "\n".join(lines)


def main(argv: Sequence[str] | None = None) -> int:
    load_environment()
    settings = parse_args(argv)
    if settings.log_file:
        setup_logging(settings.log_file)

    stats = ProcessingStats()
    try:
        config = load_engine_config(settings.config_file)
        patterns = PatternSet.compile(
            exclude=settings.exclude,
            include=settings.only,
            include_dirs=settings.only_dir,
        )
        targets = resolve_targets(settings)
        if not settings.to_clipboard and not settings.open_cursor:
            settings.output_dir.mkdir(parents=True, exist_ok=True)
        tokenizer = build_tokenizer()

        def run(target: Target) -> Path | None:
            return process_repository(
                target,
                settings,
                config=config,
                patterns=patterns,
                tokenizer=tokenizer,
                stats=stats,
                many=len(targets) > 1,
            )

        if len(targets) > 1:
            with ThreadPoolExecutor(max_workers=len(targets), thread_name_prefix="repod-repo") as pool:
                list(pool.map(run, targets))
        else:
            for target in targets:
                run(target)
    except RepodError as e:
        logger.error("repod failed", error=str(e))
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(format_stats(stats))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
