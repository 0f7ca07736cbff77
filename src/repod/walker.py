"""Ignore-aware directory walker.

The walker yields every file and directory under a scan root that survives,
in order: the built-in exclusion substrings, the hidden-entry policy, the
user's exclude patterns and the stacked ignore files (`.gitignore`,
`.ignore`) met while descending. Rejected directories are pruned so nothing
beneath them is visited.
"""

from __future__ import annotations

import os
import re
import shutil
import subprocess  # noqa: S404
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from pathspec.patterns import GitWildMatchPattern

from repod.logging import logger
from repod.models import ScanEntry

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence

    from repod.config import EngineConfig
    from repod.patterns import PatternSet

IGNORE_FILE_NAMES = (".gitignore", ".ignore")


def relpath(path: Path, root: Path) -> str:
    """Send the relative path of path from root.

    Args:
        path (Path): the path to "relativise"
        root (Path): the root to relativise from

    Returns:
        str: the relative path from root to path, with POSIX separators.
            If path is not under root, returns the original path as a string.
    """
    try:
        return str(path.relative_to(root)).replace("\\", "/")
    except ValueError:
        return str(path)


@dataclass(frozen=True)
class IgnoreRules:
    """Patterns read from one ignore file, relative to the directory `base`."""

    base: Path
    patterns: tuple[GitWildMatchPattern, ...]

    def verdict(self, path: Path, *, is_dir: bool) -> bool | None:
        """Last matching pattern's decision (True = ignored), or None if no pattern matched."""
        rel = relpath(path, self.base)
        if is_dir:
            rel += "/"
        result: bool | None = None
        for p in self.patterns:
            if p.match_file(rel) is not None:
                result = bool(p.include)
        return result


def load_ignore_file(path: Path, base: Path) -> IgnoreRules | None:
    """Parse a gitignore-style file.

    Unreadable files and malformed lines are skipped.

    Args:
        path (Path): the ignore file
        base (Path): the directory its patterns are relative to

    Returns:
        IgnoreRules | None: the parsed rules, or None when the file yields no pattern
    """
    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        logger.debug("Skipping unreadable ignore file", path=str(path), error=str(e))
        return None
    patterns: list[GitWildMatchPattern] = []
    for line in text.splitlines():
        try:
            p = GitWildMatchPattern(line)
        except (ValueError, re.error):
            logger.debug("Skipping malformed ignore line", path=str(path), line=line)
            continue
        if p.include is not None:
            patterns.append(p)
    if not patterns:
        return None
    return IgnoreRules(base=base, patterns=tuple(patterns))


def global_excludes_file() -> Path | None:
    """Locate git's global excludes file (`core.excludesFile` or the XDG default)."""
    if shutil.which("git") is not None:
        try:
            out = subprocess.run(
                ["git", "config", "--global", "--get", "core.excludesFile"],  # noqa: S607
                text=True,
                capture_output=True,
                check=False,
            )
        except OSError:
            out = None
        if out is not None and out.returncode == 0 and out.stdout.strip():
            return Path(out.stdout.strip()).expanduser()
    xdg = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    candidate = Path(xdg) / "git" / "ignore"
    return candidate if candidate.is_file() else None


def host_ignore_rules(root: Path) -> list[IgnoreRules]:
    """Ignore rules that come from outside the scanned tree.

    These are the global excludes file and the ignore files of every parent
    directory up to the enclosing git work tree (outermost first).
    """
    rules: list[IgnoreRules] = []
    global_file = global_excludes_file()
    if global_file is not None:
        loaded = load_ignore_file(global_file, root)
        if loaded is not None:
            rules.append(loaded)

    parents: list[Path] = []
    if not (root / ".git").exists():
        for parent in root.parents:
            parents.append(parent)
            if (parent / ".git").exists():
                break
    for parent in reversed(parents):
        for name in IGNORE_FILE_NAMES:
            loaded = load_ignore_file(parent / name, parent)
            if loaded is not None:
                rules.append(loaded)
    return rules


def is_ignored(rules: Sequence[IgnoreRules], path: Path, *, is_dir: bool) -> bool:
    """Apply stacked ignore rules; deeper files override outer ones."""
    result = False
    for r in rules:
        v = r.verdict(path, is_dir=is_dir)
        if v is not None:
            result = v
    return result


class IgnoreAwareWalker:
    """Enumerate the entries of a scan root that survive the exclusion rules.

    Each call to `walk` is a fresh, independent pass; two passes over an
    unchanged tree yield the same entries.
    """

    def __init__(
        self,
        root: Path,
        *,
        patterns: PatternSet,
        config: EngineConfig,
        fresh_clone: bool = False,
    ) -> None:
        self.root = Path(os.path.abspath(root))
        self.patterns = patterns
        self.config = config
        self.fresh_clone = fresh_clone

    def is_builtin_excluded(self, rel: str, *, is_dir: bool = False) -> bool:
        """Substring test of the relative path against the built-in exclusion list."""
        probe = f"{rel}/" if is_dir else rel
        return any(sub in probe for sub in self.config.excluded_substrings)

    def _base_rules(self) -> list[IgnoreRules]:
        rules: list[IgnoreRules] = []
        if not self.fresh_clone:
            rules.extend(host_ignore_rules(self.root))
        info_exclude = load_ignore_file(self.root / ".git" / "info" / "exclude", self.root)
        if info_exclude is not None:
            rules.append(info_exclude)
        return rules

    def _rejected(self, path: Path, rel: str, name: str, rules: Sequence[IgnoreRules], *, is_dir: bool) -> bool:
        if self.is_builtin_excluded(rel, is_dir=is_dir):
            return True
        if name.startswith("."):
            return True
        if self.patterns.is_excluded(rel, name, is_dir=is_dir):
            return True
        return is_ignored(rules, path, is_dir=is_dir)

    def walk(self) -> Iterator[ScanEntry]:
        """Yield surviving entries (files and directories), root excluded.

        Entries that fail with an OS error are dropped.
        """
        rules_by_dir: dict[str, list[IgnoreRules]] = {str(self.root): self._base_rules()}

        def on_error(err: OSError) -> None:
            logger.warning("Skipping unreadable entry", path=str(err.filename), error=err.strerror)

        for dirpath, dirnames, filenames in os.walk(self.root, onerror=on_error):
            here = Path(dirpath)
            rules = list(rules_by_dir.pop(dirpath, []))
            for ignore_name in IGNORE_FILE_NAMES:
                loaded = load_ignore_file(here / ignore_name, here)
                if loaded is not None:
                    rules.append(loaded)

            kept_dirs: list[str] = []
            for d in sorted(dirnames):
                p = here / d
                if os.path.islink(p):
                    continue
                rel = relpath(p, self.root)
                if self._rejected(p, rel, d, rules, is_dir=True):
                    continue
                kept_dirs.append(d)
                rules_by_dir[os.path.join(dirpath, d)] = rules
                yield ScanEntry(path=p, rel=rel, is_dir=True)
            dirnames[:] = kept_dirs

            for f in sorted(filenames):
                p = here / f
                rel = relpath(p, self.root)
                if self._rejected(p, rel, f, rules, is_dir=False):
                    continue
                try:
                    if not p.is_file():
                        continue
                except OSError as e:
                    logger.warning("Skipping unreadable entry", path=str(p), error=str(e))
                    continue
                yield ScanEntry(path=p, rel=rel, is_dir=False)

    def files(self) -> Iterator[ScanEntry]:
        """Yield only the surviving files."""
        return (e for e in self.walk() if not e.is_dir)

    def count_files(self) -> int:
        """Count surviving files with a separate pass (same rules as `walk`)."""
        return sum(1 for _ in self.files())
