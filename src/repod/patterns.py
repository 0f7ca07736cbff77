from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from pathspec.patterns import GitWildMatchPattern

from repod.logging import logger

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence


def normalize_globs(globs: Iterable[str]) -> list[str]:
    """Normalize a sequence of path glob patterns.

    Strip whitespace, drop empty entries and replace backslashes with forward
    slashes.

    Args:
        globs (Iterable[str]): the glob patterns to normalize

    Returns:
        list[str]: the normalized glob patterns
    """
    out: list[str] = []
    for g in globs:
        g2 = (g or "").strip()
        if not g2:
            continue
        out.append(g2.replace("\\", "/"))
    return out


def expand_pattern(pattern: str) -> str:
    """Anchor a pattern the way the matcher expects.

    A pattern without a separator matches at any depth (`*.md` -> `**/*.md`);
    a pattern with a separator is matched against the relative path as is.
    """
    negated = pattern.startswith("!")
    body = pattern[1:] if negated else pattern
    if "/" not in body:
        body = f"**/{body}"
    return f"!{body}" if negated else body


def expand_dir(directory: str) -> str | None:
    """Turn a bare directory name into an "everything below it" pattern."""
    d = directory.strip().replace("\\", "/").strip("/")
    return f"{d}/**" if d else None


def compile_patterns(raw: Iterable[str]) -> tuple[list[GitWildMatchPattern], list[str]]:
    """Compile raw pattern strings, dropping the malformed ones.

    Args:
        raw (Iterable[str]): already expanded pattern strings

    Returns:
        tuple[list[GitWildMatchPattern], list[str]]: compiled patterns and the
            raw strings that were rejected
    """
    compiled: list[GitWildMatchPattern] = []
    dropped: list[str] = []
    for pat in raw:
        try:
            p = GitWildMatchPattern(pat)
        except (ValueError, re.error) as e:
            logger.warning("Ignoring malformed pattern", pattern=pat, error=str(e))
            dropped.append(pat)
            continue
        if p.include is None:
            continue
        compiled.append(p)
    return compiled, dropped


def _last_match(patterns: Sequence[GitWildMatchPattern], candidates: Sequence[str]) -> bool | None:
    result: bool | None = None
    for p in patterns:
        if any(p.match_file(c) is not None for c in candidates):
            result = bool(p.include)
    return result


@dataclass(frozen=True)
class PatternSet:
    """Two independently evaluated glob collections.

    `exclude` removes a path wherever it matches; `include`, when non-empty,
    is the allow-list a file must match to survive. Patterns are evaluated
    against both the relative path and the bare file name. A `!` prefix
    re-admits a path matched by an earlier pattern (last match wins).
    """

    exclude: tuple[GitWildMatchPattern, ...] = ()
    include: tuple[GitWildMatchPattern, ...] = ()
    dropped: tuple[str, ...] = field(default=())

    @classmethod
    def compile(
        cls,
        *,
        exclude: Iterable[str] = (),
        include: Iterable[str] = (),
        include_dirs: Iterable[str] = (),
    ) -> PatternSet:
        """Build a pattern set from user supplied strings.

        Args:
            exclude (Iterable[str]): exclude globs
            include (Iterable[str]): include ("only") globs
            include_dirs (Iterable[str]): bare directory names whose whole subtree is included

        Returns:
            PatternSet: the compiled set; malformed patterns are listed in `dropped`
        """
        exc, exc_dropped = compile_patterns(expand_pattern(p) for p in normalize_globs(exclude))
        inc_raw = [d for d in (expand_dir(x) for x in include_dirs) if d]
        inc_raw.extend(expand_pattern(p) for p in normalize_globs(include))
        inc, inc_dropped = compile_patterns(inc_raw)
        return cls(exclude=tuple(exc), include=tuple(inc), dropped=(*exc_dropped, *inc_dropped))

    @property
    def has_include(self) -> bool:
        return bool(self.include)

    @staticmethod
    def _candidates(rel: str, name: str, *, is_dir: bool) -> tuple[str, ...]:
        if is_dir:
            return (f"{rel}/", f"{name}/")
        return (rel, name)

    def is_excluded(self, rel: str, name: str, *, is_dir: bool = False) -> bool:
        """Whether the exclude collection removes this path."""
        if not self.exclude:
            return False
        return bool(_last_match(self.exclude, self._candidates(rel, name, is_dir=is_dir)))

    def is_included(self, rel: str, name: str) -> bool:
        """Whether a file passes the include stage (always True without includes)."""
        if not self.include:
            return True
        return bool(_last_match(self.include, (rel, name)))
