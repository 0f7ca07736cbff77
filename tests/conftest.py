from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping
    from pathlib import Path


class FakeTokenizer:
    """Whitespace tokenizer; keeps tests away from encoding downloads."""

    def encode(self, text: str) -> list[str]:
        return text.split()


@pytest.fixture
def tokenizer() -> FakeTokenizer:
    return FakeTokenizer()


@pytest.fixture(autouse=True)
def _no_global_excludes(monkeypatch: pytest.MonkeyPatch) -> None:
    # The developer's own core.excludesFile must not leak into scans.
    monkeypatch.setattr("repod.walker.global_excludes_file", lambda: None)


@pytest.fixture
def make_tree() -> Callable[[Path, Mapping[str, str | bytes]], Path]:
    """Create files under a root from a `{relative path: content}` mapping."""

    def _make(root: Path, files: Mapping[str, str | bytes]) -> Path:
        for rel, content in files.items():
            target = root / rel
            target.parent.mkdir(parents=True, exist_ok=True)
            if isinstance(content, bytes):
                target.write_bytes(content)
            else:
                target.write_text(content, encoding="utf-8")
        return root

    return _make
