from __future__ import annotations

from enum import StrEnum, auto
from pathlib import Path
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from repod.exceptions import EngineConfigError

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping


class Ecosystem(StrEnum):
    """Language ecosystems a scan can be restricted to with `--repo-types`."""

    RUST = auto()
    PYTHON = auto()
    JAVASCRIPT = auto()
    GO = auto()
    JAVA = auto()


class Verdict(StrEnum):
    """Outcome of content classification."""

    TEXT = auto()
    BINARY = auto()


class Heuristic(StrEnum):
    """The classification rule that produced a verdict."""

    EXCLUDED = auto()
    README = auto()
    ECOSYSTEM = auto()
    EXTENSION = auto()
    SIGNATURE = auto()
    BYTE_RATIO = auto()
    ERROR = auto()


ECOSYSTEM_ALIASES: Mapping[str, Ecosystem] = MappingProxyType(
    {
        "rs": Ecosystem.RUST,
        "rust": Ecosystem.RUST,
        "py": Ecosystem.PYTHON,
        "python": Ecosystem.PYTHON,
        "js": Ecosystem.JAVASCRIPT,
        "javascript": Ecosystem.JAVASCRIPT,
        "ts": Ecosystem.JAVASCRIPT,
        "typescript": Ecosystem.JAVASCRIPT,
        "go": Ecosystem.GO,
        "golang": Ecosystem.GO,
        "java": Ecosystem.JAVA,
    },
)

TEXT_EXTENSIONS: tuple[str, ...] = (
    # programming languages
    "rs", "py", "js", "ts", "java", "c", "cpp", "h", "hpp", "cs", "go", "rb",
    "php", "scala", "kt", "kts", "swift", "m", "mm", "r", "pl", "pm", "t",
    "sh", "bash", "zsh", "fish",
    # web
    "html", "htm", "css", "scss", "sass", "less", "jsx", "tsx", "vue", "svelte",
    # data / config
    "json", "yaml", "yml", "toml", "xml", "csv", "ini", "conf", "config", "properties",
    # documentation
    "md", "markdown", "rst", "txt", "asciidoc", "adoc", "tex",
    # other
    "sql", "graphql", "proto", "cmake", "make", "dockerfile", "editorconfig", "gitignore",
)  # fmt: skip

EXCLUDED_SUBSTRINGS: tuple[str, ...] = (
    ".git/",
    "node_modules/",
    "target/",
    "build/",
    "dist/",
    "bin/",
    ".tiktoken",
    ".bin",
    ".pack",
    ".idx",
    ".cache",
    "package-lock.json",
    "yarn.lock",
    "Cargo.lock",
    "venv/",
    ".venv/",
    "env/",
    "__pycache__/",
    ".pytest_cache/",
    ".svn/",
    ".hg/",
    ".DS_Store",
    ".idea/",
    ".vs/",
    ".vscode/",
    ".gradle/",
    "out/",
    "coverage/",
    "tmp/",
)

ECOSYSTEM_EXTENSIONS: Mapping[Ecosystem, tuple[str, ...]] = MappingProxyType(
    {
        Ecosystem.RUST: ("rs", "toml"),
        Ecosystem.PYTHON: ("py", "pyi", "pyx", "pxd", "requirements.txt", "setup.py", "pyproject.toml"),
        Ecosystem.JAVASCRIPT: ("js", "jsx", "ts", "tsx", "json", "package.json", "tsconfig.json", "jsconfig.json"),
        Ecosystem.GO: ("go", "mod", "sum"),
        Ecosystem.JAVA: ("java", "gradle", "maven", "pom.xml", "build.gradle"),
    },
)

README_NAMES: tuple[str, ...] = ("README.md", "README.txt", "README", "Readme.md", "readme.md")


def parse_ecosystem(value: str) -> Ecosystem:
    """Resolve a user supplied ecosystem selector (`py`, `golang`, ...).

    Args:
        value (str): the selector, case-insensitive

    Raises:
        ValueError: if the selector names no known ecosystem

    Returns:
        Ecosystem: the matching ecosystem
    """
    try:
        return ECOSYSTEM_ALIASES[value.strip().lower()]
    except KeyError:
        msg = f"Unknown repository type: {value}"
        raise ValueError(msg) from None


class EngineConfig(BaseModel):
    """Immutable tables and thresholds driving the scanning engine.

    Every scan receives one instance explicitly, so tests (or a `--config`
    YAML file) can substitute alternate tables without touching module state.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    excluded_substrings: tuple[str, ...] = Field(
        default=EXCLUDED_SUBSTRINGS,
        description="Path substrings that exclude an entry anywhere in the pipeline.",
    )
    text_extensions: frozenset[str] = Field(
        default=frozenset(TEXT_EXTENSIONS),
        description="Extensions (without dot, lower case) always classified as text.",
    )
    ecosystem_extensions: dict[Ecosystem, frozenset[str]] = Field(
        default_factory=lambda: {eco: frozenset(exts) for eco, exts in ECOSYSTEM_EXTENSIONS.items()},
        description="Extensions or file names accepted when an ecosystem filter is active.",
    )
    readme_names: tuple[str, ...] = Field(
        default=README_NAMES,
        description="Root README candidates, in priority order.",
    )
    large_file_threshold: int = Field(default=1024 * 1024, ge=0, description="Above this size files are mmapped.")
    classify_sample_bytes: int = Field(default=8192, gt=0, description="Prefix size for the byte-ratio check.")
    blob_sample_bytes: int = Field(default=512, gt=0, description="Prefix size for the null-byte gate.")
    text_ratio_threshold: float = Field(default=0.30, ge=0.0, le=1.0, description="Max non-text byte ratio.")
    chunk_size: int = Field(default=100, gt=0, description="Files per incremental write.")

    @field_validator("text_extensions", mode="before")
    @classmethod
    def _normalize_extensions(cls, value: Iterable[str]) -> frozenset[str]:
        return frozenset(str(ext).strip().lstrip(".").lower() for ext in value if str(ext).strip())

    @field_validator("ecosystem_extensions", mode="before")
    @classmethod
    def _normalize_ecosystems(cls, value: Mapping[str, Iterable[str]]) -> dict[Ecosystem, frozenset[str]]:
        return {parse_ecosystem(str(key)): frozenset(str(ext).lower() for ext in exts) for key, exts in value.items()}

    def extensions_for(self, ecosystems: Iterable[Ecosystem]) -> frozenset[str]:
        """Union of the extension lists of the selected ecosystems."""
        out: set[str] = set()
        for eco in ecosystems:
            out |= self.ecosystem_extensions.get(eco, frozenset())
        return frozenset(out)


def load_engine_config(path: Path | None) -> EngineConfig:
    """Load an `EngineConfig`, optionally overridden by a YAML document.

    Keys absent from the YAML file keep their built-in defaults.

    Args:
        path (Path | None): YAML file to read, or None for the built-in tables

    Raises:
        EngineConfigError: if the file cannot be read, is not a mapping, or fails validation

    Returns:
        EngineConfig: the validated configuration
    """
    if path is None:
        return EngineConfig()
    try:
        data: Any = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as e:
        raise EngineConfigError(path=Path(path), reason=str(e)) from e
    if not isinstance(data, dict):
        raise EngineConfigError(path=Path(path), reason="top-level YAML value must be a mapping")
    try:
        return EngineConfig.model_validate(data)
    except (ValidationError, ValueError) as e:
        raise EngineConfigError(path=Path(path), reason=str(e)) from e
