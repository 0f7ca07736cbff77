from __future__ import annotations

import os
from pathlib import Path

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

from repod.config import Ecosystem, parse_ecosystem

ENV_FILE = find_dotenv(usecwd=True)


def load_environment() -> None:
    """Load a `.env` file found from the working directory, without overriding the real environment."""
    if ENV_FILE:
        load_dotenv(ENV_FILE, override=False)


class Settings(BaseModel):
    """Configuration settings for the repod command line."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    input: str = Field(default="", description="Git URL, CSV file of URLs, or local directory.")
    output_dir: Path = Field(default=Path("output"), description="Output directory.")
    repo_types: list[Ecosystem] = Field(default_factory=list, description="Restrict to these ecosystems.")
    github_token: str | None = Field(
        default_factory=lambda: os.environ.get("GITHUB_TOKEN") or None,
        description="GitHub token for private repositories.",
    )
    ssh_key: Path | None = Field(default=None, description="SSH private key path.")
    open_cursor: bool = Field(default=False, description="Open in Cursor after cloning.")
    at: Path | None = Field(default=None, description="Clone destination.")
    to_clipboard: bool = Field(default=False, description="Copy output to the clipboard.")

    exclude: list[str] = Field(default_factory=list, description="Exclude glob.")
    only: list[str] = Field(default_factory=list, description="Include-only glob.")
    only_dir: list[str] = Field(default_factory=list, description="Include-only directory.")

    config_file: Path | None = Field(default=None, description="YAML engine configuration override.")
    workers: int | None = Field(default=None, ge=1, description="Worker threads.")
    no_progress: bool = Field(default=False, description="Disable progress bars.")
    log_file: str = Field(default="", description="Log file path.")

    @field_validator("repo_types", mode="before")
    @classmethod
    def _parse_repo_types(cls, value: list[str | Ecosystem] | None) -> list[Ecosystem]:
        out: list[Ecosystem] = []
        for item in value or []:
            eco = item if isinstance(item, Ecosystem) else parse_ecosystem(str(item))
            if eco not in out:
                out.append(eco)
        return out

    @field_validator("github_token", mode="after")
    @classmethod
    def _token_from_env(cls, value: str | None) -> str | None:
        return value or os.environ.get("GITHUB_TOKEN") or None
