from pathlib import Path

import pytest
from pydantic import ValidationError

from repod.config import Ecosystem
from repod.settings import Settings


@pytest.mark.unit
def test_settings_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("GITHUB_TOKEN", raising=False)

    settings = Settings()

    assert not settings.input
    assert settings.output_dir == Path("output")
    assert settings.repo_types == []
    assert settings.github_token is None
    assert settings.to_clipboard is False
    assert settings.workers is None


@pytest.mark.unit
def test_github_token_falls_back_to_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GITHUB_TOKEN", "env-token")

    assert Settings().github_token == "env-token"
    assert Settings(github_token=None).github_token == "env-token"
    assert Settings(github_token="flag-token").github_token == "flag-token"


@pytest.mark.unit
def test_repo_types_parsed_and_deduplicated() -> None:
    settings = Settings(repo_types=["py", "python", Ecosystem.RUST, "rs"])

    assert settings.repo_types == [Ecosystem.PYTHON, Ecosystem.RUST]


@pytest.mark.unit
def test_invalid_values_rejected() -> None:
    with pytest.raises(ValidationError):
        Settings(repo_types=["cobol"])
    with pytest.raises(ValidationError):
        Settings(workers=0)
