"""Clone layer: read URL lists and clone remote repositories.

Remote access goes through the `git` executable. HTTPS clones are tried
anonymously first and retried with a GitHub token on an authentication
failure; SSH clones use an explicit private key.
"""

from __future__ import annotations

import csv
import os
import shutil
import subprocess  # noqa: S404
from pathlib import Path
from typing import TYPE_CHECKING, NoReturn
from urllib.parse import quote, urlsplit, urlunsplit

from repod.exceptions import CloneAuthError, GitCommandError, InvalidInputError, SshKeyNotFoundError
from repod.logging import logger

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

AUTH_MARKERS = (
    "authentication",
    "authorization",
    "could not read username",
    "terminal prompts disabled",
    "invalid username or password",
    "permission denied (publickey)",
    "could not read from remote repository",
)

HTTPS_HINT = (
    "For HTTPS repositories:\n"
    "1. Set your GitHub token using one of these methods:\n"
    "   - Run with --github-token YOUR_TOKEN\n"
    "   - Set the GITHUB_TOKEN environment variable\n"
    "2. Ensure your token has the 'repo' scope enabled"
)
SSH_HINT = (
    "For SSH repositories:\n"
    "1. Ensure your SSH key is set up correctly:\n"
    "   - Default location: ~/.ssh/id_rsa\n"
    "   - Or specify with --ssh-key /path/to/key\n"
    "2. Verify your SSH key is added to GitHub\n"
    "3. Test SSH access: ssh -T git@github.com"
)
NO_TOKEN_HINT = (
    "Repository requires authentication.\n"
    "Please provide a GitHub token using --github-token or set the GITHUB_TOKEN environment variable."
)


def is_remote_url(value: str) -> bool:
    return value.startswith(("https://", "git@"))


def extract_repo_name(url: str) -> str:
    """Repository name from a clone URL (`.../name.git` -> `name`)."""
    last = url.rstrip("/").split("/")[-1].split(":")[-1]
    name = last.removesuffix(".git")
    return name or "repo"


def read_urls_from_csv(path: Path) -> list[str]:
    """Read repository URLs from the first column of a CSV file.

    The first row is a header and is skipped.

    Raises:
        InvalidInputError: if the file does not exist
    """
    if not path.is_file():
        raise InvalidInputError(value=str(path), message="CSV file not found.")
    urls: list[str] = []
    with path.open(newline="", encoding="utf-8") as f:
        reader = csv.reader(f)
        next(reader, None)
        for row in reader:
            if row and row[0].strip():
                urls.append(row[0].strip())
    return urls


def with_token(url: str, token: str) -> str:
    """Embed a GitHub token as HTTPS credentials (token as user, `x-oauth-basic` as password)."""
    parts = urlsplit(url)
    netloc = f"{quote(token, safe='')}:x-oauth-basic@{parts.hostname or ''}"
    if parts.port:
        netloc += f":{parts.port}"
    return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))


def redact(text: str, secret: str | None) -> str:
    if not secret:
        return text
    return text.replace(quote(secret, safe=""), "***").replace(secret, "***")


def run_git(args: Sequence[str], *, env: Mapping[str, str] | None = None, secret: str | None = None) -> str:
    """Run a git command and return its stdout.

    Raises:
        GitCommandError: if git exits with a non-zero status
    """
    full_env = {**os.environ, "GIT_TERMINAL_PROMPT": "0", **(env or {})}
    out = subprocess.run(  # noqa: S603
        ["git", *args],  # noqa: S607
        text=True,
        capture_output=True,
        check=False,
        env=full_env,
    )
    if out.returncode != 0:
        raise GitCommandError(
            command=redact(" ".join(["git", *args]), secret),
            returncode=out.returncode,
            stdout=redact(out.stdout, secret),
            stderr=redact(out.stderr, secret),
        )
    return out.stdout


def is_auth_failure(error: GitCommandError) -> bool:
    text = f"{error.stderr}\n{error.stdout}".lower()
    return any(marker in text for marker in AUTH_MARKERS)


def raise_clone_error(url: str, error: GitCommandError) -> NoReturn:
    """Re-raise a failed clone, as an auth error with a hint when credentials were refused."""
    if is_auth_failure(error):
        hint = SSH_HINT if url.startswith("git@") else HTTPS_HINT
        raise CloneAuthError(url=url, hint=hint) from error
    raise error


def default_ssh_key() -> Path:
    return Path(os.environ.get("HOME", "~")).expanduser() / ".ssh" / "id_rsa"


def prepare_destination(dest: Path) -> None:
    """Clear a non-empty destination directory before cloning into it."""
    if dest.exists() and any(dest.iterdir()):
        logger.info("Directory exists and is not empty, removing", path=str(dest))
        shutil.rmtree(dest)


def cursor_cache_dir(url: str) -> Path:
    """Persistent clone location used when the clone is opened in an editor."""
    base = os.environ.get("XDG_CACHE_HOME") or str(Path.home() / ".cache")
    cache = Path(base) / "repod"
    cache.mkdir(parents=True, exist_ok=True)
    return cache / extract_repo_name(url)


def clone_repository(
    url: str,
    dest: Path,
    *,
    github_token: str | None = None,
    ssh_key: Path | None = None,
) -> Path:
    """Clone `url` into `dest`.

    Args:
        url (str): an `https://` or `git@` URL
        dest (Path): destination directory (cleared first if not empty)
        github_token (str | None, optional): token used when HTTPS needs authentication
        ssh_key (Path | None, optional): private key for SSH; defaults to ~/.ssh/id_rsa

    Raises:
        InvalidInputError: if the URL scheme is not supported
        SshKeyNotFoundError: if the SSH key does not exist
        CloneAuthError: if authentication fails
        GitCommandError: if git fails for another reason

    Returns:
        Path: the cloned work tree
    """
    prepare_destination(dest)
    if url.startswith("https://"):
        logger.info("Connecting", url=url)
        try:
            run_git(["clone", url, str(dest)])
        except GitCommandError as e:
            if not is_auth_failure(e):
                raise
            if not github_token:
                raise CloneAuthError(url=url, hint=NO_TOKEN_HINT) from e
            logger.info("Repository requires authentication, trying with token", url=url)
            prepare_destination(dest)
            try:
                run_git(["clone", with_token(url, github_token), str(dest)], secret=github_token)
            except GitCommandError as e2:
                raise_clone_error(url, e2)
    elif url.startswith("git@"):
        key = ssh_key or default_ssh_key()
        if not key.exists():
            raise SshKeyNotFoundError(key=key)
        logger.info("Setting up SSH connection", url=url, key=str(key))
        ssh_command = f'ssh -i "{key}" -o IdentitiesOnly=yes'
        try:
            run_git(["clone", url, str(dest)], env={"GIT_SSH_COMMAND": ssh_command})
        except GitCommandError as e:
            raise_clone_error(url, e)
    else:
        raise InvalidInputError(value=url, message="Invalid repository URL format; it must start with 'https://' or 'git@'.")
    logger.info("Repository cloned", url=url, path=str(dest))
    return dest
