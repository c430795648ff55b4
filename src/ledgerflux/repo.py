"""Keeps the local copy of the ledger repository up to date."""

from pathlib import Path
from urllib.parse import quote, urlsplit, urlunsplit

from .config import ReportConfig
from .errors import ExternalProcessError, SyncError
from .ledger import run_command


def authenticated_url(url: str, username: str, token: str) -> str:
    """Embed basic auth credentials into an https clone URL."""
    parts = urlsplit(url)
    if parts.scheme not in ("http", "https") or not username:
        return url
    host = parts.hostname or ""
    if parts.port:
        host = f"{host}:{parts.port}"
    netloc = f"{quote(username, safe='')}:{quote(token, safe='')}@{host}"
    return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))


def _git(action: str, args: list[str], timeout: float) -> str:
    try:
        return run_command(["git"] + args, timeout=timeout)
    except ExternalProcessError as e:
        # Never echo the credential-bearing command line
        raise SyncError(f"git {action} failed: {e.output.strip() or e}") from e


def sync_repository(config: ReportConfig, verbose: bool = False) -> str:
    """Clone the ledger repository if absent, otherwise pull it.

    Args:
        config: Report configuration with repo location and credentials
        verbose: If True, print status messages

    Returns:
        "cloned" or "pulled"

    Raises:
        SyncError: If the directory is not a git working copy or git fails
    """
    repo_dir = Path(config.repo_dir)
    url = authenticated_url(config.repo_url, config.git_username, config.git_token)

    if not repo_dir.exists():
        if not config.repo_url:
            raise SyncError("no repository URL configured")
        if verbose:
            print(f"Cloning ledger repository into {repo_dir}...")
        _git(
            "clone",
            ["clone", "--branch", config.repo_branch, url, str(repo_dir)],
            config.command_timeout,
        )
        return "cloned"

    if not (repo_dir / ".git").exists():
        raise SyncError(f"{repo_dir} exists but is not a git repository")

    if verbose:
        print(f"Pulling {config.repo_branch} into {repo_dir}...")
    # "Already up to date." is a successful pull
    remote = url if config.repo_url else config.repo_remote
    _git(
        "pull",
        ["-C", str(repo_dir), "pull", "--ff-only", remote, config.repo_branch],
        config.command_timeout,
    )
    return "pulled"
