"""
Git Service
===========
Thin subprocess wrapper around the git CLI.

Philosophy:
    - Every git call goes through ``run_git`` (one place to log and to
      capture stderr for error messages).
    - Read-only queries return values / None; mutating operations raise
      ``CloneError`` or ``CheckoutError`` with git's stderr attached.
    - No operation here ever fetches implicitly.
"""
import logging
import os
import shutil
import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from localci.core.errors import CheckoutError, CloneError, ConfigError, ToolingUnavailableError

logger = logging.getLogger(__name__)


def ensure_git() -> str:
    """Return the git executable path or raise ToolingUnavailableError."""
    git = shutil.which("git")
    if git is None:
        raise ToolingUnavailableError("git executable not found on PATH")
    return git


def run_git(
    args: Sequence[str],
    cwd: Optional[Path] = None,
    env: Optional[Dict[str, str]] = None,
    check: bool = True,
) -> subprocess.CompletedProcess:
    """Run ``git <args>`` and capture its output as text."""
    logger.debug("git %s (cwd=%s)", " ".join(args), cwd or ".")
    return subprocess.run(
        ["git", *args],
        cwd=str(cwd) if cwd else None,
        env=env,
        check=check,
        capture_output=True,
        text=True,
    )


def _stderr(err: subprocess.CalledProcessError) -> str:
    return (err.stderr or "").strip() or f"exit status {err.returncode}"


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------
def repo_root(path: Path) -> Path:
    """Top-level directory of the repository containing ``path``."""
    try:
        res = run_git(["rev-parse", "--show-toplevel"], cwd=path)
    except subprocess.CalledProcessError as e:
        raise ConfigError(f"{path} is not inside a git repository: {_stderr(e)}")
    return Path(res.stdout.strip())


def common_git_dir(root: Path) -> Path:
    """
    The metadata store shared by all worktrees of ``root``.

    For a plain checkout this is ``<root>/.git``; for a linked worktree it
    is the main repository's git directory, which owns refs and modules.
    """
    res = run_git(["rev-parse", "--git-common-dir"], cwd=root)
    git_dir = Path(res.stdout.strip())
    if not git_dir.is_absolute():
        git_dir = root / git_dir
    return git_dir.resolve()


def resolve_commit(root: Path, revision: str) -> Optional[str]:
    """Full commit id ``revision`` points to locally, or None if unknown."""
    res = run_git(
        ["rev-parse", "--verify", "--quiet", "--end-of-options", f"{revision}^{{commit}}"],
        cwd=root,
        check=False,
    )
    if res.returncode != 0:
        return None
    return res.stdout.strip()


def path_exists_at(root: Path, commit: str, rel_path: str) -> bool:
    """True if ``rel_path`` exists in the tree of ``commit`` (no checkout)."""
    res = run_git(["cat-file", "-e", f"{commit}:{rel_path}"], cwd=root, check=False)
    return res.returncode == 0


# ---------------------------------------------------------------------------
# Mutating operations
# ---------------------------------------------------------------------------
def clone(
    source: str,
    dest: Path,
    depth: Optional[int] = None,
    no_checkout: bool = False,
    all_branches: bool = False,
) -> None:
    """
    Clone ``source`` into the existing, empty directory ``dest``.

    ``all_branches`` keeps every branch tip in a shallow clone so a fragment
    naming any branch (or a recent commit on it) can be checked out later.
    """
    args: List[str] = ["clone", "--quiet"]
    if depth:
        args += ["--depth", str(depth)]
        if all_branches:
            args.append("--no-single-branch")
    if no_checkout:
        args.append("--no-checkout")
    args += ["--", source, str(dest)]

    logger.info("Cloning %s into %s", source, dest)
    try:
        run_git(args)
    except subprocess.CalledProcessError as e:
        logger.error("Failed to clone %s: %s", source, _stderr(e))
        raise CloneError(f"Cloning {source} failed: {_stderr(e)}")


def checkout(repo: Path, revision: str, depth: Optional[int] = None) -> None:
    """Check out ``revision`` (detached for commits) in ``repo``."""
    try:
        run_git(["checkout", "--quiet", revision], cwd=repo)
    except subprocess.CalledProcessError as e:
        message = f"Checking out '{revision}' failed: {_stderr(e)}"
        if depth:
            message += (
                f" (the clone only holds the last {depth} revisions per branch;"
                " raise LOCALCI_CLONE_DEPTH for older commits)"
            )
        logger.error(message)
        raise CheckoutError(message)


def update_submodules(repo: Path, no_fetch: bool = False) -> None:
    """
    ``git submodule update --init --recursive`` in ``repo``.

    With ``no_fetch`` git may only use objects already present locally, and
    ``GIT_ALLOW_PROTOCOL=file`` turns any attempt to reach a network remote
    into an error instead of a download.
    """
    args = ["submodule", "update", "--init", "--recursive"]
    env = None
    if no_fetch:
        args.append("--no-fetch")
        env = dict(os.environ, GIT_ALLOW_PROTOCOL="file", GIT_TERMINAL_PROMPT="0")
    try:
        run_git(args, cwd=repo, env=env)
    except subprocess.CalledProcessError as e:
        message = f"Submodule initialization failed: {_stderr(e)}"
        if no_fetch:
            message += (
                " (submodules are only materialized from data already in the"
                " working tree; run 'git submodule update --init --recursive' there first)"
            )
        logger.error(message)
        raise CheckoutError(message)
