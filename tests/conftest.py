"""
Shared fixtures: run configuration factory and real git repositories
built in temporary directories.
"""
import os
import shutil
import subprocess
from pathlib import Path

import pytest

from localci.core.config import OperatorIdentity, RunConfig

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")

_GIT_ENV = {
    "GIT_AUTHOR_NAME": "CI Tester",
    "GIT_AUTHOR_EMAIL": "ci@example.com",
    "GIT_COMMITTER_NAME": "CI Tester",
    "GIT_COMMITTER_EMAIL": "ci@example.com",
    "GIT_CONFIG_NOSYSTEM": "1",
}


def git(cwd: Path, *args: str) -> str:
    """Run git for test setup; file-protocol submodules are allowed here only."""
    res = subprocess.run(
        ["git", "-c", "protocol.file.allow=always", "-c", "commit.gpgsign=false", *args],
        cwd=str(cwd),
        env=dict(os.environ, **_GIT_ENV),
        check=True,
        capture_output=True,
        text=True,
    )
    return res.stdout.strip()


def init_repo(path: Path, files: dict) -> Path:
    """Create a repository on branch ``main`` with one commit of ``files``."""
    path.mkdir(parents=True, exist_ok=True)
    git(path, "init", "--quiet")
    git(path, "symbolic-ref", "HEAD", "refs/heads/main")
    commit_files(path, files, "initial")
    return path


def commit_files(repo: Path, files: dict, message: str) -> str:
    for name, content in files.items():
        target = repo / name
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content)
        if name.endswith(".sh"):
            target.chmod(0o755)
        git(repo, "add", name)
    git(repo, "commit", "--quiet", "-m", message)
    return git(repo, "rev-parse", "HEAD")


@pytest.fixture
def operator():
    return OperatorIdentity(name="alice", uid=1000, gid=1000)


@pytest.fixture
def make_config(tmp_path, operator):
    """Factory for RunConfig with isolated contexts under tmp_path/contexts."""
    def _make(workdir=None, **kwargs):
        kwargs.setdefault("tmp_root", tmp_path / "contexts")
        kwargs.setdefault("script_name", "ci.sh")
        kwargs.setdefault("dockerfile_prefix", "Dockerfile.ci")
        return RunConfig.build(workdir=workdir or tmp_path, operator=operator, **kwargs)
    return _make
