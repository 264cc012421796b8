"""Shared fixtures: throwaway git remotes and clones built in tmp_path."""

from __future__ import annotations

import subprocess
from pathlib import Path

import pytest

from git_convoy import RepositoryDescriptor


def git(cwd: Path, *args: str) -> str:
    """Run a git command and return stdout."""
    result = subprocess.run(
        ["git", *args],
        cwd=cwd,
        capture_output=True,
        text=True,
        check=True,
    )
    return result.stdout.strip()


def commit_file(repo: Path, filename: str, content: str, message: str) -> str:
    """Create/overwrite a file and commit it. Returns the commit hash."""
    filepath = repo / filename
    filepath.parent.mkdir(parents=True, exist_ok=True)
    filepath.write_text(content)
    git(repo, "add", filename)
    git(repo, "commit", "-m", message)
    return git(repo, "rev-parse", "HEAD")


def push_commits(pusher: Path, count: int, branch: str = "main", prefix: str = "upstream") -> None:
    """Commit ``count`` files in ``pusher`` and push them to origin."""
    git(pusher, "checkout", branch)
    for i in range(count):
        commit_file(pusher, f"{prefix}-{branch}-{i}.txt", f"{i}\n", f"{prefix} {i}")
    git(pusher, "push", "origin", branch)


@pytest.fixture(autouse=True)
def isolated_git(tmp_path_factory, monkeypatch):
    """Keep the user's git configuration out of the tests."""
    home = tmp_path_factory.mktemp("home")
    gitconfig = home / ".gitconfig"
    gitconfig.write_text(
        "[user]\n"
        "\tname = Test\n"
        "\temail = test@test.com\n"
        "[init]\n"
        "\tdefaultBranch = main\n"
        "[pull]\n"
        "\tff = only\n"
        "[advice]\n"
        "\tdetachedHead = false\n"
    )
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", str(gitconfig))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.delenv("GIT_CONVOY_CONFIG", raising=False)


@pytest.fixture
def bare_remote(tmp_path: Path) -> Path:
    """A bare repository with ``main`` and ``dev`` branches, acting as origin."""
    remote = tmp_path / "remote.git"
    remote.mkdir()
    git(remote, "init", "--bare", "-b", "main")

    seed = tmp_path / "seed"
    git(tmp_path, "clone", str(remote), "seed")
    commit_file(seed, "README.md", "hello\n", "initial")
    git(seed, "push", "origin", "main")
    git(seed, "checkout", "-b", "dev")
    commit_file(seed, "dev.txt", "dev\n", "dev work")
    git(seed, "push", "origin", "dev")
    return remote


@pytest.fixture
def pusher(tmp_path: Path, bare_remote: Path) -> Path:
    """A second clone used to move the remote forward."""
    path = tmp_path / "pusher"
    git(tmp_path, "clone", str(bare_remote), "pusher")
    git(path, "checkout", "dev")
    git(path, "checkout", "main")
    return path


@pytest.fixture
def local_clone(tmp_path: Path, bare_remote: Path) -> Path:
    """The managed working copy: ``main`` and ``dev`` both track origin."""
    path = tmp_path / "work" / "project"
    path.parent.mkdir()
    git(path.parent, "clone", str(bare_remote), "project")
    git(path, "checkout", "dev")
    git(path, "checkout", "main")
    return path


@pytest.fixture
def descriptor(local_clone: Path, bare_remote: Path) -> RepositoryDescriptor:
    return RepositoryDescriptor(name="project", url=str(bare_remote), directory=local_clone)
