"""Pytest configuration and fixtures for glrepo tests."""

import tempfile
from pathlib import Path

import pytest
from git import Repo

from glrepo.manifest import Fleet, Project


def configure_user(repo: Repo) -> None:
    """Give a repository a committer identity."""
    with repo.config_writer() as writer:
        writer.set_value("user", "name", "Test User")
        writer.set_value("user", "email", "test@example.com")


def commit_file(repo: Repo, name: str, content: str, message: str | None = None) -> str:
    """Write a file, commit it and return the new commit hash."""
    (Path(repo.working_tree_dir) / name).write_text(content)
    repo.index.add([name])
    return repo.index.commit(message or f"Update {name}").hexsha


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir).resolve()


@pytest.fixture
def upstream_repo(temp_dir: Path):
    """Create a repository with one commit on 'main' to act as the remote."""
    repo_path = temp_dir / "upstream"
    repo_path.mkdir()

    repo = Repo.init(repo_path)
    configure_user(repo)
    commit_file(repo, "README.md", "# Upstream\n", "Initial commit")
    repo.git.branch("-M", "main")

    yield repo
    repo.close()


@pytest.fixture
def project(temp_dir: Path, upstream_repo: Repo) -> Project:
    """A project that tracks 'main' of the upstream repository."""
    return Project(
        name="alpha",
        fetch_url=upstream_repo.working_tree_dir,
        path=temp_dir / "checkouts" / "alpha",
        reference="main",
    )


@pytest.fixture
def manifest_file(temp_dir: Path) -> Path:
    """A manifest with three projects below a projects directory."""
    projects_dir = temp_dir / "projects"
    projects_dir.mkdir()
    manifest = temp_dir / "default.yaml"
    manifest.write_text(
        f"""\
projects_dir: {projects_dir}
default_reference: main
projects:
  alpha:
    fetch_url: https://example.com/alpha.git
  beta:
    fetch_url: git@example.com:org/beta.git
    path: beta-checkout
    reference: develop
  gamma:
    fetch_url: https://example.com/gamma.git
    path: /srv/gamma
    auto_sync: false
"""
    )
    return manifest


@pytest.fixture
def fleet(manifest_file: Path) -> Fleet:
    return Fleet.from_yaml(manifest_file)
