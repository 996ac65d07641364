"""Tests for git operations module."""

from pathlib import Path

import pytest
from git import Repo

from conftest import commit_file, configure_user
from glrepo.errors import GitError
from glrepo.git_ops import (
    FileStatus,
    GitRepository,
    classify_status,
    is_repository,
    ssh_environment,
)


class TestGitRepository:
    """Tests for GitRepository wrapper."""

    def test_open_valid_repo(self, upstream_repo: Repo):
        """Test opening a valid git repo."""
        path = Path(upstream_repo.working_tree_dir)
        with GitRepository(path) as git_repo:
            assert git_repo.path == path.resolve()

    def test_open_invalid_repo(self, temp_dir: Path):
        """Test that opening a plain directory is an open failure."""
        invalid_path = temp_dir / "not-a-repo"
        invalid_path.mkdir()

        with pytest.raises(GitError, match="Not a valid git repository") as excinfo:
            GitRepository(invalid_path)
        assert excinfo.value.operation == "open"

    def test_open_missing_path(self, temp_dir: Path):
        """Test that opening a missing path is an open failure."""
        with pytest.raises(GitError):
            GitRepository(temp_dir / "missing")

    def test_init(self, temp_dir: Path):
        """Test creating a repository, parents included."""
        path = temp_dir / "a" / "b"
        with GitRepository.init(path):
            pass
        assert is_repository(path)

    def test_is_repository(self, temp_dir: Path, upstream_repo: Repo):
        assert is_repository(Path(upstream_repo.working_tree_dir))
        assert not is_repository(temp_dir)
        assert not is_repository(temp_dir / "missing")

    def test_add_remote(self, temp_dir: Path):
        """Test registering a remote."""
        with GitRepository.init(temp_dir / "r") as git_repo:
            git_repo.add_remote("origin", "https://example.com/r.git")
            assert git_repo.repo.remote("origin").url == "https://example.com/r.git"

            with pytest.raises(GitError) as excinfo:
                git_repo.add_remote("origin", "https://example.com/other.git")
            assert excinfo.value.operation == "remote"

    def test_fetch(self, temp_dir: Path, upstream_repo: Repo):
        """Test fetching a branch returns its commit."""
        with GitRepository.init(temp_dir / "r") as git_repo:
            git_repo.add_remote("origin", upstream_repo.working_tree_dir)
            fetched = git_repo.fetch("main")
            assert fetched.hexsha == upstream_repo.head.commit.hexsha

    def test_fetch_tag(self, temp_dir: Path, upstream_repo: Repo):
        """Test that a fetched annotated tag is peeled to its commit."""
        tagged = upstream_repo.head.commit.hexsha
        upstream_repo.create_tag("v1.0", message="Release 1.0")
        commit_file(upstream_repo, "later.txt", "later")

        with GitRepository.init(temp_dir / "r") as git_repo:
            git_repo.add_remote("origin", upstream_repo.working_tree_dir)
            assert git_repo.fetch("v1.0").hexsha == tagged

    def test_fetch_unknown_reference(self, temp_dir: Path, upstream_repo: Repo):
        """Test that fetching a missing reference is a fetch failure."""
        with GitRepository.init(temp_dir / "r") as git_repo:
            git_repo.add_remote("origin", upstream_repo.working_tree_dir)
            with pytest.raises(GitError) as excinfo:
                git_repo.fetch("no-such-branch")
            assert excinfo.value.operation == "fetch"


class TestChanged:
    """Tests for working tree status."""

    def test_clean(self, upstream_repo: Repo):
        """Test that a clean tree reports nothing."""
        with GitRepository(Path(upstream_repo.working_tree_dir)) as git_repo:
            assert git_repo.changed() == {}

    def test_classification(self, upstream_repo: Repo):
        """Test that staged, modified and untracked files are classified."""
        root = Path(upstream_repo.working_tree_dir)
        configure_user(upstream_repo)
        (root / "staged.txt").write_text("staged")
        upstream_repo.index.add(["staged.txt"])
        (root / "README.md").write_text("modified")
        (root / "sub").mkdir()
        (root / "sub" / "untracked.txt").write_text("new")

        with GitRepository(root) as git_repo:
            assert git_repo.changed() == {
                "staged.txt": FileStatus.STAGED,
                "README.md": FileStatus.WORKTREE,
                "sub/untracked.txt": FileStatus.WORKTREE,
            }

    def test_deleted_is_other(self, upstream_repo: Repo):
        """Test that a deleted file is reported as other."""
        root = Path(upstream_repo.working_tree_dir)
        (root / "README.md").unlink()

        with GitRepository(root) as git_repo:
            assert git_repo.changed() == {"README.md": FileStatus.OTHER}

    def test_paths_with_spaces(self, upstream_repo: Repo):
        """Test that unusual file names come through unquoted."""
        root = Path(upstream_repo.working_tree_dir)
        (root / "with space.txt").write_text("x")

        with GitRepository(root) as git_repo:
            assert git_repo.changed() == {"with space.txt": FileStatus.WORKTREE}

    @pytest.mark.parametrize(
        "code, expected",
        [
            ("M ", FileStatus.STAGED),
            ("A ", FileStatus.STAGED),
            ("MM", FileStatus.STAGED),
            (" M", FileStatus.WORKTREE),
            ("??", FileStatus.WORKTREE),
            ("!!", FileStatus.IGNORED),
            (" D", FileStatus.OTHER),
            ("R ", FileStatus.OTHER),
        ],
    )
    def test_classify_status(self, code: str, expected: FileStatus):
        assert classify_status(code) is expected


class TestSshEnvironment:
    """Tests for remote authentication settings."""

    def test_no_prompt(self, temp_dir: Path):
        env = ssh_environment("https://example.com/r.git", temp_dir / "id_rsa")
        assert env == {"GIT_TERMINAL_PROMPT": "0"}

    def test_ssh_url_uses_key(self, temp_dir: Path):
        key = temp_dir / "id_rsa"
        key.write_text("key")
        env = ssh_environment("git@example.com:org/r.git", key)
        assert str(key) in env["GIT_SSH_COMMAND"]

    def test_missing_key(self, temp_dir: Path):
        env = ssh_environment("ssh://git@example.com/org/r.git", temp_dir / "id_rsa")
        assert "GIT_SSH_COMMAND" not in env
