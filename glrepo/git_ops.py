"""
Git operations for glrepo.

Provides a wrapper around a local repository using GitPython: opening and
initialising repositories, registering remotes, fetching a single
reference with progress reporting, and computing working tree status.
"""

import logging
import os
import re
from contextlib import contextmanager
from enum import StrEnum
from pathlib import Path

from git import Commit, RemoteProgress, Repo
from git.exc import GitError as GitPythonError
from git.exc import InvalidGitRepositoryError, NoSuchPathError

from .config import DEFAULT_SSH_KEY
from .errors import GitError

logger = logging.getLogger(__name__)

# scp-like (git@host:org/repo.git) or ssh:// URLs
SSH_URL_RE = re.compile(r"^(ssh://|[\w.-]+@[\w.-]+:)")


class FileStatus(StrEnum):
    """Classification of a changed file."""

    STAGED = "staged"
    WORKTREE = "worktree"
    IGNORED = "ignored"
    OTHER = "other"


def classify_status(code: str) -> FileStatus:
    """Classify a two-letter porcelain status code."""
    index, worktree = code[0], code[1]
    if index in "AM":
        return FileStatus.STAGED
    if worktree in "AM" or code == "??":
        return FileStatus.WORKTREE
    if code == "!!":
        return FileStatus.IGNORED
    return FileStatus.OTHER


def is_repository(path: Path) -> bool:
    """Check whether a path holds a git repository."""
    try:
        Repo(path).close()
        return True
    except (InvalidGitRepositoryError, NoSuchPathError):
        return False


def ssh_environment(url: str, key: Path = DEFAULT_SSH_KEY) -> dict[str, str]:
    """Environment for remote operations: no prompts, default SSH identity."""
    env = {"GIT_TERMINAL_PROMPT": "0"}
    if SSH_URL_RE.match(url) and key.exists():
        env["GIT_SSH_COMMAND"] = f"ssh -i {key} -o IdentitiesOnly=yes -o BatchMode=yes"
    return env


class FetchProgress(RemoteProgress):
    """Logs transfer progress of a fetch."""

    def __init__(self, project: str):
        super().__init__()
        self.project = project

    def update(self, op_code, cur_count, max_count=None, message=""):
        if not op_code & self.END and not op_code & self.BEGIN:
            return
        stage = "Received" if op_code & self.RECEIVING else "Progress"
        logger.debug(
            "%s: %s %s of %s %s",
            self.project,
            stage,
            int(cur_count),
            int(max_count) if max_count else "?",
            message,
        )


class GitRepository:
    """Wrapper around a git repository for sync operations."""

    def __init__(self, path: Path):
        """Open an existing repository."""
        self.path = Path(path).resolve()
        try:
            self.repo = Repo(self.path)
        except (InvalidGitRepositoryError, NoSuchPathError) as e:
            raise GitError("open", f"Not a valid git repository: {self.path}") from e

    @classmethod
    def init(cls, path: Path) -> "GitRepository":
        """Create a new, empty repository at path."""
        path = Path(path)
        try:
            path.mkdir(parents=True, exist_ok=True)
            Repo.init(path).close()
        except (OSError, GitPythonError) as e:
            raise GitError("init", str(e)) from e
        return cls(path)

    def close(self) -> None:
        self.repo.close()

    def __enter__(self) -> "GitRepository":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def add_remote(self, name: str, url: str) -> None:
        """Register a remote."""
        try:
            self.repo.create_remote(name, url)
        except GitPythonError as e:
            raise GitError("remote", str(e)) from e

    @contextmanager
    def remote_environment(self, remote: str = "origin"):
        """Run git with the environment needed to talk to a remote."""
        url = self.repo.remote(remote).url
        with self.repo.git.custom_environment(**ssh_environment(url)):
            yield

    def fetch(
        self,
        reference: str,
        remote: str = "origin",
        progress: RemoteProgress | None = None,
    ) -> Commit:
        """
        Fetch a single reference from a remote.

        Returns:
            The fetched commit (tags are peeled)
        """
        try:
            with self.remote_environment(remote):
                self.repo.remote(remote).fetch(reference, progress=progress, tags=True)
            return self.repo.commit(self.repo.git.rev_parse("FETCH_HEAD^{commit}"))
        except (GitPythonError, ValueError) as e:
            raise GitError("fetch", str(e)) from e

    def is_dirty(self) -> bool:
        return self.repo.is_dirty(untracked_files=False)

    def changed(self) -> dict[str, FileStatus]:
        """
        Status of the index and working tree against HEAD.

        Untracked files are included. Returns a mapping of repository
        relative path to status; an empty mapping means the tree is clean.
        """
        try:
            output = self.repo.git.status("--porcelain", "-z", "--untracked-files=all")
        except GitPythonError as e:
            raise GitError("status", str(e)) from e

        files: dict[str, FileStatus] = {}
        entries = iter(output.split("\0"))
        for entry in entries:
            if len(entry) < 4:
                continue
            code, path = entry[:2], entry[3:]
            files[path] = classify_status(code)
            # Renames and copies are followed by the source path
            if code[0] in "RC":
                next(entries, None)
        return files
