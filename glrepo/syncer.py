"""
Sync logic for a single project.

Each sync walks a small, explicit state machine:

    resolve -> clone | open -> fetch -> analyse -> fast-forward
                                                 | create-branch
                                                 | up-to-date
                                                 | reject

Only fast-forward updates are performed. A local branch that has diverged
from the fetched commit is rejected with ``NotSupportedError``; no merge
or conflict resolution is ever attempted.
"""

import logging
import shutil
from enum import StrEnum
from pathlib import Path

from git import Commit
from git.exc import GitError as GitPythonError

from .errors import GitError, NotSupportedError
from .git_ops import FetchProgress, GitRepository
from .manifest import Project

logger = logging.getLogger(__name__)


class MergeAnalysis(StrEnum):
    """Relation between the local branch and the fetched commit."""

    UP_TO_DATE = "up-to-date"
    FAST_FORWARD = "fast-forward"
    CREATE_BRANCH = "create-branch"
    DIVERGED = "diverged"


class SyncAction(StrEnum):
    """What a sync did to the local repository."""

    CLONED = "cloned"
    UP_TO_DATE = "up-to-date"
    FAST_FORWARD = "fast-forward"
    CREATED_BRANCH = "created-branch"


def branch_name(reference: str) -> str:
    """Local branch name used to track a reference."""
    return reference.removeprefix("refs/heads/")


def needs_clone(path: Path) -> bool:
    """A missing or empty directory is cloned into, anything else is opened."""
    if not path.exists():
        return True
    return path.is_dir() and not any(path.iterdir())


class ProjectSyncer:
    """Brings one project's local checkout up to date with its remote."""

    def __init__(self, project: Project):
        self.project = project
        self.branch = branch_name(project.reference)

    def sync(self) -> SyncAction:
        """
        Clone or update the project.

        Returns:
            The action taken

        Raises:
            GitError: tagged with the git step that failed
            NotSupportedError: the local branch has diverged from the remote
        """
        project = self.project
        cloned = needs_clone(project.path)
        if cloned:
            logger.info("Clone: %s into '%s'", project.name, project.path)
            repository, fetched = self._clone()
        else:
            logger.debug("Fetch: %s in '%s'", project.name, project.path)
            repository = GitRepository(project.path)
            try:
                fetched = repository.fetch(
                    project.reference, progress=FetchProgress(project.name)
                )
            except GitError:
                repository.close()
                raise

        with repository:
            analysis = self.analyse(repository, fetched)
            logger.debug("%s: %s at %s", project.name, analysis, fetched.hexsha[:8])

            if analysis is MergeAnalysis.DIVERGED:
                raise NotSupportedError(
                    f"Project: '{project.name}' branch '{self.branch}' has diverged "
                    "from the remote: merge not supported"
                )
            if analysis is MergeAnalysis.CREATE_BRANCH:
                self.create_branch(repository, fetched)
                action = SyncAction.CREATED_BRANCH
            elif analysis is MergeAnalysis.FAST_FORWARD:
                self.fast_forward(repository, fetched)
                action = SyncAction.FAST_FORWARD
            else:
                action = SyncAction.UP_TO_DATE

        return SyncAction.CLONED if cloned else action

    def _clone(self) -> tuple[GitRepository, Commit]:
        """
        Initialise the repository, add origin and do the first fetch.

        On failure the partial repository is removed again so the next
        sync starts a fresh clone.
        """
        project = self.project
        created = not project.path.exists()
        repository = None
        try:
            repository = GitRepository.init(project.path)
            repository.add_remote("origin", project.fetch_url)
            fetched = repository.fetch(
                project.reference, progress=FetchProgress(project.name)
            )
        except GitError as e:
            if repository is not None:
                repository.close()
            self._discard_clone(created)
            raise GitError("clone", e.diagnostic) from e
        return repository, fetched

    def _discard_clone(self, created: bool) -> None:
        # An empty directory that existed before the clone is kept
        target = self.project.path if created else self.project.path / ".git"
        try:
            shutil.rmtree(target)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(
                "%s: could not remove partial clone '%s': %s",
                self.project.name,
                target,
                e,
            )

    def analyse(self, repository: GitRepository, fetched: Commit) -> MergeAnalysis:
        """Decide how the local branch relates to the fetched commit."""
        repo = repository.repo
        if self.branch not in repo.heads:
            return MergeAnalysis.CREATE_BRANCH
        local = repo.heads[self.branch].commit
        if local == fetched:
            return MergeAnalysis.UP_TO_DATE
        try:
            if repo.is_ancestor(fetched, local):
                return MergeAnalysis.UP_TO_DATE
            if repo.is_ancestor(local, fetched):
                return MergeAnalysis.FAST_FORWARD
        except GitPythonError as e:
            raise GitError("merge-analysis", str(e)) from e
        return MergeAnalysis.DIVERGED

    def fast_forward(self, repository: GitRepository, fetched: Commit) -> None:
        """
        Move the branch to the fetched commit and force the working tree
        to match. Local modifications to tracked files are overwritten.
        """
        repo = repository.repo
        if repository.is_dirty():
            logger.warning(
                "%s: overwriting local changes in '%s'",
                self.project.name,
                self.project.path,
            )
        head = repo.heads[self.branch]
        previous = head.commit
        try:
            head.commit = fetched
            repo.head.reference = head
        except (GitPythonError, ValueError) as e:
            raise GitError("reference-update", str(e)) from e
        try:
            repo.head.reset(index=True, working_tree=True)
        except GitPythonError as e:
            # The tree was not updated, so neither is the branch
            head.commit = previous
            raise GitError("checkout", str(e)) from e
        logger.info("%s: fast-forward to %s", self.project.name, fetched.hexsha[:8])

    def create_branch(self, repository: GitRepository, fetched: Commit) -> None:
        """Create the tracking branch at the fetched commit and check it out."""
        repo = repository.repo
        try:
            head = repo.create_head(self.branch, fetched)
        except (GitPythonError, OSError) as e:
            raise GitError("reference-update", str(e)) from e
        try:
            head.checkout()
        except GitPythonError as e:
            # The tree was not switched, so the branch must not exist
            repo.delete_head(head, force=True)
            raise GitError("checkout", str(e)) from e
        logger.info(
            "%s: checked out '%s' at %s",
            self.project.name,
            self.branch,
            fetched.hexsha[:8],
        )


def sync_project(project: Project) -> SyncAction:
    """Sync one project."""
    return ProjectSyncer(project).sync()
