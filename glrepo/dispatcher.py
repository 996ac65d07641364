"""
Fleet-wide command dispatch.

The dispatcher decides which projects a command applies to, builds one
task per eligible project, runs the tasks on a ``WorkerPool`` and
collects every outcome. A failing project never stops its siblings: its
error is caught at the task boundary and reported in a single
``SummaryError`` once all tasks have finished.
"""

import logging
import queue
import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from functools import partial
from typing import Any

from .errors import SummaryError
from .git_ops import FileStatus, GitRepository, is_repository
from .manifest import Fleet, Project
from .pool import WorkerPool
from .process import run_shell
from .syncer import SyncAction, sync_project

logger = logging.getLogger(__name__)

# Seconds the submitting thread waits between checks for finished tasks
POLL_INTERVAL = 0.1


@dataclass
class TaskOutcome:
    """Result of one project's task. ``error`` is None on success."""

    project: str
    value: Any = None
    error: Exception | None = None


class PendingTasks:
    """Counts submitted tasks that have not completed yet."""

    def __init__(self):
        self._count = 0
        self._cond = threading.Condition()

    def add(self) -> None:
        with self._cond:
            self._count += 1

    def done(self) -> None:
        with self._cond:
            if self._count <= 0:
                raise RuntimeError("done() called more times than add()")
            self._count -= 1
            if self._count == 0:
                self._cond.notify_all()

    @property
    def count(self) -> int:
        with self._cond:
            return self._count

    def wait(self, timeout: float | None = None) -> bool:
        """Wait until no tasks are pending. Returns False on timeout."""
        with self._cond:
            return self._cond.wait_for(lambda: self._count == 0, timeout)


class Dispatcher:
    """Runs per-project tasks across the fleet with bounded concurrency."""

    def __init__(self, fleet: Fleet, jobs: int = 1):
        self.projects = fleet.snapshot()
        self.jobs = max(1, jobs)

    def run(self, tasks: dict[str, Callable[[], Any]]) -> dict[str, Any]:
        """
        Run one task per project and wait for all of them.

        Returns:
            Mapping of project name to task return value

        Raises:
            SummaryError: naming every project whose task raised
        """
        if not tasks:
            return {}

        outcomes: queue.Queue[TaskOutcome] = queue.Queue()
        pending = PendingTasks()
        results: dict[str, Any] = {}
        failures: dict[str, Exception] = {}

        def collect() -> None:
            while True:
                try:
                    outcome = outcomes.get_nowait()
                except queue.Empty:
                    return
                if outcome.error is None:
                    results[outcome.project] = outcome.value
                else:
                    logger.error("Project: %s: %s", outcome.project, outcome.error)
                    failures[outcome.project] = outcome.error

        with WorkerPool(self.jobs) as pool:
            for name, task in tasks.items():
                pending.add()
                pool.submit(self._wrap(name, task, outcomes, pending))

            while not pending.wait(POLL_INTERVAL):
                collect()
        # Outcomes are queued before done(), so this catches the stragglers
        collect()

        if failures:
            raise SummaryError(failures)
        return results

    @staticmethod
    def _wrap(
        name: str,
        task: Callable[[], Any],
        outcomes: "queue.Queue[TaskOutcome]",
        pending: PendingTasks,
    ) -> Callable[[], None]:
        def run_task() -> None:
            try:
                outcome = TaskOutcome(name, value=task())
            except Exception as e:
                logger.debug("Project: %s failed", name, exc_info=True)
                outcome = TaskOutcome(name, error=e)
            try:
                outcomes.put(outcome)
            finally:
                pending.done()

        return run_task

    def sync_eligible(self, selected: Iterable[str] = ()) -> list[Project]:
        """
        Projects a sync applies to: exactly the selected ones when any are
        given, otherwise every project with auto_sync set. Names that are
        not in the manifest are skipped with a warning.
        """
        selected = set(selected)
        for name in sorted(selected - self.projects.keys()):
            logger.warning("Project: %s is not in the manifest, skipping", name)
        if selected:
            return [p for name, p in self.projects.items() if name in selected]
        return [p for p in self.projects.values() if p.auto_sync]

    def sync(self, selected: Iterable[str] = ()) -> dict[str, SyncAction]:
        """Clone or fast-forward the selected or auto-sync projects."""
        if not self._has_projects():
            return {}
        tasks = {}
        for project in self.sync_eligible(selected):
            logger.info("Sync: %s", project.name)
            tasks[project.name] = partial(sync_project, project)
        return self.run(tasks)

    def foreach(self, command_line: str, timeout: float) -> dict[str, Any]:
        """Run a shell command in every project directory."""
        if not self._has_projects():
            return {}
        tasks = {
            name: partial(_run_command, project, command_line, timeout)
            for name, project in self.projects.items()
        }
        return self.run(tasks)

    def changed_eligible(self) -> list[Project]:
        """Projects that already have a local repository."""
        eligible = []
        for project in self.projects.values():
            if is_repository(project.path):
                eligible.append(project)
            else:
                logger.warning(
                    "Project: %s has no repository at '%s'. Make sure sync has been run",
                    project.name,
                    project.path,
                )
        return eligible

    def changed(self) -> dict[str, dict[str, FileStatus]]:
        """Changed files of every dirty project; clean projects are left out."""
        if not self._has_projects():
            return {}
        tasks = {p.name: partial(_changed_files, p) for p in self.changed_eligible()}
        return {name: files for name, files in self.run(tasks).items() if files}

    def _has_projects(self) -> bool:
        if not self.projects:
            logger.warning("There are no projects in the manifest")
            return False
        return True


def _run_command(project: Project, command_line: str, timeout: float):
    return run_shell(project.name, project.path, command_line, timeout).check()


def _changed_files(project: Project) -> dict[str, FileStatus]:
    with GitRepository(project.path) as repository:
        return repository.changed()
