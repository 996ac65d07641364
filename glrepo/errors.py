"""
Error types raised by glrepo.

Every failure the tool reports is a ``GlRepoError``. Per-project failures
are caught at the task boundary by the dispatcher and folded into a
``SummaryError``; everything else propagates to the CLI.
"""


class GlRepoError(Exception):
    """Base class for all glrepo errors."""


class GeneralError(GlRepoError):
    """Unclassified failure."""


class ManifestError(GlRepoError):
    """The manifest could not be loaded, validated or saved."""


class ProjectNotFoundError(GlRepoError):
    """A project name is not present in the manifest."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Project not found: '{name}'")


class NotSupportedError(GlRepoError):
    """The requested operation is deliberately unsupported."""


class GitError(GlRepoError):
    """A git operation failed.

    ``operation`` names the step (open, clone, fetch, merge-analysis,
    reference-update, checkout, status, init, remote) and ``diagnostic``
    carries the underlying library message.
    """

    def __init__(self, operation: str, diagnostic: str):
        self.operation = operation
        self.diagnostic = diagnostic
        super().__init__(f"Git {operation} failed: {diagnostic}")


class ShellCommandError(GlRepoError):
    """The shell could not be spawned or polled."""

    def __init__(self, project: str, command: str, cause: OSError | None = None):
        self.project = project
        self.command = command
        self.cause = cause
        super().__init__(f"Project: '{project}' command: '{command}' failed: {cause}")


class ShellCommandTimeoutError(GlRepoError):
    """The shell command was killed after exceeding its timeout."""

    def __init__(self, project: str, command: str, timeout: float):
        self.project = project
        self.command = command
        self.timeout = timeout
        super().__init__(
            f"Project: '{project}' command: '{command}' timed out after {timeout:g}s"
        )


class ShellCommandExitError(GlRepoError):
    """The shell command exited with a non-zero code."""

    def __init__(self, project: str, command: str, code: int):
        self.project = project
        self.command = command
        self.code = code
        super().__init__(
            f"Project: '{project}' command: '{command}' exited with code {code}"
        )


class SummaryError(GlRepoError):
    """One or more projects failed during a fleet-wide command."""

    def __init__(self, failures: dict[str, Exception]):
        self.failures = dict(failures)
        count = len(self.failures)
        subject = "project" if count == 1 else f"{count} projects"
        names = "\n".join(sorted(self.failures))
        super().__init__(f"The following {subject} has errors:\n\n{names}")

    @property
    def projects(self) -> list[str]:
        """Sorted names of the failed projects."""
        return sorted(self.failures)
