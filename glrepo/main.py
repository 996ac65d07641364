"""
CLI entry point for glrepo.

Provides the command-line interface for syncing a fleet of repositories,
running commands across them and reporting their state.
"""

import functools
import logging
from dataclasses import dataclass
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .config import (
    CONFIG_HOME_ENV,
    DEFAULT_JOBS,
    DEFAULT_MANIFEST,
    DEFAULT_TIMEOUT_MS,
    resolve_config_home,
    resolve_manifest_path,
)
from .dispatcher import Dispatcher
from .errors import GeneralError, GlRepoError, SummaryError
from .git_ops import FileStatus, GitRepository
from .logs import setup_logging
from .manifest import Fleet, Project, create_default_fleet
from .process import run_shell

console = Console()
err_console = Console(stderr=True)
logger = logging.getLogger(__name__)


@dataclass
class Settings:
    """Options shared by every command."""

    manifest_path: Path
    jobs: int = DEFAULT_JOBS

    def load_fleet(self) -> Fleet:
        logger.debug("Read manifest from: '%s'", self.manifest_path)
        return Fleet.from_yaml(self.manifest_path)


def reports_errors(func):
    """Print glrepo errors and exit non-zero instead of showing a traceback."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except SummaryError as e:
            err_console.print()
            err_console.print(f"[red]{escape(str(e))}[/red]", soft_wrap=True)
            raise SystemExit(1)
        except GlRepoError as e:
            err_console.print(f"[red]Error: {escape(str(e))}[/red]", soft_wrap=True)
            raise SystemExit(1)

    return wrapper


@click.group()
@click.version_option(package_name="glrepo")
@click.option(
    "--config-directory",
    "-c",
    "config_home",
    type=click.Path(file_okay=False, dir_okay=True, path_type=Path),
    envvar=CONFIG_HOME_ENV,
    default=None,
    help=f"Directory holding the manifest (or set {CONFIG_HOME_ENV}, defaults to ~/.config/glrepo)",
)
@click.option(
    "--manifest",
    "-m",
    default=str(DEFAULT_MANIFEST),
    show_default=True,
    help="Manifest file, relative to the config directory unless absolute or ./",
)
@click.option("--verbose", "-v", count=True, help="-v for debug, -vv to include git")
@click.option(
    "--jobs",
    "-j",
    type=click.IntRange(min=1),
    default=DEFAULT_JOBS,
    show_default=True,
    help="Number of projects to work on in parallel",
)
@click.pass_context
def cli(ctx: click.Context, config_home: Path | None, manifest: str, verbose: int, jobs: int):
    """glrepo - Keep a fleet of git repositories in sync."""
    setup_logging(verbose)
    home = resolve_config_home(config_home)
    ctx.obj = Settings(manifest_path=resolve_manifest_path(home, manifest), jobs=jobs)


@cli.command()
@click.option(
    "--projects-dir",
    type=click.Path(file_okay=False, dir_okay=True, path_type=Path),
    default=None,
    help="Base directory for project checkouts (created if missing)",
)
@click.option(
    "--default-reference",
    default="main",
    show_default=True,
    help="Reference used by projects that do not set one",
)
@click.option("--force", is_flag=True, help="Overwrite an existing manifest")
@click.pass_obj
@reports_errors
def init(settings: Settings, projects_dir: Path | None, default_reference: str, force: bool):
    """Create an empty manifest."""
    path = settings.manifest_path
    if path.exists() and not force:
        raise GeneralError(f"Manifest already exists: '{path}' (use --force to overwrite)")

    if projects_dir is not None:
        projects_dir = projects_dir.expanduser().resolve()
        projects_dir.mkdir(parents=True, exist_ok=True)

    fleet = create_default_fleet(projects_dir, default_reference)
    fleet.to_yaml(path)
    console.print(f"[green]Created manifest: {escape(str(path))}[/green]")
    if projects_dir is not None:
        console.print(f"  Projects dir: {escape(str(projects_dir))}")
    console.print(f"  Default reference: {escape(default_reference)}")


@cli.command()
@click.argument("projects", nargs=-1)
@click.pass_obj
@reports_errors
def sync(settings: Settings, projects: tuple[str, ...]):
    """Sync all auto-sync projects, or exactly the named PROJECTS."""
    fleet = settings.load_fleet()
    actions = Dispatcher(fleet, settings.jobs).sync(projects)
    for name in sorted(actions):
        logger.info("%s: %s", name, actions[name])
    logger.info("Success")


@cli.command()
@click.argument("command")
@click.option(
    "--timeout-ms",
    type=click.IntRange(min=1),
    default=DEFAULT_TIMEOUT_MS,
    show_default=True,
    help="Kill the command if it runs longer than this",
)
@click.pass_obj
@reports_errors
def foreach(settings: Settings, command: str, timeout_ms: int):
    """Run a shell COMMAND in every project directory."""
    fleet = settings.load_fleet()
    Dispatcher(fleet, settings.jobs).foreach(command, timeout_ms / 1000)
    logger.info("Success")


@cli.command(name="list")
@click.option("--fetch-url", "-f", is_flag=True, help="Include the fetch URL")
@click.option("--path", "-p", is_flag=True, help="Include the local path")
@click.pass_obj
@reports_errors
def list_projects(settings: Settings, fetch_url: bool, path: bool):
    """List the projects in the manifest."""
    fleet = settings.load_fleet()
    for name in sorted(fleet.projects):
        project = fleet.projects[name]
        fields = [name]
        if fetch_url:
            fields.append(project.fetch_url)
        if path:
            fields.append(str(project.path))
        click.echo(",".join(fields))


@cli.command()
@click.argument("projects", nargs=-1)
@click.pass_obj
@reports_errors
def show(settings: Settings, projects: tuple[str, ...]):
    """Show the configuration of all or the named PROJECTS."""
    fleet = settings.load_fleet()
    names = list(projects) or sorted(fleet.projects)

    table = Table(title=f"Projects ({len(names)})")
    table.add_column("Name", style="cyan")
    table.add_column("Fetch", style="white")
    table.add_column("Path", style="green")
    table.add_column("Reference", style="yellow")
    table.add_column("Auto sync")
    for name in names:
        project = fleet.get_project(name)
        table.add_row(
            name,
            project.fetch_url,
            str(project.path),
            project.reference,
            "[green]yes[/green]" if project.auto_sync else "[red]no[/red]",
        )
    console.print(table)


@cli.command()
@click.argument("project")
@click.pass_obj
@reports_errors
def path(settings: Settings, project: str):
    """Print the local path of PROJECT."""
    fleet = settings.load_fleet()
    click.echo(str(fleet.get_project(project).path))


def _files_table(files: dict[str, FileStatus]) -> Table:
    table = Table(show_header=True, box=None, padding=(0, 2))
    table.add_column("Staged", style="green")
    table.add_column("Worktree", style="red")
    table.add_column("Ignored", style="dim")
    table.add_column("Other", style="yellow")
    columns = [FileStatus.STAGED, FileStatus.WORKTREE, FileStatus.IGNORED, FileStatus.OTHER]
    for file_path in sorted(files):
        table.add_row(
            *(escape(file_path) if files[file_path] is c else "" for c in columns)
        )
    return table


@cli.command()
@click.option("--ls-files", "-l", is_flag=True, help="List the changed files")
@click.pass_obj
@reports_errors
def changed(settings: Settings, ls_files: bool):
    """List projects with uncommitted or untracked changes."""
    fleet = settings.load_fleet()
    dirty = Dispatcher(fleet, settings.jobs).changed()
    for name in sorted(dirty):
        click.echo(name)
        if ls_files:
            console.print(_files_table(dirty[name]))


@cli.command()
@click.option("--command", "-c", "run_command", required=True, help="Command to run after creation")
@click.option(
    "--timeout-ms",
    type=click.IntRange(min=1),
    default=DEFAULT_TIMEOUT_MS,
    show_default=True,
    help="Kill the command if it runs longer than this",
)
@click.option("--auto-sync", is_flag=True, help="Include the project in an unqualified sync")
@click.argument("name")
@click.argument("project_path", type=click.Path(file_okay=False, path_type=Path))
@click.argument("fetch_url")
@click.argument("reference", required=False, default="")
@click.pass_obj
@reports_errors
def create(
    settings: Settings,
    run_command: str,
    timeout_ms: int,
    auto_sync: bool,
    name: str,
    project_path: Path,
    fetch_url: str,
    reference: str,
):
    """Register project NAME, initialise its repository and run a command in it."""
    fleet = settings.load_fleet()
    if name in fleet.projects:
        raise GeneralError(f"Project: '{name}' already exists")

    project_path = project_path.expanduser().resolve()
    fleet.insert(
        name,
        Project(
            name=name,
            fetch_url=fetch_url,
            path=project_path,
            reference=reference,
            auto_sync=auto_sync,
        ),
    )
    fleet.verify()

    with GitRepository.init(project_path) as repository:
        repository.add_remote("origin", fetch_url)
    fleet.to_yaml(settings.manifest_path)
    console.print(f"[green]Created project: {escape(name)}[/green]")

    run_shell(name, project_path, run_command, timeout_ms / 1000).check()


if __name__ == "__main__":
    cli()
