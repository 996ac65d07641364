"""
Manifest handling for glrepo.

Defines the fleet schema and provides methods for loading, validating and
saving the manifest from YAML files.
"""

from pathlib import Path

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from .errors import ManifestError, ProjectNotFoundError


class Project(BaseModel):
    """A single managed git repository."""

    model_config = ConfigDict(frozen=True)

    # Filled in from the key in the projects mapping
    name: str = Field(default="", exclude=True)
    fetch_url: str = Field(..., description="Remote location to fetch from")
    path: Path = Field(
        default=Path(""),
        description="Local checkout location (defaults to projects_dir/<name>)",
    )
    reference: str = Field(
        default="",
        description="Branch, tag or commit to track (defaults to default_reference)",
    )
    auto_sync: bool = Field(
        default=True, description="Whether an unqualified sync includes this project"
    )


class Fleet(BaseModel):
    """The full set of managed projects plus shared defaults."""

    projects_dir: Path | None = Field(
        default=None, description="Base directory for relative project paths"
    )
    default_reference: str = Field(
        default="", description="Reference used by projects that do not set one"
    )
    projects: dict[str, Project] = Field(
        ..., description="Mapping of project name to project"
    )

    @field_validator("projects_dir", mode="before")
    @classmethod
    def _empty_projects_dir(cls, value):
        # An empty string means "not set"
        if value == "":
            return None
        return value

    @model_validator(mode="after")
    def _name_projects(self) -> "Fleet":
        for name, project in self.projects.items():
            if project.name != name:
                self.projects[name] = project.model_copy(update={"name": name})
        return self

    def _resolve_path(self, name: str, path: Path, base: Path) -> Path:
        path = path.expanduser()
        if path.is_absolute():
            return path
        # Path("") and Path(".") have no final segment
        if not path.name:
            return base / name
        return base / path

    def verify(self) -> "Fleet":
        """
        Resolve project paths and references in place.

        Raises:
            ManifestError: projects_dir is not a directory, or a project has
                neither its own reference nor a default_reference.
        """
        if self.projects_dir is not None:
            base = self.projects_dir.expanduser()
            if not base.is_dir():
                raise ManifestError(
                    f"The projects_dir must point to an existing directory: '{base}'"
                )
            base = base.resolve()
            self.projects_dir = base
        else:
            base = Path.cwd()

        for name, project in self.projects.items():
            reference = project.reference or self.default_reference
            if not reference:
                raise ManifestError(
                    f"Project: {name} is missing reference and the manifest "
                    "does not have the field: default_reference"
                )
            self.projects[name] = project.model_copy(
                update={
                    "path": self._resolve_path(name, project.path, base),
                    "reference": reference,
                }
            )
        return self

    def insert(self, name: str, project: Project) -> None:
        """Add a project, replacing any existing entry with the same name."""
        self.projects[name] = project.model_copy(update={"name": name})

    def get_project(self, name: str) -> Project:
        """Look up a project by name."""
        try:
            return self.projects[name]
        except KeyError:
            raise ProjectNotFoundError(name) from None

    def snapshot(self) -> dict[str, Project]:
        """Deep copy of the project map, safe to hand to worker threads."""
        return {name: p.model_copy(deep=True) for name, p in self.projects.items()}

    @classmethod
    def from_yaml(cls, path: Path) -> "Fleet":
        """Load and verify a manifest from a YAML file."""
        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except OSError as e:
            raise ManifestError(f"Could not load manifest file '{path}': {e}") from e
        except yaml.YAMLError as e:
            raise ManifestError(f"Could not parse manifest file '{path}': {e}") from e

        if not isinstance(data, dict):
            raise ManifestError(f"Manifest file '{path}' is not a YAML mapping")
        try:
            fleet = cls.model_validate(data)
        except ValidationError as e:
            raise ManifestError(f"Invalid manifest file '{path}': {e}") from e
        return fleet.verify()

    def to_yaml(self, path: Path) -> None:
        """Save the manifest to a YAML file, overwriting it."""
        path = Path(path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w") as f:
                yaml.dump(
                    self.model_dump(mode="json", exclude_none=True),
                    f,
                    default_flow_style=False,
                    sort_keys=False,
                )
        except OSError as e:
            raise ManifestError(f"output to: '{path}' cause: '{e}'") from e


def create_default_fleet(
    projects_dir: Path | None = None,
    default_reference: str = "main",
) -> Fleet:
    """Create an empty fleet with sensible defaults."""
    return Fleet(
        projects_dir=projects_dir,
        default_reference=default_reference,
        projects={},
    )
