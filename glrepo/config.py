"""
Configuration defaults and path resolution for glrepo.

The manifest lives in a configuration home directory, selected by the
``--config-directory`` option, the ``GLREPO_CONFIG_HOME`` environment
variable, or ``~/.config/glrepo`` in that order.
"""

import os
from pathlib import Path

CONFIG_HOME_ENV = "GLREPO_CONFIG_HOME"
DEFAULT_CONFIG_HOME = Path.home() / ".config" / "glrepo"
DEFAULT_MANIFEST = Path("default.yaml")

# Parallelism is opt-in
DEFAULT_JOBS = 1
DEFAULT_TIMEOUT_MS = 600_000

# Identity used for SSH remotes
DEFAULT_SSH_KEY = Path.home() / ".ssh" / "id_rsa"


def resolve_config_home(explicit: Path | str | None = None) -> Path:
    """Get the configuration home directory."""
    if explicit:
        return Path(explicit).expanduser()
    env_home = os.environ.get(CONFIG_HOME_ENV)
    if env_home:
        return Path(env_home).expanduser()
    return DEFAULT_CONFIG_HOME


def resolve_manifest_path(config_home: Path, manifest: Path | str) -> Path:
    """
    Get the absolute path of the manifest file.

    Absolute paths and paths starting with ``./`` are taken as given,
    anything else is relative to the configuration home.
    """
    raw = str(manifest)
    path = Path(raw).expanduser()
    if path.is_absolute() or raw.startswith("./"):
        return path.resolve()
    return (Path(config_home) / path).resolve()
