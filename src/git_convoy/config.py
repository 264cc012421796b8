"""Convoy configuration: which repositories to keep and where they live."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from .errors import ConfigError

CONFIG_ENV_VAR = "GIT_CONVOY_CONFIG"
LOCAL_CONFIG_NAME = ".git-convoy.yml"


@dataclass(frozen=True)
class RepositoryDescriptor:
    """A configured repository: display name, canonical URL and clone directory."""

    name: str
    url: str
    directory: Path

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "url": self.url,
            "directory": str(self.directory),
        }


@dataclass
class ConvoyConfig:
    """Loaded configuration."""

    git_binary: str = "git"
    repositories: list[RepositoryDescriptor] = field(default_factory=list)
    source: Path | None = None


def _expand(value: str) -> Path:
    return Path(os.path.expandvars(value)).expanduser()


def parse_config(data: object, base_dir: Path, source: Path | None = None) -> ConvoyConfig:
    """Build a ConvoyConfig from already-parsed YAML data.

    Relative repository directories are resolved against ``base_dir``.
    """
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError("Configuration root must be a mapping")

    git_section = data.get("git") or {}
    if not isinstance(git_section, dict):
        raise ConfigError("'git' must be a mapping")
    binary = str(git_section.get("binary") or "git")

    entries = data.get("repositories") or []
    if not isinstance(entries, list):
        raise ConfigError("'repositories' must be a list")

    repositories: list[RepositoryDescriptor] = []
    seen: set[str] = set()
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise ConfigError(f"Repository #{index + 1} must be a mapping")
        name = str(entry.get("name") or "").strip()
        url = str(entry.get("url") or "").strip()
        if not name:
            raise ConfigError(f"Repository #{index + 1} has no name")
        if not url:
            raise ConfigError(f"Repository '{name}' has no url")
        if name in seen:
            raise ConfigError(f"Duplicate repository name '{name}'")
        seen.add(name)

        directory = _expand(str(entry.get("directory") or name))
        if not directory.is_absolute():
            directory = base_dir / directory
        repositories.append(RepositoryDescriptor(name=name, url=url, directory=directory))

    return ConvoyConfig(git_binary=binary, repositories=repositories, source=source)


def load_config_file(config_file: Path) -> ConvoyConfig:
    """Load configuration from a YAML file."""
    path = config_file.expanduser()
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except FileNotFoundError as e:
        raise ConfigError(f"Configuration file not found: {path}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    return parse_config(data, path.resolve().parent, source=path)


def resolve_config_file() -> Path | None:
    """Auto-resolve the configuration file from environment and standard locations.

    Priority order:
    1. $GIT_CONVOY_CONFIG environment variable
    2. ./.git-convoy.yml
    3. ~/.config/git-convoy/config.yml (XDG-compliant)
    """
    env_config = os.environ.get(CONFIG_ENV_VAR)
    if env_config:
        env_path = Path(env_config).expanduser()
        if env_path.exists() and env_path.is_file():
            return env_path

    local_path = Path.cwd() / LOCAL_CONFIG_NAME
    if local_path.exists() and local_path.is_file():
        return local_path

    xdg_path = Path.home() / ".config" / "git-convoy" / "config.yml"
    if xdg_path.exists() and xdg_path.is_file():
        return xdg_path

    return None
