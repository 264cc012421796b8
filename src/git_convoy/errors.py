"""Error types raised by git-convoy."""

from __future__ import annotations

from pathlib import Path


class ConvoyError(Exception):
    """Base class for all git-convoy errors."""


class GitCommandError(ConvoyError):
    """A git command exited non-zero (or could not be started)."""

    def __init__(self, command: list[str], returncode: int, detail: str):
        self.command = command
        self.returncode = returncode
        self.detail = detail
        super().__init__(detail or f"{' '.join(command)} exited with {returncode}")


class DivergenceParseError(ConvoyError):
    """A commit count query returned something that is not a number."""

    def __init__(self, ref_range: str, output: str):
        self.ref_range = ref_range
        self.output = output
        super().__init__(f"Cannot parse commit count for {ref_range}: {output!r}")


class ConfigError(ConvoyError):
    """The configuration file is missing or malformed."""


class WorkingCopyError(ConvoyError):
    """The directory of a working copy could not be inspected or created."""

    def __init__(self, directory: Path, error: OSError):
        self.directory = directory
        self.error = error
        super().__init__(f"{directory}: {error.strerror or error}")
