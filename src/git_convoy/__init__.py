"""git-convoy: Keep a convoy of Git clones in formation with their upstreams."""

# Guard against deleted CWD (e.g. directory removed by another process).
# rich crashes on import if os.getcwd() fails, so recover before any imports.
import os

try:
    os.getcwd()
except (OSError, PermissionError):
    os.chdir(os.path.expanduser("~"))

from ._version import __version__
from .config import (
    ConvoyConfig,
    RepositoryDescriptor,
    load_config_file,
    parse_config,
    resolve_config_file,
)
from .core import (
    BranchReport,
    ChangeStat,
    CommandResult,
    ConvoyManager,
    ConvoySummary,
    DirectoryState,
    DivergenceResult,
    EventKind,
    FetchCoordinator,
    GitOperations,
    LifecycleOutcome,
    PassOptions,
    RepositoryLifecycleManager,
    RepositoryReport,
    RepositoryStatus,
    RepositorySynchronizer,
    SyncEvent,
    SyncOutcome,
    UpstreamLink,
    app,
    classify_directory,
    compute_divergence,
    parse_branches,
    parse_status,
    resolve_upstream,
)
from .errors import (
    ConfigError,
    ConvoyError,
    DivergenceParseError,
    GitCommandError,
    WorkingCopyError,
)
from .formatters import OutputFormatter
from .schema import get_tool_schema

__all__ = [
    # Version
    "__version__",
    # CLI
    "app",
    # Configuration
    "ConvoyConfig",
    "RepositoryDescriptor",
    "load_config_file",
    "parse_config",
    "resolve_config_file",
    # Models
    "BranchReport",
    "ChangeStat",
    "CommandResult",
    "ConvoySummary",
    "DirectoryState",
    "DivergenceResult",
    "EventKind",
    "LifecycleOutcome",
    "PassOptions",
    "RepositoryReport",
    "RepositoryStatus",
    "SyncEvent",
    "SyncOutcome",
    "UpstreamLink",
    # Operations
    "ConvoyManager",
    "FetchCoordinator",
    "GitOperations",
    "RepositoryLifecycleManager",
    "RepositorySynchronizer",
    # Functions
    "classify_directory",
    "compute_divergence",
    "get_tool_schema",
    "parse_branches",
    "parse_status",
    "resolve_upstream",
    # Errors
    "ConfigError",
    "ConvoyError",
    "DivergenceParseError",
    "GitCommandError",
    "WorkingCopyError",
    # Formatters
    "OutputFormatter",
]
