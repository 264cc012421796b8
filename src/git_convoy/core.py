"""
git-convoy: Keep a convoy of Git clones in formation with their upstreams.

Clones the configured repositories, keeps their remote URLs in line with the
configuration, fetches and updates every tracked branch, and reports how far
each branch has drifted from its upstream.
"""

from __future__ import annotations

import json
import logging
import re
import subprocess
from collections.abc import Callable
from dataclasses import asdict, dataclass, field
from enum import StrEnum
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn

from ._version import __version__
from .config import ConvoyConfig, RepositoryDescriptor, load_config_file, resolve_config_file
from .errors import (
    ConfigError,
    ConvoyError,
    DivergenceParseError,
    GitCommandError,
    WorkingCopyError,
)
from .formatters import OutputFormatter
from .schema import get_tool_schema

logger = logging.getLogger(__name__)

BRANCH_REF_PREFIX = "refs/heads/"
STATUS_PATTERN = re.compile(r"^([ ACDMRU?!])([ ADMU?!])")
COUNT_PATTERN = re.compile(r"[0-9]+")

# =============================================================================
# Domain Models
# =============================================================================


class SyncOutcome(StrEnum):
    """What happened to a branch during a pass."""

    SKIPPED = "skipped"  # no valid upstream
    BLOCKED = "blocked"  # conflicts or local changes present
    UPDATED = "updated"  # checked out and pulled
    REPORTED = "reported"  # status computed, nothing mutated
    VISITED = "visited"  # fetched only, no status requested


class LifecycleOutcome(StrEnum):
    """Terminal state of the working-copy check for one repository."""

    READY = "ready"
    CLONED = "cloned"
    URL_UPDATED = "url_updated"
    MISSING = "missing"
    NOT_A_DIRECTORY = "not_a_directory"
    UNLISTABLE = "unlistable"
    NOT_EMPTY = "not_empty"

    @property
    def is_ready(self) -> bool:
        return self in (
            LifecycleOutcome.READY,
            LifecycleOutcome.CLONED,
            LifecycleOutcome.URL_UPDATED,
        )


class DirectoryState(StrEnum):
    """On-disk state of a repository directory."""

    MISSING = "missing"
    NOT_A_DIRECTORY = "not_a_directory"
    REPOSITORY = "repository"
    UNLISTABLE = "unlistable"
    NOT_EMPTY = "not_empty"
    EMPTY = "empty"


class EventKind(StrEnum):
    """Semantic events emitted while a pass runs."""

    REPOSITORY_STARTED = "repository_started"
    LISTED = "listed"
    LIFECYCLE = "lifecycle"
    BRANCH_VISITED = "branch_visited"
    BRANCH_SKIPPED = "branch_skipped"
    BRANCH_BLOCKED = "branch_blocked"
    BRANCH_UPDATED = "branch_updated"
    BRANCH_REPORTED = "branch_reported"
    REPOSITORY_BLOCKED = "repository_blocked"
    REPOSITORY_FAILED = "repository_failed"
    REPOSITORY_FINISHED = "repository_finished"


@dataclass
class ChangeStat:
    """Per-class change counts for one side (index or working tree) of a status."""

    added: int = 0
    modified: int = 0
    renamed: int = 0
    deleted: int = 0
    unmerged: int = 0

    @property
    def total(self) -> int:
        return self.added + self.modified + self.renamed + self.deleted + self.unmerged

    def to_dict(self) -> dict:
        return {**asdict(self), "total": self.total}


@dataclass
class RepositoryStatus:
    """Staged (index) and unstaged (working tree) changes of a working copy."""

    index: ChangeStat = field(default_factory=ChangeStat)
    working_tree: ChangeStat = field(default_factory=ChangeStat)

    @property
    def conflicts(self) -> int:
        return self.index.unmerged + self.working_tree.unmerged

    @property
    def is_clean(self) -> bool:
        """True when nothing would stop an update."""
        return self.conflicts == 0 and self.index.total == 0 and self.working_tree.total == 0

    def to_dict(self) -> dict:
        return {
            "index": self.index.to_dict(),
            "working_tree": self.working_tree.to_dict(),
            "conflicts": self.conflicts,
        }


@dataclass(frozen=True)
class UpstreamLink:
    """Configured upstream of a local branch."""

    remote_name: str
    remote_ref: str

    @property
    def remote_branch(self) -> str:
        return self.remote_ref[len(BRANCH_REF_PREFIX) :]

    @property
    def tracking_ref(self) -> str:
        """Remote-tracking reference used for divergence queries, e.g. ``origin/main``."""
        return f"{self.remote_name}/{self.remote_branch}"

    def to_dict(self) -> dict:
        return {
            "remote_name": self.remote_name,
            "remote_ref": self.remote_ref,
            "tracking_ref": self.tracking_ref,
        }


@dataclass
class DivergenceResult:
    """Commit counts between a local branch and its upstream."""

    commits_ahead: int = 0
    commits_behind: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class BranchReport:
    """Result of processing one local branch."""

    name: str
    outcome: SyncOutcome
    upstream: UpstreamLink | None = None
    divergence: DivergenceResult | None = None
    status: RepositoryStatus | None = None

    @property
    def conflicts(self) -> int:
        return self.status.conflicts if self.status else 0

    @property
    def index(self) -> int:
        return self.status.index.total if self.status else 0

    @property
    def working_tree(self) -> int:
        return self.status.working_tree.total if self.status else 0

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "outcome": self.outcome.value,
            "upstream": self.upstream.to_dict() if self.upstream else None,
            "commits_ahead": self.divergence.commits_ahead if self.divergence else None,
            "commits_behind": self.divergence.commits_behind if self.divergence else None,
            "conflicts": self.conflicts,
            "index": self.index,
            "working_tree": self.working_tree,
            "status": self.status.to_dict() if self.status else None,
        }


@dataclass
class RepositoryReport:
    """Result of one repository's pass."""

    descriptor: RepositoryDescriptor
    lifecycle: LifecycleOutcome = LifecycleOutcome.READY
    original_head: str = ""
    branches: list[BranchReport] = field(default_factory=list)
    blocked_reason: str = ""
    error: str = ""

    @property
    def name(self) -> str:
        return self.descriptor.name

    @property
    def path(self) -> Path:
        return self.descriptor.directory

    @property
    def failed(self) -> bool:
        return bool(self.error)

    @property
    def refused(self) -> bool:
        return self.lifecycle in (
            LifecycleOutcome.NOT_A_DIRECTORY,
            LifecycleOutcome.UNLISTABLE,
            LifecycleOutcome.NOT_EMPTY,
        )

    def to_dict(self) -> dict:
        return {
            **self.descriptor.to_dict(),
            "lifecycle": self.lifecycle.value,
            "original_head": self.original_head,
            "branches": [b.to_dict() for b in self.branches],
            "blocked_reason": self.blocked_reason,
            "error": self.error,
        }


@dataclass
class ConvoySummary:
    """Summary of a pass over the whole convoy."""

    total: int = 0
    ready: int = 0
    cloned: int = 0
    missing: int = 0
    refused: int = 0
    failed: int = 0
    blocked: int = 0
    updated: int = 0
    behind: int = 0
    ahead: int = 0
    dirty: int = 0

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_reports(cls, reports: list[RepositoryReport]) -> ConvoySummary:
        """Build summary counts; branch counters count branches, not repositories."""
        summary = cls(total=len(reports))
        for report in reports:
            if report.failed:
                summary.failed += 1
            elif report.lifecycle == LifecycleOutcome.MISSING:
                summary.missing += 1
            elif report.refused:
                summary.refused += 1
            else:
                summary.ready += 1
            if report.lifecycle == LifecycleOutcome.CLONED:
                summary.cloned += 1

            # a gated repository carries a single blocked entry for its active branch
            for branch in report.branches:
                if branch.outcome == SyncOutcome.UPDATED:
                    summary.updated += 1
                elif branch.outcome == SyncOutcome.BLOCKED:
                    summary.blocked += 1
                if branch.divergence and branch.divergence.commits_behind > 0:
                    summary.behind += 1
                if branch.divergence and branch.divergence.commits_ahead > 0:
                    summary.ahead += 1
                if branch.status and not branch.status.is_clean:
                    summary.dirty += 1
        return summary


@dataclass
class SyncEvent:
    """A semantic event for the presentation layer."""

    kind: EventKind
    repository: RepositoryDescriptor
    branch: str = ""
    report: BranchReport | None = None
    message: str = ""


EventListener = Callable[[SyncEvent], None]


@dataclass
class PassOptions:
    """Which steps a pass performs."""

    do_list: bool = False
    do_init: bool = False
    do_stat: bool = False
    do_update: bool = False

    @property
    def visits_branches(self) -> bool:
        return self.do_init or self.do_stat or self.do_update


# =============================================================================
# Parsers
# =============================================================================


def parse_status(text: str) -> RepositoryStatus:
    """Parse ``git status --porcelain`` output into index/working-tree counts.

    Lines that do not start with two status characters are ignored. ``R`` and
    ``C`` only count on the index side.
    """
    status = RepositoryStatus()
    for line in text.split("\n"):
        match = STATUS_PATTERN.match(line)
        if not match:
            continue
        index, working_tree = match.group(1), match.group(2)

        if index in ("A", "C"):
            status.index.added += 1
        elif index == "D":
            status.index.deleted += 1
        elif index == "M":
            status.index.modified += 1
        elif index == "R":
            status.index.renamed += 1
        elif index == "U":
            status.index.unmerged += 1

        if working_tree in ("A", "?"):
            status.working_tree.added += 1
        elif working_tree == "D":
            status.working_tree.deleted += 1
        elif working_tree == "M":
            status.working_tree.modified += 1
        elif working_tree == "U":
            status.working_tree.unmerged += 1
    return status


def parse_branches(text: str) -> list[str]:
    """Parse ``git branch`` output into branch names, in listing order."""
    branches = []
    for line in text.split("\n"):
        name = re.sub(r"^[*+]", "", line).strip()
        # "(HEAD detached at ...)" is not a branch
        if name and not name.startswith("("):
            branches.append(name)
    return branches


# =============================================================================
# Git Operations (Low-level)
# =============================================================================


@dataclass
class CommandResult:
    """Exit code and output of one git invocation."""

    args: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def value(self) -> str:
        """Standard output without trailing whitespace."""
        return self.stdout.rstrip()

    def check(self) -> CommandResult:
        """Raise GitCommandError unless the command succeeded."""
        if not self.ok:
            detail = self.stderr.strip() or self.stdout.strip()
            raise GitCommandError(self.args, self.returncode, detail)
        return self


class GitOperations:
    """Low-level Git operations for a single working copy."""

    def __init__(self, repo_path: Path, binary: str = "git"):
        self.repo_path = repo_path
        self.binary = binary

    def _run(self, *args: str, cwd: Path | None = None) -> CommandResult:
        """Run a git command and capture its result without raising on failure."""
        command = [self.binary, *args]
        workdir = cwd or self.repo_path
        logger.debug("[%s] > %s", workdir, " ".join(command))
        try:
            result = subprocess.run(
                command,
                cwd=workdir,
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as e:
            return CommandResult(command, -1, "", str(e))
        return CommandResult(command, result.returncode, result.stdout, result.stderr)

    def _git(self, *args: str, cwd: Path | None = None) -> str:
        """Run a git command and return its trimmed output, raising on failure."""
        return self._run(*args, cwd=cwd).check().value

    def clone(self, url: str, directory: Path) -> None:
        """Clone ``url`` into ``directory`` (run from its parent)."""
        try:
            directory.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise WorkingCopyError(directory.parent, e) from e
        self._git("clone", url, str(directory), cwd=directory.parent)

    def submodule_init(self) -> None:
        self._git("submodule", "init")

    def submodule_sync(self) -> None:
        self._git("submodule", "sync")

    def submodule_update(self) -> None:
        self._git("submodule", "update")

    def get_config(self, key: str) -> str:
        """Read a local config value; an unset key yields an empty string."""
        result = self._run("config", "--local", "--get", key)
        # exit code 1 means the key is not set
        if result.returncode == 1 and not result.stderr.strip():
            return ""
        return result.check().value

    def get_remote_url(self, remote: str = "origin") -> str:
        return self.get_config(f"remote.{remote}.url")

    def has_remote(self, remote: str) -> bool:
        return remote in self._git("remote").split()

    def set_remote_url(self, url: str, remote: str = "origin") -> None:
        """Point ``remote`` at ``url``, adding the remote if it does not exist."""
        if self.has_remote(remote):
            self._git("remote", "set-url", remote, url)
        else:
            self._git("remote", "add", remote, url)

    def list_branches(self) -> list[str]:
        return parse_branches(self._git("branch"))

    def get_head(self) -> tuple[str, bool]:
        """Return the checked-out branch name, or the commit hash when detached.

        The second element tells whether HEAD is a branch.
        """
        result = self._run("symbolic-ref", "--short", "HEAD")
        if result.ok and result.value:
            return result.value, True
        return self._git("rev-parse", "HEAD"), False

    def get_status(self) -> RepositoryStatus:
        return parse_status(self._git("status", "--porcelain"))

    def fetch(self, remote: str) -> None:
        self._git("fetch", remote)

    def checkout(self, ref: str) -> None:
        self._git("checkout", ref)

    def pull(self) -> None:
        self._git("pull")

    def rev_parse(self, ref: str) -> str:
        return self._git("rev-parse", ref)

    def count_commits(self, ref_range: str) -> int:
        """Count commits in ``ref_range`` (``a..b``)."""
        output = self._git("rev-list", "--count", ref_range)
        if not COUNT_PATTERN.fullmatch(output):
            raise DivergenceParseError(ref_range, output)
        return int(output)


# =============================================================================
# Branch Synchronization
# =============================================================================


def resolve_upstream(ops: GitOperations, branch: str) -> UpstreamLink | None:
    """Look up the upstream of ``branch``.

    Returns None for branches without a remote, without a merge ref, or whose
    merge ref is not a branch (``refs/heads/...``).
    """
    remote_name = ops.get_config(f"branch.{branch}.remote")
    remote_ref = ops.get_config(f"branch.{branch}.merge")
    if not remote_name or not remote_ref or not remote_ref.startswith(BRANCH_REF_PREFIX):
        return None
    return UpstreamLink(remote_name=remote_name, remote_ref=remote_ref)


class FetchCoordinator:
    """Fetches each remote at most once per repository pass."""

    def __init__(self, ops: GitOperations):
        self.ops = ops
        self.fetched: set[str] = set()

    def ensure_fetched(self, remote: str) -> bool:
        """Fetch ``remote`` unless already fetched. Returns True if a fetch ran."""
        if remote in self.fetched:
            return False
        logger.info("[%s] fetching %s", self.ops.repo_path, remote)
        self.ops.fetch(remote)
        self.fetched.add(remote)
        return True


def compute_divergence(ops: GitOperations, local_ref: str, upstream_ref: str) -> DivergenceResult:
    """Count commits only on the upstream side (behind) and only on the local side (ahead)."""
    behind = ops.count_commits(f"{local_ref}..{upstream_ref}")
    ahead = ops.count_commits(f"{upstream_ref}..{local_ref}")
    return DivergenceResult(commits_ahead=ahead, commits_behind=behind)


def update_block_reason(status: RepositoryStatus) -> str:
    """Why an update must not run over this status, or "" when it may."""
    if status.conflicts > 0:
        return "cannot update, has conflicts"
    if status.index.total > 0 or status.working_tree.total > 0:
        return "cannot update, has changes"
    return ""


@dataclass
class RepositoryContext:
    """Mutable state scoped to one repository pass."""

    original_head: str
    head_is_branch: bool
    fetcher: FetchCoordinator
    checked_out: bool = False


class RepositorySynchronizer:
    """Processes the branches of one ready working copy."""

    def __init__(
        self,
        descriptor: RepositoryDescriptor,
        options: PassOptions,
        git_binary: str = "git",
        listener: EventListener | None = None,
    ):
        self.descriptor = descriptor
        self.options = options
        self.ops = GitOperations(descriptor.directory, git_binary)
        self.listener = listener

    def _emit(self, kind: EventKind, branch: str = "", report: BranchReport | None = None,
              message: str = "") -> None:
        if self.listener is not None:
            self.listener(SyncEvent(kind, self.descriptor, branch, report, message))

    def begin_pass(self) -> RepositoryContext:
        """Record the original HEAD and start with an empty fetched-remote set."""
        head, is_branch = self.ops.get_head()
        return RepositoryContext(
            original_head=head,
            head_is_branch=is_branch,
            fetcher=FetchCoordinator(self.ops),
        )

    def check_update_possible(self, report: RepositoryReport) -> bool:
        """Repository-wide gate, evaluated on whatever branch is checked out."""
        status = self.ops.get_status()
        reason = update_block_reason(status)
        if not reason:
            return True

        head, _ = self.ops.get_head()
        blocked = BranchReport(name=head, outcome=SyncOutcome.BLOCKED, status=status)
        report.original_head = head
        report.blocked_reason = reason
        report.branches.append(blocked)
        logger.warning("[%s] %s", self.descriptor.directory, reason)
        self._emit(EventKind.REPOSITORY_BLOCKED, head, blocked, reason)
        return False

    def synchronize(self, report: RepositoryReport) -> RepositoryReport:
        """Visit every tracked branch, then restore the original HEAD."""
        if self.options.do_update and not self.check_update_possible(report):
            return report

        context = self.begin_pass()
        report.original_head = context.original_head
        branch_names = self.ops.list_branches()

        try:
            for name in branch_names:
                report.branches.append(self.process_branch(context, name))
        except ConvoyError:
            try:
                self.restore_head(context, branch_names)
            except ConvoyError as restore_error:
                logger.warning(
                    "[%s] could not restore %s: %s",
                    self.descriptor.directory,
                    context.original_head,
                    restore_error,
                )
            raise

        self.restore_head(context, branch_names)
        return report

    def process_branch(self, context: RepositoryContext, name: str) -> BranchReport:
        """Fetch, optionally update, and measure one branch."""
        upstream = resolve_upstream(self.ops, name)
        if upstream is None:
            logger.debug("[%s] %s has no upstream, skipping", self.descriptor.directory, name)
            branch = BranchReport(name=name, outcome=SyncOutcome.SKIPPED)
            self._emit(EventKind.BRANCH_SKIPPED, name, branch)
            return branch

        context.fetcher.ensure_fetched(upstream.remote_name)
        branch = BranchReport(name=name, outcome=SyncOutcome.VISITED, upstream=upstream)
        self._emit(EventKind.BRANCH_VISITED, name, branch)

        if self.options.do_update:
            if resolve_upstream(self.ops, name) is None:
                branch.outcome = SyncOutcome.SKIPPED
                self._emit(EventKind.BRANCH_SKIPPED, name, branch)
                return branch

            self.ops.checkout(name)
            context.checked_out = True
            self.ops.submodule_sync()
            self.ops.submodule_update()
            self.ops.pull()
            branch.outcome = SyncOutcome.UPDATED
            logger.info("[%s] updated %s", self.descriptor.directory, name)

        if self.options.do_update or self.options.do_stat:
            local_ref = self.ops.rev_parse(name)
            upstream_ref = self.ops.rev_parse(upstream.tracking_ref)
            branch.divergence = compute_divergence(self.ops, local_ref, upstream_ref)
            branch.status = self.ops.get_status()
            if branch.outcome != SyncOutcome.UPDATED:
                branch.outcome = (
                    SyncOutcome.REPORTED if branch.status.is_clean else SyncOutcome.BLOCKED
                )

        if branch.outcome == SyncOutcome.UPDATED:
            self._emit(EventKind.BRANCH_UPDATED, name, branch)
        elif branch.outcome == SyncOutcome.BLOCKED:
            self._emit(EventKind.BRANCH_BLOCKED, name, branch)
        elif branch.outcome == SyncOutcome.REPORTED:
            self._emit(EventKind.BRANCH_REPORTED, name, branch)
        return branch

    def restore_head(self, context: RepositoryContext, branch_names: list[str]) -> None:
        """Check the original HEAD back out.

        A branch that is no longer listed is left alone. A detached commit is
        restored only if this pass checked something else out.
        """
        if context.head_is_branch:
            if context.original_head in branch_names:
                self.ops.checkout(context.original_head)
            else:
                logger.info(
                    "[%s] original branch %s is gone, not restoring",
                    self.descriptor.directory,
                    context.original_head,
                )
        elif context.checked_out and context.original_head:
            self.ops.checkout(context.original_head)


# =============================================================================
# Repository Lifecycle
# =============================================================================


def classify_directory(directory: Path) -> DirectoryState:
    """Classify a repository directory; pure filesystem inspection.

    Raises WorkingCopyError when the path itself cannot be examined, e.g.
    because a parent directory is not searchable.
    """
    try:
        if not directory.exists():
            return DirectoryState.MISSING
        if not directory.is_dir():
            return DirectoryState.NOT_A_DIRECTORY
        if (directory / ".git").is_dir():
            return DirectoryState.REPOSITORY
    except OSError as e:
        raise WorkingCopyError(directory, e) from e
    try:
        has_children = any(True for _ in directory.iterdir())
    except OSError:
        return DirectoryState.UNLISTABLE
    return DirectoryState.NOT_EMPTY if has_children else DirectoryState.EMPTY


def is_working_copy(directory: Path) -> bool:
    return classify_directory(directory) == DirectoryState.REPOSITORY


_REFUSALS: dict[DirectoryState, tuple[LifecycleOutcome, str]] = {
    DirectoryState.NOT_A_DIRECTORY: (LifecycleOutcome.NOT_A_DIRECTORY, "is not a directory!"),
    DirectoryState.UNLISTABLE: (LifecycleOutcome.UNLISTABLE, "the directory could not be listed"),
    DirectoryState.NOT_EMPTY: (LifecycleOutcome.NOT_EMPTY, "the directory is not empty"),
}


class RepositoryLifecycleManager:
    """Makes sure a configured repository has a usable working copy."""

    def __init__(self, git_binary: str = "git"):
        self.git_binary = git_binary

    def ensure_working_copy(self, descriptor: RepositoryDescriptor) -> LifecycleOutcome:
        """Clone, reconcile the remote URL, or refuse, depending on the directory state."""
        directory = descriptor.directory
        state = classify_directory(directory)

        if state in (DirectoryState.MISSING, DirectoryState.EMPTY):
            self.clone(descriptor)
            return LifecycleOutcome.CLONED

        if state == DirectoryState.REPOSITORY:
            return self.reconcile_remote(descriptor)

        outcome, reason = _REFUSALS[state]
        logger.warning("[%s] ignoring, %s", directory, reason)
        return outcome

    def clone(self, descriptor: RepositoryDescriptor) -> None:
        """Clone the repository, then initialize and update its submodules."""
        directory = descriptor.directory
        logger.info("[%s] cloning %s", directory, descriptor.url)
        GitOperations(directory.parent, self.git_binary).clone(descriptor.url, directory)
        ops = GitOperations(directory, self.git_binary)
        ops.submodule_init()
        ops.submodule_update()

    def reconcile_remote(self, descriptor: RepositoryDescriptor) -> LifecycleOutcome:
        """Rewrite the origin URL when it differs from the configured one."""
        ops = GitOperations(descriptor.directory, self.git_binary)
        actual_url = ops.get_remote_url()
        if actual_url == descriptor.url:
            return LifecycleOutcome.READY
        logger.info(
            "[%s] update remote url %s -> %s",
            descriptor.directory,
            actual_url or "(none)",
            descriptor.url,
        )
        ops.set_remote_url(descriptor.url)
        return LifecycleOutcome.URL_UPDATED


# =============================================================================
# Convoy Manager
# =============================================================================


class ConvoyManager:
    """Run passes over all configured repositories, one at a time."""

    def __init__(
        self,
        config: ConvoyConfig,
        options: PassOptions,
        listener: EventListener | None = None,
    ):
        self.config = config
        self.options = options
        self.listener = listener
        self.lifecycle = RepositoryLifecycleManager(config.git_binary)

    def _emit(self, kind: EventKind, descriptor: RepositoryDescriptor, message: str = "") -> None:
        if self.listener is not None:
            self.listener(SyncEvent(kind, descriptor, message=message))

    def run(self) -> list[RepositoryReport]:
        """Process every repository in configuration order."""
        return [self.process_repository(d) for d in self.config.repositories]

    def process_repository(self, descriptor: RepositoryDescriptor) -> RepositoryReport:
        """Process one repository; failures are recorded, never raised."""
        report = RepositoryReport(descriptor=descriptor)
        self._emit(EventKind.REPOSITORY_STARTED, descriptor)

        if self.options.do_list:
            self._emit(EventKind.LISTED, descriptor, f"{descriptor.url} {descriptor.directory}")

        try:
            if self.options.do_init:
                report.lifecycle = self.lifecycle.ensure_working_copy(descriptor)
                self._emit(EventKind.LIFECYCLE, descriptor, report.lifecycle.value)
            elif not is_working_copy(descriptor.directory):
                report.lifecycle = LifecycleOutcome.MISSING

            if report.lifecycle.is_ready and self.options.visits_branches:
                synchronizer = RepositorySynchronizer(
                    descriptor, self.options, self.config.git_binary, self.listener
                )
                synchronizer.synchronize(report)
        except ConvoyError as e:
            report.error = str(e)
            logger.error("[%s] %s", descriptor.directory, e)
            self._emit(EventKind.REPOSITORY_FAILED, descriptor, report.error)

        self._emit(EventKind.REPOSITORY_FINISHED, descriptor)
        return report

    def get_summary(self, reports: list[RepositoryReport]) -> ConvoySummary:
        return ConvoySummary.from_reports(reports)


# =============================================================================
# CLI Application
# =============================================================================


app = typer.Typer(
    name="git-convoy",
    help="Keep a convoy of Git clones in formation with their upstreams.",
    no_args_is_help=True,
)


def configure_logging(verbose: int = 0, quiet: bool = False) -> None:
    """Route log records to stderr through rich: -q error, default warning, -v info, -vv debug."""
    if verbose >= 2:
        level = logging.DEBUG
    elif verbose == 1:
        level = logging.INFO
    elif quiet:
        level = logging.ERROR
    else:
        level = logging.WARNING

    handler = RichHandler(console=Console(stderr=True), show_path=False, markup=False)
    root = logging.getLogger("git_convoy")
    root.handlers[:] = [handler]
    root.setLevel(level)


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        print(f"git-convoy {__version__}")
        raise typer.Exit()


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    schema: bool = typer.Option(
        False,
        "--schema",
        help="Output MCP-compatible tool schema for AI agents",
    ),
):
    """git-convoy: Keep a convoy of Git clones in formation with their upstreams."""
    if schema:
        print(json.dumps(get_tool_schema(), indent=2))
        raise typer.Exit()


def get_console_and_formatter(json_output: bool) -> tuple[Console, OutputFormatter]:
    """Create console and formatter."""
    console = Console(force_terminal=not json_output)
    formatter = OutputFormatter(console, use_json=json_output)
    return console, formatter


def load_config(config_file: Path | None, console: Console) -> ConvoyConfig:
    """Load the explicit or auto-resolved config file, exiting with 1 on failure."""
    resolved = config_file or resolve_config_file()
    if resolved is None:
        console.print("[red]Error: No configuration file found (use --config)[/]")
        raise typer.Exit(1)
    try:
        return load_config_file(resolved)
    except ConfigError as e:
        console.print(f"[red]Error: {e}[/]")
        raise typer.Exit(1) from e


def _describe_event(event: SyncEvent) -> str:
    if event.branch:
        return f"{event.repository.name}: {event.branch} ({event.kind.value.replace('_', ' ')})"
    return f"{event.repository.name}: {event.kind.value.replace('_', ' ')}"


def run_pass(
    config: ConvoyConfig,
    options: PassOptions,
    console: Console,
    json_output: bool,
    description: str,
) -> list[RepositoryReport]:
    """Run a pass, showing a spinner that follows the event stream on the console."""
    if json_output:
        return ConvoyManager(config, options).run()

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        task = progress.add_task(description, total=None)

        def listener(event: SyncEvent) -> None:
            progress.update(task, description=_describe_event(event))

        return ConvoyManager(config, options, listener).run()


def _finish(formatter: OutputFormatter, reports: list[RepositoryReport]) -> None:
    summary = ConvoySummary.from_reports(reports)
    formatter.print_reports(reports, summary)
    if summary.failed:
        raise typer.Exit(1)


CONFIG_OPTION = typer.Option(
    None,
    "--config",
    "-c",
    help="Configuration file (default: $GIT_CONVOY_CONFIG, ./.git-convoy.yml, "
    "~/.config/git-convoy/config.yml)",
)
JSON_OPTION = typer.Option(False, "--json", "-j", help="Output as JSON")
VERBOSE_OPTION = typer.Option(0, "--verbose", "-v", count=True, help="More logging (-vv for debug)")
QUIET_OPTION = typer.Option(False, "--quiet", "-q", help="Only log errors")


@app.command(name="list")
def list_repos(
    config_file: Path = CONFIG_OPTION,
    json_output: bool = JSON_OPTION,
    verbose: int = VERBOSE_OPTION,
    quiet: bool = QUIET_OPTION,
):
    """List configured repositories with their URL and directory."""
    configure_logging(verbose, quiet)
    console, formatter = get_console_and_formatter(json_output)
    config = load_config(config_file, console)
    reports = ConvoyManager(config, PassOptions(do_list=True)).run()
    formatter.print_repository_list(reports)


@app.command()
def init(
    config_file: Path = CONFIG_OPTION,
    json_output: bool = JSON_OPTION,
    verbose: int = VERBOSE_OPTION,
    quiet: bool = QUIET_OPTION,
    with_status: bool = typer.Option(
        False,
        "--status",
        "-s",
        help="Also report branch status after cloning",
    ),
):
    """Clone missing repositories and fix mismatched remote URLs."""
    configure_logging(verbose, quiet)
    console, formatter = get_console_and_formatter(json_output)
    config = load_config(config_file, console)
    options = PassOptions(do_init=True, do_stat=with_status)
    reports = run_pass(config, options, console, json_output, "Initializing repositories...")
    _finish(formatter, reports)


@app.command()
def status(
    config_file: Path = CONFIG_OPTION,
    json_output: bool = JSON_OPTION,
    verbose: int = VERBOSE_OPTION,
    quiet: bool = QUIET_OPTION,
    with_init: bool = typer.Option(
        False,
        "--init",
        "-i",
        help="Clone missing repositories first",
    ),
):
    """Fetch upstreams and show ahead/behind and change counts per branch."""
    configure_logging(verbose, quiet)
    console, formatter = get_console_and_formatter(json_output)
    config = load_config(config_file, console)
    options = PassOptions(do_init=with_init, do_stat=True)
    reports = run_pass(config, options, console, json_output, "Fetching and analyzing...")
    _finish(formatter, reports)


@app.command()
def update(
    config_file: Path = CONFIG_OPTION,
    json_output: bool = JSON_OPTION,
    verbose: int = VERBOSE_OPTION,
    quiet: bool = QUIET_OPTION,
    with_init: bool = typer.Option(
        False,
        "--init",
        "-i",
        help="Clone missing repositories first",
    ),
):
    """Pull every tracked branch of clean repositories, then show status.

    Repositories with conflicts or uncommitted changes on the checked-out
    branch are not touched. The originally checked-out branch is restored.
    """
    configure_logging(verbose, quiet)
    console, formatter = get_console_and_formatter(json_output)
    config = load_config(config_file, console)
    options = PassOptions(do_init=with_init, do_update=True)
    reports = run_pass(config, options, console, json_output, "Updating repositories...")
    _finish(formatter, reports)
