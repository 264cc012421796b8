"""MCP-compatible tool schema for AI agents."""

from __future__ import annotations

from ._version import __version__

_COMMON_PROPERTIES = {
    "config": {
        "type": "string",
        "description": "Path to the YAML configuration file (overrides auto-resolution). Auto-resolved from: $GIT_CONVOY_CONFIG env var → ./.git-convoy.yml → ~/.config/git-convoy/config.yml",
    },
    "json": {
        "type": "boolean",
        "description": "Output as JSON for machine parsing",
        "default": False,
    },
    "verbose": {
        "type": "integer",
        "description": "Logging verbosity (1 = info, 2 = debug)",
        "default": 0,
    },
    "quiet": {
        "type": "boolean",
        "description": "Only log errors",
        "default": False,
    },
}

_BRANCH_SCHEMA = {
    "type": "object",
    "properties": {
        "name": {"type": "string"},
        "outcome": {
            "type": "string",
            "enum": ["skipped", "blocked", "updated", "reported", "visited"],
        },
        "upstream": {
            "type": ["object", "null"],
            "properties": {
                "remote_name": {"type": "string"},
                "remote_ref": {"type": "string"},
                "tracking_ref": {"type": "string"},
            },
        },
        "commits_ahead": {"type": ["integer", "null"]},
        "commits_behind": {"type": ["integer", "null"]},
        "conflicts": {"type": "integer"},
        "index": {"type": "integer"},
        "working_tree": {"type": "integer"},
    },
}

_REPORT_OUTPUT_SCHEMA = {
    "type": "object",
    "properties": {
        "repositories": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "name": {"type": "string"},
                    "url": {"type": "string"},
                    "directory": {"type": "string"},
                    "lifecycle": {
                        "type": "string",
                        "enum": [
                            "ready",
                            "cloned",
                            "url_updated",
                            "missing",
                            "not_a_directory",
                            "unlistable",
                            "not_empty",
                        ],
                    },
                    "original_head": {"type": "string"},
                    "branches": {"type": "array", "items": _BRANCH_SCHEMA},
                    "blocked_reason": {"type": "string"},
                    "error": {"type": "string"},
                },
            },
        },
        "summary": {
            "type": "object",
            "properties": {
                "total": {"type": "integer"},
                "ready": {"type": "integer"},
                "cloned": {"type": "integer"},
                "missing": {"type": "integer"},
                "refused": {"type": "integer"},
                "failed": {"type": "integer"},
                "blocked": {"type": "integer"},
                "updated": {"type": "integer"},
                "behind": {"type": "integer"},
                "ahead": {"type": "integer"},
                "dirty": {"type": "integer"},
            },
        },
    },
}


def get_tool_schema() -> dict:
    """Generate MCP-compatible tool schema for AI agents."""
    return {
        "name": "git-convoy",
        "version": __version__,
        "description": "Keep a configured set of Git clones in formation with their upstreams. Clones missing repositories, fixes mismatched remote URLs, fetches each remote once per pass, pulls every tracked branch of clean working copies and reports ahead/behind and change counts per branch.",
        "usage": "git-convoy <command> [options]",
        "tools": [
            {
                "name": "list",
                "description": "List configured repositories with their URL, directory and whether a working copy exists. Runs no git commands.",
                "inputSchema": {
                    "type": "object",
                    "properties": dict(_COMMON_PROPERTIES),
                    "required": [],
                },
                "examples": [
                    {
                        "description": "List repositories from an explicit config",
                        "command": "git-convoy list --config ~/convoy.yml --json",
                    },
                ],
            },
            {
                "name": "init",
                "description": "Clone repositories whose directory is missing or empty (with submodules), and rewrite the origin URL of existing clones that point elsewhere. Non-empty directories that are not repositories are ignored with a warning.",
                "inputSchema": {
                    "type": "object",
                    "properties": {
                        **_COMMON_PROPERTIES,
                        "status": {
                            "type": "boolean",
                            "description": "Also report branch status after cloning",
                            "default": False,
                        },
                    },
                    "required": [],
                },
                "outputSchema": _REPORT_OUTPUT_SCHEMA,
            },
            {
                "name": "status",
                "description": "Fetch the upstream remote of every tracked branch (each remote once) and report commits ahead/behind, conflicts, staged and unstaged change counts. Branches without an upstream branch are left out. Never modifies working copies.",
                "inputSchema": {
                    "type": "object",
                    "properties": {
                        **_COMMON_PROPERTIES,
                        "init": {
                            "type": "boolean",
                            "description": "Clone missing repositories first",
                            "default": False,
                        },
                    },
                    "required": [],
                },
                "outputSchema": _REPORT_OUTPUT_SCHEMA,
                "examples": [
                    {
                        "description": "Status of all configured repositories",
                        "command": "git-convoy status --json",
                    },
                ],
            },
            {
                "name": "update",
                "description": "Pull every tracked branch (checkout, submodule sync/update, pull) and report status. A repository whose checked-out branch has conflicts or uncommitted changes is not touched at all. The originally checked-out branch is restored afterwards.",
                "inputSchema": {
                    "type": "object",
                    "properties": {
                        **_COMMON_PROPERTIES,
                        "init": {
                            "type": "boolean",
                            "description": "Clone missing repositories first",
                            "default": False,
                        },
                    },
                    "required": [],
                },
                "outputSchema": _REPORT_OUTPUT_SCHEMA,
                "examples": [
                    {
                        "description": "Clone what is missing, then update everything",
                        "command": "git-convoy update --init --json",
                    },
                ],
            },
        ],
    }
