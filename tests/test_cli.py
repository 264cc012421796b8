"""CLI smoke tests - verify commands run and produce the expected output formats."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from conftest import push_commits
from typer.testing import CliRunner

from git_convoy import __version__, app

runner = CliRunner()


@pytest.fixture
def config_file(tmp_path: Path, descriptor) -> Path:
    path = tmp_path / "convoy.yml"
    path.write_text(
        "repositories:\n"
        "  - name: project\n"
        f"    url: {descriptor.url}\n"
        f"    directory: {descriptor.directory}\n"
        "  - name: missing\n"
        f"    url: {descriptor.url}\n"
    )
    return path


def test_version():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.stdout


def test_schema_lists_every_command():
    result = runner.invoke(app, ["--schema"])
    assert result.exit_code == 0
    schema = json.loads(result.stdout)
    assert [t["name"] for t in schema["tools"]] == ["list", "init", "status", "update"]


def test_missing_config_exits_one(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    result = runner.invoke(app, ["status", "--json", "-q"])
    assert result.exit_code == 1


def test_list_json(config_file):
    result = runner.invoke(app, ["list", "--config", str(config_file), "--json", "-q"])
    assert result.exit_code == 0
    data = json.loads(result.stdout)
    repos = {r["name"]: r for r in data["repositories"]}
    assert repos["project"]["lifecycle"] == "ready"
    assert repos["missing"]["lifecycle"] == "missing"
    assert repos["missing"]["directory"] == str(config_file.parent.resolve() / "missing")


def test_list_table(config_file):
    result = runner.invoke(app, ["list", "--config", str(config_file), "-q"])
    assert result.exit_code == 0
    assert "project" in result.stdout


def test_status_json(config_file, pusher):
    push_commits(pusher, 2, branch="main")

    result = runner.invoke(app, ["status", "-c", str(config_file), "--json", "-q"])

    assert result.exit_code == 0
    data = json.loads(result.stdout)
    project = data["repositories"][0]
    main = next(b for b in project["branches"] if b["name"] == "main")
    assert main["outcome"] == "reported"
    assert main["commits_behind"] == 2
    assert data["repositories"][1]["lifecycle"] == "missing"
    assert data["summary"]["behind"] == 1


def test_update_with_init_json(config_file, pusher, descriptor):
    push_commits(pusher, 1, branch="main")

    result = runner.invoke(app, ["update", "--init", "-c", str(config_file), "--json", "-q"])

    assert result.exit_code == 0
    data = json.loads(result.stdout)
    project, missing = data["repositories"]
    assert {b["outcome"] for b in project["branches"]} == {"updated"}
    assert missing["lifecycle"] == "cloned"
    assert (config_file.parent / "missing" / ".git").is_dir()
    assert data["summary"]["cloned"] == 1


def test_status_table_renders(config_file):
    result = runner.invoke(app, ["status", "-c", str(config_file), "-q"])
    assert result.exit_code == 0
    assert "Convoy Status" in result.stdout


def test_failed_repository_sets_exit_code(tmp_path, descriptor):
    path = tmp_path / "bad.yml"
    path.write_text(
        "git:\n"
        "  binary: definitely-not-git\n"
        "repositories:\n"
        "  - name: project\n"
        f"    url: {descriptor.url}\n"
        f"    directory: {descriptor.directory}\n"
    )
    result = runner.invoke(app, ["status", "-c", str(path), "--json", "-q"])
    assert result.exit_code == 1
    assert '"failed": 1' in result.output
