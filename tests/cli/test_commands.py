"""Tests for CLI commands."""

import httpx
import pytest
from pathlib import Path
from typer.testing import CliRunner

import recall.cli.main as cli
from recall.cli.main import app
from recall.client.remote import RemoteMemoryClient

from conftest import make_config


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def wired(server, monkeypatch):
    """Point every CLI command at the fake server."""

    def build(namespace, base_url):
        overrides = {"namespace": namespace} if namespace else {}
        return RemoteMemoryClient(
            make_config(**overrides),
            http_client=httpx.AsyncClient(transport=server.transport()),
        )

    monkeypatch.setattr(cli, "_build_client", build)
    return server


def test_version(runner):
    """recall version shows version."""
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert "0.1.0" in result.stdout


def test_put_then_get(runner, wired):
    result = runner.invoke(app, ["put", "greeting", "hello there"])
    assert result.exit_code == 0
    assert "Stored greeting" in result.stdout

    result = runner.invoke(app, ["get", "greeting"])
    assert result.exit_code == 0
    assert result.stdout.strip() == "hello there"


def test_get_missing(runner, wired):
    result = runner.invoke(app, ["get", "nope"])
    assert result.exit_code == 1
    assert "No memory for 'nope'" in result.stdout


def test_value_with_markup_is_printed_verbatim(runner, wired):
    wired.seed("test-ns", tagged="[bold]not styled[/bold]")
    result = runner.invoke(app, ["get", "tagged"])
    assert "[bold]not styled[/bold]" in result.stdout


def test_exists_and_delete(runner, wired):
    wired.seed("test-ns", k="v")

    assert runner.invoke(app, ["exists", "k"]).stdout.strip() == "yes"
    result = runner.invoke(app, ["delete", "k"])
    assert result.exit_code == 0
    assert "Deleted k" in result.stdout
    assert runner.invoke(app, ["exists", "k"]).stdout.strip() == "no"


def test_namespace_option(runner, wired):
    runner.invoke(app, ["put", "k", "v", "--namespace", "other"])
    assert "k" in wired.store["other"]
    assert "k" not in wired.store.get("test-ns", {})


def test_clear_requires_confirmation(runner, wired):
    wired.seed("test-ns", a="1")

    result = runner.invoke(app, ["clear"], input="n\n")
    assert result.exit_code == 1
    assert "a" in wired.store["test-ns"]

    result = runner.invoke(app, ["clear", "--yes"])
    assert result.exit_code == 0
    assert "Namespace cleared" in result.stdout
    assert "test-ns" not in wired.store


def test_keys(runner, wired):
    wired.seed("test-ns", b="2", a="1", c="3")

    result = runner.invoke(app, ["keys"])
    assert result.exit_code == 0
    assert result.stdout.split() == ["a", "b", "c"]

    result = runner.invoke(app, ["keys", "--limit", "2"])
    assert result.stdout.split() == ["a", "b"]


def test_search(runner, wired):
    wired.seed("test-ns", doc1="apple pie", doc2="pear")

    result = runner.invoke(app, ["search", "apple"])
    assert result.exit_code == 0
    assert "doc1" in result.stdout
    assert "0.90" in result.stdout
    assert "doc2" not in result.stdout


def test_search_no_results(runner, wired):
    result = runner.invoke(app, ["search", "anything"])
    assert result.exit_code == 0
    assert "No results" in result.stdout


def test_search_limit_bounds(runner, wired):
    result = runner.invoke(app, ["search", "x", "--limit", "101"])
    assert result.exit_code != 0


def test_error_is_rendered(runner, wired):
    wired.fail_next(401)
    result = runner.invoke(app, ["put", "k", "v"])

    assert result.exit_code == 1
    assert "Error:" in result.stdout
    assert "Authorization failed" in result.stdout


def test_config_from_env_masks_key(runner, tmp_path, monkeypatch):
    """recall config shows resolved values without the API key."""
    monkeypatch.setattr(Path, "home", lambda: tmp_path)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("RECALL_NAMESPACE", "env-ns")
    monkeypatch.setenv("RECALL_BASE_URL", "https://env.test")
    monkeypatch.setenv("RECALL_API_KEY", "sk-top-secret")
    monkeypatch.delenv("RECALL_TIMEOUT_MS", raising=False)
    monkeypatch.delenv("RECALL_RETRY_ATTEMPTS", raising=False)
    monkeypatch.delenv("RECALL_RETRY_DELAY_MS", raising=False)

    result = runner.invoke(app, ["config"])

    assert result.exit_code == 0
    assert "namespace = env-ns" in result.stdout
    assert "api_key = ***" in result.stdout
    assert "sk-top-secret" not in result.stdout


def test_missing_config(runner, tmp_path, monkeypatch):
    """Commands fail gracefully without configuration."""
    monkeypatch.setattr(Path, "home", lambda: tmp_path)
    monkeypatch.chdir(tmp_path)
    for name in ("RECALL_NAMESPACE", "RECALL_BASE_URL", "RECALL_API_KEY"):
        monkeypatch.delenv(name, raising=False)

    result = runner.invoke(app, ["get", "k"])

    assert result.exit_code == 1
    assert "Invalid configuration" in result.stdout
