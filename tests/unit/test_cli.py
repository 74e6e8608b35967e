"""Tests for the click command-line interface."""

from __future__ import annotations

import json
from collections.abc import Iterator
from pathlib import Path

import pytest
import structlog
from click.testing import CliRunner

from stackwire.cli.main import cli

_VALID_YAML = """
nodes:
  - id: db
    kind: datastore
    attributes:
      port: 5432
  - id: worker
    kind: container
    attributes:
      environment:
        DATABASE_HOST: {reach: db.hostname}
      secrets:
        DATABASE_USER: {secret: db.username}
edges:
  - {from: worker, to: db, channel: network, scope: "*"}
"""

_INVALID_YAML = """
nodes:
  - id: app
    kind: container
    attributes:
      image: {ref: ghost.image}
      colour: red
"""


@pytest.fixture(autouse=True)
def _reset_structlog() -> Iterator[None]:
    # the CLI binds structlog to the runner's stderr, which is closed after each invoke
    yield
    structlog.contextvars.clear_contextvars()
    structlog.reset_defaults()


@pytest.fixture
def runner(monkeypatch: pytest.MonkeyPatch) -> CliRunner:
    for key in ("CONFLICT_POLICY", "MAX_CONCURRENCY", "LOG_LEVEL", "LOG_FORMAT"):
        monkeypatch.delenv(f"STACKWIRE_{key}", raising=False)
    return CliRunner()


@pytest.fixture
def valid_stack(tmp_path: Path) -> Path:
    path = tmp_path / "stack.yaml"
    path.write_text(_VALID_YAML, encoding="utf-8")
    return path


@pytest.fixture
def invalid_stack(tmp_path: Path) -> Path:
    path = tmp_path / "broken.yaml"
    path.write_text(_INVALID_YAML, encoding="utf-8")
    return path


class TestValidate:
    def test_valid_stack(self, runner: CliRunner, valid_stack: Path) -> None:
        result = runner.invoke(cli, ["validate", str(valid_stack)])
        assert result.exit_code == 0
        assert "ok: 2 nodes, 1 dependencies, 2 consumptions" in result.stdout

    def test_reports_every_error(self, runner: CliRunner, invalid_stack: Path) -> None:
        result = runner.invoke(cli, ["validate", str(invalid_stack)])
        assert result.exit_code == 2
        assert result.stderr.count("error: ") == 2
        assert "ghost.image" in result.stderr
        assert "colour" in result.stderr


class TestPlan:
    def test_json_plan(self, runner: CliRunner, valid_stack: Path) -> None:
        result = runner.invoke(cli, ["--log-level", "error", "plan", str(valid_stack)])
        assert result.exit_code == 0
        plan = json.loads(result.stdout)
        assert plan["order"] == ["db", "worker"]
        assert [(e["from"], e["channel"], e["scope"]) for e in plan["edges"]] == [
            ("worker", "credential", "username"),
            ("worker", "network", "*"),
        ]
        assert plan["conflicts"][0]["implicit_scope"] == "tcp:5432"

    def test_text_plan(self, runner: CliRunner, valid_stack: Path) -> None:
        result = runner.invoke(cli, ["plan", str(valid_stack), "--format", "text"])
        assert result.exit_code == 0
        assert "layer 0: db" in result.stdout
        assert "layer 1: worker" in result.stdout
        assert "conflict: worker -> db [network] explicit '*' kept over implicit 'tcp:5432'" in result.stdout

    def test_fail_policy_exits_with_error(self, runner: CliRunner, valid_stack: Path) -> None:
        result = runner.invoke(cli, ["plan", str(valid_stack), "--conflicts", "fail"])
        assert result.exit_code == 2
        assert "conflicts with required scope 'tcp:5432'" in result.stderr

    def test_policy_from_environment(
        self, runner: CliRunner, valid_stack: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("STACKWIRE_CONFLICT_POLICY", "fail")
        result = runner.invoke(cli, ["plan", str(valid_stack)])
        assert result.exit_code == 2

    def test_bad_environment_is_reported(
        self, runner: CliRunner, valid_stack: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("STACKWIRE_LOG_LEVEL", "loud")
        result = runner.invoke(cli, ["plan", str(valid_stack)])
        assert result.exit_code == 1
        assert "Invalid log level" in result.stderr


class TestSimulate:
    def test_complete_run(self, runner: CliRunner, valid_stack: Path) -> None:
        result = runner.invoke(cli, ["simulate", str(valid_stack)])
        assert result.exit_code == 0
        report = json.loads(result.stdout)
        assert report["complete"] is True
        assert report["frontier"]["materialized"] == ["db", "worker"]

    def test_injected_failure_skips_downstream(self, runner: CliRunner, valid_stack: Path) -> None:
        result = runner.invoke(cli, ["simulate", str(valid_stack), "--fail", "db"])
        assert result.exit_code == 1
        report = json.loads(result.stdout)
        statuses = {node["node"]: node["status"] for node in report["nodes"]}
        assert statuses == {"db": "failed", "worker": "skipped"}
        assert report["frontier"]["not_materialized"] == ["db", "worker"]

    def test_omitted_attribute_fails_consumer(self, runner: CliRunner, valid_stack: Path) -> None:
        result = runner.invoke(cli, ["simulate", str(valid_stack), "--omit", "db.secret_id"])
        assert result.exit_code == 1
        worker = json.loads(result.stdout)["nodes"][1]
        assert worker["status"] == "failed"
        assert "db.secret_id" in worker["error"]

    def test_malformed_omit(self, runner: CliRunner, valid_stack: Path) -> None:
        result = runner.invoke(cli, ["simulate", str(valid_stack), "--omit", "nodot"])
        assert result.exit_code == 2


class TestFlowise:
    def test_default_plan(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["flowise"])
        assert result.exit_code == 0
        plan = json.loads(result.stdout)
        assert plan["order"][-1] == "flowise-dns"
        assert not any(edge["from"] == "*" for edge in plan["edges"])

    def test_public_database_ingress(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["flowise", "--public-db-ingress"])
        assert result.exit_code == 0
        edges = json.loads(result.stdout)["edges"]
        assert {"from": "*", "to": "rds-cluster", "scope": "tcp:5432"}.items() <= next(
            edge for edge in edges if edge["from"] == "*"
        ).items()
        assert "unscoped_ingress_declared" in result.stderr


class TestLogging:
    def test_json_logs_carry_command(self, runner: CliRunner, valid_stack: Path) -> None:
        result = runner.invoke(cli, ["plan", str(valid_stack)])
        planned = [json.loads(line) for line in result.stderr.splitlines() if "stack_planned" in line]
        assert planned[0]["command"] == "plan"
        assert planned[0]["component"] == "planner"

    def test_console_logs(self, runner: CliRunner, valid_stack: Path) -> None:
        result = runner.invoke(cli, ["--log-format", "console", "plan", str(valid_stack)])
        assert result.exit_code == 0
        assert "stack_planned" in result.stderr
        assert not result.stderr.lstrip().startswith("{")
        json.loads(result.stdout)
