"""
Tests for the teamwork command line interface.
"""

import json

import pytest
from typer.testing import CliRunner

from teamwork.cli.main import app
from teamwork.config import get_config_manager


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def root(tmp_path, test_environment):
    return tmp_path / "project"


@pytest.fixture
def invoke(runner, root):
    def _invoke(*args):
        return runner.invoke(app, ["--root", str(root), *args])

    return _invoke


@pytest.fixture
def diamond(invoke):
    """Create A -> (B, C) -> D."""
    invoke("task-create", "A", "Set up schema", "--role", "backend")
    invoke("task-create", "B", "Build API", "--role", "backend", "--blocked-by", "A")
    invoke("task-create", "C", "Build UI", "--role", "frontend", "--blocked-by", "A")
    invoke("task-create", "D", "E2E tests", "--role", "test", "--blocked-by", "B,C")


def output_json(result):
    return json.loads(result.stdout)


class TestTaskCommands:
    """Test task-* commands."""

    def test_task_create(self, invoke, root):
        result = invoke(
            "task-create",
            "T1",
            "Write docs",
            "--role",
            "docs",
            "--criterion",
            "README updated",
            "--criterion",
            "Examples run",
        )

        assert result.exit_code == 0
        task = output_json(result)
        assert task["id"] == "T1"
        assert task["role"] == "docs"
        assert task["criteria"] == ["README updated", "Examples run"]
        assert (root / "tasks" / "T1.json").is_file()

    def test_task_create_duplicate(self, invoke):
        invoke("task-create", "T1", "Write docs")

        result = invoke("task-create", "T1", "Again")

        assert result.exit_code == 1
        assert "Error: Task T1 already exists" in result.output

    def test_task_create_unknown_role(self, invoke):
        result = invoke("task-create", "T1", "Write docs", "--role", "astronaut")

        assert result.exit_code == 1
        assert "Error: Invalid role" in result.output

    def test_task_get(self, invoke):
        invoke("task-create", "T1", "Write docs")

        result = invoke("task-get", "T1")

        assert result.exit_code == 0
        assert output_json(result)["subject"] == "Write docs"

    def test_task_get_missing(self, invoke):
        result = invoke("task-get", "T404")

        assert result.exit_code == 1
        assert "Error:" in result.output

    def test_task_list_filters(self, invoke, diamond):
        everything = output_json(invoke("task-list"))
        available = output_json(invoke("task-list", "--available"))
        frontend = output_json(invoke("task-list", "--role", "frontend"))

        assert [t["id"] for t in everything] == ["A", "B", "C", "D"]
        assert [t["id"] for t in available] == ["A"]
        assert [t["id"] for t in frontend] == ["C"]

    def test_task_list_stats(self, invoke, diamond):
        invoke("task-claim", "A", "--owner", "w1")

        stats = output_json(invoke("task-list", "--stats"))

        assert stats == {"total": 4, "open": 3, "in_progress": 1, "resolved": 0}

    def test_claim_release_resolve(self, invoke):
        invoke("task-create", "T1", "Write docs")

        claimed = invoke("task-claim", "T1", "--owner", "ownerX")
        assert claimed.exit_code == 0
        assert output_json(claimed)["claimed_by"] == "ownerX"

        conflict = invoke("task-claim", "T1", "--owner", "ownerY")
        assert conflict.exit_code == 1
        assert "already claimed by ownerX" in conflict.output

        released = invoke("task-release", "T1", "--owner", "ownerX")
        assert output_json(released)["status"] == "open"

        invoke("task-claim", "T1", "--owner", "ownerY")
        resolved = invoke(
            "task-resolve",
            "T1",
            "--owner",
            "ownerY",
            "--evidence",
            "Docs reviewed",
            "--evidence",
            '{"type": "command", "command": "mkdocs build", "exit_code": 0}',
        )
        assert resolved.exit_code == 0
        task = output_json(resolved)
        assert task["status"] == "resolved"
        assert [e["type"] for e in task["evidence"]] == ["manual", "command"]

    def test_task_owner_from_settings(self, invoke, monkeypatch):
        monkeypatch.setenv("TEAMWORK_DEFAULT_OWNER", "configured-worker")
        invoke("task-create", "T1", "Write docs")

        result = invoke("task-claim", "T1")

        assert output_json(result)["claimed_by"] == "configured-worker"

    def test_settings_reloaded_per_invocation(self, invoke, root, monkeypatch):
        invoke("task-create", "T2", "Write more docs")
        manager = get_config_manager(root)

        monkeypatch.setenv("TEAMWORK_DEFAULT_OWNER", "later-worker")
        result = invoke("task-claim", "T2")

        assert output_json(result)["claimed_by"] == "later-worker"
        assert get_config_manager(root) is manager
        assert manager.get_config().default_owner == "later-worker"

    def test_task_resolve_bad_evidence_json(self, invoke):
        invoke("task-create", "T1", "Write docs")
        invoke("task-claim", "T1", "--owner", "w1")

        result = invoke("task-resolve", "T1", "--owner", "w1", "--evidence", "{broken")

        assert result.exit_code == 1
        assert "Invalid evidence JSON" in result.output

    def test_task_delete(self, invoke, diamond):
        refused = invoke("task-delete", "A")
        assert refused.exit_code == 1
        assert "depend on task A" in refused.output

        forced = invoke("task-delete", "A", "--force")
        assert forced.exit_code == 0
        assert output_json(forced) == {"deleted": "A", "orphaned_dependents": ["B", "C"]}

    def test_task_validate(self, invoke, root):
        invoke("task-create", "T1", "Write docs")

        ok = invoke("task-validate")
        assert ok.exit_code == 0
        assert output_json(ok)[0]["valid"] is True

        (root / "tasks" / "T2.json").write_text('{"id": "T2"}', encoding="utf-8")
        bad = invoke("task-validate")
        assert bad.exit_code == 1


class TestWaveCommands:
    """Test wave-* commands."""

    def test_wave_calculate(self, invoke, root, diamond):
        result = invoke("wave-calculate")

        assert result.exit_code == 0
        state = output_json(result)
        assert [w["tasks"] for w in state["waves"]] == [["A"], ["B", "C"], ["D"]]
        assert (root / "waves.json").is_file()

    def test_wave_calculate_cycle(self, invoke):
        invoke("task-create", "A", "a", "--blocked-by", "B")
        invoke("task-create", "B", "b", "--blocked-by", "A")

        result = invoke("wave-calculate")

        assert result.exit_code == 1
        assert "Circular dependency detected in tasks: A, B" in result.output

    def test_wave_update(self, invoke, diamond):
        invoke("wave-calculate")

        result = invoke("wave-update", "1", "in_progress")

        assert result.exit_code == 0
        state = output_json(result)
        assert state["waves"][0]["status"] == "in_progress"
        assert state["current_wave"] == 1

    def test_wave_update_illegal(self, invoke, diamond):
        invoke("wave-calculate")

        result = invoke("wave-update", "1", "verified")

        assert result.exit_code == 1
        assert "Illegal transition" in result.output

    def test_wave_update_without_plan(self, invoke):
        result = invoke("wave-update", "1", "in_progress")

        assert result.exit_code == 1
        assert "calculate waves first" in result.output

    def test_wave_append(self, invoke, diamond):
        invoke("wave-calculate")
        invoke("task-create", "E", "Late task")

        result = invoke("wave-append", "E")

        assert result.exit_code == 0
        assert output_json(result)["waves"][-1]["tasks"] == ["E"]

    def test_wave_append_unknown_task(self, invoke, diamond):
        invoke("wave-calculate")

        result = invoke("wave-append", "ghost")

        assert result.exit_code == 1

    def test_wave_status(self, invoke, diamond):
        invoke("wave-calculate")
        invoke("task-claim", "A", "--owner", "w1")

        result = invoke("wave-status")

        assert result.exit_code == 0
        status = output_json(result)
        assert status["total_waves"] == 3
        assert status["waves"][0]["in_progress"] == 1
        assert status["waves"][1]["open"] == 2
