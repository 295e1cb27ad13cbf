import io
import json
import logging
from pathlib import Path

from paceguard_cli.config import PolicyConfig, WeeklyGoalMode, config_path, save_config
from paceguard_cli.hooks import evaluate_hook, extract_file_path, run_pre_tool_use


def test_extract_file_path() -> None:
    assert extract_file_path({"file_path": "a.py"}) == "a.py"
    assert extract_file_path({"notebook_path": "n.ipynb"}) == "n.ipynb"
    assert extract_file_path({"file_path": ""}) is None
    assert extract_file_path({"command": "ls"}) is None


def test_uninitialized_project_allows(tmp_path: Path) -> None:
    event = {"tool_name": "Write", "tool_input": {"file_path": "a.py"}, "cwd": str(tmp_path)}
    assert evaluate_hook(event) == {"permissionDecision": "allow"}


def test_non_write_tool_skips_config(tmp_path: Path) -> None:
    path = config_path(tmp_path)
    path.parent.mkdir(parents=True)
    path.write_text("{broken", encoding="utf-8")
    event = {"tool_name": "Read", "tool_input": {"file_path": "a.py"}, "cwd": str(tmp_path)}
    assert evaluate_hook(event) == {"permissionDecision": "allow"}


def test_broken_config_fails_open(tmp_path: Path, caplog) -> None:
    path = config_path(tmp_path)
    path.parent.mkdir(parents=True)
    path.write_text("{broken", encoding="utf-8")
    event = {"tool_name": "Edit", "tool_input": {"file_path": "a.py"}, "cwd": str(tmp_path)}

    with caplog.at_level(logging.ERROR, logger="paceguard_cli.hooks"):
        output = evaluate_hook(event)

    assert output["permissionDecision"] == "allow"
    assert "configuration error" in output["permissionDecisionReason"]
    assert "Not enforcing" in caplog.text


def test_non_repository_with_strict_goal_allows(tmp_path: Path) -> None:
    save_config(tmp_path, PolicyConfig(mode=WeeklyGoalMode(target_percentage=100)))
    event = {"tool_name": "Write", "tool_input": {"file_path": "a.py"}, "cwd": str(tmp_path)}
    assert evaluate_hook(event) == {"permissionDecision": "allow"}


def test_custom_agent_marker_from_environment(project: str, commit, monkeypatch) -> None:
    from paceguard_cli.config import get_settings

    monkeypatch.setenv("PACEGUARD_AGENT_MARKER", "Assisted-by: robot")
    get_settings.cache_clear()
    save_config(project, PolicyConfig(mode=WeeklyGoalMode(target_percentage=50)))
    commit("robot work\n\nAssisted-by: robot")

    event = {"tool_name": "Write", "tool_input": {"file_path": "src/x.py"}, "cwd": project}
    assert evaluate_hook(event)["permissionDecision"] == "deny"


def test_run_pre_tool_use_wraps_output(tmp_path: Path) -> None:
    event = {"tool_name": "Bash", "tool_input": {"command": "ls"}, "cwd": str(tmp_path)}
    stdout = io.StringIO()

    run_pre_tool_use(io.StringIO(json.dumps(event)), stdout)

    assert json.loads(stdout.getvalue()) == {
        "hookSpecificOutput": {"hookEventName": "PreToolUse", "permissionDecision": "allow"}
    }


def test_run_pre_tool_use_allows_invalid_input() -> None:
    for raw in ["", "not json", "[1, 2]"]:
        stdout = io.StringIO()
        response = run_pre_tool_use(io.StringIO(raw), stdout)
        assert response["hookSpecificOutput"]["permissionDecision"] == "allow"
        assert json.loads(stdout.getvalue()) == response


def test_all_time_goal_reads_history_once(project: str, commit, monkeypatch) -> None:
    from paceguard_cli import history

    scans = []
    real_read_commits = history.read_commits

    def counting_read_commits(*args, **kwargs):
        scans.append(kwargs)
        return real_read_commits(*args, **kwargs)

    monkeypatch.setattr(history, "read_commits", counting_read_commits)
    save_config(project, PolicyConfig(mode=WeeklyGoalMode(target_percentage=50, stats_window="allTime")))
    commit("human")
    commit("agent", agent=True)
    event = {"tool_name": "Write", "tool_input": {"file_path": "src/x.py"}, "cwd": project}

    decisions = [evaluate_hook(event)["permissionDecision"] for _ in range(3)]

    assert decisions == ["allow", "allow", "allow"]
    assert len(scans) == 1

    commit("another agent", agent=True)
    assert evaluate_hook(event)["permissionDecision"] == "deny"
    assert len(scans) == 2


def test_mercurial_config_is_reported_not_ignored(tmp_path: Path) -> None:
    path = config_path(tmp_path)
    path.parent.mkdir(parents=True)
    path.write_text(json.dumps({"vcsType": "hg"}), encoding="utf-8")
    event = {"tool_name": "Write", "tool_input": {"file_path": "a.py"}, "cwd": str(tmp_path)}

    output = evaluate_hook(event)

    assert output["permissionDecision"] == "allow"
    assert "Unsupported vcsType 'hg'" in output["permissionDecisionReason"]
