import json
import sys
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

import questionary
import typer

from paceguard_cli.config import (
    MODE_TYPE_LABELS,
    ConfigError,
    LearningProjectMode,
    PairProgrammingMode,
    PolicyConfig,
    WeeklyGoalMode,
    get_settings,
    load_config,
    save_config,
    stats_window_cutoff,
)
from paceguard_cli.detectors.attribution import Author
from paceguard_cli.detectors.ratio import calculate_ratio, is_ratio_healthy
from paceguard_cli.git_client import get_commit_info, get_head_commit
from paceguard_cli.hooks import build_counter, run_pre_tool_use
from paceguard_cli.logutil import configure_logging
from paceguard_cli.pair_session import PairSessionManager
from paceguard_cli.state import FileStateStore
from paceguard_cli.ui import (
    build_modes_table,
    build_stats_table,
    console,
    print_error,
    render_pair_session,
    render_verdict,
)

app = typer.Typer(help="Keep a healthy human / AI work ratio in AI-assisted coding sessions", add_completion=False)
pair_app = typer.Typer(help="Turn-based pair programming sessions", add_completion=False)
cache_app = typer.Typer(help="Manage the git history cache", add_completion=False)
hook_app = typer.Typer(help="Entry points called by the coding assistant", add_completion=False)
app.add_typer(pair_app, name="pair")
app.add_typer(cache_app, name="cache")
app.add_typer(hook_app, name="hook")


class ModeChoice(str, Enum):
    weeklyGoal = "weeklyGoal"
    pairProgramming = "pairProgramming"
    learningProject = "learningProject"


class GoalChoice(str, Enum):
    percentage = "percentage"
    commits = "commits"


class TrackingChoice(str, Enum):
    commits = "commits"
    lines = "lines"


class WindowChoice(str, Enum):
    oneDay = "oneDay"
    oneWeek = "oneWeek"
    allTime = "allTime"


class Switch(str, Enum):
    on = "on"
    off = "off"


PathOption = typer.Option(".", help="Path to the project (Git repository root)")


@app.callback()
def _setup():
    configure_logging(get_settings().log_level)


def _require_config(path: str) -> PolicyConfig:
    try:
        config = load_config(path)
    except ConfigError as e:
        print_error(str(e))
        raise typer.Exit(code=1)
    if config is None:
        print_error(f"paceguard is not initialized in '{path}'. Run 'paceguard init' first.")
        raise typer.Exit(code=1)
    return config


def _get_stats_data(path: str):
    try:
        config = load_config(path)
    except ConfigError as e:
        return None, str(e)
    if config is None:
        return None, f"paceguard is not initialized in '{path}'. Run 'paceguard init' first."

    mode = config.mode
    weekly = mode if isinstance(mode, WeeklyGoalMode) else None
    commit_goal = weekly is not None and weekly.goal_type == "commits"
    window = "oneWeek" if (weekly is None or commit_goal) else weekly.stats_window
    tracking = weekly.tracking_mode if weekly is not None and not commit_goal else "commits"

    counter = build_counter(path, config)
    counts = counter.get_line_counts_with_window(
        since=stats_window_cutoff(window),
        after_commit=config.tracking_start_commit,
    )
    if tracking == "lines":
        human, agent = counts.human_lines, counts.claude_lines
    else:
        human, agent = counts.human_commits, counts.claude_commits

    target_ratio = weekly.target_ratio if weekly is not None and not commit_goal else 0.0
    if commit_goal:
        healthy = counts.human_commits >= weekly.weekly_commit_goal
    else:
        healthy = is_ratio_healthy(human, agent, target_ratio)

    tracking_start = None
    if config.tracking_start_commit:
        info = get_commit_info(path, config.tracking_start_commit)
        tracking_start = f"{info.short_hash} {info.title}" if info else config.tracking_start_commit[:7]

    return {
        "enabled": config.enabled and not config.is_paused(),
        "drive_mode": config.drive_mode,
        "mode": config.describe_mode(),
        "stats_window": window,
        "tracking_mode": tracking,
        "target_ratio": target_ratio,
        "current_ratio": calculate_ratio(human, agent),
        "ratio_healthy": healthy,
        "commit_goal": [counts.human_commits, weekly.weekly_commit_goal] if commit_goal else None,
        "tracking_start": tracking_start,
        "counts": counts.to_dict(),
    }, None


@app.command(name="init")
def init_cmd(
    path: str = PathOption,
    mode: Optional[ModeChoice] = typer.Option(None, help="Policy mode (prompted when omitted in a terminal)"),
    goal: GoalChoice = typer.Option(GoalChoice.percentage, help="Weekly goal type"),
    target: int = typer.Option(25, min=0, max=100, help="Target human percentage"),
    commit_goal: int = typer.Option(5, min=0, help="Human commits required per week"),
    tracking: TrackingChoice = typer.Option(TrackingChoice.commits, help="Count commits or lines"),
    window: WindowChoice = typer.Option(WindowChoice.oneWeek, help="Stats window for the ratio"),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing configuration"),
):
    """Initialize paceguard for a project."""
    try:
        existing = load_config(path)
    except ConfigError:
        existing = None
        if not force:
            print_error("Existing configuration is invalid. Re-run with --force to replace it.")
            raise typer.Exit(code=1)
    if existing is not None and not force:
        print_error("paceguard is already initialized here. Use --force to reconfigure.")
        raise typer.Exit(code=1)

    if mode is None:
        if sys.stdin.isatty():
            picked = questionary.select(
                "Choose a policy mode:",
                choices=[questionary.Choice(label, value=key) for key, label in MODE_TYPE_LABELS.items()],
            ).ask()
            mode = ModeChoice(picked or "weeklyGoal")
        else:
            mode = ModeChoice.weeklyGoal

    policy_mode = _build_mode(
        mode,
        goal_type=goal.value,
        target_percentage=target,
        weekly_commit_goal=commit_goal,
        tracking_mode=tracking.value,
        stats_window=window.value,
    )
    config = PolicyConfig(mode=policy_mode)
    save_config(path, config)
    console.print(f"[bold green]✔ Initialized![/bold green] Mode: {config.describe_mode()}")


def _parse_mode(value: str) -> Optional[ModeChoice]:
    keys = list(MODE_TYPE_LABELS)
    if value.isdigit() and 1 <= int(value) <= len(keys):
        return ModeChoice(keys[int(value) - 1])
    wanted = value.strip().lower()
    for key, label in MODE_TYPE_LABELS.items():
        if wanted in (key.lower(), label.lower()):
            return ModeChoice(key)
    return None


def _build_mode(choice: ModeChoice, current=None, **weekly):
    """Build the mode for choice; weekly goal settings not given are kept from current."""
    if choice is ModeChoice.pairProgramming:
        return PairProgrammingMode()
    if choice is ModeChoice.learningProject:
        return LearningProjectMode()
    base = current.model_dump() if isinstance(current, WeeklyGoalMode) else {}
    base.update({k: v for k, v in weekly.items() if v is not None})
    return WeeklyGoalMode.model_validate(base)


@app.command(name="mode")
def mode_cmd(
    value: Optional[str] = typer.Argument(None, help="Mode number or name; omit to show the current mode"),
    path: str = PathOption,
    goal: Optional[GoalChoice] = typer.Option(None, help="Weekly goal type"),
    target: Optional[int] = typer.Option(None, min=0, max=100, help="Target human percentage"),
    commit_goal: Optional[int] = typer.Option(None, min=0, help="Human commits required per week"),
    tracking: Optional[TrackingChoice] = typer.Option(None, help="Count commits or lines"),
    window: Optional[WindowChoice] = typer.Option(None, help="Stats window for the ratio"),
):
    """Show or change the policy mode. The rest of the configuration is kept."""
    config = _require_config(path)
    if value is None:
        console.print(f"Current mode: [bold]{config.describe_mode()}[/bold]")
        return

    choice = _parse_mode(value)
    if choice is None:
        print_error(
            f"Unknown mode: {value}. Use a number 1-{len(MODE_TYPE_LABELS)} or a mode name "
            "(see 'paceguard modes')."
        )
        raise typer.Exit(code=1)

    updated = config.model_copy(update={"mode": _build_mode(
        choice,
        config.mode,
        goal_type=goal.value if goal else None,
        target_percentage=target,
        weekly_commit_goal=commit_goal,
        tracking_mode=tracking.value if tracking else None,
        stats_window=window.value if window else None,
    )})
    save_config(path, updated)
    console.print(f"[bold green]✔ Mode changed[/bold green] to {updated.describe_mode()}")


@app.command(name="modes")
def modes_cmd(path: str = PathOption):
    """List the available policy modes."""
    config = _require_config(path)
    console.print(build_modes_table(config.mode.type))
    console.print("To change mode: [bold]paceguard mode <number>[/bold]")


@app.command(name="stats")
def stats_cmd(
    path: str = PathOption,
    export_json: bool = typer.Option(False, "--json", help="Export results as JSON"),
):
    """Show the human / agent work ratio for the configured window."""
    stats, err = _get_stats_data(path)
    if err:
        if export_json:
            print(json.dumps({"error": err}))
        else:
            print_error(err)
        raise typer.Exit(code=1)

    if export_json:
        print(json.dumps(stats, indent=2))
        return

    console.print(build_stats_table(stats))
    render_verdict(stats)


@app.command(name="pause")
def pause_cmd(
    path: str = PathOption,
    minutes: int = typer.Option(60, min=1, help="How long to pause enforcement"),
):
    """Pause enforcement for a while."""
    config = _require_config(path)
    until = datetime.now(timezone.utc) + timedelta(minutes=minutes)
    save_config(path, config.model_copy(update={"enabled": False, "paused_until": until}))
    console.print(f"[yellow]Paused until {until.astimezone():%H:%M}.[/yellow]")


@app.command(name="resume")
def resume_cmd(path: str = PathOption):
    """Resume enforcement immediately."""
    config = _require_config(path)
    save_config(path, config.model_copy(update={"enabled": True, "paused_until": None}))
    console.print("[green]Enforcement resumed.[/green]")


@app.command(name="drive")
def drive_cmd(state: Switch = typer.Argument(..., help="on or off"), path: str = PathOption):
    """Turn drive mode on (the agent may not edit files) or off."""
    config = _require_config(path)
    save_config(path, config.model_copy(update={"drive_mode": state is Switch.on}))
    console.print(f"Drive mode is now [bold]{state.value}[/bold].")


def _confirm(question: str) -> bool:
    if not sys.stdin.isatty():
        return False
    return bool(questionary.confirm(question, default=False).ask())


@app.command(name="reset")
def reset_cmd(
    path: str = PathOption,
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt"),
):
    """Start counting from now: commits up to the current HEAD are excluded."""
    config = _require_config(path)
    head = get_head_commit(path)
    if head is None:
        print_error(f"'{path}' is not a Git repository with commits.")
        raise typer.Exit(code=1)
    if not yes and not _confirm(
        "Reset tracking to start from the current commit? Earlier commits will no longer be counted."
    ):
        console.print("Reset cancelled. Pass --yes to skip the confirmation.")
        return
    save_config(path, config.model_copy(update={"tracking_start_commit": head}))
    build_counter(path, config).clear_cache()
    console.print(f"[green]Tracking restarted after {head[:7]}.[/green]")


@cache_app.command(name="clear")
def cache_clear_cmd(path: str = PathOption):
    """Drop the cached history totals."""
    config = _require_config(path)
    build_counter(path, config).clear_cache()
    console.print("[green]History cache cleared.[/green]")


@cache_app.command(name="recalculate")
def cache_recalculate_cmd(path: str = PathOption):
    """Rescan the whole history and refresh the cache."""
    config = _require_config(path)
    counts = build_counter(path, config).recalculate_line_counts()
    console.print(
        f"[green]Rescanned {counts.commits_scanned} commits:[/green] "
        f"{counts.human_commits} human, {counts.claude_commits} agent."
    )


def _pair_manager(path: str) -> PairSessionManager:
    _require_config(path)
    return PairSessionManager(FileStateStore.for_project(path))


@pair_app.command(name="start")
def pair_start_cmd(
    task: str = typer.Argument(..., help="What the pair is working on"),
    driver: Author = typer.Option(Author.AGENT, help="Who drives first"),
    path: str = PathOption,
):
    """Start a pair programming session."""
    manager = _pair_manager(path)
    if manager.load() is not None:
        print_error("A pair session is already running. End it first with 'paceguard pair end'.")
        raise typer.Exit(code=1)
    render_pair_session(manager.start(task, driver))


@pair_app.command(name="end")
def pair_end_cmd(path: str = PathOption):
    """End the current pair session."""
    session = _pair_manager(path).end()
    if session is None:
        print_error("No pair session is running.")
        raise typer.Exit(code=1)
    render_pair_session(session, title="Pair Programming Session Complete")


@pair_app.command(name="rotate")
def pair_rotate_cmd(path: str = PathOption):
    """Swap driver and navigator."""
    session = _pair_manager(path).rotate()
    if session is None:
        print_error("No pair session is running.")
        raise typer.Exit(code=1)
    render_pair_session(session)


@pair_app.command(name="record")
def pair_record_cmd(by: Author = typer.Argument(..., help="Who made the contribution"), path: str = PathOption):
    """Record one contribution in the current session."""
    session = _pair_manager(path).record_contribution(by)
    if session is None:
        print_error("No pair session is running.")
        raise typer.Exit(code=1)
    render_pair_session(session)


@pair_app.command(name="status")
def pair_status_cmd(path: str = PathOption):
    """Show the current pair session."""
    session = _pair_manager(path).load()
    if session is None:
        console.print("[dim]No pair session is running.[/dim]")
        return
    render_pair_session(session)


@hook_app.command(name="pre-tool-use")
def pre_tool_use_cmd():
    """Read a tool-use event from stdin and print the permission decision."""
    run_pre_tool_use(sys.stdin, sys.stdout)


def main():
    app()


if __name__ == "__main__":
    main()
