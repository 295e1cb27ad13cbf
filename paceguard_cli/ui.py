from datetime import datetime, timezone
from typing import Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from paceguard_cli.config import (
    MODE_TYPE_DESCRIPTIONS,
    MODE_TYPE_LABELS,
    STATS_WINDOW_LABELS,
    TRACKING_MODE_LABELS,
)
from paceguard_cli.detectors.attribution import Author
from paceguard_cli.pair_session import should_suggest_rotation

console = Console()


def format_ratio(ratio: float, healthy: bool) -> str:
    color = "green" if healthy else "bold red"
    return f"[{color}]{ratio * 100:.0f}%[/{color}]"


def build_stats_table(stats: dict) -> Table:
    window = STATS_WINDOW_LABELS.get(stats["stats_window"], "All time")
    table = Table(title=f"Work Attribution ({window})", show_header=True, header_style="bold cyan")
    table.add_column("Author", width=10)
    table.add_column("Commits", justify="right")
    table.add_column("Lines added", justify="right")

    counts = stats["counts"]
    table.add_row("Human", str(counts["human_commits"]), str(counts["human_lines"]))
    table.add_row("Agent", str(counts["claude_commits"]), str(counts["claude_lines"]))
    return table


def build_modes_table(current: Optional[str] = None) -> Table:
    table = Table(title="Policy Modes", show_header=True, header_style="bold cyan")
    table.add_column("#", justify="right", width=3)
    table.add_column("Mode", style="bold", no_wrap=True)
    table.add_column("Description")

    for number, (key, label) in enumerate(MODE_TYPE_LABELS.items(), start=1):
        marker = " [green](current)[/green]" if key == current else ""
        table.add_row(str(number), f"{label}{marker}", MODE_TYPE_DESCRIPTIONS[key])
    return table


def render_verdict(stats: dict):
    """Render the ratio summary panel below the stats table."""
    healthy = stats["ratio_healthy"]
    if healthy:
        verdict_label = "ON TARGET"
        verdict_color = "bold green"
    else:
        verdict_label = "BELOW TARGET"
        verdict_color = "bold red"

    tracking = TRACKING_MODE_LABELS.get(stats["tracking_mode"], "Commits")
    lines = [
        f"[{verdict_color}]{verdict_label}[/{verdict_color}]\n",
        f"  Mode          : {stats['mode']}",
        f"  Tracking      : {tracking}",
    ]
    if stats.get("commit_goal"):
        have, goal = stats["commit_goal"]
        lines.append(f"  Weekly Goal   : {have}/{goal} human commits")
    else:
        lines.append(f"  Target Ratio  : {stats['target_ratio'] * 100:.0f}% human work")
        lines.append(f"  Current Ratio : {format_ratio(stats['current_ratio'], healthy)} human work")
    if stats.get("tracking_start"):
        lines.append(f"  Counting after: [dim]{stats['tracking_start']}[/dim]")
    if not stats["enabled"]:
        lines.append("\n  [yellow]Enforcement is paused. Run 'paceguard resume' to unpause.[/yellow]")
    if stats.get("drive_mode"):
        lines.append("\n  [yellow]Drive mode is on: the agent may not edit files.[/yellow]")

    console.print()
    console.print(Panel(
        "\n".join(lines),
        title="[bold]Human / Agent Ratio[/bold]",
        border_style=verdict_color.replace("bold ", ""),
        expand=False,
        padding=(1, 4),
    ))
    console.print()


def format_duration(started_at) -> str:
    if started_at is None:
        return "0m"
    minutes = int((datetime.now(timezone.utc) - started_at).total_seconds() // 60)
    hours, mins = divmod(max(minutes, 0), 60)
    if hours:
        return f"{hours}h {mins}m"
    return f"{mins}m"


def render_pair_session(session, title: str = "Pair Programming Session"):
    driver = "Human" if session.current_driver is Author.HUMAN else "Agent"
    body = (
        f"  Task           : {session.task or '[dim]none[/dim]'}\n"
        f"  Duration       : {format_duration(session.started_at)}\n"
        f"  Current driver : [bold]{driver}[/bold]\n\n"
        f"  Human turns    : {session.human_turns}\n"
        f"  Agent turns    : {session.agent_turns}\n"
        f"  Rotations      : {session.rotation_count}"
    )
    if should_suggest_rotation(session):
        body += "\n\n  [cyan]Consider rotating! Run: paceguard pair rotate[/cyan]"
    console.print(Panel(body, title=f"[bold]{title}[/bold]", border_style="cyan", expand=False))


def print_error(message: str):
    console.print(f"[bold red]Error[/bold red]: {message}")
