"""
Write Policy Engine
───────────────────
Ordered rules, first match wins:
  1. not a write tool                          → allow
  2. project not initialized                   → allow
  3. disabled or paused                        → allow
  4. bypass path (state dir, *.md, alwaysAllow) → allow
  5. drive mode                                → deny
  6. mode-specific check (pair driver, weekly commit goal, weekly ratio)

Bypass paths are always checked before any mode-specific rule.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

from paceguard_cli.config import (
    PairProgrammingMode,
    PolicyConfig,
    WeeklyGoalMode,
    stats_window_cutoff,
)
from paceguard_cli.detectors.attribution import Author
from paceguard_cli.detectors.ratio import calculate_ratio, is_ratio_healthy
from paceguard_cli.file_matcher import (
    file_matches_patterns,
    is_internal_state_file,
    is_markdown_file,
)
from paceguard_cli.pair_session import PairSession

WRITE_TOOLS = frozenset({"Write", "Edit", "MultiEdit", "NotebookEdit"})


class Permission(str, Enum):
    ALLOW = "allow"
    DENY = "deny"
    # Reserved: no rule produces it yet
    ASK = "ask"


@dataclass(frozen=True)
class Decision:
    decision: Permission
    reason: str = ""

    @classmethod
    def allow(cls, reason: str = "") -> "Decision":
        return cls(Permission.ALLOW, reason)

    @classmethod
    def deny(cls, reason: str) -> "Decision":
        return cls(Permission.DENY, reason)

    def to_hook_output(self) -> dict:
        output = {"permissionDecision": self.decision.value}
        if self.reason:
            output["permissionDecisionReason"] = self.reason
        return output


def _is_bypassed(target_path: str, project_root: str, config: PolicyConfig) -> bool:
    return (
        is_internal_state_file(target_path, project_root)
        or is_markdown_file(target_path)
        or file_matches_patterns(target_path, config.always_allow, project_root)
    )


def _decide_pair(pair_session: Optional[PairSession]) -> Decision:
    if pair_session is None or not pair_session.active:
        return Decision.allow()
    if pair_session.current_driver is Author.HUMAN:
        return Decision.deny(
            "Pair programming: the human is currently driving. "
            "Navigate instead: review, suggest and explain, but let the human type. "
            "Rotate drivers to take the keyboard back."
        )
    return Decision.allow()


def _decide_weekly_commits(mode: WeeklyGoalMode, config: PolicyConfig, counter, now: datetime) -> Decision:
    counts = counter.get_line_counts_with_window(
        since=now - timedelta(days=7),
        after_commit=config.tracking_start_commit,
    )
    if counts.human_commits >= mode.weekly_commit_goal:
        return Decision.allow()
    shortfall = mode.weekly_commit_goal - counts.human_commits
    plural = "commit" if shortfall == 1 else "commits"
    return Decision.deny(
        f"Weekly goal not met: {counts.human_commits}/{mode.weekly_commit_goal} human commits in the last 7 days. "
        f"The human needs {shortfall} more {plural} before the agent can write code."
    )


def _decide_weekly_ratio(mode: WeeklyGoalMode, config: PolicyConfig, counter, now: datetime) -> Decision:
    counts = counter.get_line_counts_with_window(
        since=stats_window_cutoff(mode.stats_window, now),
        after_commit=config.tracking_start_commit,
    )
    if mode.tracking_mode == "lines":
        human, agent = counts.human_lines, counts.claude_lines
    else:
        human, agent = counts.human_commits, counts.claude_commits

    target = mode.target_ratio
    if is_ratio_healthy(human, agent, target):
        return Decision.allow()
    current = calculate_ratio(human, agent)
    return Decision.deny(
        f"Human work ratio is below target: {current * 100:.0f}% actual vs {target * 100:.0f}% required "
        f"({config.describe_mode()}). "
        "Guide the human through the implementation instead of writing it yourself."
    )


def decide(
    tool_name: str,
    target_path: Optional[str],
    project_root: str,
    config: Optional[PolicyConfig],
    counter,
    pair_session: Optional[PairSession] = None,
    now: Optional[datetime] = None,
) -> Decision:
    """
    Decide whether the agent may perform one tool call.

    config is None when the project has never been initialized. counter is
    anything exposing get_line_counts_with_window(since, after_commit); it is
    only queried by the weekly goal checks.
    """
    if tool_name not in WRITE_TOOLS:
        return Decision.allow()

    if config is None:
        return Decision.allow()

    now = now or datetime.now(timezone.utc)
    if not config.enabled or config.is_paused(now):
        return Decision.allow()

    if not target_path:
        return Decision.allow()
    if _is_bypassed(target_path, project_root, config):
        return Decision.allow()

    if config.drive_mode:
        return Decision.deny(
            "Drive mode is on: the human is writing the code. "
            "Explain and review, but do not edit files. Run `paceguard drive off` to hand the keyboard back."
        )

    mode = config.mode
    if isinstance(mode, PairProgrammingMode):
        return _decide_pair(pair_session)
    if isinstance(mode, WeeklyGoalMode):
        if mode.goal_type == "commits":
            return _decide_weekly_commits(mode, config, counter, now)
        return _decide_weekly_ratio(mode, config, counter, now)
    # learningProject: nothing is enforced yet
    return Decision.allow()
