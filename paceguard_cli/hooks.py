"""PreToolUse hook boundary: JSON event in, permission decision out."""

import json
import logging
import os
from datetime import datetime
from typing import IO, Any, Optional

from paceguard_cli.config import (
    ConfigError,
    PaceguardSettings,
    PairProgrammingMode,
    PolicyConfig,
    get_settings,
    load_config,
)
from paceguard_cli.detectors.attribution import AttributionDetector
from paceguard_cli.history import HistoryCounter
from paceguard_cli.pair_session import PairSessionManager
from paceguard_cli.policy import WRITE_TOOLS, Decision, decide
from paceguard_cli.state import FileStateStore

logger = logging.getLogger(__name__)


def extract_file_path(tool_input: dict[str, Any]) -> Optional[str]:
    for key in ("file_path", "notebook_path"):
        value = tool_input.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def build_counter(
    project_root: str,
    config: Optional[PolicyConfig],
    settings: Optional[PaceguardSettings] = None,
    store: Optional[FileStateStore] = None,
) -> HistoryCounter:
    settings = settings or get_settings()
    return HistoryCounter(
        project_root,
        store or FileStateStore.for_project(project_root),
        tracking_start_commit=config.tracking_start_commit if config else None,
        detector=AttributionDetector(settings.agent_marker),
    )


def evaluate_hook(
    event: dict[str, Any],
    *,
    now: Optional[datetime] = None,
    settings: Optional[PaceguardSettings] = None,
) -> dict[str, Any]:
    """Evaluate one tool-use event and return ``{permissionDecision, permissionDecisionReason?}``.

    A configuration that cannot be loaded does not block the agent: the
    error is logged and the call is allowed with the error as its reason.
    """

    tool_name = event.get("tool_name") or ""
    tool_input = event.get("tool_input") or {}
    if not isinstance(tool_input, dict):
        tool_input = {}
    project_root = event.get("cwd") or os.getcwd()

    if tool_name not in WRITE_TOOLS:
        return Decision.allow().to_hook_output()

    try:
        config = load_config(project_root, now=now)
    except ConfigError as exc:
        logger.error("Not enforcing write policy: %s", exc)
        return Decision.allow(f"paceguard configuration error, policy not enforced: {exc}").to_hook_output()

    store = FileStateStore.for_project(project_root)
    pair_session = None
    if config is not None and isinstance(config.mode, PairProgrammingMode):
        pair_session = PairSessionManager(store).load()

    decision = decide(
        tool_name,
        extract_file_path(tool_input),
        project_root,
        config,
        build_counter(project_root, config, settings, store),
        pair_session,
        now=now,
    )
    logger.info("%s %s -> %s", tool_name, extract_file_path(tool_input), decision.decision.value)
    return decision.to_hook_output()


def run_pre_tool_use(stdin: IO[str], stdout: IO[str]) -> dict[str, Any]:
    """Read one JSON event from stdin and write the hook response to stdout."""

    raw = stdin.read()
    try:
        event = json.loads(raw) if raw.strip() else None
    except json.JSONDecodeError as exc:
        logger.warning("Invalid hook input, allowing: %s", exc)
        event = None

    if isinstance(event, dict):
        output = evaluate_hook(event)
    else:
        output = Decision.allow().to_hook_output()

    response = {"hookSpecificOutput": {"hookEventName": "PreToolUse", **output}}
    stdout.write(json.dumps(response))
    stdout.write("\n")
    return response
