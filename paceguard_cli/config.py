"""Policy configuration: schema, legacy migration and runtime settings."""

import json
import logging
import re
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from pathlib import Path
from typing import Any, Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel
from pydantic_settings import BaseSettings, SettingsConfigDict

from paceguard_cli.detectors.attribution import AGENT_MARKER
from paceguard_cli.state import STATE_DIRNAME, write_json_atomic

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "config.json"

StatsWindow = Literal["oneDay", "oneWeek", "allTime"]
VcsType = Literal["git"]
TrackingMode = Literal["commits", "lines"]
GoalType = Literal["commits", "percentage"]

STATS_WINDOW_LABELS = {
    "oneDay": "Last 24 hours",
    "oneWeek": "Last 7 days",
    "allTime": "All time",
}

TRACKING_MODE_LABELS = {
    "commits": "Commits",
    "lines": "Lines of code",
}

MODE_TYPE_LABELS = {
    "weeklyGoal": "Weekly Goal",
    "pairProgramming": "Pair Programming",
    "learningProject": "Learning Project",
}

MODE_TYPE_DESCRIPTIONS = {
    "weeklyGoal": "The human authors a share of the work, or a number of commits, before the agent may write code.",
    "pairProgramming": "Driver and navigator take turns. The agent may only write while it is driving.",
    "learningProject": "Guided learning projects. Nothing is enforced yet.",
}

# Legacy shapes, all of which decode into a weekly percentage goal
LEGACY_PRESET_TARGETS = {"light": 10, "balanced": 25, "intensive": 50, "training": 75}
LEGACY_MODE_TARGETS = {1: 10, 2: 10, 3: 25, 4: 50, 5: 100}
_FLAT_MODE_FIELDS = ("goalType", "targetPercentage", "weeklyCommitGoal", "trackingMode", "statsWindow")


class ConfigError(RuntimeError):
    """Raised when the project configuration cannot be loaded or validated."""


class _Model(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class WeeklyGoalMode(_Model):
    """Minimum human share, or minimum human commit count, over a window."""

    type: Literal["weeklyGoal"] = "weeklyGoal"
    goal_type: GoalType = "percentage"
    target_percentage: int = Field(default=25, ge=0, le=100)
    weekly_commit_goal: int = Field(default=5, ge=0)
    tracking_mode: TrackingMode = "commits"
    stats_window: StatsWindow = "oneWeek"

    @property
    def target_ratio(self) -> float:
        return self.target_percentage / 100


class PairProgrammingMode(_Model):
    type: Literal["pairProgramming"] = "pairProgramming"


class LearningProjectMode(_Model):
    type: Literal["learningProject"] = "learningProject"


PolicyMode = Annotated[
    Union[WeeklyGoalMode, PairProgrammingMode, LearningProjectMode],
    Field(discriminator="type"),
]


class PolicyConfig(_Model):
    """Resolved policy for one project."""

    enabled: bool = True
    mode: PolicyMode = Field(default_factory=WeeklyGoalMode)
    drive_mode: bool = False
    paused_until: Optional[datetime] = None
    tracking_start_commit: Optional[str] = None
    always_allow: list[str] = Field(default_factory=list)
    vcs_type: VcsType = "git"

    @field_validator("paused_until")
    @classmethod
    def _aware_pause(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            return value.astimezone()
        return value

    @field_validator("always_allow", mode="before")
    @classmethod
    def _ensure_list(cls, value: Any):
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return value

    def is_paused(self, now: Optional[datetime] = None) -> bool:
        if self.paused_until is None:
            return False
        now = now or datetime.now(timezone.utc)
        return now < self.paused_until

    def describe_mode(self) -> str:
        mode = self.mode
        if isinstance(mode, WeeklyGoalMode):
            if mode.goal_type == "commits":
                return f"Weekly Goal ({mode.weekly_commit_goal} human commits per week)"
            return f"Weekly Goal ({mode.target_percentage}% human, {mode.tracking_mode})"
        if isinstance(mode, LearningProjectMode):
            return "Learning Project (coming soon)"
        return MODE_TYPE_LABELS[mode.type]

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


def stats_window_cutoff(window: StatsWindow, now: Optional[datetime] = None) -> Optional[datetime]:
    """Start of the stats window, or None for all time."""

    now = now or datetime.now(timezone.utc)
    if window == "oneDay":
        return now - timedelta(days=1)
    if window == "oneWeek":
        return now - timedelta(days=7)
    return None


def migrate_config(raw: dict[str, Any]) -> dict[str, Any]:
    """Rewrite every historical config shape into the tagged ``mode`` shape.

    An explicit ``humanWorkRatio`` beats a ``preset``, which beats a numeric
    ``mode``.
    """

    data = dict(raw)
    legacy_target: Optional[int] = None

    ratio = data.pop("humanWorkRatio", None)
    if isinstance(ratio, (int, float)) and not isinstance(ratio, bool) and 0 <= ratio <= 1:
        legacy_target = round(ratio * 100)

    preset = data.pop("preset", None)
    if legacy_target is None and preset in LEGACY_PRESET_TARGETS:
        legacy_target = LEGACY_PRESET_TARGETS[preset]

    numeric_mode = data.get("mode")
    if isinstance(numeric_mode, int) and not isinstance(numeric_mode, bool) and "modeType" not in data:
        data.pop("mode")
        if legacy_target is None:
            legacy_target = LEGACY_MODE_TARGETS.get(numeric_mode, 25)

    if legacy_target is not None:
        data.setdefault("modeType", "weeklyGoal")
        data["goalType"] = "percentage"
        data["targetPercentage"] = legacy_target

    if "modeType" in data and not isinstance(data.get("mode"), dict):
        nested = {"type": data.pop("modeType")}
        for field in _FLAT_MODE_FIELDS:
            if field in data:
                nested[field] = data.pop(field)
        data["mode"] = nested

    # Pair sessions are kept in the state store, not in the config file
    data.pop("pairSession", None)
    return data


def state_dir(project_root) -> Path:
    return Path(project_root) / STATE_DIRNAME


def config_path(project_root) -> Path:
    return state_dir(project_root) / CONFIG_FILENAME


def is_initialized(project_root) -> bool:
    return config_path(project_root).is_file()


def save_config(project_root, config: PolicyConfig) -> None:
    write_json_atomic(config_path(project_root), config.to_document())


def load_config(project_root, now: Optional[datetime] = None) -> Optional[PolicyConfig]:
    """Load, migrate and validate the project's config.

    Returns None when the project has no config. An expired pause is cleared
    (re-enabling the policy) and written back, as is a migrated legacy file.
    """

    path = config_path(project_root)
    if not path.is_file():
        return None

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ConfigError(f"Invalid JSON in {path}: {exc}") from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"Failed to read {path}: {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigError(f"Expected a JSON object in {path}")

    migrated = migrate_config(raw)
    vcs_type = migrated.get("vcsType") or "git"
    if vcs_type != "git":
        raise ConfigError(
            f"Unsupported vcsType {vcs_type!r} in {path}: only git repositories can be tracked"
        )

    try:
        config = PolicyConfig.model_validate(migrated)
    except ValidationError as exc:
        raise ConfigError(f"Config validation error in {path}: {exc}") from exc

    changed = migrated != raw
    if config.paused_until is not None and not config.is_paused(now):
        config = config.model_copy(update={"enabled": True, "paused_until": None})
        changed = True

    if changed:
        try:
            save_config(project_root, config)
        except OSError as exc:
            logger.warning("Could not rewrite %s: %s", path, exc)

    return config


class PaceguardSettings(BaseSettings):
    """Runtime settings sourced from environment variables and an optional .env file."""

    model_config = SettingsConfigDict(
        env_prefix="PACEGUARD_", env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    log_level: str = "WARNING"
    agent_marker: str = AGENT_MARKER

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(
                "PACEGUARD_LOG_LEVEL must be one of CRITICAL, ERROR, WARNING, INFO, DEBUG"
            )
        return normalized

    @field_validator("agent_marker")
    @classmethod
    def _validate_agent_marker(cls, value: str) -> str:
        try:
            re.compile(value)
        except re.error as exc:
            raise ValueError(f"PACEGUARD_AGENT_MARKER is not a valid regular expression: {exc}") from exc
        return value


@lru_cache(maxsize=1)
def get_settings() -> PaceguardSettings:
    """Return cached settings instance."""

    return PaceguardSettings()
