"""Turn-based pair programming sessions."""

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from paceguard_cli.detectors.attribution import Author
from paceguard_cli.state import StateError, StateStore

logger = logging.getLogger(__name__)

SESSION_KEY = "pair_session"
ROTATION_SUGGESTION_THRESHOLD = 3


class PairSession(BaseModel):
    """Who currently holds write permission, and how the turns have gone."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    active: bool = True
    current_driver: Author = Author.AGENT
    task: str = ""
    human_turns: int = Field(default=0, ge=0)
    agent_turns: int = Field(default=0, ge=0)
    rotation_count: int = Field(default=0, ge=0)
    contributions_since_rotation: int = Field(default=0, ge=0)
    started_at: Optional[datetime] = None

    @field_validator("current_driver", mode="before")
    @classmethod
    def _accept_legacy_driver(cls, value):
        # Older session files name the agent "claude"
        if isinstance(value, str) and value.strip().lower() == "claude":
            return Author.AGENT
        return value

    @property
    def total_turns(self) -> int:
        return self.human_turns + self.agent_turns


def other_driver(driver: Author) -> Author:
    return Author.HUMAN if driver is Author.AGENT else Author.AGENT


def should_suggest_rotation(session: PairSession) -> bool:
    return session.contributions_since_rotation >= ROTATION_SUGGESTION_THRESHOLD


class PairSessionManager:
    """Start, mutate and end the project's pair session through a state store."""

    def __init__(
        self,
        store: StateStore,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def load(self) -> PairSession | None:
        try:
            raw = self._store.load(SESSION_KEY)
            if raw is None:
                return None
            return PairSession.model_validate(raw)
        except (StateError, ValidationError) as exc:
            logger.warning("Ignoring unreadable pair session: %s", exc)
            return None

    def _save(self, session: PairSession) -> PairSession:
        self._store.save(SESSION_KEY, session.model_dump(mode="json", by_alias=True))
        return session

    def start(self, task: str, driver: Author = Author.AGENT) -> PairSession:
        session = PairSession(
            active=True,
            current_driver=driver,
            task=task,
            started_at=self._clock(),
        )
        logger.info("Pair session started on %r with %s driving", task, driver.value)
        return self._save(session)

    def end(self) -> PairSession | None:
        session = self.load()
        self._store.delete(SESSION_KEY)
        return session

    def rotate(self) -> PairSession | None:
        session = self.load()
        if session is None:
            return None
        session.current_driver = other_driver(session.current_driver)
        session.rotation_count += 1
        session.contributions_since_rotation = 0
        return self._save(session)

    def record_contribution(self, by: Author) -> PairSession | None:
        session = self.load()
        if session is None:
            return None
        if by is Author.AGENT:
            session.agent_turns += 1
        else:
            session.human_turns += 1
        session.contributions_since_rotation += 1
        return self._save(session)
