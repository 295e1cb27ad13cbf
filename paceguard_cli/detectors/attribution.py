import re
from enum import Enum


class Author(str, Enum):
    HUMAN = "human"
    AGENT = "agent"


# Co-authorship trailer the assistant appends to commits it writes
AGENT_MARKER = r"Co-Authored-By:.*Claude"


class AttributionDetector:
    """Labels a commit human- or agent-authored from its message alone."""

    def __init__(self, marker: str = AGENT_MARKER):
        self.pattern = re.compile(marker, re.IGNORECASE)

    def classify(self, message: str) -> Author:
        if message and self.pattern.search(message):
            return Author.AGENT
        return Author.HUMAN

    def classify_commit(self, commit) -> Author:
        return self.classify(commit.message)


_default = AttributionDetector()


def classify(message: str) -> Author:
    return _default.classify(message)


def classify_commit(commit) -> Author:
    return _default.classify_commit(commit)
