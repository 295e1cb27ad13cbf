import os
import re
from pathlib import PurePath

from paceguard_cli.state import STATE_DIRNAME


def normalize_file_path(file_path: str, project_root: str) -> str:
    """Return file_path relative to project_root when it lies inside it, else unchanged."""
    if not os.path.isabs(file_path):
        return file_path
    try:
        relative = os.path.relpath(file_path, project_root)
    except ValueError:
        # Different drive on Windows
        return file_path
    relative = relative.replace(os.sep, "/")
    if relative == ".." or relative.startswith("../"):
        return file_path
    return relative


def _glob_to_regex(pattern: str) -> str:
    parts = []
    i = 0
    while i < len(pattern):
        if pattern.startswith("**/", i):
            # zero or more whole directories
            parts.append("(?:.*/)?")
            i += 3
        elif pattern.startswith("**", i):
            parts.append(".*")
            i += 2
        elif pattern[i] == "*":
            parts.append("[^/]*")
            i += 1
        elif pattern[i] == "?":
            parts.append("[^/]")
            i += 1
        else:
            parts.append(re.escape(pattern[i]))
            i += 1
    return "".join(parts)


def file_matches_pattern(file_path: str, pattern: str, project_root: str) -> bool:
    """
    Pattern forms:
      exact path        "src/test.ts"
      directory prefix  "src/components/" or a bare "src/components"
      glob              "src/**/*.ts", "src/*.ts", "file?.py"
    Anything unusable as a pattern simply does not match.
    """
    if not isinstance(pattern, str) or not pattern:
        return False

    normalized_file = normalize_file_path(file_path, project_root)
    normalized_pattern = pattern[2:] if pattern.startswith("./") else pattern
    if not normalized_pattern:
        return False

    if normalized_pattern.endswith("/"):
        return normalized_file.startswith(normalized_pattern)

    if "*" in normalized_pattern or "?" in normalized_pattern:
        try:
            return re.fullmatch(_glob_to_regex(normalized_pattern), normalized_file) is not None
        except re.error:
            return False

    if normalized_file == normalized_pattern:
        return True
    return normalized_file.startswith(normalized_pattern + "/")


def file_matches_patterns(file_path: str, patterns, project_root: str) -> bool:
    return any(file_matches_pattern(file_path, p, project_root) for p in patterns or [])


def is_internal_state_file(file_path: str, project_root: str) -> bool:
    normalized = normalize_file_path(file_path, project_root)
    return normalized == STATE_DIRNAME or normalized.startswith(STATE_DIRNAME + "/")


def is_markdown_file(file_path: str) -> bool:
    return PurePath(file_path).suffix.lower() == ".md"
