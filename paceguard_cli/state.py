"""Key/value persistence for cache entries and pair sessions."""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Protocol

STATE_DIRNAME = ".paceguard"


class StateError(RuntimeError):
    """Raised when a stored record exists but cannot be read back."""


class StateStore(Protocol):
    """Minimal load/save-by-key API the engine depends on."""

    def load(self, key: str) -> dict[str, Any] | None:
        ...

    def save(self, key: str, data: dict[str, Any]) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


def write_json_atomic(path: Path, data: dict[str, Any]) -> None:
    """Write JSON so that readers never observe a partially written file."""

    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            json.dump(data, handle, indent=2)
            handle.write("\n")
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class FileStateStore:
    """One JSON document per key inside the project's state directory."""

    def __init__(self, root: Path) -> None:
        self._root = Path(root)

    @classmethod
    def for_project(cls, project_root: str | Path) -> "FileStateStore":
        return cls(Path(project_root) / STATE_DIRNAME)

    @property
    def root(self) -> Path:
        return self._root

    def path_for(self, key: str) -> Path:
        return self._root / f"{key}.json"

    def load(self, key: str) -> dict[str, Any] | None:
        path = self.path_for(key)
        if not path.exists():
            return None
        try:
            document = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise StateError(f"Failed to read {path}: {exc}") from exc
        if not isinstance(document, dict):
            raise StateError(f"Expected a JSON object in {path}")
        return document

    def save(self, key: str, data: dict[str, Any]) -> None:
        write_json_atomic(self.path_for(key), data)

    def delete(self, key: str) -> None:
        self.path_for(key).unlink(missing_ok=True)


class MemoryStateStore:
    """In-process store, used where no file system state is wanted."""

    def __init__(self, initial: dict[str, dict[str, Any]] | None = None) -> None:
        self._data: dict[str, dict[str, Any]] = {
            key: json.loads(json.dumps(value)) for key, value in (initial or {}).items()
        }

    def load(self, key: str) -> dict[str, Any] | None:
        value = self._data.get(key)
        return json.loads(json.dumps(value)) if value is not None else None

    def save(self, key: str, data: dict[str, Any]) -> None:
        self._data[key] = json.loads(json.dumps(data))

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._data)
