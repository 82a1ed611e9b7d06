"""Per-project scan history stored as JSON files, newest first."""

import json
import logging
import os
import re
import tempfile
import threading
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from .config import DEFAULT_PROJECT_NAME
from .errors import HistoryReadCorrupt
from .models import ScanResult

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_-]")


def project_key(project_name: Optional[str]) -> str:
    """
    Filesystem-safe key for a project name.

    Every character outside [A-Za-z0-9_-] becomes "_", which also keeps the
    key from escaping the history directory. Empty names use the default
    project name.
    """
    return _UNSAFE_CHARS.sub("_", project_name or DEFAULT_PROJECT_NAME)


class HistoryStore:
    """
    Stores one JSON array of scan results per project key.

    Appends for the same key are serialized with a per-key lock and written
    through a temporary file plus os.replace, so a manual scan and a scheduled
    scan of the same project cannot drop each other's results. Locks are
    only created for keys that have been written to.
    """

    def __init__(self, history_dir: Path, max_entries: int = 0) -> None:
        self.history_dir = Path(history_dir)
        self.max_entries = max_entries
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def path_for(self, project_name: Optional[str]) -> Path:
        return self.history_dir / f"{project_key(project_name)}.json"

    def _lock_for(self, key: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    def _read_raw(self, path: Path) -> list[Any]:
        if not path.exists():
            return []
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise HistoryReadCorrupt(f"Failed to read scan history {path.name}: {e}") from e
        if not isinstance(data, list):
            raise HistoryReadCorrupt(f"Scan history {path.name} is not a JSON array")
        return data

    def _write_atomic(self, path: Path, entries: list[Any]) -> None:
        self.history_dir.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=self.history_dir, prefix=f".{path.stem}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(entries, f, indent=2)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def append(self, project_name: Optional[str], result: ScanResult) -> None:
        """
        Prepend a result to the project's history.

        Corrupt existing history is logged and replaced rather than failing
        the scan that produced the new result.
        """
        key = project_key(project_name)
        path = self.path_for(project_name)

        with self._lock_for(key):
            try:
                history = self._read_raw(path)
            except HistoryReadCorrupt as e:
                logger.warning(f"{e}; starting a new history for {key}")
                history = []

            history.insert(0, result.model_dump(mode="json", by_alias=True))
            if self.max_entries > 0:
                del history[self.max_entries:]

            self._write_atomic(path, history)

    def list_scans(self, project_name: Optional[str]) -> list[ScanResult]:
        """
        All stored results for a project, newest first.

        Returns an empty list if nothing has been stored yet.

        Raises:
            HistoryReadCorrupt: If the stored history cannot be parsed
        """
        path = self.path_for(project_name)

        # Writers replace the file atomically, so reads need no lock
        entries = self._read_raw(path)

        try:
            return [ScanResult.model_validate(entry) for entry in entries]
        except ValidationError as e:
            raise HistoryReadCorrupt(f"Scan history {path.name} has invalid entries: {e}") from e
