"""Projects registered for periodic re-scanning."""

import copy
import threading
from typing import Any


class MonitorRegistry:
    """
    Thread-safe map of project name to its last submitted manifest.

    Held in memory only; registrations do not survive a restart.
    """

    def __init__(self) -> None:
        self._projects: dict[str, dict[str, Any]] = {}
        self._lock = threading.Lock()

    def register(self, project_name: str, manifest: dict[str, Any]) -> None:
        """Add or replace the manifest monitored for a project."""
        with self._lock:
            self._projects[project_name] = copy.deepcopy(manifest)

    def unregister(self, project_name: str) -> bool:
        """Stop monitoring a project. Returns False if it was not registered."""
        with self._lock:
            return self._projects.pop(project_name, None) is not None

    def entries(self) -> list[tuple[str, dict[str, Any]]]:
        """Snapshot of (project name, manifest) pairs, safe to iterate while others register."""
        with self._lock:
            return [(name, copy.deepcopy(manifest)) for name, manifest in self._projects.items()]

    def __contains__(self, project_name: object) -> bool:
        with self._lock:
            return project_name in self._projects

    def __len__(self) -> int:
        with self._lock:
            return len(self._projects)
