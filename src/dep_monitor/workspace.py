"""Isolated per-scan working directories."""

import json
import logging
import shutil
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Generator

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "package.json"
LOCKFILE_FILENAME = "package-lock.json"


@dataclass(frozen=True)
class Workspace:
    """Handle to a scan directory holding a copy of the manifest."""

    id: str
    path: Path

    @property
    def manifest_path(self) -> Path:
        return self.path / MANIFEST_FILENAME

    @property
    def lockfile_path(self) -> Path:
        return self.path / LOCKFILE_FILENAME


class WorkspaceManager:
    """Creates and removes one fresh directory per scan under a root directory."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def create(self, manifest: dict[str, Any]) -> Workspace:
        """
        Allocate a new, uniquely named directory and write the manifest into it.

        Args:
            manifest: Contents of the project's package.json

        Returns:
            Workspace handle for the new directory
        """
        workspace_id = str(uuid.uuid4())
        path = self.root / workspace_id
        path.mkdir(parents=True, exist_ok=False)

        workspace = Workspace(id=workspace_id, path=path)
        workspace.manifest_path.write_text(
            json.dumps(manifest, indent=2), encoding="utf-8"
        )
        return workspace

    def destroy(self, workspace: Workspace) -> None:
        """
        Remove a workspace and everything in it.

        Failures are logged and swallowed; a scan never fails on cleanup.
        """
        try:
            if workspace.path.exists():
                shutil.rmtree(workspace.path)
        except OSError as e:
            logger.warning(f"Cleanup of workspace {workspace.path} failed (non-fatal): {e}")

    @contextmanager
    def scoped(self, manifest: dict[str, Any]) -> Generator[Workspace, None, None]:
        """
        Context manager that creates a workspace and always removes it.

        Usage:
            with manager.scoped(package_json) as workspace:
                # resolve and audit inside workspace.path
                pass
            # workspace is removed, even if the block raised
        """
        workspace = self.create(manifest)
        try:
            yield workspace
        finally:
            self.destroy(workspace)
