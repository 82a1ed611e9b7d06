"""npm invocations: lock-only dependency resolution and npm audit."""

import json
import logging
import subprocess
from dataclasses import dataclass, field
from typing import Any

from .errors import AuditError, AuditExecutionFailed, AuditOutputMalformed
from .workspace import Workspace

logger = logging.getLogger(__name__)

RESOLVE_ARGS = ["install", "--package-lock-only", "--ignore-scripts", "--no-fund", "--no-audit"]
AUDIT_ARGS = ["audit", "--json", "--audit-level=low"]


@dataclass(frozen=True)
class ResolutionOutcome:
    """Result of the lock-only install. A failed resolution does not stop the scan."""

    ok: bool
    returncode: int | None = None
    message: str = ""
    locked_versions: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Success:
    """npm audit exited 0 and printed a JSON report."""

    data: dict[str, Any]
    returncode: int = 0

    def unwrap(self) -> dict[str, Any]:
        return self.data


@dataclass(frozen=True)
class PartialOutput:
    """
    npm audit exited non-zero but still printed a JSON report.

    This is the usual outcome when vulnerabilities are found.
    """

    data: dict[str, Any]
    returncode: int
    stderr: str = ""

    def unwrap(self) -> dict[str, Any]:
        return self.data


@dataclass(frozen=True)
class Fatal:
    """npm audit produced nothing usable."""

    error: AuditError

    def unwrap(self) -> dict[str, Any]:
        raise self.error


AuditOutcome = Success | PartialOutput | Fatal


class NpmClient:
    """Runs npm inside a scan workspace."""

    def __init__(self, npm_bin: str = "npm", timeout: float = 180.0) -> None:
        self.npm_bin = npm_bin
        self.timeout = timeout

    def _run(self, args: list[str], workspace: Workspace) -> subprocess.CompletedProcess:
        return subprocess.run(
            [self.npm_bin, *args],
            cwd=workspace.path,
            capture_output=True,
            text=True,
            errors="replace",
            timeout=self.timeout,
        )

    def resolve(self, workspace: Workspace) -> ResolutionOutcome:
        """
        Generate package-lock.json without installing anything.

        Args:
            workspace: Workspace holding the manifest

        Returns:
            ResolutionOutcome; ok is False when npm failed, timed out or is missing
        """
        try:
            result = self._run(RESOLVE_ARGS, workspace)
        except subprocess.TimeoutExpired:
            logger.warning(f"npm install timed out after {self.timeout}s (continuing)")
            return ResolutionOutcome(ok=False, message="timed out")
        except FileNotFoundError:
            logger.warning(f"{self.npm_bin} not found, skipping dependency resolution")
            return ResolutionOutcome(ok=False, message=f"{self.npm_bin} not found")
        except (OSError, subprocess.SubprocessError) as e:
            logger.warning(f"npm install could not run (continuing): {e}")
            return ResolutionOutcome(ok=False, message=str(e))

        locked_versions = read_locked_versions(workspace)

        if result.returncode != 0:
            message = (result.stderr or "").strip()
            logger.warning(
                f"npm install exited with {result.returncode} (continuing): {message[:500]}"
            )
            return ResolutionOutcome(
                ok=False,
                returncode=result.returncode,
                message=message,
                locked_versions=locked_versions,
            )

        return ResolutionOutcome(
            ok=True, returncode=0, locked_versions=locked_versions
        )

    def audit(self, workspace: Workspace) -> AuditOutcome:
        """
        Run npm audit and parse its JSON report.

        npm audit returns a non-zero exit code if vulnerabilities are found,
        so the exit code alone says nothing about whether the report is usable.
        """
        try:
            result = self._run(AUDIT_ARGS, workspace)
        except subprocess.TimeoutExpired:
            return Fatal(AuditExecutionFailed(f"npm audit timed out after {self.timeout}s"))
        except FileNotFoundError:
            return Fatal(AuditExecutionFailed(f"{self.npm_bin} not found"))
        except (OSError, subprocess.SubprocessError) as e:
            return Fatal(AuditExecutionFailed(f"npm audit could not run: {e}"))

        stdout = result.stdout or ""
        if not stdout.strip():
            stderr = (result.stderr or "").strip()
            return Fatal(
                AuditExecutionFailed(
                    f"npm audit failed without JSON output (exit {result.returncode}): {stderr[:500]}"
                )
            )

        try:
            data = json.loads(stdout)
        except json.JSONDecodeError as e:
            return Fatal(AuditOutputMalformed(f"Failed to parse npm audit output: {e}"))

        if not isinstance(data, dict):
            return Fatal(AuditOutputMalformed("npm audit output is not a JSON object"))

        if result.returncode != 0:
            return PartialOutput(data=data, returncode=result.returncode, stderr=result.stderr or "")
        return Success(data=data)


def read_locked_versions(workspace: Workspace) -> dict[str, str]:
    """
    Map package name to resolved version from package-lock.json.

    Lockfile v2/v3 format:
    {
        "packages": {
            "": {"name": "my-app", ...},
            "node_modules/lodash": {"version": "4.17.20", ...},
            "node_modules/a/node_modules/b": {"version": "1.0.0", ...}
        }
    }

    Only top-level node_modules entries are used. Returns an empty dict when
    the lockfile is missing or unreadable.
    """
    if not workspace.lockfile_path.exists():
        return {}

    try:
        data = json.loads(workspace.lockfile_path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.warning(f"Could not read {workspace.lockfile_path}: {e}")
        return {}

    packages = data.get("packages") if isinstance(data, dict) else None
    if not isinstance(packages, dict):
        return {}

    versions: dict[str, str] = {}
    for path, info in packages.items():
        if not path.startswith("node_modules/") or not isinstance(info, dict):
            continue
        name = path[len("node_modules/"):]
        if "/node_modules/" in name:
            continue
        version = info.get("version")
        if isinstance(version, str):
            versions[name] = version
    return versions
