"""Scan orchestration: workspace, npm resolve + audit, normalization, history."""

import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from .config import DEFAULT_PROJECT_NAME, Settings
from .errors import AuditError
from .extractor import (
    HeuristicSignatureVerifier,
    SignatureVerifier,
    extract_dependencies,
    extract_vulnerabilities,
)
from .history import HistoryStore
from .models import ScanResult, ScanTrigger
from .npm import NpmClient, PartialOutput
from .scoring import build_summary
from .workspace import WorkspaceManager

logger = logging.getLogger(__name__)


def resolve_project_name(project_name: Optional[str], manifest: Optional[dict[str, Any]]) -> str:
    """Explicit project name, else the manifest's "name", else the default name."""
    if project_name:
        return project_name
    if manifest and isinstance(manifest.get("name"), str) and manifest["name"]:
        return manifest["name"]
    return DEFAULT_PROJECT_NAME


class ScanOrchestrator:
    """
    Runs one complete scan.

    Both manual scan requests and the scheduler go through run(); the trigger
    only changes what gets logged and recorded.
    """

    def __init__(
        self,
        workspaces: WorkspaceManager,
        npm: NpmClient,
        history: HistoryStore,
        verifier: Optional[SignatureVerifier] = None,
    ) -> None:
        self.workspaces = workspaces
        self.npm = npm
        self.history = history
        self.verifier = verifier if verifier is not None else HeuristicSignatureVerifier()

    @classmethod
    def from_settings(cls, settings: Settings) -> "ScanOrchestrator":
        return cls(
            workspaces=WorkspaceManager(settings.workspace_dir),
            npm=NpmClient(npm_bin=settings.npm_bin, timeout=settings.npm_timeout),
            history=HistoryStore(settings.history_dir, max_entries=settings.history_limit),
        )

    def run(
        self,
        manifest: dict[str, Any],
        project_name: str,
        trigger: ScanTrigger = ScanTrigger.MANUAL,
    ) -> ScanResult:
        """
        Scan a manifest and store the result in the project's history.

        Args:
            manifest: Contents of the project's package.json
            project_name: Name the result is stored under
            trigger: Whether this is a manual or a scheduled scan

        Returns:
            The stored ScanResult

        Raises:
            AuditExecutionFailed: If npm audit produced no output
            AuditOutputMalformed: If npm audit output is not valid JSON
        """
        scan_id = str(uuid.uuid4())
        tag = f"[{trigger.value.upper()} {scan_id}]"
        start = time.monotonic()
        logger.info(f"{tag} Starting npm audit scan for {project_name}...")

        with self.workspaces.scoped(manifest) as workspace:
            logger.info(f"{tag} Wrote package.json to {workspace.path}")

            logger.info(f"{tag} Running npm install --package-lock-only...")
            resolution = self.npm.resolve(workspace)
            if not resolution.ok:
                logger.warning(f"{tag} Dependency resolution failed, auditing anyway")

            logger.info(f"{tag} Running npm audit --json...")
            outcome = self.npm.audit(workspace)
            if isinstance(outcome, PartialOutput):
                logger.info(
                    f"{tag} npm audit exit code {outcome.returncode} but JSON parsed"
                )
            try:
                audit_json = outcome.unwrap()
            except AuditError as e:
                logger.error(f"{tag} {e}")
                raise

            vulnerabilities = extract_vulnerabilities(audit_json)
            summary = build_summary(vulnerabilities)
            dependencies = extract_dependencies(
                audit_json, manifest=manifest, locked_versions=resolution.locked_versions
            )
            signatures = self.verifier.summarize(audit_json)

            result = ScanResult(
                scan_id=scan_id,
                project_name=project_name,
                trigger=trigger,
                summary=summary,
                vulnerabilities=vulnerabilities,
                dependencies=dependencies,
                signatures=signatures,
                scanned_at=datetime.now(timezone.utc).isoformat(),
                duration_ms=int((time.monotonic() - start) * 1000),
            )

            self.history.append(project_name, result)

        logger.info(
            f"{tag} Scan complete - vulns: {summary.total_vulnerabilities}, "
            f"risk: {summary.risk_score}"
        )
        return result
