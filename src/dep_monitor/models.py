"""Pydantic models for the dependency monitor."""

from enum import Enum
from typing import Any, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Severity = Literal["critical", "high", "moderate", "low"]


class ScanTrigger(str, Enum):
    """What started a scan. Only used for logging and the stored record."""

    MANUAL = "manual"
    MONITOR = "monitor"


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys, as the frontend expects."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ScanRequest(BaseModel):
    """Request body for a manual scan."""

    model_config = ConfigDict(populate_by_name=True)

    manifest: Optional[dict[str, Any]] = Field(
        default=None,
        validation_alias=AliasChoices("manifest", "packageJson"),
        description="Contents of the project's package.json",
    )
    project_name: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("project_name", "projectName"),
        description="Project name (defaults to the manifest's name)",
    )


class Vulnerability(CamelModel):
    """A single advisory reported by npm audit for one package."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Package name plus occurrence index, e.g. lodash-0")
    name: str = Field(description="Name of the vulnerable package")
    package: str = Field(description="Name of the vulnerable package")
    title: str = Field(description="Advisory title")
    description: str = Field(description="Advisory title plus reference URL")
    severity: Severity = Field(description="Normalized severity")
    cvss_score: float = Field(default=0.0, description="CVSS score, 0 when unknown")
    fix_available: Literal["yes", "no"] = Field(default="no")


class Dependency(CamelModel):
    """A package observed in the audit output."""

    name: str
    version: str = Field(default="unknown")
    type: str = Field(default="prod", description="prod or dev")
    vulnerabilities: int = Field(default=0, description="Number of advisories")


class SignatureSummary(CamelModel):
    """
    Placeholder package verification summary.

    The counts are estimated from registry metadata, no signature is checked.
    """

    status: Literal["none", "partial", "full"] = "none"
    message: str = ""
    total_packages: int = 0
    verified_count: int = 0
    unverified_count: int = 0
    verified: list[str] = Field(default_factory=list)
    unverified: list[str] = Field(default_factory=list)


class ScanSummary(CamelModel):
    """Summary counts by severity plus the overall risk score."""

    total_vulnerabilities: int = 0
    critical: int = 0
    high: int = 0
    moderate: int = 0
    low: int = 0
    risk_score: int = Field(default=0, ge=0, le=100)


class ScanResult(CamelModel):
    """The stored record of one completed scan."""

    model_config = ConfigDict(frozen=True)

    scan_id: str = Field(description="Unique identifier for this scan")
    project_name: str
    trigger: ScanTrigger = ScanTrigger.MANUAL
    summary: ScanSummary = Field(default_factory=ScanSummary)
    vulnerabilities: list[Vulnerability] = Field(default_factory=list)
    dependencies: list[Dependency] = Field(default_factory=list)
    signatures: SignatureSummary = Field(default_factory=SignatureSummary)
    scanned_at: str = Field(description="UTC timestamp in ISO 8601 format")
    duration_ms: int = 0


class ScanHistory(BaseModel):
    """Stored scans for a project, newest first."""

    scans: list[ScanResult] = Field(default_factory=list)


class MonitoredProject(CamelModel):
    """A project registered for periodic re-scanning."""

    project_name: str
    project_key: str


class MonitoredProjects(BaseModel):
    projects: list[MonitoredProject] = Field(default_factory=list)
