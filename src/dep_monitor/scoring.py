"""Severity counts and the 0-100 risk score."""

import math
from typing import Iterable

from .models import ScanSummary, Vulnerability

# Severity levels from highest to lowest
SEVERITY_ORDER = ["critical", "high", "moderate", "low"]

SEVERITY_WEIGHTS = {"critical": 4, "high": 3, "moderate": 2, "low": 1}


def severity_counts(vulns: Iterable[Vulnerability]) -> dict[str, int]:
    """Count vulnerabilities per severity."""
    counts = {severity: 0 for severity in SEVERITY_ORDER}
    for vuln in vulns:
        counts[vuln.severity] += 1
    return counts


def risk_score(counts: dict[str, int]) -> int:
    """
    Weighted severity mix scaled to 0-100.

    The weighted sum is divided by the all-critical worst case, so the score
    reflects how severe the findings are rather than how many there are.
    One critical scores 100, one low scores 25, none scores 0.
    """
    total = sum(counts.get(severity, 0) for severity in SEVERITY_ORDER)
    if total == 0:
        return 0

    weighted = sum(
        counts.get(severity, 0) * weight for severity, weight in SEVERITY_WEIGHTS.items()
    )
    max_weight = SEVERITY_WEIGHTS["critical"]
    # round half up
    return int(math.floor(100 * weighted / (total * max_weight) + 0.5))


def build_summary(vulns: list[Vulnerability]) -> ScanSummary:
    """
    Build a summary of findings by severity.

    Args:
        vulns: All vulnerabilities extracted from the audit

    Returns:
        ScanSummary with counts by severity and the risk score
    """
    counts = severity_counts(vulns)
    return ScanSummary(
        total_vulnerabilities=sum(counts.values()),
        critical=counts["critical"],
        high=counts["high"],
        moderate=counts["moderate"],
        low=counts["low"],
        risk_score=risk_score(counts),
    )
