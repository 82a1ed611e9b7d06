"""Command-line interface for the dependency monitor."""

import argparse
import json
import logging
import sys
from pathlib import Path

from .config import Settings
from .errors import HistoryReadCorrupt, ScanError
from .models import ScanResult
from .scanner import ScanOrchestrator, resolve_project_name

SEVERITY_COLORS = {
    "critical": "\033[91m",  # Red
    "high": "\033[93m",      # Yellow
    "moderate": "\033[94m",  # Blue
    "low": "\033[90m",       # Gray
}
RESET = "\033[0m"


def format_scan_result(result: ScanResult) -> str:
    """Format a scan result as a readable report."""
    summary = result.summary
    lines = [
        f"\n{result.project_name} - scan {result.scan_id}",
        f"Scanned at {result.scanned_at} in {result.duration_ms} ms",
        "-" * 80,
    ]

    if not result.vulnerabilities:
        lines.append("Vulnerabilities: None")
    for v in result.vulnerabilities:
        color = SEVERITY_COLORS.get(v.severity, "")
        lines.append(f"{color}[{v.severity.upper():8}]{RESET} {v.package}: {v.title}")
        lines.append(f"           CVSS: {v.cvss_score:g}  Fix available: {v.fix_available}")
        if v.description != v.title:
            lines.append(f"           {v.description}")
        lines.append("")

    lines.append(
        f"Summary: {summary.total_vulnerabilities} vulnerabilities "
        f"({summary.critical} critical, {summary.high} high, "
        f"{summary.moderate} moderate, {summary.low} low), "
        f"risk score {summary.risk_score}/100"
    )
    return "\n".join(lines)


def format_history(project_name: str, history: list[ScanResult]) -> str:
    """Format a project's history as one line per scan."""
    if not history:
        return f"\n{project_name}: no scans recorded\n"

    lines = [f"\n{project_name} ({len(history)} scans):", "-" * 80]
    for result in history:
        summary = result.summary
        lines.append(
            f"{result.scanned_at}  [{result.trigger.value:7}]  "
            f"risk {summary.risk_score:3}  vulns {summary.total_vulnerabilities:3}  "
            f"{result.scan_id}"
        )
    return "\n".join(lines)


def _cmd_scan(args: argparse.Namespace, settings: Settings) -> int:
    manifest_path = Path(args.path)
    if manifest_path.is_dir():
        manifest_path = manifest_path / "package.json"
    if not manifest_path.is_file():
        print(f"Error: No package.json found at: {args.path}", file=sys.stderr)
        return 1

    try:
        manifest = json.loads(manifest_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        print(f"Error: Invalid JSON in {manifest_path}: {e}", file=sys.stderr)
        return 1

    project_name = resolve_project_name(args.project, manifest)
    orchestrator = ScanOrchestrator.from_settings(settings)

    try:
        result = orchestrator.run(manifest, project_name)
    except ScanError as e:
        print(f"Error: Scan failed: {e}", file=sys.stderr)
        return 1

    if args.json_output:
        print(result.model_dump_json(by_alias=True, indent=2))
    else:
        print(format_scan_result(result))

    return 1 if result.summary.critical > 0 else 0


def _cmd_history(args: argparse.Namespace, settings: Settings) -> int:
    orchestrator = ScanOrchestrator.from_settings(settings)
    try:
        history = orchestrator.history.list_scans(args.project)
    except HistoryReadCorrupt as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.json_output:
        scans = [r.model_dump(mode="json", by_alias=True) for r in history]
        print(json.dumps({"scans": scans}, indent=2))
    else:
        print(format_history(args.project, history))
    return 0


def _cmd_serve(args: argparse.Namespace, settings: Settings) -> int:
    import uvicorn

    uvicorn.run("dep_monitor.main:app", host=args.host, port=args.port)
    return 0


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Audit npm manifests for known vulnerabilities.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  dep-monitor scan ./my-project
  dep-monitor scan ./my-project/package.json --project my-app --json
  dep-monitor history my-app
  dep-monitor serve --port 4000
        """,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    scan_parser = subparsers.add_parser("scan", help="Scan a package.json once")
    scan_parser.add_argument("path", help="Path to package.json or the directory holding it")
    scan_parser.add_argument("--project", default=None, help="Project name for the history")
    scan_parser.add_argument(
        "--json", action="store_true", dest="json_output", help="Output results as JSON"
    )

    history_parser = subparsers.add_parser("history", help="Show stored scans for a project")
    history_parser.add_argument("project", help="Project name")
    history_parser.add_argument(
        "--json", action="store_true", dest="json_output", help="Output results as JSON"
    )

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API and scheduler")
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=4000)

    args = parser.parse_args()
    settings = Settings.from_env()
    logging.basicConfig(level=settings.log_level, stream=sys.stderr)

    commands = {"scan": _cmd_scan, "history": _cmd_history, "serve": _cmd_serve}
    sys.exit(commands[args.command](args, settings))


if __name__ == "__main__":
    main()
