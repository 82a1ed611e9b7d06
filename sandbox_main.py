#!/usr/bin/env python3
"""
Sandbox entrypoint for dep-monitor.
Reads a package.json manifest from stdin JSON, audits it once, outputs JSON to stdout.
"""

import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent / "src"))

from dep_monitor.config import Settings
from dep_monitor.errors import ScanError
from dep_monitor.scanner import ScanOrchestrator, resolve_project_name


def main() -> None:
    try:
        input_data = json.load(sys.stdin)
    except json.JSONDecodeError as e:
        print(json.dumps({"error": f"Invalid JSON input: {e}"}))
        sys.exit(1)

    if not isinstance(input_data, dict):
        input_data = {}

    # Accept both "manifest" and the frontend's "packageJson" key
    manifest = input_data.get("manifest")
    if manifest is None:
        manifest = input_data.get("packageJson")

    if not isinstance(manifest, dict):
        print(
            json.dumps(
                {
                    "error": "Missing required input. Provide 'manifest' with the contents of package.json",
                    "examples": {
                        "minimal": {"manifest": {"name": "app", "dependencies": {"lodash": "4.17.20"}}},
                        "named": {"packageJson": {"dependencies": {}}, "projectName": "my-app"},
                    },
                }
            )
        )
        sys.exit(1)

    project_name = resolve_project_name(
        input_data.get("projectName") or input_data.get("project_name"), manifest
    )

    try:
        orchestrator = ScanOrchestrator.from_settings(Settings.from_env())
        result = orchestrator.run(manifest, project_name)
        print(result.model_dump_json(by_alias=True))
    except ScanError as e:
        print(json.dumps({"error": str(e)}))
        sys.exit(1)


if __name__ == "__main__":
    main()
