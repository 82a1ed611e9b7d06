"""Shared pytest fixtures for dep-monitor tests."""

import copy
import json
import subprocess
from pathlib import Path

import pytest

from dep_monitor.config import Settings
from dep_monitor.history import HistoryStore
from dep_monitor.npm import NpmClient
from dep_monitor.scanner import ScanOrchestrator
from dep_monitor.workspace import WorkspaceManager

LODASH_AUDIT = {
    "vulnerabilities": {
        "lodash": {
            "via": [
                {
                    "title": "Prototype Pollution",
                    "severity": "high",
                    "cvss": {"score": 7.5},
                }
            ],
            "fixAvailable": True,
        }
    }
}

MIXED_AUDIT = {
    "vulnerabilities": {
        "minimist": {
            "name": "minimist",
            "severity": "critical",
            "via": [
                {
                    "title": "Prototype Pollution in minimist",
                    "url": "https://github.com/advisories/GHSA-xvch-5gv4-984h",
                    "severity": "critical",
                    "cvss": {"score": 9.8},
                },
                {"title": "Older advisory", "severity": "moderate", "cvss": {"score": None}},
            ],
            "fixAvailable": {"name": "mkdirp", "version": "1.0.4"},
        },
        "mkdirp": {
            "name": "mkdirp",
            "severity": "low",
            "via": ["minimist"],
            "fixAvailable": False,
        },
    },
    "metadata": {
        "vulnerabilities": {"low": 1, "moderate": 1, "high": 0, "critical": 1, "total": 3},
        "dependencies": {"prod": 8, "dev": 2, "total": 10},
    },
}

MANIFEST = {
    "name": "demo-app",
    "version": "1.0.0",
    "dependencies": {"lodash": "4.17.20"},
    "devDependencies": {"mkdirp": "0.5.1"},
}


class FakeNpm:
    """
    Stand-in for subprocess.run that answers npm install and npm audit.

    Set audit_stdout/audit_returncode to shape the audit response, and
    lockfile to have the install step write a package-lock.json.
    """

    def __init__(self):
        self.calls: list[tuple[list[str], Path]] = []
        self.kwargs: list[tuple[list[str], dict]] = []
        self.install_returncode = 0
        self.install_error: Exception | None = None
        self.lockfile: dict | None = None
        self.audit_stdout = json.dumps(LODASH_AUDIT)
        self.audit_returncode = 1
        self.audit_stderr = ""
        self.audit_error: Exception | None = None

    def __call__(self, args, cwd=None, **kwargs):
        self.calls.append((list(args), Path(cwd)))
        self.kwargs.append((list(args), kwargs))
        command = args[1]
        if command == "install":
            if self.install_error is not None:
                raise self.install_error
            if self.lockfile is not None:
                (Path(cwd) / "package-lock.json").write_text(json.dumps(self.lockfile))
            return subprocess.CompletedProcess(args, self.install_returncode, "", "")
        if command == "audit":
            if self.audit_error is not None:
                raise self.audit_error
            return subprocess.CompletedProcess(
                args, self.audit_returncode, self.audit_stdout, self.audit_stderr
            )
        raise AssertionError(f"unexpected npm command: {args}")

    def commands(self) -> list[str]:
        return [args[1] for args, _ in self.calls]


@pytest.fixture
def fake_npm(monkeypatch):
    fake = FakeNpm()
    monkeypatch.setattr("dep_monitor.npm.subprocess.run", fake)
    return fake


@pytest.fixture
def settings(tmp_path):
    return Settings(
        history_dir=tmp_path / "history",
        workspace_dir=tmp_path / "workspaces",
        npm_timeout=5.0,
        monitor_interval=0.05,
        scheduler_enabled=False,
    )


@pytest.fixture
def history_store(settings):
    return HistoryStore(settings.history_dir)


@pytest.fixture
def orchestrator(settings, history_store):
    return ScanOrchestrator(
        workspaces=WorkspaceManager(settings.workspace_dir),
        npm=NpmClient(timeout=settings.npm_timeout),
        history=history_store,
    )


@pytest.fixture
def lodash_audit():
    return copy.deepcopy(LODASH_AUDIT)


@pytest.fixture
def mixed_audit():
    return copy.deepcopy(MIXED_AUDIT)


@pytest.fixture
def manifest():
    return copy.deepcopy(MANIFEST)
