"""Tests for npm resolution and audit invocation."""

import json
import subprocess
import sys

import pytest

from dep_monitor.errors import AuditExecutionFailed, AuditOutputMalformed
from dep_monitor.npm import Fatal, NpmClient, PartialOutput, Success
from dep_monitor.workspace import WorkspaceManager


@pytest.fixture
def workspace(tmp_path, manifest):
    return WorkspaceManager(tmp_path).create(manifest)


def test_resolve_runs_lock_only_install(fake_npm, workspace):
    outcome = NpmClient().resolve(workspace)

    assert outcome.ok
    args, cwd = fake_npm.calls[0]
    assert args[:2] == ["npm", "install"]
    assert "--package-lock-only" in args
    assert "--ignore-scripts" in args
    assert "--no-fund" in args
    assert cwd == workspace.path


def test_resolve_reads_locked_versions(fake_npm, workspace):
    fake_npm.lockfile = {
        "lockfileVersion": 3,
        "packages": {
            "": {"name": "demo-app"},
            "node_modules/lodash": {"version": "4.17.20"},
            "node_modules/@scope/pkg": {"version": "1.2.3"},
            "node_modules/a/node_modules/b": {"version": "0.1.0"},
        },
    }

    outcome = NpmClient().resolve(workspace)

    assert outcome.locked_versions == {"lodash": "4.17.20", "@scope/pkg": "1.2.3"}


def test_resolve_failure_is_not_fatal(fake_npm, workspace):
    fake_npm.install_returncode = 1

    outcome = NpmClient().resolve(workspace)

    assert not outcome.ok
    assert outcome.returncode == 1


@pytest.mark.parametrize(
    "error", [subprocess.TimeoutExpired(["npm"], 180), FileNotFoundError("npm")]
)
def test_resolve_process_errors_are_not_fatal(fake_npm, workspace, error):
    fake_npm.install_error = error

    outcome = NpmClient().resolve(workspace)

    assert not outcome.ok
    assert outcome.locked_versions == {}


def test_audit_success(fake_npm, workspace):
    fake_npm.audit_returncode = 0
    fake_npm.audit_stdout = json.dumps({"vulnerabilities": {}})

    outcome = NpmClient().audit(workspace)

    assert isinstance(outcome, Success)
    assert outcome.unwrap() == {"vulnerabilities": {}}
    args, _ = fake_npm.calls[0]
    assert args == ["npm", "audit", "--json", "--audit-level=low"]


def test_audit_nonzero_exit_with_json_is_partial(fake_npm, workspace, lodash_audit):
    fake_npm.audit_returncode = 1
    fake_npm.audit_stdout = json.dumps(lodash_audit)

    outcome = NpmClient().audit(workspace)

    assert isinstance(outcome, PartialOutput)
    assert outcome.returncode == 1
    assert outcome.unwrap() == lodash_audit


@pytest.mark.parametrize("stdout", ["", "   \n"])
def test_audit_without_output_is_fatal(fake_npm, workspace, stdout):
    fake_npm.audit_returncode = 1
    fake_npm.audit_stdout = stdout
    fake_npm.audit_stderr = "npm ERR! network"

    outcome = NpmClient().audit(workspace)

    assert isinstance(outcome, Fatal)
    with pytest.raises(AuditExecutionFailed, match="network"):
        outcome.unwrap()


@pytest.mark.parametrize("stdout", ["npm ERR! not json", "[1, 2, 3]"])
def test_audit_malformed_output_is_fatal(fake_npm, workspace, stdout):
    fake_npm.audit_stdout = stdout

    outcome = NpmClient().audit(workspace)

    assert isinstance(outcome, Fatal)
    assert isinstance(outcome.error, AuditOutputMalformed)


@pytest.mark.parametrize(
    "error", [subprocess.TimeoutExpired(["npm"], 180), FileNotFoundError("npm")]
)
def test_audit_process_errors_are_fatal(fake_npm, workspace, error):
    fake_npm.audit_error = error

    outcome = NpmClient().audit(workspace)

    assert isinstance(outcome, Fatal)
    assert isinstance(outcome.error, AuditExecutionFailed)


def test_custom_npm_binary(fake_npm, workspace):
    NpmClient(npm_bin="/opt/node/bin/npm").audit(workspace)

    args, _ = fake_npm.calls[0]
    assert args[0] == "/opt/node/bin/npm"


@pytest.mark.parametrize(
    "error", [PermissionError(13, "Permission denied"), subprocess.SubprocessError("broken")]
)
def test_other_process_errors(fake_npm, workspace, error):
    fake_npm.install_error = error
    fake_npm.audit_error = error
    client = NpmClient()

    resolution = client.resolve(workspace)
    outcome = client.audit(workspace)

    assert not resolution.ok
    assert isinstance(outcome, Fatal)
    assert isinstance(outcome.error, AuditExecutionFailed)


def test_output_is_decoded_leniently(fake_npm, workspace):
    NpmClient().audit(workspace)

    _, kwargs = fake_npm.kwargs[0]
    assert kwargs["text"] is True
    assert kwargs["errors"] == "replace"


def test_unreadable_lockfile_is_ignored(fake_npm, workspace):
    workspace.lockfile_path.write_bytes(b"\xff\xfe{")

    outcome = NpmClient().resolve(workspace)

    assert outcome.ok
    assert outcome.locked_versions == {}


def _write_script(path, body):
    path.write_text("#!/bin/sh\n" + body)
    path.chmod(0o755)
    return path


@pytest.mark.skipif(sys.platform == "win32", reason="uses a POSIX shell script as npm")
def test_real_process_with_undecodable_bytes(tmp_path, workspace, lodash_audit):
    audit_json = json.dumps(lodash_audit)
    npm = _write_script(
        tmp_path / "npm",
        'if [ "$1" = "install" ]; then\n'
        "  printf '\\377\\376 broken' >&2\n"
        "  exit 1\n"
        "fi\n"
        f"printf '%s' '{audit_json}'\n"
        "exit 1\n",
    )
    client = NpmClient(npm_bin=str(npm))

    resolution = client.resolve(workspace)
    outcome = client.audit(workspace)

    assert not resolution.ok
    assert "broken" in resolution.message
    assert isinstance(outcome, PartialOutput)
    assert outcome.unwrap() == lodash_audit


@pytest.mark.skipif(sys.platform == "win32", reason="relies on POSIX execute permissions")
def test_real_process_not_executable(tmp_path, workspace):
    npm = tmp_path / "npm"
    npm.write_text("#!/bin/sh\nexit 0\n")
    npm.chmod(0o644)
    client = NpmClient(npm_bin=str(npm))

    assert not client.resolve(workspace).ok
    outcome = client.audit(workspace)
    assert isinstance(outcome, Fatal)
    assert isinstance(outcome.error, AuditExecutionFailed)
