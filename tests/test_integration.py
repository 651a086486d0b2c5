"""
Actuary - Integration Tests

End-to-end tests of the CLI: argument handling, profile selection,
report output and exit codes.
"""

import json
import os
import subprocess
import sys
from pathlib import Path
from unittest import mock
from xml.etree.ElementTree import fromstring

import pytest

# Add project root to path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from conftest import FakeHost, FakeRuntime, container

from actuary.cli import CLI, PrivilegeChecker, main
from actuary.core.check import Category
from actuary.core.context import AuditContext, DockerRuntime
from actuary.core.errors import RuntimeUnavailableError
from actuary.core.profile import default_profile_path, load_profile
from actuary.core.registry import build_default_registry
from actuary.core.runner import AuditRunner
from actuary.output.console import ResultCollector


def write_profile(tmp_path: Path, *sections: tuple[str, list[str]]) -> Path:
    lines = []
    for name, checklist in sections:
        lines.append("[[Audit]]")
        lines.append(f'Name = "{name}"')
        lines.append("Checklist = [" + ", ".join(f'"{c}"' for c in checklist) + "]")
    path = tmp_path / "profile.toml"
    path.write_text("\n".join(lines) + "\n")
    return path


@pytest.fixture
def fake_context(tmp_path: Path) -> AuditContext:
    runtime = FakeRuntime(
        containers={"a": container("web")},
        stopped=1,
        version={"Server": {"Version": "24.0.7"}},
    )
    return AuditContext(runtime=runtime, host=FakeHost(tmp_path / "root"), privileged=True)


@pytest.fixture
def as_root():
    with mock.patch("os.geteuid", return_value=0):
        yield


SECOPS = Category.SECURITY_OPERATIONS.value
HOST = Category.HOST_CONFIGURATION.value


class TestPrivilegeChecker:
    """Tests for privilege checking functionality."""

    def test_privilege_checker_skip_check(self) -> None:
        """Test privilege checker with skip_check=True."""
        checker = PrivilegeChecker(skip_check=True)
        assert checker.check_privileges() is False
        assert checker.has_warnings
        assert "skipped" in checker._warnings[0].lower()

    @mock.patch('os.geteuid')
    def test_privilege_checker_as_root(self, mock_geteuid) -> None:
        """Test privilege checker when running as root."""
        mock_geteuid.return_value = 0
        checker = PrivilegeChecker()
        assert checker.check_privileges() is True
        assert not checker.has_warnings

    @mock.patch('os.geteuid')
    def test_privilege_checker_not_root(self, mock_geteuid, capsys) -> None:
        """Test privilege checker when not running as root."""
        mock_geteuid.return_value = 1000
        checker = PrivilegeChecker()
        assert checker.check_privileges() is False
        checker.print_warnings()
        assert "not running with sudo" in capsys.readouterr().err.lower()


class TestCLIArgumentParsing:
    """Tests for CLI argument parsing."""

    def test_cli_parse_no_args(self) -> None:
        """Test defaults."""
        args = CLI().parse_args([])
        assert args.hash == []
        assert args.profile is None
        assert args.output is None
        assert args.output_type == "json"
        assert args.docker_binary == "docker"
        assert args.workers == 1
        assert args.check_timeout is None

    def test_cli_parse_short_options(self) -> None:
        """Test the short option spellings."""
        args = CLI().parse_args(["-f", "p.toml", "-o", "r.xml", "-t", "xml", "-v"])
        assert (args.profile, args.output, args.output_type, args.verbose) == (
            "p.toml", "r.xml", "xml", True,
        )

    def test_cli_parse_hash(self) -> None:
        """Test the positional profile hash."""
        args = CLI().parse_args(["--profile-server", "http://p", "abc123"])
        assert args.hash == ["abc123"]
        assert args.profile_server == "http://p"

    def test_cli_parse_too_many_positionals(self, capsys) -> None:
        """Test that more than one positional argument is a usage error."""
        with pytest.raises(SystemExit) as excinfo:
            CLI().parse_args(["abc", "def"])
        assert excinfo.value.code == 2
        assert "Unsupported number of arguments" in capsys.readouterr().err

    def test_cli_parse_invalid_workers(self) -> None:
        """Test that --workers must be positive."""
        with pytest.raises(SystemExit):
            CLI().parse_args(["--workers", "0"])

    def test_profile_server_from_environment(self) -> None:
        """Test the profile server default comes from the environment."""
        with mock.patch.dict(os.environ, {"ACTUARY_PROFILE_SERVER": "http://env"}):
            assert CLI().parse_args([]).profile_server == "http://env"


class TestExitCodes:
    """Tests for exit code validation."""

    def test_exit_code_success(self, tmp_path, fake_context, as_root) -> None:
        """Test exit code 0 when no check reports WARN."""
        profile = write_profile(tmp_path, (SECOPS, ["container_sprawl"]))
        with mock.patch.object(CLI, "build_context", return_value=fake_context):
            assert main(["-q", "-f", str(profile)]) == 0

    def test_exit_code_findings(self, tmp_path, fake_context, as_root) -> None:
        """Test exit code 2 when a check reports WARN."""
        profile = write_profile(tmp_path, (HOST, ["separate_partition"]))
        with mock.patch.object(CLI, "build_context", return_value=fake_context):
            assert main(["-q", "-f", str(profile)]) == 2

    def test_exit_code_no_sudo(self, tmp_path, fake_context) -> None:
        """Test exit code 2 when privilege warnings are present."""
        profile = write_profile(tmp_path, (SECOPS, ["container_sprawl"]))
        with mock.patch.object(CLI, "build_context", return_value=fake_context):
            assert main(["-q", "--no-sudo", "-f", str(profile)]) == 2

    def test_main_exit_code_error(self) -> None:
        """Test exit code 1 on unexpected errors."""
        with mock.patch.object(CLI, 'parse_args', side_effect=Exception("Test error")):
            assert main() == 1

    def test_main_exit_code_keyboard_interrupt(self) -> None:
        """Test exit code 1 on KeyboardInterrupt."""
        with mock.patch.object(CLI, 'parse_args', side_effect=KeyboardInterrupt()):
            assert main() == 1

    def test_missing_profile(self, tmp_path, capsys) -> None:
        """Test exit code 1 when the profile file does not exist."""
        assert main(["-f", str(tmp_path / "absent.toml")]) == 1
        assert "Invalid profile path" in capsys.readouterr().err

    def test_hash_without_server(self, capsys) -> None:
        """Test exit code 1 when a hash is given but no server is set."""
        assert main(["--profile-server", "", "abc123"]) == 1
        assert "No profile server configured" in capsys.readouterr().err

    def test_daemon_unreachable(self, tmp_path, capsys, as_root) -> None:
        """Test exit code 1 when the Docker daemon cannot be reached."""
        profile = write_profile(tmp_path, (SECOPS, ["container_sprawl"]))
        report = tmp_path / "report.json"
        error = RuntimeUnavailableError("Unable to connect to Docker daemon: refused")
        with mock.patch.object(DockerRuntime, "ping", side_effect=error):
            assert main(["-q", "-f", str(profile), "-o", str(report)]) == 1
        assert "Unable to connect to Docker daemon" in capsys.readouterr().err
        assert not report.exists()


class TestAbortWritesNoReport:
    """Tests that configuration errors abort before any report is written."""

    @pytest.mark.parametrize("sections,message", [
        ((("Bogus", ["container_sprawl"]),), "No audit category named: Bogus"),
        (((SECOPS, ["container_sprawl", "no_such_check"]),), "No check named no_such_check"),
    ])
    def test_abort(self, tmp_path, fake_context, capsys, as_root, sections, message) -> None:
        """Test exit code 1, an error on stderr and no report file."""
        profile = write_profile(tmp_path, *sections)
        report = tmp_path / "report.json"
        with mock.patch.object(CLI, "build_context", return_value=fake_context):
            assert main(["-f", str(profile), "-o", str(report)]) == 1

        captured = capsys.readouterr()
        assert f"Error: {message}" in captured.err
        assert not report.exists()


class TestReportOutput:
    """Tests for report file output from the CLI."""

    def test_json_report(self, tmp_path, fake_context, as_root) -> None:
        """Test that results are written in execution order."""
        profile = write_profile(
            tmp_path,
            (HOST, ["server_version", "separate_partition"]),
            (SECOPS, ["container_sprawl"]),
        )
        report = tmp_path / "report.json"
        with mock.patch.object(CLI, "build_context", return_value=fake_context):
            main(["-q", "-f", str(profile), "-o", str(report)])

        data = json.loads(report.read_text())
        assert [item["Status"] for item in data["Results"]] == ["INFO", "WARN", "INFO"]
        assert data["Results"][0] == {
            "Name": "1.6 Keep Docker up to date",
            "Status": "INFO",
            "Output": "Docker server is currently running version 24.0.7",
        }

    def test_xml_report_mixed_case_type(self, tmp_path, fake_context, as_root) -> None:
        """Test that --type is matched case-insensitively."""
        profile = write_profile(tmp_path, (SECOPS, ["container_sprawl"]))
        report = tmp_path / "report.xml"
        with mock.patch.object(CLI, "build_context", return_value=fake_context):
            assert main(["-q", "-f", str(profile), "-o", str(report), "-t", "XML"]) == 0

        root = fromstring(report.read_text())
        assert root.tag == "Report"
        assert root.find("Result").findtext("Name") == "6.6 Avoid container sprawl"

    def test_unsupported_type_writes_nothing(self, tmp_path, fake_context, as_root) -> None:
        """Test that an unknown --type runs the audit but writes no file."""
        profile = write_profile(tmp_path, (SECOPS, ["container_sprawl"]))
        report = tmp_path / "report.yaml"
        with mock.patch.object(CLI, "build_context", return_value=fake_context):
            assert main(["-q", "-f", str(profile), "-o", str(report), "-t", "yaml"]) == 0
        assert not report.exists()

    def test_write_failure(self, tmp_path, fake_context, capsys, as_root) -> None:
        """Test exit code 1 when the report cannot be written."""
        profile = write_profile(tmp_path, (SECOPS, ["container_sprawl"]))
        report = tmp_path / "missing-dir" / "report.json"
        with mock.patch.object(CLI, "build_context", return_value=fake_context):
            assert main(["-q", "-f", str(profile), "-o", str(report)]) == 1
        assert "Error writing audit output" in capsys.readouterr().err

    def test_console_echo(self, tmp_path, fake_context, capsys, as_root) -> None:
        """Test that results are echoed with a category header."""
        profile = write_profile(tmp_path, (SECOPS, ["container_sprawl"]))
        with mock.patch.object(CLI, "build_context", return_value=fake_context):
            main(["--no-color", "-f", str(profile)])

        out = capsys.readouterr().out
        assert "Docker Security Operations" in out
        assert "[INFO] - 6.6 Avoid container sprawl" in out


class TestEndToEndAudit:
    """Tests running the bundled checks as a whole."""

    def test_default_profile_runs_every_check(self, fake_context) -> None:
        """Test that the bundled profile runs against a fake engine."""
        registry = build_default_registry()
        profile = load_profile(default_profile_path())
        collector = ResultCollector(echo=False)

        results = AuditRunner(registry, collector=collector).run(profile, fake_context)

        assert len(results) == len(profile)
        assert collector.snapshot() == results
        assert all("Check execution failed" not in r.output for r in results)

    def test_single_check_profile(self, tmp_path, fake_context) -> None:
        """Test that a one-entry profile yields exactly one result."""
        profile = load_profile(write_profile(tmp_path, (HOST, ["kernel_version"])))
        results = AuditRunner(build_default_registry()).run(profile, fake_context)

        assert len(results) == 1
        assert results[0].name == "1.2 Use the updated Linux Kernel"
        assert results[0].status.value in ("PASS", "WARN", "SKIP", "INFO")

    def test_pooled_matches_sequential(self, fake_context) -> None:
        """Test that pooled execution yields the sequential result list."""
        registry = build_default_registry()
        profile = load_profile(default_profile_path())

        sequential = AuditRunner(registry).run(profile, fake_context)
        pooled = AuditRunner(registry, max_workers=8).run(profile, fake_context)

        assert pooled == sequential

    def test_list_checks(self, capsys) -> None:
        """Test --list-checks prints every category and exits 0."""
        assert main(["--list-checks"]) == 0
        out = capsys.readouterr().out
        for category in Category:
            assert category.value in out
        assert "kernel_version" in out

    def test_module_entry_point(self) -> None:
        """Test running the package as a module."""
        completed = subprocess.run(
            [sys.executable, "-m", "actuary", "--version"],
            capture_output=True,
            text=True,
            cwd=str(project_root),
            timeout=30,
        )
        assert completed.returncode == 0
        assert "actuary" in completed.stdout
