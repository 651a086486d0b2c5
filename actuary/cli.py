"""
Actuary - Command Line Interface

This module provides the CLI argument parsing, privilege handling,
and main entry point for the audit tool.
"""

import argparse
import os
import sys
import traceback
from typing import Optional

from actuary import __version__
from actuary.core.check import CheckResult, Status
from actuary.core.context import (
    DEFAULT_DOCKER_BINARY,
    DEFAULT_QUERY_TIMEOUT,
    AuditContext,
    DockerRuntime,
    HostInspector,
)
from actuary.core.errors import ConfigurationError
from actuary.core.profile import Profile, default_profile_path, fetch_profile, load_profile
from actuary.core.registry import AuditRegistry, build_default_registry
from actuary.core.runner import AuditRunner
from actuary.output.console import ResultCollector
from actuary.output.report import is_supported_format, write_report

PROFILE_SERVER_ENV = "ACTUARY_PROFILE_SERVER"


class PrivilegeChecker:
    """Handles privilege checking and warnings for the audit tool.

    Reading audit rules and some Docker files needs root; checks that
    declare requires_root are skipped when running unprivileged.
    """

    def __init__(self, skip_check: bool = False) -> None:
        """Initialize the privilege checker.

        Args:
            skip_check: If True, skip the root check entirely
        """
        self._skip_check = skip_check
        self._has_root = False
        self._warnings: list[str] = []

    def check_privileges(self) -> bool:
        """Check if the process is running with root privileges.

        Returns:
            True if running as root, False otherwise
        """
        if self._skip_check:
            self._warnings.append(
                "Privilege check skipped (--no-sudo). Checks requiring root will be skipped."
            )
            return False

        self._has_root = os.geteuid() == 0

        if not self._has_root:
            self._warnings.append(
                "Not running with sudo/root privileges. "
                "Some checks will be skipped."
            )

        return self._has_root

    def print_warnings(self) -> None:
        """Print any privilege-related warnings to stderr."""
        for warning in self._warnings:
            print(f"WARNING: {warning}", file=sys.stderr)

    @property
    def has_warnings(self) -> bool:
        return len(self._warnings) > 0


class CLI:
    """Command Line Interface for the audit tool.

    Handles argument parsing, profile loading, privilege checking,
    and orchestrates the audit run and report output.
    """

    def __init__(self) -> None:
        """Initialize the CLI."""
        self.args: Optional[argparse.Namespace] = None
        self.privilege_checker = PrivilegeChecker()
        self.collector: Optional[ResultCollector] = None

    def parse_args(self, argv: Optional[list[str]] = None) -> argparse.Namespace:
        """Parse command line arguments.

        Args:
            argv: Command line arguments (defaults to sys.argv[1:])

        Returns:
            Parsed arguments namespace
        """
        parser = argparse.ArgumentParser(
            prog="actuary",
            description="CIS Docker Benchmark Audit Tool",
            epilog="Exit codes: 0=no findings, 1=error, 2=warnings/check failures",
        )

        parser.add_argument(
            "hash",
            nargs="*",
            help="Fetch the profile with this hash from the profile server",
        )

        parser.add_argument(
            "--profile", "-f",
            type=str,
            default=None,
            help="Profile file path (default: bundled profile with every check)",
        )

        parser.add_argument(
            "--output", "-o",
            type=str,
            default=None,
            help="Report file path (no report is written when omitted)",
        )

        parser.add_argument(
            "--type", "-t",
            dest="output_type",
            type=str,
            default="json",
            help="Report format - json or xml (default: json)",
        )

        parser.add_argument(
            "--profile-server",
            type=str,
            default=os.environ.get(PROFILE_SERVER_ENV, ""),
            help=f"Profile server base URL (default: ${PROFILE_SERVER_ENV})",
        )

        parser.add_argument(
            "--docker-binary",
            type=str,
            default=DEFAULT_DOCKER_BINARY,
            help="docker CLI used to query the engine",
        )

        parser.add_argument(
            "--timeout",
            type=int,
            default=DEFAULT_QUERY_TIMEOUT,
            help="Timeout in seconds for each Docker query",
        )

        parser.add_argument(
            "--workers",
            type=int,
            default=1,
            help="Run the checks of a category on this many threads (default: 1)",
        )

        parser.add_argument(
            "--check-timeout",
            type=float,
            default=None,
            help="With --workers > 1, skip checks running longer than this many seconds",
        )

        parser.add_argument(
            "--no-sudo",
            action="store_true",
            help="Skip the root check; checks requiring root are skipped",
        )

        parser.add_argument(
            "--no-color",
            action="store_true",
            help="Disable coloured console output",
        )

        parser.add_argument(
            "--quiet", "-q",
            action="store_true",
            help="Do not echo results to the console",
        )

        parser.add_argument(
            "--verbose", "-v",
            action="store_true",
            help="Enable verbose output",
        )

        parser.add_argument(
            "--list-checks",
            action="store_true",
            help="List registered checks per category and exit",
        )

        parser.add_argument(
            "--version",
            action="version",
            version=f"%(prog)s {__version__}",
        )

        self.args = parser.parse_args(argv)
        if len(self.args.hash) > 1:
            parser.error("Unsupported number of arguments. Use -h for help")
        if self.args.workers < 1:
            parser.error("--workers must be at least 1")
        return self.args

    def _verbose(self, message: str) -> None:
        if self.args is not None and self.args.verbose:
            print(message, file=sys.stderr)

    def load_profile(self) -> Profile:
        """Load the profile named on the command line.

        Raises:
            ProfileError: If the profile cannot be fetched or parsed
        """
        if self.args is None:
            raise RuntimeError("Arguments must be parsed before loading a profile")

        if self.args.hash:
            profile_hash = self.args.hash[0]
            self._verbose(f"Fetching profile {profile_hash} from {self.args.profile_server}")
            return fetch_profile(profile_hash, self.args.profile_server)

        path = self.args.profile or default_profile_path()
        self._verbose(f"Loading profile {path}")
        return load_profile(path)

    def build_context(self, privileged: bool) -> AuditContext:
        """Connect to the Docker engine and build the shared context.

        Raises:
            RuntimeUnavailableError: If the Docker daemon does not answer
        """
        runtime = DockerRuntime(
            binary=self.args.docker_binary if self.args else DEFAULT_DOCKER_BINARY,
            timeout=self.args.timeout if self.args else DEFAULT_QUERY_TIMEOUT,
        )
        runtime.ping()
        return AuditContext(runtime=runtime, host=HostInspector(), privileged=privileged)

    def list_checks(self, registry: AuditRegistry) -> None:
        """Print every registered check, grouped by category."""
        for category, group in registry:
            print(category.value)
            for check in group:
                meta = check.get_metadata()
                root = " (root)" if meta["requires_root"] else ""
                print(f"  {meta['id']:<32} {meta['severity'].upper():<8} {meta['name']}{root}")

    def write_output(self, results: list[CheckResult]) -> None:
        """Write the report if an output path was given.

        An unsupported report type writes nothing.
        """
        if not self.args or not self.args.output:
            return

        written = write_report(self.args.output, self.args.output_type, results)
        if written:
            self._verbose(f"Results written to {self.args.output}")
        elif not is_supported_format(self.args.output_type):
            self._verbose(
                f"Output type '{self.args.output_type}' is not json or xml; no report written"
            )

    def run_audit(self, privileged: bool = False) -> int:
        """Run the audit.

        Returns:
            Exit code (0=success, 1=error, 2=warnings)
        """
        profile = self.load_profile()
        registry = build_default_registry()
        self._verbose(f"Registered {len(registry)} checks")

        context = self.build_context(privileged)

        self.collector = ResultCollector(
            color=False if self.args.no_color else None,
            echo=not self.args.quiet,
        )
        runner = AuditRunner(
            registry,
            collector=self.collector,
            max_workers=self.args.workers,
            check_timeout=self.args.check_timeout,
        )

        self._verbose(f"Executing {len(profile)} checks")
        results = runner.run(profile, context)

        try:
            self.write_output(results)
        except BrokenPipeError:
            return 0
        except (OSError, UnicodeError) as e:
            print(f"Error writing audit output: {e}", file=sys.stderr)
            return 1

        summary = self.collector.summary()
        self._verbose(
            "Summary: " + ", ".join(f"{status.value}={summary[status.value]}" for status in Status)
        )

        if summary[Status.WARN.value] > 0:
            return 2  # Warnings - some checks failed

        return 0

    def main(self, argv: Optional[list[str]] = None) -> int:
        """Main entry point for the CLI.

        Args:
            argv: Command line arguments (defaults to sys.argv[1:])

        Returns:
            Exit code (0=success, 1=error, 2=warnings)
        """
        try:
            self.parse_args(argv)

            if self.args.list_checks:
                self.list_checks(build_default_registry())
                return 0

            self.privilege_checker = PrivilegeChecker(skip_check=self.args.no_sudo)
            privileged = self.privilege_checker.check_privileges()
            self.privilege_checker.print_warnings()

            audit_exit_code = self.run_audit(privileged=privileged)

            if audit_exit_code != 0:
                return audit_exit_code

            if self.privilege_checker.has_warnings:
                return 2  # Warnings present

            return 0

        except ConfigurationError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        except ValueError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        except KeyboardInterrupt:
            print("\nAudit interrupted by user", file=sys.stderr)
            return 1
        except Exception as e:
            print(f"Unexpected error: {e}", file=sys.stderr)
            if self.args and self.args.verbose:
                traceback.print_exc()
            return 1


def main(argv: Optional[list[str]] = None) -> int:
    """Entry point for the audit tool CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code (0=success, 1=error, 2=warnings)
    """
    cli = CLI()
    return cli.main(argv)


if __name__ == "__main__":
    sys.exit(main())
