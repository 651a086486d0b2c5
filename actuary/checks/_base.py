"""
Shared bases for the bundled checks.

Classes here list ABC among their direct bases, so the registry treats
them as helpers and never registers them.
"""

import grp
import json
import pwd
import stat
from abc import ABC, abstractmethod
from typing import Any, Optional

from actuary.core.check import BaseCheck, Category, CheckResult
from actuary.core.context import AuditContext, get_cmd_option
from actuary.core.errors import RuntimeQueryError

DAEMON_EXECUTABLES = ("dockerd", "docker")
DAEMON_CONFIG_PATH = "/etc/docker/daemon.json"


def daemon_args(context: AuditContext) -> list[str]:
    """Command line of the running Docker daemon, empty if not running."""
    for executable in DAEMON_EXECUTABLES:
        args = context.host.process_cmdline(executable)
        if args:
            return args
    return []


def daemon_config(context: AuditContext) -> dict[str, Any]:
    """Contents of daemon.json, empty if absent or unreadable."""
    path = context.host.path(DAEMON_CONFIG_PATH)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError):
        return {}
    return data if isinstance(data, dict) else {}


def container_name(container: dict[str, Any]) -> str:
    return str(container.get("Name") or container.get("Id", "?")[:12]).lstrip("/")


class AuditRuleCheck(BaseCheck, ABC):
    """Host audit rules must watch a Docker file or directory."""

    category = Category.HOST_CONFIGURATION
    requires_root = True
    PATHS: tuple[str, ...] = ()

    def run(self, context: AuditContext) -> CheckResult:
        existing = [path for path in self.PATHS if context.host.stat(path) is not None]
        if not existing:
            return self.skipped(f"{' or '.join(self.PATHS)} does not exist on this host")

        rules = context.host.audit_rules()
        if rules is None:
            return self.failed("Unable to read audit rules (is auditd installed?)")

        watched = {token for line in rules.splitlines() for token in line.split()}
        for path in existing:
            if path in watched:
                return self.passed()
        return self.failed(f"No audit rule found for {existing[0]}")


class DaemonOptionCheck(BaseCheck, ABC):
    """Checks against the running daemon's options.

    Options are read from the daemon command line first and from
    daemon.json second.
    """

    category = Category.DAEMON_CONFIGURATION

    def run(self, context: AuditContext) -> CheckResult:
        args = daemon_args(context)
        if not args:
            return self.skipped("Docker daemon process not found")
        return self.evaluate(args, daemon_config(context), context)

    @abstractmethod
    def evaluate(
        self,
        args: list[str],
        config: dict[str, Any],
        context: AuditContext,
    ) -> CheckResult:
        """Judge the daemon options."""

    @staticmethod
    def option(args: list[str], config: dict[str, Any], flag: str, key: str) -> tuple[bool, Any]:
        """Look an option up on the command line, then in daemon.json."""
        exists, value = get_cmd_option(args, flag)
        if exists:
            return True, value
        if key in config:
            return True, config[key]
        return False, ""


class FileCheck(BaseCheck, ABC):
    """Ownership or permission check on one Docker file.

    Subclasses set PATHS (first existing candidate is audited) or override
    target() when the path comes from the daemon configuration.
    """

    category = Category.DAEMON_CONFIGURATION_FILES
    PATHS: tuple[str, ...] = ()

    def target(self, context: AuditContext) -> Optional[str]:
        for path in self.PATHS:
            if context.host.stat(path) is not None:
                return path
        return None

    def run(self, context: AuditContext) -> CheckResult:
        path = self.target(context)
        if path is None:
            return self.skipped(f"File not found: {' or '.join(self.PATHS) or 'not configured'}")
        st = context.host.stat(path)
        if st is None:
            return self.skipped(f"File not found: {path}")
        return self.evaluate(path, st, context)

    @abstractmethod
    def evaluate(self, path: str, st: Any, context: AuditContext) -> CheckResult:
        """Judge the stat result of the audited path."""


class FileOwnerCheck(FileCheck, ABC):
    """File must be owned by OWNER:GROUP."""

    OWNER = "root"
    GROUP = "root"

    def evaluate(self, path: str, st: Any, context: AuditContext) -> CheckResult:
        owner = user_name(st.st_uid)
        group = group_name(st.st_gid)
        if owner == self.OWNER and group == self.GROUP:
            return self.passed()
        return self.failed(
            f"{path} is owned by {owner}:{group} (expected {self.OWNER}:{self.GROUP})"
        )


class FilePermissionCheck(FileCheck, ABC):
    """File mode must be MODE or more restrictive."""

    MODE = 0o644

    def evaluate(self, path: str, st: Any, context: AuditContext) -> CheckResult:
        mode = stat.S_IMODE(st.st_mode)
        if mode & ~self.MODE == 0:
            return self.passed()
        return self.failed(
            f"{path} has permissions {oct(mode)} "
            f"(expected {oct(self.MODE)} or more restrictive)"
        )


class ContainerCheck(BaseCheck, ABC):
    """Checks that inspect every running container."""

    category = Category.CONTAINER_RUNTIME

    def run(self, context: AuditContext) -> CheckResult:
        try:
            containers = [
                context.runtime.inspect_container(container_id)
                for container_id in context.runtime.container_ids()
            ]
        except RuntimeQueryError as e:
            return self.skipped(f"Unable to query containers: {e}")

        if not containers:
            return self.skipped("No running containers")
        return self.evaluate(containers, context)

    @abstractmethod
    def evaluate(self, containers: list[dict[str, Any]], context: AuditContext) -> CheckResult:
        """Judge the inspect documents of the running containers."""


class ContainerPropertyCheck(ContainerCheck, ABC):
    """Per-container predicate; any offending container fails the check."""

    FAILURE = ""

    @abstractmethod
    def violation(self, container: dict[str, Any]) -> Optional[str]:
        """Describe why the container violates the rule, None if it does not."""

    def evaluate(self, containers: list[dict[str, Any]], context: AuditContext) -> CheckResult:
        offenders = []
        for container in containers:
            detail = self.violation(container)
            if detail is not None:
                name = container_name(container)
                offenders.append(f"{name} ({detail})" if detail else name)
        if offenders:
            return self.failed(f"{self.FAILURE}: {', '.join(offenders)}")
        return self.passed()


def user_name(uid: int) -> str:
    try:
        return pwd.getpwuid(uid).pw_name
    except KeyError:
        return str(uid)


def group_name(gid: int) -> str:
    try:
        return grp.getgrgid(gid).gr_name
    except KeyError:
        return str(gid)
