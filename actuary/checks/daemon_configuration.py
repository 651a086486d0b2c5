"""
Audit Checks: Docker daemon configuration (CIS Docker 2.x)

Checks on the options the Docker daemon was started with, read from its
command line and from /etc/docker/daemon.json.
"""

from typing import Any

from actuary.core.check import BaseCheck, Category, CheckResult, Severity
from actuary.core.context import AuditContext, get_cmd_option
from actuary.core.errors import RuntimeQueryError

from ._base import DaemonOptionCheck


def _is_false(value: Any) -> bool:
    return str(value).strip().lower() == "false"


def _hosts(args: list[str], config: dict[str, Any]) -> list[str]:
    """Every address the daemon listens on (-H / --host / daemon.json hosts)."""
    hosts: list[str] = []
    for index, arg in enumerate(args):
        if arg in ("-H", "--host") and index + 1 < len(args):
            hosts.append(args[index + 1])
        elif arg.startswith("--host="):
            hosts.append(arg.split("=", 1)[1])
        elif arg.startswith("-H") and len(arg) > 2:
            hosts.append(arg[2:].lstrip("="))
    configured = config.get("hosts", [])
    if isinstance(configured, list):
        hosts.extend(str(host) for host in configured)
    return hosts


class LxcDriverCheck(DaemonOptionCheck):
    id = "lxc_driver"
    name = "2.1 Do not use lxc execution driver"
    description = "Verifies that the daemon does not use the lxc execution driver"

    def evaluate(self, args: list[str], config: dict[str, Any], context: AuditContext) -> CheckResult:
        _, value = self.option(args, config, "--exec-driver", "exec-driver")
        if "lxc" in str(value):
            return self.failed("Docker daemon is using the lxc execution driver")
        return self.passed()


class RestrictNetTrafficCheck(DaemonOptionCheck):
    id = "net_traffic"
    name = "2.2 Restrict network traffic between containers"
    description = "Verifies that inter-container communication is disabled (--icc=false)"
    severity = Severity.HIGH

    def evaluate(self, args: list[str], config: dict[str, Any], context: AuditContext) -> CheckResult:
        exists, value = self.option(args, config, "--icc", "icc")
        if exists and _is_false(value):
            return self.passed()
        return self.failed("Traffic is not restricted between containers on the default bridge")


class LoggingLevelCheck(DaemonOptionCheck):
    id = "logging_level"
    name = "2.3 Set the logging level"
    description = "Verifies that the daemon log level is info"

    def evaluate(self, args: list[str], config: dict[str, Any], context: AuditContext) -> CheckResult:
        exists, value = self.option(args, config, "--log-level", "log-level")
        # Daemon default is info
        if not exists or str(value).lower() == "info":
            return self.passed()
        return self.failed(f"Logging level is set to '{value}' instead of 'info'")


class AllowIptablesCheck(DaemonOptionCheck):
    id = "allow_iptables"
    name = "2.4 Allow Docker to make changes to iptables"
    description = "Verifies that the daemon manages iptables rules"

    def evaluate(self, args: list[str], config: dict[str, Any], context: AuditContext) -> CheckResult:
        exists, value = self.option(args, config, "--iptables", "iptables")
        if exists and _is_false(value):
            return self.failed("Docker is not allowed to make changes to iptables")
        return self.passed()


class InsecureRegistryCheck(DaemonOptionCheck):
    id = "insecure_registry"
    name = "2.5 Do not use insecure registries"
    description = "Verifies that no insecure registries are configured"
    severity = Severity.HIGH

    def evaluate(self, args: list[str], config: dict[str, Any], context: AuditContext) -> CheckResult:
        exists, value = self.option(args, config, "--insecure-registry", "insecure-registries")
        if exists and value:
            if isinstance(value, list):
                value = ", ".join(str(item) for item in value)
            return self.failed(f"Docker daemon uses insecure registries: {value}")
        return self.passed()


class LocalRegistryCheck(DaemonOptionCheck):
    id = "local_registry"
    name = "2.6 Setup a local registry mirror"
    description = "Verifies that a registry mirror is configured"
    severity = Severity.LOW

    def evaluate(self, args: list[str], config: dict[str, Any], context: AuditContext) -> CheckResult:
        exists, value = self.option(args, config, "--registry-mirror", "registry-mirrors")
        if exists and value:
            return self.passed()
        try:
            mirrors = (context.runtime.info().get("RegistryConfig") or {}).get("Mirrors") or []
        except RuntimeQueryError:
            mirrors = []
        if mirrors:
            return self.passed()
        return self.failed("No local registry mirror is configured")


class AufsDriverCheck(BaseCheck):
    id = "aufs_driver"
    name = "2.7 Do not use the aufs storage driver"
    description = "Verifies that the daemon storage driver is not aufs"
    category = Category.DAEMON_CONFIGURATION

    def run(self, context: AuditContext) -> CheckResult:
        try:
            driver = context.runtime.info().get("Driver", "")
        except RuntimeQueryError as e:
            return self.skipped(f"Unable to query Docker info: {e}")
        if driver == "aufs":
            return self.failed("Docker daemon uses the aufs storage driver")
        return self.passed()


class DefaultSocketCheck(DaemonOptionCheck):
    id = "default_socket"
    name = "2.8 Do not bind Docker to another IP/Port or a Unix socket"
    description = "Verifies that the daemon only listens on the default Unix socket"
    severity = Severity.HIGH

    DEFAULT_SOCKETS = ("unix:///var/run/docker.sock", "fd://")

    def evaluate(self, args: list[str], config: dict[str, Any], context: AuditContext) -> CheckResult:
        extra = [host for host in _hosts(args, config) if host not in self.DEFAULT_SOCKETS]
        if extra:
            return self.failed(f"Docker daemon listens on: {', '.join(extra)}")
        return self.passed()


class TLSAuthCheck(DaemonOptionCheck):
    id = "tls_auth"
    name = "2.9 Configure TLS authentication for Docker daemon"
    description = "Verifies that a daemon listening on TCP requires TLS client certificates"
    severity = Severity.CRITICAL

    REQUIRED = (
        ("--tlsverify", "tlsverify"),
        ("--tlscacert", "tlscacert"),
        ("--tlscert", "tlscert"),
        ("--tlskey", "tlskey"),
    )

    def evaluate(self, args: list[str], config: dict[str, Any], context: AuditContext) -> CheckResult:
        if not any(host.startswith("tcp://") for host in _hosts(args, config)):
            return self.skipped("Docker daemon is not listening on TCP")

        missing = [
            flag for flag, key in self.REQUIRED
            if not self.option(args, config, flag, key)[0]
        ]
        if missing:
            return self.failed(f"TLS authentication not configured, missing: {', '.join(missing)}")
        return self.passed()


class DefaultUlimitCheck(DaemonOptionCheck):
    id = "default_ulimit"
    name = "2.10 Set default ulimit as appropriate"
    description = "Verifies that the daemon sets a default ulimit"
    severity = Severity.LOW

    def evaluate(self, args: list[str], config: dict[str, Any], context: AuditContext) -> CheckResult:
        exists, _ = get_cmd_option(args, "--default-ulimit")
        if exists or config.get("default-ulimits"):
            return self.passed()
        return self.failed("Default ulimit is not set")
