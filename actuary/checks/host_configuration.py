"""
Audit Checks: Host Configuration (CIS Docker 1.x)

Checks on the host the Docker engine runs on: kernel, partitioning,
exposed services, engine version, docker group membership and audit
rules for Docker files.
"""

import re

from actuary.core.check import BaseCheck, Category, CheckResult, Severity
from actuary.core.context import AuditContext
from actuary.core.errors import RuntimeQueryError

from ._base import AuditRuleCheck

DOCKER_DATA_DIR = "/var/lib/docker"


def parse_version(text: str) -> tuple[int, ...]:
    """Leading numeric components of a version string ("3.10.0-123" -> (3, 10, 0))."""
    match = re.match(r"\s*v?(\d+(?:\.\d+)*)", text)
    if not match:
        return ()
    return tuple(int(part) for part in match.group(1).split("."))


class SeparatePartitionCheck(BaseCheck):
    """Check /var/lib/docker is its own mount point."""

    id = "separate_partition"
    name = "1.1 Create a separate partition for containers"
    description = "Verifies that /var/lib/docker is mounted on a separate partition"
    category = Category.HOST_CONFIGURATION

    def run(self, context: AuditContext) -> CheckResult:
        if DOCKER_DATA_DIR in context.host.mount_points():
            return self.passed()
        return self.failed(f"{DOCKER_DATA_DIR} is not on a separate partition")


class KernelVersionCheck(BaseCheck):
    """Check the kernel is recent enough for Docker's isolation features."""

    id = "kernel_version"
    name = "1.2 Use the updated Linux Kernel"
    description = "Verifies that the host kernel is version 3.10 or later"
    category = Category.HOST_CONFIGURATION
    severity = Severity.HIGH

    MINIMUM = (3, 10)

    def run(self, context: AuditContext) -> CheckResult:
        release = context.host.kernel_release()
        version = parse_version(release)
        if not version:
            return self.skipped(f"Unable to parse kernel version '{release}'")
        if version >= self.MINIMUM:
            return self.passed()
        return self.failed(
            f"Kernel {release} is older than {'.'.join(map(str, self.MINIMUM))}"
        )


class RunningServicesCheck(BaseCheck):
    id = "running_services"
    name = "1.5 Remove all non-essential services from the host"
    description = "Lists TCP ports the host listens on for manual review"
    category = Category.HOST_CONFIGURATION
    severity = Severity.LOW

    def run(self, context: AuditContext) -> CheckResult:
        ports = context.host.listening_ports()
        if not ports:
            return self.info("No listening TCP ports found")
        return self.info(
            "Host listening on TCP ports: " + ", ".join(str(port) for port in ports)
        )


class ServerVersionCheck(BaseCheck):
    """Report the Docker engine version.

    The benchmark asks to keep Docker up to date. Which release counts as
    current changes over time, so the version is reported rather than judged.
    """

    id = "server_version"
    name = "1.6 Keep Docker up to date"
    description = "Reports the running Docker engine version"
    category = Category.HOST_CONFIGURATION

    def run(self, context: AuditContext) -> CheckResult:
        try:
            version = context.runtime.version()
        except RuntimeQueryError as e:
            return self.skipped(f"Unable to query Docker version: {e}")

        server = version.get("Server") or {}
        server_version = server.get("Version")
        if not server_version:
            return self.skipped("Docker server version not reported")
        return self.info(f"Docker server is currently running version {server_version}")


class TrustedUsersCheck(BaseCheck):
    id = "trusted_users"
    name = "1.7 Only allow trusted users to control Docker daemon"
    description = "Lists members of the docker group for manual review"
    category = Category.HOST_CONFIGURATION
    severity = Severity.HIGH

    GROUP = "docker"

    def run(self, context: AuditContext) -> CheckResult:
        members = context.host.group_members(self.GROUP)
        if members is None:
            return self.skipped(f"Group '{self.GROUP}' does not exist")
        if not members:
            return self.info(f"Group '{self.GROUP}' has no members")
        return self.info(
            f"The following users control the Docker daemon: {', '.join(members)}"
        )


class AuditDockerDaemonCheck(AuditRuleCheck):
    id = "audit_daemon"
    name = "1.8 Audit docker daemon"
    description = "Verifies that the Docker daemon binary is audited"
    PATHS = ("/usr/bin/dockerd", "/usr/bin/docker")


class AuditLibDockerCheck(AuditRuleCheck):
    id = "audit_lib"
    name = "1.9 Audit Docker files and directories - /var/lib/docker"
    description = "Verifies that /var/lib/docker is audited"
    PATHS = ("/var/lib/docker",)


class AuditEtcDockerCheck(AuditRuleCheck):
    id = "audit_etc"
    name = "1.10 Audit Docker files and directories - /etc/docker"
    description = "Verifies that /etc/docker is audited"
    PATHS = ("/etc/docker",)


class AuditDockerRegistryCheck(AuditRuleCheck):
    id = "audit_registry"
    name = "1.11 Audit Docker files and directories - docker-registry.service"
    description = "Verifies that the docker-registry service unit is audited"
    PATHS = (
        "/usr/lib/systemd/system/docker-registry.service",
        "/lib/systemd/system/docker-registry.service",
    )


class AuditDockerServiceCheck(AuditRuleCheck):
    id = "audit_service"
    name = "1.12 Audit Docker files and directories - docker.service"
    description = "Verifies that the docker service unit is audited"
    PATHS = (
        "/usr/lib/systemd/system/docker.service",
        "/lib/systemd/system/docker.service",
    )


class AuditDockerSocketCheck(AuditRuleCheck):
    id = "audit_socket"
    name = "1.13 Audit Docker files and directories - docker.socket"
    description = "Verifies that the docker socket unit is audited"
    PATHS = (
        "/usr/lib/systemd/system/docker.socket",
        "/lib/systemd/system/docker.socket",
    )


class AuditDockerSysconfigCheck(AuditRuleCheck):
    id = "audit_sysconfig"
    name = "1.14 Audit Docker files and directories - /etc/sysconfig/docker"
    description = "Verifies that /etc/sysconfig/docker is audited"
    PATHS = ("/etc/sysconfig/docker",)


class AuditDockerNetworkCheck(AuditRuleCheck):
    id = "audit_network"
    name = "1.15 Audit Docker files and directories - /etc/sysconfig/docker-network"
    description = "Verifies that /etc/sysconfig/docker-network is audited"
    PATHS = ("/etc/sysconfig/docker-network",)


class AuditDockerSysRegistryCheck(AuditRuleCheck):
    id = "audit_sysregistry"
    name = "1.16 Audit Docker files and directories - /etc/sysconfig/docker-registry"
    description = "Verifies that /etc/sysconfig/docker-registry is audited"
    PATHS = ("/etc/sysconfig/docker-registry",)


class AuditDockerStorageCheck(AuditRuleCheck):
    id = "audit_storage"
    name = "1.17 Audit Docker files and directories - /etc/sysconfig/docker-storage"
    description = "Verifies that /etc/sysconfig/docker-storage is audited"
    PATHS = ("/etc/sysconfig/docker-storage",)


class AuditDockerDefaultCheck(AuditRuleCheck):
    id = "audit_default"
    name = "1.18 Audit Docker files and directories - /etc/default/docker"
    description = "Verifies that /etc/default/docker is audited"
    PATHS = ("/etc/default/docker",)
