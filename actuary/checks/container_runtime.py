"""
Audit Checks: Container Runtime (CIS Docker 5.x)

Checks on how the running containers were started, read from their
inspect documents. With no running containers every check is skipped.
"""

from typing import Any, Optional

from actuary.core.check import CheckResult, Severity
from actuary.core.context import AuditContext
from actuary.core.errors import RuntimeQueryError

from ._base import ContainerCheck, ContainerPropertyCheck, container_name

SENSITIVE_HOST_DIRS = (
    "/",
    "/boot",
    "/dev",
    "/etc",
    "/lib",
    "/proc",
    "/sys",
    "/usr",
)


def _host_config(container: dict[str, Any]) -> dict[str, Any]:
    return container.get("HostConfig") or {}


def _port_bindings(container: dict[str, Any]) -> list[tuple[str, str, str]]:
    """(container port, host ip, host port) for every published port."""
    ports = (container.get("NetworkSettings") or {}).get("Ports") or {}
    bindings = []
    for container_port, published in sorted(ports.items()):
        for binding in published or []:
            bindings.append(
                (container_port, binding.get("HostIp", ""), str(binding.get("HostPort", "")))
            )
    return bindings


class AppArmorCheck(ContainerPropertyCheck):
    id = "apparmor_profile"
    name = "5.1 Verify AppArmor Profile, if applicable"
    description = "Verifies that running containers have an AppArmor profile"
    FAILURE = "No AppArmor profile found for containers"

    def violation(self, container: dict[str, Any]) -> Optional[str]:
        profile = container.get("AppArmorProfile") or ""
        if profile in ("", "unconfined"):
            return ""
        return None


class SELinuxCheck(ContainerPropertyCheck):
    id = "selinux_options"
    name = "5.2 Verify SELinux security options, if applicable"
    description = "Verifies that running containers set SELinux security options"
    FAILURE = "No SELinux options found for containers"

    def violation(self, container: dict[str, Any]) -> Optional[str]:
        options = _host_config(container).get("SecurityOpt") or []
        if any(str(option).startswith(("label:", "label=")) for option in options):
            return None
        return ""


class SingleMainProcessCheck(ContainerCheck):
    id = "single_process"
    name = "5.3 Verify that containers are running only a single main process"
    description = "Verifies that each running container runs exactly one process"
    severity = Severity.LOW

    def evaluate(self, containers: list[dict[str, Any]], context: AuditContext) -> CheckResult:
        offenders = []
        for container in containers:
            try:
                processes = context.runtime.top(container.get("Id", ""))
            except RuntimeQueryError as e:
                return self.skipped(f"Unable to list container processes: {e}")
            if len(processes) > 1:
                offenders.append(f"{container_name(container)} ({len(processes)} processes)")
        if offenders:
            return self.failed(f"Containers running more than one process: {', '.join(offenders)}")
        return self.passed()


class KernelCapabilitiesCheck(ContainerPropertyCheck):
    id = "kernel_capabilities"
    name = "5.4 Restrict Linux Kernel Capabilities within containers"
    description = "Verifies that running containers add no kernel capabilities"
    severity = Severity.HIGH
    FAILURE = "Containers running with added capabilities"

    def violation(self, container: dict[str, Any]) -> Optional[str]:
        added = _host_config(container).get("CapAdd") or []
        if added:
            return ", ".join(str(cap) for cap in added)
        return None


class PrivilegedContainersCheck(ContainerPropertyCheck):
    id = "privileged_containers"
    name = "5.5 Do not use privileged containers"
    description = "Verifies that no running container is privileged"
    severity = Severity.CRITICAL
    FAILURE = "Containers running in privileged mode"

    def violation(self, container: dict[str, Any]) -> Optional[str]:
        return "" if _host_config(container).get("Privileged") else None


class SensitiveDirsCheck(ContainerPropertyCheck):
    id = "sensitive_dirs"
    name = "5.6 Do not mount sensitive host system directories on containers"
    description = "Verifies that no running container mounts sensitive host directories"
    severity = Severity.HIGH
    FAILURE = "Sensitive directories mounted in containers"

    def violation(self, container: dict[str, Any]) -> Optional[str]:
        mounted = []
        for mount in container.get("Mounts") or []:
            source = str(mount.get("Source") or "")
            if source and (source.rstrip("/") or "/") in SENSITIVE_HOST_DIRS:
                mounted.append(source)
        return ", ".join(mounted) if mounted else None


class SSHRunningCheck(ContainerCheck):
    id = "ssh_running"
    name = "5.7 Do not run ssh within containers"
    description = "Verifies that no running container runs an SSH daemon"

    def evaluate(self, containers: list[dict[str, Any]], context: AuditContext) -> CheckResult:
        offenders = []
        for container in containers:
            try:
                processes = context.runtime.top(container.get("Id", ""))
            except RuntimeQueryError as e:
                return self.skipped(f"Unable to list container processes: {e}")
            if any("sshd" in process for process in processes):
                offenders.append(container_name(container))
        if offenders:
            return self.failed(f"Containers running SSH service: {', '.join(offenders)}")
        return self.passed()


class PrivilegedPortsCheck(ContainerPropertyCheck):
    id = "privileged_ports"
    name = "5.8 Do not map privileged ports within containers"
    description = "Verifies that no container publishes a host port below 1024"
    FAILURE = "Containers mapping privileged ports"

    def violation(self, container: dict[str, Any]) -> Optional[str]:
        privileged = sorted({
            host_port for _, _, host_port in _port_bindings(container)
            if host_port.isdigit() and int(host_port) < 1024
        }, key=int)
        return ", ".join(privileged) if privileged else None


class NeededPortsCheck(ContainerCheck):
    """List published ports so an operator can confirm each is needed."""

    id = "needed_ports"
    name = "5.9 Open only needed ports on container"
    description = "Lists the ports each running container publishes"
    severity = Severity.LOW

    def evaluate(self, containers: list[dict[str, Any]], context: AuditContext) -> CheckResult:
        lines = []
        for container in containers:
            bindings = _port_bindings(container)
            if bindings:
                published = ", ".join(
                    f"{host_ip or '*'}:{host_port}->{container_port}"
                    for container_port, host_ip, host_port in bindings
                )
                lines.append(f"{container_name(container)}: {published}")
        if not lines:
            return self.info("No containers publish ports")
        return self.info("Containers with published ports:\n" + "\n".join(lines))


class HostNetworkModeCheck(ContainerPropertyCheck):
    id = "host_net_mode"
    name = "5.10 Do not use host network mode on container"
    description = "Verifies that no running container uses the host network namespace"
    severity = Severity.HIGH
    FAILURE = "Containers running in host network mode"

    def violation(self, container: dict[str, Any]) -> Optional[str]:
        return "" if _host_config(container).get("NetworkMode") == "host" else None


class MemoryLimitsCheck(ContainerPropertyCheck):
    id = "memory_usage"
    name = "5.11 Limit memory usage for container"
    description = "Verifies that running containers have a memory limit"
    FAILURE = "Containers with no memory limits"

    def violation(self, container: dict[str, Any]) -> Optional[str]:
        return "" if not _host_config(container).get("Memory") else None


class CPUSharesCheck(ContainerPropertyCheck):
    id = "cpu_shares"
    name = "5.12 Set container CPU priority appropriately"
    description = "Verifies that running containers set CPU shares"
    severity = Severity.LOW
    FAILURE = "Containers with CPU sharing disabled"

    DEFAULT_SHARES = (0, 1024)

    def violation(self, container: dict[str, Any]) -> Optional[str]:
        shares = _host_config(container).get("CpuShares") or 0
        return "" if shares in self.DEFAULT_SHARES else None


class ReadonlyRootfsCheck(ContainerPropertyCheck):
    id = "readonly_rootfs"
    name = "5.13 Mount container's root filesystem as read only"
    description = "Verifies that running containers mount their root filesystem read-only"
    FAILURE = "Containers' root FS is not mounted as read-only"

    def violation(self, container: dict[str, Any]) -> Optional[str]:
        return None if _host_config(container).get("ReadonlyRootfs") else ""


class BindHostInterfaceCheck(ContainerPropertyCheck):
    id = "bind_specific_int"
    name = "5.14 Bind incoming container traffic to a specific host interface"
    description = "Verifies that published ports are bound to a specific host address"
    FAILURE = "Containers traffic not bound to specific host interface"

    ANY_ADDRESS = ("", "0.0.0.0", "::")

    def violation(self, container: dict[str, Any]) -> Optional[str]:
        unbound = [
            host_port for _, host_ip, host_port in _port_bindings(container)
            if host_ip in self.ANY_ADDRESS
        ]
        return ", ".join(unbound) if unbound else None


class RestartPolicyCheck(ContainerPropertyCheck):
    id = "restart_policy"
    name = "5.15 Do not set the 'on-failure' container restart policy to always"
    description = "Verifies that containers restart on failure at most 5 times"
    severity = Severity.LOW
    FAILURE = "Containers with an unbounded restart policy"

    MAX_RETRIES = 5

    def violation(self, container: dict[str, Any]) -> Optional[str]:
        policy = _host_config(container).get("RestartPolicy") or {}
        name = policy.get("Name") or "no"
        retries = int(policy.get("MaximumRetryCount") or 0)
        if name in ("always", "unless-stopped"):
            return name
        if name == "on-failure" and not 0 < retries <= self.MAX_RETRIES:
            return f"on-failure:{retries}"
        return None


class HostNamespaceCheck(ContainerPropertyCheck):
    id = "host_namespace"
    name = "5.16 Do not share the host's process namespace"
    description = "Verifies that no running container shares the host PID namespace"
    severity = Severity.HIGH
    FAILURE = "Containers sharing host's process namespace"

    def violation(self, container: dict[str, Any]) -> Optional[str]:
        return "" if _host_config(container).get("PidMode") == "host" else None


class IPCNamespaceCheck(ContainerPropertyCheck):
    id = "ipc_namespace"
    name = "5.17 Do not share the host's IPC namespace"
    description = "Verifies that no running container shares the host IPC namespace"
    severity = Severity.HIGH
    FAILURE = "Containers sharing host's IPC namespace"

    def violation(self, container: dict[str, Any]) -> Optional[str]:
        return "" if _host_config(container).get("IpcMode") == "host" else None


class HostDevicesCheck(ContainerPropertyCheck):
    id = "host_devices"
    name = "5.18 Do not directly expose host devices to containers"
    description = "Verifies that no running container has host devices mapped in"
    FAILURE = "Containers with host devices exposed"

    def violation(self, container: dict[str, Any]) -> Optional[str]:
        devices = _host_config(container).get("Devices") or []
        if not devices:
            return None
        return ", ".join(str(device.get("PathOnHost", "?")) for device in devices)


class DefaultUlimitOverrideCheck(ContainerPropertyCheck):
    id = "override_ulimit"
    name = "5.19 Override default ulimit at runtime only if needed"
    description = "Lists containers that override the daemon default ulimits"
    severity = Severity.LOW
    FAILURE = "Containers overriding default ulimit"

    def violation(self, container: dict[str, Any]) -> Optional[str]:
        ulimits = _host_config(container).get("Ulimits") or []
        if not ulimits:
            return None
        return ", ".join(str(limit.get("Name", "?")) for limit in ulimits)
