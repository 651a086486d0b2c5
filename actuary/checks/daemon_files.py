"""
Audit Checks: Docker daemon configuration files (CIS Docker 3.x)

Ownership and permission checks on the files and directories that
configure the Docker daemon. A file that is not present on the host is
reported as skipped.
"""

import stat
from abc import ABC, abstractmethod
from typing import Any, Optional

from actuary.core.check import CheckResult, Severity
from actuary.core.context import AuditContext, get_cmd_option

from ._base import (
    FileCheck,
    FileOwnerCheck,
    FilePermissionCheck,
    daemon_args,
    daemon_config,
    group_name,
    user_name,
)

SYSTEMD_DIRS = ("/usr/lib/systemd/system", "/lib/systemd/system", "/etc/systemd/system")


def _unit_paths(unit: str) -> tuple[str, ...]:
    return tuple(f"{directory}/{unit}" for directory in SYSTEMD_DIRS)


DOCKER_SERVICE = _unit_paths("docker.service")
REGISTRY_SERVICE = _unit_paths("docker-registry.service")
DOCKER_SOCKET_UNIT = _unit_paths("docker.socket")
DOCKER_ENV = ("/etc/sysconfig/docker", "/etc/default/docker")
DOCKER_NETWORK_ENV = ("/etc/sysconfig/docker-network",)
DOCKER_REGISTRY_ENV = ("/etc/sysconfig/docker-registry",)
DOCKER_STORAGE_ENV = ("/etc/sysconfig/docker-storage",)
DOCKER_DIR = ("/etc/docker",)
REGISTRY_CERTS_DIR = "/etc/docker/certs.d"
DOCKER_SOCK = ("/var/run/docker.sock",)


class TLSFileMixin:
    """Audited path comes from a daemon TLS option."""

    FLAG = ""
    KEY = ""

    def target(self, context: AuditContext) -> Optional[str]:
        exists, value = get_cmd_option(daemon_args(context), self.FLAG)
        if not exists or not value:
            value = daemon_config(context).get(self.KEY, "")
        if not value or context.host.stat(str(value)) is None:
            return None
        return str(value)

    def run(self, context: AuditContext) -> CheckResult:
        if self.target(context) is None:
            return self.skipped(f"No {self.FLAG} file configured for the Docker daemon")
        return super().run(context)


class RegistryCertsCheck(FileCheck, ABC):
    """Every file under /etc/docker/certs.d must satisfy evaluate_file()."""

    def run(self, context: AuditContext) -> CheckResult:
        root = context.host.path(REGISTRY_CERTS_DIR)
        if not root.is_dir():
            return self.skipped(f"Directory not found: {REGISTRY_CERTS_DIR}")

        problems = []
        for path in sorted(p for p in root.rglob("*") if p.is_file()):
            problem = self.evaluate_file(path.stat())
            if problem:
                display = f"{REGISTRY_CERTS_DIR}/{path.relative_to(root)}"
                problems.append(f"{display} {problem}")

        if problems:
            return self.failed("; ".join(problems))
        return self.passed()

    def evaluate(self, path: str, st: Any, context: AuditContext) -> CheckResult:
        problem = self.evaluate_file(st)
        return self.failed(f"{path} {problem}") if problem else self.passed()

    @abstractmethod
    def evaluate_file(self, st: Any) -> Optional[str]:
        """Describe what is wrong with one file, None if nothing is."""


class DockerServiceOwnerCheck(FileOwnerCheck):
    id = "docker.service_owner"
    name = "3.1 Verify that docker.service file ownership is set to root:root"
    description = "Verifies docker.service is owned by root:root"
    PATHS = DOCKER_SERVICE


class DockerServicePermsCheck(FilePermissionCheck):
    id = "docker.service_perms"
    name = "3.2 Verify that docker.service file permissions are set to 644 or more restrictive"
    description = "Verifies docker.service permissions are 644 or stricter"
    PATHS = DOCKER_SERVICE


class RegistryServiceOwnerCheck(FileOwnerCheck):
    id = "docker-registry.service_owner"
    name = "3.3 Verify that docker-registry.service file ownership is set to root:root"
    description = "Verifies docker-registry.service is owned by root:root"
    PATHS = REGISTRY_SERVICE


class RegistryServicePermsCheck(FilePermissionCheck):
    id = "docker-registry.service_perms"
    name = "3.4 Verify that docker-registry.service file permissions are set to 644 or more restrictive"
    description = "Verifies docker-registry.service permissions are 644 or stricter"
    PATHS = REGISTRY_SERVICE


class SocketUnitOwnerCheck(FileOwnerCheck):
    id = "docker.socket_owner"
    name = "3.5 Verify that docker.socket file ownership is set to root:root"
    description = "Verifies docker.socket is owned by root:root"
    PATHS = DOCKER_SOCKET_UNIT


class SocketUnitPermsCheck(FilePermissionCheck):
    id = "docker.socket_perms"
    name = "3.6 Verify that docker.socket file permissions are set to 644 or more restrictive"
    description = "Verifies docker.socket permissions are 644 or stricter"
    PATHS = DOCKER_SOCKET_UNIT


class EnvOwnerCheck(FileOwnerCheck):
    id = "dockerenv_owner"
    name = "3.7 Verify that Docker environment file ownership is set to root:root"
    description = "Verifies the Docker environment file is owned by root:root"
    PATHS = DOCKER_ENV


class EnvPermsCheck(FilePermissionCheck):
    id = "dockerenv_perms"
    name = "3.8 Verify that Docker environment file permissions are set to 644 or more restrictive"
    description = "Verifies the Docker environment file permissions are 644 or stricter"
    PATHS = DOCKER_ENV


class NetEnvOwnerCheck(FileOwnerCheck):
    id = "docker-network_owner"
    name = "3.9 Verify that docker-network environment file ownership is set to root:root"
    description = "Verifies /etc/sysconfig/docker-network is owned by root:root"
    PATHS = DOCKER_NETWORK_ENV


class NetEnvPermsCheck(FilePermissionCheck):
    id = "docker-network_perms"
    name = "3.10 Verify that docker-network environment file permissions are set to 644 or more restrictive"
    description = "Verifies /etc/sysconfig/docker-network permissions are 644 or stricter"
    PATHS = DOCKER_NETWORK_ENV


class RegEnvOwnerCheck(FileOwnerCheck):
    id = "docker-registry_owner"
    name = "3.11 Verify that docker-registry environment file ownership is set to root:root"
    description = "Verifies /etc/sysconfig/docker-registry is owned by root:root"
    PATHS = DOCKER_REGISTRY_ENV


class RegEnvPermsCheck(FilePermissionCheck):
    id = "docker-registry_perms"
    name = "3.12 Verify that docker-registry environment file permissions are set to 644 or more restrictive"
    description = "Verifies /etc/sysconfig/docker-registry permissions are 644 or stricter"
    PATHS = DOCKER_REGISTRY_ENV


class StoreEnvOwnerCheck(FileOwnerCheck):
    id = "docker-storage_owner"
    name = "3.13 Verify that docker-storage environment file ownership is set to root:root"
    description = "Verifies /etc/sysconfig/docker-storage is owned by root:root"
    PATHS = DOCKER_STORAGE_ENV


class StoreEnvPermsCheck(FilePermissionCheck):
    id = "docker-storage_perms"
    name = "3.14 Verify that docker-storage environment file permissions are set to 644 or more restrictive"
    description = "Verifies /etc/sysconfig/docker-storage permissions are 644 or stricter"
    PATHS = DOCKER_STORAGE_ENV


class DockerDirOwnerCheck(FileOwnerCheck):
    id = "dockerdir_owner"
    name = "3.15 Verify that /etc/docker directory ownership is set to root:root"
    description = "Verifies /etc/docker is owned by root:root"
    PATHS = DOCKER_DIR


class DockerDirPermsCheck(FilePermissionCheck):
    id = "dockerdir_perms"
    name = "3.16 Verify that /etc/docker directory permissions are set to 755 or more restrictive"
    description = "Verifies /etc/docker permissions are 755 or stricter"
    PATHS = DOCKER_DIR
    MODE = 0o755


class RegistryCertOwnerCheck(RegistryCertsCheck):
    id = "registrycerts_owner"
    name = "3.17 Verify that registry certificate file ownership is set to root:root"
    description = "Verifies every file under /etc/docker/certs.d is owned by root:root"

    def evaluate_file(self, st: Any) -> Optional[str]:
        owner, group = user_name(st.st_uid), group_name(st.st_gid)
        if (owner, group) == ("root", "root"):
            return None
        return f"is owned by {owner}:{group}"


class RegistryCertPermsCheck(RegistryCertsCheck):
    id = "registrycerts_perms"
    name = "3.18 Verify that registry certificate file permissions are set to 444 or more restrictive"
    description = "Verifies every file under /etc/docker/certs.d has permissions 444 or stricter"
    severity = Severity.HIGH

    def evaluate_file(self, st: Any) -> Optional[str]:
        mode = stat.S_IMODE(st.st_mode)
        if mode & ~0o444 == 0:
            return None
        return f"has permissions {oct(mode)}"


class CACertOwnerCheck(TLSFileMixin, FileOwnerCheck):
    id = "cacert_owner"
    name = "3.19 Verify that TLS CA certificate file ownership is set to root:root"
    description = "Verifies the daemon TLS CA certificate is owned by root:root"
    FLAG, KEY = "--tlscacert", "tlscacert"


class CACertPermsCheck(TLSFileMixin, FilePermissionCheck):
    id = "cacert_perms"
    name = "3.20 Verify that TLS CA certificate file permissions are set to 444 or more restrictive"
    description = "Verifies the daemon TLS CA certificate permissions are 444 or stricter"
    FLAG, KEY = "--tlscacert", "tlscacert"
    MODE = 0o444


class ServerCertOwnerCheck(TLSFileMixin, FileOwnerCheck):
    id = "servercert_owner"
    name = "3.21 Verify that Docker server certificate file ownership is set to root:root"
    description = "Verifies the daemon TLS server certificate is owned by root:root"
    FLAG, KEY = "--tlscert", "tlscert"


class ServerCertPermsCheck(TLSFileMixin, FilePermissionCheck):
    id = "servercert_perms"
    name = "3.22 Verify that Docker server certificate file permissions are set to 444 or more restrictive"
    description = "Verifies the daemon TLS server certificate permissions are 444 or stricter"
    FLAG, KEY = "--tlscert", "tlscert"
    MODE = 0o444


class CertKeyOwnerCheck(TLSFileMixin, FileOwnerCheck):
    id = "certkey_owner"
    name = "3.23 Verify that Docker server certificate key file ownership is set to root:root"
    description = "Verifies the daemon TLS key is owned by root:root"
    FLAG, KEY = "--tlskey", "tlskey"


class CertKeyPermsCheck(TLSFileMixin, FilePermissionCheck):
    id = "certkey_perms"
    name = "3.24 Verify that Docker server certificate key file permissions are set to 400"
    description = "Verifies the daemon TLS key permissions are 400"
    severity = Severity.HIGH
    FLAG, KEY = "--tlskey", "tlskey"
    MODE = 0o400


class DockerSockOwnerCheck(FileOwnerCheck):
    id = "socket_owner"
    name = "3.25 Verify that Docker socket file ownership is set to root:docker"
    description = "Verifies /var/run/docker.sock is owned by root:docker"
    PATHS = DOCKER_SOCK
    GROUP = "docker"


class DockerSockPermsCheck(FilePermissionCheck):
    id = "socket_perms"
    name = "3.26 Verify that Docker socket file permissions are set to 660 or more restrictive"
    description = "Verifies /var/run/docker.sock permissions are 660 or stricter"
    severity = Severity.HIGH
    PATHS = DOCKER_SOCK
    MODE = 0o660
