"""
Actuary - Shared Test Fixtures

Fake runtime and host doubles so checks and the runner can be exercised
without a Docker daemon or a real /proc.
"""

import os
import sys
from pathlib import Path
from typing import Any, Optional

import pytest

# Add project root to path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from actuary.core.context import AuditContext
from actuary.core.errors import RuntimeQueryError


class FakeRuntime:
    """Stand-in for DockerRuntime serving canned engine data."""

    def __init__(
        self,
        containers: Optional[dict[str, dict[str, Any]]] = None,
        stopped: int = 0,
        info: Optional[dict[str, Any]] = None,
        version: Optional[dict[str, Any]] = None,
        processes: Optional[dict[str, list[str]]] = None,
        error: Optional[str] = None,
    ) -> None:
        self.containers = containers or {}
        self.stopped = stopped
        self._info = info or {}
        self._version = version or {}
        self.processes = processes or {}
        self.error = error

    def _check(self) -> None:
        if self.error:
            raise RuntimeQueryError(self.error)

    def ping(self) -> None:
        pass

    def version(self) -> dict[str, Any]:
        self._check()
        return self._version

    def info(self) -> dict[str, Any]:
        self._check()
        return self._info

    def container_ids(self, all: bool = False) -> list[str]:
        self._check()
        ids = list(self.containers)
        if all:
            ids += [f"stopped{index}" for index in range(self.stopped)]
        return ids

    def inspect_container(self, container_id: str) -> dict[str, Any]:
        self._check()
        return self.containers[container_id]

    def top(self, container_id: str) -> list[str]:
        self._check()
        return self.processes.get(container_id, [])


class FakeHost:
    """Stand-in for HostInspector; files live under a temporary root."""

    def __init__(
        self,
        root: Path,
        mounts: tuple[str, ...] = (),
        kernel: str = "5.15.0-91-generic",
        processes: Optional[dict[str, list[str]]] = None,
        rules: Optional[str] = None,
        groups: Optional[dict[str, list[str]]] = None,
        ports: tuple[int, ...] = (),
    ) -> None:
        self.root = root
        self.mounts = list(mounts)
        self.kernel = kernel
        self.processes = processes or {}
        self.rules = rules
        self.groups = groups or {}
        self.ports = list(ports)

    def path(self, path: str) -> Path:
        return self.root / path.lstrip("/")

    def kernel_release(self) -> str:
        return self.kernel

    def mount_points(self) -> list[str]:
        return self.mounts

    def process_cmdline(self, executable: str) -> list[str]:
        return self.processes.get(executable, [])

    def audit_rules(self) -> Optional[str]:
        return self.rules

    def group_members(self, group: str) -> Optional[list[str]]:
        return self.groups.get(group)

    def stat(self, path: str) -> Optional[os.stat_result]:
        try:
            return self.path(path).stat()
        except FileNotFoundError:
            return None

    def listening_ports(self) -> list[int]:
        return self.ports

    def create(self, path: str, mode: int = 0o644, content: str = "") -> Path:
        """Create a file under the fake root with the given mode."""
        target = self.path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content)
        target.chmod(mode)
        return target


def container(name: str, **fields: Any) -> dict[str, Any]:
    """Build a minimal inspect document."""
    document: dict[str, Any] = {
        "Id": f"{name}0123456789abcdef",
        "Name": f"/{name}",
        "Config": {"User": "app"},
        "HostConfig": {},
        "Mounts": [],
        "NetworkSettings": {"Ports": {}},
    }
    document.update(fields)
    return document


@pytest.fixture
def host(tmp_path: Path) -> FakeHost:
    return FakeHost(tmp_path)


@pytest.fixture
def runtime() -> FakeRuntime:
    return FakeRuntime()


@pytest.fixture
def make_context(host: FakeHost, runtime: FakeRuntime):
    """Factory building an AuditContext around the fake host and runtime."""

    def _make(privileged: bool = False, **overrides: Any) -> AuditContext:
        return AuditContext(
            runtime=overrides.get("runtime", runtime),
            host=overrides.get("host", host),
            privileged=privileged,
        )

    return _make
