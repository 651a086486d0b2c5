"""
Execution context shared by all checks.

This module wraps the two things a check may consult: the Docker engine,
reached through the docker CLI, and the host operating system. Both are
read-only from a check's point of view.
"""

from __future__ import annotations

from dataclasses import dataclass
import grp
import json
import os
from pathlib import Path
import platform
import subprocess
from typing import Any, Optional

from .errors import RuntimeQueryError, RuntimeUnavailableError


DEFAULT_DOCKER_BINARY = "docker"
DEFAULT_QUERY_TIMEOUT = 10

# TCP socket state code for LISTEN in /proc/net/tcp
_TCP_LISTEN = "0A"


class DockerRuntime:
    """Read-only handle to the Docker engine.

    Every query shells out to the docker CLI with a timeout so a stalled
    daemon cannot hang the audit forever. Failures raise RuntimeQueryError.
    """

    def __init__(
        self,
        binary: str = DEFAULT_DOCKER_BINARY,
        timeout: int = DEFAULT_QUERY_TIMEOUT,
    ) -> None:
        self.binary = binary
        self.timeout = timeout

    def _query(self, *args: str) -> str:
        """Run a docker subcommand and return its stdout.

        Raises:
            RuntimeQueryError: If the command cannot run or exits non-zero
        """
        command = [self.binary, *args]
        result = _run_command(command, timeout=self.timeout)
        if result is None:
            raise RuntimeQueryError(f"Unable to run: {' '.join(command)}")
        if result.returncode != 0:
            detail = result.stderr.strip() or result.stdout.strip() or "no output"
            raise RuntimeQueryError(f"{' '.join(command)} failed: {detail}")
        return result.stdout

    def _query_json(self, *args: str) -> Any:
        output = self._query(*args)
        try:
            return json.loads(output)
        except json.JSONDecodeError as e:
            raise RuntimeQueryError(f"Invalid JSON from docker {args[0]}: {e}") from e

    def ping(self) -> None:
        """Verify the engine answers.

        Raises:
            RuntimeUnavailableError: If the daemon is unreachable
        """
        try:
            self._query("version", "--format", "{{.Server.Version}}")
        except RuntimeQueryError as e:
            raise RuntimeUnavailableError(f"Unable to connect to Docker daemon: {e}") from e

    def version(self) -> dict[str, Any]:
        """Get `docker version` data (Client and Server sections)."""
        return self._query_json("version", "--format", "{{json .}}")

    def info(self) -> dict[str, Any]:
        """Get `docker info` data."""
        return self._query_json("info", "--format", "{{json .}}")

    def container_ids(self, all: bool = False) -> list[str]:
        """List container ids (running only unless all=True)."""
        args = ["ps", "--quiet", "--no-trunc"]
        if all:
            args.append("--all")
        output = self._query(*args)
        return [line.strip() for line in output.splitlines() if line.strip()]

    def inspect_container(self, container_id: str) -> dict[str, Any]:
        """Get the inspect document of one container."""
        data = self._query_json("container", "inspect", container_id)
        if isinstance(data, list):
            if not data:
                raise RuntimeQueryError(f"No inspect data for container {container_id}")
            data = data[0]
        return data

    def top(self, container_id: str) -> list[str]:
        """List the command lines of processes running in a container."""
        output = self._query("top", container_id, "-o", "args")
        lines = [line.strip() for line in output.splitlines() if line.strip()]
        # First line is the column header
        return lines[1:]


class HostInspector:
    """Read-only access to host OS state.

    Paths are rooted at `root` and `proc_root` so tests can point the
    inspector at a fixture tree.
    """

    def __init__(self, root: str = "/", proc_root: str = "/proc") -> None:
        self.root = Path(root)
        self.proc_root = Path(proc_root)

    def path(self, path: str) -> Path:
        """Resolve an absolute host path under the inspector root."""
        return self.root / path.lstrip("/")

    def kernel_release(self) -> str:
        return platform.release()

    def mount_points(self) -> list[str]:
        """List mount points from /proc/mounts."""
        mounts: list[str] = []
        try:
            with open(self.proc_root / "mounts", "r", encoding="utf-8") as f:
                for line in f:
                    fields = line.split()
                    if len(fields) >= 2:
                        mounts.append(fields[1])
        except OSError:
            return []
        return mounts

    def process_cmdline(self, executable: str) -> list[str]:
        """Get the command line of the first process named `executable`.

        Returns:
            Argument list, or an empty list if no such process runs
        """
        try:
            entries = sorted(
                (p for p in self.proc_root.iterdir() if p.name.isdigit()),
                key=lambda p: int(p.name),
            )
        except OSError:
            return []

        for entry in entries:
            try:
                comm = (entry / "comm").read_text(encoding="utf-8").strip()
                if comm != executable:
                    continue
                raw = (entry / "cmdline").read_bytes()
            except OSError:
                # Process exited while scanning
                continue
            return [arg.decode("utf-8", "replace") for arg in raw.split(b"\0") if arg]
        return []

    def audit_rules(self) -> Optional[str]:
        """Get loaded audit rules from `auditctl -l`, None if unavailable."""
        result = _run_command(["auditctl", "-l"], timeout=5)
        if result is None or result.returncode != 0:
            return None
        return result.stdout

    def group_members(self, group: str) -> Optional[list[str]]:
        """Get the members of a group, None if the group does not exist."""
        try:
            return list(grp.getgrnam(group).gr_mem)
        except KeyError:
            return None

    def stat(self, path: str) -> Optional[os.stat_result]:
        """Stat a host path, None if it does not exist."""
        try:
            return self.path(path).stat()
        except (FileNotFoundError, NotADirectoryError):
            return None

    def listening_ports(self) -> list[int]:
        """List TCP ports in LISTEN state, from /proc/net/tcp and tcp6."""
        ports: set[int] = set()
        for name in ("tcp", "tcp6"):
            try:
                with open(self.proc_root / "net" / name, "r", encoding="utf-8") as f:
                    next(f, None)  # header
                    for line in f:
                        fields = line.split()
                        if len(fields) < 4 or fields[3] != _TCP_LISTEN:
                            continue
                        ports.add(int(fields[1].rsplit(":", 1)[1], 16))
            except OSError:
                continue
        return sorted(ports)


@dataclass(frozen=True)
class AuditContext:
    """Everything a check may read while it runs."""

    runtime: DockerRuntime
    host: HostInspector
    privileged: bool = False


def get_cmd_option(args: list[str], option: str) -> tuple[bool, str]:
    """Find an option in a daemon command line.

    The first argument containing `option` wins. Its value is the text
    between the first and second '=', minus one trailing space, so
    "--default-ulimit=nofile=1024" yields "nofile".

    Args:
        args: Command line arguments
        option: Option text to search for (e.g., "--icc")

    Returns:
        Tuple of (option present, value or empty string)
    """
    for arg in args:
        if option in arg:
            parts = arg.split("=")
            value = parts[1].removesuffix(" ") if len(parts) > 1 else ""
            return True, value
    return False, ""


def _run_command(command: list[str], timeout: int) -> Optional[subprocess.CompletedProcess[str]]:
    """Run command safely and return CompletedProcess or None on failure."""
    if not command:
        return None

    try:
        return subprocess.run(
            command,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except (subprocess.TimeoutExpired, FileNotFoundError, PermissionError, OSError):
        return None
