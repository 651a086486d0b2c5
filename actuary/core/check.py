"""
Actuary - Base Check Class

This module provides the abstract base class for all audit checks,
the CheckResult dataclass for storing check results, and the closed
set of categories a check can belong to.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, TYPE_CHECKING

from .errors import UnknownCategoryError

if TYPE_CHECKING:
    from .context import AuditContext


class Status(Enum):
    """Outcome of a single check.

    Attributes:
        PASS: The audited condition is satisfied
        WARN: The audited condition is not satisfied (a finding)
        SKIP: The check does not apply or could not run here
        INFO: Informational output, neither pass nor fail
    """
    PASS = "PASS"
    WARN = "WARN"
    SKIP = "SKIP"
    INFO = "INFO"


class Severity(Enum):
    """Severity levels for audit checks.

    Attributes:
        CRITICAL: Critical security issue requiring immediate attention
        HIGH: High priority security issue
        MEDIUM: Medium priority security recommendation
        LOW: Low priority informational finding
    """
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Category(Enum):
    """The closed set of audit categories, valued by their profile names."""
    HOST_CONFIGURATION = "Host Configuration"
    DAEMON_CONFIGURATION = "Docker daemon configuration"
    DAEMON_CONFIGURATION_FILES = "Docker daemon configuration files"
    CONTAINER_IMAGES = "Container Images and Build File"
    CONTAINER_RUNTIME = "Container Runtime"
    SECURITY_OPERATIONS = "Docker Security Operations"

    @classmethod
    def from_name(cls, name: str) -> "Category":
        """Resolve a profile category name.

        Args:
            name: Category name exactly as written in the profile

        Returns:
            The matching Category

        Raises:
            UnknownCategoryError: If no category has this name
        """
        for category in cls:
            if category.value == name:
                return category
        raise UnknownCategoryError(f"No audit category named: {name}")


_ANSI_ESCAPE = re.compile(r"\x1b\[[0-?]*[ -/]*[@-~]")
_XML_ILLEGAL = re.compile("[\x00-\x08\x0b\x0c\x0e-\x1f\ud800-\udfff\ufffe\uffff]")


def printable(text: str) -> str:
    """Strip ANSI escape sequences and replace XML-illegal characters with U+FFFD."""
    return _XML_ILLEGAL.sub("\ufffd", _ANSI_ESCAPE.sub("", text))


@dataclass(frozen=True)
class CheckResult:
    """Result of a check execution.

    Attributes:
        name: Human-readable name of the check that produced the result
        status: One of PASS, WARN, SKIP or INFO
        output: Explanation of the result (required unless the check passed)
    """
    name: str
    status: Status
    output: str = ""

    def __post_init__(self) -> None:
        """Validate the result after initialization.

        Terminal colour codes and characters that XML 1.0 cannot carry are
        removed from name and output, so every result fits both report
        formats.
        """
        if isinstance(self.name, str):
            object.__setattr__(self, "name", printable(self.name))
        if isinstance(self.output, str):
            object.__setattr__(self, "output", printable(self.output))
        if not self.name:
            raise ValueError("name cannot be empty")
        if not isinstance(self.status, Status):
            raise ValueError(f"status must be a Status, got {self.status!r}")
        if self.status is not Status.PASS and not self.output:
            raise ValueError(f"{self.status.value} result requires an output message")

    def to_dict(self) -> dict[str, str]:
        """Convert the result to a dictionary using report field names.

        Returns:
            Dictionary with Name, Status and Output keys
        """
        return {
            "Name": self.name,
            "Status": self.status.value,
            "Output": self.output,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CheckResult":
        """Build a result from its report representation.

        Args:
            data: Dictionary with Name, Status and Output keys

        Returns:
            CheckResult instance

        Raises:
            ValueError: If the status is not one of the four known values
        """
        return cls(
            name=str(data.get("Name", "")),
            status=Status(data.get("Status")),
            output=str(data.get("Output") or ""),
        )

    @classmethod
    def passed_result(cls, name: str, message: str = "") -> "CheckResult":
        """Create a passed check result."""
        return cls(name=name, status=Status.PASS, output=message)

    @classmethod
    def failed_result(cls, name: str, message: str) -> "CheckResult":
        """Create a failed check result.

        A failed check is reported with the WARN status; it is a security
        finding, not an error of the audit itself.

        Args:
            name: Human-readable name of the check
            message: Explanation of the failure

        Returns:
            CheckResult with status WARN
        """
        return cls(name=name, status=Status.WARN, output=message)

    @classmethod
    def skipped_result(cls, name: str, message: str) -> "CheckResult":
        """Create a skipped check result.

        Args:
            name: Human-readable name of the check
            message: Explanation of why the check was skipped

        Returns:
            CheckResult with status SKIP
        """
        return cls(name=name, status=Status.SKIP, output=message)

    @classmethod
    def info_result(cls, name: str, message: str) -> "CheckResult":
        """Create an informational check result."""
        return cls(name=name, status=Status.INFO, output=message)


_CHECK_ID_PATTERN = re.compile(r"^[a-z0-9][a-z0-9_.\-]*$")


class BaseCheck(ABC):
    """Abstract base class for all audit checks.

    All checks must inherit from this class, declare their metadata and
    implement run(). A check receives the shared, read-only AuditContext
    and returns exactly one CheckResult.

    Example:
        class KernelVersionCheck(BaseCheck):
            id = "kernel_version"
            name = "1.2 Use the updated Linux Kernel"
            description = "Checks that the host kernel is 3.10 or newer"
            category = Category.HOST_CONFIGURATION

            def run(self, context: AuditContext) -> CheckResult:
                release = context.host.kernel_release()
                if parse_version(release) >= (3, 10):
                    return self.passed()
                return self.failed(f"Kernel {release} is older than 3.10")
    """

    # Check metadata - must be overridden by subclasses
    id: str = ""  # Registry key (e.g., "kernel_version")
    name: str = ""  # Human-readable name, used as the result name
    description: str = ""  # What this check does
    category: Category = Category.HOST_CONFIGURATION
    severity: Severity = Severity.MEDIUM
    requires_root: bool = False  # Whether root privileges are required

    def __init_subclass__(cls, **kwargs: Any) -> None:
        """Validate that concrete subclasses define required attributes."""
        super().__init_subclass__(**kwargs)

        # Intermediate bases share helpers and are never registered
        if ABC in cls.__bases__:
            return

        if not cls.id:
            raise ValueError(f"Check class {cls.__name__} must define 'id'")
        if not cls.name:
            raise ValueError(f"Check class {cls.__name__} must define 'name'")
        if not cls.description:
            raise ValueError(f"Check class {cls.__name__} must define 'description'")
        if not isinstance(cls.category, Category):
            raise ValueError(f"Check class {cls.__name__} must define a Category")

        if not _CHECK_ID_PATTERN.match(cls.id):
            raise ValueError(
                f"Check id '{cls.id}' must be lowercase alphanumeric "
                f"with underscores, dots or dashes only"
            )

    @abstractmethod
    def run(self, context: "AuditContext") -> CheckResult:
        """Execute the check.

        This method must be implemented by all check subclasses.
        It performs the actual audit check and returns a CheckResult.

        Args:
            context: Shared execution context (runtime handle, host access)

        Returns:
            CheckResult containing the outcome of the check
        """
        pass

    def passed(self, message: str = "") -> CheckResult:
        return CheckResult.passed_result(self.name, message)

    def failed(self, message: str) -> CheckResult:
        return CheckResult.failed_result(self.name, message)

    def skipped(self, message: str) -> CheckResult:
        return CheckResult.skipped_result(self.name, message)

    def info(self, message: str) -> CheckResult:
        return CheckResult.info_result(self.name, message)

    def should_skip(self, context: "AuditContext") -> bool:
        """Determine if this check should be skipped.

        Checks should be skipped if they require root privileges
        but the current execution context doesn't have them.
        """
        return self.requires_root and not context.privileged

    def execute(self, context: "AuditContext") -> CheckResult:
        """Execute the check with privilege checking.

        This is the entry point used by the runner. It handles privilege
        verification and delegates to run(). An unexpected exception is
        turned into a WARN result so one broken check cannot abort the run.

        Returns:
            CheckResult - either from the check execution or a skip result
        """
        if self.should_skip(context):
            return self.skipped(f"Check '{self.name}' skipped - requires root privileges")

        try:
            return self.run(context)
        except Exception as e:
            return self.failed(
                f"Check execution failed with error: {type(e).__name__}: {e}"
            )

    def get_metadata(self) -> dict[str, Any]:
        """Get check metadata as a dictionary.

        Returns:
            Dictionary containing check metadata
        """
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category.value,
            "severity": self.severity.value,
            "requires_root": self.requires_root,
        }
