"""
Actuary - Core Module

This module contains the audit engine: the check model, the registry,
profiles, the execution context and the runner.
"""

from .check import (
    BaseCheck,
    Category,
    CheckResult,
    Severity,
    Status,
)
from .context import (
    AuditContext,
    DockerRuntime,
    HostInspector,
    get_cmd_option,
)
from .errors import (
    AuditError,
    ConfigurationError,
    ProfileError,
    RuntimeQueryError,
    RuntimeUnavailableError,
    UnknownCategoryError,
    UnknownCheckError,
)
from .profile import (
    AuditCategory,
    Profile,
    default_profile_path,
    fetch_profile,
    load_profile,
    parse_profile,
)
from .registry import (
    AuditRegistry,
    CheckRegistry,
    build_default_registry,
    discover_checks,
)
from .runner import AuditRunner

__all__ = [
    "BaseCheck",
    "Category",
    "CheckResult",
    "Severity",
    "Status",
    "AuditContext",
    "DockerRuntime",
    "HostInspector",
    "get_cmd_option",
    "AuditError",
    "ConfigurationError",
    "ProfileError",
    "RuntimeQueryError",
    "RuntimeUnavailableError",
    "UnknownCategoryError",
    "UnknownCheckError",
    "AuditCategory",
    "Profile",
    "default_profile_path",
    "fetch_profile",
    "load_profile",
    "parse_profile",
    "AuditRegistry",
    "CheckRegistry",
    "build_default_registry",
    "discover_checks",
    "AuditRunner",
]
