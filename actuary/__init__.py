"""
Actuary

A read-only CIS benchmark audit tool for Docker hosts.
Runs a profile of named checks against the local Docker engine and
host, and reports PASS/WARN/SKIP/INFO results.
"""

__version__ = "0.2.0"
__author__ = "Actuary Project"

from .core.check import BaseCheck, Category, CheckResult, Severity, Status
from .core.context import AuditContext, DockerRuntime, HostInspector
from .core.profile import Profile, AuditCategory, load_profile, fetch_profile
from .core.registry import AuditRegistry, CheckRegistry, build_default_registry
from .core.runner import AuditRunner

__all__ = [
    "BaseCheck",
    "Category",
    "CheckResult",
    "Severity",
    "Status",
    "AuditContext",
    "DockerRuntime",
    "HostInspector",
    "Profile",
    "AuditCategory",
    "load_profile",
    "fetch_profile",
    "AuditRegistry",
    "CheckRegistry",
    "build_default_registry",
    "AuditRunner",
]
