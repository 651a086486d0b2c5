"""
Actuary - Error Types

Configuration errors abort a run before any report is written. Runtime
query errors are local to one check and are reported as SKIP results.
"""


class AuditError(Exception):
    """Base class for all audit engine errors."""


class ConfigurationError(AuditError):
    """The audit definition or environment is broken; the run must stop."""


class ProfileError(ConfigurationError):
    """A profile could not be loaded, fetched or parsed."""


class UnknownCategoryError(ConfigurationError):
    """A profile names a category outside the closed category set."""


class UnknownCheckError(ConfigurationError):
    """A profile checklist names a check missing from its registry group."""


class RuntimeUnavailableError(ConfigurationError):
    """The container runtime API cannot be reached."""


class RuntimeQueryError(AuditError):
    """A single query against the container runtime failed."""
