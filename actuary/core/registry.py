"""
Actuary - Check Registry

This module provides discovery of check classes and the immutable,
per-category registry the runner resolves profile entries against.
"""

import importlib
import inspect
import pkgutil
from abc import ABC
from types import MappingProxyType
from typing import Iterable, Iterator, Optional, Type, Union

from .check import BaseCheck, Category
from .errors import ConfigurationError, UnknownCheckError

CheckSource = Union[BaseCheck, Type[BaseCheck]]


def _instantiate(check: CheckSource) -> BaseCheck:
    """Accept either a check class or an already built check instance."""
    if inspect.isclass(check):
        if not issubclass(check, BaseCheck):
            raise TypeError(
                f"Check class must inherit from BaseCheck, got {check.__name__}"
            )
        return check()
    if not isinstance(check, BaseCheck):
        raise TypeError(f"Expected a BaseCheck, got {type(check).__name__}")
    return check


class CheckRegistry:
    """Registry of the checks of one category.

    The registry is filled once, at construction, and exposes lookups
    only. Registering two checks under the same id is a definition
    defect and fails at construction rather than during a run.

    Example:
        registry = CheckRegistry([KernelVersionCheck, SeparatePartitionCheck])
        check = registry.get_check("kernel_version")
    """

    def __init__(self, checks: Iterable[CheckSource] = ()) -> None:
        """Build the registry.

        Args:
            checks: Check classes or instances to register

        Raises:
            TypeError: If an entry is not a BaseCheck
            ValueError: If two checks share the same id
        """
        entries: dict[str, BaseCheck] = {}
        for source in checks:
            check = _instantiate(source)
            if check.id in entries:
                raise ValueError(
                    f"Check with id '{check.id}' is already registered "
                    f"({type(entries[check.id]).__name__})"
                )
            entries[check.id] = check
        self._checks = MappingProxyType(entries)

    def get_check(self, check_id: str) -> Optional[BaseCheck]:
        """Get a registered check by id.

        Returns:
            The check if found, None otherwise
        """
        return self._checks.get(check_id)

    def check_ids(self) -> list[str]:
        """Get a sorted list of all registered check ids."""
        return sorted(self._checks)

    def __len__(self) -> int:
        return len(self._checks)

    def __contains__(self, check_id: object) -> bool:
        return check_id in self._checks

    def __iter__(self) -> Iterator[BaseCheck]:
        for check_id in self.check_ids():
            yield self._checks[check_id]


class AuditRegistry:
    """All check groups, keyed by category.

    Every category has a group, possibly empty, so resolving a category
    never fails once the name has been turned into a Category.
    """

    def __init__(self, groups: Optional[dict[Category, CheckRegistry]] = None) -> None:
        groups = dict(groups or {})
        for category in Category:
            groups.setdefault(category, CheckRegistry())
        self._groups = MappingProxyType(groups)

    @classmethod
    def from_checks(cls, checks: Iterable[CheckSource]) -> "AuditRegistry":
        """Partition checks into groups by their declared category.

        Raises:
            ValueError: If two checks of the same category share an id
        """
        partitioned: dict[Category, list[CheckSource]] = {}
        for check in checks:
            partitioned.setdefault(check.category, []).append(check)
        return cls({
            category: CheckRegistry(members)
            for category, members in partitioned.items()
        })

    def group(self, category: Category) -> CheckRegistry:
        return self._groups[category]

    def lookup(self, category: Category, check_id: str) -> BaseCheck:
        """Resolve a check name within a category.

        Raises:
            UnknownCheckError: If the category group has no such check
        """
        check = self._groups[category].get_check(check_id)
        if check is None:
            raise UnknownCheckError(f"No check named {check_id}")
        return check

    def __len__(self) -> int:
        return sum(len(group) for group in self._groups.values())

    def __iter__(self) -> Iterator[tuple[Category, CheckRegistry]]:
        for category in Category:
            yield category, self._groups[category]


def is_concrete_check(obj: object) -> bool:
    """Tell registrable checks apart from shared intermediate bases."""
    return (
        inspect.isclass(obj)
        and issubclass(obj, BaseCheck)
        and obj is not BaseCheck
        and ABC not in obj.__bases__
        and not inspect.isabstract(obj)
    )


def discover_checks(
    package: str = "actuary.checks",
) -> tuple[list[Type[BaseCheck]], list[str]]:
    """Import every module of a checks package and collect its checks.

    A module that fails to import is recorded and skipped so that one
    broken module does not hide the others from the error report.

    Args:
        package: Dotted name of the package holding check modules

    Returns:
        Tuple of (check classes in discovery order, discovery errors)
    """
    discovered: list[Type[BaseCheck]] = []
    errors: list[str] = []

    root = importlib.import_module(package)
    for _, module_name, is_pkg in pkgutil.iter_modules(root.__path__):
        if module_name.startswith("_") or is_pkg:
            continue

        full_name = f"{package}.{module_name}"
        try:
            module = importlib.import_module(full_name)
        except Exception as e:
            errors.append(f"{full_name}: {type(e).__name__}: {e}")
            continue

        for _, obj in inspect.getmembers(module, is_concrete_check):
            # Only classes defined here, not ones imported from siblings
            if obj.__module__ == module.__name__:
                discovered.append(obj)

    return discovered, errors


def build_default_registry(package: str = "actuary.checks") -> AuditRegistry:
    """Build the process-wide registry from the bundled check modules.

    Raises:
        ConfigurationError: If a check module failed to import
        ValueError: If two checks of one category share an id
    """
    checks, errors = discover_checks(package)
    if errors:
        raise ConfigurationError(
            f"{len(errors)} check module(s) failed to import: " + "; ".join(errors)
        )
    return AuditRegistry.from_checks(checks)
