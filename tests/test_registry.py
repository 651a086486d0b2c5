"""
Actuary - Registry Tests

Tests for per-category check groups and discovery of the bundled checks.
"""

import sys
from pathlib import Path

import pytest

# Add project root to path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from actuary.core.check import BaseCheck, Category, CheckResult
from actuary.core.errors import UnknownCheckError
from actuary.core.profile import default_profile_path, load_profile
from actuary.core.registry import (
    AuditRegistry,
    CheckRegistry,
    build_default_registry,
    discover_checks,
)


class AlphaCheck(BaseCheck):
    id = "alpha"
    name = "Alpha"
    description = "First test check"

    def run(self, context) -> CheckResult:
        return self.passed()


class BetaCheck(BaseCheck):
    id = "beta"
    name = "Beta"
    description = "Second test check"

    def run(self, context) -> CheckResult:
        return self.passed()


class OtherAlphaCheck(BaseCheck):
    id = "alpha"
    name = "Other Alpha"
    description = "Same id, different category"
    category = Category.CONTAINER_RUNTIME

    def run(self, context) -> CheckResult:
        return self.passed()


class TestCheckRegistry:
    """Tests for a single category group."""

    def test_register_classes_and_instances(self) -> None:
        """Test that classes and instances are both accepted."""
        registry = CheckRegistry([AlphaCheck, BetaCheck()])
        assert len(registry) == 2
        assert "alpha" in registry
        assert isinstance(registry.get_check("beta"), BetaCheck)

    def test_duplicate_id_raises(self) -> None:
        """Test that two checks with one id fail at construction."""
        with pytest.raises(ValueError, match="already registered"):
            CheckRegistry([AlphaCheck, AlphaCheck])

    def test_get_missing_check(self) -> None:
        """Test that lookups of unknown ids return None."""
        assert CheckRegistry([AlphaCheck]).get_check("gamma") is None

    def test_rejects_non_checks(self) -> None:
        """Test that arbitrary objects cannot be registered."""
        with pytest.raises(TypeError):
            CheckRegistry([object()])  # type: ignore[list-item]

    def test_registry_is_read_only(self) -> None:
        """Test that a built registry cannot be modified."""
        registry = CheckRegistry([AlphaCheck])
        assert not hasattr(registry, "register")
        with pytest.raises(TypeError):
            registry._checks["beta"] = BetaCheck()  # type: ignore[index]

    def test_iteration_sorted_by_id(self) -> None:
        """Test that iteration is ordered by id."""
        registry = CheckRegistry([BetaCheck, AlphaCheck])
        assert [check.id for check in registry] == ["alpha", "beta"]
        assert registry.check_ids() == ["alpha", "beta"]


class TestAuditRegistry:
    """Tests for the category-keyed registry."""

    def test_every_category_has_a_group(self) -> None:
        """Test that unpopulated categories get an empty group."""
        registry = AuditRegistry()
        assert [category for category, _ in registry] == list(Category)
        assert len(registry) == 0

    def test_from_checks_partitions_by_category(self) -> None:
        """Test that checks land in their declared category group."""
        registry = AuditRegistry.from_checks([AlphaCheck, BetaCheck, OtherAlphaCheck])
        assert len(registry.group(Category.HOST_CONFIGURATION)) == 2
        assert len(registry.group(Category.CONTAINER_RUNTIME)) == 1

    def test_same_id_in_two_categories(self) -> None:
        """Test that ids only need to be unique within a category."""
        registry = AuditRegistry.from_checks([AlphaCheck, OtherAlphaCheck])
        assert registry.lookup(Category.HOST_CONFIGURATION, "alpha").name == "Alpha"
        assert registry.lookup(Category.CONTAINER_RUNTIME, "alpha").name == "Other Alpha"

    def test_lookup_unknown_check(self) -> None:
        """Test that an unknown id raises UnknownCheckError."""
        registry = AuditRegistry.from_checks([AlphaCheck])
        with pytest.raises(UnknownCheckError, match="No check named beta"):
            registry.lookup(Category.HOST_CONFIGURATION, "beta")

    def test_lookup_does_not_cross_categories(self) -> None:
        """Test that a check is only found in its own category."""
        registry = AuditRegistry.from_checks([BetaCheck])
        with pytest.raises(UnknownCheckError):
            registry.lookup(Category.CONTAINER_RUNTIME, "beta")


class TestDiscovery:
    """Tests for discovery of the bundled checks."""

    def test_discovery_has_no_errors(self) -> None:
        """Test that every bundled check module imports cleanly."""
        checks, errors = discover_checks()
        assert errors == []
        assert len(checks) > 0

    def test_intermediate_bases_not_registered(self) -> None:
        """Test that shared helper bases are never discovered as checks."""
        checks, _ = discover_checks()
        names = {cls.__name__ for cls in checks}
        assert "FileOwnerCheck" not in names
        assert "ContainerPropertyCheck" not in names
        assert "RegistryCertsCheck" not in names
        assert all(cls.id for cls in checks)

    def test_category_sizes(self) -> None:
        """Test that every benchmark section is populated."""
        registry = build_default_registry()
        sizes = {category: len(group) for category, group in registry}
        assert sizes == {
            Category.HOST_CONFIGURATION: 16,
            Category.DAEMON_CONFIGURATION: 10,
            Category.DAEMON_CONFIGURATION_FILES: 26,
            Category.CONTAINER_IMAGES: 1,
            Category.CONTAINER_RUNTIME: 19,
            Category.SECURITY_OPERATIONS: 2,
        }

    def test_default_profile_resolves(self) -> None:
        """Test that every entry of the bundled profile is registered."""
        registry = build_default_registry()
        profile = load_profile(default_profile_path())
        for audit_category in profile.audit:
            category = Category.from_name(audit_category.name)
            for check_id in audit_category.checklist:
                assert registry.lookup(category, check_id).id == check_id
        assert len(profile) == len(registry)
