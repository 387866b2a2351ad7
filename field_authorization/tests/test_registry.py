"""
Unit tests for the rule registry.
"""

import pytest
from dataclasses import dataclass

from field_authorization.rules.models import ALWAYS, TypeMatch, PredicateMatch
from field_authorization.rules.registry import RuleRegistry, RuleRegistryBuilder
from shared.errors import ValidationError


@dataclass
class Admin:
    id: int = 1


@dataclass
class Member:
    id: int = 1


def owns_resource(resource, context):
    return True


class TestRuleRegistryBuilder:
    """Test cases for RuleRegistryBuilder."""

    @pytest.fixture
    def builder(self):
        """Builder with rules for two operations."""
        return (
            RuleRegistryBuilder()
            .authorize("user", {}, ["name"])
            .authorize("user", Member, ["name", ("posts", ["title"])])
            .authorize("post", None)
            .authorize("user", owns_resource)
            .authorize("user", Admin)
        )

    def test_rules_are_checked_newest_first(self, builder):
        """Rules for an operation come back in reverse declaration order."""
        registry = builder.build()

        rules = registry.rules_for("user")

        assert [r.position for r in rules] == [4, 3, 1, 0]
        assert rules[0].pattern == TypeMatch(Admin)
        assert rules[1].pattern == PredicateMatch(owns_resource)
        assert rules[2].pattern == TypeMatch(Member)
        assert rules[3].pattern == ALWAYS

    def test_rules_for_unknown_operation(self, builder):
        registry = builder.build()

        assert registry.rules_for("comment") == ()
        assert "comment" not in registry
        assert "post" in registry

    def test_whitelist_defaults_to_passthrough(self, builder):
        registry = builder.build()

        assert registry.rules_for("post")[0].passthrough
        assert not registry.rules_for("user")[3].passthrough

    def test_registry_is_a_snapshot(self, builder):
        """Rules declared after build do not leak into the registry."""
        registry = builder.build()
        builder.authorize("comment", ALWAYS)

        assert "comment" not in registry
        assert len(registry) == 5

    def test_invalid_operation(self):
        with pytest.raises(ValidationError):
            RuleRegistryBuilder().authorize("", ALWAYS)

        with pytest.raises(ValidationError):
            RuleRegistryBuilder().authorize(None, ALWAYS)

    def test_invalid_whitelist(self):
        with pytest.raises(ValidationError):
            RuleRegistryBuilder().authorize("user", ALWAYS, "name")


class TestRuleRegistry:
    """Test cases for RuleRegistry."""

    def test_empty_registry(self):
        registry = RuleRegistry()

        assert len(registry) == 0
        assert registry.rules_for("user") == ()
        assert registry.operations() == []

    def test_iteration_order(self):
        registry = (
            RuleRegistryBuilder()
            .authorize("user", ALWAYS)
            .authorize("post", ALWAYS)
            .build()
        )

        assert [r.operation for r in registry] == ["post", "user"]
        assert registry.rules == tuple(registry)

    def test_get_registry_stats(self):
        registry = (
            RuleRegistryBuilder()
            .authorize("user", {}, ["name"])
            .authorize("user", Member, ["name"])
            .authorize("user", owns_resource)
            .authorize("user", Admin)
            .authorize("post", ALWAYS)
            .build()
        )

        stats = registry.get_registry_stats()

        assert stats["total_rules"] == 5
        assert stats["operations"] == ["post", "user"]
        assert stats["always_rules"] == 2
        assert stats["type_rules"] == 2
        assert stats["predicate_rules"] == 1
        assert stats["passthrough_rules"] == 3
