"""
Unit tests for rule matching.
"""

import pytest
from dataclasses import dataclass
from types import SimpleNamespace
from unittest.mock import MagicMock, AsyncMock

from field_authorization.rules.matcher import (
    ResolverCall, AsyncResolverCall, get_current_user, pattern_matches,
    apattern_matches, match_rule, amatch_rule
)
from field_authorization.rules.models import ALWAYS, TypeMatch, PredicateMatch, Resolution
from field_authorization.rules.registry import RuleRegistryBuilder


@dataclass
class Admin:
    id: int = 1


@dataclass
class Member:
    id: int = 1


class SuperAdmin(Admin):
    pass


def owns_resource(resource, context):
    user = get_current_user(context)
    return user is not None and resource["id"] == user.id


class TestGetCurrentUser:
    """Test cases for identity lookup."""

    def test_mapping_context(self):
        admin = Admin()
        assert get_current_user({"current_user": admin}) is admin

    def test_object_context(self):
        admin = Admin()
        assert get_current_user(SimpleNamespace(current_user=admin)) is admin

    def test_missing_identity(self):
        assert get_current_user(None) is None
        assert get_current_user({}) is None
        assert get_current_user(SimpleNamespace()) is None


class TestResolverCall:
    """Test cases for ResolverCall."""

    def test_memoized(self):
        resolver = MagicMock(return_value={"id": 1})
        call = ResolverCall(resolver)

        first = call({"id": 1}, {})
        second = call({"id": 1}, {})

        assert first is second
        assert first == Resolution.success({"id": 1})
        assert resolver.call_count == 1
        assert call.calls == 1

    def test_not_memoized(self):
        resolver = MagicMock(return_value=Resolution.failure("nope"))
        call = ResolverCall(resolver, memoize=False)

        call({}, {})
        call({}, {})

        assert resolver.call_count == 2
        assert call.calls == 2

    def test_on_invoke_hook(self):
        hook = MagicMock()
        call = ResolverCall(lambda attrs, ctx: None, on_invoke=hook)

        assert not call.invoked
        call({}, {})
        call({}, {})

        assert call.invoked
        hook.assert_called_once_with()

    @pytest.mark.asyncio
    async def test_async_memoized(self):
        resolver = AsyncMock(return_value=Resolution.success({"id": 1}))
        call = AsyncResolverCall(resolver)

        first = await call({}, {})
        second = await call({}, {})

        assert first is second
        assert resolver.await_count == 1

    @pytest.mark.asyncio
    async def test_async_accepts_sync_resolver(self):
        call = AsyncResolverCall(lambda attrs, ctx: {"id": attrs["id"]})

        result = await call({"id": 7}, {})

        assert result.value == {"id": 7}


class TestPatternMatches:
    """Test cases for single pattern evaluation."""

    def test_always(self):
        resolver = MagicMock()

        assert pattern_matches(ALWAYS, None, {}, {}, resolver)
        resolver.assert_not_called()

    def test_type_match(self):
        resolver = MagicMock()

        assert pattern_matches(TypeMatch(Admin), Admin(), {}, {}, resolver)
        assert not pattern_matches(TypeMatch(Admin), Member(), {}, {}, resolver)
        resolver.assert_not_called()

    def test_type_match_is_exact(self):
        """Subclass instances do not match their parent's kind."""
        assert not pattern_matches(TypeMatch(Admin), SuperAdmin(), {}, {}, MagicMock())

    @pytest.mark.parametrize("kind", [Admin, Member, type(None), dict, object])
    def test_type_match_never_matches_absent_identity(self, kind):
        assert not pattern_matches(TypeMatch(kind), None, {}, {}, MagicMock())

    def test_predicate_runs_resolver(self):
        context = {"current_user": Member(id=2)}
        resolver = MagicMock(return_value=Resolution.success({"id": 2}))

        assert pattern_matches(PredicateMatch(owns_resource), context["current_user"], {"id": 2}, context, resolver)
        resolver.assert_called_once_with({"id": 2}, context)

    def test_predicate_rejects(self):
        context = {"current_user": Member(id=3)}
        resolver = MagicMock(return_value={"id": 2})

        assert not pattern_matches(PredicateMatch(owns_resource), context["current_user"], {"id": 2}, context, resolver)
        resolver.assert_called_once()

    def test_predicate_resolver_failure_does_not_match(self):
        predicate = MagicMock(return_value=True)
        resolver = MagicMock(return_value=Resolution.failure("User id 9 not found"))

        assert not pattern_matches(PredicateMatch(predicate), None, {"id": 9}, {}, resolver)
        predicate.assert_not_called()

    def test_predicate_exceptions_propagate(self):
        def broken(resource, context):
            raise KeyError("id")

        with pytest.raises(KeyError):
            pattern_matches(PredicateMatch(broken), None, {}, {}, MagicMock(return_value={}))

    @pytest.mark.asyncio
    async def test_async_predicate(self):
        async def owns(resource, context):
            return resource["id"] == 2

        resolver = AsyncMock(return_value={"id": 2})

        assert await apattern_matches(PredicateMatch(owns), None, {}, {}, resolver)
        assert await apattern_matches(TypeMatch(Admin), Admin(), {}, {}, resolver)
        assert not await apattern_matches(TypeMatch(Admin), None, {}, {}, resolver)


class TestMatchRule:
    """Test cases for match_rule."""

    @pytest.fixture
    def rules(self):
        """User rules: wildcard, member, ownership, admin (declaration order)."""
        registry = (
            RuleRegistryBuilder()
            .authorize("user", ALWAYS, ["name"])
            .authorize("user", Member, ["name", "email"])
            .authorize("user", owns_resource)
            .authorize("user", Admin)
            .build()
        )
        return registry.rules_for("user")

    def test_empty_rules_never_match(self):
        resolver = MagicMock()

        assert match_rule((), Admin(), {}, {}, resolver) is None
        resolver.assert_not_called()

    def test_latest_declaration_wins(self, rules):
        context = {"current_user": Admin()}
        resolver = MagicMock()

        rule = match_rule(rules, Admin(), {}, context, resolver)

        assert rule.position == 3
        resolver.assert_not_called()

    def test_falls_through_predicate(self, rules):
        """A rejecting predicate runs the resolver, then the scan continues."""
        context = {"current_user": Member(id=5)}
        resolver = ResolverCall(MagicMock(return_value={"id": 2}))

        rule = match_rule(rules, context["current_user"], {"id": 2}, context, resolver)

        assert rule.position == 1
        assert resolver.calls == 1

    def test_predicate_match(self, rules):
        context = {"current_user": Member(id=2)}
        resolver = MagicMock(return_value={"id": 2})

        rule = match_rule(rules, context["current_user"], {"id": 2}, context, resolver)

        assert rule.position == 2

    def test_wildcard_catches_anonymous(self, rules):
        resolver = MagicMock(return_value={"id": 2})

        rule = match_rule(rules, None, {"id": 2}, {"current_user": None}, resolver)

        assert rule.position == 0

    @pytest.mark.asyncio
    async def test_amatch_rule(self, rules):
        context = {"current_user": Member(id=2)}
        resolver = AsyncResolverCall(AsyncMock(return_value={"id": 2}))

        rule = await amatch_rule(rules, context["current_user"], {"id": 2}, context, resolver)

        assert rule.position == 2
        assert await amatch_rule((), None, {}, {}, resolver) is None
