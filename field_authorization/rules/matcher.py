"""
Rule matching for the field authorization layer.
"""

import inspect
from typing import Any, Callable, Mapping, Optional, Sequence

from shared.logging import get_logger
from shared.errors import ValidationError
from .models import Rule, Pattern, Always, TypeMatch, PredicateMatch, Resolution

logger = get_logger("authorization.matcher")


def get_current_user(context: Any) -> Any:
    """Read the caller identity out of a request context."""
    if context is None:
        return None
    if isinstance(context, Mapping):
        return context.get("current_user")
    return getattr(context, "current_user", None)


class ResolverCall:
    """Resolver wrapper used for one authorization request.

    With ``memoize`` set the wrapped resolver runs at most once and later
    calls return the first resolution.
    """

    def __init__(self, resolver: Callable[[Any, Any], Any], memoize: bool = True,
                 on_invoke: Optional[Callable[[], None]] = None):
        self.resolver = resolver
        self.memoize = memoize
        self.on_invoke = on_invoke
        self.calls = 0
        self._resolution: Optional[Resolution] = None

    @property
    def invoked(self) -> bool:
        return self.calls > 0

    def _record(self):
        self.calls += 1
        if self.on_invoke is not None:
            self.on_invoke()

    def __call__(self, attrs: Any, context: Any) -> Resolution:
        if self.memoize and self._resolution is not None:
            return self._resolution

        self._record()
        self._resolution = Resolution.coerce(self.resolver(attrs, context))
        return self._resolution


class AsyncResolverCall(ResolverCall):
    """ResolverCall for resolvers that may return awaitables."""

    async def __call__(self, attrs: Any, context: Any) -> Resolution:
        if self.memoize and self._resolution is not None:
            return self._resolution

        self._record()
        raw = self.resolver(attrs, context)
        if inspect.isawaitable(raw):
            raw = await raw
        self._resolution = Resolution.coerce(raw)
        return self._resolution


def identity_matches(pattern: Pattern, identity: Any) -> bool:
    """Check the identity-only patterns."""
    if isinstance(pattern, Always):
        return True

    if isinstance(pattern, TypeMatch):
        # No caller never matches a type rule, whatever the kind
        return identity is not None and type(identity) is pattern.kind

    raise ValidationError(
        "Unknown rule pattern",
        details={"pattern": repr(pattern)}
    )


def _resolved(pattern: PredicateMatch, resolution: Resolution) -> bool:
    if not resolution.ok:
        logger.debug(
            "Resolver failed during predicate match",
            pattern=pattern.describe(),
            error=str(resolution.error)
        )
        return False
    return True


def pattern_matches(pattern: Pattern, identity: Any, attrs: Any, context: Any,
                    resolver: Callable[[Any, Any], Any]) -> bool:
    """Evaluate a single pattern.

    Predicate patterns run the resolver and hand its resource to the
    predicate; a failed resolution never matches.
    """
    if isinstance(pattern, PredicateMatch):
        resolution = Resolution.coerce(resolver(attrs, context))
        if not _resolved(pattern, resolution):
            return False
        return bool(pattern.fn(resolution.value, context))

    return identity_matches(pattern, identity)


async def apattern_matches(pattern: Pattern, identity: Any, attrs: Any, context: Any,
                           resolver: Callable[[Any, Any], Any]) -> bool:
    """Async variant of pattern_matches; awaits resolvers and predicates."""
    if isinstance(pattern, PredicateMatch):
        raw = resolver(attrs, context)
        if inspect.isawaitable(raw):
            raw = await raw
        resolution = Resolution.coerce(raw)
        if not _resolved(pattern, resolution):
            return False

        outcome = pattern.fn(resolution.value, context)
        if inspect.isawaitable(outcome):
            outcome = await outcome
        return bool(outcome)

    return identity_matches(pattern, identity)


def match_rule(rules: Sequence[Rule], identity: Any, attrs: Any, context: Any,
               resolver: Callable[[Any, Any], Any]) -> Optional[Rule]:
    """Return the first rule whose pattern matches, or None.

    ``rules`` must already be limited to one operation and be in evaluation
    order (newest declaration first).
    """
    for rule in rules:
        if pattern_matches(rule.pattern, identity, attrs, context, resolver):
            return rule
    return None


async def amatch_rule(rules: Sequence[Rule], identity: Any, attrs: Any, context: Any,
                      resolver: Callable[[Any, Any], Any]) -> Optional[Rule]:
    """Async variant of match_rule."""
    for rule in rules:
        if await apattern_matches(rule.pattern, identity, attrs, context, resolver):
            return rule
    return None
