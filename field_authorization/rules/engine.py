"""
Authorization engine for the field authorization layer.
"""

import functools
import time
from typing import Any, Callable, Optional

from shared.config import AuthorizationSettings, get_settings
from shared.errors import MalformedWhitelistError
from shared.logging import get_logger, request_context
from shared.metrics import MetricsCollector, get_metrics_collector
from .filtering import filter_result
from .matcher import (
    ResolverCall, AsyncResolverCall, get_current_user, match_rule, amatch_rule
)
from .models import Rule, Resolution, ResolutionCode
from .registry import RuleRegistry


class AuthorizationEngine:
    """Applies a rule registry to resolver calls."""

    def __init__(self, registry: RuleRegistry,
                 settings: Optional[AuthorizationSettings] = None,
                 metrics: Optional[MetricsCollector] = None):
        self.registry = registry
        self.settings = settings or get_settings()
        self.logger = get_logger("authorization.engine")

        if metrics is None and self.settings.enable_metrics:
            metrics = get_metrics_collector("authorization")
        self.metrics = metrics

    def _resolver_call(self, operation: str, resolver: Callable, cls=ResolverCall) -> ResolverCall:
        on_invoke = None
        if self.metrics is not None:
            on_invoke = functools.partial(self.metrics.record_resolver_invocation, operation)
        return cls(resolver, memoize=self.settings.memoize_resolver, on_invoke=on_invoke)

    def with_auth(self, operation: str, attrs: Any, context: Any,
                  resolver: Callable[[Any, Any], Any]) -> Resolution:
        """Authorize a resolver call and filter its result.

        Returns the (possibly filtered) resolution on success, the
        resolver's own failure unchanged, or an UNAUTHORIZED failure when
        no rule for ``operation`` matches the caller.
        """
        start_time = time.time()
        rules = self.registry.rules_for(operation)
        identity = get_current_user(context)
        resolve = self._resolver_call(operation, resolver)

        with request_context(user_id=getattr(identity, "id", None)):
            rule = match_rule(rules, identity, attrs, context, resolve)
            if rule is None:
                return self._deny(operation, identity, rules, resolve, start_time)

            outcome = self._apply(rule, resolve(attrs, context))
            self._record(operation, rule, outcome, start_time)
            return outcome

    async def awith_auth(self, operation: str, attrs: Any, context: Any,
                         resolver: Callable[[Any, Any], Any]) -> Resolution:
        """Same as with_auth for resolvers and predicates that may be awaitable."""
        start_time = time.time()
        rules = self.registry.rules_for(operation)
        identity = get_current_user(context)
        resolve = self._resolver_call(operation, resolver, cls=AsyncResolverCall)

        with request_context(user_id=getattr(identity, "id", None)):
            rule = await amatch_rule(rules, identity, attrs, context, resolve)
            if rule is None:
                return self._deny(operation, identity, rules, resolve, start_time)

            outcome = self._apply(rule, await resolve(attrs, context))
            self._record(operation, rule, outcome, start_time)
            return outcome

    def _apply(self, rule: Rule, resolution: Resolution) -> Resolution:
        """Run a matched rule's whitelist over the resolution."""
        if rule.passthrough or not resolution.ok:
            return resolution

        try:
            return filter_result(rule.whitelist, resolution, self.settings.implicit_fields)
        except MalformedWhitelistError as e:
            self.logger.error(
                "Whitelist does not fit resolved value",
                rule=rule.name,
                field=e.path,
                error=e.message
            )
            return Resolution.failure(
                e.message,
                code=ResolutionCode.MALFORMED_WHITELIST,
                details=dict(e.details, rule=rule.name)
            )

    def _deny(self, operation: str, identity: Any, rules, resolve: ResolverCall,
              start_time: float) -> Resolution:
        self.logger.info(
            "Authorization denied",
            operation=operation,
            identity=type(identity).__name__ if identity is not None else None,
            rules_checked=len(rules),
            resolver_invoked=resolve.invoked
        )
        if self.metrics is not None:
            self.metrics.record_decision(operation, "denied", time.time() - start_time)

        return Resolution.failure(
            self.settings.unauthorized_message,
            code=ResolutionCode.UNAUTHORIZED,
            details={"operation": operation}
        )

    def _record(self, operation: str, rule: Rule, outcome: Resolution, start_time: float):
        if outcome.ok:
            decision = "allowed" if rule.passthrough else "filtered"
        else:
            decision = outcome.code.value.lower()

        self.logger.debug(
            "Rule matched",
            operation=operation,
            rule=rule.name,
            pattern=rule.pattern.describe(),
            decision=decision
        )

        if self.metrics is not None:
            self.metrics.record_decision(operation, decision, time.time() - start_time)
            if not outcome.ok:
                self.metrics.record_error(outcome.code.value.lower())
