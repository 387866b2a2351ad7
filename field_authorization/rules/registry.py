"""
Rule registry for the field authorization layer.

Rules are declared once at startup through ``RuleRegistryBuilder`` and
frozen into a ``RuleRegistry``. Rules for an operation are checked in
reverse order to how they were declared; the first one that matches is
used.
"""

from typing import Dict, Any, Iterable, Iterator, List, Optional, Tuple
from types import MappingProxyType

from shared.logging import get_logger
from shared.errors import ValidationError
from .models import Rule, Always, TypeMatch, PredicateMatch, WhitelistSpec, coerce_pattern


class RuleRegistry:
    """Immutable, operation-indexed collection of rules."""

    def __init__(self, rules: Iterable[Rule] = ()):
        declared = sorted(rules, key=lambda r: r.position)

        # Newest first: a forward scan is the evaluation order
        self._rules: Tuple[Rule, ...] = tuple(reversed(declared))

        index: Dict[str, List[Rule]] = {}
        for rule in self._rules:
            index.setdefault(rule.operation, []).append(rule)
        self._index = MappingProxyType({op: tuple(r) for op, r in index.items()})

    @property
    def rules(self) -> Tuple[Rule, ...]:
        """All rules in evaluation order."""
        return self._rules

    def rules_for(self, operation: str) -> Tuple[Rule, ...]:
        """Rules for one operation in evaluation order."""
        return self._index.get(operation, ())

    def operations(self) -> List[str]:
        return sorted(self._index)

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self) -> Iterator[Rule]:
        return iter(self._rules)

    def __contains__(self, operation: object) -> bool:
        return operation in self._index

    def get_registry_stats(self) -> Dict[str, Any]:
        """Get registry statistics."""
        return {
            "total_rules": len(self._rules),
            "operations": self.operations(),
            "always_rules": len([r for r in self._rules if isinstance(r.pattern, Always)]),
            "type_rules": len([r for r in self._rules if isinstance(r.pattern, TypeMatch)]),
            "predicate_rules": len([r for r in self._rules if isinstance(r.pattern, PredicateMatch)]),
            "passthrough_rules": len([r for r in self._rules if r.passthrough]),
        }


class RuleRegistryBuilder:
    """Collects rule declarations in order and builds a RuleRegistry."""

    def __init__(self):
        self.logger = get_logger("authorization.registry")
        self._rules: List[Rule] = []

    def authorize(self, operation: str, pattern: Any = None, whitelist: Optional[Iterable[Any]] = None) -> "RuleRegistryBuilder":
        """Declare a rule.

        ``pattern`` accepts a pattern object or its shorthand (see
        ``coerce_pattern``); ``whitelist`` defaults to no filtering.
        """
        if not isinstance(operation, str) or not operation:
            raise ValidationError(
                "Operation name must be a non-empty string",
                details={"operation": repr(operation)}
            )

        rule = Rule(
            operation=operation,
            pattern=coerce_pattern(pattern),
            whitelist=WhitelistSpec.parse(whitelist),
            position=len(self._rules)
        )
        self._rules.append(rule)
        return self

    def build(self) -> RuleRegistry:
        registry = RuleRegistry(self._rules)
        self.logger.info(
            "Rule registry built",
            total_rules=len(registry),
            operations=registry.operations()
        )
        return registry
