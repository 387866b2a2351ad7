"""
Field authorization layer.

Sits between an API resolver and its caller: per operation, declared rules
decide whether the caller may run the resolver and which fields of the
result are exposed to them.

Guidelines:
- Rules are declared once at startup and never mutated afterwards.
- Rules are checked newest declaration first; the first match wins.
- Evaluation is per request and holds no state between requests.
"""

from .rules.engine import AuthorizationEngine
from .rules.models import (
    Always, ALWAYS, TypeMatch, PredicateMatch, Rule, WhitelistSpec,
    Resolution, ResolutionCode, coerce_pattern
)
from .rules.registry import RuleRegistry, RuleRegistryBuilder
from .rules.filtering import filter_result, filter_struct
from .rules.matcher import match_rule
from .rules.declarations import load_registry, load_registry_file

__all__ = [
    "AuthorizationEngine",
    "Always",
    "ALWAYS",
    "TypeMatch",
    "PredicateMatch",
    "Rule",
    "WhitelistSpec",
    "Resolution",
    "ResolutionCode",
    "coerce_pattern",
    "RuleRegistry",
    "RuleRegistryBuilder",
    "filter_result",
    "filter_struct",
    "match_rule",
    "load_registry",
    "load_registry_file",
]
