"""
Declarative rule loading.

Rule sets can be kept in configuration (a dict or a YAML file) instead of
code. Identity kinds and predicates are referenced by name and resolved
against mappings supplied by the application::

    rules:
      - operation: user
        whitelist: [name]
      - operation: user
        match: type
        kind: Member
        whitelist:
          - name
          - posts: [title, body]
      - operation: user
        match: predicate
        predicate: owns_resource
"""

from typing import Dict, Any, Callable, List, Mapping, Optional, Union
from enum import Enum
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, model_validator

from shared.errors import ValidationError
from shared.logging import get_logger
from .models import ALWAYS, Pattern, PredicateMatch, TypeMatch
from .registry import RuleRegistry, RuleRegistryBuilder

logger = get_logger("authorization.declarations")


class MatchKind(str, Enum):
    """Declared pattern variants."""
    ALWAYS = "always"
    TYPE = "type"
    PREDICATE = "predicate"


class RuleDeclaration(BaseModel):
    """One declared rule."""
    operation: str = Field(..., min_length=1, description="Operation name")
    match: MatchKind = Field(MatchKind.ALWAYS, description="Pattern variant")
    kind: Optional[str] = Field(None, description="Identity kind name for type rules")
    predicate: Optional[str] = Field(None, description="Predicate name for predicate rules")
    whitelist: List[Union[str, Dict[str, Any]]] = Field(
        default_factory=list,
        description="Field whitelist; empty means no filtering"
    )

    @model_validator(mode="after")
    def check_pattern_reference(self) -> "RuleDeclaration":
        if self.match == MatchKind.TYPE and not self.kind:
            raise ValueError("type rules need a 'kind'")
        if self.match == MatchKind.PREDICATE and not self.predicate:
            raise ValueError("predicate rules need a 'predicate'")
        return self

    def to_pattern(self, kinds: Mapping[str, type],
                   predicates: Mapping[str, Callable[[Any, Any], Any]]) -> Pattern:
        if self.match == MatchKind.TYPE:
            if self.kind not in kinds:
                raise ValidationError(
                    "Unknown identity kind",
                    details={"operation": self.operation, "kind": self.kind}
                )
            return TypeMatch(kinds[self.kind])

        if self.match == MatchKind.PREDICATE:
            if self.predicate not in predicates:
                raise ValidationError(
                    "Unknown predicate",
                    details={"operation": self.operation, "predicate": self.predicate}
                )
            return PredicateMatch(predicates[self.predicate])

        return ALWAYS


class RuleSetDeclaration(BaseModel):
    """Rules in declaration order."""
    rules: List[RuleDeclaration] = Field(default_factory=list)


def load_registry(raw: Union[Mapping[str, Any], RuleSetDeclaration],
                  kinds: Optional[Mapping[str, type]] = None,
                  predicates: Optional[Mapping[str, Callable[[Any, Any], Any]]] = None) -> RuleRegistry:
    """Build a registry from a rule set declaration."""
    if isinstance(raw, RuleSetDeclaration):
        declaration = raw
    else:
        try:
            declaration = RuleSetDeclaration.model_validate(raw)
        except ValueError as e:
            raise ValidationError("Invalid rule declarations", details={"error": str(e)}) from e

    kinds = kinds or {}
    predicates = predicates or {}

    builder = RuleRegistryBuilder()
    for rule in declaration.rules:
        builder.authorize(
            rule.operation,
            rule.to_pattern(kinds, predicates),
            rule.whitelist or None
        )
    return builder.build()


def load_registry_file(path: Union[str, Path],
                       kinds: Optional[Mapping[str, type]] = None,
                       predicates: Optional[Mapping[str, Callable[[Any, Any], Any]]] = None) -> RuleRegistry:
    """Build a registry from a YAML rule file."""
    path = Path(path)
    try:
        with open(path, "r") as f:
            raw = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ValidationError("Rule file is not valid YAML", details={"path": str(path), "error": str(e)}) from e

    logger.info("Loading rule declarations", path=str(path))
    return load_registry(raw, kinds, predicates)
