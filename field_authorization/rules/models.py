"""
Rule data models for the field authorization layer.
"""

from typing import Dict, Any, Optional, Callable, Iterable, Mapping, Tuple, Union, FrozenSet
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType

from shared.errors import (
    AuthorizationError, ResolverError, MalformedWhitelistError, ValidationError
)


@dataclass(frozen=True)
class Always:
    """Pattern that matches every caller."""

    def describe(self) -> str:
        return "always"


@dataclass(frozen=True)
class TypeMatch:
    """Pattern that matches callers whose identity is exactly of ``kind``."""
    kind: type

    def describe(self) -> str:
        return f"type:{self.kind.__name__}"


@dataclass(frozen=True)
class PredicateMatch:
    """Pattern that asks ``fn(resource, context)`` about the resolved resource."""
    fn: Callable[[Any, Any], Any]

    def describe(self) -> str:
        return f"predicate:{getattr(self.fn, '__qualname__', repr(self.fn))}"


Pattern = Union[Always, TypeMatch, PredicateMatch]

ALWAYS = Always()

# Spellings of the wildcard pattern accepted in declarations
_WILDCARDS = ("*", "always")


def coerce_pattern(value: Any) -> Pattern:
    """Turn a declaration shorthand into a pattern.

    A class becomes a ``TypeMatch``, any other callable a ``PredicateMatch``
    and ``None``, an empty mapping or ``"*"`` the ``Always`` wildcard.
    """
    if isinstance(value, (Always, TypeMatch, PredicateMatch)):
        return value

    if value is None or value in _WILDCARDS:
        return ALWAYS

    if isinstance(value, Mapping) and not value:
        return ALWAYS

    if isinstance(value, type):
        return TypeMatch(value)

    if callable(value):
        return PredicateMatch(value)

    raise ValidationError(
        "Unsupported rule pattern",
        details={"pattern": repr(value)}
    )


WhitelistEntry = Union[str, Tuple[str, "WhitelistSpec"]]


@dataclass(frozen=True)
class WhitelistSpec:
    """Ordered field whitelist.

    Entries are bare field names (leaves, copied as-is) or
    ``(field, WhitelistSpec)`` pairs (branches, filtered recursively). An
    empty whitelist means the rule does no filtering at all.
    """
    entries: Tuple[WhitelistEntry, ...] = ()
    leaves: FrozenSet[str] = field(init=False, repr=False, compare=False)
    branches: Mapping[str, "WhitelistSpec"] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        leaves = set()
        branches: Dict[str, WhitelistSpec] = {}
        for entry in self.entries:
            name = entry if isinstance(entry, str) else entry[0]
            if name in leaves or name in branches:
                raise ValidationError(
                    "Duplicate field in whitelist",
                    details={"field": name}
                )

            if isinstance(entry, str):
                leaves.add(name)
            else:
                branches[name] = entry[1]

        object.__setattr__(self, "leaves", frozenset(leaves))
        object.__setattr__(self, "branches", MappingProxyType(branches))

    def __bool__(self) -> bool:
        return bool(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def is_leaf(self, name: Any) -> bool:
        return name in self.leaves

    def branch_for(self, name: Any) -> Optional["WhitelistSpec"]:
        return self.branches.get(name)

    def to_list(self) -> list:
        """Render back to the declaration shape (strings and single-key dicts)."""
        rendered = []
        for entry in self.entries:
            if isinstance(entry, str):
                rendered.append(entry)
            else:
                rendered.append({entry[0]: entry[1].to_list()})
        return rendered

    @classmethod
    def parse(cls, raw: Any) -> "WhitelistSpec":
        """Build a whitelist from its declaration form.

        Accepts ``None``, an existing spec, or a sequence whose items are
        field names, ``(field, entries)`` pairs or single-key
        ``{field: entries}`` mappings.
        """
        if raw is None:
            return cls()

        if isinstance(raw, WhitelistSpec):
            return raw

        if isinstance(raw, (str, bytes)) or not isinstance(raw, Iterable):
            raise ValidationError(
                "Whitelist must be a sequence of entries",
                details={"whitelist": repr(raw)}
            )

        entries = []
        for item in raw:
            entries.append(cls._parse_entry(item))
        return cls(tuple(entries))

    @classmethod
    def _parse_entry(cls, item: Any) -> WhitelistEntry:
        if isinstance(item, str):
            return item

        if isinstance(item, Mapping) and len(item) == 1:
            ((name, nested),) = item.items()
        elif isinstance(item, (tuple, list)) and len(item) == 2:
            name, nested = item
        else:
            raise ValidationError(
                "Malformed whitelist entry",
                details={"entry": repr(item)}
            )

        if not isinstance(name, str):
            raise ValidationError(
                "Whitelist field names must be strings",
                details={"entry": repr(item)}
            )

        return name, cls.parse(nested)


@dataclass(frozen=True)
class Rule:
    """Authorization rule for one operation."""
    operation: str
    pattern: Pattern = ALWAYS
    whitelist: WhitelistSpec = field(default_factory=WhitelistSpec)
    position: int = 0

    @property
    def name(self) -> str:
        return f"{self.operation}#{self.position}"

    @property
    def passthrough(self) -> bool:
        """True when the rule allows the caller without filtering the result."""
        return not self.whitelist


class ResolutionCode(str, Enum):
    """Outcome codes carried by a resolution."""
    OK = "OK"
    UNAUTHORIZED = "UNAUTHORIZED"
    RESOLVER_ERROR = "RESOLVER_ERROR"
    MALFORMED_WHITELIST = "MALFORMED_WHITELIST"


@dataclass(frozen=True)
class Resolution:
    """Success or failure of a resolver or of an authorization request."""
    value: Any = None
    error: Any = None
    code: ResolutionCode = ResolutionCode.OK
    details: Dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def ok(self) -> bool:
        return self.code == ResolutionCode.OK

    @classmethod
    def success(cls, value: Any) -> "Resolution":
        return cls(value=value)

    @classmethod
    def failure(
        cls,
        error: Any,
        code: ResolutionCode = ResolutionCode.RESOLVER_ERROR,
        details: Optional[Dict[str, Any]] = None
    ) -> "Resolution":
        return cls(error=error, code=code, details=details or {})

    @classmethod
    def coerce(cls, raw: Any) -> "Resolution":
        """Wrap a plain resolver return value as a success."""
        if isinstance(raw, Resolution):
            return raw
        return cls.success(raw)

    def unwrap(self) -> Any:
        """Return the value or raise the exception matching the failure."""
        if self.ok:
            return self.value

        if self.code == ResolutionCode.UNAUTHORIZED:
            raise AuthorizationError(str(self.error), details=self.details)

        if self.code == ResolutionCode.MALFORMED_WHITELIST:
            raise MalformedWhitelistError(
                self.details.get("field", "<root>"),
                None,
                details=self.details
            )

        raise ResolverError(self.error, details=self.details)

    def to_dict(self) -> Dict[str, Any]:
        if self.ok:
            return {"ok": self.value}
        return {"error": self.error}
