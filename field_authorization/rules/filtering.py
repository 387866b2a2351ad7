"""
Response filtering for the field authorization layer.

Filtering is a redaction, not a projection: every key of the resolved
object survives, and fields outside the whitelist come back as ``None``.
"""

import copy
import dataclasses
from typing import Any, Iterable, List, Mapping, Tuple

from pydantic import BaseModel

from shared.errors import MalformedWhitelistError
from .models import WhitelistSpec, Resolution

DEFAULT_IMPLICIT_FIELDS = ("__typename", "__meta__")


def is_struct(value: Any) -> bool:
    """True for values the filter treats as objects."""
    if isinstance(value, (Mapping, BaseModel)):
        return True
    return dataclasses.is_dataclass(value) and not isinstance(value, type)


def is_sequence(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def _struct_items(obj: Any) -> List[Tuple[Any, Any]]:
    if isinstance(obj, Mapping):
        return list(obj.items())
    if isinstance(obj, BaseModel):
        items = [(name, getattr(obj, name)) for name in type(obj).model_fields]
        return items + list((obj.model_extra or {}).items())
    return [(f.name, getattr(obj, f.name)) for f in dataclasses.fields(obj)]


def _rebuild(obj: Any, items: List[Tuple[Any, Any]]) -> Any:
    if isinstance(obj, Mapping):
        return dict(items)

    changed = {key: value for key, value in items if getattr(obj, key) is not value}
    if not changed:
        return obj
    if isinstance(obj, BaseModel):
        return obj.model_copy(update=changed)

    # init=False fields cannot go through dataclasses.replace
    rebuilt = copy.copy(obj)
    for key, value in changed.items():
        object.__setattr__(rebuilt, key, value)
    return rebuilt


def _child_path(path: str, key: Any) -> str:
    return f"{path}.{key}" if path else str(key)


def _filter_branch(whitelist: WhitelistSpec, value: Any, path: str,
                   implicit_fields: Iterable[str]) -> Any:
    if is_struct(value):
        return filter_struct(whitelist, value, implicit_fields, _path=path)

    if is_sequence(value):
        filtered = [
            None if item is None
            else filter_struct(whitelist, item, implicit_fields, _path=f"{path}[{index}]")
            for index, item in enumerate(value)
        ]
        return filtered if isinstance(value, list) else tuple(filtered)

    raise MalformedWhitelistError(path or "<root>", value)


def filter_struct(whitelist: WhitelistSpec, obj: Any,
                  implicit_fields: Iterable[str] = DEFAULT_IMPLICIT_FIELDS,
                  _path: str = "") -> Any:
    """Redact one object through a whitelist.

    The result has exactly the keys of ``obj``. Leaves and implicit fields
    keep their value, branches with a value are filtered recursively, and
    everything else is set to ``None``.
    """
    if not is_struct(obj):
        raise MalformedWhitelistError(_path or "<root>", obj)

    implicit = frozenset(implicit_fields)
    items = []
    for key, value in _struct_items(obj):
        branch = whitelist.branch_for(key)

        if key in implicit or whitelist.is_leaf(key):
            items.append((key, value))
        elif branch is not None and value is not None:
            items.append((key, _filter_branch(branch, value, _child_path(_path, key), implicit)))
        else:
            items.append((key, None))

    return _rebuild(obj, items)


def filter_result(whitelist: WhitelistSpec, result: Any,
                  implicit_fields: Iterable[str] = DEFAULT_IMPLICIT_FIELDS) -> Resolution:
    """Filter a resolver result; failures pass through untouched.

    Raises MalformedWhitelistError when the resolved value, or a value
    under a branch entry, is neither an object, a list nor null.
    """
    result = Resolution.coerce(result)
    if not result.ok or result.value is None:
        return result

    return Resolution.success(_filter_branch(whitelist, result.value, "", implicit_fields))
