from __future__ import annotations
from operator import attrgetter
from typing import Any, Callable, Iterable, List, Mapping, Union

FieldAccessor = Callable[[Any], Any]
FieldSpec = Union[str, FieldAccessor]

# accessor failures that mean "this item has no such field"
_MISSING = (AttributeError, KeyError, TypeError, IndexError)


def normalize_query(query: Any) -> str:
    """
    Normalize raw search input for matching:
      * None -> ""
      * non-strings are coerced with str()
      * surrounding whitespace trimmed, lowercased
    """
    if query is None:
        return ""
    if not isinstance(query, str):
        query = str(query)
    return query.strip().lower()


def field_text(value: Any) -> str:
    """Lowercased string form of a field value; None/missing -> ""."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value.lower()
    return str(value).lower()


def _by_name(name: str) -> FieldAccessor:
    getter = attrgetter(name)

    def access(item: Any) -> Any:
        if isinstance(item, Mapping):
            return item.get(name)
        return getter(item)

    access.__name__ = f"field_{name}"
    return access


def resolve_fields(fields: Iterable[FieldSpec]) -> List[FieldAccessor]:
    """
    Turn field names and/or accessor callables into accessors.
    Names work for attribute objects (dataclasses) and mappings alike.
    Duplicate names are dropped, first occurrence wins. A single name or
    accessor is accepted as is; anything else that is not iterable means no
    fields.
    """
    if isinstance(fields, str) or callable(fields):
        fields = [fields]
    try:
        fields = list(fields or ())
    except TypeError:
        return []
    seen: set[str] = set()
    out: List[FieldAccessor] = []
    for f in fields or ():
        if callable(f):
            out.append(f)
        elif isinstance(f, str) and f and f not in seen:
            seen.add(f)
            out.append(_by_name(f))
    return out


def read_field(item: Any, accessor: FieldAccessor) -> str:
    """Apply an accessor and return matchable text; missing fields read as ""."""
    try:
        return field_text(accessor(item))
    except _MISSING:
        return ""
