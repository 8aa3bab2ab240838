"""Declarative filter schemas for list endpoints.

A schema is declared once per endpoint as a list of compact DSL strings and
``FunctionFilter`` entries:

    "title|contains"        scalar field, operator defaults to ``contains``
    "category.name|equals"  field ``name`` of the to-one relation ``category``
    "verses:text|contains"  field ``text`` of the to-many relation ``verses``

``parse_schema`` turns those into tagged entries so a malformed declaration
fails at import time instead of silently matching nothing per request.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional, Union

DATA_TYPES = ("string", "number", "boolean", "date", "json", "array", "enum")

TEXT_OPERATORS = frozenset({"contains", "startsWith", "endsWith"})
OPERATORS = frozenset(
    {
        "contains",
        "startsWith",
        "endsWith",
        "equals",
        "not",
        "gt",
        "gte",
        "lt",
        "lte",
        "in",
        "notIn",
        "has",
        "hasEvery",
        "hasSome",
        "isEmpty",
        "isNotEmpty",
        "array_contains",
        "overlap",
        "path",
        "containedBy",
        "hasKey",
        "hasAllKeys",
        "hasAnyKeys",
    }
)

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

WhereFn = Callable[[Any, dict], Any]


@dataclass(frozen=True)
class ScalarFilter:
    key: str
    operator: str = "contains"

    @property
    def filter_key(self) -> str:
        return self.key


@dataclass(frozen=True)
class OneToOneFilter:
    parent: str
    relation: str
    operator: str = "contains"

    @property
    def filter_key(self) -> str:
        return self.relation


@dataclass(frozen=True)
class OneToManyFilter:
    parent: str
    relation: str
    operator: str = "contains"

    @property
    def filter_key(self) -> str:
        return self.relation


@dataclass(frozen=True)
class FunctionFilter:
    """Filter entry whose predicate is produced by a callback.

    ``where(value, filters)`` returns a structured predicate (dict) or a falsy
    value for "no contribution". ``raw_where`` is the raw SQL counterpart and
    returns a SQL fragment string; when absent, ``where`` is used for raw
    translation if it returns a string.
    """

    key: str
    where: WhereFn
    data_type: Optional[str] = None
    enum_values: tuple[str, ...] = field(default=())
    raw_where: Optional[WhereFn] = None

    @property
    def filter_key(self) -> str:
        return self.key


FilterEntry = Union[ScalarFilter, OneToOneFilter, OneToManyFilter, FunctionFilter]


def _check_identifier(name: str, source: str) -> str:
    if not _IDENTIFIER_RE.fullmatch(name or ""):
        raise ValueError(f'Invalid field name "{name}" in filter schema entry "{source}"')
    return name


def parse_entry(entry: Union[str, FunctionFilter]) -> FilterEntry:
    if isinstance(entry, FunctionFilter):
        _check_identifier(entry.key, entry.key)
        if entry.data_type is not None and entry.data_type not in DATA_TYPES:
            raise ValueError(f'Unknown data type "{entry.data_type}" for filter "{entry.key}"')
        return entry
    if not isinstance(entry, str):
        raise ValueError(f"Unsupported filter schema entry: {entry!r}")

    path, _, operator = entry.partition("|")
    operator = operator.strip() or "contains"
    if operator not in OPERATORS:
        raise ValueError(f'Unknown operator "{operator}" in filter schema entry "{entry}"')
    path = path.strip()
    if "." in path and ":" in path:
        raise ValueError(f'Filter schema entry "{entry}" mixes "." and ":"')

    if "." in path:
        parent, relation = path.split(".", 1)
        return OneToOneFilter(_check_identifier(parent, entry), _check_identifier(relation, entry), operator)
    if ":" in path:
        parent, relation = path.split(":", 1)
        return OneToManyFilter(_check_identifier(parent, entry), _check_identifier(relation, entry), operator)
    return ScalarFilter(_check_identifier(path, entry), operator)


def parse_schema(entries: Iterable[Union[str, FunctionFilter]]) -> tuple[FilterEntry, ...]:
    return tuple(parse_entry(e) for e in entries)


def create_enum_filter(key: str, enum_values: Iterable[str]) -> FunctionFilter:
    """Enum field filter that also takes part in free-text ``term`` search."""
    values = tuple(enum_values)
    by_lower = {v.lower(): v for v in values}

    def _where(value, filters=None):
        term = (filters or {}).get("term")
        if isinstance(term, str) and term.strip():
            matched = by_lower.get(term.strip().lower())
            if matched is not None:
                return {key: matched}
        if value:
            matched = by_lower.get(str(value).lower())
            if matched is not None:
                return {key: {"in": [matched]}}
            return {key: value}
        return None

    def _raw_where(value, filters=None):
        clause = _where(value, filters)
        if not clause:
            return None
        cond = clause[key]
        if isinstance(cond, dict):
            listed = ", ".join("'" + str(v).replace("'", "''") + "'" for v in cond["in"])
            return f"{key}::text IN ({listed})"
        return f"{key}::text = '" + str(cond).replace("'", "''") + "'"

    return FunctionFilter(key=key, where=_where, data_type="enum", enum_values=values, raw_where=_raw_where)


def is_text_search_operator(operator: str) -> bool:
    return operator in TEXT_OPERATORS
