"""Translate loosely typed list filters into query predicates.

Two renderings share one operator table: a structured predicate tree for
``SqlAlchemyCollection`` (see ``app.services.queryable``) and a PostgreSQL
boolean fragment for raw queries. Filter keys that are not declared in the
schema are ignored, and a clause whose operator does not apply to the value's
type is dropped instead of failing the request.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable, Iterable, Optional, Sequence

from app.services.query_schema import (
    FilterEntry,
    FunctionFilter,
    OneToManyFilter,
    OneToOneFilter,
    ScalarFilter,
    TEXT_OPERATORS,
    is_text_search_operator,
    parse_schema,
)
from app.services.type_inference import (
    convert_value,
    infer_data_type,
    to_array,
    to_boolean,
    to_datetime,
    to_json,
    to_number,
)

_LOG = logging.getLogger("app.filters")

_COMPARE_OPS = ("equals", "not", "gt", "gte", "lt", "lte")
_ARRAY_ONLY_OPS = frozenset({"has", "hasEvery", "hasSome", "isEmpty", "isNotEmpty", "array_contains", "overlap"})
_JSON_ONLY_OPS = frozenset({"path", "containedBy", "hasKey", "hasAllKeys", "hasAnyKeys"})
_SQL_COMPARE = {"equals": "=", "not": "!=", "gt": ">", "gte": ">=", "lt": "<", "lte": "<="}


@dataclass(frozen=True)
class _Rule:
    kind: str
    coerce: Callable[[Any], Any]


def _text(value: Any) -> str:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _json_path(value: Any) -> tuple[list[str], Any]:
    if isinstance(value, str) and value.strip().startswith("["):
        value = to_json(value)
    if isinstance(value, (list, tuple)):
        if not value:
            raise ValueError("Empty JSON path")
        path, json_value = (value[0], value[1]) if len(value) >= 2 else (value[0], _MISSING)
    else:
        path, json_value = value, _MISSING
    if isinstance(path, (list, tuple)):
        parts = [str(p) for p in path]
    else:
        parts = [p for p in str(path).split(".") if p]
    if not parts:
        raise ValueError("Empty JSON path")
    return parts, json_value


def _key_list(value: Any) -> list[str]:
    return [str(v) for v in to_array(value)]


class _Missing:
    def __repr__(self) -> str:
        return "<missing>"


_MISSING = _Missing()


def _build_rules() -> dict[tuple[str, str], _Rule]:
    rules: dict[tuple[str, str], _Rule] = {}
    for data_type in ("string", "number", "boolean", "date"):
        for op in TEXT_OPERATORS:
            rules[(data_type, op)] = _Rule("text", _text)

    rules[("string", "equals")] = _Rule("compare", str)
    rules[("string", "not")] = _Rule("compare", str)
    rules[("string", "in")] = _Rule("list", lambda v: [str(x) for x in to_array(v)])
    rules[("string", "notIn")] = rules[("string", "in")]

    for op in _COMPARE_OPS:
        rules[("number", op)] = _Rule("compare", to_number)
        rules[("date", op)] = _Rule("date", to_datetime)
    rules[("number", "in")] = _Rule("list", lambda v: [to_number(x) for x in to_array(v)])
    rules[("number", "notIn")] = rules[("number", "in")]

    rules[("boolean", "equals")] = _Rule("compare", to_boolean)
    rules[("boolean", "not")] = _Rule("compare", to_boolean)

    rules[("json", "equals")] = _Rule("compare", to_json)
    rules[("json", "path")] = _Rule("json_path", _json_path)
    rules[("json", "contains")] = _Rule("json_doc", to_json)
    rules[("json", "containedBy")] = _Rule("json_doc", to_json)
    rules[("json", "hasKey")] = _Rule("json_key", str)
    rules[("json", "hasAllKeys")] = _Rule("json_keys", _key_list)
    rules[("json", "hasAnyKeys")] = _Rule("json_keys", _key_list)

    for op in ("equals", "has", "hasEvery", "hasSome", "array_contains", "overlap"):
        rules[("array", op)] = _Rule("array", to_array)
    rules[("array", "isEmpty")] = _Rule("array_empty", lambda v: True)
    rules[("array", "isNotEmpty")] = _Rule("array_empty", lambda v: False)

    rules[("enum", "equals")] = _Rule("compare", str)
    rules[("enum", "not")] = _Rule("compare", str)
    rules[("enum", "in")] = _Rule("list", lambda v: [str(x) for x in to_array(v)])
    rules[("enum", "notIn")] = rules[("enum", "in")]
    return rules


_RULES = _build_rules()


def resolve_rule(operator: str, data_type: str) -> Optional[tuple[str, _Rule]]:
    """Pick the rule for an operator/type pair.

    Returns ``(effective_operator, rule)`` or None when the pair is not
    supported. Array- and JSON-only operators select their own family when
    the inferred type does not already match; enum values fall back to
    ``equals`` for any other operator.
    """
    rule = _RULES.get((data_type, operator))
    if rule is not None:
        return operator, rule
    if operator in _ARRAY_ONLY_OPS:
        return operator, _RULES[("array", operator)]
    if operator in _JSON_ONLY_OPS:
        return operator, _RULES[("json", operator)]
    if data_type == "enum":
        return "equals", _RULES[("enum", "equals")]
    return None


def _prepare(operator: str, value: Any, data_type: str):
    resolved = resolve_rule(operator, data_type)
    if resolved is None:
        _LOG.warning("Filter operator %s is not supported for %s values; clause dropped", operator, data_type)
        return None
    op, rule = resolved
    try:
        coerced = rule.coerce(value)
    except (TypeError, ValueError) as exc:
        _LOG.warning("Filter value %r cannot be used with %s (%s); clause dropped", value, op, exc)
        return None
    return op, rule.kind, coerced


class StructuredPredicateBuilder:
    """Renders single-field conditions as nested dicts (where-tree grammar)."""

    def condition(self, operator: str, value: Any, data_type: str) -> Optional[dict]:
        prepared = _prepare(operator, value, data_type)
        if prepared is None:
            return None
        op, kind, v = prepared
        if kind == "text":
            return {op: v, "mode": "insensitive"}
        if kind in ("compare", "list", "date", "json_doc"):
            return {op: v}
        if kind == "json_path":
            path, json_value = v
            if json_value is _MISSING:
                return {"path": path}
            return {"path": path, "equals": json_value}
        if kind == "json_key":
            return {"path": [v]}
        if kind == "json_keys":
            group = "AND" if op == "hasAllKeys" else "OR"
            return {group: [{"path": [k]} for k in v]}
        if kind == "array":
            if op == "overlap":
                return {"array_overlaps": v}
            return {op: v}
        if kind == "array_empty":
            return {"isEmpty": v}
        return None

    def field(self, key: str, operator: str, value: Any, data_type: str) -> Optional[dict]:
        cond = self.condition(operator, value, data_type)
        return {key: cond} if cond is not None else None


def escape_sql(value: str) -> str:
    return value.replace("'", "''")


def _sql_literal(value: Any) -> str:
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, (datetime, date)):
        return f"'{value.isoformat()}'"
    if isinstance(value, (dict, list)):
        return f"'{escape_sql(json.dumps(value))}'"
    return f"'{escape_sql(str(value))}'"


def infer_array_type(items: Sequence[Any]) -> str:
    first = next((item for item in items if item is not None), None)
    if first is None:
        return "text"
    if isinstance(first, bool):
        return "boolean"
    if isinstance(first, (int, float)):
        return "numeric"
    if isinstance(first, (datetime, date)):
        return "timestamp"
    if isinstance(first, (dict, list)):
        return "jsonb"
    return "text"


def format_array_for_sql(key: str, items: Sequence[Any], sql_operator: str) -> str:
    array_type = infer_array_type(items)
    if not items:
        return f"{key} {sql_operator} '{{}}'::{array_type}[]"
    formatted = ",".join(_sql_literal(item) for item in items)
    return f"{key} {sql_operator} ARRAY[{formatted}]::{array_type}[]"


class RawSqlPredicateBuilder:
    """Renders single-field conditions as PostgreSQL boolean fragments.

    Values are inlined with single quotes doubled. Field keys are emitted as
    is and must come from a declared schema, never from request input.
    """

    def condition(self, key: str, operator: str, value: Any, data_type: str) -> Optional[str]:
        prepared = _prepare(operator, value, data_type)
        if prepared is None:
            return None
        op, kind, v = prepared

        if kind == "text":
            column = key if data_type == "string" else f"{key}::text"
            text = escape_sql(v)
            pattern = {"contains": f"%{text}%", "startsWith": f"{text}%", "endsWith": f"%{text}"}[op]
            return f"{column} ILIKE '{pattern}'"

        if kind == "compare":
            if op not in _SQL_COMPARE:
                return None
            sql_op = _SQL_COMPARE[op]
            if data_type == "json":
                return f"{key} {sql_op} {_sql_literal(v if isinstance(v, (dict, list)) else json.dumps(v))}::jsonb"
            if data_type == "enum":
                return f"{key}::text {sql_op} {_sql_literal(str(v))}"
            return f"{key} {sql_op} {_sql_literal(v)}"

        if kind == "list":
            column = f"{key}::text" if data_type == "enum" else key
            if not v:
                return "FALSE" if op == "in" else "TRUE"
            listed = ", ".join(_sql_literal(item) for item in v)
            return f"{column} {'IN' if op == 'in' else 'NOT IN'} ({listed})"

        if kind == "date":
            return f"{key}::date {_SQL_COMPARE[op]} '{v.isoformat()}'::date"

        if kind == "json_path":
            path, json_value = v
            quoted = [f"'{escape_sql(p)}'" for p in path]
            if json_value is _MISSING:
                return f"{key}->{'->'.join(quoted)} IS NOT NULL"
            head = "->".join([key] + quoted[:-1])
            return f"{head}->>{quoted[-1]} = {_sql_literal(json_value)}"

        if kind == "json_doc":
            doc = v if isinstance(v, str) else json.dumps(v)
            sql_op = "@>" if op == "contains" else "<@"
            return f"{key} {sql_op} '{escape_sql(doc)}'::jsonb"

        if kind == "json_key":
            return f"{key} ? '{escape_sql(v)}'"

        if kind == "json_keys":
            if not v:
                return None
            parts = [f"{key} ? '{escape_sql(k)}'" for k in v]
            if op == "hasAllKeys":
                return " AND ".join(parts)
            return "(" + " OR ".join(parts) + ")"

        if kind == "array":
            sql_op = {
                "equals": "=",
                "has": "@>",
                "array_contains": "@>",
                "hasEvery": "@>",
                "overlap": "&&",
                "hasSome": "&&",
            }[op]
            return format_array_for_sql(key, v, sql_op)

        if kind == "array_empty":
            return f"array_length({key}, 1) IS {'NULL' if v else 'NOT NULL'}"
        return None


_structured = StructuredPredicateBuilder()
_raw = RawSqlPredicateBuilder()


def create_filter_condition(operator: str, value: Any, data_type: str) -> Optional[dict]:
    return _structured.condition(operator, value, data_type)


def create_raw_sql_condition(key: str, operator: str, value: Any, data_type: str) -> Optional[str]:
    return _raw.condition(key, operator, value, data_type)


def _present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str) and not value.strip():
        return False
    return True


def _entries(schema: Iterable[Any]) -> tuple[FilterEntry, ...]:
    items = tuple(schema or ())
    if all(isinstance(e, (ScalarFilter, OneToOneFilter, OneToManyFilter, FunctionFilter)) for e in items):
        return items
    return parse_schema(items)


def _value_for(entry_key: str, values: dict, term: Any, operator: str):
    """Value driving a field entry, or _MISSING when the entry does not fire."""
    if term is None:
        value = values.get(entry_key)
        return value if _present(value) else _MISSING
    if is_text_search_operator(operator):
        return term
    return _MISSING


def _scalar_clauses(values: dict, entries, term=None) -> list[dict]:
    clauses = []
    for entry in entries:
        if not isinstance(entry, ScalarFilter):
            continue
        value = _value_for(entry.filter_key, values, term, entry.operator)
        if value is _MISSING:
            continue
        clause = _structured.field(entry.key, entry.operator, value, infer_data_type(value))
        if clause:
            clauses.append(clause)
    return clauses


def _relation_clauses(values: dict, entries, term=None) -> list[dict]:
    group = "OR" if term is not None else "AND"
    to_one: dict[str, list[dict]] = {}
    to_many: dict[str, list[dict]] = {}
    for entry in entries:
        if not isinstance(entry, (OneToOneFilter, OneToManyFilter)):
            continue
        value = _value_for(entry.filter_key, values, term, entry.operator)
        if value is _MISSING:
            continue
        clause = _structured.field(entry.relation, entry.operator, value, infer_data_type(value))
        if not clause:
            continue
        bucket = to_one if isinstance(entry, OneToOneFilter) else to_many
        bucket.setdefault(entry.parent, []).append(clause)

    clauses = [{parent: {group: items}} for parent, items in to_one.items()]
    for parent, items in to_many.items():
        inner = items[0] if len(items) == 1 else {group: items}
        clauses.append({parent: {"some": inner}})
    return clauses


def _function_clauses(values: dict, entries) -> list:
    clauses = []
    for entry in entries:
        if not isinstance(entry, FunctionFilter):
            continue
        value = values.get(entry.filter_key)
        if not _present(value):
            continue
        if entry.data_type:
            try:
                value = convert_value(value, entry.data_type, entry.enum_values)
            except (TypeError, ValueError) as exc:
                _LOG.warning("Filter %s value %r is not a valid %s (%s); clause dropped", entry.key, value, entry.data_type, exc)
                continue
        clause = entry.where(value, values)
        if clause:
            clauses.append(clause)
    return clauses


def merge_clause(where: dict, clause: dict) -> dict:
    """AND-combine ``clause`` into ``where`` without overwriting keys."""
    for key, value in clause.items():
        if key not in where:
            where[key] = list(value) if key in ("AND", "OR") else value
        elif key == "AND":
            where["AND"] = list(where["AND"]) + list(value)
        else:
            where.setdefault("AND", [])
            where["AND"] = list(where["AND"]) + [{key: value}]
    return where


def translate(filters: Optional[dict], schema: Iterable[Any]) -> dict:
    """Build the structured where-tree for ``filters`` against ``schema``."""
    entries = _entries(schema)
    values = dict(filters or {})
    term = values.pop("term", None)
    term = term if _present(term) else None

    where: dict = {}
    for clause in _scalar_clauses(values, entries) + _relation_clauses(values, entries):
        merge_clause(where, clause)
    function_clauses = _function_clauses(values, entries)
    if function_clauses:
        merge_clause(where, {"AND": function_clauses})

    if term is None:
        return where

    term_clauses: list = _scalar_clauses({}, entries, term) + _relation_clauses({}, entries, term)
    for entry in entries:
        if isinstance(entry, FunctionFilter) and entry.data_type == "enum":
            clause = entry.where(None, {"term": term})
            if clause:
                term_clauses.append(clause)
    if term_clauses:
        merge_clause(where, {"OR": term_clauses})
    return where


def _raw_scalar_clauses(values: dict, entries, term=None) -> list[str]:
    clauses = []
    for entry in entries:
        if not isinstance(entry, ScalarFilter):
            continue
        value = _value_for(entry.filter_key, values, term, entry.operator)
        if value is _MISSING:
            continue
        clause = _raw.condition(entry.key, entry.operator, value, infer_data_type(value))
        if clause:
            clauses.append(clause)
    return clauses


def _raw_function_clause(entry: FunctionFilter, value: Any, values: dict) -> Optional[str]:
    fn = entry.raw_where or entry.where
    clause = fn(value, values)
    return clause if isinstance(clause, str) and clause.strip() else None


def translate_raw(filters: Optional[dict], schema: Iterable[Any]) -> str:
    """Raw SQL counterpart of ``translate``; relation entries are not rendered."""
    entries = _entries(schema)
    values = dict(filters or {})
    term = values.pop("term", None)
    term = term if _present(term) else None

    clauses = _raw_scalar_clauses(values, entries)
    for entry in entries:
        if not isinstance(entry, FunctionFilter) or not _present(values.get(entry.filter_key)):
            continue
        value = values[entry.filter_key]
        if entry.data_type:
            try:
                value = convert_value(value, entry.data_type, entry.enum_values)
            except (TypeError, ValueError):
                _LOG.warning("Raw filter %s value %r is not a valid %s; clause dropped", entry.key, value, entry.data_type)
                continue
        clause = _raw_function_clause(entry, value, values)
        if clause:
            clauses.append(clause)

    if term is not None:
        term_clauses = _raw_scalar_clauses({}, entries, term)
        for entry in entries:
            if isinstance(entry, FunctionFilter) and entry.data_type == "enum":
                clause = _raw_function_clause(entry, None, {"term": term})
                if clause:
                    term_clauses.append(clause)
        if term_clauses:
            clauses.append("(" + " OR ".join(term_clauses) + ")")
    return " AND ".join(clauses)
