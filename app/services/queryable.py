"""Queryable collections over SQLAlchemy models.

``SqlAlchemyCollection`` is the data-layer side of the pagination engine: it
compiles the where-trees produced by ``app.services.filter_translator`` into
SQLAlchemy expressions and supports the ``cursor``/``skip``/signed ``take``
arguments used for cursor pagination.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Optional, Protocol, Sequence, Union

from sqlalchemy import String, and_, asc, desc, false, func, not_, or_, text, true
from sqlalchemy.dialects.postgresql import ARRAY, JSONB
from sqlalchemy.orm import Query, Session
from sqlalchemy.orm.attributes import InstrumentedAttribute
from sqlalchemy.orm.relationships import RelationshipProperty

_LOG = logging.getLogger("app.queryable")

_LOGICAL_KEYS = ("AND", "OR", "NOT")


class QueryableCollection(Protocol):
    def count(self, where: Optional[dict] = None) -> int:
        ...

    def find_many(
        self,
        where: Optional[dict] = None,
        order_by: Union[dict, list, None] = None,
        skip: Optional[int] = None,
        take: Optional[int] = None,
        cursor: Optional[dict] = None,
    ) -> list:
        ...

    def find_first(self, where: Optional[dict] = None, order_by: Union[dict, list, None] = None):
        ...

    def find_unique(self, where: dict):
        ...

    def execute_raw(self, sql: str, params: Optional[dict] = None) -> list[dict]:
        ...


class _Skip(Exception):
    """Raised while compiling a clause that cannot contribute."""


def _coerce_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    text_value = str(value or "").strip().lower()
    if text_value in {"1", "true", "yes", "y"}:
        return True
    if text_value in {"0", "false", "no", "n"}:
        return False
    raise _Skip(f"not a boolean: {value!r}")


def _coerce_number(value, python_type):
    if isinstance(value, bool):
        raise _Skip(f"not a number: {value!r}")
    if python_type in {int, float} and isinstance(value, (int, float)):
        return python_type(value)
    if python_type is Decimal and isinstance(value, Decimal):
        return value
    normalized = str(value).strip().replace(",", ".")
    try:
        if python_type is int:
            number = Decimal(normalized)
            if number != number.to_integral_value():
                raise _Skip(f"not an integer: {value!r}")
            return int(number)
        if python_type is float:
            return float(normalized)
        return Decimal(normalized)
    except (ValueError, TypeError, InvalidOperation):
        raise _Skip(f"not a number: {value!r}")


def _coerce_date(value):
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text_value = str(value or "").strip()
    try:
        # Accept either YYYY-MM-DD or full ISO datetime and take its date part.
        if "T" in text_value or " " in text_value:
            return datetime.fromisoformat(text_value.replace("Z", "+00:00")).date()
        return date.fromisoformat(text_value)
    except ValueError:
        raise _Skip(f"not a date: {value!r}")


def _coerce_datetime(value):
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, datetime.min.time())
    else:
        text_value = str(value or "").strip()
        try:
            if "T" not in text_value and " " not in text_value and len(text_value) == 10:
                # Date-only filter value for timestamp columns -> start of the day.
                parsed = datetime.combine(date.fromisoformat(text_value), datetime.min.time())
            else:
                parsed = datetime.fromisoformat(text_value.replace("Z", "+00:00"))
        except ValueError:
            raise _Skip(f"not a datetime: {value!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _column_python_type(column):
    try:
        return column.property.columns[0].type.python_type
    except (AttributeError, IndexError, NotImplementedError):
        return None


def _column_type(column):
    try:
        return column.property.columns[0].type
    except (AttributeError, IndexError):
        return None


def coerce_value(column, value):
    """Coerce a filter value to the Python type of ``column``."""
    if value is None:
        return None
    python_type = _column_python_type(column)
    if python_type is uuid.UUID:
        if isinstance(value, uuid.UUID):
            return value
        try:
            return uuid.UUID(str(value).strip())
        except ValueError:
            raise _Skip(f"not a UUID: {value!r}")
    if python_type is bool:
        return _coerce_bool(value)
    if python_type in {int, float, Decimal}:
        return _coerce_number(value, python_type)
    if python_type is datetime:
        return _coerce_datetime(value)
    if python_type is date:
        return _coerce_date(value)
    if python_type is str and not isinstance(value, str):
        if isinstance(value, datetime):
            return value.isoformat()
        return str(value)
    return value


def _is_date_only_literal(raw_value) -> bool:
    if isinstance(raw_value, datetime):
        return raw_value.time() == datetime.min.time() and raw_value.tzinfo is None
    if isinstance(raw_value, date):
        return True
    if not isinstance(raw_value, str):
        return False
    text_value = raw_value.strip()
    if not text_value or "T" in text_value or " " in text_value:
        return False
    try:
        date.fromisoformat(text_value)
        return True
    except ValueError:
        return False


def _as_list(value) -> list:
    if isinstance(value, (list, tuple, set)):
        return list(value)
    return [value]


class PredicateCompiler:
    """Compile a where-tree into a SQLAlchemy boolean expression for ``model``."""

    def __init__(self, model):
        self.model = model

    def compile(self, where: Optional[dict]):
        return self.compile_for(self.model, where)

    def _object(self, model, where: dict) -> list:
        parts = []
        for key, value in where.items():
            try:
                expr = self._entry(model, key, value)
            except _Skip as exc:
                _LOG.warning("Filter on %s.%s dropped: %s", model.__name__, key, exc)
                continue
            if expr is not None:
                parts.append(expr)
        return parts

    def _group(self, model, items, combine):
        exprs = []
        for item in _as_list(items):
            parts = self._object(model, item) if isinstance(item, dict) else []
            if parts:
                exprs.append(and_(*parts))
        if not exprs:
            return None
        return combine(*exprs)

    def _entry(self, model, key: str, value):
        if key == "AND":
            return self._group(model, value, and_)
        if key == "OR":
            if not _as_list(value):
                return false()
            return self._group(model, value, or_)
        if key == "NOT":
            inner = self._group(model, value, and_)
            return not_(inner) if inner is not None else None

        attr = getattr(model, key, None)
        if not isinstance(attr, InstrumentedAttribute):
            raise _Skip("unknown field")
        prop = attr.property
        if isinstance(prop, RelationshipProperty):
            return self._relation(attr, prop, value)
        return self._column(attr, value)

    def _relation(self, attr, prop: RelationshipProperty, value):
        target = prop.mapper.class_
        if not isinstance(value, dict):
            raise _Skip("relation filters need a nested condition")
        if prop.uselist:
            if "some" in value:
                inner = self.compile_for(target, value["some"])
                return attr.any(inner) if inner is not None else attr.any()
            if "every" in value:
                inner = self.compile_for(target, value["every"])
                return ~attr.any(not_(inner)) if inner is not None else true()
            if "none" in value:
                inner = self.compile_for(target, value["none"])
                return ~attr.any(inner) if inner is not None else ~attr.any()
            raise _Skip("to-many relation filters need some/every/none")
        nested = value.get("is", value)
        if nested is None:
            return attr.is_(None)
        inner = self.compile_for(target, nested)
        return attr.has(inner) if inner is not None else None

    def compile_for(self, model, where):
        if not where:
            return None
        parts = self._object(model, where)
        return and_(*parts) if parts else None

    def _column(self, col, cond):
        if not isinstance(cond, dict):
            if cond is None:
                return col.is_(None)
            return col == coerce_value(col, cond)

        insensitive = str(cond.get("mode") or "").lower() == "insensitive"
        if "path" in cond:
            return self._json_path(col, cond)
        exprs = []
        for op, raw in cond.items():
            if op == "mode":
                continue
            if op in _LOGICAL_KEYS:
                sub = [self._column(col, item) for item in _as_list(raw) if isinstance(item, dict)]
                sub = [s for s in sub if s is not None]
                if not sub:
                    continue
                if op == "AND":
                    exprs.append(and_(*sub))
                elif op == "OR":
                    exprs.append(or_(*sub))
                else:
                    exprs.append(not_(and_(*sub)))
                continue
            expr = self._operator(col, op, raw, insensitive)
            if expr is not None:
                exprs.append(expr)
        if not exprs:
            return None
        return and_(*exprs)

    def _operator(self, col, op: str, raw, insensitive: bool):
        col_type = _column_type(col)
        is_array = isinstance(col_type, ARRAY)
        is_json = isinstance(col_type, JSONB)

        if op in {"contains", "startsWith", "endsWith"} and not (is_array or is_json):
            target = col if _column_python_type(col) is str else col.cast(String())
            needle = str(raw)
            if op == "contains":
                return target.icontains(needle, autoescape=True) if insensitive else target.contains(needle, autoescape=True)
            if op == "startsWith":
                return target.istartswith(needle, autoescape=True) if insensitive else target.startswith(needle, autoescape=True)
            return target.iendswith(needle, autoescape=True) if insensitive else target.endswith(needle, autoescape=True)

        if op == "equals":
            if _column_python_type(col) is datetime and _is_date_only_literal(raw):
                day_start = _coerce_datetime(raw if not isinstance(raw, datetime) else raw.date().isoformat())
                return (col >= day_start) & (col < day_start + timedelta(days=1))
            if is_array:
                return col == _as_list(raw)
            if raw is None:
                return col.is_(None)
            if insensitive and isinstance(raw, str):
                return func.lower(col) == raw.lower()
            return col == coerce_value(col, raw)
        if op == "not":
            if _column_python_type(col) is datetime and _is_date_only_literal(raw):
                day_start = _coerce_datetime(raw if not isinstance(raw, datetime) else raw.date().isoformat())
                return ~((col >= day_start) & (col < day_start + timedelta(days=1)))
            if raw is None:
                return col.is_not(None)
            if isinstance(raw, dict):
                inner = self._column(col, raw)
                return not_(inner) if inner is not None else None
            return col != coerce_value(col, raw)
        if op in {"gt", "gte", "lt", "lte"}:
            value = coerce_value(col, raw)
            return {"gt": col > value, "gte": col >= value, "lt": col < value, "lte": col <= value}[op]
        if op in {"in", "notIn"}:
            values = [coerce_value(col, v) for v in _as_list(raw)]
            return col.in_(values) if op == "in" else col.not_in(values)

        if is_array:
            values = _as_list(raw)
            if op in {"has", "hasEvery", "array_contains"}:
                return col.contains(values)
            if op in {"hasSome", "array_overlaps"}:
                return col.overlap(values)
            if op == "isEmpty":
                emptiness = func.coalesce(func.array_length(col, 1), 0) == 0
                return emptiness if raw else ~emptiness
        if is_json:
            if op == "contains":
                return col.contains(raw)
            if op == "containedBy":
                return col.contained_by(raw)
        raise _Skip(f"operator {op} is not supported for column {col.key}")

    def _json_path(self, col, cond: dict):
        if not isinstance(_column_type(col), JSONB):
            raise _Skip(f"path filters need a JSONB column, {col.key} is not")
        path = [str(p) for p in _as_list(cond["path"])]
        if "equals" in cond:
            expected = cond["equals"]
            if isinstance(expected, bool):
                expected = "true" if expected else "false"
            return col[tuple(path)].astext == str(expected)
        if len(path) == 1:
            return col.has_key(path[0])
        return col[tuple(path)].isnot(None)


def _sort_direction(value) -> str:
    return "asc" if str(value or "").lower() == "asc" else "desc"


class SqlAlchemyCollection:
    """Queryable collection over one mapped model and a sync ``Session``."""

    def __init__(self, session: Session, model, options: Sequence[Any] = ()):
        self.session = session
        self.model = model
        self.options = tuple(options)
        self.compiler = PredicateCompiler(model)

    def _query(self, where: Optional[dict]) -> Query:
        q = self.session.query(self.model)
        if self.options:
            q = q.options(*self.options)
        expr = self.compiler.compile(where)
        if expr is not None:
            q = q.filter(expr)
        return q

    def sort_keys(self, order_by) -> list[tuple[Any, str]]:
        items: Iterable[dict]
        if not order_by:
            return []
        items = order_by if isinstance(order_by, (list, tuple)) else [order_by]
        keys = []
        seen = set()
        for item in items:
            if not isinstance(item, dict):
                continue
            for field, direction in item.items():
                col = getattr(self.model, field, None)
                if not isinstance(col, InstrumentedAttribute) or isinstance(col.property, RelationshipProperty):
                    continue
                if field in seen:
                    continue
                seen.add(field)
                keys.append((col, _sort_direction(direction)))
        return keys

    def count(self, where: Optional[dict] = None) -> int:
        return self._query(where).order_by(None).count()

    def _anchor(self, cursor: dict):
        criteria = []
        for field, value in cursor.items():
            col = getattr(self.model, field, None)
            if col is None:
                return None
            try:
                criteria.append(col == coerce_value(col, value))
            except _Skip:
                return None
        return self.session.query(self.model).filter(*criteria).first()

    @staticmethod
    def _keyset(keys: list[tuple[Any, str]], anchor, backwards: bool):
        """Rows at or after ``anchor`` in sort order (or at/before when backwards).

        NULL sorts below every value, matching ``_ordering``.
        """
        branches = []
        equal_prefix = []
        for col, direction in keys:
            value = getattr(anchor, col.key)
            ascending = (direction == "asc") != backwards
            if value is None:
                if ascending:
                    branches.append(and_(*equal_prefix, col.is_not(None)))
                equal_prefix.append(col.is_(None))
                continue
            if ascending:
                branches.append(and_(*equal_prefix, col > value))
            else:
                branches.append(and_(*equal_prefix, or_(col < value, col.is_(None))))
            equal_prefix.append(col == value)
        branches.append(and_(*equal_prefix))
        return or_(*branches)

    @staticmethod
    def _ordering(keys: list[tuple[Any, str]], backwards: bool) -> list:
        ordering = []
        for col, direction in keys:
            if (direction == "asc") != backwards:
                ordering.append(asc(col).nulls_first())
            else:
                ordering.append(desc(col).nulls_last())
        return ordering

    def find_many(
        self,
        where: Optional[dict] = None,
        order_by: Union[dict, list, None] = None,
        skip: Optional[int] = None,
        take: Optional[int] = None,
        cursor: Optional[dict] = None,
    ) -> list:
        backwards = take is not None and take < 0
        keys = self.sort_keys(order_by)
        q = self._query(where)
        if cursor:
            anchor = self._anchor(cursor)
            if anchor is None:
                return []
            if not keys:
                keys = [(self.model.id, "asc")]
            q = q.filter(self._keyset(keys, anchor, backwards))
        ordering = self._ordering(keys, backwards)
        if ordering:
            q = q.order_by(*ordering)
        if skip:
            q = q.offset(skip)
        if take is not None:
            q = q.limit(abs(take))
        rows = q.all()
        if backwards:
            rows.reverse()
        return rows

    def find_first(self, where: Optional[dict] = None, order_by: Union[dict, list, None] = None):
        rows = self.find_many(where=where, order_by=order_by, take=1)
        return rows[0] if rows else None

    def find_unique(self, where: dict):
        return self._query(where).first()

    def execute_raw(self, sql: str, params: Optional[dict] = None) -> list[dict]:
        result = self.session.execute(text(sql), params or {})
        return [dict(row._mapping) for row in result]
