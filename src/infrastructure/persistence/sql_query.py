"""Compile Mongo-style filters, sorts, updates and pipelines to SQLAlchemy.

Everything except id and app_id lives in DocumentRow.body (JSONB); those two
are real columns.  The compiled expressions follow the in-memory evaluator in
query.py:

  - equality with None matches a missing field or a JSON null
  - equality against a JSON array matches when the array contains the value
  - $gt / $gte / $lt / $lte only match values of the operand's JSON type
    (numbers or strings); other fields never match
  - $ne / $nin match documents where the field is missing

Pipelines are limited to the shape

  $match* -> $group? -> $sort? -> $skip? -> $limit? -> $project*

with $group keyed by None or a "$field" and $sum as the only accumulator.
"""

from __future__ import annotations

import operator
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Mapping, Sequence
from uuid import UUID

from sqlalchemy import (
    Numeric,
    Select,
    Text,
    and_,
    case,
    cast,
    false,
    func,
    literal,
    literal_column,
    not_,
    null,
    or_,
    select,
    true,
)
from sqlalchemy.dialects.postgresql import ARRAY, JSONB, array
from sqlalchemy.sql.elements import ColumnElement

from src.infrastructure.persistence.models.documents import DocumentRow
from src.infrastructure.persistence.query import QueryError, is_operator_dict, sort_direction

_COLUMNS = {"id": DocumentRow.id, "app_id": DocumentRow.app_id}

_RANGE_OPERATORS = {
    "$gt": operator.gt,
    "$gte": operator.ge,
    "$lt": operator.lt,
    "$lte": operator.le,
}

INSERTION_ORDER = (DocumentRow.created_at, DocumentRow.id)

_JSON_NULL = literal_column("'null'::jsonb", JSONB)
_EMPTY_OBJECT = literal_column("'{}'::jsonb", JSONB)


def as_uuid(value: Any) -> UUID | None:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        return None


def body_field(path: str) -> ColumnElement[Any]:
    """JSONB value at a dotted path of the document body; SQL NULL when missing."""
    parts = path.split(".")
    if len(parts) == 1:
        return DocumentRow.body[parts[0]]
    return DocumentRow.body[tuple(parts)]


def json_value(value: Any) -> ColumnElement[Any]:
    if value is None:
        return _JSON_NULL
    return literal(value, JSONB)


# ─────────────────────────────────────────────────────────────────────────── #
# Filters                                                                      #
# ─────────────────────────────────────────────────────────────────────────── #


def where_clause(filter: Mapping[str, Any] | None) -> ColumnElement[bool]:
    """Boolean SQL expression that is true exactly when filter matches."""
    if not filter:
        return true()
    clauses = []
    for key, condition in filter.items():
        if key == "$and":
            clauses.append(and_(true(), *(where_clause(clause) for clause in condition)))
        elif key == "$or":
            clauses.append(or_(false(), *(where_clause(clause) for clause in condition)))
        elif key == "$nor":
            clauses.append(not_(or_(false(), *(where_clause(clause) for clause in condition))))
        elif key.startswith("$"):
            raise QueryError(f"unsupported top-level operator {key}")
        else:
            clauses.append(_field_condition(key, condition))
    return and_(*clauses)


def _field_condition(path: str, condition: Any) -> ColumnElement[bool]:
    if not is_operator_dict(condition):
        return _equals(path, condition)
    return and_(*(_operator(path, op, operand) for op, operand in condition.items()))


def _equals(path: str, value: Any) -> ColumnElement[bool]:
    if path in _COLUMNS:
        return _column_equals(path, value)
    return _json_equals(body_field(path), value)


def _column_equals(path: str, value: Any) -> ColumnElement[bool]:
    if path == "id" and value is not None:
        value = as_uuid(value)
        if value is None:
            return false()
    return _COLUMNS[path].is_not_distinct_from(value)


def _json_equals(expr: ColumnElement[Any], value: Any) -> ColumnElement[bool]:
    if value is None:
        return or_(expr.is_(None), func.jsonb_typeof(expr) == "null")
    clause = expr == json_value(value)
    if not isinstance(value, list):
        member = and_(func.jsonb_typeof(expr) == "array", expr.contains(json_value([value])))
        clause = or_(clause, member)
    return func.coalesce(clause, false())


def _any_equals(path: str, values: Sequence[Any]) -> ColumnElement[bool]:
    if path in _COLUMNS:
        candidates = [value for value in values if value is not None]
        if path == "id":
            candidates = [uuid for uuid in map(as_uuid, candidates) if uuid is not None]
        clause = func.coalesce(_COLUMNS[path].in_(candidates), false())
        if any(value is None for value in values):
            clause = or_(clause, _COLUMNS[path].is_(None))
        return clause
    return or_(false(), *(_equals(path, value) for value in values))


def _operator(path: str, op: str, operand: Any) -> ColumnElement[bool]:
    if op == "$eq":
        return _equals(path, operand)
    if op == "$ne":
        return not_(_equals(path, operand))
    if op == "$in":
        return _any_equals(path, operand)
    if op == "$nin":
        return not_(_any_equals(path, operand))
    if op == "$exists":
        present = true() if path == "id" else body_field(path).is_not(None)
        return present if operand else not_(present)
    if op in _RANGE_OPERATORS:
        if path in _COLUMNS:
            raise QueryError(f"{op} is not supported on {path}")
        if operand is None:
            return false()
        compare = _RANGE_OPERATORS[op]
        return func.coalesce(compare(_typed(body_field(path), operand), operand), false())
    raise QueryError(f"unsupported operator {op}")


def _typed(expr: ColumnElement[Any], operand: Any) -> ColumnElement[Any]:
    """The field as a SQL scalar of the operand's type, NULL for any other JSON type."""
    if isinstance(operand, bool):
        raise QueryError("range operators do not accept booleans")
    if isinstance(operand, (int, float, Decimal)):
        return case((func.jsonb_typeof(expr) == "number", expr.as_float()), else_=null())
    if isinstance(operand, str):
        return case((func.jsonb_typeof(expr) == "string", expr.as_string()), else_=null())
    raise QueryError(f"unsupported comparison operand {operand!r}")


# ─────────────────────────────────────────────────────────────────────────── #
# Sort                                                                         #
# ─────────────────────────────────────────────────────────────────────────── #


def order_by(sort: Mapping[str, Any] | None) -> list[ColumnElement[Any]]:
    """ORDER BY clauses; missing and null values sort first ascending."""
    clauses = []
    for path, direction in (sort or {}).items():
        expr = _COLUMNS[path] if path in _COLUMNS else body_field(path)
        if sort_direction(direction) < 0:
            clauses.append(expr.desc().nulls_last())
        else:
            clauses.append(expr.asc().nulls_first())
    return clauses


# ─────────────────────────────────────────────────────────────────────────── #
# Updates                                                                      #
# ─────────────────────────────────────────────────────────────────────────── #


def update_values(update: Mapping[str, Any]) -> dict[str, Any]:
    """Column values for an UPDATE that applies $set / $unset / $inc to body.

    id is never changed.  app_id writes are mirrored to the app_id column.
    """
    if update and not any(str(key).startswith("$") for key in update):
        update = {"$set": update}

    body: ColumnElement[Any] = DocumentRow.body
    values: dict[str, Any] = {}
    for op, fields in update.items():
        if op == "$set":
            for path, value in fields.items():
                if path == "id":
                    continue
                body = _json_set(body, path, json_value(value))
                if path == "app_id":
                    values["app_id"] = value
        elif op == "$unset":
            for path in fields:
                if path == "id":
                    continue
                body = body.op("#-")(_text_path(path))
                if path == "app_id":
                    values["app_id"] = None
        elif op == "$inc":
            for path, amount in fields.items():
                if path == "id":
                    raise QueryError("id cannot be incremented")
                current = cast(body.op("#>>")(_text_path(path)), Numeric)
                body = _json_set(body, path, func.to_jsonb(func.coalesce(current, 0) + amount))
        else:
            raise QueryError(f"unsupported update operator {op}")
    values["body"] = body
    return values


def _text_path(path: str) -> ColumnElement[Any]:
    return cast(array(path.split(".")), ARRAY(Text))


def _json_set(
    body: ColumnElement[Any], path: str, value: ColumnElement[Any]
) -> ColumnElement[Any]:
    parts = path.split(".")
    # jsonb_set only creates the leaf key, so missing parents are created first
    for depth in range(1, len(parts)):
        parent = _text_path(".".join(parts[:depth]))
        body = func.jsonb_set(
            body, parent, func.coalesce(body.op("#>")(parent), _EMPTY_OBJECT), true()
        )
    return func.jsonb_set(body, _text_path(path), value, true())


# ─────────────────────────────────────────────────────────────────────────── #
# Aggregation                                                                  #
# ─────────────────────────────────────────────────────────────────────────── #


@dataclass
class CompiledPipeline:
    statement: Select[Any]
    grouped: bool
    projections: list[Mapping[str, int]] = field(default_factory=list)


def compile_pipeline(
    pipeline: Sequence[Mapping[str, Any]], scope: ColumnElement[bool]
) -> CompiledPipeline:
    """One SELECT for the pipeline; $project stages are left to the caller."""
    conditions: list[ColumnElement[bool]] = [scope]
    group: Mapping[str, Any] | None = None
    sort: Mapping[str, Any] | None = None
    skip: int | None = None
    limit: int | None = None
    projections: list[Mapping[str, int]] = []

    for stage in pipeline:
        if len(stage) != 1:
            raise QueryError("each pipeline stage must have exactly one operator")
        ((op, argument),) = stage.items()
        if projections and op != "$project":
            raise QueryError("$project must be the last pipeline stage")
        if op == "$match":
            if group is not None or sort or skip is not None or limit is not None:
                raise QueryError("$match must precede $group, $sort, $skip and $limit")
            conditions.append(where_clause(argument))
        elif op == "$group":
            if group is not None or sort or skip is not None or limit is not None:
                raise QueryError("$group must directly follow $match stages")
            group = argument
        elif op == "$sort":
            if sort or skip is not None or limit is not None:
                raise QueryError("$sort must precede $skip and $limit")
            sort = argument
        elif op == "$skip":
            if skip is not None or limit is not None:
                raise QueryError("$skip must precede $limit")
            skip = int(argument)
        elif op == "$limit":
            if limit is not None:
                raise QueryError("only one $limit stage is supported")
            limit = int(argument)
        elif op == "$project":
            projections.append(argument)
        else:
            raise QueryError(f"unsupported pipeline stage {op}")

    if group is None:
        statement = (
            select(DocumentRow.id, DocumentRow.body)
            .where(*conditions)
            .order_by(*order_by(sort), *INSERTION_ORDER)
        )
    else:
        statement = _grouped_select(group, conditions, sort)
    if skip:
        statement = statement.offset(skip)
    if limit is not None:
        statement = statement.limit(limit)
    return CompiledPipeline(statement, group is not None, projections)


def _grouped_select(
    group: Mapping[str, Any],
    conditions: list[ColumnElement[bool]],
    sort: Mapping[str, Any] | None,
) -> Select[Any]:
    if "_id" not in group:
        raise QueryError("$group requires an _id expression")
    key = _group_key(group["_id"])
    accumulators = {name: expr for name, expr in group.items() if name != "_id"}
    for name, expr in accumulators.items():
        if not is_operator_dict(expr) or set(expr) != {"$sum"}:
            raise QueryError(f"unsupported accumulator for {name}")

    # Grouping runs over a subquery so the key is referenced by column, not
    # re-rendered with fresh bind parameters in GROUP BY.
    matched = (
        select(
            (key if key is not None else null()).label("_id"),
            *(_summand(expr["$sum"]).label(name) for name, expr in accumulators.items()),
        )
        .select_from(DocumentRow)
        .where(*conditions)
        .subquery("matched")
    )
    columns: dict[str, ColumnElement[Any]] = {
        "_id": matched.c["_id"] if key is not None else null().label("_id")
    }
    for name in accumulators:
        columns[name] = func.coalesce(func.sum(matched.c[name]), 0).label(name)

    statement = select(*columns.values()).select_from(matched)
    if key is None:
        # Without a key the aggregate row must not appear when nothing matched
        statement = statement.having(func.count() > 0)
    else:
        statement = statement.group_by(matched.c["_id"])

    for name, direction in (sort or {}).items():
        if name not in columns:
            raise QueryError(f"cannot sort grouped rows by {name}")
        column = columns[name]
        statement = statement.order_by(
            column.desc() if sort_direction(direction) < 0 else column.asc()
        )
    return statement


def _group_key(expr: Any) -> ColumnElement[Any] | None:
    if expr is None:
        return None
    if isinstance(expr, str) and expr.startswith("$"):
        path = expr[1:]
        return _COLUMNS[path] if path in _COLUMNS else body_field(path)
    raise QueryError(f"unsupported $group key {expr!r}")


def _summand(expr: Any) -> ColumnElement[Any]:
    """Per-document $sum input; non-numeric values contribute NULL."""
    if isinstance(expr, str) and expr.startswith("$"):
        value = body_field(expr[1:])
        return case(
            (func.jsonb_typeof(value) == "number", cast(value.as_string(), Numeric)),
            else_=null(),
        )
    if isinstance(expr, (int, float)) and not isinstance(expr, bool):
        return literal(expr)
    raise QueryError(f"unsupported $sum expression {expr!r}")


def to_number(value: Any) -> Any:
    """Decimal aggregates as int when integral, float otherwise."""
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    return value
