"""In-process evaluation of Mongo-style filters, updates and pipelines.

Used by InMemoryDocumentStore.  SqlDocumentStore compiles the same subset to
SQL (see sql_query.py) and only shares sort_direction() and project() with
this module.  Supported subset:

  filters   : field equality, dotted paths, $and, $or, $nor,
              $eq, $ne, $in, $nin, $gt, $gte, $lt, $lte, $exists
  updates   : $set, $unset, $inc (a mapping without operators is a $set)
  sort      : {field: 1 | -1 | "asc" | "desc"}, applied left to right
  projection: {field: 1} inclusion or {field: 0} exclusion; "id" is kept
              unless excluded explicitly
  pipeline  : $match, $group (+ $sum), $sort, $skip, $limit, $project
"""

from __future__ import annotations

import copy
from typing import Any, Iterable, Mapping, Sequence

_MISSING = object()


class QueryError(ValueError):
    """Raised for unsupported or malformed operators."""


# ─────────────────────────────────────────────────────────────────────────── #
# Filters                                                                      #
# ─────────────────────────────────────────────────────────────────────────── #


def matches(document: Mapping[str, Any], filter: Mapping[str, Any] | None) -> bool:
    """True when document satisfies every clause of filter."""
    if not filter:
        return True
    for key, condition in filter.items():
        if key == "$and":
            if not all(matches(document, clause) for clause in condition):
                return False
        elif key == "$or":
            if not any(matches(document, clause) for clause in condition):
                return False
        elif key == "$nor":
            if any(matches(document, clause) for clause in condition):
                return False
        elif key.startswith("$"):
            raise QueryError(f"unsupported top-level operator {key}")
        elif not _match_field(resolve(document, key), condition):
            return False
    return True


def resolve(document: Mapping[str, Any], path: str) -> Any:
    """Value at a dotted path, or the module's missing sentinel."""
    value: Any = document
    for part in path.split("."):
        if not isinstance(value, Mapping) or part not in value:
            return _MISSING
        value = value[part]
    return value


def is_operator_dict(condition: Any) -> bool:
    return isinstance(condition, Mapping) and bool(condition) and all(
        str(key).startswith("$") for key in condition
    )


def _match_field(value: Any, condition: Any) -> bool:
    if not is_operator_dict(condition):
        return _equals(value, condition)
    return all(_apply_operator(value, op, operand) for op, operand in condition.items())


def _equals(value: Any, expected: Any) -> bool:
    if value is _MISSING:
        return expected is None
    if isinstance(value, list) and not isinstance(expected, list):
        return expected in value
    return value == expected


def _apply_operator(value: Any, op: str, operand: Any) -> bool:
    if op == "$eq":
        return _equals(value, operand)
    if op == "$ne":
        return not _equals(value, operand)
    if op == "$in":
        return any(_equals(value, candidate) for candidate in operand)
    if op == "$nin":
        return not any(_equals(value, candidate) for candidate in operand)
    if op == "$exists":
        return (value is not _MISSING) == bool(operand)
    if op in ("$gt", "$gte", "$lt", "$lte"):
        if value is _MISSING or value is None or operand is None:
            return False
        try:
            if op == "$gt":
                return value > operand
            if op == "$gte":
                return value >= operand
            if op == "$lt":
                return value < operand
            return value <= operand
        except TypeError:
            return False
    raise QueryError(f"unsupported operator {op}")


# ─────────────────────────────────────────────────────────────────────────── #
# Updates                                                                      #
# ─────────────────────────────────────────────────────────────────────────── #


def apply_update(document: Mapping[str, Any], update: Mapping[str, Any]) -> dict[str, Any]:
    """Return a new document with update applied.  "id" can never change."""
    result = copy.deepcopy(dict(document))
    if update and not any(str(key).startswith("$") for key in update):
        update = {"$set": update}

    for op, fields in update.items():
        if op == "$set":
            for path, value in fields.items():
                _assign(result, path, copy.deepcopy(value))
        elif op == "$unset":
            for path in fields:
                _remove(result, path)
        elif op == "$inc":
            for path, amount in fields.items():
                current = resolve(result, path)
                base = 0 if current is _MISSING or current is None else current
                _assign(result, path, base + amount)
        else:
            raise QueryError(f"unsupported update operator {op}")

    if "id" in document:
        result["id"] = document["id"]
    return result


def _assign(document: dict[str, Any], path: str, value: Any) -> None:
    *parents, leaf = path.split(".")
    target = document
    for part in parents:
        target = target.setdefault(part, {})
    target[leaf] = value


def _remove(document: dict[str, Any], path: str) -> None:
    *parents, leaf = path.split(".")
    target: Any = document
    for part in parents:
        target = target.get(part) if isinstance(target, dict) else None
        if target is None:
            return
    if isinstance(target, dict):
        target.pop(leaf, None)


# ─────────────────────────────────────────────────────────────────────────── #
# Sort / projection                                                            #
# ─────────────────────────────────────────────────────────────────────────── #


def sort_documents(
    documents: Sequence[Mapping[str, Any]], sort: Mapping[str, int] | None
) -> list[Mapping[str, Any]]:
    """Stable multi-key sort.  Missing / None values sort first ascending."""
    ordered = list(documents)
    if not sort:
        return ordered
    for field, direction in reversed(list(sort.items())):
        descending = sort_direction(direction) < 0
        ordered.sort(key=lambda doc, f=field: _sort_key(resolve(doc, f)), reverse=descending)
    return ordered


_DIRECTIONS = {1: 1, -1: -1, "asc": 1, "ascending": 1, "desc": -1, "descending": -1}


def sort_direction(value: Any) -> int:
    """Normalise a sort direction (1 / -1 / "asc" / "desc") to 1 or -1."""
    key = value.lower() if isinstance(value, str) else value
    if isinstance(key, bool) or not isinstance(key, (int, str)) or key not in _DIRECTIONS:
        raise QueryError(f"invalid sort direction {value!r}")
    return _DIRECTIONS[key]


def _sort_key(value: Any) -> tuple[int, Any]:
    if value is _MISSING or value is None:
        return (0, 0)
    if isinstance(value, bool):
        return (1, int(value))
    if isinstance(value, (int, float)):
        return (1, value)
    return (2, str(value))


def project(document: Mapping[str, Any], projection: Mapping[str, int] | None) -> dict[str, Any]:
    if not projection:
        return dict(document)
    included = [field for field, flag in projection.items() if flag and field != "id"]
    keep_id = projection.get("id", 1) != 0

    if included:
        result: dict[str, Any] = {}
        if keep_id and "id" in document:
            result["id"] = document["id"]
        for field in included:
            value = resolve(document, field)
            if value is not _MISSING:
                _assign(result, field, value)
        return result

    excluded = {field for field, flag in projection.items() if not flag}
    return {key: value for key, value in document.items() if key not in excluded}


# ─────────────────────────────────────────────────────────────────────────── #
# Aggregation                                                                  #
# ─────────────────────────────────────────────────────────────────────────── #


def run_pipeline(
    documents: Iterable[Mapping[str, Any]], pipeline: Sequence[Mapping[str, Any]]
) -> list[dict[str, Any]]:
    rows: list[dict[str, Any]] = [dict(doc) for doc in documents]
    for stage in pipeline:
        if len(stage) != 1:
            raise QueryError("each pipeline stage must have exactly one operator")
        ((op, spec),) = stage.items()
        if op == "$match":
            rows = [row for row in rows if matches(row, spec)]
        elif op == "$group":
            rows = _group(rows, spec)
        elif op == "$sort":
            rows = [dict(row) for row in sort_documents(rows, spec)]
        elif op == "$skip":
            rows = rows[int(spec):]
        elif op == "$limit":
            rows = rows[: int(spec)]
        elif op == "$project":
            rows = [project(row, spec) for row in rows]
        else:
            raise QueryError(f"unsupported pipeline stage {op}")
    return rows


def _group(rows: list[dict[str, Any]], spec: Mapping[str, Any]) -> list[dict[str, Any]]:
    if "_id" not in spec:
        raise QueryError("$group requires an _id expression")
    key_expr = spec["_id"]
    accumulators = {name: expr for name, expr in spec.items() if name != "_id"}

    groups: dict[Any, list[dict[str, Any]]] = {}
    for row in rows:
        groups.setdefault(_evaluate(row, key_expr), []).append(row)

    output = []
    for key, members in groups.items():
        grouped: dict[str, Any] = {"_id": key}
        for name, expr in accumulators.items():
            if not is_operator_dict(expr) or set(expr) != {"$sum"}:
                raise QueryError(f"unsupported accumulator for {name}")
            grouped[name] = _sum(members, expr["$sum"])
        output.append(grouped)
    return output


def _evaluate(row: Mapping[str, Any], expr: Any) -> Any:
    if isinstance(expr, str) and expr.startswith("$"):
        value = resolve(row, expr[1:])
        return None if value is _MISSING else value
    return expr


def _sum(rows: Sequence[Mapping[str, Any]], expr: Any) -> int | float:
    total: int | float = 0
    for row in rows:
        value = _evaluate(row, expr)
        # Non-numeric values are ignored, booleans included
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            total += value
    return total
