# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
MongoDB-style query documents → SQLAlchemy Core.

Supports field equality, ``$eq $ne $gt $gte $lt $lte $in $nin $exists $regex``,
the logical ``$and $or $nor`` and, for set-valued fields (stored in a side
table), membership via ``value``/``$in``/``$nin``/``$all``/``$ne``/``$size``.
Anything else is rejected with ``InvalidQuery``.
"""
import re
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Tuple

from sqlalchemy import Column, Table, and_, false, func, not_, or_, select, true
from sqlalchemy.types import Boolean, DateTime, String

from taskapi.core.errors import InvalidQuery
from taskapi.core.timestamps import parse_timestamp

_COMPARISONS = {
    "$gt": lambda col, v: col > v,
    "$gte": lambda col, v: col >= v,
    "$lt": lambda col, v: col < v,
    "$lte": lambda col, v: col <= v,
}
_LOGICAL = ("$and", "$or", "$nor")
_ASCENDING = (1, "1", "asc", "ascending")
_DESCENDING = (-1, "-1", "desc", "descending")


class SetField(NamedTuple):
    """A set-valued document field kept in a side table (owner, member, order)."""
    table: Table
    owner: Column
    member: Column
    order: Column


def _is_operator_doc(value: Any) -> bool:
    return isinstance(value, dict) and bool(value) and all(
        isinstance(k, str) and k.startswith("$") for k in value
    )


class Projection:
    """Inclusion or exclusion projection applied to materialised documents."""

    def __init__(self, fields: Tuple[str, ...], include: bool, keep_id: bool = True):
        self.fields = fields
        self.include = include
        self.keep_id = keep_id

    def apply(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        if self.include:
            shaped = {k: v for k, v in doc.items() if k in self.fields}
            if self.keep_id and "id" in doc:
                shaped = {"id": doc["id"], **shaped}
            return shaped
        shaped = {k: v for k, v in doc.items() if k not in self.fields}
        if not self.keep_id:
            shaped.pop("id", None)
        return shaped


class FilterCompiler:
    def __init__(self, fields: Dict[str, Column], set_fields: Dict[str, SetField],
                 id_column: Column, normalizers: Optional[Dict[str, Callable[[str], str]]] = None):
        self._fields = fields
        self._set_fields = set_fields
        self._id = id_column
        self._normalizers = normalizers or {}

    # ── Filter ─────────────────────────────────────────────────────────

    def compile(self, spec: Optional[Dict[str, Any]]):
        if spec is None:
            return true()
        if not isinstance(spec, dict):
            raise InvalidQuery("filter must be a JSON object")
        clauses = []
        for key, value in spec.items():
            if key in _LOGICAL:
                clauses.append(self._logical(key, value))
            elif key.startswith("$"):
                raise InvalidQuery(f"Unsupported operator '{key}'")
            elif key in self._set_fields:
                clauses.append(self._set_condition(key, value))
            elif key in self._fields:
                clauses.append(self._field_condition(key, value))
            else:
                raise InvalidQuery(f"Unknown field '{key}'")
        if not clauses:
            return true()
        return clauses[0] if len(clauses) == 1 else and_(*clauses)

    def _logical(self, op: str, value: Any):
        if not isinstance(value, list) or not value:
            raise InvalidQuery(f"'{op}' expects a non-empty array of filters")
        for sub in value:
            if not isinstance(sub, dict):
                raise InvalidQuery(f"'{op}' expects a non-empty array of filters")
        parts = [self.compile(sub) for sub in value]
        if op == "$and":
            return and_(*parts)
        if op == "$or":
            return or_(*parts)
        return not_(or_(*parts))

    def _field_condition(self, name: str, value: Any):
        column = self._fields[name]
        if isinstance(value, dict):
            if not _is_operator_doc(value):
                raise InvalidQuery(f"Invalid condition for field '{name}'")
            if "$options" in value and "$regex" not in value:
                raise InvalidQuery("'$options' requires '$regex'")
            return and_(*[
                self._operator(name, column, op, operand, value)
                for op, operand in value.items() if op != "$options"
            ])
        return self._equals(name, column, value)

    def _equals(self, name: str, column: Column, value: Any):
        if value is None:
            return column.is_(None)
        return column == self._coerce(name, column, value)

    def _operator(self, name: str, column: Column, op: str, operand: Any, condition: Dict[str, Any]):
        if op == "$eq":
            return self._equals(name, column, operand)
        if op == "$ne":
            if operand is None:
                return column.is_not(None)
            return or_(column != self._coerce(name, column, operand), column.is_(None))
        if op in _COMPARISONS:
            if operand is None:
                raise InvalidQuery(f"'{op}' on '{name}' needs a value")
            return _COMPARISONS[op](column, self._coerce(name, column, operand))
        if op in ("$in", "$nin"):
            if not isinstance(operand, list):
                raise InvalidQuery(f"'{op}' on '{name}' expects an array")
            has_null = any(v is None for v in operand)
            values = [self._coerce(name, column, v) for v in operand if v is not None]
            if op == "$in":
                clause = column.in_(values)
                return or_(clause, column.is_(None)) if has_null else clause
            clause = column.not_in(values)
            return and_(clause, column.is_not(None)) if has_null else or_(clause, column.is_(None))
        if op == "$exists":
            if not isinstance(operand, bool):
                raise InvalidQuery(f"'$exists' on '{name}' expects a boolean")
            return column.is_not(None) if operand else column.is_(None)
        if op == "$regex":
            if not isinstance(column.type, String) or not isinstance(operand, str):
                raise InvalidQuery("'$regex' is only valid on text fields with a string pattern")
            options = condition.get("$options", "")
            if not isinstance(options, str) or set(options) - {"i"}:
                raise InvalidQuery("Only the 'i' regex option is supported")
            try:
                re.compile(operand)
            except re.error as exc:
                raise InvalidQuery(f"Invalid regular expression: {exc}") from exc
            return column.regexp_match(f"(?i){operand}" if options else operand)
        raise InvalidQuery(f"Unsupported operator '{op}' on field '{name}'")

    def _coerce(self, name: str, column: Column, value: Any) -> Any:
        if isinstance(value, (dict, list)):
            raise InvalidQuery(f"Invalid value for field '{name}'")
        if isinstance(column.type, DateTime):
            try:
                return parse_timestamp(value)
            except ValueError as exc:
                raise InvalidQuery(f"Invalid timestamp for field '{name}'") from exc
        if isinstance(column.type, Boolean):
            if not isinstance(value, bool):
                raise InvalidQuery(f"Field '{name}' expects a boolean")
            return value
        if not isinstance(value, str):
            raise InvalidQuery(f"Field '{name}' expects a string")
        normalise = self._normalizers.get(name)
        return normalise(value) if normalise else value

    # ── Set-valued fields ──────────────────────────────────────────────

    def _set_condition(self, name: str, value: Any):
        field = self._set_fields[name]
        if not isinstance(value, dict):
            return self._contains_any(field, [self._member(name, value)])
        if not _is_operator_doc(value):
            raise InvalidQuery(f"Invalid condition for field '{name}'")
        clauses = []
        for op, operand in value.items():
            if op == "$eq":
                clauses.append(self._contains_any(field, [self._member(name, operand)]))
            elif op == "$ne":
                clauses.append(not_(self._contains_any(field, [self._member(name, operand)])))
            elif op in ("$in", "$nin", "$all"):
                if not isinstance(operand, list):
                    raise InvalidQuery(f"'{op}' on '{name}' expects an array")
                members = [self._member(name, v) for v in operand]
                if op == "$in":
                    clauses.append(self._contains_any(field, members))
                elif op == "$nin":
                    clauses.append(not_(self._contains_any(field, members)))
                else:
                    clauses.append(and_(true(), *[self._contains_any(field, [m]) for m in members]))
            elif op == "$size":
                if isinstance(operand, bool) or not isinstance(operand, int) or operand < 0:
                    raise InvalidQuery(f"'$size' on '{name}' expects a non-negative integer")
                size = (
                    select(func.count())
                    .select_from(field.table)
                    .where(field.owner == self._id)
                    .scalar_subquery()
                )
                clauses.append(size == operand)
            elif op == "$exists":
                if not isinstance(operand, bool):
                    raise InvalidQuery(f"'$exists' on '{name}' expects a boolean")
                clauses.append(true() if operand else false())
            else:
                raise InvalidQuery(f"Unsupported operator '{op}' on field '{name}'")
        return clauses[0] if len(clauses) == 1 else and_(*clauses)

    def _contains_any(self, field: SetField, members: List[str]):
        return (
            select(field.member)
            .where(field.owner == self._id, field.member.in_(members))
            .exists()
        )

    @staticmethod
    def _member(name: str, value: Any) -> str:
        if not isinstance(value, str):
            raise InvalidQuery(f"Elements of '{name}' are string ids")
        return value

    # ── Sort / projection ──────────────────────────────────────────────

    def compile_sort(self, spec: Optional[Dict[str, Any]]) -> list:
        if spec is None:
            return []
        if not isinstance(spec, dict):
            raise InvalidQuery("sort must be a JSON object")
        order_by = []
        for name, direction in spec.items():
            column = self._fields.get(name)
            if column is None:
                raise InvalidQuery(f"Cannot sort by '{name}'")
            if isinstance(direction, str):
                direction = direction.lower()
            if isinstance(direction, bool) or direction not in _ASCENDING + _DESCENDING:
                raise InvalidQuery(f"Invalid sort direction for '{name}'")
            order_by.append(column.asc() if direction in _ASCENDING else column.desc())
        return order_by

    def parse_projection(self, spec: Any) -> Optional[Projection]:
        if spec is None:
            return None
        known = set(self._fields) | set(self._set_fields)
        if isinstance(spec, list):
            if not all(isinstance(f, str) for f in spec):
                raise InvalidQuery("select must list field names")
            spec = {f: 1 for f in spec}
        if not isinstance(spec, dict):
            raise InvalidQuery("select must be a JSON object")
        include, exclude = [], []
        keep_id = True
        for name, flag in spec.items():
            if name not in known:
                raise InvalidQuery(f"Unknown field '{name}' in select")
            if flag not in (0, 1) or isinstance(flag, float):
                raise InvalidQuery(f"Invalid select flag for '{name}'")
            if name == "id":
                keep_id = bool(flag)
                continue
            (include if flag else exclude).append(name)
        if include and exclude:
            raise InvalidQuery("select cannot mix inclusion and exclusion")
        if include:
            return Projection(tuple(include), include=True, keep_id=keep_id)
        if exclude or not keep_id:
            return Projection(tuple(exclude), include=False, keep_id=keep_id)
        if spec.get("id") == 1:
            return Projection((), include=True, keep_id=True)
        return None
