# type: ignore
# pyright: reportMissingImports=false, reportGeneralTypeErrors=false
"""
Repository: generic document store over SQLAlchemy Core: pure CRUD, no business rules.

Documents are plain dicts keyed by API field names. Each public call runs in
its own transaction; callers composing several calls get no atomicity across them.
"""
import uuid
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional

from sqlalchemy import Column, Table, delete, func, insert, select, text, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.types import DateTime

from taskapi.core.errors import ConflictError, StoreError
from taskapi.core.logging import get_logger
from taskapi.core.timestamps import isoformat_utc, parse_timestamp, to_utc_naive, utcnow
from taskapi.repositories.filters import FilterCompiler, SetField

logger = get_logger(__name__)


class DocumentRepository:
    """Subclasses bind ``table``, the field→column map and any set-valued fields."""

    table: Table = None
    fields: Dict[str, Column] = {}
    set_fields: Dict[str, SetField] = {}
    normalizers: Dict[str, Callable[[str], str]] = {}
    defaults: Dict[str, Any] = {}
    # substring of the violated constraint's error text -> client message
    conflict_messages: Dict[str, str] = {}

    def __init__(self, engine: Engine):
        self._engine = engine
        self._id = self.table.c.id
        self._compiler = FilterCompiler(self.fields, self.set_fields, self._id, self.normalizers)

    @property
    def name(self) -> str:
        return self.table.name

    # ── Read ───────────────────────────────────────────────────────────

    def find(self, filter: Optional[Dict[str, Any]] = None, projection: Any = None,
             sort: Optional[Dict[str, Any]] = None, skip: Optional[int] = None,
             limit: Optional[int] = None) -> List[Dict[str, Any]]:
        where = self._compiler.compile(filter)
        order_by = self._compiler.compile_sort(sort)
        shape = self._compiler.parse_projection(projection)

        stmt = select(self.table).where(where)
        if order_by:
            stmt = stmt.order_by(*order_by)
        if skip:
            stmt = stmt.offset(skip)
        if limit:
            stmt = stmt.limit(limit)

        with self._transaction() as conn:
            rows = conn.execute(stmt).mappings().all()
            docs = self._materialise(conn, rows)
        return [shape.apply(d) for d in docs] if shape else docs

    def find_one(self, filter: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
        docs = self.find(filter, limit=1)
        return docs[0] if docs else None

    def find_by_id(self, doc_id: str, projection: Any = None) -> Optional[Dict[str, Any]]:
        docs = self.find({"id": doc_id}, projection=projection, limit=1)
        return docs[0] if docs else None

    def count(self, filter: Optional[Dict[str, Any]] = None) -> int:
        where = self._compiler.compile(filter)
        with self._transaction() as conn:
            return conn.execute(
                select(func.count()).select_from(self.table).where(where)
            ).scalar() or 0

    # ── Write ──────────────────────────────────────────────────────────

    def insert(self, document: Dict[str, Any]) -> Dict[str, Any]:
        doc = {k: (list(v) if isinstance(v, list) else v) for k, v in self.defaults.items()}
        doc.update(document)
        doc.setdefault("id", str(uuid.uuid4()))
        doc.setdefault("createdAt", utcnow())

        with self._transaction(write=True) as conn:
            conn.execute(insert(self.table).values(**self._column_values(doc)))
            for name, field in self.set_fields.items():
                self._add_members(conn, field, doc["id"], doc.get(name) or [])
        logger.debug("Inserted %s id=%s", self.name, doc["id"])
        return self.find_by_id(doc["id"])

    def save(self, document: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Write back every supplied field of an existing document.

        Set fields present in ``document`` replace the stored set. Returns the
        refreshed document, or ``None`` when no document has that id.
        """
        doc_id = document["id"]
        with self._transaction(write=True) as conn:
            if conn.execute(select(self._id).where(self._id == doc_id)).first() is None:
                return None
            values = self._column_values(
                {k: v for k, v in document.items() if k not in ("id", "createdAt")}
            )
            if values:
                conn.execute(update(self.table).where(self._id == doc_id).values(**values))
            for name, field in self.set_fields.items():
                if name in document:
                    conn.execute(delete(field.table).where(field.owner == doc_id))
                    self._add_members(conn, field, doc_id, document[name] or [])
        return self.find_by_id(doc_id)

    def update_one(self, filter: Dict[str, Any], patch: Dict[str, Any]) -> int:
        return self._update(filter, patch, many=False)

    def update_many(self, filter: Dict[str, Any], patch: Dict[str, Any]) -> int:
        return self._update(filter, patch, many=True)

    def delete_one(self, doc_id: str) -> bool:
        with self._transaction(write=True) as conn:
            for field in self.set_fields.values():
                conn.execute(delete(field.table).where(field.owner == doc_id))
            result = conn.execute(delete(self.table).where(self._id == doc_id))
        return result.rowcount > 0

    # ── Ops ────────────────────────────────────────────────────────────

    def verify_connection(self):
        with self._engine.connect() as conn:
            conn.execute(text("SELECT 1"))

    # ── Private ────────────────────────────────────────────────────────

    @contextmanager
    def _transaction(self, write: bool = False):
        try:
            with (self._engine.begin() if write else self._engine.connect()) as conn:
                yield conn
        except IntegrityError as exc:
            logger.warning("Unique constraint violated on %s: %s", self.name, exc.orig)
            raise ConflictError(self._conflict_message(exc)) from exc
        except SQLAlchemyError as exc:
            logger.error("Store failure on %s: %s", self.name, exc)
            raise StoreError() from exc

    def _conflict_message(self, exc: IntegrityError) -> str:
        detail = str(exc.orig)
        for marker, message in self.conflict_messages.items():
            if marker in detail:
                return message
        return f"duplicate key in {self.name}"

    def _update(self, filter: Dict[str, Any], patch: Dict[str, Any], many: bool) -> int:
        where = self._compiler.compile(filter)
        sets, additions, removals = self._parse_patch(patch)

        with self._transaction(write=True) as conn:
            stmt = select(self._id).where(where)
            if not many:
                stmt = stmt.limit(1)
            ids = list(conn.execute(stmt).scalars())
            if not ids:
                return 0
            if sets:
                conn.execute(update(self.table).where(self._id.in_(ids)).values(**sets))
            for name, members in additions.items():
                for owner_id in ids:
                    self._add_members(conn, self.set_fields[name], owner_id, members)
            for name, members in removals.items():
                field = self.set_fields[name]
                conn.execute(
                    delete(field.table).where(field.owner.in_(ids), field.member.in_(members))
                )
        return len(ids)

    def _parse_patch(self, patch: Dict[str, Any]):
        if not isinstance(patch, dict) or not patch:
            raise ValueError("update patch must be a non-empty mapping")
        sets: Dict[str, Any] = {}
        additions: Dict[str, List[str]] = {}
        removals: Dict[str, List[str]] = {}
        for op, body in patch.items():
            if op == "$set":
                unknown = [k for k in body if k not in self.fields or k == "id"]
                if unknown:
                    raise ValueError(f"cannot $set {unknown} on {self.name}")
                sets.update(self._column_values(body))
            elif op in ("$addToSet", "$pull"):
                nested = "$each" if op == "$addToSet" else "$in"
                for name, value in body.items():
                    if name not in self.set_fields:
                        raise ValueError(f"{op} needs a set field, got '{name}'")
                    members = value[nested] if isinstance(value, dict) else [value]
                    (additions if op == "$addToSet" else removals)[name] = list(members)
            else:
                raise ValueError(f"unsupported update operator '{op}'")
        return sets, additions, removals

    def _column_values(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        values: Dict[str, Any] = {}
        for name, value in doc.items():
            if name in self.set_fields:
                continue
            column = self.fields.get(name)
            if column is None:
                raise ValueError(f"unknown field '{name}' for {self.name}")
            if isinstance(column.type, DateTime) and value is not None:
                value = to_utc_naive(value) if isinstance(value, datetime) else parse_timestamp(value)
            elif isinstance(value, str) and name in self.normalizers:
                value = self.normalizers[name](value)
            values[column.name] = value
        return values

    @staticmethod
    def _add_members(conn, field: SetField, owner_id: str, members: Iterable[str]) -> None:
        wanted = list(dict.fromkeys(members))
        if not wanted:
            return
        present = set(conn.execute(
            select(field.member).where(field.owner == owner_id, field.member.in_(wanted))
        ).scalars())
        rows = [
            {field.owner.name: owner_id, field.member.name: m}
            for m in wanted if m not in present
        ]
        if rows:
            conn.execute(insert(field.table), rows)

    def _materialise(self, conn, rows) -> List[Dict[str, Any]]:
        docs = []
        for row in rows:
            doc = {}
            for name, column in self.fields.items():
                value = row[column.name]
                doc[name] = isoformat_utc(value) if isinstance(value, datetime) else value
            docs.append(doc)
        if not docs or not self.set_fields:
            return docs

        ids = [d["id"] for d in docs]
        for name, field in self.set_fields.items():
            members: Dict[str, List[str]] = {i: [] for i in ids}
            result = conn.execute(
                select(field.owner, field.member)
                .where(field.owner.in_(ids))
                .order_by(field.order)
            )
            for owner_id, member in result:
                members[owner_id].append(member)
            for doc in docs:
                doc[name] = members[doc["id"]]
        return docs
