"""
Repository for document collections.

One DocumentRepository serves one named collection of the document store.
It is the only place that knows documents live in a SQLite `documents` table.

Architecture:
    CollectionService -> DocumentRepository -> Database

Behaviour:
- create/update stamp `createdAt`/`updatedAt` (ISO 8601 UTC strings)
- get_all filters, sorts and cursor-paginates (QueryOptions -> Page)
- reads go through the shared QueryCache; writes invalidate the collection
- sqlite3 failures are translated into DataAccessError codes
- last write wins: no retries, no optimistic concurrency
"""
import copy
import json
import logging
import sqlite3
import uuid
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Protocol, Sequence, Tuple

from telehealth_svc.core.datetime_utils import utc_now_iso
from telehealth_svc.core.exceptions import (
    DataAccessError,
    DocumentNotFoundError,
    InvalidQueryError,
)
from telehealth_svc.repositories.base import Database
from telehealth_svc.repositories.cache import QueryCache
from telehealth_svc.repositories.query import Filter, Page, QueryOptions, validate_field_name

logger = logging.getLogger(__name__)

# Keys the repository owns; callers cannot set them through create/update
RESERVED_KEYS = ("id", "createdAt", "updatedAt")

_COMPARISON_SQL = {"==": "=", "!=": "!=", "<": "<", "<=": "<=", ">": ">", ">=": ">="}


class Repository(Protocol):
    """Data-access contract every collection repository satisfies."""

    collection: str

    def get_all(self, options: Optional[QueryOptions] = None) -> Page: ...

    def get_by_id(self, doc_id: str) -> Optional[Dict[str, Any]]: ...

    def create(self, data: Dict[str, Any]) -> Dict[str, Any]: ...

    def update(self, doc_id: str, data: Dict[str, Any]) -> Dict[str, Any]: ...

    def delete(self, doc_id: str) -> None: ...

    def count(self, filters: Optional[Sequence[Filter]] = None) -> int: ...


def new_document_id() -> str:
    """Random 20-character document id."""
    return uuid.uuid4().hex[:20]


def classify_sqlite_error(error: sqlite3.Error) -> str:
    """Map a sqlite3 exception onto a document-store error code."""
    message = str(error).lower()
    if isinstance(error, sqlite3.IntegrityError) and "unique" in message:
        return "already-exists"
    if "locked" in message or "busy" in message:
        return "deadline-exceeded"
    if "readonly" in message or "read-only" in message or "not authorized" in message:
        return "permission-denied"
    if "full" in message:
        return "resource-exhausted"
    if "unable to open" in message or "disk i/o" in message:
        return "unavailable"
    return "unknown"


def _field_sql(field_name: str) -> str:
    """SQL expression reading `field_name` from a document row."""
    validate_field_name(field_name)
    if field_name == "id":
        return "id"
    return f"json_extract(data, '$.{field_name}')"


def _bind(value: Any, field_name: str) -> Any:
    if isinstance(value, (dict, list, tuple)):
        raise InvalidQueryError(
            detail=f"Filter on '{field_name}' needs a scalar value",
            field=field_name,
        )
    if isinstance(value, bool):
        return int(value)
    return value


def _filter_sql(f: Filter) -> Tuple[str, List[Any]]:
    """Translate one Filter into a SQL predicate and its parameters."""
    expr = _field_sql(f.field)

    if f.op in _COMPARISON_SQL:
        return f"{expr} {_COMPARISON_SQL[f.op]} ?", [_bind(f.value, f.field)]

    values = [_bind(v, f.field) for v in f.value] if f.op != "array-contains" else []
    placeholders = ", ".join("?" for _ in values)

    if f.op == "in":
        return (f"{expr} IN ({placeholders})", values) if values else ("0", [])
    if f.op == "not-in":
        return (f"{expr} NOT IN ({placeholders})", values) if values else (f"{expr} IS NOT NULL", [])

    path = f"'$.{f.field}'"
    is_array = f"json_type(data, {path}) = 'array'"
    if f.op == "array-contains":
        return (
            f"({is_array} AND EXISTS (SELECT 1 FROM json_each(data, {path}) WHERE json_each.value = ?))",
            [_bind(f.value, f.field)],
        )
    # array-contains-any
    if not values:
        return "0", []
    return (
        f"({is_array} AND EXISTS (SELECT 1 FROM json_each(data, {path}) "
        f"WHERE json_each.value IN ({placeholders})))",
        values,
    )


class DocumentRepository:
    """
    Repository for CRUD operations on one document collection.

    Instantiated per request via telehealth_svc.core.dependencies.
    """

    def __init__(self, db: Database, collection: str, cache: Optional[QueryCache] = None):
        """
        Args:
            db: Database instance for data access.
            collection: Name of the collection this repository serves.
            cache: Shared query cache; reads are uncached when None.
        """
        self._db = db
        self._cache = cache
        self.collection = collection

    # -------------------------------------------------------------------------
    # Plumbing
    # -------------------------------------------------------------------------

    @contextmanager
    def _connection(self, operation: str) -> Iterator[sqlite3.Connection]:
        """Open a connection and translate sqlite3 failures into DataAccessError."""
        try:
            conn = self._db.get_connection()
        except sqlite3.Error as e:
            raise self._translate(e, operation) from e
        try:
            yield conn
        except sqlite3.Error as e:
            conn.rollback()
            raise self._translate(e, operation) from e
        finally:
            conn.close()

    def _translate(self, error: sqlite3.Error, operation: str) -> DataAccessError:
        code = classify_sqlite_error(error)
        logger.error(
            "Document store operation failed",
            extra={"collection": self.collection, "operation": operation, "code": code, "error": str(error)}
        )
        return DataAccessError(code=code, message=str(error), collection=self.collection, operation=operation)

    def _cached(self, key: str, loader):
        if self._cache is None:
            return loader()
        return copy.deepcopy(self._cache.get_or_load(self.collection, key, loader))

    def _invalidate(self) -> None:
        if self._cache is not None:
            self._cache.invalidate(self.collection)

    @staticmethod
    def _row_to_document(row: sqlite3.Row) -> Dict[str, Any]:
        return {"id": row["id"], **json.loads(row["data"])}

    @staticmethod
    def _clean(data: Dict[str, Any]) -> Dict[str, Any]:
        return {k: v for k, v in data.items() if k not in RESERVED_KEYS}

    def _where(self, filters: Sequence[Filter]) -> Tuple[List[str], List[Any]]:
        conditions = ["collection = ?"]
        params: List[Any] = [self.collection]
        for f in filters:
            if f.value is None:
                continue
            sql, values = _filter_sql(f)
            conditions.append(sql)
            params.extend(values)
        return conditions, params

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get_all(self, options: Optional[QueryOptions] = None) -> Page:
        """
        Get one page of documents.

        Defaults: newest first by createdAt, DEFAULT_PAGE_SIZE items.
        Documents missing the sort field are excluded.

        Raises:
            InvalidQueryError: Unknown cursor id, or cursor document lacks the sort field.
            DataAccessError: Backend failure.
        """
        options = options or QueryOptions()
        return self._cached("get_all:" + options.cache_key(), lambda: self._query_page(options))

    def _query_page(self, options: QueryOptions) -> Page:
        sort_expr = _field_sql(options.order_by)
        direction = "DESC" if options.direction == "desc" else "ASC"
        conditions, params = self._where(options.active_filters)
        if options.order_by != "id":
            conditions.append(f"{sort_expr} IS NOT NULL")

        with self._connection("get_all") as conn:
            total = conn.execute(
                f"SELECT COUNT(*) FROM documents WHERE {' AND '.join(conditions)}",
                params,
            ).fetchone()[0]

            page_conditions = list(conditions)
            page_params = list(params)
            if options.start_after is not None:
                cursor = conn.execute(
                    f"SELECT seq, {sort_expr} AS sort_value FROM documents WHERE collection = ? AND id = ?",
                    (self.collection, options.start_after),
                ).fetchone()
                if cursor is None or cursor["sort_value"] is None:
                    raise InvalidQueryError(
                        detail="startAfter does not refer to a document in this listing",
                        collection=self.collection,
                        start_after=options.start_after,
                    )
                cmp = "<" if direction == "DESC" else ">"
                page_conditions.append(f"({sort_expr} {cmp} ? OR ({sort_expr} = ? AND seq {cmp} ?))")
                page_params.extend([cursor["sort_value"], cursor["sort_value"], cursor["seq"]])

            rows = conn.execute(
                f"SELECT id, data FROM documents WHERE {' AND '.join(page_conditions)} "
                f"ORDER BY {sort_expr} {direction}, seq {direction} LIMIT ?",
                page_params + [options.page_size + 1],
            ).fetchall()

        has_more = len(rows) > options.page_size
        items = [self._row_to_document(row) for row in rows[:options.page_size]]
        return Page(
            items=items,
            has_more=has_more,
            last_id=items[-1]["id"] if items else None,
            total=total,
        )

    def get_by_id(self, doc_id: str) -> Optional[Dict[str, Any]]:
        """Get a document by id, or None if it does not exist."""
        def load() -> Optional[Dict[str, Any]]:
            with self._connection("get_by_id") as conn:
                row = conn.execute(
                    "SELECT id, data FROM documents WHERE collection = ? AND id = ?",
                    (self.collection, doc_id),
                ).fetchone()
            return self._row_to_document(row) if row else None

        return self._cached(f"doc:{doc_id}", load)

    def count(self, filters: Optional[Sequence[Filter]] = None) -> int:
        """Count documents matching `filters` (None-valued filters ignored)."""
        conditions, params = self._where(filters or [])
        key = "count:" + json.dumps([[f.field, f.op, f.value] for f in (filters or [])], default=str)

        def load() -> int:
            with self._connection("count") as conn:
                return conn.execute(
                    f"SELECT COUNT(*) FROM documents WHERE {' AND '.join(conditions)}",
                    params,
                ).fetchone()[0]

        return self._cached(key, load)

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def _insert(self, conn: sqlite3.Connection, data: Dict[str, Any], doc_id: Optional[str]) -> Dict[str, Any]:
        now = utc_now_iso()
        doc_id = doc_id or new_document_id()
        body = {**self._clean(data), "createdAt": now, "updatedAt": now}
        conn.execute(
            "INSERT INTO documents (id, collection, data, created_at, updated_at) VALUES (?, ?, ?, ?, ?)",
            (doc_id, self.collection, json.dumps(body, default=str), now, now),
        )
        return {"id": doc_id, **body}

    def create(self, data: Dict[str, Any], doc_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Create a document and return it as stored.

        Args:
            data: Document fields. id/createdAt/updatedAt are ignored.
            doc_id: Explicit id; a random one is generated when omitted.

        Raises:
            DataAccessError: `already-exists` for a duplicate explicit id, or a backend failure.
        """
        with self._connection("create") as conn:
            document = self._insert(conn, data, doc_id)
            conn.commit()
        self._invalidate()
        logger.info("Document created", extra={"collection": self.collection, "document_id": document["id"]})
        return document

    def create_many(self, items: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Create several documents in one transaction; none are stored if any fails."""
        with self._connection("create_many") as conn:
            documents = [self._insert(conn, data, None) for data in items]
            conn.commit()
        self._invalidate()
        logger.info("Documents created", extra={"collection": self.collection, "count": len(documents)})
        return documents

    def update(self, doc_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Merge `data` into an existing document and stamp `updatedAt`.

        Raises:
            DocumentNotFoundError: If the id does not exist.
        """
        with self._connection("update") as conn:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute(
                "SELECT data FROM documents WHERE collection = ? AND id = ?",
                (self.collection, doc_id),
            ).fetchone()
            if row is None:
                conn.rollback()
                raise DocumentNotFoundError(collection=self.collection, document_id=doc_id)

            now = utc_now_iso()
            body = {**json.loads(row["data"]), **self._clean(data), "updatedAt": now}
            conn.execute(
                "UPDATE documents SET data = ?, updated_at = ? WHERE collection = ? AND id = ?",
                (json.dumps(body, default=str), now, self.collection, doc_id),
            )
            conn.commit()
        self._invalidate()
        logger.info("Document updated", extra={"collection": self.collection, "document_id": doc_id})
        return {"id": doc_id, **body}

    def delete(self, doc_id: str) -> None:
        """
        Delete a document.

        Raises:
            DocumentNotFoundError: If the id does not exist.
        """
        with self._connection("delete") as conn:
            cursor = conn.execute(
                "DELETE FROM documents WHERE collection = ? AND id = ?",
                (self.collection, doc_id),
            )
            conn.commit()
            deleted = cursor.rowcount
        if not deleted:
            raise DocumentNotFoundError(collection=self.collection, document_id=doc_id)
        self._invalidate()
        logger.info("Document deleted", extra={"collection": self.collection, "document_id": doc_id})

    def retain_latest(self, limit: int) -> int:
        """Delete all but the `limit` most recently inserted documents. Returns the number removed."""
        with self._connection("retain_latest") as conn:
            cursor = conn.execute(
                """
                DELETE FROM documents
                WHERE collection = ? AND seq NOT IN (
                    SELECT seq FROM documents WHERE collection = ? ORDER BY seq DESC LIMIT ?
                )
                """,
                (self.collection, self.collection, limit),
            )
            conn.commit()
            removed = cursor.rowcount
        if removed:
            self._invalidate()
        return removed
