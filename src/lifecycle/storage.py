"""Document storage for pending task sets: Supabase and in-memory backends.

Both backends store each set as one JSON document with a ``version``
counter.  Writes to an existing document go through ``compare_and_swap``,
which only succeeds if the stored version still equals the version the
writer read.
"""

from __future__ import annotations

import copy
import threading
from collections import Counter
from typing import Any, Protocol, cast

from postgrest.exceptions import APIError
from supabase import Client, create_client

from src.config import settings
from src.errors import DuplicateIngestionError

Document = dict[str, Any]

# Postgres error code for a unique constraint violation
UNIQUE_VIOLATION = "23505"


class DocumentStore(Protocol):
    def insert(self, doc: Document) -> None: ...

    def get(self, doc_id: str) -> Document | None: ...

    def find_by(self, field: str, value: str, limit: int | None = None) -> list[Document]: ...

    def list_recent(self, limit: int, status: str | None = None) -> list[Document]: ...

    def count_by_status(self) -> dict[str, int]: ...

    def compare_and_swap(self, doc_id: str, expected_version: int, doc: Document) -> bool: ...


def get_supabase_client() -> Client:
    """Create and return a Supabase client from settings."""
    return create_client(settings.supabase_url, settings.supabase_key)


class SupabaseDocumentStore:
    """Pending sets in a Supabase table.

    Expected table columns: ``id`` (text, primary key), ``file_id`` (text, unique),
    ``status`` (text), ``created_at`` (timestamptz), ``version`` (int) and
    ``data`` (jsonb, the full document).
    """

    INDEXED_FIELDS = frozenset({"id", "file_id", "status"})

    def __init__(self, client: Client | None = None, table: str | None = None) -> None:
        self._client = client or get_supabase_client()
        self._table = table or settings.pending_table

    def _rows(self, result: Any) -> list[dict[str, Any]]:
        # Supabase .data is typed as JSON (broad union); cast to concrete type.
        return cast(list[dict[str, Any]], result.data or [])

    def insert(self, doc: Document) -> None:
        try:
            self._client.table(self._table).insert(
                {
                    "id": doc["id"],
                    "file_id": doc["file_id"],
                    "status": doc["status"],
                    "created_at": doc["created_at"],
                    "version": doc["version"],
                    "data": doc,
                }
            ).execute()
        except APIError as e:
            if e.code == UNIQUE_VIOLATION:
                raise DuplicateIngestionError(doc["file_id"]) from e
            raise

    def get(self, doc_id: str) -> Document | None:
        result = self._client.table(self._table).select("data").eq("id", doc_id).execute()
        rows = self._rows(result)
        return rows[0]["data"] if rows else None

    def find_by(self, field: str, value: str, limit: int | None = None) -> list[Document]:
        if field not in self.INDEXED_FIELDS:
            msg = f"Cannot query pending sets by {field!r}"
            raise ValueError(msg)
        query = self._client.table(self._table).select("data").eq(field, value)
        if limit is not None:
            query = query.limit(limit)
        return [row["data"] for row in self._rows(query.execute())]

    def list_recent(self, limit: int, status: str | None = None) -> list[Document]:
        query = self._client.table(self._table).select("data")
        if status is not None:
            query = query.eq("status", status)
        result = query.order("created_at", desc=True).limit(limit).execute()
        return [row["data"] for row in self._rows(result)]

    def count_by_status(self) -> dict[str, int]:
        result = self._client.table(self._table).select("status").execute()
        return dict(Counter(row["status"] for row in self._rows(result)))

    def compare_and_swap(self, doc_id: str, expected_version: int, doc: Document) -> bool:
        result = (
            self._client.table(self._table)
            .update({"data": doc, "status": doc["status"], "version": doc["version"]})
            .eq("id", doc_id)
            .eq("version", expected_version)
            .execute()
        )
        return bool(self._rows(result))


class InMemoryDocumentStore:
    """Thread-safe in-process store with the same versioned-write semantics."""

    def __init__(self) -> None:
        self._docs: dict[str, Document] = {}
        self._lock = threading.Lock()

    def insert(self, doc: Document) -> None:
        with self._lock:
            if doc["id"] in self._docs:
                msg = f"Document {doc['id']!r} already exists"
                raise ValueError(msg)
            if any(d["file_id"] == doc["file_id"] for d in self._docs.values()):
                raise DuplicateIngestionError(doc["file_id"])
            self._docs[doc["id"]] = copy.deepcopy(doc)

    def get(self, doc_id: str) -> Document | None:
        with self._lock:
            doc = self._docs.get(doc_id)
            return copy.deepcopy(doc) if doc is not None else None

    def find_by(self, field: str, value: str, limit: int | None = None) -> list[Document]:
        with self._lock:
            matches = [copy.deepcopy(d) for d in self._docs.values() if d.get(field) == value]
        return matches[:limit] if limit is not None else matches

    def list_recent(self, limit: int, status: str | None = None) -> list[Document]:
        with self._lock:
            docs = [d for d in self._docs.values() if status is None or d["status"] == status]
            docs = sorted(docs, key=lambda d: d["created_at"], reverse=True)
            return [copy.deepcopy(d) for d in docs[:limit]]

    def count_by_status(self) -> dict[str, int]:
        with self._lock:
            return dict(Counter(d["status"] for d in self._docs.values()))

    def compare_and_swap(self, doc_id: str, expected_version: int, doc: Document) -> bool:
        with self._lock:
            current = self._docs.get(doc_id)
            if current is None or current["version"] != expected_version:
                return False
            self._docs[doc_id] = copy.deepcopy(doc)
            return True
