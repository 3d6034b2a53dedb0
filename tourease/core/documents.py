"""Hierarchical document store used for profiles, history and saved destinations.

Paths alternate collection and document segments, e.g. ``users/{uid}`` is a
document and ``users/{uid}/searchHistory`` is a collection.  Two backends are
provided: an in-memory store used when Supabase is not configured (and in
tests), and a Supabase-backed store that keeps every document in a single
``documents`` table keyed by path.
"""

from __future__ import annotations

import asyncio
import copy
import itertools
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, MutableMapping, Optional, Protocol

import requests

from tourease.core.supabase_api import SupabaseClient, SupabaseError

_LOGGER = logging.getLogger(__name__)


class _ServerTimestamp:
    """Sentinel replaced with the store's current time on write."""

    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"

    def __copy__(self) -> "_ServerTimestamp":
        return self

    def __deepcopy__(self, memo: Dict[int, Any]) -> "_ServerTimestamp":
        return self


SERVER_TIMESTAMP: Any = _ServerTimestamp()

_PATH_SEPARATORS = ("/", "\\")


class DocumentStoreError(RuntimeError):
    """Raised when the document store cannot complete an operation."""


def sanitize_document_id(value: str) -> str:
    """Turn free text into a single path segment."""

    cleaned = value.strip()
    for separator in _PATH_SEPARATORS:
        cleaned = cleaned.replace(separator, "_")
    if cleaned in {"", ".", ".."}:
        cleaned = cleaned.replace(".", "_") or "_"
    return cleaned


def join_path(*segments: str) -> str:
    parts = [segment.strip("/") for segment in segments if segment and segment.strip("/")]
    return "/".join(parts)


def _split(path: str) -> List[str]:
    segments = [segment for segment in path.split("/") if segment]
    if not segments:
        raise ValueError("Document path must not be empty")
    return segments


def _parent_and_id(document_path: str) -> tuple[str, str]:
    segments = _split(document_path)
    if len(segments) % 2:
        raise ValueError(f"'{document_path}' is a collection path, not a document path")
    return "/".join(segments[:-1]), segments[-1]


def _check_collection(collection_path: str) -> str:
    segments = _split(collection_path)
    if not len(segments) % 2:
        raise ValueError(f"'{collection_path}' is a document path, not a collection path")
    return "/".join(segments)


def _resolve_timestamps(fields: Mapping[str, Any], now: datetime) -> Dict[str, Any]:
    return {key: (now if value is SERVER_TIMESTAMP else value) for key, value in fields.items()}


def _sort_value(value: Any) -> tuple:
    # None sorts before everything; datetimes and ISO strings both compare chronologically
    if value is None:
        return (0, "")
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return (1, value.isoformat())
    return (1, str(value))


@dataclass(slots=True)
class Document:
    """A document snapshot returned by a store."""

    id: str
    path: str
    data: Dict[str, Any]


class DocumentStore(Protocol):
    """Minimal namespaced document API."""

    async def get(self, path: str) -> Optional[Document]: ...

    async def upsert(self, path: str, fields: Mapping[str, Any], *, merge: bool = False) -> None: ...

    async def add(self, collection_path: str, fields: Mapping[str, Any]) -> str: ...

    async def query(
        self,
        collection_path: str,
        *,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> List[Document]: ...


class InMemoryDocumentStore:
    """Fallback store used when Supabase is not configured."""

    def __init__(self) -> None:
        self._documents: MutableMapping[str, Dict[str, Any]] = {}
        self._write_order: Dict[str, int] = {}
        self._writes = itertools.count()

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)

    def _next_id(self) -> str:
        return uuid.uuid4().hex

    async def get(self, path: str) -> Optional[Document]:
        parent, doc_id = _parent_and_id(path)
        key = join_path(parent, doc_id)
        data = self._documents.get(key)
        if data is None:
            return None
        return Document(id=doc_id, path=key, data=copy.deepcopy(data))

    async def upsert(self, path: str, fields: Mapping[str, Any], *, merge: bool = False) -> None:
        parent, doc_id = _parent_and_id(path)
        key = join_path(parent, doc_id)
        resolved = copy.deepcopy(_resolve_timestamps(fields, self._now()))
        if merge and key in self._documents:
            self._documents[key].update(resolved)
        else:
            self._documents[key] = resolved
        self._write_order[key] = next(self._writes)

    async def add(self, collection_path: str, fields: Mapping[str, Any]) -> str:
        collection = _check_collection(collection_path)
        doc_id = self._next_id()
        await self.upsert(join_path(collection, doc_id), fields)
        return doc_id

    async def query(
        self,
        collection_path: str,
        *,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> List[Document]:
        collection = _check_collection(collection_path)
        depth = collection.count("/") + 2
        documents = [
            Document(id=key.rsplit("/", 1)[-1], path=key, data=copy.deepcopy(data))
            for key, data in self._documents.items()
            if key.startswith(f"{collection}/") and key.count("/") + 1 == depth
        ]
        if order_by:
            # ties on the ordering field fall back to write order
            documents.sort(
                key=lambda document: (
                    _sort_value(document.data.get(order_by)),
                    self._write_order.get(document.path, 0),
                ),
                reverse=descending,
            )
        return documents


class SupabaseDocumentStore:
    """Supabase-backed document store.

    Without an access token requests run under the anon key.  Expects a table
    shaped like::

        create table documents (
            path text primary key,
            parent text not null,
            doc_id text not null,
            data jsonb not null,
            updated_at timestamptz not null default now()
        );
    """

    def __init__(
        self,
        client: SupabaseClient,
        access_token: Optional[str] = None,
        *,
        table: str = "documents",
    ) -> None:
        self._client = client
        self._access_token = access_token
        self._table = table

    @property
    def access_token(self) -> Optional[str]:
        return self._access_token

    def with_access_token(self, access_token: Optional[str]) -> "SupabaseDocumentStore":
        """Return a store on the same client and table acting as another user."""

        return SupabaseDocumentStore(self._client, access_token, table=self._table)

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)

    @staticmethod
    def _to_json(fields: Mapping[str, Any]) -> Dict[str, Any]:
        return {
            key: value.isoformat() if isinstance(value, datetime) else value
            for key, value in fields.items()
        }

    @staticmethod
    def _row_to_document(row: Mapping[str, Any]) -> Document:
        data = row.get("data") or {}
        return Document(
            id=str(row.get("doc_id")),
            path=str(row.get("path")),
            data=dict(data) if isinstance(data, Mapping) else {},
        )

    async def _call(self, method: str, *args: Any, **kwargs: Any) -> Any:
        try:
            return await asyncio.to_thread(getattr(self._client, method), *args, **kwargs)
        except (SupabaseError, requests.RequestException) as exc:
            raise DocumentStoreError(str(exc)) from exc

    async def get(self, path: str) -> Optional[Document]:
        parent, doc_id = _parent_and_id(path)
        rows = await self._call(
            "select",
            self._table,
            access_token=self._access_token,
            filters={"path": f"eq.{join_path(parent, doc_id)}"},
            limit=1,
        )
        return self._row_to_document(rows[0]) if rows else None

    async def upsert(self, path: str, fields: Mapping[str, Any], *, merge: bool = False) -> None:
        parent, doc_id = _parent_and_id(path)
        key = join_path(parent, doc_id)
        data = self._to_json(_resolve_timestamps(fields, self._now()))
        if merge:
            existing = await self.get(key)
            if existing:
                data = {**existing.data, **data}
        await self._call(
            "upsert",
            self._table,
            [{"path": key, "parent": parent, "doc_id": doc_id, "data": data, "updated_at": self._now().isoformat()}],
            access_token=self._access_token,
            on_conflict="path",
        )

    async def add(self, collection_path: str, fields: Mapping[str, Any]) -> str:
        collection = _check_collection(collection_path)
        doc_id = uuid.uuid4().hex
        await self.upsert(join_path(collection, doc_id), fields)
        return doc_id

    async def query(
        self,
        collection_path: str,
        *,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> List[Document]:
        collection = _check_collection(collection_path)
        order = None
        if order_by:
            order = f"data->>{order_by}.{'desc' if descending else 'asc'}"
        rows = await self._call(
            "select",
            self._table,
            access_token=self._access_token,
            filters={"parent": f"eq.{collection}"},
            order=order,
        )
        _LOGGER.debug("Fetched %d documents from %s", len(rows), collection)
        return [self._row_to_document(row) for row in rows]


__all__ = [
    "Document",
    "DocumentStore",
    "DocumentStoreError",
    "InMemoryDocumentStore",
    "SERVER_TIMESTAMP",
    "SupabaseDocumentStore",
    "join_path",
    "sanitize_document_id",
]
