"""Persistence helpers for a user's search history."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

from pydantic import ValidationError

from tourease.core.documents import (
    SERVER_TIMESTAMP,
    Document,
    DocumentStore,
    DocumentStoreError,
    join_path,
    sanitize_document_id,
)
from tourease.schemas import Destination, PreferenceRequest, SearchHistoryEntry

_LOGGER = logging.getLogger(__name__)

USERS_COLLECTION = "users"
HISTORY_COLLECTION = "searchHistory"


def history_collection(user_id: str) -> str:
    return join_path(USERS_COLLECTION, sanitize_document_id(user_id), HISTORY_COLLECTION)


def _strip_media(destinations: Sequence[Destination]) -> List[Dict[str, Any]]:
    # coordinates stay: they are small and feed the aggregate map
    return [destination.to_document(include_image=False) for destination in destinations]


def _compose_entry(document: Document) -> SearchHistoryEntry:
    data: Mapping[str, Any] = document.data
    return SearchHistoryEntry.model_validate(
        {
            "id": document.id,
            "input": data.get("input") or {},
            "destinations": data.get("destinations") or [],
            "searchedAt": data.get("searchedAt"),
        }
    )


class HistoryStore:
    """Stores each completed search under ``users/{uid}/searchHistory``."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    async def record(
        self,
        user_id: str,
        request: PreferenceRequest,
        destinations: Sequence[Destination],
    ) -> Optional[str]:
        """Persist a search; failures are logged and reported as ``None``."""

        if not user_id:
            _LOGGER.warning("Skipping search history: no signed-in user")
            return None
        try:
            payload = {
                "input": request.model_dump(by_alias=True),
                "destinations": _strip_media(destinations),
                "searchedAt": SERVER_TIMESTAMP,
            }
            entry_id = await self._store.add(history_collection(user_id), payload)
        except Exception as exc:  # noqa: BLE001
            _LOGGER.warning("Could not save search history for user %s: %s", user_id, exc)
            return None
        _LOGGER.info("Recorded search history %s with %d destinations", entry_id, len(destinations))
        return entry_id

    async def list(self, user_id: str) -> List[SearchHistoryEntry]:
        """Return the user's searches, most recent first."""

        documents = await self._store.query(
            history_collection(user_id),
            order_by="searchedAt",
            descending=True,
        )
        return self._parse(documents)

    async def list_all(self) -> List[SearchHistoryEntry]:
        """Return every user's history; unpaginated, intended for admin analytics."""

        users = await self._store.query(USERS_COLLECTION)
        entries: List[SearchHistoryEntry] = []
        for user in users:
            documents = await self._store.query(history_collection(user.id))
            entries.extend(self._parse(documents))
        return entries

    @staticmethod
    def _parse(documents: Sequence[Document]) -> List[SearchHistoryEntry]:
        entries: List[SearchHistoryEntry] = []
        for document in documents:
            try:
                entries.append(_compose_entry(document))
            except ValidationError as exc:
                raise DocumentStoreError(f"Failed to parse search history {document.path}: {exc}") from exc
        return entries


__all__ = ["HistoryStore", "history_collection"]
