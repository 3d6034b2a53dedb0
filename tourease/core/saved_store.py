"""Persistence helpers for destinations a user bookmarked."""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, List, Optional

from pydantic import ValidationError

from tourease.core.documents import (
    SERVER_TIMESTAMP,
    Document,
    DocumentStore,
    DocumentStoreError,
    join_path,
    sanitize_document_id,
)
from tourease.core.history_store import USERS_COLLECTION
from tourease.core.tasks import BackgroundTasks
from tourease.schemas import Destination, SavedDestination

_LOGGER = logging.getLogger(__name__)

SAVED_COLLECTION = "savedDestinations"

ImageProvider = Callable[[Destination], Awaitable[Optional[str]]]


def saved_collection(user_id: str) -> str:
    return join_path(USERS_COLLECTION, sanitize_document_id(user_id), SAVED_COLLECTION)


def saved_path(user_id: str, name: str) -> str:
    return join_path(saved_collection(user_id), sanitize_document_id(name))


def _compose_saved(document: Document) -> SavedDestination:
    try:
        return SavedDestination.model_validate(document.data)
    except ValidationError as exc:
        raise DocumentStoreError(f"Failed to parse saved destination {document.path}: {exc}") from exc


class SavedStore:
    """Upserts destinations by sanitised name and backfills missing images."""

    def __init__(
        self,
        store: DocumentStore,
        *,
        image_provider: Optional[ImageProvider] = None,
        tasks: Optional[BackgroundTasks] = None,
    ) -> None:
        self._store = store
        self._image_provider = image_provider
        self._tasks = tasks or BackgroundTasks()

    @property
    def tasks(self) -> BackgroundTasks:
        return self._tasks

    def with_store(self, store: DocumentStore) -> "SavedStore":
        return SavedStore(store, image_provider=self._image_provider, tasks=self._tasks)

    async def save(self, user_id: str, destination: Destination) -> None:
        """Write the destination now; generate a missing image in the background."""

        if not user_id:
            raise ValueError("A signed-in user is required to save destinations")
        path = saved_path(user_id, destination.name)
        fields = {**destination.to_document(include_image=True), "savedAt": SERVER_TIMESTAMP}
        await self._store.upsert(path, fields, merge=True)
        _LOGGER.info("Saved destination %s for user %s", destination.name, user_id)

        if destination.image_url or self._image_provider is None:
            return
        self._tasks.spawn(
            self._patch_image(path, destination),
            label=f"image for {destination.name}",
            user_message=f"{destination.name} was saved, but its image could not be generated.",
        )

    async def _patch_image(self, path: str, destination: Destination) -> None:
        if self._image_provider is None:
            return
        image_url = await self._image_provider(destination)
        if not image_url:
            _LOGGER.info("No image available for saved destination %s", destination.name)
            return
        await self._store.upsert(path, {"imageUrl": image_url}, merge=True)
        _LOGGER.info("Attached image to saved destination %s", destination.name)

    async def get(self, user_id: str, name: str) -> Optional[SavedDestination]:
        document = await self._store.get(saved_path(user_id, name))
        return _compose_saved(document) if document else None

    async def list(self, user_id: str) -> List[SavedDestination]:
        """Return saved destinations, most recently saved first."""

        documents = await self._store.query(saved_collection(user_id), order_by="savedAt", descending=True)
        return [_compose_saved(document) for document in documents]


__all__ = ["ImageProvider", "SavedStore", "saved_collection", "saved_path"]
