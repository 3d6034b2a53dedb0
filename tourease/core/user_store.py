"""User profile documents created on first sign in."""

from __future__ import annotations

import logging
from typing import List, Optional

from tourease.core.documents import (
    SERVER_TIMESTAMP,
    DocumentStore,
    DocumentStoreError,
    join_path,
    sanitize_document_id,
)
from tourease.core.history_store import USERS_COLLECTION
from tourease.schemas import AuthenticatedUser, UserProfile

_LOGGER = logging.getLogger(__name__)


def profile_path(uid: str) -> str:
    return join_path(USERS_COLLECTION, sanitize_document_id(uid))


class UserStore:
    """Reads and lazily creates ``users/{uid}`` profile documents."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    async def get_profile(self, uid: str) -> Optional[UserProfile]:
        document = await self._store.get(profile_path(uid))
        if document is None:
            return None
        return UserProfile.model_validate({"uid": uid, **document.data})

    async def ensure_profile(self, user: AuthenticatedUser) -> UserProfile:
        """Create the profile if it does not exist; an existing one is never overwritten."""

        existing = await self.get_profile(user.uid)
        if existing is not None:
            return existing

        fields = {
            "uid": user.uid,
            "email": user.email,
            "displayName": user.display_name,
            "photoURL": user.photo_url,
            "providerId": user.provider_id,
            "createdAt": SERVER_TIMESTAMP,
        }
        await self._store.upsert(profile_path(user.uid), fields)
        _LOGGER.info("Created profile for user %s", user.uid)
        created = await self.get_profile(user.uid)
        if created is None:
            raise DocumentStoreError(f"Profile for user {user.uid} was not readable after creation")
        return created

    async def list_profiles(self) -> List[UserProfile]:
        documents = await self._store.query(USERS_COLLECTION, order_by="createdAt")
        return [UserProfile.model_validate({"uid": document.id, **document.data}) for document in documents]


__all__ = ["UserStore", "profile_path"]
