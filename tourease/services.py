"""Wires the agents, pipeline and stores into the operations the web layer calls."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple

from tourease.agents import (
    AssistantSession,
    DestinationImageAgent,
    PlaceResolver,
    RecommenderAgent,
    TravelAssistant,
)
from tourease.config import Settings
from tourease.core import analytics
from tourease.core.documents import DocumentStore, InMemoryDocumentStore, SupabaseDocumentStore
from tourease.core.history_store import HistoryStore
from tourease.core.images import ImageClient
from tourease.core.llm import LLMClient
from tourease.core.saved_store import ImageProvider, SavedStore
from tourease.core.supabase_api import SupabaseClient
from tourease.core.tasks import BackgroundTasks
from tourease.core.user_store import UserStore
from tourease.schemas import (
    AuthenticatedUser,
    Destination,
    EnrichmentSource,
    PreferenceRequest,
    SavedDestination,
    SearchHistoryEntry,
)
from tourease.workflows.recommendation_pipeline import EnrichmentPipeline

_LOGGER = logging.getLogger(__name__)


class AuthenticationRequired(RuntimeError):
    """Raised when an operation needs a signed-in user."""

    def __init__(self, action: str) -> None:
        super().__init__(f"A signed-in user is required to {action}")
        self.user_message = f"Please sign in to {action}."


class NotAuthorized(RuntimeError):
    """Raised when a signed-in user lacks access to an admin operation."""

    user_message = "You do not have permission to view this page."


@dataclass
class TourEaseServices:
    """The application's entry points, built once per process."""

    pipeline: EnrichmentPipeline
    history_store: HistoryStore
    saved_store: SavedStore
    user_store: UserStore
    assistant: TravelAssistant
    tasks: BackgroundTasks
    admin_emails: Tuple[str, ...] = field(default_factory=lambda: analytics.DEFAULT_ADMIN_EMAILS)
    document_store: Optional[DocumentStore] = None

    def for_token(self, access_token: Optional[str]) -> "TourEaseServices":
        """Return services whose stores act as the owner of ``access_token``.

        Only the Supabase store is scoped per user; other stores are shared.
        """

        if not isinstance(self.document_store, SupabaseDocumentStore):
            return self
        scoped = self.document_store.with_access_token(access_token)
        return replace(
            self,
            document_store=scoped,
            history_store=HistoryStore(scoped),
            saved_store=self.saved_store.with_store(scoped),
            user_store=UserStore(scoped),
        )

    async def search(
        self,
        user: Optional[AuthenticatedUser],
        request: PreferenceRequest,
        *,
        record_history: bool = True,
    ) -> List[Destination]:
        """Run the pipeline, then record history for signed-in users in the background.

        ``OracleUnavailable`` propagates so the caller can offer a retry.
        """

        destinations = await self.pipeline.get_recommendations(request)
        if record_history and user is not None and destinations:
            self.tasks.spawn(
                self.history_store.record(user.uid, request, destinations),
                label=f"search history for {user.uid}",
                user_message="Your search could not be added to your history.",
            )
        return destinations

    async def save_destination(self, user: Optional[AuthenticatedUser], destination: Destination) -> None:
        if user is None:
            raise AuthenticationRequired("save destinations")
        await self.saved_store.save(user.uid, destination)

    async def on_user_changed(self, user: Optional[AuthenticatedUser]) -> None:
        """Identity provider callback; creates the profile on first sign in."""

        if user is None:
            return
        await self.user_store.ensure_profile(user)

    async def history(self, user: Optional[AuthenticatedUser]) -> List[SearchHistoryEntry]:
        if user is None:
            raise AuthenticationRequired("view your search history")
        return await self.history_store.list(user.uid)

    async def saved(self, user: Optional[AuthenticatedUser]) -> List[SavedDestination]:
        if user is None:
            raise AuthenticationRequired("view saved destinations")
        return await self.saved_store.list(user.uid)

    def chat(self, destination: Optional[str] = None) -> AssistantSession:
        session = AssistantSession(assistant=self.assistant)
        if destination:
            session.focus(destination)
        return session

    async def admin_overview(self, user: Optional[AuthenticatedUser]) -> Dict[str, Any]:
        if user is None:
            raise AuthenticationRequired("open the admin panel")
        if not analytics.is_admin(user, self.admin_emails):
            raise NotAuthorized(f"User {user.uid} is not an administrator")
        profiles = await self.user_store.list_profiles()
        entries = await self.history_store.list_all()
        return {
            "daily_signups": analytics.daily_signups(profiles),
            "popular_destinations": analytics.popular_destinations(entries),
            "markers": analytics.destination_markers(entries),
            "total_users": len(profiles),
            "total_searches": len(entries),
        }


def build_document_store(settings: Settings, access_token: Optional[str] = None) -> DocumentStore:
    """Return the Supabase store when configured, otherwise an in-memory one.

    Without ``access_token`` the Supabase store runs under the anon key; use
    ``TourEaseServices.for_token`` to act as a signed-in user.
    """

    if settings.supabase_url and settings.supabase_anon_key:
        client = SupabaseClient(settings.supabase_url, settings.supabase_anon_key)
        return SupabaseDocumentStore(client, access_token, table=settings.supabase_documents_table)
    _LOGGER.warning("Supabase is not configured; using an in-memory document store")
    return InMemoryDocumentStore()


def user_from_access_token(settings: Settings, access_token: str) -> Optional[AuthenticatedUser]:
    """Ask Supabase auth who owns ``access_token``."""

    if not settings.supabase_url or not settings.supabase_anon_key:
        return None
    client = SupabaseClient(settings.supabase_url, settings.supabase_anon_key)
    return AuthenticatedUser.from_supabase_user(client.get_user(access_token))


def build_services(
    settings: Settings,
    *,
    store: Optional[DocumentStore] = None,
    tasks: Optional[BackgroundTasks] = None,
) -> TourEaseServices:
    llm_client = LLMClient(
        model=settings.openai_model,
        temperature=settings.llm_temperature,
        timeout=settings.llm_timeout,
        max_tokens=settings.llm_max_tokens,
        api_key=settings.openai_api_key,
        base_url=settings.openai_base_url,
    )
    image_agent = DestinationImageAgent(
        client=ImageClient(
            model=settings.openai_image_model,
            timeout=settings.image_timeout,
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
        ),
        region=settings.tourist_region,
    )
    resolver = PlaceResolver(
        api_key=settings.google_maps_api_key,
        placeholder_image_url=settings.placeholder_image_url,
        default_coordinates=settings.default_coordinates,
        query_qualifier=settings.place_query_qualifier,
        timeout=settings.google_maps_timeout,
        cache_ttl_hours=settings.place_ttl_hours,
    )
    pipeline = EnrichmentPipeline(
        recommender=RecommenderAgent(client=llm_client, model=settings.openai_model, region=settings.tourist_region),
        resolver=resolver,
        image_agent=image_agent,
        strategy=settings.enrichment_strategy,
        source=settings.enrichment_source,
        enrichment_timeout=settings.enrichment_timeout,
    )

    document_store = store or build_document_store(settings)
    background = tasks or BackgroundTasks()
    image_provider: ImageProvider = image_agent.image_for
    if settings.enrichment_source is EnrichmentSource.PLACES:
        image_provider = _place_image_provider(resolver)

    return TourEaseServices(
        pipeline=pipeline,
        history_store=HistoryStore(document_store),
        saved_store=SavedStore(document_store, image_provider=image_provider, tasks=background),
        user_store=UserStore(document_store),
        assistant=TravelAssistant(client=llm_client, model=settings.openai_model),
        tasks=background,
        admin_emails=settings.admin_emails,
        document_store=document_store,
    )


def _place_image_provider(resolver: PlaceResolver) -> ImageProvider:
    async def provide(destination: Destination) -> Optional[str]:
        result = await resolver.resolve(destination.name)
        return result.image_url if result.photo_found else None

    return provide


__all__ = [
    "AuthenticationRequired",
    "NotAuthorized",
    "TourEaseServices",
    "build_document_store",
    "build_services",
    "user_from_access_token",
]
