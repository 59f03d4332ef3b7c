"""
Conteneur d'injection de dépendances.

Instancie une fois, au démarrage, les composants centraux (store, clients
distants, pipeline, résolveur) à partir des settings et les expose aux
routes via `app.state`. Aucun singleton de module: les tests construisent
leur propre conteneur.
"""

from __future__ import annotations

import structlog

from astrofriends.core.settings import Settings, get_settings
from astrofriends.infra.astro.chart_client import ChartApiClient
from astrofriends.infra.astro.local_engine import LocalAstroEngine
from astrofriends.infra.content_repo import StaticContentRepository
from astrofriends.infra.http_clients import GeoClient
from astrofriends.infra.llm.base import GenerationClient
from astrofriends.infra.llm.openai_client import OpenAIGenerationClient
from astrofriends.infra.store.base import DocumentStore
from astrofriends.infra.store.content_store import ContentStore
from astrofriends.infra.store.memory_store import InMemoryDocumentStore
from astrofriends.infra.store.redis_store import RedisDocumentStore
from astrofriends.infra.store.rest_store import RestDocumentStore
from astrofriends.services.cache import WeeklyTTLCache
from astrofriends.services.generation import GenerationPipeline
from astrofriends.services.resolver import ContentResolver

log = structlog.get_logger(__name__)


def build_document_store(settings: Settings) -> tuple[DocumentStore, str]:
    """Sélectionne le backend de store; repli mémoire sauf si `REQUIRE_REMOTE_STORE`.

    Returns:
        Le store et le nom effectif du backend (`memory-fallback` en cas de repli).
    """
    backend = settings.STORE_BACKEND.lower()
    if backend == "memory":
        return InMemoryDocumentStore(), "memory"
    try:
        if backend == "rest":
            if not settings.STORE_URL or not settings.STORE_API_KEY:
                raise ValueError("STORE_URL and STORE_API_KEY are required for the rest store")
            store: DocumentStore = RestDocumentStore(
                settings.STORE_URL,
                settings.STORE_API_KEY,
                timeout_s=settings.REMOTE_TIMEOUT_S,
                max_retries=settings.STORE_MAX_RETRIES,
            )
        elif backend == "redis":
            store = RedisDocumentStore(settings.REDIS_URL, timeout_s=settings.REMOTE_TIMEOUT_S)
        else:
            raise ValueError(f"unknown STORE_BACKEND: {settings.STORE_BACKEND}")
    except ValueError as err:
        if settings.REQUIRE_REMOTE_STORE:
            raise RuntimeError(f"Remote store required but unavailable: {err}") from err
        log.warning("store_backend_fallback", requested=backend, error=str(err))
        return InMemoryDocumentStore(), "memory-fallback"
    return store, backend


class Container:
    def __init__(
        self,
        settings: Settings | None = None,
        llm: GenerationClient | None = None,
        documents: DocumentStore | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        s = self.settings

        if documents is None:
            documents, self.storage_backend = build_document_store(s)
        else:
            self.storage_backend = documents.backend_name
        self.store = ContentStore(documents)

        self.static = StaticContentRepository(path=s.STATIC_CONTENT_PATH)
        self.local = LocalAstroEngine()

        self.chart_client: ChartApiClient | None = None
        if s.CHART_API_URL and s.CHART_API_USER and s.CHART_API_KEY:
            self.chart_client = ChartApiClient(
                s.CHART_API_URL, s.CHART_API_USER, s.CHART_API_KEY, timeout_s=s.REMOTE_TIMEOUT_S
            )
        self.geocoder: GeoClient | None = None
        if s.GEOCODER_URL:
            self.geocoder = GeoClient(s.GEOCODER_URL, timeout_s=s.REMOTE_TIMEOUT_S)

        self.llm = llm or OpenAIGenerationClient(
            api_key=s.OPENAI_API_KEY,
            model=s.LLM_MODEL,
            temperature=s.LLM_TEMPERATURE,
            max_tokens=s.LLM_MAX_TOKENS,
            timeout_s=s.GENERATION_TIMEOUT_S,
        )

        self.pipeline = GenerationPipeline(
            self.llm,
            self.local,
            chart_client=self.chart_client,
            geocoder=self.geocoder,
            store=self.store,
            remote_timeout_s=s.REMOTE_TIMEOUT_S,
        )
        self.resolver = ContentResolver(
            self.store,
            self.pipeline,
            self.static,
            cache=WeeklyTTLCache(ttl_days=s.CACHE_TTL_DAYS),
            remote_timeout_s=s.REMOTE_TIMEOUT_S,
            generation_timeout_s=s.GENERATION_TIMEOUT_S,
        )
        log.info(
            "container_ready",
            storage_backend=self.storage_backend,
            chart_api=self.chart_client is not None,
            geocoder=self.geocoder is not None,
        )

    async def aclose(self) -> None:
        """Ferme les clients réseau."""
        await self.store.aclose()
        await self.llm.aclose()
        if self.chart_client is not None:
            await self.chart_client.aclose()
        if self.geocoder is not None:
            await self.geocoder.aclose()
