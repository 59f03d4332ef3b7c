"""Configuration de test pour pytest avec gestion des chemins.

Ce module ajoute la racine du projet au sys.path et fournit les fixtures
communes: horloge figée, store mémoire, pipeline et résolveur câblés sur des fakes.
"""

from __future__ import annotations

import os
import sys
from datetime import UTC, datetime

import pytest

# Ensure project root is on sys.path so that
# imports like `from astrofriends...` resolve.
CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from astrofriends.infra.astro.local_engine import LocalAstroEngine  # noqa: E402
from astrofriends.infra.content_repo import StaticContentRepository  # noqa: E402
from astrofriends.infra.store.content_store import ContentStore  # noqa: E402
from astrofriends.infra.store.memory_store import InMemoryDocumentStore  # noqa: E402
from astrofriends.services.generation import GenerationPipeline  # noqa: E402
from astrofriends.services.resolver import ContentResolver  # noqa: E402
from tests.fakes import FakeGenerationClient  # noqa: E402

STATIC_CONTENT_PATH = os.path.join(PROJECT_ROOT, "astrofriends", "infra", "static_content.json")

# Mercredi de la semaine ISO commençant le lundi 2024-03-04
FIXED_NOW = datetime(2024, 3, 6, 10, 30, tzinfo=UTC)
FIXED_WEEK = "2024-03-04"


class FrozenClock:
    """Horloge injectable déplaçable depuis les tests."""

    def __init__(self, now: datetime = FIXED_NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def documents() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def store(documents: InMemoryDocumentStore) -> ContentStore:
    return ContentStore(documents)


@pytest.fixture
def static_repo() -> StaticContentRepository:
    return StaticContentRepository(STATIC_CONTENT_PATH)


@pytest.fixture
def llm() -> FakeGenerationClient:
    return FakeGenerationClient()


@pytest.fixture
def pipeline(llm, store, clock) -> GenerationPipeline:
    return GenerationPipeline(llm, LocalAstroEngine(), store=store, clock=clock)


@pytest.fixture
def resolver(store, pipeline, static_repo, clock) -> ContentResolver:
    return ContentResolver(store, pipeline, static_repo, clock=clock)
