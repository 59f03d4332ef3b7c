"""
Store typé des contenus astrologiques.

Enveloppe un `DocumentStore` et (dé)sérialise les enregistrements du domaine.
Collections et clés naturelles:
- `weekly_horoscopes`: (sign, week_start)
- `oracle_content`: (person_id, week_start)
- `compatibility_cache`: (person_a, person_b), paire triée à l'écriture
- `weekly_sky`: (week_start)
- `astro_profiles`: (person_id)

Le drapeau `is_generated` décrit la valeur retournée, il n'est pas persisté.
"""

from __future__ import annotations

from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from astrofriends.app.metrics import STORE_ERRORS
from astrofriends.domain.entities import (
    WEEKLY_FIELDS,
    AstroProfile,
    CompatibilityRecord,
    OracleContent,
    SignHoroscope,
    SkyContext,
    pair_key,
)
from astrofriends.domain.errors import ContentError, MalformedResponse
from astrofriends.domain.zodiac import ZodiacSign
from astrofriends.infra.store.base import DocumentStore

M = TypeVar("M", bound=BaseModel)

SIGN_HOROSCOPES = "weekly_horoscopes"
ORACLE_CONTENT = "oracle_content"
COMPATIBILITY = "compatibility_cache"
WEEKLY_SKY = "weekly_sky"
ASTRO_PROFILES = "astro_profiles"

CONFLICT_KEYS: dict[str, tuple[str, ...]] = {
    SIGN_HOROSCOPES: ("sign", "week_start"),
    ORACLE_CONTENT: ("person_id", "week_start"),
    COMPATIBILITY: ("person_a", "person_b"),
    WEEKLY_SKY: ("week_start",),
    ASTRO_PROFILES: ("person_id",),
}


class ContentStore:
    """Accès typé aux collections de contenu."""

    def __init__(self, documents: DocumentStore) -> None:
        self.documents = documents

    @property
    def backend_name(self) -> str:
        return self.documents.backend_name

    async def _fetch(self, collection: str, model: type[M], filters: dict[str, Any]) -> M | None:
        try:
            rows = await self.documents.get(collection, filters)
        except ContentError:
            STORE_ERRORS.labels(collection, "get").inc()
            raise
        if not rows:
            return None
        try:
            return model.model_validate(rows[0])
        except ValidationError as exc:
            STORE_ERRORS.labels(collection, "decode").inc()
            raise MalformedResponse(f"invalid_row:{collection}") from exc

    async def _save(
        self,
        collection: str,
        record: M,
        exclude_none: bool = False,
        include: set[str] | None = None,
    ) -> M:
        payload = record.model_dump(
            mode="json", include=include, exclude={"is_generated"}, exclude_none=exclude_none
        )
        try:
            stored = await self.documents.upsert(collection, payload, CONFLICT_KEYS[collection])
        except ContentError:
            STORE_ERRORS.labels(collection, "upsert").inc()
            raise
        try:
            return type(record).model_validate(stored)
        except ValidationError as exc:
            STORE_ERRORS.labels(collection, "decode").inc()
            raise MalformedResponse(f"invalid_row:{collection}") from exc

    async def fetch_sign_horoscope(self, sign: ZodiacSign, week: str) -> SignHoroscope | None:
        return await self._fetch(
            SIGN_HOROSCOPES, SignHoroscope, {"sign": sign.value, "week_start": week}
        )

    async def save_sign_horoscope(self, horoscope: SignHoroscope) -> SignHoroscope:
        return await self._save(SIGN_HOROSCOPES, horoscope)

    async def fetch_oracle(self, person_id: str, week: str) -> OracleContent | None:
        return await self._fetch(
            ORACLE_CONTENT, OracleContent, {"person_id": person_id, "week_start": week}
        )

    async def save_oracle(self, oracle: OracleContent) -> OracleContent:
        return await self._save(ORACLE_CONTENT, oracle)

    async def fetch_compatibility(self, a: str, b: str) -> CompatibilityRecord | None:
        """Lecture indépendante de l'ordre: essaie (a, b) puis (b, a)."""
        orderings = [(a, b)] if a == b else [(a, b), (b, a)]
        for first, second in orderings:
            record = await self._fetch(
                COMPATIBILITY, CompatibilityRecord, {"person_a": first, "person_b": second}
            )
            if record is not None:
                return record
        return None

    async def save_compatibility(self, record: CompatibilityRecord) -> CompatibilityRecord:
        """Écrit la paire en ordre canonique; les champs absents ne sont pas écrasés."""
        first, second = pair_key(record.person_a, record.person_b)
        canonical = record.model_copy(update={"person_a": first, "person_b": second})
        return await self._save(COMPATIBILITY, canonical, exclude_none=True)

    async def save_weekly_compatibility(
        self, record: CompatibilityRecord
    ) -> CompatibilityRecord:
        """Écrit seulement la couche hebdomadaire; la lecture IA déjà stockée reste intacte."""
        first, second = pair_key(record.person_a, record.person_b)
        canonical = record.model_copy(update={"person_a": first, "person_b": second})
        return await self._save(
            COMPATIBILITY,
            canonical,
            exclude_none=True,
            include={"person_a", "person_b", "base_score", *WEEKLY_FIELDS},
        )

    async def fetch_sky(self, week: str) -> SkyContext | None:
        return await self._fetch(WEEKLY_SKY, SkyContext, {"week_start": week})

    async def save_sky(self, sky: SkyContext) -> SkyContext:
        return await self._save(WEEKLY_SKY, sky)

    async def fetch_profile(self, person_id: str) -> AstroProfile | None:
        return await self._fetch(ASTRO_PROFILES, AstroProfile, {"person_id": person_id})

    async def save_profile(self, profile: AstroProfile) -> AstroProfile:
        return await self._save(ASTRO_PROFILES, profile)

    async def aclose(self) -> None:
        await self.documents.aclose()
