"""
Pipeline de génération de contenu.

Étapes pour chaque type de contenu:
1. résoudre le profil astrologique (API de thème si données complètes, sinon local),
2. recevoir le ciel de la semaine,
3. construire un `PromptContext` sans donnée identifiante,
4. appeler le client de génération,
5. normaliser la réponse,
6. retourner l'enregistrement canonique.

Le pipeline ne se replie jamais silencieusement: les erreurs du client IA
remontent au résolveur, seul responsable de la décision de repli.
"""

from __future__ import annotations

import asyncio
import time

import structlog

from astrofriends.app.metrics import CONTENT_GENERATION_LATENCY
from astrofriends.domain import compatibility as scoring
from astrofriends.domain.entities import (
    AstroProfile,
    CompatibilityRecord,
    CompletenessLevel,
    OracleContent,
    Person,
    SignHoroscope,
    SkyContext,
)
from astrofriends.domain.errors import ContentError, InputError
from astrofriends.domain.normalization import (
    CompatibilityPayload,
    OraclePayload,
    SignPayload,
    WeeklyCompatibilityPayload,
    normalize,
)
from astrofriends.domain.prompting import PromptContext, SkySummary, SubjectProfile
from astrofriends.domain.weeks import Clock, utc_now, week_key, week_start
from astrofriends.domain.zodiac import ZodiacSign
from astrofriends.infra.astro.chart_client import ChartApiClient
from astrofriends.infra.astro.local_engine import LocalAstroEngine
from astrofriends.infra.http_clients import GeoClient
from astrofriends.infra.llm.base import GenerationClient
from astrofriends.infra.store.content_store import ContentStore

log = structlog.get_logger(__name__)


def _expected_points(profile: AstroProfile, level: CompletenessLevel) -> bool:
    """Vrai si le profil stocké porte les points attendus pour ce niveau."""
    has_moon = profile.moon_sign is not None
    has_rising = profile.rising_sign is not None
    return has_moon == (level >= CompletenessLevel.EXTENDED) and has_rising == (
        level == CompletenessLevel.FULL
    )


class GenerationPipeline:
    def __init__(
        self,
        llm: GenerationClient,
        local_engine: LocalAstroEngine | None = None,
        chart_client: ChartApiClient | None = None,
        geocoder: GeoClient | None = None,
        store: ContentStore | None = None,
        clock: Clock = utc_now,
        remote_timeout_s: float = 15.0,
    ) -> None:
        self.llm = llm
        self.local = local_engine or LocalAstroEngine()
        self.chart_client = chart_client
        self.geocoder = geocoder
        self.store = store
        self.clock = clock
        self.remote_timeout_s = remote_timeout_s

    # ---- Profil ----

    async def resolve_profile(self, person: Person) -> AstroProfile:
        """Profil soleil/lune/ascendant de `person`.

        Raises:
            InputError: aucun signe solaire connu.
        """
        sun = person.sun_sign
        if sun is None:
            raise InputError("missing_sun_sign")
        level = person.completeness

        stored = await self._stored_profile(person.id)
        if stored is not None and stored.sun_sign == sun and _expected_points(stored, level):
            return stored

        profile = None
        if level == CompletenessLevel.FULL:
            profile = await self._chart_profile(person)
        if profile is None:
            profile = self.local.profile(person)
        if profile is None:
            raise InputError("missing_sun_sign")
        await self._persist_profile(profile)
        return profile

    async def _stored_profile(self, person_id: str) -> AstroProfile | None:
        if self.store is None:
            return None
        try:
            return await asyncio.wait_for(
                self.store.fetch_profile(person_id), self.remote_timeout_s
            )
        except (ContentError, TimeoutError) as exc:
            log.warning("profile_fetch_failed", person_id=person_id, reason=type(exc).__name__)
            return None

    async def _persist_profile(self, profile: AstroProfile) -> None:
        if self.store is None:
            return
        try:
            await asyncio.wait_for(self.store.save_profile(profile), self.remote_timeout_s)
        except (ContentError, TimeoutError) as exc:
            log.warning(
                "profile_persist_failed", person_id=profile.person_id, reason=type(exc).__name__
            )

    async def _chart_profile(self, person: Person) -> AstroProfile | None:
        if self.chart_client is None or self.geocoder is None or person.birthday is None:
            return None
        try:
            geo = await asyncio.wait_for(
                self.geocoder.geocode(person.birth_place or ""), self.remote_timeout_s
            )
            chart = await asyncio.wait_for(
                self.chart_client.compute_chart(
                    person.birthday, person.birth_time, geo.lat, geo.lon, geo.tz_offset
                ),
                self.remote_timeout_s,
            )
        except (ContentError, TimeoutError) as exc:
            log.warning("chart_profile_failed", person_id=person.id, reason=type(exc).__name__)
            return None
        local = self.local.profile(person)
        sun = person.sun_sign
        return AstroProfile(
            person_id=person.id,
            sun_sign=sun,
            moon_sign=chart.moon or (local.moon_sign if local else None),
            rising_sign=chart.rising or (local.rising_sign if local else None),
            element=sun.element,
            modality=sun.modality,
            source="chart_api",
        )

    # ---- Ciel ----

    async def build_sky(self) -> SkyContext:
        """Ciel de la semaine courante (API de thème si configurée, sinon local)."""
        monday = week_start(self.clock())
        if self.chart_client is None:
            return self.local.sky(monday)
        phase = await asyncio.wait_for(self.chart_client.moon_phase(monday), self.remote_timeout_s)
        transits = await asyncio.wait_for(
            self.chart_client.weekly_transits(monday), self.remote_timeout_s
        )
        return SkyContext(
            week_start=week_key(monday),
            moon_phase=phase,
            moon_sign=self.local.transiting_moon_sign(monday),
            transits=transits or self.local.weekly_transits(monday),
        )

    # ---- Génération ----

    async def _generate(self, context: PromptContext, seed: str):
        start = time.perf_counter()
        try:
            raw = await self.llm.generate(context)
        finally:
            CONTENT_GENERATION_LATENCY.labels(context.kind).observe(time.perf_counter() - start)
        return normalize(context.kind, raw, seed=seed)

    async def generate_sign_horoscope(self, sign: ZodiacSign, sky: SkyContext) -> SignHoroscope:
        week = week_key(self.clock())
        context = PromptContext(
            kind="weekly_sign",
            subjects=[SubjectProfile.from_sign(sign)],
            sky=SkySummary.from_sky(sky),
        )
        payload: SignPayload = await self._generate(context, seed=f"{sign.value}:{week}")
        return SignHoroscope(sign=sign, week_start=week, **payload.model_dump())

    async def generate_oracle(self, person: Person, sky: SkyContext) -> OracleContent:
        profile = await self.resolve_profile(person)
        week = week_key(self.clock())
        context = PromptContext(
            kind="personal_oracle",
            subjects=[SubjectProfile.from_profile(profile)],
            sky=SkySummary.from_sky(sky),
        )
        payload: OraclePayload = await self._generate(
            context, seed=f"{profile.sun_sign.value}:{week}"
        )
        return OracleContent(person_id=person.id, week_start=week, **payload.model_dump())

    async def _pair_profiles(self, a: Person, b: Person) -> tuple[AstroProfile, AstroProfile]:
        return await self.resolve_profile(a), await self.resolve_profile(b)

    @staticmethod
    def _score(pa: AstroProfile, pb: AstroProfile) -> scoring.FullResult:
        return scoring.full_score(
            pa.sun_sign, pa.moon_sign, pa.rising_sign, pb.sun_sign, pb.moon_sign, pb.rising_sign
        )

    async def generate_compatibility_reading(self, a: Person, b: Person) -> CompatibilityRecord:
        """Lecture de synastrie IA; le score de base reste celui du moteur déterministe."""
        pa, pb = await self._pair_profiles(a, b)
        result = self._score(pa, pb)
        context = PromptContext(
            kind="compatibility",
            subjects=[SubjectProfile.from_profile(pa), SubjectProfile.from_profile(pb)],
            base_score=result.overall_score,
        )
        payload: CompatibilityPayload = await self._generate(context, seed="")
        ai_output = " ".join(p for p in (payload.summary, payload.advice) if p)
        return CompatibilityRecord(
            person_a=a.id,
            person_b=b.id,
            base_score=result.overall_score,
            headline=payload.headline or result.harmony.value,
            synastry_highlights=payload.strengths + payload.challenges,
            ai_output=ai_output,
        )

    async def generate_weekly_compatibility(
        self,
        a: Person,
        b: Person,
        sky: SkyContext,
        moods: list[str] | None = None,
    ) -> CompatibilityRecord:
        pa, pb = await self._pair_profiles(a, b)
        result = self._score(pa, pb)
        context = PromptContext(
            kind="weekly_compatibility",
            subjects=[SubjectProfile.from_profile(pa), SubjectProfile.from_profile(pb)],
            sky=SkySummary.from_sky(sky),
            base_score=result.overall_score,
            moods=moods or [],
        )
        payload: WeeklyCompatibilityPayload = await self._generate(context, seed="")
        return CompatibilityRecord(
            person_a=a.id,
            person_b=b.id,
            base_score=result.overall_score,
            week_start=week_key(self.clock()),
            this_week_score=payload.this_week_score,
            love_compatibility=payload.love_compatibility,
            communication_compatibility=payload.communication_compatibility,
            weekly_vibe=payload.weekly_vibe,
            weekly_reading=payload.summary,
            growth_advice=payload.growth_advice,
            celestial_influence=payload.celestial_influence,
        )

