"""
Client de génération basé sur l'API OpenAI (SDK asynchrone).

Utilise `chat.completions` en mode objet JSON. Sans clé API, le client refuse
de générer (`RemoteUnavailable("llm_not_configured")`): le résolveur bascule
alors sur le contenu statique au lieu de servir un texte inventé.
"""

from __future__ import annotations

import openai
import structlog
from openai import AsyncOpenAI

from astrofriends.domain.errors import RemoteUnavailable
from astrofriends.domain.prompting import PromptContext
from astrofriends.infra.llm.base import GenerationClient

log = structlog.get_logger(__name__)

SYSTEM_PROMPT = (
    "You are a warm, insightful astrologer writing short weekly content for a "
    "friendship app. Always answer with a single raw JSON object."
)


class OpenAIGenerationClient(GenerationClient):
    def __init__(
        self,
        api_key: str | None = None,
        model: str = "gpt-4o-mini",
        temperature: float = 0.8,
        max_tokens: int = 4096,
        timeout_s: float = 30.0,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        if client is not None:
            self.client = client
        elif api_key:
            self.client = AsyncOpenAI(api_key=api_key, timeout=timeout_s, max_retries=0)
        else:
            self.client = None

    @property
    def configured(self) -> bool:
        return self.client is not None

    async def generate(self, context: PromptContext) -> str:
        if self.client is None:
            raise RemoteUnavailable("llm_not_configured")
        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": context.render()},
        ]
        try:
            resp = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                response_format={"type": "json_object"},
            )
        except openai.APIStatusError as exc:
            raise RemoteUnavailable("llm_http_error", status_code=exc.status_code) from exc
        except openai.OpenAIError as exc:
            raise RemoteUnavailable(f"llm_error: {type(exc).__name__}") from exc

        content = resp.choices[0].message.content if resp.choices else None
        if not content:
            raise RemoteUnavailable("llm_empty_response")
        usage = getattr(resp, "usage", None)
        log.debug(
            "llm_generation_done",
            kind=context.kind,
            model=self.model,
            total_tokens=getattr(usage, "total_tokens", None),
        )
        return content

    async def aclose(self) -> None:
        if self.client is not None:
            await self.client.close()
