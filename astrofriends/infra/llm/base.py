"""Interface de base pour les clients de génération de contenu."""

from __future__ import annotations

from abc import ABC, abstractmethod

from astrofriends.domain.prompting import PromptContext


class GenerationClient(ABC):
    """Client sans état: contexte structuré en entrée, texte brut en sortie.

    Le texte est censé contenir un objet JSON, éventuellement entouré de prose
    ou de blocs de code; sa normalisation est faite par l'appelant.
    """

    @abstractmethod
    async def generate(self, context: PromptContext) -> str:
        """Génère le texte brut pour `context`.

        Raises:
            RemoteUnavailable: échec réseau, quota ou client non configuré.
        """
        ...

    async def aclose(self) -> None:
        return None
