"""Taxonomie des erreurs de résolution de contenu.

Les adaptateurs distants traduisent les exceptions des bibliothèques
(httpx, redis, openai, json, pydantic) vers ces classes à leur frontière.
Le résolveur n'en laisse remonter que `InputError` et `Exhausted`
(plus `FeatureLocked` et les erreurs distantes sur les rafraîchissements explicites).
"""

from __future__ import annotations


class ContentError(RuntimeError):
    """Erreur de base pour la chaîne de contenu."""


class InputError(ContentError):
    """Donnée de sujet requise absente (fatal, jamais réessayé)."""


class RemoteUnavailable(ContentError):
    """Échec réseau/HTTP ou délai dépassé sur un service distant."""

    def __init__(self, reason: str, status_code: int | None = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.status_code = status_code


class MalformedResponse(ContentError):
    """Charge utile invalide (réponse IA ou ligne du store)."""


class Exhausted(ContentError):
    """Tous les niveaux ont échoué, y compris le contenu statique."""


class FeatureLocked(ContentError):
    """Fonctionnalité non déverrouillée pour le niveau de complétude du sujet."""

    def __init__(self, feature: str) -> None:
        super().__init__(f"feature_locked:{feature}")
        self.feature = feature
