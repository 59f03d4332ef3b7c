"""Dépendances partagées pour les routes de l'API.

But du module
-------------
- Donner aux routes l'accès au conteneur attaché à `app.state` au démarrage.
- Traduire les erreurs de la chaîne de contenu en réponses HTTP.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from astrofriends.core.container import Container
from astrofriends.core.http_constants import (
    HTTP_FORBIDDEN,
    HTTP_INTERNAL_SERVER_ERROR,
    HTTP_SERVICE_UNAVAILABLE,
    HTTP_UNPROCESSABLE_ENTITY,
)
from astrofriends.domain.errors import (
    ContentError,
    Exhausted,
    FeatureLocked,
    InputError,
)
from astrofriends.services.resolver import ContentResolver


def get_container(request: Request) -> Container:
    return request.app.state.container


def get_resolver(request: Request) -> ContentResolver:
    return get_container(request).resolver


def http_error(exc: ContentError) -> HTTPException:
    """Correspondance erreur de contenu → statut HTTP.

    - `InputError` → 422
    - `FeatureLocked` → 403
    - `Exhausted` → 500
    - autres (échec d'un rafraîchissement explicite) → 503, `retryable`
    """
    if isinstance(exc, InputError):
        return HTTPException(status_code=HTTP_UNPROCESSABLE_ENTITY, detail=str(exc))
    if isinstance(exc, FeatureLocked):
        return HTTPException(
            status_code=HTTP_FORBIDDEN, detail={"error": "feature_locked", "feature": exc.feature}
        )
    if isinstance(exc, Exhausted):
        return HTTPException(
            status_code=HTTP_INTERNAL_SERVER_ERROR, detail={"error": "content_unavailable"}
        )
    return HTTPException(
        status_code=HTTP_SERVICE_UNAVAILABLE,
        detail={"error": "refresh_failed", "reason": str(exc), "retryable": True},
    )
