"""
Application principale FastAPI.

Ce module assemble les composants de l'application: middlewares, routes,
métriques et conteneur de dépendances.

Responsabilités du module:
- Initialiser le logging structuré
- Construire (ou recevoir) le conteneur et l'attacher à `app.state`
- Ajouter les middlewares (request id, métriques)
- Monter les routers (santé, contenus partagés, contenus personnels)
- Fermer les clients réseau à l'arrêt

Lancement: `uvicorn astrofriends.app.main:create_app --factory`.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from astrofriends.api.routes_health import router as health_router
from astrofriends.api.routes_horoscope import router as horoscope_router
from astrofriends.api.routes_personal import router as personal_router
from astrofriends.app.metrics import PrometheusMiddleware, metrics_router
from astrofriends.core.container import Container
from astrofriends.core.logging import setup_logging
from astrofriends.middlewares.request_id import RequestIDMiddleware


def create_app(container: Container | None = None) -> FastAPI:
    """
    Construit et retourne l'application FastAPI prête à l'usage.

    Étapes:
    - Configure le logging structuré (structlog)
    - Construit le conteneur depuis les settings si aucun n'est fourni
    - Ajoute les middlewares utiles au debug/traçabilité
    - Publie les routes
    """
    container = container or Container()
    settings = container.settings
    setup_logging(
        app_env=settings.APP_ENV,
        level=logging.DEBUG if settings.APP_DEBUG else logging.INFO,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await container.aclose()

    app = FastAPI(title=settings.APP_NAME, debug=settings.APP_DEBUG, lifespan=lifespan)
    app.state.container = container
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(PrometheusMiddleware)
    app.include_router(health_router)
    app.include_router(horoscope_router)
    app.include_router(personal_router)
    app.include_router(metrics_router)
    return app
