"""
Métriques Prometheus pour l'application.

Ce module définit les métriques HTTP et les métriques de la chaîne de
résolution de contenu (niveaux servis, replis, générations, store).
"""

import time

from fastapi import APIRouter, Request
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

metrics_router = APIRouter()

REQUEST_COUNT = Counter(
    "http_requests_total", "Total HTTP requests", ["method", "route", "status"]
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds", "Latency of HTTP requests", ["route"]
)

# Content resolution metrics
CONTENT_RESOLUTIONS = Counter(
    "content_resolutions_total",
    "Content requests served, by kind and serving tier",
    ["kind", "tier"],
)
CONTENT_FALLBACKS = Counter(
    "content_fallbacks_total",
    "Tier downgrades, by kind and reason",
    ["kind", "reason"],
)
CONTENT_GENERATION_LATENCY = Histogram(
    "content_generation_seconds",
    "Latency of content generation attempts",
    ["kind"],
)
STORE_ERRORS = Counter(
    "store_errors_total",
    "Document store failures",
    ["collection", "operation"],
)
INFLIGHT_JOINS = Counter(
    "inflight_joins_total",
    "Requests that joined an in-flight resolution instead of starting one",
    ["kind"],
)


@metrics_router.get("/metrics")
def metrics():
    """
    Expose les métriques Prometheus au format texte.

    Returns:
        Response: Réponse HTTP contenant les métriques au format Prometheus.
    """
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


class PrometheusMiddleware(BaseHTTPMiddleware):
    """
    Middleware Prometheus pour mesurer les métriques HTTP.

    Collecte le comptage des requêtes et la latence par route.
    """

    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        response: Response = await call_next(request)
        route = request.scope.get("route")
        path = getattr(route, "path", None) or request.scope.get("path", "unknown")
        REQUEST_COUNT.labels(request.method, path, str(response.status_code)).inc()
        REQUEST_LATENCY.labels(path).observe(time.perf_counter() - start)
        return response
