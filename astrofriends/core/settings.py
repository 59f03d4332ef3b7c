"""Définition et chargement des paramètres de configuration applicative.

Objectif du module
------------------
- Centraliser les paramètres (env/.env) via Pydantic Settings
- Résoudre le fichier `.env` à utiliser selon la stratégie: ENV_FILE > .env.{APP_ENV} > .env
"""

import os
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# Détermination du fichier .env à utiliser avec priorité:
# 1) ENV_FILE (chemin explicite)
# 2) .env.{APP_ENV} si présent
# 3) .env (défaut)
_cwd = Path.cwd()
_env_file_from_env = os.getenv("ENV_FILE")
if _env_file_from_env:
    _ENV_FILE_PATH = _env_file_from_env
else:
    _app_env = os.getenv("APP_ENV", "dev")
    _candidate_specific = _cwd / f".env.{_app_env}"
    _candidate_default = _cwd / ".env"
    if _candidate_specific.exists():
        _ENV_FILE_PATH = _candidate_specific
    else:
        _ENV_FILE_PATH = _candidate_default

_DEFAULT_STATIC_CONTENT = str(
    Path(__file__).resolve().parent.parent / "infra" / "static_content.json"
)


class Settings(BaseSettings):
    """Modèle de configuration chargé depuis l'environnement et .env."""

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE_PATH,
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=False,
    )
    APP_NAME: str = "astrofriends-backend"
    APP_ENV: str = "dev"
    APP_DEBUG: bool = True

    # Document store: "rest" | "redis" | "memory"
    STORE_BACKEND: str = "memory"
    STORE_URL: str | None = None
    STORE_API_KEY: str | None = None
    REDIS_URL: str | None = None
    REQUIRE_REMOTE_STORE: bool = False
    STORE_MAX_RETRIES: int = 3

    # Génération IA
    OPENAI_API_KEY: str | None = None
    LLM_MODEL: str = "gpt-4o-mini"
    LLM_TEMPERATURE: float = 0.8
    LLM_MAX_TOKENS: int = 4096

    # Calcul de thème et géocodage
    CHART_API_URL: str | None = None
    CHART_API_USER: str | None = None
    CHART_API_KEY: str | None = None
    GEOCODER_URL: str | None = None

    # Timeouts (secondes) et cache
    REMOTE_TIMEOUT_S: float = 15.0
    GENERATION_TIMEOUT_S: float = 30.0
    CACHE_TTL_DAYS: int = 7

    STATIC_CONTENT_PATH: str = _DEFAULT_STATIC_CONTENT


def get_settings() -> Settings:
    """Construit et retourne la configuration de l'application."""
    return Settings()
