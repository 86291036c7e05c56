from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass

from dotenv import load_dotenv

FALLBACK_CURRENCY = "ARS"
LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
LOG_LEVELS = {
    "production": logging.INFO,
    "test": logging.WARNING,
}


@dataclass(frozen=True)
class Settings:
    port: int
    environment: str
    default_currency: str
    database_url: str
    cors_origins: tuple[str, ...]


def load_settings() -> Settings:
    load_dotenv()
    environment = os.getenv("ENVIRONMENT", "development").strip().lower() or "development"
    return Settings(
        port=int(os.getenv("PORT", "8080")),
        environment=environment,
        default_currency=_default_currency(os.getenv("DEFAULT_CURRENCY", FALLBACK_CURRENCY)),
        database_url=os.getenv("DATABASE_URL", "sqlite:///./finance.db"),
        cors_origins=_cors_origins(os.getenv("CORS_ORIGINS"), environment),
    )


def configure_logging(environment: str) -> None:
    logging.basicConfig(
        level=LOG_LEVELS.get(environment, logging.DEBUG),
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def _default_currency(raw: str) -> str:
    normalized = raw.strip().upper()
    if len(normalized) != 3 or not normalized.isalpha():
        return FALLBACK_CURRENCY
    return normalized


def _cors_origins(raw: str | None, environment: str) -> tuple[str, ...]:
    if raw:
        return tuple(origin.strip() for origin in raw.split(",") if origin.strip())
    if environment == "production":
        return ()
    return ("*",)
