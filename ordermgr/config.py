# ordermgr/config.py
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

# Carga .env (si existe) antes de leer variables
load_dotenv()


def _as_bool(value: Optional[str], default: bool) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _database_url() -> str:
    url = os.getenv("DATABASE_URL")
    if url:
        return url
    host = os.getenv("DB_HOST", "localhost")
    port = os.getenv("DB_PORT", "5432")
    name = os.getenv("DB_NAME", "ordermgr")
    user = os.getenv("DB_USER", "ordermgr")
    password = os.getenv("DB_PASSWORD", "ordermgr")
    return f"postgresql+psycopg://{user}:{password}@{host}:{port}/{name}"


@dataclass(frozen=True)
class Settings:
    """Configuracion del servicio, leida del entorno."""

    database_url: str
    pool_size: int = 10
    max_overflow: int = 20
    pool_timeout: float = 2.0
    pool_recycle: int = 1800
    isolation_level: str = "READ COMMITTED"
    statement_timeout_ms: int = 0
    echo: bool = False
    create_schema: bool = True
    auth_token_command: Optional[str] = None
    log_level: str = "INFO"
    log_file: Optional[str] = None

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            database_url=_database_url(),
            pool_size=int(os.getenv("DB_POOL_SIZE", "10")),
            max_overflow=int(os.getenv("DB_MAX_OVERFLOW", "20")),
            pool_timeout=float(os.getenv("DB_POOL_TIMEOUT", "2")),
            pool_recycle=int(os.getenv("DB_POOL_RECYCLE", "1800")),
            isolation_level=os.getenv("DB_ISOLATION_LEVEL", "READ COMMITTED"),
            statement_timeout_ms=int(os.getenv("DB_STATEMENT_TIMEOUT_MS", "0")),
            echo=_as_bool(os.getenv("DB_ECHO"), False),
            create_schema=_as_bool(os.getenv("DB_CREATE_SCHEMA"), True),
            auth_token_command=os.getenv("DB_AUTH_TOKEN_COMMAND") or None,
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            log_file=os.getenv("LOG_FILE") or None,
        )
