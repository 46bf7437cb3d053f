from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# Raiz do projeto: o SQLite padrão fica ao lado do pacote
PROJECT_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_DB_PATH = PROJECT_ROOT / "nutriapp.sqlite"


def _get_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on", "sim"}


def _get_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


@dataclass(frozen=True)
class Settings:
    """Configuração resolvida a partir das variáveis de ambiente (e do `.env`)."""

    database_url: str
    db_echo: bool

    jwt_secret: str
    jwt_alg: str
    access_token_minutes: int
    refresh_token_days: int
    reset_token_minutes: int
    bcrypt_rounds: int

    admin_email: str
    admin_password: str
    admin_nome: str

    slot_minutes: int

    log_level: str
    log_json: bool

    webhook_url: str | None
    public_url: str
    cors_origins: tuple[str, ...]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings(
        database_url=os.getenv("NUTRIAPP_DATABASE_URL", f"sqlite:///{DEFAULT_DB_PATH}"),
        db_echo=_get_bool("NUTRIAPP_DB_ECHO"),
        # Em produção: definir sempre JWT_SECRET no ambiente
        jwt_secret=os.getenv("JWT_SECRET", "CHANGE_ME_DEV_SECRET"),
        jwt_alg="HS256",
        access_token_minutes=_get_int("JWT_EXPIRE_MINUTES", 60),
        refresh_token_days=_get_int("JWT_REFRESH_EXPIRE_DAYS", 7),
        reset_token_minutes=_get_int("JWT_RESET_EXPIRE_MINUTES", 30),
        bcrypt_rounds=_get_int("NUTRIAPP_BCRYPT_ROUNDS", 12),
        admin_email=os.getenv("NUTRIAPP_ADMIN_EMAIL", "admin@admin.com"),
        admin_password=os.getenv("NUTRIAPP_ADMIN_PASSWORD", "123Mudar"),
        admin_nome=os.getenv("NUTRIAPP_ADMIN_NOME", "Administrador"),
        slot_minutes=_get_int("NUTRIAPP_SLOT_MINUTES", 30),
        log_level=os.getenv("NUTRIAPP_LOG_LEVEL", "INFO").upper(),
        log_json=_get_bool("NUTRIAPP_LOG_JSON"),
        webhook_url=os.getenv("NUTRIAPP_WEBHOOK_URL") or None,
        public_url=os.getenv("NUTRIAPP_PUBLIC_URL", "http://localhost:5173").rstrip("/"),
        cors_origins=tuple(
            o.strip() for o in os.getenv("NUTRIAPP_CORS_ORIGINS", "http://localhost:5173").split(",") if o.strip()
        ),
    )
