from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable

from jose import JWTError, jwt
from passlib.context import CryptContext

from nutriapp.config import get_settings

_settings = get_settings()

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=_settings.bcrypt_rounds)

# Hierarquia de papéis: quem tem nível maior herda as permissões dos menores
PAPEL_NIVEL: dict[str, int] = {
    "secretaria": 1,
    "profissional": 2,
    "administrador": 3,
}

# nomes alternativos aceitos na entrada
PAPEL_ALIASES: dict[str, str] = {
    "assistente": "secretaria",
}


def normaliza_papel(papel: str | None) -> str | None:
    if papel is None:
        return None
    papel = papel.strip().lower()
    papel = PAPEL_ALIASES.get(papel, papel)
    return papel if papel in PAPEL_NIVEL else None


def tem_permissao(papel: str | None, requerido: str | Iterable[str]) -> bool:
    """
    True se o nível do papel do usuário for >= ao de QUALQUER papel requerido.
    Papel desconhecido (do usuário ou requerido) nunca concede acesso.
    """
    papel = normaliza_papel(papel)
    if papel is None:
        return False
    nivel = PAPEL_NIVEL[papel]

    requeridos = [requerido] if isinstance(requerido, str) else list(requerido)
    for r in requeridos:
        r = normaliza_papel(r)
        if r is not None and nivel >= PAPEL_NIVEL[r]:
            return True
    return False


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)


def _encode(subject: str, tipo: str, lifetime: timedelta, extra: dict[str, Any] | None = None) -> str:
    """
    subject: id do usuário.
    Usa datetime timezone-aware para evitar bugs de offset no timestamp.
    """
    now = datetime.now(timezone.utc)
    expire = now + lifetime

    payload: dict[str, Any] = {
        "sub": subject,
        "type": tipo,
        "jti": str(uuid.uuid4()),
        "iat": int(now.timestamp()),
        "exp": int(expire.timestamp()),
    }
    if extra:
        payload.update(extra)

    return jwt.encode(payload, _settings.jwt_secret, algorithm=_settings.jwt_alg)


def create_access_token(subject: str, extra: dict[str, Any] | None = None) -> str:
    return _encode(subject, "access", timedelta(minutes=_settings.access_token_minutes), extra)


def create_refresh_token(subject: str) -> str:
    return _encode(subject, "refresh", timedelta(days=_settings.refresh_token_days))


def create_reset_token(subject: str, password_hash: str) -> str:
    # o fragmento do hash invalida o token assim que a senha muda
    return _encode(
        subject,
        "reset",
        timedelta(minutes=_settings.reset_token_minutes),
        {"pwd": password_hash[-12:]},
    )


def decode_token(token: str) -> dict[str, Any]:
    return jwt.decode(token, _settings.jwt_secret, algorithms=[_settings.jwt_alg])


def decode_token_tipo(token: str, tipo: str) -> dict[str, Any] | None:
    """Payload do token se for válido e do tipo esperado, senão None."""
    try:
        payload = decode_token(token)
    except JWTError:
        return None
    if payload.get("type") != tipo or not payload.get("sub"):
        return None
    return payload


def get_subject(token: str) -> str | None:
    payload = decode_token_tipo(token, "access")
    return payload.get("sub") if payload else None
