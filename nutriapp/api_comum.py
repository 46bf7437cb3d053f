from __future__ import annotations

from typing import Any, Callable

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer

from nutriapp.auth_models import Usuario
from nutriapp.auth_security import get_subject, tem_permissao
from nutriapp.auth_service import get_usuario_by_id
from nutriapp.errors import AcessoNegado, NaoAutenticado

# OAuth2 Bearer (Authorization: Bearer <token>)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


# =========================
# Envelopes de resposta
# =========================
def ok(data: Any = None, message: str | None = None) -> dict[str, Any]:
    body: dict[str, Any] = {"success": True, "data": data}
    if message:
        body["message"] = message
    return body


def paginado(resultado: tuple[list[Any], dict[str, int]]) -> dict[str, Any]:
    itens, pagination = resultado
    return {"success": True, "data": itens, "pagination": pagination}


# =========================
# Dependências de auth
# =========================
def get_current_user(token: str | None = Depends(oauth2_scheme)) -> Usuario:
    if not token:
        raise NaoAutenticado("Token não informado")
    # proteção extra: remove espaços / aspas acidentais
    token = token.strip().strip('"').strip("'")

    user_id = get_subject(token)
    if not user_id:
        raise NaoAutenticado("Token inválido")

    u = get_usuario_by_id(user_id)
    if not u or not u.ativo:
        raise NaoAutenticado("Usuário inválido")
    return u


def requer_papel(*papeis: str) -> Callable[..., Usuario]:
    """Dependência: usuário autenticado com nível >= a algum dos papéis."""
    def dependencia(user: Usuario = Depends(get_current_user)) -> Usuario:
        if not tem_permissao(user.papel.value, papeis):
            raise AcessoNegado("Permissão insuficiente")
        return user

    return dependencia


requer_profissional = requer_papel("profissional")
requer_admin = requer_papel("administrador")
