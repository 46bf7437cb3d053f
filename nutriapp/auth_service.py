from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session

from nutriapp.agenda import definir_disponibilidade_sessao
from nutriapp.auth_models import Papel, TokenRevogado, Usuario
from nutriapp.auth_security import (
    create_access_token,
    create_refresh_token,
    create_reset_token,
    decode_token_tipo,
    hash_password,
    normaliza_papel,
    verify_password,
)
from nutriapp.config import get_settings
from nutriapp.db import db_session
from nutriapp.errors import Conflito, DadosInvalidos, NaoAutenticado, NaoEncontrado
from nutriapp.models import TipoNotificacao, TipoProfissional
from nutriapp.notificacoes import enfileirar

logger = structlog.get_logger(__name__)

SENHA_MINIMA = 6


def usuario_flat(u: Usuario) -> dict[str, Any]:
    return {
        "id": u.id,
        "nome": u.nome,
        "email": u.email,
        "role": u.papel.value,
        "tipoProfissionalId": u.tipo_profissional_id,
        "ativo": u.ativo,
        "criadoEm": u.criado_em.isoformat() if u.criado_em else None,
    }


def _papel(valor: str | None) -> Papel:
    papel = normaliza_papel(valor)
    if papel is None:
        raise DadosInvalidos(f"papel inválido: {valor}")
    return Papel(papel)


def _valida_senha(senha: str | None) -> str:
    if not senha or len(senha) < SENHA_MINIMA:
        raise DadosInvalidos(f"A senha deve ter pelo menos {SENHA_MINIMA} caracteres")
    return senha


def _valida_tipo_profissional(s: Session, tipo_id: str | None) -> str | None:
    if tipo_id and s.get(TipoProfissional, tipo_id) is None:
        raise DadosInvalidos("tipo profissional não encontrado")
    return tipo_id or None


def _por_email(s: Session, email: str) -> Usuario | None:
    return s.execute(select(Usuario).where(Usuario.email == email)).scalar_one_or_none()


# =========================
# Cadastro e login
# =========================
def criar_usuario(
    nome: str,
    email: str,
    senha: str,
    papel: str = "secretaria",
    tipo_profissional_id: str | None = None,
) -> dict[str, Any]:
    email = (email or "").strip().lower()
    nome = (nome or "").strip()
    if not nome or not email:
        raise DadosInvalidos("Nome e email são obrigatórios.")
    _valida_senha(senha)
    p = _papel(papel)

    with db_session() as s:
        if _por_email(s, email):
            raise Conflito("Email já cadastrado.")

        u = Usuario(
            nome=nome,
            email=email,
            senha_hash=hash_password(senha),
            papel=p,
            tipo_profissional_id=_valida_tipo_profissional(s, tipo_profissional_id),
            ativo=True,
        )
        s.add(u)
        s.flush()
        logger.info("usuario_criado", usuario_id=u.id, papel=p.value)
        return usuario_flat(u)


def autentica(email: str, senha: str) -> Usuario | None:
    email = (email or "").strip().lower()
    with db_session() as s:
        u = _por_email(s, email)
        if not u or not u.ativo:
            return None
        if not verify_password(senha or "", u.senha_hash):
            return None
        return u


def get_usuario_by_id(user_id: str) -> Usuario | None:
    with db_session() as s:
        return s.get(Usuario, user_id)


def emitir_tokens(u: Usuario) -> dict[str, Any]:
    return {
        "user": usuario_flat(u),
        "token": create_access_token(subject=u.id, extra={"role": u.papel.value}),
        "refreshToken": create_refresh_token(u.id),
    }


def login(email: str, senha: str) -> dict[str, Any]:
    u = autentica(email, senha)
    if not u:
        logger.warning("login_falhou", email=(email or "").strip().lower())
        raise NaoAutenticado("Email ou senha inválidos")
    logger.info("login", usuario_id=u.id)
    return emitir_tokens(u)


def renovar_token(refresh_token: str) -> dict[str, Any]:
    payload = decode_token_tipo((refresh_token or "").strip(), "refresh")
    if payload is None:
        raise NaoAutenticado("Refresh token inválido")

    with db_session() as s:
        if s.get(TokenRevogado, payload.get("jti")) is not None:
            raise NaoAutenticado("Refresh token revogado")
        u = s.get(Usuario, payload["sub"])
        if not u or not u.ativo:
            raise NaoAutenticado("Usuário inválido")
        return {"token": create_access_token(subject=u.id, extra={"role": u.papel.value})}


def revogar(refresh_token: str | None) -> None:
    """Logout: invalida o refresh token (access tokens expiram sozinhos)."""
    if not refresh_token:
        return
    payload = decode_token_tipo(refresh_token.strip(), "refresh")
    if payload is None or not payload.get("jti"):
        return

    with db_session() as s:
        if s.get(TokenRevogado, payload["jti"]) is not None:
            return
        expira = datetime.fromtimestamp(payload["exp"], tz=timezone.utc).replace(tzinfo=None)
        s.add(TokenRevogado(jti=payload["jti"], usuario_id=payload["sub"], expira_em=expira))
        logger.info("logout", usuario_id=payload["sub"])


# =========================
# Perfil e senha
# =========================
def atualizar_perfil(user_id: str, dados: dict[str, Any]) -> dict[str, Any]:
    with db_session() as s:
        u = s.get(Usuario, user_id)
        if not u:
            raise NaoEncontrado("Usuário não encontrado")

        if dados.get("nome") is not None:
            if not str(dados["nome"]).strip():
                raise DadosInvalidos("Nome é obrigatório")
            u.nome = str(dados["nome"]).strip()
        if dados.get("email") is not None:
            email = str(dados["email"]).strip().lower()
            outro = _por_email(s, email)
            if outro and outro.id != u.id:
                raise Conflito("Email já cadastrado.")
            u.email = email
        if "tipoProfissionalId" in dados:
            u.tipo_profissional_id = _valida_tipo_profissional(s, dados["tipoProfissionalId"])
        if dados.get("configuracaoAgenda") is not None:
            definir_disponibilidade_sessao(s, u.id, dados["configuracaoAgenda"])

        s.flush()
        logger.info("perfil_atualizado", usuario_id=u.id)
        return usuario_flat(u)


def alterar_senha(user_id: str, senha_atual: str, nova_senha: str) -> None:
    _valida_senha(nova_senha)
    with db_session() as s:
        u = s.get(Usuario, user_id)
        if not u:
            raise NaoEncontrado("Usuário não encontrado")
        if not verify_password(senha_atual or "", u.senha_hash):
            raise DadosInvalidos("Senha atual incorreta")
        u.senha_hash = hash_password(nova_senha)
        logger.info("senha_alterada", usuario_id=u.id)


def solicitar_reset_senha(email: str) -> None:
    """
    Sempre "sucesso" para quem chama (não revela se o email existe).
    Para um usuário ativo, enfileira uma notificação RESET_SENHA com o link.
    """
    email = (email or "").strip().lower()
    with db_session() as s:
        u = _por_email(s, email)
        if not u or not u.ativo:
            logger.info("reset_senha_ignorado", email=email)
            return
        token = create_reset_token(u.id, u.senha_hash)
        link = f"{get_settings().public_url}/trocar-senha?token={token}"
        enfileirar(
            s,
            TipoNotificacao.RESET_SENHA,
            mensagem=f"Olá {u.nome}, para redefinir sua senha acesse: {link}",
            destinatario=u.email,
        )
        logger.info("reset_senha_solicitado", usuario_id=u.id)


def redefinir_senha(token: str, nova_senha: str) -> None:
    _valida_senha(nova_senha)
    payload = decode_token_tipo((token or "").strip(), "reset")
    if payload is None:
        raise DadosInvalidos("Token de redefinição inválido ou expirado")

    with db_session() as s:
        u = s.get(Usuario, payload["sub"])
        if not u or not u.ativo or u.senha_hash[-12:] != payload.get("pwd"):
            raise DadosInvalidos("Token de redefinição inválido ou expirado")
        u.senha_hash = hash_password(nova_senha)
        logger.info("senha_redefinida", usuario_id=u.id)


# =========================
# Gestão de usuários (administrador)
# =========================
def listar_usuarios(papel: str | None = None, ativo: bool | None = None) -> list[dict[str, Any]]:
    with db_session() as s:
        q = select(Usuario)
        if papel:
            q = q.where(Usuario.papel == _papel(papel))
        if ativo is not None:
            q = q.where(Usuario.ativo.is_(ativo))
        return [usuario_flat(u) for u in s.scalars(q.order_by(Usuario.nome))]


def obter_usuario(user_id: str) -> dict[str, Any]:
    with db_session() as s:
        u = s.get(Usuario, user_id)
        if not u:
            raise NaoEncontrado("Usuário não encontrado")
        return usuario_flat(u)


def atualizar_usuario(admin_id: str, user_id: str, dados: dict[str, Any]) -> dict[str, Any]:
    with db_session() as s:
        u = s.get(Usuario, user_id)
        if not u:
            raise NaoEncontrado("Usuário não encontrado")

        if dados.get("nome") is not None:
            u.nome = str(dados["nome"]).strip() or u.nome
        if dados.get("role") is not None:
            u.papel = _papel(dados["role"])
        if "tipoProfissionalId" in dados:
            u.tipo_profissional_id = _valida_tipo_profissional(s, dados["tipoProfissionalId"])
        if dados.get("ativo") is not None:
            if not dados["ativo"] and u.id == admin_id:
                raise DadosInvalidos("Você não pode desativar o próprio usuário")
            u.ativo = bool(dados["ativo"])

        s.flush()
        logger.info("usuario_atualizado", usuario_id=u.id, por=admin_id)
        return usuario_flat(u)


def alternar_status_usuario(admin_id: str, user_id: str) -> dict[str, Any]:
    with db_session() as s:
        u = s.get(Usuario, user_id)
        if not u:
            raise NaoEncontrado("Usuário não encontrado")
        if u.id == admin_id and u.ativo:
            raise DadosInvalidos("Você não pode desativar o próprio usuário")
        u.ativo = not u.ativo
        logger.info("usuario_status_alterado", usuario_id=u.id, ativo=u.ativo)
        return usuario_flat(u)


def garantir_admin_padrao() -> str:
    """Cria o administrador padrão se ainda não existir (idempotente)."""
    settings = get_settings()
    email = settings.admin_email.strip().lower()
    with db_session() as s:
        u = _por_email(s, email)
        if u:
            return u.id
        u = Usuario(
            nome=settings.admin_nome,
            email=email,
            senha_hash=hash_password(settings.admin_password),
            papel=Papel.ADMINISTRADOR,
            ativo=True,
        )
        s.add(u)
        s.flush()
        logger.info("admin_padrao_criado", usuario_id=u.id)
        return u.id
