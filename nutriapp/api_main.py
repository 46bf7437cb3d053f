from __future__ import annotations

import time
import uuid
from contextlib import asynccontextmanager
from typing import Any

import structlog
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from structlog.contextvars import bind_contextvars, clear_contextvars

from nutriapp import auth_service
from nutriapp.api_agenda import router as agenda_router
from nutriapp.api_cadastros import router as cadastros_router
from nutriapp.api_clientes import router as clientes_router
from nutriapp.api_comum import get_current_user, ok, requer_admin
from nutriapp.api_gestao import router as gestao_router
from nutriapp.api_prontuario import router as prontuario_router
from nutriapp.auth_models import Usuario
from nutriapp.config import get_settings
from nutriapp.db import init_db
from nutriapp.errors import NutriAppError
from nutriapp.logs import configure_logging
from nutriapp.schemas import (
    LoginIn,
    LogoutIn,
    PerfilIn,
    RecuperarSenhaIn,
    RedefinirSenhaIn,
    RefreshIn,
    RegisterIn,
    TrocarSenhaIn,
)
from nutriapp.seed import seed_base

logger = structlog.get_logger(__name__)


# =========================
# Startup
# =========================
@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    # cria tabelas e seed base (idempotente)
    init_db()
    seed_base()
    logger.info("api_iniciada")
    yield
    logger.info("api_encerrada")


app = FastAPI(title="NutriApp API", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(get_settings().cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Request id em todos os eventos da requisição + uma linha de log por requisição."""
    request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
    clear_contextvars()
    bind_contextvars(request_id=request_id)
    inicio = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception:
        logger.exception("requisicao_falhou", method=request.method, path=request.url.path)
        raise
    duracao_ms = round((time.perf_counter() - inicio) * 1000, 1)
    response.headers["X-Request-Id"] = request_id
    logger.info(
        "requisicao",
        method=request.method,
        path=request.url.path,
        status=response.status_code,
        duracao_ms=duracao_ms,
    )
    return response


# =========================
# Envelope de erro
# =========================
def _erro(status_code: int, message: str, code: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message, "code": code})


def _mensagem_validacao(erros: list[dict[str, Any]]) -> str:
    if not erros:
        return "Dados inválidos"
    e = erros[0]
    campo = ".".join(str(p) for p in e.get("loc", ()) if p not in ("body", "query", "path"))
    return f"{campo}: {e.get('msg')}" if campo else str(e.get("msg"))


@app.exception_handler(NutriAppError)
async def nutriapp_error_handler(request: Request, exc: NutriAppError) -> JSONResponse:
    logger.warning("erro_dominio", code=exc.code, status=exc.status_code, message=exc.message)
    return _erro(exc.status_code, exc.message, exc.code)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    codes = {401: "unauthorized", 403: "forbidden", 404: "not_found", 405: "method_not_allowed", 409: "conflict"}
    return _erro(exc.status_code, str(exc.detail), codes.get(exc.status_code, "http_error"))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return _erro(422, _mensagem_validacao(list(exc.errors())), "validation_error")


@app.exception_handler(ValidationError)
async def validation_handler(request: Request, exc: ValidationError) -> JSONResponse:
    return _erro(422, _mensagem_validacao(list(exc.errors())), "validation_error")


@app.exception_handler(Exception)
async def unhandled_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("erro_inesperado", path=request.url.path)
    return _erro(500, "Erro interno do servidor", "internal_error")


# =========================
# AUTH endpoints
# =========================
@app.post("/api/auth/login")
def login(payload: LoginIn) -> dict[str, Any]:
    return ok(auth_service.login(payload.email, payload.senha))


@app.post("/api/auth/register", status_code=201)
def register(payload: RegisterIn, user: Usuario = Depends(requer_admin)) -> dict[str, Any]:
    u = auth_service.criar_usuario(
        payload.nome,
        payload.email,
        payload.senha,
        papel=payload.tipo,
        tipo_profissional_id=payload.tipo_profissional_id,
    )
    return ok(u, "Usuário cadastrado com sucesso")


@app.get("/api/auth/me")
def me(user: Usuario = Depends(get_current_user)) -> dict[str, Any]:
    return ok(auth_service.usuario_flat(user))


@app.put("/api/auth/profile")
def update_profile(payload: PerfilIn, user: Usuario = Depends(get_current_user)) -> dict[str, Any]:
    return ok(auth_service.atualizar_perfil(user.id, payload.dados(parcial=True)), "Perfil atualizado com sucesso")


@app.post("/api/auth/change-password")
def change_password(payload: TrocarSenhaIn, user: Usuario = Depends(get_current_user)) -> dict[str, Any]:
    auth_service.alterar_senha(user.id, payload.senha_atual, payload.nova_senha)
    return ok(None, "Senha alterada com sucesso")


@app.post("/api/auth/forgot-password")
def forgot_password(payload: RecuperarSenhaIn) -> dict[str, Any]:
    auth_service.solicitar_reset_senha(payload.email)
    return ok(None, "Se o email estiver cadastrado, você receberá as instruções")


@app.post("/api/auth/reset-password")
def reset_password(payload: RedefinirSenhaIn) -> dict[str, Any]:
    auth_service.redefinir_senha(payload.token, payload.nova_senha)
    return ok(None, "Senha redefinida com sucesso")


@app.post("/api/auth/refresh")
def refresh(payload: RefreshIn) -> dict[str, Any]:
    return ok(auth_service.renovar_token(payload.refresh_token))


@app.post("/api/auth/logout")
def logout(payload: LogoutIn | None = None) -> dict[str, Any]:
    auth_service.revogar(payload.refresh_token if payload else None)
    return ok(None, "Logout realizado")


@app.get("/api/health")
def health() -> dict[str, Any]:
    return ok({"status": "ok"})


app.include_router(cadastros_router)
app.include_router(clientes_router)
app.include_router(agenda_router)
app.include_router(prontuario_router)
app.include_router(gestao_router)
