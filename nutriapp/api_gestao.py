from __future__ import annotations

from datetime import date
from typing import Any

from fastapi import APIRouter, Depends, Query

from nutriapp import auth_service, financeiro, notificacoes, relatorios
from nutriapp.api_comum import get_current_user, ok, paginado, requer_admin, requer_profissional
from nutriapp.auth_models import Usuario
from nutriapp.schemas import TransacaoIn, TransacaoUpdateIn, UsuarioUpdateIn

router = APIRouter(prefix="/api", tags=["gestao"])


# =========================
# Usuários
# =========================
@router.get("/usuarios")
def api_usuarios(
    role: str | None = None,
    ativo: bool | None = None,
    user: Usuario = Depends(get_current_user),
) -> dict[str, Any]:
    # a secretaria precisa da lista de profissionais para agendar
    return ok(auth_service.listar_usuarios(role, ativo))


@router.get("/usuarios/{usuario_id}")
def api_usuario(usuario_id: str, user: Usuario = Depends(requer_admin)) -> dict[str, Any]:
    return ok(auth_service.obter_usuario(usuario_id))


@router.put("/usuarios/{usuario_id}")
def api_atualizar_usuario(usuario_id: str, payload: UsuarioUpdateIn, user: Usuario = Depends(requer_admin)) -> dict[str, Any]:
    u = auth_service.atualizar_usuario(user.id, usuario_id, payload.dados(parcial=True))
    return ok(u, "Usuário atualizado com sucesso")


@router.patch("/usuarios/{usuario_id}/toggle-status")
def api_alternar_usuario(usuario_id: str, user: Usuario = Depends(requer_admin)) -> dict[str, Any]:
    return ok(auth_service.alternar_status_usuario(user.id, usuario_id))


# =========================
# Transações
# =========================
@router.get("/transacoes")
def api_transacoes(
    data_inicio: date | None = Query(None, alias="dataInicio"),
    data_fim: date | None = Query(None, alias="dataFim"),
    tipo: str | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    user: Usuario = Depends(requer_profissional),
) -> dict[str, Any]:
    return paginado(financeiro.listar_transacoes(data_inicio, data_fim, tipo, page, limit))


@router.post("/transacoes", status_code=201)
def api_criar_transacao(payload: TransacaoIn, user: Usuario = Depends(requer_profissional)) -> dict[str, Any]:
    return ok(financeiro.criar_transacao(payload.dados()), "Transação registrada com sucesso")


@router.put("/transacoes/{transacao_id}")
def api_atualizar_transacao(
    transacao_id: str, payload: TransacaoUpdateIn, user: Usuario = Depends(requer_profissional)
) -> dict[str, Any]:
    return ok(financeiro.atualizar_transacao(transacao_id, payload.dados(parcial=True)))


@router.delete("/transacoes/{transacao_id}")
def api_excluir_transacao(transacao_id: str, user: Usuario = Depends(requer_profissional)) -> dict[str, Any]:
    financeiro.excluir_transacao(transacao_id)
    return ok(None, "Transação excluída com sucesso")


# =========================
# Dashboard
# =========================
@router.get("/dashboard/stats")
def api_dashboard_stats(user: Usuario = Depends(get_current_user)) -> dict[str, Any]:
    return ok(relatorios.dashboard_stats())


@router.get("/dashboard/evolucao-receita")
def api_evolucao_receita(meses: int = Query(6, ge=1, le=36), user: Usuario = Depends(get_current_user)) -> dict[str, Any]:
    return ok(relatorios.evolucao_receita(meses))


@router.get("/dashboard/distribuicao-servicos")
def api_distribuicao_servicos(user: Usuario = Depends(get_current_user)) -> dict[str, Any]:
    return ok(relatorios.distribuicao_servicos())


@router.get("/dashboard/agendamentos-proximos")
def api_agendamentos_proximos(limit: int = Query(5, ge=1, le=100), user: Usuario = Depends(get_current_user)) -> dict[str, Any]:
    return ok(relatorios.agendamentos_proximos(limit))


# =========================
# Relatórios (profissional+)
# =========================
@router.get("/relatorios/agendamentos")
def api_relatorio_agendamentos(
    periodo_meses: int = Query(6, alias="periodoMeses"),
    profissional_id: str | None = Query(None, alias="profissionalId"),
    local_id: str | None = Query(None, alias="localId"),
    user: Usuario = Depends(requer_profissional),
) -> dict[str, Any]:
    return ok(relatorios.relatorio_agendamentos(periodo_meses, profissional_id, local_id))


@router.get("/relatorios/clientes")
def api_relatorio_clientes(
    periodo_meses: int = Query(6, alias="periodoMeses"),
    user: Usuario = Depends(requer_profissional),
) -> dict[str, Any]:
    return ok(relatorios.relatorio_clientes(periodo_meses))


@router.get("/relatorios/financeiro")
def api_relatorio_financeiro(
    periodo_meses: int = Query(6, alias="periodoMeses"),
    user: Usuario = Depends(requer_profissional),
) -> dict[str, Any]:
    return ok(relatorios.relatorio_financeiro(periodo_meses))


@router.get("/relatorios/financeiro/periodos")
def api_relatorio_financeiro_periodos(
    inicio: date,
    fim: date,
    agrupamento: str = "mes",
    user: Usuario = Depends(requer_profissional),
) -> dict[str, Any]:
    return ok(relatorios.relatorio_financeiro_periodos(inicio, fim, agrupamento))


@router.get("/relatorios/operacionais")
def api_relatorio_operacionais(
    periodo_meses: int = Query(6, alias="periodoMeses"),
    local_id: str | None = Query(None, alias="localId"),
    user: Usuario = Depends(requer_profissional),
) -> dict[str, Any]:
    return ok(relatorios.relatorio_operacionais(periodo_meses, local_id))


@router.get("/relatorios/programas")
def api_relatorio_programas(
    periodo_meses: int = Query(6, alias="periodoMeses"),
    programa_id: str | None = Query(None, alias="programaId"),
    user: Usuario = Depends(requer_profissional),
) -> dict[str, Any]:
    return ok(relatorios.relatorio_programas(periodo_meses, programa_id))


# =========================
# Notificações (administrador)
# =========================
@router.get("/notificacoes/pendentes")
def api_notificacoes_pendentes(limit: int = Query(200, ge=1, le=1000), user: Usuario = Depends(requer_admin)) -> dict[str, Any]:
    return ok(notificacoes.notificacoes_pendentes_flat(limit))


@router.patch("/notificacoes/{notificacao_id}/enviada")
def api_marcar_enviada(notificacao_id: int, user: Usuario = Depends(requer_admin)) -> dict[str, Any]:
    return ok(notificacoes.marcar_enviada(notificacao_id))
