from __future__ import annotations

from datetime import date
from typing import Any

from fastapi import APIRouter, Depends, Query

from nutriapp import agenda
from nutriapp.api_comum import get_current_user, ok, paginado
from nutriapp.auth_models import Usuario
from nutriapp.auth_security import tem_permissao
from nutriapp.errors import AcessoNegado
from nutriapp.schemas import (
    AgendamentoIn,
    AgendamentoUpdateIn,
    CancelarIn,
    ConfiguracaoAgendaIn,
    ReagendarIn,
    TokenPublicoIn,
)

router = APIRouter(prefix="/api", tags=["agenda"])


# =========================
# Agendamentos
# =========================
@router.get("/agendamentos")
def api_agendamentos(
    data: date | None = None,
    status: str | None = None,
    tipo: str | None = None,
    cliente_id: str | None = Query(None, alias="clienteId"),
    profissional_id: str | None = Query(None, alias="profissionalId"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    user: Usuario = Depends(get_current_user),
) -> dict[str, Any]:
    return paginado(agenda.listar_agendamentos(data, status, tipo, cliente_id, profissional_id, page, limit))


@router.get("/agendamentos/hoje")
def api_agendamentos_hoje(user: Usuario = Depends(get_current_user)) -> dict[str, Any]:
    return ok(agenda.agendamentos_hoje())


@router.get("/agendamentos/horarios-disponiveis")
def api_horarios_disponiveis(
    profissional_id: str = Query(..., alias="profissionalId"),
    data: date = Query(...),
    local_id: str | None = Query(None, alias="localId"),
    duracao: int | None = Query(None, ge=1),
    user: Usuario = Depends(get_current_user),
) -> dict[str, Any]:
    return ok(agenda.horarios_disponiveis(profissional_id, data, local_id, duracao))


@router.post("/agendamentos", status_code=201)
def api_criar_agendamento(payload: AgendamentoIn, user: Usuario = Depends(get_current_user)) -> dict[str, Any]:
    return ok(agenda.criar_agendamento(payload.dados(), usuario_id=user.id), "Agendamento criado com sucesso")


@router.get("/agendamentos/{agendamento_id}")
def api_agendamento(agendamento_id: str, user: Usuario = Depends(get_current_user)) -> dict[str, Any]:
    return ok(agenda.obter_agendamento(agendamento_id))


@router.put("/agendamentos/{agendamento_id}")
def api_atualizar_agendamento(
    agendamento_id: str, payload: AgendamentoUpdateIn, user: Usuario = Depends(get_current_user)
) -> dict[str, Any]:
    dados = payload.dados(parcial=True)
    return ok(agenda.atualizar_agendamento(agendamento_id, dados, usuario_id=user.id), "Agendamento atualizado com sucesso")


@router.patch("/agendamentos/{agendamento_id}/reagendar")
def api_reagendar(agendamento_id: str, payload: ReagendarIn, user: Usuario = Depends(get_current_user)) -> dict[str, Any]:
    a = agenda.reagendar(agendamento_id, payload.nova_data, payload.novo_horario, payload.motivo, usuario_id=user.id)
    return ok(a, "Agendamento remarcado com sucesso")


@router.patch("/agendamentos/{agendamento_id}/cancelar")
def api_cancelar(agendamento_id: str, payload: CancelarIn, user: Usuario = Depends(get_current_user)) -> dict[str, Any]:
    return ok(agenda.cancelar_agendamento(agendamento_id, payload.motivo, usuario_id=user.id), "Agendamento cancelado")


@router.patch("/agendamentos/{agendamento_id}/realizado")
def api_realizado(agendamento_id: str, user: Usuario = Depends(get_current_user)) -> dict[str, Any]:
    return ok(agenda.marcar_realizado(agendamento_id, usuario_id=user.id), "Agendamento marcado como realizado")


@router.get("/agendamentos/{agendamento_id}/historico")
def api_historico(agendamento_id: str, user: Usuario = Depends(get_current_user)) -> dict[str, Any]:
    return ok(agenda.historico_agendamento(agendamento_id))


# =========================
# Disponibilidade
# =========================
@router.get("/usuarios/{usuario_id}/agenda")
def api_disponibilidade(usuario_id: str, user: Usuario = Depends(get_current_user)) -> dict[str, Any]:
    return ok(agenda.obter_disponibilidade(usuario_id))


@router.put("/usuarios/{usuario_id}/agenda")
def api_definir_disponibilidade(
    usuario_id: str, payload: ConfiguracaoAgendaIn, user: Usuario = Depends(get_current_user)
) -> dict[str, Any]:
    if user.id != usuario_id and not tem_permissao(user.papel.value, "administrador"):
        raise AcessoNegado("Somente o próprio profissional ou um administrador pode alterar a agenda")
    return ok(agenda.definir_disponibilidade(usuario_id, payload.dados()), "Agenda atualizada com sucesso")


# =========================
# Confirmação pública (sem login)
# =========================
@router.get("/public/agendamentos/{agendamento_id}")
def api_publico(agendamento_id: str, token: str = Query(...)) -> dict[str, Any]:
    return ok(agenda.obter_publico(agendamento_id, token))


@router.post("/public/agendamentos/{agendamento_id}/confirmar")
def api_publico_confirmar(agendamento_id: str, payload: TokenPublicoIn) -> dict[str, Any]:
    return ok(agenda.confirmar_publico(agendamento_id, payload.token), "Consulta confirmada")


@router.post("/public/agendamentos/{agendamento_id}/cancelar")
def api_publico_cancelar(agendamento_id: str, payload: TokenPublicoIn) -> dict[str, Any]:
    return ok(agenda.cancelar_publico(agendamento_id, payload.token, payload.motivo), "Consulta cancelada")
