from __future__ import annotations

from datetime import date
from typing import Any

from fastapi import APIRouter, Depends, Query

from nutriapp import planejamento, prontuario
from nutriapp.api_comum import ok, paginado, requer_profissional
from nutriapp.auth_models import Usuario
from nutriapp.schemas import (
    ConsultaIn,
    ConsultaUpdateIn,
    CopiarPlanoIn,
    DePadraoIn,
    PlanejamentoIn,
    PlanejamentoUpdateIn,
    ReajusteIn,
)

# prontuário e planejamento alimentar: profissional ou administrador
router = APIRouter(prefix="/api", tags=["prontuario"])


# =========================
# Consultas
# =========================
@router.get("/consultas")
def api_consultas(
    cliente_id: str | None = Query(None, alias="clienteId"),
    profissional_id: str | None = Query(None, alias="profissionalId"),
    data_inicio: date | None = Query(None, alias="dataInicio"),
    data_fim: date | None = Query(None, alias="dataFim"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    user: Usuario = Depends(requer_profissional),
) -> dict[str, Any]:
    return paginado(prontuario.listar_consultas(cliente_id, profissional_id, data_inicio, data_fim, page, limit))


@router.post("/consultas", status_code=201)
def api_criar_consulta(payload: ConsultaIn, user: Usuario = Depends(requer_profissional)) -> dict[str, Any]:
    return ok(prontuario.criar_consulta(payload.dados(), usuario_id=user.id), "Consulta registrada com sucesso")


@router.get("/consultas/{consulta_id}")
def api_consulta(consulta_id: str, user: Usuario = Depends(requer_profissional)) -> dict[str, Any]:
    return ok(prontuario.obter_consulta(consulta_id))


@router.put("/consultas/{consulta_id}")
def api_atualizar_consulta(consulta_id: str, payload: ConsultaUpdateIn, user: Usuario = Depends(requer_profissional)) -> dict[str, Any]:
    return ok(prontuario.atualizar_consulta(consulta_id, payload.dados(parcial=True)), "Consulta atualizada com sucesso")


@router.delete("/consultas/{consulta_id}")
def api_excluir_consulta(consulta_id: str, user: Usuario = Depends(requer_profissional)) -> dict[str, Any]:
    prontuario.excluir_consulta(consulta_id)
    return ok(None, "Consulta excluída com sucesso")


@router.post("/consultas/{consulta_id}/duplicar", status_code=201)
def api_duplicar_consulta(consulta_id: str, user: Usuario = Depends(requer_profissional)) -> dict[str, Any]:
    return ok(prontuario.duplicar_consulta(consulta_id, usuario_id=user.id), "Consulta duplicada com sucesso")


@router.get("/clientes/{cliente_id}/consultas")
def api_consultas_cliente(cliente_id: str, user: Usuario = Depends(requer_profissional)) -> dict[str, Any]:
    return ok(prontuario.consultas_do_cliente(cliente_id))


@router.get("/clientes/{cliente_id}/consultas/ultima")
def api_ultima_consulta(cliente_id: str, user: Usuario = Depends(requer_profissional)) -> dict[str, Any]:
    return ok(prontuario.ultima_consulta(cliente_id))


@router.get("/clientes/{cliente_id}/evolucao")
def api_evolucao(cliente_id: str, user: Usuario = Depends(requer_profissional)) -> dict[str, Any]:
    return ok(prontuario.evolucao(cliente_id))


# =========================
# Planejamentos alimentares
# =========================
@router.get("/planejamentos")
def api_planejamentos(
    cliente_id: str | None = Query(None, alias="clienteId"),
    ativo: bool | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    user: Usuario = Depends(requer_profissional),
) -> dict[str, Any]:
    return paginado(planejamento.listar_planejamentos(cliente_id, ativo, page, limit))


@router.post("/planejamentos", status_code=201)
def api_criar_planejamento(payload: PlanejamentoIn, user: Usuario = Depends(requer_profissional)) -> dict[str, Any]:
    return ok(planejamento.criar_planejamento(payload.dados(), usuario_id=user.id), "Planejamento criado com sucesso")


@router.post("/planejamentos/de-padrao", status_code=201)
def api_de_padrao(payload: DePadraoIn, user: Usuario = Depends(requer_profissional)) -> dict[str, Any]:
    p = planejamento.de_padrao(
        payload.padrao_id,
        payload.cliente_id,
        nome=payload.nome,
        descricao=payload.descricao,
        data_inicio=payload.data_inicio,
        usuario_id=user.id,
    )
    return ok(p, "Planejamento criado a partir do padrão")


@router.get("/planejamentos/{plano_id}")
def api_planejamento(plano_id: str, user: Usuario = Depends(requer_profissional)) -> dict[str, Any]:
    return ok(planejamento.obter_planejamento(plano_id))


@router.put("/planejamentos/{plano_id}")
def api_atualizar_planejamento(
    plano_id: str, payload: PlanejamentoUpdateIn, user: Usuario = Depends(requer_profissional)
) -> dict[str, Any]:
    return ok(planejamento.atualizar_planejamento(plano_id, payload.dados(parcial=True)), "Planejamento atualizado com sucesso")


@router.delete("/planejamentos/{plano_id}")
def api_excluir_planejamento(plano_id: str, user: Usuario = Depends(requer_profissional)) -> dict[str, Any]:
    planejamento.excluir_planejamento(plano_id)
    return ok(None, "Planejamento desativado com sucesso")


@router.post("/planejamentos/{plano_id}/reajustar", status_code=201)
def api_reajustar(plano_id: str, payload: ReajusteIn, user: Usuario = Depends(requer_profissional)) -> dict[str, Any]:
    p = planejamento.reajustar(plano_id, payload.tipo_ajuste, payload.operacao, payload.valor, payload.nome, usuario_id=user.id)
    return ok(p, "Planejamento reajustado com sucesso")


@router.post("/planejamentos/{plano_id}/copiar", status_code=201)
def api_copiar(plano_id: str, payload: CopiarPlanoIn, user: Usuario = Depends(requer_profissional)) -> dict[str, Any]:
    p = planejamento.copiar(plano_id, payload.cliente_destino_id, payload.nome, usuario_id=user.id)
    return ok(p, "Planejamento copiado com sucesso")
