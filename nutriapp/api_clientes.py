from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query

from nutriapp import clientes, documentos
from nutriapp.api_comum import get_current_user, ok, paginado, requer_profissional
from nutriapp.auth_models import Usuario
from nutriapp.schemas import (
    ClienteIn,
    ClienteUpdateIn,
    CondicoesIn,
    FamiliaIn,
    FamiliaUpdateIn,
    GerarDocumentoIn,
    MembroIn,
    VincularFamiliarIn,
    VincularProgramaIn,
)

router = APIRouter(prefix="/api", tags=["clientes"])


# =========================
# Clientes
# =========================
@router.get("/clientes")
def api_clientes(
    nome: str | None = None,
    telefone: str | None = None,
    ativo: bool | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1),
    user: Usuario = Depends(get_current_user),
) -> dict[str, Any]:
    return paginado(clientes.listar_clientes(nome, telefone, ativo, page, limit))


@router.post("/clientes", status_code=201)
def api_criar_cliente(payload: ClienteIn, user: Usuario = Depends(get_current_user)) -> dict[str, Any]:
    return ok(clientes.criar_cliente(payload.dados()), "Cliente cadastrado com sucesso")


@router.get("/clientes/{cliente_id}")
def api_cliente(cliente_id: str, user: Usuario = Depends(get_current_user)) -> dict[str, Any]:
    return ok(clientes.obter_cliente(cliente_id))


@router.put("/clientes/{cliente_id}")
def api_atualizar_cliente(cliente_id: str, payload: ClienteUpdateIn, user: Usuario = Depends(get_current_user)) -> dict[str, Any]:
    return ok(clientes.atualizar_cliente(cliente_id, payload.dados(parcial=True)), "Cliente atualizado com sucesso")


@router.delete("/clientes/{cliente_id}")
def api_excluir_cliente(cliente_id: str, user: Usuario = Depends(get_current_user)) -> dict[str, Any]:
    clientes.excluir_cliente(cliente_id)
    return ok(None, "Cliente desativado com sucesso")


# =========================
# Famílias
# =========================
@router.get("/clientes/{cliente_id}/familias")
def api_familiares(cliente_id: str, user: Usuario = Depends(get_current_user)) -> dict[str, Any]:
    return ok(clientes.familiares_do_cliente(cliente_id))


@router.post("/clientes/{cliente_id}/familias", status_code=201)
def api_vincular_familiar(cliente_id: str, payload: VincularFamiliarIn, user: Usuario = Depends(get_current_user)) -> dict[str, Any]:
    return ok(clientes.vincular_familiar(cliente_id, payload.familiar_id), "Familiar vinculado com sucesso")


@router.delete("/clientes/{cliente_id}/familias/{familiar_id}")
def api_desvincular_familiar(cliente_id: str, familiar_id: str, user: Usuario = Depends(get_current_user)) -> dict[str, Any]:
    clientes.desvincular_familiar(cliente_id, familiar_id)
    return ok(None, "Familiar desvinculado com sucesso")


@router.get("/familias")
def api_familias(user: Usuario = Depends(get_current_user)) -> dict[str, Any]:
    return ok(clientes.listar_familias())


@router.post("/familias", status_code=201)
def api_criar_familia(payload: FamiliaIn, user: Usuario = Depends(get_current_user)) -> dict[str, Any]:
    return ok(clientes.criar_familia(payload.nome, payload.descricao, payload.membros_ids), "Família criada com sucesso")


@router.get("/familias/{familia_id}")
def api_familia(familia_id: str, user: Usuario = Depends(get_current_user)) -> dict[str, Any]:
    return ok(clientes.obter_familia(familia_id))


@router.put("/familias/{familia_id}")
def api_atualizar_familia(familia_id: str, payload: FamiliaUpdateIn, user: Usuario = Depends(get_current_user)) -> dict[str, Any]:
    return ok(clientes.atualizar_familia(familia_id, payload.dados(parcial=True)))


@router.delete("/familias/{familia_id}")
def api_excluir_familia(familia_id: str, user: Usuario = Depends(get_current_user)) -> dict[str, Any]:
    clientes.excluir_familia(familia_id)
    return ok(None, "Família excluída com sucesso")


@router.post("/familias/{familia_id}/membros", status_code=201)
def api_adicionar_membro(familia_id: str, payload: MembroIn, user: Usuario = Depends(get_current_user)) -> dict[str, Any]:
    return ok(clientes.adicionar_membro(familia_id, payload.cliente_id))


@router.delete("/familias/{familia_id}/membros/{cliente_id}")
def api_remover_membro(familia_id: str, cliente_id: str, user: Usuario = Depends(get_current_user)) -> dict[str, Any]:
    return ok(clientes.remover_membro(familia_id, cliente_id))


# =========================
# Condições e programas
# =========================
@router.get("/clientes/{cliente_id}/condicoes")
def api_condicoes(cliente_id: str, user: Usuario = Depends(requer_profissional)) -> dict[str, Any]:
    return ok(clientes.condicoes_cliente(cliente_id))


@router.put("/clientes/{cliente_id}/condicoes")
def api_definir_condicoes(cliente_id: str, payload: CondicoesIn, user: Usuario = Depends(requer_profissional)) -> dict[str, Any]:
    return ok(clientes.definir_condicoes(cliente_id, payload.doencas_ids, payload.alergias_ids))


@router.get("/clientes/{cliente_id}/programas")
def api_programas_cliente(cliente_id: str, user: Usuario = Depends(get_current_user)) -> dict[str, Any]:
    return ok(clientes.programas_cliente(cliente_id))


@router.post("/clientes/{cliente_id}/programas", status_code=201)
def api_vincular_programa(cliente_id: str, payload: VincularProgramaIn, user: Usuario = Depends(requer_profissional)) -> dict[str, Any]:
    return ok(clientes.vincular_programa(cliente_id, payload.programa_id, payload.data_inicio), "Programa vinculado com sucesso")


@router.patch("/clientes/{cliente_id}/programas/{vinculo_id}/encerrar")
def api_encerrar_programa(cliente_id: str, vinculo_id: str, user: Usuario = Depends(requer_profissional)) -> dict[str, Any]:
    return ok(clientes.encerrar_programa(cliente_id, vinculo_id))


# =========================
# Documentos do cliente
# =========================
@router.get("/clientes/{cliente_id}/documentos")
def api_documentos_cliente(cliente_id: str, user: Usuario = Depends(requer_profissional)) -> dict[str, Any]:
    return ok(documentos.documentos_do_cliente(cliente_id))


@router.post("/documentos/gerar", status_code=201)
def api_gerar_documento(payload: GerarDocumentoIn, user: Usuario = Depends(requer_profissional)) -> dict[str, Any]:
    doc = documentos.gerar_documento(payload.cliente_id, payload.documento_padrao_id, payload.titulo, usuario_id=user.id)
    return ok(doc, "Documento gerado com sucesso")


@router.get("/documentos/{documento_id}")
def api_documento(documento_id: str, user: Usuario = Depends(requer_profissional)) -> dict[str, Any]:
    return ok(documentos.obter_documento(documento_id))


@router.delete("/documentos/{documento_id}")
def api_excluir_documento(documento_id: str, user: Usuario = Depends(requer_profissional)) -> dict[str, Any]:
    documentos.excluir_documento(documento_id)
    return ok(None, "Documento excluído com sucesso")
