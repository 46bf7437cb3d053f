"""
Rotas dos cadastros, geradas a partir do registro em `nutriapp.cadastros`.

Sem `from __future__ import annotations`: as rotas são criadas dentro de uma
função e o FastAPI precisa das anotações já resolvidas (o schema do corpo é
uma variável local).
"""
from typing import Any

from fastapi import APIRouter, Depends, Query, Request

from nutriapp import cadastros
from nutriapp.api_comum import get_current_user, ok, paginado, requer_papel
from nutriapp.auth_models import Usuario
from nutriapp.comuns import to_snake
from nutriapp.schemas import (
    AlergiaIn,
    AlimentoIn,
    CamelModel,
    ClinicaIn,
    ConvenioIn,
    DocumentoPadraoIn,
    DoencaIn,
    ExameBioquimicoIn,
    FormulaMagistralIn,
    LocalAtendimentoIn,
    PlanejamentoPadraoIn,
    ProgramaIn,
    ServicoIn,
    TipoProfissionalIn,
)

router = APIRouter(prefix="/api", tags=["cadastros"])

SCHEMAS: dict[str, type[CamelModel]] = {
    "clinicas": ClinicaIn,
    "convenios": ConvenioIn,
    "locais-atendimento": LocalAtendimentoIn,
    "tipos-profissionais": TipoProfissionalIn,
    "servicos": ServicoIn,
    "doencas": DoencaIn,
    "alergias": AlergiaIn,
    "exames-bioquimicos": ExameBioquimicoIn,
    "formulas-magistrais": FormulaMagistralIn,
    "alimentos": AlimentoIn,
    "programas": ProgramaIn,
    "planejamentos-padrao": PlanejamentoPadraoIn,
    "documentos-padrao": DocumentoPadraoIn,
}

# recursos com GET /<recurso>/categorias
COM_CATEGORIAS = ("alimentos", "programas", "planejamentos-padrao")

_RESERVADOS = {"page", "limit", "search", "ativo"}


def _registra(nome: str, schema: type[CamelModel]) -> None:
    c = cadastros.get_cadastro(nome)
    escrita = requer_papel(c.papel_escrita)
    base = f"/{nome}"

    # rotas literais antes de /{item_id}
    if nome == "servicos":
        @router.get(f"{base}/ativos", name=f"{nome}_ativos")
        def ativos(user: Usuario = Depends(get_current_user)) -> dict[str, Any]:
            return ok(cadastros.listar_ativos(nome))

    if nome in COM_CATEGORIAS:
        @router.get(f"{base}/categorias", name=f"{nome}_categorias")
        def categorias(user: Usuario = Depends(get_current_user)) -> dict[str, Any]:
            return ok(cadastros.valores_distintos(nome, "categoria"))

    if nome == "planejamentos-padrao":
        @router.get(f"{base}/tags", name=f"{nome}_tags")
        def tags(user: Usuario = Depends(get_current_user)) -> dict[str, Any]:
            return ok(cadastros.tags_distintas(nome))

    @router.get(base, name=f"{nome}_listar")
    def listar(
        request: Request,
        search: str | None = None,
        ativo: bool | None = None,
        page: int = Query(1, ge=1),
        limit: int = Query(10, ge=1),
        user: Usuario = Depends(get_current_user),
    ) -> dict[str, Any]:
        params: dict[str, Any] = {k: v for k, v in request.query_params.items() if k not in _RESERVADOS}
        params["search"] = search
        params["ativo"] = ativo
        return paginado(cadastros.listar(nome, params, page, limit))

    @router.get(f"{base}/{{item_id}}", name=f"{nome}_obter")
    def obter(item_id: str, user: Usuario = Depends(get_current_user)) -> dict[str, Any]:
        return ok(cadastros.obter(nome, item_id))

    @router.post(base, status_code=201, name=f"{nome}_criar")
    def criar(payload: schema, user: Usuario = Depends(escrita)) -> dict[str, Any]:
        item = cadastros.criar(nome, payload.dados(), usuario_id=user.id)
        return ok(item, f"{c.rotulo} criado(a) com sucesso")

    @router.put(f"{base}/{{item_id}}", name=f"{nome}_atualizar")
    def atualizar(item_id: str, body: dict[str, Any], user: Usuario = Depends(escrita)) -> dict[str, Any]:
        # atualização parcial: o corpo é mesclado ao registro atual e revalidado
        atual = cadastros.obter(nome, item_id)
        payload = schema.model_validate({**atual, **body})
        mudancas = {k: v for k, v in payload.dados().items() if k in body or _snake_presente(k, body)}
        return ok(cadastros.atualizar(nome, item_id, mudancas), f"{c.rotulo} atualizado(a) com sucesso")

    @router.delete(f"{base}/{{item_id}}", name=f"{nome}_excluir")
    def excluir(item_id: str, user: Usuario = Depends(escrita)) -> dict[str, Any]:
        cadastros.excluir(nome, item_id)
        return ok(None, f"{c.rotulo} excluído(a) com sucesso")

    @router.patch(f"{base}/{{item_id}}/toggle-status", name=f"{nome}_toggle_status")
    def alternar_status(item_id: str, user: Usuario = Depends(escrita)) -> dict[str, Any]:
        return ok(cadastros.alternar_status(nome, item_id))

    if c.duplicavel:
        @router.post(f"{base}/{{item_id}}/duplicate", status_code=201, name=f"{nome}_duplicar")
        def duplicar(item_id: str, user: Usuario = Depends(escrita)) -> dict[str, Any]:
            return ok(cadastros.duplicar(nome, item_id, usuario_id=user.id), f"{c.rotulo} duplicado(a) com sucesso")


def _snake_presente(chave_camel: str, body: dict[str, Any]) -> bool:
    return to_snake(chave_camel) in body


for _nome, _schema in SCHEMAS.items():
    _registra(_nome, _schema)
