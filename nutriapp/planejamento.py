from __future__ import annotations

import copy
from datetime import date
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session

from nutriapp.clientes import get_cliente
from nutriapp.comuns import paginar, parse_data, texto_obrigatorio, to_dict
from nutriapp.db import db_session
from nutriapp.errors import DadosInvalidos, NaoEncontrado
from nutriapp.models import Alimento, PlanejamentoAlimentar, PlanejamentoPadrao
from nutriapp.nutricao import aplica_fator, descricao_reajuste, fator_reajuste, totais_plano

logger = structlog.get_logger(__name__)


def _alimentos(s: Session) -> dict[str, dict[str, Any]]:
    return {a.id: to_dict(a) for a in s.scalars(select(Alimento))}


def _valida_refeicoes(s: Session, refeicoes: list[dict[str, Any]] | None) -> list[dict[str, Any]]:
    """Normaliza as refeições; alimentos precisam existir e ter quantidade > 0."""
    out = []
    for r in refeicoes or []:
        itens = []
        for item in r.get("alimentos") or []:
            alimento_id = item.get("alimentoId")
            if not alimento_id or s.get(Alimento, alimento_id) is None:
                raise DadosInvalidos(f"alimento não encontrado: {alimento_id}")
            quantidade = item.get("quantidade")
            if quantidade is None or float(quantidade) <= 0:
                raise DadosInvalidos("quantidade deve ser maior que zero")
            itens.append({"alimentoId": alimento_id, "quantidade": float(quantidade)})
        out.append(
            {
                "nome": texto_obrigatorio(r.get("nome"), "nome da refeição"),
                "horario": r.get("horario"),
                "alimentos": itens,
                "observacoes": r.get("observacoes"),
            }
        )
    return out


def planejamento_flat(s: Session, p: PlanejamentoAlimentar, alimentos: dict[str, dict[str, Any]] | None = None) -> dict[str, Any]:
    alimentos = alimentos if alimentos is not None else _alimentos(s)
    return {
        "id": p.id,
        "clienteId": p.cliente_id,
        "clienteNome": p.cliente.nome,
        "nome": p.nome,
        "descricao": p.descricao,
        "refeicoes": p.refeicoes or [],
        "observacoes": p.observacoes,
        "dataInicio": p.data_inicio.isoformat(),
        "dataFim": p.data_fim.isoformat() if p.data_fim else None,
        "ativo": p.ativo,
        "criadoPor": p.criado_por,
        "criadoEm": p.criado_em.isoformat() if p.criado_em else None,
        "totais": totais_plano(p.refeicoes or [], alimentos),
    }


def _get_plano(s: Session, plano_id: str) -> PlanejamentoAlimentar:
    p = s.get(PlanejamentoAlimentar, plano_id)
    if not p:
        raise NaoEncontrado("Planejamento não encontrado")
    return p


def _novo(s: Session, **campos: Any) -> PlanejamentoAlimentar:
    p = PlanejamentoAlimentar(ativo=True, **campos)
    s.add(p)
    s.flush()
    s.refresh(p)
    return p


# =========================
# CRUD
# =========================
def listar_planejamentos(
    cliente_id: str | None = None,
    ativo: bool | None = None,
    page: int | None = 1,
    limit: int | None = 10,
) -> tuple[list[dict[str, Any]], dict[str, int]]:
    q = select(PlanejamentoAlimentar)
    if cliente_id:
        q = q.where(PlanejamentoAlimentar.cliente_id == cliente_id)
    if ativo is not None:
        q = q.where(PlanejamentoAlimentar.ativo.is_(ativo))
    q = q.order_by(PlanejamentoAlimentar.data_inicio.desc(), PlanejamentoAlimentar.criado_em.desc())

    with db_session() as s:
        itens, pagination = paginar(s, q, page, limit)
        alimentos = _alimentos(s)
        return [planejamento_flat(s, p, alimentos) for p in itens], pagination


def obter_planejamento(plano_id: str) -> dict[str, Any]:
    with db_session() as s:
        return planejamento_flat(s, _get_plano(s, plano_id))


def criar_planejamento(dados: dict[str, Any], usuario_id: str | None = None) -> dict[str, Any]:
    with db_session() as s:
        cliente = get_cliente(s, dados.get("clienteId") or "")
        p = _novo(
            s,
            cliente_id=cliente.id,
            nome=texto_obrigatorio(dados.get("nome"), "nome"),
            descricao=dados.get("descricao"),
            refeicoes=_valida_refeicoes(s, dados.get("refeicoes")),
            observacoes=dados.get("observacoes"),
            data_inicio=parse_data(dados.get("dataInicio"), "dataInicio") or date.today(),
            data_fim=parse_data(dados.get("dataFim"), "dataFim"),
            criado_por=usuario_id,
        )
        logger.info("planejamento_criado", planejamento_id=p.id, cliente_id=cliente.id)
        return planejamento_flat(s, p)


def atualizar_planejamento(plano_id: str, dados: dict[str, Any]) -> dict[str, Any]:
    with db_session() as s:
        p = _get_plano(s, plano_id)
        if "nome" in dados:
            p.nome = texto_obrigatorio(dados["nome"], "nome")
        if "descricao" in dados:
            p.descricao = dados["descricao"]
        if "observacoes" in dados:
            p.observacoes = dados["observacoes"]
        if "refeicoes" in dados:
            p.refeicoes = _valida_refeicoes(s, dados["refeicoes"])
        if "dataInicio" in dados:
            p.data_inicio = parse_data(dados["dataInicio"], "dataInicio") or p.data_inicio
        if "dataFim" in dados:
            p.data_fim = parse_data(dados["dataFim"], "dataFim")
        if dados.get("ativo") is not None:
            p.ativo = bool(dados["ativo"])
        s.flush()
        logger.info("planejamento_atualizado", planejamento_id=p.id)
        return planejamento_flat(s, p)


def excluir_planejamento(plano_id: str) -> None:
    with db_session() as s:
        p = _get_plano(s, plano_id)
        p.ativo = False
        logger.info("planejamento_desativado", planejamento_id=p.id)


# =========================
# Reajuste, cópia e padrões
# =========================
def reajustar(
    plano_id: str,
    tipo_ajuste: str,
    operacao: str,
    valor: float,
    nome: str | None = None,
    usuario_id: str | None = None,
) -> dict[str, Any]:
    """
    Cria um NOVO planejamento com todas as quantidades multiplicadas pelo fator:
    - percentual: 1 ± valor/100
    - absoluto: (kcal ± valor) / kcal
    """
    with db_session() as s:
        origem = _get_plano(s, plano_id)
        kcal = totais_plano(origem.refeicoes or [], _alimentos(s))["kcal"]
        fator = fator_reajuste(tipo_ajuste, operacao, valor, kcal)

        sufixo = descricao_reajuste(tipo_ajuste, operacao, valor)
        p = _novo(
            s,
            cliente_id=origem.cliente_id,
            nome=(nome or "").strip() or f"{origem.nome} (Reajustado)",
            descricao=f"{origem.descricao} {sufixo}" if origem.descricao else sufixo,
            refeicoes=aplica_fator(origem.refeicoes, fator),
            observacoes=origem.observacoes,
            data_inicio=date.today(),
            data_fim=None,
            criado_por=usuario_id,
        )
        logger.info("planejamento_reajustado", origem=plano_id, planejamento_id=p.id, fator=round(fator, 4))
        return planejamento_flat(s, p)


def copiar(plano_id: str, cliente_destino_id: str, nome: str | None = None, usuario_id: str | None = None) -> dict[str, Any]:
    with db_session() as s:
        origem = _get_plano(s, plano_id)
        if origem.cliente_id == cliente_destino_id:
            raise DadosInvalidos("O cliente de destino deve ser diferente do cliente de origem")
        destino = get_cliente(s, cliente_destino_id)

        p = _novo(
            s,
            cliente_id=destino.id,
            nome=(nome or "").strip() or f"{origem.nome} (Copiado de {origem.cliente.nome})",
            descricao=origem.descricao,
            refeicoes=copy.deepcopy(origem.refeicoes or []),
            observacoes=origem.observacoes,
            data_inicio=date.today(),
            data_fim=None,
            criado_por=usuario_id,
        )
        logger.info("planejamento_copiado", origem=plano_id, planejamento_id=p.id, cliente_id=destino.id)
        return planejamento_flat(s, p)


def de_padrao(
    padrao_id: str,
    cliente_id: str,
    nome: str | None = None,
    descricao: str | None = None,
    data_inicio: date | str | None = None,
    usuario_id: str | None = None,
) -> dict[str, Any]:
    with db_session() as s:
        padrao = s.get(PlanejamentoPadrao, padrao_id)
        if not padrao:
            raise NaoEncontrado("Planejamento padrão não encontrado")
        if not padrao.ativo:
            raise DadosInvalidos("Planejamento padrão inativo")
        cliente = get_cliente(s, cliente_id)

        p = _novo(
            s,
            cliente_id=cliente.id,
            nome=(nome or "").strip() or f"{padrao.nome} - {cliente.nome}",
            descricao=descricao if descricao is not None else padrao.descricao,
            refeicoes=copy.deepcopy(padrao.refeicoes or []),
            observacoes=padrao.observacoes,
            data_inicio=parse_data(data_inicio, "dataInicio") or date.today(),
            data_fim=None,
            criado_por=usuario_id,
        )
        logger.info("planejamento_de_padrao", padrao_id=padrao.id, planejamento_id=p.id, cliente_id=cliente.id)
        return planejamento_flat(s, p)
