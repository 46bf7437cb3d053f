from __future__ import annotations

from datetime import date
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session

from nutriapp.comuns import paginar, parse_data, texto_obrigatorio, to_dict
from nutriapp.db import db_session
from nutriapp.errors import DadosInvalidos, NaoEncontrado
from nutriapp.models import Agendamento, Servico, TipoTransacao, Transacao

logger = structlog.get_logger(__name__)


def preco_servico(servico: Servico, convenio_id: str | None) -> float:
    """Preço do convênio quando o serviço define um, senão o particular."""
    if convenio_id:
        valor = (servico.valores_convenios or {}).get(convenio_id)
        if valor is not None:
            return float(valor)
    return float(servico.valor_particular or 0)


def valor_agendamento(s: Session, a: Agendamento, servicos: dict[str, Servico] | None = None) -> float:
    total = 0.0
    for sid in a.servicos_ids or []:
        servico = servicos.get(sid) if servicos is not None else s.get(Servico, sid)
        if servico is None:
            continue
        total += preco_servico(servico, a.convenio_id)
    return round(total, 2)


def mapa_servicos(s: Session) -> dict[str, Servico]:
    return {x.id: x for x in s.scalars(select(Servico))}


# =========================
# Transações
# =========================
def _tipo(valor: str | None) -> TipoTransacao:
    try:
        return TipoTransacao(valor)
    except ValueError:
        raise DadosInvalidos(f"tipo de transação inválido: {valor}")


def _get_transacao(s: Session, transacao_id: str) -> Transacao:
    t = s.get(Transacao, transacao_id)
    if not t:
        raise NaoEncontrado("Transação não encontrada")
    return t


def _valor(valor: Any) -> float:
    if valor is None or float(valor) <= 0:
        raise DadosInvalidos("valor deve ser maior que zero")
    return float(valor)


def listar_transacoes(
    data_inicio: date | None = None,
    data_fim: date | None = None,
    tipo: str | None = None,
    page: int | None = 1,
    limit: int | None = 10,
) -> tuple[list[dict[str, Any]], dict[str, int]]:
    q = select(Transacao)
    if data_inicio:
        q = q.where(Transacao.data >= data_inicio)
    if data_fim:
        q = q.where(Transacao.data <= data_fim)
    if tipo:
        q = q.where(Transacao.tipo == _tipo(tipo))
    q = q.order_by(Transacao.data.desc(), Transacao.criado_em.desc())

    with db_session() as s:
        itens, pagination = paginar(s, q, page, limit)
        return [to_dict(t) for t in itens], pagination


def criar_transacao(dados: dict[str, Any]) -> dict[str, Any]:
    with db_session() as s:
        t = Transacao(
            tipo=_tipo(dados.get("tipo")),
            categoria=texto_obrigatorio(dados.get("categoria"), "categoria"),
            descricao=dados.get("descricao"),
            valor=_valor(dados.get("valor")),
            data=parse_data(dados.get("data"), "data") or date.today(),
        )
        s.add(t)
        s.flush()
        logger.info("transacao_criada", transacao_id=t.id, tipo=t.tipo.value, valor=t.valor)
        return to_dict(t)


def atualizar_transacao(transacao_id: str, dados: dict[str, Any]) -> dict[str, Any]:
    with db_session() as s:
        t = _get_transacao(s, transacao_id)
        if "tipo" in dados:
            t.tipo = _tipo(dados["tipo"])
        if "categoria" in dados:
            t.categoria = texto_obrigatorio(dados["categoria"], "categoria")
        if "descricao" in dados:
            t.descricao = dados["descricao"]
        if "valor" in dados:
            t.valor = _valor(dados["valor"])
        if "data" in dados:
            t.data = parse_data(dados["data"], "data") or t.data
        return to_dict(t)


def excluir_transacao(transacao_id: str) -> None:
    with db_session() as s:
        s.delete(_get_transacao(s, transacao_id))
        logger.info("transacao_excluida", transacao_id=transacao_id)
