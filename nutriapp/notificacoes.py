from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Any

import requests
import structlog
from sqlalchemy import and_, select
from sqlalchemy.orm import Session

from nutriapp.config import get_settings
from nutriapp.db import db_session
from nutriapp.errors import NaoEncontrado
from nutriapp.models import STATUS_ATIVOS, Agendamento, Notificacao, TipoNotificacao

logger = structlog.get_logger(__name__)

WEBHOOK_TIMEOUT = 10


def enfileirar(
    s: Session,
    tipo: TipoNotificacao,
    mensagem: str,
    destinatario: str | None = None,
    agendamento_id: str | None = None,
    cliente_id: str | None = None,
) -> Notificacao:
    """Registra uma notificação pendente dentro da transação de quem chama."""
    n = Notificacao(
        tipo=tipo,
        mensagem=mensagem,
        destinatario=destinatario,
        agendamento_id=agendamento_id,
        cliente_id=cliente_id,
    )
    s.add(n)
    s.flush()
    logger.info("notificacao_enfileirada", notificacao_id=n.id, tipo=tipo.value, agendamento_id=agendamento_id)
    return n


def notificacao_flat(n: Notificacao) -> dict[str, Any]:
    return {
        "id": n.id,
        "tipo": n.tipo.value,
        "destinatario": n.destinatario,
        "mensagem": n.mensagem,
        "agendamentoId": n.agendamento_id,
        "clienteId": n.cliente_id,
        "criadaEm": n.criada_em.isoformat() if n.criada_em else None,
        "enviadaEm": n.enviada_em.isoformat() if n.enviada_em else None,
        "tentativas": n.tentativas,
    }


def notificacoes_pendentes_flat(limit: int = 200) -> list[dict[str, Any]]:
    with db_session() as s:
        q = (
            select(Notificacao)
            .where(Notificacao.enviada_em.is_(None))
            .order_by(Notificacao.criada_em.asc(), Notificacao.id.asc())
            .limit(limit)
        )
        return [notificacao_flat(n) for n in s.scalars(q)]


def marcar_enviada(notificacao_id: int) -> dict[str, Any]:
    with db_session() as s:
        n = s.get(Notificacao, notificacao_id)
        if not n:
            raise NaoEncontrado("Notificação não encontrada")
        if n.enviada_em is None:
            n.enviada_em = datetime.utcnow()
        return notificacao_flat(n)


def gerar_lembretes(dia: date | None = None) -> int:
    """
    Um LEMBRETE por agendamento ativo do dia (padrão: amanhã).
    Idempotente: agendamentos que já têm lembrete são ignorados.
    """
    dia = dia or (date.today() + timedelta(days=1))
    inicio = datetime.combine(dia, datetime.min.time())
    fim = inicio + timedelta(days=1)

    with db_session() as s:
        q = (
            select(Agendamento)
            .where(
                and_(
                    Agendamento.inicio >= inicio,
                    Agendamento.inicio < fim,
                    Agendamento.status.in_(STATUS_ATIVOS),
                )
            )
            .order_by(Agendamento.inicio.asc())
        )
        criados = 0
        for a in s.scalars(q):
            ja_existe = s.execute(
                select(Notificacao.id).where(
                    Notificacao.agendamento_id == a.id,
                    Notificacao.tipo == TipoNotificacao.LEMBRETE,
                )
            ).first()
            if ja_existe:
                continue
            enfileirar(
                s,
                TipoNotificacao.LEMBRETE,
                mensagem=(
                    f"Lembrete: {a.cliente.nome}, sua consulta com {a.profissional.nome} "
                    f"é em {a.inicio:%d/%m/%Y} às {a.inicio:%H:%M}."
                ),
                destinatario=a.cliente.email or a.cliente.telefone,
                agendamento_id=a.id,
                cliente_id=a.cliente_id,
            )
            criados += 1

        logger.info("lembretes_gerados", dia=dia.isoformat(), quantidade=criados)
        return criados


def despachar(limit: int = 100, session: requests.Session | None = None) -> int:
    """
    Envia as notificações pendentes ao webhook configurado.
    Sem webhook, apenas registra no log. Falhas mantêm a notificação pendente.
    Retorna quantas foram marcadas como enviadas.
    """
    url = get_settings().webhook_url
    http = session or requests.Session()
    enviadas = 0

    with db_session() as s:
        q = (
            select(Notificacao)
            .where(Notificacao.enviada_em.is_(None))
            .order_by(Notificacao.criada_em.asc(), Notificacao.id.asc())
            .limit(limit)
        )
        for n in s.scalars(q):
            if not url:
                logger.info("notificacao_pendente", notificacao_id=n.id, tipo=n.tipo.value, destinatario=n.destinatario)
                continue

            n.tentativas += 1
            try:
                resp = http.post(url, json=notificacao_flat(n), timeout=WEBHOOK_TIMEOUT)
            except requests.RequestException as e:
                logger.warning("notificacao_falhou", notificacao_id=n.id, erro=str(e))
                continue

            if 200 <= resp.status_code < 300:
                n.enviada_em = datetime.utcnow()
                enviadas += 1
                logger.info("notificacao_enviada", notificacao_id=n.id, tipo=n.tipo.value)
            else:
                logger.warning("notificacao_falhou", notificacao_id=n.id, status=resp.status_code)

    return enviadas
