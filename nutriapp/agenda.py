from __future__ import annotations

import secrets
from datetime import date, datetime, time, timedelta
from typing import Any

import structlog
from sqlalchemy import and_, select
from sqlalchemy.orm import Session

from nutriapp.auth_models import Usuario
from nutriapp.auth_security import tem_permissao
from nutriapp.comuns import paginar, parse_data, parse_hora, texto_obrigatorio
from nutriapp.config import get_settings
from nutriapp.db import db_session
from nutriapp.errors import AcessoNegado, Conflito, DadosInvalidos, NaoEncontrado
from nutriapp.financeiro import valor_agendamento
from nutriapp.models import (
    STATUS_ATIVOS,
    Agendamento,
    AgendamentoHistorico,
    Cliente,
    Convenio,
    DisponibilidadeAgenda,
    LocalAtendimento,
    Servico,
    StatusAgendamento,
    TipoAtendimento,
    TipoNotificacao,
)
from nutriapp.notificacoes import enfileirar

logger = structlog.get_logger(__name__)

# indexado por date.weekday() (segunda = 0)
DIAS_SEMANA = ("segunda", "terca", "quarta", "quinta", "sexta", "sabado", "domingo")


# =========================
# Helper / DTO
# =========================
def agendamento_flat(s: Session, a: Agendamento) -> dict[str, Any]:
    return {
        "id": a.id,
        "clienteId": a.cliente_id,
        "clienteNome": a.cliente.nome,
        "profissionalId": a.profissional_id,
        "profissionalNome": a.profissional.nome,
        "servicosIds": list(a.servicos_ids or []),
        "servicosNomes": list(a.servicos_nomes or []),
        "localId": a.local_id,
        "localNome": a.local.nome if a.local else None,
        "convenioId": a.convenio_id,
        "convenioNome": a.convenio.nome if a.convenio else None,
        "data": a.inicio.date().isoformat(),
        "hora": a.inicio.strftime("%H:%M"),
        "duracaoMinutos": int((a.fim - a.inicio).total_seconds() // 60),
        "tipo": a.tipo.value,
        "status": a.status.value,
        "observacoes": a.observacoes,
        "motivoCancelamento": a.motivo_cancelamento,
        "confirmado": a.confirmado_em is not None,
        "confirmadoEm": a.confirmado_em.isoformat() if a.confirmado_em else None,
        "valor": valor_agendamento(s, a),
        "criadoEm": a.criado_em.isoformat() if a.criado_em else None,
    }


def _get_agendamento(s: Session, agendamento_id: str) -> Agendamento:
    a = s.get(Agendamento, agendamento_id)
    if not a:
        raise NaoEncontrado("Agendamento não encontrado")
    return a


def _exige_ativo(a: Agendamento) -> None:
    if a.status not in STATUS_ATIVOS:
        raise DadosInvalidos(f"Agendamento com status '{a.status.value}' não pode ser alterado")


def _tipo(valor: str | None) -> TipoAtendimento:
    try:
        return TipoAtendimento(valor or "presencial")
    except ValueError:
        raise DadosInvalidos(f"tipo de atendimento inválido: {valor}")


def _anexa(texto: str | None, extra: str) -> str:
    return f"{texto} - {extra}" if texto else extra


def _historico(s: Session, a: Agendamento, acao: str, detalhe: str | None = None, usuario_id: str | None = None) -> None:
    s.add(AgendamentoHistorico(agendamento_id=a.id, acao=acao, detalhe=detalhe, usuario_id=usuario_id))


def _notifica(s: Session, a: Agendamento, tipo: TipoNotificacao, mensagem: str) -> None:
    enfileirar(
        s,
        tipo,
        mensagem=mensagem,
        destinatario=a.cliente.email or a.cliente.telefone,
        agendamento_id=a.id,
        cliente_id=a.cliente_id,
    )


def link_confirmacao(a: Agendamento) -> str:
    return f"{get_settings().public_url}/confirmar-consulta?id={a.id}&token={a.token_confirmacao}"


# =========================
# Disponibilidade
# =========================
def _intervalo_livre(s: Session, profissional_id: str, inicio: datetime, fim: datetime, ignorar_id: str | None = None) -> bool:
    """Nenhuma sobreposição [inicio, fim) com agendamentos ativos do profissional."""
    q = (
        select(Agendamento.id)
        .where(
            and_(
                Agendamento.profissional_id == profissional_id,
                Agendamento.status.in_(STATUS_ATIVOS),
                Agendamento.inicio < fim,
                Agendamento.fim > inicio,
            )
        )
        .limit(1)
    )
    if ignorar_id:
        q = q.where(Agendamento.id != ignorar_id)
    return s.execute(q).first() is None


def _faixas_do_dia(s: Session, profissional_id: str, dia: date, local_id: str | None) -> list[tuple[time, time]] | None:
    """
    Faixas de atendimento do profissional no dia da semana.
    None = profissional sem nenhuma disponibilidade configurada (sem restrição).
    Faixas ligadas a um local só valem para esse local; sem local informado
    (ex.: atendimento online), todas as faixas do dia valem.
    """
    todas = list(s.scalars(select(DisponibilidadeAgenda).where(DisponibilidadeAgenda.profissional_id == profissional_id)))
    if not todas:
        return None
    chave = DIAS_SEMANA[dia.weekday()]
    faixas = [
        (parse_hora(d.inicio), parse_hora(d.fim))
        for d in todas
        if d.dia_semana == chave and (local_id is None or d.local_id is None or d.local_id == local_id)
    ]
    return sorted(faixas)


def _dentro_disponibilidade(s: Session, profissional_id: str, local_id: str | None, inicio: datetime, fim: datetime) -> bool:
    faixas = _faixas_do_dia(s, profissional_id, inicio.date(), local_id)
    if faixas is None:
        return True
    if fim.date() != inicio.date():
        return False
    return any(f_ini <= inicio.time() and fim.time() <= f_fim for f_ini, f_fim in faixas)


def _verifica_horario(s: Session, profissional_id: str, local_id: str | None, inicio: datetime, fim: datetime, ignorar_id: str | None = None) -> None:
    if not _dentro_disponibilidade(s, profissional_id, local_id, inicio, fim):
        raise DadosInvalidos("Horário fora da disponibilidade do profissional")
    if not _intervalo_livre(s, profissional_id, inicio, fim, ignorar_id=ignorar_id):
        raise Conflito("Horário indisponível: o profissional já tem um agendamento neste intervalo")


def _valida_faixas(config: dict[str, Any]) -> dict[str, list[tuple[str, str]]]:
    disponibilidade = config.get("disponibilidade") or {}
    out: dict[str, list[tuple[str, str]]] = {}
    for dia, faixas in disponibilidade.items():
        if dia not in DIAS_SEMANA:
            raise DadosInvalidos(f"dia da semana inválido: {dia}")
        convertidas = []
        for f in faixas or []:
            ini, fim = parse_hora(f.get("inicio"), "inicio"), parse_hora(f.get("fim"), "fim")
            if ini >= fim:
                raise DadosInvalidos(f"{dia}: início deve ser anterior ao fim ({f.get('inicio')} - {f.get('fim')})")
            convertidas.append((ini, fim))
        convertidas.sort()
        for (_, fim_a), (ini_b, _) in zip(convertidas, convertidas[1:]):
            if ini_b < fim_a:
                raise DadosInvalidos(f"{dia}: faixas de horário sobrepostas")
        out[dia] = [(i.strftime("%H:%M"), f.strftime("%H:%M")) for i, f in convertidas]
    return out


def definir_disponibilidade_sessao(s: Session, profissional_id: str, config: dict[str, Any]) -> None:
    """Substitui toda a disponibilidade semanal do profissional."""
    faixas = _valida_faixas(config)
    local_id = config.get("localId") or None
    if local_id and s.get(LocalAtendimento, local_id) is None:
        raise DadosInvalidos("Local de atendimento não encontrado")

    for d in s.scalars(select(DisponibilidadeAgenda).where(DisponibilidadeAgenda.profissional_id == profissional_id)):
        s.delete(d)
    s.flush()
    for dia, lista in faixas.items():
        for ini, fim in lista:
            s.add(DisponibilidadeAgenda(profissional_id=profissional_id, local_id=local_id, dia_semana=dia, inicio=ini, fim=fim))
    s.flush()
    logger.info("disponibilidade_definida", profissional_id=profissional_id, faixas=sum(len(v) for v in faixas.values()))


def _get_profissional(s: Session, profissional_id: str) -> Usuario:
    u = s.get(Usuario, profissional_id)
    if not u:
        raise NaoEncontrado("Profissional não encontrado")
    return u


def definir_disponibilidade(profissional_id: str, config: dict[str, Any]) -> dict[str, Any]:
    with db_session() as s:
        _get_profissional(s, profissional_id)
        definir_disponibilidade_sessao(s, profissional_id, config)
    return obter_disponibilidade(profissional_id)


def obter_disponibilidade(profissional_id: str) -> dict[str, Any]:
    with db_session() as s:
        _get_profissional(s, profissional_id)
        registros = list(
            s.scalars(
                select(DisponibilidadeAgenda)
                .where(DisponibilidadeAgenda.profissional_id == profissional_id)
                .order_by(DisponibilidadeAgenda.inicio)
            )
        )
        dias: dict[str, list[dict[str, str]]] = {d: [] for d in ("domingo", *DIAS_SEMANA[:6])}
        for r in registros:
            dias[r.dia_semana].append({"inicio": r.inicio, "fim": r.fim})
        local_id = next((r.local_id for r in registros if r.local_id), None)
        return {"localId": local_id, "disponibilidade": dias}


def horarios_disponiveis(
    profissional_id: str,
    dia: date,
    local_id: str | None = None,
    duracao: int | None = None,
    agora: datetime | None = None,
) -> list[str]:
    """
    Horários de início livres ("HH:MM") no dia:
    - dentro de cada faixa de disponibilidade, em passos de NUTRIAPP_SLOT_MINUTES
    - [inicio, inicio+duracao) cabe na faixa e não sobrepõe agendamentos ativos
    - hoje: só horários ainda não passados
    Sem disponibilidade configurada a lista é vazia.
    """
    passo = timedelta(minutes=get_settings().slot_minutes)
    duracao_td = timedelta(minutes=duracao or get_settings().slot_minutes)
    agora = agora or datetime.now()

    with db_session() as s:
        _get_profissional(s, profissional_id)
        faixas = _faixas_do_dia(s, profissional_id, dia, local_id) or []

        inicio_dia = datetime.combine(dia, time(0, 0))
        ocupados = [
            (a.inicio, a.fim)
            for a in s.scalars(
                select(Agendamento).where(
                    Agendamento.profissional_id == profissional_id,
                    Agendamento.status.in_(STATUS_ATIVOS),
                    Agendamento.inicio < inicio_dia + timedelta(days=1),
                    Agendamento.fim > inicio_dia,
                )
            )
        ]

    livres: list[str] = []
    for f_ini, f_fim in faixas:
        slot = datetime.combine(dia, f_ini)
        limite = datetime.combine(dia, f_fim)
        while slot + duracao_td <= limite:
            fim = slot + duracao_td
            passado = slot <= agora
            if not passado and all(not (o_ini < fim and o_fim > slot) for o_ini, o_fim in ocupados):
                livres.append(slot.strftime("%H:%M"))
            slot += passo
    return sorted(set(livres))


# =========================
# Consultas
# =========================
def listar_agendamentos(
    data: date | None = None,
    status: str | None = None,
    tipo: str | None = None,
    cliente_id: str | None = None,
    profissional_id: str | None = None,
    page: int | None = 1,
    limit: int | None = 10,
) -> tuple[list[dict[str, Any]], dict[str, int]]:
    q = select(Agendamento)
    if data:
        inicio = datetime.combine(data, time(0, 0))
        q = q.where(Agendamento.inicio >= inicio, Agendamento.inicio < inicio + timedelta(days=1))
    if status:
        try:
            q = q.where(Agendamento.status == StatusAgendamento(status))
        except ValueError:
            raise DadosInvalidos(f"status inválido: {status}")
    if tipo:
        q = q.where(Agendamento.tipo == _tipo(tipo))
    if cliente_id:
        q = q.where(Agendamento.cliente_id == cliente_id)
    if profissional_id:
        q = q.where(Agendamento.profissional_id == profissional_id)
    q = q.order_by(Agendamento.inicio.desc())

    with db_session() as s:
        itens, pagination = paginar(s, q, page, limit)
        return [agendamento_flat(s, a) for a in itens], pagination


def obter_agendamento(agendamento_id: str) -> dict[str, Any]:
    with db_session() as s:
        return agendamento_flat(s, _get_agendamento(s, agendamento_id))


def agendamentos_hoje(hoje: date | None = None) -> list[dict[str, Any]]:
    inicio = datetime.combine(hoje or date.today(), time(0, 0))
    with db_session() as s:
        q = (
            select(Agendamento)
            .where(
                and_(
                    Agendamento.inicio >= inicio,
                    Agendamento.inicio < inicio + timedelta(days=1),
                    Agendamento.status.in_(STATUS_ATIVOS),
                )
            )
            .order_by(Agendamento.inicio.asc())
        )
        return [agendamento_flat(s, a) for a in s.scalars(q)]


def historico_agendamento(agendamento_id: str) -> list[dict[str, Any]]:
    with db_session() as s:
        a = _get_agendamento(s, agendamento_id)
        return [
            {
                "id": h.id,
                "acao": h.acao,
                "detalhe": h.detalhe,
                "usuarioId": h.usuario_id,
                "criadoEm": h.criado_em.isoformat(),
            }
            for h in a.historico
        ]


# =========================
# Agendar (use case core)
# =========================
def _servicos(s: Session, ids: list[str] | None) -> list[Servico]:
    if not ids:
        raise DadosInvalidos("Selecione pelo menos um serviço")
    servicos = []
    for sid in ids:
        sv = s.get(Servico, sid)
        if sv is None or not sv.ativo:
            raise DadosInvalidos(f"Serviço inválido ou inativo: {sid}")
        servicos.append(sv)
    return servicos


def _valida_refs(s: Session, local_id: str | None, convenio_id: str | None) -> None:
    if local_id and s.get(LocalAtendimento, local_id) is None:
        raise DadosInvalidos("Local de atendimento não encontrado")
    if convenio_id and s.get(Convenio, convenio_id) is None:
        raise DadosInvalidos("Convênio não encontrado")


def criar_agendamento(dados: dict[str, Any], usuario_id: str | None = None) -> dict[str, Any]:
    """
    Agendar consulta:
    - cliente ativo, profissional ativo (papel >= profissional), serviços ativos
    - duração = soma do tempo dos serviços
    - respeita a disponibilidade do profissional e não sobrepõe outro agendamento
    - gera token de confirmação e notificação CONFIRMACAO com o link
    """
    dia = parse_data(dados.get("data"), "data")
    if dia is None:
        raise DadosInvalidos("data é obrigatória")
    hora = parse_hora(dados.get("horario") or dados.get("hora"), "horario")
    local_id = dados.get("localId") or None
    convenio_id = dados.get("convenioId") or None

    with db_session() as s:
        cliente = s.get(Cliente, dados["clienteId"]) if dados.get("clienteId") else None
        if not cliente or not cliente.ativo:
            raise DadosInvalidos("Cliente inválido ou inativo")
        prof = s.get(Usuario, dados["profissionalId"]) if dados.get("profissionalId") else None
        if not prof or not prof.ativo or not tem_permissao(prof.papel.value, "profissional"):
            raise DadosInvalidos("Profissional inválido ou inativo")
        servicos = _servicos(s, dados.get("servicosIds"))
        _valida_refs(s, local_id, convenio_id)

        inicio = datetime.combine(dia, hora)
        fim = inicio + timedelta(minutes=sum(sv.tempo_minutos for sv in servicos))
        _verifica_horario(s, prof.id, local_id, inicio, fim)

        a = Agendamento(
            cliente_id=cliente.id,
            profissional_id=prof.id,
            local_id=local_id,
            convenio_id=convenio_id,
            servicos_ids=[sv.id for sv in servicos],
            servicos_nomes=[sv.nome for sv in servicos],
            inicio=inicio,
            fim=fim,
            tipo=_tipo(dados.get("tipo")),
            status=StatusAgendamento.AGENDADO,
            observacoes=dados.get("observacoes"),
            token_confirmacao=secrets.token_urlsafe(24),
        )
        s.add(a)
        s.flush()
        s.refresh(a)

        _historico(s, a, "criado", f"{inicio:%d/%m/%Y %H:%M}", usuario_id)
        _notifica(
            s, a, TipoNotificacao.CONFIRMACAO,
            f"Olá {cliente.nome}, sua consulta com {prof.nome} foi agendada para "
            f"{inicio:%d/%m/%Y} às {inicio:%H:%M}. Confirme em: {link_confirmacao(a)}",
        )
        logger.info("agendamento_criado", agendamento_id=a.id, cliente_id=cliente.id, profissional_id=prof.id)
        return agendamento_flat(s, a)


def atualizar_agendamento(agendamento_id: str, dados: dict[str, Any], usuario_id: str | None = None) -> dict[str, Any]:
    """Dados gerais; mudança de data/hora passa por `reagendar`."""
    with db_session() as s:
        a = _get_agendamento(s, agendamento_id)
        _exige_ativo(a)

        if "observacoes" in dados:
            a.observacoes = dados["observacoes"]
        if dados.get("tipo"):
            a.tipo = _tipo(dados["tipo"])
        local_id = dados.get("localId", a.local_id) or None
        convenio_id = dados.get("convenioId", a.convenio_id) or None
        _valida_refs(s, local_id, convenio_id)
        a.convenio_id = convenio_id

        if dados.get("servicosIds") is not None or local_id != a.local_id:
            if dados.get("servicosIds") is not None:
                servicos = _servicos(s, dados["servicosIds"])
                fim = a.inicio + timedelta(minutes=sum(sv.tempo_minutos for sv in servicos))
            else:
                servicos = None
                fim = a.fim
            _verifica_horario(s, a.profissional_id, local_id, a.inicio, fim, ignorar_id=a.id)
            if servicos is not None:
                a.servicos_ids = [sv.id for sv in servicos]
                a.servicos_nomes = [sv.nome for sv in servicos]
                a.fim = fim
            a.local_id = local_id

        _historico(s, a, "atualizado", None, usuario_id)
        s.flush()
        s.refresh(a)
        logger.info("agendamento_atualizado", agendamento_id=a.id)
        return agendamento_flat(s, a)


def reagendar(
    agendamento_id: str,
    nova_data: date | str,
    novo_horario: str,
    motivo: str | None = None,
    usuario_id: str | None = None,
) -> dict[str, Any]:
    dia = parse_data(nova_data, "novaData")
    if dia is None:
        raise DadosInvalidos("novaData é obrigatória")
    hora = parse_hora(novo_horario, "novoHorario")

    with db_session() as s:
        a = _get_agendamento(s, agendamento_id)
        _exige_ativo(a)

        duracao = a.fim - a.inicio
        inicio = datetime.combine(dia, hora)
        fim = inicio + duracao
        _verifica_horario(s, a.profissional_id, a.local_id, inicio, fim, ignorar_id=a.id)

        anterior = a.inicio
        a.inicio, a.fim = inicio, fim
        a.status = StatusAgendamento.REMARCADO
        a.confirmado_em = None

        detalhe = f"{anterior:%d/%m/%Y %H:%M} -> {inicio:%d/%m/%Y %H:%M}"
        if motivo:
            detalhe += f" ({motivo})"
        _historico(s, a, "reagendado", detalhe, usuario_id)
        _notifica(
            s, a, TipoNotificacao.REAGENDAMENTO,
            f"Olá {a.cliente.nome}, sua consulta foi remarcada para {inicio:%d/%m/%Y} às {inicio:%H:%M}. "
            f"Confirme em: {link_confirmacao(a)}",
        )
        logger.info("agendamento_reagendado", agendamento_id=a.id, de=anterior.isoformat(), para=inicio.isoformat())
        return agendamento_flat(s, a)


def cancelar_agendamento(agendamento_id: str, motivo: str, usuario_id: str | None = None) -> dict[str, Any]:
    """
    Cancelar:
    - motivo obrigatório
    - só agendamentos ativos
    - status cancelado + notificação CANCELAMENTO
    """
    motivo = texto_obrigatorio(motivo, "motivo")
    with db_session() as s:
        a = _get_agendamento(s, agendamento_id)
        _exige_ativo(a)
        _cancela(s, a, motivo, f"Cancelado: {motivo}", usuario_id)
        return agendamento_flat(s, a)


def _cancela(s: Session, a: Agendamento, motivo: str, anotacao: str, usuario_id: str | None) -> None:
    a.status = StatusAgendamento.CANCELADO
    a.motivo_cancelamento = motivo
    a.observacoes = _anexa(a.observacoes, anotacao)
    _historico(s, a, "cancelado", motivo, usuario_id)
    _notifica(
        s, a, TipoNotificacao.CANCELAMENTO,
        f"A consulta de {a.cliente.nome} em {a.inicio:%d/%m/%Y} às {a.inicio:%H:%M} foi cancelada. Motivo: {motivo}",
    )
    logger.info("agendamento_cancelado", agendamento_id=a.id)


def marcar_realizado_sessao(s: Session, a: Agendamento, usuario_id: str | None = None) -> None:
    a.status = StatusAgendamento.REALIZADO
    _historico(s, a, "realizado", None, usuario_id)
    logger.info("agendamento_realizado", agendamento_id=a.id)


def marcar_realizado(agendamento_id: str, usuario_id: str | None = None) -> dict[str, Any]:
    with db_session() as s:
        a = _get_agendamento(s, agendamento_id)
        _exige_ativo(a)
        marcar_realizado_sessao(s, a, usuario_id)
        return agendamento_flat(s, a)


# =========================
# Confirmação pública (link com token, sem login)
# =========================
def _por_token(s: Session, agendamento_id: str, token: str) -> Agendamento:
    a = _get_agendamento(s, agendamento_id)
    if not token or not secrets.compare_digest(a.token_confirmacao.encode(), token.encode()):
        raise AcessoNegado("Token de confirmação inválido")
    return a


def _resumo_publico(a: Agendamento) -> dict[str, Any]:
    return {
        "id": a.id,
        "clienteNome": a.cliente.nome,
        "profissionalNome": a.profissional.nome,
        "servicosNomes": list(a.servicos_nomes or []),
        "localNome": a.local.nome if a.local else None,
        "localEndereco": a.local.endereco if a.local else None,
        "data": a.inicio.date().isoformat(),
        "hora": a.inicio.strftime("%H:%M"),
        "tipo": a.tipo.value,
        "status": a.status.value,
        "confirmado": a.confirmado_em is not None,
    }


def obter_publico(agendamento_id: str, token: str) -> dict[str, Any]:
    with db_session() as s:
        return _resumo_publico(_por_token(s, agendamento_id, token))


def confirmar_publico(agendamento_id: str, token: str) -> dict[str, Any]:
    with db_session() as s:
        a = _por_token(s, agendamento_id, token)
        _exige_ativo(a)
        if a.confirmado_em is None:
            a.confirmado_em = datetime.utcnow()
            a.observacoes = _anexa(a.observacoes, "Confirmado pelo cliente")
            _historico(s, a, "confirmado", "pelo cliente")
            logger.info("agendamento_confirmado", agendamento_id=a.id)
        return _resumo_publico(a)


def cancelar_publico(agendamento_id: str, token: str, motivo: str | None = None) -> dict[str, Any]:
    with db_session() as s:
        a = _por_token(s, agendamento_id, token)
        _exige_ativo(a)
        _cancela(s, a, motivo or "Cancelado pelo cliente", "Cancelado pelo cliente", None)
        return _resumo_publico(a)
