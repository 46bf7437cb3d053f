from __future__ import annotations

from datetime import date
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session

from nutriapp.agenda import marcar_realizado_sessao
from nutriapp.auth_models import Usuario
from nutriapp.clientes import get_cliente
from nutriapp.comuns import calcular_idade, paginar, parse_data
from nutriapp.db import db_session
from nutriapp.errors import DadosInvalidos, NaoEncontrado
from nutriapp.models import STATUS_ATIVOS, Agendamento, Consulta, ExameBioquimico, TipoAtendimento
from nutriapp.nutricao import calcular_imc, classificar_imc

logger = structlog.get_logger(__name__)

# campos de texto livre da consulta: chave camelCase -> atributo
_TEXTOS = {
    "exameFisico": "exame_fisico",
    "diagnostico": "diagnostico",
    "conduta": "conduta",
    "observacoes": "observacoes",
}

# medidas antropométricas guardadas como número
MEDIDAS_NUMERICAS = (
    "peso",
    "altura",
    "percentualGordura",
    "massaMuscular",
    "circunferenciaAbdomen",
    "circunferenciaCintura",
    "circunferenciaQuadril",
    "circunferenciaBraco",
)


# =========================
# Exames bioquímicos
# =========================
def _faixa_referencia(valores_referencia: list[dict[str, Any]], genero: str | None, idade: int | None) -> dict[str, Any] | None:
    """
    Faixa aplicável ao cliente:
    - idade dentro de [idadeMinima, idadeMaxima] (limites ausentes não restringem)
    - faixa do gênero exato do cliente tem prioridade sobre "ambos"
    - gênero desconhecido: só faixas "ambos"
    """
    def cabe(r: dict[str, Any]) -> bool:
        if idade is None:
            return True
        if r.get("idadeMinima") is not None and idade < r["idadeMinima"]:
            return False
        if r.get("idadeMaxima") is not None and idade > r["idadeMaxima"]:
            return False
        return True

    candidatas = [r for r in valores_referencia or [] if cabe(r)]
    if genero in ("masculino", "feminino"):
        exatas = [r for r in candidatas if r.get("genero") == genero]
        if exatas:
            return exatas[0]
    ambos = [r for r in candidatas if r.get("genero", "ambos") == "ambos"]
    return ambos[0] if ambos else None


def classificar_resultado(
    exame: ExameBioquimico,
    valor: float,
    genero: str | None,
    idade: int | None,
    unidade: str | None = None,
) -> dict[str, Any]:
    faixa = _faixa_referencia(exame.valores_referencia, genero, idade)
    status = "normal"
    referencia = None
    if faixa is not None:
        minimo, maximo = faixa.get("minimo"), faixa.get("maximo")
        if minimo is not None and valor < minimo:
            status = "abaixo"
        elif maximo is not None and valor > maximo:
            status = "acima"
        referencia = {"minimo": minimo, "maximo": maximo, "unidade": faixa.get("unidade")}

    return {
        "exameId": exame.id,
        "exameNome": exame.nome,
        "valor": valor,
        "unidade": unidade or (faixa or {}).get("unidade"),
        "status": status,
        "referencia": referencia,
    }


def _classifica_exames(s: Session, resultados: list[dict[str, Any]], genero: str | None, idade: int | None) -> list[dict[str, Any]]:
    out = []
    for r in resultados or []:
        exame = s.get(ExameBioquimico, r.get("exameId")) if r.get("exameId") else None
        if exame is None:
            raise DadosInvalidos(f"exame não encontrado: {r.get('exameId')}")
        if r.get("valor") is None:
            raise DadosInvalidos(f"valor do exame {exame.nome} é obrigatório")
        out.append(classificar_resultado(exame, float(r["valor"]), genero, idade, r.get("unidade")))
    return out


def _medidas(medidas: dict[str, Any] | None) -> dict[str, Any]:
    medidas = dict(medidas or {})
    for campo, valor in medidas.items():
        if campo in MEDIDAS_NUMERICAS and valor not in (None, ""):
            try:
                medidas[campo] = float(valor)
            except (TypeError, ValueError):
                raise DadosInvalidos(f"medida {campo} deve ser numérica: {valor!r}")
    imc = calcular_imc(medidas.get("peso"), medidas.get("altura"))
    if imc is not None:
        medidas["imc"] = imc
        medidas["classificacaoImc"] = classificar_imc(imc)
    return medidas


# =========================
# Helper / DTO
# =========================
def consulta_flat(c: Consulta) -> dict[str, Any]:
    return {
        "id": c.id,
        "clienteId": c.cliente_id,
        "clienteNome": c.cliente.nome,
        "profissionalId": c.profissional_id,
        "agendamentoId": c.agendamento_id,
        "data": c.data.isoformat(),
        "tipo": c.tipo.value,
        "anamnese": c.anamnese,
        "exameFisico": c.exame_fisico,
        "diagnostico": c.diagnostico,
        "conduta": c.conduta,
        "observacoes": c.observacoes,
        "medidas": c.medidas or {},
        "dobrasCutaneas": c.dobras_cutaneas or {},
        "bioimpedancia": c.bioimpedancia or {},
        "resultadosExames": c.resultados_exames or [],
        "criadoEm": c.criado_em.isoformat() if c.criado_em else None,
    }


def _get_consulta(s: Session, consulta_id: str) -> Consulta:
    c = s.get(Consulta, consulta_id)
    if not c:
        raise NaoEncontrado("Consulta não encontrada")
    return c


def _tipo(valor: str | None) -> TipoAtendimento:
    try:
        return TipoAtendimento(valor or "presencial")
    except ValueError:
        raise DadosInvalidos(f"tipo de consulta inválido: {valor}")


def _aplica(s: Session, c: Consulta, dados: dict[str, Any]) -> None:
    for chave, attr in _TEXTOS.items():
        if chave in dados:
            setattr(c, attr, dados[chave])
    if "anamnese" in dados:
        c.anamnese = dados["anamnese"]
    if "tipo" in dados:
        c.tipo = _tipo(dados["tipo"])
    if "data" in dados:
        c.data = parse_data(dados["data"]) or c.data
    if "medidas" in dados:
        c.medidas = _medidas(dados["medidas"])
    if "dobrasCutaneas" in dados:
        c.dobras_cutaneas = dict(dados["dobrasCutaneas"] or {})
    if "bioimpedancia" in dados:
        c.bioimpedancia = dict(dados["bioimpedancia"] or {})

    cliente = c.cliente
    # classificação sempre com a idade na data da consulta
    if "resultadosExames" in dados:
        idade = calcular_idade(cliente.data_nascimento, c.data)
        c.resultados_exames = _classifica_exames(s, dados["resultadosExames"], cliente.genero, idade)


# =========================
# CRUD
# =========================
def listar_consultas(
    cliente_id: str | None = None,
    profissional_id: str | None = None,
    data_inicio: date | None = None,
    data_fim: date | None = None,
    page: int | None = 1,
    limit: int | None = 10,
) -> tuple[list[dict[str, Any]], dict[str, int]]:
    q = select(Consulta)
    if cliente_id:
        q = q.where(Consulta.cliente_id == cliente_id)
    if profissional_id:
        q = q.where(Consulta.profissional_id == profissional_id)
    if data_inicio:
        q = q.where(Consulta.data >= data_inicio)
    if data_fim:
        q = q.where(Consulta.data <= data_fim)
    q = q.order_by(Consulta.data.desc(), Consulta.criado_em.desc())

    with db_session() as s:
        itens, pagination = paginar(s, q, page, limit)
        return [consulta_flat(c) for c in itens], pagination


def obter_consulta(consulta_id: str) -> dict[str, Any]:
    with db_session() as s:
        return consulta_flat(_get_consulta(s, consulta_id))


def criar_consulta(dados: dict[str, Any], usuario_id: str | None = None) -> dict[str, Any]:
    """
    Registra a consulta no prontuário.
    Com `agendamentoId`: o agendamento ainda ativo passa a "realizado".
    """
    with db_session() as s:
        cliente = get_cliente(s, dados.get("clienteId") or "")
        profissional_id = dados.get("profissionalId") or usuario_id
        if profissional_id and s.get(Usuario, profissional_id) is None:
            raise DadosInvalidos("Profissional não encontrado")

        agendamento = None
        if dados.get("agendamentoId"):
            agendamento = s.get(Agendamento, dados["agendamentoId"])
            if agendamento is None:
                raise DadosInvalidos("Agendamento não encontrado")
            if agendamento.cliente_id != cliente.id:
                raise DadosInvalidos("Agendamento pertence a outro cliente")

        c = Consulta(
            cliente_id=cliente.id,
            profissional_id=profissional_id,
            agendamento_id=agendamento.id if agendamento else None,
            data=parse_data(dados.get("data")) or date.today(),
            tipo=_tipo(dados.get("tipo")),
            medidas={},
            dobras_cutaneas={},
            bioimpedancia={},
            resultados_exames=[],
        )
        c.cliente = cliente
        _aplica(s, c, {k: v for k, v in dados.items() if k not in ("data", "tipo")})
        s.add(c)
        s.flush()

        if agendamento is not None and agendamento.status in STATUS_ATIVOS:
            marcar_realizado_sessao(s, agendamento, usuario_id)

        logger.info("consulta_criada", consulta_id=c.id, cliente_id=cliente.id, agendamento_id=c.agendamento_id)
        return consulta_flat(c)


def atualizar_consulta(consulta_id: str, dados: dict[str, Any]) -> dict[str, Any]:
    with db_session() as s:
        c = _get_consulta(s, consulta_id)
        _aplica(s, c, dados)
        s.flush()
        logger.info("consulta_atualizada", consulta_id=c.id)
        return consulta_flat(c)


def excluir_consulta(consulta_id: str) -> None:
    with db_session() as s:
        s.delete(_get_consulta(s, consulta_id))
        logger.info("consulta_excluida", consulta_id=consulta_id)


def consultas_do_cliente(cliente_id: str) -> list[dict[str, Any]]:
    with db_session() as s:
        get_cliente(s, cliente_id)
        q = select(Consulta).where(Consulta.cliente_id == cliente_id).order_by(Consulta.data.desc(), Consulta.criado_em.desc())
        return [consulta_flat(c) for c in s.scalars(q)]


def ultima_consulta(cliente_id: str) -> dict[str, Any] | None:
    consultas = consultas_do_cliente(cliente_id)
    return consultas[0] if consultas else None


def duplicar_consulta(consulta_id: str, usuario_id: str | None = None) -> dict[str, Any]:
    """Cópia datada de hoje, sem vínculo com agendamento."""
    with db_session() as s:
        origem = _get_consulta(s, consulta_id)
        copia = Consulta(
            cliente_id=origem.cliente_id,
            profissional_id=usuario_id or origem.profissional_id,
            agendamento_id=None,
            data=date.today(),
            tipo=origem.tipo,
            anamnese=origem.anamnese,
            exame_fisico=origem.exame_fisico,
            diagnostico=origem.diagnostico,
            conduta=origem.conduta,
            observacoes=origem.observacoes,
            medidas=dict(origem.medidas or {}),
            dobras_cutaneas=dict(origem.dobras_cutaneas or {}),
            bioimpedancia=dict(origem.bioimpedancia or {}),
            resultados_exames=list(origem.resultados_exames or []),
        )
        s.add(copia)
        s.flush()
        s.refresh(copia)
        logger.info("consulta_duplicada", origem=consulta_id, consulta_id=copia.id)
        return consulta_flat(copia)


def evolucao(cliente_id: str) -> list[dict[str, Any]]:
    """Série cronológica das medidas principais do cliente."""
    with db_session() as s:
        get_cliente(s, cliente_id)
        q = select(Consulta).where(Consulta.cliente_id == cliente_id).order_by(Consulta.data.asc(), Consulta.criado_em.asc())
        serie = []
        for c in s.scalars(q):
            m = c.medidas or {}
            bio = c.bioimpedancia or {}
            serie.append(
                {
                    "data": c.data.isoformat(),
                    "peso": m.get("peso"),
                    "imc": m.get("imc"),
                    "percentualGordura": m.get("percentualGordura", bio.get("percentualGordura")),
                    "massaMuscular": m.get("massaMuscular", bio.get("massaMuscular")),
                    "circunferenciaAbdomen": m.get("circunferenciaAbdomen"),
                }
            )
        return serie
