"""
Dashboard e relatórios gerenciais.

Tudo é calculado no servidor a partir dos dados gravados. A janela de
`periodo_meses` vai do primeiro dia do mês (n-1) meses atrás até hoje,
inclusive; os meses são rotulados "YYYY-MM".
"""
from __future__ import annotations

from collections import Counter, defaultdict
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Any, Callable, Iterable

from sqlalchemy import and_, func, select
from sqlalchemy.orm import Session

from nutriapp.agenda import agendamento_flat
from nutriapp.comuns import calcular_idade
from nutriapp.db import db_session
from nutriapp.errors import DadosInvalidos
from nutriapp.financeiro import mapa_servicos, preco_servico
from nutriapp.models import (
    STATUS_ATIVOS,
    Agendamento,
    Cliente,
    ClientePrograma,
    ProgramaNutricional,
    Servico,
    StatusAgendamento,
    TipoTransacao,
    Transacao,
)

FAIXAS_ETARIAS = (
    ("<18", 0, 17),
    ("18-29", 18, 29),
    ("30-39", 30, 39),
    ("40-49", 40, 49),
    ("50-59", 50, 59),
    ("60+", 60, 200),
)

# ordem importa: o primeiro grupo com palavra-chave presente vence
OBJETIVOS = (
    ("emagrecer", ("emagre", "perder peso", "perda de peso")),
    ("ganhar massa muscular", ("massa muscular", "hipertrofia", "músculo", "musculo")),
    ("ganhar peso", ("ganhar peso", "ganho de peso", "engordar")),
    ("manter peso", ("manter", "manutenção", "manutencao")),
    ("saúde", ("saúde", "saude", "bem-estar", "qualidade de vida")),
    ("performance", ("performance", "desempenho", "esporte", "atleta")),
)

AGRUPAMENTOS = ("dia", "semana", "mes", "ano")
MAX_DIAS_PERIODO = 3660  # cerca de 10 anos


# =========================
# Janela de tempo
# =========================
@dataclass(frozen=True)
class Janela:
    inicio: date
    fim: date  # inclusive
    meses: tuple[str, ...]

    @property
    def inicio_dt(self) -> datetime:
        return datetime.combine(self.inicio, time(0, 0))

    @property
    def fim_dt(self) -> datetime:
        return datetime.combine(self.fim + timedelta(days=1), time(0, 0))


def _recua_meses(d: date, n: int) -> date:
    total = d.year * 12 + (d.month - 1) - n
    return date(total // 12, total % 12 + 1, 1)


def janela(periodo_meses: int, hoje: date) -> Janela:
    if periodo_meses < 1:
        raise DadosInvalidos("periodoMeses deve ser pelo menos 1")
    inicio = _recua_meses(hoje, periodo_meses - 1)
    meses = tuple(_recua_meses(hoje, n).strftime("%Y-%m") for n in range(periodo_meses - 1, -1, -1))
    return Janela(inicio, hoje, meses)


def _mes(d: date | datetime) -> str:
    return d.strftime("%Y-%m")


def _taxa(parte: int | float, total: int | float) -> float:
    return round(parte / total * 100, 1) if total else 0.0


def _agora(agora: datetime | None) -> datetime:
    return agora or datetime.now()


# =========================
# Leitura e valores
# =========================
def _agendamentos(s: Session, j: Janela, profissional_id: str | None = None, local_id: str | None = None) -> list[Agendamento]:
    q = select(Agendamento).where(and_(Agendamento.inicio >= j.inicio_dt, Agendamento.inicio < j.fim_dt))
    if profissional_id:
        q = q.where(Agendamento.profissional_id == profissional_id)
    if local_id:
        q = q.where(Agendamento.local_id == local_id)
    return list(s.scalars(q.order_by(Agendamento.inicio.asc())))


def _itens_servico(a: Agendamento, servicos: dict[str, Servico]) -> list[tuple[str, float]]:
    """(nome, valor) de cada serviço do agendamento, com o nome gravado no agendamento."""
    nomes = list(a.servicos_nomes or [])
    out = []
    for i, sid in enumerate(a.servicos_ids or []):
        servico = servicos.get(sid)
        nome = nomes[i] if i < len(nomes) else (servico.nome if servico else sid)
        valor = preco_servico(servico, a.convenio_id) if servico else 0.0
        out.append((nome, valor))
    return out


def _valor(a: Agendamento, servicos: dict[str, Servico]) -> float:
    return round(sum(v for _, v in _itens_servico(a, servicos)), 2)


def _realizados(ags: Iterable[Agendamento]) -> list[Agendamento]:
    return [a for a in ags if a.status == StatusAgendamento.REALIZADO]


# =========================
# Dashboard
# =========================
def evolucao_receita(meses: int = 6, agora: datetime | None = None) -> list[dict[str, Any]]:
    agora = _agora(agora)
    j = janela(meses, agora.date())
    with db_session() as s:
        servicos = mapa_servicos(s)
        por_mes: dict[str, dict[str, Any]] = {m: {"mes": m, "consultas": 0, "receita": 0.0} for m in j.meses}
        for a in _realizados(_agendamentos(s, j)):
            linha = por_mes[_mes(a.inicio)]
            linha["consultas"] += 1
            linha["receita"] = round(linha["receita"] + _valor(a, servicos), 2)
        return list(por_mes.values())


def distribuicao_servicos() -> list[dict[str, Any]]:
    """Quantidade e receita por serviço nos atendimentos realizados."""
    with db_session() as s:
        servicos = mapa_servicos(s)
        acc: dict[str, dict[str, Any]] = {}
        q = select(Agendamento).where(Agendamento.status == StatusAgendamento.REALIZADO)
        for a in s.scalars(q):
            for nome, valor in _itens_servico(a, servicos):
                linha = acc.setdefault(nome, {"nome": nome, "quantidade": 0, "valor": 0.0})
                linha["quantidade"] += 1
                linha["valor"] = round(linha["valor"] + valor, 2)
        return sorted(acc.values(), key=lambda x: (-x["quantidade"], x["nome"]))


def agendamentos_proximos(limit: int = 5, agora: datetime | None = None) -> list[dict[str, Any]]:
    agora = _agora(agora)
    with db_session() as s:
        q = (
            select(Agendamento)
            .where(and_(Agendamento.inicio >= agora, Agendamento.status.in_(STATUS_ATIVOS)))
            .order_by(Agendamento.inicio.asc())
            .limit(limit)
        )
        return [agendamento_flat(s, a) for a in s.scalars(q)]


def dashboard_stats(agora: datetime | None = None) -> dict[str, Any]:
    agora = _agora(agora)
    hoje = agora.date()
    inicio_mes = datetime.combine(hoje.replace(day=1), time(0, 0))
    inicio_hoje = datetime.combine(hoje, time(0, 0))

    with db_session() as s:
        servicos = mapa_servicos(s)
        total_clientes = s.execute(select(func.count(Cliente.id)).where(Cliente.ativo.is_(True))).scalar_one()
        novos_mes = s.execute(select(func.count(Cliente.id)).where(Cliente.criado_em >= inicio_mes)).scalar_one()
        hoje_qtd = s.execute(
            select(func.count(Agendamento.id)).where(
                Agendamento.inicio >= inicio_hoje,
                Agendamento.inicio < inicio_hoje + timedelta(days=1),
                Agendamento.status.in_(STATUS_ATIVOS),
            )
        ).scalar_one()
        pendentes = s.execute(
            select(func.count(Agendamento.id)).where(Agendamento.status.in_(STATUS_ATIVOS))
        ).scalar_one()

        realizados = list(s.scalars(select(Agendamento).where(Agendamento.status == StatusAgendamento.REALIZADO)))
        receita_total = round(sum(_valor(a, servicos) for a in realizados), 2)
        receita_mes = round(sum(_valor(a, servicos) for a in realizados if a.inicio >= inicio_mes), 2)

    return {
        "totalClientes": total_clientes,
        "clientesNovosEsteMes": novos_mes,
        "agendamentosHoje": hoje_qtd,
        "agendamentosPendentes": pendentes,
        "consultasRealizadas": len(realizados),
        "receitaTotal": receita_total,
        "receitaMes": receita_mes,
        "proximasConsultas": agendamentos_proximos(5, agora),
        "graficoEvolucao": evolucao_receita(6, agora),
        "distribuicaoServicos": distribuicao_servicos(),
    }


# =========================
# Relatório de agendamentos
# =========================
def relatorio_agendamentos(
    periodo_meses: int = 6,
    profissional_id: str | None = None,
    local_id: str | None = None,
    agora: datetime | None = None,
) -> dict[str, Any]:
    j = janela(periodo_meses, _agora(agora).date())
    with db_session() as s:
        ags = _agendamentos(s, j, profissional_id, local_id)

        por_status = {st.value: 0 for st in StatusAgendamento}
        por_mes = {m: {"mes": m, "realizados": 0, "cancelados": 0, "agendados": 0, "total": 0} for m in j.meses}
        por_prof: dict[str, dict[str, Any]] = {}
        por_local: dict[str | None, dict[str, Any]] = {}
        por_servico: Counter[str] = Counter()

        for a in ags:
            por_status[a.status.value] += 1
            linha = por_mes[_mes(a.inicio)]
            linha["total"] += 1
            if a.status == StatusAgendamento.REALIZADO:
                linha["realizados"] += 1
            elif a.status == StatusAgendamento.CANCELADO:
                linha["cancelados"] += 1
            else:
                linha["agendados"] += 1

            p = por_prof.setdefault(
                a.profissional_id,
                {"profissionalId": a.profissional_id, "nome": a.profissional.nome, "total": 0, "realizados": 0, "cancelados": 0},
            )
            p["total"] += 1
            p["realizados"] += a.status == StatusAgendamento.REALIZADO
            p["cancelados"] += a.status == StatusAgendamento.CANCELADO

            nome_local = a.local.nome if a.local else ("Online" if a.tipo.value == "online" else "Sem local")
            loc = por_local.setdefault(a.local_id, {"localId": a.local_id, "nome": nome_local, "total": 0})
            loc["total"] += 1

            por_servico.update(a.servicos_nomes or [])

    total = len(ags)
    realizados = por_status[StatusAgendamento.REALIZADO.value]
    cancelados = por_status[StatusAgendamento.CANCELADO.value]
    for p in por_prof.values():
        p["taxaRealizacao"] = _taxa(p["realizados"], p["total"])

    return {
        "periodoMeses": periodo_meses,
        "porStatus": por_status,
        "porMes": list(por_mes.values()),
        "porProfissional": sorted(por_prof.values(), key=lambda x: -x["total"]),
        "porLocal": sorted(por_local.values(), key=lambda x: -x["total"]),
        "porServico": [{"nome": n, "quantidade": q} for n, q in por_servico.most_common(10)],
        "total": total,
        "realizados": realizados,
        "cancelados": cancelados,
        "taxaRealizacao": _taxa(realizados, total),
        "taxaCancelamento": _taxa(cancelados, total),
    }


# =========================
# Relatório de clientes
# =========================
def faixa_etaria(idade: int | None) -> str | None:
    if idade is None:
        return None
    for rotulo, minimo, maximo in FAIXAS_ETARIAS:
        if minimo <= idade <= maximo:
            return rotulo
    return None


def categoria_objetivo(texto: str | None) -> str | None:
    if not texto or not texto.strip():
        return None
    t = texto.lower()
    for rotulo, palavras in OBJETIVOS:
        if any(p in t for p in palavras):
            return rotulo
    return "outros"


def relatorio_clientes(periodo_meses: int = 6, agora: datetime | None = None) -> dict[str, Any]:
    agora = _agora(agora)
    hoje = agora.date()
    j = janela(periodo_meses, hoje)

    with db_session() as s:
        clientes = list(s.scalars(select(Cliente).where(Cliente.ativo.is_(True))))
        ativos_ids = {a.cliente_id for a in _realizados(_agendamentos(s, j))}

    faixas = {rotulo: 0 for rotulo, _, _ in FAIXAS_ETARIAS}
    objetivos: Counter[str] = Counter()
    novos_por_mes = {m: 0 for m in j.meses}
    for c in clientes:
        faixa = faixa_etaria(calcular_idade(c.data_nascimento, hoje))
        if faixa:
            faixas[faixa] += 1
        cat = categoria_objetivo(c.objetivos)
        if cat:
            objetivos[cat] += 1
        if c.criado_em and j.inicio_dt <= c.criado_em < j.fim_dt:
            novos_por_mes[_mes(c.criado_em)] += 1

    ativos = sum(1 for c in clientes if c.id in ativos_ids)
    return {
        "periodoMeses": periodo_meses,
        "totalClientes": len(clientes),
        "faixasEtarias": [{"faixa": k, "quantidade": v} for k, v in faixas.items()],
        "novosPorMes": [{"mes": m, "quantidade": q} for m, q in novos_por_mes.items()],
        "objetivosComuns": [{"objetivo": o, "quantidade": q} for o, q in objetivos.most_common()],
        "clientesAtivos": ativos,
        "clientesInativos": len(clientes) - ativos,
        "novosEsteMes": novos_por_mes[j.meses[-1]],
    }


# =========================
# Relatórios financeiros
# =========================
def _transacoes(s: Session, inicio: date, fim: date) -> list[Transacao]:
    q = select(Transacao).where(Transacao.data >= inicio, Transacao.data <= fim)
    return list(s.scalars(q))


def relatorio_financeiro(periodo_meses: int = 6, agora: datetime | None = None) -> dict[str, Any]:
    j = janela(periodo_meses, _agora(agora).date())
    with db_session() as s:
        servicos = mapa_servicos(s)
        realizados = _realizados(_agendamentos(s, j))
        transacoes = _transacoes(s, j.inicio, j.fim)

        por_mes = {
            m: {"mes": m, "receitaConsultas": 0.0, "entradas": 0.0, "saidas": 0.0, "lucro": 0.0, "consultasQtd": 0}
            for m in j.meses
        }
        por_servico: dict[str, dict[str, Any]] = {}
        por_tipo: dict[str, dict[str, Any]] = {}
        despesas: dict[str, float] = defaultdict(float)

        for a in realizados:
            valor = _valor(a, servicos)
            linha = por_mes[_mes(a.inicio)]
            linha["receitaConsultas"] += valor
            linha["entradas"] += valor
            linha["consultasQtd"] += 1
            for nome, v in _itens_servico(a, servicos):
                ps = por_servico.setdefault(nome, {"nome": nome, "valor": 0.0, "quantidade": 0})
                ps["valor"] += v
                ps["quantidade"] += 1
            tipo = a.convenio.nome if a.convenio else "Particular"
            pt = por_tipo.setdefault(tipo, {"tipo": tipo, "valor": 0.0, "quantidade": 0})
            pt["valor"] += valor
            pt["quantidade"] += 1

        for t in transacoes:
            linha = por_mes[_mes(t.data)]
            if t.tipo == TipoTransacao.ENTRADA:
                linha["entradas"] += t.valor
            else:
                linha["saidas"] += t.valor
                despesas[t.categoria] += t.valor

    for linha in por_mes.values():
        linha["lucro"] = linha["entradas"] - linha["saidas"]
        for k in ("receitaConsultas", "entradas", "saidas", "lucro"):
            linha[k] = round(linha[k], 2)

    receita_consultas = round(sum(l["receitaConsultas"] for l in por_mes.values()), 2)
    entradas = round(sum(l["entradas"] for l in por_mes.values()), 2)
    saidas = round(sum(l["saidas"] for l in por_mes.values()), 2)
    qtd = len(realizados)
    return {
        "periodoMeses": periodo_meses,
        "porMes": list(por_mes.values()),
        "receitaPorServico": sorted(
            ({**v, "valor": round(v["valor"], 2)} for v in por_servico.values()), key=lambda x: -x["valor"]
        ),
        "receitaPorTipo": sorted(
            ({**v, "valor": round(v["valor"], 2)} for v in por_tipo.values()), key=lambda x: -x["valor"]
        ),
        "despesasPorCategoria": sorted(
            ({"categoria": k, "valor": round(v, 2)} for k, v in despesas.items()), key=lambda x: -x["valor"]
        ),
        "totais": {
            "receitaConsultas": receita_consultas,
            "entradas": entradas,
            "saidas": saidas,
            "lucro": round(entradas - saidas, 2),
            "consultas": qtd,
            "ticketMedio": round(receita_consultas / qtd, 2) if qtd else 0.0,
        },
    }


def chave_periodo(d: date, agrupamento: str) -> str:
    if agrupamento == "dia":
        return d.isoformat()
    if agrupamento == "semana":
        return (d - timedelta(days=d.weekday())).isoformat()  # semana começa na segunda
    if agrupamento == "mes":
        return _mes(d)
    if agrupamento == "ano":
        return str(d.year)
    raise DadosInvalidos(f"agrupamento inválido: {agrupamento}")


def relatorio_financeiro_periodos(inicio: date, fim: date, agrupamento: str = "mes") -> list[dict[str, Any]]:
    if agrupamento not in AGRUPAMENTOS:
        raise DadosInvalidos(f"agrupamento deve ser um de: {', '.join(AGRUPAMENTOS)}")
    if inicio > fim:
        raise DadosInvalidos("data inicial deve ser anterior à data final")
    if (fim - inicio).days > MAX_DIAS_PERIODO:
        raise DadosInvalidos(f"intervalo máximo é de {MAX_DIAS_PERIODO} dias")

    linhas: dict[str, dict[str, Any]] = {}
    d = inicio
    while d <= fim:
        k = chave_periodo(d, agrupamento)
        linhas.setdefault(k, {"periodo": k, "faturamento": 0.0, "consultasRealizadas": 0, "consultasCanceladas": 0})
        d += timedelta(days=1)

    j = Janela(inicio, fim, ())
    with db_session() as s:
        servicos = mapa_servicos(s)
        for a in _agendamentos(s, j):
            linha = linhas[chave_periodo(a.inicio.date(), agrupamento)]
            if a.status == StatusAgendamento.REALIZADO:
                linha["faturamento"] += _valor(a, servicos)
                linha["consultasRealizadas"] += 1
            elif a.status == StatusAgendamento.CANCELADO:
                linha["consultasCanceladas"] += 1

    out = []
    for linha in linhas.values():
        linha["faturamento"] = round(linha["faturamento"], 2)
        realizadas = linha["consultasRealizadas"]
        linha["ticketMedio"] = round(linha["faturamento"] / realizadas, 2) if realizadas else 0.0
        out.append(linha)
    return out


# =========================
# Relatórios operacionais e de programas
# =========================
def _agrupa(ags: Iterable[Agendamento], chave: Callable[[Agendamento], Any]) -> dict[Any, list[Agendamento]]:
    grupos: dict[Any, list[Agendamento]] = defaultdict(list)
    for a in ags:
        grupos[chave(a)].append(a)
    return grupos


def relatorio_operacionais(periodo_meses: int = 6, local_id: str | None = None, agora: datetime | None = None) -> dict[str, Any]:
    j = janela(periodo_meses, _agora(agora).date())
    with db_session() as s:
        servicos = mapa_servicos(s)
        ags = _agendamentos(s, j, local_id=local_id)

        produtividade = []
        for _, grupo in _agrupa(ags, lambda a: a.profissional_id).items():
            realizados = _realizados(grupo)
            cancelados = sum(1 for a in grupo if a.status == StatusAgendamento.CANCELADO)
            produtividade.append(
                {
                    "profissionalId": grupo[0].profissional_id,
                    "nome": grupo[0].profissional.nome,
                    "total": len(grupo),
                    "realizados": len(realizados),
                    "cancelados": cancelados,
                    "taxaRealizacao": _taxa(len(realizados), len(grupo)),
                    "receita": round(sum(_valor(a, servicos) for a in realizados), 2),
                }
            )

        locais = []
        for _, grupo in _agrupa(ags, lambda a: a.local_id).items():
            realizados = len(_realizados(grupo))
            primeiro = grupo[0]
            locais.append(
                {
                    "localId": primeiro.local_id,
                    "nome": primeiro.local.nome if primeiro.local else "Sem local",
                    "total": len(grupo),
                    "realizados": realizados,
                    "taxaOcupacao": _taxa(realizados, len(grupo)),
                }
            )

    horas = Counter(a.inicio.strftime("%H:00") for a in ags if a.status != StatusAgendamento.CANCELADO)
    demanda: Counter[str] = Counter()
    for a in ags:
        demanda.update(a.servicos_nomes or [])

    mensal = {m: {"mes": m, "total": 0, "realizados": 0, "cancelados": 0} for m in j.meses}
    for a in ags:
        linha = mensal[_mes(a.inicio)]
        linha["total"] += 1
        linha["realizados"] += a.status == StatusAgendamento.REALIZADO
        linha["cancelados"] += a.status == StatusAgendamento.CANCELADO

    return {
        "periodoMeses": periodo_meses,
        "produtividade": sorted(produtividade, key=lambda x: -x["total"]),
        "utilizacaoLocais": sorted(locais, key=lambda x: -x["total"]),
        "horariosPico": [{"hora": h, "quantidade": q} for h, q in sorted(horas.items())],
        "servicosDemandados": [{"nome": n, "quantidade": q} for n, q in demanda.most_common()],
        "evolucaoMensal": list(mensal.values()),
    }


def relatorio_programas(periodo_meses: int = 6, programa_id: str | None = None, agora: datetime | None = None) -> dict[str, Any]:
    j = janela(periodo_meses, _agora(agora).date())
    with db_session() as s:
        q = select(ClientePrograma).where(ClientePrograma.data_inicio >= j.inicio, ClientePrograma.data_inicio <= j.fim)
        if programa_id:
            q = q.where(ClientePrograma.programa_id == programa_id)
        vinculos = list(s.scalars(q))

        q_prog = select(ProgramaNutricional).order_by(ProgramaNutricional.nome)
        if programa_id:
            q_prog = q_prog.where(ProgramaNutricional.id == programa_id)
        adesao = {
            p.id: {"programaId": p.id, "nome": p.nome, "ativos": 0, "inativos": 0, "total": 0, "receita": 0.0}
            for p in s.scalars(q_prog)
        }

    por_mes = {m: 0 for m in j.meses}
    duracoes = []
    for v in vinculos:
        linha = adesao.get(v.programa_id)
        if linha is not None:
            linha["total"] += 1
            linha["ativos" if v.ativo else "inativos"] += 1
            linha["receita"] = round(linha["receita"] + v.preco, 2)
        por_mes[_mes(v.data_inicio)] += 1
        if v.data_fim:
            duracoes.append((v.data_fim - v.data_inicio).days)

    ativos = sum(1 for v in vinculos if v.ativo)
    return {
        "periodoMeses": periodo_meses,
        "adesaoPorPrograma": sorted(adesao.values(), key=lambda x: (-x["total"], x["nome"])),
        "adesoesPorMes": [{"mes": m, "quantidade": q} for m, q in por_mes.items()],
        "duracaoMedia": round(sum(duracoes) / len(duracoes), 1) if duracoes else 0.0,
        "status": {"ativos": ativos, "encerrados": len(vinculos) - ativos},
        "precoMedio": round(sum(v.preco for v in vinculos) / len(vinculos), 2) if vinculos else 0.0,
        "totalAdesoes": len(vinculos),
    }
