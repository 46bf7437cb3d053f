from __future__ import annotations

import random
import secrets
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

import structlog
from sqlalchemy import delete, select

from nutriapp.auth_models import Papel, Usuario
from nutriapp.auth_security import hash_password
from nutriapp.db import db_session, init_db, reset_db
from nutriapp.models import (
    Agendamento,
    AgendamentoHistorico,
    Cliente,
    ClientePrograma,
    Consulta,
    Convenio,
    DisponibilidadeAgenda,
    LocalAtendimento,
    Notificacao,
    ProgramaNutricional,
    Servico,
    StatusAgendamento,
    TipoAtendimento,
    TipoNotificacao,
    TipoProfissional,
    TipoTransacao,
    Transacao,
)
from nutriapp.nutricao import calcular_imc
from nutriapp.seed import seed_base

logger = structlog.get_logger(__name__)


# =========================
# Config geração
# =========================
RANDOM_SEED = 42

CLIENTES_COUNT = 120
PROFISSIONAIS = [
    ("Ana Souza", "ana.souza@nutriapp.local"),
    ("Bruno Lima", "bruno.lima@nutriapp.local"),
    ("Carla Mendes", "carla.mendes@nutriapp.local"),
]
SENHA_DEMO = "demo123"

CONVENIOS = [
    ("Unimed", 10.0, 180.0),
    ("Bradesco Saúde", 15.0, 170.0),
]

PROGRAMAS = [
    ("Emagrecimento Saudável", "Emagrecimento", 12, 900.0),
    ("Hipertrofia", "Performance", 8, 700.0),
    ("Reeducação Alimentar", "Saúde", 16, 1100.0),
]

OBJETIVOS = [
    "Emagrecer 8 kg",
    "Ganhar massa muscular",
    "Manter o peso atual",
    "Melhorar a saúde e o bem-estar",
    "Performance no esporte",
    "Ganhar peso",
    None,
]

DESPESAS = [
    ("Aluguel", 2500.0),
    ("Material de escritório", 180.0),
    ("Software", 120.0),
    ("Marketing", 400.0),
]

# Distribuição de procura por dia da semana (0=seg...6=dom)
PROCURA_FATOR = {
    0: 1.15,  # seg
    1: 1.05,  # ter
    2: 1.00,  # qua
    3: 1.05,  # qui
    4: 1.10,  # sex
    5: 0.50,  # sáb
    6: 0.00,  # dom (fechado)
}


@dataclass(frozen=True)
class Slot:
    inicio: datetime
    fim: datetime


def _random_phone() -> str:
    return f"(11) 9{random.randint(1000, 9999)}-{random.randint(1000, 9999)}"


def _random_email(nome: str, sobrenome: str) -> str:
    domains = ["gmail.com", "outlook.com", "hotmail.com", "yahoo.com.br"]
    return f"{nome.lower()}.{sobrenome.lower()}{random.randint(1, 9999)}@{random.choice(domains)}"


def _slots_do_dia(dia: date, inicio_hm: str, fim_hm: str, passo_minutos: int = 30) -> list[datetime]:
    """Horários a cada X minutos entre inicio e fim (inicio incluído, fim excluído)."""
    ih, im = map(int, inicio_hm.split(":"))
    fh, fm = map(int, fim_hm.split(":"))
    cur = datetime.combine(dia, time(ih, im))
    fim = datetime.combine(dia, time(fh, fm))

    out: list[datetime] = []
    while cur < fim:
        out.append(cur)
        cur += timedelta(minutes=passo_minutos)
    return out


def seed_estrutura() -> None:
    """Profissionais com disponibilidade, convênios e programas."""
    with db_session() as s:
        nutri = s.execute(select(TipoProfissional).where(TipoProfissional.nome == "Nutricionista")).scalars().first()
        local = s.execute(select(LocalAtendimento)).scalars().first()

        for nome, email in PROFISSIONAIS:
            u = s.execute(select(Usuario).where(Usuario.email == email)).scalar_one_or_none()
            if not u:
                u = Usuario(
                    nome=nome,
                    email=email,
                    senha_hash=hash_password(SENHA_DEMO),
                    papel=Papel.PROFISSIONAL,
                    tipo_profissional_id=nutri.id if nutri else None,
                    ativo=True,
                )
                s.add(u)
                s.flush()

            # seg-sex 08-12 e 13-18; sábado de manhã para o primeiro profissional
            s.execute(delete(DisponibilidadeAgenda).where(DisponibilidadeAgenda.profissional_id == u.id))
            for dia in ("segunda", "terca", "quarta", "quinta", "sexta"):
                s.add(DisponibilidadeAgenda(profissional_id=u.id, local_id=local.id if local else None, dia_semana=dia, inicio="08:00", fim="12:00"))
                s.add(DisponibilidadeAgenda(profissional_id=u.id, local_id=local.id if local else None, dia_semana=dia, inicio="13:00", fim="18:00"))
            if email == PROFISSIONAIS[0][1]:
                s.add(DisponibilidadeAgenda(profissional_id=u.id, local_id=local.id if local else None, dia_semana="sabado", inicio="08:00", fim="12:00"))

        convenios = []
        for nome, desconto, valor in CONVENIOS:
            c = s.execute(select(Convenio).where(Convenio.nome == nome)).scalars().first()
            if not c:
                c = Convenio(nome=nome, percentual_desconto=desconto, valor_consulta=valor)
                s.add(c)
            convenios.append(c)
        s.flush()

        # preço por convênio nos serviços
        for sv in s.scalars(select(Servico)):
            sv.valores_convenios = {c.id: round(sv.valor_particular * (1 - c.percentual_desconto / 100), 2) for c in convenios}

        for nome, categoria, semanas, preco in PROGRAMAS:
            if s.execute(select(ProgramaNutricional).where(ProgramaNutricional.nome == nome)).scalars().first():
                continue
            s.add(
                ProgramaNutricional(
                    nome=nome,
                    descricao=f"Programa de {categoria.lower()} com acompanhamento semanal",
                    duracao=semanas,
                    preco=preco,
                    categoria=categoria,
                    objetivos=[categoria],
                    fases_do_projeto=["Avaliação inicial", "Acompanhamento", "Reavaliação"],
                    beneficios=["Plano alimentar individual", "Suporte por mensagem"],
                )
            )


def seed_clientes(meses: int) -> None:
    nomes = [
        "Roberto", "Marcos", "Lucas", "Paulo", "João", "André", "Mateus", "Pedro",
        "Sara", "Júlia", "Fernanda", "Helena", "Camila", "Mariana", "Laura", "Beatriz",
    ]
    sobrenomes = [
        "Silva", "Santos", "Oliveira", "Souza", "Rodrigues", "Ferreira", "Alves", "Pereira",
        "Lima", "Gomes", "Costa", "Ribeiro", "Martins", "Carvalho", "Almeida",
    ]
    hoje = date.today()

    with db_session() as s:
        programas = list(s.scalars(select(ProgramaNutricional)))
        for i in range(CLIENTES_COUNT):
            nome = random.choice(nomes)
            sobrenome = random.choice(sobrenomes)
            genero = "feminino" if i % 2 else "masculino"
            c = Cliente(
                nome=f"{nome} {sobrenome}",
                telefone=_random_phone(),
                email=_random_email(nome, sobrenome),
                data_nascimento=hoje - timedelta(days=random.randint(14 * 365, 75 * 365)),
                genero=genero,
                objetivos=random.choice(OBJETIVOS),
                criado_em=datetime.combine(hoje - timedelta(days=random.randint(0, meses * 30)), time(9, 0)),
            )
            s.add(c)
            s.flush()

            # adesão a programa (cerca de 30% dos clientes)
            if programas and random.random() < 0.30:
                prog = random.choice(programas)
                inicio = c.criado_em.date() + timedelta(days=random.randint(0, 20))
                s.add(
                    ClientePrograma(
                        cliente_id=c.id,
                        programa_id=prog.id,
                        preco=prog.preco,
                        data_inicio=inicio,
                        data_fim=inicio + timedelta(weeks=prog.duracao),
                        ativo=inicio + timedelta(weeks=prog.duracao) >= hoje,
                    )
                )


def _status_por_data(dia: date) -> StatusAgendamento:
    """Status coerente com a data: passado quase sempre realizado, futuro ainda ativo."""
    delta = (date.today() - dia).days

    if delta >= 1:
        return StatusAgendamento.REALIZADO if random.random() < 0.88 else StatusAgendamento.CANCELADO
    if delta == 0:
        return StatusAgendamento.AGENDADO if random.random() < 0.9 else StatusAgendamento.CANCELADO
    return StatusAgendamento.AGENDADO if random.random() < 0.85 else StatusAgendamento.REMARCADO


def _medidas(cliente: Cliente) -> dict[str, float]:
    altura = random.uniform(1.55, 1.70) if cliente.genero == "feminino" else random.uniform(1.65, 1.88)
    peso = random.uniform(50, 110)
    imc = calcular_imc(peso, altura)
    return {
        "peso": round(peso, 1),
        "altura": round(altura, 2),
        "imc": imc,
        "percentualGordura": round(random.uniform(12, 38), 1),
        "massaMuscular": round(random.uniform(20, 45), 1),
        "circunferenciaAbdomen": round(random.uniform(70, 115), 1),
    }


def gerar_agendamentos(meses: int) -> None:
    inicio_periodo = date.today() - timedelta(days=meses * 30)
    fim_periodo = date.today() + timedelta(days=14)

    with db_session() as s:
        profissionais = list(s.scalars(select(Usuario).where(Usuario.papel == Papel.PROFISSIONAL, Usuario.ativo.is_(True))))
        clientes = list(s.scalars(select(Cliente).where(Cliente.ativo.is_(True))))
        servicos = list(s.scalars(select(Servico).where(Servico.ativo.is_(True))))
        convenios = list(s.scalars(select(Convenio)))
        local = s.execute(select(LocalAtendimento)).scalars().first()

        if not profissionais or not clientes or not servicos:
            raise RuntimeError("Faltam dados base (profissionais/clientes/serviços). Execute seed_estrutura + seed_clientes.")

        ocupacao_base = 0.45
        dia = inicio_periodo
        while dia <= fim_periodo:
            fator = PROCURA_FATOR.get(dia.weekday(), 1.0)
            if fator <= 0:
                dia += timedelta(days=1)
                continue
            ocupacao = min(0.9, max(0.2, ocupacao_base * fator + random.uniform(-0.08, 0.10)))

            for prof in profissionais:
                faixas = s.scalars(
                    select(DisponibilidadeAgenda).where(
                        DisponibilidadeAgenda.profissional_id == prof.id,
                        DisponibilidadeAgenda.dia_semana == ("segunda", "terca", "quarta", "quinta", "sexta", "sabado", "domingo")[dia.weekday()],
                    )
                ).all()
                if not faixas:
                    continue

                timeline: list[Slot] = []
                for f in faixas:
                    for ini in _slots_do_dia(dia, f.inicio, f.fim):
                        if random.random() > ocupacao:
                            continue
                        sv = random.choice(servicos)
                        fim = ini + timedelta(minutes=sv.tempo_minutos)
                        if fim > datetime.combine(dia, time(*map(int, f.fim.split(":")))):
                            continue
                        # sem sobreposição por profissional
                        if any(sl.inicio < fim and sl.fim > ini for sl in timeline):
                            continue

                        cliente = random.choice(clientes)
                        status = _status_por_data(dia)
                        convenio = random.choice(convenios) if convenios and random.random() < 0.35 else None
                        a = Agendamento(
                            cliente_id=cliente.id,
                            profissional_id=prof.id,
                            local_id=local.id if local else None,
                            convenio_id=convenio.id if convenio else None,
                            servicos_ids=[sv.id],
                            servicos_nomes=[sv.nome],
                            inicio=ini,
                            fim=fim,
                            tipo=TipoAtendimento.ONLINE if random.random() < 0.2 else TipoAtendimento.PRESENCIAL,
                            status=status,
                            motivo_cancelamento="Imprevisto do cliente" if status == StatusAgendamento.CANCELADO else None,
                            token_confirmacao=secrets.token_urlsafe(24),
                            criado_em=ini - timedelta(days=random.randint(1, 15)),
                        )
                        s.add(a)
                        s.flush()
                        s.add(AgendamentoHistorico(agendamento_id=a.id, acao="criado", detalhe=f"{ini:%d/%m/%Y %H:%M}", criado_em=a.criado_em))
                        timeline.append(Slot(inicio=ini, fim=fim))

                        if status == StatusAgendamento.REALIZADO and random.random() < 0.6:
                            s.add(
                                Consulta(
                                    cliente_id=cliente.id,
                                    profissional_id=prof.id,
                                    agendamento_id=a.id,
                                    data=dia,
                                    tipo=a.tipo,
                                    anamnese="Relata rotina alimentar irregular.",
                                    medidas=_medidas(cliente),
                                )
                            )
            dia += timedelta(days=1)


def gerar_despesas(meses: int) -> None:
    hoje = date.today()
    with db_session() as s:
        for i in range(meses):
            ano, mes = hoje.year, hoje.month - i
            while mes <= 0:
                mes += 12
                ano -= 1
            for categoria, valor in DESPESAS:
                s.add(
                    Transacao(
                        tipo=TipoTransacao.SAIDA,
                        categoria=categoria,
                        descricao=f"{categoria} {mes:02d}/{ano}",
                        valor=round(valor * random.uniform(0.9, 1.1), 2),
                        data=date(ano, mes, 5),
                    )
                )
            if random.random() < 0.5:
                s.add(
                    Transacao(
                        tipo=TipoTransacao.ENTRADA,
                        categoria="Venda de e-book",
                        valor=round(random.uniform(50, 300), 2),
                        data=date(ano, mes, 15),
                    )
                )


def gerar_notificacoes_pendentes() -> None:
    """Notificações pendentes para agendamentos próximos (a fila não fica vazia)."""
    agora = datetime.now()
    with db_session() as s:
        ags = list(
            s.scalars(
                select(Agendamento).where(
                    Agendamento.inicio >= agora,
                    Agendamento.inicio <= agora + timedelta(days=2),
                    Agendamento.status.in_((StatusAgendamento.AGENDADO, StatusAgendamento.REMARCADO)),
                )
            )
        )
        random.shuffle(ags)
        for a in ags[:60]:
            s.add(
                Notificacao(
                    tipo=TipoNotificacao.LEMBRETE,
                    destinatario=a.cliente.email or a.cliente.telefone,
                    mensagem=f"Lembrete: consulta em {a.inicio:%d/%m/%Y} às {a.inicio:%H:%M}.",
                    agendamento_id=a.id,
                    cliente_id=a.cliente_id,
                )
            )


def popular(meses: int = 3, reset: bool = True) -> None:
    random.seed(RANDOM_SEED)

    if reset:
        reset_db()
    else:
        init_db()

    seed_base()
    seed_estrutura()
    seed_clientes(meses)
    gerar_agendamentos(meses)
    gerar_despesas(meses)
    gerar_notificacoes_pendentes()
    logger.info("demo_populado", meses=meses, reset=reset)
