from __future__ import annotations

import enum
from datetime import date, datetime
from typing import Any

from sqlalchemy import JSON, Boolean, Date, DateTime, Enum, Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from nutriapp.auth_models import Usuario, new_uuid
from nutriapp.db import Base


class StatusAgendamento(enum.Enum):
    AGENDADO = "agendado"
    REMARCADO = "remarcado"
    REALIZADO = "realizado"
    CANCELADO = "cancelado"


# agendamentos que ainda ocupam a agenda
STATUS_ATIVOS = (StatusAgendamento.AGENDADO, StatusAgendamento.REMARCADO)


class TipoAtendimento(enum.Enum):
    PRESENCIAL = "presencial"
    ONLINE = "online"


class TipoTransacao(enum.Enum):
    ENTRADA = "entrada"
    SAIDA = "saida"


class TipoNotificacao(enum.Enum):
    CONFIRMACAO = "CONFIRMACAO"
    CANCELAMENTO = "CANCELAMENTO"
    REAGENDAMENTO = "REAGENDAMENTO"
    LEMBRETE = "LEMBRETE"
    RESET_SENHA = "RESET_SENHA"


# =========================
# Cadastros
# =========================
class TipoProfissional(Base):
    __tablename__ = "tipos_profissionais"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    nome: Mapped[str] = mapped_column(String(120), nullable=False)
    descricao: Mapped[str | None] = mapped_column(Text, nullable=True)
    ativo: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    criado_em: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class Clinica(Base):
    __tablename__ = "clinicas"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    nome: Mapped[str] = mapped_column(String(120), nullable=False)
    cnpj: Mapped[str | None] = mapped_column(String(20), nullable=True)
    endereco: Mapped[str | None] = mapped_column(String(255), nullable=True)
    telefone: Mapped[str | None] = mapped_column(String(30), nullable=True)
    email: Mapped[str | None] = mapped_column(String(120), nullable=True)
    responsavel: Mapped[str | None] = mapped_column(String(120), nullable=True)
    observacoes: Mapped[str | None] = mapped_column(Text, nullable=True)
    ativo: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    criado_em: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class Convenio(Base):
    __tablename__ = "convenios"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    nome: Mapped[str] = mapped_column(String(120), nullable=False)
    descricao: Mapped[str | None] = mapped_column(Text, nullable=True)
    percentual_desconto: Mapped[float] = mapped_column(Float, default=0, nullable=False)
    valor_consulta: Mapped[float] = mapped_column(Float, default=0, nullable=False)
    ativo: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    criado_em: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class LocalAtendimento(Base):
    __tablename__ = "locais_atendimento"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    nome: Mapped[str] = mapped_column(String(120), nullable=False)
    endereco: Mapped[str] = mapped_column(String(255), nullable=False)
    telefone: Mapped[str | None] = mapped_column(String(30), nullable=True)
    observacoes: Mapped[str | None] = mapped_column(Text, nullable=True)
    ativo: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    criado_em: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class Servico(Base):
    __tablename__ = "servicos"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    nome: Mapped[str] = mapped_column(String(120), nullable=False)
    descricao: Mapped[str | None] = mapped_column(Text, nullable=True)
    tempo_minutos: Mapped[int] = mapped_column(Integer, nullable=False, default=60)
    valor_particular: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    # {convenio_id: valor}
    valores_convenios: Mapped[dict[str, float]] = mapped_column(JSON, default=dict, nullable=False)
    ativo: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    criado_em: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class Doenca(Base):
    __tablename__ = "doencas"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    nome: Mapped[str] = mapped_column(String(120), nullable=False)
    resumo: Mapped[str] = mapped_column(Text, nullable=False)
    protocolo_nutricional: Mapped[str | None] = mapped_column(Text, nullable=True)
    referencia: Mapped[str | None] = mapped_column(Text, nullable=True)
    links_uteis: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    ativo: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    criado_em: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class Alergia(Base):
    __tablename__ = "alergias"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    nome: Mapped[str] = mapped_column(String(120), nullable=False)
    descricao: Mapped[str | None] = mapped_column(Text, nullable=True)
    severidade: Mapped[str] = mapped_column(String(10), nullable=False, default="leve")
    ativo: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    criado_em: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class ExameBioquimico(Base):
    __tablename__ = "exames_bioquimicos"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    nome: Mapped[str] = mapped_column(String(120), nullable=False)
    descricao: Mapped[str | None] = mapped_column(Text, nullable=True)
    # [{genero, idadeMinima, idadeMaxima, minimo, maximo, unidade}]
    valores_referencia: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)
    ativo: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    criado_em: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class FormulaMagistral(Base):
    __tablename__ = "formulas_magistrais"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    nome: Mapped[str] = mapped_column(String(120), nullable=False)
    componentes: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)
    posologia: Mapped[str] = mapped_column(Text, nullable=False)
    observacoes: Mapped[str | None] = mapped_column(Text, nullable=True)
    criado_por: Mapped[str | None] = mapped_column(String(36), nullable=True)
    ativo: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    criado_em: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class Alimento(Base):
    __tablename__ = "alimentos"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    nome: Mapped[str] = mapped_column(String(120), nullable=False)
    categoria: Mapped[str] = mapped_column(String(80), nullable=False)
    # valores por porção de referência
    valor_energetico: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    proteinas: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    carboidratos: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    gorduras: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    fibras: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    sodio: Mapped[float | None] = mapped_column(Float, nullable=True)
    colesterol: Mapped[float | None] = mapped_column(Float, nullable=True)
    ferro: Mapped[float | None] = mapped_column(Float, nullable=True)
    calcio: Mapped[float | None] = mapped_column(Float, nullable=True)
    vitaminas: Mapped[dict[str, float]] = mapped_column(JSON, default=dict, nullable=False)
    unidade_medida: Mapped[str] = mapped_column(String(20), nullable=False, default="g")
    porcao_referencia: Mapped[float] = mapped_column(Float, nullable=False, default=100)
    observacoes: Mapped[str | None] = mapped_column(Text, nullable=True)
    ativo: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    criado_em: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class ProgramaNutricional(Base):
    __tablename__ = "programas"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    nome: Mapped[str] = mapped_column(String(120), nullable=False)
    descricao: Mapped[str] = mapped_column(Text, nullable=False)
    duracao: Mapped[int] = mapped_column(Integer, nullable=False)  # semanas
    preco: Mapped[float] = mapped_column(Float, nullable=False, default=0)
    objetivos: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    fases_do_projeto: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    beneficios: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    restricoes: Mapped[str | None] = mapped_column(Text, nullable=True)
    categoria: Mapped[str] = mapped_column(String(80), nullable=False)
    ativo: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    criado_em: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class PlanejamentoPadrao(Base):
    __tablename__ = "planejamentos_padrao"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    nome: Mapped[str] = mapped_column(String(120), nullable=False)
    descricao: Mapped[str | None] = mapped_column(Text, nullable=True)
    categoria: Mapped[str] = mapped_column(String(80), nullable=False)
    refeicoes: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)
    observacoes: Mapped[str | None] = mapped_column(Text, nullable=True)
    tags: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    ativo: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    criado_em: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class DocumentoPadrao(Base):
    __tablename__ = "documentos_padrao"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    titulo: Mapped[str] = mapped_column(String(200), nullable=False)
    tipo: Mapped[str] = mapped_column(String(20), nullable=False)
    conteudo: Mapped[str] = mapped_column(Text, nullable=False)
    variaveis: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    tags: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    criado_por: Mapped[str | None] = mapped_column(String(36), nullable=True)
    ativo: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    criado_em: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


# =========================
# Clientes
# =========================
class Cliente(Base):
    __tablename__ = "clientes"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    nome: Mapped[str] = mapped_column(String(120), nullable=False)
    telefone: Mapped[str] = mapped_column(String(30), nullable=False)
    email: Mapped[str | None] = mapped_column(String(120), nullable=True)
    data_nascimento: Mapped[date] = mapped_column(Date, nullable=False)
    genero: Mapped[str | None] = mapped_column(String(10), nullable=True)
    endereco: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    observacoes: Mapped[str | None] = mapped_column(Text, nullable=True)
    objetivos: Mapped[str | None] = mapped_column(Text, nullable=True)
    ativo: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    criado_em: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    familias: Mapped[list["ClienteFamilia"]] = relationship(back_populates="cliente", cascade="all, delete-orphan")
    agendamentos: Mapped[list["Agendamento"]] = relationship(back_populates="cliente")

    def __repr__(self) -> str:
        return f"Cliente({self.nome})"


class Familia(Base):
    __tablename__ = "familias"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    nome: Mapped[str] = mapped_column(String(120), nullable=False)
    descricao: Mapped[str | None] = mapped_column(Text, nullable=True)
    ativo: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    criado_em: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    membros: Mapped[list["ClienteFamilia"]] = relationship(back_populates="familia", cascade="all, delete-orphan")


class ClienteFamilia(Base):
    __tablename__ = "clientes_familias"
    __table_args__ = (UniqueConstraint("familia_id", "cliente_id", name="uq_familia_cliente"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    familia_id: Mapped[str] = mapped_column(ForeignKey("familias.id"), nullable=False)
    cliente_id: Mapped[str] = mapped_column(ForeignKey("clientes.id"), nullable=False)
    criado_em: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    familia: Mapped["Familia"] = relationship(back_populates="membros")
    cliente: Mapped["Cliente"] = relationship(back_populates="familias")


class ClienteCondicao(Base):
    """Doença ou alergia registrada no prontuário do cliente."""
    __tablename__ = "clientes_condicoes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    cliente_id: Mapped[str] = mapped_column(ForeignKey("clientes.id"), nullable=False)
    doenca_id: Mapped[str | None] = mapped_column(ForeignKey("doencas.id"), nullable=True)
    alergia_id: Mapped[str | None] = mapped_column(ForeignKey("alergias.id"), nullable=True)
    criado_em: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    doenca: Mapped["Doenca"] = relationship()
    alergia: Mapped["Alergia"] = relationship()


class ClientePrograma(Base):
    __tablename__ = "clientes_programas"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    cliente_id: Mapped[str] = mapped_column(ForeignKey("clientes.id"), nullable=False)
    programa_id: Mapped[str] = mapped_column(ForeignKey("programas.id"), nullable=False)
    preco: Mapped[float] = mapped_column(Float, nullable=False)  # preço no momento da adesão
    data_inicio: Mapped[date] = mapped_column(Date, nullable=False)
    data_fim: Mapped[date | None] = mapped_column(Date, nullable=True)
    ativo: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    criado_em: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    programa: Mapped["ProgramaNutricional"] = relationship()


# =========================
# Agenda
# =========================
class DisponibilidadeAgenda(Base):
    __tablename__ = "disponibilidades_agenda"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    profissional_id: Mapped[str] = mapped_column(ForeignKey("usuarios.id"), nullable=False)
    local_id: Mapped[str | None] = mapped_column(ForeignKey("locais_atendimento.id"), nullable=True)
    dia_semana: Mapped[str] = mapped_column(String(10), nullable=False)  # domingo..sabado
    inicio: Mapped[str] = mapped_column(String(5), nullable=False)  # "HH:MM"
    fim: Mapped[str] = mapped_column(String(5), nullable=False)


class Agendamento(Base):
    __tablename__ = "agendamentos"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)

    cliente_id: Mapped[str] = mapped_column(ForeignKey("clientes.id"), nullable=False)
    profissional_id: Mapped[str] = mapped_column(ForeignKey("usuarios.id"), nullable=False)
    local_id: Mapped[str | None] = mapped_column(ForeignKey("locais_atendimento.id"), nullable=True)
    convenio_id: Mapped[str | None] = mapped_column(ForeignKey("convenios.id"), nullable=True)

    # ids e nomes no momento do agendamento
    servicos_ids: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    servicos_nomes: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)

    inicio: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    fim: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    tipo: Mapped[TipoAtendimento] = mapped_column(Enum(TipoAtendimento), default=TipoAtendimento.PRESENCIAL, nullable=False)
    status: Mapped[StatusAgendamento] = mapped_column(
        Enum(StatusAgendamento), default=StatusAgendamento.AGENDADO, nullable=False
    )

    observacoes: Mapped[str | None] = mapped_column(Text, nullable=True)
    motivo_cancelamento: Mapped[str | None] = mapped_column(Text, nullable=True)

    token_confirmacao: Mapped[str] = mapped_column(String(64), nullable=False)
    confirmado_em: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    criado_em: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    cliente: Mapped["Cliente"] = relationship(back_populates="agendamentos")
    profissional: Mapped["Usuario"] = relationship()
    local: Mapped["LocalAtendimento"] = relationship()
    convenio: Mapped["Convenio"] = relationship()
    historico: Mapped[list["AgendamentoHistorico"]] = relationship(
        back_populates="agendamento", cascade="all, delete-orphan", order_by="AgendamentoHistorico.id"
    )


class AgendamentoHistorico(Base):
    __tablename__ = "agendamentos_historico"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    agendamento_id: Mapped[str] = mapped_column(ForeignKey("agendamentos.id"), nullable=False)
    acao: Mapped[str] = mapped_column(String(30), nullable=False)
    detalhe: Mapped[str | None] = mapped_column(Text, nullable=True)
    usuario_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    criado_em: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    agendamento: Mapped["Agendamento"] = relationship(back_populates="historico")


# =========================
# Prontuário
# =========================
class Consulta(Base):
    __tablename__ = "consultas"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    cliente_id: Mapped[str] = mapped_column(ForeignKey("clientes.id"), nullable=False)
    profissional_id: Mapped[str | None] = mapped_column(ForeignKey("usuarios.id"), nullable=True)
    agendamento_id: Mapped[str | None] = mapped_column(ForeignKey("agendamentos.id"), nullable=True)

    data: Mapped[date] = mapped_column(Date, nullable=False)
    tipo: Mapped[TipoAtendimento] = mapped_column(Enum(TipoAtendimento), default=TipoAtendimento.PRESENCIAL, nullable=False)

    # texto livre ou questionário estruturado
    anamnese: Mapped[Any] = mapped_column(JSON, nullable=True)
    exame_fisico: Mapped[str | None] = mapped_column(Text, nullable=True)
    diagnostico: Mapped[str | None] = mapped_column(Text, nullable=True)
    conduta: Mapped[str | None] = mapped_column(Text, nullable=True)
    observacoes: Mapped[str | None] = mapped_column(Text, nullable=True)

    medidas: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    dobras_cutaneas: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    bioimpedancia: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    resultados_exames: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)

    criado_em: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    cliente: Mapped["Cliente"] = relationship()


class PlanejamentoAlimentar(Base):
    __tablename__ = "planejamentos_alimentares"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    cliente_id: Mapped[str] = mapped_column(ForeignKey("clientes.id"), nullable=False)
    nome: Mapped[str] = mapped_column(String(200), nullable=False)
    descricao: Mapped[str | None] = mapped_column(Text, nullable=True)
    # [{nome, horario, alimentos: [{alimentoId, quantidade}], observacoes}]
    refeicoes: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list, nullable=False)
    observacoes: Mapped[str | None] = mapped_column(Text, nullable=True)
    data_inicio: Mapped[date] = mapped_column(Date, nullable=False)
    data_fim: Mapped[date | None] = mapped_column(Date, nullable=True)
    ativo: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    criado_por: Mapped[str | None] = mapped_column(String(36), nullable=True)
    criado_em: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    cliente: Mapped["Cliente"] = relationship()


class DocumentoCliente(Base):
    __tablename__ = "documentos_clientes"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    cliente_id: Mapped[str] = mapped_column(ForeignKey("clientes.id"), nullable=False)
    documento_padrao_id: Mapped[str | None] = mapped_column(ForeignKey("documentos_padrao.id"), nullable=True)
    titulo: Mapped[str] = mapped_column(String(200), nullable=False)
    tipo: Mapped[str] = mapped_column(String(20), nullable=False)
    conteudo: Mapped[str] = mapped_column(Text, nullable=False)
    criado_por: Mapped[str | None] = mapped_column(String(36), nullable=True)
    criado_em: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


# =========================
# Financeiro e notificações
# =========================
class Transacao(Base):
    __tablename__ = "transacoes"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    tipo: Mapped[TipoTransacao] = mapped_column(Enum(TipoTransacao), nullable=False)
    categoria: Mapped[str] = mapped_column(String(80), nullable=False)
    descricao: Mapped[str | None] = mapped_column(Text, nullable=True)
    valor: Mapped[float] = mapped_column(Float, nullable=False)
    data: Mapped[date] = mapped_column(Date, nullable=False)
    criado_em: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class Notificacao(Base):
    __tablename__ = "notificacoes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tipo: Mapped[TipoNotificacao] = mapped_column(Enum(TipoNotificacao), nullable=False)
    destinatario: Mapped[str | None] = mapped_column(String(120), nullable=True)
    mensagem: Mapped[str] = mapped_column(Text, nullable=False)

    criada_em: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    enviada_em: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    tentativas: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # opcionais: notificação ligada a um agendamento / cliente
    agendamento_id: Mapped[str | None] = mapped_column(ForeignKey("agendamentos.id"), nullable=True)
    cliente_id: Mapped[str | None] = mapped_column(ForeignKey("clientes.id"), nullable=True)
