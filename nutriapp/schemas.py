"""
Schemas de entrada da API (pydantic).

O contrato JSON é camelCase; `populate_by_name` também aceita snake_case.
Os serviços recebem `model_dump(by_alias=True)`, ou seja, dicts camelCase.
"""
from __future__ import annotations

from datetime import date
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def dados(self, parcial: bool = False) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_unset=parcial)


# =========================
# Auth
# =========================
class LoginIn(CamelModel):
    email: str
    senha: str = Field(validation_alias=AliasChoices("senha", "password"))


class RegisterIn(CamelModel):
    nome: str
    email: str
    senha: str
    # "tipo" no formulário original, "role" no restante da API
    tipo: str = Field("secretaria", validation_alias=AliasChoices("tipo", "role"))
    tipo_profissional_id: str | None = None


class RefreshIn(CamelModel):
    refresh_token: str


class LogoutIn(CamelModel):
    refresh_token: str | None = None


class FaixaHorarioIn(CamelModel):
    inicio: str
    fim: str


class ConfiguracaoAgendaIn(CamelModel):
    local_id: str | None = None
    disponibilidade: dict[str, list[FaixaHorarioIn]] = Field(default_factory=dict)


class PerfilIn(CamelModel):
    nome: str | None = None
    email: str | None = None
    tipo_profissional_id: str | None = None
    configuracao_agenda: ConfiguracaoAgendaIn | None = None


class TrocarSenhaIn(CamelModel):
    senha_atual: str
    nova_senha: str


class RecuperarSenhaIn(CamelModel):
    email: str


class RedefinirSenhaIn(CamelModel):
    token: str
    nova_senha: str


class UsuarioUpdateIn(CamelModel):
    nome: str | None = None
    role: str | None = None
    ativo: bool | None = None
    tipo_profissional_id: str | None = None


# =========================
# Cadastros
# =========================
class TipoProfissionalIn(CamelModel):
    nome: str
    descricao: str | None = None
    ativo: bool = True


class ClinicaIn(CamelModel):
    nome: str
    cnpj: str | None = None
    endereco: str | None = None
    telefone: str | None = None
    email: str | None = None
    responsavel: str | None = None
    observacoes: str | None = None
    ativo: bool = True


class ConvenioIn(CamelModel):
    nome: str
    descricao: str | None = None
    percentual_desconto: float = 0
    valor_consulta: float = 0
    ativo: bool = True


class LocalAtendimentoIn(CamelModel):
    nome: str
    endereco: str
    telefone: str | None = None
    observacoes: str | None = None
    ativo: bool = True


class ServicoIn(CamelModel):
    nome: str
    descricao: str | None = None
    tempo_minutos: int = 60
    valor_particular: float = 0
    valores_convenios: dict[str, float] = Field(default_factory=dict)
    ativo: bool = True


class DoencaIn(CamelModel):
    nome: str
    resumo: str
    protocolo_nutricional: str | None = None
    referencia: str | None = None
    links_uteis: list[str] = Field(default_factory=list)
    ativo: bool = True


class AlergiaIn(CamelModel):
    nome: str
    descricao: str | None = None
    severidade: Literal["leve", "moderada", "grave"] = "leve"
    ativo: bool = True


class ValorReferenciaIn(CamelModel):
    genero: Literal["masculino", "feminino", "ambos"] = "ambos"
    idade_minima: int | None = None
    idade_maxima: int | None = None
    minimo: float | None = None
    maximo: float | None = None
    unidade: str | None = None


class ExameBioquimicoIn(CamelModel):
    nome: str
    descricao: str | None = None
    valores_referencia: list[ValorReferenciaIn] = Field(default_factory=list)
    ativo: bool = True


class FormulaMagistralIn(CamelModel):
    nome: str
    componentes: list[dict[str, Any]] = Field(default_factory=list)
    posologia: str
    observacoes: str | None = None
    criado_por: str | None = None
    ativo: bool = True


class AlimentoIn(CamelModel):
    nome: str
    categoria: str
    valor_energetico: float = 0
    proteinas: float = 0
    carboidratos: float = 0
    gorduras: float = 0
    fibras: float = 0
    sodio: float | None = None
    colesterol: float | None = None
    ferro: float | None = None
    calcio: float | None = None
    vitaminas: dict[str, float] = Field(default_factory=dict)
    unidade_medida: str = "g"
    porcao_referencia: float = 100
    observacoes: str | None = None
    ativo: bool = True


class ProgramaIn(CamelModel):
    nome: str
    descricao: str
    duracao: int
    preco: float = 0
    objetivos: list[str] = Field(default_factory=list)
    fases_do_projeto: list[str] = Field(default_factory=list)
    beneficios: list[str] = Field(default_factory=list)
    restricoes: str | None = None
    categoria: str
    ativo: bool = True


class ItemRefeicaoIn(CamelModel):
    alimento_id: str
    quantidade: float


class RefeicaoIn(CamelModel):
    nome: str
    horario: str | None = None
    alimentos: list[ItemRefeicaoIn] = Field(default_factory=list)
    observacoes: str | None = None


class PlanejamentoPadraoIn(CamelModel):
    nome: str
    descricao: str | None = None
    categoria: str
    refeicoes: list[RefeicaoIn] = Field(default_factory=list)
    observacoes: str | None = None
    tags: list[str] = Field(default_factory=list)
    ativo: bool = True


class DocumentoPadraoIn(CamelModel):
    titulo: str
    tipo: Literal["receita", "laudo", "plano", "relatorio", "atestado", "outros"]
    conteudo: str
    variaveis: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    criado_por: str | None = None
    ativo: bool = True


# =========================
# Clientes
# =========================
Genero = Literal["masculino", "feminino", "outro"]


class ClienteIn(CamelModel):
    nome: str
    telefone: str
    email: str | None = None
    data_nascimento: date
    genero: Genero | None = None
    endereco: dict[str, Any] | None = None
    observacoes: str | None = None
    objetivos: str | None = None


class ClienteUpdateIn(CamelModel):
    nome: str | None = None
    telefone: str | None = None
    email: str | None = None
    data_nascimento: date | None = None
    genero: Genero | None = None
    endereco: dict[str, Any] | None = None
    observacoes: str | None = None
    objetivos: str | None = None
    ativo: bool | None = None


class FamiliaIn(CamelModel):
    nome: str
    descricao: str | None = None
    membros_ids: list[str] = Field(default_factory=list)


class FamiliaUpdateIn(CamelModel):
    nome: str | None = None
    descricao: str | None = None
    ativo: bool | None = None


class VincularFamiliarIn(CamelModel):
    familiar_id: str


class MembroIn(CamelModel):
    cliente_id: str


class CondicoesIn(CamelModel):
    doencas_ids: list[str] = Field(default_factory=list)
    alergias_ids: list[str] = Field(default_factory=list)


class VincularProgramaIn(CamelModel):
    programa_id: str
    data_inicio: date | None = None


# =========================
# Agenda
# =========================
TipoAtendimento = Literal["presencial", "online"]


class AgendamentoIn(CamelModel):
    cliente_id: str
    profissional_id: str
    servicos_ids: list[str]
    data: date
    horario: str = Field(validation_alias=AliasChoices("horario", "hora"))
    local_id: str | None = None
    convenio_id: str | None = None
    tipo: TipoAtendimento = "presencial"
    observacoes: str | None = None


class AgendamentoUpdateIn(CamelModel):
    observacoes: str | None = None
    tipo: TipoAtendimento | None = None
    local_id: str | None = None
    convenio_id: str | None = None
    servicos_ids: list[str] | None = None


class ReagendarIn(CamelModel):
    nova_data: date
    novo_horario: str
    motivo: str | None = None


class CancelarIn(CamelModel):
    motivo: str


class TokenPublicoIn(CamelModel):
    token: str
    motivo: str | None = None


# =========================
# Prontuário
# =========================
class ResultadoExameIn(CamelModel):
    exame_id: str
    valor: float
    unidade: str | None = None


class ConsultaIn(CamelModel):
    cliente_id: str
    profissional_id: str | None = None
    agendamento_id: str | None = None
    data: date | None = None
    tipo: TipoAtendimento = "presencial"
    anamnese: Any = None
    exame_fisico: str | None = None
    diagnostico: str | None = None
    conduta: str | None = None
    observacoes: str | None = None
    medidas: dict[str, Any] = Field(default_factory=dict)
    dobras_cutaneas: dict[str, Any] = Field(default_factory=dict)
    bioimpedancia: dict[str, Any] = Field(default_factory=dict)
    resultados_exames: list[ResultadoExameIn] = Field(default_factory=list)


class ConsultaUpdateIn(CamelModel):
    data: date | None = None
    tipo: TipoAtendimento | None = None
    anamnese: Any = None
    exame_fisico: str | None = None
    diagnostico: str | None = None
    conduta: str | None = None
    observacoes: str | None = None
    medidas: dict[str, Any] | None = None
    dobras_cutaneas: dict[str, Any] | None = None
    bioimpedancia: dict[str, Any] | None = None
    resultados_exames: list[ResultadoExameIn] | None = None


class PlanejamentoIn(CamelModel):
    cliente_id: str
    nome: str
    descricao: str | None = None
    refeicoes: list[RefeicaoIn] = Field(default_factory=list)
    observacoes: str | None = None
    data_inicio: date | None = None
    data_fim: date | None = None


class PlanejamentoUpdateIn(CamelModel):
    nome: str | None = None
    descricao: str | None = None
    refeicoes: list[RefeicaoIn] | None = None
    observacoes: str | None = None
    data_inicio: date | None = None
    data_fim: date | None = None
    ativo: bool | None = None


class ReajusteIn(CamelModel):
    tipo_ajuste: Literal["percentual", "absoluto"]
    operacao: Literal["aumentar", "diminuir"]
    valor: float
    nome: str


class CopiarPlanoIn(CamelModel):
    cliente_destino_id: str
    nome: str | None = None


class DePadraoIn(CamelModel):
    padrao_id: str
    cliente_id: str
    nome: str | None = None
    descricao: str | None = None
    data_inicio: date | None = None


class GerarDocumentoIn(CamelModel):
    cliente_id: str
    documento_padrao_id: str
    titulo: str | None = None


# =========================
# Financeiro
# =========================
class TransacaoIn(CamelModel):
    tipo: Literal["entrada", "saida"]
    categoria: str
    descricao: str | None = None
    valor: float
    data: date | None = None


class TransacaoUpdateIn(CamelModel):
    tipo: Literal["entrada", "saida"] | None = None
    categoria: str | None = None
    descricao: str | None = None
    valor: float | None = None
    data: date | None = None
