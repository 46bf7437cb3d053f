"""
CRUD genérico dos cadastros (catálogos) da clínica.

Cada recurso é descrito por um `Cadastro`: modelo ORM, campos de busca,
filtros aceitos na listagem e validações específicas. As operações recebem e
devolvem dicts camelCase.
"""
from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Callable

import structlog
from sqlalchemy import func, inspect, or_, select
from sqlalchemy.orm import Session

from nutriapp.comuns import paginar, paginar_lista, to_dict, to_snake
from nutriapp.db import Base, db_session
from nutriapp.errors import Conflito, DadosInvalidos, NaoEncontrado
from nutriapp.models import (
    Alergia,
    Alimento,
    Clinica,
    Convenio,
    Doenca,
    DocumentoPadrao,
    ExameBioquimico,
    FormulaMagistral,
    LocalAtendimento,
    PlanejamentoPadrao,
    ProgramaNutricional,
    Servico,
    TipoProfissional,
)
from nutriapp.nutricao import totais_plano

logger = structlog.get_logger(__name__)

SEVERIDADES = ("leve", "moderada", "grave")
TIPOS_DOCUMENTO = ("receita", "laudo", "plano", "relatorio", "atestado", "outros")
GENEROS_REFERENCIA = ("masculino", "feminino", "ambos")

# nunca aceitos na entrada
_PROTEGIDOS = {"id", "criado_em"}


@dataclass(frozen=True)
class Cadastro:
    nome: str
    modelo: type
    rotulo: str
    busca: tuple[str, ...] = ("nome",)
    filtros: tuple[str, ...] = ()
    # parâmetro -> (coluna, operador)
    faixas: dict[str, tuple[str, str]] = field(default_factory=dict)
    obrigatorios: tuple[str, ...] = ("nome",)
    nao_negativos: tuple[str, ...] = ()
    positivos: tuple[str, ...] = ()
    ordem: str = "nome"
    duplicavel: bool = False
    papel_escrita: str = "profissional"
    validar: Callable[[Session, dict[str, Any]], None] | None = None
    filtro_extra: Callable[[Session, list[dict[str, Any]], dict[str, Any]], list[dict[str, Any]]] | None = None
    extras: Callable[[Session, dict[str, Any]], dict[str, Any]] | None = None


# =========================
# Validações específicas
# =========================
def _valida_alergia(s: Session, dados: dict[str, Any]) -> None:
    if dados.get("severidade") not in SEVERIDADES:
        raise DadosInvalidos(f"severidade deve ser uma de: {', '.join(SEVERIDADES)}")


def _valida_documento(s: Session, dados: dict[str, Any]) -> None:
    if dados.get("tipo") not in TIPOS_DOCUMENTO:
        raise DadosInvalidos(f"tipo deve ser um de: {', '.join(TIPOS_DOCUMENTO)}")


def _valida_exame(s: Session, dados: dict[str, Any]) -> None:
    for ref in dados.get("valores_referencia") or []:
        if ref.get("genero", "ambos") not in GENEROS_REFERENCIA:
            raise DadosInvalidos(f"gênero de referência inválido: {ref.get('genero')}")
        idade_min, idade_max = ref.get("idadeMinima"), ref.get("idadeMaxima")
        if idade_min is not None and idade_max is not None and idade_min > idade_max:
            raise DadosInvalidos("idadeMinima deve ser menor ou igual a idadeMaxima")
        minimo, maximo = ref.get("minimo"), ref.get("maximo")
        if minimo is not None and maximo is not None and minimo > maximo:
            raise DadosInvalidos("minimo deve ser menor ou igual a maximo")


def _valida_servico(s: Session, dados: dict[str, Any]) -> None:
    for convenio_id, valor in (dados.get("valores_convenios") or {}).items():
        if s.get(Convenio, convenio_id) is None:
            raise DadosInvalidos(f"convênio não encontrado: {convenio_id}")
        if valor is None or float(valor) < 0:
            raise DadosInvalidos("valores por convênio não podem ser negativos")


def _valida_programa(s: Session, dados: dict[str, Any]) -> None:
    if int(dados.get("duracao") or 0) < 1:
        raise DadosInvalidos("duracao deve ser de pelo menos 1 semana")


def _alimentos_map(s: Session) -> dict[str, dict[str, Any]]:
    return {a.id: to_dict(a) for a in s.scalars(select(Alimento))}


def _totais_padrao(s: Session, item: dict[str, Any]) -> dict[str, Any]:
    return {"totais": totais_plano(item.get("refeicoes") or [], _alimentos_map(s))}


def _filtra_padroes(s: Session, itens: list[dict[str, Any]], params: dict[str, Any]) -> list[dict[str, Any]]:
    kcal_min = params.get("kcalMin")
    kcal_max = params.get("kcalMax")
    tags = params.get("tags")
    if isinstance(tags, str):
        tags = [t.strip() for t in tags.split(",") if t.strip()]

    out = []
    for item in itens:
        kcal = item["totais"]["kcal"]
        if kcal_min is not None and kcal < float(kcal_min):
            continue
        if kcal_max is not None and kcal > float(kcal_max):
            continue
        if tags and not set(tags) & set(item.get("tags") or []):
            continue
        out.append(item)
    return out


CADASTROS: dict[str, Cadastro] = {
    c.nome: c
    for c in (
        Cadastro(
            "clinicas", Clinica, "Clínica",
            busca=("nome", "cnpj", "responsavel"),
            papel_escrita="administrador",
        ),
        Cadastro(
            "convenios", Convenio, "Convênio",
            nao_negativos=("percentual_desconto", "valor_consulta"),
            papel_escrita="administrador",
        ),
        Cadastro(
            "locais-atendimento", LocalAtendimento, "Local de atendimento",
            busca=("nome", "endereco"),
            obrigatorios=("nome", "endereco"),
            papel_escrita="administrador",
        ),
        Cadastro(
            "tipos-profissionais", TipoProfissional, "Tipo profissional",
            papel_escrita="administrador",
        ),
        Cadastro(
            "servicos", Servico, "Serviço",
            busca=("nome", "descricao"),
            nao_negativos=("valor_particular",),
            positivos=("tempo_minutos",),
            papel_escrita="administrador",
            validar=_valida_servico,
        ),
        Cadastro(
            "doencas", Doenca, "Doença",
            busca=("nome", "resumo"),
            obrigatorios=("nome", "resumo"),
        ),
        Cadastro(
            "alergias", Alergia, "Alergia",
            busca=("nome", "descricao"),
            filtros=("severidade",),
            validar=_valida_alergia,
        ),
        Cadastro(
            "exames-bioquimicos", ExameBioquimico, "Exame bioquímico",
            busca=("nome", "descricao"),
            validar=_valida_exame,
        ),
        Cadastro(
            "formulas-magistrais", FormulaMagistral, "Fórmula magistral",
            obrigatorios=("nome", "posologia"),
            duplicavel=True,
        ),
        Cadastro(
            "alimentos", Alimento, "Alimento",
            busca=("nome", "categoria"),
            filtros=("categoria",),
            obrigatorios=("nome", "categoria"),
            nao_negativos=("valor_energetico", "proteinas", "carboidratos", "gorduras", "fibras"),
            positivos=("porcao_referencia",),
        ),
        Cadastro(
            "programas", ProgramaNutricional, "Programa",
            busca=("nome", "descricao"),
            filtros=("categoria",),
            faixas={"precoMin": ("preco", ">="), "precoMax": ("preco", "<=")},
            obrigatorios=("nome", "descricao", "categoria"),
            nao_negativos=("preco",),
            duplicavel=True,
            validar=_valida_programa,
        ),
        Cadastro(
            "planejamentos-padrao", PlanejamentoPadrao, "Planejamento padrão",
            busca=("nome", "descricao"),
            filtros=("categoria",),
            obrigatorios=("nome", "categoria"),
            duplicavel=True,
            filtro_extra=_filtra_padroes,
            extras=_totais_padrao,
        ),
        Cadastro(
            "documentos-padrao", DocumentoPadrao, "Documento padrão",
            busca=("titulo", "conteudo"),
            filtros=("tipo", "criadoPor"),
            obrigatorios=("titulo", "tipo", "conteudo"),
            ordem="titulo",
            duplicavel=True,
            validar=_valida_documento,
        ),
    )
}


def get_cadastro(nome: str) -> Cadastro:
    try:
        return CADASTROS[nome]
    except KeyError:
        raise NaoEncontrado(f"Cadastro desconhecido: {nome}")


# =========================
# Helpers
# =========================
def _colunas(modelo: type) -> set[str]:
    return {attr.key for attr in inspect(modelo).column_attrs}


def _flat(s: Session, c: Cadastro, obj: Any) -> dict[str, Any]:
    item = to_dict(obj)
    if c.extras:
        item.update(c.extras(s, item))
    return item


def _obter(s: Session, c: Cadastro, item_id: str) -> Any:
    obj = s.get(c.modelo, item_id)
    if obj is None:
        raise NaoEncontrado(f"{c.rotulo} não encontrado(a)")
    return obj


def _entrada(c: Cadastro, dados: dict[str, Any]) -> dict[str, Any]:
    """camelCase -> colunas do modelo; chaves desconhecidas são ignoradas."""
    colunas = _colunas(c.modelo) - _PROTEGIDOS
    out = {}
    for k, v in dados.items():
        col = to_snake(k)
        if col in colunas:
            out[col] = v
    return out


def _validar(s: Session, c: Cadastro, valores: dict[str, Any]) -> None:
    for campo in c.obrigatorios:
        v = valores.get(campo)
        if v is None or (isinstance(v, str) and not v.strip()):
            raise DadosInvalidos(f"{campo} é obrigatório")
    for campo in c.nao_negativos:
        v = valores.get(campo)
        if v is not None and float(v) < 0:
            raise DadosInvalidos(f"{campo} não pode ser negativo")
    for campo in c.positivos:
        v = valores.get(campo)
        if v is not None and float(v) <= 0:
            raise DadosInvalidos(f"{campo} deve ser maior que zero")
    if c.validar:
        c.validar(s, valores)


def _valores_atuais(c: Cadastro, obj: Any) -> dict[str, Any]:
    return {k: getattr(obj, k) for k in _colunas(c.modelo)}


def _valores_copiados(c: Cadastro, obj: Any) -> dict[str, Any]:
    """Valores para uma cópia: JSON (listas/dicts) não é compartilhado com a origem."""
    return {k: copy.deepcopy(v) for k, v in _valores_atuais(c, obj).items() if k not in _PROTEGIDOS}


def _tabelas_que_referenciam(s: Session, c: Cadastro, item_id: str) -> list[str]:
    """Tabelas com alguma linha apontando (chave estrangeira) para o item."""
    alvo = c.modelo.__table__
    usadas = []
    for tabela in Base.metadata.sorted_tables:
        for fk in tabela.foreign_keys:
            if fk.column.table is not alvo:
                continue
            q = select(func.count()).select_from(tabela).where(fk.parent == item_id)
            if s.execute(q).scalar_one():
                usadas.append(tabela.name)
                break
    return usadas


# =========================
# Operações
# =========================
def listar(nome: str, params: dict[str, Any] | None = None, page: int | None = 1, limit: int | None = 10) -> tuple[list[dict[str, Any]], dict[str, int]]:
    c = get_cadastro(nome)
    params = {k: v for k, v in (params or {}).items() if v is not None and v != ""}
    modelo = c.modelo

    q = select(modelo)
    termo = params.get("search")
    if termo:
        like = f"%{str(termo).strip()}%"
        q = q.where(or_(*[getattr(modelo, col).ilike(like) for col in c.busca]))
    if params.get("ativo") is not None:
        q = q.where(modelo.ativo.is_(bool(params["ativo"])))
    for f in c.filtros:
        if f in params:
            q = q.where(getattr(modelo, to_snake(f)) == params[f])
    for param, (col, op) in c.faixas.items():
        if param in params:
            coluna = getattr(modelo, col)
            valor = float(params[param])
            q = q.where(coluna >= valor if op == ">=" else coluna <= valor)
    q = q.order_by(getattr(modelo, c.ordem).asc())

    with db_session() as s:
        if c.filtro_extra:
            itens = [_flat(s, c, o) for o in s.scalars(q)]
            return paginar_lista(c.filtro_extra(s, itens, params), page, limit)
        objs, pagination = paginar(s, q, page, limit)
        return [_flat(s, c, o) for o in objs], pagination


def listar_ativos(nome: str) -> list[dict[str, Any]]:
    c = get_cadastro(nome)
    with db_session() as s:
        q = select(c.modelo).where(c.modelo.ativo.is_(True)).order_by(getattr(c.modelo, c.ordem).asc())
        return [_flat(s, c, o) for o in s.scalars(q)]


def obter(nome: str, item_id: str) -> dict[str, Any]:
    c = get_cadastro(nome)
    with db_session() as s:
        return _flat(s, c, _obter(s, c, item_id))


def criar(nome: str, dados: dict[str, Any], usuario_id: str | None = None) -> dict[str, Any]:
    c = get_cadastro(nome)
    valores = _entrada(c, dados)
    valores.setdefault("ativo", True)
    if "criado_por" in _colunas(c.modelo) and not valores.get("criado_por"):
        valores["criado_por"] = usuario_id

    with db_session() as s:
        _validar(s, c, valores)
        obj = c.modelo(**valores)
        s.add(obj)
        s.flush()
        logger.info("cadastro_criado", cadastro=c.nome, id=obj.id)
        return _flat(s, c, obj)


def atualizar(nome: str, item_id: str, dados: dict[str, Any]) -> dict[str, Any]:
    """Atualização parcial: só as chaves presentes em `dados` mudam."""
    c = get_cadastro(nome)
    with db_session() as s:
        obj = _obter(s, c, item_id)
        mudancas = _entrada(c, dados)
        valores = {**_valores_atuais(c, obj), **mudancas}
        _validar(s, c, valores)
        for k, v in mudancas.items():
            setattr(obj, k, v)
        s.flush()
        logger.info("cadastro_atualizado", cadastro=c.nome, id=obj.id, campos=sorted(mudancas))
        return _flat(s, c, obj)


def excluir(nome: str, item_id: str) -> None:
    c = get_cadastro(nome)
    with db_session() as s:
        obj = _obter(s, c, item_id)
        usadas = _tabelas_que_referenciam(s, c, item_id)
        if usadas:
            raise Conflito(f"{c.rotulo} está em uso e não pode ser excluído(a); desative-o(a) em vez disso")
        s.delete(obj)
        logger.info("cadastro_excluido", cadastro=c.nome, id=item_id)


def alternar_status(nome: str, item_id: str) -> dict[str, Any]:
    c = get_cadastro(nome)
    with db_session() as s:
        obj = _obter(s, c, item_id)
        obj.ativo = not obj.ativo
        logger.info("cadastro_status_alterado", cadastro=c.nome, id=obj.id, ativo=obj.ativo)
        return _flat(s, c, obj)


def duplicar(nome: str, item_id: str, usuario_id: str | None = None) -> dict[str, Any]:
    c = get_cadastro(nome)
    if not c.duplicavel:
        raise DadosInvalidos(f"{c.rotulo} não pode ser duplicado(a)")

    with db_session() as s:
        origem = _obter(s, c, item_id)
        valores = _valores_copiados(c, origem)
        campo_nome = "titulo" if "titulo" in valores else "nome"
        valores[campo_nome] = f"{valores[campo_nome]} (Cópia)"
        valores["ativo"] = True
        if "criado_por" in valores and usuario_id:
            valores["criado_por"] = usuario_id

        copia = c.modelo(**valores)
        s.add(copia)
        s.flush()
        logger.info("cadastro_duplicado", cadastro=c.nome, origem=item_id, id=copia.id)
        return _flat(s, c, copia)


def valores_distintos(nome: str, campo: str = "categoria") -> list[str]:
    """Ex.: categorias de alimentos ou programas, em ordem alfabética."""
    c = get_cadastro(nome)
    coluna = getattr(c.modelo, campo)
    with db_session() as s:
        return sorted(v for v in s.scalars(select(coluna).distinct()) if v)


def tags_distintas(nome: str) -> list[str]:
    c = get_cadastro(nome)
    with db_session() as s:
        tags: set[str] = set()
        for lista in s.scalars(select(c.modelo.tags)):
            tags.update(lista or [])
        return sorted(tags)
