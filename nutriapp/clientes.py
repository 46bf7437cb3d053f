from __future__ import annotations

from datetime import date, timedelta
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session

from nutriapp.comuns import calcular_idade, paginar, parse_data, texto_obrigatorio
from nutriapp.db import db_session
from nutriapp.errors import DadosInvalidos, NaoEncontrado
from nutriapp.models import (
    Alergia,
    Cliente,
    ClienteCondicao,
    ClienteFamilia,
    ClientePrograma,
    Doenca,
    Familia,
    ProgramaNutricional,
)

logger = structlog.get_logger(__name__)

GENEROS = ("masculino", "feminino", "outro")


def cliente_flat(c: Cliente, hoje: date | None = None) -> dict[str, Any]:
    return {
        "id": c.id,
        "nome": c.nome,
        "telefone": c.telefone,
        "email": c.email,
        "dataNascimento": c.data_nascimento.isoformat() if c.data_nascimento else None,
        "idade": calcular_idade(c.data_nascimento, hoje),
        "genero": c.genero,
        "endereco": c.endereco,
        "observacoes": c.observacoes,
        "objetivos": c.objetivos,
        "ativo": c.ativo,
        "criadoEm": c.criado_em.isoformat() if c.criado_em else None,
    }


def get_cliente(s: Session, cliente_id: str) -> Cliente:
    c = s.get(Cliente, cliente_id)
    if not c:
        raise NaoEncontrado("Cliente não encontrado")
    return c


def _genero(valor: str | None) -> str | None:
    if valor in (None, ""):
        return None
    if valor not in GENEROS:
        raise DadosInvalidos(f"gênero inválido: {valor}")
    return valor


# =========================
# CRUD
# =========================
def listar_clientes(
    nome: str | None = None,
    telefone: str | None = None,
    ativo: bool | None = None,
    page: int | None = 1,
    limit: int | None = 10,
) -> tuple[list[dict[str, Any]], dict[str, int]]:
    q = select(Cliente)
    if nome:
        q = q.where(Cliente.nome.ilike(f"%{nome.strip()}%"))
    if telefone:
        q = q.where(Cliente.telefone.ilike(f"%{telefone.strip()}%"))
    if ativo is not None:
        q = q.where(Cliente.ativo.is_(ativo))
    q = q.order_by(Cliente.nome.asc())

    with db_session() as s:
        itens, pagination = paginar(s, q, page, limit)
        return [cliente_flat(c) for c in itens], pagination


def obter_cliente(cliente_id: str) -> dict[str, Any]:
    with db_session() as s:
        return cliente_flat(get_cliente(s, cliente_id))


def criar_cliente(dados: dict[str, Any]) -> dict[str, Any]:
    nascimento = parse_data(dados.get("dataNascimento"), "dataNascimento")
    if nascimento is None:
        raise DadosInvalidos("dataNascimento é obrigatório")
    if nascimento > date.today():
        raise DadosInvalidos("dataNascimento não pode estar no futuro")

    with db_session() as s:
        c = Cliente(
            nome=texto_obrigatorio(dados.get("nome"), "nome"),
            telefone=texto_obrigatorio(dados.get("telefone"), "telefone"),
            email=(dados.get("email") or None),
            data_nascimento=nascimento,
            genero=_genero(dados.get("genero")),
            endereco=dados.get("endereco"),
            observacoes=dados.get("observacoes"),
            objetivos=dados.get("objetivos"),
            ativo=True,
        )
        s.add(c)
        s.flush()
        logger.info("cliente_criado", cliente_id=c.id)
        return cliente_flat(c)


def atualizar_cliente(cliente_id: str, dados: dict[str, Any]) -> dict[str, Any]:
    with db_session() as s:
        c = get_cliente(s, cliente_id)
        if "nome" in dados:
            c.nome = texto_obrigatorio(dados["nome"], "nome")
        if "telefone" in dados:
            c.telefone = texto_obrigatorio(dados["telefone"], "telefone")
        if "dataNascimento" in dados:
            nascimento = parse_data(dados["dataNascimento"], "dataNascimento")
            if nascimento is None:
                raise DadosInvalidos("dataNascimento é obrigatório")
            c.data_nascimento = nascimento
        if "genero" in dados:
            c.genero = _genero(dados["genero"])
        for campo in ("email", "endereco", "observacoes", "objetivos"):
            if campo in dados:
                setattr(c, campo, dados[campo])
        if dados.get("ativo") is not None:
            c.ativo = bool(dados["ativo"])

        s.flush()
        logger.info("cliente_atualizado", cliente_id=c.id)
        return cliente_flat(c)


def excluir_cliente(cliente_id: str) -> None:
    """Exclusão lógica: o histórico do cliente é preservado."""
    with db_session() as s:
        c = get_cliente(s, cliente_id)
        c.ativo = False
        logger.info("cliente_desativado", cliente_id=c.id)


# =========================
# Famílias
# =========================
def _familia_flat(f: Familia) -> dict[str, Any]:
    return {
        "id": f.id,
        "nome": f.nome,
        "descricao": f.descricao,
        "ativo": f.ativo,
        "membros": [
            {"id": m.cliente.id, "nome": m.cliente.nome, "telefone": m.cliente.telefone}
            for m in sorted(f.membros, key=lambda m: m.cliente.nome)
        ],
    }


def _get_familia(s: Session, familia_id: str) -> Familia:
    f = s.get(Familia, familia_id)
    if not f:
        raise NaoEncontrado("Família não encontrada")
    return f


def _membro(s: Session, familia_id: str, cliente_id: str) -> ClienteFamilia | None:
    return s.execute(
        select(ClienteFamilia).where(
            ClienteFamilia.familia_id == familia_id,
            ClienteFamilia.cliente_id == cliente_id,
        )
    ).scalar_one_or_none()


def _adiciona_membro(s: Session, familia: Familia, cliente_id: str) -> bool:
    get_cliente(s, cliente_id)
    if _membro(s, familia.id, cliente_id):
        return False
    s.add(ClienteFamilia(familia_id=familia.id, cliente_id=cliente_id))
    s.flush()
    return True


def familiares_do_cliente(cliente_id: str) -> list[dict[str, Any]]:
    """Outros membros de todas as famílias do cliente."""
    with db_session() as s:
        c = get_cliente(s, cliente_id)
        vistos: dict[str, dict[str, Any]] = {}
        for vinculo in c.familias:
            for m in vinculo.familia.membros:
                if m.cliente_id == c.id or m.cliente_id in vistos:
                    continue
                vistos[m.cliente_id] = {
                    **cliente_flat(m.cliente),
                    "familiaId": vinculo.familia_id,
                    "familiaNome": vinculo.familia.nome,
                }
        return sorted(vistos.values(), key=lambda x: x["nome"])


def vincular_familiar(cliente_id: str, familiar_id: str) -> dict[str, Any]:
    """
    Liga dois clientes na mesma família:
    - usa a primeira família do cliente, ou cria "Família <nome>"
    - vínculo repetido não faz nada
    """
    if cliente_id == familiar_id:
        raise DadosInvalidos("Um cliente não pode ser vinculado a si mesmo")

    with db_session() as s:
        c = get_cliente(s, cliente_id)
        get_cliente(s, familiar_id)

        if c.familias:
            familia = c.familias[0].familia
        else:
            familia = Familia(nome=f"Família {c.nome}")
            s.add(familia)
            s.flush()
            _adiciona_membro(s, familia, c.id)

        if _adiciona_membro(s, familia, familiar_id):
            logger.info("familiar_vinculado", cliente_id=c.id, familiar_id=familiar_id, familia_id=familia.id)
        s.refresh(familia)
        return _familia_flat(familia)


def desvincular_familiar(cliente_id: str, familiar_id: str) -> None:
    with db_session() as s:
        c = get_cliente(s, cliente_id)
        familias = [v.familia_id for v in c.familias]
        removidos = 0
        for familia_id in familias:
            m = _membro(s, familia_id, familiar_id)
            if m:
                s.delete(m)
                removidos += 1
        if not removidos:
            raise NaoEncontrado("Vínculo familiar não encontrado")
        logger.info("familiar_desvinculado", cliente_id=c.id, familiar_id=familiar_id)


def listar_familias() -> list[dict[str, Any]]:
    with db_session() as s:
        return [_familia_flat(f) for f in s.scalars(select(Familia).order_by(Familia.nome))]


def obter_familia(familia_id: str) -> dict[str, Any]:
    with db_session() as s:
        return _familia_flat(_get_familia(s, familia_id))


def criar_familia(nome: str, descricao: str | None = None, membros_ids: list[str] | None = None) -> dict[str, Any]:
    with db_session() as s:
        f = Familia(nome=texto_obrigatorio(nome, "nome"), descricao=descricao)
        s.add(f)
        s.flush()
        for cid in membros_ids or []:
            _adiciona_membro(s, f, cid)
        s.refresh(f)
        logger.info("familia_criada", familia_id=f.id)
        return _familia_flat(f)


def atualizar_familia(familia_id: str, dados: dict[str, Any]) -> dict[str, Any]:
    with db_session() as s:
        f = _get_familia(s, familia_id)
        if "nome" in dados:
            f.nome = texto_obrigatorio(dados["nome"], "nome")
        if "descricao" in dados:
            f.descricao = dados["descricao"]
        if dados.get("ativo") is not None:
            f.ativo = bool(dados["ativo"])
        return _familia_flat(f)


def excluir_familia(familia_id: str) -> None:
    with db_session() as s:
        s.delete(_get_familia(s, familia_id))
        logger.info("familia_excluida", familia_id=familia_id)


def adicionar_membro(familia_id: str, cliente_id: str) -> dict[str, Any]:
    with db_session() as s:
        f = _get_familia(s, familia_id)
        _adiciona_membro(s, f, cliente_id)
        s.refresh(f)
        return _familia_flat(f)


def remover_membro(familia_id: str, cliente_id: str) -> dict[str, Any]:
    with db_session() as s:
        f = _get_familia(s, familia_id)
        m = _membro(s, familia_id, cliente_id)
        if not m:
            raise NaoEncontrado("Cliente não faz parte da família")
        s.delete(m)
        s.flush()
        s.refresh(f)
        return _familia_flat(f)


# =========================
# Doenças e alergias
# =========================
def condicoes_cliente(cliente_id: str) -> dict[str, Any]:
    with db_session() as s:
        get_cliente(s, cliente_id)
        vinculos = list(s.scalars(select(ClienteCondicao).where(ClienteCondicao.cliente_id == cliente_id)))
        return {
            "doencas": [
                {"id": v.doenca.id, "nome": v.doenca.nome, "resumo": v.doenca.resumo}
                for v in vinculos if v.doenca_id
            ],
            "alergias": [
                {"id": v.alergia.id, "nome": v.alergia.nome, "severidade": v.alergia.severidade}
                for v in vinculos if v.alergia_id
            ],
        }


def definir_condicoes(cliente_id: str, doencas_ids: list[str], alergias_ids: list[str]) -> dict[str, Any]:
    """Substitui todas as doenças e alergias do cliente."""
    with db_session() as s:
        get_cliente(s, cliente_id)
        for did in doencas_ids:
            if s.get(Doenca, did) is None:
                raise DadosInvalidos(f"doença não encontrada: {did}")
        for aid in alergias_ids:
            if s.get(Alergia, aid) is None:
                raise DadosInvalidos(f"alergia não encontrada: {aid}")

        for v in s.scalars(select(ClienteCondicao).where(ClienteCondicao.cliente_id == cliente_id)):
            s.delete(v)
        s.flush()
        for did in dict.fromkeys(doencas_ids):
            s.add(ClienteCondicao(cliente_id=cliente_id, doenca_id=did))
        for aid in dict.fromkeys(alergias_ids):
            s.add(ClienteCondicao(cliente_id=cliente_id, alergia_id=aid))
        logger.info("condicoes_atualizadas", cliente_id=cliente_id, doencas=len(doencas_ids), alergias=len(alergias_ids))

    return condicoes_cliente(cliente_id)


# =========================
# Programas
# =========================
def _vinculo_flat(v: ClientePrograma) -> dict[str, Any]:
    return {
        "id": v.id,
        "clienteId": v.cliente_id,
        "programaId": v.programa_id,
        "programaNome": v.programa.nome,
        "preco": v.preco,
        "dataInicio": v.data_inicio.isoformat(),
        "dataFim": v.data_fim.isoformat() if v.data_fim else None,
        "ativo": v.ativo,
    }


def programas_cliente(cliente_id: str) -> list[dict[str, Any]]:
    with db_session() as s:
        get_cliente(s, cliente_id)
        q = (
            select(ClientePrograma)
            .where(ClientePrograma.cliente_id == cliente_id)
            .order_by(ClientePrograma.data_inicio.desc())
        )
        return [_vinculo_flat(v) for v in s.scalars(q)]


def vincular_programa(cliente_id: str, programa_id: str, data_inicio: date | str | None = None) -> dict[str, Any]:
    inicio = parse_data(data_inicio, "dataInicio") or date.today()
    with db_session() as s:
        get_cliente(s, cliente_id)
        p = s.get(ProgramaNutricional, programa_id)
        if not p:
            raise NaoEncontrado("Programa não encontrado")
        if not p.ativo:
            raise DadosInvalidos("Programa inativo")

        v = ClientePrograma(
            cliente_id=cliente_id,
            programa_id=p.id,
            preco=p.preco,
            data_inicio=inicio,
            data_fim=inicio + timedelta(weeks=p.duracao),
            ativo=True,
        )
        s.add(v)
        s.flush()
        s.refresh(v)
        logger.info("programa_vinculado", cliente_id=cliente_id, programa_id=p.id, vinculo_id=v.id)
        return _vinculo_flat(v)


def encerrar_programa(cliente_id: str, vinculo_id: str, data_fim: date | None = None) -> dict[str, Any]:
    with db_session() as s:
        v = s.get(ClientePrograma, vinculo_id)
        if not v or v.cliente_id != cliente_id:
            raise NaoEncontrado("Vínculo de programa não encontrado")
        v.ativo = False
        v.data_fim = data_fim or date.today()
        logger.info("programa_encerrado", cliente_id=cliente_id, vinculo_id=v.id)
        return _vinculo_flat(v)
