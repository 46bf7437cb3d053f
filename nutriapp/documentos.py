from __future__ import annotations

from datetime import date
from typing import Any

import structlog
from sqlalchemy import select

from nutriapp.clientes import get_cliente
from nutriapp.comuns import to_dict
from nutriapp.db import db_session
from nutriapp.errors import DadosInvalidos, NaoEncontrado
from nutriapp.models import Cliente, DocumentoCliente, DocumentoPadrao

logger = structlog.get_logger(__name__)

NAO_INFORMADO = "Não informado"


def variaveis_cliente(c: Cliente, hoje: date | None = None) -> dict[str, str]:
    hoje = hoje or date.today()
    return {
        "NOME_CLIENTE": c.nome,
        "EMAIL_CLIENTE": c.email or NAO_INFORMADO,
        "TELEFONE_CLIENTE": c.telefone or NAO_INFORMADO,
        "DATA_NASCIMENTO": c.data_nascimento.strftime("%d/%m/%Y") if c.data_nascimento else NAO_INFORMADO,
        "DATA_ATUAL": hoje.strftime("%d/%m/%Y"),
        "OBJETIVOS_CLIENTE": (c.objetivos or "").strip() or NAO_INFORMADO,
    }


def substituir_variaveis(conteudo: str, variaveis: dict[str, str]) -> str:
    """Troca cada {VARIAVEL} conhecida; as desconhecidas ficam como estão."""
    for nome, valor in variaveis.items():
        conteudo = conteudo.replace("{" + nome + "}", valor)
    return conteudo


def gerar_documento(
    cliente_id: str,
    documento_padrao_id: str,
    titulo: str | None = None,
    usuario_id: str | None = None,
    hoje: date | None = None,
) -> dict[str, Any]:
    with db_session() as s:
        cliente = get_cliente(s, cliente_id)
        padrao = s.get(DocumentoPadrao, documento_padrao_id)
        if not padrao:
            raise NaoEncontrado("Documento padrão não encontrado")
        if not padrao.ativo:
            raise DadosInvalidos("Documento padrão inativo")

        doc = DocumentoCliente(
            cliente_id=cliente.id,
            documento_padrao_id=padrao.id,
            titulo=(titulo or "").strip() or f"{padrao.titulo} - {cliente.nome}",
            tipo=padrao.tipo,
            conteudo=substituir_variaveis(padrao.conteudo, variaveis_cliente(cliente, hoje)),
            criado_por=usuario_id,
        )
        s.add(doc)
        s.flush()
        logger.info("documento_gerado", documento_id=doc.id, cliente_id=cliente.id, padrao_id=padrao.id)
        return to_dict(doc)


def documentos_do_cliente(cliente_id: str) -> list[dict[str, Any]]:
    with db_session() as s:
        get_cliente(s, cliente_id)
        q = select(DocumentoCliente).where(DocumentoCliente.cliente_id == cliente_id).order_by(DocumentoCliente.criado_em.desc())
        return [to_dict(d) for d in s.scalars(q)]


def obter_documento(documento_id: str) -> dict[str, Any]:
    with db_session() as s:
        d = s.get(DocumentoCliente, documento_id)
        if not d:
            raise NaoEncontrado("Documento não encontrado")
        return to_dict(d)


def excluir_documento(documento_id: str) -> None:
    with db_session() as s:
        d = s.get(DocumentoCliente, documento_id)
        if not d:
            raise NaoEncontrado("Documento não encontrado")
        s.delete(d)
        logger.info("documento_excluido", documento_id=documento_id)
