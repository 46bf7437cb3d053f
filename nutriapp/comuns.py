from __future__ import annotations

import enum
import math
import re
from datetime import date, datetime, time
from typing import Any

from sqlalchemy import Select, func, inspect, select
from sqlalchemy.orm import Session

from nutriapp.errors import DadosInvalidos

LIMITE_PADRAO = 10
LIMITE_MAXIMO = 100

_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")


# =========================
# Conversões de chave
# =========================
def to_camel(nome: str) -> str:
    primeiro, *resto = nome.split("_")
    return primeiro + "".join(p[:1].upper() + p[1:] for p in resto)


def to_snake(nome: str) -> str:
    return _CAMEL_RE.sub("_", nome).lower()


def _serializa(valor: Any) -> Any:
    if isinstance(valor, datetime):
        return valor.isoformat()
    if isinstance(valor, date):
        return valor.isoformat()
    if isinstance(valor, enum.Enum):
        return valor.value
    return valor


def to_dict(obj: Any) -> dict[str, Any]:
    """Colunas do objeto ORM em dict camelCase serializável."""
    mapper = inspect(obj).mapper
    return {to_camel(attr.key): _serializa(getattr(obj, attr.key)) for attr in mapper.column_attrs}


# =========================
# Datas
# =========================
def parse_data(valor: str | date | None, campo: str = "data") -> date | None:
    if valor is None or valor == "":
        return None
    if isinstance(valor, datetime):
        return valor.date()
    if isinstance(valor, date):
        return valor
    try:
        return date.fromisoformat(str(valor)[:10])
    except ValueError:
        raise DadosInvalidos(f"{campo} inválida: {valor}")


def parse_hora(valor: str | time | None, campo: str = "horario") -> time:
    if isinstance(valor, time):
        return valor
    if not valor:
        raise DadosInvalidos(f"{campo} é obrigatório")
    try:
        hh, mm = str(valor).strip().split(":")[:2]
        return time(int(hh), int(mm))
    except ValueError:
        raise DadosInvalidos(f"{campo} inválido: {valor}")


def calcular_idade(nascimento: date | None, referencia: date | None = None) -> int | None:
    """Idade em anos completos; aniversário ainda não atingido no ano desconta um."""
    if nascimento is None:
        return None
    referencia = referencia or date.today()
    idade = referencia.year - nascimento.year
    if (referencia.month, referencia.day) < (nascimento.month, nascimento.day):
        idade -= 1
    return idade


# =========================
# Paginação
# =========================
def normaliza_paginacao(page: int | None, limit: int | None) -> tuple[int, int]:
    page = max(int(page or 1), 1)
    limit = int(limit or LIMITE_PADRAO)
    limit = min(max(limit, 1), LIMITE_MAXIMO)
    return page, limit


def paginar(s: Session, stmt: Select, page: int | None = 1, limit: int | None = LIMITE_PADRAO) -> tuple[list[Any], dict[str, int]]:
    """
    Executa `stmt` paginado.
    Retorna (objetos, pagination) com pagination no formato do envelope da API.
    """
    page, limit = normaliza_paginacao(page, limit)
    total = s.execute(select(func.count()).select_from(stmt.order_by(None).subquery())).scalar_one()
    itens = list(s.scalars(stmt.limit(limit).offset((page - 1) * limit)))
    return itens, pagination(page, limit, total)


def paginar_lista(itens: list[Any], page: int | None = 1, limit: int | None = LIMITE_PADRAO) -> tuple[list[Any], dict[str, int]]:
    """Paginação em memória (para filtros calculados em Python)."""
    page, limit = normaliza_paginacao(page, limit)
    inicio = (page - 1) * limit
    return itens[inicio:inicio + limit], pagination(page, limit, len(itens))


def pagination(page: int, limit: int, total: int) -> dict[str, int]:
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "totalPages": math.ceil(total / limit) if limit else 0,
    }


def texto_obrigatorio(valor: Any, campo: str) -> str:
    if valor is None or not str(valor).strip():
        raise DadosInvalidos(f"{campo} é obrigatório")
    return str(valor).strip()
