from __future__ import annotations

import enum
import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from nutriapp.db import Base


def new_uuid() -> str:
    return str(uuid.uuid4())


class Papel(enum.Enum):
    SECRETARIA = "secretaria"
    PROFISSIONAL = "profissional"
    ADMINISTRADOR = "administrador"


class Usuario(Base):
    """
    Usuário do sistema (login por email).
    - email único, sempre em minúsculas
    - senha_hash com bcrypt (passlib)
    - papel define o nível na hierarquia de permissões
    """
    __tablename__ = "usuarios"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    nome: Mapped[str] = mapped_column(String(120), nullable=False)
    email: Mapped[str] = mapped_column(String(120), unique=True, nullable=False)
    senha_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    papel: Mapped[Papel] = mapped_column(Enum(Papel), default=Papel.SECRETARIA, nullable=False)
    tipo_profissional_id: Mapped[str | None] = mapped_column(ForeignKey("tipos_profissionais.id"), nullable=True)

    ativo: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    criado_em: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"Usuario({self.email}, {self.papel.value})"


class TokenRevogado(Base):
    """Refresh token invalidado por logout (identificado pelo jti)."""
    __tablename__ = "tokens_revogados"

    jti: Mapped[str] = mapped_column(String(36), primary_key=True)
    usuario_id: Mapped[str] = mapped_column(ForeignKey("usuarios.id"), nullable=False)
    revogado_em: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    expira_em: Mapped[datetime] = mapped_column(DateTime, nullable=False)
