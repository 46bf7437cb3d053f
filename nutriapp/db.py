from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator

from sqlalchemy import create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

from nutriapp.config import get_settings


def _engine_options(url: str, echo: bool) -> dict[str, Any]:
    options: dict[str, Any] = {"echo": echo, "future": True}
    if url.startswith("sqlite"):
        options["connect_args"] = {"check_same_thread": False}
        # banco em memória: uma única conexão compartilhada entre threads
        if url in {"sqlite://", "sqlite:///:memory:"}:
            options["poolclass"] = StaticPool
    return options


_settings = get_settings()
DATABASE_URL = _settings.database_url

engine = create_engine(DATABASE_URL, **_engine_options(DATABASE_URL, _settings.db_echo))

SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    autocommit=False,
    future=True,
    expire_on_commit=False
)


class Base(DeclarativeBase):
    """Base ORM de todos os modelos."""
    pass


@contextmanager
def db_session() -> Iterator[Session]:
    """
    Context manager da sessão:
    - commit se tudo correr bem
    - rollback em exceções
    - close sempre
    """
    session: Session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db() -> None:
    """Cria as tabelas que ainda não existem."""
    # registra todos os modelos no metadata
    from . import auth_models, models  # noqa: F401

    Base.metadata.create_all(bind=engine)


def reset_db() -> None:
    """Apaga e recria o schema inteiro (demo e testes)."""
    from . import auth_models, models  # noqa: F401

    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
