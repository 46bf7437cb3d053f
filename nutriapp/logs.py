from __future__ import annotations

import logging
import sys

import structlog

from nutriapp.config import get_settings

_configured = False


def configure_logging(level: str | None = None, json_output: bool | None = None) -> None:
    """
    Configura o structlog sobre o logging padrão (idempotente):
    - contextvars (request_id) em todos os eventos
    - timestamp ISO UTC, nível e nome do logger
    - JSON em produção, console legível em desenvolvimento
    """
    global _configured
    if _configured:
        return

    settings = get_settings()
    level_name = (level or settings.log_level).upper()
    as_json = settings.log_json if json_output is None else json_output

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=getattr(logging, level_name, logging.INFO))

    processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
    ]
    if as_json:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    _configured = True
