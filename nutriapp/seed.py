from __future__ import annotations

from typing import Any

import structlog
from sqlalchemy import select

from nutriapp.auth_service import garantir_admin_padrao
from nutriapp.db import db_session
from nutriapp.models import Alimento, LocalAtendimento, Servico, TipoProfissional

logger = structlog.get_logger(__name__)

TIPOS_PROFISSIONAIS = [
    ("Nutricionista", "Profissional especializado em nutrição e alimentação"),
    ("Psicólogo", "Profissional especializado em saúde mental"),
]

LOCAIS = [
    ("Consultório Principal", "Endereço a definir"),
]

SERVICOS = [
    # nome, minutos, valor particular
    ("Consulta Nutricional", 60, 250.0),
    ("Retorno", 30, 150.0),
    ("Avaliação de Bioimpedância", 30, 120.0),
]

# nome, categoria, kcal, proteínas, carboidratos, gorduras, fibras (por 100 g)
ALIMENTOS: list[tuple[str, str, float, float, float, float, float]] = [
    ("Arroz branco cozido", "Cereais e Grãos", 128, 2.5, 28.1, 0.2, 1.6),
    ("Feijão carioca cozido", "Leguminosas", 76, 4.8, 13.6, 0.5, 8.5),
    ("Peito de frango grelhado", "Carnes e Peixes", 159, 32.0, 0.0, 2.5, 0.0),
    ("Ovo cozido", "Carnes e Peixes", 146, 13.3, 0.6, 9.5, 0.0),
    ("Banana prata", "Frutas", 98, 1.3, 26.0, 0.1, 2.0),
    ("Aveia em flocos", "Cereais e Grãos", 394, 13.9, 66.6, 8.5, 9.1),
    ("Iogurte natural", "Laticínios", 51, 4.1, 1.9, 3.0, 0.0),
    ("Azeite de oliva", "Óleos e Gorduras", 884, 0.0, 0.0, 100.0, 0.0),
]


def _existe(s: Any, modelo: Any, nome: str) -> bool:
    return s.execute(select(modelo).where(modelo.nome == nome)).scalars().first() is not None


def seed_catalogos() -> None:
    """
    Cadastros mínimos (idempotente):
    - tipos de profissional
    - local de atendimento
    - serviços
    - alimentos básicos
    """
    with db_session() as s:
        for nome, descricao in TIPOS_PROFISSIONAIS:
            if not _existe(s, TipoProfissional, nome):
                s.add(TipoProfissional(nome=nome, descricao=descricao))

        for nome, endereco in LOCAIS:
            if not _existe(s, LocalAtendimento, nome):
                s.add(LocalAtendimento(nome=nome, endereco=endereco))

        for nome, minutos, valor in SERVICOS:
            if not _existe(s, Servico, nome):
                s.add(Servico(nome=nome, tempo_minutos=minutos, valor_particular=valor, valores_convenios={}))

        for nome, categoria, kcal, prot, carb, gord, fib in ALIMENTOS:
            if not _existe(s, Alimento, nome):
                s.add(
                    Alimento(
                        nome=nome,
                        categoria=categoria,
                        valor_energetico=kcal,
                        proteinas=prot,
                        carboidratos=carb,
                        gorduras=gord,
                        fibras=fib,
                        porcao_referencia=100,
                        unidade_medida="g",
                    )
                )


def seed_base() -> str:
    """Administrador padrão + cadastros mínimos. Devolve o id do administrador."""
    admin_id = garantir_admin_padrao()
    seed_catalogos()
    logger.info("seed_concluido", admin_id=admin_id)
    return admin_id
