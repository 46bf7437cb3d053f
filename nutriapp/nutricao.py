"""
Cálculos nutricionais puros (sem acesso ao banco).

Os alimentos chegam como dicts camelCase (`valorEnergetico`, `proteinas`,
`carboidratos`, `gorduras`, `fibras`, `porcaoReferencia`) indexados por id.
"""
from __future__ import annotations

import copy
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Mapping

from nutriapp.errors import DadosInvalidos

NUTRIENTES = ("kcal", "proteina", "carboidratos", "lipideos", "fibras")

# nome no total -> campo do alimento
_CAMPOS = {
    "kcal": "valorEnergetico",
    "proteina": "proteinas",
    "carboidratos": "carboidratos",
    "lipideos": "gorduras",
    "fibras": "fibras",
}


def arredonda(valor: float, casas: int = 2) -> float:
    q = Decimal(1).scaleb(-casas)
    return float(Decimal(str(valor)).quantize(q, rounding=ROUND_HALF_UP))


def _zeros() -> dict[str, float]:
    return {n: 0.0 for n in NUTRIENTES}


def totais_refeicao(refeicao: Mapping[str, Any], alimentos: Mapping[str, Mapping[str, Any]]) -> dict[str, float]:
    total = _zeros()
    for item in refeicao.get("alimentos") or []:
        alimento = alimentos.get(item.get("alimentoId"))
        if alimento is None:
            continue
        porcao = float(alimento.get("porcaoReferencia") or 0)
        if porcao <= 0:
            continue
        fator = float(item.get("quantidade") or 0) / porcao
        for nome, campo in _CAMPOS.items():
            total[nome] += float(alimento.get(campo) or 0) * fator
    return {k: arredonda(v) for k, v in total.items()}


def totais_plano(refeicoes: list[Mapping[str, Any]], alimentos: Mapping[str, Mapping[str, Any]]) -> dict[str, Any]:
    """Totais por refeição e do plano inteiro."""
    por_refeicao = []
    total = _zeros()
    for r in refeicoes or []:
        t = totais_refeicao(r, alimentos)
        por_refeicao.append({"nome": r.get("nome"), **t})
        for k in NUTRIENTES:
            total[k] += t[k]
    return {"refeicoes": por_refeicao, **{k: arredonda(v) for k, v in total.items()}}


def fator_reajuste(tipo_ajuste: str, operacao: str, valor: float, kcal_atual: float) -> float:
    if valor is None or valor <= 0:
        raise DadosInvalidos("valor do reajuste deve ser maior que zero")
    if operacao not in ("aumentar", "diminuir"):
        raise DadosInvalidos(f"operação inválida: {operacao}")
    sinal = 1 if operacao == "aumentar" else -1

    if tipo_ajuste == "percentual":
        fator = 1 + sinal * valor / 100
    elif tipo_ajuste == "absoluto":
        if kcal_atual <= 0:
            raise DadosInvalidos("planejamento sem calorias não pode ser reajustado por valor absoluto")
        fator = (kcal_atual + sinal * valor) / kcal_atual
    else:
        raise DadosInvalidos(f"tipo de ajuste inválido: {tipo_ajuste}")

    if fator <= 0:
        raise DadosInvalidos("o reajuste resultaria em quantidades nulas ou negativas")
    return fator


def aplica_fator(refeicoes: list[Mapping[str, Any]], fator: float) -> list[dict[str, Any]]:
    novas = copy.deepcopy(list(refeicoes or []))
    for r in novas:
        for item in r.get("alimentos") or []:
            item["quantidade"] = arredonda(float(item.get("quantidade") or 0) * fator)
    return novas


def descricao_reajuste(tipo_ajuste: str, operacao: str, valor: float) -> str:
    sinal = "+" if operacao == "aumentar" else "-"
    v = f"{valor:g}"
    if tipo_ajuste == "percentual":
        return f"- Reajustado ({sinal}{v}%)"
    return f"- Reajustado ({sinal}{v} kcal)"


# =========================
# Antropometria
# =========================
def calcular_imc(peso: float | None, altura: float | None) -> float | None:
    if not peso or not altura:
        return None
    if altura > 3:
        altura = altura / 100  # veio em centímetros
    return arredonda(peso / (altura * altura))


def classificar_imc(imc: float | None) -> str | None:
    if imc is None:
        return None
    if imc < 18.5:
        return "baixo peso"
    if imc < 25:
        return "normal"
    if imc < 30:
        return "sobrepeso"
    return "obesidade"
