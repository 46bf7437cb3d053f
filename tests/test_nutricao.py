import pytest

from nutriapp import nutricao
from nutriapp.errors import DadosInvalidos

ALIMENTOS = {
    "arroz": {"valorEnergetico": 128, "proteinas": 2.5, "carboidratos": 28.1, "gorduras": 0.2, "fibras": 1.6, "porcaoReferencia": 100},
    "azeite": {"valorEnergetico": 884, "proteinas": 0, "carboidratos": 0, "gorduras": 100, "fibras": 0, "porcaoReferencia": 100},
    "ovo": {"valorEnergetico": 78, "proteinas": 6.3, "carboidratos": 0.6, "gorduras": 5.3, "fibras": 0, "porcaoReferencia": 50},
}


def test_totais_refeicao():
    refeicao = {"nome": "Almoço", "alimentos": [{"alimentoId": "arroz", "quantidade": 200}, {"alimentoId": "azeite", "quantidade": 10}]}
    t = nutricao.totais_refeicao(refeicao, ALIMENTOS)
    assert t == {"kcal": 344.4, "proteina": 5.0, "carboidratos": 56.2, "lipideos": 10.4, "fibras": 3.2}


def test_porcao_de_referencia_diferente_de_100():
    t = nutricao.totais_refeicao({"alimentos": [{"alimentoId": "ovo", "quantidade": 100}]}, ALIMENTOS)
    assert t["kcal"] == 156.0
    assert t["proteina"] == 12.6


def test_alimento_desconhecido_e_ignorado():
    t = nutricao.totais_refeicao({"alimentos": [{"alimentoId": "sumiu", "quantidade": 100}]}, ALIMENTOS)
    assert t["kcal"] == 0.0


def test_totais_plano():
    refeicoes = [
        {"nome": "Café", "alimentos": [{"alimentoId": "ovo", "quantidade": 50}]},
        {"nome": "Almoço", "alimentos": [{"alimentoId": "arroz", "quantidade": 100}]},
    ]
    t = nutricao.totais_plano(refeicoes, ALIMENTOS)
    assert t["kcal"] == 206.0
    assert [r["nome"] for r in t["refeicoes"]] == ["Café", "Almoço"]


@pytest.mark.parametrize(
    "tipo,operacao,valor,kcal,esperado",
    [
        ("percentual", "aumentar", 10, 2000, 1.1),
        ("percentual", "diminuir", 25, 2000, 0.75),
        ("absoluto", "aumentar", 500, 2000, 1.25),
        ("absoluto", "diminuir", 200, 2000, 0.9),
    ],
)
def test_fator_reajuste(tipo, operacao, valor, kcal, esperado):
    assert nutricao.fator_reajuste(tipo, operacao, valor, kcal) == pytest.approx(esperado)


@pytest.mark.parametrize(
    "tipo,operacao,valor,kcal",
    [
        ("percentual", "aumentar", 0, 2000),
        ("percentual", "dobrar", 10, 2000),
        ("relativo", "aumentar", 10, 2000),
        ("absoluto", "aumentar", 100, 0),
        ("absoluto", "diminuir", 2000, 2000),
        ("percentual", "diminuir", 120, 2000),
    ],
)
def test_fator_reajuste_invalido(tipo, operacao, valor, kcal):
    with pytest.raises(DadosInvalidos):
        nutricao.fator_reajuste(tipo, operacao, valor, kcal)


def test_aplica_fator_nao_altera_original():
    refeicoes = [{"nome": "Almoço", "alimentos": [{"alimentoId": "arroz", "quantidade": 100}]}]
    novas = nutricao.aplica_fator(refeicoes, 1.5)
    assert novas[0]["alimentos"][0]["quantidade"] == 150.0
    assert refeicoes[0]["alimentos"][0]["quantidade"] == 100


def test_descricao_reajuste():
    assert nutricao.descricao_reajuste("percentual", "aumentar", 10) == "- Reajustado (+10%)"
    assert nutricao.descricao_reajuste("absoluto", "diminuir", 200.0) == "- Reajustado (-200 kcal)"
    assert nutricao.descricao_reajuste("percentual", "diminuir", 7.5) == "- Reajustado (-7.5%)"


def test_imc():
    assert nutricao.calcular_imc(70, 175) == 22.86
    assert nutricao.calcular_imc(70, 1.75) == 22.86
    assert nutricao.calcular_imc(None, 1.75) is None
    assert nutricao.calcular_imc(70, 0) is None


@pytest.mark.parametrize(
    "imc,classe",
    [(17.9, "baixo peso"), (18.5, "normal"), (24.99, "normal"), (25, "sobrepeso"), (30, "obesidade"), (None, None)],
)
def test_classificar_imc(imc, classe):
    assert nutricao.classificar_imc(imc) == classe


def test_arredonda_meio_para_cima():
    assert nutricao.arredonda(2.675) == 2.68
    assert nutricao.arredonda(0.125, 2) == 0.13
