"""Dashboard, relatórios gerenciais e transações."""
from datetime import date, datetime

import pytest

from conftest import auth_header
from nutriapp import agenda, cadastros, clientes, financeiro, relatorios
from nutriapp.errors import DadosInvalidos

AGORA = datetime(2026, 3, 15, 12, 0)


@pytest.fixture
def movimento(cliente, profissional, servico, retorno):
    def agendar(dia, servicos):
        return agenda.criar_agendamento(
            {
                "clienteId": cliente["id"],
                "profissionalId": profissional["id"],
                "servicosIds": [s["id"] for s in servicos],
                "data": dia,
                "horario": "09:00",
            }
        )

    antigo = agendar("2025-09-01", [servico])
    agenda.marcar_realizado(antigo["id"])

    jan = agendar("2026-01-12", [servico])
    agenda.marcar_realizado(jan["id"])
    fev = agendar("2026-02-09", [servico, retorno])
    agenda.marcar_realizado(fev["id"])
    cancelado = agendar("2026-02-16", [retorno])
    agenda.cancelar_agendamento(cancelado["id"], "Doente")
    agendar("2026-03-10", [servico])

    financeiro.criar_transacao({"tipo": "entrada", "categoria": "Vendas", "descricao": "E-book", "valor": 100, "data": "2026-02-05"})
    financeiro.criar_transacao({"tipo": "saida", "categoria": "Aluguel", "valor": 300, "data": "2026-03-01"})
    financeiro.criar_transacao({"tipo": "saida", "categoria": "Material", "valor": 50, "data": "2026-03-02"})
    financeiro.criar_transacao({"tipo": "saida", "categoria": "Aluguel", "valor": 999, "data": "2025-12-31"})


def test_janela():
    j = relatorios.janela(3, date(2026, 1, 20))
    assert j.inicio == date(2025, 11, 1)
    assert j.fim == date(2026, 1, 20)
    assert j.meses == ("2025-11", "2025-12", "2026-01")
    with pytest.raises(DadosInvalidos):
        relatorios.janela(0, date(2026, 1, 20))


@pytest.mark.parametrize(
    "agrupamento,esperado",
    [("dia", "2026-03-15"), ("semana", "2026-03-09"), ("mes", "2026-03"), ("ano", "2026")],
)
def test_chave_periodo(agrupamento, esperado):
    assert relatorios.chave_periodo(date(2026, 3, 15), agrupamento) == esperado


def test_relatorio_agendamentos(movimento):
    r = relatorios.relatorio_agendamentos(3, agora=AGORA)
    assert r["total"] == 4
    assert r["porStatus"] == {"agendado": 1, "remarcado": 0, "realizado": 2, "cancelado": 1}
    assert r["taxaRealizacao"] == 50.0
    assert r["taxaCancelamento"] == 25.0
    assert [m["mes"] for m in r["porMes"]] == ["2026-01", "2026-02", "2026-03"]
    assert r["porMes"][1] == {"mes": "2026-02", "realizados": 1, "cancelados": 1, "agendados": 0, "total": 2}
    assert r["porServico"] == [{"nome": "Consulta Nutricional", "quantidade": 3}, {"nome": "Retorno", "quantidade": 2}]
    assert r["porProfissional"][0]["taxaRealizacao"] == 50.0
    assert r["porLocal"][0]["total"] == 4


def test_relatorio_financeiro(movimento):
    r = relatorios.relatorio_financeiro(3, agora=AGORA)
    assert r["totais"] == {
        "receitaConsultas": 650.0,
        "entradas": 750.0,
        "saidas": 350.0,
        "lucro": 400.0,
        "consultas": 2,
        "ticketMedio": 325.0,
    }
    assert r["despesasPorCategoria"] == [{"categoria": "Aluguel", "valor": 300.0}, {"categoria": "Material", "valor": 50.0}]
    assert r["receitaPorTipo"] == [{"tipo": "Particular", "valor": 650.0, "quantidade": 2}]
    assert [m["receitaConsultas"] for m in r["porMes"]] == [250.0, 400.0, 0.0]
    assert r["porMes"][2]["lucro"] == -350.0


def test_financeiro_por_semana(movimento):
    linhas = relatorios.relatorio_financeiro_periodos(date(2026, 2, 1), date(2026, 2, 28), "semana")
    assert [l["periodo"] for l in linhas] == ["2026-01-26", "2026-02-02", "2026-02-09", "2026-02-16", "2026-02-23"]
    assert linhas[2] == {
        "periodo": "2026-02-09",
        "faturamento": 400.0,
        "consultasRealizadas": 1,
        "consultasCanceladas": 0,
        "ticketMedio": 400.0,
    }
    assert linhas[3]["consultasCanceladas"] == 1
    assert linhas[3]["ticketMedio"] == 0.0


def test_financeiro_por_mes(movimento):
    linhas = relatorios.relatorio_financeiro_periodos(date(2026, 1, 1), date(2026, 3, 31))
    assert [(l["periodo"], l["faturamento"]) for l in linhas] == [("2026-01", 250.0), ("2026-02", 400.0), ("2026-03", 0.0)]


def test_financeiro_periodos_invalidos():
    with pytest.raises(DadosInvalidos):
        relatorios.relatorio_financeiro_periodos(date(2026, 1, 1), date(2026, 3, 31), "hora")
    with pytest.raises(DadosInvalidos):
        relatorios.relatorio_financeiro_periodos(date(2026, 3, 1), date(2026, 1, 1))


def test_dashboard(movimento):
    stats = relatorios.dashboard_stats(AGORA)
    assert stats["totalClientes"] == 1
    assert stats["agendamentosHoje"] == 0
    assert stats["agendamentosPendentes"] == 1
    assert stats["consultasRealizadas"] == 3
    assert stats["receitaTotal"] == 900.0
    assert stats["receitaMes"] == 0.0
    assert stats["proximasConsultas"] == []
    assert [m["receita"] for m in stats["graficoEvolucao"]] == [0.0, 0.0, 0.0, 250.0, 400.0, 0.0]
    assert stats["distribuicaoServicos"] == [
        {"nome": "Consulta Nutricional", "quantidade": 3, "valor": 750.0},
        {"nome": "Retorno", "quantidade": 1, "valor": 150.0},
    ]


@pytest.mark.parametrize(
    "idade,faixa",
    [(None, None), (12, "<18"), (18, "18-29"), (39, "30-39"), (59, "50-59"), (60, "60+")],
)
def test_faixa_etaria(idade, faixa):
    assert relatorios.faixa_etaria(idade) == faixa


@pytest.mark.parametrize(
    "texto,categoria",
    [
        ("Quero perder peso", "emagrecer"),
        ("Hipertrofia", "ganhar massa muscular"),
        ("Manter o peso atual", "manter peso"),
        ("Dormir melhor", "outros"),
        ("   ", None),
    ],
)
def test_categoria_objetivo(texto, categoria):
    assert relatorios.categoria_objetivo(texto) == categoria


def test_rotas_de_relatorio(client, profissional_token, secretaria_token):
    assert client.get("/api/dashboard/stats", headers=auth_header(secretaria_token)).status_code == 200
    assert client.get("/api/relatorios/agendamentos", headers=auth_header(secretaria_token)).status_code == 403

    h = auth_header(profissional_token)
    resp = client.get("/api/relatorios/clientes", params={"periodoMeses": 2}, headers=h)
    assert resp.status_code == 200
    assert resp.json()["data"]["totalClientes"] == 0

    resp = client.get("/api/relatorios/financeiro", params={"periodoMeses": 0}, headers=h)
    assert resp.status_code == 400
    assert resp.json()["code"] == "invalid_data"

    resp = client.get(
        "/api/relatorios/financeiro/periodos",
        params={"inicio": "2026-01-01", "fim": "2026-01-31", "agrupamento": "dia"},
        headers=h,
    )
    assert len(resp.json()["data"]) == 31


def test_transacoes_pela_api(client, profissional_token, secretaria_token):
    h = auth_header(profissional_token)
    corpo = {"tipo": "saida", "categoria": "Aluguel", "valor": 1200, "data": "2026-02-01"}
    assert client.post("/api/transacoes", json=corpo, headers=auth_header(secretaria_token)).status_code == 403

    resp = client.post("/api/transacoes", json=corpo, headers=h)
    assert resp.status_code == 201
    t = resp.json()["data"]
    assert t["tipo"] == "saida"
    assert t["valor"] == 1200.0

    assert client.post("/api/transacoes", json={**corpo, "valor": 0}, headers=h).status_code == 400
    assert client.post("/api/transacoes", json={**corpo, "tipo": "transferencia"}, headers=h).status_code == 422

    client.post("/api/transacoes", json={"tipo": "entrada", "categoria": "Vendas", "valor": 80}, headers=h)
    resp = client.get("/api/transacoes", params={"tipo": "saida"}, headers=h)
    assert resp.json()["pagination"]["total"] == 1

    resp = client.put(f"/api/transacoes/{t['id']}", json={"valor": 1300}, headers=h)
    assert resp.json()["data"]["valor"] == 1300.0
    assert client.delete(f"/api/transacoes/{t['id']}", headers=h).status_code == 200
    assert client.put(f"/api/transacoes/{t['id']}", json={"valor": 1}, headers=h).status_code == 404


def test_financeiro_periodos_intervalo_limitado():
    with pytest.raises(DadosInvalidos):
        relatorios.relatorio_financeiro_periodos(date(2000, 1, 1), date(2026, 1, 1), "ano")
    linhas = relatorios.relatorio_financeiro_periodos(date(2017, 1, 1), date(2026, 12, 31), "ano")
    assert len(linhas) == 10


def test_relatorio_operacionais(movimento, cliente, profissional, retorno):
    sala = cadastros.criar("locais-atendimento", {"nome": "Sala 1", "endereco": "Rua A, 10"})
    na_sala = agenda.criar_agendamento(
        {
            "clienteId": cliente["id"],
            "profissionalId": profissional["id"],
            "servicosIds": [retorno["id"]],
            "data": "2026-03-11",
            "horario": "14:00",
            "localId": sala["id"],
        }
    )
    agenda.marcar_realizado(na_sala["id"])

    r = relatorios.relatorio_operacionais(3, agora=AGORA)
    assert r["produtividade"] == [
        {
            "profissionalId": profissional["id"],
            "nome": "Dra. Ana",
            "total": 5,
            "realizados": 3,
            "cancelados": 1,
            "taxaRealizacao": 60.0,
            "receita": 800.0,
        }
    ]
    assert r["utilizacaoLocais"] == [
        {"localId": None, "nome": "Sem local", "total": 4, "realizados": 2, "taxaOcupacao": 50.0},
        {"localId": sala["id"], "nome": "Sala 1", "total": 1, "realizados": 1, "taxaOcupacao": 100.0},
    ]
    # cancelados não entram nos horários de pico
    assert r["horariosPico"] == [{"hora": "09:00", "quantidade": 3}, {"hora": "14:00", "quantidade": 1}]
    assert r["servicosDemandados"] == [
        {"nome": "Consulta Nutricional", "quantidade": 3},
        {"nome": "Retorno", "quantidade": 3},
    ]
    assert r["evolucaoMensal"] == [
        {"mes": "2026-01", "total": 1, "realizados": 1, "cancelados": 0},
        {"mes": "2026-02", "total": 2, "realizados": 1, "cancelados": 1},
        {"mes": "2026-03", "total": 2, "realizados": 1, "cancelados": 0},
    ]

    so_sala = relatorios.relatorio_operacionais(3, local_id=sala["id"], agora=AGORA)
    assert so_sala["produtividade"][0]["total"] == 1
    assert so_sala["produtividade"][0]["receita"] == 150.0
    assert so_sala["horariosPico"] == [{"hora": "14:00", "quantidade": 1}]


@pytest.fixture
def adesoes(cliente):
    outro = clientes.criar_cliente({"nome": "Paula Lima", "telefone": "11988880000", "dataNascimento": "1985-02-20"})
    emag = cadastros.criar(
        "programas", {"nome": "Emagrecimento", "descricao": "d", "categoria": "c", "duracao": 12, "preco": 900}
    )
    hiper = cadastros.criar(
        "programas", {"nome": "Hipertrofia", "descricao": "d", "categoria": "c", "duracao": 8, "preco": 600}
    )
    cadastros.criar("programas", {"nome": "Detox", "descricao": "d", "categoria": "c", "duracao": 4, "preco": 300})

    clientes.vincular_programa(cliente["id"], emag["id"], "2026-01-05")
    v = clientes.vincular_programa(outro["id"], hiper["id"], "2026-02-10")
    clientes.encerrar_programa(outro["id"], v["id"], date(2026, 3, 2))
    # fora da janela
    clientes.vincular_programa(outro["id"], emag["id"], "2025-10-01")
    return emag, hiper


def test_relatorio_programas(adesoes):
    emag, hiper = adesoes
    r = relatorios.relatorio_programas(3, agora=AGORA)
    assert [(p["nome"], p["total"], p["ativos"], p["inativos"], p["receita"]) for p in r["adesaoPorPrograma"]] == [
        ("Emagrecimento", 1, 1, 0, 900.0),
        ("Hipertrofia", 1, 0, 1, 600.0),
        ("Detox", 0, 0, 0, 0.0),
    ]
    assert r["adesoesPorMes"] == [
        {"mes": "2026-01", "quantidade": 1},
        {"mes": "2026-02", "quantidade": 1},
        {"mes": "2026-03", "quantidade": 0},
    ]
    # 12 semanas (84 dias) e 20 dias até o encerramento
    assert r["duracaoMedia"] == 52.0
    assert r["status"] == {"ativos": 1, "encerrados": 1}
    assert r["precoMedio"] == 750.0
    assert r["totalAdesoes"] == 2

    so_hiper = relatorios.relatorio_programas(3, programa_id=hiper["id"], agora=AGORA)
    assert [p["programaId"] for p in so_hiper["adesaoPorPrograma"]] == [hiper["id"]]
    assert so_hiper["totalAdesoes"] == 1
    assert so_hiper["duracaoMedia"] == 20.0


def test_preco_da_adesao_nao_muda_com_o_programa(adesoes):
    emag, _ = adesoes
    cadastros.atualizar("programas", emag["id"], {"preco": 1200})
    r = relatorios.relatorio_programas(3, programa_id=emag["id"], agora=AGORA)
    assert r["adesaoPorPrograma"][0]["receita"] == 900.0


def test_relatorio_clientes(movimento):
    clientes.criar_cliente(
        {"nome": "Maria", "telefone": "11900000001", "dataNascimento": "2010-01-01", "objetivos": "Ganho de peso"}
    )
    clientes.criar_cliente(
        {"nome": "João", "telefone": "11900000002", "dataNascimento": "1960-03-16", "objetivos": "Perder peso"}
    )
    clientes.criar_cliente({"nome": "Rui", "telefone": "11900000003", "dataNascimento": "1980-07-01"})
    inativo = clientes.criar_cliente(
        {"nome": "Ex-cliente", "telefone": "11900000004", "dataNascimento": "1995-01-01", "objetivos": "Hipertrofia"}
    )
    clientes.excluir_cliente(inativo["id"])

    r = relatorios.relatorio_clientes(3, agora=AGORA)
    assert r["totalClientes"] == 4
    # João ainda não fez aniversário em 2026-03-15: 65 anos
    assert r["faixasEtarias"] == [
        {"faixa": "<18", "quantidade": 1},
        {"faixa": "18-29", "quantidade": 0},
        {"faixa": "30-39", "quantidade": 1},
        {"faixa": "40-49", "quantidade": 1},
        {"faixa": "50-59", "quantidade": 0},
        {"faixa": "60+", "quantidade": 1},
    ]
    assert r["objetivosComuns"] == [
        {"objetivo": "emagrecer", "quantidade": 2},
        {"objetivo": "ganhar peso", "quantidade": 1},
    ]
    # só Carlos tem consulta realizada na janela
    assert r["clientesAtivos"] == 1
    assert r["clientesInativos"] == 3
    assert [m["mes"] for m in r["novosPorMes"]] == ["2026-01", "2026-02", "2026-03"]
