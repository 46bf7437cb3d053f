"""Clientes, famílias, condições de saúde e programas."""
from datetime import date, timedelta

import pytest

from conftest import auth_header
from nutriapp import cadastros, clientes
from nutriapp.errors import DadosInvalidos, NaoEncontrado


def _novo_cliente(nome, telefone="11988887777", nascimento="1985-01-20"):
    return clientes.criar_cliente({"nome": nome, "telefone": telefone, "dataNascimento": nascimento})


def test_cadastro_e_consulta_pela_api(client, secretaria_token):
    h = auth_header(secretaria_token)
    resp = client.post(
        "/api/clientes",
        json={"nome": "Maria Silva", "telefone": "11912345678", "dataNascimento": "1992-03-15", "genero": "feminino"},
        headers=h,
    )
    assert resp.status_code == 201
    body = resp.json()
    assert body["message"] == "Cliente cadastrado com sucesso"
    cliente = body["data"]
    assert cliente["ativo"] is True
    assert cliente["idade"] >= 33

    resp = client.get(f"/api/clientes/{cliente['id']}", headers=h)
    assert resp.json()["data"]["nome"] == "Maria Silva"

    resp = client.put(f"/api/clientes/{cliente['id']}", json={"objetivos": "Ganhar massa muscular"}, headers=h)
    assert resp.json()["data"]["objetivos"] == "Ganhar massa muscular"
    assert resp.json()["data"]["telefone"] == "11912345678"


def test_cliente_exige_dados_validos():
    with pytest.raises(DadosInvalidos):
        clientes.criar_cliente({"nome": "Sem nascimento", "telefone": "1199"})
    with pytest.raises(DadosInvalidos):
        futuro = (date.today() + timedelta(days=1)).isoformat()
        clientes.criar_cliente({"nome": "Futuro", "telefone": "1199", "dataNascimento": futuro})
    with pytest.raises(DadosInvalidos):
        clientes.criar_cliente({"nome": "  ", "telefone": "1199", "dataNascimento": "2000-01-01"})


def test_cliente_sem_campos_obrigatorios_na_api(client, secretaria_token):
    resp = client.post("/api/clientes", json={"nome": "Joana"}, headers=auth_header(secretaria_token))
    assert resp.status_code == 422
    assert resp.json()["success"] is False


def test_exclusao_logica(client, secretaria_token, cliente):
    h = auth_header(secretaria_token)
    resp = client.delete(f"/api/clientes/{cliente['id']}", headers=h)
    assert resp.json()["message"] == "Cliente desativado com sucesso"

    # o registro continua consultável
    assert client.get(f"/api/clientes/{cliente['id']}", headers=h).json()["data"]["ativo"] is False
    resp = client.get("/api/clientes", params={"ativo": True}, headers=h)
    assert resp.json()["data"] == []
    assert resp.json()["pagination"]["total"] == 0


def test_filtros_de_listagem(cliente):
    _novo_cliente("Beatriz Costa", telefone="21977776666")
    itens, pagination = clientes.listar_clientes(nome="carlos")
    assert [c["nome"] for c in itens] == ["Carlos Souza"]
    itens, _ = clientes.listar_clientes(telefone="2197")
    assert [c["nome"] for c in itens] == ["Beatriz Costa"]
    assert pagination["total"] == 1


def test_cliente_inexistente(client, secretaria_token):
    resp = client.get("/api/clientes/nao-existe", headers=auth_header(secretaria_token))
    assert resp.status_code == 404
    assert resp.json()["message"] == "Cliente não encontrado"


def test_vinculo_familiar(client, secretaria_token, cliente):
    h = auth_header(secretaria_token)
    esposa = _novo_cliente("Ana Souza")
    filho = _novo_cliente("Pedro Souza", nascimento="2015-07-01")

    resp = client.post(f"/api/clientes/{cliente['id']}/familias", json={"familiarId": esposa["id"]}, headers=h)
    assert resp.status_code == 201
    familia = resp.json()["data"]
    assert familia["nome"] == "Família Carlos Souza"
    assert [m["nome"] for m in familia["membros"]] == ["Ana Souza", "Carlos Souza"]

    # segundo vínculo entra na mesma família
    resp = client.post(f"/api/clientes/{cliente['id']}/familias", json={"familiarId": filho["id"]}, headers=h)
    assert resp.json()["data"]["id"] == familia["id"]

    familiares = client.get(f"/api/clientes/{esposa['id']}/familias", headers=h).json()["data"]
    assert [f["nome"] for f in familiares] == ["Carlos Souza", "Pedro Souza"]
    assert familiares[0]["familiaNome"] == "Família Carlos Souza"

    assert client.delete(f"/api/clientes/{cliente['id']}/familias/{filho['id']}", headers=h).status_code == 200
    familiares = client.get(f"/api/clientes/{cliente['id']}/familias", headers=h).json()["data"]
    assert [f["nome"] for f in familiares] == ["Ana Souza"]


def test_vinculo_consigo_mesmo(cliente):
    with pytest.raises(DadosInvalidos):
        clientes.vincular_familiar(cliente["id"], cliente["id"])


def test_crud_de_familias(client, secretaria_token, cliente):
    h = auth_header(secretaria_token)
    outro = _novo_cliente("Lucas Lima")

    resp = client.post("/api/familias", json={"nome": "Família Lima", "membrosIds": [outro["id"]]}, headers=h)
    assert resp.status_code == 201
    familia = resp.json()["data"]
    assert [m["nome"] for m in familia["membros"]] == ["Lucas Lima"]

    resp = client.post(f"/api/familias/{familia['id']}/membros", json={"clienteId": cliente["id"]}, headers=h)
    assert resp.status_code == 201
    assert len(resp.json()["data"]["membros"]) == 2

    resp = client.delete(f"/api/familias/{familia['id']}/membros/{outro['id']}", headers=h)
    assert [m["nome"] for m in resp.json()["data"]["membros"]] == ["Carlos Souza"]

    resp = client.put(f"/api/familias/{familia['id']}", json={"descricao": "Casa 2"}, headers=h)
    assert resp.json()["data"]["descricao"] == "Casa 2"

    assert client.delete(f"/api/familias/{familia['id']}", headers=h).status_code == 200
    assert client.get(f"/api/familias/{familia['id']}", headers=h).status_code == 404


def test_condicoes_de_saude(client, profissional_token, secretaria_token, cliente):
    doenca = cadastros.criar("doencas", {"nome": "Hipertensão", "resumo": "Pressão alta"})
    alergia = cadastros.criar("alergias", {"nome": "Lactose", "severidade": "moderada"})
    url = f"/api/clientes/{cliente['id']}/condicoes"

    assert client.get(url, headers=auth_header(secretaria_token)).status_code == 403

    h = auth_header(profissional_token)
    resp = client.put(url, json={"doencasIds": [doenca["id"]], "alergiasIds": [alergia["id"], alergia["id"]]}, headers=h)
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert [d["nome"] for d in data["doencas"]] == ["Hipertensão"]
    assert data["alergias"] == [{"id": alergia["id"], "nome": "Lactose", "severidade": "moderada"}]

    # substitui o conjunto inteiro
    resp = client.put(url, json={"doencasIds": [], "alergiasIds": []}, headers=h)
    assert resp.json()["data"] == {"doencas": [], "alergias": []}


def test_condicao_inexistente(cliente):
    with pytest.raises(DadosInvalidos):
        clientes.definir_condicoes(cliente["id"], ["nao-existe"], [])


def test_programas_do_cliente(client, profissional_token, cliente):
    prog = cadastros.criar(
        "programas",
        {"nome": "Emagrecimento", "descricao": "12 semanas", "categoria": "emagrecimento", "duracao": 12, "preco": 900},
    )
    h = auth_header(profissional_token)
    resp = client.post(
        f"/api/clientes/{cliente['id']}/programas",
        json={"programaId": prog["id"], "dataInicio": "2026-01-05"},
        headers=h,
    )
    assert resp.status_code == 201
    vinculo = resp.json()["data"]
    assert vinculo["dataFim"] == "2026-03-30"
    assert vinculo["preco"] == 900

    # o preço do vínculo não acompanha reajustes do programa
    cadastros.atualizar("programas", prog["id"], {"preco": 1200})
    lista = client.get(f"/api/clientes/{cliente['id']}/programas", headers=h).json()["data"]
    assert lista[0]["preco"] == 900

    resp = client.patch(f"/api/clientes/{cliente['id']}/programas/{vinculo['id']}/encerrar", headers=h)
    assert resp.json()["data"]["ativo"] is False
    assert resp.json()["data"]["dataFim"] == date.today().isoformat()


def test_programa_inativo_nao_vincula(cliente):
    prog = cadastros.criar("programas", {"nome": "P", "descricao": "d", "categoria": "c", "duracao": 4})
    cadastros.alternar_status("programas", prog["id"])
    with pytest.raises(DadosInvalidos):
        clientes.vincular_programa(cliente["id"], prog["id"])
    with pytest.raises(NaoEncontrado):
        clientes.vincular_programa(cliente["id"], "nao-existe")
