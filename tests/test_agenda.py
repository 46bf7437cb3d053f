"""Agenda: disponibilidade, conflitos, remarcação, cancelamento e confirmação pública."""
from datetime import datetime, time, timedelta

import pytest

from conftest import auth_header, proxima_segunda
from nutriapp import agenda, auth_service, cadastros, notificacoes
from nutriapp.db import db_session
from nutriapp.errors import Conflito, DadosInvalidos
from nutriapp.models import Agendamento

MANHA = {"disponibilidade": {"segunda": [{"inicio": "08:00", "fim": "12:00"}]}}


@pytest.fixture
def segunda(profissional):
    agenda.definir_disponibilidade(profissional["id"], MANHA)
    return proxima_segunda()


def _agendar(cliente, profissional, servicos, dia, horario, **extra):
    dados = {
        "clienteId": cliente["id"],
        "profissionalId": profissional["id"],
        "servicosIds": [s["id"] for s in servicos],
        "data": dia.isoformat(),
        "horario": horario,
        **extra,
    }
    return agenda.criar_agendamento(dados)


def _token(agendamento_id):
    with db_session() as s:
        return s.get(Agendamento, agendamento_id).token_confirmacao


def test_agendar_pela_api(client, secretaria_token, cliente, profissional, servico, segunda):
    resp = client.post(
        "/api/agendamentos",
        json={
            "clienteId": cliente["id"],
            "profissionalId": profissional["id"],
            "servicosIds": [servico["id"]],
            "data": segunda.isoformat(),
            "horario": "09:00",
        },
        headers=auth_header(secretaria_token),
    )
    assert resp.status_code == 201
    a = resp.json()["data"]
    assert a["status"] == "agendado"
    assert a["hora"] == "09:00"
    assert a["duracaoMinutos"] == 60
    assert a["valor"] == 250.0
    assert a["servicosNomes"] == ["Consulta Nutricional"]
    assert a["confirmado"] is False

    pendentes = notificacoes.notificacoes_pendentes_flat()
    assert [n["tipo"] for n in pendentes] == ["CONFIRMACAO"]
    assert f"confirmar-consulta?id={a['id']}&token={_token(a['id'])}" in pendentes[0]["mensagem"]
    assert pendentes[0]["destinatario"] == "carlos@email.com"


def test_duracao_soma_os_servicos(cliente, profissional, servico, retorno, segunda):
    a = _agendar(cliente, profissional, [servico, retorno], segunda, "08:00")
    assert a["duracaoMinutos"] == 90
    assert a["valor"] == 400.0


def test_sobreposicao_gera_conflito(client, secretaria_token, cliente, profissional, servico, segunda):
    _agendar(cliente, profissional, [servico], segunda, "09:00")
    resp = client.post(
        "/api/agendamentos",
        json={
            "clienteId": cliente["id"],
            "profissionalId": profissional["id"],
            "servicosIds": [servico["id"]],
            "data": segunda.isoformat(),
            "horario": "09:30",
        },
        headers=auth_header(secretaria_token),
    )
    assert resp.status_code == 409
    assert resp.json()["code"] == "conflict"

    # encostado no fim do anterior não conflita
    assert _agendar(cliente, profissional, [servico], segunda, "10:00")["hora"] == "10:00"


def test_fora_da_disponibilidade(cliente, profissional, servico, segunda):
    with pytest.raises(DadosInvalidos):
        _agendar(cliente, profissional, [servico], segunda, "11:30")
    with pytest.raises(DadosInvalidos):
        _agendar(cliente, profissional, [servico], segunda + timedelta(days=1), "09:00")


def test_sem_disponibilidade_configurada_nao_restringe(cliente, servico):
    prof = auth_service.criar_usuario("Dr. Livre", "livre@clinica.com", "segredo1", papel="profissional")
    a = _agendar(cliente, prof, [servico], proxima_segunda(), "19:00")
    assert a["hora"] == "19:00"


def test_profissional_e_servicos_validos(cliente, secretaria, profissional, servico, segunda):
    with pytest.raises(DadosInvalidos):
        _agendar(cliente, secretaria, [servico], segunda, "09:00")
    with pytest.raises(DadosInvalidos):
        _agendar(cliente, profissional, [], segunda, "09:00")
    cadastros.alternar_status("servicos", servico["id"])
    with pytest.raises(DadosInvalidos):
        _agendar(cliente, profissional, [servico], segunda, "09:00")


def test_preco_de_convenio(cliente, profissional, segunda):
    unimed = cadastros.criar("convenios", {"nome": "Unimed"})
    amil = cadastros.criar("convenios", {"nome": "Amil"})
    sv = cadastros.criar(
        "servicos",
        {"nome": "Consulta", "tempoMinutos": 60, "valorParticular": 250, "valoresConvenios": {unimed["id"]: 180}},
    )
    assert _agendar(cliente, profissional, [sv], segunda, "08:00", convenioId=unimed["id"])["valor"] == 180.0
    assert _agendar(cliente, profissional, [sv], segunda, "09:00", convenioId=amil["id"])["valor"] == 250.0


def test_cancelar_libera_o_horario(client, secretaria_token, cliente, profissional, servico, segunda):
    a = _agendar(cliente, profissional, [servico], segunda, "09:00")
    h = auth_header(secretaria_token)

    resp = client.patch(f"/api/agendamentos/{a['id']}/cancelar", json={"motivo": "  "}, headers=h)
    assert resp.status_code == 400

    resp = client.patch(f"/api/agendamentos/{a['id']}/cancelar", json={"motivo": "Viagem"}, headers=h)
    assert resp.status_code == 200
    cancelado = resp.json()["data"]
    assert cancelado["status"] == "cancelado"
    assert cancelado["motivoCancelamento"] == "Viagem"
    assert cancelado["observacoes"] == "Cancelado: Viagem"

    # não dá para cancelar de novo
    resp = client.patch(f"/api/agendamentos/{a['id']}/cancelar", json={"motivo": "Outro"}, headers=h)
    assert resp.status_code == 400

    assert _agendar(cliente, profissional, [servico], segunda, "09:00")["status"] == "agendado"
    tipos = [n["tipo"] for n in notificacoes.notificacoes_pendentes_flat()]
    assert "CANCELAMENTO" in tipos


def test_reagendar(client, secretaria_token, cliente, profissional, servico, segunda):
    a = _agendar(cliente, profissional, [servico], segunda, "09:00")
    outro = _agendar(cliente, profissional, [servico], segunda, "11:00")
    h = auth_header(secretaria_token)

    resp = client.patch(
        f"/api/agendamentos/{a['id']}/reagendar",
        json={"novaData": segunda.isoformat(), "novoHorario": "10:30"},
        headers=h,
    )
    assert resp.status_code == 409

    resp = client.patch(
        f"/api/agendamentos/{a['id']}/reagendar",
        json={"novaData": segunda.isoformat(), "novoHorario": "08:00", "motivo": "Pedido do cliente"},
        headers=h,
    )
    assert resp.status_code == 200
    novo = resp.json()["data"]
    assert novo["status"] == "remarcado"
    assert novo["hora"] == "08:00"
    assert novo["duracaoMinutos"] == 60

    historico = client.get(f"/api/agendamentos/{a['id']}/historico", headers=h).json()["data"]
    assert [e["acao"] for e in historico] == ["criado", "reagendado"]
    assert historico[1]["detalhe"].endswith("(Pedido do cliente)")

    # remarcado continua ocupando a agenda
    with pytest.raises(Conflito):
        _agendar(cliente, profissional, [servico], segunda, "08:30")
    assert outro["status"] == "agendado"


def test_realizado_nao_pode_mais_mudar(client, secretaria_token, cliente, profissional, servico, segunda):
    a = _agendar(cliente, profissional, [servico], segunda, "09:00")
    h = auth_header(secretaria_token)
    resp = client.patch(f"/api/agendamentos/{a['id']}/realizado", headers=h)
    assert resp.json()["data"]["status"] == "realizado"

    resp = client.put(f"/api/agendamentos/{a['id']}", json={"observacoes": "x"}, headers=h)
    assert resp.status_code == 400


def test_atualizar_servicos_recalcula_o_fim(cliente, profissional, servico, retorno, segunda):
    a = _agendar(cliente, profissional, [retorno], segunda, "09:00")
    atualizado = agenda.atualizar_agendamento(a["id"], {"servicosIds": [servico["id"], retorno["id"]], "observacoes": "Trazer exames"})
    assert atualizado["duracaoMinutos"] == 90
    assert atualizado["observacoes"] == "Trazer exames"

    with pytest.raises(DadosInvalidos):
        # 09:00 + 4h passa do fim da faixa
        agenda.atualizar_agendamento(a["id"], {"servicosIds": [servico["id"]] * 4})

    _agendar(cliente, profissional, [retorno], segunda, "11:00")
    with pytest.raises(Conflito):
        agenda.atualizar_agendamento(a["id"], {"servicosIds": [servico["id"]] * 3})


def test_listagem_e_agenda_do_dia(client, secretaria_token, cliente, profissional, servico, segunda):
    _agendar(cliente, profissional, [servico], segunda, "09:00")
    _agendar(cliente, profissional, [servico], segunda, "10:00")
    h = auth_header(secretaria_token)

    resp = client.get(
        "/api/agendamentos",
        params={"data": segunda.isoformat(), "clienteId": cliente["id"], "limit": 1},
        headers=h,
    )
    body = resp.json()
    assert body["pagination"]["total"] == 2
    assert [a["hora"] for a in body["data"]] == ["10:00"]

    assert [a["hora"] for a in agenda.agendamentos_hoje(segunda)] == ["09:00", "10:00"]

    resp = client.get("/api/agendamentos", params={"status": "inexistente"}, headers=h)
    assert resp.status_code == 400


def test_horarios_disponiveis(cliente, profissional, servico, segunda):
    _agendar(cliente, profissional, [servico], segunda, "09:00")
    antes = datetime.combine(segunda - timedelta(days=1), time(12, 0))

    livres = agenda.horarios_disponiveis(profissional["id"], segunda, duracao=60, agora=antes)
    assert livres == ["08:00", "10:00", "10:30", "11:00"]

    livres = agenda.horarios_disponiveis(profissional["id"], segunda, duracao=60, agora=datetime.combine(segunda, time(10, 15)))
    assert livres == ["10:30", "11:00"]

    assert agenda.horarios_disponiveis(profissional["id"], segunda + timedelta(days=1), agora=antes) == []


def test_horarios_disponiveis_pela_api(client, secretaria_token, profissional, segunda):
    resp = client.get(
        "/api/agendamentos/horarios-disponiveis",
        params={"profissionalId": profissional["id"], "data": segunda.isoformat()},
        headers=auth_header(secretaria_token),
    )
    assert resp.status_code == 200
    assert resp.json()["data"][:3] == ["08:00", "08:30", "09:00"]
    assert resp.json()["data"][-1] == "11:30"


def test_disponibilidade_invalida(profissional):
    with pytest.raises(DadosInvalidos):
        agenda.definir_disponibilidade(profissional["id"], {"disponibilidade": {"feriado": []}})
    with pytest.raises(DadosInvalidos):
        agenda.definir_disponibilidade(
            profissional["id"], {"disponibilidade": {"terca": [{"inicio": "14:00", "fim": "13:00"}]}}
        )
    with pytest.raises(DadosInvalidos):
        agenda.definir_disponibilidade(
            profissional["id"],
            {"disponibilidade": {"terca": [{"inicio": "08:00", "fim": "12:00"}, {"inicio": "11:00", "fim": "15:00"}]}},
        )


def test_somente_dono_ou_admin_altera_a_agenda(client, secretaria_token, admin_token, profissional):
    url = f"/api/usuarios/{profissional['id']}/agenda"
    corpo = {"disponibilidade": {"quarta": [{"inicio": "13:00", "fim": "18:00"}]}}
    assert client.put(url, json=corpo, headers=auth_header(secretaria_token)).status_code == 403

    resp = client.put(url, json=corpo, headers=auth_header(admin_token))
    assert resp.status_code == 200
    assert resp.json()["data"]["disponibilidade"]["quarta"] == [{"inicio": "13:00", "fim": "18:00"}]
    assert resp.json()["data"]["disponibilidade"]["segunda"] == []


def test_confirmacao_publica(client, cliente, profissional, servico, segunda):
    a = _agendar(cliente, profissional, [servico], segunda, "09:00")
    token = _token(a["id"])

    resp = client.get(f"/api/public/agendamentos/{a['id']}", params={"token": "errado"})
    assert resp.status_code == 403

    resp = client.get(f"/api/public/agendamentos/{a['id']}", params={"token": token})
    assert resp.status_code == 200
    assert resp.json()["data"]["profissionalNome"] == "Dra. Ana"

    resp = client.post(f"/api/public/agendamentos/{a['id']}/confirmar", json={"token": token})
    assert resp.status_code == 200
    assert resp.json()["data"]["confirmado"] is True

    # confirmar de novo não duplica a anotação
    client.post(f"/api/public/agendamentos/{a['id']}/confirmar", json={"token": token})
    assert agenda.obter_agendamento(a["id"])["observacoes"] == "Confirmado pelo cliente"


def test_cancelamento_publico(client, cliente, profissional, servico, segunda):
    a = _agendar(cliente, profissional, [servico], segunda, "09:00", observacoes="Primeira consulta")
    token = _token(a["id"])

    resp = client.post(f"/api/public/agendamentos/{a['id']}/cancelar", json={"token": token})
    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "cancelado"

    detalhe = agenda.obter_agendamento(a["id"])
    assert detalhe["observacoes"] == "Primeira consulta - Cancelado pelo cliente"
    assert detalhe["motivoCancelamento"] == "Cancelado pelo cliente"

    resp = client.post(f"/api/public/agendamentos/{a['id']}/confirmar", json={"token": token})
    assert resp.status_code == 400


@pytest.mark.parametrize("token", ["ção", "x" * 32, " "])
def test_token_publico_malformado(client, cliente, profissional, servico, segunda, token):
    a = _agendar(cliente, profissional, [servico], segunda, "09:00")
    resp = client.get(f"/api/public/agendamentos/{a['id']}", params={"token": token})
    assert resp.status_code == 403
    assert resp.json()["code"] == "forbidden"
    resp = client.post(f"/api/public/agendamentos/{a['id']}/confirmar", json={"token": token})
    assert resp.status_code == 403


def test_disponibilidade_ligada_a_local(cliente, profissional, servico):
    sala = cadastros.criar("locais-atendimento", {"nome": "Sala 1", "endereco": "Rua A, 10"})
    outra = cadastros.criar("locais-atendimento", {"nome": "Sala 2", "endereco": "Rua B, 20"})
    agenda.definir_disponibilidade(profissional["id"], {"localId": sala["id"], **MANHA})
    dia = proxima_segunda()

    a = _agendar(cliente, profissional, [servico], dia, "08:00", localId=sala["id"])
    assert a["localId"] == sala["id"]
    with pytest.raises(DadosInvalidos):
        _agendar(cliente, profissional, [servico], dia, "10:00", localId=outra["id"])

    # atendimento online, sem local: vale a faixa do dia
    online = _agendar(cliente, profissional, [servico], dia, "10:00", tipo="online")
    assert online["localId"] is None
    with pytest.raises(DadosInvalidos):
        _agendar(cliente, profissional, [servico], dia, "13:00", tipo="online")
    livres = agenda.horarios_disponiveis(profissional["id"], dia, duracao=60, agora=datetime.combine(dia - timedelta(days=1), time(12, 0)))
    assert livres == ["09:00", "11:00"]
