from datetime import timedelta
from unittest.mock import MagicMock

import pytest
import requests

from conftest import auth_header, proxima_segunda
from nutriapp import agenda, notificacoes
from nutriapp.config import get_settings


@pytest.fixture
def agendamento(cliente, profissional, servico):
    return agenda.criar_agendamento(
        {
            "clienteId": cliente["id"],
            "profissionalId": profissional["id"],
            "servicosIds": [servico["id"]],
            "data": proxima_segunda().isoformat(),
            "horario": "09:00",
        }
    )


@pytest.fixture
def webhook(monkeypatch):
    monkeypatch.setenv("NUTRIAPP_WEBHOOK_URL", "http://hooks.local/notificacoes")
    get_settings.cache_clear()
    yield "http://hooks.local/notificacoes"
    monkeypatch.delenv("NUTRIAPP_WEBHOOK_URL")
    get_settings.cache_clear()


def _sessao(status_code=200):
    sessao = MagicMock(spec=requests.Session)
    sessao.post.return_value = MagicMock(status_code=status_code)
    return sessao


def test_lembretes_sao_idempotentes(agendamento):
    dia = proxima_segunda()
    assert notificacoes.gerar_lembretes(dia) == 1
    assert notificacoes.gerar_lembretes(dia) == 0
    assert notificacoes.gerar_lembretes(dia + timedelta(days=1)) == 0

    lembretes = [n for n in notificacoes.notificacoes_pendentes_flat() if n["tipo"] == "LEMBRETE"]
    assert len(lembretes) == 1
    assert lembretes[0]["agendamentoId"] == agendamento["id"]
    assert "às 09:00" in lembretes[0]["mensagem"]


def test_cancelado_nao_recebe_lembrete(agendamento):
    agenda.cancelar_agendamento(agendamento["id"], "Imprevisto")
    assert notificacoes.gerar_lembretes(proxima_segunda()) == 0


def test_sem_webhook_so_registra(agendamento):
    sessao = _sessao()
    assert notificacoes.despachar(session=sessao) == 0
    sessao.post.assert_not_called()
    assert len(notificacoes.notificacoes_pendentes_flat()) == 1


def test_despachar_para_webhook(agendamento, webhook):
    sessao = _sessao(204)
    assert notificacoes.despachar(session=sessao) == 1

    url = sessao.post.call_args.args[0]
    kwargs = sessao.post.call_args.kwargs
    assert url == webhook
    assert kwargs["json"]["tipo"] == "CONFIRMACAO"
    assert kwargs["timeout"] == notificacoes.WEBHOOK_TIMEOUT
    assert notificacoes.notificacoes_pendentes_flat() == []


def test_falha_mantem_pendente(agendamento, webhook):
    assert notificacoes.despachar(session=_sessao(500)) == 0

    sessao = _sessao()
    sessao.post.side_effect = requests.ConnectionError("fora do ar")
    assert notificacoes.despachar(session=sessao) == 0

    pendentes = notificacoes.notificacoes_pendentes_flat()
    assert len(pendentes) == 1
    assert pendentes[0]["tentativas"] == 2


def test_marcar_enviada_pela_api(client, admin_token, secretaria_token, agendamento):
    pendente = notificacoes.notificacoes_pendentes_flat()[0]
    url = f"/api/notificacoes/{pendente['id']}/enviada"

    assert client.patch(url, headers=auth_header(secretaria_token)).status_code == 403
    resp = client.patch(url, headers=auth_header(admin_token))
    assert resp.status_code == 200
    assert resp.json()["data"]["enviadaEm"] is not None
    assert client.get("/api/notificacoes/pendentes", headers=auth_header(admin_token)).json()["data"] == []

    assert client.patch("/api/notificacoes/9999/enviada", headers=auth_header(admin_token)).status_code == 404
