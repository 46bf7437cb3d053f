"""Autenticação, papéis e gestão de usuários."""
import pytest

from conftest import ADMIN_EMAIL, ADMIN_SENHA, auth_header
from nutriapp import auth_service
from nutriapp.auth_security import create_reset_token, decode_token_tipo, normaliza_papel, tem_permissao
from nutriapp.auth_models import Usuario
from nutriapp.db import db_session
from nutriapp.errors import Conflito, DadosInvalidos


def test_login_retorna_tokens_e_usuario(client):
    resp = client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "senha": ADMIN_SENHA})
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["data"]["user"]["role"] == "administrador"
    assert body["data"]["token"]
    assert body["data"]["refreshToken"]


def test_login_aceita_campo_password(client):
    resp = client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_SENHA})
    assert resp.status_code == 200


def test_login_invalido(client):
    resp = client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "senha": "errada"})
    assert resp.status_code == 401
    assert resp.json() == {"success": False, "message": "Email ou senha inválidos", "code": "unauthorized"}


def test_me_exige_token(client):
    assert client.get("/api/auth/me").status_code == 401
    resp = client.get("/api/auth/me", headers=auth_header("lixo"))
    assert resp.status_code == 401


def test_me(client, admin_token):
    resp = client.get("/api/auth/me", headers=auth_header(admin_token))
    assert resp.status_code == 200
    assert resp.json()["data"]["email"] == ADMIN_EMAIL


def test_register_somente_admin(client, admin_token, secretaria_token):
    novo = {"nome": "Paulo", "email": "Paulo@Clinica.com", "senha": "segredo1", "role": "profissional"}

    resp = client.post("/api/auth/register", json=novo, headers=auth_header(secretaria_token))
    assert resp.status_code == 403

    resp = client.post("/api/auth/register", json=novo, headers=auth_header(admin_token))
    assert resp.status_code == 201
    data = resp.json()["data"]
    assert data["email"] == "paulo@clinica.com"
    assert data["role"] == "profissional"

    resp = client.post("/api/auth/register", json=novo, headers=auth_header(admin_token))
    assert resp.status_code == 409


def test_criar_usuario_validacoes():
    with pytest.raises(DadosInvalidos):
        auth_service.criar_usuario("Curta", "curta@x.com", "123")
    auth_service.criar_usuario("Um", "um@x.com", "segredo1")
    with pytest.raises(Conflito):
        auth_service.criar_usuario("Dois", "UM@x.com", "segredo1")


def test_assistente_vira_secretaria():
    u = auth_service.criar_usuario("Assis", "assis@x.com", "segredo1", papel="assistente")
    assert u["role"] == "secretaria"


def test_refresh_e_logout(client):
    tokens = client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "senha": ADMIN_SENHA}).json()["data"]
    refresh = tokens["refreshToken"]

    resp = client.post("/api/auth/refresh", json={"refreshToken": refresh})
    assert resp.status_code == 200
    novo = resp.json()["data"]["token"]
    assert client.get("/api/auth/me", headers=auth_header(novo)).status_code == 200

    # access token não serve como refresh
    resp = client.post("/api/auth/refresh", json={"refreshToken": tokens["token"]})
    assert resp.status_code == 401

    assert client.post("/api/auth/logout", json={"refreshToken": refresh}).status_code == 200
    resp = client.post("/api/auth/refresh", json={"refreshToken": refresh})
    assert resp.status_code == 401


def test_logout_sem_corpo(client):
    assert client.post("/api/auth/logout").status_code == 200


def test_trocar_senha(client, secretaria_token):
    h = auth_header(secretaria_token)
    resp = client.post("/api/auth/change-password", json={"senhaAtual": "errada", "novaSenha": "nova123"}, headers=h)
    assert resp.status_code == 400

    resp = client.post("/api/auth/change-password", json={"senhaAtual": "segredo1", "novaSenha": "nova123"}, headers=h)
    assert resp.status_code == 200
    resp = client.post("/api/auth/login", json={"email": "bia@clinica.com", "senha": "nova123"})
    assert resp.status_code == 200


def test_reset_de_senha(client, secretaria):
    resp = client.post("/api/auth/forgot-password", json={"email": "ninguem@x.com"})
    assert resp.status_code == 200

    with db_session() as s:
        u = s.get(Usuario, secretaria["id"])
        token = create_reset_token(u.id, u.senha_hash)

    resp = client.post("/api/auth/reset-password", json={"token": token, "novaSenha": "trocada1"})
    assert resp.status_code == 200
    assert client.post("/api/auth/login", json={"email": "bia@clinica.com", "senha": "trocada1"}).status_code == 200

    # o token deixa de valer depois que a senha muda
    resp = client.post("/api/auth/reset-password", json={"token": token, "novaSenha": "outra123"})
    assert resp.status_code == 400


def test_forgot_password_enfileira_notificacao(client, secretaria, admin_token):
    client.post("/api/auth/forgot-password", json={"email": "BIA@clinica.com"})
    resp = client.get("/api/notificacoes/pendentes", headers=auth_header(admin_token))
    assert resp.status_code == 200
    pendentes = resp.json()["data"]
    assert [n["tipo"] for n in pendentes] == ["RESET_SENHA"]
    assert "trocar-senha?token=" in pendentes[0]["mensagem"]


def test_token_de_reset_tem_tipo_proprio():
    token = create_reset_token("u1", "x" * 60)
    assert decode_token_tipo(token, "reset")["sub"] == "u1"
    assert decode_token_tipo(token, "access") is None


def test_atualizar_perfil(client, profissional_token):
    h = auth_header(profissional_token)
    resp = client.put(
        "/api/auth/profile",
        json={
            "nome": "Dra. Ana Lima",
            "configuracaoAgenda": {"disponibilidade": {"segunda": [{"inicio": "08:00", "fim": "12:00"}]}},
        },
        headers=h,
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["nome"] == "Dra. Ana Lima"

    me = client.get("/api/auth/me", headers=h).json()["data"]
    agenda = client.get(f"/api/usuarios/{me['id']}/agenda", headers=h).json()["data"]
    assert agenda["disponibilidade"]["segunda"] == [{"inicio": "08:00", "fim": "12:00"}]


def test_gestao_de_usuarios(client, admin_token, secretaria, secretaria_token):
    h = auth_header(admin_token)
    assert client.get(f"/api/usuarios/{secretaria['id']}", headers=auth_header(secretaria_token)).status_code == 403

    resp = client.put(f"/api/usuarios/{secretaria['id']}", json={"role": "profissional"}, headers=h)
    assert resp.status_code == 200
    assert resp.json()["data"]["role"] == "profissional"

    resp = client.patch(f"/api/usuarios/{secretaria['id']}/toggle-status", headers=h)
    assert resp.json()["data"]["ativo"] is False
    # usuário desativado perde o acesso
    assert client.get("/api/auth/me", headers=auth_header(secretaria_token)).status_code == 401

    resp = client.get("/api/usuarios", params={"ativo": True}, headers=h)
    assert [u["email"] for u in resp.json()["data"]] == [ADMIN_EMAIL]


def test_admin_nao_desativa_a_si_mesmo(client, admin_token):
    h = auth_header(admin_token)
    me = client.get("/api/auth/me", headers=h).json()["data"]
    resp = client.patch(f"/api/usuarios/{me['id']}/toggle-status", headers=h)
    assert resp.status_code == 400
    assert resp.json()["code"] == "invalid_data"


def test_admin_padrao_idempotente():
    assert auth_service.garantir_admin_padrao() == auth_service.garantir_admin_padrao()


@pytest.mark.parametrize(
    "papel,requerido,esperado",
    [
        ("administrador", "profissional", True),
        ("profissional", "profissional", True),
        ("secretaria", "profissional", False),
        ("assistente", "secretaria", True),
        ("profissional", ("administrador", "secretaria"), True),
        ("desconhecido", "secretaria", False),
        (None, "secretaria", False),
        ("administrador", "inexistente", False),
    ],
)
def test_tem_permissao(papel, requerido, esperado):
    assert tem_permissao(papel, requerido) is esperado


def test_normaliza_papel():
    assert normaliza_papel(" Profissional ") == "profissional"
    assert normaliza_papel("assistente") == "secretaria"
    assert normaliza_papel("root") is None
