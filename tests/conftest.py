import os

# banco em memória e bcrypt rápido; precisa vir antes de importar o pacote
os.environ["NUTRIAPP_DATABASE_URL"] = "sqlite://"
os.environ["NUTRIAPP_BCRYPT_ROUNDS"] = "4"
os.environ.pop("NUTRIAPP_WEBHOOK_URL", None)

from datetime import date, timedelta

import pytest
from fastapi.testclient import TestClient

from nutriapp import auth_service, cadastros, clientes
from nutriapp.api_main import app
from nutriapp.db import reset_db

ADMIN_EMAIL = "admin@admin.com"
ADMIN_SENHA = "123Mudar"


def auth_header(token):
    return {"Authorization": f"Bearer {token}"}


def proxima_segunda(a_partir=None):
    d = (a_partir or date.today()) + timedelta(days=1)
    while d.weekday() != 0:
        d += timedelta(days=1)
    return d


@pytest.fixture(autouse=True)
def banco_limpo():
    reset_db()
    auth_service.garantir_admin_padrao()
    yield


@pytest.fixture
def client():
    # sem `with`: o lifespan não roda e o seed fica a cargo de cada teste
    return TestClient(app)


def _login(client, email, senha):
    resp = client.post("/api/auth/login", json={"email": email, "senha": senha})
    assert resp.status_code == 200, resp.text
    return resp.json()["data"]["token"]


@pytest.fixture
def admin_token(client):
    return _login(client, ADMIN_EMAIL, ADMIN_SENHA)


@pytest.fixture
def profissional():
    return auth_service.criar_usuario("Dra. Ana", "ana@clinica.com", "segredo1", papel="profissional")


@pytest.fixture
def profissional_token(client, profissional):
    return _login(client, "ana@clinica.com", "segredo1")


@pytest.fixture
def secretaria():
    return auth_service.criar_usuario("Bia", "bia@clinica.com", "segredo1", papel="secretaria")


@pytest.fixture
def secretaria_token(client, secretaria):
    return _login(client, "bia@clinica.com", "segredo1")


@pytest.fixture
def cliente():
    return clientes.criar_cliente(
        {
            "nome": "Carlos Souza",
            "telefone": "11999990000",
            "email": "carlos@email.com",
            "dataNascimento": "1990-05-10",
            "genero": "masculino",
            "objetivos": "Emagrecer 5 kg",
        }
    )


@pytest.fixture
def servico():
    return cadastros.criar(
        "servicos",
        {"nome": "Consulta Nutricional", "tempoMinutos": 60, "valorParticular": 250.0},
    )


@pytest.fixture
def retorno():
    return cadastros.criar(
        "servicos",
        {"nome": "Retorno", "tempoMinutos": 30, "valorParticular": 150.0},
    )


@pytest.fixture
def arroz():
    return cadastros.criar(
        "alimentos",
        {
            "nome": "Arroz branco cozido",
            "categoria": "Cereais",
            "valorEnergetico": 128,
            "proteinas": 2.5,
            "carboidratos": 28.1,
            "gorduras": 0.2,
            "fibras": 1.6,
            "porcaoReferencia": 100,
        },
    )


@pytest.fixture
def frango():
    return cadastros.criar(
        "alimentos",
        {
            "nome": "Peito de frango grelhado",
            "categoria": "Carnes",
            "valorEnergetico": 159,
            "proteinas": 32.0,
            "carboidratos": 0,
            "gorduras": 2.5,
            "fibras": 0,
            "porcaoReferencia": 100,
        },
    )
