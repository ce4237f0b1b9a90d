import logging
from datetime import datetime, timezone
from unittest.mock import patch

import httpx
import pytest
from bson import ObjectId

from backend.api import app as api_module
from backend.api.services.address_service import AddressService

AUTH = ("admin", "admin123")
logger = logging.getLogger("test_users_api")

PAYLOAD = {
    "name": "Teste Cadastro",
    "surname": "Silva",
    "cpf": "097.024.144-58",
    "email": "teste@empresa.com.br",
    "password": "segredo1",
    "sex": "Outro",
    "birth_date": "1985-01-31",
    "cep": "01310930",
    "city": "",
    "state": "",
    "street": "",
    "neighborhood": "",
    "complement": "",
}


def api_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=api_module.app), base_url="http://api")


@pytest.mark.asyncio
async def test_root(credentials_file):
    async with api_client() as client:
        response = await client.get("/", auth=AUTH)
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_auth_required(credentials_file):
    async with api_client() as client:
        response = await client.post("/api/v1/users", json=PAYLOAD)
        logger.info(f"[PASS/FAIL] test_auth_required: status={response.status_code}, body={response.text}")
        assert response.status_code == 401


@pytest.mark.asyncio
async def test_wrong_password(credentials_file):
    async with api_client() as client:
        response = await client.get("/", auth=("admin", "errada"))
        assert response.status_code == 401


@pytest.mark.asyncio
async def test_create_registration_success(credentials_file, registrations, redis_client):
    with patch("backend.api.services.registration_service.get_collection", return_value=registrations), \
            patch("backend.api.services.registration_service.redis.from_url", return_value=redis_client):
        async with api_client() as client:
            response = await client.post("/api/v1/users", auth=AUTH, json=PAYLOAD)
    logger.info(f"[PASS/FAIL] test_create_registration_success: status={response.status_code}, body={response.json()}")
    assert response.status_code == 201
    data = response.json()
    assert data["registration_id"] == str(registrations.insert_one.return_value.inserted_id)
    assert data["status"] == "queued"


@pytest.mark.asyncio
async def test_create_registration_invalid_fields(credentials_file, registrations):
    payload = dict(PAYLOAD, name="", cpf="111.111.111-11")
    with patch("backend.api.services.registration_service.get_collection", return_value=registrations):
        async with api_client() as client:
            response = await client.post("/api/v1/users", auth=AUTH, json=payload)
    assert response.status_code == 422
    errors = response.json()["detail"]["errors"]
    assert set(errors) == {"name", "cpf"}
    assert errors["name"][0]["message"] == "Nome é obrigatório"
    assert errors["cpf"][0]["code"] == "cpf_invalid"


@pytest.mark.asyncio
async def test_get_registration_status(credentials_file, registrations):
    registration_id = ObjectId()
    registrations.find_one.return_value = {
        "_id": registration_id,
        "name": "Teste Cadastro",
        "cpf": "09702414458",
        "status": "completed",
        "user_id": ObjectId(),
        "created_at": datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc),
    }
    with patch.object(api_module, "get_collection", return_value=registrations):
        async with api_client() as client:
            response = await client.get(f"/api/v1/users/{registration_id}", auth=AUTH)
    assert response.status_code == 200
    data = response.json()
    assert data["registration_id"] == str(registration_id)
    assert data["status"] == "completed"
    assert data["created_at"] == "2024-01-02T03:04:05+00:00"
    assert isinstance(data["user_id"], str)
    query, projection = registrations.find_one.call_args.args
    assert query == {"_id": registration_id}
    assert projection == {"password_hash": 0}


@pytest.mark.asyncio
async def test_get_registration_invalid_id(credentials_file):
    async with api_client() as client:
        response = await client.get("/api/v1/users/nao-e-um-id", auth=AUTH)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_get_registration_not_found(credentials_file, registrations):
    with patch.object(api_module, "get_collection", return_value=registrations):
        async with api_client() as client:
            response = await client.get(f"/api/v1/users/{ObjectId()}", auth=AUTH)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_lookup_address(credentials_file, monkeypatch):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={
            "cep": "01310-930",
            "logradouro": "Avenida Paulista",
            "complemento": "2100",
            "bairro": "Bela Vista",
            "localidade": "São Paulo",
            "uf": "SP",
        })

    monkeypatch.setattr(api_module, "address_service",
                        AddressService(base_url="https://viacep.test/ws", transport=httpx.MockTransport(handler)))
    async with api_client() as client:
        response = await client.get("/api/v1/cep/01310-930", auth=AUTH)
    assert response.status_code == 200
    assert response.json() == {
        "cep": "01310-930",
        "city": "São Paulo",
        "state": "SP",
        "street": "Avenida Paulista",
        "neighborhood": "Bela Vista",
        "complement": "2100",
    }


@pytest.mark.asyncio
async def test_lookup_address_not_found(credentials_file, monkeypatch):
    handler = lambda request: httpx.Response(200, json={"erro": "true"})
    monkeypatch.setattr(api_module, "address_service",
                        AddressService(base_url="https://viacep.test/ws", transport=httpx.MockTransport(handler)))
    async with api_client() as client:
        response = await client.get("/api/v1/cep/99999999", auth=AUTH)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_lookup_address_incomplete_cep(credentials_file):
    async with api_client() as client:
        response = await client.get("/api/v1/cep/0131", auth=AUTH)
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_check_cpf(credentials_file):
    async with api_client() as client:
        ok = await client.get("/api/v1/cpf/11144477735", auth=AUTH)
        bad = await client.get("/api/v1/cpf/12345678900", auth=AUTH)
    assert ok.json() == {"cpf": "111.444.777-35", "valid": True}
    assert bad.json() == {"cpf": "123.456.789-00", "valid": False}
