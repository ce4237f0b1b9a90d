
from typing import Dict, Any
from contextlib import asynccontextmanager
from fastapi import FastAPI, status, HTTPException, Depends, Path
import logging
import uvicorn
from bson import ObjectId
from backend.mongo.db import REGISTRATIONS, connect_to_mongo, close_mongo_connection, ensure_indexes, get_collection
from backend.auth.basic import basic_auth
from backend.api.services.address_service import AddressService
from backend.api.services.registration_service import RegistrationService
from backend.utils.cpf_utils import CPFUtils
from backend.utils.masks import CEP_DIGITS, mask_cpf, only_digits
from datetime import datetime
import os

logger = logging.getLogger(__name__)

REDIS_URL = os.getenv("REDIS_URL", "redis://redis:6379/0")
QUEUE_KEY = os.getenv("REGISTRATIONS_QUEUE", "registrations_queue")

registration_service = RegistrationService(REDIS_URL, QUEUE_KEY)
address_service = AddressService()


@asynccontextmanager
async def lifespan(_: FastAPI):
    """
    Ciclo de vida da API: conecta ao MongoDB no startup e fecha no shutdown.
    """
    logger.info("Iniciando evento de startup da API")
    await connect_to_mongo()
    await ensure_indexes()
    logger.info("Conexão com MongoDB estabelecida")
    yield
    logger.info("Iniciando evento de shutdown da API")
    await close_mongo_connection()
    logger.info("Conexão com MongoDB encerrada")


app = FastAPI(title="User Registration API", version="1.0.0", lifespan=lifespan)


def bson_to_json(val):
    if isinstance(val, dict):
        return {k: bson_to_json(v) for k, v in val.items()}
    elif isinstance(val, list):
        return [bson_to_json(v) for v in val]
    elif isinstance(val, ObjectId):
        return str(val)
    elif isinstance(val, datetime):
        return val.isoformat()
    else:
        return val


@app.get("/")
async def root(_: str = Depends(basic_auth)) -> dict:
    """
    Endpoint de status da API.
    Parâmetros:
        _: autenticação básica
    Retorno:
        dict: status da API
    """
    return {"status": "ok"}


#########
@app.post("/api/v1/users", status_code=status.HTTP_201_CREATED)
async def request_registration(payload: Dict[str, Any], _: str = Depends(basic_auth)) -> Dict[str, Any]:
    """
    Endpoint de cadastro. Valida dados, persiste e enfileira no Redis.
    Parâmetros:
        payload (dict): dados do formulário de cadastro
        _: autenticação básica
    Retorno:
        dict: id e status do cadastro
    """
    result = await registration_service.request_registration(payload)
    logger.info(f"Cadastro processado: retorno={result}")
    return result


#########
@app.get("/api/v1/users/{registration_id}")
async def get_registration_status(registration_id: str = Path(..., description="ID do cadastro"), _: str = Depends(basic_auth)) -> dict:
    """
    Consulta status de um cadastro.
    Parâmetros:
        registration_id (str): ID do cadastro
        _: autenticação básica
    Retorno:
        dict: dados do cadastro (sem o hash da senha)
    """
    if not ObjectId.is_valid(registration_id):
        logger.warning(f"registration_id inválido: {registration_id}")
        raise HTTPException(status_code=400, detail="registration_id inválido")
    coll = get_collection(REGISTRATIONS)
    registration = await coll.find_one({"_id": ObjectId(registration_id)}, {"password_hash": 0})
    if not registration:
        logger.warning(f"Cadastro não encontrado: registration_id={registration_id}")
        raise HTTPException(status_code=404, detail="Cadastro não encontrado")
    result = bson_to_json(registration)
    result["registration_id"] = str(result.pop("_id"))
    return result


#########
@app.get("/api/v1/cep/{cep}")
async def lookup_address(cep: str, _: str = Depends(basic_auth)) -> Dict[str, str]:
    """
    Autopreenchimento de endereço pelo CEP (ViaCEP).
    Parâmetros:
        cep (str): CEP com ou sem máscara
        _: autenticação básica
    Retorno:
        dict: cidade, estado, logradouro, bairro e complemento
    """
    if len(only_digits(cep)) != CEP_DIGITS:
        raise HTTPException(status_code=422, detail="CEP inválido")
    address = await address_service.lookup(cep)
    if address is None:
        raise HTTPException(status_code=404, detail="CEP não encontrado")
    return address.to_dict()


#########
@app.get("/api/v1/cpf/{cpf}")
async def check_cpf(cpf: str, _: str = Depends(basic_auth)) -> Dict[str, Any]:
    """
    Formata e valida um CPF.
    Parâmetros:
        cpf (str): CPF com ou sem máscara
        _: autenticação básica
    Retorno:
        dict: CPF formatado e veredito de validade
    """
    return {"cpf": mask_cpf(cpf), "valid": CPFUtils.is_valid_cpf(cpf)}


if __name__ == "__main__":
    """
    Inicializa o servidor Uvicorn para rodar a API.
    """
    logger.info("Starting Uvicorn server on 0.0.0.0:3000")
    uvicorn.run(app, host="0.0.0.0", port=3000)
