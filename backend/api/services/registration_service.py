"""
Serviço de cadastro: encapsula validação, persistência e mensageria.
Facilita testes, manutenção e reuso.
"""
from typing import Dict, Any, Optional
from fastapi import HTTPException
from bson import ObjectId
from pymongo.errors import DuplicateKeyError
from datetime import datetime, timezone
import redis.asyncio as redis
import hashlib
import json
import logging
import secrets
from backend.mongo.db import REGISTRATIONS, get_collection
from backend.utils.masks import only_digits
from backend.validation.registration_rules import RegisterFormData, errors_to_dict, validate_registration

PBKDF2_ITERATIONS = 260_000


def hash_password(password: str, salt: Optional[bytes] = None, iterations: int = PBKDF2_ITERATIONS) -> str:
    """
    Gera o hash PBKDF2-SHA256 da senha.
    Retorno:
        str: 'pbkdf2_sha256$<iteracoes>$<salt hex>$<hash hex>'
    """
    salt = salt if salt is not None else secrets.token_bytes(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations)
    return f"pbkdf2_sha256${iterations}${salt.hex()}${digest.hex()}"


def verify_password(password: str, stored: str) -> bool:
    """Confere a senha contra o hash gravado; hash malformado nunca confere."""
    try:
        algorithm, iterations, salt_hex, _ = stored.split("$")
        if algorithm != "pbkdf2_sha256":
            return False
        candidate = hash_password(password, bytes.fromhex(salt_hex), int(iterations))
    except (ValueError, OverflowError):
        return False
    return secrets.compare_digest(candidate, stored)


def build_registration_document(data: RegisterFormData, now: datetime) -> Dict[str, Any]:
    """
    Monta o documento de cadastro a partir do registro já validado.
    CPF e CEP são gravados apenas com dígitos; a senha nunca é gravada em claro.
    """
    return {
        "name": data.name.strip(),
        "surname": data.surname.strip(),
        "cpf": only_digits(data.cpf),
        "email": data.email.strip().lower(),
        "password_hash": hash_password(data.password),
        "sex": data.sex,
        "birth_date": data.birth_date.isoformat(),
        "cep": only_digits(data.cep),
        "city": data.city.strip(),
        "state": data.state.strip(),
        "street": data.street.strip(),
        "neighborhood": data.neighborhood.strip(),
        "complement": data.complement.strip(),
        "status": "queued",
        "active": True,
        "created_at": now,
        "updated_at": now,
    }


class RegistrationService:
    def __init__(self, redis_url: str, queue_key: str, logger=None):
        """
        Inicializa o serviço de cadastro.
        Parâmetros:
            redis_url (str): URL do Redis
            queue_key (str): Nome da fila de cadastros
            logger (logging.Logger, opcional): Logger para logs
        """
        self.redis_url = redis_url
        self.queue_key = queue_key
        if logger is None:
            logger = logging.getLogger("registration_service")
            logger.setLevel(logging.INFO)
            if not logger.hasHandlers():
                handler = logging.StreamHandler()
                handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
                logger.addHandler(handler)
        self.logger = logger

    async def request_registration(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Realiza a solicitação de cadastro: valida dados, persiste no banco e enfileira no Redis.
        Parâmetros:
            payload (dict): dados do formulário
        Retorno:
            dict: id e status do cadastro
        """
        if not isinstance(payload, dict):
            self.logger.warning(f"Payload inválido: tipo={type(payload).__name__}")
            raise HTTPException(status_code=400, detail="Payload deve ser um objeto JSON")

        data = RegisterFormData.from_payload(payload)
        errors = validate_registration(data)
        if errors:
            self.logger.warning(f"Cadastro rejeitado na validação: campos={sorted(errors)}")
            raise HTTPException(status_code=422, detail={"errors": errors_to_dict(errors)})

        coll = get_collection(REGISTRATIONS)
        cpf_norm = only_digits(data.cpf)
        existing = await coll.find_one({"cpf": cpf_norm, "active": True})
        if existing:
            self.logger.warning(f"CPF já cadastrado: registration_id={existing['_id']}")
            raise HTTPException(status_code=409, detail="CPF já cadastrado")

        # Persistência do cadastro; o índice único parcial em (cpf, active) barra envios simultâneos
        now = datetime.now(timezone.utc)
        doc = build_registration_document(data, now)
        try:
            res = await coll.insert_one(doc)
        except DuplicateKeyError:
            self.logger.warning(f"CPF já cadastrado (envio concorrente): cpf={cpf_norm}")
            raise HTTPException(status_code=409, detail="CPF já cadastrado")
        registration_id = str(res.inserted_id)
        self.logger.info(f"Cadastro criado: registration_id={registration_id}")

        # Mensageria: enfileira cadastro no Redis
        r = redis.from_url(self.redis_url)
        try:
            msg = {"registration_id": registration_id, "cpf": cpf_norm, "created_at": now.isoformat()}
            await r.rpush(self.queue_key, json.dumps(msg))
            self.logger.info(f"Cadastro enfileirado no Redis: registration_id={registration_id}")
        except Exception:
            self.logger.exception(f"Erro ao enfileirar cadastro: registration_id={registration_id}")
            await coll.update_one(
                {"_id": ObjectId(registration_id)},
                {"$set": {"status": "failed", "active": False, "updated_at": datetime.now(timezone.utc),
                          "reason": "enqueue_error"}},
            )
            raise HTTPException(status_code=500, detail="Erro ao enfileirar a solicitação")
        finally:
            await r.aclose()

        return {"registration_id": registration_id, "status": "queued"}
