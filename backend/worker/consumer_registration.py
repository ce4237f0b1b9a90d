import asyncio
import json
import os
import logging
import time
from datetime import datetime, timezone

from bson import ObjectId
from pymongo import ReturnDocument
import redis.asyncio as redis
from backend.mongo.db import REGISTRATIONS, USERS, connect_to_mongo, close_mongo_connection, ensure_indexes, get_collection
from backend.utils.cpf_utils import CPFUtils

LOG = logging.getLogger("consumer_registration")
LOG.setLevel(logging.INFO)
if not LOG.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
    LOG.addHandler(handler)

REDIS_URL = os.getenv("REDIS_URL", "redis://redis:6379/0")
QUEUE_KEY = os.getenv("REGISTRATIONS_QUEUE", "registrations_queue")
DLQ_KEY = os.getenv("REGISTRATIONS_DLQ", "registrations_dlq")
MIN_PROCESSING_SECONDS = float(os.getenv("WORKER_MIN_PROCESSING_SECONDS", "2.0"))

# Campos do cadastro copiados para o documento do usuário
USER_FIELDS = (
    "name", "surname", "cpf", "email", "password_hash", "sex", "birth_date",
    "cep", "city", "state", "street", "neighborhood", "complement",
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ------------------- Classe principal do worker -------------------
class RegistrationProcessor:
    def __init__(self, queue_key, dlq_key, logger, min_processing_seconds=MIN_PROCESSING_SECONDS):
        """
        Inicializa o processador de cadastros.
        Parâmetros:
            queue_key (str): Nome da fila principal
            dlq_key (str): Nome da fila de dead-letter
            logger (logging.Logger): Logger para logs
            min_processing_seconds (float): duração mínima de cada mensagem (limita a vazão)
        """
        self.logger = logger
        self.queue_key = queue_key
        self.dlq_key = dlq_key
        self.min_processing_seconds = min_processing_seconds

    async def _update_registration_status(self, registration_id, coll, status, extra=None):
        """
        Atualiza status do cadastro no banco.
        Parâmetros:
            registration_id (str): ID do cadastro
            coll: Coleção MongoDB de cadastros
            status (str): Novo status
            extra (dict, opcional): Campos extras para atualizar
        Retorno: None
        """
        update = {"status": status, "updated_at": _utcnow()}
        if extra:
            update.update(extra)
        await coll.update_one({"_id": ObjectId(registration_id)}, {"$set": update})
        self.logger.info(f"Status atualizado: registration_id={registration_id}, status={status}")

    async def _persist_user(self, registration):
        """
        Cria o usuário a partir do cadastro.
        Parâmetros:
            registration (dict): documento do cadastro
        Retorno:
            ObjectId: ID do usuário criado
        """
        users = get_collection(USERS)
        user_doc = {field: registration.get(field) for field in USER_FIELDS}
        user_doc["registration_id"] = registration["_id"]
        user_doc["created_at"] = _utcnow()
        res = await users.insert_one(user_doc)
        self.logger.info(f"Usuário criado: user_id={res.inserted_id}")
        return res.inserted_id

    async def _handle_processing_error(self, registration_id, coll, r, msg, exc):
        """
        Lida com erro de processamento, atualiza status e envia para DLQ.
        """
        self.logger.error(f"Processamento falhou para registration_id={registration_id}: {exc!r}")
        try:
            if registration_id and coll is not None:
                await self._update_registration_status(registration_id, coll, "failed", {"reason": "processing_error", "active": False})
        except Exception:
            self.logger.exception("Erro ao marcar cadastro como failed")
        try:
            await r.rpush(self.dlq_key, msg)
        except Exception:
            self.logger.exception("Erro ao empurrar para DLQ")

    async def process_message(self, msg: str, r: redis.Redis) -> None:
        """
        Processa uma mensagem de cadastro da fila.
        Parâmetros:
            msg (str): Mensagem JSON do cadastro
            r: Instância Redis
        Retorno: None
        """
        self.logger.info(f"Recebendo mensagem da fila: {msg}")
        start = time.monotonic()
        registration_id = None
        coll = None
        try:
            data = json.loads(msg)
            registration_id = data.get("registration_id")
            if not registration_id:
                self.logger.warning(f"Mensagem sem registration_id: {data}")
                return

            coll = get_collection(REGISTRATIONS)
            # Idempotência: reivindica o cadastro de forma atômica (queued ou None -> processing),
            # dois workers nunca processam a mesma mensagem
            registration = await coll.find_one_and_update(
                {"_id": ObjectId(registration_id), "status": {"$in": ["queued", None]}},
                {"$set": {"status": "processing", "updated_at": _utcnow()}},
                return_document=ReturnDocument.AFTER,
            )
            if not registration:
                self.logger.info(f"Cadastro {registration_id} não encontrado ou já processado, pulando")
                return

            if not CPFUtils.is_valid_cpf(registration.get("cpf") or ""):
                self.logger.warning(f"Cadastro rejeitado por CPF inválido: registration_id={registration_id}")
                await self._update_registration_status(registration_id, coll, "rejected", {"reason": "cpf_invalido", "active": False})
                return

            user_id = await self._persist_user(registration)
            await self._update_registration_status(
                registration_id,
                coll,
                "completed",
                {"user_id": user_id, "processed_at": _utcnow()}
            )

        except Exception as exc:
            await self._handle_processing_error(registration_id, coll, r, msg, exc)
        finally:
            elapsed = time.monotonic() - start
            if elapsed < self.min_processing_seconds:
                await asyncio.sleep(self.min_processing_seconds - elapsed)


####################
async def main() -> None:
    """
    Loop principal do worker. Conecta aos serviços, consome fila e processa cadastros.
    """
    LOG.info("Conectando ao MongoDB e Redis...")
    await connect_to_mongo()
    await ensure_indexes()
    r = redis.from_url(REDIS_URL)
    processor = RegistrationProcessor(QUEUE_KEY, DLQ_KEY, LOG)
    try:
        while True:
            try:
                item = await r.brpop(QUEUE_KEY, timeout=5)
                if not item:
                    continue
                # item é uma tupla (chave, valor)
                _, value = item
                if isinstance(value, bytes):
                    value = value.decode()
                await processor.process_message(value, r)
            except asyncio.CancelledError:
                raise
            except Exception:
                LOG.exception("Erro no loop do consumer")
                await asyncio.sleep(1)
    finally:
        await r.aclose()
        await close_mongo_connection()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        LOG.info("Worker finalizado pelo usuário")
