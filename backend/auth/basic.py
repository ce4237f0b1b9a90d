from typing import Dict
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials
import logging
import os
import secrets

security = HTTPBasic()
logger = logging.getLogger(__name__)

DEFAULT_CREDENTIALS_FILE = "backend/credentials/basic_auth.txt"

_credentials_cache: Dict[str, str] = {}
_cache_file_path: str = ""


def _load_credentials(file_path: str) -> Dict[str, str]:
    """
    Carrega o arquivo de credenciais (uma linha 'usuario:senha' por usuário).
    Linhas vazias, comentários (#) e linhas sem ':' são ignorados.
    O resultado fica em cache enquanto o caminho não mudar.
    """
    global _credentials_cache, _cache_file_path
    if file_path == _cache_file_path and _credentials_cache:
        return _credentials_cache
    credentials: Dict[str, str] = {}
    try:
        with open(file_path, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line or line.startswith("#") or ":" not in line:
                    continue
                username, password = line.split(":", 1)
                credentials[username] = password
    except FileNotFoundError:
        logger.warning(f"Arquivo de credenciais não encontrado: {file_path}")
    _credentials_cache = credentials
    _cache_file_path = file_path
    return credentials


async def basic_auth(credentials: HTTPBasicCredentials = Depends(security)) -> str:
    credentials_file = os.getenv("BASIC_AUTH_CREDENTIALS_FILE", DEFAULT_CREDENTIALS_FILE)
    expected = _load_credentials(credentials_file).get(credentials.username)
    if expected is None or not secrets.compare_digest(expected.encode(), credentials.password.encode()):
        logger.warning(f"Falha de autenticação: usuario={credentials.username}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Credenciais inválidas",
            headers={"WWW-Authenticate": "Basic"},
        )
    return credentials.username
