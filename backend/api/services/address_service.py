"""
Serviço de endereço: consulta o ViaCEP para preencher cidade, estado,
logradouro, bairro e complemento a partir do CEP.
Nunca propaga erro para quem chama; falhas são logadas e retornam None.
"""
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional
import logging
import os

import httpx

from backend.utils.masks import CEP_DIGITS, mask_cep, only_digits

VIACEP_URL = os.getenv("VIACEP_URL", "https://viacep.com.br/ws")
VIACEP_TIMEOUT = float(os.getenv("VIACEP_TIMEOUT", "5"))

logger = logging.getLogger("address_service")


@dataclass
class Address:
    cep: str
    city: str = ""
    state: str = ""
    street: str = ""
    neighborhood: str = ""
    complement: str = ""

    @classmethod
    def from_viacep(cls, data: Dict[str, Any]) -> "Address":
        return cls(
            cep=mask_cep(data.get("cep") or ""),
            city=data.get("localidade") or "",
            state=data.get("uf") or "",
            street=data.get("logradouro") or "",
            neighborhood=data.get("bairro") or "",
            complement=data.get("complemento") or "",
        )

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


class AddressService:
    def __init__(self, base_url: str = VIACEP_URL, timeout: float = VIACEP_TIMEOUT,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Inicializa o serviço de endereço.
        Parâmetros:
            base_url (str): URL base do ViaCEP
            timeout (float): timeout da requisição em segundos
            transport (httpx.AsyncBaseTransport, opcional): transporte alternativo (testes)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def lookup(self, cep: str) -> Optional[Address]:
        """
        Busca o endereço de um CEP.
        Parâmetros:
            cep (str): CEP com ou sem máscara
        Retorno:
            Address: endereço encontrado, ou None se o CEP for inválido/inexistente
        """
        digits = only_digits(cep)
        if len(digits) != CEP_DIGITS:
            logger.warning(f"CEP incompleto, consulta ignorada: cep={cep}")
            return None

        url = f"{self.base_url}/{digits}/json/"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                resp = await client.get(url)
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPStatusError as exc:
            logger.error(f"Erro ao buscar CEP: cep={digits}, status={exc.response.status_code}")
            return None
        except httpx.HTTPError as exc:
            logger.error(f"Erro ao buscar CEP: cep={digits}, erro={exc}")
            return None
        except ValueError:
            logger.error(f"Resposta inválida do ViaCEP: cep={digits}")
            return None

        if not isinstance(data, dict) or data.get("erro"):
            logger.warning(f"CEP não encontrado: cep={digits}")
            return None

        address = Address.from_viacep(data)
        if not address.cep:
            address.cep = mask_cep(digits)
        logger.info(f"Endereço encontrado: {address}")
        return address
