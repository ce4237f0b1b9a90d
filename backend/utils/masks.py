"""
Máscaras progressivas para CPF e CEP.
Recebem o texto digitado (parcial ou completo) e devolvem o prefixo formatado
que o usuário espera ver no campo. Funções puras, nunca lançam exceção.
"""
import re
from typing import Optional

_NON_DIGITS = re.compile(r"[^0-9]")

CEP_DIGITS = 8
CPF_DIGITS = 11


def only_digits(raw: Optional[str]) -> str:
    """
    Remove tudo que não for dígito.
    Parâmetros:
        raw (str): texto em qualquer formato
    Retorno:
        str: apenas os dígitos, na ordem original
    Exemplo: '01310-930' -> '01310930'
    """
    return _NON_DIGITS.sub("", raw or "")


def mask_cep(raw: Optional[str]) -> str:
    """
    Formata CEP como NNNNN-NNN.
    O hífen só aparece a partir do 6º dígito; dígitos além do 8º são descartados.
    Exemplo: '0131' -> '0131', '01310930' -> '01310-930'
    """
    digits = only_digits(raw)[:CEP_DIGITS]
    if len(digits) <= 5:
        return digits
    return f"{digits[:5]}-{digits[5:]}"


def mask_cpf(raw: Optional[str]) -> str:
    """
    Formata CPF como NNN.NNN.NNN-NN, separador a separador.
    Cada separador só é inserido quando existe um dígito depois dele.
    Exemplo: '1114' -> '111.4', '11144477735' -> '111.444.777-35'
    """
    digits = only_digits(raw)[:CPF_DIGITS]
    if len(digits) <= 3:
        return digits
    if len(digits) <= 6:
        return f"{digits[:3]}.{digits[3:]}"
    if len(digits) <= 9:
        return f"{digits[:3]}.{digits[3:6]}.{digits[6:]}"
    return f"{digits[:3]}.{digits[3:6]}.{digits[6:9]}-{digits[9:]}"
