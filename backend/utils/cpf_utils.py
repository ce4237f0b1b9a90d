"""
Módulo utilitário para validação e normalização de CPF.
Funções reutilizáveis e testáveis; aceitam CPF com ou sem máscara.
"""
from backend.utils.masks import CPF_DIGITS, only_digits


class CPFUtils:
    @staticmethod
    def normalize_cpf(cpf: str) -> str:
        """
        Remove caracteres não numéricos do CPF.
        Parâmetros:
            cpf (str): CPF em qualquer formato
        Retorno:
            str: CPF apenas com dígitos
        Exemplo: '123.456.789-09' -> '12345678909'
        """
        return only_digits(cpf)

    @staticmethod
    def check_digit(digits: str) -> int:
        """
        Calcula um dígito verificador (módulo 11).
        Parâmetros:
            digits (str): 9 dígitos (primeiro DV) ou 10 dígitos (segundo DV)
        Retorno:
            int: dígito verificador esperado
        """
        first_weight = len(digits) + 1
        soma = sum(int(d) * (first_weight - i) for i, d in enumerate(digits))
        resto = soma % 11
        return 0 if resto < 2 else 11 - resto

    @staticmethod
    def is_valid_cpf(cpf: str) -> bool:
        """
        Valida CPF pelo algoritmo dos dígitos verificadores.
        Parâmetros:
            cpf (str): CPF com ou sem máscara
        Retorno:
            bool: True se válido, False caso contrário
        """
        cpf = CPFUtils.normalize_cpf(cpf)
        if len(cpf) != CPF_DIGITS or cpf == cpf[0] * CPF_DIGITS:
            return False
        # DV1 sobre os 9 primeiros dígitos, DV2 sobre os 10 primeiros
        for i in (9, 10):
            if CPFUtils.check_digit(cpf[:i]) != int(cpf[i]):
                return False
        return True
