"""
Pipeline de validação do formulário de cadastro.

Cada regra é uma função pura que recebe o registro tipado (RegisterFormData)
e devolve None quando passa ou um FieldError descrevendo a falha.
As regras de um mesmo campo rodam em ordem e param na primeira falha;
todos os campos são sempre avaliados, para o formulário mostrar tudo de uma vez.
"""
from dataclasses import dataclass, fields
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from email_validator import EmailNotValidError, validate_email

from backend.utils.cpf_utils import CPFUtils
from backend.utils.masks import mask_cep, mask_cpf

SEX_OPTIONS = ("Masculino", "Feminino", "Outro")

MASKED_CPF_LENGTH = 14
MASKED_CEP_LENGTH = 9
MIN_PASSWORD_LENGTH = 6


@dataclass
class RegisterFormData:
    name: str = ""
    surname: str = ""
    cpf: str = ""
    email: str = ""
    password: str = ""
    sex: str = ""
    birth_date: Optional[date] = None
    cep: str = ""
    city: str = ""
    state: str = ""
    street: str = ""
    neighborhood: str = ""
    complement: str = ""

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "RegisterFormData":
        """
        Monta o registro a partir de um payload não tipado (JSON do formulário).
        Campos ausentes ou None viram string vazia; birth_date aceita date ou
        texto ISO (YYYY-MM-DD) e vira None quando não puder ser interpretado.
        """
        values: Dict[str, Any] = {}
        for f in fields(cls):
            if f.name == "birth_date":
                continue
            raw = payload.get(f.name)
            values[f.name] = "" if raw is None else str(raw)
        values["birth_date"] = _parse_date(payload.get("birth_date"))
        return cls(**values)


@dataclass(frozen=True)
class FieldError:
    field: str
    code: str
    message: str


Rule = Callable[[RegisterFormData], Optional[FieldError]]


def _parse_date(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            return None
    return None


# ---------- Regras ----------

def name_required(data: RegisterFormData) -> Optional[FieldError]:
    if not data.name.strip():
        return FieldError("name", "required", "Nome é obrigatório")
    return None


def surname_required(data: RegisterFormData) -> Optional[FieldError]:
    if not data.surname.strip():
        return FieldError("surname", "required", "Sobrenome é obrigatório")
    return None


def cpf_complete(data: RegisterFormData) -> Optional[FieldError]:
    if len(mask_cpf(data.cpf)) < MASKED_CPF_LENGTH:
        return FieldError("cpf", "cpf_incomplete", "CPF inválido")
    return None


def cpf_check_digits(data: RegisterFormData) -> Optional[FieldError]:
    if not CPFUtils.is_valid_cpf(data.cpf):
        return FieldError("cpf", "cpf_invalid", "CPF inválido")
    return None


def email_format(data: RegisterFormData) -> Optional[FieldError]:
    try:
        validate_email(data.email.strip(), check_deliverability=False)
    except EmailNotValidError:
        return FieldError("email", "email_invalid", "Email inválido")
    return None


def password_length(data: RegisterFormData) -> Optional[FieldError]:
    if len(data.password) < MIN_PASSWORD_LENGTH:
        return FieldError(
            "password",
            "password_too_short",
            f"A senha deve ter pelo menos {MIN_PASSWORD_LENGTH} caracteres",
        )
    return None


def sex_option(data: RegisterFormData) -> Optional[FieldError]:
    if data.sex not in SEX_OPTIONS:
        return FieldError("sex", "sex_invalid", "Selecione um sexo")
    return None


def birth_date_required(data: RegisterFormData) -> Optional[FieldError]:
    if data.birth_date is None:
        return FieldError("birth_date", "required", "Data de nascimento obrigatória")
    return None


def birth_date_not_future(data: RegisterFormData) -> Optional[FieldError]:
    if data.birth_date is not None and data.birth_date > date.today():
        return FieldError("birth_date", "birth_date_future", "Data de nascimento inválida")
    return None


def cep_complete(data: RegisterFormData) -> Optional[FieldError]:
    if len(mask_cep(data.cep)) < MASKED_CEP_LENGTH:
        return FieldError("cep", "cep_incomplete", "CEP inválido")
    return None


RULES: List[Tuple[str, List[Rule]]] = [
    ("name", [name_required]),
    ("surname", [surname_required]),
    ("cpf", [cpf_complete, cpf_check_digits]),
    ("email", [email_format]),
    ("password", [password_length]),
    ("sex", [sex_option]),
    ("birth_date", [birth_date_required, birth_date_not_future]),
    ("cep", [cep_complete]),
]


def validate_registration(
    data: RegisterFormData,
    rules: Optional[List[Tuple[str, List[Rule]]]] = None,
) -> Dict[str, List[FieldError]]:
    """
    Executa o pipeline de regras sobre o registro.
    Parâmetros:
        data (RegisterFormData): dados do formulário
        rules (list, opcional): pipeline alternativo; padrão RULES
    Retorno:
        dict: campo -> lista de FieldError; vazio quando tudo passa
    """
    if rules is None:
        rules = RULES
    errors: Dict[str, List[FieldError]] = {}
    for field_name, field_rules in rules:
        for rule in field_rules:
            failure = rule(data)
            if failure is not None:
                errors.setdefault(field_name, []).append(failure)
                break
    return errors


def errors_to_dict(errors: Dict[str, List[FieldError]]) -> Dict[str, List[Dict[str, str]]]:
    """Converte os erros para um dict serializável em JSON."""
    return {
        field_name: [{"code": e.code, "message": e.message} for e in field_errors]
        for field_name, field_errors in errors.items()
    }
