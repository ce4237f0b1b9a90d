import pytest

from backend.utils.cpf_utils import CPFUtils


def test_normalize_cpf():
    assert CPFUtils.normalize_cpf("123.456.789-09") == "12345678909"
    assert CPFUtils.normalize_cpf("") == ""


@pytest.mark.parametrize("cpf", [
    "111.444.777-35",
    "11144477735",
    "097.024.144-58",
    " 529 982 247 25 ",
])
def test_valid_cpf(cpf):
    assert CPFUtils.is_valid_cpf(cpf) is True


@pytest.mark.parametrize("cpf", [
    "123.456.789-00",
    "111.444.777-36",
    "111.444.777-53",
    "111.444.777-3",
    "111.444.777-350",
    "abc",
    "",
])
def test_invalid_cpf(cpf):
    assert CPFUtils.is_valid_cpf(cpf) is False


@pytest.mark.parametrize("digit", "0123456789")
def test_repeated_digits_rejected(digit):
    assert CPFUtils.is_valid_cpf(digit * 11) is False


def test_check_digit():
    assert CPFUtils.check_digit("111444777") == 3
    assert CPFUtils.check_digit("1114447773") == 5


def test_check_digit_remainder_below_two_is_zero():
    # soma 0 -> resto 0; soma 2*6 = 12 -> resto 1; soma 10*1 = 10 -> resto 10
    assert CPFUtils.check_digit("000000000") == 0
    assert CPFUtils.check_digit("000000006") == 0
    assert CPFUtils.check_digit("100000000") == 1
