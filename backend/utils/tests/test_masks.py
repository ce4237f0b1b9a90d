import pytest

from backend.utils.masks import mask_cep, mask_cpf, only_digits

SAMPLES = [
    "",
    "abc",
    "0131",
    "01310930",
    "01310-930",
    "0131093012345",
    "111.444.777-35",
    "11144477735999",
    " 1a1b1c4-4.4 7/7 7 3 5 ",
    "١٢٣٤٥٦",  # dígitos não ASCII são descartados
]


def test_only_digits():
    assert only_digits("111.444.777-35") == "11144477735"
    assert only_digits("CEP: 01310-930") == "01310930"
    assert only_digits("") == ""
    assert only_digits(None) == ""


@pytest.mark.parametrize("raw, expected", [
    ("", ""),
    ("abc", ""),
    ("0", "0"),
    ("0131", "0131"),
    ("01310", "01310"),
    ("013109", "01310-9"),
    ("01310930", "01310-930"),
    ("01310-930", "01310-930"),
    ("0131093099", "01310-930"),
])
def test_mask_cep(raw, expected):
    assert mask_cep(raw) == expected


@pytest.mark.parametrize("raw, expected", [
    ("", ""),
    ("abc", ""),
    ("111", "111"),
    ("1114", "111.4"),
    ("111444", "111.444"),
    ("1114447", "111.444.7"),
    ("111444777", "111.444.777"),
    ("1114447773", "111.444.777-3"),
    ("11144477735", "111.444.777-35"),
    ("111.444.777-35", "111.444.777-35"),
    ("111444777359", "111.444.777-35"),
])
def test_mask_cpf(raw, expected):
    assert mask_cpf(raw) == expected


@pytest.mark.parametrize("raw", SAMPLES)
def test_mask_cep_shape(raw):
    masked = mask_cep(raw)
    assert len(masked) <= 9
    assert masked.count("-") <= 1
    if "-" in masked:
        assert masked.index("-") == 5


@pytest.mark.parametrize("raw", SAMPLES)
def test_mask_cpf_keeps_first_eleven_digits(raw):
    masked = mask_cpf(raw)
    assert len(masked) <= 14
    assert only_digits(masked) == only_digits(raw)[:11]


@pytest.mark.parametrize("raw", SAMPLES)
def test_masks_are_idempotent(raw):
    assert mask_cpf(mask_cpf(raw)) == mask_cpf(raw)
    assert mask_cep(mask_cep(raw)) == mask_cep(raw)


def test_typing_cpf_one_key_at_a_time():
    # Simula o campo do formulário: o valor mascarado volta para o estado a cada tecla
    state = ""
    for key in "11144477735":
        state = mask_cpf(state + key)
    assert state == "111.444.777-35"
    state = mask_cpf(state + "9")
    assert state == "111.444.777-35"
