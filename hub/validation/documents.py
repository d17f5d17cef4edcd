"""Brazilian taxpayer identifier checks (CPF and CNPJ).

Pure functions: a digit string in, a bool out. No exceptions for bad
input; anything structurally wrong is simply invalid. Callers may pass
formatted documents ("111.444.777-35") to ``validate_document``, which
strips non-digits before dispatching on length.
"""

import re

CPF_LENGTH = 11
CNPJ_LENGTH = 14

CNPJ_WEIGHTS_FIRST = (5, 4, 3, 2, 9, 8, 7, 6, 5, 4, 3, 2)
CNPJ_WEIGHTS_SECOND = (6, 5, 4, 3, 2, 9, 8, 7, 6, 5, 4, 3, 2)

_NON_DIGITS = re.compile(r"\D")


def clean_document(document: str) -> str:
    """Strip punctuation and whitespace, keeping digits only."""
    return _NON_DIGITS.sub("", document or "")


def _is_repeated(digits: str) -> bool:
    return len(set(digits)) == 1


def _cpf_digit(digits: str, count: int) -> int:
    weights = range(count + 1, 1, -1)
    total = sum(int(d) * w for d, w in zip(digits[:count], weights))
    remainder = (total * 10) % 11
    return 0 if remainder in (10, 11) else remainder


def _cnpj_digit(digits: str, weights: tuple[int, ...]) -> int:
    total = sum(int(d) * w for d, w in zip(digits, weights))
    remainder = total % 11
    return 0 if remainder < 2 else 11 - remainder


def validate_cpf(cpf: str) -> bool:
    """Check an 11-digit CPF against its two modulus-11 check digits."""
    if len(cpf) != CPF_LENGTH or not cpf.isdigit() or _is_repeated(cpf):
        return False
    if _cpf_digit(cpf, 9) != int(cpf[9]):
        return False
    return _cpf_digit(cpf, 10) == int(cpf[10])


def validate_cnpj(cnpj: str) -> bool:
    """Check a 14-digit CNPJ against its two modulus-11 check digits."""
    if len(cnpj) != CNPJ_LENGTH or not cnpj.isdigit() or _is_repeated(cnpj):
        return False
    if _cnpj_digit(cnpj[:12], CNPJ_WEIGHTS_FIRST) != int(cnpj[12]):
        return False
    return _cnpj_digit(cnpj[:13], CNPJ_WEIGHTS_SECOND) == int(cnpj[13])


def validate_document(document: str) -> bool:
    """Validate a CPF or CNPJ, dispatching on cleaned length."""
    digits = clean_document(document)
    if len(digits) == CPF_LENGTH:
        return validate_cpf(digits)
    if len(digits) == CNPJ_LENGTH:
        return validate_cnpj(digits)
    return False


def document_type(document: str) -> str:
    """Return "CPF" for 11 cleaned digits, "CNPJ" otherwise."""
    return "CPF" if len(clean_document(document)) == CPF_LENGTH else "CNPJ"


def format_document(document: str) -> str:
    """Apply the usual mask (000.000.000-00 / 00.000.000/0000-00)."""
    d = clean_document(document)
    if len(d) == CPF_LENGTH:
        return f"{d[:3]}.{d[3:6]}.{d[6:9]}-{d[9:]}"
    if len(d) == CNPJ_LENGTH:
        return f"{d[:2]}.{d[2:5]}.{d[5:8]}/{d[8:12]}-{d[12:]}"
    return d
