"""
Integration Hub validation — cross-cutting domain rules.

- validate_cpf / validate_cnpj: modulus-11 check digits
- validate_document: CPF or CNPJ by cleaned length
"""
from hub.validation.documents import (
    clean_document,
    document_type,
    format_document,
    validate_cnpj,
    validate_cpf,
    validate_document,
)

__all__ = [
    "clean_document",
    "document_type",
    "format_document",
    "validate_cnpj",
    "validate_cpf",
    "validate_document",
]
