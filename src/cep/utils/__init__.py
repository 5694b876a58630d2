"""Utility helpers."""

from cep.utils.coerce import as_bool, as_decimal, as_int, as_text
from cep.utils.hashing import file_key, hash_bytes
from cep.utils.logging import configure_logging, get_logger
from cep.utils.time import parse_cad_datetime

__all__ = [
    "as_bool",
    "as_decimal",
    "as_int",
    "as_text",
    "file_key",
    "hash_bytes",
    "configure_logging",
    "get_logger",
    "parse_cad_datetime",
]
