import json
import re
import unicodedata
from decimal import Decimal, InvalidOperation


def _strip_accents(value: str) -> str:
    normalized = unicodedata.normalize("NFKD", value or "")
    return "".join(ch for ch in normalized if not unicodedata.combining(ch))


def normalize_document_number(value: str) -> str:
    """Keep only alphanumeric chars for document identifiers."""
    return re.sub(r"[^A-Za-z0-9]", "", (value or "").strip())


def normalize_person_name(value: str) -> str:
    """
    Keep letters and spaces only.
    Removes digits and punctuation, collapses repeated spaces.
    """
    raw = _strip_accents((value or "").strip())
    only_letters = re.sub(r"[^A-Za-z\s]", " ", raw)
    return re.sub(r"\s+", " ", only_letters).strip()


def normalize_phone(value: str) -> str:
    """Keep only digits."""
    return re.sub(r"\D", "", (value or "").strip())


def parse_price(value):
    """
    Convierte un precio capturado en la UI a Decimal.

    Acepta números o cadenas con símbolo de moneda y separador de miles
    ("$1,250,000.50"). Cadena vacía o None -> None.
    Lanza ValueError si el texto no es un número.
    """
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    raw = re.sub(r"[$,\s]", "", str(value))
    if not raw:
        return None
    try:
        return Decimal(raw)
    except InvalidOperation:
        raise ValueError(f"Precio inválido: {value!r}")


def parse_tags(value) -> list:
    """
    Normaliza una lista de etiquetas (amenidades).

    Soporta lista, cadena JSON con una lista, cadena simple o un dict
    (se toman sus valores).
    """
    if not value:
        return []
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value]
    if isinstance(value, dict):
        return [str(item) for item in value.values()]
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except ValueError:
            return [value]
        if isinstance(parsed, list):
            return [str(item) for item in parsed]
        return [value]
    return []
