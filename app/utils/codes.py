# ===================================
# app/utils/codes.py
# ===================================
"""Normalisation des codes produits (EAN-8, EAN-13, GTIN-14 saisis ou scannés)."""

import re

_NON_DIGITS = re.compile(r"\D")

# Un code plus court que ce seuil n'est pas dépouillé de ses zéros initiaux
MIN_SIGNIFICANT_LENGTH = 8
MAX_CODE_LENGTH = 20
TRUNCATED_LENGTH = 13


def digits_only(code: str) -> str:
    return _NON_DIGITS.sub("", code or "")


def normalize_code(code: str) -> str:
    """
    Retourne la forme normalisée d'un code produit.

    - seuls les chiffres sont conservés ;
    - au-delà de 20 chiffres, on garde les 13 premiers ;
    - les zéros initiaux sont retirés, sauf si le résultat fait moins de
      8 chiffres (on garde alors la forme complète).

    >>> normalize_code("0012345678901")
    '12345678901'
    >>> normalize_code("00001234")
    '00001234'
    """
    digits = digits_only(code)
    if len(digits) > MAX_CODE_LENGTH:
        digits = digits[:TRUNCATED_LENGTH]

    stripped = digits.lstrip("0")
    if len(stripped) >= MIN_SIGNIFICANT_LENGTH:
        return stripped
    return digits
