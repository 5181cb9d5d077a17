from __future__ import annotations

import secrets
import string

_ALPHABET = string.ascii_uppercase + string.digits


def _token(length: int = 8) -> str:
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))


def prefixed_id(prefix: str = "ID") -> str:
    """
    Short primary key such as 'ATT-1F2A9C3D'.

    Used as a column default, so it must be callable with no arguments.
    """
    return f"{prefix}-{_token()}" if prefix else _token()


def generate_certificate_number(year: int) -> str:
    """
    'CERT-2025-7K2Q9M1X'. The certificates table enforces uniqueness and
    callers retry on collision.
    """
    return f"CERT-{year}-{_token()}"
