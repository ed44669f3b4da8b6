"""Verificación HMAC de notificaciones (`X-Hub-Signature`).

Formato de la cabecera: `<method>=<signature>`, con method en
`sha1 | sha256 | sha384 | sha512`.

Reglas:
- Sin secreto configurado (vacío o solo espacios) no se verifica: siempre
  se acepta. Es una concesión de comodidad y se mantiene tal cual.
- Con secreto, una firma ausente o vacía se rechaza.
- La firma se compara en tiempo constante (`hmac.compare_digest`), sin
  distinguir mayúsculas ASCII, contra la base64 del HMAC. También se acepta
  la codificación hex, que es la que envían los hubs; ninguna otra
  (truncada, sin padding, con prefijos) coincide.
- Un método no soportado produce un hash vacío, por lo que nunca coincide
  con una firma no vacía.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import logging

from core.domain.models import VerificationOutcome

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Hub-Signature"

SUPPORTED_METHODS: dict[str, str] = {
    "sha1": "sha1",
    "sha256": "sha256",
    "sha384": "sha384",
    "sha512": "sha512",
}


def _to_bytes(value: str | bytes) -> bytes:
    return value.encode("utf-8") if isinstance(value, str) else value


def retrieve_content_hash(method: str | None, secret: str, payload: str | bytes) -> bytes:
    """HMAC(secret, payload) con el digest indicado; `b""` si no está soportado."""

    digest = SUPPORTED_METHODS.get((method or "").strip().lower())
    if digest is None:
        logger.warning("Unsupported signature method %r; content hash left empty", method)
        return b""
    return hmac.new(_to_bytes(secret), _to_bytes(payload), digest).digest()


def sign(method: str, secret: str, payload: str | bytes, *, encoding: str = "hex") -> str:
    """Valor de cabecera `method=signature` listo para `X-Hub-Signature`."""

    raw = retrieve_content_hash(method, secret, payload)
    if encoding == "base64":
        encoded = base64.b64encode(raw).decode("ascii")
    else:
        encoded = raw.hex()
    return f"{method.lower()}={encoded}"


def parse_signature_header(value: str | None) -> tuple[str | None, str]:
    """Separa `method=signature`. Sin `=`, el método queda sin especificar."""

    if not value:
        return None, ""
    text = value.strip()
    if "=" not in text:
        return None, text
    method, signature = text.split("=", 1)
    return method.strip().lower() or None, signature.strip()


def _equals_ignore_case(expected: str, provided: str) -> bool:
    # bytes.lower() solo pliega ASCII.
    return hmac.compare_digest(expected.encode("ascii").lower(), provided.encode("utf-8").lower())


def verify(method: str | None, secret: str | None, payload: str | bytes, provided_signature: str | None) -> bool:
    """`True` si la firma corresponde al payload (o si no hay secreto)."""

    if not secret or not secret.strip():
        return True
    if not provided_signature:
        return False

    raw = retrieve_content_hash(method, secret, payload)
    if not raw:
        # Hash vacío (método no soportado): nunca coincide con una firma no vacía.
        return False

    candidates = (raw.hex(), base64.b64encode(raw).decode("ascii"))
    matched = False
    for expected in candidates:
        # Sin cortocircuito: siempre se comparan ambas codificaciones.
        matched = _equals_ignore_case(expected, provided_signature) or matched
    return matched


def verify_header(secret: str | None, payload: bytes, header_value: str | None) -> VerificationOutcome:
    """Aplica `verify` a partir del valor crudo de `X-Hub-Signature`."""

    method, signature = parse_signature_header(header_value)
    if not secret or not secret.strip():
        return VerificationOutcome(accepted=True, method=method)
    return VerificationOutcome(accepted=verify(method, secret, payload, signature), method=method)
