# app/utils/tag_codes.py
"""
Tag code generation and the QR scan payload.

Codes look like TAG-AB12CD34 (prefix + 8 chars from A-Z0-9).

The QR sticker does not carry the plain code. It carries
    CC::1:<base64(code XOR shared-secret)>
so a generic scanner app shows gibberish instead of a code someone could
type into a competitor's site. This is a scan deterrent, NOT encryption:
anyone holding the app binary can recover the secret.
"""

import base64
import binascii
import secrets
import string
from typing import Callable, Iterable, Optional

from app.config import settings
from app.exceptions import InvalidScanPayload

CODE_ALPHABET = string.ascii_uppercase + string.digits
MAX_GENERATION_ROUNDS = 20


def generate_code(length: Optional[int] = None, prefix: Optional[str] = None) -> str:
    """Random tag code, e.g. TAG-7Q2M9XKD."""
    length = length or settings.TAG_CODE_LENGTH
    prefix = settings.TAG_CODE_PREFIX if prefix is None else prefix
    return prefix + "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def generate_unique_codes(
    count: int,
    is_taken: Optional[Callable[[list], Iterable[str]]] = None,
) -> list:
    """
    Generate `count` distinct codes.

    `is_taken` receives a list of candidates and returns the ones already
    stored; those are dropped and regenerated. Codes seen in this call are
    never handed out twice. The DB unique index remains the final authority.
    """
    codes = []
    seen = set()
    rounds = 0
    while len(codes) < count:
        rounds += 1
        if rounds > MAX_GENERATION_ROUNDS:
            raise RuntimeError(f"Could not generate {count} unique tag codes after {MAX_GENERATION_ROUNDS} rounds")

        candidates = []
        while len(candidates) < count - len(codes):
            code = generate_code()
            if code in seen:
                continue
            seen.add(code)
            candidates.append(code)

        taken = set(is_taken(candidates)) if is_taken else set()
        codes.extend(c for c in candidates if c not in taken)
    return codes


def looks_like_code(identifier: str) -> bool:
    """True if the identifier has the tag code shape (prefix + alphanumerics)."""
    prefix = settings.TAG_CODE_PREFIX
    if not identifier or not identifier.startswith(prefix):
        return False
    suffix = identifier[len(prefix):]
    return bool(suffix) and all(c in CODE_ALPHABET for c in suffix)


def _xor(data: bytes, key: bytes) -> bytes:
    return bytes(b ^ key[i % len(key)] for i, b in enumerate(data))


def _payload_header() -> str:
    return f"{settings.QR_PAYLOAD_PREFIX}{settings.QR_PAYLOAD_VERSION}:"


def build_scan_payload(code: str, key: Optional[str] = None) -> str:
    """Obfuscated string encoded into the printed QR for `code`."""
    key = key or settings.QR_SHARED_SECRET
    if not key:
        raise ValueError("QR shared secret is not configured")
    body = base64.b64encode(_xor(code.encode("utf-8"), key.encode("utf-8"))).decode("ascii")
    return _payload_header() + body


def decode_scan_payload(payload: str, key: Optional[str] = None) -> str:
    """Recover the tag code from a scanned QR payload."""
    key = key or settings.QR_SHARED_SECRET
    if not key:
        raise ValueError("QR shared secret is not configured")

    header = _payload_header()
    if not payload or not payload.startswith(settings.QR_PAYLOAD_PREFIX):
        raise InvalidScanPayload("Not a CarCard QR code")
    if not payload.startswith(header):
        raise InvalidScanPayload("Unsupported QR payload version")

    try:
        raw = base64.b64decode(payload[len(header):], validate=True)
        code = _xor(raw, key.encode("utf-8")).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as e:
        raise InvalidScanPayload("Corrupted QR payload") from e

    if not looks_like_code(code):
        raise InvalidScanPayload("Corrupted QR payload")
    return code
