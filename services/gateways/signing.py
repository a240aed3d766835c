"""Canonical parameter strings and HMAC signatures for redirect gateways."""
import hashlib
import hmac
from typing import Any, Mapping, Tuple
from urllib.parse import quote_plus

HASHES = {
    "sha256": hashlib.sha256,
    "sha512": hashlib.sha512,
}


def canonical_query(params: Mapping[str, Any]) -> str:
    """``key=value&...`` with keys sorted ascending, both sides form-encoded."""
    return "&".join(
        f"{quote_plus(str(key))}={quote_plus(str(params[key]))}" for key in sorted(params)
    )


def hmac_hex(secret: str, message: str, algorithm: str) -> str:
    digest = HASHES[algorithm]
    return hmac.new(secret.encode("utf-8"), message.encode("utf-8"), digest).hexdigest()


def sign_params(params: Mapping[str, Any], secret: str, algorithm: str) -> str:
    return hmac_hex(secret, canonical_query(params), algorithm)


def signed_query(params: Mapping[str, Any], secret: str, algorithm: str, field: str) -> Tuple[str, str]:
    """Return the canonical query with the signature appended, and the signature."""
    signature = sign_params(params, secret, algorithm)
    return f"{canonical_query(params)}&{field}={signature}", signature


def signatures_match(expected: str, received: str | None) -> bool:
    if not received:
        return False
    return hmac.compare_digest(expected.lower(), received.lower())
