"""HMAC request signing: signature = hex(HMAC-SHA256(secret, urlencoded query))."""

import hashlib
import hmac
from typing import Mapping, Tuple
from urllib.parse import urlencode


def create_signature(query_string: str, secret_key: str) -> str:
    return hmac.new(secret_key.encode("utf-8"), query_string.encode("utf-8"), hashlib.sha256).hexdigest()


def sign_params(params: Mapping[str, str], secret_key: str) -> Tuple[str, str]:
    """Returns (query, signature). Parameters are encoded in insertion order."""
    query = urlencode(list(params.items()))
    return query, create_signature(query, secret_key)


def signed_query(params: Mapping[str, str], secret_key: str) -> str:
    query, signature = sign_params(params, secret_key)
    return f"{query}&signature={signature}" if query else f"signature={signature}"
