"""Caller identity from the Authorization header."""

from __future__ import annotations

from hmac import compare_digest
from typing import Dict, Mapping, Optional

from ..errors import AuthenticationRequired, ConfigError

LOCAL_DEV_USER = "local-dev"


def bearer_token(headers: Mapping[str, str]) -> Optional[str]:
    auth_header = (headers.get("authorization") or "").strip()
    if not auth_header.startswith("Bearer "):
        return None
    return auth_header[len("Bearer "):].strip() or None


class Authenticator:
    """Resolve a user id; request bodies never supply it.

    ``token`` mode maps static bearer tokens to user ids. ``off`` mode is for
    local development and trusts ``X-User-ID``, defaulting to ``local-dev``.
    """

    def __init__(self, mode: str = "off", tokens: Optional[Dict[str, str]] = None) -> None:
        self.mode = mode
        self._tokens = dict(tokens or {})

    def resolve(self, headers: Mapping[str, str]) -> str:
        if self.mode != "token":
            return (headers.get("x-user-id") or "").strip() or LOCAL_DEV_USER

        if not self._tokens:
            raise ConfigError("API token auth is enabled but no tokens are configured")
        token = bearer_token(headers)
        if token is None:
            raise AuthenticationRequired("Missing bearer token")
        for known, user_id in self._tokens.items():
            if compare_digest(token.encode("utf-8"), known.encode("utf-8")):
                return user_id
        raise AuthenticationRequired("Invalid bearer token")
