from __future__ import annotations

import base64
import binascii

import structlog
from fastapi import Request
from fastapi.security.utils import get_authorization_scheme_param

from promwarp.discovery.errors import AuthMissingError
from promwarp.warp10.client import TOKEN_HEADER

logger = structlog.get_logger()


def _basic_auth_password(credentials: str) -> str | None:
    try:
        decoded = base64.b64decode(credentials, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        logger.warning("basic_auth_decode_failed")
        return None
    _, sep, password = decoded.partition(":")
    return password if sep else None


def retrieve_token(request: Request) -> str | None:
    """
    Extract the Warp 10 READ token from a request.

    Lookup order: the X-Warp10-Token header, the password of HTTP Basic
    auth (how Grafana datasources pass it), then a Bearer token.
    """
    token = request.headers.get(TOKEN_HEADER)
    if token:
        return token

    scheme, credentials = get_authorization_scheme_param(request.headers.get("Authorization"))
    if not credentials:
        return None
    if scheme.lower() == "basic":
        return _basic_auth_password(credentials) or None
    if scheme.lower() == "bearer":
        return credentials
    return None


async def require_token(request: Request) -> str:
    """Dependency returning the READ token or failing with 401."""
    token = retrieve_token(request)
    if not token:
        raise AuthMissingError("please provide a READ token")
    return token
