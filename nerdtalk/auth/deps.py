"""
Who is calling.

With a Cognito user pool configured every request must carry a pool-issued
bearer token, checked against the pool's published signing keys. Without a
pool (local runs, tests) the caller is taken at their word: X-User-Sub, or
the raw bearer value as the subject.

Knowing the subject is not enough to post: the caller also needs a user
record, and mutations need a finished onboarding.
"""
from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, Dict, Optional

import jwt
import requests
from fastapi import Depends, Request

from nerdtalk.core.errors import Forbidden, Unauthorized
from nerdtalk.core.settings import S
from nerdtalk.services.users import find_user

logger = logging.getLogger(__name__)

JWKS_TIMEOUT_SECONDS = 10
TOKEN_ALGORITHMS = ["RS256"]


def pool_configured() -> bool:
    return bool(S.cognito_user_pool_id and S.cognito_app_client_id)


def pool_issuer() -> str:
    region = S.cognito_region or S.aws_region
    return f"https://cognito-idp.{region}.amazonaws.com/{S.cognito_user_pool_id}"


@lru_cache(maxsize=4)
def _pool_keys(issuer: str) -> jwt.PyJWKSet:
    try:
        resp = requests.get(f"{issuer}/.well-known/jwks.json", timeout=JWKS_TIMEOUT_SECONDS)
        resp.raise_for_status()
    except requests.RequestException as exc:
        logger.exception("could not fetch signing keys from %s", issuer)
        raise Unauthorized("Cannot verify access token right now") from exc
    try:
        return jwt.PyJWKSet.from_dict(resp.json())
    except (ValueError, jwt.PyJWKSetError) as exc:
        logger.error("signing key set from %s is unusable: %s", issuer, exc)
        raise Unauthorized("Cannot verify access token right now") from exc


def _signing_key(token: str) -> Any:
    try:
        kid = jwt.get_unverified_header(token).get("kid")
    except jwt.PyJWTError as exc:
        raise Unauthorized("Malformed access token") from exc
    for key in _pool_keys(pool_issuer()).keys:
        if key.key_id == kid:
            return key.key
    raise Unauthorized("Access token signed with an unknown key")


def verify_access_token(token: str) -> Dict[str, Any]:
    """
    Signature, expiry and issuer are checked by PyJWT. Cognito access
    tokens carry the app client in client_id rather than aud, so the
    audience is matched here by hand for either token kind.
    """
    try:
        claims = jwt.decode(
            token,
            _signing_key(token),
            algorithms=TOKEN_ALGORITHMS,
            issuer=pool_issuer(),
            options={"verify_aud": False, "require": ["exp", "iss", "sub"]},
        )
    except jwt.ExpiredSignatureError as exc:
        raise Unauthorized("Access token expired") from exc
    except jwt.PyJWTError as exc:
        raise Unauthorized("Invalid access token") from exc

    token_use = claims.get("token_use")
    if S.cognito_expected_token_use and token_use != S.cognito_expected_token_use:
        raise Unauthorized("Unexpected token use")
    client = claims.get("client_id") if token_use == "access" else claims.get("aud")
    if client != S.cognito_app_client_id:
        raise Unauthorized("Access token issued to another client")
    return claims


def bearer_token(request: Request) -> Optional[str]:
    scheme, _, value = (request.headers.get("authorization") or "").partition(" ")
    if scheme.lower() != "bearer" or not value.strip():
        return None
    return value.strip()


async def get_authenticated_user_sub(request: Request) -> str:
    token = bearer_token(request)
    if pool_configured():
        if not token:
            raise Unauthorized("Missing bearer token")
        return str(verify_access_token(token)["sub"])

    subject = request.headers.get("x-user-sub") or token
    if not subject:
        raise Unauthorized("Missing caller identity")
    return subject


async def require_user(user_sub: str = Depends(get_authenticated_user_sub)) -> Dict[str, Any]:
    user = find_user(user_sub)
    if not user:
        raise Forbidden("Complete onboarding first")
    return {"user_id": user_sub, "onboarded": bool(user.get("onboarded")), "user": user}


async def require_onboarded_user(ctx: Dict[str, Any] = Depends(require_user)) -> Dict[str, Any]:
    if not ctx["onboarded"]:
        raise Forbidden("Complete onboarding first")
    return ctx
