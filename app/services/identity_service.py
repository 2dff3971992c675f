"""
Identity Service — verification of portal ID tokens.

Two signing modes:
    HS256   AUTH_TOKEN_SECRET shared secret (development, tests, scripts)
    RS256   tokens issued by the identity provider, verified against the
            provider's JWKS (AUTH_JWKS_URL + AUTH_AUDIENCE + AUTH_ISSUER)

Token payload (HS256 mode):
{
    "sub": <uid>,
    "email": <email>,
    "iat": <issued_at>,
    "exp": <expires_at>,
    "admin": <optional bool claim>
}
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

import jwt
from flask import current_app

from app.core.exceptions import AuthenticationError

logger = logging.getLogger(__name__)

# ─── Defaults ────────────────────────────────────────────────
DEFAULT_EXPIRES = 3600
ALGORITHM = "HS256"
PROVIDER_ALGORITHMS = ["RS256"]

TOKEN_MISSING_MESSAGE = "Não autorizado: Token não fornecido."
TOKEN_INVALID_MESSAGE = "Token de autenticação inválido ou expirado."

_jwks_clients: dict[str, jwt.PyJWKClient] = {}


@dataclass
class Identity:
    uid: str
    email: str | None
    claims: dict = field(default_factory=dict)

    @property
    def normalized_email(self) -> str:
        return (self.email or "").strip().lower()


def _get_secret():
    return current_app.config.get("AUTH_TOKEN_SECRET")


def _get_jwks_client(url: str) -> jwt.PyJWKClient:
    client = _jwks_clients.get(url)
    if client is None:
        client = jwt.PyJWKClient(url, cache_keys=True)
        _jwks_clients[url] = client
    return client


# ═══════════════════════════════════════════════════════════════
# Token Generation (shared-secret mode only)
# ═══════════════════════════════════════════════════════════════
def issue_token(uid: str, email: str, expires_in: int = DEFAULT_EXPIRES, **claims) -> str:
    """Sign a development ID token with the shared secret."""
    secret = _get_secret()
    if not secret:
        raise RuntimeError("AUTH_TOKEN_SECRET is not configured")
    now = datetime.now(timezone.utc)
    payload = {
        "sub": uid,
        "email": email,
        "iat": now,
        "exp": now + timedelta(seconds=expires_in),
        "jti": str(uuid.uuid4()),
    }
    payload.update(claims)
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


# ═══════════════════════════════════════════════════════════════
# Token Verification
# ═══════════════════════════════════════════════════════════════
def decode_id_token(token: str) -> dict:
    """
    Decode and verify an ID token.

    Returns the payload dict on success.
    Raises jwt exceptions on failure (ExpiredSignatureError, InvalidTokenError, ...).
    """
    jwks_url = current_app.config.get("AUTH_JWKS_URL")
    if jwks_url:
        signing_key = _get_jwks_client(jwks_url).get_signing_key_from_jwt(token)
        audience = current_app.config.get("AUTH_AUDIENCE")
        issuer = current_app.config.get("AUTH_ISSUER")
        return jwt.decode(
            token,
            signing_key.key,
            algorithms=PROVIDER_ALGORITHMS,
            audience=audience,
            issuer=issuer,
            options={"verify_aud": bool(audience), "verify_iss": bool(issuer)},
        )
    secret = _get_secret()
    if not secret:
        raise jwt.InvalidTokenError("No token verification key configured")
    return jwt.decode(token, secret, algorithms=[ALGORITHM])


def verify_id_token(token: str) -> Identity:
    """Verify ``token`` and return the caller's identity.

    Raises AuthenticationError for any expired, malformed or untrusted token.
    """
    if not token:
        raise AuthenticationError(TOKEN_MISSING_MESSAGE)
    try:
        payload = decode_id_token(token)
    except jwt.ExpiredSignatureError as exc:
        logger.info("Rejected expired ID token")
        raise AuthenticationError(TOKEN_INVALID_MESSAGE) from exc
    except (jwt.InvalidTokenError, jwt.PyJWKClientError) as exc:
        logger.warning("Rejected invalid ID token: %s", exc)
        raise AuthenticationError(TOKEN_INVALID_MESSAGE) from exc

    uid = payload.get("sub") or payload.get("user_id") or payload.get("uid")
    if not uid:
        raise AuthenticationError(TOKEN_INVALID_MESSAGE)
    return Identity(uid=str(uid), email=payload.get("email"), claims=payload)


def bearer_token(header_value: str | None) -> str | None:
    """Extract the token from an ``Authorization: Bearer ...`` header value."""
    if not header_value or not header_value.startswith("Bearer "):
        return None
    return header_value[7:].strip() or None
