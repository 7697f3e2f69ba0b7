# Overview: Signs and verifies JWT bearer tokens carrying user claims.

"""
Token Service

Tokens are RS256-signed JWTs. The header carries a key id ("kid"); the
verifier resolves the public key for that id through a lookup function, so
keys can be rotated by teaching the lookup about a new id before the old
one is retired.

Nothing here touches the database.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Iterable

import jwt
from jwt.algorithms import get_default_algorithms
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from ..errors import InvalidTokenError
from ..time_utils import from_epoch_seconds, to_epoch_seconds


KeyLookup = Callable[[str], Any]


@dataclass(frozen=True)
class Claims:
    """Verified identity: who the caller is, what roles they hold, and for how long."""
    subject: str
    roles: tuple[str, ...] = field(default_factory=tuple)
    issued_at: datetime | None = None
    expires_at: datetime | None = None

    def has_role(self, *roles: str) -> bool:
        return any(role in self.roles for role in roles)

    def to_payload(self) -> dict:
        payload: dict[str, Any] = {"sub": self.subject, "roles": list(self.roles)}
        if self.issued_at is not None:
            payload["iat"] = to_epoch_seconds(self.issued_at)
        if self.expires_at is not None:
            payload["exp"] = to_epoch_seconds(self.expires_at)
        return payload

    @classmethod
    def from_payload(cls, payload: dict) -> "Claims":
        roles = payload.get("roles") or []
        if not isinstance(roles, list) or not all(isinstance(r, str) for r in roles):
            raise InvalidTokenError("token roles claim is malformed")
        subject = payload.get("sub")
        if not isinstance(subject, str) or not subject:
            raise InvalidTokenError("token subject claim is missing")
        iat = payload.get("iat")
        exp = payload.get("exp")
        return cls(
            subject=subject,
            roles=tuple(roles),
            issued_at=from_epoch_seconds(iat) if iat is not None else None,
            expires_at=from_epoch_seconds(exp) if exp is not None else None,
        )


def new_claims(subject: str, roles: Iterable[str], now: datetime, expires: timedelta) -> Claims:
    return Claims(
        subject=subject,
        roles=tuple(roles),
        issued_at=now,
        expires_at=now + expires,
    )


def simple_key_lookup(key_id: str, public_key) -> KeyLookup:
    """Lookup that knows exactly one key id."""
    def lookup(kid: str):
        if kid != key_id:
            raise InvalidTokenError(f"unrecognized key id {kid!r}")
        return public_key
    return lookup


class Authenticator:
    """Issues and validates signed tokens for one private key."""

    def __init__(self, private_key, key_id: str, algorithm: str, key_lookup: KeyLookup):
        if private_key is None:
            raise ValueError("private key cannot be None")
        if not key_id:
            raise ValueError("key id cannot be blank")
        if algorithm not in get_default_algorithms():
            raise ValueError(f"unknown algorithm {algorithm}")
        if key_lookup is None:
            raise ValueError("public key lookup cannot be None")

        self.private_key = private_key
        self.key_id = key_id
        self.algorithm = algorithm
        self.key_lookup = key_lookup

    def generate_token(self, claims: Claims) -> str:
        return jwt.encode(
            claims.to_payload(),
            self.private_key,
            algorithm=self.algorithm,
            headers={"kid": self.key_id},
        )

    def parse_claims(self, token: str) -> Claims:
        """
        Verify a token and return its claims.

        Raises InvalidTokenError for a missing/unknown key id, a bad signature,
        a different algorithm than the one configured, or an expired token.
        """
        try:
            header = jwt.get_unverified_header(token)
        except jwt.PyJWTError as e:
            raise InvalidTokenError(f"malformed token: {e}") from e

        kid = header.get("kid")
        if not kid:
            raise InvalidTokenError("token missing key id (kid) header")

        public_key = self.key_lookup(kid)

        try:
            payload = jwt.decode(
                token,
                public_key,
                algorithms=[self.algorithm],
                options={"require": ["sub", "exp"]},
            )
        except jwt.ExpiredSignatureError as e:
            raise InvalidTokenError("token has expired") from e
        except jwt.PyJWTError as e:
            raise InvalidTokenError(f"token validation failed: {e}") from e

        return Claims.from_payload(payload)


def generate_private_key(bits: int = 2048):
    return rsa.generate_private_key(public_exponent=65537, key_size=bits)


def private_key_to_pem(private_key) -> bytes:
    return private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    )


def load_private_key(pem: bytes):
    return serialization.load_pem_private_key(pem, password=None)


def load_authenticator(config) -> Authenticator:
    """Build the process-wide Authenticator from the configured PEM file."""
    path = config["AUTH_PRIVATE_KEY_FILE"]
    try:
        with open(path, "rb") as fh:
            pem = fh.read()
    except OSError as e:
        raise RuntimeError(f"reading auth private key {path}: {e}") from e

    try:
        private_key = load_private_key(pem)
    except ValueError as e:
        raise RuntimeError(f"parsing auth private key {path}: {e}") from e

    key_id = config["AUTH_KEY_ID"]
    return Authenticator(
        private_key,
        key_id,
        config["AUTH_ALGORITHM"],
        simple_key_lookup(key_id, private_key.public_key()),
    )
