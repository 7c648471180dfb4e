"""Password hashing (argon2id) and the access/refresh JWT codec."""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any

from argon2 import PasswordHasher as Argon2Hasher, Type
from argon2.exceptions import (
    HashingError,
    InvalidHashError,
    VerificationError,
    VerifyMismatchError,
)
from fastapi.security import HTTPBearer
from jose import JWTError, jwt

from roster.core.config import Settings, settings
from roster.core.exceptions import HasherError, InvalidTokenError

logger = logging.getLogger("roster.security")

# Bearer scheme; missing header yields None so callers pick the status code
security_scheme = HTTPBearer(auto_error=False)

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


class PasswordHasher:
    """One-way salted hashing for passwords and refresh tokens.

    ``verify`` returns False only on a genuine mismatch. A corrupt digest or a
    failure inside argon2 raises :class:`HasherError`, so callers can tell
    "wrong password" apart from "hasher crashed".
    """

    def __init__(self, time_cost: int = 3, memory_cost: int = 65536, parallelism: int = 4):
        self._hasher = Argon2Hasher(
            time_cost=time_cost,
            memory_cost=memory_cost,
            parallelism=parallelism,
            type=Type.ID,
        )
        self._dummy_digest: Optional[str] = None

    @classmethod
    def from_settings(cls, cfg: Settings) -> "PasswordHasher":
        return cls(
            time_cost=cfg.PASSWORD_HASH_TIME_COST,
            memory_cost=cfg.PASSWORD_HASH_MEMORY_COST,
            parallelism=cfg.PASSWORD_HASH_PARALLELISM,
        )

    def hash(self, plaintext: str) -> str:
        try:
            return self._hasher.hash(plaintext)
        except HashingError as e:
            logger.error("argon2 hashing failed: %s", e)
            raise HasherError("Password hashing failed") from e

    def verify(self, digest: str, plaintext: str) -> bool:
        try:
            return self._hasher.verify(digest, plaintext)
        except VerifyMismatchError:
            return False
        except (InvalidHashError, VerificationError) as e:
            logger.error("argon2 verification failed: %s", e)
            raise HasherError("Password verification failed") from e

    def burn(self, plaintext: str) -> None:
        """Run a verification against a throwaway digest.

        Used on login for unknown emails so both failure paths cost one
        argon2 verification.
        """
        if self._dummy_digest is None:
            self._dummy_digest = self.hash(uuid.uuid4().hex)
        self.verify(self._dummy_digest, plaintext)


class TokenCodec:
    """Signs and verifies access and refresh tokens.

    The two token classes use separate secrets and lifetimes. Refresh tokens
    carry only the user id, the session id and a random ``jti``.
    """

    def __init__(self, cfg: Settings):
        self.settings = cfg

    def _encode(self, claims: Dict[str, Any], secret: str, token_type: str, lifetime: timedelta) -> str:
        now = datetime.now(timezone.utc)
        to_encode = dict(claims)
        to_encode.update({"type": token_type, "iat": now, "exp": now + lifetime})
        return jwt.encode(to_encode, secret, algorithm=self.settings.JWT_ALGORITHM)

    def _decode(self, token: str, secret: str, token_type: str) -> Dict[str, Any]:
        try:
            payload = jwt.decode(token, secret, algorithms=[self.settings.JWT_ALGORITHM])
        except JWTError:
            raise InvalidTokenError()
        if payload.get("type") != token_type or payload.get("id") is None:
            raise InvalidTokenError()
        return payload

    def issue_access_token(self, claims: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
        """Create an access token from ``{id, email, role, sid}``."""
        data = {
            "id": claims["id"],
            "email": claims["email"],
            "role": claims["role"],
            "sid": claims.get("sid"),
        }
        return self._encode(
            data,
            self.settings.JWT_SECRET,
            ACCESS_TOKEN_TYPE,
            expires_delta or timedelta(minutes=self.settings.ACCESS_TOKEN_EXPIRE_MINUTES),
        )

    def issue_refresh_token(self, claims: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
        """Create a refresh token from ``{id, sid}``."""
        data = {"id": claims["id"], "sid": claims.get("sid"), "jti": uuid.uuid4().hex}
        return self._encode(
            data,
            self.settings.JWT_REFRESH_SECRET,
            REFRESH_TOKEN_TYPE,
            expires_delta or self.refresh_lifetime,
        )

    def verify_access_token(self, token: str) -> Dict[str, Any]:
        return self._decode(token, self.settings.JWT_SECRET, ACCESS_TOKEN_TYPE)

    def verify_refresh_token(self, token: str) -> Dict[str, Any]:
        return self._decode(token, self.settings.JWT_REFRESH_SECRET, REFRESH_TOKEN_TYPE)

    @property
    def refresh_lifetime(self) -> timedelta:
        return timedelta(days=self.settings.REFRESH_TOKEN_EXPIRE_DAYS)


password_hasher = PasswordHasher.from_settings(settings)
token_codec = TokenCodec(settings)
