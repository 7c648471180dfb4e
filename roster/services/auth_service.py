"""Auth service: registration, login, refresh-token rotation, logout."""

import logging
import uuid
from dataclasses import dataclass
from typing import Optional, List, Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from roster.core.config import Settings, settings
from roster.core.exceptions import (
    AuthenticationError,
    InternalError,
    InvalidCredentialsError,
    InvalidOrRevokedTokenError,
    InvalidTokenError,
    RefreshTokenRequiredError,
    ResourceNotFoundError,
    RoleNotFoundError,
    SessionConflictError,
    UserAlreadyExistsError,
)
from roster.core.security import (
    PasswordHasher,
    TokenCodec,
    password_hasher,
    token_codec,
)
from roster.db.session import transaction
from roster.models.role import Role
from roster.models.session_metadata import DEFAULT_DEVICE_ID, SessionMetadata, utcnow
from roster.models.user import User
from roster.services import audit_service as audit
from roster.services.audit_service import audit_service

logger = logging.getLogger("roster.auth")


@dataclass
class ClientInfo:
    """Request-derived facts recorded on the session row."""
    ip_address: str = ""
    user_agent: str = ""
    device_id: str = DEFAULT_DEVICE_ID


@dataclass
class TokenPair:
    access_token: str
    refresh_token: str
    session_id: str


class AuthService:
    """Handles authentication and the session/token lifecycle.

    Session metadata rows are written only here. Each row stores the argon2
    hash of the one refresh token it currently trusts.
    """

    def __init__(
        self,
        hasher: PasswordHasher = password_hasher,
        codec: TokenCodec = token_codec,
        cfg: Settings = settings,
    ):
        self.hasher = hasher
        self.codec = codec
        self.settings = cfg

    # ---- helpers ----

    def _issue_pair(self, user: User, session_id: str) -> TokenPair:
        access_token = self.codec.issue_access_token(
            {"id": user.id, "email": user.email, "role": user.role_name, "sid": session_id}
        )
        refresh_token = self.codec.issue_refresh_token({"id": user.id, "sid": session_id})
        return TokenPair(access_token, refresh_token, session_id)

    def _store_refresh_token(self, row: SessionMetadata, refresh_token: str, client: ClientInfo) -> None:
        """Overwrite the row's trusted token (rotation, never append)."""
        row.refresh_token_hash = self.hasher.hash(refresh_token)
        row.ip_address = (client.ip_address or "")[:45]
        row.user_agent = (client.user_agent or "")[:500]
        row.expires_at = utcnow() + self.codec.refresh_lifetime
        row.is_revoked = False

    def _open_session(self, db: Session, user: User, client: ClientInfo) -> TokenPair:
        """Create or reuse the (user, device) row and issue a fresh pair for it."""
        row = (
            db.query(SessionMetadata)
            .filter(
                SessionMetadata.user_id == user.id,
                SessionMetadata.device_id == client.device_id,
            )
            .first()
        )
        if row is None:
            row = SessionMetadata(user_id=user.id, device_id=client.device_id)
            db.add(row)
        row.session_id = uuid.uuid4().hex
        pair = self._issue_pair(user, row.session_id)
        self._store_refresh_token(row, pair.refresh_token, client)
        return pair

    # ---- flows ----

    def register(
        self,
        db: Session,
        first_name: str,
        last_name: str,
        email: str,
        password: str,
        client: ClientInfo,
        role_name: Optional[str] = None,
    ) -> Tuple[User, TokenPair]:
        """Create a user and its first session in one transaction.

        Raises:
            RoleNotFoundError: If the requested role does not exist.
            UserAlreadyExistsError: If the email is taken.
        """
        role_name = role_name or self.settings.DEFAULT_ROLE
        try:
            with transaction(db):
                role = db.query(Role).filter(Role.name == role_name).first()
                if not role:
                    raise RoleNotFoundError(f"Role '{role_name}' not found")

                if db.query(User).filter(User.email == email).first():
                    raise UserAlreadyExistsError()

                user = User(first_name=first_name, last_name=last_name, email=email, role=role)
                user.password = password
                db.add(user)
                db.flush()

                pair = self._open_session(db, user, client)
        except IntegrityError as e:
            # Lost a race against a concurrent registration for the same email
            raise UserAlreadyExistsError() from e
        except SQLAlchemyError as e:
            logger.exception("Registration failed for %s", email)
            raise InternalError() from e

        logger.info("Registered user %s (%s)", user.id, role_name)
        audit_service.log(
            db, user.id, user.email, audit.USER_REGISTER, "user", user.id,
            client.ip_address, client.user_agent,
        )
        return user, pair

    def login(self, db: Session, email: str, password: str, client: ClientInfo) -> Tuple[User, TokenPair]:
        """Authenticate and rotate the (user, device) session.

        Raises:
            InvalidCredentialsError: Unknown email or wrong password, indistinguishably.
        """
        user = db.query(User).filter(User.email == email).first()
        if user is None:
            self.hasher.burn(password)
            self._audit_login_failure(db, None, email, client)
            raise InvalidCredentialsError()
        if not self.hasher.verify(user.password_hash, password):
            self._audit_login_failure(db, user.id, email, client)
            raise InvalidCredentialsError()

        try:
            with transaction(db):
                pair = self._open_session(db, user, client)
        except (IntegrityError, StaleDataError) as e:
            raise SessionConflictError() from e
        except SQLAlchemyError as e:
            logger.exception("Login failed to persist session for user %s", user.id)
            raise InternalError() from e

        audit_service.log(
            db, user.id, user.email, audit.USER_LOGIN, "session", pair.session_id,
            client.ip_address, client.user_agent,
        )
        return user, pair

    def _audit_login_failure(self, db: Session, user_id: Optional[int], email: str, client: ClientInfo) -> None:
        logger.info("Failed login for %s from %s", email, client.ip_address)
        audit_service.log(
            db, user_id, email, audit.USER_LOGIN_FAILED, "user", user_id,
            client.ip_address, client.user_agent,
        )

    def refresh(self, db: Session, refresh_token: Optional[str], client: ClientInfo) -> Tuple[User, TokenPair]:
        """Exchange a refresh token for a new pair, rotating the stored hash.

        Raises:
            RefreshTokenRequiredError: No token supplied.
            InvalidTokenError: Bad signature/expiry or no session behind it.
            InvalidOrRevokedTokenError: Revoked, expired session, or a token
                that was already rotated out.
            SessionConflictError: A concurrent refresh rotated the session first.
        """
        if not refresh_token:
            raise RefreshTokenRequiredError()

        claims = self.codec.verify_refresh_token(refresh_token)
        row = (
            db.query(SessionMetadata)
            .filter(SessionMetadata.session_id == claims.get("sid"))
            .first()
        )
        if row is None or row.user_id != claims["id"]:
            raise InvalidTokenError()

        if row.is_revoked or row.is_expired():
            self._reject_refresh(db, row, client, "revoked or expired session")
        if not self.hasher.verify(row.refresh_token_hash, refresh_token):
            # Signature is fine but the token is not the one this row trusts:
            # it was rotated out, so this is a replay.
            self._reject_refresh(db, row, client, "rotated-out token presented")

        user = row.user
        try:
            with transaction(db):
                pair = self._issue_pair(user, row.session_id)
                self._store_refresh_token(row, pair.refresh_token, client)
        except StaleDataError as e:
            logger.warning("Concurrent refresh on session %s", row.session_id)
            raise SessionConflictError() from e
        except SQLAlchemyError as e:
            logger.exception("Refresh failed to persist session %s", row.session_id)
            raise InternalError() from e

        audit_service.log(
            db, user.id, user.email, audit.TOKEN_REFRESH, "session", pair.session_id,
            client.ip_address, client.user_agent,
        )
        return user, pair

    def _reject_refresh(self, db: Session, row: SessionMetadata, client: ClientInfo, reason: str) -> None:
        logger.warning("Refresh rejected for user %s session %s: %s", row.user_id, row.session_id, reason)
        audit_service.log(
            db, row.user_id, None, audit.TOKEN_REFRESH_REJECTED, "session", row.session_id,
            client.ip_address, client.user_agent,
        )
        raise InvalidOrRevokedTokenError()

    def logout(self, db: Session, access_token: str, client: ClientInfo) -> None:
        """Delete the session named by the access token.

        Raises:
            InvalidTokenError: The access token does not verify.
            AuthenticationError: No session metadata exists for it.
        """
        claims = self.codec.verify_access_token(access_token)
        row = (
            db.query(SessionMetadata)
            .filter(
                SessionMetadata.session_id == claims.get("sid"),
                SessionMetadata.user_id == claims["id"],
            )
            .first()
        )
        if row is None:
            raise AuthenticationError("Token metadata not found")

        session_id = row.session_id
        try:
            with transaction(db):
                db.delete(row)
        except StaleDataError as e:
            raise SessionConflictError() from e

        audit_service.log(
            db, claims["id"], claims.get("email"), audit.USER_LOGOUT, "session", session_id,
            client.ip_address, client.user_agent,
        )

    # ---- user & session administration ----

    @staticmethod
    def get_user(db: Session, user_id: int) -> User:
        """Get a user by id."""
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            raise ResourceNotFoundError("User not found")
        return user

    @staticmethod
    def list_users(db: Session, page: int = 1, page_size: int = 20):
        """List all users with pagination."""
        total = db.query(User).count()
        users = (
            db.query(User)
            .order_by(User.id)
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return {"users": users, "total": total, "page": page}

    def update_user(
        self,
        db: Session,
        user_id: int,
        fields: dict,
        role_name: Optional[str] = None,
    ) -> User:
        """Apply profile changes. A new ``password`` goes through the hashing setter."""
        user = self.get_user(db, user_id)
        with transaction(db):
            for key, value in fields.items():
                setattr(user, key, value)
            if role_name is not None:
                role = db.query(Role).filter(Role.name == role_name).first()
                if not role:
                    raise RoleNotFoundError(f"Role '{role_name}' not found")
                user.role = role
        db.refresh(user)
        return user

    def delete_user(self, db: Session, user_id: int, actor_id: Optional[int] = None) -> None:
        """Delete a user; session metadata rows go with it."""
        user = self.get_user(db, user_id)
        with transaction(db):
            db.delete(user)
        logger.info("Deleted user %s", user_id)
        audit_service.log(db, actor_id, None, audit.USER_DELETED, "user", user_id)

    @staticmethod
    def list_sessions(db: Session, user_id: int) -> List[SessionMetadata]:
        return (
            db.query(SessionMetadata)
            .filter(SessionMetadata.user_id == user_id)
            .order_by(SessionMetadata.id)
            .all()
        )

    @staticmethod
    def get_session_metadata(db: Session, metadata_id: int) -> SessionMetadata:
        row = db.query(SessionMetadata).filter(SessionMetadata.id == metadata_id).first()
        if not row:
            raise ResourceNotFoundError("Token metadata not found")
        return row

    def revoke_sessions(self, db: Session, user_id: int, actor_id: Optional[int] = None) -> int:
        """Flag every session of a user as revoked. Returns the count."""
        self.get_user(db, user_id)
        rows = self.list_sessions(db, user_id)
        try:
            with transaction(db):
                for row in rows:
                    row.is_revoked = True
        except StaleDataError as e:
            raise SessionConflictError() from e
        audit_service.log(db, actor_id, None, audit.SESSION_REVOKED, "user", user_id)
        return len(rows)


auth_service = AuthService()
