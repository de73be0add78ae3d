import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import JWTError, jwt
from passlib.context import CryptContext
from passlib.exc import PasswordValueError, UnknownHashError
from storefront.core.errors import InfrastructureError, Unauthorized, ValidationError

logger = logging.getLogger(__name__)

# bcrypt only reads the first 72 bytes of a password
MAX_PASSWORD_BYTES = 72


def check_password_input(password: str) -> str:
    """
    Reject passwords bcrypt cannot hash faithfully.

    Longer passwords would be cut to 72 bytes, so two different passwords
    could verify against the same credential. NUL bytes end the password
    early for the same reason.
    """
    if "\x00" in password:
        raise ValidationError("Password must not contain NUL characters")
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValidationError(
            f"Password must be at most {MAX_PASSWORD_BYTES} bytes long")
    return password


class CredentialStore:
    """
    Hashes and verifies passwords with bcrypt.

    Built once by create_app() and handed to the services that need it, so
    each app keeps its own work factor.
    """

    def __init__(self, rounds: int = 12):
        # 'deprecated="auto"' allows passlib to handle deprecation warnings automatically
        self._context = CryptContext(
            schemes=["bcrypt"], deprecated="auto", bcrypt__default_rounds=rounds)

    def hash(self, password: str) -> str:
        """Hash a password using bcrypt"""
        check_password_input(password)
        # bcrypt generates a salt per call, so equal passwords hash differently
        try:
            return self._context.hash(password)
        except PasswordValueError as e:
            raise ValidationError(str(e)) from e
        except (ValueError, TypeError) as e:
            raise InfrastructureError(f"Password hashing failed: {e}") from e

    def verify(self, password: str, credential: str) -> bool:
        """Verify a password against a hash using constant-time comparison"""
        try:
            check_password_input(password)
        except ValidationError:
            # No stored credential can have come from such a password
            return False
        try:
            return self._context.verify(password, credential)
        except (ValueError, TypeError, UnknownHashError):
            # Stored value is not a credential we can read: treat as a mismatch
            logger.warning("Stored credential could not be identified")
            return False


class TokenService:
    """
    Issues and verifies signed identity tokens.

    A token carries one claim, the user id in 'sub'. An 'exp' claim is only
    added when expire_minutes is configured.
    """

    def __init__(self, secret_key: str, algorithm: str = "HS256",
                 expire_minutes: Optional[int] = None):
        if not secret_key:
            raise ValueError("secret_key is required")
        self._secret_key = secret_key
        self._algorithm = algorithm
        self._expire_minutes = expire_minutes

    def issue(self, user_id: uuid.UUID) -> str:
        to_encode = {"sub": str(user_id)}
        if self._expire_minutes is not None:
            expire = datetime.now(timezone.utc) + \
                timedelta(minutes=self._expire_minutes)
            to_encode["exp"] = expire
        try:
            return jwt.encode(to_encode, self._secret_key, algorithm=self._algorithm)
        except JWTError as e:
            raise InfrastructureError(f"Token signing failed: {e}") from e

    def verify(self, token: str) -> uuid.UUID:
        """Return the user id carried by token or raise Unauthorized"""
        try:
            payload = jwt.decode(token, self._secret_key,
                                 algorithms=[self._algorithm])
        except JWTError:
            raise Unauthorized()

        user_id_str = payload.get("sub")
        if not isinstance(user_id_str, str):
            raise Unauthorized()
        try:
            return uuid.UUID(user_id_str)
        except ValueError:
            raise Unauthorized()
