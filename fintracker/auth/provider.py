"""
Identity Provider

DESIGN DECISION: Authentication sits behind an abstract interface with
two operations, authenticate() and verify(). Call sites never touch the
credential table or the token format, so a real user store can replace
the demo table without changing them.

The demo provider keeps a fixed table of users in process and issues
signed, expiring JWTs. It is not hardened: passwords are held in memory
as configured and there is no rate limiting.
"""

import hmac
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterable, Optional

from jose import JWTError, jwt
from pydantic import TypeAdapter

from fintracker.config import AuthSettings
from fintracker.models.expense import DemoUser, UserProfile


DEMO_USERS = [
    DemoUser(username="Sarthak_Pawnar_03", password="finance", name="Sarthak Pawnar"),
    DemoUser(username="John Doe", password="Fullstackdev", name="John Doe"),
]


def load_users(path: str) -> list[DemoUser]:
    """
    Read a user table from a JSON file.

    The file holds a list of objects with username, password and name.

    Raises:
        OSError: File cannot be read
        pydantic.ValidationError: Malformed JSON or entries
    """
    return TypeAdapter(list[DemoUser]).validate_json(Path(path).read_text(encoding="utf-8"))


class AuthError(Exception):
    """
    Credentials or token rejected.

    The message is always generic; callers must not learn whether the
    username or the password was wrong.
    """

    def __init__(self, message: str = "Invalid credentials", reason: Optional[str] = None):
        super().__init__(message)
        # Internal detail for logs, never sent to clients
        self.reason = reason or message


class IdentityProvider(ABC):
    """Abstract interface for authenticating users and checking tokens."""

    @abstractmethod
    def authenticate(self, username: str, password: str) -> UserProfile:
        """
        Check a username/password pair.

        Raises:
            AuthError: Unknown user or wrong password
        """
        pass

    @abstractmethod
    def issue_token(self, user: UserProfile) -> str:
        """Create a token proving the user's identity."""
        pass

    @abstractmethod
    def verify(self, token: Optional[str]) -> UserProfile:
        """
        Resolve a token back to its user.

        Raises:
            AuthError: Missing, malformed, expired or unknown token
        """
        pass

    def login(self, username: str, password: str) -> tuple[str, UserProfile]:
        """Authenticate and issue a token in one step."""
        user = self.authenticate(username, password)
        return self.issue_token(user), user


class JWTTokenCodec:
    """Signs and checks HS256 tokens carrying the username as `sub`."""

    def __init__(self, settings: AuthSettings):
        self._secret = settings.jwt_secret
        self._algorithm = settings.jwt_algorithm
        self._ttl = timedelta(minutes=settings.token_ttl_minutes)

    def encode(self, username: str, now: Optional[datetime] = None) -> str:
        now = now or datetime.now(timezone.utc)
        claims = {
            "sub": username,
            "iat": int(now.timestamp()),
            "exp": int((now + self._ttl).timestamp()),
        }
        return jwt.encode(claims, self._secret, algorithm=self._algorithm)

    def decode(self, token: str) -> str:
        """Return the username inside a valid token."""
        try:
            payload = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except JWTError as e:
            raise AuthError("Invalid token", reason=str(e))

        username = payload.get("sub")
        if not isinstance(username, str) or not username:
            raise AuthError("Invalid token", reason="token has no subject")
        return username


class StaticIdentityProvider(IdentityProvider):
    """
    Identity provider backed by a fixed in-process user table.

    The table is, in order of precedence: `users` when given, the file
    named by `settings.users_file`, or DEMO_USERS.
    """

    def __init__(
        self,
        settings: AuthSettings,
        users: Optional[Iterable[DemoUser]] = None,
    ):
        if users is not None:
            table = users
        elif settings.users_file:
            table = load_users(settings.users_file)
        else:
            table = DEMO_USERS
        self._users: dict[str, DemoUser] = {user.username: user for user in table}
        self._codec = JWTTokenCodec(settings)

    def authenticate(self, username: str, password: str) -> UserProfile:
        user = self._users.get(username)
        if user is None:
            raise AuthError(reason="unknown user")

        # Constant-time comparison
        if not hmac.compare_digest(
            user.password.get_secret_value().encode(),
            (password or "").encode(),
        ):
            raise AuthError(reason="password mismatch")

        return user.profile()

    def issue_token(self, user: UserProfile) -> str:
        return self._codec.encode(user.username)

    def verify(self, token: Optional[str]) -> UserProfile:
        if not token:
            raise AuthError("Invalid token", reason="no token provided")

        username = self._codec.decode(token)
        user = self._users.get(username)
        if user is None:
            raise AuthError("Invalid token", reason="user no longer exists")
        return user.profile()
