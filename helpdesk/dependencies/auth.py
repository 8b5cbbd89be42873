from __future__ import annotations

import hmac
import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from threading import Lock
from typing import Annotated

from fastapi import Depends, HTTPException, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

logger = logging.getLogger(__name__)


class Role(str, Enum):
    """Supported roles."""

    ADMIN = "admin"
    STAFF = "staff"


class User:
    """Simple representation of an authenticated user."""

    def __init__(self, username: str, roles: tuple[Role, ...]):
        self.username = username
        self.roles = roles

    def has_role(self, role: Role) -> bool:
        return role in self.roles


@dataclass(frozen=True, slots=True)
class LoginResult:
    token: str
    username: str
    expires_at: datetime


@dataclass(frozen=True, slots=True)
class _IssuedToken:
    username: str
    roles: tuple[Role, ...]
    expires_at: datetime


class AuthService:
    """Check staff credentials and issue opaque bearer tokens.

    Tokens are random strings kept in memory until they expire, so restarting
    the process logs everybody out. An empty configured password disables
    logins altogether.
    """

    def __init__(
        self,
        *,
        username: str,
        password: str,
        token_ttl: timedelta = timedelta(hours=24),
        roles: tuple[Role, ...] = (Role.ADMIN, Role.STAFF),
    ) -> None:
        self._username = username
        self._password = password
        self._token_ttl = token_ttl
        self._roles = roles
        self._tokens: dict[str, _IssuedToken] = {}
        self._lock = Lock()
        if not username or not password:
            logger.warning("Login credentials are not configured; every login will be rejected")

    def authenticate(self, username: str, password: str) -> LoginResult | None:
        if not self._username or not self._password:
            return None
        valid_user = hmac.compare_digest(username.encode(), self._username.encode())
        valid_password = hmac.compare_digest(password.encode(), self._password.encode())
        if not (valid_user and valid_password):
            logger.warning("Rejected login for user %s", username)
            return None

        token = secrets.token_urlsafe(32)
        expires_at = datetime.now(timezone.utc) + self._token_ttl
        with self._lock:
            self._purge_expired()
            self._tokens[token] = _IssuedToken(username=username, roles=self._roles, expires_at=expires_at)
        logger.info("User %s logged in", username)
        return LoginResult(token=token, username=username, expires_at=expires_at)

    def resolve(self, token: str | None) -> User | None:
        if not token:
            return None
        with self._lock:
            issued = self._tokens.get(token)
            if issued is None:
                return None
            if issued.expires_at <= datetime.now(timezone.utc):
                del self._tokens[token]
                return None
        return User(username=issued.username, roles=issued.roles)

    def revoke(self, token: str) -> None:
        with self._lock:
            self._tokens.pop(token, None)

    def _purge_expired(self) -> None:
        now = datetime.now(timezone.utc)
        for token in [token for token, issued in self._tokens.items() if issued.expires_at <= now]:
            del self._tokens[token]


bearer_scheme = HTTPBearer(auto_error=False)


async def get_auth_service(request: Request) -> AuthService:
    service = getattr(request.app.state, "auth_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Authentication is not configured")
    return service


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Security(bearer_scheme)],
    auth_service: Annotated[AuthService, Depends(get_auth_service)],
) -> User:
    """Resolve the bearer token to a user or reject the request with 401."""

    token = credentials.credentials if credentials is not None else None
    user = auth_service.resolve(token)
    if user is None:
        raise HTTPException(
            status_code=401,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def role_required(role: Role) -> Callable[[User], User]:
    """Dependency factory ensuring the current user has the requested role."""

    async def dependency(user: Annotated[User, Depends(get_current_user)]) -> User:
        if not user.has_role(role):
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return user

    return dependency


CurrentUser = Annotated[User, Depends(get_current_user)]
AuthServiceDep = Annotated[AuthService, Depends(get_auth_service)]
