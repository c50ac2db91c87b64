"""
Request authentication for the Telehealth Admin Service.

Every request resolves to an explicit AuthSession value:

    Anonymous                      - no credentials presented
    Authenticated(user_id, role)   - a valid X-API-Key was presented

The session is built by the get_auth_session dependency and injected into
routers and services; nothing reads a module-level "current user".

Usage in routers:
    @router.delete("/{doc_id}", dependencies=[Depends(require_role(Role.ADMIN))])

    async def create(..., session: Authenticated = Depends(require_authenticated)):
        service.create(payload, actor=session)
"""
import logging
import secrets
from dataclasses import dataclass
from typing import Callable, Optional, Union

from fastapi import Depends, Security
from fastapi.security import APIKeyHeader

from telehealth_svc.core.config import API_KEY, API_ROLE, API_USER_ID, Role
from telehealth_svc.core.exceptions import (
    AuthenticationRequiredError,
    InsufficientRoleError,
    InvalidCredentialsError,
)

logger = logging.getLogger(__name__)

API_KEY_HEADER_NAME = "X-API-Key"

api_key_header = APIKeyHeader(
    name=API_KEY_HEADER_NAME,
    auto_error=False,
    description="API key for authenticating requests. Include in the X-API-Key header.",
)


@dataclass(frozen=True)
class Anonymous:
    """Session for a request without credentials."""

    @property
    def actor_id(self) -> str:
        return "anonymous"


@dataclass(frozen=True)
class Authenticated:
    """Session for a request with valid credentials."""
    user_id: str
    role: Role

    @property
    def actor_id(self) -> str:
        return self.user_id


AuthSession = Union[Anonymous, Authenticated]


async def get_auth_session(
    api_key: Optional[str] = Security(api_key_header),
) -> AuthSession:
    """
    Resolve the request's AuthSession from the X-API-Key header.

    Uses constant-time comparison to prevent timing attacks.

    Raises:
        InvalidCredentialsError: 403 if a key is presented but does not match.
    """
    if api_key is None:
        return Anonymous()

    if not secrets.compare_digest(api_key, API_KEY):
        logger.warning("API request with invalid API key")
        raise InvalidCredentialsError()

    return Authenticated(user_id=API_USER_ID, role=API_ROLE)


async def require_authenticated(
    session: AuthSession = Depends(get_auth_session),
) -> Authenticated:
    """
    Dependency that only lets authenticated sessions through.

    Raises:
        AuthenticationRequiredError: 401 for anonymous sessions.
    """
    if not isinstance(session, Authenticated):
        logger.warning("API request without authentication header")
        raise AuthenticationRequiredError()
    return session


def require_role(*roles: Role) -> Callable:
    """
    Build a dependency that requires an authenticated session with one of `roles`.

    Raises:
        AuthenticationRequiredError: 401 for anonymous sessions.
        InsufficientRoleError: 403 when the role is not allowed.
    """
    async def _check(session: Authenticated = Depends(require_authenticated)) -> Authenticated:
        if session.role not in roles:
            logger.warning(
                "Role not permitted for action",
                extra={"role": session.role.value, "allowed": [r.value for r in roles]}
            )
            raise InsufficientRoleError()
        return session

    return _check
