"""FastAPI dependencies for Depot API.

Provides dependency injection for:
- Database sessions (via the credential service)
- Credential service and artifact store
- Authentication (bearer header or session cookie)
- Route-scoped authorization
"""

from __future__ import annotations

from functools import lru_cache
from typing import Annotated

import structlog
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from depot.config import get_settings
from depot.db.session import get_session_dependency
from depot.errors import InsufficientScopeError, UnauthenticatedError
from depot.models.identity import Identity, RoutePermission
from depot.services.access import enforce, is_manager
from depot.services.credentials import CredentialService
from depot.storage.artifacts import ArtifactStore

logger = structlog.get_logger()

_BEARER = "Bearer "


@lru_cache
def get_artifact_store() -> ArtifactStore:
    """Get cached artifact store built from settings."""
    return ArtifactStore.from_settings(get_settings())


async def get_credential_service(
    session: Annotated[AsyncSession, Depends(get_session_dependency)],
) -> CredentialService:
    """Get CredentialService with injected dependencies."""
    return CredentialService(session)


def extract_secret(request: Request) -> str | None:
    """Bearer header first, then the session cookie."""
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith(_BEARER):
        return auth_header[len(_BEARER):] or None
    return request.cookies.get(get_settings().security.session_cookie) or None


CredentialServiceDep = Annotated[CredentialService, Depends(get_credential_service)]


async def optional_identity(
    request: Request,
    credentials: CredentialServiceDep,
) -> Identity | None:
    """Resolve the presented secret, or None when absent/invalid."""
    secret = extract_secret(request)
    if secret is None:
        return None
    identity = await credentials.resolve_by_secret(secret)
    if identity is not None:
        logger.debug("auth.success", name=identity.name)
    return identity


async def authenticate(
    request: Request,
    credentials: CredentialServiceDep,
) -> Identity:
    """Authenticate request and return the identity.

    Raises:
        UnauthenticatedError: If no secret is presented or it does not resolve
    """
    secret = extract_secret(request)
    if secret is None:
        raise UnauthenticatedError("Token required")

    identity = await credentials.resolve_by_secret(secret)
    if identity is None:
        logger.info("auth.failed", reason="invalid_token")
        raise UnauthenticatedError("Invalid token")

    logger.debug("auth.success", name=identity.name)
    return identity


# Type aliases for cleaner dependency injection
ArtifactStoreDep = Annotated[ArtifactStore, Depends(get_artifact_store)]
AuthDep = Annotated[Identity, Depends(authenticate)]
OptionalAuthDep = Annotated[Identity | None, Depends(optional_identity)]


def require_access(
    identity: Identity | None,
    requested_path: str,
    required: RoutePermission,
) -> Identity:
    """Authorize ``identity`` for ``requested_path`` or raise 401/403."""
    try:
        return enforce(identity, requested_path, required)
    except InsufficientScopeError:
        logger.info(
            "auth.denied",
            name=identity.name if identity else None,
            path=requested_path,
            required=required.value,
        )
        raise


def require_manager(identity: Identity | None) -> Identity:
    """Allow only identities holding the MANAGER permission."""
    if identity is None:
        raise UnauthenticatedError("Token required")
    if not is_manager(identity):
        logger.info("auth.denied", name=identity.name, required="MANAGER")
        raise InsufficientScopeError(
            message="Token does not have MANAGER permission",
            details={"required": "MANAGER"},
        )
    return identity
