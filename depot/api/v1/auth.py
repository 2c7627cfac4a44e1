"""Auth API endpoints.

Sign-in exchanges a bearer secret for an HttpOnly session cookie carrying the
same secret; every later request is resolved again through the credential
service, so revocation and rotation take effect immediately.
"""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Request, Response
from pydantic import BaseModel

from depot.api.dependencies import (
    AuthDep,
    CredentialServiceDep,
    OptionalAuthDep,
)
from depot.config import get_settings
from depot.errors import UnauthenticatedError
from depot.models.identity import Identity

router = APIRouter()


class RouteResponse(BaseModel):
    path: str
    permission: str


class IdentityResponse(BaseModel):
    """Identity as exposed over HTTP. Never includes the secret or its hash."""

    id: int
    kind: str
    name: str
    description: str | None
    created_at: datetime
    permissions: list[str]
    routes: list[RouteResponse]


def _identity_to_response(identity: Identity) -> IdentityResponse:
    return IdentityResponse(
        id=identity.id,
        kind=identity.kind.value,
        name=identity.name,
        description=identity.description,
        created_at=identity.created_at,
        permissions=sorted(identity.permissions),
        routes=[
            RouteResponse(path=route.path, permission=route.permission.value)
            for route in identity.routes
        ],
    )


@router.post("/signin", response_model=IdentityResponse)
async def signin(
    request: Request,
    response: Response,
    credentials: CredentialServiceDep,
) -> IdentityResponse:
    """Validate a bearer secret and start a cookie session."""
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise UnauthenticatedError("Missing token")

    secret = auth_header[len("Bearer "):]
    identity = await credentials.resolve_by_secret(secret)
    if identity is None:
        raise UnauthenticatedError("Invalid token")

    security = get_settings().security
    response.set_cookie(
        key=security.session_cookie,
        value=secret,
        max_age=security.session_ttl_seconds,
        path="/",
        httponly=True,
        samesite="lax",
    )
    return _identity_to_response(identity)


@router.post("/signout")
async def signout(response: Response, identity: OptionalAuthDep) -> dict[str, str]:
    """End the cookie session."""
    if identity is None:
        raise UnauthenticatedError("No active session")

    response.delete_cookie(get_settings().security.session_cookie, path="/")
    return {"status": "signed_out"}


@router.get("/me", response_model=IdentityResponse)
async def me(identity: AuthDep) -> IdentityResponse:
    """Return the identity behind the presented secret."""
    return _identity_to_response(identity)
