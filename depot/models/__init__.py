"""SQLModel data models."""

from depot.models.identity import (
    MANAGER,
    UPLOADER,
    AccessToken,
    Identity,
    IdentityKind,
    IssuedIdentity,
    RouteGrant,
    RoutePermission,
    TokenPermission,
    TokenRoute,
    normalize_permission,
    parse_route_permission,
)

__all__ = [
    "MANAGER",
    "UPLOADER",
    "AccessToken",
    "Identity",
    "IdentityKind",
    "IssuedIdentity",
    "RouteGrant",
    "RoutePermission",
    "TokenPermission",
    "TokenRoute",
    "normalize_permission",
    "parse_route_permission",
]
