"""Access evaluation.

Pure decision over a resolved identity: no I/O, no mutation.

Rules:
1. No identity -> deny (UNAUTHENTICATED)
2. MANAGER permission (case-insensitive, alias ``M``) -> allow, routes ignored
3. Any route grant whose prefix matches the requested path and whose
   permission satisfies the requirement (WRITE satisfies READ) -> allow
4. Otherwise -> deny (INSUFFICIENT_SCOPE)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from depot.errors import InsufficientScopeError, UnauthenticatedError
from depot.models.identity import (
    MANAGER,
    Identity,
    RoutePermission,
    normalize_permission,
)


class DenyReason(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    INSUFFICIENT_SCOPE = "insufficient_scope"


@dataclass(frozen=True)
class AccessDecision:
    """Outcome of :func:`authorize`."""

    allowed: bool
    reason: DenyReason | None = None

    def __bool__(self) -> bool:
        return self.allowed


ALLOW = AccessDecision(allowed=True)


def is_manager(identity: Identity) -> bool:
    return any(normalize_permission(p) == MANAGER for p in identity.permissions)


def authorize(
    identity: Identity | None,
    requested_path: str,
    required: RoutePermission = RoutePermission.READ,
) -> AccessDecision:
    """Decide whether ``identity`` may perform ``required`` on ``requested_path``."""
    if identity is None:
        return AccessDecision(allowed=False, reason=DenyReason.UNAUTHENTICATED)

    if is_manager(identity):
        return ALLOW

    for grant in identity.routes:
        if grant.matches(requested_path) and grant.permission.satisfies(required):
            return ALLOW

    return AccessDecision(allowed=False, reason=DenyReason.INSUFFICIENT_SCOPE)


def enforce(
    identity: Identity | None,
    requested_path: str,
    required: RoutePermission = RoutePermission.READ,
) -> Identity:
    """Like :func:`authorize` but raises on deny.

    Returns:
        The authorized identity

    Raises:
        UnauthenticatedError: If identity is None
        InsufficientScopeError: If no grant covers the path
    """
    decision = authorize(identity, requested_path, required)
    if decision.reason is DenyReason.UNAUTHENTICATED:
        raise UnauthenticatedError("Token required")
    if not decision.allowed:
        raise InsufficientScopeError(
            message=f"Token does not have {required.value} permission for this route",
            details={"path": requested_path, "required": required.value},
        )
    return identity
