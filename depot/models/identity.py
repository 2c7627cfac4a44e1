"""Access token data models.

Stores salted hashes of bearer secrets together with coarse permissions and
path-scoped route grants. Plaintext secrets are never stored.

Tables:
- access_tokens: one row per identity
- token_permissions: (token_id, permission)
- token_routes: (token_id, path, route_permission), insertion-ordered by id
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel
from sqlmodel import Field, SQLModel

from depot.utils.datetime import utcnow

MANAGER = "MANAGER"
UPLOADER = "UPLOADER"

# Single-letter shorthands accepted from the admin shell
PERMISSION_ALIASES = {"M": MANAGER, "U": UPLOADER}

_ROUTE_PERMISSION_ALIASES = {
    "R": "READ",
    "READ": "READ",
    "W": "WRITE",
    "WRITE": "WRITE",
}


def normalize_permission(tag: str) -> str:
    """Upper-case a permission tag and expand single-letter aliases."""
    tag = tag.strip().upper()
    return PERMISSION_ALIASES.get(tag, tag)


class IdentityKind(str, Enum):
    """Whether a credential is expected to be long-lived."""

    PERSISTENT = "PERSISTENT"
    TEMPORARY = "TEMPORARY"


class RoutePermission(str, Enum):
    """Capability granted on a path prefix. WRITE implies READ."""

    READ = "READ"
    WRITE = "WRITE"

    def satisfies(self, required: "RoutePermission") -> bool:
        if self is RoutePermission.WRITE:
            return True
        return required is RoutePermission.READ


class AccessToken(SQLModel, table=True):
    """Identity row. ``secret_hash`` is the only trace of the bearer secret."""

    __tablename__ = "access_tokens"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(unique=True, index=True)
    secret_hash: str
    kind: str = Field(default=IdentityKind.PERSISTENT.value)
    description: Optional[str] = Field(default=None)
    created_at: datetime = Field(default_factory=utcnow)


class TokenPermission(SQLModel, table=True):
    """Coarse capability tag held by an identity (e.g. MANAGER)."""

    __tablename__ = "token_permissions"

    id: Optional[int] = Field(default=None, primary_key=True)
    token_id: int = Field(foreign_key="access_tokens.id", index=True)
    permission: str


class TokenRoute(SQLModel, table=True):
    """Path-prefix grant held by an identity."""

    __tablename__ = "token_routes"

    id: Optional[int] = Field(default=None, primary_key=True)
    token_id: int = Field(foreign_key="access_tokens.id", index=True)
    path: str
    route_permission: str


class RouteGrant(BaseModel):
    """A ``(path_prefix, permission)`` pair.

    Matching is plain string-prefix: a grant for ``/a`` also covers ``/ab``.
    """

    model_config = {"frozen": True}

    path: str
    permission: RoutePermission

    def matches(self, requested_path: str) -> bool:
        return requested_path.startswith(self.path)


class Identity(BaseModel):
    """Resolved identity as seen by the access evaluator and API callers.

    Never carries the secret or its hash.
    """

    id: int
    kind: IdentityKind
    name: str
    description: Optional[str] = None
    created_at: datetime
    permissions: frozenset[str] = frozenset()
    routes: list[RouteGrant] = []


class IssuedIdentity(Identity):
    """Identity returned by issuance/rotation; the only place the plaintext appears."""

    secret: str


def parse_route_permission(value: str) -> RoutePermission | None:
    """Map ``r``/``read``/``w``/``write`` (any case) to a RoutePermission.

    Returns None for anything else.
    """
    canonical = _ROUTE_PERMISSION_ALIASES.get(value.strip().upper())
    if canonical is None:
        return None
    return RoutePermission(canonical)
