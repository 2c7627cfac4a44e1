"""Credential service.

Handles issuance, lookup-by-secret, renaming, permission and route updates,
secret rotation and deletion of access tokens.

Every mutation goes through this service and commits in a single
transaction, so an identity is never observable with orphaned or missing
permission/route rows.

Scaling note: ``resolve_by_secret`` verifies the presented secret against
every stored salted hash, which is O(identity count) per authentication.
A keyed lookup would need an unsalted, secret-derived index column; none is
stored.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable

import structlog
from sqlalchemy import delete, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from depot.config import get_settings
from depot.errors import (
    InvalidArgumentError,
    NameConflictError,
    NotFoundError,
    StorageFaultError,
)
from depot.models.identity import (
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
from depot.services.secrets import generate_secret, hash_secret, verify_secret
from depot.utils.datetime import as_utc

logger = structlog.get_logger()

DEFAULT_DESCRIPTION = "Generated via console"


def normalize_permissions(permissions: Iterable[str]) -> list[str]:
    """Normalize permission tags, dropping blanks and collapsing duplicates."""
    result: list[str] = []
    for raw in permissions:
        tag = normalize_permission(raw)
        if tag and tag not in result:
            result.append(tag)
    return result


def normalize_route_permission(value: str | RoutePermission) -> RoutePermission:
    """Normalize a route permission value.

    Raises:
        InvalidArgumentError: If the value is not READ/WRITE (or r/w)
    """
    if isinstance(value, RoutePermission):
        return value
    permission = parse_route_permission(value or "")
    if permission is None:
        raise InvalidArgumentError(
            message=f"Route permission must be 'r' or 'w', got: {value!r}",
            details={"field": "permission", "value": value},
        )
    return permission


def _match_secret(secret: str, candidates: list[tuple[int, str]]) -> int | None:
    """Return the id of the first candidate whose hash matches.

    Always verifies every candidate so the amount of work does not depend on
    where the matching identity sits in the table.
    """
    matched: int | None = None
    for token_id, secret_hash in candidates:
        if verify_secret(secret, secret_hash) and matched is None:
            matched = token_id
    return matched


class CredentialService:
    """Service for access token lifecycle management."""

    def __init__(
        self,
        db_session: AsyncSession,
        *,
        hash_iterations: int | None = None,
    ) -> None:
        self._db = db_session
        self._log = logger.bind(service="credentials")
        self._hash_iterations = (
            hash_iterations or get_settings().security.hash_iterations
        )

    # -- Issuance ---------------------------------------------------------

    async def issue(
        self,
        name: str,
        permissions: Iterable[str] = (),
        secret: str | None = None,
        *,
        description: str | None = None,
    ) -> IssuedIdentity:
        """Issue a new identity.

        Args:
            name: Unique human-facing handle
            permissions: Coarse capability tags (e.g. MANAGER)
            secret: Optional plaintext secret; generated when empty
            description: Optional free-text description

        Returns:
            The identity together with its plaintext secret. This is the only
            time the plaintext is observable.

        Raises:
            InvalidArgumentError: If name is empty
            NameConflictError: If name already exists
        """
        name = (name or "").strip()
        if not name:
            raise InvalidArgumentError(
                message="Token name cannot be empty",
                details={"field": "name"},
            )
        if await self._find(name) is not None:
            raise NameConflictError(
                message=f"Token with name '{name}' already exists",
                details={"name": name},
            )

        secret = secret or generate_secret()
        tags = normalize_permissions(permissions)

        # PBKDF2 is CPU-bound; keep it off the event loop
        secret_hash = await asyncio.to_thread(
            hash_secret, secret, iterations=self._hash_iterations
        )
        token = AccessToken(
            name=name,
            secret_hash=secret_hash,
            kind=IdentityKind.PERSISTENT.value,
            description=description or DEFAULT_DESCRIPTION,
        )
        try:
            self._db.add(token)
            await self._db.flush()
            for tag in tags:
                self._db.add(TokenPermission(token_id=token.id, permission=tag))
            identity = self._to_identity(token, tags, [])
            await self._db.commit()
        except IntegrityError as exc:
            await self._db.rollback()
            raise NameConflictError(
                message=f"Token with name '{name}' already exists",
                details={"name": name},
            ) from exc
        except SQLAlchemyError as exc:
            await self._db.rollback()
            raise StorageFaultError(f"Could not store token '{name}'") from exc

        self._log.info(
            "credential.issue",
            token_id=identity.id,
            name=name,
            permissions=tags,
        )
        return IssuedIdentity(**identity.model_dump(), secret=secret)

    # -- Lookup -----------------------------------------------------------

    async def resolve_by_secret(self, secret: str | None) -> Identity | None:
        """Resolve a presented bearer secret to its identity.

        Fails closed: returns None for empty, unknown and wrong secrets alike.
        """
        if not secret:
            return None

        result = await self._db.execute(
            select(AccessToken.id, AccessToken.secret_hash).order_by(AccessToken.id)
        )
        candidates = [(row[0], row[1]) for row in result.all()]

        # PBKDF2 is CPU-bound; keep it off the event loop
        token_id = await asyncio.to_thread(_match_secret, secret, candidates)
        if token_id is None:
            self._log.debug("credential.resolve.miss", candidates=len(candidates))
            return None

        token = await self._db.get(AccessToken, token_id)
        if token is None:
            # Deleted between the scan and the load
            return None
        return await self._load(token)

    async def get_by_name(self, name: str) -> Identity:
        """Get an identity by name.

        Raises:
            NotFoundError: If no identity has this name
        """
        token = await self._require(name)
        return await self._load(token)

    async def list(self) -> list[Identity]:
        """List all identities ordered by id."""
        result = await self._db.execute(select(AccessToken).order_by(AccessToken.id))
        return [await self._load(token) for token in result.scalars().all()]

    # -- Mutation ---------------------------------------------------------

    async def rename(self, old_name: str, new_name: str) -> None:
        """Rename an identity.

        Raises:
            InvalidArgumentError: If new_name is empty
            NameConflictError: If new_name is taken
            NotFoundError: If old_name does not exist
        """
        new_name = (new_name or "").strip()
        if not new_name:
            raise InvalidArgumentError(
                message="Token name cannot be empty",
                details={"field": "new_name"},
            )
        if await self._find(new_name) is not None:
            raise NameConflictError(
                message=f"Token with name '{new_name}' already exists",
                details={"name": new_name},
            )

        try:
            result = await self._db.execute(
                update(AccessToken)
                .where(AccessToken.name == old_name)
                .values(name=new_name)
            )
            if result.rowcount == 0:
                await self._db.rollback()
                raise NotFoundError(
                    message=f"Token '{old_name}' not found",
                    details={"name": old_name},
                )
            await self._db.commit()
        except IntegrityError as exc:
            await self._db.rollback()
            raise NameConflictError(
                message=f"Token with name '{new_name}' already exists",
                details={"name": new_name},
            ) from exc
        except SQLAlchemyError as exc:
            await self._db.rollback()
            raise StorageFaultError(f"Could not rename token '{old_name}'") from exc

        self._log.info("credential.rename", old_name=old_name, new_name=new_name)

    async def set_permissions(self, name: str, permissions: Iterable[str]) -> list[str]:
        """Replace the full permission set of an identity.

        Returns:
            The normalized permission tags now stored

        Raises:
            NotFoundError: If the identity does not exist
        """
        token = await self._require(name)
        tags = normalize_permissions(permissions)

        await self._execute(
            delete(TokenPermission).where(TokenPermission.token_id == token.id)
        )
        for tag in tags:
            self._db.add(TokenPermission(token_id=token.id, permission=tag))
        await self._commit(f"Could not update permissions of '{name}'")

        self._log.info("credential.permissions.set", name=name, permissions=tags)
        return tags

    async def regenerate_secret(self, name: str) -> str:
        """Rotate the secret of an identity.

        The old hash is overwritten, so the old secret stops resolving as soon
        as this commits.

        Returns:
            The new plaintext secret

        Raises:
            NotFoundError: If the identity does not exist
        """
        new_secret = generate_secret()
        new_hash = await asyncio.to_thread(
            hash_secret, new_secret, iterations=self._hash_iterations
        )

        result = await self._execute(
            update(AccessToken)
            .where(AccessToken.name == name)
            .values(secret_hash=new_hash)
        )
        if result.rowcount == 0:
            await self._db.rollback()
            raise NotFoundError(
                message=f"Token '{name}' not found",
                details={"name": name},
            )
        await self._commit(f"Could not rotate secret of '{name}'")

        self._log.info("credential.rotate", name=name)
        return new_secret

    async def add_route(
        self,
        name: str,
        path_prefix: str,
        permission: str | RoutePermission,
    ) -> RouteGrant:
        """Grant a route permission on a path prefix.

        Raises:
            InvalidArgumentError: If the permission or prefix is malformed
            NotFoundError: If the identity does not exist
        """
        route_permission = normalize_route_permission(permission)
        if not path_prefix:
            raise InvalidArgumentError(
                message="Route path cannot be empty",
                details={"field": "path"},
            )
        token = await self._require(name)

        self._db.add(
            TokenRoute(
                token_id=token.id,
                path=path_prefix,
                route_permission=route_permission.value,
            )
        )
        await self._commit(f"Could not add route to '{name}'")

        self._log.info(
            "credential.route.add",
            name=name,
            path=path_prefix,
            permission=route_permission.value,
        )
        return RouteGrant(path=path_prefix, permission=route_permission)

    async def remove_route(self, name: str, path_prefix: str) -> int:
        """Remove every grant on exactly ``path_prefix``.

        Returns:
            Number of grants removed

        Raises:
            NotFoundError: If the identity or the grant does not exist
        """
        token = await self._require(name)

        result = await self._execute(
            delete(TokenRoute).where(
                TokenRoute.token_id == token.id,
                TokenRoute.path == path_prefix,
            )
        )
        if result.rowcount == 0:
            await self._db.rollback()
            raise NotFoundError(
                message=f"Token '{name}' has no route '{path_prefix}'",
                details={"name": name, "path": path_prefix},
            )
        await self._commit(f"Could not remove route from '{name}'")

        self._log.info("credential.route.remove", name=name, path=path_prefix)
        return result.rowcount

    # -- Deletion ---------------------------------------------------------

    async def delete_by_name(self, name: str) -> None:
        """Delete an identity with all its permission and route rows.

        Raises:
            NotFoundError: If the identity does not exist
        """
        token = await self._require(name)

        await self._execute(delete(TokenRoute).where(TokenRoute.token_id == token.id))
        await self._execute(
            delete(TokenPermission).where(TokenPermission.token_id == token.id)
        )
        await self._execute(delete(AccessToken).where(AccessToken.id == token.id))
        await self._commit(f"Could not delete token '{name}'")

        self._log.info("credential.delete", name=name, token_id=token.id)

    async def delete_all(self) -> int:
        """Delete every identity.

        Returns:
            Number of identities deleted
        """
        await self._execute(delete(TokenRoute))
        await self._execute(delete(TokenPermission))
        result = await self._execute(delete(AccessToken))
        await self._commit("Could not delete tokens")

        self._log.info("credential.delete_all", count=result.rowcount)
        return result.rowcount

    # -- Internals --------------------------------------------------------

    async def _find(self, name: str) -> AccessToken | None:
        result = await self._db.execute(
            select(AccessToken).where(AccessToken.name == name)
        )
        return result.scalars().first()

    async def _require(self, name: str) -> AccessToken:
        token = await self._find(name)
        if token is None:
            raise NotFoundError(
                message=f"Token '{name}' not found",
                details={"name": name},
            )
        return token

    async def _execute(self, statement):
        try:
            return await self._db.execute(statement)
        except SQLAlchemyError as exc:
            await self._db.rollback()
            raise StorageFaultError("Credential store query failed") from exc

    async def _commit(self, failure_message: str) -> None:
        try:
            await self._db.commit()
        except SQLAlchemyError as exc:
            await self._db.rollback()
            raise StorageFaultError(failure_message) from exc

    async def _load(self, token: AccessToken) -> Identity:
        perms = await self._db.execute(
            select(TokenPermission.permission)
            .where(TokenPermission.token_id == token.id)
            .order_by(TokenPermission.id)
        )
        routes = await self._db.execute(
            select(TokenRoute.path, TokenRoute.route_permission)
            .where(TokenRoute.token_id == token.id)
            .order_by(TokenRoute.id)
        )
        grants = [
            RouteGrant(path=path, permission=RoutePermission(route_permission))
            for path, route_permission in routes.all()
        ]
        return self._to_identity(token, list(perms.scalars().all()), grants)

    @staticmethod
    def _to_identity(
        token: AccessToken,
        permissions: list[str],
        routes: list[RouteGrant],
    ) -> Identity:
        return Identity(
            id=token.id,
            kind=IdentityKind(token.kind),
            name=token.name,
            description=token.description,
            created_at=as_utc(token.created_at),
            permissions=frozenset(permissions),
            routes=routes,
        )
