"""Administrative shell over the credential service.

Reads one command per line. Each command opens its own database session and
reports through structlog. Failures are logged and the loop keeps going; only
``stop`` ends it.
"""

from __future__ import annotations

import asyncio
import shlex
from collections.abc import Awaitable, Callable, Iterable
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from depot import __version__
from depot.errors import DepotError
from depot.services.credentials import CredentialService

logger = structlog.get_logger()

SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]


@dataclass(frozen=True)
class Command:
    name: str
    alias: str
    usage: str
    min_args: int
    handler: str


COMMANDS: tuple[Command, ...] = (
    Command("help", "0", "help", 0, "_help"),
    Command("stop", "1", "stop", 0, "_stop"),
    Command("version", "2", "version", 0, "_version"),
    Command(
        "generate_token",
        "3",
        "generate_token <name> [<permissions>] [--secret=<secret>] [--silent]",
        1,
        "_generate_token",
    ),
    Command("delete_all_tokens", "4", "delete_all_tokens", 0, "_delete_all_tokens"),
    Command("delete_token", "5", "delete_token <name>", 1, "_delete_token"),
    Command("token_modify", "6", "token_modify <name> <permissions>", 2, "_token_modify"),
    Command("token_rename", "7", "token_rename <oldName> <newName>", 2, "_token_rename"),
    Command("token_regenerate", "8", "token_regenerate <name>", 1, "_token_regenerate"),
    Command(
        "token_add_route",
        "9",
        "token_add_route <name> <path> <r/w>",
        3,
        "_token_add_route",
    ),
    Command(
        "token_remove_route",
        "10",
        "token_remove_route <name> <path>",
        2,
        "_token_remove_route",
    ),
    Command("list_tokens", "11", "list_tokens", 0, "_list_tokens"),
)

_LOOKUP = {key: command for command in COMMANDS for key in (command.name, command.alias)}


def _split_permissions(value: str) -> list[str]:
    return [part for part in value.split(",") if part.strip()]


class AdminShell:
    """Line-oriented token administration.

    ``handle`` returns whether the reading loop should continue, so the shell
    instance alone owns its lifetime.
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        *,
        hash_iterations: int | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._hash_iterations = hash_iterations
        self._log = logger.bind(component="shell")

    async def handle(self, line: str) -> bool:
        """Execute one command line.

        Returns:
            False after ``stop``, True otherwise
        """
        try:
            parts = shlex.split(line)
        except ValueError as exc:
            self._log.warning("shell.parse_error", error=str(exc))
            return True
        if not parts:
            return True

        command = _LOOKUP.get(parts[0].lower())
        if command is None:
            self._log.warning(
                "shell.unknown_command",
                command=parts[0],
                hint="Type 'help' to see available commands",
            )
            return True

        args = parts[1:]
        if len(args) < command.min_args:
            self._log.warning("shell.usage", usage=command.usage)
            return True

        handler: Callable[[list[str]], Awaitable[bool | None]] = getattr(
            self, command.handler
        )
        try:
            result = await handler(args)
        except DepotError as exc:
            self._log.error(
                "shell.command_failed",
                command=command.name,
                code=exc.code,
                error=exc.message,
            )
            return True
        except Exception as exc:
            self._log.exception("shell.command_crashed", command=command.name, error=str(exc))
            return True
        return result is not False

    def run(self, lines: Iterable[str], submit: Callable[[Awaitable[bool]], bool]) -> None:
        """Feed ``lines`` through :meth:`handle` until ``stop`` or EOF.

        Args:
            lines: Command source, typically ``sys.stdin``
            submit: Runs a coroutine to completion and returns its result
        """
        self._log.info("shell.started", hint="Type 'help' or '0' for commands")
        for line in lines:
            if not submit(self.handle(line.strip())):
                break
        self._log.info("shell.stopped")

    def _service(self, session: AsyncSession) -> CredentialService:
        return CredentialService(session, hash_iterations=self._hash_iterations)

    # -- Commands ---------------------------------------------------------

    async def _help(self, args: list[str]) -> None:
        lines = [f"[{command.alias}] {command.usage}" for command in COMMANDS]
        self._log.info("shell.help", commands=lines)

    async def _stop(self, args: list[str]) -> bool:
        self._log.info("shell.stop")
        return False

    async def _version(self, args: list[str]) -> None:
        self._log.info("shell.version", version=__version__)

    async def _generate_token(self, args: list[str]) -> None:
        name = args[0]
        permissions: list[str] = []
        secret = None
        silent = False
        for arg in args[1:]:
            if arg.startswith("--secret="):
                secret = arg[len("--secret="):] or None
            elif arg.lower() == "--silent":
                silent = True
            else:
                permissions = _split_permissions(arg)

        async with self._session_factory() as session:
            service = self._service(session)
            issued = await service.issue(name, permissions, secret)

        if silent:
            self._log.info("shell.token_generated", name=issued.name)
        else:
            self._log.info(
                "shell.token_generated",
                name=issued.name,
                secret=issued.secret,
                permissions=sorted(issued.permissions),
            )

    async def _delete_all_tokens(self, args: list[str]) -> None:
        async with self._session_factory() as session:
            count = await self._service(session).delete_all()
        self._log.info("shell.tokens_deleted", count=count)

    async def _delete_token(self, args: list[str]) -> None:
        async with self._session_factory() as session:
            await self._service(session).delete_by_name(args[0])
        self._log.info("shell.token_deleted", name=args[0])

    async def _token_modify(self, args: list[str]) -> None:
        name = args[0]
        async with self._session_factory() as session:
            tags = await self._service(session).set_permissions(
                name, _split_permissions(args[1])
            )
        self._log.info("shell.token_modified", name=name, permissions=tags)

    async def _token_rename(self, args: list[str]) -> None:
        old_name, new_name = args[0], args[1]
        async with self._session_factory() as session:
            await self._service(session).rename(old_name, new_name)
        self._log.info("shell.token_renamed", old_name=old_name, new_name=new_name)

    async def _token_regenerate(self, args: list[str]) -> None:
        name = args[0]
        async with self._session_factory() as session:
            secret = await self._service(session).regenerate_secret(name)
        self._log.info("shell.token_regenerated", name=name, secret=secret)

    async def _token_add_route(self, args: list[str]) -> None:
        name, path, permission = args[0], args[1], args[2]
        async with self._session_factory() as session:
            grant = await self._service(session).add_route(name, path, permission)
        self._log.info(
            "shell.route_added",
            name=name,
            path=grant.path,
            permission=grant.permission.value,
        )

    async def _token_remove_route(self, args: list[str]) -> None:
        name, path = args[0], args[1]
        async with self._session_factory() as session:
            removed = await self._service(session).remove_route(name, path)
        self._log.info("shell.route_removed", name=name, path=path, removed=removed)

    async def _list_tokens(self, args: list[str]) -> None:
        async with self._session_factory() as session:
            identities = await self._service(session).list()
        for identity in identities:
            self._log.info(
                "shell.token",
                name=identity.name,
                kind=identity.kind.value,
                permissions=sorted(identity.permissions),
                routes=[f"{r.path}:{r.permission.value}" for r in identity.routes],
            )
        if not identities:
            self._log.info("shell.no_tokens")


def run_coroutine_in(loop: asyncio.AbstractEventLoop) -> Callable[[Awaitable[bool]], bool]:
    """Submitter for :meth:`AdminShell.run` targeting a loop in another thread."""

    def submit(coro: Awaitable[bool]) -> bool:
        return asyncio.run_coroutine_threadsafe(coro, loop).result()

    return submit
