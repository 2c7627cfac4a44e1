"""Unit tests for the administrative shell."""

from __future__ import annotations

from contextlib import asynccontextmanager

import pytest
from structlog.testing import capture_logs

from depot import __version__
from depot.console.shell import COMMANDS, AdminShell
from depot.services.credentials import CredentialService


@pytest.fixture
def logs():
    with capture_logs() as captured:
        yield captured


@pytest.fixture
def shell(session_scope, logs) -> AdminShell:
    return AdminShell(session_scope, hash_iterations=1000)


@pytest.fixture
def service(session_scope):
    """Opens a fresh credential service per use."""

    @asynccontextmanager
    async def open_service():
        async with session_scope() as session:
            yield CredentialService(session, hash_iterations=1000)

    return open_service


def events(logs, name):
    return [entry for entry in logs if entry["event"] == name]


class TestLoopControl:
    async def test_stop_ends_loop(self, shell):
        assert await shell.handle("stop") is False
        assert await shell.handle("1") is False

    @pytest.mark.parametrize("line", ["", "   ", "help", "0", "version", "bogus", 'a "b'])
    async def test_other_lines_continue(self, shell, line):
        assert await shell.handle(line) is True

    async def test_errors_do_not_stop_loop(self, shell, logs):
        assert await shell.handle("delete_token ghost") is True

        failures = events(logs, "shell.command_failed")
        assert failures[0]["code"] == "not_found"

    def test_run_stops_at_stop_command(self, shell, logs):
        handled: list[str] = []

        def submit(coro):
            coro.close()
            handled.append("x")
            return len(handled) < 2

        shell.run(["version\n", "stop\n", "version\n"], submit)

        assert len(handled) == 2
        assert events(logs, "shell.stopped")


class TestCommands:
    async def test_help_lists_every_command(self, shell, logs):
        await shell.handle("help")

        listed = events(logs, "shell.help")[0]["commands"]
        assert len(listed) == len(COMMANDS)
        assert "[9] token_add_route <name> <path> <r/w>" in listed

    async def test_version(self, shell, logs):
        await shell.handle("2")
        assert events(logs, "shell.version")[0]["version"] == __version__

    async def test_unknown_command(self, shell, logs):
        await shell.handle("frobnicate")
        assert events(logs, "shell.unknown_command")[0]["command"] == "frobnicate"

    async def test_usage_on_missing_args(self, shell, logs):
        await shell.handle("token_rename only-one")
        assert events(logs, "shell.usage")[0]["usage"] == "token_rename <oldName> <newName>"

    async def test_generate_token(self, shell, service, logs):
        await shell.handle("generate_token ci m,uploader --secret=s3cret")

        generated = events(logs, "shell.token_generated")[0]
        assert generated["secret"] == "s3cret"
        assert generated["permissions"] == ["MANAGER", "UPLOADER"]
        async with service() as credentials:
            identity = await credentials.resolve_by_secret("s3cret")
        assert identity.name == "ci"

    async def test_generate_token_silent_hides_secret(self, shell, logs):
        await shell.handle("3 ci --silent")

        generated = events(logs, "shell.token_generated")[0]
        assert "secret" not in generated

    async def test_generate_duplicate_reports_conflict(self, shell, logs):
        await shell.handle("generate_token ci")
        await shell.handle("generate_token ci")

        assert events(logs, "shell.command_failed")[0]["code"] == "name_conflict"

    async def test_token_lifecycle(self, shell, service, logs):
        await shell.handle("generate_token ci")
        await shell.handle("token_modify ci MANAGER")
        await shell.handle("token_rename ci builder")
        await shell.handle("token_add_route builder /releases w")

        async with service() as credentials:
            identity = await credentials.get_by_name("builder")
        assert identity.permissions == frozenset({"MANAGER"})
        assert [(r.path, r.permission.value) for r in identity.routes] == [
            ("/releases", "WRITE")
        ]

        await shell.handle("token_remove_route builder /releases")
        await shell.handle("token_regenerate builder")
        new_secret = events(logs, "shell.token_regenerated")[0]["secret"]

        async with service() as credentials:
            resolved = await credentials.resolve_by_secret(new_secret)
        assert resolved.name == "builder"
        assert resolved.routes == []

    async def test_add_route_rejects_bad_permission(self, shell, logs):
        await shell.handle("generate_token ci")
        await shell.handle("token_add_route ci /releases x")

        assert events(logs, "shell.command_failed")[0]["code"] == "invalid_argument"

    async def test_delete_commands(self, shell, service, logs):
        await shell.handle("generate_token a")
        await shell.handle("generate_token b")
        await shell.handle("generate_token c")

        await shell.handle("delete_token a")
        async with service() as credentials:
            assert [i.name for i in await credentials.list()] == ["b", "c"]

        await shell.handle("4")
        async with service() as credentials:
            assert await credentials.list() == []
        assert events(logs, "shell.tokens_deleted")[0]["count"] == 2

    async def test_list_tokens(self, shell, logs):
        await shell.handle("list_tokens")
        assert events(logs, "shell.no_tokens")

        await shell.handle("generate_token ci u")
        await shell.handle("11")

        listed = events(logs, "shell.token")
        assert listed[0]["name"] == "ci"
        assert listed[0]["permissions"] == ["UPLOADER"]
