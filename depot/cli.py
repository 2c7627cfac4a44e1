"""Command line entry point.

Launch options are declared in :data:`OPTIONS`; parsing and help rendering
both read that table.
"""

from __future__ import annotations

import asyncio
import sys
import threading
from dataclasses import dataclass, field
from pathlib import Path

import structlog
import uvicorn
import yaml

from depot.config import Settings, get_settings
from depot.console.shell import AdminShell, run_coroutine_in
from depot.db import get_async_session
from depot.errors import InvalidArgumentError

logger = structlog.get_logger()

CONFIG_FILENAME = "config.yaml"


@dataclass(frozen=True)
class Option:
    names: tuple[str, ...]
    field: str
    kind: type
    description: str


OPTIONS: tuple[Option, ...] = (
    Option(("--init",), "init", bool, "Initialize the project structure"),
    Option(("--port", "-p"), "port", int, "Override port from configuration"),
    Option(("--hostname", "-H"), "hostname", str, "Override hostname from configuration"),
    Option(("--help", "-h"), "help", bool, "Show this message and exit"),
)


@dataclass
class LaunchOptions:
    init: bool = False
    port: int | None = None
    hostname: str | None = None
    help: bool = False
    extra: list[str] = field(default_factory=list)


def _find_option(name: str) -> Option | None:
    for option in OPTIONS:
        if name in option.names:
            return option
    return None


def parse_args(argv: list[str]) -> LaunchOptions:
    """Parse launch arguments against :data:`OPTIONS`.

    Accepts ``--name value`` and ``--name=value``. Positional arguments are
    collected in ``extra``.

    Raises:
        InvalidArgumentError: On unknown options, missing or malformed values
    """
    options = LaunchOptions()
    index = 0
    while index < len(argv):
        arg = argv[index]
        index += 1
        if not arg.startswith("-"):
            options.extra.append(arg)
            continue

        name, has_value, inline_value = arg.partition("=")
        option = _find_option(name)
        if option is None:
            raise InvalidArgumentError(f"Unknown option: {name}")

        if option.kind is bool:
            if has_value:
                raise InvalidArgumentError(f"Option {name} takes no value")
            setattr(options, option.field, True)
            continue

        if has_value:
            raw = inline_value
        elif index < len(argv):
            raw = argv[index]
            index += 1
        else:
            raise InvalidArgumentError(f"Option {name} requires a value")

        try:
            value = option.kind(raw)
        except ValueError as exc:
            raise InvalidArgumentError(f"Invalid value for {name}: {raw!r}") from exc
        setattr(options, option.field, value)

    return options


def render_help() -> str:
    """Usage text listing every launch option."""
    lines = ["Usage: depot [options]", "", "Options:"]
    for option in OPTIONS:
        names = ", ".join(option.names)
        if option.kind is not bool:
            names = f"{names} <{option.field}>"
        lines.append(f"  {names:<30} {option.description}")
    return "\n".join(lines)


def init_project(base_dir: Path) -> list[Path]:
    """Create the default config file and data directories under ``base_dir``.

    Existing files are left untouched.

    Returns:
        Paths that were created
    """
    settings = Settings()
    created: list[Path] = []

    directories = [base_dir / settings.storage.root_path]
    database = settings.database.url.partition(":///")[2]
    if database and database != ":memory:":
        directories.append((base_dir / database).parent)

    for directory in directories:
        if not directory.exists():
            directory.mkdir(parents=True)
            created.append(directory)

    config_path = base_dir / CONFIG_FILENAME
    if not config_path.exists():
        with open(config_path, "w") as f:
            yaml.safe_dump(settings.model_dump(mode="json"), f, sort_keys=False)
        created.append(config_path)

    logger.info("depot.init", base_dir=str(base_dir), created=[str(p) for p in created])
    return created


async def _serve(server: uvicorn.Server, shell: AdminShell | None) -> None:
    if shell is not None:
        submit = run_coroutine_in(asyncio.get_running_loop())

        def console() -> None:
            shell.run(sys.stdin, submit)
            server.should_exit = True

        threading.Thread(target=console, name="depot-shell", daemon=True).start()

    await server.serve()


def main(argv: list[str] | None = None) -> int:
    """Run the server, or ``--init`` / ``--help``."""
    try:
        options = parse_args(sys.argv[1:] if argv is None else argv)
    except InvalidArgumentError as exc:
        print(exc.message, file=sys.stderr)
        print(render_help(), file=sys.stderr)
        return 2

    if options.help:
        print(render_help())
        return 0

    if options.init:
        init_project(Path.cwd())
        return 0

    settings = get_settings()
    host = options.hostname or settings.server.host
    port = options.port or settings.server.port

    from depot.main import app

    server = uvicorn.Server(uvicorn.Config(app, host=host, port=port))
    shell = None
    if sys.stdin is not None and sys.stdin.isatty():
        shell = AdminShell(get_async_session)
    asyncio.run(_serve(server, shell))
    return 0


if __name__ == "__main__":
    sys.exit(main())
