from __future__ import annotations

import json
import logging
import sys
from importlib import resources
from pathlib import Path

import typer
from rich.console import Console

from . import __version__
from .store.base import StoreError, StoreInterface
from .store.dummy import DummyStore
from .store.redis_client import RedisStore, RedisStoreConfig
from .ui.browse_textual import run_browse
from .ui.key_filter import filter_keys
from .ui.summary import render_key_summary
from .ui.value_render import display_key

logger = logging.getLogger(__name__)

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

app = typer.Typer(
    add_completion=False,
    invoke_without_command=True,
    no_args_is_help=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _load_default_fixture_text() -> tuple[str | None, str | None]:
    """Load the bundled demo fixture used by --dry-run."""

    try:
        resource = resources.files("redis_key_browser").joinpath("fixtures/demo_keys.json")
        return (resource.read_text(encoding="utf-8"), "packaged:demo_keys.json")
    except (FileNotFoundError, ModuleNotFoundError):
        # Dev fallback (editable checkout) when package resources are unavailable.
        fallback = Path(__file__).resolve().parent / "fixtures" / "demo_keys.json"
        if fallback.exists():
            return (fallback.read_text(encoding="utf-8"), str(fallback))
        return (None, None)


def _configure_logging(log_file: Path | None, *, verbose: bool) -> None:
    # The TUI owns the terminal, so records only ever go to a file.
    if log_file is None:
        return
    logging.basicConfig(
        filename=str(log_file),
        level=logging.DEBUG if verbose else logging.INFO,
        format=_LOG_FORMAT,
    )


def _can_launch_interactive_browse(console: Console) -> bool:
    return console.is_terminal and sys.stdin.isatty() and sys.stdout.isatty()


def _build_dummy_store(fixture: Path | None) -> tuple[StoreInterface, str]:
    if fixture is not None:
        if not fixture.exists():
            typer.echo(f"Fixture not found: {fixture}", err=True)
            raise typer.Exit(2)
        try:
            return (DummyStore.from_path(fixture), f"fixture:{fixture.name}")
        except (json.JSONDecodeError, ValueError) as exc:
            typer.echo(f"Invalid fixture: {fixture} ({exc})", err=True)
            raise typer.Exit(2) from exc

    fixture_text, fixture_source = _load_default_fixture_text()
    if fixture_text is None:
        typer.echo("Fixture not found: demo_keys.json", err=True)
        raise typer.Exit(2)
    try:
        data = json.loads(fixture_text)
        if not isinstance(data, dict):
            raise ValueError("Fixture root must be a JSON object")
        return (DummyStore(data), "fixture:demo_keys.json")
    except ValueError as exc:
        typer.echo(f"Invalid fixture: {fixture_source} ({exc})", err=True)
        raise typer.Exit(2) from exc


def _build_store(
    *,
    host: str,
    port: int,
    password: str | None,
    db: int,
    url: str | None,
    timeout: float,
    dry_run: bool,
    fixture: Path | None,
) -> tuple[StoreInterface, str]:
    if dry_run or fixture is not None:
        return _build_dummy_store(fixture)
    config = RedisStoreConfig(
        host=host,
        port=port,
        password=password,
        db=db,
        url=url,
        timeout_s=timeout,
    )
    return (RedisStore(config), config.endpoint)


def _list_keys_or_exit(store: StoreInterface, *, endpoint: str) -> list[str]:
    try:
        return store.list_keys()
    except StoreError as exc:
        logger.error("Startup key listing failed for %s: %s", endpoint, exc)
        typer.echo(f"Connection failed: {exc} (endpoint: {endpoint})", err=True)
        raise typer.Exit(1) from exc


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        help="Print version and exit.",
        is_eager=True,
    ),
) -> None:
    if version:
        typer.echo(f"redis-key-browser {__version__}")
        raise typer.Exit(0)


@app.command()
def browse(
    host: str = typer.Option(  # noqa: B008
        "127.0.0.1",
        "--host",
        envvar="RKB_HOST",
        help="Redis server host.",
    ),
    port: int = typer.Option(  # noqa: B008
        6379,
        "--port",
        envvar="RKB_PORT",
        min=1,
        max=65535,
        help="Redis server port.",
    ),
    password: str | None = typer.Option(  # noqa: B008
        None,
        "--password",
        envvar="RKB_PASSWORD",
        help="Redis password.",
    ),
    db: int = typer.Option(  # noqa: B008
        0,
        "--db",
        "-d",
        envvar="RKB_DB",
        min=0,
        help="Redis database index.",
    ),
    url: str | None = typer.Option(  # noqa: B008
        None,
        "--url",
        "-u",
        envvar="RKB_URL",
        help="Connection URL (redis://[:password@]host:port/db); overrides the other options.",
    ),
    timeout: float = typer.Option(  # noqa: B008
        5.0,
        "--timeout",
        min=0.1,
        help="Socket timeout in seconds for every request.",
    ),
    dry_run: bool = typer.Option(  # noqa: B008
        False,
        "--dry-run",
        help="Browse the bundled demo fixture instead of a server (no network I/O).",
    ),
    fixture: Path | None = typer.Option(  # noqa: B008
        None,
        "--fixture",
        help="Browse a JSON key fixture instead of a server (implies --dry-run).",
    ),
    log_file: Path | None = typer.Option(  # noqa: B008
        None,
        "--log-file",
        envvar="RKB_LOG_FILE",
        help="Write log records to this file.",
    ),
    verbose: bool = typer.Option(  # noqa: B008
        False,
        "--verbose",
        "-v",
        help="Include debug records in --log-file.",
    ),
) -> None:
    """Browse keys, types, TTLs and values in a fullscreen Textual UI."""

    _configure_logging(log_file, verbose=verbose)
    store, endpoint = _build_store(
        host=host,
        port=port,
        password=password,
        db=db,
        url=url,
        timeout=timeout,
        dry_run=dry_run,
        fixture=fixture,
    )
    with store.session():
        all_keys = _list_keys_or_exit(store, endpoint=endpoint)
        logger.info("Loaded %d keys from %s", len(all_keys), endpoint)

        console = Console()
        if not _can_launch_interactive_browse(console):
            render_key_summary(Console(stderr=True), store, all_keys, endpoint=endpoint)
            typer.echo("Browse UI requires a TTY terminal.", err=True)
            raise typer.Exit(0)

        run_browse(store, all_keys, endpoint=endpoint)


@app.command()
def keys(
    query: str = typer.Option(  # noqa: B008
        "",
        "--filter",
        "-f",
        help="Only print keys containing this text (case-insensitive).",
    ),
    host: str = typer.Option(  # noqa: B008
        "127.0.0.1",
        "--host",
        envvar="RKB_HOST",
        help="Redis server host.",
    ),
    port: int = typer.Option(  # noqa: B008
        6379,
        "--port",
        envvar="RKB_PORT",
        min=1,
        max=65535,
        help="Redis server port.",
    ),
    password: str | None = typer.Option(  # noqa: B008
        None,
        "--password",
        envvar="RKB_PASSWORD",
        help="Redis password.",
    ),
    db: int = typer.Option(  # noqa: B008
        0,
        "--db",
        "-d",
        envvar="RKB_DB",
        min=0,
        help="Redis database index.",
    ),
    url: str | None = typer.Option(  # noqa: B008
        None,
        "--url",
        "-u",
        envvar="RKB_URL",
        help="Connection URL; overrides host/port/password/db.",
    ),
    timeout: float = typer.Option(  # noqa: B008
        5.0,
        "--timeout",
        min=0.1,
        help="Socket timeout in seconds.",
    ),
    dry_run: bool = typer.Option(  # noqa: B008
        False,
        "--dry-run",
        help="List keys of the bundled demo fixture.",
    ),
    fixture: Path | None = typer.Option(  # noqa: B008
        None,
        "--fixture",
        help="List keys of a JSON key fixture (implies --dry-run).",
    ),
) -> None:
    """Print key names, one per line (non-interactive)."""

    store, endpoint = _build_store(
        host=host,
        port=port,
        password=password,
        db=db,
        url=url,
        timeout=timeout,
        dry_run=dry_run,
        fixture=fixture,
    )
    with store.session():
        all_keys = _list_keys_or_exit(store, endpoint=endpoint)
    for key in filter_keys(all_keys, query):
        typer.echo(display_key(key))
