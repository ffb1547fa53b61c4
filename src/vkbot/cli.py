from __future__ import annotations

import importlib
import sys
from pathlib import Path
from typing import Callable

import typer

from . import __version__
from .bot import Bot
from .config import ConfigError, load_settings
from .logging import get_logger, setup_logging
from .router import RouterError

logger = get_logger(__name__)

SetupFn = Callable[[Bot], None]


def _print_version_and_exit() -> None:
    typer.echo(__version__)
    raise typer.Exit()


def _version_callback(value: bool) -> None:
    if value:
        _print_version_and_exit()


def load_setup(target: str, *, app_dir: Path | None = None) -> SetupFn:
    """Resolve `module:attr` to the function that registers the bot's handlers."""
    module_name, sep, attr = target.partition(":")
    if not sep or not module_name or not attr:
        raise ConfigError(
            f"Invalid target {target!r}; expected `module:function`."
        )
    if app_dir is not None:
        app_path = str(app_dir.expanduser().resolve())
        if app_path not in sys.path:
            sys.path.insert(0, app_path)
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigError(f"Failed to import {module_name!r}: {e}") from e
    setup = getattr(module, attr, None)
    if setup is None:
        raise ConfigError(f"Module {module_name!r} has no attribute {attr!r}.")
    if not callable(setup):
        raise ConfigError(f"{target!r} is not callable.")
    return setup


def build_bot(
    target: str,
    *,
    config_path: Path | None,
    app_dir: Path | None,
    check_permissions: bool = True,
) -> Bot:
    settings, _ = load_settings(config_path)
    setup = load_setup(target, app_dir=app_dir)
    bot = Bot(settings, check_permissions=check_permissions)
    setup(bot)
    return bot


_CONFIG_OPTION = typer.Option(
    None, "--config", help="Path to vkbot.toml (defaults to ./vkbot.toml)."
)
_APP_DIR_OPTION = typer.Option(
    Path("."), "--app-dir", help="Directory added to sys.path before importing."
)


def serve(
    target: str = typer.Argument(
        ..., help="Handler setup function, as `module:function`."
    ),
    config: Path | None = _CONFIG_OPTION,
    app_dir: Path = _APP_DIR_OPTION,
    debug: bool = typer.Option(
        False,
        "--debug/--no-debug",
        help="Log VK API requests and responses.",
    ),
) -> None:
    """Run the Callback API server."""
    setup_logging(debug=debug)
    try:
        bot = build_bot(target, config_path=config, app_dir=app_dir)
    except (ConfigError, RouterError) as e:
        typer.echo(f"error: {e}", err=True)
        raise typer.Exit(code=1) from e
    try:
        bot.serve()
    except KeyboardInterrupt:
        logger.info("shutdown.interrupted")
        raise typer.Exit(code=130) from None


def check(
    target: str = typer.Argument(
        ..., help="Handler setup function, as `module:function`."
    ),
    config: Path | None = _CONFIG_OPTION,
    app_dir: Path = _APP_DIR_OPTION,
) -> None:
    """Register handlers and print what the bot would handle."""
    setup_logging(debug=False)
    try:
        bot = build_bot(
            target, config_path=config, app_dir=app_dir, check_permissions=False
        )
    except (ConfigError, RouterError) as e:
        typer.echo(f"error: {e}", err=True)
        raise typer.Exit(code=1) from e
    counts = bot.start()
    typer.echo(
        f"handlers: on:{counts.on} cmd:{counts.cmd} "
        f"regex:{counts.regex} payload:{counts.payload}"
    )
    help_text = bot.router.help().strip("\n")
    if help_text:
        typer.echo("commands:")
        typer.echo(help_text)


def app_main(
    version: bool = typer.Option(
        False,
        "--version",
        help="Show the version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """vkbot CLI."""


def create_app() -> typer.Typer:
    app = typer.Typer(
        add_completion=False,
        help="Chat bot server for the VK Callback API.",
    )
    app.command(name="serve")(serve)
    app.command(name="check")(check)
    app.callback()(app_main)
    return app


def main() -> None:
    app = create_app()
    app()


if __name__ == "__main__":
    main()
