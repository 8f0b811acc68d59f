from __future__ import annotations

from pathlib import Path

import anyio
import typer

from .. import __version__
from ..bot import build_bot, run_bot
from ..config import ConfigError, load_config, resolve_state_path
from ..logging import get_logger, setup_logging
from ..meeting import format_meeting_time
from ..state import StateError, StateStore

logger = get_logger(__name__)

_CONFIG_OPTION = typer.Option(
    None,
    "--config",
    "-c",
    help="Path to commsbot.toml (defaults to ./commsbot.toml, then ~/.commsbot/).",
)


def _print_version_and_exit() -> None:
    typer.echo(__version__)
    raise typer.Exit()


def _version_callback(value: bool) -> None:
    if value:
        _print_version_and_exit()


def _exit_error(error: Exception) -> None:
    typer.echo(f"error: {error}", err=True)
    raise typer.Exit(code=1) from error


def _run(config_path: Path | None, *, debug: bool) -> None:
    setup_logging(debug=debug)
    try:
        config, resolved_path = load_config(config_path)
        bot = build_bot(config, resolved_path)
    except (ConfigError, StateError) as e:
        _exit_error(e)
    try:
        ok = anyio.run(run_bot, bot)
    except KeyboardInterrupt:
        logger.info("shutdown.interrupted")
        raise typer.Exit(code=130) from None
    if not ok:
        raise typer.Exit(code=1)


def check(config: Path | None = _CONFIG_OPTION) -> None:
    """Validate the config and state files without contacting Telegram."""
    setup_logging(debug=False, cache_logger_on_first_use=False)
    try:
        bot_config, config_path = load_config(config)
        state_path = resolve_state_path(bot_config, config_path)
        state = StateStore(state_path).load()
    except (ConfigError, StateError) as e:
        _exit_error(e)
    next_meeting = (
        format_meeting_time(state.next_meeting) if state.next_meeting else "not set"
    )
    typer.echo(f"config: {config_path}")
    typer.echo(f"state: {state_path}")
    typer.echo(f"admins: {len(state.admin_user_ids)}")
    typer.echo(f"broadcast chats: {len(state.broadcast_chat_ids)}")
    typer.echo(f"noticed users: {len(state.noticed_users)}")
    typer.echo(f"next meeting: {next_meeting}")
    typer.echo(f"meeting link: {state.meeting_link or 'not set'}")


def app_main(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        help="Show the version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    config: Path | None = _CONFIG_OPTION,
    debug: bool = typer.Option(
        False,
        "--debug/--no-debug",
        help="Log Telegram requests and use the console log renderer.",
    ),
) -> None:
    """Telegram communication bot for staff chatrooms."""
    if ctx.invoked_subcommand is None:
        _run(config, debug=debug)
        raise typer.Exit()


def create_app() -> typer.Typer:
    app = typer.Typer(
        add_completion=False,
        invoke_without_command=True,
        help="Telegram communication bot for staff chatrooms.",
    )
    app.command(name="check")(check)
    app.callback()(app_main)
    return app


def main() -> None:
    app = create_app()
    app()


if __name__ == "__main__":
    main()
