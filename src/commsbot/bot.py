from __future__ import annotations

import signal
from dataclasses import dataclass
from pathlib import Path

import anyio

from .config import BotConfig, get_bot_token, resolve_state_path
from .context import BotContext
from .dispatcher import Dispatcher
from .logging import get_logger
from .loop import PollLoop
from .state import StateStore
from .telegram.client import BotClient, TelegramClient

logger = get_logger(__name__)

__all__ = ["CommsBot", "build_bot", "run_bot"]


@dataclass(slots=True)
class CommsBot:
    client: BotClient
    dispatcher: Dispatcher
    loop: PollLoop


def build_bot(
    config: BotConfig,
    config_path: Path,
    *,
    client: BotClient | None = None,
) -> CommsBot:
    """Wire config, state, transport client, dispatcher and poll loop together.

    Raises ``ConfigError`` for a missing token and ``StateError`` when the
    state file cannot be loaded.
    """
    store = StateStore(resolve_state_path(config, config_path))
    state = store.load()
    if client is None:
        client = TelegramClient(get_bot_token(config, config_path))
    ctx = BotContext(
        bot=client,
        state=state,
        store=store,
        organisation=config.organisation,
        hashtags_url=config.hashtags_url,
    )
    dispatcher = Dispatcher(ctx)
    loop = PollLoop(
        client,
        dispatcher,
        batch_size=config.batch_size,
        poll_timeout_s=config.poll_timeout_s,
    )
    return CommsBot(client=client, dispatcher=dispatcher, loop=loop)


async def _cancel_on_signal(loop: PollLoop, scope: anyio.CancelScope) -> None:
    with anyio.open_signal_receiver(signal.SIGINT, signal.SIGTERM) as signals:
        async for signum in signals:
            logger.info("shutdown.signal", signal=signal.Signals(signum).name)
            if loop.cancelled:
                # second signal: stop waiting for the in-flight long poll
                scope.cancel()
                return
            loop.cancel()


async def run_bot(bot: CommsBot) -> bool:
    """Run until cancelled; returns ``False`` when the loop died on an error."""
    try:
        async with anyio.create_task_group() as tg:
            tg.start_soon(_cancel_on_signal, bot.loop, tg.cancel_scope)
            await bot.loop.run()
            tg.cancel_scope.cancel()
    finally:
        with anyio.CancelScope(shield=True):
            await bot.client.close()
        logger.info("shutdown.complete")
    return not bot.loop.failed
