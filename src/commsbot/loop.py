from __future__ import annotations

import msgspec

from .dispatcher import Dispatcher
from .logging import get_logger
from .telegram.api_models import User
from .telegram.client import BotClient
from .telegram.parsing import parse_incoming_update
from .telegram.types import Sender

logger = get_logger(__name__)

__all__ = ["PollLoop"]

ALLOWED_UPDATES = ["message"]


class PollLoop:
    """Long-polls for updates and feeds them to the dispatcher one at a time."""

    def __init__(
        self,
        bot: BotClient,
        dispatcher: Dispatcher,
        *,
        batch_size: int = 100,
        poll_timeout_s: int = 10,
        offset: int = 0,
    ) -> None:
        self.bot = bot
        self.dispatcher = dispatcher
        self.batch_size = batch_size
        self.poll_timeout_s = poll_timeout_s
        self._offset = offset
        self._cancelled = False
        self.failed = False

    @property
    def offset(self) -> int:
        return self._offset

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        if not self._cancelled:
            logger.info("loop.cancelling", offset=self._offset)
        self._cancelled = True

    async def _identify(self) -> None:
        try:
            me = await self.bot.get_me()
        except Exception as exc:
            logger.error(
                "loop.get_me.failed", error=str(exc), error_type=exc.__class__.__name__
            )
            return
        if me is None:
            logger.error("loop.get_me.failed")
            return
        try:
            user = msgspec.convert(me, type=User)
        except msgspec.ValidationError as exc:
            logger.error("loop.get_me.invalid", error=str(exc))
            return
        self.dispatcher.ctx.bot_user = Sender(
            id=user.id, first_name=user.first_name, username=user.username
        )
        logger.info(
            "loop.identity",
            bot_id=user.id,
            username=user.username,
            first_name=user.first_name,
            last_name=user.last_name,
        )

    async def run(self) -> None:
        logger.info("loop.started", offset=self._offset)
        await self._identify()
        while not self._cancelled:
            try:
                await self.poll_once()
            except Exception:
                logger.exception("loop.failed", offset=self._offset)
                self.failed = True
                self.cancel()
        logger.info("loop.stopped", offset=self._offset)

    async def poll_once(self) -> int:
        """Fetch and dispatch one batch; returns the number of updates consumed."""
        try:
            updates = await self.bot.get_updates(
                offset=self._offset,
                limit=self.batch_size,
                timeout_s=self.poll_timeout_s,
                allowed_updates=ALLOWED_UPDATES,
            )
        except TimeoutError:
            updates = None
        if self._cancelled:
            return 0
        if not updates:
            return 0

        for raw in updates:
            update = parse_incoming_update(raw)
            if update is None:
                continue
            # skipped updates still move the cursor so they are never fetched again
            self._offset = max(self._offset, update.update_id + 1)
            if update.message is None:
                logger.debug("loop.update_skipped", update_id=update.update_id)
                continue
            await self.dispatcher.handle_message(update.message)
        return len(updates)
