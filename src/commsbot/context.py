from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .broadcast import broadcast, message_from_user
from .logging import get_logger
from .meeting import next_meeting_text
from .state import BotState, StateError, StateStore
from .telegram.client import BotClient
from .telegram.types import Sender

logger = get_logger(__name__)

__all__ = ["BotContext"]


@dataclass(slots=True)
class BotContext:
    """Everything a command handler or dialog needs to act on the bot's behalf.

    Built once at start-up and passed to the dispatcher and every dialog; there
    is no process-wide bot instance.
    """

    bot: BotClient
    state: BotState
    store: StateStore
    organisation: str = "VancouFur"
    hashtags_url: str | None = None
    clock: Callable[[], datetime] = datetime.now
    bot_user: Sender | None = field(default=None)

    async def send(
        self,
        chat_id: int,
        text: str,
        *,
        disable_web_page_preview: bool = False,
        reply_to_message_id: int | None = None,
        reply_markup: dict[str, Any] | None = None,
    ) -> dict | None:
        sent = await self.bot.send_message(
            chat_id,
            text,
            disable_web_page_preview=disable_web_page_preview,
            reply_to_message_id=reply_to_message_id,
            reply_markup=reply_markup,
        )
        if sent is None:
            logger.warning("send.failed", chat_id=chat_id)
        return sent

    def save(self) -> bool:
        try:
            self.store.save(self.state)
        except StateError as exc:
            logger.error("state.save_failed", error=str(exc))
            return False
        return True

    async def broadcast(self, text: str, *, disable_web_page_preview: bool = False) -> int:
        return await broadcast(
            self.bot,
            self.state.broadcast_chat_ids,
            text,
            disable_web_page_preview=disable_web_page_preview,
        )

    async def broadcast_from_user(self, sender: Sender, text: str) -> int:
        if not text:
            return 0
        return await self.broadcast(message_from_user(sender, text))

    def next_meeting_text(self) -> str:
        return next_meeting_text(
            self.state.next_meeting,
            self.state.next_meeting_location,
            now=self.clock(),
        )

    async def set_next_meeting(
        self, sender: Sender, when: datetime, location: str
    ) -> None:
        self.state.next_meeting = when
        self.state.next_meeting_location = location
        self.save()
        logger.info(
            "meeting.scheduled",
            user_id=sender.id,
            when=when.isoformat(),
            location=location,
        )
        await self.broadcast(
            f"Next meeting has been set by {sender.signature}.\n"
            f"{self.next_meeting_text()}"
        )
