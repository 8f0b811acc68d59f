from __future__ import annotations

from collections.abc import Iterable

from .logging import get_logger
from .telegram.client import BotClient
from .telegram.types import Sender

logger = get_logger(__name__)

__all__ = ["broadcast", "message_from_user"]


def message_from_user(sender: Sender, text: str) -> str:
    return f"Message from {sender.signature}:\n{text}"


async def broadcast(
    bot: BotClient,
    destinations: Iterable[int],
    text: str,
    *,
    disable_web_page_preview: bool = False,
) -> int:
    """Send ``text`` to every destination in turn; returns the number delivered.

    Each destination is independent: a failed send is logged and the fan-out
    moves on to the next chat.
    """
    targets = list(destinations)
    if not text or not targets:
        return 0
    delivered = 0
    for chat_id in targets:
        try:
            sent = await bot.send_message(
                chat_id,
                text,
                disable_web_page_preview=disable_web_page_preview,
            )
        except Exception as exc:
            logger.error(
                "broadcast.send_failed",
                chat_id=chat_id,
                error=str(exc),
                error_type=exc.__class__.__name__,
            )
            continue
        if sent is None:
            logger.error("broadcast.send_failed", chat_id=chat_id)
            continue
        delivered += 1
    logger.info("broadcast.sent", delivered=delivered, destinations=len(targets))
    return delivered
