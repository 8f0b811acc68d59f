from __future__ import annotations

from typing import Any

import msgspec

from ..logging import get_logger
from .api_models import Message, MessageEntity, Update
from .types import Entity, IncomingMessage, IncomingUpdate, Sender

logger = get_logger(__name__)


def entity_text(text: str, entity: MessageEntity) -> str:
    """Slice an entity out of ``text``; Telegram offsets count UTF-16 code units."""
    encoded = text.encode("utf-16-le")
    start = entity.offset * 2
    end = (entity.offset + entity.length) * 2
    return encoded[start:end].decode("utf-16-le", errors="replace")


def parse_incoming_update(update: Update | dict[str, Any]) -> IncomingUpdate | None:
    if isinstance(update, dict):
        try:
            update = msgspec.convert(update, type=Update)
        except msgspec.ValidationError as exc:
            update_id = update.get("update_id")
            if isinstance(update_id, bool) or not isinstance(update_id, int):
                logger.warning("parsing.update_invalid", error=str(exc))
                return None
            logger.warning(
                "parsing.message_invalid", update_id=update_id, error=str(exc)
            )
            return IncomingUpdate(update_id=update_id, message=None)

    message = None
    if update.message is not None:
        message = parse_incoming_message(update.message)
    return IncomingUpdate(update_id=update.update_id, message=message)


def parse_incoming_message(msg: Message) -> IncomingMessage | None:
    # only text messages are dispatched; stickers, photos and the like are skipped
    if msg.text is None or msg.from_ is None:
        return None
    text = msg.text
    entities = tuple(
        Entity(type=entity.type, value=entity_text(text, entity))
        for entity in msg.entities or ()
    )
    sender = Sender(
        id=msg.from_.id,
        first_name=msg.from_.first_name,
        username=msg.from_.username,
    )
    return IncomingMessage(
        chat_id=msg.chat.id,
        chat_type=msg.chat.type,
        message_id=msg.message_id,
        sender=sender,
        text=text,
        entities=entities,
        chat_title=msg.chat.title,
    )
