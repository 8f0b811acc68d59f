from __future__ import annotations

from .telegram.types import IncomingMessage

BOT_COMMAND = "bot_command"
MENTION = "mention"
URL = "url"

CANCEL_COMMAND = "cancel"


def normalize_command(text: str | None) -> str:
    """Reduce ``/Cmd@BotName args`` to ``cmd``; anything else becomes ``""``."""
    if not text:
        return ""
    value = text.strip().lower()
    if len(value) <= 1 or not value.startswith("/"):
        return ""
    value = value[1:]
    for separator in ("@", " "):
        index = value.find(separator)
        if index >= 0:
            value = value[:index]
    return value.strip()


def entity_value(msg: IncomingMessage, kind: str) -> str | None:
    for entity in msg.entities:
        if entity.type == kind:
            return entity.value
    return None


def extract_command(msg: IncomingMessage) -> str | None:
    command = normalize_command(entity_value(msg, BOT_COMMAND))
    return command or None
