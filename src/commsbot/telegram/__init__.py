from __future__ import annotations

from .client import (
    BotClient,
    TelegramClient,
    TelegramRetryAfter,
    remove_keyboard,
    reply_keyboard,
)
from .parsing import entity_text, parse_incoming_message, parse_incoming_update
from .types import Entity, IncomingMessage, IncomingUpdate, Sender

__all__ = [
    "BotClient",
    "Entity",
    "IncomingMessage",
    "IncomingUpdate",
    "Sender",
    "TelegramClient",
    "TelegramRetryAfter",
    "entity_text",
    "parse_incoming_message",
    "parse_incoming_update",
    "remove_keyboard",
    "reply_keyboard",
]
