from __future__ import annotations

from dataclasses import dataclass

PRIVATE_CHAT = "private"


@dataclass(frozen=True, slots=True)
class Sender:
    id: int
    first_name: str | None = None
    username: str | None = None

    @property
    def display_name(self) -> str:
        return self.first_name or self.username or str(self.id)

    @property
    def signature(self) -> str:
        if self.username:
            return f"{self.display_name} (@{self.username})"
        return self.display_name


@dataclass(frozen=True, slots=True)
class Entity:
    type: str
    value: str


@dataclass(frozen=True, slots=True)
class IncomingMessage:
    chat_id: int
    chat_type: str
    message_id: int
    sender: Sender
    text: str
    entities: tuple[Entity, ...] = ()
    chat_title: str | None = None

    @property
    def is_private(self) -> bool:
        return self.chat_type == PRIVATE_CHAT


@dataclass(frozen=True, slots=True)
class IncomingUpdate:
    update_id: int
    message: IncomingMessage | None
