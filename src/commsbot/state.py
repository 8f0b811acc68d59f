from __future__ import annotations

import os
from datetime import datetime
from pathlib import Path

import msgspec

from .logging import get_logger

logger = get_logger(__name__)

STATE_VERSION = 1


class StateError(RuntimeError):
    pass


class BotState(msgspec.Struct, forbid_unknown_fields=False):
    """Mutable settings snapshot shared by the dispatcher and the dialogs."""

    version: int = STATE_VERSION
    admin_user_ids: list[int] = msgspec.field(default_factory=list)
    broadcast_chat_ids: list[int] = msgspec.field(default_factory=list)
    next_meeting: datetime | None = None
    next_meeting_location: str | None = None
    meeting_link: str | None = None
    # lower-cased username -> user id, filled by /noticeme
    noticed_users: dict[str, int] = msgspec.field(default_factory=dict)

    def is_admin(self, user_id: int | None) -> bool:
        if user_id is None or not self.admin_user_ids:
            return False
        return user_id in self.admin_user_ids


_encoder = msgspec.json.Encoder()
_decoder = msgspec.json.Decoder(BotState)


class StateStore:
    def __init__(self, path: Path) -> None:
        self.path = path

    def load(self) -> BotState:
        try:
            raw = self.path.read_bytes()
        except FileNotFoundError:
            raise StateError(f"Missing state file {self.path}.") from None
        except OSError as e:
            raise StateError(f"Failed to read state file {self.path}: {e}") from e
        try:
            state = _decoder.decode(raw)
        except msgspec.DecodeError as e:
            raise StateError(f"Malformed state file {self.path}: {e}") from None
        logger.info(
            "state.loaded",
            path=str(self.path),
            admins=len(state.admin_user_ids),
            broadcast_chats=len(state.broadcast_chat_ids),
        )
        return state

    def save(self, state: BotState) -> None:
        payload = msgspec.json.format(_encoder.encode(state), indent=2)
        tmp_path = self.path.with_name(f"{self.path.name}.tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_bytes(payload + b"\n")
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise StateError(f"Failed to write state file {self.path}: {e}") from e
        logger.debug("state.saved", path=str(self.path))
