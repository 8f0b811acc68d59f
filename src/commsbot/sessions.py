from __future__ import annotations

from typing import TYPE_CHECKING

from .logging import get_logger

if TYPE_CHECKING:
    from .dialogs import Dialog

logger = get_logger(__name__)

__all__ = ["SessionTable"]


class SessionTable:
    """Active multistep dialogs keyed by the owning user id.

    Holds at most one dialog per user; ``set`` replaces whatever was there.
    The table is only touched from the single poll loop task and does no
    locking, so concurrent access from other tasks or threads is unsupported.
    """

    def __init__(self) -> None:
        self._dialogs: dict[int, Dialog] = {}

    def get(self, user_id: int) -> Dialog | None:
        return self._dialogs.get(user_id)

    def set(self, user_id: int, dialog: Dialog) -> None:
        previous = self._dialogs.get(user_id)
        if previous is not None and previous is not dialog:
            logger.info(
                "session.replaced",
                user_id=user_id,
                previous=previous.name,
                dialog=dialog.name,
            )
        self._dialogs[user_id] = dialog

    def remove(self, user_id: int) -> None:
        self._dialogs.pop(user_id, None)

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._dialogs

    def __len__(self) -> int:
        return len(self._dialogs)
