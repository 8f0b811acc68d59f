"""Multistep dialogs: short private-chat conversations owned by one user."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum

from .context import BotContext
from .logging import get_logger
from .meeting import format_meeting_time, parse_meeting_datetime
from .telegram.client import remove_keyboard, reply_keyboard
from .telegram.types import IncomingMessage, Sender

logger = get_logger(__name__)

__all__ = ["BroadcastDialog", "Dialog", "MeetingStep", "ScheduleMeetingDialog"]


class Dialog(ABC):
    """Common contract for every multistep dialog.

    ``start`` captures the owning chat and user and sends the first prompt,
    ``update`` consumes one message and returns ``True`` once the dialog is
    finished, ``cancel`` acknowledges an abort without running completion.
    """

    name = "dialog"

    def __init__(self, ctx: BotContext) -> None:
        self.ctx = ctx
        self.chat_id: int | None = None
        self.owner: Sender | None = None

    @property
    def user_id(self) -> int | None:
        return self.owner.id if self.owner is not None else None

    async def start(self, msg: IncomingMessage) -> None:
        self.chat_id = msg.chat_id
        self.owner = msg.sender
        logger.info(
            "dialog.started", dialog=self.name, chat_id=msg.chat_id, user_id=msg.sender.id
        )
        await self._prompt()

    @abstractmethod
    async def update(self, msg: IncomingMessage) -> bool: ...

    @abstractmethod
    async def cancel(self, msg: IncomingMessage) -> None: ...

    @abstractmethod
    async def _prompt(self) -> None: ...

    async def _reply(self, text: str, **kwargs) -> None:
        if self.chat_id is None:
            raise RuntimeError(f"{self.name} dialog used before start()")
        await self.ctx.send(self.chat_id, text, **kwargs)


class BroadcastDialog(Dialog):
    name = "broadcast"

    async def _prompt(self) -> None:
        await self._reply(
            "Please tell me the message you wish to broadcast to ALL "
            f"{self.ctx.organisation} staff chatrooms. "
            "Or message me with /cancel to stop the broadcast."
        )

    async def update(self, msg: IncomingMessage) -> bool:
        owner = self.owner or msg.sender
        delivered = await self.ctx.broadcast_from_user(owner, msg.text)
        logger.info("dialog.broadcast.done", user_id=owner.id, delivered=delivered)
        # confirm even without destinations so the user knows the attempt happened
        await self._reply(
            f"Your message has been broadcast to ALL {self.ctx.organisation} "
            "staff chatrooms."
        )
        return True

    async def cancel(self, msg: IncomingMessage) -> None:
        await self._reply("Your message broadcast has been cancelled.")


class MeetingStep(Enum):
    DATE_TIME = "date_time"
    LOCATION = "location"
    CONFIRMATION = "confirmation"
    DONE = "done"


class ScheduleMeetingDialog(Dialog):
    name = "schedule_meeting"

    def __init__(self, ctx: BotContext) -> None:
        super().__init__(ctx)
        self.step = MeetingStep.DONE
        self.when: datetime | None = None
        self.location: str | None = None

    async def start(self, msg: IncomingMessage) -> None:
        self.step = MeetingStep.DATE_TIME
        await super().start(msg)

    async def update(self, msg: IncomingMessage) -> bool:
        error: str | None = None
        text = msg.text.strip()
        if self.step is MeetingStep.DATE_TIME:
            parsed = parse_meeting_datetime(text, now=self.ctx.clock())
            if parsed is None:
                error = "Unable to determine the date and time from your message."
            else:
                self.when = parsed
                self.step = MeetingStep.LOCATION
        elif self.step is MeetingStep.LOCATION:
            if not text:
                error = "Invalid location."
            else:
                self.location = msg.text
                self.step = MeetingStep.CONFIRMATION
        elif self.step is MeetingStep.CONFIRMATION:
            if text.casefold() == "yes":
                when, location = self._pending()
                await self.ctx.set_next_meeting(self.owner or msg.sender, when, location)
                self.step = MeetingStep.DONE
            else:
                self.step = MeetingStep.DATE_TIME
        else:
            logger.warning("dialog.update_after_done", dialog=self.name)
            return True

        if error is not None:
            logger.info("dialog.invalid_input", dialog=self.name, step=self.step.value)
        await self._prompt(error)
        return self.step is MeetingStep.DONE

    def _pending(self) -> tuple[datetime, str]:
        if self.when is None or self.location is None:
            raise RuntimeError(
                "meeting confirmation reached without date and location"
            )
        return self.when, self.location

    async def cancel(self, msg: IncomingMessage) -> None:
        markup = remove_keyboard() if self.step is MeetingStep.CONFIRMATION else None
        await self._reply("Set next meeting has been cancelled.", reply_markup=markup)

    async def _prompt(self, error: str | None = None) -> None:
        prefix = f"{error}\n\n" if error else ""
        if self.step is MeetingStep.DATE_TIME:
            await self._reply(
                prefix + "Please message me with the date and time of the next meeting."
            )
        elif self.step is MeetingStep.LOCATION:
            await self._reply(
                prefix + "Please message me with the location of the next meeting."
            )
        elif self.step is MeetingStep.CONFIRMATION:
            when, location = self._pending()
            await self._reply(
                prefix
                + f"The next meeting is {format_meeting_time(when)} "
                f"at {location}.\nIs this correct?",
                reply_markup=reply_keyboard(["No", "Yes"]),
            )
        elif self.step is MeetingStep.DONE:
            await self._reply(
                "The next meeting has been saved and announced.",
                reply_markup=remove_keyboard(),
            )
