from __future__ import annotations

from collections.abc import Awaitable, Callable

from .commands import CANCEL_COMMAND, MENTION, URL, entity_value, extract_command
from .context import BotContext
from .dialogs import BroadcastDialog, Dialog, ScheduleMeetingDialog
from .logging import get_logger
from .meeting import help_text
from .sessions import SessionTable
from .telegram.types import IncomingMessage

logger = get_logger(__name__)

__all__ = ["Dispatcher"]

Handler = Callable[[IncomingMessage], Awaitable[None]]


class Dispatcher:
    """Routes each inbound message to the sender's dialog or a command handler."""

    def __init__(self, ctx: BotContext, sessions: SessionTable | None = None) -> None:
        self.ctx = ctx
        self.sessions = sessions if sessions is not None else SessionTable()
        self._common: dict[str, Handler] = {
            "help": self._help,
            "start": self._help,
            "meetinglink": self._meeting_link,
            "nextmeeting": self._next_meeting,
            "hashtag": self._hashtags,
            "hashtags": self._hashtags,
            "tags": self._hashtags,
        }
        self._admin: dict[str, Handler] = {
            "adminadd": self._admin_add,
            "adminremove": self._admin_remove,
            "clearmeetinglink": self._clear_meeting_link,
            "setmeetinglink": self._set_meeting_link,
            "setnextmeeting": self._start_schedule_meeting,
            "whois": self._whois,
            "save": self._save,
        }
        self._direct: dict[str, Handler] = {
            "broadcast": self._start_broadcast,
            "noticeme": self._notice_me,
        }
        # group-only commands go here
        self._group: dict[str, Handler] = {}

    async def handle_message(self, msg: IncomingMessage) -> None:
        logger.info(
            "dispatch.message",
            chat_id=msg.chat_id,
            chat_type=msg.chat_type,
            chat_title=msg.chat_title,
            user_id=msg.sender.id,
            username=msg.sender.username,
            text=msg.text,
            entities=[(entity.type, entity.value) for entity in msg.entities],
        )

        dialog = self.sessions.get(msg.sender.id) if msg.is_private else None
        command = extract_command(msg)

        if dialog is not None:
            await self._advance_dialog(dialog, msg, command)
            return

        if command is None:
            return

        handler = self._common.get(command)
        if handler is None:
            handler = self._route_by_chat(msg, command)
        if handler is None:
            logger.debug("dispatch.unknown_command", command=command)
            return
        logger.info("dispatch.command", command=command, user_id=msg.sender.id)
        await handler(msg)

    def _route_by_chat(self, msg: IncomingMessage, command: str) -> Handler | None:
        if not msg.is_private:
            return self._group.get(command)
        if self.ctx.state.is_admin(msg.sender.id):
            handler = self._admin.get(command)
            if handler is not None:
                return handler
        elif command in self._admin:
            logger.info(
                "dispatch.admin_denied", command=command, user_id=msg.sender.id
            )
            return None
        return self._direct.get(command)

    async def _advance_dialog(
        self, dialog: Dialog, msg: IncomingMessage, command: str | None
    ) -> None:
        user_id = msg.sender.id
        if command == CANCEL_COMMAND:
            await dialog.cancel(msg)
            self.sessions.remove(user_id)
            logger.info("dialog.cancelled", dialog=dialog.name, user_id=user_id)
            return
        complete = await dialog.update(msg)
        if complete:
            self.sessions.remove(user_id)
            logger.info("dialog.completed", dialog=dialog.name, user_id=user_id)

    async def _start_dialog(self, msg: IncomingMessage, dialog: Dialog) -> None:
        await dialog.start(msg)
        self.sessions.set(msg.sender.id, dialog)

    def _reply_to(self, msg: IncomingMessage) -> int | None:
        # thread replies in groups so the answer lands next to the question
        return None if msg.is_private else msg.message_id

    # common commands

    async def _help(self, msg: IncomingMessage) -> None:
        include_admin = msg.is_private and self.ctx.state.is_admin(msg.sender.id)
        await self.ctx.send(
            msg.chat_id,
            help_text(organisation=self.ctx.organisation, include_admin=include_admin),
            disable_web_page_preview=True,
            reply_to_message_id=self._reply_to(msg),
        )

    async def _next_meeting(self, msg: IncomingMessage) -> None:
        await self.ctx.send(
            msg.chat_id,
            self.ctx.next_meeting_text(),
            reply_to_message_id=self._reply_to(msg),
        )

    async def _meeting_link(self, msg: IncomingMessage) -> None:
        link = self.ctx.state.meeting_link
        if not link:
            await self.ctx.send(
                msg.chat_id,
                "Meeting link is not setup yet",
                reply_to_message_id=self._reply_to(msg),
            )
            return
        await self.ctx.send(
            msg.chat_id,
            f"Connect to the meeting here: {link}",
            disable_web_page_preview=True,
            reply_to_message_id=self._reply_to(msg),
        )

    async def _hashtags(self, msg: IncomingMessage) -> None:
        url = self.ctx.hashtags_url
        text = (
            f"A list of all department hashtags is here:\n{url}"
            if url
            else "No department hashtag list has been configured."
        )
        await self.ctx.send(msg.chat_id, text, reply_to_message_id=self._reply_to(msg))

    # private commands

    async def _start_broadcast(self, msg: IncomingMessage) -> None:
        await self._start_dialog(msg, BroadcastDialog(self.ctx))

    async def _notice_me(self, msg: IncomingMessage) -> None:
        username = msg.sender.username
        if not username:
            await self.ctx.send(
                msg.chat_id, "You need a Telegram username before I can notice you."
            )
            return
        key = username.lower()
        noticed = self.ctx.state.noticed_users
        if key in noticed:
            await self.ctx.send(msg.chat_id, "Senpai already noticed you.")
            return
        noticed[key] = msg.sender.id
        self.ctx.save()
        logger.info("user.noticed", user_id=msg.sender.id, username=key)
        await self.ctx.send(msg.chat_id, "Senpai has noticed you.")

    # admin commands

    def _resolve_mention(self, mention: str) -> int | None:
        return self.ctx.state.noticed_users.get(mention.lstrip("@").lower())

    async def _admin_add(self, msg: IncomingMessage) -> None:
        await self._change_admin(msg, add=True)

    async def _admin_remove(self, msg: IncomingMessage) -> None:
        await self._change_admin(msg, add=False)

    async def _change_admin(self, msg: IncomingMessage, *, add: bool) -> None:
        mention = entity_value(msg, MENTION)
        if not mention:
            await self.ctx.send(
                msg.chat_id,
                "Unable to find a username to add. "
                "Please include a username with the @ mention format.",
            )
            return
        user_id = self._resolve_mention(mention)
        if user_id is None:
            await self.ctx.send(
                msg.chat_id,
                f"Unable to find {mention} in the userlist. Please get them to "
                "direct message the bot with /noticeme first.",
            )
            return

        admins = self.ctx.state.admin_user_ids
        if add:
            if user_id not in admins:
                admins.append(user_id)
                self.ctx.save()
            reply = f"Added {mention} to the admin list."
        elif user_id in admins:
            admins.remove(user_id)
            self.ctx.save()
            reply = f"Removed {mention} from the admin list."
        else:
            reply = f"Did not find {mention} in the admin list."
        logger.info(
            "admin.changed",
            action="add" if add else "remove",
            target_id=user_id,
            by=msg.sender.id,
        )
        await self.ctx.send(msg.chat_id, reply)

    async def _clear_meeting_link(self, msg: IncomingMessage) -> None:
        self.ctx.state.meeting_link = None
        self.ctx.save()
        await self.ctx.send(msg.chat_id, "Meeting link has been cleared.")

    async def _set_meeting_link(self, msg: IncomingMessage) -> None:
        link = entity_value(msg, URL)
        if not link:
            await self.ctx.send(
                msg.chat_id,
                "Unable to find a valid weblink to share as the meeting link.",
            )
            return
        self.ctx.state.meeting_link = link
        self.ctx.save()
        await self.ctx.broadcast(
            f"Meeting link has been set by {msg.sender.signature}:\n{link}",
            disable_web_page_preview=True,
        )

    async def _start_schedule_meeting(self, msg: IncomingMessage) -> None:
        await self._start_dialog(msg, ScheduleMeetingDialog(self.ctx))

    async def _whois(self, msg: IncomingMessage) -> None:
        bot_name = self.ctx.bot_user.display_name if self.ctx.bot_user else "Unknown"
        await self.ctx.send(
            msg.chat_id,
            f"Hello {msg.sender.display_name}, I am {bot_name}, the Telegram "
            f"communication bot for {self.ctx.organisation} staff!",
        )

    async def _save(self, msg: IncomingMessage) -> None:
        if self.ctx.save():
            text = f"Forced settings to save to {self.ctx.store.path.name}"
        else:
            text = "Failed to save settings; check the bot logs."
        await self.ctx.send(msg.chat_id, text)
