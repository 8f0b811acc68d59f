from __future__ import annotations

import itertools
import re
from datetime import datetime

_DATE_FORMATS = (
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%m/%d/%Y",
    "%m/%d/%y",
    "%B %d %Y",
    "%b %d %Y",
    "%d %B %Y",
    "%d %b %Y",
    "%A %B %d %Y",
    "%a %b %d %Y",
)
# parsed with the current year appended to both format and text
_YEARLESS_DATE_FORMATS = (
    "%m/%d",
    "%B %d",
    "%b %d",
    "%d %B",
    "%d %b",
    "%A %B %d",
    "%a %b %d",
)
_TIME_FORMATS = (
    "%H:%M",
    "%H:%M:%S",
    "%I:%M %p",
    "%I:%M%p",
    "%I %p",
    "%I%p",
)


def _combined(dates: tuple[str, ...]) -> tuple[str, ...]:
    return (
        tuple(f"{date} {time}" for date, time in itertools.product(dates, _TIME_FORMATS))
        + tuple(f"{time} {date}" for time, date in itertools.product(_TIME_FORMATS, dates))
        + dates
    )


_DATETIME_FORMATS = _combined(_DATE_FORMATS)
_YEARLESS_FORMATS = _combined(_YEARLESS_DATE_FORMATS)

_SEPARATORS_RE = re.compile(r"[\s,]+")
_AT_RE = re.compile(r"\bat\b", re.IGNORECASE)


def _strptime_any(value: str, formats: tuple[str, ...]) -> datetime | None:
    for fmt in formats:
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    return None


def parse_meeting_datetime(
    text: str | None, *, now: datetime | None = None
) -> datetime | None:
    """Parse a free-form local date and time; ``None`` when nothing matches.

    A date without a year falls in the year of ``now``; a time on its own
    falls on the date of ``now``.
    """
    if not text or not text.strip():
        return None
    if now is None:
        now = datetime.now()
    value = text.strip()
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        pass
    else:
        return parsed.replace(tzinfo=None) if parsed.tzinfo is not None else parsed
    value = _SEPARATORS_RE.sub(" ", _AT_RE.sub(" ", value)).strip()

    parsed = _strptime_any(value, _DATETIME_FORMATS)
    if parsed is not None:
        return parsed
    parsed = _strptime_any(
        f"{value} {now.year}", tuple(f"{fmt} %Y" for fmt in _YEARLESS_FORMATS)
    )
    if parsed is not None:
        return parsed
    parsed = _strptime_any(value, _TIME_FORMATS)
    if parsed is not None:
        return datetime.combine(now.date(), parsed.time())
    return None


def format_meeting_time(value: datetime) -> str:
    hour = value.hour % 12 or 12
    return f"{value:%A, %B} {value.day}, {value.year} {hour}:{value:%M %p}"


def _plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


def next_meeting_text(
    next_meeting: datetime | None,
    location: str | None,
    *,
    now: datetime,
) -> str:
    if next_meeting is None or next_meeting < now:
        return "The next meeting date is not set."

    delta = next_meeting - now
    text = f"The next meeting is {format_meeting_time(next_meeting)}"
    text += f" at {location}. " if location else ". "

    hours, remainder = divmod(delta.seconds, 3600)
    minutes = remainder // 60
    if delta.days >= 1:
        return text + f"That is in {_plural(delta.days, 'day')}."
    if hours > 0:
        return (
            text
            + f"That is in {_plural(hours, 'hour')} and {_plural(minutes, 'minute')}."
        )
    if minutes == 1:
        return text + "That is in 1 minute!"
    return text + f"That is in {minutes} minutes."


def help_text(*, organisation: str, include_admin: bool) -> str:
    text = (
        f"Valid commands for the {organisation} Communication Bot\n"
        "\n"
        f"/broadcast - Send a message to all {organisation} staff chatrooms at "
        "the same time. (Must be sent as a direct message.)\n"
        "/help - Show this list of commands\n"
        "/hashtags - Gives a link to the department hashtags.\n"
        "/meetinglink - Gives the active meeting online link, when a staff "
        "meeting is happening.\n"
        "/nextmeeting - Displays the date, time and location of the next staff "
        "meeting.\n"
        "/noticeme - Lets the bot learn your username so admins can find you. "
        "(Must be sent as a direct message.)\n"
        "/cancel - Stops the command you are currently in the middle of."
    )
    if not include_admin:
        return text
    return text + (
        "\n\n"
        "Admin commands. If you get this message, you can use these commands. "
        "Must be sent via direct message.\n"
        "\n"
        "/adminadd - Adds a user to the admin list. Must include an @ mention of "
        "the user to add. Target user must also message the bot with /noticeme "
        "to get added to the internal userlist.\n"
        "/adminremove - Removes a user from the admin list. Must include an @ "
        "mention of the user to remove.\n"
        "/clearmeetinglink - Clears the current remote meeting link.\n"
        "/setmeetinglink - Set a valid weblink for remote meeting connection. "
        "Will broadcast to all groups when changed.\n"
        "/setnextmeeting - Set the date, time and location of the next meeting. "
        "Will broadcast to all groups when changed.\n"
        "/save - Force the bot to save its internal settings.\n"
        "/whois - A test command that just replies to you."
    )
