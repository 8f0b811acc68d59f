from datetime import datetime

import pytest

from commsbot.context import BotContext
from commsbot.dialogs import (
    BroadcastDialog,
    Dialog,
    MeetingStep,
    ScheduleMeetingDialog,
)
from commsbot.state import StateStore
from tests.telegram_fakes import ADMIN_ID, FakeBot, make_message


async def _started_meeting(ctx: BotContext) -> ScheduleMeetingDialog:
    dialog = ScheduleMeetingDialog(ctx)
    await dialog.start(make_message("/setnextmeeting"))
    return dialog


@pytest.mark.anyio
async def test_broadcast_start_prompts_owner(ctx: BotContext, fake_bot: FakeBot) -> None:
    dialog = BroadcastDialog(ctx)

    await dialog.start(make_message("/broadcast"))

    assert dialog.chat_id == ADMIN_ID
    assert dialog.user_id == ADMIN_ID
    assert len(fake_bot.send_calls) == 1
    assert "/cancel" in fake_bot.send_calls[0]["text"]


@pytest.mark.anyio
async def test_broadcast_update_fans_out_prefixed_text(
    ctx: BotContext, fake_bot: FakeBot
) -> None:
    dialog = BroadcastDialog(ctx)
    await dialog.start(make_message("/broadcast"))
    fake_bot.send_calls.clear()

    complete = await dialog.update(make_message("hi"))

    assert complete is True
    expected = "Message from Zen (@zen):\nhi"
    for chat_id in (100, 200, 300):
        assert fake_bot.texts_to(chat_id) == [expected]
    assert "has been broadcast" in fake_bot.texts_to(ADMIN_ID)[0]


@pytest.mark.anyio
async def test_broadcast_completes_even_for_commands(
    ctx: BotContext, fake_bot: FakeBot
) -> None:
    dialog = BroadcastDialog(ctx)
    await dialog.start(make_message("/broadcast"))

    assert await dialog.update(make_message("/help")) is True
    assert fake_bot.texts_to(100) == ["Message from Zen (@zen):\n/help"]


@pytest.mark.anyio
async def test_broadcast_cancel_sends_ack_without_fan_out(
    ctx: BotContext, fake_bot: FakeBot
) -> None:
    dialog = BroadcastDialog(ctx)
    await dialog.start(make_message("/broadcast"))

    await dialog.cancel(make_message("/cancel"))

    assert fake_bot.texts_to(100) == []
    assert fake_bot.texts_to(ADMIN_ID)[-1] == "Your message broadcast has been cancelled."


@pytest.mark.anyio
async def test_schedule_meeting_round_trip(ctx: BotContext, fake_bot: FakeBot) -> None:
    dialog = await _started_meeting(ctx)

    assert await dialog.update(make_message("2026-01-10 18:00")) is False
    assert dialog.step is MeetingStep.LOCATION
    assert await dialog.update(make_message("Main Hall")) is False
    assert dialog.step is MeetingStep.CONFIRMATION
    confirmation = fake_bot.send_calls[-1]
    assert confirmation["reply_markup"]["keyboard"] == [
        [{"text": "No"}, {"text": "Yes"}]
    ]
    assert "Main Hall" in confirmation["text"]

    assert await dialog.update(make_message("Yes")) is True

    assert dialog.step is MeetingStep.DONE
    assert ctx.state.next_meeting == datetime(2026, 1, 10, 18, 0)
    assert ctx.state.next_meeting_location == "Main Hall"
    saved = StateStore(ctx.store.path).load()
    assert saved.next_meeting == datetime(2026, 1, 10, 18, 0)
    announcement = fake_bot.texts_to(100)
    assert len(announcement) == 1
    assert announcement[0].startswith("Next meeting has been set by Zen (@zen).")
    assert "Main Hall" in announcement[0]


@pytest.mark.anyio
async def test_schedule_meeting_yes_is_case_insensitive(ctx: BotContext) -> None:
    dialog = await _started_meeting(ctx)
    await dialog.update(make_message("2026-02-01 19:30"))
    await dialog.update(make_message("Online"))

    assert await dialog.update(make_message("  yEs ")) is True
    assert ctx.state.next_meeting_location == "Online"


@pytest.mark.anyio
async def test_schedule_meeting_rejects_bad_dates_repeatedly(
    ctx: BotContext, fake_bot: FakeBot
) -> None:
    dialog = await _started_meeting(ctx)

    for text in ("soon", "next week maybe", "", "32/13/2026 99:99"):
        assert await dialog.update(make_message(text)) is False
        assert dialog.step is MeetingStep.DATE_TIME
        assert fake_bot.send_calls[-1]["text"].startswith(
            "Unable to determine the date and time"
        )

    assert ctx.state.next_meeting is None
    assert not ctx.store.path.exists()
    assert fake_bot.texts_to(100) == []


@pytest.mark.anyio
async def test_schedule_meeting_rejects_empty_location(
    ctx: BotContext, fake_bot: FakeBot
) -> None:
    dialog = await _started_meeting(ctx)
    await dialog.update(make_message("2026-01-10 18:00"))

    assert await dialog.update(make_message("   ")) is False

    assert dialog.step is MeetingStep.LOCATION
    assert fake_bot.send_calls[-1]["text"].startswith("Invalid location.")


@pytest.mark.anyio
async def test_schedule_meeting_no_restarts_and_overwrites(ctx: BotContext) -> None:
    dialog = await _started_meeting(ctx)
    await dialog.update(make_message("2026-01-10 18:00"))
    await dialog.update(make_message("Main Hall"))

    assert await dialog.update(make_message("no")) is False
    assert dialog.step is MeetingStep.DATE_TIME
    assert ctx.state.next_meeting is None

    await dialog.update(make_message("2026-03-05 17:15"))
    await dialog.update(make_message("Room 2"))
    assert await dialog.update(make_message("Yes")) is True

    assert ctx.state.next_meeting == datetime(2026, 3, 5, 17, 15)
    assert ctx.state.next_meeting_location == "Room 2"


@pytest.mark.anyio
async def test_cancel_in_confirmation_removes_keyboard(
    ctx: BotContext, fake_bot: FakeBot
) -> None:
    dialog = await _started_meeting(ctx)
    await dialog.update(make_message("2026-01-10 18:00"))
    await dialog.update(make_message("Main Hall"))

    await dialog.cancel(make_message("/cancel"))

    last = fake_bot.send_calls[-1]
    assert last["text"] == "Set next meeting has been cancelled."
    assert last["reply_markup"] == {"remove_keyboard": True}
    assert ctx.state.next_meeting is None


@pytest.mark.anyio
async def test_cancel_before_confirmation_sends_no_markup(
    ctx: BotContext, fake_bot: FakeBot
) -> None:
    dialog = await _started_meeting(ctx)
    await dialog.update(make_message("2026-01-10 18:00"))

    await dialog.cancel(make_message("/cancel"))

    assert fake_bot.send_calls[-1]["reply_markup"] is None


@pytest.mark.anyio
async def test_schedule_meeting_time_only_uses_context_clock(
    ctx: BotContext,
) -> None:
    dialog = await _started_meeting(ctx)

    assert await dialog.update(make_message("6:30 PM")) is False

    assert dialog.step is MeetingStep.LOCATION
    assert dialog.when == datetime(2026, 1, 1, 18, 30)


def test_dialog_base_is_abstract(ctx: BotContext) -> None:
    with pytest.raises(TypeError):
        Dialog(ctx)


@pytest.mark.anyio
async def test_dialog_used_before_start_raises(
    ctx: BotContext, fake_bot: FakeBot
) -> None:
    dialog = BroadcastDialog(ctx)

    with pytest.raises(RuntimeError, match="before start"):
        await dialog.cancel(make_message("/cancel"))

    assert fake_bot.send_calls == []


@pytest.mark.anyio
async def test_confirmation_without_pending_values_raises(ctx: BotContext) -> None:
    dialog = await _started_meeting(ctx)
    dialog.step = MeetingStep.CONFIRMATION

    with pytest.raises(RuntimeError, match="without date and location"):
        await dialog.update(make_message("yes"))

    assert ctx.state.next_meeting is None
