import pytest

from commsbot.broadcast import broadcast, message_from_user
from commsbot.telegram.types import Sender
from tests.telegram_fakes import FakeBot


def test_message_from_user_uses_signature() -> None:
    assert (
        message_from_user(Sender(id=1, first_name="Zen", username="zen"), "hi")
        == "Message from Zen (@zen):\nhi"
    )
    assert (
        message_from_user(Sender(id=1, first_name="Zen"), "hi")
        == "Message from Zen:\nhi"
    )


@pytest.mark.anyio
async def test_broadcast_sends_to_every_destination_in_order() -> None:
    bot = FakeBot()

    delivered = await broadcast(bot, [100, 200, 300], "hi")

    assert delivered == 3
    assert [call["chat_id"] for call in bot.send_calls] == [100, 200, 300]
    assert {call["text"] for call in bot.send_calls} == {"hi"}


@pytest.mark.anyio
@pytest.mark.parametrize(("destinations", "text"), [([], "hi"), ([100], "")])
async def test_broadcast_noop_without_text_or_destinations(
    destinations: list[int], text: str
) -> None:
    bot = FakeBot()

    assert await broadcast(bot, destinations, text) == 0
    assert bot.send_calls == []


@pytest.mark.anyio
async def test_broadcast_continues_after_failures() -> None:
    bot = FakeBot()
    bot.failing_chat_ids.add(100)
    bot.raising_chat_ids.add(200)

    delivered = await broadcast(bot, [100, 200, 300], "hi")

    assert delivered == 1
    assert [call["chat_id"] for call in bot.send_calls] == [100, 200, 300]


@pytest.mark.anyio
async def test_broadcast_passes_preview_flag() -> None:
    bot = FakeBot()

    await broadcast(bot, (10,), "https://x.example", disable_web_page_preview=True)

    assert bot.send_calls[0]["disable_web_page_preview"] is True
