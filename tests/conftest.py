from collections.abc import Callable
from pathlib import Path

import pytest

from commsbot.context import BotContext
from tests.telegram_fakes import FakeBot, make_ctx


@pytest.fixture
def fake_bot() -> FakeBot:
    return FakeBot()


@pytest.fixture
def ctx(tmp_path: Path, fake_bot: FakeBot) -> BotContext:
    return make_ctx(tmp_path, bot=fake_bot)


@pytest.fixture
def make_context(tmp_path: Path) -> Callable[..., BotContext]:
    def _factory(**kwargs) -> BotContext:
        return make_ctx(tmp_path, **kwargs)

    return _factory
