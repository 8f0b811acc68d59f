from pathlib import Path

import pytest

from commsbot.bot import build_bot, run_bot
from commsbot.config import BotConfig, ConfigError
from commsbot.state import StateError
from tests.telegram_fakes import FakeBot, raw_update


def _config(tmp_path: Path, **kwargs) -> tuple[BotConfig, Path]:
    (tmp_path / "state.json").write_text('{"admin_user_ids": [2]}')
    config = BotConfig(state_path=Path("state.json"), **kwargs)
    return config, tmp_path / "commsbot.toml"


def test_build_bot_wires_config(tmp_path: Path) -> None:
    config, config_path = _config(
        tmp_path, organisation="Staff", batch_size=20, poll_timeout_s=30
    )
    client = FakeBot()

    bot = build_bot(config, config_path, client=client)

    assert bot.client is client
    assert bot.loop.batch_size == 20
    assert bot.loop.poll_timeout_s == 30
    ctx = bot.dispatcher.ctx
    assert ctx.organisation == "Staff"
    assert ctx.state.admin_user_ids == [2]
    assert ctx.store.path == tmp_path / "state.json"


def test_build_bot_missing_state(tmp_path: Path) -> None:
    with pytest.raises(StateError):
        build_bot(BotConfig(), tmp_path / "commsbot.toml", client=FakeBot())


def test_build_bot_missing_token(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.delenv("COMMSBOT_BOT_TOKEN", raising=False)
    config, config_path = _config(tmp_path)

    with pytest.raises(ConfigError, match="Missing bot token"):
        build_bot(config, config_path)


@pytest.mark.anyio
async def test_run_bot_closes_client(tmp_path: Path) -> None:
    config, config_path = _config(tmp_path)
    client = FakeBot([[raw_update(1, "/whois")]])
    bot = build_bot(config, config_path, client=client)
    client.on_exhausted = bot.loop.cancel

    ok = await run_bot(bot)

    assert ok is True
    assert client.closed
    assert client.texts_to(2)[0].startswith("Hello Kit, I am Commsbot")


@pytest.mark.anyio
async def test_run_bot_reports_failure(tmp_path: Path) -> None:
    config, config_path = _config(tmp_path)
    client = FakeBot([RuntimeError("boom")])
    bot = build_bot(config, config_path, client=client)

    ok = await run_bot(bot)

    assert ok is False
    assert client.closed
