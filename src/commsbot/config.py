from __future__ import annotations

import os
import tomllib
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError

# Environment variable names for secrets
ENV_BOT_TOKEN = "COMMSBOT_BOT_TOKEN"

LOCAL_CONFIG_NAME = Path("commsbot.toml")
HOME_CONFIG_PATH = Path.home() / ".commsbot" / "commsbot.toml"
DEFAULT_STATE_FILENAME = "commsbot_state.json"


class ConfigError(RuntimeError):
    pass


class BotConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")

    bot_token: SecretStr | None = None
    state_path: Path = Path(DEFAULT_STATE_FILENAME)
    poll_timeout_s: int = Field(default=10, ge=1, le=50)
    batch_size: int = Field(default=100, ge=1, le=100)
    organisation: str = "VancouFur"
    hashtags_url: str | None = None


def _config_candidates() -> list[Path]:
    candidates = [Path.cwd() / LOCAL_CONFIG_NAME, HOME_CONFIG_PATH]
    if candidates[0] == candidates[1]:
        return [candidates[0]]
    return candidates


def _read_config(cfg_path: Path) -> dict:
    try:
        raw = cfg_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise ConfigError(f"Missing config file {cfg_path}.") from None
    except OSError as e:
        raise ConfigError(f"Failed to read config file {cfg_path}: {e}") from e
    try:
        return tomllib.loads(raw)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Malformed TOML in {cfg_path}: {e}") from None


def load_config_file(path: str | Path | None = None) -> tuple[dict, Path]:
    if path:
        cfg_path = Path(path).expanduser()
        return _read_config(cfg_path), cfg_path

    for candidate in _config_candidates():
        if candidate.is_file():
            return _read_config(candidate), candidate

    raise ConfigError(
        f"Missing commsbot config; create {LOCAL_CONFIG_NAME} or {HOME_CONFIG_PATH}."
    )


def get_bot_token(config: BotConfig, config_path: Path) -> str:
    """Get bot token from environment variable or config file.

    Environment variable COMMSBOT_BOT_TOKEN takes precedence over config file.
    """
    env_token = os.environ.get(ENV_BOT_TOKEN)
    if env_token and env_token.strip():
        return env_token.strip()

    token = config.bot_token.get_secret_value().strip() if config.bot_token else ""
    if not token:
        raise ConfigError(
            f"Missing bot token. Set {ENV_BOT_TOKEN} environment variable "
            f"or add `bot_token` to {config_path}."
        )
    return token


def resolve_state_path(config: BotConfig, config_path: Path) -> Path:
    path = config.state_path.expanduser()
    if path.is_absolute():
        return path
    return config_path.parent / path


def load_config(path: str | Path | None = None) -> tuple[BotConfig, Path]:
    raw, cfg_path = load_config_file(path)
    try:
        config = BotConfig.model_validate(raw)
    except ValidationError as exc:
        raise ConfigError(f"Invalid config in {cfg_path}: {exc}") from exc
    return config, cfg_path
