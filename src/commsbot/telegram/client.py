from __future__ import annotations

import re
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

import anyio
import httpx

from ..logging import get_logger

logger = get_logger(__name__)

# Long polls hold the connection open for the poll timeout, so the HTTP timeout
# must stay above the largest accepted poll timeout.
DEFAULT_HTTP_TIMEOUT_S = 75.0
_SEND_ATTEMPTS = 2


class TelegramRetryAfter(Exception):
    def __init__(self, retry_after: float) -> None:
        super().__init__(f"retry after {retry_after}")
        self.retry_after = retry_after


class BotClient(Protocol):
    async def close(self) -> None: ...

    async def get_updates(
        self,
        offset: int | None,
        limit: int = 100,
        timeout_s: int = 10,
        allowed_updates: list[str] | None = None,
    ) -> list[dict] | None: ...

    async def send_message(
        self,
        chat_id: int,
        text: str,
        *,
        disable_web_page_preview: bool = False,
        reply_to_message_id: int | None = None,
        reply_markup: dict[str, Any] | None = None,
    ) -> dict | None: ...

    async def get_me(self) -> dict | None: ...


def reply_keyboard(
    *rows: list[str], one_time: bool = True, resize: bool = True
) -> dict[str, Any]:
    return {
        "keyboard": [[{"text": label} for label in row] for row in rows],
        "one_time_keyboard": one_time,
        "resize_keyboard": resize,
    }


def remove_keyboard() -> dict[str, Any]:
    return {"remove_keyboard": True}


_RETRY_AFTER_RE = re.compile(r"retry after (\d+)", re.IGNORECASE)


def _retry_after_from_payload(payload: dict[str, Any]) -> float | None:
    params = payload.get("parameters")
    if isinstance(params, dict):
        retry_after = params.get("retry_after")
        if isinstance(retry_after, (int, float)):
            return float(retry_after)
    description = payload.get("description")
    if isinstance(description, str):
        match = _RETRY_AFTER_RE.search(description)
        if match:
            return float(match.group(1))
    return None


def _retry_after_from_response(resp: httpx.Response) -> float | None:
    try:
        payload = resp.json()
    except ValueError:
        return None
    if isinstance(payload, dict):
        return _retry_after_from_payload(payload)
    return None


class TelegramClient:
    def __init__(
        self,
        token: str,
        timeout_s: float = DEFAULT_HTTP_TIMEOUT_S,
        client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[None]] = anyio.sleep,
    ) -> None:
        if not token:
            raise ValueError("Telegram token is empty")
        self._base = f"https://api.telegram.org/bot{token}"
        self._client = client or httpx.AsyncClient(timeout=timeout_s)
        self._owns_client = client is None
        self._sleep = sleep

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _post(self, method: str, json_data: dict[str, Any]) -> Any | None:
        logger.debug("telegram.request", method=method, payload=json_data)
        try:
            resp = await self._client.post(f"{self._base}/{method}", json=json_data)
        except httpx.TimeoutException:
            logger.info("telegram.timeout", method=method)
            return None
        except httpx.HTTPError as e:
            logger.error(
                "telegram.network_error",
                method=method,
                error=str(e),
                error_type=e.__class__.__name__,
            )
            return None

        try:
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            if resp.status_code == 429:
                retry_after = _retry_after_from_response(resp)
                if retry_after is not None:
                    logger.info(
                        "telegram.rate_limited",
                        method=method,
                        status=resp.status_code,
                        retry_after=retry_after,
                    )
                    raise TelegramRetryAfter(retry_after) from e
            logger.error(
                "telegram.http_error",
                method=method,
                status=resp.status_code,
                error=str(e),
                body=resp.text,
            )
            return None

        try:
            payload = resp.json()
        except ValueError as e:
            logger.error(
                "telegram.bad_response",
                method=method,
                status=resp.status_code,
                error=str(e),
                body=resp.text,
            )
            return None

        if not isinstance(payload, dict):
            logger.error("telegram.invalid_payload", method=method, payload=payload)
            return None

        if not payload.get("ok"):
            retry_after = _retry_after_from_payload(payload)
            if retry_after is not None:
                logger.info(
                    "telegram.rate_limited", method=method, retry_after=retry_after
                )
                raise TelegramRetryAfter(retry_after)
            logger.error("telegram.api_error", method=method, payload=payload)
            return None

        logger.debug("telegram.response", method=method, payload=payload)
        return payload.get("result")

    async def get_updates(
        self,
        offset: int | None,
        limit: int = 100,
        timeout_s: int = 10,
        allowed_updates: list[str] | None = None,
    ) -> list[dict] | None:
        params: dict[str, Any] = {"timeout": timeout_s, "limit": limit}
        if offset is not None:
            params["offset"] = offset
        if allowed_updates is not None:
            params["allowed_updates"] = allowed_updates
        try:
            result = await self._post("getUpdates", params)
        except TelegramRetryAfter as exc:
            # wait once, then let the caller decide whether to poll again
            await self._sleep(exc.retry_after)
            return None
        if result is None:
            return None
        if not isinstance(result, list):
            logger.error("telegram.invalid_updates", result=result)
            return None
        return result

    async def send_message(
        self,
        chat_id: int,
        text: str,
        *,
        disable_web_page_preview: bool = False,
        reply_to_message_id: int | None = None,
        reply_markup: dict[str, Any] | None = None,
    ) -> dict | None:
        params: dict[str, Any] = {
            "chat_id": chat_id,
            "text": text,
        }
        if disable_web_page_preview:
            params["link_preview_options"] = {"is_disabled": True}
        if reply_to_message_id is not None:
            params["reply_parameters"] = {
                "message_id": reply_to_message_id,
                "allow_sending_without_reply": True,
            }
        if reply_markup is not None:
            params["reply_markup"] = reply_markup
        result = None
        for attempt in range(_SEND_ATTEMPTS):
            try:
                result = await self._post("sendMessage", params)
                break
            except TelegramRetryAfter as exc:
                if attempt + 1 == _SEND_ATTEMPTS:
                    logger.error(
                        "telegram.send_rate_limited",
                        chat_id=chat_id,
                        retry_after=exc.retry_after,
                    )
                    return None
                await self._sleep(exc.retry_after)
        return result if isinstance(result, dict) else None

    async def get_me(self) -> dict | None:
        res = await self._post("getMe", {})
        return res if isinstance(res, dict) else None
