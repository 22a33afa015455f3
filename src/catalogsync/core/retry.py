"""请求重试策略."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import httpx

from catalogsync.config import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

RATE_LIMIT_STATUS = 429

ErrorSink = Callable[..., Awaitable[Any]]
Sleeper = Callable[[float], Awaitable[None]]


def error_status(error: BaseException | None) -> int | None:
    """取异常对应的 HTTP 状态码."""
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code
    return None


def error_details(error: BaseException | None) -> dict[str, Any]:
    """提取写入错误日志的字段：message/status/data/headers."""
    details: dict[str, Any] = {
        "message": str(error) if error else "Unknown error",
        "status": None,
        "data": None,
        "headers": None,
    }
    if isinstance(error, httpx.HTTPStatusError):
        response = error.response
        details["status"] = response.status_code
        details["headers"] = dict(response.headers)
        try:
            details["data"] = response.json()
        except ValueError:
            details["data"] = response.text or None
    return details


class RetryPolicy:
    """
    有限次重试.

    - 限流（429）：无论剩余次数，总是等待 rate_limit_delay 后再试
    - 其他错误：仅在还有剩余次数时等待 retry_delay
    - 次数耗尽：写入一条错误记录，然后抛出最后一次的异常
    """

    def __init__(
        self,
        *,
        max_attempts: int,
        retry_delay_sec: float,
        rate_limit_delay_sec: float,
        error_sink: ErrorSink,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        self.max_attempts = max(1, max_attempts)
        self.retry_delay_sec = retry_delay_sec
        self.rate_limit_delay_sec = rate_limit_delay_sec
        self._error_sink = error_sink
        self._sleep = sleep

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        error_sink: ErrorSink,
        sleep: Sleeper = asyncio.sleep,
    ) -> "RetryPolicy":
        """根据配置创建."""
        return cls(
            max_attempts=settings.max_retries,
            retry_delay_sec=settings.retry_delay_sec,
            rate_limit_delay_sec=settings.rate_limit_delay_sec,
            error_sink=error_sink,
            sleep=sleep,
        )

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        context: dict[str, Any],
    ) -> T:
        """
        执行操作，失败时按策略重试.

        Args:
            operation: 无参异步操作
            context: 写入错误日志的上下文（type/slug/offset/url/query）

        Returns:
            操作结果
        """
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await operation()
            except Exception as e:
                status = error_status(e)
                if status == RATE_LIMIT_STATUS:
                    logger.warning(
                        f"请求被限流 ({attempt}/{self.max_attempts})，"
                        f"等待 {self.rate_limit_delay_sec}s: {context}"
                    )
                    await self._sleep(self.rate_limit_delay_sec)
                elif attempt < self.max_attempts:
                    logger.warning(
                        f"请求失败 ({attempt}/{self.max_attempts})，"
                        f"{self.retry_delay_sec}s 后重试: {e}"
                    )
                    await self._sleep(self.retry_delay_sec)

                if attempt >= self.max_attempts:
                    logger.error(f"重试次数耗尽: {context} - {e}")
                    await self._error_sink(**context, **error_details(e))
                    raise

        # max_attempts 至少为 1，循环内必然返回或抛出
        msg = f"重试循环意外结束: {context}"
        raise RuntimeError(msg)
