"""非同期処理のリトライ

失敗した処理を上限回数まで再実行し、上限に達した場合は最後の例外を送出する。
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryConfig:
    """リトライ設定

    backoff_baseが0の場合は待機せずに即座に再試行する。

    Attributes:
        max_attempts: 最大試行回数（初回含む）
        backoff_base: バックオフの基本秒数
        backoff_multiplier: バックオフの乗数
        max_backoff: バックオフの上限秒数
    """

    max_attempts: int = 5
    backoff_base: float = 0.0
    backoff_multiplier: float = 2.0
    max_backoff: float = 30.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1: {self.max_attempts}")
        if self.backoff_base < 0 or self.max_backoff < 0:
            raise ValueError("backoff values must not be negative")

    def delay_for(self, attempt: int) -> float:
        """attempt回目の失敗後の待機秒数を返す

        Args:
            attempt: 失敗した試行の番号（1始まり）

        Returns:
            待機秒数
        """
        delay = self.backoff_base * (self.backoff_multiplier ** (attempt - 1))
        return min(delay, self.max_backoff)


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    config: RetryConfig | None = None,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
) -> T:
    """処理をリトライ付きで実行する

    Args:
        operation: 実行する非同期処理（引数なし）
        config: リトライ設定（Noneの場合はデフォルト設定を使用）
        retry_on: リトライ対象とする例外の型

    Returns:
        処理の戻り値

    Raises:
        Exception: 最大試行回数に達した場合は最後に発生した例外。
            retry_on以外の例外は即座に送出される。
    """
    config = config or RetryConfig()
    attempt = 0

    while True:
        attempt += 1
        try:
            return await operation()
        except retry_on as e:
            if attempt >= config.max_attempts:
                logger.debug("giving up after %d attempts: %s", attempt, e)
                raise

            delay = config.delay_for(attempt)
            logger.debug(
                "attempt %d/%d failed, retrying in %.2fs: %s",
                attempt,
                config.max_attempts,
                delay,
                e,
            )
            if delay > 0:
                await asyncio.sleep(delay)
