"""フォントファイルダウンロード機能

単一のURLからフォントファイルをダウンロードし、指定パスに保存する。
レスポンスのステータスとContent-Typeを検証し、失敗した試行はリトライする。
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

import httpx

from fontcache.retry import RetryConfig, retry_async

logger = logging.getLogger(__name__)


class DownloadError(Exception):
    """フォントファイルダウンロードに関する基本例外クラス"""

    def __init__(self, url: str, message: str) -> None:
        super().__init__(f"{url}: {message}")
        self.url = url


class HTTPStatusDownloadError(DownloadError):
    """レスポンスのステータスコードが200以外の場合の例外"""

    def __init__(self, url: str, status_code: int, reason: str = "") -> None:
        super().__init__(url, f"request failed. status code: {status_code} {reason}".rstrip())
        self.status_code = status_code


class ContentTypeError(DownloadError):
    """Content-Typeヘッダーが期待するフォーマットを含まない場合の例外"""

    def __init__(self, url: str, expected: str, content_type: str | None) -> None:
        super().__init__(
            url,
            f"expected {expected} to be in content-type header: {content_type}",
        )
        self.expected = expected
        self.content_type = content_type


class NetworkError(DownloadError):
    """接続エラーやタイムアウトなど通信層の例外"""

    pass


class StreamWriteError(DownloadError):
    """レスポンス本文の書き込みが完了しなかった場合の例外"""

    pass


class FileDownloader:
    """フォントファイルを1件ずつダウンロードするクラス

    各試行はRetryConfigに従ってリトライされ、上限に達した場合は
    最後のDownloadErrorが送出される。

    Example:
        >>> downloader = FileDownloader()
        >>> await downloader.download(url, Path("/tmp/roboto.woff2"), "woff2")
    """

    DEFAULT_TIMEOUT = 60.0  # HTTPリクエストのタイムアウト秒数
    CHUNK_SIZE = 8192

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        retry_config: RetryConfig | None = None,
        timeout: float | None = None,
    ) -> None:
        """FileDownloaderを初期化する

        Args:
            http_client: HTTPクライアント（テスト用の依存性注入）。
                         Noneの場合は試行ごとに内部でクライアントを作成。
            retry_config: リトライ設定（Noneの場合は5回試行）
            timeout: 1試行あたりのタイムアウト秒数
        """
        self._http_client = http_client
        self._owns_client = http_client is None
        self._retry_config = retry_config or RetryConfig()
        self._timeout = timeout if timeout is not None else self.DEFAULT_TIMEOUT

    @property
    def retry_config(self) -> RetryConfig:
        return self._retry_config

    async def download(self, url: str, destination: Path, fmt: str) -> Path:
        """URLからファイルをダウンロードして保存する

        既存のファイルは上書きされる。

        Args:
            url: ダウンロードURL
            destination: 保存先パス
            fmt: 期待するフォーマット（Content-Typeに含まれるべき文字列、例: woff2）

        Returns:
            保存先パス

        Raises:
            DownloadError: 全ての試行が失敗した場合（最後の試行の例外）
        """

        async def attempt() -> Path:
            return await self._download_once(url, destination, fmt)

        return await retry_async(attempt, self._retry_config, retry_on=(DownloadError,))

    async def _get_client(self) -> httpx.AsyncClient:
        """HTTPクライアントを取得する"""
        if self._http_client is not None:
            return self._http_client
        return httpx.AsyncClient(timeout=self._timeout)

    async def _download_once(self, url: str, destination: Path, fmt: str) -> Path:
        """1回分のダウンロードを試行する

        Raises:
            DownloadError: 試行が失敗した場合
        """
        client = await self._get_client()
        try:
            async with client.stream(
                "GET",
                url,
                timeout=self._timeout,
                follow_redirects=True,
            ) as response:
                self._validate_response(url, response, fmt)
                await self._write_body(url, response, destination)
        except httpx.TimeoutException as e:
            raise NetworkError(url, f"request timed out: {e}") from e
        except httpx.RequestError as e:
            raise NetworkError(url, f"network error: {e}") from e
        finally:
            if self._owns_client:
                await client.aclose()

        return destination

    def _validate_response(self, url: str, response: httpx.Response, fmt: str) -> None:
        """ステータスコードとContent-Typeを検証する

        Raises:
            HTTPStatusDownloadError: ステータスコードが200以外の場合
            ContentTypeError: Content-Typeが無い、空、またはfmtを含まない場合
        """
        if response.status_code != 200:
            raise HTTPStatusDownloadError(url, response.status_code, response.reason_phrase)

        content_type = response.headers.get("content-type")
        if not content_type or fmt not in content_type:
            raise ContentTypeError(url, fmt, content_type)

    async def _write_body(self, url: str, response: httpx.Response, destination: Path) -> None:
        """レスポンス本文をファイルに書き込む

        同じディレクトリの一時ファイルに書き込み、完了後にdestinationへ置き換える。
        失敗した場合は一時ファイルのみ削除し、既存のdestinationには触れない。

        Raises:
            StreamWriteError: 本文の受信またはファイル書き込みに失敗した場合
        """
        try:
            fd, part_name = tempfile.mkstemp(
                prefix=f".{destination.name}.", suffix=".part", dir=destination.parent
            )
        except OSError as e:
            raise StreamWriteError(
                url, f"creating temporary file for {destination} failed: {e}"
            ) from e

        part = Path(part_name)
        try:
            with os.fdopen(fd, "wb") as f:
                async for chunk in response.aiter_bytes(chunk_size=self.CHUNK_SIZE):
                    f.write(chunk)
            part.replace(destination)
        except (httpx.HTTPError, httpx.StreamError, OSError) as e:
            part.unlink(missing_ok=True)
            raise StreamWriteError(url, f"writing {destination} failed: {e}") from e
