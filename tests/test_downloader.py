"""フォントファイルダウンロード機能のテスト"""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from pathlib import Path

import httpx
import pytest

from fontcache.downloader import (
    ContentTypeError,
    DownloadError,
    FileDownloader,
    HTTPStatusDownloadError,
    NetworkError,
    StreamWriteError,
)
from fontcache.retry import RetryConfig

FONT_URL = "https://fonts.example.com/roboto-regular.woff2"

ClientFactory = Callable[[Callable[[httpx.Request], httpx.Response]], httpx.AsyncClient]


class FailingStream(httpx.AsyncByteStream):
    """途中で切断されるレスポンス本文"""

    async def __aiter__(self) -> AsyncIterator[bytes]:
        yield b"partial"
        raise httpx.ReadError("connection reset")


class RecordingHandler:
    """呼び出し回数を記録するMockTransport用ハンドラー"""

    def __init__(self, response_factory: Callable[[], httpx.Response]) -> None:
        self.response_factory = response_factory
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.response_factory()


def font_response(content: bytes = b"wOF2 font", content_type: str = "font/woff2") -> httpx.Response:
    return httpx.Response(200, headers={"content-type": content_type}, content=content)


class TestFileDownloaderInit:
    """FileDownloader初期化のテスト"""

    def test_init_defaults(self) -> None:
        """正常系: デフォルトは5回試行、クライアントは内部生成"""
        downloader = FileDownloader()

        assert downloader.retry_config.max_attempts == 5
        assert downloader._owns_client is True
        assert downloader._timeout == FileDownloader.DEFAULT_TIMEOUT

    def test_init_with_http_client(self) -> None:
        """正常系: HTTPクライアント注入での初期化"""
        client = httpx.AsyncClient()
        downloader = FileDownloader(http_client=client)

        assert downloader._http_client is client
        assert downloader._owns_client is False


class TestFileDownloaderDownload:
    """FileDownloader.downloadのテスト"""

    @pytest.mark.asyncio
    async def test_download_success(self, tmp_path: Path, mock_client_factory: ClientFactory) -> None:
        """正常系: 本文がファイルに保存される"""
        handler = RecordingHandler(lambda: font_response(b"font bytes"))
        destination = tmp_path / "roboto.woff2"

        async with mock_client_factory(handler) as client:
            downloader = FileDownloader(http_client=client)
            result = await downloader.download(FONT_URL, destination, "woff2")

        assert result == destination
        assert destination.read_bytes() == b"font bytes"
        assert len(handler.requests) == 1
        assert list(tmp_path.iterdir()) == [destination]

    @pytest.mark.asyncio
    async def test_download_overwrites_existing_file(
        self, tmp_path: Path, mock_client_factory: ClientFactory
    ) -> None:
        """正常系: 既存ファイルは上書きされる"""
        destination = tmp_path / "roboto.woff2"
        destination.write_bytes(b"old content that is longer")

        async with mock_client_factory(RecordingHandler(lambda: font_response(b"new"))) as client:
            await FileDownloader(http_client=client).download(FONT_URL, destination, "woff2")

        assert destination.read_bytes() == b"new"

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(
        self, tmp_path: Path, mock_client_factory: ClientFactory
    ) -> None:
        """正常系: 一時的なエラーの後に成功する"""
        responses = [httpx.Response(503), httpx.Response(503), font_response()]
        handler = RecordingHandler(lambda: responses.pop(0))

        async with mock_client_factory(handler) as client:
            downloader = FileDownloader(http_client=client)
            await downloader.download(FONT_URL, tmp_path / "roboto.woff2", "woff2")

        assert len(handler.requests) == 3

    @pytest.mark.asyncio
    async def test_404_is_retried_exactly_budget_times(
        self, tmp_path: Path, mock_client_factory: ClientFactory
    ) -> None:
        """異常系: 404は試行回数の上限まで再試行されて失敗する"""
        handler = RecordingHandler(lambda: httpx.Response(404))

        async with mock_client_factory(handler) as client:
            downloader = FileDownloader(http_client=client, retry_config=RetryConfig(max_attempts=5))
            with pytest.raises(HTTPStatusDownloadError) as exc_info:
                await downloader.download(FONT_URL, tmp_path / "roboto.woff2", "woff2")

        assert exc_info.value.status_code == 404
        assert len(handler.requests) == 5
        assert not (tmp_path / "roboto.woff2").exists()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "headers",
        [
            pytest.param({"content-type": "application/octet-stream"}, id="異常系: フォーマット不一致"),
            pytest.param({"content-type": ""}, id="異常系: 空のContent-Type"),
            pytest.param({}, id="異常系: Content-Typeなし"),
        ],
    )
    async def test_content_type_validation(
        self,
        tmp_path: Path,
        mock_client_factory: ClientFactory,
        headers: dict[str, str],
    ) -> None:
        """異常系: Content-Typeが期待フォーマットを含まない場合はリトライ後に失敗"""
        handler = RecordingHandler(lambda: httpx.Response(200, headers=headers, content=b"x"))

        async with mock_client_factory(handler) as client:
            downloader = FileDownloader(http_client=client, retry_config=RetryConfig(max_attempts=3))
            with pytest.raises(ContentTypeError) as exc_info:
                await downloader.download(FONT_URL, tmp_path / "roboto.woff2", "woff2")

        assert exc_info.value.expected == "woff2"
        assert len(handler.requests) == 3

    @pytest.mark.asyncio
    async def test_stream_failure_removes_partial_file(
        self, tmp_path: Path, mock_client_factory: ClientFactory
    ) -> None:
        """異常系: 本文の受信が途中で失敗した場合は途中のファイルを残さない"""
        handler = RecordingHandler(
            lambda: httpx.Response(
                200, headers={"content-type": "font/woff2"}, stream=FailingStream()
            )
        )
        destination = tmp_path / "roboto.woff2"

        async with mock_client_factory(handler) as client:
            downloader = FileDownloader(http_client=client, retry_config=RetryConfig(max_attempts=2))
            with pytest.raises(StreamWriteError):
                await downloader.download(FONT_URL, destination, "woff2")

        assert len(handler.requests) == 2
        assert not destination.exists()
        assert list(tmp_path.iterdir()) == []

    @pytest.mark.asyncio
    async def test_stream_failure_keeps_existing_file(
        self, tmp_path: Path, mock_client_factory: ClientFactory
    ) -> None:
        """異常系: 受信に失敗しても既に保存済みのファイルは上書きも削除もされない"""
        handler = RecordingHandler(
            lambda: httpx.Response(
                200, headers={"content-type": "font/woff2"}, stream=FailingStream()
            )
        )
        destination = tmp_path / "roboto.woff2"
        destination.write_bytes(b"published")

        async with mock_client_factory(handler) as client:
            downloader = FileDownloader(http_client=client, retry_config=RetryConfig(max_attempts=2))
            with pytest.raises(StreamWriteError):
                await downloader.download(FONT_URL, destination, "woff2")

        assert destination.read_bytes() == b"published"
        assert list(tmp_path.iterdir()) == [destination]

    @pytest.mark.asyncio
    async def test_network_error(self, tmp_path: Path, mock_client_factory: ClientFactory) -> None:
        """異常系: 接続エラーはNetworkErrorとしてリトライされる"""
        attempts: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            attempts.append(request)
            raise httpx.ConnectError("Connection refused", request=request)

        async with mock_client_factory(handler) as client:
            downloader = FileDownloader(http_client=client, retry_config=RetryConfig(max_attempts=2))
            with pytest.raises(NetworkError) as exc_info:
                await downloader.download(FONT_URL, tmp_path / "roboto.woff2", "woff2")

        assert "Connection refused" in str(exc_info.value)
        assert len(attempts) == 2

    def test_errors_share_base_class(self) -> None:
        """全てのダウンロード例外はDownloadErrorを継承する"""
        for error_type in (HTTPStatusDownloadError, ContentTypeError, NetworkError, StreamWriteError):
            assert issubclass(error_type, DownloadError)
