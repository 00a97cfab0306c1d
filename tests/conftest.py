"""共通フィクスチャ"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Sequence
from pathlib import Path

import httpx
import pytest

from fontcache.downloader import DownloadError
from fontcache.logger import LOGGER_NAME
from fontcache.models import FontDescriptor, VariantCandidate, VariantURL


class StaticFontSource:
    """テスト用のメタデータ取得元"""

    def __init__(self, fonts: Sequence[FontDescriptor]) -> None:
        self.fonts = list(fonts)
        self.call_count = 0

    async def fetch_fonts(self) -> list[FontDescriptor]:
        self.call_count += 1
        return list(self.fonts)


class FakeDownloader:
    """テスト用のダウンローダー

    failing_urlsに含まれるURLはDownloadErrorを送出し、それ以外はファイルを書き込む。
    """

    def __init__(self, failing_urls: Sequence[str] = ()) -> None:
        self.failing_urls = set(failing_urls)
        self.calls: list[tuple[str, Path, str]] = []

    async def download(self, url: str, destination: Path, fmt: str) -> Path:
        self.calls.append((url, destination, fmt))
        if url in self.failing_urls:
            raise DownloadError(url, "request failed. status code: 500")
        destination.write_bytes(f"{fmt} data".encode())
        return destination


@pytest.fixture(autouse=True)
def reset_fontcache_logger() -> Iterator[None]:
    """configure_loggingで変更されたロガー設定を元に戻す"""
    yield
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


@pytest.fixture
def roboto() -> FontDescriptor:
    return FontDescriptor(
        id="roboto",
        version="v30",
        subsets=("cyrillic", "latin", "latin-ext"),
        default_subset="latin",
    )


@pytest.fixture
def noto_jp() -> FontDescriptor:
    return FontDescriptor(
        id="noto-sans-jp",
        version="v52",
        subsets=("japanese", "latin"),
        default_subset="latin",
    )


@pytest.fixture
def font_source(roboto: FontDescriptor, noto_jp: FontDescriptor) -> StaticFontSource:
    return StaticFontSource([roboto, noto_jp])


@pytest.fixture
def roboto_variants() -> list[VariantCandidate]:
    return [
        VariantCandidate(
            variant_id="regular",
            subsets=("latin", "latin-ext"),
            urls=(
                VariantURL(url="https://fonts.example.com/roboto-regular.woff2", format="woff2"),
                VariantURL(url="https://fonts.example.com/roboto-regular.ttf", format="ttf"),
            ),
        ),
        VariantCandidate(
            variant_id="700",
            subsets=("latin", "latin-ext"),
            urls=(VariantURL(url="https://fonts.example.com/roboto-700.woff2", format="woff2"),),
        ),
    ]


@pytest.fixture
def mock_client_factory() -> Callable[[Callable[[httpx.Request], httpx.Response]], httpx.AsyncClient]:
    """MockTransportを使うHTTPクライアントを生成する"""

    def factory(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return factory


@pytest.fixture
def make_downloader() -> type[FakeDownloader]:
    return FakeDownloader


@pytest.fixture
def make_source() -> type[StaticFontSource]:
    return StaticFontSource
