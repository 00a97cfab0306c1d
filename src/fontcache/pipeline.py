"""フォントファイル取得パイプライン

全バリアント・全フォーマットのダウンロードを並行実行し、
成功したファイルと失敗したファイルを個別の結果として収集する。
1件の失敗は他のダウンロードに影響しない。
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from fontcache.downloader import DownloadError, FileDownloader
from fontcache.models import ResolvedFile, VariantCandidate, VariantURL

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENCY = 8

# 進捗コールバックの型エイリアス (完了数, 総数)
ProgressCallback = Callable[[int, int], None]


class FetchStatus(Enum):
    """ファイル単位の取得ステータス"""

    SUCCESS = "success"
    FAILED = "failed"


@dataclass(frozen=True)
class FileOutcome:
    """単一ファイルの取得結果

    Attributes:
        variant_id: バリアントID
        format: フォーマット（例: woff2）
        url: ダウンロード元URL
        status: 取得ステータス
        path: 保存先パス（失敗時も予定パスを保持）
        error: 失敗時のエラーメッセージ
    """

    variant_id: str
    format: str
    url: str
    status: FetchStatus
    path: Path
    error: str = ""

    @property
    def is_success(self) -> bool:
        return self.status == FetchStatus.SUCCESS

    def to_resolved_file(self) -> ResolvedFile:
        return ResolvedFile(variant_id=self.variant_id, format=self.format, path=self.path)


@dataclass(frozen=True)
class FetchReport:
    """パイプライン全体の取得結果

    outcomesは入力順（バリアント順、その中でURL順）に並ぶ。
    """

    outcomes: tuple[FileOutcome, ...] = ()

    @property
    def files(self) -> tuple[ResolvedFile, ...]:
        """ダウンロードに成功したファイル"""
        return tuple(o.to_resolved_file() for o in self.outcomes if o.is_success)

    @property
    def failures(self) -> tuple[FileOutcome, ...]:
        return tuple(o for o in self.outcomes if not o.is_success)

    @property
    def all_failed(self) -> bool:
        """1件以上の試行があり、全てが失敗したか"""
        return bool(self.outcomes) and not self.files


def build_font_file_path(
    cache_dir: Path,
    font_id: str,
    font_version: str,
    subsets: Sequence[str],
    variant_id: str,
    fmt: str,
) -> Path:
    """フォントファイルの保存先パスを生成する

    パスは入力から決定的に求まり、バリアント・フォーマット間で衝突しない。
    """
    return cache_dir / f"{font_id}-{font_version}-{'_'.join(subsets)}-{variant_id}.{fmt}"


class FetchPipeline:
    """フォントファイルを並行ダウンロードするパイプライン

    同時実行数はセマフォで制限する。

    Attributes:
        downloader: 単一ファイルのダウンローダー
        cache_dir: 保存先ディレクトリ
        max_concurrency: 同時ダウンロード数の上限
        progress_callback: 進捗報告用コールバック
    """

    def __init__(
        self,
        downloader: FileDownloader,
        cache_dir: Path,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        progress_callback: ProgressCallback | None = None,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError(f"max_concurrency must be >= 1: {max_concurrency}")
        self.downloader = downloader
        self.cache_dir = cache_dir
        self.max_concurrency = max_concurrency
        self.progress_callback = progress_callback

    async def fetch_files(
        self,
        font_id: str,
        font_version: str,
        variants: Sequence[VariantCandidate],
    ) -> FetchReport:
        """全バリアントの全フォーマットをダウンロードする

        Args:
            font_id: フォントID
            font_version: フォントのバージョン
            variants: ダウンロード対象のバリアント候補

        Returns:
            ファイルごとの取得結果
        """
        jobs = [(variant, variant_url) for variant in variants for variant_url in variant.urls]
        if not jobs:
            return FetchReport()

        semaphore = asyncio.Semaphore(self.max_concurrency)
        total = len(jobs)
        completed = 0

        async def run(variant: VariantCandidate, variant_url: VariantURL) -> FileOutcome:
            nonlocal completed
            async with semaphore:
                outcome = await self._fetch_one(font_id, font_version, variant, variant_url)
            completed += 1
            if self.progress_callback:
                self.progress_callback(completed, total)
            return outcome

        outcomes = await asyncio.gather(*(run(variant, url) for variant, url in jobs))

        report = FetchReport(outcomes=tuple(outcomes))
        logger.info(
            "fetched %s@%s: %d succeeded, %d failed",
            font_id,
            font_version,
            len(report.files),
            len(report.failures),
        )
        return report

    async def _fetch_one(
        self,
        font_id: str,
        font_version: str,
        variant: VariantCandidate,
        variant_url: VariantURL,
    ) -> FileOutcome:
        """1ファイルをダウンロードし、結果を返す

        ダウンロード失敗は例外にせず、FAILEDの結果として返す。
        """
        destination = build_font_file_path(
            self.cache_dir,
            font_id,
            font_version,
            variant.subsets,
            variant.variant_id,
            variant_url.format,
        )

        try:
            await self.downloader.download(variant_url.url, destination, variant_url.format)
        except DownloadError as e:
            logger.error(
                "discarding %s %s %s %s -> %s: %s",
                font_id,
                "_".join(variant.subsets),
                variant_url.url,
                variant_url.format,
                destination,
                e,
            )
            return FileOutcome(
                variant_id=variant.variant_id,
                format=variant_url.format,
                url=variant_url.url,
                status=FetchStatus.FAILED,
                path=destination,
                error=str(e),
            )

        return FileOutcome(
            variant_id=variant.variant_id,
            format=variant_url.format,
            url=variant_url.url,
            status=FetchStatus.SUCCESS,
            path=destination,
        )
