"""フォント取得サービス

バンドル解決、キャッシュ参照、URL解決、ダウンロード、キャッシュ書き込みを
1つの要求フローとしてまとめる。
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass

from fontcache.models import FontBundle, ResolvedFile, VariantCandidate
from fontcache.pipeline import FetchPipeline, FileOutcome
from fontcache.store import FontStore, VariantResolver

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FontFilesResult:
    """フォントファイル取得結果

    filesが空でもバンドル自体は有効（全ダウンロード失敗時など）。

    Attributes:
        bundle: 解決済みバンドル
        files: 利用可能なファイル
        failures: 今回の取得で失敗したファイル（キャッシュから返した場合は空）
        from_cache: キャッシュから返した場合はTrue
    """

    bundle: FontBundle
    files: tuple[ResolvedFile, ...]
    failures: tuple[FileOutcome, ...] = ()
    from_cache: bool = False


class FontCacheService:
    """フォント取得サービス

    同じストアキーへの同時要求はキー単位のロックで直列化し、
    1つのキーについてダウンロードが2回走らないようにする。
    """

    def __init__(
        self,
        store: FontStore,
        resolver: VariantResolver,
        pipeline: FetchPipeline,
    ) -> None:
        self._store = store
        self._resolver = resolver
        self._pipeline = pipeline
        self._key_locks: dict[str, asyncio.Lock] = {}

    @property
    def store(self) -> FontStore:
        return self._store

    def _lock_for(self, store_key: str) -> asyncio.Lock:
        lock = self._key_locks.get(store_key)
        if lock is None:
            lock = self._key_locks.setdefault(store_key, asyncio.Lock())
        return lock

    async def get_variants(
        self,
        font_id: str,
        subsets: Iterable[str] | None = None,
    ) -> tuple[VariantCandidate, ...] | None:
        """バリアント候補を取得する（未キャッシュの場合は解決して保存する）

        Returns:
            バリアント候補。バンドルを解決できない場合はNone。
        """
        bundle = self._store.resolve_bundle(font_id, subsets)
        if bundle is None:
            return None

        async with self._lock_for(bundle.store_key):
            return await self._load_variants(bundle)

    async def get_font_files(
        self,
        font_id: str,
        subsets: Iterable[str] | None = None,
        formats: Iterable[str] | None = None,
    ) -> FontFilesResult | None:
        """フォントファイルを取得する

        キャッシュ済みの場合はダウンロードせずに返す。

        Args:
            font_id: フォントID
            subsets: 要求サブセット
            formats: 返すファイルのフォーマット（Noneの場合は全て）。
                     キャッシュには全フォーマットが保存される。

        Returns:
            取得結果。バンドルを解決できない場合はNone。
        """
        bundle = self._store.resolve_bundle(font_id, subsets)
        if bundle is None:
            logger.info("font not found: %s subsets=%s", font_id, subsets)
            return None

        wanted_formats = set(formats) if formats is not None else None

        cached = self._store.get_files(bundle)
        if cached is not None:
            return FontFilesResult(
                bundle=bundle,
                files=_filter_formats(cached, wanted_formats),
                from_cache=True,
            )

        async with self._lock_for(bundle.store_key):
            # ロック待ちの間に他の要求が取得を終えている場合がある
            cached = self._store.get_files(bundle)
            if cached is not None:
                return FontFilesResult(
                    bundle=bundle,
                    files=_filter_formats(cached, wanted_formats),
                    from_cache=True,
                )

            variants = await self._load_variants(bundle)
            report = await self._pipeline.fetch_files(
                bundle.font.id, bundle.font.version, variants
            )
            self._store.put_files(bundle, report.files)
            # ファイル保存済みのキーはロックを使わない
            self._key_locks.pop(bundle.store_key, None)

        if report.all_failed:
            logger.warning("all downloads failed for %s", bundle.store_key)

        return FontFilesResult(
            bundle=bundle,
            files=_filter_formats(report.files, wanted_formats),
            failures=report.failures,
        )

    async def _load_variants(self, bundle: FontBundle) -> tuple[VariantCandidate, ...]:
        """キャッシュ済みのバリアント候補を返すか、解決して保存する

        呼び出し側でストアキーのロックを取得していること。
        """
        variants = self._store.get_variants(bundle)
        if variants is not None:
            return variants

        resolved = tuple(await self._resolver.resolve_variants(bundle))
        self._store.put_variants(bundle, resolved)
        logger.debug("resolved %d variants for %s", len(resolved), bundle.store_key)
        return resolved


def _filter_formats(
    files: tuple[ResolvedFile, ...],
    formats: set[str] | None,
) -> tuple[ResolvedFile, ...]:
    if formats is None:
        return files
    return tuple(f for f in files if f.format in formats)
