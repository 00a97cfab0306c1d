"""フォントストア

フォントメタデータ、バリアント候補URL、ダウンロード済みファイルの
3つのキャッシュテーブルを保持する。キャッシュへのアクセスは全て
resolve_bundleで生成したFontBundleを介して行う。

バリアントとファイルのテーブルはストアキーごとに一度だけ書き込める。
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Protocol, TypeVar

from fontcache.models import (
    FontBundle,
    FontDescriptor,
    ResolvedFile,
    StoreStats,
    VariantCandidate,
    make_store_key,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class StoreError(Exception):
    """フォントストアに関する基本例外クラス"""

    pass


class StoreInitializationError(StoreError):
    """キャッシュディレクトリの作成に失敗した場合の例外"""

    pass


class DuplicateWriteError(StoreError):
    """書き込み済みのストアキーに再度書き込もうとした場合の例外"""

    def __init__(self, table: str, store_key: str) -> None:
        super().__init__(f"{table}: duplicate write of store key {store_key}")
        self.table = table
        self.store_key = store_key


class FontMetadataSource(Protocol):
    """フォントメタデータ取得インターフェース"""

    async def fetch_fonts(self) -> Sequence[FontDescriptor]:
        """全フォントのメタデータを取得する（IDは一意であること）"""
        ...


class VariantResolver(Protocol):
    """バリアント候補URL解決インターフェース"""

    async def resolve_variants(self, bundle: FontBundle) -> Sequence[VariantCandidate]:
        """バンドルのサブセットに対応するバリアント候補を取得する"""
        ...


class FontStore:
    """フォントキャッシュのストア

    プロセス起動時に1度生成し、利用側に参照を渡して使用する。

    Example:
        >>> store = FontStore(source, cache_dir=Path("/tmp/fonts"))
        >>> await store.initialize()
        >>> bundle = store.resolve_bundle("roboto", ["latin"])
        >>> store.get_files(bundle) is None
        True
    """

    def __init__(
        self,
        source: FontMetadataSource,
        cache_dir: Path,
        strict_mode: bool = False,
    ) -> None:
        """FontStoreを初期化する

        Args:
            source: フォントメタデータの取得元
            cache_dir: フォントファイルのキャッシュディレクトリ
            strict_mode: Trueの場合、重複書き込みで例外を送出する。
                         Falseの場合は警告ログを出して既存データを保持する。
        """
        self._source = source
        self._cache_dir = cache_dir
        self._strict_mode = strict_mode
        self._lock = threading.Lock()
        self._initialized = False

        self._fonts_by_id: dict[str, FontDescriptor] = {}
        self._variants_by_store_key: dict[str, tuple[VariantCandidate, ...]] = {}
        self._files_by_store_key: dict[str, tuple[ResolvedFile, ...]] = {}

    @property
    def cache_dir(self) -> Path:
        return self._cache_dir

    @property
    def strict_mode(self) -> bool:
        return self._strict_mode

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        """キャッシュディレクトリを作成し、フォントメタデータを読み込む

        Raises:
            StoreError: 初期化済みの場合
            StoreInitializationError: キャッシュディレクトリを作成できない場合
        """
        if self._initialized:
            raise StoreError("store is already initialized, use reinitialize()")

        try:
            self._cache_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreInitializationError(
                f"cannot create cache directory {self._cache_dir}: {e}"
            ) from e

        fonts = await self._source.fetch_fonts()
        with self._lock:
            for font in fonts:
                self._fonts_by_id[font.id] = font
            self._initialized = True

        logger.info("loaded %d fonts, cache directory: %s", len(self._fonts_by_id), self._cache_dir)

    async def reinitialize(self) -> None:
        """全テーブルをクリアして初期化し直す"""
        logger.info("reinitializing font store, building fresh tables")

        with self._lock:
            self._fonts_by_id.clear()
            self._variants_by_store_key.clear()
            self._files_by_store_key.clear()
            self._initialized = False

        await self.initialize()

    def list_fonts(self) -> list[FontDescriptor]:
        """全フォントのメタデータをID順に返す"""
        with self._lock:
            fonts = list(self._fonts_by_id.values())
        return sorted(fonts, key=lambda font: font.id)

    def get_font(self, font_id: str) -> FontDescriptor | None:
        return self._fonts_by_id.get(font_id)

    def resolve_bundle(
        self,
        font_id: str,
        wanted_subsets: Iterable[str] | None = None,
    ) -> FontBundle | None:
        """フォントIDと要求サブセットからバンドルを生成する

        要求サブセットが空の場合はフォントのデフォルトサブセットを使用する。
        それ以外はフォントが持つサブセットとの共通部分を使用する。

        Args:
            font_id: フォントID
            wanted_subsets: 要求サブセット（順序・重複は問わない）

        Returns:
            バンドル。フォントが存在しない場合、または共通部分が空の場合はNone。
        """
        font = self._fonts_by_id.get(font_id)
        if font is None:
            return None

        wanted = list(wanted_subsets) if wanted_subsets is not None else []
        if not wanted:
            match = [font.default_subset]
        else:
            wanted_set = set(wanted)
            match = [subset for subset in font.subsets if subset in wanted_set]

        subsets = tuple(sorted(set(match)))
        if not subsets:
            return None

        return FontBundle(
            store_key=make_store_key(font, subsets),
            subsets=subsets,
            font=font,
        )

    def get_variants(self, bundle: FontBundle) -> tuple[VariantCandidate, ...] | None:
        """キャッシュ済みのバリアント候補を返す（未取得の場合はNone）"""
        return self._variants_by_store_key.get(bundle.store_key)

    def get_files(self, bundle: FontBundle) -> tuple[ResolvedFile, ...] | None:
        """キャッシュ済みのファイル一覧を返す（未取得の場合はNone）"""
        return self._files_by_store_key.get(bundle.store_key)

    def put_variants(self, bundle: FontBundle, variants: Iterable[VariantCandidate]) -> bool:
        """バリアント候補を書き込む

        Returns:
            書き込んだ場合はTrue、既に存在したため無視した場合はFalse

        Raises:
            DuplicateWriteError: strict_modeで既に書き込み済みの場合
        """
        return self._put_once(
            "variants", self._variants_by_store_key, bundle.store_key, tuple(variants)
        )

    def put_files(self, bundle: FontBundle, files: Iterable[ResolvedFile]) -> bool:
        """ダウンロード済みファイル一覧を書き込む

        Returns:
            書き込んだ場合はTrue、既に存在したため無視した場合はFalse

        Raises:
            DuplicateWriteError: strict_modeで既に書き込み済みの場合
        """
        return self._put_once("files", self._files_by_store_key, bundle.store_key, tuple(files))

    def _put_once(
        self,
        table_name: str,
        table: dict[str, tuple[T, ...]],
        store_key: str,
        values: tuple[T, ...],
    ) -> bool:
        """キーが存在しない場合のみ書き込む"""
        with self._lock:
            if store_key not in table:
                table[store_key] = values
                return True

        logger.warning("%s: duplicate save of store key: %s", table_name, store_key)
        if self._strict_mode:
            raise DuplicateWriteError(table_name, store_key)
        return False

    def stats(self) -> StoreStats:
        """キャッシュテーブルの集計値を返す"""
        with self._lock:
            return StoreStats(
                font_count=len(self._fonts_by_id),
                variant_key_count=len(self._variants_by_store_key),
                file_key_count=len(self._files_by_store_key),
                total_variant_urls=sum(
                    len(variant.urls)
                    for variants in self._variants_by_store_key.values()
                    for variant in variants
                ),
                total_resolved_files=sum(len(files) for files in self._files_by_store_key.values()),
            )
