"""フォントキャッシュのデータモデル

フォントメタデータ、バリアント候補URL、ダウンロード済みファイル、
キャッシュアクセス用のバンドルを表す不変オブジェクトを定義する。
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class FontDescriptor:
    """フォントファミリーのメタデータ

    Attributes:
        id: フォントID（例: roboto）
        version: フォントのバージョン（例: v30）
        subsets: 利用可能なサブセット（順序付き、重複なし）
        default_subset: サブセット未指定時に使用するサブセット
    """

    id: str
    version: str
    subsets: tuple[str, ...]
    default_subset: str


@dataclass(frozen=True)
class VariantURL:
    """バリアントのダウンロード候補URL"""

    url: str
    format: str


@dataclass(frozen=True)
class VariantCandidate:
    """フォントバリアント（スタイル/ウェイト）とその候補URL

    Attributes:
        variant_id: バリアントID（例: regular, 700italic）
        subsets: バリアントがカバーするサブセット
        urls: フォーマット別の候補URL
    """

    variant_id: str
    subsets: tuple[str, ...]
    urls: tuple[VariantURL, ...]


@dataclass(frozen=True)
class ResolvedFile:
    """ダウンロードに成功したフォントファイル

    バリアントとフォーマットは後段でのフィルタリングに使用する。
    """

    variant_id: str
    format: str
    path: Path


@dataclass(frozen=True)
class FontBundle:
    """キャッシュにアクセスするための読み取り専用ハンドル

    FontStore.resolve_bundleでのみ生成すること。

    Attributes:
        store_key: フォント・バージョン・サブセットを一意に表すキー
        subsets: 正規化済み（重複除去・ソート済み）のサブセット
        font: 対象フォントのメタデータ
    """

    store_key: str
    subsets: tuple[str, ...]
    font: FontDescriptor


@dataclass(frozen=True)
class StoreStats:
    """キャッシュテーブルの集計値

    Attributes:
        font_count: 登録フォント数
        variant_key_count: バリアント候補を保存済みのストアキー数
        file_key_count: ファイルを保存済みのストアキー数
        total_variant_urls: 保存済みバリアント候補が持つURLの総数（バリアント数ではない）
        total_resolved_files: 保存済みファイルの総数
    """

    font_count: int
    variant_key_count: int
    file_key_count: int
    total_variant_urls: int
    total_resolved_files: int


def make_store_key(font: FontDescriptor, subsets: tuple[str, ...]) -> str:
    """フォントと正規化済みサブセットからストアキーを生成する

    Args:
        font: 対象フォント
        subsets: 重複除去・ソート済みのサブセット

    Returns:
        ``<id>@<version>__<subset1>_<subset2>...`` 形式のキー
    """
    return f"{font.id}@{font.version}__{'_'.join(subsets)}"
