"""YAMLフォントカタログ

フォントメタデータとバリアント候補URLをYAMLマニフェストから読み込み、
FontMetadataSourceとVariantResolverの両方として機能する。

マニフェスト形式::

    fonts:
      - id: roboto
        version: v30
        subsets: [latin, latin-ext]
        default_subset: latin
        variants:
          - id: regular
            subsets: [latin, latin-ext]
            urls:
              - {url: "https://example.com/roboto.woff2", format: woff2}
"""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import Any

import yaml

from fontcache.models import FontBundle, FontDescriptor, VariantCandidate, VariantURL

# デフォルトサブセットの第一候補
PREFERRED_DEFAULT_SUBSET = "latin"


class CatalogError(Exception):
    """カタログ読み込みエラー"""

    pass


class FontCatalog:
    """YAMLマニフェストに基づくフォントカタログ"""

    def __init__(
        self,
        fonts: list[FontDescriptor],
        variants: dict[str, tuple[VariantCandidate, ...]],
    ) -> None:
        """FontCatalogを初期化する

        Args:
            fonts: フォントメタデータ
            variants: フォントIDをキー、バリアント候補を値とする辞書
        """
        self._fonts = list(fonts)
        self._variants = dict(variants)

    @classmethod
    def from_file(cls, path: Path) -> FontCatalog:
        """マニフェストファイルからカタログを読み込む

        Raises:
            CatalogError: ファイルが存在しない、またはパースに失敗した場合
        """
        if not path.exists():
            raise CatalogError(f"カタログファイルが見つかりません: {path}")

        try:
            with path.open(encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise CatalogError(f"YAML解析エラー: {e}") from e

        return cls.from_mapping(data)

    @classmethod
    def from_mapping(cls, data: Any) -> FontCatalog:
        """パース済みのマニフェストからカタログを生成する

        Raises:
            CatalogError: マニフェストの形式が不正な場合
        """
        if not isinstance(data, dict):
            raise CatalogError("カタログはYAMLのマッピング形式である必要があります")

        entries = data.get("fonts", [])
        if not isinstance(entries, list):
            raise CatalogError("fontsはリストである必要があります")

        fonts: list[FontDescriptor] = []
        variants: dict[str, tuple[VariantCandidate, ...]] = {}

        for index, entry in enumerate(entries):
            font = _parse_font(entry, index)
            if font.id in variants:
                raise CatalogError(f"フォントIDが重複しています: {font.id}")
            fonts.append(font)
            variants[font.id] = _parse_variants(entry.get("variants", []), font.id)

        return cls(fonts, variants)

    async def fetch_fonts(self) -> list[FontDescriptor]:
        """全フォントのメタデータを返す"""
        return list(self._fonts)

    async def resolve_variants(self, bundle: FontBundle) -> list[VariantCandidate]:
        """バンドルのサブセットをカバーするバリアント候補を返す

        サブセット指定の無いバリアントは全サブセットをカバーするとみなす。
        返す候補のsubsetsはバンドルのサブセットに置き換える（ファイル名はこれに従う）。
        """
        wanted = set(bundle.subsets)
        return [
            replace(variant, subsets=bundle.subsets)
            for variant in self._variants.get(bundle.font.id, ())
            if not variant.subsets or wanted.intersection(variant.subsets)
        ]


def _parse_font(entry: Any, index: int) -> FontDescriptor:
    """フォントエントリをパースする"""
    if not isinstance(entry, dict):
        raise CatalogError(f"fonts[{index}]はマッピングである必要があります")

    for key in ("id", "version"):
        if not entry.get(key):
            raise CatalogError(f"fonts[{index}]に{key}がありません")

    subsets = _parse_subsets(entry.get("subsets", []), f"fonts[{index}].subsets")
    if not subsets:
        raise CatalogError(f"fonts[{index}]にsubsetsがありません")

    default_subset = entry.get("default_subset") or _default_subset(subsets)

    return FontDescriptor(
        id=str(entry["id"]),
        version=str(entry["version"]),
        subsets=subsets,
        default_subset=str(default_subset),
    )


def _default_subset(subsets: tuple[str, ...]) -> str:
    """latinがあればlatin、無ければ先頭のサブセットを返す"""
    if PREFERRED_DEFAULT_SUBSET in subsets:
        return PREFERRED_DEFAULT_SUBSET
    return subsets[0]


def _parse_subsets(data: Any, context: str) -> tuple[str, ...]:
    """サブセットのリストを順序を保ったまま重複除去する"""
    if not isinstance(data, list):
        raise CatalogError(f"{context}はリストである必要があります")
    return tuple(dict.fromkeys(str(subset) for subset in data))


def _parse_variants(data: Any, font_id: str) -> tuple[VariantCandidate, ...]:
    """バリアントのリストをパースする"""
    if not isinstance(data, list):
        raise CatalogError(f"{font_id}: variantsはリストである必要があります")

    variants: list[VariantCandidate] = []
    for index, item in enumerate(data):
        context = f"{font_id}.variants[{index}]"
        if not isinstance(item, dict) or not item.get("id"):
            raise CatalogError(f"{context}にidがありません")

        urls: list[VariantURL] = []
        for url_item in item.get("urls", []):
            if not isinstance(url_item, dict) or "url" not in url_item or "format" not in url_item:
                raise CatalogError(f"{context}.urlsの各要素にはurlとformatが必要です")
            urls.append(VariantURL(url=str(url_item["url"]), format=str(url_item["format"])))

        variants.append(
            VariantCandidate(
                variant_id=str(item["id"]),
                subsets=_parse_subsets(item.get("subsets", []), f"{context}.subsets"),
                urls=tuple(urls),
            )
        )

    return tuple(variants)
