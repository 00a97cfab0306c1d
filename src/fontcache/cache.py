"""Cache directory module for fontcache."""

from __future__ import annotations

import os
import platform
import shutil
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class CacheInfo:
    """キャッシュ情報"""

    directory: Path
    size_bytes: int
    file_count: int


APP_NAME = "fontcache"

# 設定すると、プラットフォームごとの既定値より優先される
CACHE_DIR_ENV = "FONTCACHE_CACHE_DIR"


def _platform_cache_base() -> Path:
    """プラットフォーム標準のキャッシュ置き場を返す"""
    system = platform.system()

    if system == "Darwin":
        return Path.home() / "Library" / "Caches"
    if system == "Windows":
        local_app_data = os.environ.get("LOCALAPPDATA")
        return Path(local_app_data) if local_app_data else Path.home() / "AppData" / "Local"

    xdg_cache = os.environ.get("XDG_CACHE_HOME")
    return Path(xdg_cache) if xdg_cache else Path.home() / ".cache"


def get_cache_dir() -> Path:
    """fontcacheのキャッシュディレクトリを取得する

    環境変数FONTCACHE_CACHE_DIRが設定されていればそれを使う。
    """
    override = os.environ.get(CACHE_DIR_ENV)
    if override:
        return Path(override).expanduser()
    return _platform_cache_base() / APP_NAME


def get_font_cache_dir() -> Path:
    """フォントファイルのキャッシュディレクトリを取得する"""
    return get_cache_dir() / "fonts"


def clear_cache(cache_dir: Path | None = None) -> None:
    """キャッシュディレクトリを削除する

    メモリ上のFontStoreには影響しない。
    """
    cache_dir = cache_dir or get_font_cache_dir()
    if cache_dir.exists():
        shutil.rmtree(cache_dir)


def get_cache_info(cache_dir: Path | None = None) -> CacheInfo:
    """キャッシュ情報を取得する"""
    cache_dir = cache_dir or get_font_cache_dir()

    if not cache_dir.exists():
        return CacheInfo(directory=cache_dir, size_bytes=0, file_count=0)

    files = [f for f in cache_dir.rglob("*") if f.is_file()]
    return CacheInfo(
        directory=cache_dir,
        size_bytes=sum(f.stat().st_size for f in files),
        file_count=len(files),
    )
