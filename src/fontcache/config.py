"""Configuration module for fontcache."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from fontcache.cache import get_font_cache_dir
from fontcache.retry import RetryConfig

DEFAULT_CONFIG_FILENAME = "fontcache.yml"


class ConfigError(Exception):
    """設定ファイル読み込みエラー"""

    pass


@dataclass(frozen=True)
class DownloadConfig:
    """ダウンロード設定"""

    max_attempts: int = 5
    backoff_base: float = 0.0
    backoff_multiplier: float = 2.0
    max_backoff: float = 30.0
    timeout: float = 60.0
    max_concurrency: int = 8

    @property
    def retry_config(self) -> RetryConfig:
        return RetryConfig(
            max_attempts=self.max_attempts,
            backoff_base=self.backoff_base,
            backoff_multiplier=self.backoff_multiplier,
            max_backoff=self.max_backoff,
        )


@dataclass(frozen=True)
class FontCacheConfig:
    """ルート設定

    Attributes:
        cache_dir: フォントファイルのキャッシュディレクトリ
        strict_mode: 重複書き込みを例外とするか（テスト向け）
        catalog: フォントカタログ（YAML）のパス
        download: ダウンロード設定
    """

    cache_dir: Path = field(default_factory=get_font_cache_dir)
    strict_mode: bool = False
    catalog: Path | None = None
    download: DownloadConfig = field(default_factory=DownloadConfig)


def load_config(path: Path) -> FontCacheConfig:
    """設定ファイルを読み込む

    相対パスは設定ファイルのディレクトリを基準に解決する。

    Args:
        path: 設定ファイルパス

    Returns:
        FontCacheConfig: 読み込んだ設定（デフォルトとマージ済み）

    Raises:
        ConfigError: ファイル読み込み、パース、または値の検証エラー
    """
    if not path.exists():
        raise ConfigError(f"設定ファイルが見つかりません: {path}")

    try:
        with path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"YAML解析エラー: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError("設定ファイルはYAMLのマッピング形式である必要があります")

    default = get_default_config()
    base_dir = path.parent

    cache_dir = data.get("cache_dir")
    catalog = data.get("catalog")

    return FontCacheConfig(
        cache_dir=_resolve_path(cache_dir, base_dir) if cache_dir else default.cache_dir,
        strict_mode=bool(data.get("strict_mode", default.strict_mode)),
        catalog=_resolve_path(catalog, base_dir) if catalog else default.catalog,
        download=_merge_download_config(data.get("download", {}), default.download),
    )


def get_default_config() -> FontCacheConfig:
    """デフォルト設定を取得する"""
    return FontCacheConfig()


def _resolve_path(value: Any, base_dir: Path) -> Path:
    """~を展開し、相対パスをbase_dir基準で解決する"""
    path = Path(str(value)).expanduser()
    if not path.is_absolute():
        path = base_dir / path
    return path


def _merge_download_config(data: dict[str, Any], default: DownloadConfig) -> DownloadConfig:
    """ダウンロード設定をマージする"""
    if not isinstance(data, dict):
        return default

    try:
        config = DownloadConfig(
            max_attempts=int(data.get("max_attempts", default.max_attempts)),
            backoff_base=float(data.get("backoff_base", default.backoff_base)),
            backoff_multiplier=float(data.get("backoff_multiplier", default.backoff_multiplier)),
            max_backoff=float(data.get("max_backoff", default.max_backoff)),
            timeout=float(data.get("timeout", default.timeout)),
            max_concurrency=int(data.get("max_concurrency", default.max_concurrency)),
        )
    except (TypeError, ValueError) as e:
        raise ConfigError(f"download設定の値が不正です: {e}") from e

    if config.max_attempts < 1:
        raise ConfigError(f"max_attemptsは1以上である必要があります: {config.max_attempts}")
    if config.max_concurrency < 1:
        raise ConfigError(
            f"max_concurrencyは1以上である必要があります: {config.max_concurrency}"
        )
    if config.timeout <= 0:
        raise ConfigError(f"timeoutは正の値である必要があります: {config.timeout}")
    if config.backoff_base < 0 or config.max_backoff < 0:
        raise ConfigError("backoff_baseとmax_backoffは0以上である必要があります")

    return config
