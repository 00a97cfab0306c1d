"""ログ出力の設定

このモジュールは、fontcacheのログ出力をVerboseLevel (詳細ログレベル)に応じて設定する。
ライブラリ側の各モジュールは ``logging.getLogger(__name__)`` で取得したロガーに出力し、
CLIなどの利用側がconfigure_loggingで出力先とレベルを決める。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import IntEnum
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "fontcache"

FILE_LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class VerboseLevel(IntEnum):
    """詳細ログレベル

    ログ出力の詳細度を制御するための列挙型。
    QUIET: エラーのみ出力
    NORMAL: 警告以上を出力
    VERBOSE: 取得状況も出力（-vオプション）
    DEBUG: リトライなどの詳細も出力（-vvオプション）
    """

    QUIET = -1
    NORMAL = 0
    VERBOSE = 1
    DEBUG = 2

    @classmethod
    def from_count(cls, count: int) -> VerboseLevel:
        """-vの指定回数からレベルを求める"""
        return cls(max(cls.QUIET, min(count, cls.DEBUG)))

    @property
    def logging_level(self) -> int:
        return _LOGGING_LEVELS[self]


_LOGGING_LEVELS: dict[VerboseLevel, int] = {
    VerboseLevel.QUIET: logging.ERROR,
    VerboseLevel.NORMAL: logging.WARNING,
    VerboseLevel.VERBOSE: logging.INFO,
    VerboseLevel.DEBUG: logging.DEBUG,
}


@dataclass
class LogConfig:
    """ログ設定

    Attributes:
        verbose_level: ログの詳細度レベル
        log_file: ログ出力先ファイルパス（Noneの場合はファイル出力なし）
        use_color: カラー出力を使用するか
    """

    verbose_level: VerboseLevel = VerboseLevel.NORMAL
    log_file: Path | None = None
    use_color: bool = True


def configure_logging(config: LogConfig) -> logging.Logger:
    """fontcacheロガーにハンドラーを設定する

    既存のハンドラーは置き換えるため、複数回呼び出しても出力は重複しない。
    ファイル出力は詳細度に関わらずDEBUGレベルで記録する。

    Args:
        config: ログ設定

    Returns:
        設定済みのfontcacheロガー
    """
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console_handler = RichHandler(
        console=Console(stderr=True, no_color=not config.use_color),
        show_path=False,
        rich_tracebacks=True,
    )
    console_handler.setLevel(config.verbose_level.logging_level)
    logger.addHandler(console_handler)

    level = config.verbose_level.logging_level
    if config.log_file is not None:
        file_handler = logging.FileHandler(config.log_file, mode="w", encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT, datefmt=FILE_DATE_FORMAT))
        file_handler.setLevel(logging.DEBUG)
        logger.addHandler(file_handler)
        level = logging.DEBUG

    logger.setLevel(level)
    logger.propagate = False
    return logger
