"""CLI entry point for fontcache."""

import asyncio
from pathlib import Path
from typing import Annotated

import httpx
import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn
from rich.table import Table

from fontcache import __version__
from fontcache.cache import clear_cache, get_cache_info
from fontcache.catalog import CatalogError, FontCatalog
from fontcache.config import (
    DEFAULT_CONFIG_FILENAME,
    ConfigError,
    FontCacheConfig,
    get_default_config,
    load_config,
)
from fontcache.downloader import FileDownloader
from fontcache.logger import LogConfig, VerboseLevel, configure_logging
from fontcache.pipeline import FetchPipeline
from fontcache.service import FontCacheService, FontFilesResult
from fontcache.store import FontStore, StoreError
from fontcache.types import ExitCode

app = typer.Typer(help="Webフォントを取得してキャッシュするCLIツール")
console = Console()

ConfigOption = Annotated[
    Path | None,
    typer.Option("--config", help=f"設定ファイル（省略時は./{DEFAULT_CONFIG_FILENAME}）"),
]
CatalogOption = Annotated[Path | None, typer.Option("--catalog", help="フォントカタログ（YAML）")]


def _format_size(size_bytes: int) -> str:
    """バイト数を人間が読みやすい形式に変換する"""
    if size_bytes < 1024:
        return f"{size_bytes} B"

    size = size_bytes / 1024
    for unit in ("KB", "MB"):
        if size < 1024:
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} GB"


def _fail(message: str, code: ExitCode) -> typer.Exit:
    console.print(f"[red]エラー: {escape(message)}[/red]")
    return typer.Exit(int(code))


def _load_settings(config_path: Path | None) -> FontCacheConfig:
    """設定ファイルを読み込む（指定が無くカレントにも無い場合はデフォルト設定）"""
    if config_path is None:
        candidate = Path(DEFAULT_CONFIG_FILENAME)
        if not candidate.exists():
            return get_default_config()
        config_path = candidate

    try:
        return load_config(config_path)
    except ConfigError as e:
        raise _fail(str(e), ExitCode.INVALID_INPUT) from e


def _load_catalog(settings: FontCacheConfig, catalog_path: Path | None) -> FontCatalog:
    """カタログを読み込む（コマンドライン指定を設定ファイルより優先）"""
    path = catalog_path or settings.catalog
    if path is None:
        raise _fail(
            "カタログが指定されていません（--catalog または設定ファイルのcatalog）",
            ExitCode.INVALID_INPUT,
        )

    try:
        return FontCatalog.from_file(path)
    except CatalogError as e:
        raise _fail(str(e), ExitCode.INVALID_INPUT) from e


async def _fetch(
    settings: FontCacheConfig,
    catalog: FontCatalog,
    font_id: str,
    subsets: list[str],
    formats: list[str] | None,
    progress: Progress,
) -> FontFilesResult | None:
    """ストアを初期化し、フォントファイルを取得する"""
    task_id = progress.add_task(f"Fetching {font_id}", total=None)

    def on_progress(completed: int, total: int) -> None:
        progress.update(task_id, completed=completed, total=total)

    store = FontStore(catalog, settings.cache_dir, strict_mode=settings.strict_mode)
    await store.initialize()

    async with httpx.AsyncClient(timeout=settings.download.timeout) as client:
        downloader = FileDownloader(
            http_client=client,
            retry_config=settings.download.retry_config,
            timeout=settings.download.timeout,
        )
        pipeline = FetchPipeline(
            downloader,
            settings.cache_dir,
            max_concurrency=settings.download.max_concurrency,
            progress_callback=on_progress,
        )
        service = FontCacheService(store, catalog, pipeline)
        return await service.get_font_files(font_id, subsets, formats)


def _print_result(result: FontFilesResult) -> None:
    """取得結果を表示する"""
    table = Table(title=result.bundle.store_key)
    table.add_column("Variant", style="cyan", no_wrap=True)
    table.add_column("Format", style="magenta", no_wrap=True)
    table.add_column("Path", style="white", overflow="fold")

    for resolved in result.files:
        table.add_row(resolved.variant_id, resolved.format, str(resolved.path))

    console.print(table)

    for failure in result.failures:
        console.print(
            f"[yellow]失敗: {failure.variant_id} {failure.format} {escape(failure.url)}[/yellow]"
        )

    if not result.files:
        console.print("[yellow]利用可能なファイルがありません[/yellow]")


@app.command()
def fetch(
    font_id: Annotated[str, typer.Argument(help="フォントID（例: roboto）")],
    subset: Annotated[
        list[str] | None, typer.Option("-s", "--subset", help="サブセット（複数指定可）")
    ] = None,
    format_: Annotated[
        list[str] | None, typer.Option("-f", "--format", help="表示するフォーマット（複数指定可）")
    ] = None,
    catalog: CatalogOption = None,
    config: ConfigOption = None,
    verbose: Annotated[int, typer.Option("-v", "--verbose", count=True, help="詳細ログ出力")] = 0,
    log_file: Annotated[Path | None, typer.Option(help="ログファイル出力先")] = None,
) -> None:
    """フォントファイルを取得してキャッシュに保存する"""
    configure_logging(LogConfig(verbose_level=VerboseLevel.from_count(verbose), log_file=log_file))

    settings = _load_settings(config)
    font_catalog = _load_catalog(settings, catalog)

    progress = Progress(
        TextColumn("{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        console=console,
        transient=True,
    )

    try:
        with progress:
            result = asyncio.run(
                _fetch(settings, font_catalog, font_id, subset or [], format_, progress)
            )
    except StoreError as e:
        raise _fail(str(e), ExitCode.ERROR) from e

    if result is None:
        raise _fail(f"フォントが見つかりません: {font_id} {subset or ''}", ExitCode.NOT_FOUND)

    _print_result(result)
    raise typer.Exit(int(ExitCode.SUCCESS))


@app.command("list")
def list_fonts(
    catalog: CatalogOption = None,
    config: ConfigOption = None,
) -> None:
    """カタログに登録されたフォントを一覧表示する"""
    settings = _load_settings(config)
    font_catalog = _load_catalog(settings, catalog)

    fonts = sorted(asyncio.run(font_catalog.fetch_fonts()), key=lambda font: font.id)

    table = Table(title="フォント一覧")
    table.add_column("ID", style="cyan")
    table.add_column("Version", style="magenta")
    table.add_column("Subsets", style="white")
    table.add_column("Default", style="green")

    for font in fonts:
        table.add_row(font.id, font.version, ", ".join(font.subsets), font.default_subset)

    console.print(table)
    raise typer.Exit(int(ExitCode.SUCCESS))


# cache サブコマンドグループ
cache_app = typer.Typer(help="キャッシュ管理")
app.add_typer(cache_app, name="cache")


@cache_app.command("clean")
def cache_clean(
    force: Annotated[bool, typer.Option("-f", "--force", help="確認なしで削除")] = False,
    config: ConfigOption = None,
) -> None:
    """キャッシュディレクトリを削除する"""
    settings = _load_settings(config)

    if not force:
        confirmed = typer.confirm(f"{settings.cache_dir}を削除しますか?")
        if not confirmed:
            console.print("[yellow]キャンセルしました[/yellow]")
            raise typer.Exit(int(ExitCode.SUCCESS))

    clear_cache(settings.cache_dir)
    console.print(f"[green]{settings.cache_dir}を削除しました[/green]")
    raise typer.Exit(int(ExitCode.SUCCESS))


@cache_app.command("info")
def cache_info(config: ConfigOption = None) -> None:
    """キャッシュ情報を表示する"""
    settings = _load_settings(config)
    info = get_cache_info(settings.cache_dir)

    table = Table(title="キャッシュ情報", show_header=False)
    table.add_column("項目", style="cyan")
    table.add_column("値", style="white")

    table.add_row("ディレクトリ", str(info.directory))
    table.add_row("サイズ", _format_size(info.size_bytes))
    table.add_row("ファイル数", str(info.file_count))

    console.print(Panel(table, border_style="blue"))
    raise typer.Exit(int(ExitCode.SUCCESS))


def version_callback(value: bool) -> None:
    """バージョン表示コールバック"""
    if value:
        typer.echo(f"fontcache {__version__}")
        raise typer.Exit(0)


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=version_callback,
            is_eager=True,
            help="バージョンを表示する",
        ),
    ] = False,
) -> None:
    """fontcache CLI - Webフォントの取得とキャッシュ"""
    pass
