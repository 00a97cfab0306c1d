"""fontcache - Web font asset cache with a concurrent fetch pipeline."""

from fontcache.models import (
    FontBundle,
    FontDescriptor,
    ResolvedFile,
    StoreStats,
    VariantCandidate,
    VariantURL,
)
from fontcache.pipeline import FetchPipeline, FetchReport, FetchStatus, FileOutcome
from fontcache.service import FontCacheService, FontFilesResult
from fontcache.store import DuplicateWriteError, FontStore

__version__ = "0.1.0"

__all__ = [
    "DuplicateWriteError",
    "FetchPipeline",
    "FetchReport",
    "FetchStatus",
    "FileOutcome",
    "FontBundle",
    "FontCacheService",
    "FontDescriptor",
    "FontFilesResult",
    "FontStore",
    "ResolvedFile",
    "StoreStats",
    "VariantCandidate",
    "VariantURL",
]
