"""资源镜像模块."""

from catalogsync.mirror.asset import (
    AssetMirror,
    AssetRecord,
    AssetStatus,
    MirrorPass,
    MirrorResult,
)
from catalogsync.mirror.scanner import ProblemKind, ProblemType, process_detail_assets
from catalogsync.mirror.storage import StorageAdapter, create_s3_client

__all__ = [
    "AssetMirror",
    "AssetRecord",
    "AssetStatus",
    "MirrorPass",
    "MirrorResult",
    "ProblemKind",
    "ProblemType",
    "StorageAdapter",
    "create_s3_client",
    "process_detail_assets",
]
