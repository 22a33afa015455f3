"""资源镜像 - 单个 URL 的下载、上传与缓存."""

import logging
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import httpx
from botocore.exceptions import ClientError
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from catalogsync.config import Settings
from catalogsync.mirror.keys import already_mirrored, derive_mirror_key, normalize_url
from catalogsync.mirror.storage import StorageAdapter

logger = logging.getLogger(__name__)

ASSET_LOG_KEY = "asset_sync"


class AssetStatus:
    """资源镜像状态."""

    DOWNLOADED = "downloaded"
    UPLOADED = "uploaded"
    SKIPPED = "skipped"
    FAILED = "failed"


class AssetRecord(BaseModel):
    """一次资源镜像的日志条目（序列化为 camelCase）."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    kind: str
    slug: str
    source_url: str
    key: str
    local_path: str
    mirror_url: str | None = None
    status: str = AssetStatus.SKIPPED
    error_status: int | None = None
    error_message: str | None = None


@dataclass
class MirrorResult:
    """镜像结果."""

    record: AssetRecord | None
    result_url: str
    cached: bool = False


MirrorCache = dict[str, MirrorResult]


def _error_status(error: Exception) -> int | None:
    """从 HTTP / S3 异常中取状态码."""
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code
    if isinstance(error, ClientError):
        return error.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
    return None


def append_asset_record(detail: dict[str, Any], record: AssetRecord) -> None:
    """向详情记录的资源日志追加一条记录并刷新 lastSyncedAt."""
    extra = detail.get("extra_data")
    if not isinstance(extra, dict):
        extra = {}
        detail["extra_data"] = extra

    log = extra.get(ASSET_LOG_KEY)
    if not isinstance(log, dict) or not isinstance(log.get("files"), list):
        log = {"files": [], "lastSyncedAt": None}
        extra[ASSET_LOG_KEY] = log

    log["files"].append(record.model_dump(by_alias=True))
    log["lastSyncedAt"] = datetime.now(UTC).isoformat()


class AssetMirror:
    """把源 URL 镜像到本地目录和 S3."""

    def __init__(self, settings: Settings, storage: StorageAdapter) -> None:
        self.settings = settings
        self.storage = storage

    @property
    def enabled(self) -> bool:
        """是否启用资源镜像."""
        return self.settings.asset_sync_enabled

    async def mirror(
        self,
        source_url: str,
        slug: str,
        kind: str,
        cache: MirrorCache | None = None,
        problem_type: str | None = None,
        hint_key: str | None = None,
    ) -> MirrorResult:
        """
        镜像单个 URL.

        cache 以原始 URL 为 key，命中时不再发起任何网络请求；失败结果同样
        会写入缓存，同一轮处理中不会重试。

        Returns:
            MirrorResult，result_url 为应写回文档的 URL
        """
        if cache is not None and source_url in cache:
            return replace(cache[source_url], cached=True)

        result = await self._mirror(source_url, slug, kind, problem_type, hint_key)
        if cache is not None:
            cache[source_url] = result
        return result

    async def _mirror(
        self,
        source_url: str,
        slug: str,
        kind: str,
        problem_type: str | None,
        hint_key: str | None,
    ) -> MirrorResult:
        if not self.enabled or not source_url:
            return MirrorResult(record=None, result_url=source_url)
        if already_mirrored(source_url, self.settings.mirror_base_url):
            return MirrorResult(record=None, result_url=source_url)

        key = derive_mirror_key(
            source_url,
            slug,
            problem_type,
            prefix=self.settings.asset_key_prefix,
            hint_key=hint_key,
        )
        if key is None:
            return MirrorResult(record=None, result_url=source_url)

        local_path = Path(self.settings.asset_download_dir) / key
        record = AssetRecord(
            kind=kind,
            slug=slug,
            source_url=source_url,
            key=key,
            local_path=str(local_path),
        )

        try:
            downloaded = await self.storage.download_to_file(
                normalize_url(source_url), local_path
            )
        except Exception as e:
            record.status = AssetStatus.FAILED
            record.error_status = _error_status(e)
            record.error_message = str(e) or "Asset download failed"
            logger.warning(f"资源下载失败: {slug} {source_url} - {e}")
            return MirrorResult(record=record, result_url=source_url)

        if downloaded and self.storage.remote_enabled:
            try:
                mirror_url = await self.storage.upload_to_store(key, downloaded)
            except Exception as e:
                record.status = AssetStatus.FAILED
                record.error_status = _error_status(e)
                record.error_message = str(e) or "Asset upload failed"
                logger.warning(f"资源上传失败: {slug} {key} - {e}")
                return MirrorResult(record=record, result_url=source_url)

            record.mirror_url = mirror_url
            record.status = (
                AssetStatus.UPLOADED if mirror_url else AssetStatus.DOWNLOADED
            )
            return MirrorResult(record=record, result_url=mirror_url or source_url)

        record.status = AssetStatus.DOWNLOADED if downloaded else AssetStatus.SKIPPED
        return MirrorResult(record=record, result_url=source_url)


class MirrorPass:
    """单条详情记录的一轮镜像处理（缓存只在本轮内有效）."""

    def __init__(self, mirror: AssetMirror, detail: dict[str, Any], slug: str) -> None:
        self.detail = detail
        self.slug = slug
        problem_type = detail.get("problem_type")
        self.problem_type = problem_type if isinstance(problem_type, str) else None
        self.cache: MirrorCache = {}
        self._mirror = mirror

    async def mirror(
        self, source_url: str, kind: str, hint_key: str | None = None
    ) -> str:
        """镜像 URL 并记录日志，返回应写回的 URL."""
        result = await self._mirror.mirror(
            source_url,
            self.slug,
            kind,
            self.cache,
            problem_type=self.problem_type,
            hint_key=hint_key,
        )
        if result.record is not None and not result.cached:
            append_asset_record(self.detail, result.record)
        return result.result_url
