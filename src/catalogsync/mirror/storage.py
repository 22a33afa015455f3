"""资源存储适配器 - 本地下载与 S3 上传."""

import asyncio
import logging
import mimetypes
from pathlib import Path
from typing import Any

import boto3
import httpx
from botocore.exceptions import ClientError

from catalogsync.config import Settings

logger = logging.getLogger(__name__)

# head_object 返回这些错误码时视为对象不存在
MISSING_OBJECT_CODES = frozenset({"404", "NoSuchKey", "NotFound"})


def create_s3_client(settings: Settings) -> Any:
    """根据配置创建 S3 客户端."""
    kwargs: dict[str, str] = {}
    if settings.s3_region:
        kwargs["region_name"] = settings.s3_region
    if settings.s3_access_key_id and settings.s3_secret_access_key:
        kwargs["aws_access_key_id"] = settings.s3_access_key_id
        kwargs["aws_secret_access_key"] = settings.s3_secret_access_key
    return boto3.client("s3", **kwargs)


def _write_bytes(path: Path, body: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(body)


class StorageAdapter:
    """资源下载到本地目录，并按需上传到 S3."""

    def __init__(
        self,
        settings: Settings,
        http_client: httpx.AsyncClient,
        s3_client: Any | None = None,
    ) -> None:
        self.settings = settings
        self._http = http_client
        self._s3 = s3_client

    @property
    def remote_enabled(self) -> bool:
        """是否启用 S3 上传."""
        return self.settings.remote_mirror_enabled

    def object_url(self, key: str) -> str:
        """对象在镜像存储中的访问 URL."""
        return f"{self.settings.mirror_base_url}/{key}"

    def _client(self) -> Any:
        if self._s3 is None:
            self._s3 = create_s3_client(self.settings)
        return self._s3

    async def download_to_file(self, url: str, dest_path: Path) -> Path | None:
        """
        下载资源到本地文件.

        Returns:
            写入的路径；下载被禁用，或文件已存在且不允许覆盖时返回 None
        """
        if not self.settings.asset_download_enabled:
            return None
        if not self.settings.asset_overwrite and dest_path.exists():
            logger.debug(f"本地文件已存在，跳过下载: {dest_path}")
            return None

        response = await self._http.get(url)
        response.raise_for_status()

        await asyncio.to_thread(_write_bytes, dest_path, response.content)
        return dest_path

    async def upload_to_store(self, key: str, file_path: Path) -> str | None:
        """
        上传文件到 S3.

        Returns:
            镜像 URL；未启用 S3 时返回 None。不允许覆盖且对象已存在时
            直接返回已有对象的 URL。
        """
        if not self.remote_enabled:
            return None

        if not self.settings.asset_overwrite and await self._object_exists(key):
            logger.debug(f"S3 对象已存在，跳过上传: {key}")
            return self.object_url(key)

        content_type = mimetypes.guess_type(file_path.name)[0]
        await asyncio.to_thread(
            self._put_object,
            key,
            file_path,
            content_type or "application/octet-stream",
        )
        return self.object_url(key)

    async def _object_exists(self, key: str) -> bool:
        try:
            await asyncio.to_thread(
                self._client().head_object,
                Bucket=self.settings.s3_bucket,
                Key=key,
            )
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code")
            if code in MISSING_OBJECT_CODES:
                return False
            raise
        return True

    def _put_object(self, key: str, file_path: Path, content_type: str) -> None:
        with file_path.open("rb") as fh:
            self._client().put_object(
                Bucket=self.settings.s3_bucket,
                Key=key,
                Body=fh,
                ContentType=content_type,
            )
