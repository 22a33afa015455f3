"""应用配置管理."""

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


def append_narrow_filter(narrow: str, key: str, value: str) -> str:
    """向 narrow 过滤串追加 ``key|value||``，已存在同名 key 时保持不变."""
    if not value:
        return narrow
    if f"{key}|" in narrow:
        return narrow
    trimmed = (narrow or "").strip()
    separator = "" if not trimmed or trimmed.endswith("||") else "||"
    return f"{trimmed}{separator}{key}|{value}||"


class Settings(BaseSettings):
    """应用配置（环境变量）."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # 存储配置
    database_url: str = "sqlite+aiosqlite:///./catalogsync.db"
    state_doc_id: str = "default"

    # 列表接口
    list_base_url: str = ""
    list_index: str = "problem"
    list_limit: int = 200
    list_narrow: str = ""
    list_problem_type: str = ""
    list_order_by: str = "-modified"
    list_page_type: str = "library"
    list_query: str = ""
    list_query_list: str = ""  # 逗号分隔，多查询模式
    list_tag: str = ""
    list_view: str = ""
    list_max_result_window: int = 0  # 0 表示不限制
    max_pages_per_query: int = 0  # 0 表示不限制

    # 详情接口
    detail_base_url: str = ""
    detail_env: str = ""
    detail_user: str = ""

    # HTTP 配置
    request_timeout_ms: int = 20000
    api_cookie: str = ""
    api_csrf_token: str = ""
    api_user_agent: str = DEFAULT_USER_AGENT
    api_referer: str = ""

    # 重试配置
    max_retries: int = 3
    retry_delay_sec: float = 5.0
    rate_limit_delay_sec: float = 60.0

    # 节流配置
    delay_mode: Literal["delayed", "immediate"] = "delayed"
    detail_delay_min_sec: float = 1.0
    detail_delay_max_sec: float = 3.0
    list_delay_min_sec: float = 2.0
    list_delay_max_sec: float = 5.0

    # 抓取策略
    skip_existing_details: bool = False
    detail_only_if_missing: bool = False
    force_resume: bool = False

    # 资源镜像配置
    asset_sync_enabled: bool = True
    asset_scan_all_urls: bool = True
    asset_download_enabled: bool = True
    asset_overwrite: bool = False
    asset_download_dir: str = "downloads"
    asset_key_prefix: str = "Questions_Assets"

    # S3 配置
    s3_bucket: str = ""
    s3_region: str = ""
    s3_access_key_id: str = ""
    s3_secret_access_key: str = ""
    s3_base_url: str = ""
    s3_enabled: bool | None = None

    # 服务配置
    sync_interval_minutes: int = 0

    @property
    def effective_list_narrow(self) -> str:
        """合并 problem_type 过滤后的 narrow 参数."""
        return append_narrow_filter(
            self.list_narrow, "problem_type", self.list_problem_type
        )

    @property
    def query_list(self) -> list[str]:
        """多查询模式下的查询列表，未配置时为空."""
        return [q.strip() for q in self.list_query_list.split(",") if q.strip()]

    @property
    def mirror_base_url(self) -> str:
        """镜像存储的 URL 前缀."""
        if self.s3_base_url:
            return self.s3_base_url.rstrip("/")
        if self.s3_bucket and self.s3_region:
            return f"https://{self.s3_bucket}.s3.{self.s3_region}.amazonaws.com"
        return ""

    @property
    def remote_mirror_enabled(self) -> bool:
        """是否上传到 S3（未显式配置时按凭据是否齐全判断）."""
        if self.s3_enabled is not None:
            return self.s3_enabled
        return bool(
            self.s3_bucket
            and self.s3_region
            and self.s3_access_key_id
            and self.s3_secret_access_key
        )

    @property
    def request_timeout_sec(self) -> float:
        """请求超时（秒）."""
        return self.request_timeout_ms / 1000


@lru_cache
def get_settings() -> Settings:
    """获取应用配置（带缓存）."""
    return Settings()
