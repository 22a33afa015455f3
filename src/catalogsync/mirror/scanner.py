"""详情记录的资源扫描与 URL 改写."""

import logging
from collections.abc import Awaitable, Callable
from enum import Enum, StrEnum
from typing import Any

from catalogsync.mirror.asset import ASSET_LOG_KEY, AssetMirror, MirrorPass
from catalogsync.mirror.keys import extract_key_from_url
from catalogsync.utils.html_parser import (
    extract_image_sources,
    extract_urls,
    is_http_url,
    replace_urls,
)
from catalogsync.utils.tree import rewrite_strings

logger = logging.getLogger(__name__)


class ProblemType(StrEnum):
    """详情记录的类型代码."""

    PBT = "PBT"
    PBD = "PBD"
    PFE = "PFE"
    PFS = "PFS"
    UIX = "UIX"


PROJECT_BASED_TYPES = frozenset(
    {ProblemType.PBT, ProblemType.PBD, ProblemType.PFE, ProblemType.PFS}
)


class ProblemKind(Enum):
    """决定执行哪些定向扫描的记录形态."""

    PROJECT = "project"
    INTERACTIVE_UI = "interactive_ui"
    GENERIC = "generic"


def classify(detail: dict[str, Any]) -> ProblemKind:
    """判断详情记录的形态."""
    problem_type = detail.get("problem_type")
    if not isinstance(problem_type, str):
        problem_type = None
    extra = detail.get("extra_data")
    has_project_data = isinstance(extra, dict) and bool(
        extra.get("project_based_problem_data")
    )
    if problem_type in PROJECT_BASED_TYPES or has_project_data:
        return ProblemKind.PROJECT
    if problem_type == ProblemType.UIX:
        return ProblemKind.INTERACTIVE_UI
    return ProblemKind.GENERIC


async def sync_location(
    mirror_pass: MirrorPass, location: Any, kind: str
) -> None:
    """同步带 s3_http_url / object_key 的位置对象."""
    if not isinstance(location, dict):
        return
    source_url = location.get("s3_http_url")
    if not source_url or not isinstance(source_url, str):
        return

    hint_key = location.get("object_key") or extract_key_from_url(source_url)
    result_url = await mirror_pass.mirror(source_url, kind, hint_key=hint_key)
    if result_url and result_url != source_url:
        location["original_s3_http_url"] = source_url
        location["s3_http_url"] = result_url


async def sync_url_field(
    mirror_pass: MirrorPass, container: Any, field: str, kind: str
) -> None:
    """同步单个 URL 字段，原值保存在 ``<field>_original``."""
    if not isinstance(container, dict):
        return
    source_url = container.get(field)
    if not is_http_url(source_url):
        return

    result_url = await mirror_pass.mirror(source_url, kind)
    if result_url and result_url != source_url:
        container[f"{field}_original"] = source_url
        container[field] = result_url


async def sync_description_images(mirror_pass: MirrorPass) -> None:
    """同步 description 中 <img src> 引用的图片."""
    detail = mirror_pass.detail
    description = detail.get("description")
    if not description or not isinstance(description, str):
        return

    replacements: dict[str, str] = {}
    for source_url in extract_image_sources(description):
        if not is_http_url(source_url):
            continue
        result_url = await mirror_pass.mirror(source_url, "description_image")
        if result_url and result_url != source_url:
            replacements[source_url] = result_url
    detail["description"] = replace_urls(description, replacements)


async def sync_attachments(mirror_pass: MirrorPass) -> None:
    """同步 attachments 列表（位置对象或 url 对象）."""
    attachments = mirror_pass.detail.get("attachments")
    if not isinstance(attachments, list):
        return
    for attachment in attachments:
        if not isinstance(attachment, dict):
            continue
        if attachment.get("s3_http_url"):
            await sync_location(mirror_pass, attachment, "attachment")
        elif attachment.get("url"):
            await sync_url_field(mirror_pass, attachment, "url", "attachment")


async def sync_private_attachments(mirror_pass: MirrorPass) -> None:
    """同步 private_attachments 中的 URL 字符串."""
    attachments = mirror_pass.detail.get("private_attachments")
    if not isinstance(attachments, list):
        return
    for i, source_url in enumerate(attachments):
        if not is_http_url(source_url):
            continue
        result_url = await mirror_pass.mirror(source_url, "private_attachment")
        if result_url and result_url != source_url:
            attachments[i] = result_url


async def sync_project_assets(mirror_pass: MirrorPass) -> None:
    """同步项目类题目的解答包、模板包和项目模板."""
    detail = mirror_pass.detail
    extra = detail.get("extra_data")
    project_data = (
        extra.get("project_based_problem_data") if isinstance(extra, dict) else None
    )
    if isinstance(project_data, dict):
        await sync_location(
            mirror_pass,
            project_data.get("problem_solution_s3_location"),
            "problem_solution",
        )
        await sync_location(
            mirror_pass,
            project_data.get("problem_stub_s3_location"),
            "problem_stub",
        )
    # 没有项目数据的项目类记录也可能带 project_template
    await sync_url_field(mirror_pass, detail, "project_template", "project_template")


async def sync_ui_assets(mirror_pass: MirrorPass) -> None:
    """同步交互 UI 类题目的示例解答与模板."""
    detail = mirror_pass.detail
    if not detail.get("sample_solutions"):
        return
    await sync_url_field(
        mirror_pass,
        detail.get("sample_solutions"),
        "vanillajs",
        "sample_solution_vanillajs",
    )
    if detail.get("stubs"):
        await sync_url_field(
            mirror_pass, detail.get("stubs"), "vanillajs", "stub_vanillajs"
        )


AVATAR_KEYS = frozenset({"avatar", "avatar_url"})
PROFILE_MARKERS = ("username", "resource_uri", "full_name")


def _deep_scan_skip(detail: dict[str, Any]) -> Callable[[dict[str, Any], str], bool]:
    def skip(node: dict[str, Any], key: str) -> bool:
        if not isinstance(key, str):
            return False
        # 用户头像不镜像
        if key in AVATAR_KEYS and any(node.get(m) for m in PROFILE_MARKERS):
            return True
        # 定向扫描保存的原始 URL
        if key.endswith("_original") or key.startswith("original_"):
            return True
        return node is detail.get("extra_data") and key == ASSET_LOG_KEY

    return skip


async def deep_scan_urls(mirror_pass: MirrorPass) -> None:
    """递归扫描整条记录中所有字符串里的 URL 并替换为镜像 URL."""

    async def rewrite_text(text: str) -> str:
        replacements: dict[str, str] = {}
        for url in extract_urls(text):
            result_url = await mirror_pass.mirror(url, "deep_scan")
            if result_url and result_url != url:
                replacements[url] = result_url

        return replace_urls(text, replacements)

    await rewrite_strings(
        mirror_pass.detail, rewrite_text, skip=_deep_scan_skip(mirror_pass.detail)
    )


TargetedPass = Callable[[MirrorPass], Awaitable[None]]

TARGETED_PASSES: dict[ProblemKind, tuple[TargetedPass, ...]] = {
    ProblemKind.PROJECT: (
        sync_project_assets,
        sync_description_images,
        sync_attachments,
    ),
    ProblemKind.INTERACTIVE_UI: (
        sync_ui_assets,
        sync_description_images,
        sync_attachments,
    ),
    ProblemKind.GENERIC: (),
}


async def process_detail_assets(
    detail: dict[str, Any], slug: str, mirror: AssetMirror
) -> MirrorPass | None:
    """
    镜像一条详情记录中的全部资源（原地改写）.

    先按记录形态执行定向扫描，再处理 private_attachments，最后做深度扫描
    兜底。定向扫描先填充缓存，深度扫描遇到同一 URL 时直接命中。

    Args:
        detail: 详情接口原始数据
        slug: 目录项 slug
        mirror: 资源镜像器

    Returns:
        本轮的 MirrorPass；未启用资源镜像时返回 None
    """
    if not mirror.enabled:
        return None

    mirror_pass = MirrorPass(mirror, detail, slug)
    kind = classify(detail)
    for targeted_pass in TARGETED_PASSES[kind]:
        await targeted_pass(mirror_pass)

    await sync_private_attachments(mirror_pass)

    if mirror.settings.asset_scan_all_urls:
        await deep_scan_urls(mirror_pass)

    logger.debug(
        f"资源处理完成: {slug} kind={kind.value} urls={len(mirror_pass.cache)}"
    )
    return mirror_pass
