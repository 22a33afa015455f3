"""测试详情记录的资源扫描."""

from pathlib import Path
from unittest.mock import MagicMock

import httpx
import pytest
from botocore.exceptions import ClientError

from catalogsync.mirror.asset import AssetMirror, AssetStatus
from catalogsync.mirror.scanner import ProblemKind, classify, process_detail_assets
from catalogsync.mirror.storage import StorageAdapter
from conftest import make_settings

MIRROR_BASE = "https://bucket.s3.us-east-1.amazonaws.com"

S3_SETTINGS = {
    "s3_bucket": "bucket",
    "s3_region": "us-east-1",
    "s3_access_key_id": "key",
    "s3_secret_access_key": "secret",
}


@pytest.fixture
def requested() -> list[str]:
    return []


@pytest.fixture
def failing() -> set[str]:
    """下载时返回 500 的 URL."""
    return set()


@pytest.fixture
async def http_client(requested: list[str], failing: set[str]):
    def handler(request: httpx.Request) -> httpx.Response:
        requested.append(str(request.url))
        if str(request.url) in failing:
            return httpx.Response(500, content=b"error")
        return httpx.Response(200, content=b"bytes")

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        yield client


@pytest.fixture
def make_mirror(http_client, tmp_path: Path):
    def _make(remote: bool = False, **overrides) -> AssetMirror:
        s3 = MagicMock()
        s3.head_object.side_effect = ClientError(
            {"Error": {"Code": "404", "Message": "Not Found"}}, "HeadObject"
        )
        values = {"asset_sync_enabled": True, "asset_download_dir": str(tmp_path)}
        if remote:
            values.update(S3_SETTINGS)
        values.update(overrides)
        settings = make_settings(**values)
        return AssetMirror(settings, StorageAdapter(settings, http_client, s3))

    return _make


def _files(detail: dict) -> list[dict]:
    return detail.get("extra_data", {}).get("asset_sync", {}).get("files", [])


class TestClassify:
    """测试记录形态判断."""

    def test_project_types(self) -> None:
        """项目类类型代码或带项目数据的记录为 PROJECT."""
        assert classify({"problem_type": "PBT"}) == ProblemKind.PROJECT
        assert classify({"problem_type": "PFS"}) == ProblemKind.PROJECT
        assert (
            classify({"extra_data": {"project_based_problem_data": {"a": 1}}})
            == ProblemKind.PROJECT
        )

    def test_interactive_and_generic(self) -> None:
        """UIX 为交互 UI，其他为通用."""
        assert classify({"problem_type": "UIX"}) == ProblemKind.INTERACTIVE_UI
        assert classify({"problem_type": "GEN"}) == ProblemKind.GENERIC
        assert classify({"problem_type": 7}) == ProblemKind.GENERIC


class TestTargetedPasses:
    """测试定向扫描."""

    async def test_description_image_uploaded(self, make_mirror) -> None:
        """描述中的图片上传后改写为镜像 URL."""
        source = "https://img.example.com/diagram.png"
        detail = {
            "problem_type": "PBT",
            "description": f'<p>Intro</p><img src="{source}">',
        }

        await process_detail_assets(detail, "two-sum", make_mirror(remote=True))

        assert source not in detail["description"]
        assert f"{MIRROR_BASE}/Questions_Assets/PBT/two-sum/" in detail["description"]
        files = _files(detail)
        assert len(files) == 1
        assert files[0]["kind"] == "description_image"
        assert files[0]["status"] == AssetStatus.UPLOADED
        assert files[0]["sourceUrl"] == source

    async def test_description_escaped_ampersand(self, make_mirror) -> None:
        """实体转义的 src 同样被替换."""
        detail = {
            "problem_type": "PBT",
            "description": '<img src="https://img.example.com/a.png?w=1&amp;h=2">',
        }

        await process_detail_assets(detail, "s", make_mirror(remote=True))

        assert "img.example.com" not in detail["description"]
        assert detail["description"].startswith(f'<img src="{MIRROR_BASE}/')

    async def test_location_keeps_original(self, make_mirror) -> None:
        """位置对象改写后保留原始 URL."""
        source = "https://old.s3.amazonaws.com/solutions/sol.zip"
        location = {"s3_http_url": source, "object_key": "solutions/sol.zip"}
        detail = {
            "problem_type": "PBT",
            "extra_data": {
                "project_based_problem_data": {
                    "problem_solution_s3_location": location,
                }
            },
        }

        await process_detail_assets(detail, "s", make_mirror(remote=True))

        assert location["original_s3_http_url"] == source
        assert location["s3_http_url"].startswith(MIRROR_BASE)
        assert location["s3_http_url"].endswith(".zip")
        assert [f["kind"] for f in _files(detail)] == ["problem_solution"]

    async def test_url_field_original_not_rewritten(self, make_mirror) -> None:
        """深度扫描不会改写保存的原始 URL."""
        source = "https://files.example.com/template.zip"
        detail = {"problem_type": "PBT", "project_template": source}

        await process_detail_assets(detail, "s", make_mirror(remote=True))

        assert detail["project_template"].startswith(MIRROR_BASE)
        assert detail["project_template_original"] == source
        assert _files(detail)[0]["sourceUrl"] == source

    async def test_project_template_with_project_data(self, make_mirror) -> None:
        """带项目数据时先同步解答包，再同步项目模板."""
        template = "https://files.example.com/template.zip"
        detail = {
            "problem_type": "PBT",
            "project_template": template,
            "extra_data": {
                "project_based_problem_data": {
                    "problem_stub_s3_location": {
                        "s3_http_url": "https://old.s3.amazonaws.com/stub.zip",
                    },
                }
            },
        }

        await process_detail_assets(detail, "s", make_mirror(remote=True))

        assert detail["project_template_original"] == template
        assert [f["kind"] for f in _files(detail)] == [
            "problem_stub",
            "project_template",
        ]

    async def test_description_keeps_failed_url_with_same_prefix(
        self, make_mirror, failing: set[str]
    ) -> None:
        """图片改写不影响以它为前缀、但镜像失败的其他 URL."""
        source = "https://img.example.com/a.png"
        failing.add(f"{source}?v=2")
        detail = {
            "problem_type": "PBT",
            "description": f'<img src="{source}"><a href="{source}?v=2">v2</a>',
        }

        await process_detail_assets(detail, "s", make_mirror(remote=True))

        assert f'href="{source}?v=2"' in detail["description"]
        assert f'<img src="{MIRROR_BASE}/' in detail["description"]
        statuses = {f["sourceUrl"]: f["status"] for f in _files(detail)}
        assert statuses == {
            source: AssetStatus.UPLOADED,
            f"{source}?v=2": AssetStatus.FAILED,
        }

    async def test_ui_assets(self, make_mirror) -> None:
        """交互 UI 类记录的示例解答与模板."""
        detail = {
            "problem_type": "UIX",
            "sample_solutions": {"vanillajs": "https://files.example.com/sol.js"},
            "stubs": {"vanillajs": "https://files.example.com/stub.js"},
        }

        await process_detail_assets(detail, "s", make_mirror(remote=True))

        assert detail["sample_solutions"]["vanillajs"].startswith(MIRROR_BASE)
        assert detail["stubs"]["vanillajs_original"] == (
            "https://files.example.com/stub.js"
        )
        assert [f["kind"] for f in _files(detail)] == [
            "sample_solution_vanillajs",
            "stub_vanillajs",
        ]

    async def test_private_attachments(self, make_mirror) -> None:
        """private_attachments 中的 URL 被替换，非 URL 保持不变."""
        detail = {
            "problem_type": "GEN",
            "private_attachments": ["https://files.example.com/p.zip", "notes.txt"],
        }

        await process_detail_assets(detail, "s", make_mirror(remote=True))

        assert detail["private_attachments"][0].startswith(MIRROR_BASE)
        assert detail["private_attachments"][1] == "notes.txt"
        files = _files(detail)
        assert len(files) == 1
        assert files[0]["kind"] == "private_attachment"


class TestDeepScan:
    """测试深度扫描."""

    async def test_avatars_skipped(self, make_mirror, requested: list[str]) -> None:
        """用户资料中的头像不镜像."""
        detail = {
            "problem_type": "GEN",
            "author": {"username": "u", "avatar": "https://img.example.com/u.png"},
            "notes": "See https://files.example.com/doc.pdf for details",
        }

        await process_detail_assets(detail, "s", make_mirror())

        assert requested == ["https://files.example.com/doc.pdf"]
        assert detail["author"]["avatar"] == "https://img.example.com/u.png"

    async def test_each_url_logged_once(
        self, make_mirror, requested: list[str]
    ) -> None:
        """同一 URL 在多处出现时只下载并记录一次."""
        source = "https://img.example.com/a.png"
        detail = {
            "problem_type": "PBT",
            "description": f'<img src="{source}">',
            "hint": f"see {source}",
        }

        await process_detail_assets(detail, "s", make_mirror())

        assert requested == [source]
        assert len(_files(detail)) == 1

    async def test_rewrites_all_occurrences(self, make_mirror) -> None:
        """同一字符串中的多次出现全部替换."""
        source = "https://files.example.com/a.txt"
        detail = {"problem_type": "GEN", "body": f"{source} and again {source}"}

        await process_detail_assets(detail, "s", make_mirror(remote=True))

        assert source not in detail["body"]
        assert detail["body"].count(MIRROR_BASE) == 2

    async def test_cyclic_structure(self, make_mirror, requested: list[str]) -> None:
        """自引用结构不会无限递归."""
        detail: dict = {
            "problem_type": "GEN",
            "body": "https://files.example.com/a.txt",
        }
        detail["self"] = detail
        detail["children"] = [{"parent": detail}]

        await process_detail_assets(detail, "s", make_mirror())

        assert requested == ["https://files.example.com/a.txt"]

    async def test_deep_scan_can_be_disabled(
        self, make_mirror, requested: list[str]
    ) -> None:
        """关闭深度扫描时通用记录不做处理."""
        detail = {"problem_type": "GEN", "body": "https://files.example.com/a.txt"}

        await process_detail_assets(
            detail, "s", make_mirror(asset_scan_all_urls=False)
        )

        assert requested == []
        assert "extra_data" not in detail

    async def test_disabled_mirror(self, make_mirror, requested: list[str]) -> None:
        """关闭资源镜像时不处理."""
        detail = {"problem_type": "GEN", "body": "https://files.example.com/a.txt"}

        result = await process_detail_assets(
            detail, "s", make_mirror(asset_sync_enabled=False)
        )

        assert result is None
        assert requested == []

    async def test_failed_url_with_mirrored_prefix_untouched(
        self, make_mirror, failing: set[str]
    ) -> None:
        """镜像失败的 URL 即使以已上传 URL 为前缀也保持原样."""
        uploaded = "https://cdn.example/a.png"
        failed = f"{uploaded}?v=2"
        failing.add(failed)
        detail = {"problem_type": "GEN", "notes": f"see {uploaded} and {failed}"}

        await process_detail_assets(detail, "s", make_mirror(remote=True))

        notes = detail["notes"]
        assert failed in notes
        assert notes.startswith(f"see {MIRROR_BASE}/")
        assert notes.count(MIRROR_BASE) == 1
        statuses = {f["sourceUrl"]: f["status"] for f in _files(detail)}
        assert statuses[uploaded] == AssetStatus.UPLOADED
        assert statuses[failed] == AssetStatus.FAILED
