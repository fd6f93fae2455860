"""End-to-end tests through open_design_service with mocked HTTP endpoints."""

import asyncio
import json

import httpx
import pytest

from restyle.app import build_store, open_design_service
from restyle.core.config import FailurePolicy, Settings
from restyle.models.design import DesignRecord, DesignStatus
from restyle.services.design_store import INTERRUPTED_JOB
from restyle.workers.design_jobs import RATE_LIMIT_MESSAGE, JobFailure

UPLOADED_URL = "https://res.cloudinary.com/demo/image/upload/v1/room.jpg"
OUTPUT_URL = "https://s.coze.cn/t/generated.jpg"


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(  # type: ignore[call-arg]
        _env_file=None,
        APP_ENV="test",
        DATA_DIR=tmp_path / "data",
        COZE_API_TOKEN="pat_test",
        COZE_WORKFLOW_ID="738",
        CLOUDINARY_CLOUD_NAME="demo",
        CLOUDINARY_API_KEY="key",
        CLOUDINARY_API_SECRET="secret",
        FAILED_DESIGN_GRACE_SECONDS=0.01,
    )


def routing_client(generated: bytes, workflow_code: int = 0) -> httpx.AsyncClient:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "api.cloudinary.com":
            return httpx.Response(200, json={"secure_url": UPLOADED_URL})
        if request.url.host == "api.coze.cn":
            data = json.dumps({"Output": OUTPUT_URL})
            return httpx.Response(200, json={"code": workflow_code, "msg": "", "data": data})
        if str(request.url) == OUTPUT_URL:
            return httpx.Response(200, content=generated)
        return httpx.Response(404)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_generate_list_delete(settings, jpeg_bytes):
    async with open_design_service(settings, http_client=routing_client(jpeg_bytes)) as service:
        updates: list[list[DesignRecord]] = []
        subscription = service.subscribe(updates.append)

        design_id = service.submit_style(jpeg_bytes, "scandinavian")
        await service.wait_for_jobs()

        design = service.get(design_id)
        assert design.status == DesignStatus.COMPLETED
        assert design.generated_image == jpeg_bytes
        assert [d.id for d in service.list()] == [design_id]

        assert service.delete(design_id) is True
        await asyncio.sleep(0.05)
        subscription.close()

    statuses = [[d.status for d in snapshot] for snapshot in updates]
    assert statuses == [
        [],
        [DesignStatus.PROCESSING],
        [DesignStatus.COMPLETED],
        [],
    ]


@pytest.mark.asyncio
async def test_designs_persist_across_service_restarts(settings, jpeg_bytes):
    async with open_design_service(settings, http_client=routing_client(jpeg_bytes)) as service:
        design_id = service.submit(jpeg_bytes, "现代风格", "modern")
        await service.wait_for_jobs()

    async with open_design_service(settings, http_client=routing_client(jpeg_bytes)) as service:
        design = service.get(design_id)

    assert design.status == DesignStatus.COMPLETED
    assert design.original_image == jpeg_bytes


@pytest.mark.asyncio
async def test_rate_limited_job_reports_and_cleans_up(settings, jpeg_bytes):
    failures: list[JobFailure] = []
    client = routing_client(jpeg_bytes, workflow_code=4024)

    async with open_design_service(settings, on_failure=failures.append, http_client=client) as service:
        design_id = service.submit_style(jpeg_bytes, "modern")
        await service.wait_for_jobs()

        assert service.get(design_id) is None

    assert [f.error_message for f in failures] == [RATE_LIMIT_MESSAGE]


@pytest.mark.asyncio
async def test_retain_policy_from_settings(settings, jpeg_bytes):
    settings.failed_design_policy = FailurePolicy.RETAIN
    client = routing_client(jpeg_bytes, workflow_code=4024)

    async with open_design_service(settings, http_client=client) as service:
        design_id = service.submit_style(jpeg_bytes, "modern")
        await service.wait_for_jobs()

        assert service.get(design_id).status == DesignStatus.FAILED


@pytest.mark.asyncio
async def test_startup_fails_designs_left_processing(settings, jpeg_bytes):
    orphan = DesignRecord(original_image=jpeg_bytes, style_name="现代风格", prompt="modern")
    build_store(settings).create_processing(orphan)

    async with open_design_service(settings, http_client=routing_client(jpeg_bytes)) as service:
        design = service.get(orphan.id)

    assert design.status == DesignStatus.FAILED
    assert design.error_message == INTERRUPTED_JOB
