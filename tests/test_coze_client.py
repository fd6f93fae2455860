"""Tests for the Coze workflow client: envelope parsing, error codes, downloads."""

import json

import httpx
import pytest

from restyle.services.exceptions import (
    APIError,
    ConfigurationError,
    ConnectivityError,
    ImageProcessingError,
    InvalidResponseError,
    InvalidURLError,
    NetworkError,
    NoDataReceivedError,
    RateLimitedError,
    RequestTimeoutError,
)
from restyle.services.generation.coze_client import CozeWorkflowClient, parse_workflow_response

WORKFLOW_URL = "https://api.coze.cn/v1/workflow/run"
OUTPUT_URL = "https://s.coze.cn/t/generated.jpg"


def envelope(code: int = 0, msg: str = "Success", inner: dict | None = None) -> bytes:
    inner = {"Output": OUTPUT_URL} if inner is None else inner
    return json.dumps({"code": code, "msg": msg, "data": json.dumps(inner)}).encode()


def make_client(handler, **overrides) -> CozeWorkflowClient:
    params = {
        "api_token": "pat_test",
        "workflow_id": "7380000000000000000",
        "http_client": httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    }
    params.update(overrides)
    return CozeWorkflowClient(**params)


class TestParseWorkflowResponse:
    def test_extracts_output(self):
        assert parse_workflow_response(envelope()) == OUTPUT_URL

    def test_rate_limit_code(self):
        with pytest.raises(RateLimitedError) as exc_info:
            parse_workflow_response(envelope(code=4024, msg="too many requests"))

        assert exc_info.value.retryable is True
        assert "too many requests" in str(exc_info.value)

    def test_other_code_is_api_error(self):
        with pytest.raises(APIError) as exc_info:
            parse_workflow_response(envelope(code=4100, msg="token expired"))

        assert exc_info.value.code == 4100
        assert str(exc_info.value) == "API Error 4100: token expired"

    def test_api_error_without_message(self):
        body = json.dumps({"code": 5000}).encode()

        with pytest.raises(APIError, match="Unknown error"):
            parse_workflow_response(body)

    @pytest.mark.parametrize(
        "body",
        [
            b"not json",
            b"[1, 2]",
            json.dumps({"code": 0, "msg": "ok"}).encode(),
            json.dumps({"code": 0, "data": "{broken"}).encode(),
            json.dumps({"code": 0, "data": '"just a string"'}).encode(),
            envelope(inner={"msg": "done"}),
            envelope(inner={"Output": ""}),
            json.dumps({"code": True, "data": json.dumps({"Output": OUTPUT_URL})}).encode(),
            json.dumps({"code": False, "data": json.dumps({"Output": OUTPUT_URL})}).encode(),
        ],
        ids=["outer-not-json", "outer-not-object", "no-data", "inner-not-json",
             "inner-not-object", "no-output", "empty-output", "code-true", "code-false"],
    )
    def test_malformed_envelopes(self, body):
        with pytest.raises(InvalidResponseError):
            parse_workflow_response(body)

    def test_tls_handshake_message_is_not_fatal(self):
        body = envelope(inner={"msg": "net/http: TLS handshake timeout", "Output": OUTPUT_URL})

        assert parse_workflow_response(body) == OUTPUT_URL

    def test_tls_handshake_without_output_is_invalid(self):
        body = envelope(inner={"msg": "net/http: TLS handshake timeout"})

        with pytest.raises(InvalidResponseError):
            parse_workflow_response(body)


class TestGenerate:
    @pytest.mark.asyncio
    async def test_runs_workflow_and_downloads_result(self, jpeg_bytes):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            if request.url == WORKFLOW_URL:
                return httpx.Response(200, content=envelope())
            return httpx.Response(200, content=jpeg_bytes)

        result = await make_client(handler).generate("https://cdn/room.jpg", "现代风格")

        assert result == jpeg_bytes
        workflow_request, download_request = requests
        assert workflow_request.method == "POST"
        assert workflow_request.headers["authorization"] == "Bearer pat_test"
        assert json.loads(workflow_request.content) == {
            "parameters": {"Image_Input": "https://cdn/room.jpg", "Prompt": "现代风格"},
            "workflow_id": "7380000000000000000",
        }
        assert download_request.method == "GET"
        assert str(download_request.url) == OUTPUT_URL

    @pytest.mark.asyncio
    async def test_missing_configuration(self):
        def handler(request):
            raise AssertionError("no request expected")

        with pytest.raises(ConfigurationError):
            await make_client(handler, workflow_id="").generate("https://cdn/room.jpg", "p")

    @pytest.mark.asyncio
    async def test_rate_limited(self):
        client = make_client(lambda request: httpx.Response(200, content=envelope(code=4024)))

        with pytest.raises(RateLimitedError):
            await client.generate("https://cdn/room.jpg", "p")

    @pytest.mark.asyncio
    async def test_empty_response(self):
        with pytest.raises(NoDataReceivedError):
            await make_client(lambda request: httpx.Response(200)).generate("https://cdn/r", "p")

    @pytest.mark.asyncio
    async def test_output_is_not_a_url(self):
        body = envelope(inner={"Output": "generated.jpg"})

        with pytest.raises(InvalidURLError):
            await make_client(lambda request: httpx.Response(200, content=body)).generate(
                "https://cdn/room.jpg", "p"
            )

    @pytest.mark.asyncio
    async def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(RequestTimeoutError):
            await make_client(handler).generate("https://cdn/room.jpg", "p")

    @pytest.mark.asyncio
    async def test_offline(self):
        def handler(request):
            raise httpx.ConnectError("Name or service not known", request=request)

        with pytest.raises(ConnectivityError):
            await make_client(handler).generate("https://cdn/room.jpg", "p")


class TestDownload:
    @pytest.mark.asyncio
    async def test_http_error_status(self):
        with pytest.raises(NetworkError, match="HTTP 404"):
            await make_client(lambda r: httpx.Response(404)).download_image(OUTPUT_URL)

    @pytest.mark.asyncio
    async def test_empty_body(self):
        with pytest.raises(NoDataReceivedError):
            await make_client(lambda r: httpx.Response(200)).download_image(OUTPUT_URL)

    @pytest.mark.asyncio
    async def test_undecodable_body(self):
        client = make_client(lambda r: httpx.Response(200, content=b"<html>expired</html>"))

        with pytest.raises(ImageProcessingError):
            await client.download_image(OUTPUT_URL)
