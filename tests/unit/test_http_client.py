"""Unit tests for HTTP client wrapper."""

import httpx
import pytest

from dctelemetry.fetcher.errors import InvalidResponseError
from dctelemetry.fetcher.http_client import AsyncHTTPClient, read_json


class TestAsyncHTTPClient:

    @pytest.mark.asyncio
    async def test_initialization_with_defaults(self):
        async with AsyncHTTPClient() as client:
            assert client.timeout == 10.0
            assert client.api_key is None

    @pytest.mark.asyncio
    async def test_context_manager_lifecycle(self):
        client = AsyncHTTPClient()

        async with client:
            assert client._client is not None

        # Client should be closed after context exit
        assert client._client is None

    @pytest.mark.asyncio
    async def test_request_outside_context_fails(self):
        with pytest.raises(RuntimeError, match="Client not initialized"):
            await AsyncHTTPClient().get("http://test.com/api")

    @pytest.mark.asyncio
    async def test_get_request_with_mock_transport(self):
        def handler(request):
            return httpx.Response(200, json={"status": "ok"})

        async with AsyncHTTPClient(transport=httpx.MockTransport(handler)) as client:
            response = await client.get("http://test.com/api")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    @pytest.mark.asyncio
    async def test_head_request(self):
        methods = []

        def handler(request):
            methods.append(request.method)
            return httpx.Response(204)

        async with AsyncHTTPClient(transport=httpx.MockTransport(handler)) as client:
            response = await client.head("http://test.com/api")

        assert response.status_code == 204
        assert methods == ["HEAD"]

    @pytest.mark.asyncio
    async def test_timeout_configuration_applied(self):
        async with AsyncHTTPClient(timeout=7.5) as client:
            timeout = client._client.timeout
            assert timeout.connect == 7.5
            assert timeout.read == 7.5

    @pytest.mark.asyncio
    async def test_per_request_timeout(self):
        seen = {}

        def handler(request):
            seen.update(request.extensions["timeout"])
            return httpx.Response(200)

        async with AsyncHTTPClient(timeout=10.0, transport=httpx.MockTransport(handler)) as client:
            await client.get("http://test.com/api", timeout=5.0)

        assert seen["read"] == 5.0


class TestBuildHeaders:

    def test_json_headers_with_request_id(self):
        headers = AsyncHTTPClient().build_headers("req_1_abcde")

        assert headers == {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "X-Request-ID": "req_1_abcde",
        }

    def test_bearer_token_when_api_key_set(self):
        headers = AsyncHTTPClient(api_key="secret").build_headers()

        assert headers["Authorization"] == "Bearer secret"

    def test_probe_headers_omit_content_type(self):
        headers = AsyncHTTPClient().build_headers(json_body=False)

        assert "Content-Type" not in headers

    def test_extra_headers_applied_last(self):
        headers = AsyncHTTPClient().build_headers(extra={"Accept": "application/xml", "X-Site": "BA"})

        assert headers["Accept"] == "application/xml"
        assert headers["X-Site"] == "BA"


class TestReadJson:

    def test_valid_json(self):
        assert read_json(httpx.Response(200, json=[1, 2])) == [1, 2]

    def test_invalid_json_is_a_structural_fault(self):
        with pytest.raises(InvalidResponseError, match="not valid JSON"):
            read_json(httpx.Response(200, content=b"not json"))
