"""
Unit tests for the gateway client
"""

import json

import httpx
import pytest
from core.exceptions import SchemaDiscoveryError
from ingestion.fetcher import RetryingFetcher
from ingestion.gateway import SECRET_HEADER, GatewayClient
from schemas.catalog import EndpointOp


async def no_sleep(delay):
    return None


def gateway_with(handler, **kwargs):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    fetcher = RetryingFetcher(client, max_retries=1, sleep=no_sleep)
    return GatewayClient(base_url="http://gateway.test/", secret="s3cret", fetcher=fetcher, **kwargs)


class TestGatewayCall:
    """Test the forwarded call envelope"""

    @pytest.mark.asyncio
    async def test_call_envelope(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=[{"id": "item_001"}])

        gateway = gateway_with(handler)

        result = await gateway.call(
            "/api/items/list",
            query={"skip": 0, "take": 500},
            body={"DateFrom": "1900-01-01T00:00:00+00:00"}
        )

        assert result == [{"id": "item_001"}]
        request = seen[0]
        assert request.method == "POST"
        assert str(request.url) == "http://gateway.test/call"
        assert request.headers[SECRET_HEADER] == "s3cret"

        payload = json.loads(request.content)
        assert payload["path"] == "/api/items/list"
        assert payload["method"] == "POST"
        assert payload["query"] == {"skip": "0", "take": "500"}
        assert payload["body"] == {"DateFrom": "1900-01-01T00:00:00+00:00"}
        assert "secret" not in payload
        assert "autoPage" not in payload

    @pytest.mark.asyncio
    async def test_secret_in_body_fallback(self):
        seen = []

        def handler(request):
            seen.append(json.loads(request.content))
            return httpx.Response(200, json=[])

        gateway = gateway_with(handler, send_secret_in_body=True)

        await gateway.call("/api/jobs/list", method="GET")

        assert seen[0]["secret"] == "s3cret"
        assert "body" not in seen[0]

    @pytest.mark.asyncio
    async def test_injected_client_not_closed(self):
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(200)))
        fetcher = RetryingFetcher(client, max_retries=1, sleep=no_sleep)

        async with GatewayClient(base_url="http://gateway.test", secret="x", fetcher=fetcher):
            pass

        assert not client.is_closed
        await client.aclose()


class TestGatewaySchema:
    """Test catalog loading"""

    @pytest.mark.asyncio
    async def test_schema_parsed(self, mock_catalog):
        def handler(request):
            assert request.method == "GET"
            assert str(request.url) == "http://gateway.test/schema"
            return httpx.Response(200, json=mock_catalog)

        catalog = await gateway_with(handler).schema()

        assert catalog.version == "1.0"
        assert len(catalog.resources) == 6
        op = catalog.resources[0].op
        assert op.path == "/api/customers/list"
        assert op.is_list
        assert op.accepts_body
        assert catalog.operations[4].placeholder == "jobId"

    @pytest.mark.asyncio
    async def test_malformed_schema(self):
        def handler(request):
            return httpx.Response(200, json={"resources": [{"resource": "items"}]})

        with pytest.raises(SchemaDiscoveryError):
            await gateway_with(handler).schema()

    def test_list_segment_marks_operation_paginated(self):
        assert EndpointOp(path="/api/items/list/v2").is_paginated
        assert EndpointOp(path="/api/items/LIST").is_paginated
        assert EndpointOp(path="/api/jobs/{jobId}", isList=True).is_paginated
        assert not EndpointOp(path="/api/items/{itemId}/routing").is_paginated
        assert not EndpointOp(path="/api/items/listing").is_paginated
