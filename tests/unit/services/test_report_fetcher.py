"""Unit tests for ReportFetcher and object storage URL parsing.

Tests verify:
- The three object storage URL shapes
- Endpoint / addressing style selection for boto3
- HTTP fetch with timeout header, status and validation handling
- Object storage fetch through an injected client factory
"""

import io
import json
from unittest.mock import MagicMock

import httpx
import pytest
from botocore.exceptions import ClientError

from report_renderer.config import RendererConfig
from report_renderer.enums import AddressingStyle, LocationKind
from report_renderer.errors import FetchError, ValidationError
from report_renderer.services.report_fetcher import (
    ReportFetcher,
    parse_object_store_location,
    s3_client_settings,
)

REPORT = {"lighthouseVersion": "10.4.0", "categories": {"performance": {"score": 0.9}}}


class TestParseObjectStoreLocation:
    def test_virtual_hosted_style(self):
        loc = parse_object_store_location(
            "https://my-bucket.s3.us-west-2.amazonaws.com/reports/a%20b.json"
        )
        assert loc.kind == LocationKind.OBJECT_STORE
        assert loc.bucket == "my-bucket"
        assert loc.key == "reports/a b.json"
        assert loc.endpoint == "https://s3.us-west-2.amazonaws.com"

    def test_legacy_dash_region_virtual_hosted_style(self):
        loc = parse_object_store_location("https://bucket.s3-eu-west-1.amazonaws.com/r.json")
        assert loc.bucket == "bucket"
        assert loc.key == "r.json"
        assert loc.endpoint == "https://s3-eu-west-1.amazonaws.com"

    def test_path_style(self):
        loc = parse_object_store_location(
            "https://s3.eu-west-1.amazonaws.com/bucket/nested/path/report.json"
        )
        assert loc.bucket == "bucket"
        assert loc.key == "nested/path/report.json"
        assert loc.endpoint == "https://s3.eu-west-1.amazonaws.com"

    def test_s3_compatible_endpoint(self):
        loc = parse_object_store_location("http://minio.local:9000/reports/2024/r.json")
        assert loc.bucket == "reports"
        assert loc.key == "2024/r.json"
        assert loc.endpoint == "http://minio.local:9000"

    @pytest.mark.parametrize(
        "url",
        [
            "ftp://minio.local/bucket/key.json",
            "not a url",
            "https://minio.local/",
            "https://minio.local/bucket-only",
            "https://[broken/bucket/key.json",
        ],
    )
    def test_invalid_urls_raise_fetch_error(self, url):
        with pytest.raises(FetchError):
            parse_object_store_location(url)


class TestS3ClientSettings:
    def test_canonical_regional_endpoint_is_left_to_botocore(self):
        loc = parse_object_store_location("https://b.s3.us-east-1.amazonaws.com/k.json")
        endpoint_url, style = s3_client_settings(loc, "us-east-1")
        assert endpoint_url is None
        assert style == AddressingStyle.VIRTUAL

    def test_other_aws_region_keeps_endpoint(self):
        loc = parse_object_store_location("https://s3.eu-west-1.amazonaws.com/b/k.json")
        endpoint_url, style = s3_client_settings(loc, "us-east-1")
        assert endpoint_url == "https://s3.eu-west-1.amazonaws.com"
        assert style == AddressingStyle.VIRTUAL

    def test_custom_endpoint_uses_path_style(self):
        loc = parse_object_store_location("http://minio.local:9000/b/k.json")
        endpoint_url, style = s3_client_settings(loc, "us-east-1")
        assert endpoint_url == "http://minio.local:9000"
        assert style == AddressingStyle.PATH


def _http_fetcher(handler) -> ReportFetcher:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ReportFetcher(RendererConfig(fetch_timeout_seconds=5), http_client=client)


class TestHttpFetch:
    @pytest.mark.asyncio
    async def test_fetch_returns_document(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["user_agent"] = request.headers.get("user-agent")
            seen["url"] = str(request.url)
            return httpx.Response(200, json=REPORT)

        fetcher = _http_fetcher(handler)
        doc = await fetcher.fetch("https://example.com/report.json")

        assert doc.engine_version == "10.4.0"
        assert doc.payload == REPORT
        assert seen["user_agent"] == "Lighthouse-Report-Renderer/1.0"
        assert seen["url"] == "https://example.com/report.json"

    @pytest.mark.asyncio
    async def test_classify_is_http_when_object_storage_disabled(self):
        fetcher = ReportFetcher(RendererConfig())
        loc = fetcher.classify("https://bucket.s3.us-east-1.amazonaws.com/k.json")
        assert loc.kind == LocationKind.HTTP

    @pytest.mark.asyncio
    async def test_non_2xx_raises_fetch_error_with_status(self):
        fetcher = _http_fetcher(lambda request: httpx.Response(404))

        with pytest.raises(FetchError) as exc_info:
            await fetcher.fetch("https://example.com/missing.json")

        assert exc_info.value.status_code == 404
        assert "HTTP 404" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_transport_error_raises_fetch_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        fetcher = _http_fetcher(handler)
        with pytest.raises(FetchError) as exc_info:
            await fetcher.fetch("https://example.com/report.json")
        assert exc_info.value.status_code is None

    @pytest.mark.asyncio
    async def test_unparseable_url_raises_fetch_error(self):
        handler = MagicMock(return_value=httpx.Response(200, json=REPORT))
        fetcher = _http_fetcher(handler)

        with pytest.raises(FetchError):
            await fetcher.fetch("https://exa\x01mple.com/report.json")

        handler.assert_not_called()

    @pytest.mark.asyncio
    async def test_missing_version_field_raises_validation_error(self):
        fetcher = _http_fetcher(lambda request: httpx.Response(200, json={"audits": {}}))

        with pytest.raises(ValidationError):
            await fetcher.fetch("https://example.com/report.json")

    @pytest.mark.asyncio
    async def test_invalid_json_raises_validation_error(self):
        fetcher = _http_fetcher(lambda request: httpx.Response(200, content=b"<html>"))

        with pytest.raises(ValidationError):
            await fetcher.fetch("https://example.com/report.json")

    @pytest.mark.asyncio
    async def test_aclose_keeps_injected_client_open(self):
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
        fetcher = ReportFetcher(RendererConfig(), http_client=client)

        await fetcher.aclose()

        assert not client.is_closed
        await client.aclose()


def _s3_fetcher(client: MagicMock) -> tuple[ReportFetcher, MagicMock]:
    factory = MagicMock(return_value=client)
    fetcher = ReportFetcher(RendererConfig(s3_enabled=True), s3_client_factory=factory)
    return fetcher, factory


class TestObjectStoreFetch:
    @pytest.mark.asyncio
    async def test_fetch_reads_object_body(self):
        client = MagicMock()
        client.get_object.return_value = {"Body": io.BytesIO(json.dumps(REPORT).encode())}
        fetcher, factory = _s3_fetcher(client)

        doc = await fetcher.fetch("http://minio.local:9000/reports/2024/r.json")

        assert doc.engine_version == "10.4.0"
        client.get_object.assert_called_once_with(Bucket="reports", Key="2024/r.json")
        location = factory.call_args.args[0]
        assert location.endpoint == "http://minio.local:9000"

    @pytest.mark.asyncio
    async def test_client_error_raises_fetch_error(self):
        client = MagicMock()
        client.get_object.side_effect = ClientError(
            {
                "Error": {"Code": "NoSuchKey", "Message": "The key does not exist"},
                "ResponseMetadata": {"HTTPStatusCode": 404},
            },
            "GetObject",
        )
        fetcher, _ = _s3_fetcher(client)

        with pytest.raises(FetchError) as exc_info:
            await fetcher.fetch("https://bucket.s3.us-east-1.amazonaws.com/missing.json")

        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_object_without_version_raises_validation_error(self):
        client = MagicMock()
        client.get_object.return_value = {"Body": io.BytesIO(b'{"audits": {}}')}
        fetcher, _ = _s3_fetcher(client)

        with pytest.raises(ValidationError):
            await fetcher.fetch("http://minio.local:9000/reports/r.json")
