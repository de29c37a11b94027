"""Remote report retrieval.

Reports live either behind plain HTTP(S) or in S3-compatible object storage
(AWS S3, MinIO, ...). When object storage is enabled every decrypted URL is
interpreted as an object location; otherwise it is fetched with a GET.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from typing import Any
from urllib.parse import unquote, urlsplit

import boto3
import httpx
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from report_renderer.config import RendererConfig
from report_renderer.enums import AddressingStyle, LocationKind
from report_renderer.errors import FetchError, ValidationError
from report_renderer.models.domain import RemoteLocation, ReportDocument

logger = logging.getLogger(__name__)

S3ClientFactory = Callable[[RemoteLocation], Any]


def parse_object_store_location(url: str) -> RemoteLocation:
    """Split an object storage URL into bucket, key and endpoint.

    Recognized shapes:
        https://bucket.s3.region.amazonaws.com/path/file.json  (virtual-hosted)
        https://s3.region.amazonaws.com/bucket/path/file.json  (path-style)
        https://minio.example.com/bucket/path/file.json        (S3-compatible)

    Raises:
        FetchError: If the URL is not http(s) or lacks a bucket or key.
    """
    try:
        parts = urlsplit(url)
        host = parts.hostname or ""
    except ValueError as e:
        raise FetchError(f"Invalid S3 URL format: {url!r}") from e
    if parts.scheme not in ("http", "https") or not host:
        raise FetchError(f"Invalid S3 URL format: {url}")

    origin = f"{parts.scheme}://{parts.netloc}"
    path = parts.path.lstrip("/")

    if ".s3." in host or ".s3-" in host:
        bucket = host.split(".")[0]
        key = path
        endpoint = origin.replace(f"{bucket}.", "", 1)
    else:
        # Path-style AWS and custom endpoints share the /bucket/key layout.
        bucket, _, key = path.partition("/")
        endpoint = origin

    if not bucket or not key:
        raise FetchError(f"Invalid S3 URL format: {url}")

    return RemoteLocation(
        kind=LocationKind.OBJECT_STORE,
        url=url,
        bucket=bucket,
        key=unquote(key),
        endpoint=endpoint,
    )


def s3_client_settings(
    location: RemoteLocation, region: str
) -> tuple[str | None, AddressingStyle]:
    """Return ``(endpoint_url, addressing_style)`` for an object location.

    The canonical regional AWS endpoint is left to botocore; AWS domains use
    virtual-hosted addressing, everything else path-style.
    """
    endpoint = location.endpoint or ""
    canonical = f"https://s3.{region}.amazonaws.com"
    endpoint_url = None if endpoint == canonical else endpoint
    style = AddressingStyle.VIRTUAL if "amazonaws.com" in endpoint else AddressingStyle.PATH
    return endpoint_url, style


class ReportFetcher:
    """Fetches and validates report documents from remote locations.

    Caching is the caller's responsibility; every ``fetch`` hits the network.
    """

    def __init__(
        self,
        config: RendererConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
        s3_client_factory: S3ClientFactory | None = None,
    ) -> None:
        self._config = config
        self._http_client = http_client
        self._owns_http_client = http_client is None
        self._s3_client_factory = s3_client_factory or self._create_s3_client

    def classify(self, url: str) -> RemoteLocation:
        if self._config.s3_enabled:
            return parse_object_store_location(url)
        return RemoteLocation(kind=LocationKind.HTTP, url=url)

    async def fetch(self, url: str) -> ReportDocument:
        """Retrieve and validate the report at ``url``.

        Raises:
            FetchError: Transport or storage failure, or non-2xx status.
            ValidationError: Body is not JSON or lacks the engine version.
        """
        location = self.classify(url)
        if location.kind == LocationKind.OBJECT_STORE:
            logger.info(
                "Fetching from S3 - Bucket: %s, Key: %s, Endpoint: %s",
                location.bucket,
                location.key,
                location.endpoint,
            )
            body = await self._fetch_from_object_store(location)
        else:
            logger.info("Fetching report from: %s", url)
            body = await self._fetch_from_http(url)

        return self._parse(body)

    async def aclose(self) -> None:
        if self._http_client is not None and self._owns_http_client:
            await self._http_client.aclose()
            self._http_client = None

    def _create_s3_client(self, location: RemoteLocation) -> Any:
        endpoint_url, style = s3_client_settings(location, self._config.s3_region)
        return boto3.client(
            "s3",
            region_name=self._config.s3_region,
            endpoint_url=endpoint_url,
            aws_access_key_id=self._config.s3_access_key,
            aws_secret_access_key=self._config.s3_secret_key,
            config=BotoConfig(s3={"addressing_style": style.value}),
        )

    def _get_object_body(self, location: RemoteLocation) -> bytes:
        client = self._s3_client_factory(location)
        response = client.get_object(Bucket=location.bucket, Key=location.key)
        return response["Body"].read()

    async def _fetch_from_object_store(self, location: RemoteLocation) -> bytes:
        try:
            return await asyncio.to_thread(self._get_object_body, location)
        except ClientError as e:
            status = e.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
            raise FetchError(f"Failed to fetch report: {e}", status_code=status) from e
        except BotoCoreError as e:
            raise FetchError(f"Failed to fetch report: {e}") from e

    def _get_http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(follow_redirects=True)
        return self._http_client

    async def _fetch_from_http(self, url: str) -> bytes:
        client = self._get_http_client()
        try:
            response = await client.get(
                url,
                headers={"User-Agent": self._config.user_agent},
                timeout=self._config.fetch_timeout_seconds,
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            # InvalidURL is not an HTTPError; a token decrypted with the
            # wrong secret usually lands here.
            raise FetchError(f"Failed to fetch report: {e}") from e

        if not response.is_success:
            raise FetchError(
                f"Failed to fetch report: HTTP {response.status_code}: {response.reason_phrase}",
                status_code=response.status_code,
            )
        return response.content

    def _parse(self, body: bytes) -> ReportDocument:
        try:
            payload = json.loads(body)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ValidationError(f"Invalid report: body is not JSON ({e})") from e
        return ReportDocument.from_payload(payload)
