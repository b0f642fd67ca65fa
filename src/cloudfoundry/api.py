"""
Cloud Controller Client - Implements BuildpackClient over the v2 REST API.

Authenticates either with a pre-issued bearer token or with a UAA password
grant, and maps HTTP failures onto NotFoundError / TransportError.
"""

import asyncio
import json
import logging
from typing import Any, BinaryIO, Dict, List, Optional, Tuple

import aiohttp

from cloudfoundry import packaging
from cloudfoundry.client import BuildpackClient
from cloudfoundry.errors import NotFoundError, TransportError
from cloudfoundry.models import Buildpack
from config import CloudFoundryConfig

logger = logging.getLogger(__name__)

BUILDPACKS_PATH = "/v2/buildpacks"
RESULTS_PER_PAGE = 100

# The cf CLI's public OAuth client.
UAA_CLIENT_ID = "cf"


class CloudFoundryClient(BuildpackClient):
    """
    Buildpack client for the Cloud Controller v2 API.

    Every request opens its own aiohttp session; the client holds no
    connection state besides the bearer token.
    """

    def __init__(self, config: CloudFoundryConfig):
        self.api_endpoint = config.api_endpoint.rstrip("/")
        self.username = config.username
        self.password = config.password
        self.skip_ssl_validation = config.skip_ssl_validation
        self.timeout = aiohttp.ClientTimeout(total=config.request_timeout)
        self._access_token: Optional[str] = config.access_token or None

    @property
    def identity(self) -> str:
        return f"{self.api_endpoint}|{self.username or 'token'}"

    # Buildpack operations

    async def list(self) -> List[Buildpack]:
        """Fetch every buildpack, following next_url pagination."""
        buildpacks: List[Buildpack] = []
        next_url: Optional[str] = BUILDPACKS_PATH
        params: Optional[Dict[str, Any]] = {"results-per-page": RESULTS_PER_PAGE}

        while next_url:
            page = await self._request("GET", next_url, params=params)
            buildpacks.extend(
                Buildpack.from_api(resource) for resource in page.get("resources", [])
            )
            next_url = page.get("next_url")
            # next_url already carries the query string
            params = None

        logger.debug(f"Listed {len(buildpacks)} buildpacks from {self.api_endpoint}")
        return buildpacks

    async def find_by_name(self, name: str) -> Buildpack:
        page = await self._request(
            "GET", BUILDPACKS_PATH, params={"q": f"name:{name}"}
        )
        resources = page.get("resources", [])
        if not resources:
            raise NotFoundError(f"Buildpack {name} not found")
        return Buildpack.from_api(resources[0])

    async def create(
        self, name: str, position: int, enabled: bool, locked: bool
    ) -> Buildpack:
        body = Buildpack(
            name=name, position=position, enabled=enabled, locked=locked
        ).to_request()
        resource = await self._request("POST", BUILDPACKS_PATH, json=body)
        buildpack = Buildpack.from_api(resource)
        logger.info(f"Created buildpack {buildpack.name} ({buildpack.guid})")
        return buildpack

    async def update(self, buildpack: Buildpack) -> Buildpack:
        resource = await self._request(
            "PUT", f"{BUILDPACKS_PATH}/{buildpack.guid}", json=buildpack.to_request()
        )
        logger.info(f"Updated buildpack {buildpack.name} ({buildpack.guid})")
        return Buildpack.from_api(resource)

    async def delete(self, guid: str) -> None:
        await self._request(
            "DELETE", f"{BUILDPACKS_PATH}/{guid}", params={"async": "false"}
        )
        logger.info(f"Deleted buildpack {guid}")

    async def package_artifact(self, path: str) -> Tuple[BinaryIO, int]:
        return await packaging.package(path, self.timeout)

    async def upload(
        self, buildpack: Buildpack, artifact: BinaryIO, filename: str
    ) -> None:
        form = aiohttp.FormData()
        form.add_field(
            "buildpack",
            artifact,
            filename=filename,
            content_type="application/zip",
        )
        await self._request(
            "PUT", f"{BUILDPACKS_PATH}/{buildpack.guid}/bits", data=form
        )
        logger.info(f"Uploaded {filename} to buildpack {buildpack.name}")

    # Private helper methods

    async def _get_headers(self) -> Dict[str, str]:
        """Get HTTP headers for Cloud Controller requests."""
        if not self._access_token:
            self._access_token = await self._fetch_token()
        return {
            "Accept": "application/json",
            "Authorization": f"Bearer {self._access_token}",
        }

    async def _fetch_token(self) -> str:
        """Obtain an access token from UAA with the password grant."""
        if not self.username:
            raise TransportError(
                "No credentials configured. Set CF_ACCESS_TOKEN or "
                "CF_USERNAME/CF_PASSWORD."
            )

        info = await self._send("GET", f"{self.api_endpoint}/v2/info")
        token_endpoint = (
            info.get("token_endpoint") or info.get("authorization_endpoint") or ""
        ).rstrip("/")
        if not token_endpoint:
            raise TransportError("Cloud Controller did not advertise a token endpoint")

        token = await self._send(
            "POST",
            f"{token_endpoint}/oauth/token",
            data={
                "grant_type": "password",
                "username": self.username,
                "password": self.password,
            },
            auth=aiohttp.BasicAuth(UAA_CLIENT_ID, ""),
            headers={"Accept": "application/json"},
        )
        access_token = token.get("access_token")
        if not access_token:
            raise TransportError("UAA response did not contain an access token")

        logger.debug(f"Obtained access token for {self.username}")
        return access_token

    async def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        """Send an authenticated request to a Cloud Controller path."""
        url = path if path.startswith("http") else f"{self.api_endpoint}{path}"
        headers = await self._get_headers()
        return await self._send(method, url, headers=headers, **kwargs)

    async def _send(self, method: str, url: str, **kwargs) -> Dict[str, Any]:
        """
        Send a request and decode the JSON response.

        Raises:
            NotFoundError: On HTTP 404.
            TransportError: On any other failure.
        """
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.request(
                    method, url, ssl=not self.skip_ssl_validation, **kwargs
                ) as response:
                    status = response.status
                    # Error pages are not always UTF-8.
                    text = (await response.read()).decode("utf-8", errors="replace")
        except aiohttp.ClientError as e:
            raise TransportError(f"{method} {url} failed: {e}") from e
        except asyncio.TimeoutError as e:
            raise TransportError(f"{method} {url} timed out") from e

        body = _decode_body(text)

        if status == 404:
            raise NotFoundError(body.get("description") or f"{url} not found")
        if status >= 400:
            description = body.get("description") or body.get("error_description")
            raise TransportError(
                f"{method} {url} failed with {status}: {description or text}",
                status=status,
                error_code=body.get("error_code"),
            )
        return body


def _decode_body(text: str) -> Dict[str, Any]:
    """Decode a JSON object body; empty or non-JSON bodies yield {}."""
    if not text:
        return {}
    try:
        body = json.loads(text)
    except json.JSONDecodeError:
        return {}
    return body if isinstance(body, dict) else {}
