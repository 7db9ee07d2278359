"""Repository server REST client for promotion calls.

This module provides an async wrapper around the two endpoints the
promotion workflow needs:
- Executing a named user plugin (POST /api/plugins/execute/{name})
- Promoting a build (POST /api/build/promote/{name}/{number})

Responses are returned unread and streaming; the caller owns them and
releases them with scoped_response(). Each call is a single attempt:
there is no retry loop.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Dict, Mapping, Optional, Protocol
from urllib.parse import quote

import httpx

from artifact_promotion.models import PromotionRequest


logger = logging.getLogger(__name__)

PLUGIN_EXECUTE_PATH = "/api/plugins/execute/{name}"
BUILD_PROMOTE_PATH = "/api/build/promote/{build_name}/{build_number}"


class ArtifactoryAPIError(Exception):
    """Raised when a request cannot be issued to the repository server.

    Attributes:
        message: Human-readable error description.
        request_url: The URL that was requested, when known.
    """

    def __init__(self, message: str, request_url: Optional[str] = None):
        self.message = message
        self.request_url = request_url
        super().__init__(message)


class PromotionClient(Protocol):
    """Remote calls used by the promotion orchestrator."""

    async def execute_user_plugin(
        self,
        plugin_name: str,
        params: Mapping[str, str],
    ) -> httpx.Response:
        ...

    async def stage_build(
        self,
        build_name: str,
        build_number: str,
        request: PromotionRequest,
    ) -> httpx.Response:
        ...

    async def shutdown(self) -> None:
        ...


class ArtifactoryClient:
    """Async repository server client for plugin execution and promotion.

    Attributes:
        base_url: Base URL of the server (including the context path).
        username: User for basic authentication (optional).
        password: Password or API key for basic authentication.
        timeout: Request timeout in seconds.

    Example:
        >>> client = ArtifactoryClient("https://repo.example.com/artifactory")
        >>> async with scoped_response(client.stage_build("app", "7", req)) as r:
        ...     print(r.status_code)
        >>> await client.shutdown()
    """

    def __init__(
        self,
        base_url: str,
        username: str = "",
        password: str = "",
        timeout: float = 300.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the client.

        Args:
            base_url: Base URL of the repository server.
            username: User for basic authentication; blank disables auth.
            password: Password or API key for the user.
            timeout: Request timeout in seconds.
            transport: Optional httpx transport (used by tests).
        """
        self.base_url = base_url.rstrip("/")
        self.username = username
        self.password = password
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get the HTTP client, creating it if necessary."""
        if self._client is None or self._client.is_closed:
            auth = (self.username, self.password) if self.username else None
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=self._default_headers(),
                auth=auth,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def _default_headers(self) -> Dict[str, str]:
        return {
            "Accept": "application/json",
            "User-Agent": "artifact-promotion/1.0",
        }

    async def shutdown(self) -> None:
        """Close the HTTP client and release its connections."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> "ArtifactoryClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.shutdown()

    async def _send(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, str]] = None,
        json_data: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        """Send a single request and return the unread response."""
        request = self.client.build_request(
            method=method,
            url=path,
            params=params,
            json=json_data,
        )
        logger.debug(
            "Sending request to repository server",
            extra={"method": method, "url": str(request.url)},
        )
        return await self.client.send(request, stream=True)

    async def execute_user_plugin(
        self,
        plugin_name: str,
        params: Mapping[str, str],
    ) -> httpx.Response:
        """Execute a named user plugin on the server.

        Args:
            plugin_name: Execution name of the plugin.
            params: Plugin parameters; sent as ``params=k1=v1|k2=v2``.

        Returns:
            The unread streaming response.

        Raises:
            ArtifactoryAPIError: If the plugin name is blank.
            httpx.RequestError: On transport failures.
        """
        path = PLUGIN_EXECUTE_PATH.format(name=quote(plugin_name or "", safe=""))
        if not plugin_name or not plugin_name.strip():
            raise ArtifactoryAPIError(
                "Plugin name cannot be blank", request_url=self._url(path)
            )

        query = {"params": encode_plugin_params(params)} if params else None

        logger.info(
            "Executing user plugin",
            extra={"plugin": plugin_name, "param_count": len(params)},
        )
        return await self._send("POST", path, params=query)

    async def stage_build(
        self,
        build_name: str,
        build_number: str,
        request: PromotionRequest,
    ) -> httpx.Response:
        """Promote (or dry-run promote) a build.

        Args:
            build_name: Name of the build to promote.
            build_number: Number of the build to promote.
            request: Promotion request; ``dry_run`` selects validation only.

        Returns:
            The unread streaming response.

        Raises:
            ArtifactoryAPIError: If the build name or number is blank.
            httpx.RequestError: On transport failures.
        """
        path = BUILD_PROMOTE_PATH.format(
            build_name=quote(build_name or "", safe=""),
            build_number=quote(build_number or "", safe=""),
        )
        if not build_name or not build_name.strip():
            raise ArtifactoryAPIError(
                "Build name cannot be blank", request_url=self._url(path)
            )
        if not build_number or not build_number.strip():
            raise ArtifactoryAPIError(
                "Build number cannot be blank", request_url=self._url(path)
            )

        logger.info(
            "Staging build",
            extra={
                "build_name": build_name,
                "build_number": build_number,
                "dry_run": request.dry_run,
                "target_repo": request.target_repository,
            },
        )
        return await self._send("POST", path, json_data=request.to_payload())


def encode_plugin_params(params: Mapping[str, str]) -> str:
    """Encode plugin parameters in the server's ``k1=v1|k2=v2`` format.

    Separator characters inside keys and values are backslash-escaped.
    """
    return "|".join(
        f"{_escape_param(key)}={_escape_param(value)}"
        for key, value in params.items()
    )


def _escape_param(value: str) -> str:
    escaped = value.replace("\\", "\\\\")
    for char in ("|", "=", ","):
        escaped = escaped.replace(char, "\\" + char)
    return escaped


@asynccontextmanager
async def scoped_response(
    call: Awaitable[httpx.Response],
) -> AsyncIterator[httpx.Response]:
    """Await a client call and guarantee the response is released.

    The response is closed when the block exits, whether it completes or
    raises. A failure while closing is logged and does not replace the
    block's own outcome.
    """
    response = await call
    try:
        yield response
    finally:
        try:
            await response.aclose()
        except Exception:
            logger.warning(
                "Failed to release response",
                extra={"status_code": response.status_code},
                exc_info=True,
            )


async def read_text(response: httpx.Response) -> str:
    """Read the full response body as UTF-8 text."""
    content = await response.aread()
    return content.decode("utf-8", errors="replace")


def status_line(response: httpx.Response) -> str:
    """Format the status line of a response, e.g. 'HTTP/1.1 404 Not Found'."""
    return f"{response.http_version} {response.status_code} {response.reason_phrase}".strip()
