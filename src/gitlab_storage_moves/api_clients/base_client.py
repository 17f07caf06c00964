"""Base GitLab REST API Client.

Provides request construction, execution, status checking and JSON decoding
shared by every GitLab API service in this package.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Optional, Protocol, Tuple
from urllib.parse import urljoin

import httpx
from pydantic import BaseModel, TypeAdapter, ValidationError

from .. import __version__

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://gitlab.com/"
API_VERSION_PATH = "api/v4/"
USER_AGENT = f"gitlab-storage-moves/{__version__}"

RequestOption = Callable[[httpx.Request], None]


class APIClientError(Exception):
    """Base exception for API client errors."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RequestConstructionError(APIClientError):
    """Exception raised when a request cannot be built before sending it."""

    pass


class GitLabResponseError(APIClientError):
    """Exception raised when GitLab answers with a non-2xx status."""

    def __init__(self, message: str, response: "Response"):
        super().__init__(message, status_code=response.status_code)
        self.response = response


class ResponseDecodeError(APIClientError):
    """Exception raised when a response body cannot be decoded."""

    def __init__(self, message: str, response: "Response"):
        super().__init__(message, status_code=response.status_code)
        self.response = response


def _header_int(headers: httpx.Headers, name: str) -> int:
    value = headers.get(name, "")
    try:
        return int(value)
    except ValueError:
        return 0


@dataclass
class Response:
    """GitLab API response with pagination metadata.

    Offset pagination values come from the ``X-*`` headers, keyset
    pagination links from the ``Link`` header. Missing values are 0 or "".
    """

    http_response: httpx.Response
    total_items: int = 0
    total_pages: int = 0
    items_per_page: int = 0
    current_page: int = 0
    next_page: int = 0
    previous_page: int = 0
    next_link: str = ""
    first_link: str = ""
    last_link: str = ""

    @classmethod
    def from_httpx(cls, http_response: httpx.Response) -> "Response":
        headers = http_response.headers
        links = http_response.links
        return cls(
            http_response=http_response,
            total_items=_header_int(headers, "X-Total"),
            total_pages=_header_int(headers, "X-Total-Pages"),
            items_per_page=_header_int(headers, "X-Per-Page"),
            current_page=_header_int(headers, "X-Page"),
            next_page=_header_int(headers, "X-Next-Page"),
            previous_page=_header_int(headers, "X-Prev-Page"),
            next_link=links.get("next", {}).get("url", ""),
            first_link=links.get("first", {}).get("url", ""),
            last_link=links.get("last", {}).get("url", ""),
        )

    @property
    def status_code(self) -> int:
        return self.http_response.status_code

    @property
    def headers(self) -> httpx.Headers:
        return self.http_response.headers


class RequestExecutor(Protocol):
    """Capability every API service depends on: build a request, then run it."""

    def new_request(
        self,
        method: str,
        path: str,
        opt: Optional[BaseModel] = None,
        options: Iterable[RequestOption] = (),
    ) -> httpx.Request:
        """Build a request for ``path`` relative to the API base URL.

        Raises:
            RequestConstructionError: If the request cannot be built
        """
        ...

    async def do(
        self, request: httpx.Request, result_type: Optional[Any] = None
    ) -> Tuple[Any, Response]:
        """Send ``request`` and decode the body into ``result_type``.

        Raises:
            httpx.HTTPError: If the transport fails
            GitLabResponseError: If the status is not 2xx
            ResponseDecodeError: If the body does not decode
        """
        ...


def with_header(name: str, value: str) -> RequestOption:
    """Request option setting a single header."""

    def _apply(request: httpx.Request) -> None:
        request.headers[name] = value

    return _apply


def with_headers(headers: Dict[str, str]) -> RequestOption:
    """Request option setting several headers at once."""

    def _apply(request: httpx.Request) -> None:
        request.headers.update(headers)

    return _apply


def with_sudo(uid: Any) -> RequestOption:
    """Request option performing the call as another user (admin only).

    Accepts a numeric user ID or a username.
    """
    if isinstance(uid, bool) or not isinstance(uid, (int, str)):
        raise RequestConstructionError(
            f"Sudo value must be a user ID or username, got {type(uid).__name__}"
        )
    return with_header("Sudo", str(uid))


def with_token(auth_type: str, token: str) -> RequestOption:
    """Request option overriding the client token for a single call.

    ``auth_type`` is one of ``private``, ``oauth`` or ``job``.
    """

    def _apply(request: httpx.Request) -> None:
        for header in ("PRIVATE-TOKEN", "JOB-TOKEN", "Authorization"):
            request.headers.pop(header, None)
        if auth_type == "private":
            request.headers["PRIVATE-TOKEN"] = token
        elif auth_type == "oauth":
            request.headers["Authorization"] = f"Bearer {token}"
        elif auth_type == "job":
            request.headers["JOB-TOKEN"] = token
        else:
            raise ValueError(f"Unknown token type: {auth_type}")

    return _apply


def serialize_options(opt: Optional[BaseModel]) -> Dict[str, Any]:
    """Dump an options model, omitting unset and empty values."""
    if opt is None:
        return {}
    data = opt.model_dump(mode="json", exclude_none=True)
    return {key: value for key, value in data.items() if value != ""}


def _parse_error_message(value: Any) -> str:
    """Flatten GitLab's ``message`` payload (string, list or mapping)."""
    if isinstance(value, dict):
        parts = []
        for key in sorted(value):
            parts.append(f"{{{key}: {_parse_error_message(value[key])}}}")
        return ", ".join(parts)
    if isinstance(value, list):
        return "[" + ", ".join(_parse_error_message(item) for item in value) + "]"
    return str(value)


class GitLabAPIClient:
    """Base API client holding the HTTP session and GitLab conventions."""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        token: Optional[str] = None,
        timeout: float = 30.0,
        verify_ssl: bool = True,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize base API client.

        Args:
            base_url: GitLab instance URL, with or without the ``api/v4`` suffix
            token: Personal access token sent as ``PRIVATE-TOKEN``
            timeout: Read timeout in seconds
            verify_ssl: Whether to verify TLS certificates
            transport: Optional httpx transport (used by tests)
        """
        self.base_url = self._normalize_base_url(base_url)
        self.token = token
        self.timeout = timeout
        self.verify_ssl = verify_ssl
        self._transport = transport
        self._session: Optional[httpx.AsyncClient] = None

        # Imported here to avoid a circular import with the service modules
        from .snippet_repository_storage_moves import (
            SnippetRepositoryStorageMoveService,
        )

        self.snippet_repository_storage_moves = SnippetRepositoryStorageMoveService(
            self
        )

    @staticmethod
    def _normalize_base_url(base_url: str) -> str:
        if not base_url.endswith("/"):
            base_url += "/"
        if not base_url.endswith(API_VERSION_PATH):
            base_url += API_VERSION_PATH
        return base_url

    @property
    def session(self) -> httpx.AsyncClient:
        """Get or create HTTP session."""
        if self._session is None or self._session.is_closed:
            timeouts = httpx.Timeout(
                connect=10.0,
                read=self.timeout,
                write=10.0,
                pool=5.0,
            )

            limits = httpx.Limits(
                max_connections=10,
                max_keepalive_connections=5,
                keepalive_expiry=30.0,
            )

            self._session = httpx.AsyncClient(
                timeout=timeouts,
                limits=limits,
                follow_redirects=True,
                verify=self.verify_ssl,
                transport=self._transport,
            )
        return self._session

    def new_request(
        self,
        method: str,
        path: str,
        opt: Optional[BaseModel] = None,
        options: Iterable[RequestOption] = (),
    ) -> httpx.Request:
        """Build an API request.

        GET and HEAD requests carry ``opt`` as query parameters, all other
        methods as a JSON body.

        Args:
            method: HTTP method (GET, POST, etc.)
            path: API path relative to the base URL
            opt: Optional options model to serialize
            options: Request options applied to the built request

        Returns:
            Unsent httpx request

        Raises:
            RequestConstructionError: If the request cannot be built
        """
        method = method.upper()
        url = urljoin(self.base_url, path)

        headers = {"Accept": "application/json", "User-Agent": USER_AGENT}
        if self.token:
            headers["PRIVATE-TOKEN"] = self.token

        params = None
        content = None
        try:
            data = serialize_options(opt)
            if method in ("GET", "HEAD"):
                params = data or None
            elif opt is not None:
                content = json.dumps(data).encode("utf-8")
                headers["Content-Type"] = "application/json"

            request = self.session.build_request(
                method, url, params=params, content=content, headers=headers
            )
            for option in options:
                option(request)
        except Exception as e:
            if isinstance(e, RequestConstructionError):
                raise
            raise RequestConstructionError(f"Failed to build {method} {path}: {e}")

        logger.debug(f"Built request {method} {request.url}")
        return request

    async def do(
        self, request: httpx.Request, result_type: Optional[Any] = None
    ) -> Tuple[Any, Response]:
        """Send a request and decode the JSON body.

        Args:
            request: Request built by ``new_request``
            result_type: Type to decode the body into; ``None`` skips decoding

        Returns:
            Tuple of the decoded value (``None`` when not decoded) and the Response

        Raises:
            httpx.HTTPError: If the transport fails (propagated unchanged)
            GitLabResponseError: If the status is not 2xx
            ResponseDecodeError: If the body does not decode into result_type
        """
        http_response = await self.session.send(request)
        response = Response.from_httpx(http_response)
        logger.debug(
            f"{request.method} {request.url} -> HTTP {http_response.status_code}"
        )

        self._check_response(response)

        # An empty body and a JSON null both leave the result unset
        if result_type is None or http_response.content.strip() in (b"", b"null"):
            return None, response

        try:
            result = TypeAdapter(result_type).validate_json(http_response.content)
        except ValidationError as e:
            raise ResponseDecodeError(
                f"Failed to decode response from {request.method} {request.url}: {e}",
                response,
            )
        return result, response

    def _check_response(self, response: Response) -> None:
        """Raise GitLabResponseError unless the status is 2xx."""
        status_code = response.status_code
        if 200 <= status_code <= 299:
            return

        request = response.http_response.request
        message = f"{request.method} {request.url}: {status_code}"
        try:
            error_data = response.http_response.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            error_data = None

        if isinstance(error_data, dict):
            if "message" in error_data:
                message += f" {_parse_error_message(error_data['message'])}"
            elif "error" in error_data:
                message += f" {_parse_error_message(error_data['error'])}"
        elif response.http_response.text:
            message += f" {response.http_response.text}"

        logger.debug(f"GitLab API error: {message}")
        raise GitLabResponseError(message, response)

    async def close(self) -> None:
        """Close HTTP session."""
        if self._session and not self._session.is_closed:
            await self._session.aclose()

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()
