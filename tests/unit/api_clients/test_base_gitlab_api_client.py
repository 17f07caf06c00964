"""Unit tests for GitLabAPIClient request construction and response handling."""

import json
from typing import Optional

import httpx
import pytest
from pydantic import BaseModel

from gitlab_storage_moves.api_clients.base_client import (
    GitLabAPIClient,
    GitLabResponseError,
    RequestConstructionError,
    Response,
    serialize_options,
    with_header,
    with_headers,
    with_sudo,
    with_token,
)
from gitlab_storage_moves.api_clients.models import ListOptions


class _BodyOptions(BaseModel):
    name: Optional[str] = None
    count: Optional[int] = None


class TestBaseURL:
    """Tests for base URL normalization."""

    @pytest.mark.parametrize(
        "base_url",
        [
            "https://gitlab.example.com",
            "https://gitlab.example.com/",
            "https://gitlab.example.com/api/v4",
            "https://gitlab.example.com/api/v4/",
        ],
    )
    def test_api_suffix_is_added_once(self, base_url):
        client = GitLabAPIClient(base_url=base_url)
        assert client.base_url == "https://gitlab.example.com/api/v4/"

    def test_default_base_url_is_gitlab_com(self):
        assert GitLabAPIClient().base_url == "https://gitlab.com/api/v4/"

    def test_client_exposes_storage_move_service(self):
        client = GitLabAPIClient()
        assert client.snippet_repository_storage_moves.client is client


class TestNewRequest:
    """Tests for request construction."""

    def test_get_encodes_options_as_query(self):
        client = GitLabAPIClient(base_url="https://gitlab.example.com", token="t0k")
        request = client.new_request(
            "GET", "snippet_repository_storage_moves", ListOptions(page=3)
        )

        assert str(request.url) == (
            "https://gitlab.example.com/api/v4/snippet_repository_storage_moves?page=3"
        )
        assert request.headers["PRIVATE-TOKEN"] == "t0k"
        assert request.headers["Accept"] == "application/json"
        assert request.headers["User-Agent"].startswith("gitlab-storage-moves/")
        assert request.content == b""

    def test_post_encodes_options_as_json_body(self):
        client = GitLabAPIClient()
        request = client.new_request("post", "things", _BodyOptions(name="x", count=0))

        assert request.method == "POST"
        assert request.headers["Content-Type"] == "application/json"
        assert json.loads(request.content) == {"name": "x", "count": 0}

    def test_post_without_options_has_no_body(self):
        client = GitLabAPIClient()
        request = client.new_request("POST", "things")

        assert request.content == b""
        assert "Content-Type" not in request.headers

    def test_no_token_means_no_auth_header(self):
        request = GitLabAPIClient().new_request("GET", "things")
        assert "PRIVATE-TOKEN" not in request.headers

    def test_failing_option_raises_construction_error(self):
        client = GitLabAPIClient()

        def broken_option(request):
            raise RuntimeError("option exploded")

        with pytest.raises(RequestConstructionError) as exc_info:
            client.new_request("GET", "things", None, [broken_option])

        assert "option exploded" in str(exc_info.value)

    def test_unknown_token_type_raises_construction_error(self):
        client = GitLabAPIClient()
        with pytest.raises(RequestConstructionError):
            client.new_request("GET", "things", None, [with_token("magic", "abc")])


class TestRequestOptions:
    """Tests for per-request options."""

    def _build(self, *options):
        client = GitLabAPIClient(token="client-token")
        return client.new_request("GET", "things", None, options)

    def test_with_header_and_headers(self):
        request = self._build(
            with_header("X-Trace", "1"), with_headers({"X-A": "a", "X-B": "b"})
        )
        assert request.headers["X-Trace"] == "1"
        assert request.headers["X-A"] == "a"
        assert request.headers["X-B"] == "b"

    def test_with_sudo_accepts_id_or_username(self):
        assert self._build(with_sudo(12)).headers["Sudo"] == "12"
        assert self._build(with_sudo("root")).headers["Sudo"] == "root"

    def test_with_sudo_rejects_other_types(self):
        with pytest.raises(RequestConstructionError):
            with_sudo(1.5)

    def test_with_token_replaces_client_token(self):
        request = self._build(with_token("oauth", "oauth-token"))
        assert "PRIVATE-TOKEN" not in request.headers
        assert request.headers["Authorization"] == "Bearer oauth-token"

        request = self._build(with_token("job", "job-token"))
        assert request.headers["JOB-TOKEN"] == "job-token"


class TestSerializeOptions:
    """Tests for omit-empty serialization."""

    def test_none_and_empty_strings_are_omitted(self):
        assert serialize_options(_BodyOptions(name="", count=None)) == {}

    def test_zero_is_kept(self):
        assert serialize_options(_BodyOptions(count=0)) == {"count": 0}

    def test_missing_options(self):
        assert serialize_options(None) == {}


class TestDo:
    """Tests for request execution."""

    @pytest.mark.asyncio
    async def test_pagination_headers_are_parsed(self, make_client):
        headers = {
            "X-Total": "57",
            "X-Total-Pages": "3",
            "X-Per-Page": "20",
            "X-Page": "2",
            "X-Next-Page": "3",
            "X-Prev-Page": "1",
            "Link": (
                '<https://gitlab.example.com/api/v4/things?page=3>; rel="next", '
                '<https://gitlab.example.com/api/v4/things?page=1>; rel="first", '
                '<https://gitlab.example.com/api/v4/things?page=3>; rel="last"'
            ),
        }
        client = make_client(lambda request: httpx.Response(200, json=[], headers=headers))
        async with client:
            _, response = await client.do(client.new_request("GET", "things"), list)

        assert response.total_items == 57
        assert response.total_pages == 3
        assert response.items_per_page == 20
        assert response.current_page == 2
        assert response.next_page == 3
        assert response.previous_page == 1
        assert response.next_link.endswith("page=3")
        assert response.first_link.endswith("page=1")
        assert response.last_link.endswith("page=3")

    @pytest.mark.asyncio
    async def test_missing_pagination_headers_default_to_zero(self, make_client):
        client = make_client(lambda request: httpx.Response(200, json=[]))
        async with client:
            _, response = await client.do(client.new_request("GET", "things"), list)

        assert response.total_items == 0
        assert response.next_page == 0
        assert response.next_link == ""

    @pytest.mark.asyncio
    async def test_empty_body_is_not_decoded(self, make_client):
        client = make_client(lambda request: httpx.Response(204))
        async with client:
            result, response = await client.do(
                client.new_request("POST", "things"), dict
            )

        assert result is None
        assert isinstance(response, Response)

    @pytest.mark.asyncio
    async def test_no_result_type_skips_decoding(self, make_client):
        client = make_client(lambda request: httpx.Response(200, content=b"not json"))
        async with client:
            result, _ = await client.do(client.new_request("GET", "things"))

        assert result is None

    @pytest.mark.asyncio
    async def test_null_body_is_not_decoded(self, make_client):
        client = make_client(lambda request: httpx.Response(200, content=b" null\n"))
        async with client:
            result, response = await client.do(
                client.new_request("GET", "things"), list
            )

        assert result is None
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_structured_error_message_is_flattened(self, make_client):
        body = {"message": {"destination_storage_name": ["is invalid"]}}
        client = make_client(lambda request: httpx.Response(400, json=body))
        async with client:
            with pytest.raises(GitLabResponseError) as exc_info:
                await client.do(client.new_request("POST", "things"))

        message = str(exc_info.value)
        assert "400" in message
        assert "{destination_storage_name: [is invalid]}" in message

    @pytest.mark.asyncio
    async def test_plain_text_error_body(self, make_client):
        client = make_client(lambda request: httpx.Response(502, text="Bad Gateway"))
        async with client:
            with pytest.raises(GitLabResponseError) as exc_info:
                await client.do(client.new_request("GET", "things"))

        assert exc_info.value.status_code == 502
        assert "Bad Gateway" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_transport_errors_propagate_unchanged(self, make_client):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(handler)
        async with client:
            with pytest.raises(httpx.ConnectError):
                await client.do(client.new_request("GET", "things"), list)

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self):
        client = GitLabAPIClient()
        _ = client.session
        await client.close()
        await client.close()
        assert client.session is not None
        await client.close()
