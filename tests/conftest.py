"""
Shared pytest fixtures for GitLab Storage Moves tests.

Provides sample API payloads and a client factory backed by
httpx.MockTransport so requests never leave the process.
"""

from typing import Any, Callable, Dict, List

import httpx
import pytest

from gitlab_storage_moves.api_clients.base_client import GitLabAPIClient

TEST_BASE_URL = "https://gitlab.example.com"


def sample_move_payload(move_id: int = 1, snippet_id: int = 65) -> Dict[str, Any]:
    """Storage move as returned by the GitLab API."""
    return {
        "id": move_id,
        "created_at": "2020-05-07T04:27:17.234Z",
        "state": "scheduled",
        "source_storage_name": "default",
        "destination_storage_name": "storage2",
        "snippet": {
            "id": snippet_id,
            "title": "Test Snippet",
            "description": None,
            "visibility": "internal",
            "updated_at": "2020-12-01T11:15:50.385Z",
            "created_at": "2020-12-01T11:15:50.385Z",
            "project_id": None,
            "web_url": f"https://gitlab.example.com/-/snippets/{snippet_id}",
            "raw_url": f"https://gitlab.example.com/-/snippets/{snippet_id}/raw",
            "ssh_url_to_repo": f"ssh://user@gitlab.example.com/snippets/{snippet_id}.git",
            "http_url_to_repo": f"https://gitlab.example.com/snippets/{snippet_id}.git",
        },
    }


@pytest.fixture
def move_payload() -> Dict[str, Any]:
    """Provide a single storage move payload."""
    return sample_move_payload()


@pytest.fixture
def move_list_payload() -> List[Dict[str, Any]]:
    """Provide a list of storage move payloads."""
    return [sample_move_payload(1, 65), sample_move_payload(2, 66)]


@pytest.fixture
def recorded_requests() -> List[httpx.Request]:
    """Requests seen by the mock transport, in order."""
    return []


@pytest.fixture
def make_client(
    recorded_requests,
) -> Callable[[Callable[[httpx.Request], httpx.Response]], GitLabAPIClient]:
    """Build a GitLabAPIClient whose transport is the given handler."""

    def _make(handler: Callable[[httpx.Request], httpx.Response]) -> GitLabAPIClient:
        def _recording_handler(request: httpx.Request) -> httpx.Response:
            recorded_requests.append(request)
            return handler(request)

        return GitLabAPIClient(
            base_url=TEST_BASE_URL,
            token="test-token",
            transport=httpx.MockTransport(_recording_handler),
        )

    return _make
