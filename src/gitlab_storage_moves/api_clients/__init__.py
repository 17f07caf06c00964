"""API Client Abstractions for GitLab Storage Move Operations.

Provides the base GitLab HTTP client and the services built on it.
All HTTP functionality is contained within dedicated API client classes.
"""

from .base_client import (
    GitLabAPIClient,
    APIClientError,
    GitLabResponseError,
    RequestConstructionError,
    RequestExecutor,
    RequestOption,
    Response,
    ResponseDecodeError,
    with_header,
    with_headers,
    with_sudo,
    with_token,
)
from .models import ListOptions, VisibilityValue
from .snippet_repository_storage_moves import (
    BasicSnippet,
    RetrieveAllSnippetStorageMovesOptions,
    ScheduleSnippetStorageMoveOptions,
    SnippetRepositoryStorageMove,
    SnippetRepositoryStorageMoveService,
)

__all__ = [
    # Base client
    "GitLabAPIClient",
    "APIClientError",
    "GitLabResponseError",
    "RequestConstructionError",
    "RequestExecutor",
    "RequestOption",
    "Response",
    "ResponseDecodeError",
    # Request options
    "with_header",
    "with_headers",
    "with_sudo",
    "with_token",
    # Shared models
    "ListOptions",
    "VisibilityValue",
    # Snippet repository storage moves
    "BasicSnippet",
    "RetrieveAllSnippetStorageMovesOptions",
    "ScheduleSnippetStorageMoveOptions",
    "SnippetRepositoryStorageMove",
    "SnippetRepositoryStorageMoveService",
]
