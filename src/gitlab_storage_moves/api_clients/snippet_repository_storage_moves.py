"""Snippet Repository Storage Moves Service.

Handles the snippet repository storage move endpoints of the GitLab API:
listing, inspecting and scheduling moves of snippet repositories between
storage shards.

GitLab API docs:
https://docs.gitlab.com/ee/api/snippet_repository_storage_moves.html
"""

import logging
from datetime import datetime
from typing import List, Optional, Tuple, Union

from pydantic import Field

from .base_client import RequestExecutor, RequestOption, Response
from .models import ListOptions, OptionsModel, ResponseModel, VisibilityValue

logger = logging.getLogger(__name__)

STORAGE_MOVES_PATH = "snippet_repository_storage_moves"


class BasicSnippet(ResponseModel):
    """Snapshot of a snippet embedded in a storage move."""

    id: int = Field(default=0, description="Snippet ID")
    title: str = Field(default="", description="Snippet title")
    description: str = Field(default="", description="Snippet description")
    # Values outside VisibilityValue are kept as plain strings
    visibility: Union[VisibilityValue, str] = Field(
        default=VisibilityValue.PRIVATE,
        description="Snippet visibility level",
        union_mode="left_to_right",
    )
    updated_at: Optional[datetime] = Field(
        default=None, description="Last update timestamp"
    )
    created_at: Optional[datetime] = Field(
        default=None, description="Creation timestamp"
    )
    project_id: int = Field(default=0, description="Owning project ID")
    web_url: str = Field(default="", description="Snippet web URL")
    raw_url: str = Field(default="", description="Raw content URL")
    ssh_url_to_repo: str = Field(default="", description="SSH clone URL")
    http_url_to_repo: str = Field(default="", description="HTTP clone URL")


class SnippetRepositoryStorageMove(ResponseModel):
    """Status of a snippet repository storage move."""

    id: int = Field(default=0, description="Storage move ID")
    created_at: Optional[datetime] = Field(
        default=None, description="Creation timestamp"
    )
    # Free text from the server (initial, scheduled, started, finished, ...)
    state: str = Field(default="", description="Move state")
    source_storage_name: str = Field(default="", description="Source shard")
    destination_storage_name: str = Field(default="", description="Destination shard")
    snippet: BasicSnippet = Field(
        default_factory=BasicSnippet, description="Snippet at move time"
    )


class RetrieveAllSnippetStorageMovesOptions(ListOptions):
    """Options for the storage move listing endpoints."""

    pass


class ScheduleSnippetStorageMoveOptions(OptionsModel):
    """Options for scheduling one or all snippet storage moves."""

    source_storage_name: Optional[str] = Field(
        default=None, description="Shard to move repositories from"
    )
    destination_storage_name: Optional[str] = Field(
        default=None, description="Shard to move repositories to"
    )


class SnippetRepositoryStorageMoveService:
    """Service for snippet repository storage move operations."""

    def __init__(self, client: RequestExecutor):
        """Initialize the service.

        Args:
            client: Executor used to build and send requests
        """
        self.client = client

    async def retrieve_all_snippet_storage_moves(
        self,
        opts: Optional[RetrieveAllSnippetStorageMovesOptions] = None,
        *options: RequestOption,
    ) -> Tuple[List[SnippetRepositoryStorageMove], Response]:
        """Retrieve all snippet repository storage moves visible to the user.

        Args:
            opts: Pagination options
            *options: Per-request options

        Returns:
            Tuple of decoded storage moves and the API response

        Raises:
            RequestConstructionError: If the request cannot be built
            GitLabResponseError: If GitLab returns a non-2xx status
            ResponseDecodeError: If the response body does not decode
            httpx.HTTPError: If the transport fails
        """
        request = self.client.new_request("GET", STORAGE_MOVES_PATH, opts, options)
        moves, response = await self.client.do(
            request, List[SnippetRepositoryStorageMove]
        )
        return moves or [], response

    async def retrieve_all_storage_moves_for_snippet(
        self,
        snippet_id: int,
        opts: Optional[RetrieveAllSnippetStorageMovesOptions] = None,
        *options: RequestOption,
    ) -> Tuple[List[SnippetRepositoryStorageMove], Response]:
        """Retrieve all repository storage moves for a single snippet.

        Args:
            snippet_id: Snippet ID
            opts: Pagination options
            *options: Per-request options

        Returns:
            Tuple of decoded storage moves and the API response
        """
        path = f"snippets/{snippet_id}/repository_storage_moves"

        request = self.client.new_request("GET", path, opts, options)
        moves, response = await self.client.do(
            request, List[SnippetRepositoryStorageMove]
        )
        return moves or [], response

    async def get_snippet_storage_move(
        self, repository_storage_id: int, *options: RequestOption
    ) -> Tuple[Optional[SnippetRepositoryStorageMove], Response]:
        """Get a single snippet repository storage move."""
        path = f"{STORAGE_MOVES_PATH}/{repository_storage_id}"

        request = self.client.new_request("GET", path, None, options)
        return await self.client.do(request, SnippetRepositoryStorageMove)

    async def get_storage_move_for_snippet(
        self, snippet_id: int, repository_storage_id: int, *options: RequestOption
    ) -> Tuple[Optional[SnippetRepositoryStorageMove], Response]:
        """Get a single repository storage move for a snippet."""
        path = f"snippets/{snippet_id}/repository_storage_moves/{repository_storage_id}"

        request = self.client.new_request("GET", path, None, options)
        return await self.client.do(request, SnippetRepositoryStorageMove)

    async def schedule_storage_move_for_snippet(
        self,
        snippet_id: int,
        opts: ScheduleSnippetStorageMoveOptions,
        *options: RequestOption,
    ) -> Tuple[Optional[SnippetRepositoryStorageMove], Response]:
        """Schedule a repository storage move for a snippet.

        Args:
            snippet_id: Snippet ID
            opts: Source and destination storage names
            *options: Per-request options

        Returns:
            Tuple of the created storage move and the API response
        """
        path = f"snippets/{snippet_id}/repository_storage_moves"

        request = self.client.new_request("POST", path, opts, options)
        move, response = await self.client.do(request, SnippetRepositoryStorageMove)
        logger.debug(f"Scheduled storage move for snippet {snippet_id}")
        return move, response

    async def schedule_all_snippet_storage_moves(
        self, opts: ScheduleSnippetStorageMoveOptions, *options: RequestOption
    ) -> Response:
        """Schedule moves for every snippet repository on a storage shard.

        The body is decoded but not returned: there is no single move record
        for a bulk schedule, so callers only get the API response.

        Args:
            opts: Source and destination storage names
            *options: Per-request options

        Returns:
            The API response
        """
        request = self.client.new_request("POST", STORAGE_MOVES_PATH, opts, options)
        # TODO: confirm with upstream whether the bulk endpoint should expose its body
        _move, response = await self.client.do(request, SnippetRepositoryStorageMove)
        logger.debug(
            f"Scheduled storage moves for all snippets on {opts.source_storage_name}"
        )
        return response
