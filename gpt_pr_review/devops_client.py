"""Azure DevOps pull request threads API wrapper."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import httpx

from gpt_pr_review.schema import PullRequestContext

DEVOPS_API_VERSION = "5.1"
THREAD_STATUS_ACTIVE = 1
COMMENT_TYPE_TEXT = 1
VISUALSTUDIO_HOST_MARKER = ".visualstudio."


class DevOpsApiError(RuntimeError):
    """Raised when an Azure DevOps API request fails."""

    def __init__(self, message: str, *, status_code: int, endpoint: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.endpoint = endpoint


@dataclass(frozen=True, slots=True)
class Comment:
    """One comment of a pull request thread."""

    id: int
    content: str
    author_display_name: str
    is_deleted: bool = False


@dataclass(frozen=True, slots=True)
class CommentThread:
    """Pull request thread, optionally anchored to a file."""

    id: int
    file_path: str | None


def get_collection_name(collection_uri: str) -> str:
    """Derive the organization/collection name from the collection URI.

    ``https://contoso.visualstudio.com/`` and ``https://dev.azure.com/contoso/``
    both yield ``contoso``.
    """
    without_protocol = collection_uri.removeprefix("https://").removeprefix("http://")
    if VISUALSTUDIO_HOST_MARKER in without_protocol:
        return without_protocol.split(VISUALSTUDIO_HOST_MARKER)[0]
    segments = without_protocol.split("/")
    return segments[1] if len(segments) > 1 else ""


def build_service_name(context: PullRequestContext) -> str:
    """Display name of the identity that posts comments from pipeline runs."""
    return f"{context.project_name} Build Service ({get_collection_name(context.collection_uri)})"


def pull_request_base_url(context: PullRequestContext) -> str:
    repository = quote(context.repository_name, safe="")
    return (
        f"{context.collection_uri}{context.project_id}/_apis/git/repositories/"
        f"{repository}/pullRequests/{context.pull_request_id}"
    )


def _ensure_mapping(value: object, *, context: str) -> dict[str, Any]:
    """Ensure a response fragment is a JSON object."""
    if not isinstance(value, dict):
        raise DevOpsApiError(
            f"Expected JSON object for {context}.",
            status_code=500,
            endpoint=context,
        )
    return value


def _require_int(payload: dict[str, Any], *, key: str, endpoint: str) -> int:
    """Read a required integer field from payload."""
    value = payload.get(key)
    if not isinstance(value, int) or isinstance(value, bool):
        raise DevOpsApiError(
            f"Expected integer field '{key}' in Azure DevOps response.",
            status_code=500,
            endpoint=endpoint,
        )
    return value


def _value_rows(payload: dict[str, Any], *, endpoint: str) -> list[dict[str, Any]]:
    """Read the ``value`` array of a list response."""
    rows = payload.get("value")
    if not isinstance(rows, list):
        raise DevOpsApiError(
            "Expected 'value' array in Azure DevOps response.",
            status_code=500,
            endpoint=endpoint,
        )
    return [_ensure_mapping(row, context=endpoint) for row in rows]


def _raise_http_error(response: httpx.Response, endpoint: str) -> None:
    """Raise a typed error for a non-success Azure DevOps response."""
    raise DevOpsApiError(
        f"Azure DevOps request failed with status {response.status_code} for '{endpoint}'.",
        status_code=response.status_code,
        endpoint=endpoint,
    )


def _request(
    client: httpx.Client,
    method: str,
    endpoint: str,
    *,
    json: dict[str, Any] | None = None,
) -> httpx.Response:
    """Perform one request; there is no retry policy."""
    response = client.request(
        method,
        endpoint,
        params={"api-version": DEVOPS_API_VERSION},
        json=json,
    )
    if response.status_code >= 400:
        _raise_http_error(response, endpoint)
    return response


def _parse_comment(row: dict[str, Any], *, endpoint: str) -> Comment:
    author = row.get("author")
    display_name = author.get("displayName") if isinstance(author, dict) else None
    content = row.get("content")
    return Comment(
        id=_require_int(row, key="id", endpoint=endpoint),
        content=content if isinstance(content, str) else "",
        author_display_name=display_name if isinstance(display_name, str) else "",
        is_deleted=row.get("isDeleted") is True,
    )


def _parse_thread(row: dict[str, Any], *, endpoint: str) -> CommentThread:
    thread_context = row.get("threadContext")
    file_path = thread_context.get("filePath") if isinstance(thread_context, dict) else None
    if file_path is not None and not isinstance(file_path, str):
        raise DevOpsApiError(
            "Expected 'threadContext.filePath' to be a string or null.",
            status_code=500,
            endpoint=endpoint,
        )
    return CommentThread(id=_require_int(row, key="id", endpoint=endpoint), file_path=file_path)


def list_threads(*, client: httpx.Client) -> tuple[CommentThread, ...]:
    """List every thread on the pull request."""
    endpoint = "/threads"
    payload = _ensure_mapping(_request(client, "GET", endpoint).json(), context=endpoint)
    return tuple(_parse_thread(row, endpoint=endpoint) for row in _value_rows(payload, endpoint=endpoint))


def list_thread_comments(*, client: httpx.Client, thread_id: int) -> tuple[Comment, ...]:
    """List the comments of one thread."""
    endpoint = f"/threads/{thread_id}/comments"
    payload = _ensure_mapping(_request(client, "GET", endpoint).json(), context=endpoint)
    return tuple(_parse_comment(row, endpoint=endpoint) for row in _value_rows(payload, endpoint=endpoint))


def delete_comment(*, client: httpx.Client, thread_id: int, comment_id: int) -> None:
    """Delete one comment from a thread."""
    _request(client, "DELETE", f"/threads/{thread_id}/comments/{comment_id}")


def create_thread(*, client: httpx.Client, file_path: str, content: str) -> CommentThread:
    """Create an active thread anchored to ``file_path`` with one root comment."""
    endpoint = "/threads"
    body = {
        "comments": [
            {
                "parentCommentId": 0,
                "content": content,
                "commentType": COMMENT_TYPE_TEXT,
            }
        ],
        "status": THREAD_STATUS_ACTIVE,
        "threadContext": {"filePath": file_path},
    }
    response = _request(client, "POST", endpoint, json=body)
    if not response.content:
        return CommentThread(id=0, file_path=file_path)
    payload = _ensure_mapping(response.json(), context=endpoint)
    return _parse_thread(payload, endpoint=endpoint)


def build_devops_client(
    context: PullRequestContext,
    *,
    verify: bool = True,
    timeout_seconds: float | None = None,
) -> httpx.Client:
    """Build an authenticated client rooted at the pull request resource."""
    headers = {
        "Accept": "application/json",
        "Authorization": f"Bearer {context.access_token}",
    }
    return httpx.Client(
        base_url=pull_request_base_url(context),
        headers=headers,
        timeout=timeout_seconds,
        verify=verify,
    )
