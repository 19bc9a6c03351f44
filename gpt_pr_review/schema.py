"""Data contracts for one review run."""

from __future__ import annotations

import re
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

NO_FEEDBACK_SENTINEL = "No feedback"
LEADING_BULLETS_PATTERN = re.compile(r"^[\s\-*•]+")


def is_no_feedback(text: str | None) -> bool:
    """Return whether a backend response signals that there is nothing to report.

    Leading whitespace and bullet markers are stripped and the remainder is
    case-folded before a prefix comparison against the sentinel, so trailing
    punctuation or explanation after the sentinel is tolerated.
    """
    if text is None:
        return True
    normalized = LEADING_BULLETS_PATTERN.sub("", text).strip().casefold()
    if not normalized:
        return True
    return normalized.startswith(NO_FEEDBACK_SENTINEL.casefold())


class BackendKind(StrEnum):
    """Completion backend variants."""

    HOSTED = "hosted"
    ENDPOINT = "endpoint"


class TaskResult(StrEnum):
    """Pipeline task outcome."""

    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    SKIPPED = "Skipped"


class RunConfiguration(BaseModel):
    """Settings resolved once at startup and shared read-only by every component."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    target_branch_ref: str = Field(min_length=1)
    api_key: str = Field(min_length=1)
    backend: BackendKind
    endpoint_url: str | None = None
    model: str = Field(default="gpt-3.5-turbo", min_length=1)
    max_tokens: int = Field(default=500, ge=1)
    temperature: float | None = Field(default=None, ge=0.0, le=2.0)
    prompt_instructions: str | None = None
    working_directory: str = Field(min_length=1)
    support_self_signed_certificate: bool = False

    @field_validator("endpoint_url")
    @classmethod
    def validate_endpoint_url(cls, value: str | None) -> str | None:
        """Require an absolute http(s) URL when a custom endpoint is configured."""
        if value is None:
            return value
        if not value.startswith(("https://", "http://")):
            raise ValueError("endpoint_url must be an absolute http(s) URL.")
        return value


class PullRequestContext(BaseModel):
    """Coordinates of the pull request on the Azure DevOps host."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    collection_uri: str = Field(min_length=1)
    project_id: str = Field(min_length=1)
    project_name: str = Field(min_length=1)
    repository_name: str = Field(min_length=1)
    pull_request_id: int = Field(ge=1)
    access_token: str = Field(min_length=1)

    @field_validator("collection_uri")
    @classmethod
    def validate_collection_uri(cls, value: str) -> str:
        """Normalize the collection URI so it always ends with a slash."""
        return value if value.endswith("/") else f"{value}/"


class ReviewRequest(BaseModel):
    """Prompt material assembled for one changed file."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    file_path: str = Field(min_length=1)
    patch_text: str
    instructions: str
    prompt: str


class ReviewResult(BaseModel):
    """Backend feedback for one changed file."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    file_path: str = Field(min_length=1)
    feedback_text: str | None = None
    comment_posted: bool = False

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_empty(self) -> bool:
        return is_no_feedback(self.feedback_text)
