"""Shared pytest fixtures and test-run configuration."""

from __future__ import annotations

import json
import os
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import httpx
import pytest
from gpt_pr_review.devops_client import pull_request_base_url
from gpt_pr_review.schema import BackendKind, PullRequestContext, RunConfiguration

BOT_NAME = "Rocket Build Service (contoso)"
PIPELINE_ENV_PREFIXES = ("INPUT_", "SYSTEM_", "BUILD_")


@pytest.fixture(autouse=True)
def clean_pipeline_env(monkeypatch: pytest.MonkeyPatch, tmp_path_factory: pytest.TempPathFactory) -> None:
    """Isolate tests from pipeline variables and .env files of the host."""
    for name in list(os.environ):
        if name.startswith(PIPELINE_ENV_PREFIXES):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path_factory.mktemp("cwd"))


def make_context() -> PullRequestContext:
    """Build pull request coordinates on a dev.azure.com organization."""
    return PullRequestContext(
        collection_uri="https://dev.azure.com/contoso/",
        project_id="proj-id",
        project_name="Rocket",
        repository_name="rocket-repo",
        pull_request_id=42,
        access_token="devops-token",
    )


def make_config(**overrides: Any) -> RunConfiguration:
    """Build a valid hosted-backend run configuration."""
    values: dict[str, Any] = {
        "target_branch_ref": "origin/main",
        "api_key": "sk-test",
        "backend": BackendKind.HOSTED,
        "working_directory": "/repo",
    }
    values.update(overrides)
    return RunConfiguration(**values)


@dataclass
class FakeGit:
    """In-memory git collaborator returning canned diff output."""

    names_output: str = ""
    patches: dict[str, str] = field(default_factory=dict)
    calls: list[tuple[str, ...]] = field(default_factory=list)
    fail_on: str | None = None

    def add_config(self, key: str, value: str) -> None:
        self.calls.append(("config", key, value))

    def fetch(self) -> None:
        self.calls.append(("fetch",))

    def diff(self, args: list[str]) -> str:
        self.calls.append(("diff", *args))
        if "--name-only" in args:
            return self.names_output
        path = args[-1]
        if self.fail_on == path:
            raise RuntimeError(f"diff failed for {path}")
        return self.patches.get(path, "")


@dataclass
class FakeBackend:
    """Completion backend returning one canned response per call."""

    responses: dict[str, str | None] = field(default_factory=dict)
    default: str | None = "No feedback."
    prompts: list[str] = field(default_factory=list)
    instructions: list[str | None] = field(default_factory=list)

    def complete(
        self,
        prompt: str,
        *,
        instructions: str | None = None,
        max_tokens: int,
    ) -> str | None:
        self.prompts.append(prompt)
        self.instructions.append(instructions)
        for path, response in self.responses.items():
            if path in prompt:
                return response
        return self.default


class FakeDevOpsHost:
    """Stateful stand-in for the Azure DevOps pull request threads API.

    Deleted comments stay listed with ``isDeleted`` set, as the real service
    does.
    """

    THREAD_PATTERN = re.compile(r"/threads(?:/(?P<thread>\d+))?(?:/comments(?:/(?P<comment>\d+))?)?$")

    def __init__(self) -> None:
        self.threads: dict[int, dict[str, Any]] = {}
        self.requests: list[httpx.Request] = []
        self.fail_deletes: set[int] = set()
        self._next_id = 1

    def _new_id(self) -> int:
        value = self._next_id
        self._next_id += 1
        return value

    def add_thread(self, file_path: str | None, comments: list[tuple[str, str]]) -> int:
        """Seed a thread with (author, content) comments."""
        thread_id = self._new_id()
        self.threads[thread_id] = {
            "id": thread_id,
            "threadContext": {"filePath": file_path} if file_path is not None else None,
            "comments": [
                {
                    "id": index,
                    "content": content,
                    "author": {"displayName": author},
                    "isDeleted": False,
                }
                for index, (author, content) in enumerate(comments, start=1)
            ],
        }
        return thread_id

    def live_comments(self, author: str | None = None) -> list[dict[str, Any]]:
        return [
            comment
            for thread in self.threads.values()
            for comment in thread["comments"]
            if not comment["isDeleted"]
            and (author is None or comment["author"]["displayName"] == author)
        ]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        match = self.THREAD_PATTERN.search(request.url.path)
        if match is None:
            raise AssertionError(f"Unexpected endpoint {request.url.path}")
        thread_id = match.group("thread")
        comment_id = match.group("comment")

        if request.method == "GET" and thread_id is None:
            return httpx.Response(200, json={"value": list(self.threads.values()), "count": len(self.threads)})

        if request.method == "POST" and thread_id is None:
            body = json.loads(request.content)
            new_id = self._new_id()
            thread = {
                "id": new_id,
                "threadContext": body["threadContext"],
                "status": body["status"],
                "comments": [
                    {
                        "id": 1,
                        "content": comment["content"],
                        "author": {"displayName": BOT_NAME},
                        "isDeleted": False,
                    }
                    for comment in body["comments"]
                ],
            }
            self.threads[new_id] = thread
            return httpx.Response(200, json=thread)

        thread = self.threads.get(int(thread_id)) if thread_id else None
        if thread is None:
            return httpx.Response(404, json={"message": "thread not found"})

        if request.method == "GET" and comment_id is None:
            return httpx.Response(200, json={"value": thread["comments"]})

        if request.method == "DELETE" and comment_id is not None:
            if int(thread_id) in self.fail_deletes:
                return httpx.Response(500, json={"message": "boom"})
            for comment in thread["comments"]:
                if comment["id"] == int(comment_id):
                    comment["isDeleted"] = True
                    return httpx.Response(200)
            return httpx.Response(404, json={"message": "comment not found"})

        raise AssertionError(f"Unexpected request {request.method} {request.url.path}")


def make_devops_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.Client:
    """Create a client rooted at the test pull request, backed by mock transport."""
    return httpx.Client(
        base_url=pull_request_base_url(make_context()),
        transport=httpx.MockTransport(handler),
    )


@pytest.fixture
def devops_host() -> FakeDevOpsHost:
    return FakeDevOpsHost()
