"""Per-file review: patch, prompt, completion, suppression, comment."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Protocol

from gpt_pr_review.completion import CompletionBackend
from gpt_pr_review.observability import RunStats
from gpt_pr_review.schema import NO_FEEDBACK_SENTINEL, ReviewRequest, ReviewResult, RunConfiguration

logger = logging.getLogger(__name__)

DEFAULT_INSTRUCTIONS = (
    "Act as a code reviewer of a Pull Request, providing feedback on the code changes below.\n"
    "You are provided with the Pull Request changes in a patch format.\n"
    "Each patch entry has the commit message in the Subject line followed by the code "
    "changes (diffs) in a unidiff format."
)

REVIEW_RULES = f"""As a code reviewer, your task is:
- Review only added, edited or deleted lines.
- Non changed code should not be reviewed.
- If there's no bugs, write '{NO_FEEDBACK_SENTINEL}'.
- Use bullet points if you have multiple comments."""


class PatchSource(Protocol):
    def diff(self, args: list[str]) -> str: ...


class CommentSink(Protocol):
    def create(self, file_path: str, text: str) -> bool: ...


def build_review_request(
    file_path: str,
    patch_text: str,
    prompt_instructions: str | None = None,
) -> ReviewRequest:
    """Assemble the system instructions and user prompt for one file.

    Configured instructions lead the user prompt; the reviewer role stays in
    the system message.
    """
    prompt = f"{REVIEW_RULES}\n\nPatch of the Pull Request to review:\n{patch_text}"
    if prompt_instructions:
        prompt = f"{prompt_instructions}\n\n{prompt}"
    return ReviewRequest(
        file_path=file_path,
        patch_text=patch_text,
        instructions=DEFAULT_INSTRUCTIONS,
        prompt=prompt,
    )


class ReviewEngine:
    """Reviews changed files one at a time and forwards feedback as comments."""

    def __init__(
        self,
        git: PatchSource,
        backend: CompletionBackend,
        reconciler: CommentSink,
        config: RunConfiguration,
    ) -> None:
        self._git = git
        self._backend = backend
        self._reconciler = reconciler
        self._config = config

    def review_file(self, file_path: str, target_branch_ref: str) -> ReviewResult:
        """Review one file and post a comment unless the feedback is suppressed."""
        logger.info("Start reviewing %s ...", file_path)
        patch = self._git.diff([target_branch_ref, "--", file_path])
        request = build_review_request(file_path, patch, self._config.prompt_instructions)

        feedback = self._backend.complete(
            request.prompt,
            instructions=request.instructions,
            max_tokens=self._config.max_tokens,
        )
        result = ReviewResult(file_path=file_path, feedback_text=feedback)
        if not result.is_empty:
            posted = self._reconciler.create(file_path, result.feedback_text or "")
            result = result.model_copy(update={"comment_posted": posted})

        logger.info("Review of %s completed.", file_path)
        return result

    def review_all(
        self,
        files: Iterable[str],
        target_branch_ref: str,
        stats: RunStats | None = None,
    ) -> list[ReviewResult]:
        """Review files sequentially in the given order.

        A failure on one file is logged and the remaining files are still
        reviewed.
        """
        stats = stats if stats is not None else RunStats()
        results: list[ReviewResult] = []
        for file_path in files:
            try:
                result = self.review_file(file_path, target_branch_ref)
            except Exception:
                logger.exception("Review of %s failed.", file_path)
                stats.files_failed += 1
                continue

            results.append(result)
            stats.files_reviewed += 1
            if result.is_empty:
                stats.files_suppressed += 1
            elif result.comment_posted:
                stats.threads_created += 1
        return results
