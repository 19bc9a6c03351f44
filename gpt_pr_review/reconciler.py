"""Delete-then-recreate reconciliation of bot review threads."""

from __future__ import annotations

import logging

import httpx

from gpt_pr_review.devops_client import (
    DevOpsApiError,
    build_service_name,
    create_thread,
    delete_comment,
    list_thread_comments,
    list_threads,
)
from gpt_pr_review.observability import RunStats
from gpt_pr_review.schema import PullRequestContext

logger = logging.getLogger(__name__)

PATH_SEPARATOR = "/"


def to_thread_file_path(file_path: str) -> str:
    """Return the repository-rooted path Azure DevOps expects in thread contexts."""
    return file_path if file_path.startswith(PATH_SEPARATOR) else PATH_SEPARATOR + file_path


class CommentReconciler:
    """Owns every write this task makes to the pull request."""

    def __init__(
        self,
        client: httpx.Client,
        context: PullRequestContext,
        *,
        dry_run: bool = False,
    ) -> None:
        self._client = client
        self.bot_name = build_service_name(context)
        self.dry_run = dry_run

    def delete_stale(self, stats: RunStats | None = None) -> int:
        """Delete all comments left on file threads by previous runs.

        General pull-request threads are left untouched. Host errors are
        logged and skipped so a partial cleanup never aborts the review.
        Returns the number of comments deleted.
        """
        stats = stats if stats is not None else RunStats()
        logger.info("Start deleting existing comments added by the previous Job ...")

        try:
            threads = list_threads(client=self._client)
        except (DevOpsApiError, httpx.HTTPError) as error:
            logger.warning("Could not list pull request threads: %s", error)
            stats.deletion_failures += 1
            return 0

        deleted = 0
        for thread in threads:
            if thread.file_path is None:
                continue
            try:
                comments = list_thread_comments(client=self._client, thread_id=thread.id)
            except (DevOpsApiError, httpx.HTTPError) as error:
                logger.warning("Could not list comments of thread %s: %s", thread.id, error)
                stats.deletion_failures += 1
                continue

            for comment in comments:
                if comment.is_deleted or comment.author_display_name != self.bot_name:
                    continue
                if self.dry_run:
                    logger.info(
                        "[dry-run] Would delete comment %s of thread %s", comment.id, thread.id
                    )
                    continue
                try:
                    delete_comment(client=self._client, thread_id=thread.id, comment_id=comment.id)
                except (DevOpsApiError, httpx.HTTPError) as error:
                    logger.warning(
                        "Could not delete comment %s of thread %s: %s", comment.id, thread.id, error
                    )
                    stats.deletion_failures += 1
                    continue
                deleted += 1

        stats.comments_deleted += deleted
        logger.info("Existing comments deleted (%d).", deleted)
        return deleted

    def create(self, file_path: str, text: str) -> bool:
        """Open a new thread on ``file_path``; existing threads are never edited.

        Returns whether a thread was actually posted.
        """
        thread_path = to_thread_file_path(file_path)
        if self.dry_run:
            logger.info("[dry-run] Would add comment on %s:\n%s", thread_path, text)
            return False
        create_thread(client=self._client, file_path=thread_path, content=text)
        logger.info("New comment added.")
        return True
