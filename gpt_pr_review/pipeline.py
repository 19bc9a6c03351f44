"""Review orchestration entrypoints."""

from __future__ import annotations

import logging
from pathlib import Path

from gpt_pr_review.changes import ChangeSetResolver, DiffSource
from gpt_pr_review.completion import (
    CompletionBackend,
    build_completion_backend,
    build_completion_client,
)
from gpt_pr_review.config import (
    ConfigurationError,
    is_pull_request_build,
    load_pull_request_context,
    load_run_configuration,
)
from gpt_pr_review.devops_client import build_devops_client
from gpt_pr_review.git_client import GitClient
from gpt_pr_review.observability import RunStats
from gpt_pr_review.reconciler import CommentReconciler
from gpt_pr_review.review import ReviewEngine
from gpt_pr_review.schema import RunConfiguration, TaskResult

logger = logging.getLogger(__name__)

SKIPPED_MESSAGE = "This task should be run only when the build is triggered from a Pull Request."
SUCCEEDED_MESSAGE = "Pull Request reviewed."


def review_pull_request(
    config: RunConfiguration,
    *,
    git: DiffSource,
    backend: CompletionBackend,
    reconciler: CommentReconciler,
) -> RunStats:
    """Resolve changed files, clear stale bot comments, then review every file.

    Steps run strictly in sequence: no comment is created before the stale
    comments of previous runs are gone.
    """
    stats = RunStats()
    files = ChangeSetResolver(git).resolve(config.target_branch_ref)
    stats.files_changed = len(files)

    reconciler.delete_stale(stats)

    engine = ReviewEngine(git, backend, reconciler, config)
    engine.review_all(files, config.target_branch_ref, stats)

    logger.info("Run summary: %s", stats.summary())
    return stats


def run_task(*, working_dir: str | None = None, dry_run: bool = False) -> tuple[TaskResult, str]:
    """Run the whole task and map the outcome to a pipeline task result."""
    if not is_pull_request_build():
        return TaskResult.SKIPPED, SKIPPED_MESSAGE

    try:
        config = load_run_configuration(working_dir=working_dir)
        context = load_pull_request_context()
    except ConfigurationError as error:
        return TaskResult.FAILED, str(error)

    verify = not config.support_self_signed_certificate
    try:
        git = GitClient(Path(config.working_directory))
        with (
            build_devops_client(context, verify=verify) as devops_client,
            build_completion_client(verify=verify) as completion_client,
        ):
            review_pull_request(
                config,
                git=git,
                backend=build_completion_backend(config, client=completion_client),
                reconciler=CommentReconciler(devops_client, context, dry_run=dry_run),
            )
    except Exception as error:
        logger.exception("Pull request review failed.")
        return TaskResult.FAILED, str(error)

    return TaskResult.SUCCEEDED, SUCCEEDED_MESSAGE
