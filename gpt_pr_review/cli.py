"""Typer CLI for the pull request review task."""

from __future__ import annotations

from typing import Annotated

import httpx
import typer

from gpt_pr_review.config import (
    ConfigurationError,
    get_bool_input,
    load_environment,
    load_pull_request_context,
)
from gpt_pr_review.devops_client import (
    DevOpsApiError,
    build_devops_client,
    build_service_name,
    list_threads,
)
from gpt_pr_review.observability import setup_logging
from gpt_pr_review.output import render_task_complete
from gpt_pr_review.pipeline import run_task
from gpt_pr_review.schema import TaskResult

app = typer.Typer(help="Review pull request changes with a language model and comment on the PR.")


@app.command("review")
def review_command(
    working_dir: Annotated[
        str | None,
        typer.Option(help="Repository working directory. Defaults to the working_dir input."),
    ] = None,
    dry_run: Annotated[
        bool, typer.Option(help="Log comment deletions and creations instead of sending them.")
    ] = False,
    log_level: Annotated[str, typer.Option(help="Logging level.")] = "INFO",
) -> None:
    """Review every changed file of the current pull request build."""
    load_environment()
    setup_logging(log_level)

    result, message = run_task(working_dir=working_dir, dry_run=dry_run)
    typer.echo(render_task_complete(result, message))
    if result is TaskResult.FAILED:
        raise typer.Exit(code=1)


@app.command("auth-check")
def auth_check_command(
    timeout_seconds: Annotated[
        int, typer.Option(help="Azure DevOps API timeout in seconds for the validation call.")
    ] = 20,
) -> None:
    """Validate the access token and pull request coordinates."""
    load_environment()
    try:
        context = load_pull_request_context()
    except ConfigurationError as error:
        typer.echo(f"Azure DevOps auth check failed: {error}")
        raise typer.Exit(code=1) from error

    verify = not get_bool_input("support_self_signed_certificate")
    try:
        with build_devops_client(
            context, verify=verify, timeout_seconds=timeout_seconds
        ) as client:
            threads = list_threads(client=client)
    except DevOpsApiError as error:
        typer.echo(
            "Azure DevOps auth check failed: "
            f"status={error.status_code} endpoint={error.endpoint}."
        )
        raise typer.Exit(code=1) from error
    except httpx.HTTPError as error:
        typer.echo(f"Azure DevOps auth check failed: network error ({error}).")
        raise typer.Exit(code=1) from error

    typer.echo(
        f"Pull request {context.pull_request_id} is readable ({len(threads)} thread(s))."
    )
    typer.echo(f"Comments are attributed to '{build_service_name(context)}'.")
