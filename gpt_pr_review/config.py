"""Pipeline inputs and variables, resolved once per run."""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import ValidationError

from gpt_pr_review.schema import BackendKind, PullRequestContext, RunConfiguration

PULL_REQUEST_BUILD_REASON = "PullRequest"
TARGET_BRANCH_REMOTE = "origin"
BRANCH_REF_PREFIX = "refs/heads/"
DEFAULT_MODEL = "gpt-3.5-turbo"
DEFAULT_MAX_TOKENS = 500
TRUE_VALUE = "true"


class ConfigurationError(ValueError):
    """Raised when required task inputs or pipeline variables are missing or invalid."""


def load_environment(dotenv_path: Path | None = None) -> None:
    """Load a local .env file without overriding real pipeline variables."""
    load_dotenv(dotenv_path=dotenv_path or Path.cwd() / ".env", override=False)


def _variable_env_name(name: str) -> str:
    return name.replace(".", "_").upper()


def _input_env_name(name: str) -> str:
    return "INPUT_" + name.replace(" ", "_").upper()


def get_variable(name: str) -> str | None:
    """Read a pipeline variable such as ``System.PullRequest.PullRequestId``."""
    value = os.getenv(_variable_env_name(name))
    return value or None


def get_input(name: str, *, required: bool = False) -> str | None:
    """Read a task input such as ``api_key``."""
    value = os.getenv(_input_env_name(name))
    if value is not None:
        value = value.strip()
    if not value:
        if required:
            raise ConfigurationError(f"Input required: {name}")
        return None
    return value


def get_bool_input(name: str) -> bool:
    """Only a case-insensitive "true" enables a boolean input."""
    value = get_input(name)
    return value is not None and value.lower() == TRUE_VALUE


def is_pull_request_build() -> bool:
    """Return whether the current build was triggered by a pull request."""
    return get_variable("Build.Reason") == PULL_REQUEST_BUILD_REASON


def get_target_branch_name() -> str | None:
    """Resolve the remote-tracking ref of the pull request target branch."""
    branch_name = get_variable("System.PullRequest.TargetBranchName")
    if not branch_name:
        target_branch = get_variable("System.PullRequest.TargetBranch")
        if target_branch:
            branch_name = target_branch.removeprefix(BRANCH_REF_PREFIX)
    if not branch_name:
        return None
    return f"{TARGET_BRANCH_REMOTE}/{branch_name}"


def _parse_int_input(name: str, default: int) -> int:
    raw_value = get_input(name)
    if raw_value is None:
        return default
    try:
        return int(raw_value)
    except ValueError as error:
        raise ConfigurationError(f"Input '{name}' must be an integer, got '{raw_value}'.") from error


def _parse_float_input(name: str) -> float | None:
    raw_value = get_input(name)
    if raw_value is None:
        return None
    try:
        return float(raw_value)
    except ValueError as error:
        raise ConfigurationError(f"Input '{name}' must be a number, got '{raw_value}'.") from error


def load_run_configuration(*, working_dir: str | None = None) -> RunConfiguration:
    """Build the run configuration from task inputs and pipeline variables."""
    api_key = get_input("api_key")
    if api_key is None:
        raise ConfigurationError("No Api Key provided!")

    target_branch_ref = get_target_branch_name()
    if target_branch_ref is None:
        raise ConfigurationError("No target branch found!")

    endpoint_url = get_input("aoi_endpoint")
    resolved_working_dir = (
        working_dir
        or get_input("working_dir")
        or get_variable("System.DefaultWorkingDirectory")
        or str(Path.cwd())
    )

    try:
        return RunConfiguration(
            target_branch_ref=target_branch_ref,
            api_key=api_key,
            backend=BackendKind.ENDPOINT if endpoint_url else BackendKind.HOSTED,
            endpoint_url=endpoint_url,
            model=get_input("model") or DEFAULT_MODEL,
            max_tokens=_parse_int_input("max_tokens", DEFAULT_MAX_TOKENS),
            temperature=_parse_float_input("temperature"),
            prompt_instructions=get_input("prompt_instructions"),
            working_directory=resolved_working_dir,
            support_self_signed_certificate=get_bool_input("support_self_signed_certificate"),
        )
    except ValidationError as error:
        raise ConfigurationError(f"Invalid task configuration: {error}") from error


def load_pull_request_context() -> PullRequestContext:
    """Collect Azure DevOps coordinates of the pull request under review."""
    names = {
        "collection_uri": "System.TeamFoundationCollectionUri",
        "project_id": "System.TeamProjectId",
        "project_name": "System.TeamProject",
        "repository_name": "Build.Repository.Name",
        "pull_request_id": "System.PullRequest.PullRequestId",
        "access_token": "System.AccessToken",
    }
    values = {field: get_variable(variable) for field, variable in names.items()}
    missing = [names[field] for field, value in values.items() if value is None]
    if missing:
        raise ConfigurationError("Missing pipeline variables: " + ", ".join(missing))

    try:
        return PullRequestContext.model_validate(values)
    except ValidationError as error:
        raise ConfigurationError(f"Invalid pull request variables: {error}") from error
