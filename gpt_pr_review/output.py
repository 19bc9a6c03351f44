"""Azure Pipelines logging-command rendering."""

from __future__ import annotations

from gpt_pr_review.schema import TaskResult

LOGGING_COMMAND_PREFIX = "##vso["

# Property values and messages must not break the single-line command format.
_MESSAGE_ESCAPES = (("%", "%AZP25"), ("\r", "%0D"), ("\n", "%0A"))
_PROPERTY_ESCAPES = (*_MESSAGE_ESCAPES, (";", "%3B"), ("]", "%5D"))


def _escape(value: str, escapes: tuple[tuple[str, str], ...]) -> str:
    for raw, escaped in escapes:
        value = value.replace(raw, escaped)
    return value


def render_logging_command(command: str, message: str = "", **properties: str) -> str:
    """Render ``##vso[area.action key=value;]message``."""
    rendered_properties = "".join(
        f"{key}={_escape(value, _PROPERTY_ESCAPES)};" for key, value in properties.items()
    )
    separator = " " if rendered_properties else ""
    return (
        f"{LOGGING_COMMAND_PREFIX}{command}{separator}{rendered_properties}]"
        f"{_escape(message, _MESSAGE_ESCAPES)}"
    )


def render_task_complete(result: TaskResult, message: str) -> str:
    """Render the command that sets the final task result."""
    return render_logging_command("task.complete", message, result=result.value)
