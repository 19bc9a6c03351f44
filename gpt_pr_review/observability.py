"""Logging setup and run statistics."""

from __future__ import annotations

import logging
import sys
from dataclasses import asdict, dataclass

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: str = "INFO") -> None:
    """Configure process-wide logging on stdout.

    Pipeline agents capture stdout into the task log, so everything goes
    there. Noisy HTTP libraries are reduced to warnings.
    """
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        stream=sys.stdout,
        force=True,
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


@dataclass(slots=True)
class RunStats:
    """Counters collected while a pull request is reviewed."""

    files_changed: int = 0
    files_reviewed: int = 0
    files_suppressed: int = 0
    files_failed: int = 0
    threads_created: int = 0
    comments_deleted: int = 0
    deletion_failures: int = 0

    def as_dict(self) -> dict[str, int]:
        return asdict(self)

    def summary(self) -> str:
        """Render a single log line."""
        return ", ".join(f"{key}={value}" for key, value in self.as_dict().items())
