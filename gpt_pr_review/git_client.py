"""Git command runner for the pull request working tree."""

from __future__ import annotations

import logging
import subprocess
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class GitResult:
    """Result of a git command."""

    returncode: int
    stdout: str
    stderr: str

    @property
    def success(self) -> bool:
        return self.returncode == 0


class GitCommandError(RuntimeError):
    """Raised when a git command exits with a non-zero status."""

    def __init__(self, message: str, *, args: Sequence[str], returncode: int, stderr: str) -> None:
        super().__init__(message)
        self.git_args = tuple(args)
        self.returncode = returncode
        self.stderr = stderr


def run_git(args: Sequence[str], cwd: Path) -> GitResult:
    """
    Run a git command in ``cwd``.

    Args:
        args: Git command arguments (e.g., ["diff", "--name-only", "origin/main"])
        cwd: Working directory for the command

    Returns:
        GitResult with returncode, stdout and stderr
    """
    cmd = ["git", "-C", str(cwd), *args]
    result = subprocess.run(
        cmd, capture_output=True, text=True, encoding="utf-8", errors="replace"
    )
    return GitResult(returncode=result.returncode, stdout=result.stdout, stderr=result.stderr)


class GitClient:
    """Explicit git handle shared by the change-set resolver and the review engine."""

    def __init__(self, working_directory: Path | str) -> None:
        self.working_directory = Path(working_directory)

    def _run(self, args: Sequence[str]) -> str:
        logger.debug("git %s", " ".join(args))
        result = run_git(args, self.working_directory)
        if not result.success:
            raise GitCommandError(
                f"git {' '.join(args)} failed with exit code {result.returncode}: "
                f"{result.stderr.strip()}",
                args=args,
                returncode=result.returncode,
                stderr=result.stderr,
            )
        return result.stdout

    def add_config(self, key: str, value: str) -> None:
        """Set a repository-local config value."""
        self._run(["config", "--local", key, value])

    def fetch(self) -> None:
        self._run(["fetch"])

    def diff(self, args: Sequence[str]) -> str:
        """Return ``git diff`` output for the given arguments."""
        return self._run(["diff", *args])
