"""Changed-file resolution against the pull request target branch."""

from __future__ import annotations

import logging
from typing import Protocol

logger = logging.getLogger(__name__)

# Extensions of files that never produce a reviewable text patch.
BINARY_EXTENSIONS: frozenset[str] = frozenset(
    {
        # Images
        "bmp", "cur", "dds", "gif", "heic", "heif", "icns", "ico", "jpeg", "jpg",
        "jxl", "pbm", "pgm", "png", "ppm", "psd", "raw", "tga", "tif", "tiff",
        "webp", "xcf",
        # Audio and video
        "aac", "aiff", "avi", "flac", "flv", "m4a", "m4v", "mid", "midi", "mkv",
        "mov", "mp3", "mp4", "mpeg", "mpg", "ogg", "opus", "wav", "webm", "wma",
        "wmv",
        # Archives and packages
        "7z", "apk", "bz2", "cab", "deb", "dmg", "egg", "gz", "iso", "jar", "lz",
        "lzma", "nupkg", "rar", "rpm", "tar", "tbz2", "tgz", "txz", "war", "whl",
        "xz", "zip", "zst",
        # Executables and compiled objects
        "a", "bin", "class", "dat", "dll", "dylib", "exe", "lib", "msi", "o",
        "obj", "pdb", "pyc", "pyd", "pyo", "so", "wasm",
        # Documents
        "doc", "docx", "odp", "ods", "odt", "pdf", "ppt", "pptx", "xls", "xlsx",
        # Fonts
        "eot", "otf", "ttc", "ttf", "woff", "woff2",
        # Databases and misc
        "db", "mdb", "sqlite", "sqlite3", "swf", "pkl", "npy", "npz",
    }
)
NAME_ONLY_DIFF_FILTER = "--diff-filter=AM"


class DiffSource(Protocol):
    """Version-control operations needed to resolve a change set."""

    def add_config(self, key: str, value: str) -> None: ...

    def fetch(self) -> None: ...

    def diff(self, args: list[str]) -> str: ...


def get_file_extension(path: str) -> str:
    """Return the text after the last '.' of the final path segment.

    Names without a '.' and dotfiles such as '.gitignore' have no extension.
    """
    file_name = path.rsplit("/", 1)[-1]
    stem, separator, extension = file_name.rpartition(".")
    if not separator or not stem:
        return ""
    return extension


def is_binary_path(path: str) -> bool:
    return get_file_extension(path).lower() in BINARY_EXTENSIONS


class ChangeSetResolver:
    """Lists files added or modified relative to a target branch."""

    def __init__(self, git: DiffSource) -> None:
        self._git = git

    def prepare(self) -> None:
        """Make diff output plain text and refresh remote-tracking refs."""
        self._git.add_config("core.pager", "cat")
        self._git.add_config("core.quotepath", "false")
        self._git.fetch()

    def resolve(self, target_branch_ref: str) -> list[str]:
        """Return reviewable changed paths in diff order.

        Deleted files are excluded by the diff filter. An empty diff yields an
        empty list.
        """
        self.prepare()
        names_output = self._git.diff([target_branch_ref, "--name-only", NAME_ONLY_DIFF_FILTER])
        files = [line.strip() for line in names_output.splitlines() if line.strip()]
        non_binary_files = [path for path in files if not is_binary_path(path)]

        skipped = len(files) - len(non_binary_files)
        if skipped:
            logger.info("Skipped %d binary file(s).", skipped)
        logger.info(
            "Changed Files (excluding binary files):\n%s",
            "\n".join(non_binary_files) or "(none)",
        )
        return non_binary_files
