"""
Utilities for handling file paths, package file names, and URL parsing.
"""

from pathlib import Path

from pathvalidate import sanitize_filename
from yarl import URL

PACKAGE_EXTENSION = ".ipa"
MAX_FILE_NAME_LEN = 255


def parse_package_url(url: str) -> URL | None:
    """
    Parses a saved link into a URL that can be requested.
    Returns None unless it is an absolute http(s) URL with a host.
    """
    if not url or any(c.isspace() for c in url.strip()):
        return None
    try:
        parsed = URL(url.strip())
    except (ValueError, TypeError):
        return None
    if parsed.scheme not in ("http", "https") or not parsed.host:
        return None
    return parsed


def create_dir(directory_path: Path) -> None:
    """Creates a directory if it does not already exist."""
    directory_path.mkdir(parents=True, exist_ok=True)


def package_file_name(
    display_name: str, fallback: str = "downloaded", suffix: str = ""
) -> str:
    """
    Builds a safe `.ipa` file name from a display name. The name is shortened
    so that, with `suffix` and the extension appended, it still fits in a
    single path component.
    """
    max_len = MAX_FILE_NAME_LEN - len(suffix) - len(PACKAGE_EXTENSION)
    stem = sanitize_filename(display_name.strip(), platform="auto", max_len=max_len)
    return f"{stem or fallback}{suffix}{PACKAGE_EXTENSION}"
