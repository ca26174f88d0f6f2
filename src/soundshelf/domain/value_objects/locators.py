"""Media locators (urls) and helpers for local file access.

Hey future me - a "url" on the shelf is a plain string, either a file:// url for local media
or anything else (http, smb...) for remote media. Local and remote are treated uniformly by
the merge code, it only ever compares NORMALIZED urls. Always run incoming paths through
to_url()/normalize_url() before storing them on a Track, otherwise "/music/a.flac" and
"file:///music/./a.flac" won't be recognised as the same source!
"""

import logging
import os
import posixpath
from datetime import UTC, datetime
from pathlib import Path
from urllib.parse import quote, unquote, urlsplit

logger = logging.getLogger(__name__)

FILE_SCHEME = "file"


def to_url(path: str | os.PathLike[str]) -> str:
    """Convert a local path to a normalized absolute file url."""
    return Path(os.path.abspath(os.fspath(path))).as_uri()


def is_local(url: str) -> bool:
    """Check whether url points at the local file system."""
    return urlsplit(url).scheme in ("", FILE_SCHEME)


def to_path(url: str) -> Path | None:
    """Local path for a file url, None for remote urls."""
    parts = urlsplit(url)
    if parts.scheme == "":
        return Path(os.path.abspath(url))
    if parts.scheme != FILE_SCHEME:
        return None
    return Path(unquote(parts.path))


def normalize_url(url: str) -> str:
    """Normalize url so equal resources compare equal as strings.

    File urls are made absolute with "." and ".." segments collapsed and
    percent-encoding canonicalized. Remote urls get a lowercase scheme and
    host with their path collapsed the same way.

    Args:
        url: File url, bare local path or remote url

    Returns:
        Normalized url string
    """
    path = to_path(url)
    if path is not None:
        return to_url(path)
    parts = urlsplit(url)
    collapsed = posixpath.normpath(unquote(parts.path)) if parts.path else ""
    if parts.path.endswith("/") and not collapsed.endswith("/"):
        collapsed += "/"
    rebuilt = f"{parts.scheme.lower()}://{parts.netloc.lower()}{quote(collapsed)}"
    if parts.query:
        rebuilt += f"?{parts.query}"
    return rebuilt


def extension(url: str) -> str:
    """Lowercase file extension including the dot ("" if none)."""
    return posixpath.splitext(unquote(urlsplit(url).path))[1].lower()


def stem(url: str) -> str:
    """Last path component without its extension."""
    name = posixpath.basename(unquote(urlsplit(url).path).rstrip("/"))
    return posixpath.splitext(name)[0]


def parent_url(url: str) -> str:
    """Url of the directory containing url."""
    path = to_path(url)
    if path is not None:
        return to_url(path.parent)
    parts = urlsplit(url)
    parent = posixpath.dirname(parts.path.rstrip("/"))
    return f"{parts.scheme}://{parts.netloc}{parent}"


def is_directory(url: str) -> bool:
    """Check whether url is a local directory (remote urls never are)."""
    path = to_path(url)
    return path is not None and path.is_dir()


def is_hidden(url: str) -> bool:
    """Dot-files are hidden."""
    name = posixpath.basename(unquote(urlsplit(url).path).rstrip("/"))
    return name.startswith(".")


# Yo, returning None here means "we don't know" - callers (DiscoverLog) treat that as
# "changed" and re-process the url. Remote urls always land here, so they're always
# re-discovered. That's intentional, we have no cheap way to ask a server for an mtime.
def modification_time(url: str) -> datetime | None:
    """Last content modification time of a local url as UTC datetime.

    Returns:
        Aware UTC datetime, or None when the time cannot be read
    """
    path = to_path(url)
    if path is None:
        return None
    try:
        return datetime.fromtimestamp(path.stat().st_mtime, UTC)
    except OSError as e:
        logger.debug("Cannot read modification time of %s: %s", url, e)
        return None


def display_name(url: str) -> str:
    """Path for local urls, the url itself otherwise (used in error messages)."""
    path = to_path(url)
    return str(path) if path is not None else url
