"""
Artifact naming - Derive the uploaded filename for a buildpack path.

The derived name is compared against the filename the Cloud Controller
reports, which is how a changed artifact is detected without hashing.
"""

import os
import posixpath
import stat
from urllib.parse import urlparse

from cloudfoundry.errors import LocalResolutionError

# Directories are always zipped before upload.
ARCHIVE_SUFFIX = ".zip"


def is_web_url(path: str) -> bool:
    """Return True if path is an http(s) URL."""
    return urlparse(path).scheme in ("http", "https")


def generate_filename(path: str) -> str:
    """
    Derive the artifact filename for a buildpack path.

    Args:
        path: Web URL, local file or local directory

    Returns:
        The base name of the URL path or of the resolved local path, with
        ARCHIVE_SUFFIX appended for directories.

    Raises:
        LocalResolutionError: If a local path cannot be resolved, or a URL
            has no path to name the artifact after.
    """
    if is_web_url(path):
        filename = posixpath.basename(urlparse(path).path.rstrip("/"))
        if not filename:
            raise LocalResolutionError(f"Cannot derive a filename from URL {path}")
        return filename

    try:
        resolved = os.path.abspath(path)
        is_dir = stat.S_ISDIR(os.stat(resolved).st_mode)
    except (OSError, ValueError) as e:
        raise LocalResolutionError(f"Cannot resolve buildpack path {path}: {e}") from e

    filename = os.path.basename(resolved)
    if is_dir:
        filename += ARCHIVE_SUFFIX
    return filename
