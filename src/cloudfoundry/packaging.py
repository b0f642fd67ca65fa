"""
Buildpack packaging - Turn a directory, zip file or URL into an upload.

Directories are zipped into a temporary file; existing zip files are opened
as-is; web URLs are downloaded to a temporary file first.
"""

import asyncio
import logging
import os
import tempfile
import zipfile
from typing import BinaryIO, Tuple

import aiohttp

from artifacts import is_web_url
from cloudfoundry.errors import LocalResolutionError

logger = logging.getLogger(__name__)

DOWNLOAD_CHUNK_SIZE = 64 * 1024


def zip_directory(directory: str) -> BinaryIO:
    """
    Zip the contents of a directory into a temporary file.

    Entries are stored relative to the directory, so the archive root is the
    buildpack root.

    Args:
        directory: Path to the buildpack directory

    Returns:
        Temporary file positioned at the start of the archive.
    """
    archive = tempfile.TemporaryFile(suffix=".zip")
    try:
        with zipfile.ZipFile(archive, "w", zipfile.ZIP_DEFLATED) as zf:
            for root, dirs, files in os.walk(directory):
                dirs.sort()
                rel_root = os.path.relpath(root, directory)
                if rel_root != ".":
                    zf.write(root, rel_root)
                for name in sorted(files):
                    full_path = os.path.join(root, name)
                    zf.write(full_path, os.path.relpath(full_path, directory))
    except (OSError, zipfile.BadZipFile) as e:
        archive.close()
        raise LocalResolutionError(f"Failed to zip {directory}: {e}") from e

    archive.seek(0)
    return archive


def open_zip_file(path: str) -> BinaryIO:
    """Open an existing zip archive for upload."""
    if not zipfile.is_zipfile(path):
        raise LocalResolutionError(f"{path} is not a valid zip file")
    try:
        return open(path, "rb")
    except OSError as e:
        raise LocalResolutionError(f"Failed to open {path}: {e}") from e


async def download(url: str, timeout: aiohttp.ClientTimeout) -> BinaryIO:
    """
    Download a buildpack archive into a temporary file.

    Args:
        url: Web URL of the archive
        timeout: Transport timeout for the download

    Returns:
        Temporary file positioned at the start of the download.
    """
    archive = tempfile.TemporaryFile(suffix=".zip")
    try:
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.get(url) as response:
                if response.status != 200:
                    raise LocalResolutionError(
                        f"Failed to download {url}: HTTP {response.status}"
                    )
                async for chunk in response.content.iter_chunked(DOWNLOAD_CHUNK_SIZE):
                    archive.write(chunk)
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        archive.close()
        raise LocalResolutionError(f"Failed to download {url}: {e}") from e
    except LocalResolutionError:
        archive.close()
        raise

    archive.seek(0)
    logger.info(f"Downloaded buildpack from {url}")
    return archive


async def package(
    path: str, timeout: aiohttp.ClientTimeout
) -> Tuple[BinaryIO, int]:
    """
    Package a buildpack path for upload.

    Args:
        path: Directory, zip file or web URL
        timeout: Transport timeout used for URL downloads

    Returns:
        Tuple of (open binary file, size in bytes).

    Raises:
        LocalResolutionError: If the path cannot be packaged.
    """
    if is_web_url(path):
        archive = await download(path, timeout)
    else:
        local_path = os.path.abspath(path)
        if os.path.isdir(local_path):
            archive = zip_directory(local_path)
        elif os.path.isfile(local_path):
            archive = open_zip_file(local_path)
        else:
            raise LocalResolutionError(f"Buildpack path {path} does not exist")

    archive.seek(0, os.SEEK_END)
    size = archive.tell()
    archive.seek(0)
    return archive, size
