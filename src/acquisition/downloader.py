# src/acquisition/downloader.py — v1
"""Streamed image download into a staging file.

The download lands in a hidden ``.part`` file next to its target and is
verified with Pillow before anything is moved into place. ``StagedFile``
then installs it, keeping a backup of any file it replaces until the
manifest write has succeeded.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from urllib.parse import urlparse

import httpx
from PIL import Image, UnidentifiedImageError

from imgacquire.cache.fingerprint import file_sha256
from imgacquire.core.errors import DownloadFailedError, WriteFailedError
from imgacquire.storage import layout

logger = logging.getLogger(__name__)

DEFAULT_EXTENSION = ".jpg"


@dataclass
class StagedFile:
    """A verified download waiting to be installed at ``target``."""

    part: Path
    target: Path
    width: int
    height: int
    sha256: str
    content_type: str | None = None
    _backup: Path | None = field(default=None, init=False, repr=False)
    _installed: bool = field(default=False, init=False, repr=False)

    def install(self) -> None:
        """Move the download into place, backing up an existing target."""
        try:
            if self.target.exists():
                self._backup = layout.backup_path(self.target)
                os.replace(self.target, self._backup)
            os.replace(self.part, self.target)
            self._installed = True
        except OSError as e:
            self.rollback()
            raise WriteFailedError(f"Could not install {self.target.name}: {e}") from e

    def finalize(self) -> None:
        """Drop the backup once the new file is committed."""
        if self._backup is not None:
            self._backup.unlink(missing_ok=True)
            self._backup = None

    def rollback(self) -> None:
        """Undo install (or discard the staging file) and restore any backup."""
        self.part.unlink(missing_ok=True)
        if self._installed:
            self.target.unlink(missing_ok=True)
            self._installed = False
        if self._backup is not None:
            os.replace(self._backup, self.target)
            self._backup = None


def extension_for(content_type: str | None, url: str) -> str:
    """File extension from the response content type, else the URL, else .jpg."""
    if content_type:
        mime = content_type.split(";", 1)[0].strip().lower()
        if mime in layout.CONTENT_TYPE_EXTENSIONS:
            return layout.CONTENT_TYPE_EXTENSIONS[mime]
    suffix = PurePosixPath(urlparse(url).path).suffix.lower()
    if suffix in layout.IMAGE_EXTENSIONS:
        return ".jpg" if suffix == ".jpeg" else suffix
    return DEFAULT_EXTENSION


class Downloader:
    """Downloads candidate images with a shared httpx client."""

    def __init__(
        self,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._timeout = timeout
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client (lazy initialization)."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self._timeout, follow_redirects=True)
        return self._client

    async def download(self, url: str, directory: Path, stem: str) -> StagedFile:
        """Download ``url`` to a staging file for ``directory/stem.<ext>``.

        Raises:
            DownloadFailedError: Transport error, bad status or not an image.
            WriteFailedError: The staging file could not be written.
        """
        client = await self._get_client()
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise WriteFailedError(f"Could not create {directory}: {e}") from e

        part: Path | None = None
        try:
            async with client.stream("GET", url, follow_redirects=True) as response:
                if response.status_code != 200:
                    raise DownloadFailedError(
                        f"Download of {url} failed with HTTP {response.status_code}"
                    )
                content_type = response.headers.get("content-type")
                target = directory / f"{stem}{extension_for(content_type, url)}"
                part = layout.part_path(target)
                try:
                    with open(part, "wb") as f:
                        async for chunk in response.aiter_bytes():
                            f.write(chunk)
                except OSError as e:
                    raise WriteFailedError(f"Could not write {part.name}: {e}") from e
        except httpx.HTTPError as e:
            if part is not None:
                part.unlink(missing_ok=True)
            raise DownloadFailedError(f"Download of {url} failed: {e}") from e
        except BaseException:
            # Includes cancellation: never leave a staging file behind
            if part is not None:
                part.unlink(missing_ok=True)
            raise

        try:
            width, height = _verify_image(part)
        except DownloadFailedError:
            part.unlink(missing_ok=True)
            raise

        staged = StagedFile(
            part=part,
            target=target,
            width=width,
            height=height,
            sha256=file_sha256(part),
            content_type=content_type,
        )
        logger.info(
            "Downloaded %s (%dx%d, %d bytes)",
            target.name, width, height, part.stat().st_size,
        )
        return staged

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None


def _verify_image(path: Path) -> tuple[int, int]:
    """Check the file is a decodable image and return its size."""
    try:
        with Image.open(path) as img:
            width, height = img.size
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise DownloadFailedError(f"Downloaded file is not a valid image: {e}") from e
    return width, height
