"""
Image capture policy: decide which discovered images are worth downloading.
"""

import hashlib
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .fetcher import WebFetcher


UNSAFE_FILENAME_CHARS = re.compile(r'[^A-Za-z0-9 ]')

# Most filesystems cap a name at 255 bytes
MAX_FILENAME_STEM = 200


@dataclass
class ImageDecision:
    """Outcome of filtering one image URL."""
    url: str
    accepted: bool
    filename: Optional[str] = None
    reason: Optional[str] = None
    saved: bool = False
    error: Optional[str] = None


def image_filename(url: str, content_type: str) -> str:
    """
    Derive a filesystem-safe name from an image URL.

    Everything outside [A-Za-z0-9 ] is stripped from the URL and the subtype
    of the content type is used as the extension, so
    ``http://x/y.png?z=1`` with ``image/png`` becomes ``httpxypngz1.png``.
    Stems longer than MAX_FILENAME_STEM are truncated and suffixed with a
    digest of the full URL.
    """
    subtype = content_type.split(';', 1)[0].strip().split('/', 1)[-1]
    stem = UNSAFE_FILENAME_CHARS.sub('', url)
    if len(stem) > MAX_FILENAME_STEM:
        digest = hashlib.sha256(url.encode('utf-8')).hexdigest()[:16]
        stem = f"{stem[:MAX_FILENAME_STEM - len(digest)]}{digest}"
    return f"{stem}.{subtype[:32]}"


class ImageFilter:
    """Accepts images by minimum size and declared content type."""

    def __init__(self, fetcher: WebFetcher, media_directory: str = "media",
                 min_image_size: int = 0):
        self.fetcher = fetcher
        self.media_directory = Path(media_directory)
        self.min_image_size = min_image_size
        self.logger = logging.getLogger(__name__)

    async def evaluate(self, image_url: str) -> ImageDecision:
        """Apply the size and content-type checks to one image."""
        if self.min_image_size:
            size = await self.fetcher.head_size(image_url)
            if size < self.min_image_size:
                return ImageDecision(image_url, False, reason=f"size {size} below {self.min_image_size}")

        content_type = (await self.fetcher.content_type(image_url)).strip().lower()
        if not content_type.startswith('image/'):
            return ImageDecision(image_url, False, reason=f"content type {content_type!r}")

        return ImageDecision(image_url, True, filename=image_filename(image_url, content_type))

    async def accept(self, image_url: str) -> bool:
        return (await self.evaluate(image_url)).accepted

    def destination(self, filename: str) -> Path:
        return self.media_directory / filename

    async def capture(self, image_url: str) -> ImageDecision:
        """
        Download an accepted image unless a file with its derived name exists.

        The returned decision has `saved` set only when a new file was written
        and `error` set when the download failed.
        """
        decision = await self.evaluate(image_url)
        if not decision.accepted:
            self.logger.debug(f"Rejected image {image_url}: {decision.reason}")
            return decision

        dest_path = self.destination(decision.filename)
        try:
            if dest_path.exists():
                self.logger.debug(f"Image already saved: {dest_path}")
                return decision
        except OSError as e:
            self.logger.warning(f"Cannot check image destination {dest_path}: {e}")
            decision.error = f"{type(e).__name__}: {e}"
            return decision

        result = await self.fetcher.fetch_to_file(image_url, dest_path)
        if not result.ok:
            self.logger.warning(f"Image download failed for {image_url}: {result.error}")
            decision.error = result.error
            return decision

        decision.saved = True
        self.logger.debug(f"Saved image {image_url} to {dest_path}")
        return decision
