"""Download product images into the local image directory."""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

import httpx

from shopsync.adapters.http_resilience import ResilientClient, default_client_factory
from shopsync.config.distributor import build_image_resilience
from shopsync.domain.ports.fetching import ImageFetcher

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from shopsync.config.http_resilience import ResilienceConfig

log = getLogger(__name__)

MAX_IMAGE_BYTES = 5 * 1024 * 1024
IMAGE_EXTENSIONS = ("jpg", "png", "gif")
_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def image_extension(content: bytes) -> str | None:
    """Return the file extension for a JPEG, PNG or GIF payload, else ``None``."""

    if content.startswith(b"\xff\xd8\xff"):
        return "jpg"
    if content.startswith(b"\x89PNG\r\n\x1a\n"):
        return "png"
    if content[:6] in (b"GIF87a", b"GIF89a"):
        return "gif"
    return None


def image_stem(sku: str) -> str:
    return _UNSAFE_CHARS.sub("_", sku.strip()) or "image"


@dataclass(slots=True)
class HttpImageFetcher:
    """Stores ``<sku>.<ext>`` under ``images_dir`` and returns the file name.

    An image already stored for the SKU is reused. Otherwise the URL is checked with HEAD,
    downloaded and kept only if its signature is a known image format. Failures are logged
    and reported as ``None`` so the caller simply leaves the product without an image.
    """

    images_dir: Path
    resilience: ResilienceConfig = field(default_factory=build_image_resilience)
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=default_client_factory
    )
    max_bytes: int = MAX_IMAGE_BYTES

    def __call__(self, sku: str, url: str) -> str | None:
        existing = self.find_existing(sku)
        if existing is not None:
            return existing.name
        try:
            return asyncio.run(self._download(sku, url))
        except httpx.HTTPError as exc:
            log.warning("Image download for %s failed: %s", sku, exc)
            return None
        except OSError as exc:
            log.warning("Could not store image for %s in %s: %s", sku, self.images_dir, exc)
            return None

    def find_existing(self, sku: str) -> Path | None:
        stem = image_stem(sku)
        for extension in IMAGE_EXTENSIONS:
            candidate = self.images_dir / f"{stem}.{extension}"
            if candidate.is_file():
                return candidate
        return None

    async def _download(self, sku: str, url: str) -> str | None:
        async with self.client_factory(self.resilience) as client:
            head = await client.head(url, follow_redirects=True)
            if head.status_code != httpx.codes.OK:
                log.info("No image for %s (HEAD %s)", sku, head.status_code)
                return None
            response = await client.get(url, follow_redirects=True)
        response.raise_for_status()

        content = response.content
        if not content or len(content) > self.max_bytes:
            log.warning("Image for %s rejected: %d bytes", sku, len(content))
            return None
        extension = image_extension(content)
        if extension is None:
            log.warning("Image for %s is not a JPEG, PNG or GIF", sku)
            return None

        self.images_dir.mkdir(parents=True, exist_ok=True)
        target = self.images_dir / f"{image_stem(sku)}.{extension}"
        target.write_bytes(content)
        log.debug("Stored image for %s at %s", sku, target)
        return target.name


if TYPE_CHECKING:
    _image_check: ImageFetcher = HttpImageFetcher(images_dir=Path())
