"""
core/media.py -- Local avatar host.

Stands in for the external image host: takes the raw bytes of an uploaded
image, writes them under MEDIA_DIR with a random name, and returns the public
URL under MEDIA_BASE_URL. Swapping in a real CDN means replacing this class;
callers only depend on save() returning a URL.

Filenames from the client are never used on disk. Only the extension is
derived, and only from the validated content type, which rules out path
traversal through the upload name.

Usage:
    media = AvatarStore(Path("media"), "/media", max_bytes=2 * 1024 * 1024)
    url = media.save("image/png", data)
"""

from __future__ import annotations

import logging
import secrets
from pathlib import Path

logger = logging.getLogger("tradepost.media")

_EXTENSIONS: dict[str, str] = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
}


class MediaError(ValueError):
    """The upload was rejected (wrong type, empty, or too large)."""


class AvatarStore:
    def __init__(self, root: Path, base_url: str, max_bytes: int) -> None:
        self.root = root
        self.base_url = base_url.rstrip("/")
        self.max_bytes = max_bytes
        self.root.mkdir(parents=True, exist_ok=True)

    def save(self, content_type: str, content: bytes) -> str:
        """Store an image and return its public URL.

        Raises MediaError for unsupported types, empty files, or files over
        max_bytes. OSError from the filesystem propagates.
        """
        ext = _EXTENSIONS.get((content_type or "").lower())
        if ext is None:
            raise MediaError("Avatar must be a JPEG, PNG, GIF or WebP image.")
        if not content:
            raise MediaError("Avatar file is empty.")
        if len(content) > self.max_bytes:
            raise MediaError(f"Avatar file exceeds {self.max_bytes // 1024} KB.")

        name = f"{secrets.token_hex(16)}{ext}"
        (self.root / name).write_bytes(content)
        logger.info("Stored avatar %s (%d bytes)", name, len(content))
        return f"{self.base_url}/{name}"
