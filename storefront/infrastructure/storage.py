"""Media object storage.

Product photos and chat attachments are written through ``MediaStorage``;
the local implementation serves files from ``media_root`` under
``media_base_url`` and the in-memory one backs the tests.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

import structlog

from storefront.infrastructure.config import settings

logger = structlog.get_logger()


class MediaStorage(Protocol):
    """Defines the operations the API needs from object storage."""

    def put(self, path: str, data: bytes, content_type: str) -> str:
        ...

    def get(self, path: str) -> bytes:
        ...

    def delete(self, path: str) -> None:
        ...


def _clean_path(path: str) -> str:
    parts = [part for part in path.replace("\\", "/").split("/") if part]
    if not parts or any(part in (".", "..") for part in parts):
        raise ValueError(f"Invalid media path: {path!r}")
    return "/".join(parts)


@dataclass
class InMemoryMediaStorage:
    """Test double for media storage."""

    base_url: str = "https://media.example.test"
    objects: dict[str, tuple[bytes, str]] = field(default_factory=dict)

    def put(self, path: str, data: bytes, content_type: str) -> str:
        key = _clean_path(path)
        self.objects[key] = (data, content_type)
        return f"{self.base_url.rstrip('/')}/{key}"

    def get(self, path: str) -> bytes:
        stored = self.objects.get(_clean_path(path))
        if stored is None:
            raise FileNotFoundError(path)
        return stored[0]

    def delete(self, path: str) -> None:
        self.objects.pop(_clean_path(path), None)


@dataclass
class LocalMediaStorage:
    """Filesystem storage served by the API's static ``/media`` mount."""

    root: str
    base_url: str

    def _target(self, path: str) -> Path:
        return Path(self.root) / _clean_path(path)

    def put(self, path: str, data: bytes, content_type: str) -> str:
        target = self._target(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        logger.debug(
            "Stored media object",
            path=str(target),
            size=len(data),
            content_type=content_type,
        )
        return f"{self.base_url.rstrip('/')}/{_clean_path(path)}"

    def get(self, path: str) -> bytes:
        return self._target(path).read_bytes()

    def delete(self, path: str) -> None:
        self._target(path).unlink(missing_ok=True)


_media_storage: MediaStorage | None = None


def get_media_storage() -> MediaStorage:
    """Get or create the configured media storage."""
    global _media_storage
    if _media_storage is None:
        _media_storage = LocalMediaStorage(
            root=settings.media_root,
            base_url=settings.media_base_url,
        )
    return _media_storage


def set_media_storage(storage: MediaStorage | None) -> None:
    """Replace the media storage (``None`` restores the default)."""
    global _media_storage
    _media_storage = storage
