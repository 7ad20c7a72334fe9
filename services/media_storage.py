"""Storage for generated media (portraits, scene images, audio).

`LocalMediaStorage` writes files under a root directory and hands back
file:// URLs. Anything with the same `upload`/`delete` shape can replace it.
"""

import logging
import os
import re
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol

from config.settings import get_env_settings

logger = logging.getLogger(__name__)


@dataclass
class StoredMedia:
    """Location of an uploaded file."""

    url: str
    id: str


class MediaStorage(Protocol):
    def upload(self, data: bytes, name: str, folder: str) -> StoredMedia:
        ...

    def delete(self, media_id: str) -> bool:
        ...


def _safe_component(value: str) -> str:
    return re.sub(r"[^A-Za-z0-9._-]+", "_", value).strip("._") or "file"


class LocalMediaStorage:
    """Filesystem-backed media storage."""

    def __init__(self, root: Optional[str] = None):
        self.root = Path(root or get_env_settings().media_dir)
        self.root.mkdir(parents=True, exist_ok=True)

    def upload(self, data: bytes, name: str, folder: str) -> StoredMedia:
        stem, ext = os.path.splitext(name)
        filename = f"{_safe_component(stem)}_{uuid.uuid4().hex[:8]}{ext}"
        directory = self.root / _safe_component(folder)
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / filename
        path.write_bytes(data)

        media_id = f"{directory.name}/{filename}"
        logger.info("Stored media %s (%d bytes)", media_id, len(data))
        return StoredMedia(url=path.resolve().as_uri(), id=media_id)

    def delete(self, media_id: str) -> bool:
        path = (self.root / media_id).resolve()
        if self.root.resolve() not in path.parents or not path.is_file():
            logger.warning("Cannot delete unknown media %s", media_id)
            return False
        path.unlink()
        logger.info("Deleted media %s", media_id)
        return True
