"""Local image storage.

Images live under ``<base_dir>/<images_dir>`` and are addressed by locators
relative to ``base_dir`` (``images/<uuid>-<filename>``), which is also the
URL path they are served from.
"""

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Iterable, Optional, Union
from uuid import uuid4

from starlette.datastructures import UploadFile

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UploadedImage:
    file: UploadFile


@dataclass(frozen=True)
class ExistingImage:
    locator: str


ImageInput = Union[UploadedImage, ExistingImage]


def image_input(value) -> Optional[ImageInput]:
    """Turn the raw ``image`` form/JSON value into an ImageInput, or None when absent."""
    if isinstance(value, UploadFile):
        return UploadedImage(value) if value.filename else None
    if isinstance(value, str) and value.strip():
        return ExistingImage(value.strip())
    return None


class ImageStorage:
    def __init__(self, base_dir, images_dir: str = "images",
                 allowed_types: Iterable[str] = ("image/png", "image/jpg", "image/jpeg")):
        self.base_dir = Path(base_dir).resolve()
        self.images_dir = images_dir.strip("/")
        self.root = self.base_dir / self.images_dir
        self.allowed_types = tuple(allowed_types)

    def ensure_root(self):
        self.root.mkdir(parents=True, exist_ok=True)

    def accepts(self, upload: UploadFile) -> bool:
        return upload.content_type in self.allowed_types

    def save(self, upload: UploadFile) -> str:
        """Write the upload under the storage root and return its locator."""
        self.ensure_root()
        filename = f"{uuid4()}-{PurePosixPath(upload.filename).name}"
        with open(self.root / filename, "wb") as buffer:
            shutil.copyfileobj(upload.file, buffer)
        return f"{self.images_dir}/{filename}"

    def resolve(self, locator: str) -> Path:
        path = (self.base_dir / locator.lstrip("/")).resolve()
        if path == self.root or self.root not in path.parents:
            raise ValueError(f"{locator!r} is outside of {self.root}")
        return path

    def canonical(self, locator: str) -> Optional[str]:
        """Normalized locator for a path under the storage root, None for anything else."""
        try:
            path = self.resolve(locator)
        except ValueError:
            return None
        return path.relative_to(self.base_dir).as_posix()

    def exists(self, locator: str) -> bool:
        try:
            return self.resolve(locator).is_file()
        except ValueError:
            return False

    def delete(self, locator: str) -> bool:
        """Remove a stored image. Failures are logged and reported as False, never raised."""
        try:
            path = self.resolve(locator)
        except ValueError as exc:
            logger.warning("Refusing to delete image: %s", exc)
            return False

        try:
            path.unlink()
        except OSError as exc:
            logger.warning("Could not delete image %s: %s", locator, exc)
            return False

        logger.info("Deleted image %s", locator)
        return True
