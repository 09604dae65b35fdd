# movie_maze/storage.py
import logging
import os
from typing import Iterable, Optional
from uuid import uuid4

from fastapi import UploadFile

from .config import Settings
from .errors import ServerError, ValidationError

URL_PREFIX = "/uploads"
_EXTENSIONS = {"image/jpeg": ".jpg", "image/png": ".png", "image/webp": ".webp"}


def ensure_upload_dir(settings: Settings) -> str:
    os.makedirs(settings.upload_dir, exist_ok=True)
    return settings.upload_dir


def image_url(filename: str, settings: Settings) -> str:
    return f"{settings.base_url}{URL_PREFIX}/{filename}"


def filename_from_url(url: str, settings: Settings) -> Optional[str]:
    """Maps an image URL back to the stored file name, or None for foreign URLs."""
    prefix = f"{settings.base_url}{URL_PREFIX}/"
    if not url.startswith(prefix):
        return None
    name = url[len(prefix):]
    # Only bare names produced by save_image
    if not name or os.path.basename(name) != name:
        return None
    return name


async def save_image(upload: UploadFile, settings: Settings) -> str:
    """Stores an uploaded image under a fresh uuid4 name and returns its URL."""
    if upload.content_type not in settings.allowed_image_types:
        raise ValidationError("Only image files are allowed (jpeg, png, webp).")

    data = await upload.read(settings.max_file_size + 1)
    if len(data) > settings.max_file_size:
        raise ValidationError(f"File size too large. Max allowed is {settings.max_file_size} bytes.")

    ext = _EXTENSIONS.get(upload.content_type) or os.path.splitext(upload.filename or "")[1].lower()
    filename = f"{uuid4()}{ext}"
    path = os.path.join(ensure_upload_dir(settings), filename)
    try:
        with open(path, "wb") as f:
            f.write(data)
    except OSError as e:
        logging.error(f"Failed to store upload {upload.filename}: {e}")
        raise ServerError("File upload failed.") from e

    logging.info(f"Stored upload {upload.filename} as {filename}")
    return image_url(filename, settings)


def delete_file(filename: str, settings: Settings) -> bool:
    path = os.path.join(settings.upload_dir, filename)
    if not os.path.exists(path):
        logging.warning(f"Upload {filename} already missing from {settings.upload_dir}")
        return False
    try:
        os.remove(path)
    except OSError as e:
        logging.error(f"Failed to delete upload {filename}: {e}")
        raise ServerError("Failed to delete file") from e
    return True


def delete_images(urls: Iterable[str], settings: Settings) -> int:
    """Deletes the locally stored files behind ``urls``; returns how many were removed."""
    removed = 0
    for url in urls:
        filename = filename_from_url(url, settings)
        if filename and delete_file(filename, settings):
            removed += 1
    return removed
