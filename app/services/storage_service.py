"""
Reference image storage (Firebase Storage bucket or local uploads directory)
"""

import io
import logging
import os
import time
from dataclasses import dataclass

from PIL import Image, UnidentifiedImageError

from app.core.config import settings
from app.services.firebase_client import get_storage_bucket

logger = logging.getLogger(__name__)

class ImageUploadError(ValueError):
    error_code = "invalid_image"

@dataclass
class StoredImage:
    url: str
    width: int
    height: int

class StorageService:
    """Service for storing table reference images"""

    @staticmethod
    def image_size(content: bytes) -> tuple:
        """Natural pixel size of an encoded image"""
        try:
            with Image.open(io.BytesIO(content)) as img:
                width, height = img.size
        except (UnidentifiedImageError, OSError) as e:
            raise ImageUploadError(f"Uploaded file is not a readable image: {e}") from None
        if width <= 0 or height <= 0:
            raise ImageUploadError("Uploaded image has no size")
        return width, height

    @staticmethod
    def object_name(table_id: str, filename: str) -> str:
        ext = os.path.splitext(filename or "")[1].lower()
        if ext not in settings.ALLOWED_IMAGE_EXTENSIONS:
            raise ImageUploadError(
                f"Invalid file format. Allowed: {', '.join(settings.ALLOWED_IMAGE_EXTENSIONS)}"
            )
        return f"{table_id}_{int(time.time() * 1000)}{ext}"

    @staticmethod
    def save_table_image(table_id: str, filename: str, content: bytes, content_type: str = None) -> StoredImage:
        """Validate, store and measure an uploaded table image"""
        if len(content) > settings.MAX_UPLOAD_SIZE:
            raise ImageUploadError("Image exceeds the maximum upload size")
        name = StorageService.object_name(table_id, filename)
        width, height = StorageService.image_size(content)

        bucket = get_storage_bucket()
        if bucket is not None:
            blob = bucket.blob(f"table-images/{name}")
            blob.upload_from_string(content, content_type=content_type)
            blob.make_public()
            url = blob.public_url
        else:
            os.makedirs(settings.UPLOAD_DIR, exist_ok=True)
            with open(os.path.join(settings.UPLOAD_DIR, name), "wb") as f:
                f.write(content)
            url = f"{settings.BASE_URL}/uploads/{name}"

        logger.info("Stored image for table %s (%dx%d) at %s", table_id, width, height, url)
        return StoredImage(url=url, width=width, height=height)
