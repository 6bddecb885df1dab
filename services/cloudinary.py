import cloudinary
import cloudinary.uploader
from cloudinary.exceptions import Error as CloudinaryError
from fastapi import UploadFile
from typing import Optional, Tuple

from core.config import settings
from core.logging import get_logger

logger = get_logger(__name__)

MAX_IMAGE_BYTES = 5 * 1024 * 1024  # 5MB


class InvalidImageError(ValueError):
    pass


async def read_image_upload(file: UploadFile) -> bytes:
    """Read an uploaded image, rejecting non-images and files over 5MB."""
    if not file.content_type or not file.content_type.startswith("image/"):
        raise InvalidImageError("File must be an image")
    data = await file.read()
    if not data:
        raise InvalidImageError("Empty file")
    if len(data) > MAX_IMAGE_BYTES:
        raise InvalidImageError("File size must be less than 5MB")
    return data


class CloudinaryService:
    def __init__(self):
        cloudinary.config(
            cloud_name=settings.CLOUDINARY_CLOUD_NAME,
            api_key=settings.CLOUDINARY_API_KEY,
            api_secret=settings.CLOUDINARY_API_SECRET,
            secure=True
        )

    def upload_image(self, file_data: bytes, folder: str, public_id: str, **transformation) -> Tuple[bool, Optional[str], Optional[str]]:
        """
        Upload an image to Cloudinary, replacing any previous one with the same id.

        Returns:
            Tuple of (success: bool, url: Optional[str], error: Optional[str])
        """
        try:
            result = cloudinary.uploader.upload(
                file_data,
                public_id=public_id,
                folder=folder,
                overwrite=True,
                resource_type="image",
                format="webp",
                quality="auto",
                fetch_format="auto",
                **transformation,
            )
            return True, result.get("secure_url"), None

        except CloudinaryError as e:
            logger.warning("Cloudinary upload of %s/%s failed: %s", folder, public_id, e)
            return False, None, str(e)
        except Exception as e:
            logger.exception("Unexpected error uploading %s/%s", folder, public_id)
            return False, None, f"Unexpected error: {str(e)}"

    def upload_product_image(self, file_data: bytes, store_id: str, product_id: int) -> Tuple[bool, Optional[str], Optional[str]]:
        return self.upload_image(
            file_data,
            folder=f"stores/{store_id}/products",
            public_id=f"product_{product_id}",
            width=800,
            height=800,
            crop="limit",
        )

    def upload_store_image(self, file_data: bytes, store_id: str, kind: str) -> Tuple[bool, Optional[str], Optional[str]]:
        """``kind`` is ``logo`` or ``banner``."""
        size = {"width": 400, "height": 400, "crop": "fill"} if kind == "logo" else {"width": 1600, "height": 600, "crop": "fill"}
        return self.upload_image(file_data, folder=f"stores/{store_id}", public_id=kind, **size)


# Global instance
cloudinary_service = CloudinaryService()
