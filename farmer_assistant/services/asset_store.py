"""
AssetStore for direct image uploads to MinIO/S3 object storage.

The client never holds long-lived storage keys: the backend issues a
short-lived credential (temporary access key, secret and session token,
scoped to one bucket and object name) and the upload goes straight to the
object store with it.
"""

import io
import logging
from typing import BinaryIO, Optional, Tuple

import urllib3
from minio import Minio
from minio.error import S3Error
from PIL import Image, UnidentifiedImageError
from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)


class AssetUploadError(Exception):
    """
    Raised when an image cannot be uploaded to the object store.

    This exception is raised when:
    - The object store is unreachable
    - The issued credential is rejected or expired
    - The image cannot be re-encoded before upload

    Example:
        >>> try:
        ...     store.upload_image(data, "farm/abc.jpg")
        ... except AssetUploadError as e:
        ...     print(f"Upload error: {e}")
        Upload error: Failed to upload 'farm/abc.jpg': ...
    """

    pass


class UploadCredential(BaseModel):
    """Server-issued credential for one signed upload."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    endpoint: str = Field(..., description="Object store host[:port]")
    bucket: str = Field(..., description="Target bucket")
    object_name: str = Field(..., alias="objectName", description="Key to write")
    access_key: str = Field(..., alias="accessKey")
    secret_key: str = Field(..., alias="secretKey")
    session_token: Optional[str] = Field(None, alias="sessionToken")
    secure: bool = Field(True, description="Use HTTPS")
    public_base_url: Optional[str] = Field(
        None, alias="publicBaseUrl", description="CDN/base URL for public links"
    )


class AssetStore:
    """
    Uploads images with one issued credential.

    Example:
        >>> store = AssetStore(credential)
        >>> url, asset_id = store.upload_image(io.BytesIO(jpeg), credential.object_name)
        >>> print(url)
        https://assets.example.com/farm-images/user_abc/tree.jpg
    """

    def __init__(self, credential: UploadCredential):
        self._credential = credential

        # Disable SSL warnings for development
        if not credential.secure:
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

        try:
            self._client = Minio(
                credential.endpoint,
                access_key=credential.access_key,
                secret_key=credential.secret_key,
                session_token=credential.session_token,
                secure=credential.secure,
            )
        except ValueError as e:
            raise AssetUploadError(
                f"Invalid object store endpoint '{credential.endpoint}': {e}"
            ) from e

    @property
    def bucket_name(self) -> str:
        return self._credential.bucket

    def upload_image(
        self, file_data: BinaryIO, filename: str, content_type: str = "image/jpeg"
    ) -> Tuple[str, str]:
        """
        Upload an image and return its public URL and asset identifier.

        Args:
            file_data: File-like object containing image data
            filename: Object name to write (normally the credential's object_name)
            content_type: MIME type of the file (default: image/jpeg)

        Returns:
            (public URL, asset id); the asset id is ``bucket/object_name``

        Raises:
            AssetUploadError: If upload fails
        """
        try:
            self._client.put_object(
                bucket_name=self.bucket_name,
                object_name=filename,
                data=file_data,
                length=-1,  # Unknown size, stream until EOF
                part_size=10 * 1024 * 1024,  # 10MB parts
                content_type=content_type,
            )
        except (S3Error, urllib3.exceptions.HTTPError, ValueError) as e:
            raise AssetUploadError(f"Failed to upload '{filename}': {e}") from e

        logger.info(f"Uploaded {filename} to bucket {self.bucket_name}")
        return self._get_public_url(filename), f"{self.bucket_name}/{filename}"

    def _get_public_url(self, filename: str) -> str:
        """
        Generate public access URL for a file.

        Args:
            filename: Name of the file in the bucket

        Returns:
            Full HTTP URL to access the file
        """
        if self._credential.public_base_url:
            return f"{self._credential.public_base_url.rstrip('/')}/{filename}"
        protocol = "https" if self._credential.secure else "http"
        return f"{protocol}://{self._credential.endpoint}/{self.bucket_name}/{filename}"


def prepare_image_for_upload(
    image_bytes: bytes, max_dimension: int = 1280, quality: int = 85
) -> bytes:
    """
    Shrink and re-encode an image as JPEG before upload.

    Images already within ``max_dimension`` keep their size but are still
    re-encoded. EXIF is carried over so the uploaded copy keeps its GPS tags.

    Raises:
        AssetUploadError: If the bytes are not a readable image
    """
    try:
        with Image.open(io.BytesIO(image_bytes)) as img:
            exif = img.getexif()
            img = img.convert("RGB")
            img.thumbnail((max_dimension, max_dimension))
            buffer = io.BytesIO()
            img.save(buffer, format="JPEG", quality=quality, exif=exif)
    except (UnidentifiedImageError, OSError) as e:
        raise AssetUploadError(f"Cannot prepare image for upload: {e}") from e
    return buffer.getvalue()
