"""
MinIO (S3-compatible) client for post images.

Stores image bytes as objects under posts/ and hands out pre-signed URLs so
clients fetch images straight from MinIO instead of through the API.
"""
import base64
import binascii
import logging
import uuid
from io import BytesIO
from typing import Optional

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from social_api.config import settings
from social_api.errors import InternalError, ValidationError

logger = logging.getLogger(__name__)

_s3 = None

CONTENT_TYPES = {
    "jpeg": "image/jpeg",
    "jpg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
}


def init_minio() -> None:
    """Create the S3 client and ensure the media bucket exists."""
    global _s3
    scheme = "https" if settings.minio_use_ssl else "http"
    _s3 = boto3.client(
        "s3",
        endpoint_url=f"{scheme}://{settings.minio_endpoint}",
        aws_access_key_id=settings.minio_access_key,
        aws_secret_access_key=settings.minio_secret_key,
        config=Config(signature_version="s3v4"),
        region_name="us-east-1",
    )

    existing = [b["Name"] for b in _s3.list_buckets().get("Buckets", [])]
    if settings.minio_bucket not in existing:
        _s3.create_bucket(Bucket=settings.minio_bucket)
        logger.info("Created MinIO bucket '%s'", settings.minio_bucket)
    else:
        logger.info("MinIO bucket '%s' already exists", settings.minio_bucket)


def get_s3():
    if _s3 is None:
        raise RuntimeError("MinIO client not initialised — call init_minio() at startup")
    return _s3


def decode_image(image_base64: str) -> bytes:
    """Decode and size-check an uploaded image."""
    try:
        data = base64.b64decode(image_base64, validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError("Image must be valid base64") from None
    if not data:
        raise ValidationError("Image is empty")
    if len(data) > settings.media_max_bytes:
        raise ValidationError(
            f"Image exceeds the {settings.media_max_bytes // (1024 * 1024)}MB limit"
        )
    return data


def upload_image(image_base64: str, image_type: str) -> str:
    """
    Decode a base64 image, upload to MinIO, return the object key.
    Key format: posts/post-{uuid}.{ext}
    """
    if image_type not in CONTENT_TYPES:
        raise ValidationError("Only image files are allowed (jpeg, jpg, png, gif, webp)")
    data = decode_image(image_base64)
    key = f"posts/post-{uuid.uuid4()}.{image_type}"

    try:
        get_s3().put_object(
            Bucket=settings.minio_bucket,
            Key=key,
            Body=BytesIO(data),
            ContentType=CONTENT_TYPES[image_type],
        )
    except (BotoCoreError, ClientError, RuntimeError) as exc:
        logger.error("Image upload to MinIO failed: %s", exc)
        raise InternalError("Image upload failed") from exc

    logger.debug("Uploaded image to MinIO: %s (%d bytes)", key, len(data))
    return key


def delete_media(media_key: str) -> None:
    """Best-effort removal of an object whose post is gone."""
    try:
        get_s3().delete_object(Bucket=settings.minio_bucket, Key=media_key)
    except (BotoCoreError, ClientError, RuntimeError) as exc:
        logger.warning("Failed to delete MinIO object %s: %s", media_key, exc)


def get_presigned_url(media_key: Optional[str]) -> Optional[str]:
    """Generate a temporary pre-signed URL, or None if signing is impossible."""
    if not media_key:
        return None
    try:
        return get_s3().generate_presigned_url(
            "get_object",
            Params={"Bucket": settings.minio_bucket, "Key": media_key},
            ExpiresIn=settings.media_url_ttl,
        )
    except Exception as exc:
        logger.warning("Failed to generate presigned URL for %s: %s", media_key, exc)
        return None
