import logging
import os
import uuid
from io import BytesIO
from typing import Mapping

import boto3
from botocore.client import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError
from flask import current_app, url_for
from PIL import Image, UnidentifiedImageError
from werkzeug.utils import secure_filename

from ...errors import ValidationError

logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
}


class StorageError(RuntimeError):
    pass


def validate_image(data: bytes, content_type: str | None, max_bytes: int) -> None:
    if content_type not in ALLOWED_CONTENT_TYPES:
        raise ValidationError("Only JPG, PNG, GIF or WEBP images can be uploaded")
    if not data:
        raise ValidationError("Uploaded file is empty")
    if len(data) > max_bytes:
        raise ValidationError(f"Images must be at most {max_bytes // (1024 * 1024)}MB")
    try:
        Image.open(BytesIO(data)).verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise ValidationError("Uploaded file is not a valid image") from e


def _safe_directory(directory: str | None) -> str:
    parts = [secure_filename(p) for p in (directory or "images").split("/")]
    parts = [p for p in parts if p]
    return "/".join(parts) or "images"


def _object_key(directory: str | None, filename: str | None, content_type: str | None) -> str:
    ext = os.path.splitext(filename or "")[1].lower()[:10]
    if not ext:
        ext = ALLOWED_CONTENT_TYPES.get(content_type or "", "")
    return f"{_safe_directory(directory)}/{uuid.uuid4()}{ext}"


def _client(config: Mapping):
    return boto3.client(
        's3',
        region_name=config.get("S3_REGION") or None,
        aws_access_key_id=config.get("S3_ACCESS_KEY_ID") or None,
        aws_secret_access_key=config.get("S3_SECRET_ACCESS_KEY") or None,
        endpoint_url=config.get("S3_ENDPOINT_URL") or None,
        config=BotoConfig(s3={'addressing_style': 'virtual'})
    )


def public_url(config: Mapping, key: str) -> str:
    base = config.get("S3_PUBLIC_URL_BASE")
    if base:
        return f"{base.rstrip('/')}/{key}"
    bucket = config.get("S3_BUCKET_NAME")
    region = config.get("S3_REGION") or 'us-east-1'
    return f"https://{bucket}.s3.{region}.amazonaws.com/{key}"


def upload_image(
    data: bytes,
    *,
    filename: str | None,
    content_type: str | None,
    directory: str | None = "images",
    config: Mapping | None = None,
) -> str:
    """Validate and store an image, returning its public URL.

    Goes to the configured S3-compatible bucket, or to UPLOAD_FOLDER (served at
    /uploads) when no bucket is set.
    """
    config = config if config is not None else current_app.config
    validate_image(data, content_type, int(config.get("UPLOAD_MAX_BYTES", 5 * 1024 * 1024)))
    key = _object_key(directory, filename, content_type)

    bucket = config.get("S3_BUCKET_NAME")
    if bucket:
        try:
            _client(config).put_object(Bucket=bucket, Key=key, Body=data, ContentType=content_type)
        except (BotoCoreError, ClientError) as e:
            logger.error("Upload of %s to bucket %s failed: %s", key, bucket, e)
            raise StorageError(f"Failed to upload image: {e}") from e
        logger.info("Uploaded %s (%d bytes) to bucket %s", key, len(data), bucket)
        return public_url(config, key)

    # Local storage
    upload_folder = config["UPLOAD_FOLDER"]
    path = os.path.join(upload_folder, *key.split("/"))
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, 'wb') as f:
        f.write(data)
    # Relative URL; the reverse proxy (or the app in development) serves /uploads
    return url_for("uploads", filename=key, _external=False)


def delete_image(key: str, config: Mapping | None = None) -> None:
    config = config if config is not None else current_app.config
    if not key or ".." in key.split("/"):
        raise ValidationError("Invalid object key")
    bucket = config.get("S3_BUCKET_NAME")
    if bucket:
        try:
            _client(config).delete_object(Bucket=bucket, Key=key)
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Failed to delete image: {e}") from e
        return
    path = os.path.join(config["UPLOAD_FOLDER"], *key.split("/"))
    if os.path.isfile(path):
        os.remove(path)
