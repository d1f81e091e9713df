import logging
import re
import uuid
from functools import lru_cache
from typing import Optional

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from .config import Settings
from .errors import ConfigurationError, UpstreamConfigurationError, ValidationError
from .models import UploadGrant

logger = logging.getLogger("vidgen-backend")

_UNSAFE_FOLDER_CHARS = re.compile(r"[^a-zA-Z0-9_-]")


@lru_cache(maxsize=4)
def _client_for(endpoint: str, access_key: str, secret_key: str, region: str):
    return boto3.client(
        "s3",
        endpoint_url=endpoint,
        aws_access_key_id=access_key,
        aws_secret_access_key=secret_key,
        region_name=region,
        config=Config(signature_version="s3v4"),
    )


def get_s3_client(settings: Settings):
    """Return the S3 (R2-compatible) client for these settings, built once."""
    if not settings.storage_configured:
        raise ConfigurationError("S3_BUCKET/S3_ENDPOINT/S3_ACCESS_KEY/S3_SECRET_KEY/S3_PUBLIC_BASE_URL")
    return _client_for(
        settings.s3_endpoint,
        settings.s3_access_key,
        settings.s3_secret_key,
        settings.s3_region,
    )


def make_key(*parts: str) -> str:
    return "/".join([p.strip("/") for p in parts if p and p.strip("/")])


def sanitize_folder(folder: Optional[str]) -> str:
    if not folder:
        return ""
    return _UNSAFE_FOLDER_CHARS.sub("", folder)


def public_reference(base_url: str, key: str) -> str:
    return f"{base_url.rstrip('/')}/{key}"


def issue_grant(s3, settings: Settings, content_type: Optional[str], folder: Optional[str] = None) -> UploadGrant:
    """Mint a short-lived presigned PUT for one new object under the staging prefix.

    Nothing is written to storage here; the caller uploads directly with the
    returned ``write_url`` and the object then lives at ``public_reference``.
    Expiry is enforced by the storage service itself.
    """
    if not content_type or not content_type.strip():
        raise ValidationError("Missing contentType")
    content_type = content_type.strip()

    key = make_key(settings.upload_prefix, sanitize_folder(folder), str(uuid.uuid4()))
    try:
        write_url = s3.generate_presigned_url(
            ClientMethod="put_object",
            Params={
                "Bucket": settings.s3_bucket,
                "Key": key,
                "ContentType": content_type,
            },
            ExpiresIn=settings.upload_url_expires,
        )
    except (BotoCoreError, ClientError) as e:
        logger.error("S3 presign failed for %s: %s", key, type(e).__name__)
        raise UpstreamConfigurationError() from e

    logger.info("Issued upload grant for %s (%s)", key, content_type)
    return UploadGrant(
        object_key=key,
        write_url=write_url,
        public_reference=public_reference(settings.s3_public_base_url, key),
        expires_in=settings.upload_url_expires,
    )
