"""Cloudflare R2 storage for report PDFs and OG images (S3 API via boto3)."""
from __future__ import annotations

import logging
from datetime import datetime

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from apps.backend.config import get_settings

logger = logging.getLogger(__name__)

OG_IMAGE_BASE_PATH = "og-images"
PDF_CACHE_CONTROL = "public, max-age=31536000, immutable"
OG_IMAGE_CACHE_CONTROL = "public, max-age=3600, must-revalidate"

_client = None


class R2UploadError(Exception):
    def __init__(self, key: str, detail: str) -> None:
        super().__init__(f"Failed to upload {key} to R2: {detail}")
        self.key = key
        self.code = "r2_upload_failed"


def get_r2_client():
    """Shared S3 client bound to the account's R2 endpoint."""
    global _client
    if _client is None:
        s = get_settings()
        _client = boto3.client(
            "s3",
            endpoint_url=f"https://{s.r2_account_id}.r2.cloudflarestorage.com",
            aws_access_key_id=s.r2_access_key_id,
            aws_secret_access_key=s.r2_secret_access_key,
            region_name="auto",
        )
    return _client


def set_r2_client(client) -> None:
    global _client
    _client = client


def pdf_key(report_id: int | str, domain: str) -> str:
    return f"{get_settings().r2_pdf_base_path}/{report_id}/{domain}-aeo-report.pdf"


def og_image_key(report_id: int | str, domain: str) -> str:
    return f"{OG_IMAGE_BASE_PATH}/{report_id}/{domain}-og-image.png"


def cdn_url(key: str) -> str:
    return f"{get_settings().r2_cdn_url.rstrip('/')}/{key}"


def generate_pdf_url(report_id: int | str, domain: str) -> str:
    return cdn_url(pdf_key(report_id, domain))


def generate_og_image_url(report_id: int | str, domain: str) -> str:
    return cdn_url(og_image_key(report_id, domain))


def _put(key: str, body: bytes, content_type: str, cache_control: str, metadata: dict, **extra) -> str:
    try:
        get_r2_client().put_object(
            Bucket=get_settings().r2_bucket,
            Key=key,
            Body=body,
            ContentType=content_type,
            ContentLength=len(body),
            CacheControl=cache_control,
            Metadata=metadata,
            **extra,
        )
    except (BotoCoreError, ClientError) as e:
        logger.error("r2_upload_failed key=%s err=%s", key, str(e)[:200])
        raise R2UploadError(key, str(e)[:200]) from e
    url = cdn_url(key)
    logger.info("r2_uploaded key=%s bytes=%s", key, len(body))
    return url


def upload_pdf_to_r2(report_id: int | str, domain: str, data: bytes) -> str:
    """Upload the report PDF. Returns its CDN URL."""
    return _put(
        pdf_key(report_id, domain),
        data,
        "application/pdf",
        PDF_CACHE_CONTROL,
        {
            "x-report-id": str(report_id),
            "x-domain": domain,
            "x-generated-at": datetime.utcnow().isoformat(),
        },
        ContentDisposition="inline",
    )


def upload_og_image_to_r2(report_id: int | str, domain: str, data: bytes) -> str:
    return _put(
        og_image_key(report_id, domain),
        data,
        "image/png",
        OG_IMAGE_CACHE_CONTROL,
        {
            "x-report-id": str(report_id),
            "x-domain": domain,
            "x-generated-at": datetime.utcnow().isoformat(),
        },
    )


def _exists(key: str) -> bool:
    try:
        get_r2_client().head_object(Bucket=get_settings().r2_bucket, Key=key)
    except (BotoCoreError, ClientError):
        return False
    return True


def check_pdf_exists(report_id: int | str, domain: str) -> bool:
    return _exists(pdf_key(report_id, domain))


def check_og_image_exists(report_id: int | str, domain: str) -> bool:
    return _exists(og_image_key(report_id, domain))
