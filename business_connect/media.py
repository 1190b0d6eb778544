"""Releasing uploaded images on the external image host (S3)."""
from __future__ import annotations

from urllib.parse import urlparse

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from flask import current_app


def public_id_from_url(url: str) -> str:
    """Last path segment of ``url`` without its extension."""
    segment = urlparse(url).path.rstrip("/").split("/")[-1]
    return segment.split(".")[0]


def destroy_image(folder: str, public_id: str) -> None:
    """Delete ``folder/public_id`` from the configured bucket."""
    s3_client = boto3.client("s3")
    bucket_name = current_app.config["AWS_S3_BUCKET"]
    s3_client.delete_object(Bucket=bucket_name, Key=f"{folder}/{public_id}")


def release_business_icon(url: str | None) -> bool:
    """Best-effort removal of an uploaded business icon; failures are logged, not raised."""
    if not url:
        return False
    folder = current_app.config["BUSINESS_ICON_FOLDER"]
    public_id = public_id_from_url(url)
    if not public_id:
        current_app.logger.warning("Could not derive an image id from icon url %s", url)
        return False
    try:
        destroy_image(folder, public_id)
    except (BotoCoreError, ClientError) as exc:
        current_app.logger.warning(f"Failed to delete icon {folder}/{public_id}: {exc}")
        return False
    return True
