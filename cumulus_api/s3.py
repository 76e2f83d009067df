"""S3 helpers used when moving granule files."""

from typing import Tuple
from urllib.parse import urlparse

import boto3
from botocore.exceptions import ClientError

from cumulus_api.errors import ValidationError
from cumulus_api.monitoring import logger


def get_s3_client():
    return boto3.client("s3")


def parse_s3_uri(uri: str) -> Tuple[str, str]:
    """Split an s3://bucket/key URI into its bucket and key."""
    url = urlparse(uri)
    if url.scheme != "s3" or not url.netloc or not url.path.lstrip("/"):
        raise ValidationError(f"Unable to determine file location: {uri}")
    return url.netloc, url.path.lstrip("/")


def s3_join(*parts: str) -> str:
    return "/".join(part.strip("/") for part in parts if part and part.strip("/"))


def object_exists(client, bucket: str, key: str) -> bool:
    try:
        client.head_object(Bucket=bucket, Key=key)
    except ClientError as e:
        if e.response["Error"]["Code"] in ("404", "NoSuchKey", "NotFound"):
            return False
        raise
    return True


def move_object(
    client,
    source_bucket: str,
    source_key: str,
    destination_bucket: str,
    destination_key: str,
) -> None:
    """
    Copy an object to its destination, then remove the source.
    """
    if (source_bucket, source_key) == (destination_bucket, destination_key):
        return
    logger.debug(
        f"Moving s3://{source_bucket}/{source_key} "
        f"to s3://{destination_bucket}/{destination_key}"
    )
    # managed copy, switches to multipart for large objects
    client.copy(
        CopySource={"Bucket": source_bucket, "Key": source_key},
        Bucket=destination_bucket,
        Key=destination_key,
    )
    client.delete_object(Bucket=source_bucket, Key=source_key)
