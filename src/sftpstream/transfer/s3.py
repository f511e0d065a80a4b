"""
S3 transfer target.

Uses a lazily built boto3 client; credentials come from ``aws.s3`` when set,
otherwise from the environment or IAM role.
"""

from __future__ import annotations

import os
import shutil
import tempfile
import uuid
from pathlib import Path
from typing import Any

from sftpstream.config.properties import S3Properties
from sftpstream.exceptions import ConfigurationError, TransferError
from sftpstream.transfer.service import InputStreamTransfer
from sftpstream.utils.logging import get_logger

logger = get_logger("sftpstream.transfer.s3")


def client_kwargs(props: S3Properties) -> dict[str, Any]:
    """Build kwargs for boto3 client initialization."""
    kwargs: dict[str, Any] = {}
    if props.region:
        kwargs["region_name"] = props.region
    if props.endpoint_url:
        kwargs["endpoint_url"] = props.endpoint_url
    # Explicit credentials from config (override env/IAM)
    if props.access_key_id and props.secret_access_key:
        kwargs["aws_access_key_id"] = props.access_key_id
        kwargs["aws_secret_access_key"] = props.secret_access_key
    return kwargs


def build_s3_client(props: S3Properties) -> Any:
    import boto3

    return boto3.client("s3", **client_kwargs(props))


class S3InputStreamPersister:
    """
    Uploads streams to an S3 bucket, keyed by the transfer target.

    The stream is staged to a local temporary file first so the upload knows
    its size. The bucket is checked once on construction and created when
    missing (unless ``create_bucket`` is False, which makes a missing bucket an
    error).

    Args:
        client: boto3 S3 client
        bucket: Target bucket
        create_bucket: Create the bucket when it does not exist
        staging_dir: Directory for staging files (system temp dir by default)
    """

    def __init__(
        self,
        client: Any,
        bucket: str,
        create_bucket: bool = True,
        *,
        region: str | None = None,
        staging_dir: str | Path | None = None,
    ):
        if not bucket:
            raise ConfigurationError("S3 transfer requires 'aws.s3.bucket'")
        self.client = client
        self.bucket = bucket
        self.region = region
        self.staging_dir = Path(staging_dir or tempfile.gettempdir())
        self._verify_bucket(create_bucket)

    @classmethod
    def from_properties(cls, props: S3Properties, client: Any = None) -> S3InputStreamPersister:
        return cls(client or build_s3_client(props), props.bucket, props.create_bucket, region=props.region)

    def save(self, transfer: InputStreamTransfer) -> str:
        from botocore.exceptions import BotoCoreError, ClientError

        logger.info(f"Saving source contents to bucket {self.bucket}, key {transfer.target}")
        staging = self.staging_dir / str(uuid.uuid4())
        try:
            with open(staging, "wb") as out:
                shutil.copyfileobj(transfer.source, out)
            self.client.upload_file(
                str(staging),
                self.bucket,
                transfer.target,
                ExtraArgs={"Metadata": dict(transfer.metadata)},
            )
        except (BotoCoreError, ClientError, OSError) as e:
            raise TransferError(
                f"Upload to s3://{self.bucket}/{transfer.target} failed: {e}",
                details={"bucket": self.bucket, "key": transfer.target},
            ) from e
        finally:
            if staging.exists():
                os.remove(staging)
        return f"s3://{self.bucket}/{transfer.target}"

    def _verify_bucket(self, create_bucket: bool) -> None:
        from botocore.exceptions import ClientError

        try:
            self.client.head_bucket(Bucket=self.bucket)
            return
        except ClientError as e:
            code = str(e.response.get("Error", {}).get("Code", ""))
            if code not in ("404", "NoSuchBucket", "NotFound"):
                raise TransferError(f"Cannot access bucket {self.bucket}: {e}") from e

        if not create_bucket:
            raise ConfigurationError(f"Bucket {self.bucket} does not exist")

        kwargs: dict[str, Any] = {"Bucket": self.bucket}
        if self.region and self.region != "us-east-1":
            kwargs["CreateBucketConfiguration"] = {"LocationConstraint": self.region}
        self.client.create_bucket(**kwargs)
        logger.info(f"Created bucket {self.bucket}")

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(bucket='{self.bucket}')"
