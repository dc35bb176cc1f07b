"""
Object-store capability used by the backup engine, and its S3 implementation.

The engine only needs four verbs (head, get, put, list) so anything that
provides them can stand in for S3, including the in-memory store the tests use.
"""
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional, Protocol

import boto3
from botocore.exceptions import ClientError

from errors import ObjectNotFoundError

# User metadata key holding the hex MD5 of the uploaded archive
HASH_METADATA_KEY = "content-md5-hex"

_NOT_FOUND_CODES = ("404", "NotFound", "NoSuchKey")


@dataclass(frozen=True)
class ObjectInfo:
    key: str
    size: int = 0
    etag: str = ""
    content_hash: str = ""

    def stored_hash(self) -> str:
        """The recorded content hash, or the ETag for objects uploaded elsewhere."""
        return self.content_hash or self.etag.strip('"')


class ObjectStore(Protocol):
    def head(self, bucket: str, key: str) -> ObjectInfo: ...

    def get(self, bucket: str, key: str, dest: Path) -> None: ...

    def put(self, bucket: str, key: str, src: Path, content_hash: str) -> None: ...

    def list_keys(self, bucket: str) -> Iterator[str]: ...


def is_not_found_error(err: BaseException) -> bool:
    """True when err means "no such object"."""
    if isinstance(err, ObjectNotFoundError):
        return True
    if isinstance(err, ClientError):
        code = str(err.response.get("Error", {}).get("Code", ""))
        if code in _NOT_FOUND_CODES:
            return True
    text = str(err)
    return "NotFound" in text or "404" in text


class S3ObjectStore:
    """ObjectStore on top of a boto3 S3 client. boto3 clients are thread-safe."""

    def __init__(self, client=None, logger: Optional[logging.Logger] = None) -> None:
        self._client = client or boto3.client("s3")
        self._log = logger or logging.getLogger(__name__)

    def head(self, bucket: str, key: str) -> ObjectInfo:
        try:
            resp = self._client.head_object(Bucket=bucket, Key=key)
        except ClientError as e:
            if is_not_found_error(e):
                raise ObjectNotFoundError(bucket, key) from e
            raise
        metadata = resp.get("Metadata") or {}
        return ObjectInfo(
            key=key,
            size=resp.get("ContentLength", 0),
            etag=resp.get("ETag", ""),
            content_hash=metadata.get(HASH_METADATA_KEY, ""),
        )

    def get(self, bucket: str, key: str, dest: Path) -> None:
        self._log.debug("Downloading s3://%s/%s -> %s", bucket, key, dest)
        try:
            self._client.download_file(bucket, key, str(dest))
        except ClientError as e:
            if is_not_found_error(e):
                raise ObjectNotFoundError(bucket, key) from e
            raise

    def put(self, bucket: str, key: str, src: Path, content_hash: str) -> None:
        self._log.debug("Uploading %s -> s3://%s/%s", src, bucket, key)
        self._client.upload_file(
            str(src), bucket, key,
            ExtraArgs={"Metadata": {HASH_METADATA_KEY: content_hash}},
        )

    def list_keys(self, bucket: str) -> Iterator[str]:
        paginator = self._client.get_paginator("list_objects_v2")
        for page in paginator.paginate(Bucket=bucket):
            for obj in page.get("Contents", []):
                yield obj["Key"]
