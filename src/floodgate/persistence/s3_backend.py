"""S3 blob storage backend implementing IBlobStore."""

from __future__ import annotations

import boto3
from botocore.exceptions import ClientError

from floodgate.core.exceptions import BlobNotFoundError, StoreError

_MISSING_KEY_CODES = {"404", "NoSuchKey", "NotFound"}
_DELETE_CHUNK = 1000  # delete_objects accepts at most 1000 keys


class S3BlobStore:
    """Production IBlobStore backed by S3."""

    def __init__(self, bucket: str, region: str = "us-east-1",
                 endpoint_url: str | None = None) -> None:
        self._bucket = bucket
        self._region = region
        self._endpoint_url = endpoint_url
        kwargs: dict = {"region_name": region}
        if endpoint_url:
            kwargs["endpoint_url"] = endpoint_url
        self._client = boto3.client("s3", **kwargs)

    def read(self, key: str) -> bytes:
        try:
            resp = self._client.get_object(Bucket=self._bucket, Key=key)
            return resp["Body"].read()
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") in _MISSING_KEY_CODES:
                raise BlobNotFoundError(key) from exc
            raise StoreError(f"S3 read failed for {key!r}: {exc}") from exc

    def write(self, key: str, data: bytes | str, content_type: str = "application/json") -> str:
        body = data.encode("utf-8") if isinstance(data, str) else data
        try:
            self._client.put_object(
                Bucket=self._bucket, Key=key, Body=body, ContentType=content_type,
            )
            return key
        except ClientError as exc:
            raise StoreError(f"S3 write failed for {key!r}: {exc}") from exc

    def list(self, prefix: str) -> list[str]:
        try:
            keys: list[str] = []
            paginator = self._client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self._bucket, Prefix=prefix):
                for obj in page.get("Contents", []):
                    keys.append(obj["Key"])
            return keys
        except ClientError as exc:
            raise StoreError(f"S3 list failed for prefix={prefix!r}: {exc}") from exc

    def delete(self, key: str) -> None:
        try:
            if not key.endswith("/"):
                self._client.delete_object(Bucket=self._bucket, Key=key)
                return
            keys = self.list(key)
            for start in range(0, len(keys), _DELETE_CHUNK):
                chunk = keys[start:start + _DELETE_CHUNK]
                self._client.delete_objects(
                    Bucket=self._bucket,
                    Delete={"Objects": [{"Key": k} for k in chunk], "Quiet": True},
                )
        except ClientError as exc:
            raise StoreError(f"S3 delete failed for {key!r}: {exc}") from exc
