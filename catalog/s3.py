import os
from typing import IO

import boto3
from botocore.config import Config as BotoConfig
from django.conf import settings


def _session():
    return boto3.session.Session(
        aws_access_key_id=settings.S3_ACCESS_KEY,
        aws_secret_access_key=settings.S3_SECRET_KEY,
        region_name=settings.S3_REGION,
    )


def get_s3_client():
    """
    SDK client for server-side upload/download.
    """
    return _session().client(
        "s3",
        endpoint_url=settings.S3_ENDPOINT_URL,  # e.g. http://127.0.0.1:9000
        config=BotoConfig(
            s3={"addressing_style": "path"},
            signature_version="s3v4",
        ),
    )


def get_presign_client():
    """
    Separate client for generating presigned URLs that the browser/CloudConvert will call.
    Uses S3_PUBLIC_ENDPOINT so the URL host matches what the caller reaches.
    """
    return _session().client(
        "s3",
        endpoint_url=settings.S3_PUBLIC_ENDPOINT,
        config=BotoConfig(
            s3={"addressing_style": "path"},
            signature_version="s3v4",  # ensures AWS4 signing
        ),
    )


def create_presigned_put(bucket: str, key: str, content_type: str | None = None, expires: int | None = None) -> dict:
    """
    Create a presigned PUT URL to upload a single object directly to S3/MinIO.

    ContentType is not part of the signature; the header is only suggested back.
    """
    s3 = get_presign_client()
    url = s3.generate_presigned_url(
        ClientMethod="put_object",
        Params={"Bucket": bucket, "Key": key},
        ExpiresIn=expires or settings.S3_PRESIGN_EXPIRE_SECONDS,
        HttpMethod="PUT",
    )
    headers = {"Content-Type": content_type} if content_type else {}
    return {"url": url, "headers": headers}


def create_presigned_get(bucket: str, key: str, expires: int | None = None) -> str:
    """
    Create a presigned GET URL to download an object.
    """
    s3 = get_presign_client()
    return s3.generate_presigned_url(
        ClientMethod="get_object",
        Params={"Bucket": bucket, "Key": key},
        ExpiresIn=expires or settings.S3_PRESIGN_EXPIRE_SECONDS,
        HttpMethod="GET",
    )


def object_url(bucket: str, key: str) -> str:
    """
    Direct object URL against the PUBLIC endpoint (buckets served publicly).
    """
    base = settings.S3_PUBLIC_ENDPOINT
    if not base:
        return f"https://{bucket}.s3.{settings.S3_REGION}.amazonaws.com/{key}"
    return f"{base.rstrip('/')}/{bucket}/{key}"


def upload_file(local_path: str, bucket: str, key: str, content_type: str | None = None):
    """
    Upload a single file with an optional Content-Type. Existing keys are overwritten.
    """
    s3 = get_s3_client()
    extra = {}
    if content_type:
        extra["ContentType"] = content_type
    s3.upload_file(str(local_path), bucket, key, ExtraArgs=extra or None)


def upload_fileobj(fileobj: IO[bytes], bucket: str, key: str, content_type: str | None = None):
    s3 = get_s3_client()
    extra = {}
    if content_type:
        extra["ContentType"] = content_type
    s3.upload_fileobj(fileobj, bucket, key, ExtraArgs=extra or None)


def copy_object(bucket: str, src_key: str, dst_key: str):
    """
    Server-side copy within a bucket. Overwrites dst_key.
    """
    s3 = get_s3_client()
    s3.copy_object(Bucket=bucket, Key=dst_key, CopySource={"Bucket": bucket, "Key": src_key})


def list_keys(bucket: str, prefix: str) -> list[str]:
    s3 = get_s3_client()
    keys = []
    paginator = s3.get_paginator("list_objects_v2")
    for page in paginator.paginate(Bucket=bucket, Prefix=prefix):
        keys.extend(obj["Key"] for obj in page.get("Contents", []))
    return keys


def delete_keys(bucket: str, keys: list[str]) -> int:
    """
    Delete the given keys (batched by 1000, the S3 limit). Returns how many were requested.
    """
    if not keys:
        return 0
    s3 = get_s3_client()
    for i in range(0, len(keys), 1000):
        batch = keys[i:i + 1000]
        s3.delete_objects(
            Bucket=bucket,
            Delete={"Objects": [{"Key": k} for k in batch], "Quiet": True},
        )
    return len(keys)


def delete_prefix(bucket: str, prefix: str) -> int:
    """
    Remove every object under prefix ("<episode_id>/" etc.).
    """
    return delete_keys(bucket, list_keys(bucket, prefix))


def safe_filename(filename: str) -> str:
    return os.path.basename(filename).replace(" ", "_")
