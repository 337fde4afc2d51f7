from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from starlette.concurrency import iterate_in_threadpool, run_in_threadpool

from .object_storage import ObjectStorageError, StoredObject

# DeleteObjects accepts at most 1000 keys per request.
_DELETE_BATCH_SIZE = 1000
_READ_CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class S3Config:
    endpoint_url: str
    region: str
    bucket: str
    access_key_id: str
    secret_access_key: str
    force_path_style: bool


class S3ObjectStorage:
    def __init__(
        self,
        *,
        endpoint_url: str,
        region: str,
        bucket: str,
        access_key_id: str,
        secret_access_key: str,
        force_path_style: bool,
    ) -> None:
        self._cfg = S3Config(
            endpoint_url=endpoint_url,
            region=region,
            bucket=bucket,
            access_key_id=access_key_id,
            secret_access_key=secret_access_key,
            force_path_style=force_path_style,
        )

        import boto3

        addressing_style = "path" if force_path_style else "virtual"
        self._client = boto3.client(
            "s3",
            endpoint_url=endpoint_url,
            region_name=region or None,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
            config=Config(s3={"addressing_style": addressing_style}),
        )

    async def put_bytes(self, key: str, data: bytes, *, content_type: str | None = None) -> None:
        def _put() -> None:
            kwargs: dict[str, object] = {
                "Bucket": self._cfg.bucket,
                "Key": key,
                "Body": data,
            }
            if content_type:
                kwargs["ContentType"] = content_type
            self._client.put_object(**kwargs)

        try:
            await run_in_threadpool(_put)
        except (BotoCoreError, ClientError) as e:
            raise ObjectStorageError(f"put_object failed: {e}", key=key) from e

    async def open_object(self, key: str) -> StoredObject:
        def _get() -> dict[str, Any]:
            return self._client.get_object(Bucket=self._cfg.bucket, Key=key)

        try:
            resp = await run_in_threadpool(_get)
        except (BotoCoreError, ClientError) as e:
            raise ObjectStorageError(f"get_object failed: {e}", key=key) from e

        body = resp.get("Body")
        length = resp.get("ContentLength")
        # StreamingBody reads block; iterate them on the threadpool.
        chunks = (
            iterate_in_threadpool(body.iter_chunks(chunk_size=_READ_CHUNK_SIZE))
            if body is not None
            else iterate_in_threadpool(iter(()))
        )
        return StoredObject(
            key=key,
            content_type=resp.get("ContentType") or None,
            content_length=int(length) if isinstance(length, int) else None,
            chunks=chunks,
        )

    async def delete_many(self, keys: list[str]) -> None:
        if not keys:
            return

        def _delete(batch: list[str]) -> list[dict[str, Any]]:
            resp = self._client.delete_objects(
                Bucket=self._cfg.bucket,
                Delete={"Objects": [{"Key": k} for k in batch], "Quiet": True},
            )
            return list(resp.get("Errors") or [])

        for start in range(0, len(keys), _DELETE_BATCH_SIZE):
            batch = keys[start : start + _DELETE_BATCH_SIZE]
            try:
                errors = await run_in_threadpool(_delete, batch)
            except (BotoCoreError, ClientError) as e:
                raise ObjectStorageError(f"delete_objects failed: {e}") from e
            if errors:
                failed = ", ".join(
                    f"{err.get('Key')}: {err.get('Code')} {err.get('Message') or ''}".strip()
                    for err in errors
                )
                raise ObjectStorageError(f"delete_objects reported errors: {failed}")
