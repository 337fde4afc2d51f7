from __future__ import annotations

from typing import Any

import pytest
from botocore.exceptions import ClientError

from streamnotes_backend.integrations.storage.object_storage import ObjectStorageError
from streamnotes_backend.integrations.storage.s3_storage import S3ObjectStorage


class _FakeBody:
    def __init__(self, data: bytes) -> None:
        self._data = data

    def iter_chunks(self, chunk_size: int = 1024):
        for i in range(0, len(self._data), chunk_size):
            yield self._data[i : i + chunk_size]


class _FakeS3Client:
    def __init__(self) -> None:
        self.put_calls: list[dict[str, Any]] = []
        self.get_calls: list[dict[str, Any]] = []
        self.delete_calls: list[dict[str, Any]] = []
        self.objects: dict[str, bytes] = {"k3": b"hello"}
        self.delete_errors: list[dict[str, Any]] = []

    def put_object(self, **kwargs: Any) -> None:
        self.put_calls.append(dict(kwargs))

    def get_object(self, *, Bucket: str, Key: str) -> dict[str, Any]:
        self.get_calls.append({"Bucket": Bucket, "Key": Key})
        if Key not in self.objects:
            raise ClientError(
                {"Error": {"Code": "NoSuchKey", "Message": "missing"}}, "GetObject"
            )
        data = self.objects[Key]
        return {"Body": _FakeBody(data), "ContentType": "image/png", "ContentLength": len(data)}

    def delete_objects(self, *, Bucket: str, Delete: dict[str, Any]) -> dict[str, Any]:
        self.delete_calls.append({"Bucket": Bucket, "Delete": Delete})
        return {"Errors": list(self.delete_errors)}


def _build(monkeypatch: pytest.MonkeyPatch, fake: _FakeS3Client) -> list[dict[str, Any]]:
    boto3_calls: list[dict[str, Any]] = []

    import boto3

    def _fake_client(service_name: str, **kwargs: Any):
        boto3_calls.append({"service_name": service_name, **kwargs})
        return fake

    async def _run_inline(fn, *args, **kwargs):  # type: ignore[no-untyped-def]
        return fn(*args, **kwargs)

    monkeypatch.setattr(boto3, "client", _fake_client)
    monkeypatch.setattr(
        "streamnotes_backend.integrations.storage.s3_storage.run_in_threadpool", _run_inline
    )
    return boto3_calls


async def _drain(chunks) -> bytes:  # type: ignore[no-untyped-def]
    out = b""
    async for chunk in chunks:
        out += chunk
    return out


@pytest.mark.anyio
async def test_s3_object_storage_put_open_delete(monkeypatch: pytest.MonkeyPatch):
    fake = _FakeS3Client()
    boto3_calls = _build(monkeypatch, fake)

    s = S3ObjectStorage(
        endpoint_url="https://acc.r2.cloudflarestorage.com",
        region="auto",
        bucket="bucket",
        access_key_id="ak",
        secret_access_key="sk",
        force_path_style=False,
    )
    assert boto3_calls and boto3_calls[0]["service_name"] == "s3"
    assert boto3_calls[0]["endpoint_url"] == "https://acc.r2.cloudflarestorage.com"

    await s.put_bytes("k1", b"data")
    await s.put_bytes("k2", b"data2", content_type="text/plain")
    obj = await s.open_object("k3")
    await s.delete_many(["k4", "k5"])

    assert obj.content_type == "image/png"
    assert obj.content_length == 5
    assert await _drain(obj.chunks) == b"hello"

    assert fake.put_calls[0]["Bucket"] == "bucket"
    assert fake.put_calls[0]["Key"] == "k1"
    assert "ContentType" not in fake.put_calls[0]
    assert fake.put_calls[1]["ContentType"] == "text/plain"

    assert fake.get_calls == [{"Bucket": "bucket", "Key": "k3"}]
    assert fake.delete_calls == [
        {
            "Bucket": "bucket",
            "Delete": {"Objects": [{"Key": "k4"}, {"Key": "k5"}], "Quiet": True},
        }
    ]


@pytest.mark.anyio
async def test_s3_object_storage_wraps_client_errors(monkeypatch: pytest.MonkeyPatch):
    fake = _FakeS3Client()
    _build(monkeypatch, fake)

    s = S3ObjectStorage(
        endpoint_url="http://localhost:9000",
        region="",
        bucket="bucket",
        access_key_id="ak",
        secret_access_key="sk",
        force_path_style=True,
    )

    with pytest.raises(ObjectStorageError) as excinfo:
        await s.open_object("missing")
    assert excinfo.value.key == "missing"

    fake.delete_errors = [{"Key": "k1", "Code": "AccessDenied", "Message": "denied"}]
    with pytest.raises(ObjectStorageError) as excinfo2:
        await s.delete_many(["k1"])
    assert "AccessDenied" in str(excinfo2.value)


@pytest.mark.anyio
async def test_s3_object_storage_delete_many_batches_and_skips_empty(
    monkeypatch: pytest.MonkeyPatch,
):
    fake = _FakeS3Client()
    _build(monkeypatch, fake)

    s = S3ObjectStorage(
        endpoint_url="http://localhost:9000",
        region="",
        bucket="bucket",
        access_key_id="ak",
        secret_access_key="sk",
        force_path_style=True,
    )

    await s.delete_many([])
    assert fake.delete_calls == []

    await s.delete_many([f"k{i}" for i in range(1500)])
    assert [len(c["Delete"]["Objects"]) for c in fake.delete_calls] == [1000, 500]
