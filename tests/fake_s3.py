"""In-memory stand-in for the boto3 S3 client calls used by remote fetch."""

from __future__ import annotations

from pathlib import Path
from typing import Iterator


class FakePaginator:
    """Pages object listings two keys at a time."""

    def __init__(self, keys: list[str]) -> None:
        self._keys = keys

    def paginate(self, Bucket: str, Prefix: str) -> Iterator[dict]:  # noqa: N803
        matching = [key for key in self._keys if key.startswith(Prefix)]
        for start in range(0, max(len(matching), 1), 2):
            yield {"Contents": [{"Key": key} for key in matching[start:start + 2]]}


class FakeS3Client:
    """Serves objects from a key to bytes mapping."""

    def __init__(self, objects: dict[str, bytes]) -> None:
        self.objects = objects
        self.downloads: list[tuple[str, str]] = []

    def get_paginator(self, name: str) -> FakePaginator:
        assert name == "list_objects_v2"
        return FakePaginator(sorted(self.objects))

    def download_file(self, bucket: str, key: str, filename: str) -> None:
        if key not in self.objects:
            raise RuntimeError(f"NoSuchKey: {key}")
        self.downloads.append((bucket, key))
        Path(filename).write_bytes(self.objects[key])
