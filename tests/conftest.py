from typing import Any, Dict, List, Optional, Set, Tuple

import pytest
from loguru import logger

from mrstream.errors import SubmissionError
from mrstream.sdk.base import Codec, Engine, FileSystem


class RecordingCodec(Codec):
    """Text codec that remembers every call made on it."""

    def __init__(self, name: str, calls: List[Tuple[str, str]]):
        self.name = name
        self.calls = calls

    def encode(self, record: Any) -> bytes:
        self.calls.append((self.name, "encode"))
        return str(record).encode("utf-8")

    def decode(self, data: bytes) -> Optional[str]:
        self.calls.append((self.name, "decode"))
        return data.decode("utf-8")


class FakeFS(FileSystem):
    def __init__(self, existing=(), listings: Optional[Dict[str, List[str]]] = None):
        self.existing: Set[str] = set(existing)
        self.listings = listings or {}
        self.deleted: List[str] = []
        self.puts: List[Tuple[str, str]] = []

    def exists(self, location):
        return location in self.existing

    def delete(self, location):
        self.deleted.append(location)
        self.existing.discard(location)

    def list(self, location):
        return list(self.listings.get(location, []))

    def put(self, local_path, location):
        self.puts.append((local_path, location))

    def open_stream(self, location):
        raise AssertionError(f"unexpected read of {location}")


class FakeEngine(Engine):
    def __init__(self, fail_on=()):
        self.fail_on = set(fail_on)
        self.submitted: List[Tuple[str, List[str], str]] = []

    def submit(self, step, inputs, output, options):
        self.submitted.append((step, list(inputs), output))
        if step in self.fail_on:
            raise SubmissionError(step, 1)


@pytest.fixture
def calls():
    return []


@pytest.fixture
def fake_fs():
    return FakeFS()


@pytest.fixture
def fake_engine():
    return FakeEngine()


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    logger.remove()
