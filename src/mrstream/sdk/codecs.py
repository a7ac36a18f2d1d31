import base64
import binascii
import pickle
from typing import Any, Iterable, Optional, Tuple

import orjson

from .base import Codec, FileSystem
from ..errors import ReadOnlyTap


class LinesCodec(Codec):
    """Plain UTF-8 text, one record per line."""

    def encode(self, record: str) -> bytes:
        return record.encode("utf-8")

    def decode(self, data: bytes) -> Optional[str]:
        return data.decode("utf-8", errors="replace")


class JsonCodec(Codec):
    def encode(self, record: Any) -> bytes:
        return orjson.dumps(record, option=orjson.OPT_SORT_KEYS)

    def decode(self, data: bytes) -> Optional[Any]:
        if not data.strip():
            return None
        try:
            return orjson.loads(data)
        except orjson.JSONDecodeError:
            return None


class TsvCodec(Codec):
    def encode(self, record: Iterable[Any]) -> bytes:
        return "\t".join(str(f) for f in record).encode("utf-8")

    def decode(self, data: bytes) -> Optional[Tuple[str, ...]]:
        try:
            return tuple(data.decode("utf-8").split("\t"))
        except UnicodeDecodeError:
            return None


class PickleCodec(Codec):
    """Base64 pickles; tab and newline free, suitable between map and reduce."""

    def encode(self, record: Any) -> bytes:
        return base64.b64encode(pickle.dumps(record, protocol=pickle.HIGHEST_PROTOCOL))

    def decode(self, data: bytes) -> Optional[Any]:
        try:
            return pickle.loads(base64.b64decode(data, validate=True))
        except (binascii.Error, pickle.UnpicklingError, EOFError, ValueError):
            return None


class FileListCodec(Codec):
    """Reads a manifest of file paths, yielding each file's full contents.

    Hadoop streaming splits input on newlines, so binary files are shipped as a
    list of paths and opened by the mapper itself.
    """

    def __init__(self, fs: FileSystem):
        self.fs = fs

    def encode(self, record: Any) -> bytes:
        raise ReadOnlyTap("A file list tap can only be used as a source, never as an output")

    def decode(self, data: bytes) -> Optional[bytes]:
        path = data.decode("utf-8").strip()
        if not path:
            return None
        with self.fs.open_stream(path) as f:
            return f.read()
