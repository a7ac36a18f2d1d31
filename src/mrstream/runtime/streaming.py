"""Mapper and reducer loops speaking the Hadoop streaming line protocol.

Map output lines are ``seg1<TAB>...<TAB>segN<TAB>value``; the value is always
the last field, so it must not contain tabs or newlines.
"""

import sys
from itertools import groupby
from typing import IO, Iterator, Optional, Tuple

from ..errors import CodecError
from ..ir.model import Key, MapReduce
from ..sdk.base import Codec

COUNTER_GROUP = "mrstream"


def emit_counter(name: str, delta: int = 1, group: str = COUNTER_GROUP, stream: Optional[IO[str]] = None) -> None:
    stream = stream if stream is not None else sys.stderr
    stream.write(f"reporter:counter:{group},{name},{delta}\n")


def key_segments(key: Key) -> Tuple[str, ...]:
    segments = (key,) if isinstance(key, str) else tuple(key)
    for seg in segments:
        if "\t" in seg or "\n" in seg:
            raise CodecError(f"Key segment {seg!r} contains a tab or newline")
    return segments


def _lines(stream: IO[bytes]) -> Iterator[bytes]:
    for line in stream:
        yield line.rstrip(b"\r\n")


def run_mapper(job: MapReduce, in_codec: Codec, stdin: IO[bytes], stdout: IO[bytes], stderr: Optional[IO[str]] = None) -> None:
    for record in in_codec.decode_stream(_lines(stdin)):
        emit_counter("Map rows decoded", 1, stream=stderr)
        for key, value in job.mapper(record):
            encoded = job.codec.encode(value)
            if b"\t" in encoded or b"\n" in encoded:
                raise CodecError(f"{type(job.codec).__name__} produced a tab or newline")
            stdout.write("\t".join(key_segments(key)).encode("utf-8") + b"\t" + encoded + b"\n")
    stdout.flush()


def _split(line: bytes) -> Tuple[Tuple[str, ...], bytes]:
    key, sep, value = line.rpartition(b"\t")
    if not sep:
        return (line.decode("utf-8"),), b""
    return tuple(key.decode("utf-8").split("\t")), value


def run_reducer(job: MapReduce, out_codec: Codec, stdin: IO[bytes], stdout: IO[bytes], stderr: Optional[IO[str]] = None) -> None:
    eq = job.options.eq
    rows = (_split(line) for line in _lines(stdin) if line)
    for group, items in groupby(rows, key=lambda row: row[0][:eq]):
        values = _decoded(job.codec, (v for _, v in items), stderr)
        for out in job.reducer(group, values):
            stdout.write(out_codec.encode(out) + b"\n")
    stdout.flush()


def _decoded(codec: Codec, raw: Iterator[bytes], stderr: Optional[IO[str]]) -> Iterator:
    for data in raw:
        value = codec.decode(data)
        if value is None:
            emit_counter("Reduce rows failed to decode", 1, stream=stderr)
            continue
        yield value
