import gzip
import io

import pytest

from mrstream.dsl.controller import package, tap
from mrstream.dsl.schema import MROptions
from mrstream.errors import CodecError, ReadOnlyTap
from mrstream.runtime.local import LocalFileSystem
from mrstream.runtime.streaming import emit_counter, run_mapper, run_reducer
from mrstream.sdk.codecs import FileListCodec, JsonCodec, LinesCodec, PickleCodec, TsvCodec


def test_taps_are_equal_by_location_only():
    assert tap("hdfs://a", LinesCodec()) == tap("hdfs://a", JsonCodec())
    assert tap("hdfs://a", LinesCodec()) != tap("hdfs://b", LinesCodec())
    assert len({tap("x", LinesCodec()), tap("x", TsvCodec())}) == 1


def test_mapper_writes_key_segments_then_value():
    job = package(None, PickleCodec(), lambda row: [((row["a"], row["b"]), row)], None)
    out, err = io.BytesIO(), io.StringIO()
    run_mapper(job, JsonCodec(), io.BytesIO(b'{"a": "x", "b": "y"}\n\n'), out, err)
    key_a, key_b, value = out.getvalue().rstrip(b"\n").split(b"\t")
    assert (key_a, key_b) == (b"x", b"y")
    assert PickleCodec().decode(value) == {"a": "x", "b": "y"}
    assert err.getvalue() == "reporter:counter:mrstream,Map rows decoded,1\n"


def test_mapper_rejects_tabs_in_keys():
    job = package(None, LinesCodec(), lambda line: [("a\tb", line)], None)
    with pytest.raises(CodecError):
        run_mapper(job, LinesCodec(), io.BytesIO(b"x\n"), io.BytesIO(), io.StringIO())


def test_reducer_groups_on_leading_segments():
    seen = []

    def reducer(key, values):
        seen.append(key)
        yield f"{key[0]}={','.join(values)}"

    job = package(MROptions(eq=1), LinesCodec(), None, reducer)
    lines = b"a\t0\tp\na\t1\tq\nb\t0\tr\n"
    out = io.BytesIO()
    run_reducer(job, LinesCodec(), io.BytesIO(lines), out, io.StringIO())
    assert out.getvalue() == b"a=p,q\nb=r\n"
    assert seen == [("a",), ("b",)]


def test_reducer_counts_undecodable_values():
    job = package(None, JsonCodec(), None, lambda key, values: [len(list(values))])
    out, err = io.BytesIO(), io.StringIO()
    run_reducer(job, JsonCodec(), io.BytesIO(b"k\t1\nk\t{oops\n"), out, err)
    assert out.getvalue() == b"1\n"
    assert "Reduce rows failed to decode,1" in err.getvalue()


def test_reducer_skips_corrupt_pickled_values():
    codec = PickleCodec()
    job = package(None, codec, None, lambda key, values: [sum(values)])
    lines = b"k\t" + codec.encode(2) + b"\nk\t!!notb64\nk\taGVsbG8=\n"
    out, err = io.BytesIO(), io.StringIO()
    run_reducer(job, JsonCodec(), io.BytesIO(lines), out, err)
    assert out.getvalue() == b"2\n"
    assert err.getvalue().count("Reduce rows failed to decode,1") == 2


def test_tsv_codec_skips_invalid_utf8():
    assert TsvCodec().decode(b"a\t\xff") is None
    assert TsvCodec().decode(b"a\tb") == ("a", "b")


def test_emit_counter_format():
    err = io.StringIO()
    emit_counter("rows", 3, group="g", stream=err)
    assert err.getvalue() == "reporter:counter:g,rows,3\n"


def test_file_list_codec_reads_and_gunzips(tmp_path):
    plain = tmp_path / "a.bin"
    plain.write_bytes(b"\x00\x01raw")
    packed = tmp_path / "b.bin.gz"
    with gzip.open(packed, "wb") as f:
        f.write(b"\x02zipped")
    codec = FileListCodec(LocalFileSystem())
    lines = [str(plain).encode(), b"", str(packed).encode()]
    assert list(codec.decode_stream(lines)) == [b"\x00\x01raw", b"\x02zipped"]


def test_file_list_tap_is_read_only():
    with pytest.raises(ReadOnlyTap):
        FileListCodec(LocalFileSystem()).encode(b"anything")


def test_json_codec_skips_blank_and_broken_lines():
    codec = JsonCodec()
    assert codec.decode(b"") is None
    assert codec.decode(b"{nope") is None
    assert codec.encode({"b": 1, "a": 2}) == b'{"a":2,"b":1}'
