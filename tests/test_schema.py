import gzip
import subprocess

import pytest

from mrstream.compiler import JOIN_OPTIONS
from mrstream.dsl.schema import AMAZON_EMR, GZIP_CODEC, HadoopEnv, MROptions, load_env
from mrstream.errors import FileSystemError, SubmissionError
from mrstream.runtime.backends.hadoop import KEY_FIELD_PARTITIONER, HadoopEngine, HdfsFileSystem, worker_command
from mrstream.sdk.codecs import FileListCodec


def test_default_options_group_on_one_field():
    assert MROptions().jobconf_pairs() == [("stream.num.map.output.key.fields", "1")]


def test_join_options_partition_on_join_key():
    pairs = dict(JOIN_OPTIONS.jobconf_pairs())
    assert pairs["stream.num.map.output.key.fields"] == "2"
    assert pairs["mapred.text.key.partitioner.options"] == "-k1,1"


def test_task_counts_and_compression():
    pairs = dict(MROptions(num_map=8, num_reduce=2, compress=GZIP_CODEC, jobconf={"x.y": "z"}).jobconf_pairs())
    assert pairs["mapred.map.tasks"] == "8"
    assert pairs["mapred.reduce.tasks"] == "2"
    assert pairs["mapred.output.compression.codec"] == GZIP_CODEC
    assert pairs["x.y"] == "z"


def test_load_env_layers_yaml_and_variables(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    cfg = tmp_path / "hadoop.yaml"
    cfg.write_text("streaming_jar: /opt/streaming.jar\nfiles: [lib.py]\n")
    monkeypatch.setenv("MRSTREAM_WORK_DIR", "/scratch/mr")
    env = load_env(str(cfg), base=AMAZON_EMR)
    assert env.hadoop_bin == AMAZON_EMR.hadoop_bin
    assert env.streaming_jar == "/opt/streaming.jar"
    assert env.files == ["lib.py"]
    assert env.work_dir == "/scratch/mr"


def test_streaming_command_line():
    env = HadoopEnv(hadoop_bin="hadoop", streaming_jar="s.jar", python_bin="python3")
    engine = HadoopEngine(env, worker_command(env, "/home/me/flow.py"), files=["/home/me/flow.py"])
    cmd = engine.command("3", ["in/a", "in/b"], "out", JOIN_OPTIONS)
    assert cmd[:3] == ["hadoop", "jar", "s.jar"]
    assert cmd[cmd.index("-mapper") + 1] == "python3 flow.py map_3"
    assert cmd[cmd.index("-reducer") + 1] == "python3 flow.py reduce_3"
    assert cmd[cmd.index("-output") + 1] == "out"
    assert [cmd[i + 1] for i, a in enumerate(cmd) if a == "-input"] == ["in/a", "in/b"]
    assert cmd[cmd.index("-partitioner") + 1] == KEY_FIELD_PARTITIONER
    assert cmd.index("-D") < cmd.index("-file") < cmd.index("-input")


def test_engine_failure_raises(monkeypatch):
    monkeypatch.setattr(subprocess, "run", lambda cmd: subprocess.CompletedProcess(cmd, 3))
    engine = HadoopEngine(HadoopEnv(streaming_jar="s.jar"), ["python3", "flow.py"])
    with pytest.raises(SubmissionError) as exc:
        engine.submit("0", ["in"], "out", MROptions())
    assert exc.value.returncode == 3


def test_hdfs_listing_keeps_paths(monkeypatch):
    listing = (
        "Found 2 items\n"
        "-rw-r--r--   3 me supergroup       1366 2013-01-01 10:00 /user/me/in/a.gz\n"
        "drwxr-xr-x   - me supergroup          0 2013-01-01 10:00 /user/me/in/sub\n"
    )

    def fake_run(cmd, capture_output, text):
        assert cmd == ["hadoop", "fs", "-ls", "/user/me/in"]
        return subprocess.CompletedProcess(cmd, 0, stdout=listing, stderr="")

    monkeypatch.setattr(subprocess, "run", fake_run)
    assert HdfsFileSystem(HadoopEnv()).list("/user/me/in") == ["/user/me/in/a.gz", "/user/me/in/sub"]


@pytest.fixture
def failing_hadoop(tmp_path):
    script = tmp_path / "hadoop"
    script.write_text('#!/bin/sh\necho "cat: No such file or directory" >&2\nexit 1\n')
    script.chmod(0o755)
    return HadoopEnv(hadoop_bin=str(script))


def test_hdfs_cat_failure_is_not_an_empty_record(failing_hadoop):
    codec = FileListCodec(HdfsFileSystem(failing_hadoop))
    with pytest.raises(FileSystemError) as exc:
        codec.decode(b"/missing/file.bin")
    assert "No such file" in str(exc.value)


def test_hdfs_cat_gunzips_compressed_paths(monkeypatch):
    def fake_run(cmd, capture_output, text):
        assert cmd == ["hadoop", "fs", "-cat", "/user/me/in/a.gz"]
        assert text is False
        return subprocess.CompletedProcess(cmd, 0, stdout=gzip.compress(b"\x00payload"), stderr=b"")

    monkeypatch.setattr(subprocess, "run", fake_run)
    with HdfsFileSystem(HadoopEnv()).open_stream("/user/me/in/a.gz") as f:
        assert f.read() == b"\x00payload"


def test_missing_hadoop_binary_raises_filesystem_error(tmp_path):
    fs = HdfsFileSystem(HadoopEnv(hadoop_bin=str(tmp_path / "no-such-hadoop")))
    with pytest.raises(FileSystemError):
        fs.exists("/user/me/in")
    with pytest.raises(FileSystemError):
        fs.open_stream("/user/me/in/a")


def test_missing_hadoop_binary_fails_submission(tmp_path):
    engine = HadoopEngine(HadoopEnv(hadoop_bin=str(tmp_path / "no-such-hadoop"), streaming_jar="s.jar"), ["python3", "flow.py"])
    with pytest.raises(SubmissionError) as exc:
        engine.submit("0", ["in"], "out", MROptions())
    assert exc.value.step == "0"
    assert "no-such-hadoop" in str(exc.value)
