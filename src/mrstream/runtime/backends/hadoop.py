"""Hadoop streaming engine and ``hadoop fs`` filesystem."""

import gzip
import io
import shlex
import subprocess
from pathlib import Path
from typing import IO, List, Optional, Sequence

from loguru import logger

from ...dsl.schema import HadoopEnv, MROptions
from ...errors import FileSystemError, SubmissionError
from ...sdk.base import Engine, FileSystem
from ..state import phase_names

KEY_FIELD_PARTITIONER = "org.apache.hadoop.mapred.lib.KeyFieldBasedPartitioner"


class HdfsFileSystem(FileSystem):
    def __init__(self, env: HadoopEnv):
        self.env = env

    def _fs(self, *args: str, check: bool = True, text: bool = True) -> subprocess.CompletedProcess:
        cmd = [self.env.hadoop_bin, "fs", *args]
        try:
            res = subprocess.run(cmd, capture_output=True, text=text)
        except OSError as e:
            raise FileSystemError(f"Cannot run {shlex.join(cmd)}: {e}") from e
        if check and res.returncode != 0:
            err = res.stderr if text else res.stderr.decode("utf-8", errors="replace")
            raise FileSystemError(f"{shlex.join(cmd)} failed: {err.strip()}")
        return res

    def exists(self, location: str) -> bool:
        return self._fs("-test", "-e", location, check=False).returncode == 0

    def delete(self, location: str) -> None:
        self._fs("-rm", "-r", location)

    def list(self, location: str) -> List[str]:
        out = self._fs("-ls", location).stdout
        paths = []
        for line in out.splitlines():
            fields = line.split()
            # permission string first, path last; skips the "Found N items" header
            if len(fields) >= 8 and fields[0][:1] in ("-", "d"):
                paths.append(fields[-1])
        return paths

    def put(self, local_path: str, location: str) -> None:
        parent = str(Path(location).parent)
        if parent not in ("", "."):
            self._fs("-mkdir", "-p", parent)
        self._fs("-put", "-f", local_path, location)

    def open_stream(self, location: str) -> IO[bytes]:
        data = io.BytesIO(self._fs("-cat", location, text=False).stdout)
        if location.endswith("gz"):
            return gzip.GzipFile(fileobj=data, mode="rb")
        return data


class HadoopEngine(Engine):
    """Submits steps with the streaming jar and waits for them to finish.

    ``worker`` is the command that runs the job flow on the cluster; the
    phase token is appended to it for every mapper and reducer.
    """

    def __init__(self, env: HadoopEnv, worker: Sequence[str], files: Sequence[str] = ()):
        self.env = env
        self.worker = list(worker)
        self.files = list(files) + list(env.files)

    def command(self, step: str, inputs: List[str], output: str, options: MROptions) -> List[str]:
        map_phase, reduce_phase = phase_names(int(step))
        cmd = [self.env.hadoop_bin, "jar", self.env.streaming_jar]
        for key, value in [("mapred.job.name", f"mrstream step {step}"), *sorted(self.env.jobconf.items()), *options.jobconf_pairs()]:
            cmd += ["-D", f"{key}={value}"]
        for path in self.files:
            cmd += ["-file", path]
        for location in inputs:
            cmd += ["-input", location]
        cmd += ["-output", output]
        cmd += ["-mapper", shlex.join(self.worker + [map_phase])]
        cmd += ["-reducer", shlex.join(self.worker + [reduce_phase])]
        if options.partition:
            cmd += ["-partitioner", KEY_FIELD_PARTITIONER]
        return cmd

    def submit(self, step: str, inputs: List[str], output: str, options: MROptions) -> None:
        cmd = self.command(step, inputs, output, options)
        logger.debug("Running {}", shlex.join(cmd))
        try:
            res = subprocess.run(cmd)
        except OSError as e:
            raise SubmissionError(step, 127, f"cannot run {cmd[0]}: {e}") from e
        if res.returncode != 0:
            raise SubmissionError(step, res.returncode)


def worker_command(env: HadoopEnv, script: str, args: Optional[Sequence[str]] = None) -> List[str]:
    return [env.python_bin, Path(script).name, *(args or ())]
