import os
import uuid
from pathlib import Path
from typing import List

from loguru import logger

from ..dsl.controller import Controller, traverse
from ..dsl.schema import HadoopEnv, RerunStrategy
from ..errors import DestinationExists, FileSystemError, OrchestrationError
from ..ir.model import BinaryDirTap, Connect, Location, MakeTap, RunIO, Tap
from ..sdk.base import Engine, FileSystem
from ..sdk.codecs import FileListCodec
from .state import RunContext, phase_names


def random_location(env: HadoopEnv) -> Location:
    return str(Path(env.work_dir) / uuid.uuid4().hex)


def lcs(a: str, b: str) -> str:
    """Longest common subsequence of two strings."""
    rows = [[0] * (len(b) + 1) for _ in range(len(a) + 1)]
    for i in range(len(a) - 1, -1, -1):
        for j in range(len(b) - 1, -1, -1):
            if a[i] == b[j]:
                rows[i][j] = rows[i + 1][j + 1] + 1
            else:
                rows[i][j] = max(rows[i + 1][j], rows[i][j + 1])
    out: List[str] = []
    i = j = 0
    while i < len(a) and j < len(b):
        if a[i] == b[j]:
            out.append(a[i])
            i += 1
            j += 1
        elif rows[i + 1][j] >= rows[i][j + 1]:
            i += 1
        else:
            j += 1
    return "".join(out)


def setup_binary_dir(env: HadoopEnv, fs: FileSystem, location: Location) -> Location:
    """Write a manifest of every file under ``location`` and push it to the cluster.

    Listings may omit part of the location (a scheme, a bucket); the part of
    ``location`` before its overlap with the first entry is prepended to every
    entry.
    """
    files = fs.list(location)
    if not files:
        raise FileSystemError(f"No files found under {location}")
    suffix = lcs(location, files[0])
    idx = location.find(suffix) if suffix else -1
    prefix = location[:idx] if idx >= 0 else location
    manifest = random_location(env)
    try:
        os.makedirs(os.path.dirname(manifest) or ".", exist_ok=True)
        with open(manifest, "w") as f:
            f.write("".join(prefix + path + "\n" for path in files))
    except OSError as e:
        raise FileSystemError(f"Cannot write manifest {manifest}: {e}") from e
    fs.put(manifest, manifest)
    logger.info("Wrote manifest of {} files from {} to {}", len(files), location, manifest)
    return manifest


class Orchestrator:
    """Drives a job flow against a cluster, one blocking step at a time."""

    def __init__(self, env: HadoopEnv, fs: FileSystem, engine: Engine, rerun: RerunStrategy = RerunStrategy.FAIL):
        self.env = env
        self.fs = fs
        self.engine = engine
        self.rerun = rerun

    def run(self, ctl: Controller) -> RunContext:
        ctx = RunContext()
        handlers = {
            Connect: lambda i: self._connect(ctx, i),
            MakeTap: self._make_tap,
            BinaryDirTap: self._binary_dir_tap,
            RunIO: lambda i: i.action(),
        }
        try:
            ctx.value = traverse(ctl, handlers)
        except OrchestrationError as e:
            logger.error("{}", e)
            ctx.error = e
        return ctx

    def _connect(self, ctx: RunContext, instr: Connect) -> None:
        step = ctx.counter.next()
        out = instr.output.location
        if self.fs.exists(out):
            if self.rerun is RerunStrategy.FAIL:
                raise DestinationExists(out)
            if self.rerun is RerunStrategy.SKIP:
                logger.info("Destination file exists, skipping step {}: {}", step, out)
                return None
            logger.info("Destination file exists, will delete and rerun: {}", out)
            self.fs.delete(out)
        inputs = [t.location for t in instr.inputs]
        logger.info("Launching step {} ({}): {} -> {}", step, "/".join(phase_names(step)), inputs, out)
        self.engine.submit(str(step), inputs, out, instr.job.options)
        logger.info("Step {} finished", step)
        return None

    def _make_tap(self, instr: MakeTap) -> Tap:
        return Tap(random_location(self.env), instr.codec)

    def _binary_dir_tap(self, instr: BinaryDirTap) -> Tap:
        manifest = setup_binary_dir(self.env, self.fs, instr.location)
        return Tap(manifest, FileListCodec(self.fs))


def orchestrate(ctl: Controller, env: HadoopEnv, fs: FileSystem, engine: Engine, rerun: RerunStrategy = RerunStrategy.FAIL) -> RunContext:
    return Orchestrator(env, fs, engine, rerun).run(ctl)
