import sys
import uuid
from typing import IO, Optional

from ..dsl.controller import Controller, traverse
from ..ir.model import BinaryDirTap, Connect, MakeTap, RunIO, Tap
from ..sdk.base import FileSystem
from ..sdk.codecs import FileListCodec
from .state import RunContext, phase_names
from .streaming import run_mapper, run_reducer


def stub_location() -> str:
    # workers never read a tap's location, only its codec
    return f"stub-{uuid.uuid4().hex}"


class PhaseDispatcher:
    """Replays a job flow inside a mapper or reducer process.

    Every connect step is numbered exactly as the orchestrator numbers it; only
    the step whose ``map_k``/``reduce_k`` name equals ``phase`` does any work.
    """

    def __init__(
        self,
        phase: str,
        fs: Optional[FileSystem] = None,
        stdin: Optional[IO[bytes]] = None,
        stdout: Optional[IO[bytes]] = None,
        stderr: Optional[IO[str]] = None,
    ):
        self.phase = phase
        self.fs = fs
        self.stdin = stdin
        self.stdout = stdout
        self.stderr = stderr
        self.matched: Optional[int] = None

    def run(self, ctl: Controller) -> RunContext:
        ctx = RunContext()
        handlers = {
            Connect: lambda i: self._connect(ctx, i),
            MakeTap: lambda i: Tap(stub_location(), i.codec),
            BinaryDirTap: self._binary_dir_tap,
            RunIO: lambda i: i.action(),
        }
        ctx.value = traverse(ctl, handlers)
        return ctx

    def _connect(self, ctx: RunContext, instr: Connect) -> None:
        step = ctx.counter.next()
        map_name, reduce_name = phase_names(step)
        if self.phase == map_name:
            self.matched = step
            run_mapper(instr.job, instr.inputs[0].codec, self._in(), self._out(), self.stderr)
        elif self.phase == reduce_name:
            self.matched = step
            run_reducer(instr.job, instr.output.codec, self._in(), self._out(), self.stderr)
        return None

    def _in(self) -> IO[bytes]:
        return self.stdin if self.stdin is not None else sys.stdin.buffer

    def _out(self) -> IO[bytes]:
        return self.stdout if self.stdout is not None else sys.stdout.buffer

    def _binary_dir_tap(self, instr: BinaryDirTap) -> Tap:
        return Tap(stub_location(), FileListCodec(self.fs))


def dispatch(ctl: Controller, phase: str, fs: Optional[FileSystem] = None, **streams) -> RunContext:
    return PhaseDispatcher(phase, fs, **streams).run(ctl)
