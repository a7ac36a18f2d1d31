"""Building job flows.

A job flow is a generator function yielding instructions::

    @controller
    def flow():
        counts = yield from connect_new(word_count, [docs], JsonCodec())
        yield connect(top_words, [counts], report)
        return counts

The same function is replayed by the orchestrator and by every mapper and
reducer process, so the sequence of ``connect`` instructions it yields must
not depend on results of ``io`` actions.
"""

import inspect
from typing import Any, Callable, Dict, Generator, Iterable, Optional

from ..errors import ProgramError
from ..ir.model import (
    INSTRUCTION_TYPES,
    BinaryDirTap,
    Connect,
    Instruction,
    Location,
    MakeTap,
    MapReduce,
    Mapper,
    Reducer,
    RunIO,
    Tap,
)
from ..sdk.base import Codec
from .schema import MROptions

Program = Generator[Instruction, Any, Any]
Handler = Callable[[Any], Any]


class Controller:
    def __init__(self, fn: Callable[[], Program], name: Optional[str] = None):
        if not inspect.isgeneratorfunction(fn):
            raise ProgramError(f"{fn!r} is not a generator function")
        self.fn = fn
        self.name = name or getattr(fn, "__name__", "controller")

    def program(self) -> Program:
        return self.fn()

    def __repr__(self) -> str:
        return f"Controller({self.name!r})"


def controller(fn: Callable[[], Program]) -> Controller:
    return Controller(fn)


def tap(location: Location, codec: Codec) -> Tap:
    return Tap(location, codec)


def package(options: Optional[MROptions], codec: Codec, mapper: Mapper, reducer: Reducer) -> MapReduce:
    return MapReduce(options or MROptions(), codec, mapper, reducer)


def connect(job: MapReduce, inputs: Iterable[Tap], output: Tap) -> Connect:
    inputs = tuple(inputs)
    if not inputs:
        raise ProgramError("connect needs at least one input tap")
    return Connect(job, inputs, output)


def make_tap(codec: Codec) -> MakeTap:
    return MakeTap(codec)


def binary_dir_tap(location: Location) -> BinaryDirTap:
    return BinaryDirTap(location)


def io(action: Callable[[], Any]) -> RunIO:
    return RunIO(action)


def connect_new(job: MapReduce, inputs: Iterable[Tap], codec: Codec) -> Program:
    """Connect ``job`` into a freshly allocated tap and return that tap."""
    out = yield make_tap(codec)
    yield connect(job, inputs, out)
    return out


def traverse(ctl: Controller, handlers: Dict[type, Handler]) -> Any:
    """Replay ``ctl`` from the start, feeding each instruction to its handler."""
    program = ctl.program()
    value: Any = None
    while True:
        try:
            instr = program.send(value)
        except StopIteration as stop:
            return stop.value
        if not isinstance(instr, INSTRUCTION_TYPES):
            program.close()
            raise ProgramError(f"{ctl.name} yielded {instr!r}, which is not an instruction")
        value = handlers[type(instr)](instr)
