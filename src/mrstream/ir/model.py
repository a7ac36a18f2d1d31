from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Iterator, Tuple, Union

from ..dsl.schema import MROptions
from ..sdk.base import Codec

# Hadoop-understandable location of a data source or sink
Location = str

Key = Union[str, Tuple[str, ...]]
Mapper = Callable[[Any], Iterable[Tuple[Key, Any]]]
Reducer = Callable[[Tuple[str, ...], Iterator[Any]], Iterable[Any]]


@dataclass(frozen=True, eq=False)
class Tap:
    """A data source/sink that knows how to serve records through its codec.

    Two taps are the same tap when their locations match; the codec is not
    part of a tap's identity.
    """

    location: Location
    codec: Codec

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Tap):
            return NotImplemented
        return self.location == other.location

    def __hash__(self) -> int:
        return hash(self.location)


@dataclass(frozen=True)
class MapReduce:
    """A packaged map/reduce step.

    ``codec`` serializes the values passed between ``mapper`` and ``reducer``;
    their type never shows up outside the package.
    """

    options: MROptions
    codec: Codec
    mapper: Mapper
    reducer: Reducer


@dataclass(frozen=True)
class Connect:
    job: MapReduce
    inputs: Tuple[Tap, ...]
    output: Tap


@dataclass(frozen=True)
class MakeTap:
    codec: Codec


@dataclass(frozen=True)
class BinaryDirTap:
    location: Location


@dataclass(frozen=True)
class RunIO:
    action: Callable[[], Any] = field(compare=False)


Instruction = Union[Connect, MakeTap, BinaryDirTap, RunIO]
INSTRUCTION_TYPES = (Connect, MakeTap, BinaryDirTap, RunIO)
