"""Compile N-way joins into a single map/reduce step.

Each dataset is tagged with an id; mappers find the dataset a record came from
by matching the current input file against the declared locations, run that
dataset's transform and emit ``(join_key, dataset_id)`` keys. Reducers see all
datasets' values for one join key together and fold them with a monoid.
"""

import os
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

from blake3 import blake3

from .dsl.schema import MROptions, PartitionStrategy
from .errors import CodecError, UnknownDataset, UnknownSourceDataset
from .ir.model import Location, MapReduce, Tap
from .sdk.base import Codec, Monoid
from .sdk.codecs import PickleCodec

JoinKey = str

INPUT_FILE_VARS = ("mapreduce_map_input_file", "map_input_file")


class JoinType(str, Enum):
    REQUIRED = "required"  # keys missing from this dataset are dropped
    OPTIONAL = "optional"  # contributes the monoid identity when missing


@dataclass(frozen=True)
class JoinSpec:
    tap: Tap
    join_type: JoinType
    transform: Callable[[Any], Iterable[Tuple[JoinKey, Any]]]

    def __post_init__(self):
        object.__setattr__(self, "join_type", JoinType(self.join_type))


def dataset_id(index: int, location: Location) -> str:
    return f"{index}:{blake3(location.encode('utf-8')).hexdigest()[:16]}"


def dataset_ids(locations: Sequence[Location]) -> List[str]:
    return [dataset_id(i, loc) for i, loc in enumerate(locations)]


def current_input_file() -> str:
    for var in INPUT_FILE_VARS:
        path = os.environ.get(var)
        if path:
            return path
    return ""


class TaggedCodec(Codec):
    """Prefixes every intermediate value with the id of its dataset."""

    def __init__(self, values: Codec):
        self.values = values

    def encode(self, record: Tuple[str, Any]) -> bytes:
        ds, value = record
        return ds.encode("utf-8") + b" " + self.values.encode(value)

    def decode(self, data: bytes) -> Optional[Tuple[str, Any]]:
        ds, sep, rest = data.partition(b" ")
        if not sep:
            raise CodecError(f"Untagged join value {data[:40]!r}")
        value = self.values.decode(rest)
        if value is None:
            return None
        return ds.decode("utf-8"), value


class _Join:
    def __init__(self, specs: List[JoinSpec], monoid: Monoid):
        self.specs = specs
        self.monoid = monoid
        self.locations = [s.tap.location for s in specs]
        self.ids = dataset_ids(self.locations)
        self.index: Dict[str, JoinSpec] = dict(zip(self.ids, specs))
        self._by_path: Dict[str, str] = {}

    def source(self, path: str) -> str:
        """Dataset id for an input file; the first declared location inside ``path`` wins."""
        if path not in self._by_path:
            for ds, loc in zip(self.ids, self.locations):
                if loc in path:
                    self._by_path[path] = ds
                    break
            else:
                raise UnknownSourceDataset(path)
        return self._by_path[path]

    def mapper(self, record: Any) -> Iterator[Tuple[Tuple[str, str], Tuple[str, Any]]]:
        ds = self.source(current_input_file())
        for key, value in self.index[ds].transform(record):
            yield (key, ds), (ds, value)

    def reducer(self, key: Tuple[str, ...], values: Iterator[Tuple[str, Any]]) -> Iterator[Any]:
        buckets: Dict[str, Any] = {}
        for ds, value in values:
            if ds not in self.index:
                raise UnknownDataset(ds)
            buckets[ds] = self.monoid.combine(buckets[ds], value) if ds in buckets else value
        for ds, spec in self.index.items():
            if spec.join_type is JoinType.REQUIRED and ds not in buckets:
                return
        yield self.monoid.concat(buckets.get(ds, self.monoid.empty()) for ds in self.ids)


JOIN_OPTIONS = MROptions(eq=1, partition=PartitionStrategy(key_segments=1, sort_segments=2))


def join_step(
    datasets: Sequence[Union[JoinSpec, Tuple[Tap, JoinType, Callable]]],
    monoid: Monoid,
    value_codec: Optional[Codec] = None,
    options: Optional[MROptions] = None,
) -> MapReduce:
    """Build one map/reduce step joining ``datasets`` on the keys their transforms emit.

    Keys missing from any REQUIRED dataset are dropped; every surviving key
    produces exactly one value, the monoid concatenation of each dataset's
    contribution in declaration order.
    """
    specs = [d if isinstance(d, JoinSpec) else JoinSpec(*d) for d in datasets]
    join = _Join(specs, monoid)
    return MapReduce(
        options=options or JOIN_OPTIONS,
        codec=TaggedCodec(value_codec or PickleCodec()),
        mapper=join.mapper,
        reducer=join.reducer,
    )
