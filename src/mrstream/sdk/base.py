from abc import ABC, abstractmethod
from dataclasses import dataclass
from functools import reduce
from typing import IO, Any, Callable, Iterable, Iterator, List, Optional


class Codec(ABC):
    """Encodes records to single lines and decodes them back."""

    @abstractmethod
    def encode(self, record: Any) -> bytes:
        ...

    @abstractmethod
    def decode(self, data: bytes) -> Optional[Any]:
        ...

    def decode_stream(self, lines: Iterable[bytes]) -> Iterator[Any]:
        for line in lines:
            record = self.decode(line)
            if record is not None:
                yield record


class FileSystem(ABC):
    @abstractmethod
    def exists(self, location: str) -> bool:
        ...

    @abstractmethod
    def delete(self, location: str) -> None:
        ...

    @abstractmethod
    def list(self, location: str) -> List[str]:
        ...

    @abstractmethod
    def put(self, local_path: str, location: str) -> None:
        ...

    @abstractmethod
    def open_stream(self, location: str) -> IO[bytes]:
        """Open a location for reading, gunzipping paths that end in ``gz``."""
        ...


class Engine(ABC):
    @abstractmethod
    def submit(self, step: str, inputs: List[str], output: str, options: Any) -> None:
        """Run one map/reduce step to completion; raise SubmissionError on failure."""
        ...


@dataclass(frozen=True)
class Monoid:
    empty: Callable[[], Any]
    combine: Callable[[Any, Any], Any]

    def concat(self, values: Iterable[Any]) -> Any:
        return reduce(self.combine, values, self.empty())


SUM = Monoid(int, lambda a, b: a + b)
LIST = Monoid(list, lambda a, b: a + b)
DICT = Monoid(dict, lambda a, b: {**a, **b})
