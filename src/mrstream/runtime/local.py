import gzip
import io
import os
import shutil
from contextlib import contextmanager
from pathlib import Path
from typing import IO, Iterator, List, Optional

from loguru import logger

from ..dsl.controller import Controller
from ..dsl.schema import MROptions
from ..errors import FileSystemError, SubmissionError
from ..sdk.base import Engine, FileSystem
from .dispatch import PhaseDispatcher
from .state import phase_names

INPUT_FILE_VAR = "map_input_file"


class LocalFileSystem(FileSystem):
    """The filesystem interface over the local disk."""

    def exists(self, location: str) -> bool:
        return Path(location).exists()

    def delete(self, location: str) -> None:
        p = Path(location)
        try:
            if p.is_dir():
                shutil.rmtree(p)
            elif p.exists():
                p.unlink()
        except OSError as e:
            raise FileSystemError(f"Cannot delete {location}: {e}") from e

    def list(self, location: str) -> List[str]:
        p = Path(location)
        if not p.is_dir():
            raise FileSystemError(f"Not a directory: {location}")
        return sorted(str(c) for c in p.iterdir() if c.is_file() and not c.name.startswith((".", "_")))

    def put(self, local_path: str, location: str) -> None:
        if os.path.abspath(local_path) == os.path.abspath(location):
            return
        try:
            Path(location).parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(local_path, location)
        except OSError as e:
            raise FileSystemError(f"Cannot copy {local_path} to {location}: {e}") from e

    def open_stream(self, location: str) -> IO[bytes]:
        try:
            if location.endswith("gz"):
                return gzip.open(location, "rb")
            return open(location, "rb")
        except OSError as e:
            raise FileSystemError(f"Cannot open {location}: {e}") from e


@contextmanager
def _input_file(path: str) -> Iterator[None]:
    old = os.environ.get(INPUT_FILE_VAR)
    os.environ[INPUT_FILE_VAR] = path
    try:
        yield
    finally:
        if old is None:
            del os.environ[INPUT_FILE_VAR]
        else:
            os.environ[INPUT_FILE_VAR] = old


def _sort_key(line: bytes) -> bytes:
    return line.rpartition(b"\t")[0]


class LocalEngine(Engine):
    """Runs steps in this process by replaying the controller in each phase.

    Mirrors what a streaming cluster does for one step: a map pass per input
    file, a sort on the key fields, and a single reduce pass writing
    ``<output>/part-00000``.
    """

    def __init__(self, ctl: Controller, fs: Optional[FileSystem] = None):
        self.ctl = ctl
        self.fs = fs or LocalFileSystem()

    def _files(self, location: str) -> List[str]:
        p = Path(location)
        if p.is_dir():
            return self.fs.list(location)
        if not p.exists():
            raise SubmissionError(location, 1, f"Input {location} does not exist")
        return [location]

    def _run_phase(self, phase: str, stdin: IO[bytes]) -> bytes:
        out = io.BytesIO()
        dispatcher = PhaseDispatcher(phase, self.fs, stdin=stdin, stdout=out, stderr=io.StringIO())
        dispatcher.run(self.ctl)
        if dispatcher.matched is None:
            raise SubmissionError(phase, 1, "no step answers to this phase")
        return out.getvalue()

    def submit(self, step: str, inputs: List[str], output: str, options: MROptions) -> None:
        map_phase, reduce_phase = phase_names(int(step))
        mapped: List[bytes] = []
        for location in inputs:
            for path in self._files(location):
                with self.fs.open_stream(path) as f, _input_file(path):
                    mapped.extend(self._run_phase(map_phase, f).splitlines())
        mapped.sort(key=_sort_key)
        logger.debug("Step {}: {} map output lines", step, len(mapped))
        shuffled = io.BytesIO(b"".join(line + b"\n" for line in mapped))
        result = self._run_phase(reduce_phase, shuffled)
        Path(output).mkdir(parents=True, exist_ok=True)
        (Path(output) / "part-00000").write_bytes(result)
