"""Two chained steps: count words, then keep the ones seen at least twice.

    python wordcount.py --local            # run everything in this process
    python wordcount.py                    # submit to Hadoop
"""

import re
from typing import Any, Dict, Iterator, Tuple

from mrstream.cli.main import hadoop_main
from mrstream.dsl.controller import connect, connect_new, controller, package, tap
from mrstream.dsl.schema import MROptions
from mrstream.sdk.codecs import JsonCodec, LinesCodec, PickleCodec, TsvCodec

WORD = re.compile(r"[a-z']+")

docs = tap("input/docs", LinesCodec())
frequent = tap("output/frequent_words", TsvCodec())


def words(line: str) -> Iterator[Tuple[str, int]]:
    for w in WORD.findall(line.lower()):
        yield w, 1


def total(key: Tuple[str, ...], counts: Iterator[int]) -> Iterator[Dict[str, Any]]:
    yield {"word": key[0], "count": sum(counts)}


def by_count(row: Dict[str, Any]) -> Iterator[Tuple[str, Dict[str, Any]]]:
    if row["count"] >= 2:
        yield "frequent", row


def listing(key: Tuple[str, ...], rows: Iterator[Dict[str, Any]]) -> Iterator[Tuple[str, int]]:
    for row in sorted(rows, key=lambda r: (-r["count"], r["word"])):
        yield row["word"], row["count"]


word_count = package(MROptions(num_reduce=4), PickleCodec(), words, total)
top_words = package(MROptions(num_reduce=1), PickleCodec(), by_count, listing)


@controller
def flow():
    counts = yield from connect_new(word_count, [docs], JsonCodec())
    yield connect(top_words, [counts], frequent)
    return frequent


if __name__ == "__main__":
    hadoop_main(flow)
