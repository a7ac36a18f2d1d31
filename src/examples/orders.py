"""Join customers with their orders; customers without orders keep an empty list."""

from typing import Any, Dict, Iterator, Tuple

from mrstream.cli.main import hadoop_main
from mrstream.compiler import JoinType, join_step
from mrstream.dsl.controller import connect, controller, tap
from mrstream.sdk.base import Monoid
from mrstream.sdk.codecs import JsonCodec

customers = tap("input/customers", JsonCodec())
orders = tap("input/orders", JsonCodec())
report = tap("output/customer_orders", JsonCodec())


def merge(a: Dict[str, Any], b: Dict[str, Any]) -> Dict[str, Any]:
    return {**a, **b, "orders": a.get("orders", []) + b.get("orders", [])}


RECORD = Monoid(dict, merge)


def customer(row: Dict[str, Any]) -> Iterator[Tuple[str, Dict[str, Any]]]:
    yield str(row["id"]), {"id": row["id"], "name": row["name"]}


def order(row: Dict[str, Any]) -> Iterator[Tuple[str, Dict[str, Any]]]:
    yield str(row["customer_id"]), {"orders": [row["order_id"]]}


customer_orders = join_step(
    [
        (customers, JoinType.REQUIRED, customer),
        (orders, JoinType.OPTIONAL, order),
    ],
    RECORD,
)


@controller
def flow():
    yield connect(customer_orders, [customers, orders], report)


if __name__ == "__main__":
    hadoop_main(flow)
