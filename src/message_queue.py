from queue import SimpleQueue
from typing import Iterator, Union

from models import Transaction

_CLOSED = object()


class ShardQueue:
    """
    FIFO of transactions owned by a single shard worker.

    The publisher calls close() once it has routed everything; iterating the
    queue then yields what is left and stops, so a worker needs no polling.
    """

    def __init__(self, shard: int):
        self.shard = shard
        self._items: "SimpleQueue[Union[Transaction, object]]" = SimpleQueue()

    def publish(self, transaction: Transaction) -> None:
        self._items.put(transaction)

    def close(self) -> None:
        self._items.put(_CLOSED)

    def __iter__(self) -> Iterator[Transaction]:
        while True:
            item = self._items.get()
            if item is _CLOSED:
                return
            yield item
