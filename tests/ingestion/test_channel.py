from __future__ import annotations

import threading

import pytest

from fb2index.ingestion.channel import Channel


def test_channel_delivers_items_in_order_until_closed() -> None:
    channel: Channel[int] = Channel(maxsize=10)
    for value in range(3):
        channel.put(value)
    channel.close()

    assert list(channel) == [0, 1, 2]


def test_close_reaches_every_consumer() -> None:
    channel: Channel[int] = Channel(maxsize=4)
    received: list[int] = []
    lock = threading.Lock()

    def _consume() -> None:
        for value in channel:
            with lock:
                received.append(value)

    consumers = [threading.Thread(target=_consume) for _ in range(4)]
    for consumer in consumers:
        consumer.start()
    for value in range(20):
        channel.put(value)
    channel.close()
    for consumer in consumers:
        consumer.join(timeout=5.0)

    assert not any(consumer.is_alive() for consumer in consumers)
    assert sorted(received) == list(range(20))


def test_put_blocks_while_channel_is_full() -> None:
    channel: Channel[str] = Channel(maxsize=1)
    channel.put("first")
    producer = threading.Thread(target=channel.put, args=("second",))
    producer.start()
    producer.join(timeout=0.2)

    assert producer.is_alive()

    consumed = iter(channel)
    assert next(consumed) == "first"
    producer.join(timeout=5.0)
    assert not producer.is_alive()
    assert next(consumed) == "second"


def test_channel_requires_positive_capacity() -> None:
    with pytest.raises(ValueError):
        Channel(maxsize=0)
