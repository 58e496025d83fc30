"""Builders and in-memory stand-ins for the broker used across the tests."""

from __future__ import annotations

import json
import threading
import time
from dataclasses import dataclass, field
from typing import Any

from kafka.structs import TopicPartition

from broker.publisher import PublishError


def order_created(order_id: str, album_id: str, quantity: int, user_id: str = "user-1", **extra: Any) -> bytes:
    payload = {
        "orderId": order_id,
        "albumId": album_id,
        "quantity": quantity,
        "userId": user_id,
        "timestamp": "2024-05-01T12:00:00Z",
    }
    payload.update(extra)
    return json.dumps(payload).encode("utf-8")


def album_created(album_id: str, initial_quantity: int | None = None, **extra: Any) -> bytes:
    payload: dict[str, Any] = {
        "albumId": album_id,
        "title": "Kind of Blue",
        "artist": "Miles Davis",
        "timestamp": "2024-05-01T11:00:00Z",
    }
    if initial_quantity is not None:
        payload["initialQuantity"] = initial_quantity
    payload.update(extra)
    return json.dumps(payload).encode("utf-8")


@dataclass
class Sent:
    topic: str
    key: str
    payload: dict
    headers: list


class FakePublisher:
    """Records published messages; raises PublishError while `fail` is set."""

    def __init__(self) -> None:
        self.sent: list[Sent] = []
        self.fail = False
        self._lock = threading.Lock()

    def publish(self, topic, key, value, headers=None) -> None:
        if self.fail:
            raise PublishError(f"broker unavailable for {topic}")
        with self._lock:
            self.sent.append(Sent(topic, key, json.loads(value), list(headers or [])))

    def on(self, topic: str) -> list[Sent]:
        return [s for s in self.sent if s.topic == topic]


@dataclass
class FakeRecord:
    topic: str
    partition: int
    offset: int
    value: bytes | None
    headers: list = field(default_factory=list)


class FakeKafkaConsumer:
    """Single-partition consumer over a fixed list of payloads."""

    def __init__(self, topic: str, values: list[bytes | None]) -> None:
        self.tp = TopicPartition(topic, 0)
        self.records = [FakeRecord(topic, 0, i, v) for i, v in enumerate(values)]
        self.position = 0
        self.commits: list[int] = []
        self.seeks: list[int] = []
        self.closed = False

    def poll(self, timeout_ms: int = 0, max_records: int | None = None):
        if self.position >= len(self.records):
            time.sleep(min(timeout_ms, 10) / 1000.0)
            return {}
        record = self.records[self.position]
        self.position += 1
        return {self.tp: [record]}

    def seek(self, tp, offset: int) -> None:
        self.seeks.append(offset)
        self.position = offset

    def commit(self, offsets=None) -> None:
        self.commits.append(self.position)

    def close(self) -> None:
        self.closed = True
