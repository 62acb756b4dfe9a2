"""Counters and histograms kept about executed actions."""

from __future__ import annotations

import threading
import time
from bisect import bisect_left
from http import HTTPStatus
from typing import Iterable


class CounterVec:
    """A family of counters told apart by label values."""

    def __init__(self, name: str, help_text: str, label_names: Iterable[str]) -> None:
        self.name = name
        self.help_text = help_text
        self.label_names = tuple(label_names)
        self._values: dict[tuple[str, ...], float] = {}
        self._lock = threading.Lock()

    def _key(self, labels: tuple) -> tuple[str, ...]:
        if len(labels) != len(self.label_names):
            raise ValueError(
                f"{self.name}: expected {len(self.label_names)} label values, got {len(labels)}"
            )
        return tuple(str(label) for label in labels)

    def inc(self, *args: str) -> None:
        """Add one to the counter with the given label values."""
        key = self._key(args)
        with self._lock:
            self._values[key] = self._values.get(key, 0.0) + 1

    def value(self, *args: str) -> float:
        """Return the current value of the counter with the given label values."""
        key = self._key(args)
        with self._lock:
            return self._values.get(key, 0.0)


class HistogramVec:
    """A family of histograms told apart by label values."""

    def __init__(
        self,
        name: str,
        help_text: str,
        buckets: Iterable[float],
        label_names: Iterable[str],
    ) -> None:
        bounds = tuple(float(bound) for bound in buckets)
        if not bounds:
            raise ValueError(f"{self.__class__.__name__} {name} needs at least one bucket")
        if any(low >= high for low, high in zip(bounds, bounds[1:])):
            raise ValueError(f"buckets of {name} must be in increasing order")
        self.name = name
        self.help_text = help_text
        self.buckets = bounds
        self.label_names = tuple(label_names)
        self._counts: dict[tuple[str, ...], list[int]] = {}
        self._sums: dict[tuple[str, ...], float] = {}
        self._lock = threading.Lock()

    def _key(self, labels: tuple) -> tuple[str, ...]:
        if len(labels) != len(self.label_names):
            raise ValueError(
                f"{self.name}: expected {len(self.label_names)} label values, got {len(labels)}"
            )
        return tuple(str(label) for label in labels)

    def observe(self, value: float, *args: str) -> None:
        """Record one observation for the given label values."""
        key = self._key(args)
        slot = bisect_left(self.buckets, value)
        with self._lock:
            counts = self._counts.setdefault(key, [0] * (len(self.buckets) + 1))
            counts[slot] += 1
            self._sums[key] = self._sums.get(key, 0.0) + value

    def bucket_counts(self, *args: str) -> dict[float, int]:
        """Return the cumulative count of observations at or below each bucket bound."""
        key = self._key(args)
        with self._lock:
            counts = list(self._counts.get(key, [0] * (len(self.buckets) + 1)))
        result: dict[float, int] = {}
        running = 0
        for bound, count in zip(self.buckets + (float("inf"),), counts):
            running += count
            result[bound] = running
        return result


ACTION_RESPONSE_TIME = HistogramVec(
    "bdindexer_action_response_time",
    "Time it has taken to execute an action",
    (0.5, 1, 2, 3, 4, 5),
    ("path",),
)

ACTION_COUNTER = CounterVec(
    "bdindexer_actions_total_count",
    "Total number of actions executed.",
    ("path", "http_status_code"),
)

ACTION_ERROR_COUNTER = CounterVec(
    "bdindexer_actions_error_count",
    "Total number of errors emitted.",
    ("path", "http_status_code"),
)


def success_counter(path: str) -> None:
    """Count a successful action on the given path."""
    ACTION_COUNTER.inc(path, str(HTTPStatus.OK.value))


def error_counter(path: str) -> None:
    """Count a failed action on the given path."""
    ACTION_ERROR_COUNTER.inc(path, str(HTTPStatus.INTERNAL_SERVER_ERROR.value))


def response_time_buckets(path: str, start: float) -> None:
    """Record the time elapsed since ``start``, a value of time.monotonic()."""
    ACTION_RESPONSE_TIME.observe(time.monotonic() - start, path)