import time

import pytest

from bdindexer.actions_metrics import (
    ACTION_COUNTER,
    ACTION_ERROR_COUNTER,
    ACTION_RESPONSE_TIME,
    CounterVec,
    HistogramVec,
    error_counter,
    response_time_buckets,
    success_counter,
)


def test_counter_counts_increments():
    counter = CounterVec("requests", "Requests.", ["path", "code"])
    times = 3
    for _ in range(times):
        counter.inc("/a", "200")
    assert counter.value("/a", "200") == times


def test_counter_labels_are_independent():
    counter = CounterVec("requests", "Requests.", ["path", "code"])
    counter.inc("/a", "200")
    counter.inc("/b", "200")
    counter.inc("/b", "200")
    assert counter.value("/b", "200") == 2 * counter.value("/a", "200")
    assert counter.value("/a", "500") == 0


def test_counter_wrong_label_count():
    counter = CounterVec("requests", "Requests.", ["path", "code"])
    with pytest.raises(ValueError):
        counter.inc("/a")
    with pytest.raises(ValueError):
        counter.value("/a", "200", "extra")


def test_histogram_counts_are_cumulative():
    histogram = HistogramVec("latency", "Latency.", [0.5, 1, 2], ["path"])
    observations = [0.1, 0.7, 1.5, 9.0, 0.5]
    for value in observations:
        histogram.observe(value, "/p")
    counts = histogram.bucket_counts("/p")
    assert list(counts) == [0.5, 1.0, 2.0, float("inf")]
    values = list(counts.values())
    assert values == sorted(values)
    assert counts[float("inf")] == len(observations)


def test_histogram_small_value_is_in_every_bucket():
    histogram = HistogramVec("latency", "Latency.", [0.5, 1, 2], ["path"])
    histogram.observe(0.1, "/p")
    assert set(histogram.bucket_counts("/p").values()) == {1}


def test_histogram_rejects_bad_buckets():
    with pytest.raises(ValueError):
        HistogramVec("latency", "Latency.", [], ["path"])
    with pytest.raises(ValueError):
        HistogramVec("latency", "Latency.", [2, 1], ["path"])


def test_histogram_wrong_label_count():
    histogram = HistogramVec("latency", "Latency.", [1], ["path"])
    with pytest.raises(ValueError):
        histogram.observe(0.2)


def test_success_counter():
    path = "/metrics_success_test"
    before = ACTION_COUNTER.value(path, "200")
    success_counter(path)
    assert ACTION_COUNTER.value(path, "200") == before + 1
    assert ACTION_ERROR_COUNTER.value(path, "500") == 0


def test_error_counter():
    path = "/metrics_error_test"
    before = ACTION_ERROR_COUNTER.value(path, "500")
    error_counter(path)
    assert ACTION_ERROR_COUNTER.value(path, "500") == before + 1
    assert ACTION_COUNTER.value(path, "200") == 0


def test_response_time_buckets():
    path = "/metrics_time_test"
    before = ACTION_RESPONSE_TIME.bucket_counts(path)[float("inf")]
    response_time_buckets(path, time.monotonic())
    counts = ACTION_RESPONSE_TIME.bucket_counts(path)
    assert counts[float("inf")] == before + 1
    assert counts[0.5] == counts[float("inf")]