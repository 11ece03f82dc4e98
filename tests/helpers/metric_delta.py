"""
Helpers for validating metric value changes during tests.

Metrics are process-global, so tests assert on deltas rather than absolute
values.
"""

from contextlib import contextmanager


def sample_value(metric, suffix="", **labels):
    """Current value of a metric sample, 0.0 when it was never observed."""
    for family in metric.collect():
        for sample in family.samples:
            if suffix and not sample.name.endswith(suffix):
                continue
            if all(sample.labels.get(key) == value for key, value in labels.items()):
                return sample.value
    return 0.0


@contextmanager
def metric_delta(metric, expected_delta=1, **labels):
    """
    Validate that a counter (optionally a labelled child) changes by exactly
    ``expected_delta``.

    Usage:
        with metric_delta(METRICS["extractions_total"], outcome="success"):
            await extractor.extract(url)
    """
    initial_value = sample_value(metric, "_total", **labels)
    yield
    actual_delta = sample_value(metric, "_total", **labels) - initial_value
    if actual_delta != expected_delta:
        raise AssertionError(
            f"Expected metric to change by {expected_delta}, "
            f"but it changed by {actual_delta} (labels={labels})"
        )


@contextmanager
def histogram_observes(histogram, min_observations=1, **labels):
    """Validate that a histogram received at least ``min_observations``."""
    initial_count = sample_value(histogram, "_count", **labels)
    yield
    actual_observations = sample_value(histogram, "_count", **labels) - initial_count
    if actual_observations < min_observations:
        raise AssertionError(
            f"Expected at least {min_observations} histogram observations, but got {actual_observations}"
        )
