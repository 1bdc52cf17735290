"""Metric families register under distinct names and are served on /metrics."""
from prometheus_client import CollectorRegistry
from prometheus_client.metrics import MetricWrapperBase

from genstudio.utils import metrics


def _module_metrics():
    return [value for value in vars(metrics).values() if isinstance(value, MetricWrapperBase)]


def test_family_names_are_unique():
    # Counters drop their _total suffix in the family name
    names = [family.name for metric in _module_metrics() for family in metric.describe()]
    assert len(names) == len(set(names))


def test_families_register_in_a_fresh_registry():
    registry = CollectorRegistry()
    for metric in _module_metrics():
        registry.register(metric)


def test_poll_histogram_exposed():
    body = metrics.metrics_endpoint().body.decode()
    assert "generation_poll_ticks_to_terminal" in body
    assert "generation_poll_ticks_total" in body
