"""Prometheus metrics primitives.

Shared histogram buckets and factories used by the runtime's metric
definitions, plus the text exposition used by scrapers.
"""

import prometheus_client

BUCKETS = (
    # log spaced with 1 sig-fig rounding, 3 per decade
    0.0002,  # 200 μs
    0.0005,
    0.001,  # 1 ms
    0.002,
    0.005,
    0.01,
    0.02,
    0.05,
    0.1,
    0.2,
    0.5,
    1,
    2,
    5,
    10,
    20,
    50,
    100,  # long multi-iteration agent calls
    float("inf"),
)


def setup_metrics_factory(registry, name, documentation, labelnames):
    """Create a Prometheus histogram with standard bucket configuration.

    Args:
        registry: Prometheus registry to register the metric with
        name: Metric name (e.g., "agent_call_duration_seconds")
        documentation: Human-readable metric description
        labelnames: Tuple of label names for the histogram

    Returns:
        Configured Prometheus Histogram instance
    """
    return prometheus_client.Histogram(
        name=name,
        documentation=documentation,
        labelnames=labelnames,
        registry=registry,
        buckets=BUCKETS,
    )


def setup_counter_factory(registry, name, documentation, labelnames):
    """Create a Prometheus counter registered with ``registry``."""
    return prometheus_client.Counter(
        name=name,
        documentation=documentation,
        labelnames=labelnames,
        registry=registry,
    )


def metrics(registry=prometheus_client.REGISTRY) -> tuple[bytes, str]:
    """Generate Prometheus exposition output.

    Returns:
        Tuple of (metrics_body, content_type)
    """
    return (
        prometheus_client.generate_latest(registry),
        prometheus_client.CONTENT_TYPE_LATEST,
    )
