import logging

from aws_embedded_metrics import metric_scope

_LOGGER = logging.getLogger(__name__)

BIZLEVEL_NAMESPACE = "BizLevel"


class MetricsManager:
    """A wrapper for the aws_embedded_metrics library to make it more testable."""

    def __init__(self, namespace: str = BIZLEVEL_NAMESPACE):
        self._namespace = namespace
        self._metrics: dict[str, tuple[int, str]] = {}
        self._dimensions: dict[str, str] = {}

    def set_dimension(self, name: str, value: str):
        """Adds a dimension to all metrics emitted in this context."""
        self._dimensions[name] = value

    def put_metric(self, name: str, value: int, unit: str = "Count"):
        """Queues a metric; repeated names within one invocation are summed."""
        previous, _ = self._metrics.get(name, (0, unit))
        self._metrics[name] = (previous + value, unit)
        _LOGGER.info(f"Queued metric '{name}' with value {value} in namespace '{self._namespace}'")

    def pending(self) -> dict[str, int]:
        return {name: value for name, (value, _) in self._metrics.items()}

    @metric_scope
    def flush(self, metrics):
        """Emits all queued metrics to CloudWatch Logs."""
        if not self._metrics:
            return
        metrics.set_namespace(self._namespace)
        for name, (value, unit) in self._metrics.items():
            metrics.put_metric(name, value, unit)
        if self._dimensions:
            metrics.put_dimensions(self._dimensions)

        _LOGGER.info(f"Flushed {len(self._metrics)} metrics to namespace '{self._namespace}'.")
        self._metrics = {}
