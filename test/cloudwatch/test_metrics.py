from unittest.mock import Mock

from bizlevel_backend.cloudwatch.metrics import BIZLEVEL_NAMESPACE, MetricsManager


def test_put_metric_sums_repeated_names():
    manager = MetricsManager()
    manager.put_metric("BadgeAwarded", 1)
    manager.put_metric("BadgeAwarded", 2)
    manager.put_metric("LevelCompleted", 1)

    assert manager.pending() == {"BadgeAwarded": 3, "LevelCompleted": 1}


def test_flush_emits_and_clears():
    manager = MetricsManager()
    manager.set_dimension("Service", "UserProgress")
    manager.put_metric("LevelCompleted", 1)
    emf_logger = Mock()

    MetricsManager.flush.__wrapped__(manager, emf_logger)

    emf_logger.set_namespace.assert_called_once_with(BIZLEVEL_NAMESPACE)
    emf_logger.put_metric.assert_called_once_with("LevelCompleted", 1, "Count")
    emf_logger.put_dimensions.assert_called_once_with({"Service": "UserProgress"})
    assert manager.pending() == {}


def test_flush_without_metrics_is_a_no_op():
    manager = MetricsManager()
    emf_logger = Mock()

    MetricsManager.flush.__wrapped__(manager, emf_logger)

    emf_logger.set_namespace.assert_not_called()
