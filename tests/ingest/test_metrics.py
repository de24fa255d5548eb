"""Tests for Prometheus metric helpers."""

import errno
from unittest.mock import patch

import pytest
from prometheus_client import REGISTRY

from ingest import metrics


def _value(name, labels=None):
    return REGISTRY.get_sample_value(name, labels or {}) or 0.0


class TestRecorders:
    def test_batch_delivered_counts_casts(self):
        before = _value("ingest_casts_delivered_total")
        metrics.record_batch_delivered(7, "size", 0.01)
        assert _value("ingest_casts_delivered_total") == before + 7

    def test_batch_failed_counts_truncated_casts(self):
        labels = {"reason": "requeue_cap"}
        before = _value("ingest_casts_dropped_total", labels)
        metrics.record_batch_failed(10, "timeout", 0.01)
        assert _value("ingest_casts_dropped_total", labels) == before + 10

    def test_connection_state_is_one_hot(self):
        metrics.update_connection_state("streaming", ["disconnected", "connecting", "streaming"])

        assert _value("ingest_hub_connection_state", {"state": "streaming"}) == 1
        assert _value("ingest_hub_connection_state", {"state": "disconnected"}) == 0


class TestStartMetricsServer:
    def test_uses_preferred_port(self):
        with patch("ingest.metrics.start_http_server") as start:
            assert metrics.start_metrics_server(8000) == 8000
        start.assert_called_once_with(8000, registry=REGISTRY)

    def test_falls_back_when_port_in_use(self):
        in_use = OSError(errno.EADDRINUSE, "Address already in use")
        with patch("ingest.metrics.start_http_server", side_effect=[in_use, None]) as start:
            port = metrics.start_metrics_server(8000)

        assert port != 8000
        assert start.call_count == 2

    def test_other_os_errors_propagate(self):
        with patch("ingest.metrics.start_http_server", side_effect=OSError(errno.EACCES, "denied")):
            with pytest.raises(OSError):
                metrics.start_metrics_server(80)
