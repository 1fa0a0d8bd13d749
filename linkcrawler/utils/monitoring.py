"""
Monitoring and metrics collection for the link crawler.
"""

import time
import logging
from typing import Dict, Optional, Any
from dataclasses import dataclass

from prometheus_client import Counter, Gauge, CollectorRegistry, generate_latest
from prometheus_client import start_http_server


@dataclass
class Metric:
    """In-memory view of a metric."""
    name: str
    description: str
    metric_type: str  # counter, gauge
    current_value: float = 0.0


class MetricsCollector:
    """Collects crawler metrics and mirrors them into a Prometheus registry."""

    def __init__(self, enable_prometheus: bool = False, prometheus_port: int = 8000):
        self.logger = logging.getLogger(__name__)
        self.metrics: Dict[str, Metric] = {}
        self.enable_prometheus = enable_prometheus
        self.prometheus_port = prometheus_port

        self.prometheus_registry = CollectorRegistry()
        self.prometheus_metrics = {
            'pages_crawled_total': Counter(
                'crawler_pages_crawled_total',
                'Total number of pages fetched, parsed and marked crawled',
                registry=self.prometheus_registry
            ),
            'fetch_failures_total': Counter(
                'crawler_fetch_failures_total',
                'Total number of failed fetches',
                ['resource'],
                registry=self.prometheus_registry
            ),
            'links_total': Counter(
                'crawler_links_total',
                'Discovered links by graph action',
                ['action'],
                registry=self.prometheus_registry
            ),
            'images_saved_total': Counter(
                'crawler_images_saved_total',
                'Total number of images retrieved',
                registry=self.prometheus_registry
            ),
            'frontier_size': Gauge(
                'crawler_frontier_size',
                'Number of URLs in the current frontier',
                registry=self.prometheus_registry
            ),
            'rounds_completed': Gauge(
                'crawler_rounds_completed',
                'Number of completed frontier rounds',
                registry=self.prometheus_registry
            ),
        }

    def start_prometheus_server(self):
        """Start Prometheus metrics HTTP server."""
        if not self.enable_prometheus:
            return

        try:
            start_http_server(self.prometheus_port, registry=self.prometheus_registry)
            self.logger.info(f"Prometheus metrics server started on port {self.prometheus_port}")
        except OSError as e:
            self.logger.error(f"Failed to start Prometheus server: {e}")

    def _key(self, name: str, labels: Optional[Dict[str, str]]) -> str:
        if not labels:
            return name
        label_text = ','.join(f"{k}={v}" for k, v in sorted(labels.items()))
        return f"{name}{{{label_text}}}"

    def increment_counter(self, name: str, amount: float = 1,
                          labels: Optional[Dict[str, str]] = None, description: str = ""):
        """Increment a counter metric."""
        key = self._key(name, labels)
        metric = self.metrics.setdefault(key, Metric(key, description, 'counter'))
        metric.current_value += amount

        prom_metric = self.prometheus_metrics.get(name)
        if prom_metric is not None:
            if labels:
                prom_metric.labels(**labels).inc(amount)
            else:
                prom_metric.inc(amount)

    def set_gauge(self, name: str, value: float, description: str = ""):
        """Set a gauge metric value."""
        metric = self.metrics.setdefault(name, Metric(name, description, 'gauge'))
        metric.current_value = value

        prom_metric = self.prometheus_metrics.get(name)
        if prom_metric is not None:
            prom_metric.set(value)

    def get_current_values(self) -> Dict[str, float]:
        """Get current values of all metrics."""
        return {name: metric.current_value for name, metric in self.metrics.items()}

    def export_prometheus(self) -> bytes:
        """Render the registry in the Prometheus text format."""
        return generate_latest(self.prometheus_registry)


class CrawlerMonitor:
    """High-level monitoring interface for the crawler."""

    def __init__(self, metrics_collector: Optional[MetricsCollector] = None):
        self.metrics = metrics_collector or MetricsCollector()
        self.start_time = time.time()

    def record_page_crawled(self, url: str, link_count: int):
        self.metrics.increment_counter('pages_crawled_total', description='Pages crawled')

    def record_fetch_failure(self, url: str, resource: str = 'page'):
        self.metrics.increment_counter('fetch_failures_total', labels={'resource': resource},
                                       description='Failed fetches')

    def record_links(self, inserted: int, updated: int):
        if inserted:
            self.metrics.increment_counter('links_total', inserted, {'action': 'inserted'},
                                           'Links inserted')
        if updated:
            self.metrics.increment_counter('links_total', updated, {'action': 'updated'},
                                           'Links updated')

    def record_image_saved(self, url: str):
        self.metrics.increment_counter('images_saved_total', description='Images saved')

    def update_frontier_size(self, size: int):
        self.metrics.set_gauge('frontier_size', size, description='URLs in frontier')

    def update_rounds(self, rounds: int):
        self.metrics.set_gauge('rounds_completed', rounds, description='Rounds completed')

    def get_summary(self) -> Dict[str, Any]:
        """Get a summary of all metrics."""
        current_values = self.metrics.get_current_values()
        runtime = time.time() - self.start_time
        pages = current_values.get('pages_crawled_total', 0)

        return {
            'runtime_seconds': runtime,
            'metrics': current_values,
            'rates': {
                'pages_per_minute': pages / (runtime / 60) if runtime > 0 else 0,
            }
        }


def initialize_monitoring(enable_prometheus: bool = False, prometheus_port: int = 8000) -> CrawlerMonitor:
    """Build a monitor and start the exporter when enabled."""
    metrics_collector = MetricsCollector(enable_prometheus, prometheus_port)
    metrics_collector.start_prometheus_server()
    return CrawlerMonitor(metrics_collector)
