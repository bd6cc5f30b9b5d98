"""
Exporters package.

Maps the current discovery snapshot onto Prometheus metric families. The
collector only ever reads the last published snapshot, so scrape latency
does not depend on the bus.
"""

from .collector import MicroStatsCollector

__all__ = ["MicroStatsCollector"]
