"""
Micro Stats Exporter service package.

Runs a background discovery loop against the NATS bus and exposes the
statistics of every live micro service to Prometheus via the `/metrics`
endpoint.
"""
