"""Kubernetes Deployment availability exporter.

Tracks how long each Deployment is unavailable, how quickly it recovers and
how often it flaps, and exposes the results as Prometheus metrics.

Usage:
    python -m deployment_exporter --namespace prod --metrics-addr :9101
"""

__version__ = "1.0.0"
