"""Configuration for the deployment exporter."""

from deployment_exporter.config.exporter_config import ExporterConfig, parse_metrics_addr

__all__ = ["ExporterConfig", "parse_metrics_addr"]
