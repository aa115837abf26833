"""Runtime configuration for the deployment exporter.

Values come from three layers, later layers winning:
1. Dataclass defaults
2. DEPLOYMENT_EXPORTER_* environment variables
3. Command-line flags

Usage:
    from deployment_exporter.config.exporter_config import ExporterConfig

    config = ExporterConfig.from_args(["--namespace", "prod"])
    config.scope_label  # "prod"
"""

from __future__ import annotations

import argparse
import logging
from dataclasses import dataclass, replace
from typing import ClassVar, Optional, Sequence

from deployment_exporter.config.base_config import BaseExporterConfig

logger = logging.getLogger(__name__)

DEFAULT_METRICS_PORT = 9101
DEFAULT_POLL_INTERVAL = 15.0
DEFAULT_WATCH_BACKOFF = 5.0


def parse_metrics_addr(addr: str) -> tuple[str, int]:
    """Split a listen address of the form "host:port" or ":port".

    An empty host binds all interfaces.

    Raises:
        ValueError: If the port is missing or not an integer.
    """
    host, sep, port = addr.strip().rpartition(":")
    if not sep:
        raise ValueError(f"Invalid metrics address {addr!r}: expected host:port")
    port_number = int(port)
    if not 0 < port_number < 65536:
        raise ValueError(f"Invalid metrics port {port_number}")
    return host or "0.0.0.0", port_number


@dataclass
class ExporterConfig(BaseExporterConfig):
    """Configuration for the exporter process."""

    _env_prefix: ClassVar[str] = "DEPLOYMENT_EXPORTER"

    # Namespace to monitor; empty string means all namespaces
    namespace: str = ""

    # Path to kubeconfig; None tries in-cluster config first
    kubeconfig: Optional[str] = None

    metrics_host: str = "0.0.0.0"
    metrics_port: int = DEFAULT_METRICS_PORT

    # Poll reconciliation interval (heartbeat backstop)
    poll_interval_seconds: float = DEFAULT_POLL_INTERVAL

    # Flat delay before reopening a failed or closed watch
    watch_backoff_seconds: float = DEFAULT_WATCH_BACKOFF

    # Server-side watch timeout; 0 lets the API server pick
    watch_timeout_seconds: int = 0

    # Client-side timeout for list calls; None uses the client default
    request_timeout_seconds: Optional[float] = None

    log_level: str = "INFO"

    @property
    def scope_label(self) -> str:
        """Human-readable monitoring scope."""
        return self.namespace or "all namespaces"

    @classmethod
    def from_env(cls) -> "ExporterConfig":
        host, port = cls.metrics_host, cls.metrics_port
        addr = cls._get_env_str("METRICS_ADDR", "")
        if addr:
            try:
                host, port = parse_metrics_addr(addr)
            except ValueError as e:
                logger.warning(f"Ignoring {cls._make_env_key('METRICS_ADDR')}: {e}")
        return cls(
            namespace=cls._get_env_str("NAMESPACE", ""),
            kubeconfig=cls._get_env_str("KUBECONFIG", "") or None,
            metrics_host=host,
            metrics_port=port,
            poll_interval_seconds=cls._get_env_float("SCRAPE_INTERVAL", DEFAULT_POLL_INTERVAL),
            watch_backoff_seconds=cls._get_env_float("WATCH_BACKOFF", DEFAULT_WATCH_BACKOFF),
            watch_timeout_seconds=cls._get_env_int("WATCH_TIMEOUT", 0),
            request_timeout_seconds=cls._get_env_optional_float("REQUEST_TIMEOUT"),
            log_level=cls._get_env_str("LOG_LEVEL", "INFO").upper(),
        )

    @classmethod
    def from_args(cls, argv: Optional[Sequence[str]] = None) -> "ExporterConfig":
        """Build config from environment, then apply command-line overrides.

        Invalid values exit through `parser.error()` (status 2) like any
        other usage error.
        """
        parser = build_arg_parser()
        args = parser.parse_args(argv)
        try:
            config = cls.from_env()

            overrides = {}
            if args.kubeconfig is not None:
                overrides["kubeconfig"] = args.kubeconfig or None
            if args.namespace is not None:
                overrides["namespace"] = args.namespace
            if args.metrics_addr is not None:
                overrides["metrics_host"], overrides["metrics_port"] = parse_metrics_addr(
                    args.metrics_addr
                )
            if args.scrape_interval is not None:
                overrides["poll_interval_seconds"] = float(args.scrape_interval)
            if args.watch_backoff is not None:
                overrides["watch_backoff_seconds"] = float(args.watch_backoff)
            if args.watch_timeout is not None:
                overrides["watch_timeout_seconds"] = args.watch_timeout
            if args.log_level is not None:
                overrides["log_level"] = args.log_level.upper()

            config = replace(config, **overrides)
            config.validate()
        except ValueError as e:
            parser.error(str(e))
        return config

    def validate(self) -> None:
        """Reject values the feeders cannot run with.

        Raises:
            ValueError: On a non-positive interval or negative timeout.
        """
        if self.poll_interval_seconds <= 0:
            raise ValueError("poll interval must be positive")
        if self.watch_backoff_seconds < 0:
            raise ValueError("watch backoff must not be negative")
        if self.watch_timeout_seconds < 0:
            raise ValueError("watch timeout must not be negative")


def build_arg_parser() -> argparse.ArgumentParser:
    """Command-line flags; unset flags fall back to environment/defaults."""
    parser = argparse.ArgumentParser(
        prog="deployment-exporter",
        description="Export Kubernetes Deployment availability and recovery metrics",
    )
    parser.add_argument(
        "--kubeconfig",
        default=None,
        help="Path to kubeconfig file (optional, uses in-cluster config if not set)",
    )
    parser.add_argument(
        "--namespace",
        default=None,
        help="Namespace to monitor (empty = all namespaces)",
    )
    parser.add_argument(
        "--metrics-addr",
        default=None,
        help=f"Address to expose metrics on (default: :{DEFAULT_METRICS_PORT})",
    )
    parser.add_argument(
        "--scrape-interval",
        type=float,
        default=None,
        help=f"Poll interval in seconds (default: {DEFAULT_POLL_INTERVAL:g})",
    )
    parser.add_argument(
        "--watch-backoff",
        type=float,
        default=None,
        help=f"Delay before reopening a watch in seconds (default: {DEFAULT_WATCH_BACKOFF:g})",
    )
    parser.add_argument(
        "--watch-timeout",
        type=int,
        default=None,
        help="Server-side watch timeout in seconds (default: server chooses)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "debug", "info", "warning", "error"],
        help="Logging level (default: INFO)",
    )
    return parser
