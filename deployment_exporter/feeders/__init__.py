"""Feeders: the watch and poll loops that drive the tracker."""

from deployment_exporter.feeders.poll_feeder import PollFeeder
from deployment_exporter.feeders.retry import FixedBackoffStrategy, RetryContext, RetryStrategy
from deployment_exporter.feeders.watch_feeder import WatchFeeder

__all__ = [
    "FixedBackoffStrategy",
    "PollFeeder",
    "RetryContext",
    "RetryStrategy",
    "WatchFeeder",
]
