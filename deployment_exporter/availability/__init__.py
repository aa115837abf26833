"""Availability state machine: evaluator, store, transition engine, tracker."""

from deployment_exporter.availability.evaluator import (
    is_ready,
    snapshot_from_deployment,
)
from deployment_exporter.availability.state_store import AvailabilityStateStore
from deployment_exporter.availability.tracker import DeploymentTracker
from deployment_exporter.availability.transition_engine import TransitionEngine

__all__ = [
    "AvailabilityStateStore",
    "DeploymentTracker",
    "TransitionEngine",
    "is_ready",
    "snapshot_from_deployment",
]
