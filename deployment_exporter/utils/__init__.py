"""Shared utilities for the deployment exporter."""
