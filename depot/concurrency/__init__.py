"""Concurrency utilities for Depot."""

from depot.concurrency.locks import get_coordinate_lock

__all__ = ["get_coordinate_lock"]
