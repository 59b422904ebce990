"""Scheduler module for per-host monitoring checks."""

from .host_scheduler import HostScheduler
from .reconciler import ReconcileResult, Reconciler

__all__ = ["HostScheduler", "Reconciler", "ReconcileResult"]
