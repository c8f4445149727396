"""Scheduler module for the periodic health check."""

from .health_monitor import HealthMonitor, NotificationSink
from .job_scheduler import JobScheduler

__all__ = ["HealthMonitor", "JobScheduler", "NotificationSink"]
