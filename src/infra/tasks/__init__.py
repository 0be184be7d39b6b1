"""Async job infrastructure (Celery + Redis broker)."""

from .celery_app import CeleryJobRunner, InMemoryTaskExecutor, TaskExecutor

__all__ = ["CeleryJobRunner", "InMemoryTaskExecutor", "TaskExecutor"]
