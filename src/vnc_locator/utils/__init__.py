"""Shared utilities: session concurrency primitives and logging setup."""

from .concurrency import BoundedWorkerPool, CancellationToken
from .log import setup_logging

__all__ = ["BoundedWorkerPool", "CancellationToken", "setup_logging"]
