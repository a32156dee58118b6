"""Bounded-concurrency job execution."""

from .worker_pool import BoundedWorkerPool, as_work_items, run_pool

__all__ = [
    "BoundedWorkerPool",
    "as_work_items",
    "run_pool",
]
