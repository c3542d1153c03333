"""
Background Jobs Module

Handles scheduled tasks for:
- Payment reconciliation of committed orders
"""

from app.jobs.scheduler import scheduler, start_scheduler, shutdown_scheduler
from app.jobs.order_jobs import flag_unreconciled_payments

__all__ = [
    "scheduler",
    "start_scheduler",
    "shutdown_scheduler",
    "flag_unreconciled_payments",
]
