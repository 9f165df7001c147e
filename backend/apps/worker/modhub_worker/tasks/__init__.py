"""
Worker tasks package.

Contains all background task definitions.
"""

from .admin_jobs import execute_admin_job
from .release_schedule import check_release_schedule

__all__ = [
    "execute_admin_job",
    "check_release_schedule",
]
