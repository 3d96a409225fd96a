"""
Jobs Module - Black Box Interface

Purpose: Pipelines, cron schedules, plan computation and apply
Interface: jobs.* operations (pipelines, schedules, state, plan, apply, run),
           CronScheduler
Hidden: Diffing, version ordering, run locks, schedule loops

Pipelines have a fixed shape: resolve source images, diff against the
target cluster, apply the difference.
"""

from . import module as operations
from .cron import next_runs
from .module import JobsModule, declare
from .planner import Planner
from .scheduler import CronScheduler
from .versions import is_newer, newest, version_key

__all__ = [
    "CronScheduler",
    "JobsModule",
    "Planner",
    "declare",
    "is_newer",
    "newest",
    "next_runs",
    "operations",
    "version_key",
]
