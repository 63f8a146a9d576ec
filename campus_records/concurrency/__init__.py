"""
Concurrency Control Module

Single coordinating lock shared by all record stores.
"""

from campus_records.concurrency.locking import CoordinatingLock

__all__ = ["CoordinatingLock"]
