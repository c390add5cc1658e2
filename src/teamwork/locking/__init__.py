"""
Filesystem locking for teamwork.
"""

from .lock_manager import LockManager, lock_path_for, pid_alive

__all__ = ["LockManager", "lock_path_for", "pid_alive"]
