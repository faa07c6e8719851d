"""Liveness supervision for puppet sessions."""

from .supervisor import Watchdog, WatchdogFood

__all__ = ["Watchdog", "WatchdogFood"]
