"""
Utility modules package.
"""

from .locks import ReadWriteLock
from .timing import format_uptime, now_ms

__all__ = [
    'ReadWriteLock',
    'format_uptime',
    'now_ms',
]
