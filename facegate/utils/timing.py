"""
Timing utilities.

Wall-clock helpers shared by enrollment, verification and /health.
"""

import time


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def format_uptime(seconds: float) -> str:
    """
    Format uptime in human-readable format.
    
    Args:
        seconds: Uptime in seconds
    
    Returns:
        Formatted string (e.g., "1d 2h 30m 45s")
    """
    minutes, secs = divmod(int(seconds), 60)
    hours, minutes = divmod(minutes, 60)
    days, hours = divmod(hours, 24)
    
    parts = [f'{value}{unit}' for value, unit in ((days, 'd'), (hours, 'h'), (minutes, 'm')) if value]
    parts.append(f'{secs}s')
    return ' '.join(parts)
