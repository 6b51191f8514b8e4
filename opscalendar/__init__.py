"""
opscalendar - Driver scheduling engine for the operations calendar.
"""

__version__ = "0.1.0"
