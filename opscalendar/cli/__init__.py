"""
Command-line front-end for the operations calendar.
"""
