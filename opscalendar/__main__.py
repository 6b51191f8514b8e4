"""
Convenience entry point for running opscalendar as a module.

Usage: python -m opscalendar [command] [options]
"""

from .cli.app import app

if __name__ == "__main__":
    app()
