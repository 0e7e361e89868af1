"""
Support Gate: rate-limited chat escalation and support statistics.
"""

__version__ = "1.0.0"
